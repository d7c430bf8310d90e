"""Cooperative cancellation for the copy fallback."""

from __future__ import annotations

import threading
import time

from .exceptions import RelocationCancelled

__all__ = ["CancelToken"]


class CancelToken:
    """Cancellation signal shared between a caller and a running relocation.

    Call :meth:`cancel` from any thread.  An optional *timeout* (seconds)
    makes the token cancel itself once the deadline passes.  A token
    created with a *parent* is also cancelled when the parent is.

    Only the cross-volume copy checks the token; a native rename is one
    step and cannot be interrupted.
    """

    def __init__(self, timeout: float | None = None, *, parent: CancelToken | None = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._parent = parent

    def __repr__(self) -> str:
        return f"CancelToken(cancelled={self.cancelled})"

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """``True`` once cancelled, timed out, or the parent was cancelled."""
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        if self._parent is not None and self._parent.cancelled:
            self._event.set()
            return True
        return False

    def check(self) -> None:
        """Raise :class:`RelocationCancelled` if cancellation was requested."""
        if self.cancelled:
            raise RelocationCancelled("Relocation cancelled")


def _effective_token(token: CancelToken | None, timeout: float | None) -> CancelToken:
    """Return one token covering both the caller's *token* and *timeout*."""
    if timeout is None:
        return token if token is not None else CancelToken()
    return CancelToken(timeout, parent=token)
