"""Exceptions for relocator.

Every failure kind of a relocation has one class here.  The
:class:`~relocator.Relocator` catches them and reports them on the
returned :class:`~relocator.RelocationOutcome`; call
:meth:`~relocator.RelocationOutcome.raise_for_failure` to get them back
as exceptions.
"""

from __future__ import annotations

from pathlib import Path

from ._types import FailureKind, RelocationFailure


class RelocationError(Exception):
    """Base class for relocation failures.

    Attributes:
        kind: The :class:`FailureKind` this error reports.
        path: The path the failure is about, if any.
        cause: The underlying exception, if any.
    """

    kind: FailureKind

    def __init__(self, message: str, *, path: Path | None = None,
                 cause: BaseException | None = None):
        super().__init__(message)
        self.path = path
        self.cause = cause


class SourceNotFoundError(RelocationError, FileNotFoundError):
    """The source path does not exist."""

    kind = FailureKind.SOURCE_NOT_FOUND


class DestinationExistsError(RelocationError, FileExistsError):
    """The destination exists and replacement was not requested."""

    kind = FailureKind.DESTINATION_EXISTS


class InvalidRequestError(RelocationError, ValueError):
    """Source and destination cannot form a valid move (same entry, nesting)."""

    kind = FailureKind.INVALID_REQUEST


class CopyFailedError(RelocationError):
    """A file or directory could not be copied into the staging tree."""

    kind = FailureKind.COPY_FAILED


class PromotionFailedError(RelocationError):
    """The final rename into the destination path failed."""

    kind = FailureKind.PROMOTION_FAILED


class RelocationCancelled(RelocationError):
    """The caller cancelled the copy, or its timeout expired."""

    kind = FailureKind.CANCELLED


_ERRORS_BY_KIND: dict[FailureKind, type[RelocationError]] = {
    cls.kind: cls
    for cls in (
        SourceNotFoundError,
        DestinationExistsError,
        InvalidRequestError,
        CopyFailedError,
        PromotionFailedError,
        RelocationCancelled,
    )
}


def error_for(failure: RelocationFailure) -> RelocationError:
    """Build the exception matching a :class:`RelocationFailure`."""
    cls = _ERRORS_BY_KIND[failure.kind]
    return cls(failure.message, path=failure.path, cause=failure.cause)
