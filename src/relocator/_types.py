"""Data structures for relocation requests, outcomes and plans."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class FailureKind(str, Enum):
    """Kind of relocation failure.

    Members: ``SOURCE_NOT_FOUND``, ``DESTINATION_EXISTS``,
    ``INVALID_REQUEST``, ``COPY_FAILED``, ``PROMOTION_FAILED``,
    ``CANCELLED``, and ``PARTIAL_CLEANUP`` (only ever a warning).
    """
    SOURCE_NOT_FOUND = "source_not_found"
    DESTINATION_EXISTS = "destination_exists"
    INVALID_REQUEST = "invalid_request"
    COPY_FAILED = "copy_failed"
    PROMOTION_FAILED = "promotion_failed"
    CANCELLED = "cancelled"
    PARTIAL_CLEANUP = "partial_cleanup"

    def __str__(self) -> str:          # noqa: D105
        return self.value


class Method(str, Enum):
    """How a relocation is carried out: ``RENAME`` or ``COPY``."""
    RENAME = "rename"
    COPY = "copy"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass(frozen=True)
class RelocationRequest:
    """A single move request.

    Attributes:
        source: Path to move.
        destination: Final path of the moved entry.
        atomic_requested: Prefer a single atomic rename.  Cross-volume
            moves still complete by copying; see :attr:`RelocationOutcome.atomic`.
        replace_existing: Supersede an existing destination instead of failing.
    """
    source: Path
    destination: Path
    atomic_requested: bool = False
    replace_existing: bool = False


@dataclass(frozen=True)
class RelocationFailure:
    """Why a relocation did not succeed.

    Attributes:
        kind: :class:`FailureKind` value.
        message: Human-readable error message.
        path: Path the failure is about, if any.
        cause: Underlying exception, if any.
    """
    kind: FailureKind
    message: str
    path: Path | None = None
    cause: BaseException | None = None


@dataclass(frozen=True)
class RelocationWarning:
    """A non-fatal problem on a successful relocation.

    Attributes:
        kind: Always :attr:`FailureKind.PARTIAL_CLEANUP` for now.
        path: Path that was left behind.
        message: Human-readable description.
    """
    kind: FailureKind
    path: Path
    message: str


@dataclass(frozen=True)
class RelocationOutcome:
    """Result of :meth:`Relocator.relocate`.

    Exactly one of two shapes: success (``failure is None``), possibly
    with warnings, or failure.  There is no partial success: a failed
    outcome means source and destination are as they were before the call.

    Attributes:
        request: The request this outcome answers.
        method: ``RENAME`` or ``COPY``; ``None`` if the call failed
            before a method was chosen.
        atomic: ``True`` only if the whole move was one native rename.
            Never true for a cross-volume move, whatever was requested.
        failure: Why the move failed, or ``None`` on success.
        warnings: Non-fatal problems on success (leftover source or
            leftover replaced destination).
    """
    request: RelocationRequest
    method: Method | None = None
    atomic: bool = False
    failure: RelocationFailure | None = None
    warnings: tuple[RelocationWarning, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        """``True`` if the move succeeded (warnings allowed)."""
        return self.failure is None

    @property
    def residual_source(self) -> Path | None:
        """Source path left behind by incomplete cleanup, else ``None``."""
        src = self.request.source
        for w in self.warnings:
            if w.kind == FailureKind.PARTIAL_CLEANUP and (w.path == src or src in w.path.parents):
                return src
        return None

    def raise_for_failure(self) -> None:
        """Raise the matching :class:`~relocator.exceptions.RelocationError` if failed."""
        if self.failure is None:
            return
        from .exceptions import error_for
        raise error_for(self.failure)


@dataclass(frozen=True)
class RelocationPlan:
    """Dry-run result of :meth:`Relocator.plan`.

    Attributes:
        request: The request that was planned.
        method: ``RENAME`` if source and destination share a volume,
            ``COPY`` otherwise; ``None`` when *failure* is set.
        same_volume: Whether the two paths share a storage volume.
        destination_exists: Whether the destination exists right now.
        failure: Precondition failure the real call would report.
    """
    request: RelocationRequest
    method: Method | None
    same_volume: bool = False
    destination_exists: bool = False
    failure: RelocationFailure | None = None

    @property
    def ok(self) -> bool:
        """``True`` if the preconditions currently hold."""
        return self.failure is None
