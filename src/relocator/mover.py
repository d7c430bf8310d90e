"""Relocator: move a file or directory tree, across volumes if need be.

Usage::

    from relocator import relocate

    outcome = relocate("/tmp/build/out", "/srv/data/out", replace_existing=True)
    if not outcome.ok:
        print(outcome.failure.kind, outcome.failure.message)
    for w in outcome.warnings:
        print("warning:", w.message)

Two code paths sit behind :meth:`Relocator.relocate`:

* **Rename.**  Source and destination share a volume: one native rename
  of the root entry moves the whole file or tree.
* **Copy.**  Different volumes: the source is copied into a staging
  sibling of the destination, verified, promoted with one same-volume
  rename, and only then deleted.

A cross-volume move can never be atomic end to end, whatever
``atomic=True`` asks for.  The flag is a preference: the move still
completes through the copy path, and only the promotion step is a
single rename.  :attr:`RelocationOutcome.atomic` tells which happened.

Replacing a destination that the OS will not overwrite in one rename (a
non-empty directory, or a file/directory type change) parks the old
entry in a backup sibling, renames the new entry in, and deletes the
backup.  Between the two renames the destination path is briefly
absent.

No locks are taken.  Callers that need exclusivity against other
processes must coordinate themselves.
"""

from __future__ import annotations

import errno
import os
from pathlib import Path

from ._cancel import CancelToken, _effective_token
from ._tree import _COPY_CHUNK_SIZE, copy_tree, delete_tree, verify_tree
from ._types import (
    FailureKind,
    Method,
    RelocationFailure,
    RelocationOutcome,
    RelocationPlan,
    RelocationRequest,
    RelocationWarning,
)
from ._volume import same_volume
from .backend import Filesystem, LocalFilesystem, NodeInfo, NodeKind
from .exceptions import (
    DestinationExistsError,
    InvalidRequestError,
    PromotionFailedError,
    RelocationError,
    SourceNotFoundError,
)
from .staging import backup_path, staging_path, write_target_record

__all__ = ["Relocator", "relocate", "plan"]

# rename() errors meaning "the OS will not overwrite this destination"
_REPLACE_REFUSED = frozenset({errno.ENOTEMPTY, errno.EEXIST, errno.EISDIR, errno.ENOTDIR})


def _abs(path: Path) -> Path:
    return Path(os.path.abspath(path))


def _is_within(child: Path, parent: Path) -> bool:
    return child == parent or parent in child.parents


def _failure(exc: RelocationError) -> RelocationFailure:
    return RelocationFailure(exc.kind, str(exc), exc.path, exc.cause)


def _examine_failed(exc: OSError, path: Path) -> InvalidRequestError:
    return InvalidRequestError(
        f"Cannot examine {exc.filename or path}: {exc.strerror or exc}",
        path=path, cause=exc)


class Relocator:
    """Moves files and directory trees between paths.

    Holds configuration only; every call re-examines the filesystem, so
    one instance can be reused and shared between threads.

    Args:
        fs: :class:`~relocator.backend.Filesystem` backend (default:
            the host filesystem).
        verify: Compare the staged copy with the source byte for byte
            before promoting it (copy path only).
        workers: Threads used to copy file contents on the copy path.
        chunk_size: Read/write block size for copying and verifying.
    """

    def __init__(self, fs: Filesystem | None = None, *, verify: bool = True,
                 workers: int = 1, chunk_size: int = _COPY_CHUNK_SIZE):
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self._fs = fs or LocalFilesystem()
        self.verify = verify
        self.workers = workers
        self.chunk_size = chunk_size

    def __repr__(self) -> str:
        return (f"Relocator(fs={type(self._fs).__name__}, verify={self.verify}, "
                f"workers={self.workers})")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def relocate(
        self,
        source: str | os.PathLike[str],
        destination: str | os.PathLike[str],
        *,
        atomic: bool = False,
        replace_existing: bool = False,
        cancel: CancelToken | None = None,
        timeout: float | None = None,
    ) -> RelocationOutcome:
        """Move *source* to *destination*.

        Never raises for relocation failures; they come back on the
        outcome (see :class:`~relocator.FailureKind`).  A failed outcome
        leaves source and destination as they were; destination parents
        created for the move are removed again if still empty.  *cancel*
        and *timeout* (seconds) apply to the copy path only.

        With *replace_existing*, a destination the OS cannot overwrite in
        one rename (a non-empty directory, or a file replaced by a
        directory or the reverse) is swapped out through a backup
        sibling.  Between the two renames the destination path is
        briefly absent; it never holds a mix of old and new content.
        Such moves report ``atomic=False`` even on one volume.
        """
        request = RelocationRequest(Path(source), Path(destination),
                                    atomic_requested=atomic,
                                    replace_existing=replace_existing)
        token = _effective_token(cancel, timeout)
        warnings: list[RelocationWarning] = []
        created: list[Path] = []
        method: Method | None = None
        try:
            self._check(request, created=created)
            if self._same_volume(request):
                method = Method.RENAME
                try:
                    is_atomic = self._rename(request, warnings)
                except _CrossDevice:
                    method = Method.COPY
                    is_atomic = self._copy(request, token, warnings)
            else:
                method = Method.COPY
                is_atomic = self._copy(request, token, warnings)
        except RelocationError as exc:
            self._remove_created(created)
            return RelocationOutcome(request, method, failure=_failure(exc))
        return RelocationOutcome(request, method, atomic=is_atomic,
                                 warnings=tuple(warnings))

    def plan(
        self,
        source: str | os.PathLike[str],
        destination: str | os.PathLike[str],
        *,
        atomic: bool = False,
        replace_existing: bool = False,
    ) -> RelocationPlan:
        """Report how :meth:`relocate` would proceed, without touching anything."""
        request = RelocationRequest(Path(source), Path(destination),
                                    atomic_requested=atomic,
                                    replace_existing=replace_existing)
        try:
            _src, dst_info = self._check(request)
            same = self._same_volume(request)
        except RelocationError as exc:
            exists = isinstance(exc, DestinationExistsError)
            return RelocationPlan(request, None, destination_exists=exists,
                                  failure=_failure(exc))
        return RelocationPlan(request, Method.RENAME if same else Method.COPY,
                              same_volume=same,
                              destination_exists=dst_info is not None)

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def _check(self, request: RelocationRequest, *,
               created: list[Path] | None = None) -> tuple[NodeInfo, NodeInfo | None]:
        """Validate *request*; returns ``(source_info, destination_info)``.

        Nothing is modified unless every check passes.  Then, if a
        *created* list is given, missing destination parents are made and
        recorded in it, deepest first.
        """
        fs = self._fs
        src, dst = request.source, request.destination
        try:
            src_info = fs.lstat(src)
            if src_info is None:
                raise SourceNotFoundError(f"Source not found: {src}", path=src)
            dst_info = fs.lstat(dst)

            abs_src, abs_dst = _abs(src), _abs(dst)
            if abs_src == abs_dst or (
                    dst_info is not None and src_info.inode
                    and (dst_info.device, dst_info.inode) == (src_info.device, src_info.inode)):
                raise InvalidRequestError(
                    f"Source and destination are the same: {src}", path=src)
            if src_info.kind == NodeKind.DIRECTORY and _is_within(abs_dst, abs_src):
                raise InvalidRequestError(
                    f"Cannot move a directory into itself: {src} -> {dst}", path=dst)
            if _is_within(abs_src, abs_dst):
                raise InvalidRequestError(
                    f"Destination contains the source: {src} -> {dst}", path=dst)

            if dst_info is not None and not request.replace_existing:
                raise DestinationExistsError(f"Destination exists: {dst}", path=dst)

            parent = fs.lstat(dst.parent)
            if parent is not None and parent.kind != NodeKind.DIRECTORY:
                raise InvalidRequestError(
                    f"Destination parent is not a directory: {dst.parent}", path=dst.parent)
            if parent is None and created is not None:
                for d in (dst.parent, *dst.parent.parents):
                    if fs.lstat(d) is not None:
                        break
                    created.append(d)
                fs.mkdir(dst.parent, parents=True)
        except RelocationError:
            raise
        except OSError as exc:
            raise _examine_failed(exc, src) from exc
        return src_info, dst_info

    def _same_volume(self, request: RelocationRequest) -> bool:
        try:
            return same_volume(self._fs, request.source, request.destination)
        except OSError as exc:
            raise _examine_failed(exc, request.source) from exc

    def _remove_created(self, created: list[Path]) -> None:
        """Remove parents made by :meth:`_check` again, deepest first, while empty."""
        for d in created:
            try:
                self._fs.rmdir(d)
            except FileNotFoundError:
                continue
            except OSError:
                break  # no longer empty; keep it and its ancestors

    # ------------------------------------------------------------------
    # Rename path
    # ------------------------------------------------------------------

    def _rename(self, request: RelocationRequest, warnings: list[RelocationWarning]) -> bool:
        """Move by one native rename.  Raises :class:`_CrossDevice` on ``EXDEV``."""
        try:
            return self._swap_in(request.source, request.destination,
                                 request.replace_existing, warnings)
        except OSError as exc:
            if exc.errno == errno.EXDEV:
                raise _CrossDevice() from exc
            raise PromotionFailedError(
                f"Failed to rename {request.source} to {request.destination}: "
                f"{exc.strerror or exc}",
                path=request.destination, cause=exc) from exc

    # ------------------------------------------------------------------
    # Copy path
    # ------------------------------------------------------------------

    def _copy(self, request: RelocationRequest, token: CancelToken,
              warnings: list[RelocationWarning]) -> bool:
        """Copy to staging, verify, promote, then delete the source.

        Always returns ``False``: the move as a whole is not atomic.
        """
        fs = self._fs
        src, dst = request.source, request.destination
        staging = staging_path(dst)
        try:
            copy_tree(fs, src, staging, cancel=token,
                      chunk_size=self.chunk_size, workers=self.workers)
            if self.verify:
                verify_tree(fs, src, staging, cancel=token, chunk_size=self.chunk_size)
            token.check()
            try:
                self._swap_in(staging, dst, request.replace_existing, warnings)
            except OSError as exc:
                raise PromotionFailedError(
                    f"Failed to promote staged copy to {dst}: {exc.strerror or exc}",
                    path=dst, cause=exc) from exc
        except BaseException:
            # Leftovers from a failed discard are swept by staging.sweep()
            delete_tree(fs, staging)
            raise

        failures = delete_tree(fs, src)
        if failures:
            path, exc = failures[0]
            warnings.append(RelocationWarning(
                FailureKind.PARTIAL_CLEANUP, src,
                f"Moved to {dst}, but {len(failures)} source entr"
                f"{'y' if len(failures) == 1 else 'ies'} could not be removed "
                f"(first: {path}: {exc.strerror or exc})",
            ))
        return False

    # ------------------------------------------------------------------
    # Swap-in (shared by both paths)
    # ------------------------------------------------------------------

    def _swap_in(self, new: Path, destination: Path, replace: bool,
                 warnings: list[RelocationWarning]) -> bool:
        """Rename *new* onto *destination*, superseding it if *replace*.

        Returns ``True`` if a single rename did it.  Raises ``OSError``
        from the failing rename, with the old destination back in place.
        """
        fs = self._fs
        existing = fs.lstat(destination)
        if existing is None:
            fs.rename(new, destination)
            return True
        if not replace:
            raise PromotionFailedError(
                f"Destination appeared during the move: {destination}", path=destination)

        incoming = fs.lstat(new)
        incoming_dir = incoming is not None and incoming.kind == NodeKind.DIRECTORY
        if incoming_dir == (existing.kind == NodeKind.DIRECTORY):
            try:
                fs.rename(new, destination)
                return True
            except OSError as exc:
                if exc.errno not in _REPLACE_REFUSED:
                    raise
        self._swap_via_backup(new, destination, warnings)
        return False

    def _swap_via_backup(self, new: Path, destination: Path,
                         warnings: list[RelocationWarning]) -> None:
        fs = self._fs
        backup = backup_path(destination)
        # sweep() needs the full name to restore a backup with a shortened name
        record = write_target_record(fs, backup, destination)
        try:
            fs.rename(destination, backup)
        except OSError:
            self._drop_record(record)
            raise
        try:
            fs.rename(new, destination)
        except OSError as exc:
            try:
                fs.rename(backup, destination)
            except OSError as restore_exc:
                raise PromotionFailedError(
                    f"Failed to replace {destination} ({exc.strerror or exc}); "
                    f"previous destination left at {backup}",
                    path=backup, cause=restore_exc) from exc
            self._drop_record(record)
            raise

        failures = delete_tree(fs, backup)
        if not failures:
            failures = self._drop_record(record)
        if failures:
            warnings.append(RelocationWarning(
                FailureKind.PARTIAL_CLEANUP, backup,
                f"Replaced destination could not be fully removed from {backup}",
            ))

    def _drop_record(self, record: Path | None) -> list[tuple[Path, OSError]]:
        return delete_tree(self._fs, record) if record is not None else []


class _CrossDevice(Exception):
    """Rename refused with EXDEV although both paths looked same-volume."""


# ---------------------------------------------------------------------------
# Module-level shortcuts
# ---------------------------------------------------------------------------

def relocate(
    source: str | os.PathLike[str],
    destination: str | os.PathLike[str],
    *,
    atomic: bool = False,
    replace_existing: bool = False,
    cancel: CancelToken | None = None,
    timeout: float | None = None,
    fs: Filesystem | None = None,
    verify: bool = True,
    workers: int = 1,
) -> RelocationOutcome:
    """Move *source* to *destination* with a one-off :class:`Relocator`."""
    return Relocator(fs, verify=verify, workers=workers).relocate(
        source, destination, atomic=atomic, replace_existing=replace_existing,
        cancel=cancel, timeout=timeout,
    )


def plan(
    source: str | os.PathLike[str],
    destination: str | os.PathLike[str],
    *,
    atomic: bool = False,
    replace_existing: bool = False,
    fs: Filesystem | None = None,
) -> RelocationPlan:
    """Dry-run :func:`relocate`: report the method and any precondition failure."""
    return Relocator(fs).plan(source, destination, atomic=atomic,
                              replace_existing=replace_existing)
