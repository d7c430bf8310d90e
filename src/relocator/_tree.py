"""Directory walking, recursive copy, verification and recursive delete.

Everything here runs on a :class:`~relocator.backend.Filesystem`, never on
``os`` directly.  Walks are depth-first, pre-order, and visit children in
lexicographic order, so two copies of one tree are built in the same
sequence.  Symbolic links are recorded as links and never followed.
"""

from __future__ import annotations

import hashlib
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Iterator

from ._cancel import CancelToken
from .backend import DirEntry, Filesystem, NodeKind
from .exceptions import CopyFailedError

__all__ = ["iter_entries", "copy_tree", "verify_tree", "file_digest", "delete_tree"]

_COPY_CHUNK_SIZE = 65536


# ---------------------------------------------------------------------------
# Directory walking
# ---------------------------------------------------------------------------

def iter_entries(fs: Filesystem, root: Path) -> Iterator[tuple[str, DirEntry]]:
    """Yield ``(relative_path, entry)`` for everything below *root*.

    Relative paths use forward slashes.  Each call starts a fresh walk.
    """
    for entry in fs.scandir(root):
        yield entry.name, entry
        if entry.kind == NodeKind.DIRECTORY:
            for rel, child in iter_entries(fs, root / entry.name):
                yield f"{entry.name}/{rel}", child


def _join(base: Path, rel: str) -> Path:
    return base.joinpath(*rel.split("/"))


# ---------------------------------------------------------------------------
# Copying
# ---------------------------------------------------------------------------

def _copy_failed(path: Path, exc: OSError) -> CopyFailedError:
    reason = exc.strerror or str(exc)
    return CopyFailedError(f"Failed to copy {path}: {reason}", path=path, cause=exc)


def _copy_file(fs: Filesystem, src: Path, dst: Path, cancel: CancelToken | None,
               chunk_size: int) -> None:
    """Stream one regular file from *src* to a new file at *dst*."""
    try:
        with fs.open_read(src) as fin, fs.open_write(dst) as fout:
            while True:
                if cancel is not None:
                    cancel.check()
                chunk = fin.read(chunk_size)
                if not chunk:
                    break
                fout.write(chunk)
        fs.copy_metadata(src, dst)
    except OSError as exc:
        raise _copy_failed(src, exc) from exc


def _copy_node(fs: Filesystem, kind: NodeKind, src: Path, dst: Path) -> None:
    """Create the non-file node *dst* mirroring *src* (directory or link)."""
    try:
        if kind == NodeKind.DIRECTORY:
            fs.mkdir(dst)
        elif kind == NodeKind.SYMLINK:
            fs.symlink(fs.readlink(src), dst)
        else:
            raise CopyFailedError(f"Cannot copy special file: {src}", path=src)
    except OSError as exc:
        raise _copy_failed(src, exc) from exc


def copy_tree(
    fs: Filesystem,
    src: Path,
    dst: Path,
    *,
    cancel: CancelToken | None = None,
    chunk_size: int = _COPY_CHUNK_SIZE,
    workers: int = 1,
) -> int:
    """Copy the file, link or directory tree at *src* to the new path *dst*.

    *dst* must not exist.  Directories and links are created serially in
    walk order.  File contents are streamed serially, or on a thread
    pool when *workers* > 1; the first failure stops the remaining
    copies.  Directory metadata is applied last, deepest first, so
    creating children does not disturb copied timestamps.

    Returns the number of entries copied (root included).  Raises
    :class:`CopyFailedError` or :class:`RelocationCancelled`; whatever
    was created at *dst* is left for the caller to remove.
    """
    try:
        info = fs.lstat(src)
    except OSError as exc:
        raise _copy_failed(src, exc) from exc
    if info is None:
        raise CopyFailedError(f"Source vanished during copy: {src}", path=src)

    if cancel is not None:
        cancel.check()
    if info.kind == NodeKind.FILE:
        _copy_file(fs, src, dst, cancel, chunk_size)
        return 1
    _copy_node(fs, info.kind, src, dst)
    if info.kind != NodeKind.DIRECTORY:
        return 1

    files: list[tuple[Path, Path]] = []
    dirs: list[tuple[Path, Path]] = [(src, dst)]
    count = 1
    try:
        for rel, entry in iter_entries(fs, src):
            if cancel is not None:
                cancel.check()
            s, d = _join(src, rel), _join(dst, rel)
            if entry.kind == NodeKind.FILE:
                if workers > 1:
                    files.append((s, d))
                else:
                    _copy_file(fs, s, d, cancel, chunk_size)
            else:
                _copy_node(fs, entry.kind, s, d)
                if entry.kind == NodeKind.DIRECTORY:
                    dirs.append((s, d))
            count += 1
    except OSError as exc:
        # scandir of a source directory failed
        failed = Path(exc.filename) if exc.filename else src
        raise _copy_failed(failed, exc) from exc

    if files:
        _copy_files_parallel(fs, files, cancel, chunk_size, workers)

    for s, d in reversed(dirs):
        try:
            fs.copy_metadata(s, d)
        except OSError as exc:
            raise _copy_failed(s, exc) from exc
    return count


def _copy_files_parallel(fs: Filesystem, pairs: list[tuple[Path, Path]],
                         cancel: CancelToken | None, chunk_size: int,
                         workers: int) -> None:
    """Copy ``(src, dst)`` file pairs on a thread pool, failing fast."""
    abort = CancelToken(parent=cancel)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_copy_file, fs, s, d, abort, chunk_size)
                   for s, d in pairs]
        try:
            for fut in as_completed(futures):
                fut.result()
        except BaseException:
            abort.cancel()
            for fut in futures:
                fut.cancel()
            raise


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

def file_digest(fs: Filesystem, path: Path, *, cancel: CancelToken | None = None,
                chunk_size: int = _COPY_CHUNK_SIZE) -> bytes:
    """Return the SHA-256 digest of a file, streamed in chunks."""
    h = hashlib.sha256()
    with fs.open_read(path) as f:
        while True:
            if cancel is not None:
                cancel.check()
            chunk = f.read(chunk_size)
            if not chunk:
                break
            h.update(chunk)
    return h.digest()


def _mismatch(path: Path, why: str) -> CopyFailedError:
    return CopyFailedError(f"Verification failed for {path}: {why}", path=path)


def _verify_node(fs: Filesystem, kind: NodeKind, src: Path, dst: Path,
                 cancel: CancelToken | None, chunk_size: int) -> None:
    if kind == NodeKind.FILE:
        if file_digest(fs, src, cancel=cancel, chunk_size=chunk_size) != \
                file_digest(fs, dst, cancel=cancel, chunk_size=chunk_size):
            raise _mismatch(src, "content differs")
    elif kind == NodeKind.SYMLINK:
        if fs.readlink(src) != fs.readlink(dst):
            raise _mismatch(src, "link target differs")


def verify_tree(
    fs: Filesystem,
    src: Path,
    dst: Path,
    *,
    cancel: CancelToken | None = None,
    chunk_size: int = _COPY_CHUNK_SIZE,
) -> None:
    """Check that *dst* is a byte-for-byte copy of *src*.

    Compares tree shape (names and kinds), file sizes, SHA-256 digests of
    file content, and link targets.  Raises :class:`CopyFailedError` on
    the first difference.
    """
    try:
        s_info, d_info = fs.lstat(src), fs.lstat(dst)
        if s_info is None or d_info is None or s_info.kind != d_info.kind:
            raise _mismatch(src, "entry type differs")
        if s_info.size != d_info.size and s_info.kind == NodeKind.FILE:
            raise _mismatch(src, f"size {d_info.size} != {s_info.size}")
        _verify_node(fs, s_info.kind, src, dst, cancel, chunk_size)
        if s_info.kind != NodeKind.DIRECTORY:
            return

        s_entries = list(iter_entries(fs, src))
        d_entries = list(iter_entries(fs, dst))
        s_shape = [(rel, e.kind) for rel, e in s_entries]
        d_shape = [(rel, e.kind) for rel, e in d_entries]
        if s_shape != d_shape:
            missing = sorted(set(s_shape) - set(d_shape))
            extra = sorted(set(d_shape) - set(s_shape))
            detail = f"missing {missing[0][0]}" if missing else (
                f"unexpected {extra[0][0]}" if extra else "order differs")
            raise _mismatch(src, f"tree shape differs ({detail})")
        for (rel, s_e), (_rel, d_e) in zip(s_entries, d_entries):
            if cancel is not None:
                cancel.check()
            if s_e.kind == NodeKind.FILE and s_e.size != d_e.size:
                raise _mismatch(_join(src, rel), f"size {d_e.size} != {s_e.size}")
            _verify_node(fs, s_e.kind, _join(src, rel), _join(dst, rel),
                         cancel, chunk_size)
    except OSError as exc:
        raise _copy_failed(src, exc) from exc


# ---------------------------------------------------------------------------
# Deleting
# ---------------------------------------------------------------------------

def delete_tree(fs: Filesystem, path: Path) -> list[tuple[Path, OSError]]:
    """Remove the file, link or directory tree at *path*.

    Keeps going past failures and returns them as ``(path, error)``
    pairs; an empty list means *path* is gone.  A directory whose
    children could not all be removed is not attempted.
    """
    errors: list[tuple[Path, OSError]] = []
    _delete(fs, path, errors)
    return errors


def _delete(fs: Filesystem, path: Path, errors: list[tuple[Path, OSError]]) -> None:
    try:
        info = fs.lstat(path)
    except OSError as exc:
        errors.append((path, exc))
        return
    if info is None:
        return
    if info.kind != NodeKind.DIRECTORY:
        try:
            fs.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            errors.append((path, exc))
        return

    before = len(errors)
    try:
        children = fs.scandir(path)
    except OSError as exc:
        errors.append((path, exc))
        return
    for entry in children:
        _delete(fs, path / entry.name, errors)
    if len(errors) > before:
        return
    try:
        fs.rmdir(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        errors.append((path, exc))
