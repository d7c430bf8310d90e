"""Filesystem capability layer.

:class:`Filesystem` exposes the small set of host primitives the relocator
needs.  Directory enumeration, volume identity, recursive copy and
recursive delete are built on top of these primitives (see ``_tree`` and
``_volume``), so every backend, including an in-memory one, runs the
same algorithms.

:class:`LocalFilesystem` implements the primitives with ``os`` and
``shutil`` for the host filesystem.
"""

from __future__ import annotations

import os
import shutil
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO

__all__ = ["NodeKind", "NodeInfo", "DirEntry", "Filesystem", "LocalFilesystem"]


class NodeKind(str, Enum):
    """Type of a filesystem node: ``FILE``, ``DIRECTORY``, ``SYMLINK``, ``OTHER``."""
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    OTHER = "other"

    def __str__(self) -> str:          # noqa: D105
        return self.value

    @classmethod
    def from_mode(cls, mode: int) -> NodeKind:
        """Convert an ``st_mode`` value to a :class:`NodeKind`."""
        if stat.S_ISLNK(mode):
            return cls.SYMLINK
        if stat.S_ISDIR(mode):
            return cls.DIRECTORY
        if stat.S_ISREG(mode):
            return cls.FILE
        return cls.OTHER


@dataclass(frozen=True, slots=True)
class NodeInfo:
    """``lstat``-like information about one node (links are not followed).

    Attributes:
        kind: :class:`NodeKind` of the node.
        size: Size in bytes (0 for directories).
        device: Identifier of the storage volume holding the node.
        inode: Inode number, used to detect two names for one node.
    """
    kind: NodeKind
    size: int
    device: int
    inode: int = 0


@dataclass(frozen=True, slots=True)
class DirEntry:
    """One child of a directory, as produced by :meth:`Filesystem.scandir`."""
    name: str
    kind: NodeKind
    size: int


class Filesystem:
    """Host primitives used by the relocator.

    Subclasses implement every method.  Errors are reported as
    :class:`OSError` (with ``errno`` set) exactly as the ``os`` module
    would, since callers branch on ``FileNotFoundError``, ``EXDEV`` and
    friends.
    """

    def lstat(self, path: Path) -> NodeInfo | None:
        """Return info about *path* without following links, ``None`` if absent."""
        raise NotImplementedError

    def scandir(self, path: Path) -> list[DirEntry]:
        """Return the immediate children of directory *path*, sorted by name."""
        raise NotImplementedError

    def rename(self, src: Path, dst: Path) -> None:
        """Rename *src* to *dst*, replacing *dst* where the OS allows it.

        POSIX semantics: a file replaces a file, a directory replaces an
        empty directory; anything else raises.  Raises ``OSError`` with
        ``errno.EXDEV`` across volumes.
        """
        raise NotImplementedError

    def mkdir(self, path: Path, *, parents: bool = False) -> None:
        raise NotImplementedError

    def unlink(self, path: Path) -> None:
        raise NotImplementedError

    def rmdir(self, path: Path) -> None:
        raise NotImplementedError

    def readlink(self, path: Path) -> str:
        raise NotImplementedError

    def symlink(self, target: str, path: Path) -> None:
        raise NotImplementedError

    def open_read(self, path: Path) -> BinaryIO:
        raise NotImplementedError

    def open_write(self, path: Path) -> BinaryIO:
        """Create *path* exclusively and open it for binary writing."""
        raise NotImplementedError

    def copy_metadata(self, src: Path, dst: Path) -> None:
        """Copy permission bits and timestamps, best effort."""
        raise NotImplementedError

    def exists(self, path: Path) -> bool:
        """``True`` if *path* names any node (dangling links included)."""
        return self.lstat(path) is not None


class LocalFilesystem(Filesystem):
    """The host filesystem, via ``os`` and ``shutil``.

    Holds no state, so one instance can be shared between threads.
    """

    def lstat(self, path: Path) -> NodeInfo | None:
        try:
            st = os.lstat(path)
        except FileNotFoundError:
            return None
        except NotADirectoryError:
            return None
        kind = NodeKind.from_mode(st.st_mode)
        size = st.st_size if kind != NodeKind.DIRECTORY else 0
        return NodeInfo(kind, size, st.st_dev, st.st_ino)

    def scandir(self, path: Path) -> list[DirEntry]:
        entries: list[DirEntry] = []
        with os.scandir(path) as it:
            for de in it:
                st = de.stat(follow_symlinks=False)
                kind = NodeKind.from_mode(st.st_mode)
                size = st.st_size if kind != NodeKind.DIRECTORY else 0
                entries.append(DirEntry(de.name, kind, size))
        entries.sort(key=lambda e: e.name)
        return entries

    def rename(self, src: Path, dst: Path) -> None:
        os.replace(src, dst)

    def mkdir(self, path: Path, *, parents: bool = False) -> None:
        if parents:
            Path(path).mkdir(parents=True, exist_ok=True)
        else:
            os.mkdir(path)

    def unlink(self, path: Path) -> None:
        os.unlink(path)

    def rmdir(self, path: Path) -> None:
        os.rmdir(path)

    def readlink(self, path: Path) -> str:
        return os.readlink(path)

    def symlink(self, target: str, path: Path) -> None:
        os.symlink(target, path)

    def open_read(self, path: Path) -> BinaryIO:
        return open(path, "rb")

    def open_write(self, path: Path) -> BinaryIO:
        return open(path, "xb")

    def copy_metadata(self, src: Path, dst: Path) -> None:
        try:
            shutil.copystat(src, dst, follow_symlinks=False)
        except (OSError, NotImplementedError):
            pass
