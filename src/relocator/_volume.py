"""Volume identity: do two paths live on one storage device?

Computed fresh on every call; mounts can change between calls.
"""

from __future__ import annotations

from pathlib import Path

from .backend import Filesystem


def volume_of(fs: Filesystem, path: Path) -> int | None:
    """Return the device of *path*, or of its nearest existing ancestor.

    ``None`` if not even the root exists (only possible with fake backends).
    """
    for candidate in (path, *path.parents):
        info = fs.lstat(candidate)
        if info is not None:
            return info.device
    return None


def same_volume(fs: Filesystem, source: Path, destination: Path) -> bool:
    """``True`` if renaming *source* to *destination* can stay on one volume.

    The destination side is judged by its parent directory, since that is
    where the new directory entry is created.  A source symlink is judged
    by the link itself, not its target.
    """
    src_dev = volume_of(fs, source)
    dst_dev = volume_of(fs, destination.parent)
    return src_dev is not None and src_dev == dst_dev
