"""Staging and backup artifacts next to a destination.

A cross-volume move builds its copy in a hidden *staging* sibling of the
destination, then renames it into place.  Replacing a destination that
the OS will not overwrite in one rename parks the old entry in a hidden
*backup* sibling for the duration of the swap.  Both are named::

    .<destination-name>.relocate-<token>.staging
    .<destination-name>.relocate-<token>.backup

A destination name too long to fit is cut and suffixed with a short hash.
A backup named that way gets a third sibling, ``.<...>.target``, holding
the full destination name so a crashed swap can still be undone.

Under normal termination the relocator removes them itself.  After a
crash they may be left behind; :func:`sweep` cleans a directory up::

    from relocator import sweep

    report = sweep("/data/incoming")
    print(report.removed, report.restored)

Do not sweep a directory while a relocation into it is running; the
relocator takes no locks, and its staging tree would be removed.
"""

from __future__ import annotations

import hashlib
import os
import re
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Iterator

from ._tree import delete_tree
from .backend import Filesystem, LocalFilesystem

__all__ = [
    "ArtifactKind", "Artifact", "SweepError", "SweepReport",
    "staging_path", "backup_path", "parse_artifact", "write_target_record",
    "list_artifacts", "sweep",
]

_MARKER = ".relocate-"
_ARTIFACT_RE = re.compile(
    r"^\.(?P<target>.+)\.relocate-(?P<token>[0-9a-f]{12})\.(?P<kind>staging|backup|target)$"
)

# Destination names longer than this (in bytes) are cut to _KEEP_NAME_BYTES
# plus a hash, so artifact names stay within NAME_MAX.
_MAX_NAME_BYTES = 200
_KEEP_NAME_BYTES = 180


class ArtifactKind(str, Enum):
    """Kind of leftover.

    ``STAGING`` is an unpromoted copy, ``BACKUP`` a parked old
    destination, and ``TARGET`` a small file holding the full
    destination name of a backup whose own name had to be shortened.
    """
    STAGING = "staging"
    BACKUP = "backup"
    TARGET = "target"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass(frozen=True)
class Artifact:
    """A staging or backup entry found in a directory.

    Attributes:
        path: Path of the artifact itself.
        target: Destination path the artifact belongs to.
        kind: :class:`ArtifactKind` value.
        token: Random token shared by a backup and its target record.
    """
    path: Path
    target: Path
    kind: ArtifactKind
    token: str = ""


@dataclass
class SweepError:
    """An artifact :func:`sweep` could not clean up.

    Attributes:
        path: The path that caused the error.
        error: Human-readable error message.
    """
    path: Path
    error: str


@dataclass
class SweepReport:
    """Result of :func:`sweep`.

    Attributes:
        removed: Artifacts deleted (or that would be, on a dry run).
        restored: Backups renamed back onto their missing destination.
        errors: Artifacts that could not be cleaned up.
    """
    removed: list[Path] = field(default_factory=list)
    restored: list[Path] = field(default_factory=list)
    errors: list[SweepError] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        """``True`` if nothing needed doing."""
        return not self.removed and not self.restored and not self.errors


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

def _short_name(name: str) -> str:
    """Return *name*, cut to fit an artifact name if it is too long."""
    raw = os.fsencode(name)
    if len(raw) <= _MAX_NAME_BYTES:
        return name
    prefix = name
    while len(os.fsencode(prefix)) > _KEEP_NAME_BYTES:
        prefix = prefix[:-1]
    return f"{prefix}~{hashlib.sha256(raw).hexdigest()[:8]}"


def _artifact_path(destination: Path, kind: ArtifactKind) -> Path:
    token = uuid.uuid4().hex[:12]
    return destination.with_name(
        f".{_short_name(destination.name)}{_MARKER}{token}.{kind}")


def staging_path(destination: Path) -> Path:
    """Return a fresh staging path beside *destination*."""
    return _artifact_path(destination, ArtifactKind.STAGING)


def backup_path(destination: Path) -> Path:
    """Return a fresh backup path beside *destination*.

    If *destination*'s name is too long to appear in full, call
    :func:`write_target_record` before parking anything there.
    """
    return _artifact_path(destination, ArtifactKind.BACKUP)


def parse_artifact(path: Path) -> Artifact | None:
    """Return the :class:`Artifact` *path* names, or ``None`` if it is not one.

    For a shortened name, ``target`` is the shortened path; see
    :func:`list_artifacts` for the full one.
    """
    m = _ARTIFACT_RE.match(path.name)
    if m is None:
        return None
    return Artifact(path, path.with_name(m["target"]), ArtifactKind(m["kind"]),
                    m["token"])


def _target_record_path(backup: Path) -> Path:
    stem = backup.name[:-len(ArtifactKind.BACKUP.value)]
    return backup.with_name(stem + ArtifactKind.TARGET.value)


def write_target_record(fs: Filesystem, backup: Path, destination: Path) -> Path | None:
    """Save *destination*'s full name beside *backup* if the backup name is shortened.

    Returns the record's path, or ``None`` if no record was needed.
    """
    if parse_artifact(backup).target == destination:
        return None
    record = _target_record_path(backup)
    with fs.open_write(record) as f:
        f.write(os.fsencode(destination.name))
    return record


def _read_target_record(fs: Filesystem, record: Path) -> str | None:
    with fs.open_read(record) as f:
        name = os.fsdecode(f.read())
    if not name or "/" in name or name in (".", ".."):
        return None
    return name


# ---------------------------------------------------------------------------
# Discovery & cleanup
# ---------------------------------------------------------------------------

def list_artifacts(directory: str | os.PathLike[str], *,
                   fs: Filesystem | None = None) -> Iterator[Artifact]:
    """Yield every artifact directly inside *directory*, by name.

    A backup with a target record reports the full destination named
    in the record.
    """
    fs = fs or LocalFilesystem()
    base = Path(directory)
    found = []
    for entry in fs.scandir(base):
        if _MARKER not in entry.name:
            continue
        art = parse_artifact(base / entry.name)
        if art is not None:
            found.append(art)

    records = {a.token: a.path for a in found if a.kind == ArtifactKind.TARGET}
    for art in found:
        record = records.get(art.token) if art.kind == ArtifactKind.BACKUP else None
        if record is not None:
            name = _read_target_record(fs, record)
            if name is not None:
                art = replace(art, target=base / name)
        yield art


def sweep(directory: str | os.PathLike[str], *, dry_run: bool = False,
          fs: Filesystem | None = None) -> SweepReport:
    """Clean up artifacts left in *directory* by interrupted relocations.

    Staging trees are deleted.  A backup whose destination is missing
    (the crash hit between parking it and swapping in the new entry) is
    renamed back; any other backup is deleted.  Target records go once
    their backup is dealt with.  With *dry_run* the report lists what
    would happen and nothing is touched.
    """
    fs = fs or LocalFilesystem()
    report = SweepReport()
    artifacts = list(list_artifacts(directory, fs=fs))
    records = [a for a in artifacts if a.kind == ArtifactKind.TARGET]
    # tokens whose backup is still there, so its record must stay too
    pending: set[str] = set()

    for art in artifacts:
        if art.kind == ArtifactKind.TARGET:
            continue
        if art.kind == ArtifactKind.BACKUP and not fs.exists(art.target):
            if not dry_run:
                try:
                    fs.rename(art.path, art.target)
                except OSError as exc:
                    report.errors.append(SweepError(art.path, str(exc)))
                    pending.add(art.token)
                    continue
            report.restored.append(art.target)
            continue
        if not _remove(fs, art.path, report, dry_run):
            pending.add(art.token)

    for rec in records:
        if rec.token not in pending:
            _remove(fs, rec.path, report, dry_run)
    return report


def _remove(fs: Filesystem, path: Path, report: SweepReport, dry_run: bool) -> bool:
    if not dry_run:
        failures = delete_tree(fs, path)
        if failures:
            for p, exc in failures:
                report.errors.append(SweepError(p, str(exc)))
            return False
    report.removed.append(path)
    return True
