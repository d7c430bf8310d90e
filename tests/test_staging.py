"""Tests for staging/backup naming and crash cleanup (sweep)."""

import os
from pathlib import Path

import pytest

from relocator import ArtifactKind, list_artifacts, sweep
from relocator.staging import (
    backup_path,
    parse_artifact,
    staging_path,
    write_target_record,
)


class TestNaming:
    def test_staging_is_hidden_sibling(self):
        p = staging_path(Path("/b/dir2"))
        assert p.parent == Path("/b")
        assert p.name.startswith(".dir2.relocate-")
        assert p.name.endswith(".staging")

    def test_names_are_unique(self):
        assert staging_path(Path("/b/x")) != staging_path(Path("/b/x"))
        assert backup_path(Path("/b/x")) != backup_path(Path("/b/x"))

    def test_parse_round_trip(self):
        p = backup_path(Path("/b/report.tar.gz"))
        art = parse_artifact(p)
        assert art.kind == ArtifactKind.BACKUP
        assert art.target == Path("/b/report.tar.gz")
        assert art.path == p

    @pytest.mark.parametrize("name", [
        "dir2",
        ".dir2",
        ".dir2.relocate-xyz.staging",
        ".dir2.relocate-0123456789ab.other",
        "dir2.relocate-0123456789ab.staging",
    ])
    def test_parse_rejects(self, name):
        assert parse_artifact(Path("/b") / name) is None


class TestListArtifacts:
    def test_lists_only_artifacts(self, memfs):
        stage = staging_path(Path("/b/dir2"))
        memfs.makedirs(stage)
        memfs.write_file("/b/dir2/file", b"x")
        memfs.write_file("/b/.hidden", b"x")
        arts = list(list_artifacts("/b", fs=memfs))
        assert [(a.path, a.kind) for a in arts] == [(stage, ArtifactKind.STAGING)]

    def test_empty(self, memfs):
        assert list(list_artifacts("/b", fs=memfs)) == []


class TestSweep:
    def test_removes_staging_tree(self, memfs):
        stage = staging_path(Path("/b/dir2"))
        memfs.write_file(stage / "child" / "f", b"partial")

        report = sweep("/b", fs=memfs)

        assert report.removed == [stage]
        assert report.restored == []
        assert report.errors == []
        assert memfs.listing("/b") == []

    def test_restores_backup_when_target_missing(self, memfs):
        backup = backup_path(Path("/b/dir2"))
        memfs.write_file(backup / "old", b"old")

        report = sweep("/b", fs=memfs)

        assert report.restored == [Path("/b/dir2")]
        assert memfs.snapshot("/b/dir2") == {"old": b"old"}
        assert memfs.snapshot(backup) is None

    def test_deletes_backup_when_target_present(self, memfs):
        backup = backup_path(Path("/b/dir2"))
        memfs.write_file(backup / "old", b"old")
        memfs.write_file("/b/dir2/new", b"new")

        report = sweep("/b", fs=memfs)

        assert report.removed == [backup]
        assert memfs.snapshot("/b/dir2") == {"new": b"new"}
        assert memfs.listing("/b") == ["dir2"]

    def test_dry_run_touches_nothing(self, memfs):
        stage = staging_path(Path("/b/a"))
        backup = backup_path(Path("/b/c"))
        memfs.write_file(stage, b"s")
        memfs.write_file(backup, b"b")

        report = sweep("/b", dry_run=True, fs=memfs)

        assert report.removed == [stage]
        assert report.restored == [Path("/b/c")]
        assert memfs.mutations == []

    def test_clean_directory(self, memfs):
        memfs.write_file("/b/keep", b"keep")
        report = sweep("/b", fs=memfs)
        assert report.clean
        assert memfs.mutations == []

    def test_errors_are_reported(self, memfs):
        stage = staging_path(Path("/b/dir2"))
        memfs.write_file(stage / "f", b"x")
        memfs.fail("unlink", stage / "f")

        report = sweep("/b", fs=memfs)

        assert report.removed == []
        assert [e.path for e in report.errors] == [stage / "f"]
        assert not report.clean

    def test_real_directory(self, tmp_path):
        stage = staging_path(tmp_path / "out")
        (stage / "sub").mkdir(parents=True)
        (stage / "sub" / "f").write_text("x")
        report = sweep(tmp_path)
        assert report.removed == [stage]
        assert list(tmp_path.iterdir()) == []


class TestLongNames:
    NAME = "x" * 240
    DEST = Path("/b") / NAME

    def test_artifact_names_fit(self):
        for p in (staging_path(self.DEST), backup_path(self.DEST)):
            assert len(os.fsencode(p.name)) <= 255
            assert parse_artifact(p) is not None

    def test_multibyte_name_is_cut_on_a_character(self):
        p = staging_path(Path("/b") / ("é" * 120))
        assert len(os.fsencode(p.name)) <= 255
        assert "\udcc3" not in p.name

    def test_moderate_names_kept_whole(self):
        name = "y" * 200
        p = backup_path(Path("/b") / name)
        assert parse_artifact(p).target == Path("/b") / name

    def test_record_only_for_shortened_names(self, memfs):
        dest = Path("/b/short")
        assert write_target_record(memfs, backup_path(dest), dest) is None
        assert memfs.mutations == []

    def test_list_artifacts_reports_full_target(self, memfs):
        backup = backup_path(self.DEST)
        memfs.write_file(backup / "old", b"old")
        record = write_target_record(memfs, backup, self.DEST)

        arts = {a.kind: a for a in list_artifacts("/b", fs=memfs)}

        assert arts[ArtifactKind.BACKUP].target == self.DEST
        assert arts[ArtifactKind.TARGET].path == record

    def test_sweep_restores_long_backup(self, memfs):
        backup = backup_path(self.DEST)
        memfs.write_file(backup / "old", b"old")
        record = write_target_record(memfs, backup, self.DEST)

        report = sweep("/b", fs=memfs)

        assert report.restored == [self.DEST]
        assert report.removed == [record]
        assert memfs.snapshot(self.DEST) == {"old": b"old"}
        assert memfs.listing("/b") == [self.NAME]

    def test_sweep_removes_long_backup_and_record(self, memfs):
        backup = backup_path(self.DEST)
        memfs.write_file(backup / "old", b"old")
        record = write_target_record(memfs, backup, self.DEST)
        memfs.write_file(self.DEST / "new", b"new")

        report = sweep("/b", fs=memfs)

        assert report.removed == [backup, record]
        assert memfs.snapshot(self.DEST) == {"new": b"new"}
        assert memfs.listing("/b") == [self.NAME]

    def test_record_kept_while_backup_cannot_be_restored(self, memfs):
        backup = backup_path(self.DEST)
        memfs.write_file(backup / "old", b"old")
        record = write_target_record(memfs, backup, self.DEST)
        memfs.fail("rename", backup)

        report = sweep("/b", fs=memfs)

        assert [e.path for e in report.errors] == [backup]
        assert memfs.exists(record)
