"""Tests for directory walking, copying, verification and deletion."""

import errno
import os
from pathlib import Path

import pytest

from relocator import CopyFailedError, LocalFilesystem, NodeKind
from relocator._tree import copy_tree, delete_tree, file_digest, iter_entries, verify_tree

from _fakes import disk_tree


class TestIterEntries:
    def test_preorder_lexicographic(self, memfs):
        memfs.write_file("/a/t/b/z", b"")
        memfs.write_file("/a/t/b/a", b"")
        memfs.write_file("/a/t/a", b"")
        memfs.write_file("/a/t/c", b"")
        rels = [rel for rel, _ in iter_entries(memfs, Path("/a/t"))]
        assert rels == ["a", "b", "b/a", "b/z", "c"]

    def test_kinds_and_sizes(self, memfs):
        memfs.write_file("/a/t/f", b"12345")
        memfs.symlink("f", Path("/a/t/l"))
        entries = dict(iter_entries(memfs, Path("/a/t")))
        assert entries["f"].kind == NodeKind.FILE
        assert entries["f"].size == 5
        assert entries["l"].kind == NodeKind.SYMLINK

    def test_restartable(self, nested_tree):
        first = list(iter_entries(nested_tree, Path("/a/dir1")))
        second = list(iter_entries(nested_tree, Path("/a/dir1")))
        assert first == second

    def test_does_not_follow_directory_links(self, tmp_path):
        root = tmp_path / "root"
        (root / "real").mkdir(parents=True)
        (root / "real" / "f").write_text("f")
        (root / "loop").symlink_to(root)
        rels = [rel for rel, _ in iter_entries(LocalFilesystem(), root)]
        assert rels == ["loop", "real", "real/f"]


class TestCopyTree:
    def test_copy_is_deterministic(self, nested_tree):
        def created_under(dst):
            ops = [(op, p.relative_to(dst).as_posix() if p != dst else ".")
                   for op, p in nested_tree.mutations if p == dst or dst in p.parents]
            nested_tree.mutations.clear()
            return ops

        copy_tree(nested_tree, Path("/a/dir1"), Path("/b/one"))
        first = created_under(Path("/b/one"))
        copy_tree(nested_tree, Path("/a/dir1"), Path("/b/two"))
        second = created_under(Path("/b/two"))
        assert first == second
        assert nested_tree.snapshot("/b/one") == nested_tree.snapshot("/b/two")

    def test_counts_entries(self, nested_tree):
        assert copy_tree(nested_tree, Path("/a/dir1"), Path("/b/x")) == 5

    def test_existing_destination_fails(self, nested_tree):
        nested_tree.makedirs("/b/x")
        with pytest.raises(CopyFailedError):
            copy_tree(nested_tree, Path("/a/dir1"), Path("/b/x"))

    def test_unreadable_directory(self, nested_tree):
        nested_tree.fail("scandir", "/a/dir1/child")
        with pytest.raises(CopyFailedError) as exc_info:
            copy_tree(nested_tree, Path("/a/dir1"), Path("/b/x"))
        assert exc_info.value.path == Path("/a/dir1/child")

    def test_real_disk_preserves_mode(self, tmp_path):
        src = tmp_path / "src"
        src.mkdir()
        script = src / "run.sh"
        script.write_text("#!/bin/sh\n")
        script.chmod(0o755)
        os.symlink("run.sh", src / "link")
        dst = tmp_path / "dst"

        copy_tree(LocalFilesystem(), src, dst, workers=2)

        assert disk_tree(dst) == disk_tree(src)
        assert (dst / "run.sh").stat().st_mode & 0o777 == 0o755
        assert (dst / "link").is_symlink()

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="needs mkfifo")
    def test_special_file_fails(self, tmp_path):
        src = tmp_path / "src"
        src.mkdir()
        os.mkfifo(src / "pipe")
        with pytest.raises(CopyFailedError, match="special file"):
            copy_tree(LocalFilesystem(), src, tmp_path / "dst")


class TestVerifyTree:
    def test_identical(self, nested_tree):
        copy_tree(nested_tree, Path("/a/dir1"), Path("/b/x"))
        verify_tree(nested_tree, Path("/a/dir1"), Path("/b/x"))

    def test_missing_entry(self, nested_tree):
        copy_tree(nested_tree, Path("/a/dir1"), Path("/b/x"))
        nested_tree.unlink(Path("/b/x/file2"))
        with pytest.raises(CopyFailedError, match="missing file2"):
            verify_tree(nested_tree, Path("/a/dir1"), Path("/b/x"))

    def test_extra_entry(self, nested_tree):
        copy_tree(nested_tree, Path("/a/dir1"), Path("/b/x"))
        nested_tree.write_file("/b/x/zzz", b"")
        with pytest.raises(CopyFailedError, match="unexpected zzz"):
            verify_tree(nested_tree, Path("/a/dir1"), Path("/b/x"))

    def test_same_size_different_bytes(self, nested_tree):
        copy_tree(nested_tree, Path("/a/dir1"), Path("/b/x"))
        nested_tree.files[Path("/b/x/child/file1")][:] = b"FILE1"
        with pytest.raises(CopyFailedError, match="content differs"):
            verify_tree(nested_tree, Path("/a/dir1"), Path("/b/x"))

    def test_link_target(self, memfs):
        memfs.makedirs("/a/s")
        memfs.symlink("one", Path("/a/s/l"))
        memfs.makedirs("/b/d")
        memfs.symlink("two", Path("/b/d/l"))
        with pytest.raises(CopyFailedError, match="link target"):
            verify_tree(memfs, Path("/a/s"), Path("/b/d"))

    def test_digest_matches_hashlib(self, memfs):
        import hashlib
        memfs.write_file("/a/f", b"abc" * 50000)
        assert file_digest(memfs, Path("/a/f"), chunk_size=7) == \
            hashlib.sha256(b"abc" * 50000).digest()


class TestDeleteTree:
    def test_removes_everything(self, nested_tree):
        assert delete_tree(nested_tree, Path("/a/dir1")) == []
        assert nested_tree.snapshot("/a/dir1") is None

    def test_missing_path_is_fine(self, memfs):
        assert delete_tree(memfs, Path("/a/nothing")) == []

    def test_keeps_going_past_failures(self, nested_tree):
        nested_tree.fail("unlink", "/a/dir1/file1")
        errors = delete_tree(nested_tree, Path("/a/dir1"))
        assert [(p, e.errno) for p, e in errors] == [(Path("/a/dir1/file1"), errno.EIO)]
        assert nested_tree.snapshot("/a/dir1") == {"file1": b"file1"}

    def test_link_is_not_followed(self, tmp_path):
        keep = tmp_path / "keep"
        keep.mkdir()
        (keep / "f").write_text("f")
        doomed = tmp_path / "doomed"
        doomed.mkdir()
        (doomed / "link").symlink_to(keep)
        assert delete_tree(LocalFilesystem(), doomed) == []
        assert not doomed.exists()
        assert (keep / "f").read_text() == "f"
