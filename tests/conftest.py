"""Shared fixtures for relocator tests."""

import pytest
from click.testing import CliRunner

from _fakes import MemoryFilesystem


@pytest.fixture
def memfs():
    """In-memory filesystem with two volumes mounted at /a and /b."""
    return MemoryFilesystem(mounts={"/a": 1, "/b": 2})


@pytest.fixture
def nested_tree(memfs):
    """Source tree ``/a/dir1`` with file1, file2 and child/file1."""
    memfs.write_file("/a/dir1/file1", b"file1")
    memfs.write_file("/a/dir1/file2", b"file2")
    memfs.write_file("/a/dir1/child/file1", b"file1")
    return memfs


@pytest.fixture
def runner():
    return CliRunner()
