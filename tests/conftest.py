"""Shared pytest fixtures for op-journal tests."""

import tempfile
from pathlib import Path

import pytest

from op_journal.fs import MemoryFileSystem
from op_journal.store import JournalStore


@pytest.fixture
def temp_root():
    """Create a temporary directory to hold a journal."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def journal_dir(temp_root):
    return temp_root / "journal"


@pytest.fixture
def store(journal_dir):
    """Create an initialized store on the local disk."""
    s = JournalStore(journal_dir)
    s.initialize()
    return s


@pytest.fixture
def memory_fs():
    return MemoryFileSystem()


@pytest.fixture
def memory_store(memory_fs):
    """Create an initialized store on an in-memory filesystem."""
    s = JournalStore("/dotman/journal", fs=memory_fs)
    s.initialize()
    return s
