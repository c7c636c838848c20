"""Shared pytest fixtures for all tests."""

import pytest

from chunkstore.database import open_database
from chunkstore.repositories.chunk_repository import ChunkRepository
from chunkstore.repositories.file_repository import FileRepository
from chunkstore.store import Store

SMALL_CHUNK_SIZE = 8


@pytest.fixture
def test_db(tmp_path):
    """
    Create a temporary database for each test.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Initialized Database handle
    """
    return open_database(tmp_path / "data" / "test.db")


@pytest.fixture
def file_repo(test_db):
    return FileRepository(test_db)


@pytest.fixture
def chunk_repo(test_db):
    return ChunkRepository(test_db)


@pytest.fixture
def store(test_db):
    """
    Store with a tiny chunk size so small payloads span several chunks.
    """
    return Store(test_db, chunk_size=SMALL_CHUNK_SIZE)


@pytest.fixture
def payload():
    """
    Non-repeating payload of 100 bytes.
    """
    return bytes(range(100))
