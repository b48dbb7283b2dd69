"""Shared pytest fixtures for all tests."""

import pytest

from fdfs_storage.client import StorageClient
from fdfs_storage.config import ENV_PREFIX, ClientSettings, Config
from storage_fakes import FakeConnection, FakeLocator, FakeStorageServer


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .fdfs directory
    """
    config_dir = tmp_path / '.fdfs'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir, monkeypatch):
    """
    Create temporary config instance isolated from FDFS_* environment variables.

    Returns:
        Config instance with temp config file
    """
    for name in ClientSettings.model_fields:
        monkeypatch.delenv(ENV_PREFIX + name.upper(), raising=False)
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def server():
    """In-memory storage node."""
    return FakeStorageServer()


@pytest.fixture
def locator(server):
    """Tracker double backed by the shared storage node."""
    return FakeLocator(server, store_path_index=1)


@pytest.fixture
def client(locator, temp_config):
    """Client with no connection of its own; every call goes through the locator."""
    return StorageClient(locator=locator, config=temp_config)


@pytest.fixture
def owned_connection(server):
    """Caller-owned connection to the shared storage node."""
    return FakeConnection(server)


@pytest.fixture
def owned_client(locator, owned_connection, temp_config):
    """Client holding a caller-owned connection."""
    return StorageClient(locator=locator, connection=owned_connection, config=temp_config)


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing file uploads.

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'sample.txt'
    file_path.write_bytes(b'Sample content for testing')
    return file_path
