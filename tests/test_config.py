"""Tests for storage client configuration module."""

import json

import pytest

from fdfs_storage.config import Config


def test_config_creates_default_file(temp_config_dir):
    """Test that config file is created with defaults if missing."""
    config_path = temp_config_dir / 'nested' / 'config.json'
    config = Config(config_path)

    assert config_path.exists()

    assert config.settings.connect_timeout == 5
    assert config.settings.network_timeout == 30
    assert config.settings.charset == 'utf-8'
    assert config.settings.storage_port == 23000
    assert config.settings.storage_host is None
    assert config.settings.download_chunk_size == 256 * 1024


def test_config_loads_existing_file(temp_config_dir, temp_config):
    """Test loading existing config file."""
    config_path = temp_config_dir / 'existing.json'

    existing_data = {
        'storage_host': 'storage.example.com',
        'storage_port': 23001,
        'network_timeout': 10,
    }
    with open(config_path, 'w') as f:
        json.dump(existing_data, f)

    config = Config(config_path)

    assert config.get_storage_address() == ('storage.example.com', 23001)
    assert config.get_timeouts() == (5, 10)


def test_config_without_file_uses_defaults(temp_config):
    """Test that a config with no path never touches the filesystem."""
    config = Config()

    assert config.config_path is None
    assert config.get_storage_address() is None
    config.save()


def test_config_handles_corrupted_file(temp_config_dir, temp_config):
    """Test recovery from corrupted config file."""
    config_path = temp_config_dir / 'broken.json'

    with open(config_path, 'w') as f:
        f.write('{ invalid json content')

    config = Config(config_path)
    assert config.settings.storage_port == 23000

    backup_path = config_path.with_suffix('.json.bak')
    assert backup_path.exists()


def test_env_overrides_file(temp_config_dir, temp_config, monkeypatch):
    """Test that FDFS_* environment variables take precedence over the file."""
    config_path = temp_config_dir / 'env.json'
    with open(config_path, 'w') as f:
        json.dump({'network_timeout': 10, 'charset': 'latin-1'}, f)

    monkeypatch.setenv('FDFS_NETWORK_TIMEOUT', '12.5')
    monkeypatch.setenv('FDFS_STORAGE_HOST', '10.0.0.9')

    config = Config(config_path)

    assert config.settings.network_timeout == 12.5
    assert config.settings.charset == 'latin-1'
    assert config.get_storage_address() == ('10.0.0.9', 23000)


@pytest.mark.parametrize('field,value', [
    ('store_path_index', 300),
    ('connect_timeout', 0),
    ('storage_port', 70000),
    ('download_chunk_size', -1),
])
def test_invalid_values_rejected(temp_config_dir, temp_config, field, value):
    """Test that out-of-range settings fail validation."""
    config_path = temp_config_dir / 'invalid.json'
    with open(config_path, 'w') as f:
        json.dump({field: value}, f)

    with pytest.raises(ValueError, match='Invalid storage client configuration'):
        Config(config_path)


def test_config_save(temp_config):
    """Test that save writes the validated settings back to disk."""
    temp_config.settings.storage_host = '10.0.0.3'
    temp_config.save()

    with open(temp_config.config_path, 'r') as f:
        data = json.load(f)
    assert data['storage_host'] == '10.0.0.3'

    reloaded = Config(temp_config.config_path)
    assert reloaded.get_storage_address() == ('10.0.0.3', 23000)
