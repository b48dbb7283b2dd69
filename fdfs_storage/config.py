"""Configuration management for the storage client."""

import json
import os
import shutil
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from fdfs_storage.constants import (
    CONNECT_TIMEOUT_SECONDS,
    DEFAULT_CHARSET,
    DEFAULT_STORAGE_PORT,
    DOWNLOAD_CHUNK_SIZE_BYTES,
    NETWORK_TIMEOUT_SECONDS,
    UPLOAD_CHUNK_SIZE_BYTES,
)
from fdfs_storage.logging_config import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "FDFS_"


class ClientSettings(BaseModel):
    """Validated client settings."""
    connect_timeout: float = Field(CONNECT_TIMEOUT_SECONDS, gt=0)
    network_timeout: float = Field(NETWORK_TIMEOUT_SECONDS, gt=0)
    charset: str = DEFAULT_CHARSET
    download_chunk_size: int = Field(DOWNLOAD_CHUNK_SIZE_BYTES, gt=0)
    upload_chunk_size: int = Field(UPLOAD_CHUNK_SIZE_BYTES, gt=0)
    storage_host: Optional[str] = None
    storage_port: int = Field(DEFAULT_STORAGE_PORT, gt=0, lt=65536)
    store_path_index: int = Field(0, ge=0, le=255)
    log_level: str = "INFO"


class Config:
    """Manages client configuration stored in a JSON file."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file; None uses defaults and environment only
        """
        self.config_path = Path(config_path) if config_path is not None else None
        self.data = self._load()
        self.settings = self._validate(self.data)

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary with environment overrides applied
        """
        data = ClientSettings().model_dump()

        if self.config_path is not None:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

            if self.config_path.exists():
                try:
                    with open(self.config_path, 'r') as f:
                        data.update(json.load(f))
                except (json.JSONDecodeError, OSError) as e:
                    backup_path = self.config_path.with_suffix('.json.bak')
                    logger.warning(f"Corrupt config file {self.config_path}, backed up to {backup_path}: {e}")
                    shutil.copy(self.config_path, backup_path)
            else:
                with open(self.config_path, 'w') as f:
                    json.dump(data, f, indent=2)

        data.update(self._env_overrides())
        return data

    def _env_overrides(self) -> dict:
        overrides = {}
        for name in ClientSettings.model_fields:
            value = os.environ.get(ENV_PREFIX + name.upper())
            if value is not None:
                overrides[name] = value
        return overrides

    def _validate(self, data: dict) -> ClientSettings:
        try:
            return ClientSettings(**data)
        except ValidationError as e:
            raise ValueError(f"Invalid storage client configuration: {e}") from e

    def save(self) -> None:
        """Save current configuration to file."""
        if self.config_path is None:
            return
        with open(self.config_path, 'w') as f:
            json.dump(self.settings.model_dump(), f, indent=2)

    def get_timeouts(self) -> tuple[float, float]:
        """
        Get connect and network timeouts.

        Returns:
            Tuple of (connect_timeout, network_timeout) in seconds
        """
        return self.settings.connect_timeout, self.settings.network_timeout

    def get_storage_address(self) -> Optional[tuple[str, int]]:
        """
        Get the directly configured storage node, if any.

        Returns:
            (host, port) tuple or None when no storage_host is configured
        """
        if not self.settings.storage_host:
            return None
        return self.settings.storage_host, self.settings.storage_port
