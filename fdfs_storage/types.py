"""Shared data type definitions (FrameHeader, FileInfo, UploadResult, etc.)."""

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True)
class FrameHeader:
    """
    Protocol frame header: 8-byte body length, command byte, status byte.
    """
    body_length: int
    cmd: int
    status: int = 0


@dataclass(frozen=True)
class Package:
    """A received response frame: status byte plus body."""
    status: int
    body: bytes = b""


@dataclass(frozen=True)
class MetadataEntry:
    """One name/value pair of a file's metadata."""
    name: str
    value: str


@dataclass(frozen=True)
class FileInfo:
    """
    Attributes of a file stored on a storage node.

    Attributes:
        file_size: Size of the file in bytes
        create_timestamp: Unix timestamp (seconds) of file creation
        crc32: CRC32 checksum of the file
        source_ip: IP address of the storage server the file was uploaded to
    """
    file_size: int
    create_timestamp: int
    crc32: int
    source_ip: str

    @property
    def create_time(self) -> datetime:
        return datetime.fromtimestamp(self.create_timestamp, tz=timezone.utc)


@dataclass(frozen=True)
class UploadResult:
    """
    Response from an upload operation.

    Attributes:
        group_name: Storage group where the file was stored
        remote_filename: Path and filename on the storage server
    """
    group_name: str
    remote_filename: str

    @property
    def file_id(self) -> str:
        return f"{self.group_name}/{self.remote_filename}"


def split_file_id(file_id: str) -> tuple[str, str]:
    """
    Split a "group/remote_filename" file id into its two parts.

    Raises:
        ValueError: If the id has no group separator or either part is empty
    """
    group_name, sep, remote_filename = file_id.partition('/')
    if not sep or not group_name or not remote_filename:
        raise ValueError(f"invalid file id: {file_id!r}")
    return group_name, remote_filename
