"""
FastDFS storage client.

Talks the FastDFS storage protocol to upload, append, modify, truncate,
delete and download files, manage per-file metadata and resolve file
attributes. Storage nodes are located through a tracker collaborator or
supplied directly as a connection.

Example:
    >>> from fdfs_storage import StorageClient, DirectStorageLocator
    >>> client = StorageClient(DirectStorageLocator('192.168.1.100', 23000))
    >>> result = client.upload_buffer(b'hello', file_ext_name='txt')
    >>> client.download_to_buffer(result.group_name, result.remote_filename)
    b'hello'
"""

__version__ = '1.0.0'

from .client import StorageClient
from .config import ClientSettings, Config
from .connection import (
    Capability,
    ConnectionManager,
    DirectStorageLocator,
    StorageConnection,
    TrackerLocator,
)
from .constants import MetadataFlag, StorageCommand
from .exceptions import (
    InvalidArgumentError,
    LocalIOError,
    ProtocolMismatchError,
    RemoteError,
    ResolutionError,
    StorageClientError,
    TransferAbortedError,
)
from .ports import BufferSource, CallbackSink, PullPort, PushPort, StreamSink, StreamSource
from .types import FileInfo, MetadataEntry, UploadResult, split_file_id

__all__ = [
    'StorageClient',
    'ClientSettings',
    'Config',
    # Connections
    'Capability',
    'ConnectionManager',
    'DirectStorageLocator',
    'StorageConnection',
    'TrackerLocator',
    # Protocol
    'MetadataFlag',
    'StorageCommand',
    # Errors
    'StorageClientError',
    'InvalidArgumentError',
    'LocalIOError',
    'ProtocolMismatchError',
    'RemoteError',
    'ResolutionError',
    'TransferAbortedError',
    # Data ports
    'BufferSource',
    'CallbackSink',
    'PullPort',
    'PushPort',
    'StreamSink',
    'StreamSource',
    # Types
    'FileInfo',
    'MetadataEntry',
    'UploadResult',
    'split_file_id',
]
