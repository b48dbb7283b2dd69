"""Storage client: upload, append, modify, truncate, delete, download, metadata, file info."""

from pathlib import Path
from typing import List, Optional, Union

from fdfs_storage import protocol
from fdfs_storage.config import Config
from fdfs_storage.connection import (
    Capability,
    ConnectionManager,
    DirectStorageLocator,
    StorageConnection,
    TrackerLocator,
)
from fdfs_storage.constants import FILE_EXT_NAME_MAX_LEN, MetadataFlag, StorageCommand
from fdfs_storage.exceptions import (
    InvalidArgumentError,
    LocalIOError,
    RemoteError,
    StorageClientError,
    TransferAbortedError,
)
from fdfs_storage.file_info import decode_file_info
from fdfs_storage.logging_config import get_logger, setup_logging
from fdfs_storage.metadata import MetadataInput, decode_metadata, encode_metadata, normalize_metadata
from fdfs_storage.ports import (
    BufferSource,
    PullCallback,
    PullPort,
    PushPort,
    StreamSink,
    StreamSource,
    as_pull_port,
)
from fdfs_storage.types import FileInfo, MetadataEntry, UploadResult

logger = get_logger(__name__)

PathLike = Union[str, Path]


def extract_ext_name(local_filename: PathLike) -> Optional[str]:
    """
    Take the extension from a local file name.

    Returns:
        Text after the last dot when the dot is not the first character and
        the extension fits the ext-name field, else None
    """
    name = Path(local_filename).name
    pos = name.rfind('.')
    if pos > 0 and len(name) - pos <= FILE_EXT_NAME_MAX_LEN + 1:
        return name[pos + 1:]
    return None


class StorageClient:
    """
    Client for one FastDFS storage node at a time.

    A connection passed in (or left in place by the caller) is reused across
    calls and closed only when its channel fails. Without one, each call
    obtains a connection from the locator and closes it when done.

    Every operation raises a StorageClientError subclass on failure. One
    instance holds one connection slot and must not be shared between
    threads.
    """

    def __init__(
        self,
        locator: Optional[TrackerLocator] = None,
        connection: Optional[StorageConnection] = None,
        config: Optional[Config] = None,
    ):
        """
        Initialize storage client.

        Args:
            locator: Tracker collaborator resolving storage nodes, can be None
            connection: Caller-owned storage connection, can be None
            config: Configuration instance; defaults and environment when None
        """
        self.config = config or Config()
        self.settings = self.config.settings
        self.charset = self.settings.charset
        self._connections = ConnectionManager(locator, connection)

    @classmethod
    def from_config(cls, config: Config, locator: Optional[TrackerLocator] = None) -> "StorageClient":
        """Build a client, falling back to the configured storage node when no locator is given."""
        setup_logging('fdfs_storage', log_level=config.settings.log_level)
        address = config.get_storage_address()
        if locator is None and address is not None:
            connect_timeout, network_timeout = config.get_timeouts()
            locator = DirectStorageLocator(
                address[0],
                address[1],
                config.settings.store_path_index,
                connect_timeout,
                network_timeout,
            )
        return cls(locator=locator, config=config)

    @property
    def connection(self) -> Optional[StorageConnection]:
        """Connection currently held in the slot, if any."""
        return self._connections.connection

    @connection.setter
    def connection(self, conn: Optional[StorageConnection]) -> None:
        self._connections.connection = conn

    def close(self) -> None:
        """Close the held connection, if any."""
        self._connections.discard()

    def __enter__(self) -> "StorageClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Frame exchange helpers
    # ------------------------------------------------------------------

    def _push(self, conn: StorageConnection, port: PushPort) -> None:
        result = port.send(conn)
        if result:
            raise TransferAbortedError(result)

    def _exchange(
        self,
        conn: StorageConnection,
        cmd: StorageCommand,
        request: bytes,
        port: Optional[PushPort] = None,
    ) -> bytes:
        """
        Send a request (and its content) and read the response body.

        Raises:
            TransferAbortedError: The push port returned non-zero; no response is read
            RemoteError: The server answered with a non-zero status
        """
        logger.debug("Sending %s request %s on %r", cmd.name, request, conn)
        conn.write(request)
        if port is not None:
            self._push(conn, port)

        expected = protocol.expected_body_length(cmd)
        package = protocol.read_package(conn, StorageCommand.RESP, -1 if expected is None else expected)
        if package.status != 0:
            raise RemoteError(package.status, f"{cmd.name.lower()} failed with error code {package.status}")
        return package.body

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def _do_upload(
        self,
        cmd: StorageCommand,
        group_name: Optional[str],
        master_filename: Optional[str],
        prefix_name: Optional[str],
        file_ext_name: Optional[str],
        file_size: int,
        port: PushPort,
        meta_list: MetadataInput,
    ) -> UploadResult:
        upload_slave = cmd == StorageCommand.UPLOAD_SLAVE_FILE
        if upload_slave:
            session = self._connections.session(Capability.UPDATABLE, group_name, master_filename)
        else:
            session = self._connections.session(Capability.WRITABLE, group_name)

        entries = normalize_metadata(meta_list)

        with session as conn:
            if upload_slave:
                request = protocol.build_slave_upload_request(
                    master_filename, prefix_name, file_size, file_ext_name, self.charset
                )
            else:
                request = protocol.build_upload_request(
                    cmd, conn.store_path_index, file_size, file_ext_name, self.charset
                )

            body = self._exchange(conn, cmd, request, port)
            result = protocol.parse_upload_response(body, self.charset)
            logger.info(f"Uploaded {file_size} bytes as {result.file_id}")

            if entries:
                self._set_metadata_after_upload(result, entries)

            return result

    def _set_metadata_after_upload(self, result: UploadResult, entries: List[MetadataEntry]) -> None:
        try:
            self.set_metadata(result.group_name, result.remote_filename, entries, MetadataFlag.OVERWRITE)
        except StorageClientError as e:
            logger.warning(f"Setting metadata on {result.file_id} failed ({e}), deleting uploaded file")
            try:
                self.delete_file(result.group_name, result.remote_filename)
            except StorageClientError as cleanup_error:
                logger.warning(f"Cleanup delete of {result.file_id} failed: {cleanup_error}")
            raise

    def _upload_local(
        self,
        cmd: StorageCommand,
        group_name: Optional[str],
        master_filename: Optional[str],
        prefix_name: Optional[str],
        local_filename: PathLike,
        file_ext_name: Optional[str],
        meta_list: MetadataInput,
    ) -> UploadResult:
        if file_ext_name is None:
            file_ext_name = extract_ext_name(local_filename)

        path = Path(local_filename)
        file_size = path.stat().st_size
        with open(path, 'rb') as f:
            source = StreamSource(f, file_size, self.settings.upload_chunk_size)
            return self._do_upload(
                cmd, group_name, master_filename, prefix_name, file_ext_name, file_size, source, meta_list
            )

    def upload_buffer(
        self,
        data: bytes,
        file_ext_name: Optional[str] = None,
        meta_list: MetadataInput = None,
        group_name: Optional[str] = None,
        offset: int = 0,
        length: Optional[int] = None,
    ) -> UploadResult:
        """
        Upload in-memory content as a new file.

        Args:
            data: File content
            file_ext_name: Extension without the dot, can be None
            meta_list: Metadata to attach, can be None
            group_name: Group to store the file in; None lets the tracker pick
            offset: Start of the slice of ``data`` to upload
            length: Length of the slice; None means to the end

        Returns:
            UploadResult with the group and new remote filename
        """
        source = BufferSource(data, offset, length)
        return self._do_upload(
            StorageCommand.UPLOAD_FILE, group_name, None, None, file_ext_name, source.length, source, meta_list
        )

    def upload_local_file(
        self,
        local_filename: PathLike,
        file_ext_name: Optional[str] = None,
        meta_list: MetadataInput = None,
        group_name: Optional[str] = None,
    ) -> UploadResult:
        """Upload a local file; the extension defaults to the local file's."""
        return self._upload_local(
            StorageCommand.UPLOAD_FILE, group_name, None, None, local_filename, file_ext_name, meta_list
        )

    def upload_by_port(
        self,
        file_size: int,
        port: PushPort,
        file_ext_name: Optional[str] = None,
        meta_list: MetadataInput = None,
        group_name: Optional[str] = None,
    ) -> UploadResult:
        """Upload ``file_size`` bytes written by a caller-supplied push port."""
        return self._do_upload(
            StorageCommand.UPLOAD_FILE, group_name, None, None, file_ext_name, file_size, port, meta_list
        )

    def upload_appender_buffer(
        self,
        data: bytes,
        file_ext_name: Optional[str] = None,
        meta_list: MetadataInput = None,
        group_name: Optional[str] = None,
        offset: int = 0,
        length: Optional[int] = None,
    ) -> UploadResult:
        """Upload in-memory content as a new appender file."""
        source = BufferSource(data, offset, length)
        return self._do_upload(
            StorageCommand.UPLOAD_APPENDER_FILE, group_name, None, None,
            file_ext_name, source.length, source, meta_list,
        )

    def upload_appender_local_file(
        self,
        local_filename: PathLike,
        file_ext_name: Optional[str] = None,
        meta_list: MetadataInput = None,
        group_name: Optional[str] = None,
    ) -> UploadResult:
        return self._upload_local(
            StorageCommand.UPLOAD_APPENDER_FILE, group_name, None, None, local_filename, file_ext_name, meta_list
        )

    def upload_appender_by_port(
        self,
        file_size: int,
        port: PushPort,
        file_ext_name: Optional[str] = None,
        meta_list: MetadataInput = None,
        group_name: Optional[str] = None,
    ) -> UploadResult:
        return self._do_upload(
            StorageCommand.UPLOAD_APPENDER_FILE, group_name, None, None, file_ext_name, file_size, port, meta_list
        )

    @staticmethod
    def _check_slave_args(group_name, master_filename, prefix_name) -> None:
        if not group_name or not master_filename or prefix_name is None:
            raise InvalidArgumentError(
                "slave upload needs a group name, a master filename and a prefix name (which may be empty)"
            )

    def upload_slave_buffer(
        self,
        group_name: str,
        master_filename: str,
        prefix_name: str,
        data: bytes,
        file_ext_name: Optional[str] = None,
        meta_list: MetadataInput = None,
        offset: int = 0,
        length: Optional[int] = None,
    ) -> UploadResult:
        """
        Upload in-memory content as a slave file of ``master_filename``.

        Raises:
            InvalidArgumentError: Empty group or master filename, or None prefix
        """
        self._check_slave_args(group_name, master_filename, prefix_name)
        source = BufferSource(data, offset, length)
        return self._do_upload(
            StorageCommand.UPLOAD_SLAVE_FILE, group_name, master_filename, prefix_name,
            file_ext_name, source.length, source, meta_list,
        )

    def upload_slave_local_file(
        self,
        group_name: str,
        master_filename: str,
        prefix_name: str,
        local_filename: PathLike,
        file_ext_name: Optional[str] = None,
        meta_list: MetadataInput = None,
    ) -> UploadResult:
        self._check_slave_args(group_name, master_filename, prefix_name)
        return self._upload_local(
            StorageCommand.UPLOAD_SLAVE_FILE, group_name, master_filename, prefix_name,
            local_filename, file_ext_name, meta_list,
        )

    def upload_slave_by_port(
        self,
        group_name: str,
        master_filename: str,
        prefix_name: str,
        file_size: int,
        port: PushPort,
        file_ext_name: Optional[str] = None,
        meta_list: MetadataInput = None,
    ) -> UploadResult:
        self._check_slave_args(group_name, master_filename, prefix_name)
        return self._do_upload(
            StorageCommand.UPLOAD_SLAVE_FILE, group_name, master_filename, prefix_name,
            file_ext_name, file_size, port, meta_list,
        )

    # ------------------------------------------------------------------
    # Append / modify / truncate / delete
    # ------------------------------------------------------------------

    @staticmethod
    def _check_appender_args(group_name, appender_filename) -> None:
        if not group_name or not appender_filename:
            raise InvalidArgumentError("group name and appender filename must not be empty")

    def append_by_port(self, group_name: str, appender_filename: str, file_size: int, port: PushPort) -> None:
        """
        Append ``file_size`` bytes written by ``port`` to an appender file.

        Raises:
            InvalidArgumentError: Empty group or filename
            RemoteError: The server rejected the append
        """
        self._check_appender_args(group_name, appender_filename)
        with self._connections.session(Capability.UPDATABLE, group_name, appender_filename) as conn:
            request = protocol.build_append_request(appender_filename, file_size, self.charset)
            self._exchange(conn, StorageCommand.APPEND_FILE, request, port)
        logger.info(f"Appended {file_size} bytes to {group_name}/{appender_filename}")

    def append_buffer(
        self,
        group_name: str,
        appender_filename: str,
        data: bytes,
        offset: int = 0,
        length: Optional[int] = None,
    ) -> None:
        source = BufferSource(data, offset, length)
        self.append_by_port(group_name, appender_filename, source.length, source)

    def append_local_file(self, group_name: str, appender_filename: str, local_filename: PathLike) -> None:
        path = Path(local_filename)
        file_size = path.stat().st_size
        with open(path, 'rb') as f:
            source = StreamSource(f, file_size, self.settings.upload_chunk_size)
            self.append_by_port(group_name, appender_filename, file_size, source)

    def modify_by_port(
        self,
        group_name: str,
        appender_filename: str,
        file_offset: int,
        modify_size: int,
        port: PushPort,
    ) -> None:
        """
        Overwrite ``modify_size`` bytes of an appender file starting at ``file_offset``.

        Raises:
            InvalidArgumentError: Empty group or filename
            RemoteError: The server rejected the modification
        """
        self._check_appender_args(group_name, appender_filename)
        with self._connections.session(Capability.UPDATABLE, group_name, appender_filename) as conn:
            request = protocol.build_modify_request(appender_filename, file_offset, modify_size, self.charset)
            self._exchange(conn, StorageCommand.MODIFY_FILE, request, port)
        logger.info(f"Modified {modify_size} bytes at offset {file_offset} of {group_name}/{appender_filename}")

    def modify_buffer(
        self,
        group_name: str,
        appender_filename: str,
        file_offset: int,
        data: bytes,
        buffer_offset: int = 0,
        buffer_length: Optional[int] = None,
    ) -> None:
        source = BufferSource(data, buffer_offset, buffer_length)
        self.modify_by_port(group_name, appender_filename, file_offset, source.length, source)

    def modify_local_file(
        self,
        group_name: str,
        appender_filename: str,
        file_offset: int,
        local_filename: PathLike,
    ) -> None:
        path = Path(local_filename)
        file_size = path.stat().st_size
        with open(path, 'rb') as f:
            source = StreamSource(f, file_size, self.settings.upload_chunk_size)
            self.modify_by_port(group_name, appender_filename, file_offset, file_size, source)

    def truncate_file(self, group_name: str, appender_filename: str, truncated_file_size: int = 0) -> None:
        """
        Truncate an appender file to ``truncated_file_size`` bytes (0 by default).

        Raises:
            InvalidArgumentError: Empty group or filename
            RemoteError: The server rejected the truncation
        """
        self._check_appender_args(group_name, appender_filename)
        with self._connections.session(Capability.UPDATABLE, group_name, appender_filename) as conn:
            request = protocol.build_truncate_request(appender_filename, truncated_file_size, self.charset)
            self._exchange(conn, StorageCommand.TRUNCATE_FILE, request)
        logger.info(f"Truncated {group_name}/{appender_filename} to {truncated_file_size} bytes")

    def delete_file(self, group_name: str, remote_filename: str) -> None:
        """
        Delete a file from the storage server.

        Raises:
            RemoteError: The server rejected the delete (e.g. ENOENT)
        """
        with self._connections.session(Capability.UPDATABLE, group_name, remote_filename) as conn:
            request = protocol.build_group_file_request(
                StorageCommand.DELETE_FILE, group_name, remote_filename, self.charset
            )
            self._exchange(conn, StorageCommand.DELETE_FILE, request)
        logger.info(f"Deleted {group_name}/{remote_filename}")

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    def download_to_buffer(
        self,
        group_name: str,
        remote_filename: str,
        file_offset: int = 0,
        download_bytes: int = 0,
    ) -> bytes:
        """
        Download a file (or a range of it) into memory.

        Args:
            group_name: Group of the file
            remote_filename: Filename on the storage server
            file_offset: Start offset in the file
            download_bytes: Number of bytes to fetch; 0 means to the end

        Returns:
            The downloaded content
        """
        with self._connections.session(Capability.READABLE, group_name, remote_filename) as conn:
            request = protocol.build_download_request(
                group_name, remote_filename, file_offset, download_bytes, self.charset
            )
            return self._exchange(conn, StorageCommand.DOWNLOAD_FILE, request)

    def _stream_download(
        self,
        conn: StorageConnection,
        group_name: str,
        remote_filename: str,
        file_offset: int,
        download_bytes: int,
        port: PullPort,
    ) -> int:
        conn.write(protocol.build_download_request(
            group_name, remote_filename, file_offset, download_bytes, self.charset
        ))
        header = protocol.read_header(conn, StorageCommand.RESP, -1)
        if header.status != 0:
            raise RemoteError(header.status, f"download_file failed with error code {header.status}")

        total = header.body_length
        remaining = total
        chunk_size = self.settings.download_chunk_size
        while remaining > 0:
            chunk = conn.recv_some(min(remaining, chunk_size))
            if not chunk:
                raise LocalIOError(f"recv package size {total - remaining} != {total}")

            result = port.recv(total, chunk)
            if result:
                raise TransferAbortedError(result)
            remaining -= len(chunk)

        return total

    def download_to_port(
        self,
        group_name: str,
        remote_filename: str,
        port: Union[PullPort, PullCallback],
        file_offset: int = 0,
        download_bytes: int = 0,
    ) -> int:
        """
        Stream a download chunk by chunk into a pull port or ``(file_size, data)`` callable.

        Returns:
            Number of bytes delivered

        Raises:
            TransferAbortedError: The port returned non-zero
            LocalIOError: The channel closed before the declared length arrived
        """
        pull_port = as_pull_port(port)
        with self._connections.session(Capability.READABLE, group_name, remote_filename) as conn:
            return self._stream_download(conn, group_name, remote_filename, file_offset, download_bytes, pull_port)

    def download_to_file(
        self,
        group_name: str,
        remote_filename: str,
        local_filename: PathLike,
        file_offset: int = 0,
        download_bytes: int = 0,
    ) -> int:
        """
        Stream a download into a local file.

        The local file is removed again if the download fails after it was
        created.

        Returns:
            Number of bytes written
        """
        path = Path(local_filename)
        with self._connections.session(Capability.READABLE, group_name, remote_filename) as conn:
            out = open(path, 'wb')
            completed = False
            try:
                with out:
                    written = self._stream_download(
                        conn, group_name, remote_filename, file_offset, download_bytes, StreamSink(out)
                    )
                completed = True
            finally:
                if not completed:
                    logger.warning(f"Removing partial download {path}")
                    path.unlink(missing_ok=True)

        logger.info(f"Downloaded {group_name}/{remote_filename} to {path} ({written} bytes)")
        return written

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_metadata(self, group_name: str, remote_filename: str) -> List[MetadataEntry]:
        """
        Fetch a file's metadata.

        Returns:
            List of MetadataEntry in server order
        """
        with self._connections.session(Capability.UPDATABLE, group_name, remote_filename) as conn:
            request = protocol.build_group_file_request(
                StorageCommand.GET_METADATA, group_name, remote_filename, self.charset
            )
            body = self._exchange(conn, StorageCommand.GET_METADATA, request)
        return decode_metadata(body, self.charset)

    def set_metadata(
        self,
        group_name: str,
        remote_filename: str,
        meta_list: MetadataInput,
        op_flag: MetadataFlag = MetadataFlag.OVERWRITE,
    ) -> None:
        """
        Replace (OVERWRITE) or upsert into (MERGE) a file's metadata.

        Raises:
            RemoteError: The server rejected the update
        """
        meta_buff = encode_metadata(meta_list, self.charset)
        with self._connections.session(Capability.UPDATABLE, group_name, remote_filename) as conn:
            request = protocol.build_set_metadata_request(
                group_name, remote_filename, meta_buff, op_flag, self.charset
            )
            self._exchange(conn, StorageCommand.SET_METADATA, request)
        logger.debug(f"Set metadata on {group_name}/{remote_filename} (flag {chr(int(op_flag))})")

    # ------------------------------------------------------------------
    # File info
    # ------------------------------------------------------------------

    def get_file_info(self, group_name: str, remote_filename: str) -> FileInfo:
        """
        Resolve file attributes, decoding them from the filename when possible.

        Slave, appender and trunk files fall back to query_file_info.

        Raises:
            InvalidArgumentError: Filename too short to carry attributes
        """
        info = decode_file_info(remote_filename)
        if info is not None:
            return info
        return self.query_file_info(group_name, remote_filename)

    def query_file_info(self, group_name: str, remote_filename: str) -> FileInfo:
        """Ask the storage server for a file's attributes."""
        with self._connections.session(Capability.UPDATABLE, group_name, remote_filename) as conn:
            request = protocol.build_group_file_request(
                StorageCommand.QUERY_FILE_INFO, group_name, remote_filename, self.charset
            )
            body = self._exchange(conn, StorageCommand.QUERY_FILE_INFO, request)
        return protocol.parse_file_info_response(body, self.charset)
