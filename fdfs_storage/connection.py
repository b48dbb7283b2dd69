"""Storage-node channel, tracker contract and per-operation connection policy."""

import enum
import socket
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol, Tuple

from fdfs_storage.constants import CONNECT_TIMEOUT_SECONDS, ERR_NO_EIO, NETWORK_TIMEOUT_SECONDS
from fdfs_storage.exceptions import LocalIOError, ProtocolMismatchError, ResolutionError
from fdfs_storage.logging_config import get_logger

logger = get_logger(__name__)

RECV_BUFFER = 64 * 1024


class StorageConnection:
    """
    Blocking TCP channel to one storage node.

    Timeouts belong to the socket; this class never retries.
    """

    def __init__(self, sock: socket.socket, host: str = "", port: int = 0, store_path_index: int = 0):
        self.sock = sock
        self.host = host
        self.port = port
        self.store_path_index = store_path_index
        self._closed = False

    @classmethod
    def open(
        cls,
        host: str,
        port: int,
        connect_timeout: float = CONNECT_TIMEOUT_SECONDS,
        network_timeout: float = NETWORK_TIMEOUT_SECONDS,
        store_path_index: int = 0,
    ) -> "StorageConnection":
        sock = socket.create_connection((host, port), timeout=connect_timeout)
        sock.settimeout(network_timeout)
        logger.debug(f"Connected to storage server {host}:{port}")
        return cls(sock, host, port, store_path_index)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def write(self, data: bytes) -> None:
        self.sock.sendall(data)

    def recv_some(self, n: int) -> bytes:
        """Read up to ``n`` bytes; empty result means the peer closed."""
        return self.sock.recv(n)

    def recv_exact(self, n: int) -> bytes:
        """
        Read exactly n bytes.

        Raises:
            LocalIOError: If the channel closes before n bytes are read
        """
        buf = bytearray()
        while len(buf) < n:
            chunk = self.sock.recv(min(n - len(buf), RECV_BUFFER))
            if not chunk:
                raise LocalIOError(f"recv package size {len(buf)} != {n}")
            buf.extend(chunk)
        return bytes(buf)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.sock.close()
        except OSError as e:
            logger.warning(f"Error closing connection to {self.address}: {e}")

    def __repr__(self) -> str:
        return f"StorageConnection({self.address}, store_path_index={self.store_path_index})"


class TrackerLocator(Protocol):
    """
    Tracker-side resolution of storage nodes.

    Implementations return None or raise ResolutionError when no node is
    available.
    """

    def get_store_connection(self, group_name: Optional[str]) -> Optional[Tuple[StorageConnection, int]]:
        ...

    def get_fetch_connection(self, group_name: str, remote_filename: str) -> Optional[StorageConnection]:
        ...

    def get_update_connection(self, group_name: str, remote_filename: str) -> Optional[StorageConnection]:
        ...


class DirectStorageLocator:
    """Locator that sends every request to one known storage node."""

    def __init__(
        self,
        host: str,
        port: int,
        store_path_index: int = 0,
        connect_timeout: float = CONNECT_TIMEOUT_SECONDS,
        network_timeout: float = NETWORK_TIMEOUT_SECONDS,
    ):
        self.host = host
        self.port = port
        self.store_path_index = store_path_index
        self.connect_timeout = connect_timeout
        self.network_timeout = network_timeout

    def _connect(self) -> StorageConnection:
        try:
            return StorageConnection.open(
                self.host,
                self.port,
                self.connect_timeout,
                self.network_timeout,
                self.store_path_index,
            )
        except OSError as e:
            raise ResolutionError(
                f"cannot connect to storage server {self.host}:{self.port}: {e}",
                e.errno or ERR_NO_EIO,
            ) from e

    def get_store_connection(self, group_name):
        return self._connect(), self.store_path_index

    def get_fetch_connection(self, group_name, remote_filename):
        return self._connect()

    def get_update_connection(self, group_name, remote_filename):
        return self._connect()


class Capability(enum.Enum):
    """What the operation needs the storage node to be able to do."""
    WRITABLE = "writable"
    READABLE = "readable"
    UPDATABLE = "updatable"


# Errors after which the channel can no longer be trusted
CHANNEL_FATAL_ERRORS = (LocalIOError, ProtocolMismatchError)


class ConnectionManager:
    """
    Owns the client's single connection slot.

    A connection found in the slot is reused and only dropped when the
    channel fails. A connection acquired here lives for exactly one session.
    """

    def __init__(self, locator: Optional[TrackerLocator] = None, connection: Optional[StorageConnection] = None):
        self.locator = locator
        self.connection = connection

    def _acquire(self, capability: Capability, group_name, remote_filename) -> StorageConnection:
        if self.locator is None:
            raise ResolutionError("no tracker locator configured and no storage connection supplied")

        try:
            if capability is Capability.WRITABLE:
                result = self.locator.get_store_connection(group_name)
                if result is None:
                    conn = None
                else:
                    conn, store_path_index = result
                    conn.store_path_index = store_path_index
            elif capability is Capability.READABLE:
                conn = self.locator.get_fetch_connection(group_name, remote_filename)
            else:
                conn = self.locator.get_update_connection(group_name, remote_filename)
        except OSError as e:
            raise ResolutionError(f"tracker query failed: {e}", e.errno or ERR_NO_EIO) from e

        if conn is None:
            raise ResolutionError(
                f"no {capability.value} storage server for group={group_name!r} file={remote_filename!r}"
            )
        return conn

    def discard(self) -> None:
        """Close the connection in the slot and empty the slot."""
        conn, self.connection = self.connection, None
        if conn is not None:
            conn.close()

    @contextmanager
    def session(
        self,
        capability: Capability,
        group_name: Optional[str],
        remote_filename: Optional[str] = None,
    ) -> Iterator[StorageConnection]:
        """
        Yield the connection one operation should use.

        Raises:
            ResolutionError: No connection held and the locator supplied none
            LocalIOError: Socket failure inside the session
        """
        if self.connection is not None:
            conn = self.connection
            ephemeral = False
        else:
            conn = self._acquire(capability, group_name, remote_filename)
            self.connection = conn
            ephemeral = True
            logger.debug(f"Acquired {capability.value} connection {conn!r}")

        try:
            yield conn
        except OSError as e:
            if not ephemeral:
                self._drop(conn, e)
            raise LocalIOError(str(e) or type(e).__name__, ERR_NO_EIO) from e
        except CHANNEL_FATAL_ERRORS as e:
            if not ephemeral:
                self._drop(conn, e)
            raise
        finally:
            if ephemeral:
                conn.close()
                if self.connection is conn:
                    self.connection = None
                logger.debug(f"Released {capability.value} connection {conn!r}")

    def _drop(self, conn: StorageConnection, error: Exception) -> None:
        logger.warning(f"Closing storage connection {conn!r} after channel error: {error}")
        conn.close()
        if self.connection is conn:
            self.connection = None
