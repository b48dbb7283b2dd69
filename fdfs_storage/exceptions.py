"""Exception classes raised by the storage client."""

from fdfs_storage.constants import ERR_NO_EINVAL, ERR_NO_EIO


class StorageClientError(Exception):
    """
    Base exception class for all storage client errors.

    Every error carries the numeric code a FastDFS client reports for it.
    """

    default_errno = ERR_NO_EIO

    def __init__(self, message: str = "", errno: int = None):
        super().__init__(message)
        self.errno = self.default_errno if errno is None else errno


class InvalidArgumentError(StorageClientError):
    """
    Raised when a precondition fails before any I/O is attempted.
    """

    default_errno = ERR_NO_EINVAL


class ResolutionError(StorageClientError):
    """
    Raised when the tracker cannot supply a storage connection.
    """
    pass


class ProtocolMismatchError(StorageClientError):
    """
    Raised when a response frame carries an unexpected command or body length.
    """
    pass


class RemoteError(StorageClientError):
    """
    Raised when the storage server answers with a non-zero status byte.
    """

    def __init__(self, errno: int, message: str = ""):
        super().__init__(message or f"storage server returned error code {errno}", errno)


class LocalIOError(StorageClientError):
    """
    Raised when a socket read/write fails, including short reads while streaming.
    """
    pass


class TransferAbortedError(StorageClientError):
    """
    Raised when a push or pull port returns a non-zero code.
    """

    def __init__(self, errno: int, message: str = ""):
        super().__init__(message or f"transfer aborted by data port, code {errno}", errno)
