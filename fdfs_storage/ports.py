"""
Streaming data ports.

A push port writes outbound file content into the connection after the
request header has been sent; a pull port receives inbound download content
chunk by chunk. Both report failure with a non-zero return code, which
aborts the running operation.
"""

from typing import BinaryIO, Callable, Optional, Protocol, Union, runtime_checkable

from fdfs_storage.constants import ERR_NO_EIO, UPLOAD_CHUNK_SIZE_BYTES
from fdfs_storage.logging_config import get_logger

logger = get_logger(__name__)


class ByteSink(Protocol):
    def write(self, data: bytes) -> None: ...


@runtime_checkable
class PushPort(Protocol):
    """Outbound content source for upload, append and modify."""

    def send(self, sink: ByteSink) -> int:
        """Write the declared number of bytes to ``sink``; 0 on success."""
        ...


@runtime_checkable
class PullPort(Protocol):
    """Inbound content consumer for streamed downloads."""

    def recv(self, file_size: int, data: bytes) -> int:
        """Consume one received chunk; non-zero aborts the download."""
        ...


PullCallback = Callable[[int, bytes], int]


class BufferSource:
    """Push port over a bounded slice of an in-memory buffer."""

    def __init__(self, buff: bytes, offset: int = 0, length: Optional[int] = None):
        if length is None:
            length = len(buff) - offset
        if offset < 0 or length < 0 or offset + length > len(buff):
            raise ValueError(
                f"slice [{offset}:{offset + length}] out of range for buffer of {len(buff)} bytes"
            )
        self.buff = buff
        self.offset = offset
        self.length = length

    def send(self, sink: ByteSink) -> int:
        if self.length:
            sink.write(memoryview(self.buff)[self.offset:self.offset + self.length])
        return 0


class StreamSource:
    """
    Push port reading ``length`` bytes from an open binary stream.

    The stream stays owned by the caller. A local read failure or a stream
    that ends early makes ``send`` return EIO.
    """

    def __init__(self, stream: BinaryIO, length: int, chunk_size: int = UPLOAD_CHUNK_SIZE_BYTES):
        self.stream = stream
        self.length = length
        self.chunk_size = chunk_size

    def send(self, sink: ByteSink) -> int:
        remaining = self.length
        while remaining > 0:
            try:
                chunk = self.stream.read(min(remaining, self.chunk_size))
            except OSError as e:
                logger.error(f"Error reading upload source: {e}")
                return ERR_NO_EIO
            if not chunk:
                logger.error(f"Upload source ended {remaining} bytes short of {self.length}")
                return ERR_NO_EIO
            sink.write(chunk)
            remaining -= len(chunk)
        return 0


class StreamSink:
    """Pull port writing every received chunk to an open binary stream."""

    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.bytes_written = 0

    def recv(self, file_size: int, data: bytes) -> int:
        self.stream.write(data)
        self.bytes_written += len(data)
        return 0


class CallbackSink:
    """Pull port delegating each chunk to a plain callable."""

    def __init__(self, callback: PullCallback):
        self.callback = callback

    def recv(self, file_size: int, data: bytes) -> int:
        return self.callback(file_size, data) or 0


def as_pull_port(port: Union[PullPort, PullCallback]) -> PullPort:
    """Accept either a pull port object or a bare ``(file_size, data)`` callable."""
    if isinstance(port, PullPort):
        return port
    if callable(port):
        return CallbackSink(port)
    raise TypeError("download port must provide recv(file_size, data) or be callable")
