"""
Binary wire protocol for FastDFS storage requests.

Frame layout (all integers big-endian):

    [8 bytes body length][1 byte command][1 byte status][body ...]

Request frames always carry status 0; response frames carry the server's
error code in the status byte and use the single RESP command code.

The request builders below return the header plus the fixed part of the
body. File content, when the command carries any, is streamed after it by
a push port so a large payload never has to be assembled in memory.
"""

import struct
from typing import Optional, Union

from fdfs_storage.constants import (
    FILE_EXT_NAME_MAX_LEN,
    FILE_INFO_BODY_LEN,
    FILE_PREFIX_MAX_LEN,
    GROUP_NAME_MAX_LEN,
    IPADDR_SIZE,
    PROTO_HEADER_LEN,
    PROTO_PKG_LEN_SIZE,
    StorageCommand,
)
from fdfs_storage.exceptions import ProtocolMismatchError
from fdfs_storage.types import FileInfo, FrameHeader, Package, UploadResult

HEADER_FORMAT = "!QBB"  # body length, cmd, status
U64_FORMAT = "!Q"
U32_FORMAT = "!I"

TextOrBytes = Union[str, bytes, None]


# ------------------------------------------------------------------
# Integers and fixed-width fields
# ------------------------------------------------------------------

def u64_to_bytes(n: int) -> bytes:
    """Encode an unsigned 64-bit integer as 8 big-endian bytes."""
    return struct.pack(U64_FORMAT, n)


def bytes_to_u64(buff: bytes, offset: int = 0) -> int:
    """Decode 8 big-endian bytes at ``offset`` as an unsigned integer."""
    return struct.unpack_from(U64_FORMAT, buff, offset)[0]


def bytes_to_u32(buff: bytes, offset: int = 0) -> int:
    return struct.unpack_from(U32_FORMAT, buff, offset)[0]


def to_bytes(value: TextOrBytes, charset: str) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode(charset)
    return bytes(value)


def pack_fixed_field(value: TextOrBytes, capacity: int, charset: str) -> bytes:
    """
    Pack a value into a zero-filled field of exactly ``capacity`` bytes.

    Values longer than the field are truncated without error.
    """
    raw = to_bytes(value, charset)[:capacity]
    return raw.ljust(capacity, b'\x00')


def unpack_fixed_field(raw: bytes, charset: str) -> str:
    return raw.split(b'\x00', 1)[0].decode(charset).strip()


# ------------------------------------------------------------------
# Header encode / decode
# ------------------------------------------------------------------

def pack_header(cmd: int, body_length: int, status: int = 0) -> bytes:
    """Pack the 10-byte frame header."""
    return struct.pack(HEADER_FORMAT, body_length, int(cmd), status)


def unpack_header(raw: bytes) -> FrameHeader:
    if len(raw) != PROTO_HEADER_LEN:
        raise ProtocolMismatchError(f"header length {len(raw)} != {PROTO_HEADER_LEN}")
    body_length, cmd, status = struct.unpack(HEADER_FORMAT, raw)
    return FrameHeader(body_length=body_length, cmd=cmd, status=status)


def read_header(conn, expected_cmd: int, expected_body_length: int = -1) -> FrameHeader:
    """
    Read and validate one response header from ``conn``.

    Args:
        conn: Channel providing ``recv_exact(n)``
        expected_cmd: Command code the response must carry
        expected_body_length: Required body length, or negative for any

    Returns:
        The parsed header. When the status byte is non-zero the body length
        is reported as 0 and no length check is made.

    Raises:
        ProtocolMismatchError: Unexpected command or body length
        LocalIOError: The channel closed before 10 bytes arrived
    """
    header = unpack_header(conn.recv_exact(PROTO_HEADER_LEN))

    if header.cmd != expected_cmd:
        raise ProtocolMismatchError(
            f"recv cmd: {header.cmd} is not correct, expect cmd: {expected_cmd}"
        )

    if header.status != 0:
        return FrameHeader(body_length=0, cmd=header.cmd, status=header.status)

    if header.body_length >= 1 << 63:
        raise ProtocolMismatchError(f"recv body length: {header.body_length} < 0!")

    if expected_body_length >= 0 and header.body_length != expected_body_length:
        raise ProtocolMismatchError(
            f"recv body length: {header.body_length} is not correct, "
            f"expect length: {expected_body_length}"
        )

    return header


def read_package(conn, expected_cmd: int, expected_body_length: int = -1) -> Package:
    """
    Read a whole response frame (header + body) from ``conn``.

    Raises:
        ProtocolMismatchError: Unexpected command or body length
        LocalIOError: The channel closed before the body was complete
    """
    header = read_header(conn, expected_cmd, expected_body_length)
    if header.status != 0:
        return Package(status=header.status)

    body = conn.recv_exact(header.body_length) if header.body_length else b""
    return Package(status=0, body=body)


# ------------------------------------------------------------------
# Request builders
# ------------------------------------------------------------------

def build_upload_request(
    cmd: int,
    store_path_index: int,
    file_size: int,
    file_ext_name: TextOrBytes,
    charset: str,
) -> bytes:
    """Upload / upload-appender: store path, content length, ext name."""
    body = (
        struct.pack("!B", store_path_index & 0xFF)
        + u64_to_bytes(file_size)
        + pack_fixed_field(file_ext_name, FILE_EXT_NAME_MAX_LEN, charset)
    )
    return pack_header(cmd, len(body) + file_size) + body


def build_slave_upload_request(
    master_filename: str,
    prefix_name: TextOrBytes,
    file_size: int,
    file_ext_name: TextOrBytes,
    charset: str,
) -> bytes:
    master_bytes = to_bytes(master_filename, charset)
    body = (
        u64_to_bytes(len(master_bytes))
        + u64_to_bytes(file_size)
        + pack_fixed_field(prefix_name, FILE_PREFIX_MAX_LEN, charset)
        + pack_fixed_field(file_ext_name, FILE_EXT_NAME_MAX_LEN, charset)
        + master_bytes
    )
    return pack_header(StorageCommand.UPLOAD_SLAVE_FILE, len(body) + file_size) + body


def build_append_request(appender_filename: str, file_size: int, charset: str) -> bytes:
    filename_bytes = to_bytes(appender_filename, charset)
    body = u64_to_bytes(len(filename_bytes)) + u64_to_bytes(file_size) + filename_bytes
    return pack_header(StorageCommand.APPEND_FILE, len(body) + file_size) + body


def build_modify_request(
    appender_filename: str,
    file_offset: int,
    modify_size: int,
    charset: str,
) -> bytes:
    filename_bytes = to_bytes(appender_filename, charset)
    body = (
        u64_to_bytes(len(filename_bytes))
        + u64_to_bytes(file_offset)
        + u64_to_bytes(modify_size)
        + filename_bytes
    )
    return pack_header(StorageCommand.MODIFY_FILE, len(body) + modify_size) + body


def build_truncate_request(appender_filename: str, truncated_file_size: int, charset: str) -> bytes:
    filename_bytes = to_bytes(appender_filename, charset)
    body = u64_to_bytes(len(filename_bytes)) + u64_to_bytes(truncated_file_size) + filename_bytes
    return pack_header(StorageCommand.TRUNCATE_FILE, len(body)) + body


def build_group_file_request(cmd: int, group_name: str, remote_filename: str, charset: str) -> bytes:
    """Delete / get-metadata / query-file-info: group field then filename."""
    body = pack_fixed_field(group_name, GROUP_NAME_MAX_LEN, charset) + to_bytes(remote_filename, charset)
    return pack_header(cmd, len(body)) + body


def build_download_request(
    group_name: str,
    remote_filename: str,
    file_offset: int,
    download_bytes: int,
    charset: str,
) -> bytes:
    body = (
        u64_to_bytes(file_offset)
        + u64_to_bytes(download_bytes)
        + pack_fixed_field(group_name, GROUP_NAME_MAX_LEN, charset)
        + to_bytes(remote_filename, charset)
    )
    return pack_header(StorageCommand.DOWNLOAD_FILE, len(body)) + body


def build_set_metadata_request(
    group_name: str,
    remote_filename: str,
    meta_buff: bytes,
    op_flag: int,
    charset: str,
) -> bytes:
    """Set-metadata frame including the encoded metadata payload."""
    filename_bytes = to_bytes(remote_filename, charset)
    body = (
        u64_to_bytes(len(filename_bytes))
        + u64_to_bytes(len(meta_buff))
        + struct.pack("!B", int(op_flag))
        + pack_fixed_field(group_name, GROUP_NAME_MAX_LEN, charset)
        + filename_bytes
        + meta_buff
    )
    return pack_header(StorageCommand.SET_METADATA, len(body)) + body


# ------------------------------------------------------------------
# Response parsers
# ------------------------------------------------------------------

def parse_upload_response(body: bytes, charset: str) -> UploadResult:
    """Split an upload response into group name and new remote filename."""
    if len(body) <= GROUP_NAME_MAX_LEN:
        raise ProtocolMismatchError(f"body length: {len(body)} <= {GROUP_NAME_MAX_LEN}")
    return UploadResult(
        group_name=unpack_fixed_field(body[:GROUP_NAME_MAX_LEN], charset),
        remote_filename=body[GROUP_NAME_MAX_LEN:].decode(charset),
    )


def parse_file_info_response(body: bytes, charset: str) -> FileInfo:
    if len(body) != FILE_INFO_BODY_LEN:
        raise ProtocolMismatchError(f"body length: {len(body)} != {FILE_INFO_BODY_LEN}")
    offset_ip = 3 * PROTO_PKG_LEN_SIZE
    return FileInfo(
        file_size=bytes_to_u64(body, 0),
        create_timestamp=bytes_to_u64(body, PROTO_PKG_LEN_SIZE) & 0xFFFFFFFF,
        crc32=bytes_to_u64(body, 2 * PROTO_PKG_LEN_SIZE) & 0xFFFFFFFF,
        source_ip=unpack_fixed_field(body[offset_ip:offset_ip + IPADDR_SIZE], charset),
    )


def expected_body_length(cmd: int) -> Optional[int]:
    """Fixed response body length for ``cmd``, or None when variable."""
    if cmd in (
        StorageCommand.APPEND_FILE,
        StorageCommand.MODIFY_FILE,
        StorageCommand.TRUNCATE_FILE,
        StorageCommand.DELETE_FILE,
        StorageCommand.SET_METADATA,
    ):
        return 0
    if cmd == StorageCommand.QUERY_FILE_INFO:
        return FILE_INFO_BODY_LEN
    return None
