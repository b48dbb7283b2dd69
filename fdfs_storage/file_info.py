"""
Decode file attributes embedded in a FastDFS logical filename.

A logical filename looks like ``M00/00/00/<27 base64 chars>.<ext>``. The
base64 block holds the source IP, creation time, size/flags and CRC32 of
plain files. Slave, appender and trunk files carry values there that do not
describe the file, so their attributes have to be queried from the server.
"""

import base64
import ipaddress
from typing import Optional

from fdfs_storage.constants import (
    APPENDER_FILE_SIZE,
    FILE_EXT_NAME_MAX_LEN,
    FILE_PATH_LEN,
    FILENAME_BASE64_LENGTH,
    LEGACY_SIZE_MARK,
    NORMAL_LOGIC_FILENAME_LENGTH,
    TRUNK_FILE_MARK_SIZE,
    TRUNK_LOGIC_FILENAME_LENGTH,
)
from fdfs_storage.exceptions import InvalidArgumentError
from fdfs_storage.protocol import bytes_to_u32, bytes_to_u64
from fdfs_storage.types import FileInfo

MIN_DECODABLE_LENGTH = FILE_PATH_LEN + FILENAME_BASE64_LENGTH + FILE_EXT_NAME_MAX_LEN + 1

# Offsets inside the decoded attribute block
IP_OFFSET = 0
TIMESTAMP_OFFSET = 4
SIZE_OFFSET = 8
CRC32_OFFSET = 16


def decode_attribute_block(remote_filename: str) -> bytes:
    """
    Base64-decode the attribute block of a logical filename.

    The block uses ``-`` and ``_`` for the last two alphabet characters and
    carries no padding.

    Raises:
        InvalidArgumentError: If the filename is too short to hold the block
            or the block holds characters outside the alphabet
    """
    if len(remote_filename) < MIN_DECODABLE_LENGTH:
        raise InvalidArgumentError(
            f"filename {remote_filename!r} is shorter than {MIN_DECODABLE_LENGTH} characters"
        )

    block = remote_filename[FILE_PATH_LEN:FILE_PATH_LEN + FILENAME_BASE64_LENGTH]
    block += '=' * (-len(block) % 4)
    try:
        return base64.b64decode(block, altchars=b'-_', validate=True)
    except ValueError as e:
        raise InvalidArgumentError(f"filename {remote_filename!r} has a malformed attribute block: {e}") from e


def needs_query(remote_filename: str, size_field: int) -> bool:
    """
    Tell whether a file's attributes must be fetched from the server.

    True for trunk files (long names), slave files (long names without the
    trunk mark) and appender files (appender bit set).
    """
    length = len(remote_filename)
    if length > TRUNK_LOGIC_FILENAME_LENGTH:
        return True
    if length > NORMAL_LOGIC_FILENAME_LENGTH and (size_field & TRUNK_FILE_MARK_SIZE) == 0:
        return True
    return (size_field & APPENDER_FILE_SIZE) != 0


def decode_file_info(remote_filename: str) -> Optional[FileInfo]:
    """
    Build FileInfo from the filename alone.

    Returns:
        FileInfo for plain files, or None when the server must be queried

    Raises:
        InvalidArgumentError: If the filename is too short to hold the block
    """
    buff = decode_attribute_block(remote_filename)
    size_field = bytes_to_u64(buff, SIZE_OFFSET)
    if needs_query(remote_filename, size_field):
        return None

    file_size = size_field
    if file_size & LEGACY_SIZE_MARK:
        file_size &= 0xFFFFFFFF

    return FileInfo(
        file_size=file_size,
        create_timestamp=bytes_to_u32(buff, TIMESTAMP_OFFSET),
        crc32=bytes_to_u32(buff, CRC32_OFFSET),
        source_ip=str(ipaddress.IPv4Address(buff[IP_OFFSET:IP_OFFSET + 4])),
    )
