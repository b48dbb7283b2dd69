"""Protocol constants shared by the codec and the storage client."""

from enum import IntEnum


class StorageCommand(IntEnum):
    """Storage protocol command codes."""
    UPLOAD_FILE = 11
    DELETE_FILE = 12
    SET_METADATA = 13
    DOWNLOAD_FILE = 14
    GET_METADATA = 15
    UPLOAD_SLAVE_FILE = 21
    QUERY_FILE_INFO = 22
    UPLOAD_APPENDER_FILE = 23
    APPEND_FILE = 24
    MODIFY_FILE = 34
    TRUNCATE_FILE = 36
    RESP = 100


class MetadataFlag(IntEnum):
    """Set-metadata operation flags."""
    OVERWRITE = ord('O')
    MERGE = ord('M')


# Frame layout
PROTO_HEADER_LEN = 10
PROTO_PKG_LEN_SIZE = 8

# Fixed field widths
GROUP_NAME_MAX_LEN = 16
FILE_EXT_NAME_MAX_LEN = 6
FILE_PREFIX_MAX_LEN = 16
IPADDR_SIZE = 16

# Query-file-info response: size, create timestamp, crc32, source ip
FILE_INFO_BODY_LEN = 3 * PROTO_PKG_LEN_SIZE + IPADDR_SIZE

# Logical filename structure: "M00/00/00/" + base64 block + "." + ext
FILE_PATH_LEN = 10
FILENAME_BASE64_LENGTH = 27
TRUNK_FILE_INFO_LEN = 16
NORMAL_LOGIC_FILENAME_LENGTH = FILE_PATH_LEN + FILENAME_BASE64_LENGTH + FILE_EXT_NAME_MAX_LEN + 1
TRUNK_LOGIC_FILENAME_LENGTH = NORMAL_LOGIC_FILENAME_LENGTH + TRUNK_FILE_INFO_LEN

# Flag bits carried in the size field of the attribute block
INFINITE_FILE_SIZE = 256 * 1024 * 1024 * 1024 * 1024
APPENDER_FILE_SIZE = INFINITE_FILE_SIZE
TRUNK_FILE_MARK_SIZE = 512 * 1024 * 1024 * 1024 * 1024
LEGACY_SIZE_MARK = 1 << 63

# Error numbers
ERR_NO_ENOENT = 2
ERR_NO_EIO = 5
ERR_NO_EINVAL = 22

# Metadata separators
RECORD_SEPARATOR = b'\x01'
FIELD_SEPARATOR = b'\x02'

DEFAULT_CHARSET = "utf-8"
DEFAULT_STORAGE_PORT = 23000
DOWNLOAD_CHUNK_SIZE_BYTES: int = 256 * 1024
UPLOAD_CHUNK_SIZE_BYTES: int = 256 * 1024
CONNECT_TIMEOUT_SECONDS = 5
NETWORK_TIMEOUT_SECONDS = 30
