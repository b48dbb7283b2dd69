"""Tests for decoding file attributes from logical filenames."""

import pytest

from fdfs_storage.constants import (
    APPENDER_FILE_SIZE,
    LEGACY_SIZE_MARK,
    StorageCommand,
    TRUNK_FILE_MARK_SIZE,
)
from fdfs_storage.exceptions import InvalidArgumentError
from fdfs_storage.file_info import decode_file_info, needs_query
from storage_fakes import CREATE_TIMESTAMP, SERVER_IP, make_remote_filename


class TestDecodeFileInfo:
    """Tests for decode_file_info."""

    def test_plain_file_decodes_from_name(self):
        """Test that a plain 44-character name yields all four attributes."""
        name = make_remote_filename(size_field=1234, crc32=0xCAFEBABE)

        info = decode_file_info(name)

        assert len(name) == 44
        assert info.file_size == 1234
        assert info.create_timestamp == CREATE_TIMESTAMP
        assert info.crc32 == 0xCAFEBABE
        assert info.source_ip == SERVER_IP

    def test_legacy_size_mark_keeps_low_32_bits(self):
        """Test that the top bit marks a size stored in the low 32 bits."""
        name = make_remote_filename(size_field=LEGACY_SIZE_MARK | (0xABCD << 32) | 777)

        info = decode_file_info(name)

        assert info.file_size == 777

    def test_appender_file_needs_query(self):
        name = make_remote_filename(size_field=APPENDER_FILE_SIZE | 10)

        assert decode_file_info(name) is None

    def test_slave_file_needs_query(self):
        """Test that a name longer than normal without the trunk mark is a slave file."""
        name = make_remote_filename(size_field=10, ext="jpg")
        slave = name[:-4] + "_150x150.jpg"

        assert decode_file_info(slave) is None

    def test_trunk_file_decodes_from_name(self):
        """Test that a trunk-length name with the trunk mark is decoded locally."""
        name = make_remote_filename(size_field=TRUNK_FILE_MARK_SIZE | 50)
        trunk = name[:-7] + "A" * 16 + name[-7:]

        assert len(trunk) == 60
        assert decode_file_info(trunk) is not None

    def test_overlong_name_needs_query(self):
        name = make_remote_filename(size_field=TRUNK_FILE_MARK_SIZE | 50)
        overlong = name[:-7] + "A" * 17 + name[-7:]

        assert decode_file_info(overlong) is None

    def test_short_name_is_invalid(self):
        """Test that a name too short to hold the attribute block is rejected."""
        with pytest.raises(InvalidArgumentError) as exc_info:
            decode_file_info("M00/00/00/short.txt")

        assert exc_info.value.errno == 22

    @pytest.mark.parametrize("bad_chars", ["!!!", "   ", "==="])
    def test_malformed_block_is_invalid(self, bad_chars):
        """Test that a full-length name with characters outside the alphabet is rejected."""
        name = make_remote_filename(size_field=10)
        damaged = name[:10] + bad_chars + name[13:]

        with pytest.raises(InvalidArgumentError):
            decode_file_info(damaged)


@pytest.mark.parametrize("length,size_field,expected", [
    (44, 0, False),
    (44, APPENDER_FILE_SIZE, True),
    (52, 0, True),
    (52, TRUNK_FILE_MARK_SIZE, False),
    (60, TRUNK_FILE_MARK_SIZE, False),
    (61, TRUNK_FILE_MARK_SIZE, True),
])
def test_needs_query(length, size_field, expected):
    assert needs_query("x" * length, size_field) is expected


class TestGetFileInfo:
    """Tests for StorageClient.get_file_info."""

    def test_plain_file_does_no_io(self, client, locator):
        """Test that a decodable name is answered without any network call."""
        info = client.get_file_info("group1", make_remote_filename(size_field=42))

        assert info.file_size == 42
        assert locator.calls == []

    def test_appender_file_issues_exactly_one_query(self, client, server):
        """Test that an appender file falls back to a single query."""
        result = client.upload_appender_buffer(b"0123456789", "log")

        info = client.get_file_info(result.group_name, result.remote_filename)

        assert info.file_size == 10
        assert info.source_ip == SERVER_IP
        assert server.commands().count(StorageCommand.QUERY_FILE_INFO) == 1

    def test_short_name_raises_before_io(self, client, locator):
        with pytest.raises(InvalidArgumentError):
            client.get_file_info("group1", "M00/short")

        assert locator.calls == []
