"""Tests for shared data types."""

from datetime import datetime, timezone

import pytest

from fdfs_storage.types import FileInfo, UploadResult, split_file_id


def test_upload_result_file_id():
    result = UploadResult("group1", "M00/00/00/abc.txt")

    assert result.file_id == "group1/M00/00/00/abc.txt"


def test_split_file_id():
    """Test that only the first slash separates group from filename."""
    assert split_file_id("group1/M00/00/00/abc.txt") == ("group1", "M00/00/00/abc.txt")


@pytest.mark.parametrize("file_id", ["", "group1", "group1/", "/M00/00/00/abc.txt"])
def test_split_file_id_rejects_malformed(file_id):
    with pytest.raises(ValueError):
        split_file_id(file_id)


def test_file_info_create_time():
    info = FileInfo(file_size=1, create_timestamp=0, crc32=0, source_ip="10.0.0.1")

    assert info.create_time == datetime(1970, 1, 1, tzinfo=timezone.utc)
