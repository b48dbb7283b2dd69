"""Unit tests for the streaming data ports."""

import io

import pytest

from fdfs_storage.constants import ERR_NO_EIO
from fdfs_storage.ports import (
    BufferSource,
    CallbackSink,
    PullPort,
    PushPort,
    StreamSink,
    StreamSource,
    as_pull_port,
)


class CollectingSink:
    def __init__(self):
        self.data = bytearray()
        self.writes = 0

    def write(self, data):
        self.data.extend(bytes(data))
        self.writes += 1


class FailingStream(io.RawIOBase):
    def readable(self):
        return True

    def read(self, n=-1):
        raise OSError("disk error")


class TestBufferSource:

    def test_sends_whole_buffer(self):
        sink = CollectingSink()

        assert BufferSource(b"hello").send(sink) == 0
        assert sink.data == b"hello"

    def test_sends_bounded_slice(self):
        sink = CollectingSink()
        source = BufferSource(b"0123456789", offset=2, length=5)

        source.send(sink)

        assert source.length == 5
        assert sink.data == b"23456"

    def test_empty_slice_writes_nothing(self):
        sink = CollectingSink()

        BufferSource(b"abc", offset=3).send(sink)

        assert sink.writes == 0

    def test_rejects_out_of_range_slice(self):
        with pytest.raises(ValueError):
            BufferSource(b"abc", offset=1, length=5)

    def test_is_push_port(self):
        assert isinstance(BufferSource(b""), PushPort)


class TestStreamSource:

    def test_streams_declared_length_in_chunks(self):
        sink = CollectingSink()
        payload = bytes(range(256)) * 40

        result = StreamSource(io.BytesIO(payload), len(payload), chunk_size=1000).send(sink)

        assert result == 0
        assert sink.data == payload
        assert sink.writes == 11

    def test_stops_at_declared_length(self):
        sink = CollectingSink()

        StreamSource(io.BytesIO(b"abcdef"), 3).send(sink)

        assert sink.data == b"abc"

    def test_short_source_returns_eio(self):
        assert StreamSource(io.BytesIO(b"abc"), 10).send(CollectingSink()) == ERR_NO_EIO

    def test_read_failure_returns_eio(self):
        assert StreamSource(FailingStream(), 10).send(CollectingSink()) == ERR_NO_EIO


class TestPullPorts:

    def test_stream_sink_writes_chunks(self):
        out = io.BytesIO()
        sink = StreamSink(out)

        sink.recv(6, b"abc")
        sink.recv(6, b"def")

        assert out.getvalue() == b"abcdef"
        assert sink.bytes_written == 6

    def test_callback_sink_passes_return_code(self):
        sink = CallbackSink(lambda size, data: 9)

        assert sink.recv(1, b"x") == 9

    def test_callback_returning_none_counts_as_success(self):
        assert CallbackSink(lambda size, data: None).recv(1, b"x") == 0

    def test_as_pull_port_wraps_callables(self):
        port = as_pull_port(lambda size, data: 0)

        assert isinstance(port, CallbackSink)

    def test_as_pull_port_keeps_ports(self):
        sink = StreamSink(io.BytesIO())

        assert as_pull_port(sink) is sink
        assert isinstance(sink, PullPort)

    def test_as_pull_port_rejects_other_objects(self):
        with pytest.raises(TypeError):
            as_pull_port(42)
