"""
Framing Tests
=============

Tests for the framing encoder, HTTP request gate and output sinks.
"""

import os
import struct

import pytest

from frame_relay.errors import FatalError, InvalidOptionError, SinkWriteError
from frame_relay.output import (
    FileSink,
    FramingEncoder,
    FramingMode,
    HttpOutcome,
    HttpRequestGate,
    NullSink,
    StreamSink,
    open_sink,
)
from frame_relay.output.framing import MIME_BOUNDARY, MULTIPART_PREAMBLE
from frame_relay.stream import Frame


JPEG = b"\xff\xd8" + b"\x42" * 500 + b"\xff\xd9"


def _read_length_prefixed(data):
    frames = []
    while data:
        (length,) = struct.unpack(">I", data[:4])
        frames.append(data[4:4 + length])
        data = data[4 + length:]
    return frames


def _multipart_lengths(data):
    lengths = []
    for line in data.split(b"\r\n"):
        if line.startswith(b"Content-Length: "):
            lengths.append(int(line.split(b": ")[1]))
    return lengths


class TestFramingEncoder:
    """Tests for byte layout per framing mode."""

    def test_cat_writes_frame_unchanged(self, memory_sink):
        """cat framing is the raw frame."""
        encoder = FramingEncoder(FramingMode.CONCATENATE)
        encoder.emit(Frame(JPEG), memory_sink)
        assert memory_sink.data == JPEG

    def test_header_round_trip(self, memory_sink):
        """Length-prefixed frames can be split back apart."""
        encoder = FramingEncoder(FramingMode.LENGTH_PREFIXED)
        frames = [b"one", JPEG, b""]
        for data in frames:
            encoder.emit(Frame(data), memory_sink)

        assert _read_length_prefixed(memory_sink.data) == frames

    def test_header_includes_channel_byte(self):
        """A frame with a channel gets a one-byte id after the length."""
        encoder = FramingEncoder(FramingMode.LENGTH_PREFIXED)
        parts = encoder.render(Frame(b"abc", channel=2))
        assert parts == [struct.pack(">I", 3) + b"\x02", b"abc"]

    def test_mime_content_length_matches(self, memory_sink):
        """Each multipart part announces its exact size."""
        encoder = FramingEncoder(FramingMode.MULTIPART)
        encoder.start(memory_sink)
        encoder.emit(Frame(JPEG), memory_sink)
        encoder.emit(Frame(b"small"), memory_sink)

        data = memory_sink.data
        assert data.startswith(MULTIPART_PREAMBLE)
        assert data.count(MULTIPART_PREAMBLE) == 1
        assert _multipart_lengths(data) == [len(JPEG), len(b"small")]
        assert data.endswith(b"small" + MIME_BOUNDARY)

    def test_mime_part_layout(self):
        """Part header, frame, boundary."""
        encoder = FramingEncoder(FramingMode.MULTIPART)
        encoder.start(NullSink())
        parts = encoder.render(Frame(b"12345"))
        assert parts == [
            b"Content-Type: image/jpeg\r\nContent-Length: 5\r\n\r\n",
            b"12345",
            b"\r\n--jpegboundary\r\n",
        ]

    def test_switch_into_mime_emits_preamble_once(self, memory_sink):
        """A runtime switch to mime starts with the multipart preamble."""
        encoder = FramingEncoder(FramingMode.CONCATENATE)
        encoder.emit(Frame(b"raw"), memory_sink)
        encoder.set_mode(FramingMode.MULTIPART)
        encoder.emit(Frame(b"a"), memory_sink)
        encoder.emit(Frame(b"b"), memory_sink)

        data = memory_sink.data
        assert data.startswith(b"raw" + MULTIPART_PREAMBLE)
        assert data.count(MULTIPART_PREAMBLE) == 1

    def test_http_waits_for_video_request(self, memory_sink):
        """http framing writes nothing until the gate accepts /video."""
        encoder = FramingEncoder(FramingMode.HTTP_MULTIPART)
        assert encoder.emit(Frame(b"early"), memory_sink) is False
        assert memory_sink.writes == []

        encoder.http_ready = True
        assert encoder.emit(Frame(b"late"), memory_sink) is True
        assert _multipart_lengths(memory_sink.data) == [4]

    def test_replace_uses_sink_replace(self):
        """replace framing publishes through replace()."""
        from conftest import MemorySink

        sink = MemorySink(supports_replace=True)
        encoder = FramingEncoder(FramingMode.ATOMIC_REPLACE_FILE)
        encoder.emit(Frame(JPEG), sink)
        encoder.emit(Frame(b"second"), sink)

        assert sink.writes == []
        assert sink.replacements == [JPEG, b"second"]

    def test_mode_values_match_option_names(self):
        """Enum values are the framing option strings."""
        assert [m.value for m in FramingMode] == ["cat", "header", "mime", "http", "replace"]


class TestHttpRequestGate:
    """Tests for HTTP request handling."""

    def test_video_request(self):
        """GET /video answers 200 with the multipart preamble."""
        gate = HttpRequestGate()
        assert gate.feed(b"GET /video HTTP/1.1\r\nHost: x\r\n") is HttpOutcome.INCOMPLETE
        outcome = gate.feed(b"\r\n")

        assert outcome is HttpOutcome.VIDEO
        assert gate.ready_for_images
        assert not outcome.ends_session
        response = gate.response(outcome)
        assert response.startswith(b"HTTP/1.1 200 OK\r\n")
        assert response.endswith(MULTIPART_PREAMBLE)

    def test_index_page(self):
        """GET / returns the page embedding /video and ends the session."""
        gate = HttpRequestGate()
        outcome = gate.feed(b"GET / HTTP/1.1\r\n\r\n")

        assert outcome is HttpOutcome.INDEX
        assert outcome.ends_session
        assert b'<img src="/video"/>' in gate.response(outcome)

    def test_index_html_alias(self):
        """GET /index.html is the index page too."""
        assert HttpRequestGate().feed(b"GET /index.html HTTP/1.0\r\n\r\n") is HttpOutcome.INDEX

    def test_unknown_path(self):
        """Other paths get a 404."""
        gate = HttpRequestGate()
        outcome = gate.feed(b"GET /nope HTTP/1.1\r\n\r\n")
        assert outcome is HttpOutcome.NOT_FOUND
        assert gate.response(outcome).startswith(b"HTTP/1.1 404")

    def test_non_get(self):
        """Anything but GET gets a 500."""
        gate = HttpRequestGate()
        outcome = gate.feed(b"POST /video HTTP/1.1\r\n\r\n")
        assert outcome is HttpOutcome.BAD_METHOD
        assert gate.response(outcome).startswith(b"HTTP/1.1 500")

    def test_input_after_video_is_ignored(self):
        """Once streaming, further requests are discarded."""
        gate = HttpRequestGate()
        gate.feed(b"GET /video HTTP/1.1\r\n\r\n")
        assert gate.feed(b"GET / HTTP/1.1\r\n\r\n") is HttpOutcome.INCOMPLETE

    def test_request_too_long(self):
        """A request that never ends is fatal."""
        gate = HttpRequestGate(capacity=64)
        with pytest.raises(FatalError):
            gate.feed(b"GET /" + b"a" * 100)


class TestSinks:
    """Tests for output destinations."""

    def test_file_sink_streams(self, tmp_path):
        """Streamed writes append to the file."""
        path = tmp_path / "out.mjpeg"
        sink = FileSink(str(path))
        sink.write([b"ab", b"cd"])
        sink.write([b"ef"])
        sink.close()
        assert path.read_bytes() == b"abcdef"

    def test_file_sink_replace_is_atomic(self, tmp_path):
        """replace() leaves only the latest complete image and no temp file."""
        path = tmp_path / "latest.jpg"
        sink = FileSink(str(path))
        sink.replace([b"first"])
        sink.replace([b"second", b"!"])

        assert path.read_bytes() == b"second!"
        assert not os.path.exists(sink.tmp_path)

    def test_file_sink_write_error(self, tmp_path):
        """Unwritable paths are fatal."""
        sink = FileSink(str(tmp_path / "missing" / "out.jpg"))
        with pytest.raises(SinkWriteError):
            sink.write([b"x"])

    def test_stream_sink_cannot_replace(self, tmp_path):
        """Streams have no atomic replace."""
        with open(tmp_path / "s", "wb") as f:
            sink = StreamSink(f, name="test")
            assert not sink.supports_replace
            with pytest.raises(SinkWriteError):
                sink.replace([b"x"])

    def test_open_sink_choices(self, tmp_path):
        """'' is no output, '-' is stdout, anything else a file."""
        assert isinstance(open_sink("", "cat"), NullSink)

        path = tmp_path / "out.bin"
        sink = open_sink(str(path), "cat")
        assert isinstance(sink, FileSink)
        assert path.exists()
        sink.close()

    def test_open_sink_replace_defers_file(self, tmp_path):
        """replace framing does not create the output until the first frame."""
        path = tmp_path / "latest.jpg"
        sink = open_sink(str(path), "replace")
        assert not path.exists()
        assert sink.supports_replace

    def test_replace_on_stdout_is_rejected(self):
        """stdout cannot be atomically replaced."""
        with pytest.raises(InvalidOptionError):
            open_sink("-", "replace")
