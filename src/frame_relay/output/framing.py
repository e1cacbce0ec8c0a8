"""
Framing Encoder
===============

Renders frames into the byte layout of the selected output framing.

Framings:
    cat      - frames back to back, unchanged
    header   - 4-byte big-endian length, optional 1-byte channel id, frame
    mime     - multipart/x-mixed-replace parts with exact Content-Length
    http     - like mime, but only after an HTTP client asked for /video
    replace  - each frame atomically replaces the output file

Mode Changes:
    The framing is a live option. A new mode applies from the next frame
    on; nothing already written is re-framed. Switching into mime emits the
    multipart preamble before the first frame in that mode.
"""

import logging
import struct
from enum import Enum
from typing import List

from frame_relay.output.sink import OutputSink
from frame_relay.stream.frame import Frame


logger = logging.getLogger(__name__)


BOUNDARY = "jpegboundary"

MULTIPART_HEADER = (
    "MIME-Version: 1.0\r\n"
    f"Content-Type: multipart/x-mixed-replace;boundary={BOUNDARY}\r\n"
).encode("ascii")

# The leading CRLF also terminates the header block above
MIME_BOUNDARY = f"\r\n--{BOUNDARY}\r\n".encode("ascii")

MULTIPART_PREAMBLE = MULTIPART_HEADER + MIME_BOUNDARY

PART_HEADER_FORMAT = (
    "Content-Type: image/jpeg\r\n"
    "Content-Length: {length}\r\n"
    "\r\n"
)

_LENGTH = struct.Struct(">I")


class FramingMode(str, Enum):
    """
    Output framing, named by the "framing" option value.

    Attributes:
        CONCATENATE: Raw frames back to back
        LENGTH_PREFIXED: Big-endian length header per frame
        MULTIPART: MIME multipart/x-mixed-replace
        HTTP_MULTIPART: Multipart behind a minimal HTTP request gate
        ATOMIC_REPLACE_FILE: Write-then-rename of a single file
    """

    CONCATENATE = "cat"
    LENGTH_PREFIXED = "header"
    MULTIPART = "mime"
    HTTP_MULTIPART = "http"
    ATOMIC_REPLACE_FILE = "replace"


def part_header(length: int) -> bytes:
    """Multipart part header announcing a payload of length bytes."""
    return PART_HEADER_FORMAT.format(length=length).encode("ascii")


class FramingEncoder:
    """
    Stateful renderer for the active framing mode.

    Attributes:
        mode: Active FramingMode
        http_ready: True once the HTTP gate accepted a /video request

    Example:
        encoder = FramingEncoder(FramingMode.MULTIPART)
        encoder.start(sink)             # writes the multipart preamble
        encoder.emit(frame, sink)
    """

    def __init__(self, mode: FramingMode = FramingMode.CONCATENATE) -> None:
        self._mode = mode
        self._preamble_pending = mode is FramingMode.MULTIPART
        self.http_ready: bool = False

    @property
    def mode(self) -> FramingMode:
        """Active framing mode."""
        return self._mode

    def set_mode(self, mode: FramingMode) -> None:
        """Switch framing; applies to the next rendered frame."""
        if mode is self._mode:
            return
        logger.info(f"Framing changed: {self._mode.value} -> {mode.value}")
        self._mode = mode
        if mode is FramingMode.MULTIPART:
            self._preamble_pending = True

    def start(self, sink: OutputSink) -> None:
        """Write any framing that precedes the first frame."""
        if self._mode is FramingMode.MULTIPART and self._preamble_pending:
            sink.write([MULTIPART_PREAMBLE])
            self._preamble_pending = False

    def render(self, frame: Frame) -> List[bytes]:
        """
        Render one frame as the discrete writes for the current mode.

        Args:
            frame: Frame to render

        Returns:
            Byte strings to write in order. Empty if the mode is not
            ready to carry frames yet (http before /video).
        """
        mode = self._mode
        data = frame.data

        if mode is FramingMode.LENGTH_PREFIXED:
            header = _LENGTH.pack(len(data))
            if frame.channel is not None:
                header += bytes((frame.channel & 0xFF,))
            return [header, data]

        if mode is FramingMode.MULTIPART:
            parts = [part_header(len(data)), data, MIME_BOUNDARY]
            if self._preamble_pending:
                self._preamble_pending = False
                parts.insert(0, MULTIPART_PREAMBLE)
            return parts

        if mode is FramingMode.HTTP_MULTIPART:
            if not self.http_ready:
                return []
            return [part_header(len(data)), data, MIME_BOUNDARY]

        # cat and replace carry the frame unchanged
        return [data]

    def emit(self, frame: Frame, sink: OutputSink) -> bool:
        """
        Render a frame and write it to the sink.

        Returns:
            True if anything was written.

        Raises:
            SinkWriteError: If the sink fails (fatal)
        """
        parts = self.render(frame)
        if not parts:
            return False

        if self._mode is FramingMode.ATOMIC_REPLACE_FILE:
            sink.replace(parts)
        else:
            sink.write(parts)
        return True
