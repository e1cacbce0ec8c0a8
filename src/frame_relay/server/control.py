"""
Control Stream
==============

Reads configuration (or an HTTP request) from stdin.

The framing of the control stream is fixed for the session from the
"framing" option at startup:

    header  ->  length-prefixed packets of config lines
    http    ->  one HTTP request, answered through the output sink
    other   ->  newline-delimited config lines

Clients only act on http; anything else they read is discarded.

End of input on the control stream ends the session.
"""

import logging
import os
from enum import Enum
from typing import Callable, Optional

from frame_relay.errors import FatalError
from frame_relay.options.parser import ConfigProtocolParser
from frame_relay.options.store import OriginContext
from frame_relay.output.framing import FramingEncoder
from frame_relay.output.http import HttpOutcome, HttpRequestGate
from frame_relay.output.sink import OutputSink


logger = logging.getLogger(__name__)


class ControlFraming(str, Enum):
    """How bytes on the control stream are interpreted."""

    LINES = "lines"
    PACKETS = "packets"
    HTTP = "http"
    DISCARD = "discard"


def control_framing_for(framing: str, server: bool = True) -> ControlFraming:
    """Pick the control-stream framing for an output framing name."""
    if framing == "http":
        return ControlFraming.HTTP
    if not server:
        return ControlFraming.DISCARD
    if framing == "header":
        return ControlFraming.PACKETS
    return ControlFraming.LINES


class HttpSession:
    """
    Connects the HTTP request gate to the output.

    Responses go to the same sink as frames. Once /video is accepted the
    encoder starts emitting multipart frames; any other outcome ends the
    session.
    """

    def __init__(
        self,
        sink: OutputSink,
        encoder: FramingEncoder,
        on_end: Callable[[str], None],
        capacity: int = 4096,
    ) -> None:
        self.gate = HttpRequestGate(capacity=capacity)
        self.sink = sink
        self.encoder = encoder
        self._on_end = on_end

    def feed(self, data: bytes) -> HttpOutcome:
        outcome = self.gate.feed(data)
        if outcome is HttpOutcome.INCOMPLETE:
            return outcome

        self.sink.write([self.gate.response(outcome)])
        if outcome is HttpOutcome.VIDEO:
            self.encoder.http_ready = True
        if outcome.ends_session:
            self._on_end(f"HTTP request answered ({outcome.value})")
        return outcome


class ControlStream:
    """
    Non-blocking reader for the control stream.

    Attributes:
        fd: File descriptor to read (normally stdin)
        framing: ControlFraming in effect for the session
        capacity: Maximum bytes per read and per buffered request
        bytes_read: Total bytes consumed

    Example:
        control = ControlStream(0, ControlFraming.LINES, parser=parser)
        if not control.service():
            state.request_stop("control stream closed")
    """

    def __init__(
        self,
        fd: int,
        framing: ControlFraming,
        parser: Optional[ConfigProtocolParser] = None,
        http: Optional[HttpSession] = None,
        capacity: int = 4096,
    ) -> None:
        if framing in (ControlFraming.LINES, ControlFraming.PACKETS) and parser is None:
            raise ValueError(f"{framing.value} framing needs a parser")
        if framing is ControlFraming.HTTP and http is None:
            raise ValueError("http framing needs an HttpSession")

        self.fd = fd
        self.framing = framing
        self.capacity = capacity
        self.bytes_read: int = 0
        self._parser = parser
        self._http = http

    def fileno(self) -> int:
        return self.fd

    def service(self) -> bool:
        """
        Read what is available and act on it.

        Returns:
            False once the stream has reached end of input.

        Raises:
            FatalError: On read errors or oversized requests
        """
        try:
            data = os.read(self.fd, self.capacity)
        except (BlockingIOError, InterruptedError):
            return True
        except OSError as e:
            raise FatalError(f"Error reading control stream: {e}") from e

        if not data:
            return False

        self.bytes_read += len(data)
        self.feed(data)
        return True

    def feed(self, data: bytes) -> None:
        """Interpret bytes according to the session framing."""
        if self.framing is ControlFraming.LINES:
            self._parser.feed_lines(data, OriginContext.CLIENT_REQUEST)
        elif self.framing is ControlFraming.PACKETS:
            self._parser.parse_length_prefixed(data, OriginContext.CLIENT_REQUEST)
        elif self.framing is ControlFraming.HTTP:
            self._http.feed(data)
