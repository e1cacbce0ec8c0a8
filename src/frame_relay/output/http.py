"""
HTTP Request Gate
=================

Minimal HTTP/1.x request handling for "http" framing.

With "http" framing, stdin/stdout are connected to a single HTTP client
(for example through inetd or socat). No frames are written until the
client has asked for the video stream:

    GET / or GET /index.html  ->  small page embedding /video, then close
    GET /video                ->  200 + multipart preamble, frames follow
    any other GET path        ->  404, then close
    any other method          ->  500, then close

Only the request line is inspected; headers are read and ignored.
"""

import logging
from enum import Enum
from typing import Optional

from frame_relay.errors import FatalError
from frame_relay.output.framing import MULTIPART_PREAMBLE


logger = logging.getLogger(__name__)


SERVER_NAME = "frame-relay"

HTTP_OK = (
    "HTTP/1.1 200 OK\r\n"
    f"Server: {SERVER_NAME}\r\n"
).encode("ascii")

HTTP_NOT_FOUND = (
    "HTTP/1.1 404 Not Found\r\n"
    f"Server: {SERVER_NAME}\r\n"
    "Connection: close\r\n"
    "\r\n"
).encode("ascii")

HTTP_SERVER_ERROR = (
    "HTTP/1.1 500 Internal Server Error\r\n"
    f"Server: {SERVER_NAME}\r\n"
    "Connection: close\r\n"
    "\r\n"
).encode("ascii")

INDEX_PAGE = (
    "Content-Type: text/html; charset=UTF-8\r\n"
    "Connection: close\r\n"
    "\r\n"
    "<!DOCTYPE html>\r\n"
    "<html>\r\n"
    "<head>\r\n"
    f"  <title>{SERVER_NAME}</title>\r\n"
    "</head>\r\n"
    "<body>\r\n"
    "  <img src=\"/video\"/>\r\n"
    "</body>\r\n"
    "</html>\r\n"
).encode("ascii")


class HttpOutcome(str, Enum):
    """Result of feeding request bytes to the gate."""

    INCOMPLETE = "incomplete"
    INDEX = "index"
    VIDEO = "video"
    NOT_FOUND = "not_found"
    BAD_METHOD = "bad_method"

    @property
    def ends_session(self) -> bool:
        """Whether the server should stop after responding."""
        return self in (HttpOutcome.INDEX, HttpOutcome.NOT_FOUND, HttpOutcome.BAD_METHOD)


class HttpRequestGate:
    """
    Accumulates one HTTP request and decides how to answer it.

    Attributes:
        capacity: Maximum request size in bytes
        ready_for_images: True once /video has been requested

    Example:
        gate = HttpRequestGate()
        outcome = gate.feed(data)
        if outcome is not HttpOutcome.INCOMPLETE:
            sink.write([gate.response(outcome)])
    """

    def __init__(self, capacity: int = 4096) -> None:
        self.capacity = capacity
        self.ready_for_images: bool = False
        self._buffer = bytearray()

    def feed(self, data: bytes) -> HttpOutcome:
        """
        Add request bytes.

        Returns:
            INCOMPLETE until the blank line ending the request arrives,
            then the decision. Input after /video is discarded.

        Raises:
            FatalError: If the request grows past capacity
        """
        if self.ready_for_images:
            return HttpOutcome.INCOMPLETE

        self._buffer.extend(data)
        end = self._buffer.find(b"\r\n\r\n")
        if end < 0:
            if len(self._buffer) >= self.capacity - 1:
                raise FatalError("HTTP request too long on control stream")
            return HttpOutcome.INCOMPLETE

        request = bytes(self._buffer[:end])
        self._buffer.clear()
        outcome = self._route(request)
        if outcome is HttpOutcome.VIDEO:
            self.ready_for_images = True
        request_line = request.split(b"\r\n", 1)[0]
        logger.info(f"HTTP request {request_line!r} -> {outcome.value}")
        return outcome

    @staticmethod
    def response(outcome: HttpOutcome) -> Optional[bytes]:
        """Bytes to send back for an outcome, None while incomplete."""
        if outcome is HttpOutcome.INDEX:
            return HTTP_OK + INDEX_PAGE
        if outcome is HttpOutcome.VIDEO:
            return HTTP_OK + MULTIPART_PREAMBLE
        if outcome is HttpOutcome.NOT_FOUND:
            return HTTP_NOT_FOUND
        if outcome is HttpOutcome.BAD_METHOD:
            return HTTP_SERVER_ERROR
        return None

    @staticmethod
    def _route(request: bytes) -> HttpOutcome:
        request_line = request.split(b"\r\n", 1)[0]
        parts = request_line.split()
        if len(parts) < 2 or parts[0] != b"GET":
            return HttpOutcome.BAD_METHOD

        path = parts[1].split(b"?", 1)[0]
        if path in (b"/", b"/index.html"):
            return HttpOutcome.INDEX
        if path == b"/video":
            return HttpOutcome.VIDEO
        return HttpOutcome.NOT_FOUND
