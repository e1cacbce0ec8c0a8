"""
Server State
============

Everything the event loop mutates, gathered in one object owned by the
loop thread. The capture thread only ever touches `handoff`.
"""

import logging
import socket
from dataclasses import dataclass, field
from typing import Optional

from frame_relay.capture.base import CaptureSource
from frame_relay.options.parser import ConfigProtocolParser
from frame_relay.options.store import ConfigStore
from frame_relay.output.framing import FramingEncoder
from frame_relay.output.sink import OutputSink
from frame_relay.server.clients import ClientRegistry
from frame_relay.stream.buffer import HandoffQueue
from frame_relay.stream.reassembler import ChunkReassembler


logger = logging.getLogger(__name__)


@dataclass
class ServerState:
    """
    Mutable server state.

    Attributes:
        store: Current option values
        parser: Config parser feeding the store
        handoff: Chunk channel from the capture thread
        reassembler: Frame assembly buffer
        encoder: Output framing
        sink: Local output destination
        registry: Datagram subscribers
        capture: Chunk producer
        sock: Bound control socket, None until bound
        socket_path: Filesystem path the socket is bound to
        running: Cleared to end the event loop
        remaining: Frames left before stopping, -1 for no limit
        stop_reason: Why running was cleared
        http_control: True when stdin carries an HTTP request gate
    """

    store: ConfigStore
    parser: ConfigProtocolParser
    handoff: HandoffQueue
    reassembler: ChunkReassembler
    encoder: FramingEncoder
    sink: OutputSink
    registry: ClientRegistry
    capture: CaptureSource
    sock: Optional[socket.socket] = None
    socket_path: Optional[str] = None
    running: bool = True
    remaining: int = -1
    stop_reason: Optional[str] = field(default=None)
    http_control: bool = False

    def request_stop(self, reason: str) -> None:
        """
        End the event loop after the current readiness wait.

        Safe to call from a signal handler.
        """
        if self.running:
            logger.info(f"Stopping: {reason}")
            self.stop_reason = reason
        self.running = False
        self.handoff.wake()

    def set_frame_limit(self, count: int) -> None:
        """Set how many more frames to emit, -1 for no limit."""
        self.remaining = count
        if count == 0:
            self.request_stop("frame count reached")

    def frame_emitted(self) -> None:
        """Account for one distributed frame against the limit."""
        if self.remaining > 0:
            self.remaining -= 1
            if self.remaining == 0:
                self.request_stop("frame count reached")
