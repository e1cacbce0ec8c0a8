"""
Client Mode
===========

Talks to a running frame-relay server over its control socket.

A client binds its own datagram socket next to the server's
("<socket>.client.<pid>"), then sends the --send lines as one datagram.
With no --send lines it sends an empty datagram, which is enough to
subscribe. Frames the server broadcasts are written to the client's own
output with the client's own framing.

The client stops when its frame count is reached, when stdin closes, or
when the server stops sending for longer than the liveness timeout. With
no output the client only delivers its --send lines and exits.
"""

import logging
import os
import selectors
import socket
from typing import Optional

from frame_relay.errors import FatalError, LivenessTimeout
from frame_relay.options.store import ConfigStore
from frame_relay.output.framing import FramingEncoder
from frame_relay.output.sink import NullSink, OutputSink
from frame_relay.server.control import ControlStream
from frame_relay.server.loop import bind_control_socket, close_control_socket
from frame_relay.stream.frame import Frame


logger = logging.getLogger(__name__)


def client_socket_path(server_path: str, pid: Optional[int] = None) -> str:
    """Socket path a client binds for replies from the server."""
    return f"{server_path}.client.{os.getpid() if pid is None else pid}"


class RelayClient:
    """
    One client session.

    Attributes:
        server_path: Control socket of the server
        path: This client's socket path
        remaining: Frames left to receive, -1 for no limit
        frames_received: Frames accepted from the server

    Example:
        client = RelayClient(store, sink, encoder)
        client.run()
    """

    def __init__(
        self,
        store: ConfigStore,
        sink: OutputSink,
        encoder: FramingEncoder,
        control: Optional[ControlStream] = None,
        liveness_timeout: float = 2.0,
        datagram_size: int = 131072,
    ) -> None:
        self.store = store
        self.sink = sink
        self.encoder = encoder
        self.control = control
        self.liveness_timeout = liveness_timeout
        self.datagram_size = datagram_size

        self.server_path: str = store.get("socket")
        self.path: str = client_socket_path(self.server_path)
        self.remaining: int = store.typed("count")
        self.frames_received: int = 0
        self.running: bool = True
        self._sock: Optional[socket.socket] = None
        self._selector: Optional[selectors.BaseSelector] = None

        if isinstance(sink, NullSink):
            # Nowhere to put frames, so only deliver the requests
            if not store.sendlist:
                raise FatalError(
                    "No sends and no place to store output, so nothing to do. "
                    "Use --output to receive frames or --server to start a server."
                )
            self.remaining = 0

    def stop(self, reason: str) -> None:
        """End the session after the current wait. Safe from signal handlers."""
        if self.running:
            logger.info(f"Stopping client: {reason}")
        self.running = False

    def run(self) -> None:
        """
        Subscribe, then receive frames until done.

        Raises:
            FatalError: If the server cannot be reached or stops responding
        """
        self._sock = bind_control_socket(self.path)
        try:
            self._send_requests()
            self.encoder.start(self.sink)
            if self.remaining == 0:
                return

            self._selector = selectors.DefaultSelector()
            self._selector.register(self._sock, selectors.EVENT_READ, "socket")
            if self.control is not None:
                self._selector.register(self.control.fileno(), selectors.EVENT_READ, "control")

            while self.running and self.remaining != 0:
                self.run_once(self.liveness_timeout)
        finally:
            if self._selector is not None:
                self._selector.close()
                self._selector = None
            close_control_socket(self._sock, self.path)
            self._sock = None

    def run_once(self, timeout: Optional[float] = None) -> bool:
        """
        Wait once for a frame or control input.

        Raises:
            LivenessTimeout: If the server sent nothing within timeout
        """
        events = self._selector.select(timeout)
        if not events:
            if not self.running:
                return False
            raise LivenessTimeout("Server unresponsive")

        ready = {key.data for key, _ in events}
        if "socket" in ready:
            self._service_server()
        if "control" in ready and not self.control.service():
            self._selector.unregister(self.control.fileno())
            self.control = None
            self.stop("control stream closed")
        return True

    def _send_requests(self) -> None:
        payload = "\n".join(self.store.sendlist).encode("utf-8")
        try:
            sent = self._sock.sendto(payload, self.server_path)
        except OSError as e:
            raise FatalError(f"Error communicating with server at {self.server_path}: {e}") from e
        if sent != len(payload):
            raise FatalError("Error communicating with server: short send")
        logger.debug(f"Sent {len(payload)} bytes to {self.server_path}")

    def _service_server(self) -> None:
        try:
            data, address = self._sock.recvfrom(self.datagram_size)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as e:
            raise FatalError(f"recvfrom: {e}") from e

        if address != self.server_path:
            logger.warning(
                f"Dropping message from unexpected sender {address!r}. "
                f"Server should be {self.server_path}"
            )
            return

        self.frames_received += 1
        self.encoder.emit(Frame(data=data, sequence=self.frames_received), self.sink)
        if self.remaining > 0:
            self.remaining -= 1
