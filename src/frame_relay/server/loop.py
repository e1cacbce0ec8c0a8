"""
Event Loop
==========

Single-threaded readiness loop of the server.

Sources, serviced in this order whenever several are ready:
    1. handoff queue  - chunks from the capture thread
    2. control socket - datagrams from clients (registration + config)
    3. control stream - stdin, when it is not a terminal

Each wait is bounded. If nothing at all becomes ready while the capture
source is supposed to be running, the producer is considered stuck and
the loop fails with LivenessTimeout. The wait is stretched to two frame
periods when the capture rate is slow enough to need it.

Every frame is broadcast to all subscribers and written to the local sink
before the next chunk is looked at.
"""

import logging
import os
import selectors
import socket
from typing import Optional

from frame_relay.errors import FatalError, LivenessTimeout
from frame_relay.options.store import OriginContext
from frame_relay.server.control import ControlStream
from frame_relay.server.state import ServerState
from frame_relay.stream.frame import Frame


logger = logging.getLogger(__name__)


_HANDOFF = "handoff"
_SOCKET = "socket"
_CONTROL = "control"

# Service order when several sources are ready at once
_PRIORITY = (_HANDOFF, _SOCKET, _CONTROL)


def bind_control_socket(path: str) -> socket.socket:
    """
    Create the non-blocking AF_UNIX datagram socket at path.

    A stale socket file left by an earlier run is removed first.

    Raises:
        FatalError: If the socket cannot be bound
    """
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise FatalError(f"Can't remove stale socket {path}: {e}") from e

    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.bind(path)
    except OSError as e:
        sock.close()
        raise FatalError(f"Can't create Unix Domain socket at {path}: {e}") from e
    sock.setblocking(False)
    return sock


def close_control_socket(sock: Optional[socket.socket], path: Optional[str]) -> None:
    """Close the socket and remove its filesystem entry."""
    if sock is not None:
        sock.close()
    if path:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Can't remove socket {path}: {e}")


class EventLoop:
    """
    Dispatcher over the handoff queue, control socket and control stream.

    Attributes:
        state: ServerState owned by this loop
        control: Optional stdin control stream
        liveness_timeout: Seconds to wait before declaring the producer stuck
        datagram_size: Largest datagram read from the control socket

    Example:
        loop = EventLoop(state, control=control, liveness_timeout=2.0)
        loop.run()
    """

    def __init__(
        self,
        state: ServerState,
        control: Optional[ControlStream] = None,
        liveness_timeout: float = 2.0,
        datagram_size: int = 131072,
    ) -> None:
        self.state = state
        self.control = control
        self.liveness_timeout = liveness_timeout
        self.datagram_size = datagram_size
        self._selector = selectors.DefaultSelector()
        self._registered = False

    def run(self) -> None:
        """
        Start capture and service events until a stop is requested.

        Raises:
            FatalError: On any fatal condition (liveness timeout, sink
                failure, control desync, handoff overflow)
        """
        state = self.state
        self._register()
        if state.running:
            state.capture.start(state.handoff)
        try:
            while state.running:
                self.run_once(self.wait_timeout)
        finally:
            state.capture.stop()
            self.close()

        logger.info(
            f"Event loop finished: {state.reassembler.frames_emitted} frames, "
            f"{state.reassembler.frames_dropped} dropped"
        )
        logger.debug(f"Event loop metrics: {self.metrics()}")

    @property
    def wait_timeout(self) -> float:
        """
        Longest readiness wait before the producer counts as stuck.

        At least two frame periods of the running capture, so a slow
        configured rate is not mistaken for a stall. Read on every
        iteration because an fps restart changes the period.
        """
        period = self.state.capture.frame_period
        if period is None:
            return self.liveness_timeout
        return max(self.liveness_timeout, 2.0 * period)

    def metrics(self) -> dict:
        """Export handoff, reassembly and subscriber counters."""
        state = self.state
        return {
            "handoff": state.handoff.metrics(),
            "reassembler": state.reassembler.metrics(),
            "clients": state.registry.metrics(),
        }

    def run_once(self, timeout: Optional[float] = None) -> bool:
        """
        Wait once and service every ready source in priority order.

        Args:
            timeout: Seconds to wait, None to block

        Returns:
            True if any source was ready.

        Raises:
            LivenessTimeout: If nothing was ready while capture is running
        """
        self._register()
        events = self._selector.select(timeout)

        if not events:
            if self.state.running and self.state.capture.is_running:
                raise LivenessTimeout("Capture unresponsive. Video stuck?")
            return False

        ready = {key.data for key, _ in events}
        for source in _PRIORITY:
            if source not in ready:
                continue
            if source == _HANDOFF:
                self._service_handoff()
            elif source == _SOCKET:
                self._service_socket()
            else:
                self._service_control()
        return True

    def close(self) -> None:
        """Release the selector."""
        self._selector.close()
        self._registered = False

    def _register(self) -> None:
        if self._registered:
            return
        state = self.state
        self._selector.register(state.handoff.fileno(), selectors.EVENT_READ, _HANDOFF)
        if state.sock is not None:
            self._selector.register(state.sock, selectors.EVENT_READ, _SOCKET)
        if self.control is not None:
            self._selector.register(self.control.fileno(), selectors.EVENT_READ, _CONTROL)
        self._registered = True

    def _service_handoff(self) -> None:
        state = self.state
        for chunk in state.handoff.drain():
            try:
                frame = state.reassembler.submit(chunk)
            finally:
                chunk.release()
            if frame is not None and state.running:
                self._distribute(frame)

    def _distribute(self, frame: Frame) -> None:
        state = self.state
        if state.sock is not None:
            state.registry.broadcast(state.sock, frame.data)
        state.encoder.emit(frame, state.sink)
        state.frame_emitted()

    def _service_socket(self) -> None:
        state = self.state
        try:
            data, address = state.sock.recvfrom(self.datagram_size)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as e:
            raise FatalError(f"recvfrom: {e}") from e

        state.registry.register(address)
        state.parser.parse_lines(
            data.decode("utf-8", errors="replace"), OriginContext.CLIENT_REQUEST
        )

    def _service_control(self) -> None:
        if not self.control.service():
            self._selector.unregister(self.control.fileno())
            self.control = None
            self.state.request_stop("control stream closed")
