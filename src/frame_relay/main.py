"""
frame-relay Main Application
============================

Command-line entry point.

Startup order:
    1. FRAME_RELAY_<NAME> environment variables (as command-line values)
    2. Command-line arguments
    3. --config file (only fills options that are still unset)
    4. Defaults for everything else
    5. Role selection: server, or client when --client or --send is given
    6. Server: one startup pass applying every option, then the event loop

Exit status is 0 after a graceful stop and 1 on any fatal error or --help.
"""

import logging
import os
import signal
import sys
from typing import Callable, List, Optional, Sequence

from frame_relay.capture.base import CaptureSource, NullCapture
from frame_relay.capture.fake_camera import FakeCamera
from frame_relay.client import RelayClient
from frame_relay.config import CaptureConfig, Settings, settings, setup_logging
from frame_relay.errors import FatalError, HelpRequested
from frame_relay.options import (
    ConfigProtocolParser,
    ConfigStore,
    OriginContext,
    format_help,
    parse_args,
)
from frame_relay.output.framing import FramingEncoder, FramingMode
from frame_relay.output.sink import OutputSink, open_sink
from frame_relay.server.appliers import OptionApplier
from frame_relay.server.clients import ClientRegistry
from frame_relay.server.control import ControlFraming, ControlStream, HttpSession, control_framing_for
from frame_relay.server.loop import EventLoop, bind_control_socket, close_control_socket
from frame_relay.server.state import ServerState
from frame_relay.stream.buffer import HandoffQueue
from frame_relay.stream.reassembler import ChunkReassembler


logger = logging.getLogger(__name__)


# =============================================================================
# Capture Source Factory
# =============================================================================

def create_capture_source(config: CaptureConfig) -> CaptureSource:
    """Create the capture backend named in settings."""
    backend = config.backend

    if backend == "fake":
        logger.info(
            f"Using FakeCamera: chunk_size={config.chunk_size}, pool_size={config.pool_size}"
        )
        return FakeCamera(chunk_size=config.chunk_size, pool_size=config.pool_size)

    elif backend == "none":
        logger.info("Using NullCapture (no frames will be produced)")
        return NullCapture()

    else:
        raise FatalError(f"Unknown capture backend: {backend}")


# =============================================================================
# Helpers
# =============================================================================

def _stdin_fd() -> Optional[int]:
    """stdin descriptor if it can carry control input (not a terminal)."""
    if sys.stdin is None:
        return None
    try:
        fd = sys.stdin.fileno()
    except (OSError, ValueError):
        return None
    if os.isatty(fd):
        return None
    return fd


def _open_control_stream(
    framing: str,
    server: bool,
    parser: Optional[ConfigProtocolParser],
    sink: OutputSink,
    encoder: FramingEncoder,
    on_end: Callable[[str], None],
    capacity: int,
) -> Optional[ControlStream]:
    fd = _stdin_fd()
    if fd is None:
        return None

    control_framing = control_framing_for(framing, server=server)
    http = None
    if control_framing is ControlFraming.HTTP:
        http = HttpSession(sink, encoder, on_end, capacity=capacity)
    logger.debug(f"Control stream on fd {fd} ({control_framing.value})")
    return ControlStream(fd, control_framing, parser=parser, http=http, capacity=capacity)


def _install_signal_handlers(on_signal: Callable[[str], None]) -> dict:
    """Route SIGINT/SIGTERM to a graceful stop. Returns the old handlers."""

    def _handle(signum, frame):
        on_signal(f"received {signal.Signals(signum).name}")

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handle)
    return previous


def _restore_signal_handlers(previous: dict) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


# =============================================================================
# Roles
# =============================================================================

def run_server(store: ConfigStore, parser: ConfigProtocolParser, config: Settings) -> int:
    """
    Build server state, apply every option once and run the event loop.

    Returns:
        Exit status (0 on graceful stop)

    Raises:
        FatalError: On any fatal condition
    """
    if store.sendlist:
        raise FatalError(
            "Trying to send a message to a frame-relay server, but one isn't running."
        )

    framing = store.get("framing")
    sink = open_sink(store.get("output"), framing)
    state = ServerState(
        store=store,
        parser=parser,
        handoff=HandoffQueue(maxsize=config.buffers.handoff_queue_size),
        reassembler=ChunkReassembler(capacity=config.buffers.data_buffer_size),
        encoder=FramingEncoder(FramingMode(framing)),
        sink=sink,
        registry=ClientRegistry(max_clients=config.clients.max_clients),
        capture=create_capture_source(config.capture),
    )
    previous_handlers = {}

    try:
        parser.set_applier(OptionApplier(state))
        state.capture.configure(store.capture_properties())
        parser.apply_all(OriginContext.PROCESS_START)

        state.socket_path = store.get("socket")
        state.sock = bind_control_socket(state.socket_path)
        logger.info(f"Listening on {state.socket_path}, output {sink.name}, framing {framing}")

        control = _open_control_stream(
            framing,
            server=True,
            parser=parser,
            sink=sink,
            encoder=state.encoder,
            on_end=state.request_stop,
            capacity=config.buffers.request_buffer_size,
        )
        state.http_control = control is not None and control.framing is ControlFraming.HTTP
        previous_handlers = _install_signal_handlers(state.request_stop)

        state.encoder.start(sink)
        loop = EventLoop(
            state,
            control=control,
            liveness_timeout=config.loop.liveness_timeout_seconds,
            datagram_size=config.buffers.data_buffer_size,
        )
        loop.run()
    finally:
        _restore_signal_handlers(previous_handlers)
        close_control_socket(state.sock, state.socket_path)
        state.handoff.close()
        sink.close()

    return 0


def run_client(store: ConfigStore, config: Settings) -> int:
    """
    Subscribe to a running server and write what it sends.

    Returns:
        Exit status (0 on graceful stop)

    Raises:
        FatalError: If the server is unreachable or unresponsive
    """
    framing = store.get("framing")
    sink = open_sink(store.get("output"), framing)
    encoder = FramingEncoder(FramingMode(framing))
    previous_handlers = {}

    try:
        client = RelayClient(
            store,
            sink,
            encoder,
            liveness_timeout=config.loop.liveness_timeout_seconds,
            datagram_size=config.buffers.data_buffer_size,
        )
        client.control = _open_control_stream(
            framing,
            server=False,
            parser=None,
            sink=sink,
            encoder=encoder,
            on_end=client.stop,
            capacity=config.buffers.request_buffer_size,
        )
        previous_handlers = _install_signal_handlers(client.stop)
        client.run()
    finally:
        _restore_signal_handlers(previous_handlers)
        sink.close()

    return 0


# =============================================================================
# Entry Point
# =============================================================================

def main(argv: Optional[Sequence[str]] = None, config: Optional[Settings] = None) -> int:
    """
    Run frame-relay.

    Args:
        argv: Arguments without the program name (default: sys.argv[1:])
        config: Deployment settings (default: the global settings)

    Returns:
        Process exit status
    """
    config = config or settings
    setup_logging(config)
    args: List[str] = list(sys.argv[1:] if argv is None else argv)

    store = ConfigStore()
    parser = ConfigProtocolParser(store, capacity=config.buffers.request_buffer_size)

    try:
        parser.load_environment(os.environ)
        parse_args(args, parser)

        config_file = store.get("config")
        if config_file:
            parser.load_file(config_file)

        store.fill_defaults()

        wants_client = store.is_on("client")
        wants_server = store.is_on("server")
        if wants_client and wants_server:
            raise FatalError("Both --client and --server requested")

        if wants_client or (store.sendlist and not wants_server):
            return run_client(store, config)
        return run_server(store, parser, config)

    except HelpRequested:
        sys.stderr.write(format_help())
        return HelpRequested.exit_code
    except FatalError as e:
        logger.critical(str(e))
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())
