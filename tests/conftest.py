"""
Test Configuration
==================

Pytest fixtures and test configuration for frame-relay.
"""

import shutil
import tempfile

import pytest

from frame_relay.capture.base import NullCapture
from frame_relay.options.parser import ConfigProtocolParser
from frame_relay.options.store import ConfigStore
from frame_relay.output.framing import FramingEncoder, FramingMode
from frame_relay.output.sink import NullSink
from frame_relay.server.appliers import OptionApplier
from frame_relay.server.clients import ClientRegistry
from frame_relay.server.state import ServerState
from frame_relay.stream.buffer import HandoffQueue
from frame_relay.stream.reassembler import ChunkReassembler


class FakeSocket:
    """Datagram socket stand-in recording sendto() calls."""

    def __init__(self, failing=()):
        self.sent = []
        self.failing = set(failing)

    def sendto(self, data, address):
        if address in self.failing:
            raise ConnectionRefusedError(111, "Connection refused")
        self.sent.append((address, bytes(data)))
        return len(data)


class MemorySink:
    """Sink keeping every write in memory."""

    name = "memory"

    def __init__(self, supports_replace=False):
        self._supports_replace = supports_replace
        self.writes = []
        self.replacements = []
        self.closed = False

    @property
    def supports_replace(self):
        return self._supports_replace

    @property
    def data(self):
        return b"".join(b"".join(parts) for parts in self.writes)

    def write(self, parts):
        self.writes.append(list(parts))

    def replace(self, parts):
        self.replacements.append(b"".join(parts))

    def close(self):
        self.closed = True


class RecordingCapture(NullCapture):
    """NullCapture that can pretend to run and records restarts."""

    def __init__(self, running=False, period=None):
        super().__init__()
        self.running = running
        self.period = period
        self.stops = 0

    @property
    def is_running(self):
        return self.running

    @property
    def frame_period(self):
        return self.period

    def stop(self):
        self.stops += 1


@pytest.fixture
def fake_socket():
    """Provide a FakeSocket that accepts every address."""
    return FakeSocket()


@pytest.fixture
def memory_sink():
    """Provide an in-memory sink."""
    return MemorySink()


@pytest.fixture
def store():
    """Provide an empty ConfigStore."""
    return ConfigStore()


@pytest.fixture
def parser(store):
    """Provide a parser over the store fixture, without appliers."""
    return ConfigProtocolParser(store)


@pytest.fixture
def socket_dir():
    """
    Provide a short temporary directory for AF_UNIX sockets.

    tmp_path can exceed the 108-byte sun_path limit, so use /tmp directly.
    """
    path = tempfile.mkdtemp(prefix="fr-", dir="/tmp")
    yield path
    shutil.rmtree(path, ignore_errors=True)


def build_state(store, sink=None, capture=None, capacity=1024, max_clients=8):
    """Assemble a ServerState with an applier installed and defaults filled."""
    store.fill_defaults()
    parser = ConfigProtocolParser(store)
    state = ServerState(
        store=store,
        parser=parser,
        handoff=HandoffQueue(maxsize=64),
        reassembler=ChunkReassembler(capacity=capacity),
        encoder=FramingEncoder(FramingMode(store.get("framing"))),
        sink=sink if sink is not None else NullSink(),
        registry=ClientRegistry(max_clients=max_clients),
        capture=capture if capture is not None else RecordingCapture(),
    )
    parser.set_applier(OptionApplier(state))
    return state


@pytest.fixture
def server_state(store, memory_sink):
    """Provide a ServerState writing to memory_sink."""
    state = build_state(store, sink=memory_sink)
    yield state
    state.handoff.close()
