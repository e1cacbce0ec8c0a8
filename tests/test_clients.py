"""
Client Registry Tests
=====================

Tests for subscriber registration, broadcast and eviction.
"""

import logging

from conftest import FakeSocket

from frame_relay.server.clients import ClientRegistry


class TestClientRegistry:
    """Tests for the bounded subscriber table."""

    def test_register_is_idempotent(self):
        """Registering the same address twice keeps one entry."""
        registry = ClientRegistry(max_clients=8)
        assert registry.register("/tmp/a")
        assert registry.register("/tmp/a")
        assert len(registry) == 1

    def test_unnamed_sender_is_not_registered(self):
        """Datagrams from unbound sockets can't be answered."""
        registry = ClientRegistry()
        assert not registry.register("")
        assert not registry.register(None)
        assert len(registry) == 0

    def test_ninth_client_is_refused(self, caplog, fake_socket):
        """With eight slots, the ninth sender is warned about and never sent frames."""
        registry = ClientRegistry(max_clients=8)
        addresses = [f"/tmp/client.{i}" for i in range(9)]

        with caplog.at_level(logging.WARNING, logger="frame_relay.server.clients"):
            results = [registry.register(a) for a in addresses]

        assert results == [True] * 8 + [False]
        assert len(registry) == 8
        assert addresses[8] not in registry
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1

        assert registry.broadcast(fake_socket, b"frame") == 8
        assert [address for address, _ in fake_socket.sent] == addresses[:8]
        assert "/tmp/client.8" not in {address for address, _ in fake_socket.sent}

    def test_metrics(self, fake_socket):
        """Counters reflect registrations, deliveries and evictions."""
        registry = ClientRegistry(max_clients=4)
        registry.register("/tmp/a")
        registry.register("/tmp/b")
        registry.broadcast(fake_socket, b"one")
        registry.broadcast(FakeSocket(failing={"/tmp/b"}), b"two")

        assert registry.metrics() == {
            "clients": 1,
            "max_clients": 4,
            "frames_sent": 3,
            "evictions": 1,
        }

    def test_broadcast_reaches_every_client(self, fake_socket):
        """Each subscriber gets the frame as one datagram."""
        registry = ClientRegistry()
        for name in ("/tmp/a", "/tmp/b", "/tmp/c"):
            registry.register(name)

        assert registry.broadcast(fake_socket, b"frame") == 3
        assert fake_socket.sent == [("/tmp/a", b"frame"), ("/tmp/b", b"frame"), ("/tmp/c", b"frame")]

    def test_failed_send_evicts(self):
        """A client that can't take a datagram is removed immediately."""
        registry = ClientRegistry()
        registry.register("/tmp/alive")
        registry.register("/tmp/gone")
        sock = FakeSocket(failing={"/tmp/gone"})

        assert registry.broadcast(sock, b"frame") == 1
        assert registry.addresses == ["/tmp/alive"]
        assert registry.evictions == 1

    def test_evicted_client_can_register_again(self):
        """Eviction frees the slot and the client can come back."""
        registry = ClientRegistry(max_clients=1)
        registry.register("/tmp/flaky")
        registry.broadcast(FakeSocket(failing={"/tmp/flaky"}), b"frame")
        assert len(registry) == 0

        assert registry.register("/tmp/other")
        registry.remove("/tmp/other")
        assert registry.register("/tmp/flaky")

        sock = FakeSocket()
        registry.broadcast(sock, b"next")
        assert sock.sent == [("/tmp/flaky", b"next")]

    def test_broadcast_never_registers(self, fake_socket):
        """Only inbound datagrams add subscribers."""
        registry = ClientRegistry()
        registry.broadcast(fake_socket, b"frame")
        assert len(registry) == 0
        assert fake_socket.sent == []
