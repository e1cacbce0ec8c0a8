"""
Client Registry
===============

Bounded table of datagram subscribers.

A peer becomes a subscriber by sending any datagram to the control socket,
even an empty one. Every complete frame is then sent to it as a single
datagram. A subscriber that cannot take a frame (gone, buffer full,
datagram too large) is evicted at once; it re-registers by sending again.

Design Rules:
    - Registration happens only while processing an inbound datagram
    - Broadcast never blocks and never registers
    - The table never grows past max_clients
"""

import logging
import socket
import time
from dataclasses import dataclass, field
from typing import Dict, List


logger = logging.getLogger(__name__)


@dataclass
class Client:
    """
    One datagram subscriber.

    Attributes:
        address: Peer socket address (a filesystem path for AF_UNIX)
        last_contact: Monotonic time of the last datagram from the peer
    """

    address: str
    last_contact: float = field(default_factory=time.monotonic)


class ClientRegistry:
    """
    Set of subscribers keyed by address.

    Attributes:
        max_clients: Table capacity
        frames_sent: Datagrams delivered since start
        evictions: Clients removed after a failed send

    Example:
        registry = ClientRegistry(max_clients=8)
        registry.register(address)
        registry.broadcast(sock, frame.data)
    """

    def __init__(self, max_clients: int = 8) -> None:
        if max_clients < 0:
            raise ValueError("max_clients must be >= 0")

        self.max_clients = max_clients
        self._clients: Dict[str, Client] = {}
        self.frames_sent: int = 0
        self.evictions: int = 0

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, address: str) -> bool:
        return address in self._clients

    @property
    def addresses(self) -> List[str]:
        """Registered addresses in registration order."""
        return list(self._clients)

    def register(self, address) -> bool:
        """
        Add or refresh a subscriber.

        Args:
            address: Sender address from recvfrom()

        Returns:
            True if the address is (now) registered.
        """
        if not address:
            # Unbound AF_UNIX senders have no address to reply to
            logger.debug("Ignoring datagram from unnamed socket")
            return False

        client = self._clients.get(address)
        if client is not None:
            client.last_contact = time.monotonic()
            return True

        if len(self._clients) >= self.max_clients:
            logger.warning(f"Too many clients ({self.max_clients}). Ignoring {address}")
            return False

        self._clients[address] = Client(address=address)
        logger.info(f"Client {address} registered ({len(self._clients)}/{self.max_clients})")
        return True

    def remove(self, address) -> None:
        """Drop a subscriber if present."""
        if self._clients.pop(address, None) is not None:
            logger.info(f"Client {address} removed")

    def broadcast(self, sock: socket.socket, data: bytes) -> int:
        """
        Send one datagram to every subscriber.

        Args:
            sock: Non-blocking datagram socket to send from
            data: Payload, normally one complete frame

        Returns:
            Number of subscribers that accepted the datagram.
        """
        delivered = 0
        for address in list(self._clients):
            try:
                sock.sendto(data, address)
            except OSError as e:
                self._clients.pop(address, None)
                self.evictions += 1
                logger.info(f"Client {address} evicted: {e}")
                continue
            delivered += 1

        self.frames_sent += delivered
        return delivered

    def metrics(self) -> dict:
        """Export registry counters."""
        return {
            "clients": len(self._clients),
            "max_clients": self.max_clients,
            "frames_sent": self.frames_sent,
            "evictions": self.evictions,
        }
