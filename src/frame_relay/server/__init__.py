"""
Server Module
=============

The frame-distribution server.

This module provides:
    - ServerState: everything the event loop owns
    - ClientRegistry: datagram subscribers
    - OptionApplier: live side effects of option changes
    - ControlStream / HttpSession: stdin control input
    - EventLoop: the readiness loop tying it together
"""

from frame_relay.server.appliers import OptionApplier
from frame_relay.server.clients import Client, ClientRegistry
from frame_relay.server.control import ControlFraming, ControlStream, HttpSession, control_framing_for
from frame_relay.server.loop import EventLoop, bind_control_socket, close_control_socket
from frame_relay.server.state import ServerState


__all__ = [
    "OptionApplier",
    "Client",
    "ClientRegistry",
    "ControlFraming",
    "ControlStream",
    "HttpSession",
    "control_framing_for",
    "EventLoop",
    "bind_control_socket",
    "close_control_socket",
    "ServerState",
]
