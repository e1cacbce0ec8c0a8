"""
Output Module
=============

Framing and local delivery of frames.

This module provides:
    - FramingMode / FramingEncoder: byte layout per output framing
    - HttpRequestGate: request handling in front of http framing
    - NullSink / StreamSink / FileSink: local destinations
"""

from frame_relay.output.framing import FramingEncoder, FramingMode
from frame_relay.output.http import HttpOutcome, HttpRequestGate
from frame_relay.output.sink import FileSink, NullSink, OutputSink, StreamSink, open_sink


__all__ = [
    "FramingEncoder",
    "FramingMode",
    "HttpOutcome",
    "HttpRequestGate",
    "FileSink",
    "NullSink",
    "OutputSink",
    "StreamSink",
    "open_sink",
]
