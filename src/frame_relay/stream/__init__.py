"""
Stream Module
=============

Chunk handoff and frame reassembly components.

This module provides the ingestion layer for frame-relay:
    - Chunk / Frame: Typed chunk and frame data models
    - HandoffQueue: Thread-safe bounded channel from capture to event loop
    - ChunkReassembler: Fixed-capacity frame reassembly

Example:
    from frame_relay.stream import ChunkReassembler, HandoffQueue

    handoff = HandoffQueue(maxsize=64)
    reassembler = ChunkReassembler(capacity=131072)

    # Capture thread
    handoff.put(chunk)

    # Event loop, when handoff.fileno() is readable
    for chunk in handoff.drain():
        try:
            frame = reassembler.submit(chunk)
        finally:
            chunk.release()
"""

from frame_relay.stream.frame import Chunk, Frame
from frame_relay.stream.buffer import HandoffQueue
from frame_relay.stream.reassembler import ChunkReassembler


__all__ = [
    "Chunk",
    "Frame",
    "HandoffQueue",
    "ChunkReassembler",
]
