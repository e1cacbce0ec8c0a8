"""
Chunk Reassembler
=================

Rebuilds complete frames from producer chunks.

The reassembler owns a fixed-capacity scratch buffer. Chunks are appended
until one is marked as the end of a frame, at which point the buffered
bytes become a Frame.

Overflow Policy:
    Memory stays constant: a frame that does not fit in the buffer is
    dropped. The first chunk that overflows logs one warning and puts the
    buffer into a drop state; every chunk up to and including the next
    frame-end chunk is discarded, and the buffer is then empty again.
    One warning is logged per oversized frame, never one per chunk.

Design Rules:
    - Single-threaded: only the event loop calls submit()
    - A frame that arrives in one chunk is passed through without a copy
"""

import logging
from typing import Optional

import numpy as np

from frame_relay.stream.frame import Chunk, Frame


logger = logging.getLogger(__name__)


class ChunkReassembler:
    """
    Accumulates chunks into frames inside a bounded buffer.

    Attributes:
        capacity: Maximum frame size in bytes
        offset: Bytes currently buffered for the partial frame
        frames_emitted: Number of frames returned by submit()
        frames_dropped: Number of frames lost to overflow
        overflow_warnings: Number of overflow warnings logged

    Example:
        reassembler = ChunkReassembler(capacity=131072)
        for chunk in chunks:
            frame = reassembler.submit(chunk)
            if frame is not None:
                distribute(frame)
    """

    def __init__(self, capacity: int, channel: Optional[int] = None) -> None:
        """
        Initialize reassembler.

        Args:
            capacity: Size of the assembly buffer in bytes. Must be >= 1.
            channel: Channel id stamped onto every emitted frame
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")

        self._capacity = capacity
        self._channel = channel
        self._buffer = np.zeros(capacity, dtype=np.uint8)
        self._offset: int = 0
        self._dropping: bool = False
        self._sequence: int = 0

        self.frames_emitted: int = 0
        self.frames_dropped: int = 0
        self.overflow_warnings: int = 0

    @property
    def capacity(self) -> int:
        """Assembly buffer capacity in bytes."""
        return self._capacity

    @property
    def offset(self) -> int:
        """Bytes held for the frame in progress."""
        return self._offset

    @property
    def dropping(self) -> bool:
        """Whether the current frame overflowed and is being discarded."""
        return self._dropping

    def submit(self, chunk: Chunk) -> Optional[Frame]:
        """
        Add one chunk.

        Args:
            chunk: Next chunk from the producer, in arrival order

        Returns:
            A complete Frame if this chunk finished one, otherwise None.
        """
        length = len(chunk.data)

        # Whole frame in a single chunk
        if (
            self._offset == 0
            and not self._dropping
            and chunk.frame_end
            and length <= self._capacity
        ):
            return self._emit(bytes(chunk.data))

        if self._dropping or self._offset + length > self._capacity:
            self._overflow(length)
            if chunk.frame_end:
                self.reset()
            return None

        self._buffer[self._offset:self._offset + length] = np.frombuffer(
            chunk.data, dtype=np.uint8
        )
        self._offset += length

        if not chunk.frame_end:
            return None

        data = self._buffer[:self._offset].tobytes()
        self._offset = 0
        return self._emit(data)

    def reset(self) -> None:
        """Forget any partial frame and leave the drop state."""
        self._offset = 0
        self._dropping = False

    def metrics(self) -> dict:
        """Export reassembly counters."""
        return {
            "capacity": self._capacity,
            "offset": self._offset,
            "frames_emitted": self.frames_emitted,
            "frames_dropped": self.frames_dropped,
            "overflow_warnings": self.overflow_warnings,
        }

    def _overflow(self, length: int) -> None:
        if self._dropping:
            return

        self._dropping = True
        self.frames_dropped += 1
        self.overflow_warnings += 1
        logger.warning(
            f"Frame too large ({self._offset + length} bytes, "
            f"buffer holds {self._capacity}). Dropping."
        )

    def _emit(self, data: bytes) -> Frame:
        self._sequence += 1
        self.frames_emitted += 1
        return Frame(data=data, channel=self._channel, sequence=self._sequence)
