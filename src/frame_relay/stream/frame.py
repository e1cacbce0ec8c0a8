"""
Frame Data Model
=================

Chunk and frame representations for the ingestion pipeline.

This module defines the two values that cross the producer/consumer
boundary:
    - Chunk: one fragment of an encoded image, as produced by capture
    - Frame: one complete encoded image, the unit of distribution

Design Rules:
    - Frames are immutable once assembled
    - Chunks are returned to the producer's pool via release()
    - Neither class decodes or inspects image data
"""

from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(slots=True)
class Chunk:
    """
    Fragment of an encoded frame delivered by the producer.

    Attributes:
        data: Encoded bytes for this fragment
        frame_end: True if this chunk terminates a frame
        on_release: Callback returning the chunk's slot to the producer pool
    """

    data: bytes
    frame_end: bool = False
    on_release: Optional[Callable[[], None]] = None

    def release(self) -> None:
        """Return this chunk to its producer. Safe to call more than once."""
        callback = self.on_release
        self.on_release = None
        if callback is not None:
            callback()

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return f"Chunk(len={len(self.data)}, frame_end={self.frame_end})"


@dataclass(frozen=True, slots=True)
class Frame:
    """
    Complete encoded image.

    This is the canonical internal representation of a frame.
    It is immutable (frozen) so one frame can be fanned out to many
    destinations without copies.

    Attributes:
        data: Encoded image bytes (typically a JPEG)
        channel: Logical channel id when several encoder outputs are
            multiplexed, None for a single output
        sequence: Monotonically increasing frame counter from the reassembler
    """

    data: bytes
    channel: Optional[int] = None
    sequence: int = 0

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the full image."""
        return (
            f"Frame(sequence={self.sequence}, "
            f"len={len(self.data)}, "
            f"channel={self.channel})"
        )
