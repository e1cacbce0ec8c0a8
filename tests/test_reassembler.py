"""
Reassembly Tests
================

Tests for ChunkReassembler and the chunk handoff queue.
"""

import logging
import select

import pytest

from frame_relay.errors import HandoffOverflowError
from frame_relay.stream import Chunk, ChunkReassembler, HandoffQueue


def _warnings(caplog):
    return [r for r in caplog.records if r.levelno == logging.WARNING]


class TestChunkReassembler:
    """Tests for frame reassembly in a 1024-byte buffer."""

    def test_single_chunk_frame_passes_through(self):
        """A frame in one chunk is emitted unchanged."""
        reassembler = ChunkReassembler(capacity=1024)
        frame = reassembler.submit(Chunk(b"\xff\xd8jpeg\xff\xd9", frame_end=True))

        assert frame is not None
        assert frame.data == b"\xff\xd8jpeg\xff\xd9"
        assert frame.sequence == 1
        assert reassembler.offset == 0

    def test_three_chunks_fill_buffer_exactly(self):
        """400 + 400 + 224 bytes assemble into one 1024-byte frame."""
        reassembler = ChunkReassembler(capacity=1024)
        parts = [bytes([1]) * 400, bytes([2]) * 400, bytes([3]) * 224]

        assert reassembler.submit(Chunk(parts[0])) is None
        assert reassembler.submit(Chunk(parts[1])) is None
        frame = reassembler.submit(Chunk(parts[2], frame_end=True))

        assert frame is not None
        assert len(frame) == 1024
        assert frame.data == b"".join(parts)
        assert reassembler.offset == 0

    def test_overflow_drops_frame_with_one_warning(self, caplog):
        """600 + 600 bytes overflow: nothing emitted, exactly one warning."""
        reassembler = ChunkReassembler(capacity=1024)

        with caplog.at_level(logging.WARNING, logger="frame_relay.stream.reassembler"):
            assert reassembler.submit(Chunk(b"a" * 600)) is None
            assert reassembler.submit(Chunk(b"b" * 600, frame_end=True)) is None

        assert len(_warnings(caplog)) == 1
        assert reassembler.frames_dropped == 1
        assert reassembler.frames_emitted == 0
        assert reassembler.offset == 0
        assert not reassembler.dropping

    def test_poisoned_frame_warns_once_per_episode(self, caplog):
        """Every chunk up to the frame end is discarded with a single warning."""
        reassembler = ChunkReassembler(capacity=1024)

        with caplog.at_level(logging.WARNING, logger="frame_relay.stream.reassembler"):
            reassembler.submit(Chunk(b"a" * 600))
            reassembler.submit(Chunk(b"b" * 600))
            assert reassembler.dropping
            reassembler.submit(Chunk(b"c" * 10))
            reassembler.submit(Chunk(b"d" * 10, frame_end=True))

        assert len(_warnings(caplog)) == 1
        assert reassembler.overflow_warnings == 1

    def test_recovers_after_overflow(self):
        """The frame after a dropped one is assembled normally."""
        reassembler = ChunkReassembler(capacity=1024)
        reassembler.submit(Chunk(b"a" * 600))
        reassembler.submit(Chunk(b"b" * 600, frame_end=True))

        reassembler.submit(Chunk(b"x" * 100))
        frame = reassembler.submit(Chunk(b"y" * 100, frame_end=True))

        assert frame is not None
        assert frame.data == b"x" * 100 + b"y" * 100

    def test_oversized_single_chunk_is_dropped(self, caplog):
        """A frame-end chunk larger than the buffer is lost, buffer stays empty."""
        reassembler = ChunkReassembler(capacity=1024)

        with caplog.at_level(logging.WARNING, logger="frame_relay.stream.reassembler"):
            assert reassembler.submit(Chunk(b"z" * 2000, frame_end=True)) is None

        assert len(_warnings(caplog)) == 1
        assert reassembler.offset == 0
        assert not reassembler.dropping

    def test_each_episode_warns(self, caplog):
        """Two oversized frames produce two warnings."""
        reassembler = ChunkReassembler(capacity=1024)

        with caplog.at_level(logging.WARNING, logger="frame_relay.stream.reassembler"):
            for _ in range(2):
                reassembler.submit(Chunk(b"a" * 600))
                reassembler.submit(Chunk(b"b" * 600, frame_end=True))

        assert len(_warnings(caplog)) == 2
        assert reassembler.frames_dropped == 2

    def test_reset_discards_partial_frame(self):
        """reset() forgets buffered bytes."""
        reassembler = ChunkReassembler(capacity=1024)
        reassembler.submit(Chunk(b"old" * 10))
        reassembler.reset()

        frame = reassembler.submit(Chunk(b"new", frame_end=True))
        assert frame.data == b"new"

    def test_channel_and_sequence_are_stamped(self):
        """Frames carry the configured channel and an increasing sequence."""
        reassembler = ChunkReassembler(capacity=64, channel=3)
        first = reassembler.submit(Chunk(b"1", frame_end=True))
        second = reassembler.submit(Chunk(b"2", frame_end=True))

        assert first.channel == 3
        assert (first.sequence, second.sequence) == (1, 2)

    def test_invalid_capacity(self):
        """Capacity must be positive."""
        with pytest.raises(ValueError):
            ChunkReassembler(capacity=0)


class TestHandoffQueue:
    """Tests for the producer/consumer handoff."""

    def test_drain_preserves_order(self):
        """Chunks come out in the order they were put."""
        handoff = HandoffQueue(maxsize=8)
        try:
            for i in range(3):
                assert handoff.put(Chunk(bytes([i])))
            assert [c.data for c in handoff.drain()] == [b"\x00", b"\x01", b"\x02"]
            assert handoff.drain() == []
        finally:
            handoff.close()

    def test_fileno_becomes_readable(self):
        """A put wakes a consumer waiting on fileno()."""
        handoff = HandoffQueue(maxsize=8)
        try:
            readable, _, _ = select.select([handoff.fileno()], [], [], 0)
            assert readable == []

            handoff.put(Chunk(b"x", frame_end=True))
            readable, _, _ = select.select([handoff.fileno()], [], [], 0)
            assert readable == [handoff.fileno()]

            handoff.drain()
            readable, _, _ = select.select([handoff.fileno()], [], [], 0)
            assert readable == []
        finally:
            handoff.close()

    def test_overflow_is_fatal_on_drain(self):
        """A full queue releases the chunk and raises on the next drain."""
        released = []
        handoff = HandoffQueue(maxsize=1)
        try:
            assert handoff.put(Chunk(b"a"))
            assert not handoff.put(Chunk(b"b", on_release=lambda: released.append("b")))

            assert released == ["b"]
            assert handoff.overflowed
            with pytest.raises(HandoffOverflowError):
                handoff.drain()
        finally:
            handoff.close()

    def test_discard_pending_releases_chunks(self):
        """Discarded chunks go back to the producer."""
        released = []
        handoff = HandoffQueue(maxsize=8)
        try:
            for i in range(3):
                handoff.put(Chunk(b"x", on_release=lambda i=i: released.append(i)))

            assert handoff.discard_pending() == 3
            assert sorted(released) == [0, 1, 2]
            assert handoff.size == 0
        finally:
            handoff.close()

    def test_release_is_idempotent(self):
        """Releasing a chunk twice calls the callback once."""
        calls = []
        chunk = Chunk(b"x", on_release=lambda: calls.append(1))
        chunk.release()
        chunk.release()
        assert calls == [1]
