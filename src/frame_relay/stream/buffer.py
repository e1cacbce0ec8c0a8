"""
Handoff Queue
=============

Thread-safe bounded channel from the capture thread to the event loop.

This module provides the HandoffQueue class, which is the only
synchronization point between the producer (capture thread) and the
consumer (event loop thread).

Design Rules:
    - Fixed maximum size (a full queue is a fault, not backpressure)
    - Exposes a file descriptor so the event loop can wait on it
    - Never processes or modifies chunks
    - Exposes minimal metrics for observability
"""

import logging
import os
import queue
from typing import List

from frame_relay.errors import HandoffOverflowError
from frame_relay.stream.frame import Chunk


logger = logging.getLogger(__name__)


class HandoffQueue:
    """
    Bounded multi-producer/single-consumer chunk channel.

    Producers call put() from any thread. Each put also writes a wake
    byte to an internal pipe, so the consumer can include fileno() in a
    readiness wait and call drain() when it becomes readable.

    Attributes:
        maxsize: Maximum number of queued chunks
        overflowed: True once a put found the queue full

    Example:
        handoff = HandoffQueue(maxsize=64)

        # Producer thread
        handoff.put(Chunk(data, frame_end=True))

        # Consumer (after the fd is readable)
        for chunk in handoff.drain():
            ...
    """

    def __init__(self, maxsize: int = 64) -> None:
        """
        Initialize handoff queue.

        Args:
            maxsize: Maximum chunks in flight. Must be >= 1.
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._maxsize = maxsize
        self._queue: "queue.Queue[Chunk]" = queue.Queue(maxsize=maxsize)
        self._read_fd, self._write_fd = os.pipe()
        os.set_blocking(self._read_fd, False)
        os.set_blocking(self._write_fd, False)
        self._overflowed: bool = False
        self._total_put: int = 0
        self._closed: bool = False

    @property
    def maxsize(self) -> int:
        """Maximum queue size."""
        return self._maxsize

    @property
    def size(self) -> int:
        """Current number of chunks waiting."""
        return self._queue.qsize()

    @property
    def overflowed(self) -> bool:
        """Whether a producer ever found the queue full."""
        return self._overflowed

    @property
    def total_put(self) -> int:
        """Total chunks ever accepted."""
        return self._total_put

    def fileno(self) -> int:
        """Read end of the wake pipe, for selectors."""
        return self._read_fd

    def put(self, chunk: Chunk) -> bool:
        """
        Hand a chunk to the consumer. Called from the producer thread.

        Args:
            chunk: Chunk to enqueue

        Returns:
            True if queued, False if the queue was full (the chunk is
            released and the overflow fault is raised on the next drain).
        """
        try:
            self._queue.put_nowait(chunk)
        except queue.Full:
            self._overflowed = True
            chunk.release()
            self.wake()
            return False

        self._total_put += 1
        self.wake()
        return True

    def wake(self) -> None:
        """Make fileno() readable without enqueuing anything."""
        if self._closed:
            return
        try:
            os.write(self._write_fd, b"\x00")
        except BlockingIOError:
            # Pipe already full of wake bytes; the consumer is awake anyway.
            pass

    def drain(self) -> List[Chunk]:
        """
        Take every queued chunk, in arrival order.

        Returns:
            Chunks in the order they were put.

        Raises:
            HandoffOverflowError: If a producer found the queue full.
        """
        self._clear_wakeups()

        if self._overflowed:
            raise HandoffOverflowError(
                f"Handoff queue overflow (maxsize={self._maxsize}); "
                "the event loop is not keeping up with capture"
            )

        chunks: List[Chunk] = []
        while True:
            try:
                chunks.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return chunks

    def discard_pending(self) -> int:
        """
        Release every queued chunk without processing it.

        Returns:
            Number of chunks discarded.
        """
        discarded = 0
        while True:
            try:
                chunk = self._queue.get_nowait()
            except queue.Empty:
                break
            chunk.release()
            discarded += 1
        self._clear_wakeups()
        return discarded

    def close(self) -> None:
        """Discard pending chunks and close the wake pipe."""
        if self._closed:
            return
        discarded = self.discard_pending()
        if discarded:
            logger.debug(f"Discarded {discarded} pending chunks on close")
        self._closed = True
        os.close(self._read_fd)
        os.close(self._write_fd)

    def metrics(self) -> dict:
        """
        Get queue metrics for observability.

        Returns:
            Dict with size, maxsize, total_put, overflowed
        """
        return {
            "size": self.size,
            "maxsize": self._maxsize,
            "total_put": self._total_put,
            "overflowed": self._overflowed,
        }

    def _clear_wakeups(self) -> None:
        while True:
            try:
                if not os.read(self._read_fd, 4096):
                    break
            except BlockingIOError:
                break
