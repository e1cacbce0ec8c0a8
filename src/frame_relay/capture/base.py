"""
Capture Source
==============

Interface between the server and whatever produces encoded image chunks.

A capture source runs on its own thread and hands chunks to the event loop
through a HandoffQueue. The event loop never calls into the producer
except through this interface, and only from its own thread.

This module provides:
    - CaptureSource: Protocol every backend implements
    - NullCapture: backend that never produces (control-only servers, tests)
    - frame_geometry(): output size rules shared by backends
"""

import logging
from typing import Any, Dict, Optional, Protocol, Tuple

from frame_relay.stream.buffer import HandoffQueue


logger = logging.getLogger(__name__)


# Full-resolution sensor size, used to clamp and derive frame geometry
SENSOR_WIDTH = 2592
SENSOR_HEIGHT = 1944

DEFAULT_WIDTH = 320


def frame_geometry(
    width: int,
    height: int,
    sensor: Tuple[int, int] = (SENSOR_WIDTH, SENSOR_HEIGHT),
) -> Tuple[int, int]:
    """
    Resolve the requested output size.

    Rules:
        - width <= 0 selects the default width; larger than the sensor clamps
        - height <= 0 follows the sensor aspect ratio; larger clamps
        - both are rounded down to a multiple of 16 for the JPEG encoder

    Args:
        width: Requested width in pixels
        height: Requested height in pixels (0 = derive from width)
        sensor: Sensor (width, height)

    Returns:
        (width, height) actually produced.
    """
    sensor_width, sensor_height = sensor

    if width <= 0:
        width = DEFAULT_WIDTH
    elif width > sensor_width:
        width = sensor_width
    width &= ~0xF

    if height <= 0:
        height = sensor_height * width // sensor_width
    elif height > sensor_height:
        height = sensor_height
    height &= ~0xF

    return width, height


class CaptureSource(Protocol):
    """
    Protocol for capture backends.

    Implemented by:
        - NullCapture
        - FakeCamera (numpy/OpenCV test pattern)
    """

    @property
    def is_running(self) -> bool:
        """Whether the source is expected to be producing chunks."""
        ...

    def configure(self, properties: Dict[str, Any]) -> None:
        """Replace all properties before the first start."""
        ...

    def start(self, handoff: HandoffQueue) -> None:
        """Begin producing chunks into handoff."""
        ...

    def stop(self) -> None:
        """Stop producing. Returns once the producer thread has exited."""
        ...

    @property
    def frame_period(self) -> Optional[float]:
        """Seconds between frames at the configured rate, None if unknown."""
        ...

    def set_property(self, name: str, value: Any) -> None:
        """Change one property. Restart properties apply on the next start."""
        ...


class NullCapture:
    """
    Capture source that never produces frames.

    Useful for servers that only relay configuration, and in tests where
    chunks are injected into the HandoffQueue directly. Since it never
    runs, the event loop does not enforce the liveness timeout.
    """

    def __init__(self) -> None:
        self.properties: Dict[str, Any] = {}
        self.handoff: Optional[HandoffQueue] = None
        self.starts: int = 0

    @property
    def is_running(self) -> bool:
        return False

    def configure(self, properties: Dict[str, Any]) -> None:
        self.properties = dict(properties)

    def start(self, handoff: HandoffQueue) -> None:
        self.handoff = handoff
        self.starts += 1
        logger.debug("Null capture started")

    def stop(self) -> None:
        pass

    @property
    def frame_period(self) -> Optional[float]:
        return None

    def set_property(self, name: str, value: Any) -> None:
        self.properties[name] = value
