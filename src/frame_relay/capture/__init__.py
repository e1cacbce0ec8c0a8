"""
Capture Module
==============

Producers of encoded image chunks.

This module provides:
    - CaptureSource: Protocol for capture backends
    - NullCapture: backend that produces nothing
    - FakeCamera: numpy/OpenCV test-pattern backend
    - frame_geometry: output size rules
"""

from frame_relay.capture.base import CaptureSource, NullCapture, frame_geometry
from frame_relay.capture.fake_camera import FakeCamera


__all__ = [
    "CaptureSource",
    "NullCapture",
    "FakeCamera",
    "frame_geometry",
]
