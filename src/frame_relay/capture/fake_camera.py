"""
Fake Camera
===========

Capture backend that synthesizes a moving test pattern.

Each frame is rendered with numpy, post-processed with OpenCV according to
the current capture properties, JPEG-encoded with cv2.imencode and handed
to the event loop in fixed-size chunks, the last one flagged as frame end.

Honored properties:
    width, height, fps          geometry and rate (restart required)
    quality, restart_interval   JPEG encoder settings
    annotation, anno_background text overlay
    brightness, contrast, saturation, sharpness
    imxfx                       negative, blur, posterise, solarise
    colfx                       fixed U:V chroma
    roi, rotation, hflip, vflip

Other camera properties (exposure, awb, ISO, ...) are accepted and stored.

Buffer Pool:
    Chunks come from a bounded pool. A slot is taken before a chunk is
    queued and returned when the consumer releases the chunk, so the
    producer slows down instead of allocating when the consumer lags.
"""

import logging
import threading
import time
from typing import Any, Dict, List, Optional

import cv2
import numpy as np

from frame_relay.capture.base import frame_geometry
from frame_relay.stream.buffer import HandoffQueue
from frame_relay.stream.frame import Chunk


logger = logging.getLogger(__name__)


DEFAULT_FPS = 30.0

# How long the producer waits for a free pool slot before checking for stop
POOL_WAIT_SECONDS = 0.5


def render_test_pattern(width: int, height: int, index: int) -> np.ndarray:
    """
    Draw frame number index of the test pattern.

    Colour bars over a horizontal gradient, with a white bar sweeping
    left to right so consecutive frames differ.

    Returns:
        BGR image, shape (height, width, 3), dtype uint8
    """
    image = np.zeros((height, width, 3), dtype=np.uint8)

    bars = np.array(
        [
            (255, 255, 255), (0, 255, 255), (255, 255, 0), (0, 255, 0),
            (255, 0, 255), (0, 0, 255), (255, 0, 0), (0, 0, 0),
        ],
        dtype=np.uint8,
    )
    columns = (np.arange(width) * len(bars)) // max(width, 1)
    image[:] = bars[columns][np.newaxis, :, :]

    # Bottom quarter is a grey ramp
    ramp_top = height - height // 4
    ramp = np.linspace(0, 255, width, dtype=np.uint8)
    image[ramp_top:, :, :] = ramp[np.newaxis, :, np.newaxis]

    bar_width = max(width // 32, 2)
    x = (index * bar_width) % max(width, 1)
    image[:ramp_top, x:x + bar_width] = 255
    return image


def apply_properties(image: np.ndarray, props: Dict[str, Any]) -> np.ndarray:
    """Apply the image-processing capture properties to a rendered frame."""
    roi = props.get("roi")
    if roi and roi != (0.0, 0.0, 1.0, 1.0):
        image = _crop_roi(image, roi)

    brightness = props.get("brightness", 50)
    contrast = props.get("contrast", 0)
    if brightness != 50 or contrast != 0:
        alpha = 1.0 + contrast / 100.0
        beta = (brightness - 50) * 2.55
        image = cv2.convertScaleAbs(image, alpha=alpha, beta=beta)

    saturation = props.get("saturation", 0)
    if saturation:
        hsv = cv2.cvtColor(image, cv2.COLOR_BGR2HSV).astype(np.float32)
        hsv[:, :, 1] = np.clip(hsv[:, :, 1] * (1.0 + saturation / 100.0), 0, 255)
        image = cv2.cvtColor(hsv.astype(np.uint8), cv2.COLOR_HSV2BGR)

    sharpness = props.get("sharpness", 0)
    if sharpness:
        blurred = cv2.GaussianBlur(image, (0, 0), 3)
        amount = sharpness / 100.0
        image = cv2.addWeighted(image, 1.0 + amount, blurred, -amount, 0)

    image = _apply_effect(image, props.get("imxfx", "none"))

    colfx = props.get("colfx")
    if colfx:
        u, v = colfx
        yuv = cv2.cvtColor(image, cv2.COLOR_BGR2YUV)
        yuv[:, :, 1] = u
        yuv[:, :, 2] = v
        image = cv2.cvtColor(yuv, cv2.COLOR_YUV2BGR)

    if props.get("hflip") and props.get("vflip"):
        image = cv2.flip(image, -1)
    elif props.get("hflip"):
        image = cv2.flip(image, 1)
    elif props.get("vflip"):
        image = cv2.flip(image, 0)

    rotation = props.get("rotation", 0)
    if rotation == 90:
        image = cv2.rotate(image, cv2.ROTATE_90_CLOCKWISE)
    elif rotation == 180:
        image = cv2.rotate(image, cv2.ROTATE_180)
    elif rotation == 270:
        image = cv2.rotate(image, cv2.ROTATE_90_COUNTERCLOCKWISE)

    annotation = props.get("annotation")
    if annotation:
        _annotate(image, annotation, bool(props.get("anno_background")))

    return image


def encode_jpeg(image: np.ndarray, quality: int, restart_interval: int = 0) -> bytes:
    """
    JPEG-encode a BGR image.

    Raises:
        RuntimeError: If OpenCV cannot encode the image
    """
    params = [cv2.IMWRITE_JPEG_QUALITY, int(quality)]
    if restart_interval:
        params += [cv2.IMWRITE_JPEG_RST_INTERVAL, int(restart_interval)]

    ok, encoded = cv2.imencode(".jpg", image, params)
    if not ok:
        raise RuntimeError("cv2.imencode failed")
    return encoded.tobytes()


def split_chunks(data: bytes, chunk_size: int) -> List[bytes]:
    """Split encoded bytes into producer-sized pieces."""
    return [data[i:i + chunk_size] for i in range(0, len(data), chunk_size)] or [b""]


def _crop_roi(image: np.ndarray, roi) -> np.ndarray:
    height, width = image.shape[:2]
    x, y, w, h = roi
    left = int(x * width)
    top = int(y * height)
    right = max(left + 1, min(width, int((x + w) * width)))
    bottom = max(top + 1, min(height, int((y + h) * height)))
    if left >= width or top >= height:
        return image
    cropped = image[top:bottom, left:right]
    return cv2.resize(cropped, (width, height), interpolation=cv2.INTER_LINEAR)


def _apply_effect(image: np.ndarray, effect: str) -> np.ndarray:
    if effect == "negative":
        return cv2.bitwise_not(image)
    if effect == "blur":
        return cv2.GaussianBlur(image, (9, 9), 0)
    if effect in ("posterise", "posterize"):
        return (image // 64) * 64
    if effect in ("solarise", "solarize"):
        return np.where(image < 128, image, 255 - image).astype(np.uint8)
    return image


def _annotate(image: np.ndarray, text: str, background: bool) -> None:
    font = cv2.FONT_HERSHEY_SIMPLEX
    scale = max(image.shape[1] / 640.0, 0.4)
    thickness = 1 if scale < 1.0 else 2
    (text_width, text_height), baseline = cv2.getTextSize(text, font, scale, thickness)
    x = max((image.shape[1] - text_width) // 2, 0)
    y = text_height + 4

    if background:
        cv2.rectangle(
            image,
            (x - 2, y - text_height - 2),
            (x + text_width + 2, y + baseline + 2),
            (0, 0, 0),
            thickness=-1,
        )
    cv2.putText(image, text, (x, y), font, scale, (255, 255, 255), thickness, cv2.LINE_AA)


class FakeCamera:
    """
    Threaded test-pattern producer.

    Attributes:
        chunk_size: Maximum bytes per chunk
        pool_size: Number of chunks that may be in flight at once
        frames_produced: Frames fully handed off since construction

    Example:
        camera = FakeCamera(chunk_size=16384, pool_size=16)
        camera.configure(store.capture_properties())
        camera.start(handoff)
        ...
        camera.stop()
    """

    def __init__(self, chunk_size: int = 16384, pool_size: int = 16) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if pool_size < 1:
            raise ValueError("pool_size must be >= 1")

        self.chunk_size = chunk_size
        self.pool_size = pool_size
        self.frames_produced: int = 0

        self._props: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._fps: float = DEFAULT_FPS
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._running: bool = False

    @property
    def is_running(self) -> bool:
        # Stays True if the thread dies unexpectedly so the loop notices
        return self._running

    @property
    def frame_period(self) -> Optional[float]:
        """Seconds between frames for the rate of the current run."""
        return 1.0 / self._fps

    def configure(self, properties: Dict[str, Any]) -> None:
        with self._lock:
            self._props = dict(properties)

    def set_property(self, name: str, value: Any) -> None:
        with self._lock:
            self._props[name] = value
        logger.debug(f"Fake camera {name}={value!r}")

    def start(self, handoff: HandoffQueue) -> None:
        if self._running:
            return

        with self._lock:
            props = dict(self._props)
        width, height = frame_geometry(
            int(props.get("width") or 0), int(props.get("height") or 0)
        )
        fps = float(props.get("fps") or 0) or DEFAULT_FPS

        self._fps = fps
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            args=(handoff, width, height, fps, threading.BoundedSemaphore(self.pool_size)),
            name="fake-camera",
            daemon=True,
        )
        self._running = True
        self._thread.start()
        logger.info(f"Fake camera started: {width}x{height} @ {fps:g} fps")

    def stop(self) -> None:
        if not self._running:
            return

        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._running = False
        logger.info("Fake camera stopped")

    def _run(
        self,
        handoff: HandoffQueue,
        width: int,
        height: int,
        fps: float,
        pool: threading.BoundedSemaphore,
    ) -> None:
        period = 1.0 / fps
        next_frame = time.monotonic()
        index = 0

        try:
            while not self._stop_event.is_set():
                with self._lock:
                    props = dict(self._props)

                image = apply_properties(render_test_pattern(width, height, index), props)
                data = encode_jpeg(
                    image,
                    props.get("quality", 15),
                    props.get("restart_interval", 0),
                )
                if not self._hand_off(handoff, pool, data):
                    break

                index += 1
                self.frames_produced += 1

                next_frame += period
                delay = next_frame - time.monotonic()
                if delay > 0:
                    self._stop_event.wait(delay)
                else:
                    next_frame = time.monotonic()
        except Exception as e:
            # The event loop reports the stall as a liveness timeout
            logger.error(f"Fake camera failed: {e}")

    def _hand_off(
        self,
        handoff: HandoffQueue,
        pool: threading.BoundedSemaphore,
        data: bytes,
    ) -> bool:
        pieces = split_chunks(data, self.chunk_size)
        last = len(pieces) - 1
        for i, piece in enumerate(pieces):
            while not pool.acquire(timeout=POOL_WAIT_SECONDS):
                if self._stop_event.is_set():
                    return False
            if self._stop_event.is_set():
                pool.release()
                return False
            handoff.put(Chunk(piece, frame_end=(i == last), on_release=pool.release))
        return True
