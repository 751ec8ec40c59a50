"""
Camera Module - Webcam Stream Handler
======================================
Captures webcam frames on a background thread and keeps only the latest
one, stamped with its capture time so consumers can tell a new frame from
a repeated one.

Frames are delivered unmirrored; mirroring is a display concern.
"""

import logging
import sys
import threading
import time
from typing import Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def _open_capture(camera_id: int, width: int, height: int, fps: int) -> Optional[cv2.VideoCapture]:
    """Open a device with low-latency settings, or None if it cannot be opened."""
    # DirectShow opens much faster on Windows
    backend = cv2.CAP_DSHOW if sys.platform == "win32" else cv2.CAP_ANY
    cap = cv2.VideoCapture(camera_id, backend)
    if not cap.isOpened():
        cap.release()
        return None

    cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    cap.set(cv2.CAP_PROP_FPS, fps)
    cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
    return cap


class Camera:
    """
    Latest-frame webcam source.

    Timestamps are milliseconds since the Camera was created and strictly
    increase across stop/start cycles, which VIDEO-mode detection requires.
    """

    def __init__(
        self,
        camera_id: int = 0,
        width: int = 960,
        height: int = 540,
        fps: int = 30
    ):
        """
        Args:
            camera_id: Camera device index
            width: Requested frame width
            height: Requested frame height
            fps: Requested frame rate
        """
        self.camera_id = camera_id
        self.width = width
        self.height = height
        self.fps = fps

        self.cap: Optional[cv2.VideoCapture] = None
        self._thread: Optional[threading.Thread] = None
        self._running = False

        self._lock = threading.Lock()
        self._latest: Optional[np.ndarray] = None
        self._latest_ms = -1
        self._frames_seen = 0
        self._epoch = time.perf_counter()
        self._started_at = 0.0

    @property
    def is_running(self) -> bool:
        return self._running

    def _now_ms(self) -> int:
        return int((time.perf_counter() - self._epoch) * 1000)

    def start(self) -> bool:
        """
        Open the device and begin capturing.

        Returns:
            True if the device opened
        """
        if self._running:
            return True

        self.cap = _open_capture(self.camera_id, self.width, self.height, self.fps)
        if self.cap is None:
            logger.error("Failed to open camera %s", self.camera_id)
            return False

        # Actual resolution may differ from the request
        self.width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        logger.info("Camera started: %dx%d @ %dfps", self.width, self.height, self.fps)

        self._frames_seen = 0
        self._started_at = time.perf_counter()
        self._running = True
        self._thread = threading.Thread(target=self._capture_loop, daemon=True)
        self._thread.start()
        return True

    def _capture_loop(self):
        while self._running:
            ok, frame = self.cap.read()
            if not ok:
                time.sleep(0.001)
                continue

            stamp = self._now_ms()
            with self._lock:
                self._latest_ms = max(stamp, self._latest_ms + 1)
                self._latest = frame
                self._frames_seen += 1

    def read_frame(self) -> Tuple[Optional[np.ndarray], int]:
        """
        Latest captured frame.

        Returns:
            (frame copy or None, capture timestamp in ms or -1)
        """
        with self._lock:
            if self._latest is None:
                return None, -1
            return self._latest.copy(), self._latest_ms

    def get_fps(self) -> float:
        """Average capture rate since start()."""
        elapsed = time.perf_counter() - self._started_at
        if not self._running or elapsed <= 0:
            return 0.0
        return self._frames_seen / elapsed

    def stop(self):
        """Stop capturing and release the device."""
        self._running = False

        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None

        if self.cap is not None:
            self.cap.release()
            self.cap = None

        with self._lock:
            self._latest = None

        logger.info("Camera stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
