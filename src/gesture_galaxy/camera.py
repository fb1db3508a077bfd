"""
Camera Module - Latest-Frame Webcam Source
==========================================
A webcam reader for the gesture session. A daemon thread pulls frames from
OpenCV as fast as the device delivers them and keeps only the newest one,
numbered, so the consumer can tell a new frame from one it has already
processed without ever blocking on the device.
"""

import logging
import threading
import time
from typing import List, Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


# Consecutive failed reads before the stream is reported as stalled
STALL_READS = 100


class Camera:
    """
    Webcam frame source.

    Implements what GestureSession expects of a camera: start() -> bool,
    frame_id, get_frame() and stop().
    """

    def __init__(
        self,
        camera_id: int = 0,
        resolution: Tuple[int, int] = (640, 480),
        fps: int = 30,
        mirror: bool = True,
        backend: int = cv2.CAP_ANY
    ):
        """
        Args:
            camera_id: Camera device index
            resolution: Requested (width, height); the device may choose another
            fps: Requested frame rate
            mirror: Flip frames horizontally so the preview acts like a mirror
            backend: OpenCV capture backend
        """
        self.camera_id = camera_id
        self.resolution = resolution
        self.fps = fps
        self.mirror = mirror
        self.backend = backend

        self._cap: Optional[cv2.VideoCapture] = None
        self._reader: Optional[threading.Thread] = None
        self._stop = threading.Event()

        self._lock = threading.Lock()
        self._latest: Optional[np.ndarray] = None
        self._count = 0

    def start(self) -> bool:
        """
        Open the device and start the reader thread.

        Returns:
            False if the device could not be opened
        """
        cap = cv2.VideoCapture(self.camera_id, self.backend)
        if not cap.isOpened():
            cap.release()
            logger.error("Camera %d could not be opened", self.camera_id)
            return False

        width, height = self.resolution
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        cap.set(cv2.CAP_PROP_FPS, self.fps)
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        self.resolution = (
            int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )

        self._cap = cap
        self._stop.clear()
        self._reader = threading.Thread(target=self._read_frames, daemon=True)
        self._reader.start()

        logger.info("Camera %d streaming at %dx%d", self.camera_id, *self.resolution)
        return True

    def _read_frames(self):
        failures = 0
        while not self._stop.is_set():
            ok, frame = self._cap.read()
            if not ok:
                failures += 1
                if failures == STALL_READS:
                    logger.warning("Camera %d stopped delivering frames", self.camera_id)
                time.sleep(0.001)
                continue

            if failures >= STALL_READS:
                logger.info("Camera %d recovered", self.camera_id)
            failures = 0

            if self.mirror:
                frame = cv2.flip(frame, 1)
            with self._lock:
                self._latest = frame
                self._count += 1

    @property
    def frame_id(self) -> int:
        """Sequence number of the newest frame (0 before the first one)."""
        with self._lock:
            return self._count

    def get_frame(self) -> Optional[np.ndarray]:
        """Copy of the newest frame, or None if nothing has arrived yet."""
        with self._lock:
            return None if self._latest is None else self._latest.copy()

    def stop(self):
        """Stop the reader and release the device. Safe to call twice."""
        self._stop.set()
        if self._reader is not None:
            self._reader.join(timeout=1.0)
            self._reader = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Camera %d released", self.camera_id)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False


def list_available_cameras(max_cameras: int = 10, backend: int = cv2.CAP_ANY) -> List[int]:
    """Indices of the camera devices that open."""
    found = []
    for index in range(max_cameras):
        cap = cv2.VideoCapture(index, backend)
        if cap.isOpened():
            found.append(index)
        cap.release()
    return found
