"""
Hand Tracking Module - MediaPipe Hand Landmark Detection
=========================================================
Wraps the MediaPipe Tasks hand landmarker for the gesture thread and
converts its output into HandData. Also draws the landmark skeleton for
the webcam inset.
"""

import logging
import urllib.request
from pathlib import Path
from typing import List, Optional, Tuple

import cv2
import mediapipe as mp
import numpy as np
from mediapipe.tasks import python
from mediapipe.tasks.python import vision

from gesture_galaxy.landmarks import (
    FINGERTIPS, HandData, HandLandmark, VideoClock, hands_from_result
)

logger = logging.getLogger(__name__)


MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/"
    "hand_landmarker/float16/1/hand_landmarker.task"
)
DEFAULT_MODEL_PATH = Path.home() / ".cache" / "gesture_galaxy" / "hand_landmarker.task"

# Each finger is a chain of four joints starting at the wrist
_FINGER_CHAINS = [
    [HandLandmark.WRIST] + [HandLandmark(base + k) for k in range(4)]
    for base in (1, 5, 9, 13, 17)
]
_PALM = [HandLandmark.INDEX_MCP, HandLandmark.MIDDLE_MCP, HandLandmark.RING_MCP, HandLandmark.PINKY_MCP]

# Bones drawn in the webcam preview
HAND_CONNECTIONS = [
    pair for chain in _FINGER_CHAINS + [_PALM] for pair in zip(chain, chain[1:])
]


def _download_model(model_path: Path) -> None:
    """Fetch the landmarker model; a partial download never lands at `model_path`."""
    logger.info("Downloading hand landmarker model from %s", MODEL_URL)
    model_path.parent.mkdir(parents=True, exist_ok=True)
    partial = model_path.with_suffix(model_path.suffix + ".part")
    try:
        urllib.request.urlretrieve(MODEL_URL, partial)
        partial.replace(model_path)
    finally:
        if partial.exists():
            partial.unlink()
    logger.info("Model saved to %s", model_path)


class HandTracker:
    """
    MediaPipe HandLandmarker wrapper producing HandData.

    Runs in VIDEO mode: the landmarker tracks hands across consecutive
    frames and only falls back to full palm detection when tracking is lost,
    which keeps per-frame latency low enough for the gesture thread.
    """

    def __init__(
        self,
        max_hands: int = 1,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        model_path: Optional[Path] = None
    ):
        """
        Load the landmarker (downloading the model on first use).

        Args:
            max_hands: Hands reported per frame; the gesture pipeline uses one
            min_detection_confidence: Palm detection / hand presence threshold
            min_tracking_confidence: Landmark tracking threshold
            model_path: Location of the .task model file

        Raises:
            OSError: If the model is missing and cannot be downloaded
        """
        self.model_path = Path(model_path) if model_path else DEFAULT_MODEL_PATH
        if not self.model_path.exists():
            _download_model(self.model_path)

        self.detector = vision.HandLandmarker.create_from_options(
            vision.HandLandmarkerOptions(
                base_options=python.BaseOptions(model_asset_path=str(self.model_path)),
                running_mode=vision.RunningMode.VIDEO,
                num_hands=max_hands,
                min_hand_detection_confidence=min_detection_confidence,
                min_hand_presence_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
        )
        logger.info("Hand landmarker loaded from %s", self.model_path)

        self._clock = VideoClock()

    def process(self, frame: np.ndarray) -> List[HandData]:
        """
        Detect hands in a BGR frame.

        Returns:
            One HandData per detected hand (empty list if none)
        """
        height, width = frame.shape[:2]
        image = mp.Image(
            image_format=mp.ImageFormat.SRGB,
            data=cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        )
        result = self.detector.detect_for_video(image, self._clock.next_timestamp())
        return hands_from_result(result, (width, height))

    def release(self):
        """Close the landmarker. Safe to call twice."""
        if self.detector is not None:
            self.detector.close()
            self.detector = None


def draw_landmarks(
    frame: np.ndarray,
    hand_data: HandData,
    landmark_color: Tuple[int, int, int] = (0, 255, 0),
    connection_color: Tuple[int, int, int] = (255, 255, 255),
    thickness: int = 2
) -> np.ndarray:
    """
    Draw hand landmarks on frame.

    Pixel coordinates in `hand_data` must refer to this frame's size.

    Returns:
        Frame with landmarks drawn
    """
    for start, end in HAND_CONNECTIONS:
        p1 = hand_data.landmarks.get(start)
        p2 = hand_data.landmarks.get(end)
        if p1 and p2:
            cv2.line(frame, p1.to_tuple(), p2.to_tuple(), connection_color, thickness)

    for landmark, point in hand_data.landmarks.items():
        if landmark in FINGERTIPS:
            color = (0, 0, 255)  # Red for fingertips
            radius = 6
        else:
            color = landmark_color
            radius = 4

        cv2.circle(frame, point.to_tuple(), radius, color, -1)
        cv2.circle(frame, point.to_tuple(), radius, (0, 0, 0), 1)

    return frame
