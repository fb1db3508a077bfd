"""
Landmarks Module - Hand Landmark Data Model
===========================================
Landmark indices and point/hand containers shared by the tracker and the
gesture signal extractor, plus the conversion of landmarker results. Kept
free of MediaPipe so the gesture math can be used (and tested) without the
inference backend.
"""

import math
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Dict, List, Optional, Sequence, Tuple


class HandLandmark(IntEnum):
    """
    MediaPipe hand landmark indices.
    Reference: https://mediapipe.dev/images/mobile/hand_landmarks.png
    """
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


FINGERTIPS = (
    HandLandmark.THUMB_TIP,
    HandLandmark.INDEX_TIP,
    HandLandmark.MIDDLE_TIP,
    HandLandmark.RING_TIP,
    HandLandmark.PINKY_TIP,
)


@dataclass
class Point:
    """Represents a 2D/3D point with normalized and pixel coordinates."""
    x: float  # Normalized x (0-1)
    y: float  # Normalized y (0-1)
    z: float  # Normalized z (depth)
    px: int   # Pixel x coordinate
    py: int   # Pixel y coordinate

    def to_tuple(self) -> Tuple[int, int]:
        """Return pixel coordinates as tuple."""
        return (self.px, self.py)

    def planar_distance_to(self, other: 'Point') -> float:
        """Euclidean distance in the image plane (normalized x, y)."""
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass
class HandData:
    """
    Contains all data for a detected hand.

    Attributes:
        landmarks: Dict mapping HandLandmark to Point
        handedness: 'Left' or 'Right'
        confidence: Detection confidence score
    """
    landmarks: Dict[HandLandmark, Point]
    handedness: str = "Right"
    confidence: float = 0.0

    def get_landmark(self, landmark: HandLandmark) -> Optional[Point]:
        """Get a specific landmark point."""
        return self.landmarks.get(landmark)

    @classmethod
    def from_normalized(
        cls,
        coords: Sequence[Sequence[float]],
        frame_size: Tuple[int, int] = (1, 1),
        handedness: str = "Right",
        confidence: float = 0.0
    ) -> 'HandData':
        """
        Build HandData from normalized (x, y[, z]) coordinates in landmark order.

        Args:
            coords: One entry per landmark, index order as in HandLandmark
            frame_size: (width, height) used for pixel coordinates
            handedness: 'Left' or 'Right'
            confidence: Detection confidence
        """
        width, height = frame_size
        landmarks = {}
        for idx, coord in enumerate(coords[:len(HandLandmark)]):
            x, y = float(coord[0]), float(coord[1])
            z = float(coord[2]) if len(coord) > 2 else 0.0
            px = max(0, min(int(x * width), width - 1))
            py = max(0, min(int(y * height), height - 1))
            landmarks[HandLandmark(idx)] = Point(x=x, y=y, z=z, px=px, py=py)
        return cls(landmarks=landmarks, handedness=handedness, confidence=confidence)


def hands_from_result(result, frame_size: Tuple[int, int]) -> List[HandData]:
    """
    Convert a hand landmarker result into HandData, one per detected hand.

    `result` needs `hand_landmarks` (per hand, landmarks with x, y, z) and
    `handedness` (per hand, categories with category_name and score). Hands
    without a handedness entry default to "Right" with confidence 0.
    """
    handedness = result.handedness or []
    hands = []
    for idx, landmarks in enumerate(result.hand_landmarks or []):
        label, score = "Right", 0.0
        if idx < len(handedness) and handedness[idx]:
            label = handedness[idx][0].category_name
            score = handedness[idx][0].score

        hands.append(HandData.from_normalized(
            [(lm.x, lm.y, lm.z) for lm in landmarks],
            frame_size=frame_size,
            handedness=label,
            confidence=score,
        ))
    return hands


class VideoClock:
    """
    Millisecond timestamps for VIDEO-mode detection.

    The landmarker rejects a timestamp that is not greater than the previous
    one, so two frames within the same millisecond still get distinct values.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._start = clock()
        self._last_ms = -1

    def next_timestamp(self) -> int:
        elapsed_ms = int((self._clock() - self._start) * 1000)
        self._last_ms = max(elapsed_ms, self._last_ms + 1)
        return self._last_ms
