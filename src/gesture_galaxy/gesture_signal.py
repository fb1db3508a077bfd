"""
Gesture Signal Module - Hand Openness
=====================================
Turns one frame's hand landmarks into an openness value in [0, 1]:
0 = closed fist (assembled tree), 1 = open hand (dispersed galaxy).

Openness uses the average wrist-to-fingertip distance divided by the
wrist-to-index-knuckle distance, so it does not depend on how far the hand
is from the camera.
"""

import logging
from typing import Optional

from gesture_galaxy.landmarks import FINGERTIPS, HandData, HandLandmark

logger = logging.getLogger(__name__)


# Calibration (tip distance / palm size)
FIST_RATIO = 1.2    # At or below: fully closed
OPEN_RATIO = 2.0    # At or above: fully open

# Returned when no usable hand is in the frame
NO_HAND_OPENNESS = 0.0


def openness_from_ratio(ratio: float) -> float:
    """Map a tip/palm ratio linearly onto [0, 1], clamped."""
    openness = (ratio - FIST_RATIO) / (OPEN_RATIO - FIST_RATIO)
    return max(0.0, min(1.0, openness))


def hand_ratio(hand: HandData) -> Optional[float]:
    """
    Average fingertip distance from the wrist, in palm-size units.

    Returns:
        The ratio, or None if landmarks are missing or the palm is degenerate
    """
    wrist = hand.get_landmark(HandLandmark.WRIST)
    knuckle = hand.get_landmark(HandLandmark.INDEX_MCP)
    tips = [hand.get_landmark(tip) for tip in FINGERTIPS]

    if wrist is None or knuckle is None or any(tip is None for tip in tips):
        return None

    palm_size = wrist.planar_distance_to(knuckle)
    if palm_size <= 0.0:
        return None

    avg_tip_dist = sum(tip.planar_distance_to(wrist) for tip in tips) / len(tips)
    return avg_tip_dist / palm_size


class GestureSignalExtractor:
    """
    Converts hand observations into raw openness values.

    No hand means "fist": the value drops to 0 on every frame without a
    detection instead of holding the last reading, so the display settles
    into the assembled tree when nobody is in front of the camera.
    """

    def __init__(self):
        self.last_ratio: Optional[float] = None

    def extract(self, hand: Optional[HandData]) -> float:
        """
        Compute openness for one frame.

        Args:
            hand: Detected hand, or None if no hand was found

        Returns:
            Openness in [0, 1]
        """
        if hand is None:
            self.last_ratio = None
            return NO_HAND_OPENNESS

        ratio = hand_ratio(hand)
        self.last_ratio = ratio
        if ratio is None:
            logger.debug("Incomplete or degenerate hand landmarks, treating as no hand")
            return NO_HAND_OPENNESS

        return openness_from_ratio(ratio)
