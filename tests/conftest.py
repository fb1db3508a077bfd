import math

import numpy as np
import pytest

from gesture_galaxy.geometry import generate_particles
from gesture_galaxy.landmarks import FINGERTIPS, HandData, HandLandmark


def _build_hand(ratio, palm=0.1, wrist=(0.5, 0.8), z=0.0):
    """
    Build a hand whose average fingertip distance is `ratio` palm sizes.

    Fingertips fan out above the wrist; all other landmarks sit on the wrist.
    """
    coords = [(wrist[0], wrist[1], z)] * len(HandLandmark)
    coords = list(coords)

    coords[HandLandmark.INDEX_MCP] = (wrist[0], wrist[1] - palm, z)

    for k, tip in enumerate(FINGERTIPS):
        angle = math.radians(50 + 20 * k)
        dist = ratio * palm
        coords[tip] = (
            wrist[0] + math.cos(angle) * dist,
            wrist[1] - math.sin(angle) * dist,
            z,
        )

    return HandData.from_normalized(coords, frame_size=(640, 480))


@pytest.fixture
def make_hand():
    return _build_hand


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def particles(rng):
    return generate_particles(5000, rng)
