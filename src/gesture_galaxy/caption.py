"""
Caption Module - Text Particles
===============================
A line of text made of particles that floats in front of the tree when it is
assembled and scatters (and fades) with the galaxy.

The text is rasterized with OpenCV onto an offscreen canvas; every few pixels
of lit text become one particle.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


# Raster canvas
CANVAS_WIDTH = 1024
CANVAS_HEIGHT = 256
SAMPLE_STEP = 4
LIT_THRESHOLD = 128
FONT = cv2.FONT_HERSHEY_TRIPLEX
MAX_FONT_SCALE = 3.0
FONT_THICKNESS = 6

# World placement
PIXEL_SCALE = 0.012
CAPTION_DEPTH = 8.0         # In front of the tree
CAPTION_Y_OFFSET = -6.0
SCATTER_BOX = (40.0, 40.0, 20.0)

# Motion
DRIFT_THRESHOLD = 0.1
DRIFT_AMPLITUDE = 2.0


@dataclass(frozen=True)
class CaptionSet:
    """
    Caption particle buffers.

    Attributes:
        assembled: (n, 3) positions forming the text
        dispersed: (n, 3) scattered positions
        seed: (n,) per-particle random value in [0, 1)
    """
    assembled: np.ndarray
    dispersed: np.ndarray
    seed: np.ndarray

    @property
    def count(self) -> int:
        return int(self.seed.shape[0])


def rasterize_text(text: str) -> np.ndarray:
    """
    Draw centered white text on a black grayscale canvas.

    The font scale shrinks to keep long text inside the canvas.
    """
    canvas = np.zeros((CANVAS_HEIGHT, CANVAS_WIDTH), dtype=np.uint8)
    if not text:
        return canvas

    (base_w, base_h), _ = cv2.getTextSize(text, FONT, 1.0, FONT_THICKNESS)
    scale = min(MAX_FONT_SCALE, 0.9 * CANVAS_WIDTH / max(base_w, 1))

    (text_w, text_h), _ = cv2.getTextSize(text, FONT, scale, FONT_THICKNESS)
    origin = ((CANVAS_WIDTH - text_w) // 2, (CANVAS_HEIGHT + text_h) // 2)

    cv2.putText(canvas, text, origin, FONT, scale, 255, FONT_THICKNESS, cv2.LINE_AA)
    return canvas


def generate_caption(
    text: str = "Merry Christmas",
    rng: Optional[np.random.Generator] = None
) -> CaptionSet:
    """
    Build caption particles for `text`.

    Args:
        text: Caption text; empty text gives an empty set
        rng: Random source for scatter positions and seeds

    Returns:
        CaptionSet
    """
    if rng is None:
        rng = np.random.default_rng()

    canvas = rasterize_text(text)
    sampled = canvas[::SAMPLE_STEP, ::SAMPLE_STEP]
    rows, cols = np.nonzero(sampled > LIT_THRESHOLD)

    y_px = rows * SAMPLE_STEP
    x_px = cols * SAMPLE_STEP
    n = x_px.shape[0]

    assembled = np.column_stack([
        (x_px - CANVAS_WIDTH / 2) * PIXEL_SCALE,
        -(y_px - CANVAS_HEIGHT / 2) * PIXEL_SCALE + CAPTION_Y_OFFSET,
        np.full(n, CAPTION_DEPTH),
    ]).astype(np.float32).reshape(n, 3)

    box = np.asarray(SCATTER_BOX)
    dispersed = (rng.random((n, 3)) - 0.5) * box
    dispersed[:, 1] += CAPTION_Y_OFFSET

    seed = rng.random(n, dtype=np.float32)

    logger.debug("Caption %r -> %d particles", text, n)
    return CaptionSet(
        assembled=assembled,
        dispersed=dispersed.astype(np.float32),
        seed=seed,
    )


def _smoothstep(edge0: float, edge1: float, x: np.ndarray) -> np.ndarray:
    t = np.clip((x - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def evaluate_caption(
    caption: CaptionSet,
    current: float,
    time: float
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Positions and opacity of caption particles for one frame.

    Returns:
        (positions (n, 3) float32, alpha (n,) float32 in [0, 1])
    """
    current = max(0.0, min(1.0, float(current)))
    seed = caption.seed.astype(np.float64)

    final = caption.assembled + (caption.dispersed - caption.assembled) * current
    final = final.astype(np.float64)

    if current > DRIFT_THRESHOLD:
        final[:, 0] += np.sin(time * 0.5 + seed * 10.0) * DRIFT_AMPLITUDE * current
        final[:, 1] += np.cos(time * 0.3 + seed * 10.0) * DRIFT_AMPLITUDE * current

    alpha = 1.0 - _smoothstep(0.5, 1.0, current + seed * 0.5)
    return final.astype(np.float32), alpha.astype(np.float32)
