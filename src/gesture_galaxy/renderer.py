"""
Renderer Module - Preview Drawing
=================================
Minimal OpenCV preview of the particle display: a pinhole camera orbiting the
tree, additive point splatting per group colour, accent dots, the topper star
and the caption particles.

This is a viewer for the motion model, not a compositor; there is no bloom
or depth sorting.
"""

import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import cv2
import numpy as np

from gesture_galaxy.geometry import ParticleGroup, ParticleSet
from gesture_galaxy.motion import TopperState

BGR = Tuple[int, int, int]


@dataclass(frozen=True)
class Theme:
    """Colour theme (BGR)."""
    id: str
    name: str
    primary: BGR      # Tree body
    secondary: BGR    # Halo
    accent: BGR       # Ornaments / stars
    background: BGR


THEMES: List[Theme] = [
    Theme('christmas_night', 'Christmas Eve',
          primary=(0, 100, 0), secondary=(0, 215, 255),
          accent=(0, 0, 255), background=(16, 5, 2)),
    Theme('frozen_dream', 'Frozen',
          primary=(209, 206, 0), secondary=(255, 255, 224),
          accent=(255, 255, 255), background=(32, 16, 0)),
    Theme('neon_synth', 'Cyberpunk',
          primary=(255, 0, 255), secondary=(255, 255, 0),
          accent=(0, 255, 255), background=(16, 0, 16)),
]

STAR_COLOR = (0, 215, 255)
CAPTION_COLOR = np.array([0.4, 0.85, 1.0])  # BGR
ORNAMENT_TINT = np.array([0.2, 0.2, 1.0])   # BGR


def _to_unit(color: BGR) -> np.ndarray:
    return np.asarray(color, dtype=np.float64) / 255.0


def _body_colors(theme: Theme, seed: np.ndarray) -> np.ndarray:
    base = _to_unit(theme.primary)
    return base[None, :] * (1.0 - 0.4 * seed[:, None])


def _halo_colors(theme: Theme, seed: np.ndarray) -> np.ndarray:
    return np.repeat(_to_unit(theme.secondary)[None, :], seed.shape[0], axis=0)


def _field_colors(theme: Theme, seed: np.ndarray) -> np.ndarray:
    base = _to_unit(theme.accent)
    mix = seed[:, None] * 0.4
    return base[None, :] * (1.0 - mix) + mix


_GROUP_COLORS: Dict[ParticleGroup, Callable[[Theme, np.ndarray], np.ndarray]] = {
    ParticleGroup.BODY: _body_colors,
    ParticleGroup.HALO: _halo_colors,
    ParticleGroup.FIELD: _field_colors,
}


def particle_colors(particles: ParticleSet, theme: Theme) -> np.ndarray:
    """Per-particle base colour in [0, 1] BGR, (count, 3)."""
    colors = np.empty((particles.count, 3), dtype=np.float64)
    seed = particles.seed.astype(np.float64)
    for group, rule in _GROUP_COLORS.items():
        mask = particles.group == group
        colors[mask] = rule(theme, seed[mask])

    accents = particles.is_accent
    colors[accents] = colors[accents] * 0.5 + ORNAMENT_TINT * 0.5
    return colors


class ParticleRenderer:
    """
    Projects and draws particles into a BGR image.

    The camera sits at `eye` looking at the origin; the scene turns about the
    vertical axis to mimic an orbiting camera.
    """

    def __init__(
        self,
        width: int = 960,
        height: int = 540,
        fov_degrees: float = 40.0,
        eye: Tuple[float, float, float] = (0.0, 5.0, 20.0),
        point_intensity: float = 0.35
    ):
        self.width = width
        self.height = height
        self.fov_degrees = fov_degrees
        self.eye = np.asarray(eye, dtype=np.float64)
        self.point_intensity = point_intensity

        forward = -self.eye / np.linalg.norm(self.eye)
        right = np.cross(forward, np.array([0.0, 1.0, 0.0]))
        right /= np.linalg.norm(right)
        up = np.cross(right, forward)
        self._basis = np.stack([right, up, forward])
        self._focal = (height / 2.0) / math.tan(math.radians(fov_degrees) / 2.0)

    def project(self, points: np.ndarray, yaw: float = 0.0):
        """
        Project world points to pixels.

        Args:
            points: (n, 3) world positions
            yaw: Scene rotation about the y axis (radians)

        Returns:
            Tuple (px int array, py int array, depth array, visible mask)
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        c, s = math.cos(yaw), math.sin(yaw)
        rotated = np.column_stack([
            points[:, 0] * c + points[:, 2] * s,
            points[:, 1],
            -points[:, 0] * s + points[:, 2] * c,
        ])

        cam = (rotated - self.eye) @ self._basis.T
        depth = cam[:, 2]
        safe = np.where(depth > 1e-6, depth, 1.0)

        px = np.round(self.width / 2.0 + self._focal * cam[:, 0] / safe).astype(np.int64)
        py = np.round(self.height / 2.0 - self._focal * cam[:, 1] / safe).astype(np.int64)

        visible = (
            (depth > 0.1)
            & (px >= 0) & (px < self.width)
            & (py >= 0) & (py < self.height)
        )
        return px, py, depth, visible

    def _splat(self, canvas: np.ndarray, px, py, colors: np.ndarray):
        index = py * self.width + px
        size = self.width * self.height
        for channel in range(3):
            canvas[..., channel] += np.bincount(
                index, weights=colors[:, channel], minlength=size
            ).reshape(self.height, self.width)

    def _draw_star(self, frame: np.ndarray, topper: TopperState, yaw: float):
        px, py, depth, visible = self.project(np.asarray([topper.position]), yaw)
        if not visible[0] or not topper.visible:
            return

        outer = 0.5 * topper.scale * self._focal / depth[0]
        inner = 0.15 * topper.scale * self._focal / depth[0]
        # The star spins about y, which on screen narrows it horizontally
        squash = abs(math.cos(topper.rotation)) * 0.8 + 0.2

        points = []
        for i in range(10):
            radius = outer if i % 2 == 0 else inner
            angle = i / 10.0 * 2.0 * math.pi + math.pi / 2.0
            points.append((
                px[0] + math.cos(angle) * radius * squash,
                py[0] - math.sin(angle) * radius,
            ))
        cv2.fillPoly(frame, [np.round(points).astype(np.int32)], STAR_COLOR, cv2.LINE_AA)

    def render(
        self,
        positions: np.ndarray,
        particles: ParticleSet,
        sizes: np.ndarray,
        theme: Theme,
        yaw: float = 0.0,
        topper: Optional[TopperState] = None,
        caption: Optional[Tuple[np.ndarray, np.ndarray]] = None
    ) -> np.ndarray:
        """
        Draw one frame.

        Args:
            positions: (count, 3) positions from the motion model
            particles: The particle set the positions belong to
            sizes: (count,) size multipliers (used as brightness for dust)
            theme: Colour theme
            yaw: Orbit angle
            topper: Star state, drawn if visible
            caption: (positions, alpha) of caption particles

        Returns:
            BGR uint8 image
        """
        canvas = np.empty((self.height, self.width, 3), dtype=np.float64)
        canvas[:] = _to_unit(theme.background)

        if particles.count:
            px, py, _, visible = self.project(positions, yaw)
            colors = particle_colors(particles, theme)
            weights = sizes.astype(np.float64) * self.point_intensity

            dust = visible & ~particles.is_accent
            self._splat(canvas, px[dust], py[dust], colors[dust] * weights[dust, None])

        if caption is not None and caption[0].shape[0]:
            cpx, cpy, _, cvisible = self.project(caption[0], yaw)
            calpha = caption[1].astype(np.float64)[cvisible] * self.point_intensity * 2.0
            self._splat(canvas, cpx[cvisible], cpy[cvisible], CAPTION_COLOR[None, :] * calpha[:, None])

        frame = np.round(np.clip(canvas, 0.0, 1.0) * 255).astype(np.uint8)

        if particles.count:
            accents = np.nonzero(visible & particles.is_accent)[0]
            for idx in accents:
                color = tuple(int(v) for v in np.clip(colors[idx] * 255, 0, 255))
                radius = max(1, int(round(sizes[idx] * 0.5)))
                cv2.circle(frame, (int(px[idx]), int(py[idx])), radius, color, -1, cv2.LINE_AA)

        if topper is not None:
            self._draw_star(frame, topper, yaw)

        return frame
