"""
Motion Module - Per-Frame Particle Positions
============================================
Combines the assembled and dispersed buffers into the positions drawn each
frame:
- the galaxy side drifts along a simplex-noise flow field
- the tree side "breathes" slightly while nearly assembled

Every particle is computed independently, so a whole buffer is evaluated as
numpy array operations.
"""

import math
from typing import Callable, Dict

import numpy as np

from gesture_galaxy.geometry import ParticleGroup, ParticleSet
from gesture_galaxy.noise import snoise3


# Flow field
FLOW_FREQUENCY = 0.05
FLOW_AMPLITUDE = 3.0
FLOW_PHASE_Y = 10.0
FLOW_PHASE_Z = 20.0

# Breathing near the assembled state
BREATH_THRESHOLD = 0.2
BREATH_SPEED = 1.5
BREATH_WAVELENGTH = 0.5
BREATH_AMPLITUDE = 0.002


def flow_offsets(dispersed: np.ndarray, time: float, flow_speed: float) -> np.ndarray:
    """
    Sample the flow field for each galaxy position.

    The three channels read the same noise field at shifted times so the
    axes drift independently.
    """
    nx = dispersed[:, 0] * FLOW_FREQUENCY
    ny = dispersed[:, 1] * FLOW_FREQUENCY
    flow_time = time * flow_speed

    return np.column_stack([
        snoise3(nx, ny, flow_time),
        snoise3(nx, ny, flow_time + FLOW_PHASE_Y),
        snoise3(nx, ny, flow_time + FLOW_PHASE_Z),
    ])


def evaluate_positions(
    particles: ParticleSet,
    current: float,
    time: float,
    flow_speed: float
) -> np.ndarray:
    """
    Compute final positions for one frame.

    Args:
        particles: Particle buffers
        current: Smoothed dispersion in [0, 1]
        time: Elapsed seconds
        flow_speed: Flow field speed (>= 0)

    Returns:
        (count, 3) float32 array, same order as the particle set
    """
    if particles.count == 0:
        return np.zeros((0, 3), dtype=np.float32)

    current = max(0.0, min(1.0, float(current)))
    assembled = particles.assembled.astype(np.float64)
    dispersed = particles.dispersed.astype(np.float64)

    galaxy = dispersed + flow_offsets(dispersed, time, flow_speed) * (FLOW_AMPLITUDE * current)
    final = assembled + (galaxy - assembled) * current

    if current < BREATH_THRESHOLD:
        breath = (
            np.sin(time * BREATH_SPEED + final[:, 1] * BREATH_WAVELENGTH)
            * BREATH_AMPLITUDE * (1.0 - current)
        )
        final[:, 0] += final[:, 0] * breath
        final[:, 2] += final[:, 2] * breath

    return final.astype(np.float32)


# Point size multipliers with twinkle
def _accent_size(seed: np.ndarray, time: float) -> np.ndarray:
    return 4.0 * (0.8 + np.sin(time * 2.0 + seed * 50.0) * 0.2)


def _body_size(seed: np.ndarray, time: float) -> np.ndarray:
    return np.ones_like(seed)


def _halo_size(seed: np.ndarray, time: float) -> np.ndarray:
    return 1.2 * (0.9 + np.sin(time * 4.0 + seed * 100.0) * 0.1)


def _field_size(seed: np.ndarray, time: float) -> np.ndarray:
    return 1.1 * (0.5 + 0.5 * np.sin(time * 1.5 + seed * 123.45))


_GROUP_SIZES: Dict[ParticleGroup, Callable[[np.ndarray, float], np.ndarray]] = {
    ParticleGroup.BODY: _body_size,
    ParticleGroup.HALO: _halo_size,
    ParticleGroup.FIELD: _field_size,
}


def point_sizes(particles: ParticleSet, time: float) -> np.ndarray:
    """
    Per-particle size multipliers including twinkle.

    Accents are large and twinkle regardless of group; other particles
    follow their group's rule.
    """
    sizes = np.empty(particles.count, dtype=np.float32)
    seed = particles.seed.astype(np.float64)

    for group, rule in _GROUP_SIZES.items():
        mask = particles.group == group
        sizes[mask] = rule(seed[mask], time)

    accents = particles.is_accent
    sizes[accents] = _accent_size(seed[accents], time)
    return sizes


class ParticleMotionModel:
    """Evaluates frame positions for a fixed particle set."""

    def __init__(self, particles: ParticleSet):
        self.particles = particles

    @property
    def count(self) -> int:
        return self.particles.count

    def evaluate(self, current: float, time: float, flow_speed: float) -> np.ndarray:
        """Final (count, 3) positions for this frame."""
        return evaluate_positions(self.particles, current, time, flow_speed)

    def sizes(self, time: float) -> np.ndarray:
        return point_sizes(self.particles, time)


# Topper ornament
TOPPER_POSITION = (0.0, 10.5, 0.0)
TOPPER_SMOOTHING = 0.1
TOPPER_HIDE_BELOW = 0.1
TOPPER_SPIN = 0.02   # Radians per tick


class TopperState:
    """
    Scale and spin of the star on top of the tree.

    The star is fully visible when assembled and vanishes as the display
    disperses. Its scale follows `1 - current` through its own filter; any
    target below TOPPER_HIDE_BELOW is treated as 0 so the star disappears
    instead of lingering as a speck.
    """

    def __init__(self, scale: float = 1.0):
        self.scale = scale
        self.rotation = 0.0
        self.position = TOPPER_POSITION

    def update(self, current: float) -> float:
        """
        Advance one tick.

        Returns:
            The new scale
        """
        target = 1.0 - max(0.0, min(1.0, current))
        if target < TOPPER_HIDE_BELOW:
            target = 0.0

        self.scale += (target - self.scale) * TOPPER_SMOOTHING
        self.rotation = (self.rotation + TOPPER_SPIN) % (2.0 * math.pi)
        return self.scale

    @property
    def visible(self) -> bool:
        return self.scale > 1e-3
