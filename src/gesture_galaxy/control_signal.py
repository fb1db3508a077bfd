"""
Control Signal Module - Shared Dispersion Scalar
================================================
ControlSignal is the value shared between the gesture pipeline and the
render loop:
- the gesture thread is the only writer of `target`
- the render loop is the only writer of `current` (through the controller)

Reads are last-write-wins. The render loop may see a target a few camera
frames old; intermediate gesture updates may be skipped. Attribute
assignment of a float is atomic, so no lock is taken.

DispersionController advances `current` toward `target` once per tick with
a first-order exponential filter.
"""

import math
from enum import Enum, auto
from typing import Optional

from gesture_galaxy.config import ConfigurationError


INITIAL_CURRENT = 1.0   # Start fully dispersed
INITIAL_TARGET = 0.0    # No hand yet
REFERENCE_FPS = 60.0


def _clamp01(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


class ControlSignal:
    """
    Dispersion value shared by reference between the gesture task and the
    render task. 0 = assembled, 1 = dispersed.
    """

    def __init__(self, current: float = INITIAL_CURRENT, target: float = INITIAL_TARGET):
        self._current = _clamp01(float(current))
        self._target = _clamp01(float(target))

    @property
    def target(self) -> float:
        return self._target

    @property
    def current(self) -> float:
        return self._current

    def set_target(self, raw: float):
        """Publish a new raw openness (clamped into [0, 1])."""
        self._target = _clamp01(float(raw))

    def get_current(self) -> float:
        return self._current

    def set_current(self, value: float):
        """Store a new smoothed value (render loop only)."""
        self._current = _clamp01(value)

    def reset(self, current: float = INITIAL_CURRENT, target: float = INITIAL_TARGET):
        """Reinitialize both values."""
        self._current = _clamp01(float(current))
        self._target = _clamp01(float(target))


class SmoothingMode(Enum):
    """How the smoothing factor is applied per tick."""
    LEGACY = auto()             # Fixed factor per tick (frame-rate dependent)
    TIME_NORMALIZED = auto()    # Factor scaled by elapsed time


def smooth_step(current: float, target: float, smoothing: float) -> float:
    """One step of the exponential filter, clamped into [0, 1]."""
    return _clamp01(current + (target - current) * smoothing)


class DispersionController:
    """
    Smooths the raw gesture target into the animation scalar.

    In LEGACY mode each tick moves `current` by a fixed fraction of the
    remaining distance. TIME_NORMALIZED mode rescales that fraction by the
    frame time so that the response matches LEGACY at REFERENCE_FPS.
    """

    def __init__(
        self,
        signal: ControlSignal,
        smoothing: float = 0.05,
        mode: SmoothingMode = SmoothingMode.LEGACY,
        reference_fps: float = REFERENCE_FPS
    ):
        """
        Initialize the controller.

        Args:
            signal: Shared control signal
            smoothing: Fraction of the gap closed per tick, in (0, 1]
            mode: Smoothing mode
            reference_fps: Tick rate at which both modes agree
        """
        self.signal = signal
        self.mode = mode
        self.reference_fps = reference_fps
        self._smoothing = 0.0
        self.smoothing = smoothing

    @property
    def smoothing(self) -> float:
        return self._smoothing

    @smoothing.setter
    def smoothing(self, value: float):
        if not 0.0 < value <= 1.0:
            raise ConfigurationError(f"smoothing must be in (0, 1], got {value}")
        self._smoothing = float(value)

    def _alpha(self, dt: Optional[float]) -> float:
        if self.mode is SmoothingMode.TIME_NORMALIZED and dt is not None:
            if dt <= 0.0:
                return 0.0
            return 1.0 - (1.0 - self._smoothing) ** (dt * self.reference_fps)
        return self._smoothing

    def tick(self, dt: Optional[float] = None) -> float:
        """
        Advance `current` one step toward the latest target.

        Args:
            dt: Seconds since the previous tick (used in TIME_NORMALIZED mode)

        Returns:
            The new current value
        """
        current = smooth_step(self.signal.current, self.signal.target, self._alpha(dt))
        self.signal.set_current(current)
        return current
