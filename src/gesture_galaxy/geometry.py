"""
Geometry Module - Dual Particle Buffers
=======================================
Builds the two parallel position buffers for the display:
- assembled: the tree (cone body, spiral halo, background star field)
- dispersed: a three-armed spiral galaxy

Every particle also gets a group tag, an accent flag and a stable random seed.
Generation is batch and one-shot; GeometryService runs it in the background
and makes sure a superseded request never replaces a newer one.
"""

import math
import logging
import threading
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class ParticleGroup(IntEnum):
    """Particle groups, stored per particle in ParticleSet.group."""
    BODY = 0    # Volumetric cone
    HALO = 1    # Spiral ornament band
    FIELD = 2   # Background star field


class GenerationFailure(RuntimeError):
    """Raised when a particle set cannot be allocated."""


# Group partition
BODY_RATIO = 0.60
HALO_END_RATIO = 0.85

# Tree shape
TREE_HEIGHT = 25.0
TREE_BASE_RADIUS = 10.0
TREE_Y_SHIFT = -2.0
BODY_RADIUS_SCALE = 0.95
ACCENT_SHELL = 0.7          # Accents sit in the outer 30% of the cone
ACCENT_PROBABILITY = 0.06

HALO_LOOPS = 5.5
HALO_RADIUS_OFFSET = 0.8
HALO_SPREAD = 0.15

FIELD_RADIUS = 25.0

# Galaxy shape
GALAXY_ARMS = 3
GALAXY_MIN_RADIUS = 40.0
GALAXY_RADIUS_JITTER = 20.0
GALAXY_SPIN = 0.2
GALAXY_THICKNESS = 0.2


def group_counts(count: int) -> Tuple[int, int, int]:
    """
    Split a particle count into (body, halo, field) sizes.

    Boundaries use floor with no rounding correction; the field absorbs
    the remainder.
    """
    if count <= 0:
        return 0, 0, 0
    body_end = int(math.floor(count * BODY_RATIO))
    halo_end = int(math.floor(count * HALO_END_RATIO))
    return body_end, halo_end - body_end, count - halo_end


@dataclass(frozen=True)
class ParticleSet:
    """
    Immutable particle buffers, one row per particle.

    Attributes:
        assembled: (count, 3) positions in the tree
        dispersed: (count, 3) positions in the galaxy
        group: (count,) ParticleGroup values
        is_accent: (count,) ornament / star flag
        seed: (count,) per-particle random value in [0, 1)
    """
    assembled: np.ndarray
    dispersed: np.ndarray
    group: np.ndarray
    is_accent: np.ndarray
    seed: np.ndarray

    def __post_init__(self):
        for array in (self.assembled, self.dispersed, self.group,
                      self.is_accent, self.seed):
            array.setflags(write=False)

    @property
    def count(self) -> int:
        return int(self.group.shape[0])

    def __len__(self) -> int:
        return self.count

    def group_slice(self, group: ParticleGroup) -> slice:
        """Index range occupied by a group."""
        body, halo, _ = group_counts(self.count)
        if group is ParticleGroup.BODY:
            return slice(0, body)
        if group is ParticleGroup.HALO:
            return slice(body, body + halo)
        if group is ParticleGroup.FIELD:
            return slice(body + halo, self.count)
        raise ValueError(f"Unknown particle group: {group!r}")

    @classmethod
    def empty(cls) -> "ParticleSet":
        return cls(
            assembled=np.zeros((0, 3), dtype=np.float32),
            dispersed=np.zeros((0, 3), dtype=np.float32),
            group=np.zeros(0, dtype=np.int8),
            is_accent=np.zeros(0, dtype=bool),
            seed=np.zeros(0, dtype=np.float32),
        )


def _body_positions(rng: np.random.Generator, accents: np.ndarray) -> np.ndarray:
    n = accents.shape[0]
    y_norm = rng.random(n)
    y = (y_norm - 0.5) * TREE_HEIGHT + TREE_Y_SHIFT
    max_r = TREE_BASE_RADIUS * (1.0 - y_norm)

    # Uniform disk for the body, outer shell for accents
    r_frac = np.where(
        accents,
        ACCENT_SHELL + (1.0 - ACCENT_SHELL) * rng.random(n),
        np.sqrt(rng.random(n)),
    )
    r = max_r * r_frac * BODY_RADIUS_SCALE
    theta = rng.random(n) * 2.0 * math.pi

    return np.column_stack([r * np.cos(theta), y, r * np.sin(theta)])


def halo_curve(count: int) -> np.ndarray:
    """Ideal (jitter-free) spiral points for a halo of `count` particles."""
    t = np.arange(count, dtype=np.float64) / max(count, 1)
    angle = t * 2.0 * math.pi * HALO_LOOPS
    y_base = (t - 0.5) * TREE_HEIGHT + TREE_Y_SHIFT
    main_radius = TREE_BASE_RADIUS * (1.0 - t) + HALO_RADIUS_OFFSET
    return np.column_stack([
        main_radius * np.cos(angle),
        y_base,
        main_radius * np.sin(angle),
    ])


def _halo_positions(rng: np.random.Generator, count: int) -> np.ndarray:
    jitter = (rng.random((count, 3)) - 0.5) * HALO_SPREAD
    return halo_curve(count) + jitter


def _field_positions(rng: np.random.Generator, count: int) -> np.ndarray:
    r = FIELD_RADIUS * np.cbrt(rng.random(count))
    theta = rng.random(count) * 2.0 * math.pi
    phi = np.arccos(2.0 * rng.random(count) - 1.0)
    return np.column_stack([
        r * np.sin(phi) * np.cos(theta),
        r * np.sin(phi) * np.sin(theta),
        r * np.cos(phi),
    ])


def _galaxy_positions(rng: np.random.Generator, count: int) -> np.ndarray:
    arm = np.arange(count) % GALAXY_ARMS
    arm_angle = arm / GALAXY_ARMS * 2.0 * math.pi

    outer = GALAXY_MIN_RADIUS + rng.random(count) * GALAXY_RADIUS_JITTER
    dist = rng.random(count) * outer
    angle = arm_angle + dist * GALAXY_SPIN

    # Disk thickens with distance from the core
    height = (rng.random(count) - 0.5) * dist * GALAXY_THICKNESS

    return np.column_stack([np.cos(angle) * dist, height, np.sin(angle) * dist])


def generate_particles(
    count: int,
    rng: Optional[np.random.Generator] = None
) -> ParticleSet:
    """
    Generate the assembled and dispersed buffers for `count` particles.

    Args:
        count: Number of particles; <= 0 yields an empty set
        rng: Random source (a fresh unseeded generator if omitted)

    Returns:
        Immutable ParticleSet

    Raises:
        GenerationFailure: If the buffers cannot be allocated
    """
    if count <= 0:
        logger.warning("Requested %d particles, returning an empty set", count)
        return ParticleSet.empty()

    if rng is None:
        rng = np.random.default_rng()

    body, halo, field = group_counts(count)

    try:
        group = np.empty(count, dtype=np.int8)
        group[:body] = ParticleGroup.BODY
        group[body:body + halo] = ParticleGroup.HALO
        group[body + halo:] = ParticleGroup.FIELD

        seed = rng.random(count, dtype=np.float32)

        is_accent = rng.random(count) < ACCENT_PROBABILITY
        is_accent[body + halo:] = False

        assembled = np.empty((count, 3), dtype=np.float32)
        assembled[:body] = _body_positions(rng, is_accent[:body])
        assembled[body:body + halo] = _halo_positions(rng, halo)
        assembled[body + halo:] = _field_positions(rng, field)

        dispersed = _galaxy_positions(rng, count).astype(np.float32)
    except (MemoryError, ValueError, OverflowError) as exc:
        raise GenerationFailure(
            f"Could not allocate buffers for {count} particles: {exc}"
        ) from exc

    logger.debug(
        "Generated %d particles (body=%d, halo=%d, field=%d, accents=%d)",
        count, body, halo, field, int(is_accent.sum())
    )

    return ParticleSet(
        assembled=assembled,
        dispersed=dispersed,
        group=group,
        is_accent=is_accent,
        seed=seed,
    )


class GeometryService:
    """
    Owns the active ParticleSet and regenerates it on request.

    Each request gets an increasing version number. A finished result is
    applied only if no newer request was made in the meantime; otherwise it
    is discarded. The previous set stays active until a new one is applied.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        generate_fn: Callable[[int, np.random.Generator], ParticleSet] = generate_particles
    ):
        """
        Initialize the service.

        Args:
            seed: Optional seed; each request then reproduces the same set
            generate_fn: Generator function (count, rng) -> ParticleSet
        """
        self.seed = seed
        self._generate_fn = generate_fn

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._latest_version = 0
        self._pending = 0
        self._current = ParticleSet.empty()
        self._current_version = 0
        self.last_error: Optional[GenerationFailure] = None

        # Callbacks
        self._on_ready: Optional[Callable[[ParticleSet, int], None]] = None
        self._on_error: Optional[Callable[[GenerationFailure, int], None]] = None

    @property
    def current(self) -> ParticleSet:
        """The most recently applied particle set."""
        with self._lock:
            return self._current

    @property
    def current_version(self) -> int:
        with self._lock:
            return self._current_version

    @property
    def latest_version(self) -> int:
        with self._lock:
            return self._latest_version

    def set_on_ready(self, callback: Callable[[ParticleSet, int], None]):
        """Set callback fired when a new set is applied."""
        self._on_ready = callback

    def set_on_error(self, callback: Callable[[GenerationFailure, int], None]):
        """Set callback fired when the latest request fails."""
        self._on_error = callback

    def request(self, count: int, async_mode: bool = True) -> int:
        """
        Request a new particle set.

        Args:
            count: Particle count
            async_mode: If True, generate in a background thread

        Returns:
            Version number of this request

        Raises:
            GenerationFailure: In sync mode, if generation fails
        """
        with self._lock:
            self._latest_version += 1
            version = self._latest_version
            self._pending += 1

        logger.info("Geometry request v%d: %d particles", version, count)

        if async_mode:
            thread = threading.Thread(
                target=self._run,
                args=(version, count, False),
                daemon=True
            )
            thread.start()
        else:
            self._run(version, count, True)

        return version

    def _run(self, version: int, count: int, reraise: bool):
        rng = np.random.default_rng(self.seed)
        try:
            try:
                result = self._generate_fn(count, rng)
            except GenerationFailure as exc:
                failure = exc
            except Exception as exc:
                failure = GenerationFailure(f"Geometry generation failed: {exc}")
                failure.__cause__ = exc
            else:
                self._finish(version, result)
                return

            self._finish_failed(version, failure)
            if reraise:
                raise failure
        finally:
            with self._lock:
                self._pending -= 1
                self._idle.notify_all()

    def _finish(self, version: int, result: ParticleSet):
        with self._lock:
            applied = version == self._latest_version
            if applied:
                self._current = result
                self._current_version = version
                self.last_error = None

        if not applied:
            logger.debug("Discarding stale geometry v%d", version)
            return

        logger.info("Geometry v%d ready (%d particles)", version, result.count)
        if self._on_ready:
            self._on_ready(result, version)

    def _finish_failed(self, version: int, error: GenerationFailure):
        with self._lock:
            latest = version == self._latest_version
            if latest:
                self.last_error = error

        if not latest:
            logger.debug("Ignoring failure of stale geometry v%d: %s", version, error)
            return

        logger.error("Geometry v%d failed: %s", version, error)
        if self._on_error:
            self._on_error(error, version)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no request is pending.

        Returns:
            True if idle, False on timeout
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout=timeout)
