import math
import threading

import numpy as np
import pytest

from gesture_galaxy.geometry import (
    FIELD_RADIUS, GALAXY_ARMS, GALAXY_SPIN, HALO_SPREAD, TREE_BASE_RADIUS,
    TREE_HEIGHT, TREE_Y_SHIFT, GenerationFailure, GeometryService,
    ParticleGroup, ParticleSet, generate_particles, group_counts, halo_curve
)


@pytest.mark.parametrize("count", [1, 2, 3, 7, 10, 99, 100, 1001, 4096])
def test_group_counts_follow_floor_boundaries(count):
    body, halo, field = group_counts(count)
    assert body == math.floor(0.60 * count)
    assert halo == math.floor(0.85 * count) - body
    assert field == count - math.floor(0.85 * count)
    assert body + halo + field == count


def test_group_counts_for_hundred():
    assert group_counts(100) == (60, 25, 15)


@pytest.mark.parametrize("count", [1, 7, 100, 2500])
def test_all_buffers_have_count_rows(count, rng):
    particles = generate_particles(count, rng)
    assert particles.count == count
    assert particles.assembled.shape == (count, 3)
    assert particles.dispersed.shape == (count, 3)
    assert particles.group.shape == (count,)
    assert particles.is_accent.shape == (count,)
    assert particles.seed.shape == (count,)


@pytest.mark.parametrize("count", [0, -1, -500])
def test_non_positive_count_gives_empty_set(count):
    particles = generate_particles(count)
    assert particles.count == 0
    assert particles.assembled.shape == (0, 3)


def test_groups_are_contiguous(particles):
    body, halo, field = group_counts(particles.count)
    assert np.all(particles.group[:body] == ParticleGroup.BODY)
    assert np.all(particles.group[body:body + halo] == ParticleGroup.HALO)
    assert np.all(particles.group[body + halo:] == ParticleGroup.FIELD)
    assert np.all(np.diff(particles.group) >= 0)


def test_group_slice_matches_tags(particles):
    for group in ParticleGroup:
        tags = particles.group[particles.group_slice(group)]
        assert np.all(tags == group)


def test_body_inside_cone(particles):
    body = particles.assembled[particles.group_slice(ParticleGroup.BODY)].astype(np.float64)
    y_norm = (body[:, 1] - TREE_Y_SHIFT) / TREE_HEIGHT + 0.5
    assert np.all(y_norm >= -1e-5)
    assert np.all(y_norm <= 1.0 + 1e-5)

    radius = np.hypot(body[:, 0], body[:, 2])
    max_radius = TREE_BASE_RADIUS * (1.0 - y_norm) * 0.95
    assert np.all(radius <= max_radius + 1e-4)


def test_body_accents_sit_near_surface(particles):
    sl = particles.group_slice(ParticleGroup.BODY)
    body = particles.assembled[sl].astype(np.float64)
    accents = particles.is_accent[sl]
    assert accents.any()

    y_norm = (body[accents, 1] - TREE_Y_SHIFT) / TREE_HEIGHT + 0.5
    radius = np.hypot(body[accents, 0], body[accents, 2])
    max_radius = TREE_BASE_RADIUS * (1.0 - y_norm) * 0.95
    assert np.all(radius >= 0.7 * max_radius - 1e-4)


def test_field_inside_sphere(particles):
    field = particles.assembled[particles.group_slice(ParticleGroup.FIELD)]
    assert np.all(np.linalg.norm(field, axis=1) <= FIELD_RADIUS + 1e-4)


def test_halo_hugs_spiral(particles):
    sl = particles.group_slice(ParticleGroup.HALO)
    halo = particles.assembled[sl].astype(np.float64)
    ideal = halo_curve(halo.shape[0])
    assert np.all(np.abs(halo - ideal) <= HALO_SPREAD / 2 + 1e-4)


def test_accents_never_in_field(particles):
    field = particles.is_accent[particles.group_slice(ParticleGroup.FIELD)]
    assert not field.any()


def test_accent_rate_is_about_six_percent():
    particles = generate_particles(20000, np.random.default_rng(7))
    body, halo, _ = group_counts(20000)
    rate = particles.is_accent[:body + halo].mean()
    assert 0.045 < rate < 0.075


def test_seeds_in_unit_interval(particles):
    assert np.all(particles.seed >= 0.0)
    assert np.all(particles.seed < 1.0)


def test_galaxy_arms(particles):
    dispersed = particles.dispersed.astype(np.float64)
    dist = np.hypot(dispersed[:, 0], dispersed[:, 2])
    assert np.all(dist <= 60.0 + 1e-3)

    arm = np.arange(particles.count) % GALAXY_ARMS
    angle = arm / GALAXY_ARMS * 2 * math.pi + dist * GALAXY_SPIN
    np.testing.assert_allclose(dispersed[:, 0], np.cos(angle) * dist, atol=1e-2)
    np.testing.assert_allclose(dispersed[:, 2], np.sin(angle) * dist, atol=1e-2)


def test_galaxy_thickens_outward(particles):
    dispersed = particles.dispersed.astype(np.float64)
    dist = np.hypot(dispersed[:, 0], dispersed[:, 2])
    assert np.all(np.abs(dispersed[:, 1]) <= dist * 0.1 + 1e-4)


def test_buffers_are_read_only(particles):
    with pytest.raises(ValueError):
        particles.assembled[0, 0] = 1.0
    with pytest.raises(ValueError):
        particles.is_accent[0] = True


def test_same_seed_same_set():
    a = generate_particles(500, np.random.default_rng(42))
    b = generate_particles(500, np.random.default_rng(42))
    np.testing.assert_array_equal(a.assembled, b.assembled)
    np.testing.assert_array_equal(a.dispersed, b.dispersed)
    np.testing.assert_array_equal(a.is_accent, b.is_accent)


class ExhaustedRandom:
    def random(self, *args, **kwargs):
        raise MemoryError("out of memory")


def test_allocation_failure_raises_generation_failure():
    with pytest.raises(GenerationFailure):
        generate_particles(10, ExhaustedRandom())


def test_oversized_request_raises_generation_failure():
    with pytest.raises(GenerationFailure):
        generate_particles(2 ** 63, np.random.default_rng(0))


class TopOfRangeRandom:
    """Always returns the largest value below 1 representable in the requested dtype."""

    def random(self, size=None, dtype=np.float64):
        dtype = np.dtype(dtype).type
        return np.full(size, np.nextafter(dtype(1.0), dtype(0.0)), dtype=dtype)


def test_seeds_stay_below_one_at_top_of_range():
    particles = generate_particles(50, TopOfRangeRandom())
    assert particles.seed.dtype == np.float32
    assert np.all(particles.seed < 1.0)


class TestGeometryService:

    def test_sync_request_applies_set(self):
        service = GeometryService(seed=3)
        version = service.request(200, async_mode=False)
        assert version == 1
        assert service.current.count == 200
        assert service.current_version == version

    def test_async_request_fires_callback(self):
        service = GeometryService(seed=3)
        ready = []
        service.set_on_ready(lambda particles, version: ready.append((particles.count, version)))

        version = service.request(150)
        assert service.wait(timeout=5)
        assert ready == [(150, version)]

    def test_stale_request_is_discarded(self):
        release_first = threading.Event()

        def generate(count, rng):
            if count == 10:
                release_first.wait(5)
            return generate_particles(count, rng)

        service = GeometryService(seed=1, generate_fn=generate)
        ready = []
        service.set_on_ready(lambda particles, version: ready.append(version))

        first = service.request(10)
        second = service.request(20, async_mode=False)
        release_first.set()

        assert service.wait(timeout=5)
        assert first < second
        assert service.current.count == 20
        assert service.current_version == second
        assert ready == [second]

    def test_failure_keeps_previous_set(self):
        def generate(count, rng):
            if count > 1000:
                raise GenerationFailure("too many")
            return generate_particles(count, rng)

        service = GeometryService(generate_fn=generate)
        errors = []
        service.set_on_error(lambda error, version: errors.append(version))

        service.request(100, async_mode=False)
        failed = service.request(5000)
        assert service.wait(timeout=5)

        assert service.current.count == 100
        assert isinstance(service.last_error, GenerationFailure)
        assert errors == [failed]

    def test_sync_failure_is_raised(self):
        def generate(count, rng):
            raise GenerationFailure("nope")

        service = GeometryService(generate_fn=generate)
        with pytest.raises(GenerationFailure):
            service.request(10, async_mode=False)
        assert service.current.count == 0

    def test_starts_empty(self):
        service = GeometryService()
        assert isinstance(service.current, ParticleSet)
        assert service.current.count == 0
        assert service.latest_version == 0

    def test_unexpected_generator_error_is_reported(self):
        def generate(count, rng):
            raise ValueError("bad shape")

        service = GeometryService(generate_fn=generate)
        errors = []
        service.set_on_error(lambda error, version: errors.append((error, version)))

        version = service.request(10)
        assert service.wait(timeout=5)

        assert isinstance(service.last_error, GenerationFailure)
        assert isinstance(service.last_error.__cause__, ValueError)
        assert [v for _, v in errors] == [version]
        assert service.current.count == 0

    def test_unexpected_generator_error_is_raised_sync(self):
        def generate(count, rng):
            raise OverflowError("too large")

        service = GeometryService(generate_fn=generate)
        with pytest.raises(GenerationFailure) as info:
            service.request(10, async_mode=False)
        assert isinstance(info.value.__cause__, OverflowError)
        assert service.wait(timeout=1)
