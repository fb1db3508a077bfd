import numpy as np
import pytest

from gesture_galaxy.caption import (
    CANVAS_HEIGHT, CANVAS_WIDTH, CAPTION_DEPTH, CAPTION_Y_OFFSET, PIXEL_SCALE,
    evaluate_caption, generate_caption, rasterize_text
)


@pytest.fixture
def caption():
    return generate_caption("Merry Christmas", np.random.default_rng(5))


def test_rasterize_shape():
    canvas = rasterize_text("Hello")
    assert canvas.shape == (CANVAS_HEIGHT, CANVAS_WIDTH)
    assert canvas.dtype == np.uint8
    assert canvas.max() == 255


def test_empty_text():
    assert not rasterize_text("").any()
    assert generate_caption("").count == 0


def test_caption_has_particles(caption):
    assert caption.count > 100
    assert caption.assembled.shape == (caption.count, 3)
    assert caption.dispersed.shape == (caption.count, 3)


def test_text_plane(caption):
    assembled = caption.assembled
    np.testing.assert_allclose(assembled[:, 2], CAPTION_DEPTH)
    assert np.all(np.abs(assembled[:, 0]) <= CANVAS_WIDTH / 2 * PIXEL_SCALE)
    half_height = CANVAS_HEIGHT / 2 * PIXEL_SCALE
    assert np.all(np.abs(assembled[:, 1] - CAPTION_Y_OFFSET) <= half_height + 1e-5)


def test_assembled_caption_is_opaque(caption):
    positions, alpha = evaluate_caption(caption, 0.0, 3.0)
    np.testing.assert_allclose(positions, caption.assembled)
    np.testing.assert_allclose(alpha, 1.0)


def test_dispersed_caption_is_invisible(caption):
    _, alpha = evaluate_caption(caption, 1.0, 3.0)
    np.testing.assert_allclose(alpha, 0.0)


def test_no_drift_below_threshold(caption):
    positions, _ = evaluate_caption(caption, 0.1, 7.0)
    expected = caption.assembled + (caption.dispersed - caption.assembled) * 0.1
    np.testing.assert_allclose(positions, expected, atol=1e-5)


def test_alpha_fades_monotonically(caption):
    alphas = [evaluate_caption(caption, c, 0.0)[1] for c in np.linspace(0, 1, 11)]
    for earlier, later in zip(alphas, alphas[1:]):
        assert np.all(later <= earlier + 1e-6)


class TopOfRangeRandom:

    def random(self, size=None, dtype=np.float64):
        dtype = np.dtype(dtype).type
        return np.full(size, np.nextafter(dtype(1.0), dtype(0.0)), dtype=dtype)


def test_seeds_stay_below_one_at_top_of_range():
    caption = generate_caption("Hi", TopOfRangeRandom())
    assert caption.count > 0
    assert np.all(caption.seed < 1.0)
