import numpy as np
import pytest

from gesture_galaxy.config import Settings
from gesture_galaxy.ui import GalaxyApp


@pytest.fixture
def app():
    settings = Settings(particle_count=20000, seed=11, caption="Hi")
    app = GalaxyApp(settings, use_camera=False)
    app.geometry.request(settings.particle_count, async_mode=False)
    return app


def test_render_frame(app):
    frame = app.render_frame(0.5, 1 / 60)
    assert frame.shape == (GalaxyApp.MAIN_HEIGHT, GalaxyApp.MAIN_WIDTH, 3)
    assert frame.dtype == np.uint8
    assert app._model.count == 20000


def test_render_ticks_toward_tree(app):
    app.render_frame(0.0, 1 / 60)
    assert app.signal.current == pytest.approx(0.95)


def test_quit_keys(app):
    assert not app._handle_keyboard(ord('q'))
    assert not app._handle_keyboard(27)
    assert app._handle_keyboard(ord('x'))


def test_particle_count_presets(app):
    app._handle_keyboard(ord('+'))
    assert app.settings.particle_count == 40000
    assert app.geometry.wait(timeout=10)
    app.render_frame(0.0, None)
    assert app._model.count == 40000

    app._handle_keyboard(ord('-'))
    app._handle_keyboard(ord('-'))
    assert app.settings.particle_count == 20000
    assert app.geometry.wait(timeout=10)


def test_flow_speed_is_bounded(app):
    for _ in range(30):
        app._handle_keyboard(ord(']'))
    assert app.settings.flow_speed == pytest.approx(2.0)
    for _ in range(30):
        app._handle_keyboard(ord('['))
    assert app.settings.flow_speed == pytest.approx(0.0)


def test_smoothing_is_bounded(app):
    for _ in range(30):
        app._handle_keyboard(ord('.'))
    assert app.controller.smoothing == pytest.approx(0.2)
    for _ in range(30):
        app._handle_keyboard(ord(','))
    assert app.controller.smoothing == pytest.approx(0.01)


def test_theme_cycles(app):
    app._handle_keyboard(ord('t'))
    assert app._theme_idx == 1
    app._handle_keyboard(ord('t'))
    app._handle_keyboard(ord('t'))
    assert app._theme_idx == 0


def test_draw_ui(app):
    frame = app.render_frame(0.0, None)
    assert app._draw_ui(frame).shape == frame.shape
