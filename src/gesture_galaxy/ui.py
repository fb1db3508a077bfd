"""
UI Module - Main Application Interface
======================================
Real-time particle tree / galaxy preview driven by hand openness.
Combines all modules into a cohesive application.
"""

import argparse
import logging
import math
import time
from dataclasses import replace
from typing import Optional

import cv2
import numpy as np
from dotenv import load_dotenv

from gesture_galaxy.camera import Camera, list_available_cameras
from gesture_galaxy.caption import CaptionSet, evaluate_caption, generate_caption
from gesture_galaxy.config import (
    FLOW_SPEED_RANGE, PARTICLE_COUNT_PRESETS, SMOOTHING_RANGE,
    ConfigurationError, Settings, load_settings
)
from gesture_galaxy.control_signal import ControlSignal, DispersionController, SmoothingMode
from gesture_galaxy.geometry import GenerationFailure, GeometryService, ParticleSet
from gesture_galaxy.logging_config import setup_logging
from gesture_galaxy.motion import ParticleMotionModel, TopperState
from gesture_galaxy.renderer import THEMES, ParticleRenderer
from gesture_galaxy.tracking_session import GestureSession, SessionState

logger = logging.getLogger(__name__)


class GalaxyApp:
    """
    Main application class for the gesture-driven particle display.

    The gesture session runs on its own thread and only writes the control
    signal's target; this loop reads it, smooths it and draws.
    """

    WINDOW_NAME = "Gesture+Galaxy"
    MAIN_WIDTH = 960
    MAIN_HEIGHT = 540

    # Orbit: 0.5 "auto-rotate" units, one unit being a turn per minute
    ORBIT_SPEED = 0.5 * 2.0 * math.pi / 60.0

    # UI Colors (BGR)
    UI_TEXT_COLOR = (255, 255, 255)
    UI_ACCENT_COLOR = (0, 200, 255)
    UI_ERROR_COLOR = (0, 0, 255)

    def __init__(self, settings: Settings, use_camera: bool = True):
        """
        Initialize the application.

        Args:
            settings: Runtime settings
            use_camera: If False, run without gesture input (assembled tree)
        """
        self.settings = settings

        self.signal = ControlSignal()
        mode = SmoothingMode.TIME_NORMALIZED if settings.time_normalized else SmoothingMode.LEGACY
        self.controller = DispersionController(self.signal, settings.smoothing, mode)

        self.geometry = GeometryService(seed=settings.seed)
        self.geometry.set_on_error(self._on_geometry_error)
        self._model = ParticleMotionModel(ParticleSet.empty())

        self.topper = TopperState()
        self.caption: Optional[CaptionSet] = None
        if settings.caption:
            self.caption = generate_caption(settings.caption, np.random.default_rng(settings.seed))

        self.renderer = ParticleRenderer(self.MAIN_WIDTH, self.MAIN_HEIGHT)

        self.session: Optional[GestureSession] = None
        if use_camera:
            self.session = GestureSession(
                self.signal,
                camera_factory=lambda: Camera(camera_id=settings.camera_id)
            )

        # Application state
        self._running = False
        self._theme_idx = 0
        self._show_webcam = False
        self._status = ""

        # Performance tracking
        self._fps_counter = 0
        self._fps_time = time.time()
        self._current_fps = 0.0

    def _on_geometry_error(self, error: GenerationFailure, version: int):
        self._status = f"Error: {error}"

    def _sync_model(self):
        """Swap in the latest particle set once its generation has finished."""
        particles = self.geometry.current
        if particles is not self._model.particles:
            self._model = ParticleMotionModel(particles)

    def _set_particle_count(self, count: int):
        self.settings = replace(self.settings, particle_count=count)
        self.geometry.request(count)
        self._status = f"Particles: {count}"

    def _cycle_particle_count(self, step: int):
        presets = list(PARTICLE_COUNT_PRESETS)
        current = self.settings.particle_count
        if current in presets:
            idx = presets.index(current) + step
        else:
            idx = 0 if step > 0 else len(presets) - 1
        idx = max(0, min(idx, len(presets) - 1))
        if presets[idx] != current:
            self._set_particle_count(presets[idx])

    def _adjust_flow_speed(self, delta: float):
        low, high = FLOW_SPEED_RANGE
        flow = round(max(low, min(high, self.settings.flow_speed + delta)), 2)
        self.settings = replace(self.settings, flow_speed=flow)
        self._status = f"Flow speed: {flow:.1f}"

    def _adjust_smoothing(self, delta: float):
        low, high = SMOOTHING_RANGE
        smoothing = round(max(low, min(high, self.controller.smoothing + delta)), 2)
        self.controller.smoothing = smoothing
        self.settings = replace(self.settings, smoothing=smoothing)
        self._status = f"Hand sensitivity: {smoothing:.2f}"

    def _update_fps(self):
        self._fps_counter += 1
        current_time = time.time()
        elapsed = current_time - self._fps_time

        if elapsed >= 1.0:
            self._current_fps = self._fps_counter / elapsed
            self._fps_counter = 0
            self._fps_time = current_time

    def _draw_webcam_inset(self, frame: np.ndarray) -> np.ndarray:
        """Draw the latest camera frame with landmarks in the bottom right."""
        if self.session is None:
            return frame
        webcam, hand = self.session.latest()
        if webcam is None:
            return frame

        webcam = webcam.copy()
        if hand is not None:
            from gesture_galaxy.hand_tracking import draw_landmarks
            webcam = draw_landmarks(webcam, hand)

        h, w = frame.shape[:2]
        inset_w = w // 4
        inset_h = int(webcam.shape[0] * inset_w / webcam.shape[1])
        inset = cv2.resize(webcam, (inset_w, inset_h))

        x, y = w - inset_w - 10, h - inset_h - 10
        frame[y:y + inset_h, x:x + inset_w] = inset
        cv2.rectangle(frame, (x - 1, y - 1), (x + inset_w, y + inset_h), (255, 255, 255), 1)
        return frame

    def _draw_ui(self, frame: np.ndarray) -> np.ndarray:
        """Draw HUD text on the frame."""
        h, w = frame.shape[:2]
        theme = THEMES[self._theme_idx]

        lines = [
            f"FPS: {self._current_fps:.1f}",
            f"Dispersion: {self.signal.current:.2f} -> {self.signal.target:.2f}",
            f"Particles: {self._model.count} | Theme: {theme.name}",
        ]
        y_pos = 25
        for line in lines:
            cv2.putText(frame, line, (10, y_pos), cv2.FONT_HERSHEY_SIMPLEX,
                        0.55, self.UI_TEXT_COLOR, 1, cv2.LINE_AA)
            y_pos += 22

        if self.session is not None:
            state = self.session.state
            if self.session.degraded:
                text, color = "Camera unavailable - fist mode", self.UI_ERROR_COLOR
            elif state is SessionState.STREAMING:
                text, color = "Tracking active", self.UI_ACCENT_COLOR
            else:
                text, color = f"Tracking: {state.name.lower()}", self.UI_ACCENT_COLOR
            cv2.putText(frame, text, (10, y_pos), cv2.FONT_HERSHEY_SIMPLEX,
                        0.55, color, 1, cv2.LINE_AA)

        if self._status:
            color = self.UI_ERROR_COLOR if self._status.startswith("Error") else self.UI_ACCENT_COLOR
            cv2.putText(frame, self._status, (w - 330, 25), cv2.FONT_HERSHEY_SIMPLEX,
                        0.55, color, 1, cv2.LINE_AA)

        instructions = [
            "FIST = tree | OPEN HAND = galaxy",
            "[+/-] Particles | [ / ] Flow | [,/.] Sensitivity",
            "[T] Theme | [W] Webcam | [Q] Quit",
        ]
        y_pos = h - 60
        for inst in instructions:
            cv2.putText(frame, inst, (10, y_pos), cv2.FONT_HERSHEY_SIMPLEX,
                        0.45, (150, 150, 150), 1, cv2.LINE_AA)
            y_pos += 20

        return frame

    def _handle_keyboard(self, key: int) -> bool:
        """
        Handle keyboard input.

        Returns:
            False if should quit, True otherwise
        """
        if key == ord('q') or key == 27:  # Q or Escape
            return False

        elif key == ord('+') or key == ord('='):
            self._cycle_particle_count(1)

        elif key == ord('-'):
            self._cycle_particle_count(-1)

        elif key == ord(']'):
            self._adjust_flow_speed(0.1)

        elif key == ord('['):
            self._adjust_flow_speed(-0.1)

        elif key == ord('.'):
            self._adjust_smoothing(0.01)

        elif key == ord(','):
            self._adjust_smoothing(-0.01)

        elif key == ord('t'):
            self._theme_idx = (self._theme_idx + 1) % len(THEMES)
            self._status = f"Theme: {THEMES[self._theme_idx].name}"

        elif key == ord('w'):
            self._show_webcam = not self._show_webcam

        return True

    def render_frame(self, elapsed: float, dt: Optional[float]) -> np.ndarray:
        """Advance the animation by one tick and draw it."""
        self._sync_model()

        current = self.controller.tick(dt)
        flow_speed = self.settings.flow_speed

        positions = self._model.evaluate(current, elapsed, flow_speed)
        sizes = self._model.sizes(elapsed)
        self.topper.update(current)

        caption = None
        if self.caption is not None:
            caption = evaluate_caption(self.caption, current, elapsed)

        return self.renderer.render(
            positions,
            self._model.particles,
            sizes,
            THEMES[self._theme_idx],
            yaw=elapsed * self.ORBIT_SPEED,
            topper=self.topper,
            caption=caption,
        )

    def run(self):
        """Run the main application loop."""
        logger.info("Gesture+Galaxy - fist: tree, open hand: galaxy")

        try:
            self.geometry.request(self.settings.particle_count, async_mode=False)
        except GenerationFailure:
            logger.exception("Initial particle generation failed")
            raise

        if self.session is not None:
            self.session.start()

        self._running = True
        cv2.namedWindow(self.WINDOW_NAME, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(self.WINDOW_NAME, self.MAIN_WIDTH, self.MAIN_HEIGHT)

        start = time.perf_counter()
        last = start

        try:
            while self._running:
                now = time.perf_counter()
                display = self.render_frame(now - start, now - last)
                last = now

                if self._show_webcam:
                    display = self._draw_webcam_inset(display)
                display = self._draw_ui(display)

                self._update_fps()
                cv2.imshow(self.WINDOW_NAME, display)

                key = cv2.waitKey(1) & 0xFF
                if not self._handle_keyboard(key):
                    break

        finally:
            self._running = False
            if self.session is not None:
                self.session.stop()
            cv2.destroyAllWindows()
            logger.info("Application closed")


def main():
    """Main entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Gesture+Galaxy - morph a particle tree into a galaxy with your hand"
    )
    parser.add_argument('--camera', type=int, default=None, help='Camera device index')
    parser.add_argument('--count', type=int, default=None, help='Particle count')
    parser.add_argument('--seed', type=int, default=None, help='Seed for particle generation')
    parser.add_argument('--log-level', default=None, help='Logging level (DEBUG, INFO, ...)')
    parser.add_argument('--log-file', default=None, help='Also write logs to this file')
    parser.add_argument('--no-camera', action='store_true', help='Run without gesture input')
    parser.add_argument('--list-cameras', action='store_true', help='Print available camera indices and exit')

    args = parser.parse_args()

    if args.list_cameras:
        cameras = list_available_cameras()
        print("Available cameras:", ", ".join(map(str, cameras)) if cameras else "none")
        return

    try:
        settings = load_settings()
        overrides = {
            'camera_id': args.camera,
            'particle_count': args.count,
            'seed': args.seed,
            'log_level': args.log_level,
        }
        settings = replace(
            settings, **{k: v for k, v in overrides.items() if v is not None}
        ).validate()
    except ConfigurationError as exc:
        parser.error(str(exc))

    setup_logging(settings.log_level, args.log_file)

    app = GalaxyApp(settings, use_camera=not args.no_camera)
    app.run()


if __name__ == "__main__":
    main()
