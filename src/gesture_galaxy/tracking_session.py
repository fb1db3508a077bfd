"""
Tracking Session Module - Gesture Pipeline
==========================================
Runs camera capture, hand tracking and openness extraction on a background
thread and publishes the result into a ControlSignal.

Lifecycle:
    UNINITIALIZED -> LOADING_MODEL -> AWAITING_CAMERA -> STREAMING -> CLOSED

The session can be stopped from any state; the camera and the tracker are
always released. If the model or the camera cannot be brought up, or the
tracker fails while streaming, the session closes with `target` pinned to 0
and the render loop carries on showing the assembled tree.
"""

import logging
import threading
import time
from enum import Enum, auto
from typing import Any, Callable, Optional

import numpy as np

from gesture_galaxy.control_signal import ControlSignal
from gesture_galaxy.gesture_signal import NO_HAND_OPENNESS, GestureSignalExtractor
from gesture_galaxy.landmarks import HandData

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """States of the gesture pipeline."""
    UNINITIALIZED = auto()
    LOADING_MODEL = auto()
    AWAITING_CAMERA = auto()
    STREAMING = auto()
    CLOSED = auto()


class SensorUnavailable(RuntimeError):
    """Camera or inference backend could not be used."""


def _default_tracker_factory():
    # Imported here so MediaPipe is only loaded when tracking is used
    from gesture_galaxy.hand_tracking import HandTracker
    return HandTracker(max_hands=1)


class GestureSession:
    """
    Background gesture pipeline.

    The session is the single writer of `signal.target`. It never blocks the
    caller: `start()` returns immediately and all device work happens on the
    session thread.
    """

    def __init__(
        self,
        signal: ControlSignal,
        camera_factory: Callable[[], Any],
        tracker_factory: Callable[[], Any] = _default_tracker_factory,
        extractor: Optional[GestureSignalExtractor] = None,
        idle_sleep: float = 0.002
    ):
        """
        Initialize the session.

        Args:
            signal: Shared control signal to publish openness into
            camera_factory: Returns an object with start() -> bool,
                get_frame(), frame_id and stop()
            tracker_factory: Returns an object with process(frame) -> list
                of HandData and release()
            extractor: Openness extractor
            idle_sleep: Sleep between polls when no new frame is ready
        """
        self.signal = signal
        self._camera_factory = camera_factory
        self._tracker_factory = tracker_factory
        self.extractor = extractor or GestureSignalExtractor()
        self.idle_sleep = idle_sleep

        self._state = SessionState.UNINITIALIZED
        self._state_lock = threading.Lock()
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.error: Optional[SensorUnavailable] = None

        # Latest observation for the webcam preview
        self._latest_lock = threading.Lock()
        self._latest_frame: Optional[np.ndarray] = None
        self._latest_hand: Optional[HandData] = None
        self.frames_processed = 0

        # Callbacks
        self._on_state_change: Optional[Callable[[SessionState], None]] = None

    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self._state

    @property
    def degraded(self) -> bool:
        """True if the session gave up because a sensor failed."""
        return self.error is not None

    def set_on_state_change(self, callback: Callable[[SessionState], None]):
        """Set callback fired on every state transition (on the session thread)."""
        self._on_state_change = callback

    def _set_state(self, state: SessionState):
        with self._state_lock:
            previous = self._state
            self._state = state
        logger.debug("Gesture session: %s -> %s", previous.name, state.name)
        if self._on_state_change:
            self._on_state_change(state)

    def start(self) -> bool:
        """
        Start the pipeline thread.

        Returns:
            False if the session was already started or closed
        """
        with self._state_lock:
            if self._state is not SessionState.UNINITIALIZED or self._thread is not None:
                return False
            self._thread = threading.Thread(target=self._run, daemon=True)

        self._thread.start()
        return True

    def stop(self, timeout: float = 2.0):
        """Cancel the pipeline from any state and wait for cleanup."""
        self._cancel.set()
        with self._state_lock:
            thread = self._thread
            never_started = thread is None and self._state is SessionState.UNINITIALIZED

        if never_started:
            self._set_state(SessionState.CLOSED)
        elif thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def wait_for_state(self, state: SessionState, timeout: float = 2.0) -> bool:
        """Poll until the session reaches `state` (mainly for tests and startup)."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.state is state:
                return True
            time.sleep(0.005)
        return self.state is state

    def latest(self):
        """
        Latest processed frame and hand.

        Returns:
            Tuple of (frame or None, HandData or None)
        """
        with self._latest_lock:
            return self._latest_frame, self._latest_hand

    def _fail(self, message: str, exc: Optional[BaseException] = None):
        self.error = SensorUnavailable(message)
        if exc is not None:
            self.error.__cause__ = exc
        logger.error("%s; holding the assembled shape", message)
        self.signal.set_target(NO_HAND_OPENNESS)

    def _run(self):
        tracker = None
        camera = None
        try:
            self._set_state(SessionState.LOADING_MODEL)
            try:
                tracker = self._tracker_factory()
            except Exception as exc:
                self._fail(f"Hand tracking backend failed to load: {exc}", exc)
                return
            if self._cancel.is_set():
                return

            self._set_state(SessionState.AWAITING_CAMERA)
            try:
                camera = self._camera_factory()
                started = camera.start()
            except Exception as exc:
                self._fail(f"Camera failed to open: {exc}", exc)
                return
            if not started:
                self._fail("Camera is not available")
                return
            if self._cancel.is_set():
                return

            self._set_state(SessionState.STREAMING)
            self._stream(camera, tracker)
        finally:
            if camera is not None:
                camera.stop()
            if tracker is not None:
                tracker.release()
            self._set_state(SessionState.CLOSED)

    def _stream(self, camera, tracker):
        last_frame_id = -1
        while not self._cancel.is_set():
            frame_id = camera.frame_id
            frame = camera.get_frame() if frame_id != last_frame_id else None
            if frame is None:
                time.sleep(self.idle_sleep)
                continue
            last_frame_id = frame_id

            try:
                hands = tracker.process(frame)
            except Exception as exc:
                self._fail(f"Hand tracking failed: {exc}", exc)
                return

            hand = hands[0] if hands else None
            self.signal.set_target(self.extractor.extract(hand))
            self.frames_processed += 1

            with self._latest_lock:
                self._latest_frame = frame
                self._latest_hand = hand
