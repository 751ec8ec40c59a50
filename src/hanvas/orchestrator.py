"""
Orchestrator Module - Per-Frame Drawing Pipeline
================================================
Drives one frame at a time: detector call, hand identity resolution,
hand state classification, trail update, compositing and skeleton overlay.

All drawing state lives in a DrawingSession owned by the orchestrator.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Protocol, Tuple

import numpy as np

from .canvas import BlendMode, ColorPalette, Compositor, mirror, next_blend_mode, overlay_on_frame
from .gesture_logic import HandState, classify_hand_state, landmarks_midpoint
from .hand_tracking import DetectionResult, DetectorInit, draw_skeleton
from .trail import Color, HandIdentity, TrailConfig, TrailSet

logger = logging.getLogger(__name__)

NO_HAND = "No hand detected"
MODEL_FAILED = "Hand model failed to load. Webcam can still open, but landmarks will not draw."


class Detector(Protocol):
    ready: bool

    def initialize(self) -> DetectorInit: ...

    def ensure_video_mode(self) -> bool: ...

    def detect(self, frame: np.ndarray, timestamp_ms: int) -> DetectionResult: ...

    def release(self): ...


class FrameSource(Protocol):
    def start(self) -> bool: ...

    def read_frame(self) -> Tuple[Optional[np.ndarray], int]: ...

    def stop(self): ...


class OrchestratorState(Enum):
    IDLE = "idle"
    DETECTING = "detecting"


class DrawingSession:
    """
    Mutable drawing state for one session.

    Only the orchestrator thread touches it.
    """

    def __init__(self, trail_config: Optional[TrailConfig] = None):
        self.trails = TrailSet(trail_config)
        self.paint_color: Color = ColorPalette.DEFAULT
        self.blend_mode = BlendMode.SCREEN
        self.mixing_enabled = True
        self.drawing_enabled = True
        self.running = False

    def set_paint_color(self, color: Color):
        self.paint_color = tuple(color)

    def toggle_drawing(self) -> bool:
        self.drawing_enabled = not self.drawing_enabled
        return self.drawing_enabled

    def toggle_mixing(self) -> bool:
        self.mixing_enabled = not self.mixing_enabled
        return self.mixing_enabled

    def cycle_blend_mode(self) -> BlendMode:
        self.blend_mode = next_blend_mode(self.blend_mode)
        return self.blend_mode

    def clear(self):
        self.trails.clear()


@dataclass
class FrameResult:
    """What one processed frame produced."""
    display: np.ndarray
    surface: np.ndarray
    hands: List[Tuple[HandIdentity, HandState]] = field(default_factory=list)

    @property
    def hand_state_text(self) -> str:
        if not self.hands:
            return NO_HAND
        return self.hands[0][1].label


class FrameOrchestrator:
    """
    Idle/Detecting state machine over a frame source and a hand detector.

    The detector runs at most once per distinct frame timestamp; a repeated
    timestamp reuses the previous detections.
    """

    def __init__(
        self,
        session: DrawingSession,
        camera: FrameSource,
        detector: Detector,
        compositor: Optional[Compositor] = None,
        mirrored: bool = True,
        clear_on_stop: bool = True,
        on_status: Optional[Callable[[str], None]] = None
    ):
        """
        Args:
            session: Drawing state
            camera: Frame source
            detector: Hand detector
            compositor: Ink renderer
            mirrored: Whether the displayed feed is horizontally mirrored
            clear_on_stop: Clear the trails when capture stops
            on_status: Receives user-facing status messages
        """
        self.session = session
        self.camera = camera
        self.detector = detector
        self.compositor = compositor or Compositor()
        self.mirrored = mirrored
        self.clear_on_stop = clear_on_stop
        self._on_status = on_status

        self.state = OrchestratorState.IDLE
        self.detector_init: Optional[DetectorInit] = None
        self.surface: Optional[np.ndarray] = None
        self.hand_state_text = NO_HAND

        self._video_mode_switched = False
        self._last_timestamp: Optional[int] = None
        self._last_detection = DetectionResult()

    def _status(self, message: str):
        logger.info(message)
        if self._on_status:
            self._on_status(message)

    def load_detector(self) -> DetectorInit:
        """Initialize the detector once; later calls return the first outcome."""
        if self.detector_init is None:
            self._status("Loading hand model...")
            self.detector_init = self.detector.initialize()
            if self.detector_init.succeeded:
                self._status("Hand model ready.")
            else:
                self._status(MODEL_FAILED)
        return self.detector_init

    @property
    def is_running(self) -> bool:
        return self.state is OrchestratorState.DETECTING

    def start(self) -> bool:
        """
        Start capture and detection.

        Returns:
            True if capture is running (landmarks may still be unavailable)
        """
        if self.is_running:
            return True

        self.load_detector()

        self._status("Requesting webcam...")
        if not self.camera.start():
            self._status("Unable to access webcam. Check camera permissions.")
            return False

        self.session.running = True
        self.state = OrchestratorState.DETECTING
        self._status("Webcam active.")
        return True

    def stop(self):
        """Stop capture; the trails survive unless clear_on_stop is set."""
        if not self.is_running:
            return

        self.session.running = False
        self.state = OrchestratorState.IDLE
        self.camera.stop()
        self.hand_state_text = NO_HAND
        self._last_detection = DetectionResult()

        if self.clear_on_stop:
            self.session.clear()
            self.surface = None

        self._status("Webcam stopped.")

    def step(self) -> Optional[FrameResult]:
        """Pull the latest frame from the camera and process it."""
        if not self.is_running:
            return None
        frame, timestamp_ms = self.camera.read_frame()
        if frame is None:
            return None
        return self.process_frame(frame, timestamp_ms)

    def _detect(self, frame: np.ndarray, timestamp_ms: int) -> DetectionResult:
        if not self.detector.ready:
            return DetectionResult()

        if not self._video_mode_switched:
            self._video_mode_switched = True
            try:
                self.detector.ensure_video_mode()
            except (RuntimeError, ValueError) as e:
                logger.warning("Staying in IMAGE mode: %s", e)

        if timestamp_ms == self._last_timestamp:
            return self._last_detection

        self._last_timestamp = timestamp_ms
        try:
            self._last_detection = self.detector.detect(frame, timestamp_ms)
        except (RuntimeError, ValueError) as e:
            logger.warning("Hand detection failed on frame %s: %s", timestamp_ms, e)
            self._last_detection = DetectionResult()
        return self._last_detection

    def process_frame(self, frame: np.ndarray, timestamp_ms: int) -> Optional[FrameResult]:
        """
        Run the pipeline on one BGR frame.

        Args:
            frame: Unmirrored camera frame
            timestamp_ms: Capture timestamp of the frame

        Returns:
            FrameResult, or None when capture is not running
        """
        if not self.session.running:
            return None

        height, width = frame.shape[:2]
        detection = self._detect(frame, timestamp_ms)

        # Capture may have stopped while the detector was busy
        if not self.session.running:
            return None

        session = self.session
        hands = []
        for index, hand in enumerate(detection.hands):
            identity = HandIdentity.resolve(hand.side, index, self.mirrored)
            state = classify_hand_state(hand)
            hands.append((identity, state))

            if session.drawing_enabled and state.is_pen_down:
                session.trails.add_point(
                    identity,
                    landmarks_midpoint(hand),
                    session.paint_color,
                    (width, height)
                )

        surface = self.compositor.render(
            session.trails, width, height,
            blend_mode=session.blend_mode,
            mixing=session.mixing_enabled
        )
        for hand in detection.hands:
            draw_skeleton(surface, hand)

        display = overlay_on_frame(frame, surface)
        if self.mirrored:
            display = mirror(display)

        result = FrameResult(display=display, surface=surface, hands=hands)
        self.surface = surface
        self.hand_state_text = result.hand_state_text
        return result

    def clear(self):
        """Explicit clear action."""
        self.session.clear()
        self._status("Drawing cleared.")
