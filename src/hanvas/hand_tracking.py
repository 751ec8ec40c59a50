"""
Hand Tracking Module - MediaPipe Hand Landmark Detection
=========================================================
Wraps the MediaPipe Hand Landmarker (Tasks API) behind a small detector
interface and defines the landmark data model used by the drawing pipeline.

The detector starts in IMAGE running mode and is switched to VIDEO mode
exactly once, on the first live frame.
"""

import logging
import urllib.request
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import List, Optional, Tuple

import cv2
import mediapipe as mp
import numpy as np
from mediapipe.tasks import python
from mediapipe.tasks.python import vision

logger = logging.getLogger(__name__)

MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/"
    "hand_landmarker/float16/1/hand_landmarker.task"
)
NUM_LANDMARKS = 21
DEFAULT_MODEL_PATH = Path("models") / "hand_landmarker.task"


class HandLandmark(IntEnum):
    """
    MediaPipe hand landmark indices.
    Reference: https://mediapipe.dev/images/mobile/hand_landmarks.png
    """
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


HAND_CONNECTIONS = [
    # Thumb
    (HandLandmark.WRIST, HandLandmark.THUMB_CMC),
    (HandLandmark.THUMB_CMC, HandLandmark.THUMB_MCP),
    (HandLandmark.THUMB_MCP, HandLandmark.THUMB_IP),
    (HandLandmark.THUMB_IP, HandLandmark.THUMB_TIP),
    # Index
    (HandLandmark.WRIST, HandLandmark.INDEX_MCP),
    (HandLandmark.INDEX_MCP, HandLandmark.INDEX_PIP),
    (HandLandmark.INDEX_PIP, HandLandmark.INDEX_DIP),
    (HandLandmark.INDEX_DIP, HandLandmark.INDEX_TIP),
    # Middle
    (HandLandmark.MIDDLE_MCP, HandLandmark.MIDDLE_PIP),
    (HandLandmark.MIDDLE_PIP, HandLandmark.MIDDLE_DIP),
    (HandLandmark.MIDDLE_DIP, HandLandmark.MIDDLE_TIP),
    # Ring
    (HandLandmark.RING_MCP, HandLandmark.RING_PIP),
    (HandLandmark.RING_PIP, HandLandmark.RING_DIP),
    (HandLandmark.RING_DIP, HandLandmark.RING_TIP),
    # Pinky
    (HandLandmark.WRIST, HandLandmark.PINKY_MCP),
    (HandLandmark.PINKY_MCP, HandLandmark.PINKY_PIP),
    (HandLandmark.PINKY_PIP, HandLandmark.PINKY_DIP),
    (HandLandmark.PINKY_DIP, HandLandmark.PINKY_TIP),
    # Palm
    (HandLandmark.INDEX_MCP, HandLandmark.MIDDLE_MCP),
    (HandLandmark.MIDDLE_MCP, HandLandmark.RING_MCP),
    (HandLandmark.RING_MCP, HandLandmark.PINKY_MCP),
]


@dataclass(frozen=True)
class Landmark:
    """A 3D point in normalized frame coordinates."""
    x: float  # Normalized x (0-1)
    y: float  # Normalized y (0-1)
    z: float = 0.0  # Relative depth

    def distance_to(self, other: 'Landmark') -> float:
        """Calculate Euclidean distance to another landmark, depth included."""
        return float(np.sqrt(
            (self.x - other.x) ** 2 +
            (self.y - other.y) ** 2 +
            (self.z - other.z) ** 2
        ))

    def to_pixel(self, width: int, height: int) -> Tuple[int, int]:
        """Return pixel coordinates for a surface of the given size."""
        return (int(self.x * width), int(self.y * height))


@dataclass(frozen=True)
class HandObservation:
    """
    One detected hand for one detection cycle.

    Attributes:
        landmarks: 21 landmarks in MediaPipe order
        side: 'Left', 'Right' or None when the detector gave no label
        score: Handedness confidence score
    """
    landmarks: Tuple[Landmark, ...]
    side: Optional[str] = None
    score: float = 0.0

    def __getitem__(self, landmark: int) -> Landmark:
        return self.landmarks[landmark]

    def __len__(self) -> int:
        return len(self.landmarks)


@dataclass
class DetectionResult:
    """Output of one detector call."""
    hands: List[HandObservation] = field(default_factory=list)

    @property
    def hand_sides(self) -> List[Optional[str]]:
        return [hand.side for hand in self.hands]


class Accelerator(Enum):
    """Compute delegate used by the hand landmarker."""
    GPU = "GPU"
    CPU = "CPU"


@dataclass
class DetectorInit:
    """Outcome of detector initialization."""
    succeeded: bool
    accelerator: Optional[Accelerator] = None
    error: Optional[str] = None


def _download_model(model_path: Path) -> None:
    """Download the hand landmarker model if not present."""
    logger.info("Downloading hand landmarker model...")
    model_path.parent.mkdir(parents=True, exist_ok=True)
    urllib.request.urlretrieve(MODEL_URL, model_path)
    logger.info("Model downloaded to %s", model_path)


class HandTracker:
    """
    Hand detection using MediaPipe Hand Landmarker (Tasks API).

    Call initialize() before detect(). Initialization prefers the GPU
    delegate and retries once on the CPU delegate.
    """

    def __init__(
        self,
        max_hands: int = 2,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        model_path: Optional[Path] = None
    ):
        """
        Args:
            max_hands: Maximum number of hands to detect
            min_detection_confidence: Minimum confidence for detection
            min_tracking_confidence: Minimum confidence for tracking
            model_path: Location of hand_landmarker.task (downloaded if missing)
        """
        self.max_hands = max_hands
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self._model_path = Path(model_path or DEFAULT_MODEL_PATH)

        self.detector = None
        self.accelerator: Optional[Accelerator] = None
        self.running_mode = vision.RunningMode.IMAGE

    def _create(self, accelerator: Accelerator, running_mode):
        delegate = (
            python.BaseOptions.Delegate.GPU
            if accelerator is Accelerator.GPU
            else python.BaseOptions.Delegate.CPU
        )
        base_options = python.BaseOptions(
            model_asset_path=str(self._model_path),
            delegate=delegate
        )
        options = vision.HandLandmarkerOptions(
            base_options=base_options,
            running_mode=running_mode,
            num_hands=self.max_hands,
            min_hand_detection_confidence=self.min_detection_confidence,
            min_tracking_confidence=self.min_tracking_confidence,
            min_hand_presence_confidence=self.min_detection_confidence
        )
        return vision.HandLandmarker.create_from_options(options)

    def initialize(self) -> DetectorInit:
        """
        Load the model, trying the GPU delegate first and the CPU second.

        Returns:
            DetectorInit describing which accelerator was used, or the error
        """
        try:
            if not self._model_path.exists():
                _download_model(self._model_path)
        except OSError as e:
            logger.error("Hand model download failed: %s", e)
            return DetectorInit(succeeded=False, error=str(e))

        last_error = None
        for accelerator in (Accelerator.GPU, Accelerator.CPU):
            try:
                self.detector = self._create(accelerator, self.running_mode)
            except (RuntimeError, ValueError, OSError, NotImplementedError) as e:
                logger.warning("Hand landmarker unavailable on %s: %s", accelerator.value, e)
                last_error = str(e)
                continue
            self.accelerator = accelerator
            logger.info("Hand landmarker ready (%s delegate)", accelerator.value)
            return DetectorInit(succeeded=True, accelerator=accelerator)

        return DetectorInit(succeeded=False, error=last_error)

    @property
    def ready(self) -> bool:
        return self.detector is not None

    def ensure_video_mode(self) -> bool:
        """
        Switch from IMAGE to VIDEO running mode.

        The landmarker has no runtime option setter, so it is recreated with
        the same accelerator. Only the first call does any work.

        Returns:
            True if a switch happened on this call
        """
        if not self.ready or self.running_mode == vision.RunningMode.VIDEO:
            return False

        video_detector = self._create(self.accelerator, vision.RunningMode.VIDEO)
        self.detector.close()
        self.detector = video_detector
        self.running_mode = vision.RunningMode.VIDEO
        logger.info("Hand landmarker switched to VIDEO mode")
        return True

    def detect(self, frame: np.ndarray, timestamp_ms: int) -> DetectionResult:
        """
        Detect hands in a BGR frame.

        Args:
            frame: BGR image from camera
            timestamp_ms: Capture time; must increase between VIDEO-mode calls

        Returns:
            DetectionResult with one HandObservation per detected hand
        """
        if not self.ready:
            return DetectionResult()

        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_frame)

        if self.running_mode == vision.RunningMode.VIDEO:
            results = self.detector.detect_for_video(mp_image, int(timestamp_ms))
        else:
            results = self.detector.detect(mp_image)

        return convert_results(results)

    def release(self):
        """Release resources."""
        if self.detector:
            self.detector.close()
            self.detector = None


def convert_results(results) -> DetectionResult:
    """Convert a MediaPipe HandLandmarkerResult into a DetectionResult."""
    hands = []
    for idx, hand_landmarks in enumerate(results.hand_landmarks or []):
        side = None
        score = 0.0
        if results.handedness and idx < len(results.handedness):
            hand_info = results.handedness[idx]
            if hand_info:
                side = hand_info[0].category_name
                score = hand_info[0].score

        landmarks = tuple(
            Landmark(x=lm.x, y=lm.y, z=lm.z or 0.0)
            for lm in hand_landmarks
        )
        hands.append(HandObservation(landmarks=landmarks, side=side, score=score))

    return DetectionResult(hands=hands)


def draw_skeleton(
    frame: np.ndarray,
    hand: HandObservation,
    connection_color: Tuple[int, int, int] = (238, 194, 156),
    landmark_color: Tuple[int, int, int] = (198, 137, 79),
    connection_thickness: int = 5,
    landmark_radius: int = 4
) -> np.ndarray:
    """
    Draw a hand skeleton on an image in place.

    Works on BGR frames and BGRA layers; BGRA gets full opacity.

    Returns:
        The same image
    """
    h, w = frame.shape[:2]
    alpha = (255,) if frame.ndim == 3 and frame.shape[2] == 4 else ()
    points = [lm.to_pixel(w, h) for lm in hand.landmarks]

    for start, end in HAND_CONNECTIONS:
        if start < len(points) and end < len(points):
            cv2.line(frame, points[start], points[end],
                     (*connection_color, *alpha), connection_thickness)

    for point in points:
        cv2.circle(frame, point, landmark_radius, (*landmark_color, *alpha), -1)

    return frame

