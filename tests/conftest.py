import math

import numpy as np
import pytest

from hanvas.hand_tracking import DetectionResult, DetectorInit, HandObservation, Landmark

FINGER_NAMES = ['thumb', 'index', 'middle', 'ring', 'pinky']
# Landmark indices per finger, base joint first
FINGER_JOINTS = {
    'thumb': [1, 2, 3, 4],
    'index': [5, 6, 7, 8],
    'middle': [9, 10, 11, 12],
    'ring': [13, 14, 15, 16],
    'pinky': [17, 18, 19, 20],
}
FINGER_ANGLES = {'thumb': 200, 'index': 240, 'middle': 270, 'ring': 300, 'pinky': 330}


def make_hand(extended=(), wrist=(0.5, 0.8), side=None, scale=1.0):
    """
    Synthetic 21-landmark hand.

    Finger bases sit at most 0.1 from the wrist; extended fingers put
    their tip 0.3 away, curled ones 0.05 away.
    """
    points = [None] * 21
    wx, wy = wrist
    points[0] = Landmark(wx, wy, 0.0)
    for name, joints in FINGER_JOINTS.items():
        angle = math.radians(FINGER_ANGLES[name])
        dx, dy = math.cos(angle), math.sin(angle)
        tip_reach = 0.3 if name in extended else 0.05
        reaches = [0.06, 0.1, (0.1 + tip_reach) / 2, tip_reach]
        for joint, reach in zip(joints, reaches):
            points[joint] = Landmark(wx + dx * reach * scale, wy + dy * reach * scale, 0.0)
    return HandObservation(landmarks=tuple(points), side=side)


class FakeCamera:
    def __init__(self, opens=True):
        self.opens = opens
        self.started = 0
        self.stopped = 0
        self.frames = []

    def start(self):
        self.started += 1
        return self.opens

    def read_frame(self):
        if not self.frames:
            return None, -1
        return self.frames.pop(0)

    def stop(self):
        self.stopped += 1


class FakeDetector:
    def __init__(self, hands=None, init_ok=True):
        self.hands = list(hands or [])
        self.init_ok = init_ok
        self.ready = False
        self.detect_calls = 0
        self.init_calls = 0
        self.video_switches = 0
        self.mode_calls = 0
        self.released = False
        self.on_detect = None

    def initialize(self):
        self.init_calls += 1
        self.ready = self.init_ok
        if self.init_ok:
            return DetectorInit(succeeded=True)
        return DetectorInit(succeeded=False, error="no model")

    def ensure_video_mode(self):
        self.mode_calls += 1
        if self.video_switches == 0:
            self.video_switches += 1
            return True
        return False

    def detect(self, frame, timestamp_ms):
        self.detect_calls += 1
        if self.on_detect:
            self.on_detect()
        return DetectionResult(hands=list(self.hands))

    def release(self):
        self.released = True


@pytest.fixture
def frame():
    return np.zeros((480, 640, 3), dtype=np.uint8)
