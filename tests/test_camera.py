import time

import numpy as np

from hanvas import camera as camera_module
from hanvas.camera import Camera


class FakeCapture:
    def __init__(self, *args, opened=True):
        self.opened = opened
        self.released = False
        self.props = {}

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        self.props[prop] = value

    def get(self, prop):
        return self.props.get(prop, 0)

    def read(self):
        time.sleep(0.002)
        return True, np.zeros((4, 6, 3), dtype=np.uint8)

    def release(self):
        self.released = True


def wait_for_frame(cam, after=-1):
    for _ in range(500):
        frame, ts = cam.read_frame()
        if frame is not None and ts > after:
            return frame, ts
        time.sleep(0.005)
    raise AssertionError("no frame captured")


def test_unopenable_device(monkeypatch):
    monkeypatch.setattr(camera_module.cv2, "VideoCapture", lambda *a: FakeCapture(opened=False))
    cam = Camera()
    assert not cam.start()
    assert not cam.is_running
    assert cam.read_frame() == (None, -1)


def test_timestamps_increase_across_restarts(monkeypatch):
    monkeypatch.setattr(camera_module.cv2, "VideoCapture", FakeCapture)
    cam = Camera(width=6, height=4)

    assert cam.start()
    frame, first = wait_for_frame(cam)
    assert frame.shape == (4, 6, 3)
    _, second = wait_for_frame(cam, after=first)
    cam.stop()
    assert cam.read_frame() == (None, -1)

    with cam:
        _, third = wait_for_frame(cam)
    assert first < second < third
