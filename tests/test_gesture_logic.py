import pytest

from conftest import make_hand
from hanvas.gesture_logic import HandState, classify_hand_state, count_extended_fingers, landmarks_midpoint
from hanvas.hand_tracking import HandObservation, Landmark


@pytest.mark.parametrize("extended, expected", [
    (('thumb', 'index', 'middle', 'ring', 'pinky'), HandState.OPEN),
    (('index', 'middle', 'ring', 'pinky'), HandState.OPEN),
    ((), HandState.FIST),
    (('index',), HandState.FIST),
    (('index', 'middle'), HandState.PARTIAL),
    (('thumb', 'index', 'middle'), HandState.PARTIAL),
])
def test_classify_by_extended_finger_count(extended, expected):
    hand = make_hand(extended)
    assert count_extended_fingers(hand) == len(extended)
    assert classify_hand_state(hand) is expected


def test_tip_short_of_ratio_is_not_extended():
    wrist = Landmark(0.5, 0.5)
    base = Landmark(0.5, 0.4)  # 0.1 from wrist
    short_tip = Landmark(0.5, 0.39)  # 1.1x the base distance
    points = [wrist] + [base] * 20
    for tip in (4, 8, 12, 16, 20):
        points[tip] = short_tip
    hand = HandObservation(landmarks=tuple(points))
    assert count_extended_fingers(hand) == 0


def test_depth_counts_toward_distance():
    wrist = Landmark(0.5, 0.5, 0.0)
    base = Landmark(0.5, 0.4, 0.0)
    deep_tip = Landmark(0.5, 0.4, 0.3)  # same x/y as base, far in depth
    points = [wrist] + [base] * 20
    for tip in (4, 8, 12, 16, 20):
        points[tip] = deep_tip
    hand = HandObservation(landmarks=tuple(points))
    assert classify_hand_state(hand) is HandState.OPEN


def test_pen_down_states():
    assert HandState.FIST.is_pen_down
    assert HandState.PARTIAL.is_pen_down
    assert not HandState.OPEN.is_pen_down
    assert HandState.PARTIAL.label == "Partial hand"


def test_midpoint_is_componentwise_mean():
    points = tuple(Landmark(i / 100, 1 - i / 100, i / 1000) for i in range(21))
    mid = landmarks_midpoint(HandObservation(landmarks=points))
    assert mid.x == pytest.approx(sum(p.x for p in points) / 21)
    assert mid.y == pytest.approx(sum(p.y for p in points) / 21)
    assert mid.z == pytest.approx(sum(p.z for p in points) / 21)


def test_midpoint_of_empty_observation_is_none():
    assert landmarks_midpoint(None) is None
    assert landmarks_midpoint(HandObservation(landmarks=())) is None
