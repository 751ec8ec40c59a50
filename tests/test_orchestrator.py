import numpy as np

from conftest import FakeCamera, FakeDetector, make_hand
from hanvas.canvas import BlendMode
from hanvas.gesture_logic import HandState
from hanvas.orchestrator import MODEL_FAILED, NO_HAND, DrawingSession, FrameOrchestrator, OrchestratorState
from hanvas.trail import HandIdentity

FIST = ()
OPEN = ('thumb', 'index', 'middle', 'ring', 'pinky')


def make_orchestrator(hands=(), init_ok=True, opens=True, **kwargs):
    statuses = []
    session = DrawingSession()
    orchestrator = FrameOrchestrator(
        session, FakeCamera(opens), FakeDetector(hands, init_ok),
        on_status=statuses.append, **kwargs
    )
    return orchestrator, statuses


def test_start_enters_detecting():
    orchestrator, statuses = make_orchestrator()
    assert orchestrator.state is OrchestratorState.IDLE
    assert orchestrator.start()
    assert orchestrator.state is OrchestratorState.DETECTING
    assert orchestrator.session.running
    assert "Webcam active." in statuses


def test_camera_failure_stays_idle():
    orchestrator, statuses = make_orchestrator(opens=False)
    assert not orchestrator.start()
    assert orchestrator.state is OrchestratorState.IDLE
    assert orchestrator.process_frame(np.zeros((4, 4, 3), np.uint8), 1) is None


def test_detector_failure_still_captures(frame):
    orchestrator, statuses = make_orchestrator([make_hand(FIST)], init_ok=False)
    assert orchestrator.start()
    assert MODEL_FAILED in statuses

    result = orchestrator.process_frame(frame, 1)
    assert result is not None
    assert result.display.shape == frame.shape
    assert orchestrator.detector.detect_calls == 0
    assert orchestrator.session.trails.is_empty()


def test_detector_initialized_once():
    orchestrator, _ = make_orchestrator()
    orchestrator.load_detector()
    orchestrator.start()
    orchestrator.stop()
    orchestrator.start()
    assert orchestrator.detector.init_calls == 1


def test_repeated_timestamp_skips_detection(frame):
    orchestrator, _ = make_orchestrator([make_hand(FIST)])
    orchestrator.start()
    orchestrator.process_frame(frame, 100)
    orchestrator.process_frame(frame, 100)
    assert orchestrator.detector.detect_calls == 1

    orchestrator.process_frame(frame, 133)
    assert orchestrator.detector.detect_calls == 2


def test_video_mode_switch_happens_once(frame):
    orchestrator, _ = make_orchestrator()
    orchestrator.start()
    for ts in (1, 2, 3):
        orchestrator.process_frame(frame, ts)
    assert orchestrator.detector.mode_calls == 1


def test_fist_draws_and_open_hand_does_not(frame):
    orchestrator, _ = make_orchestrator([make_hand(FIST, side="Left")])
    orchestrator.start()
    result = orchestrator.process_frame(frame, 1)

    identity = HandIdentity("Right")  # mirrored feed
    assert result.hands == [(identity, HandState.FIST)]
    assert len(orchestrator.session.trails.trail(identity)) == 1

    orchestrator.detector.hands = [make_hand(OPEN, wrist=(0.3, 0.8), side="Left")]
    result = orchestrator.process_frame(frame, 2)
    assert result.hand_state_text == "Open hand"
    assert len(orchestrator.session.trails.trail(identity)) == 1


def test_drawing_toggle_gates_points(frame):
    orchestrator, _ = make_orchestrator([make_hand(FIST)])
    orchestrator.start()
    orchestrator.session.toggle_drawing()
    orchestrator.process_frame(frame, 1)
    assert orchestrator.session.trails.is_empty()


def test_two_hands_get_two_trails(frame):
    hands = [make_hand(FIST, wrist=(0.3, 0.8)), make_hand(('index', 'middle'), wrist=(0.7, 0.8))]
    orchestrator, _ = make_orchestrator(hands)
    orchestrator.start()
    orchestrator.process_frame(frame, 1)
    assert set(orchestrator.session.trails.identities()) == {HandIdentity("Hand 1"), HandIdentity("Hand 2")}


def test_ink_is_composited_with_session_color(frame):
    orchestrator, _ = make_orchestrator([make_hand(FIST)])
    orchestrator.start()
    orchestrator.session.set_paint_color((0, 0, 255))
    orchestrator.session.blend_mode = BlendMode.MULTIPLY
    orchestrator.process_frame(frame, 1)

    point = orchestrator.session.trails.trail(HandIdentity("Hand 1"))[0]
    assert point.color == (0, 0, 255)
    inked = np.all(orchestrator.surface == (0, 0, 255, 255), axis=-1)
    assert inked.any()


def test_no_hands_reports_no_hand(frame):
    orchestrator, _ = make_orchestrator([])
    orchestrator.start()
    result = orchestrator.process_frame(frame, 1)
    assert result.hand_state_text == NO_HAND
    assert orchestrator.hand_state_text == NO_HAND


def test_display_is_mirrored(frame):
    orchestrator, _ = make_orchestrator([], mirrored=True)
    orchestrator.start()
    frame[:, 0] = 255
    result = orchestrator.process_frame(frame, 1)
    assert result.display[0, -1, 0] == 255
    assert result.display[0, 0, 0] == 0


def test_stop_clears_when_configured(frame):
    orchestrator, statuses = make_orchestrator([make_hand(FIST)], clear_on_stop=True)
    orchestrator.start()
    orchestrator.process_frame(frame, 1)
    orchestrator.stop()

    assert orchestrator.state is OrchestratorState.IDLE
    assert orchestrator.camera.stopped == 1
    assert orchestrator.session.trails.is_empty()
    assert orchestrator.hand_state_text == NO_HAND
    assert orchestrator.process_frame(frame, 2) is None
    assert "Webcam stopped." in statuses


def test_stop_keeps_trails_when_configured(frame):
    orchestrator, _ = make_orchestrator([make_hand(FIST)], clear_on_stop=False)
    orchestrator.start()
    orchestrator.process_frame(frame, 1)
    orchestrator.stop()
    assert not orchestrator.session.trails.is_empty()


def test_result_arriving_after_stop_is_discarded(frame):
    orchestrator, _ = make_orchestrator([make_hand(FIST)])
    orchestrator.start()
    orchestrator.detector.on_detect = orchestrator.stop

    assert orchestrator.process_frame(frame, 1) is None
    assert orchestrator.session.trails.is_empty()


def test_detector_error_is_an_empty_frame(frame):
    orchestrator, _ = make_orchestrator([make_hand(FIST)])
    orchestrator.start()

    def boom():
        raise RuntimeError("graph error")
    orchestrator.detector.on_detect = boom

    result = orchestrator.process_frame(frame, 1)
    assert result is not None
    assert result.hands == []


def test_step_pulls_from_camera(frame):
    orchestrator, _ = make_orchestrator([make_hand(FIST)])
    assert orchestrator.step() is None
    orchestrator.start()
    assert orchestrator.step() is None  # no frame yet

    orchestrator.camera.frames = [(frame, 10), (frame, 10)]
    assert orchestrator.step() is not None
    assert orchestrator.step() is not None
    assert orchestrator.detector.detect_calls == 1


def test_explicit_clear(frame):
    orchestrator, statuses = make_orchestrator([make_hand(FIST)])
    orchestrator.start()
    orchestrator.process_frame(frame, 1)
    orchestrator.clear()
    assert orchestrator.session.trails.is_empty()
    assert "Drawing cleared." in statuses


def test_detection_reports_hand_sides():
    detection = FakeDetector(hands=[make_hand(side="Left"), make_hand()]).detect(None, 1)
    assert detection.hand_sides == ["Left", None]


def test_default_paint_color_is_bgr():
    assert DrawingSession().paint_color == (230, 168, 111)
