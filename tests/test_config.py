from pathlib import Path

from hanvas.config import AppConfig
from hanvas.hand_tracking import DEFAULT_MODEL_PATH, HandTracker
from hanvas.trail import RadiusMode


def test_defaults():
    config = AppConfig.from_env({})
    assert config.server_url == "http://localhost:8000"
    assert config.clear_on_stop
    assert config.mirror
    assert config.trail.radius_mode is RadiusMode.FIXED
    assert config.trail.nearby_threshold_px == 80
    assert config.trail.max_gap_px == 10


def test_environment_overrides():
    config = AppConfig.from_env({
        "HANVAS_CAMERA": "2",
        "HANVAS_SERVER_URL": "",
        "HANVAS_RADIUS_MODE": "SPEED",
        "HANVAS_CLEAR_ON_STOP": "false",
        "HANVAS_OUTPUT_DIR": "exports",
    })
    assert config.camera_id == 2
    assert config.server_url is None
    assert config.trail.radius_mode is RadiusMode.SPEED
    assert not config.clear_on_stop
    assert config.output_dir == Path("exports")


def test_model_path_is_relative_to_working_directory():
    assert AppConfig.from_env({}).model_path == Path("models/hand_landmarker.task")
    assert not DEFAULT_MODEL_PATH.is_absolute()
    assert HandTracker()._model_path == DEFAULT_MODEL_PATH

    config = AppConfig.from_env({"HANVAS_MODEL_PATH": "/opt/models/hands.task"})
    assert config.model_path == Path("/opt/models/hands.task")
    assert HandTracker(model_path=config.model_path)._model_path == Path("/opt/models/hands.task")
