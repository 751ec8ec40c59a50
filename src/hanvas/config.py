"""
Configuration
=============
Application settings from environment variables (a .env file is loaded by
the entry points) with command-line overrides.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .trail import RadiusMode, TrailConfig

LOG_FORMAT = "[%(levelname)s] %(message)s"


def configure_logging(level: str = "INFO"):
    """Console logging in the '[INFO] message' style."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AppConfig:
    """Settings for the drawing application."""
    camera_id: int = 0
    width: int = 960
    height: int = 540
    max_hands: int = 2
    server_url: Optional[str] = "http://localhost:8000"
    local_feed_path: Path = Path("data/local-community-posts.json")
    output_dir: Path = Path("output")
    model_path: Path = Path("models/hand_landmarker.task")
    mirror: bool = True
    clear_on_stop: bool = True
    log_level: str = "INFO"
    trail: TrailConfig = field(default_factory=TrailConfig)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'AppConfig':
        """
        Build a config from HANVAS_* variables.

        An empty HANVAS_SERVER_URL disables the remote feed.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        radius_mode = RadiusMode(env.get("HANVAS_RADIUS_MODE", defaults.trail.radius_mode.value).lower())
        server_url = env.get("HANVAS_SERVER_URL", defaults.server_url)

        return cls(
            camera_id=int(env.get("HANVAS_CAMERA", defaults.camera_id)),
            width=int(env.get("HANVAS_WIDTH", defaults.width)),
            height=int(env.get("HANVAS_HEIGHT", defaults.height)),
            max_hands=int(env.get("HANVAS_MAX_HANDS", defaults.max_hands)),
            server_url=server_url or None,
            local_feed_path=Path(env.get("HANVAS_LOCAL_FEED", defaults.local_feed_path)),
            output_dir=Path(env.get("HANVAS_OUTPUT_DIR", defaults.output_dir)),
            model_path=Path(env.get("HANVAS_MODEL_PATH", defaults.model_path)),
            mirror=_env_bool(env.get("HANVAS_MIRROR"), defaults.mirror),
            clear_on_stop=_env_bool(env.get("HANVAS_CLEAR_ON_STOP"), defaults.clear_on_stop),
            log_level=env.get("HANVAS_LOG_LEVEL", defaults.log_level),
            trail=TrailConfig(radius_mode=radius_mode),
        )
