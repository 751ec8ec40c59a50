"""
Canvas Module - Ink Layer Compositor
====================================
Paints the trail set onto a transparent BGRA ink layer.

Overlapping stamps mix through the active blend mode so strokes from two
hands, or repeated passes of one, visually combine. The ink layer is
derived only from the stored trail points; skeletons and other overlays go
on the copy each render returns, never on the cached layer.

Also handles snapshot export and data URL encoding.
"""

import base64
import binascii
import io
import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image

from .trail import Color, TrailPoint, TrailSet

logger = logging.getLogger(__name__)


class BlendMode(Enum):
    """Compositing rule for a stamp over already-inked pixels."""
    NORMAL = "normal"
    SCREEN = "screen"
    MULTIPLY = "multiply"
    LIGHTEN = "lighten"

    def blend(self, dst: np.ndarray, src: np.ndarray) -> np.ndarray:
        """Blend float colors in [0, 1]."""
        if self is BlendMode.SCREEN:
            return 1.0 - (1.0 - dst) * (1.0 - src)
        if self is BlendMode.MULTIPLY:
            return dst * src
        if self is BlendMode.LIGHTEN:
            return np.maximum(dst, src)
        return np.broadcast_to(src, dst.shape)


# Modes the user cycles through while mixing is enabled
MIXING_MODES = [BlendMode.SCREEN, BlendMode.MULTIPLY, BlendMode.LIGHTEN]


def next_blend_mode(mode: BlendMode) -> BlendMode:
    """The mixing mode after `mode` in the cycle."""
    if mode not in MIXING_MODES:
        return MIXING_MODES[0]
    return MIXING_MODES[(MIXING_MODES.index(mode) + 1) % len(MIXING_MODES)]


def hex_to_bgr(value: str) -> Color:
    """Convert '#rrggbb' to a BGR tuple."""
    value = value.lstrip('#')
    if len(value) != 6:
        raise ValueError(f"Not a #rrggbb color: {value!r}")
    r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    return (b, g, r)


class ColorPalette:
    """Predefined paint colors (BGR)."""

    SKY = hex_to_bgr("#6fa8e6")
    CORAL = hex_to_bgr("#ff6f61")
    LEMON = hex_to_bgr("#ffd93d")
    MINT = hex_to_bgr("#6bcb77")
    VIOLET = hex_to_bgr("#9b5de5")
    MAGENTA = hex_to_bgr("#f15bb5")
    WHITE = (255, 255, 255)
    INK = (40, 40, 40)

    DEFAULT = SKY

    @classmethod
    def get_all(cls) -> List[Color]:
        """Get all palette colors."""
        return [
            cls.SKY, cls.CORAL, cls.LEMON, cls.MINT,
            cls.VIOLET, cls.MAGENTA, cls.WHITE, cls.INK
        ]


class Compositor:
    """
    Renders trail points onto a BGRA layer.

    The ink layer is kept between renders. Points appended since the last
    render are stamped on top of it, which paints the same pixels as
    stamping every point in order onto a blank layer. The layer is rebuilt
    from scratch when the trail set is cleared or swapped, or when the
    size or the effective blend mode changes.
    """

    def __init__(self):
        self._layer: Optional[np.ndarray] = None
        self._key = None
        self._stamped = 0

    def render(
        self,
        trails: TrailSet,
        width: int,
        height: int,
        blend_mode: BlendMode = BlendMode.SCREEN,
        mixing: bool = True
    ) -> np.ndarray:
        """
        Paint the trail set onto the ink layer.

        Args:
            trails: Trail set to draw
            width: Layer width in pixels
            height: Layer height in pixels
            blend_mode: Mode used where a stamp lands on existing ink
            mixing: When False stamps simply overwrite

        Returns:
            Copy of the BGRA layer, transparent where nothing was drawn;
            callers may draw on it freely
        """
        mode = blend_mode if mixing else BlendMode.NORMAL
        key = (trails, trails.generation, width, height, mode)
        if self._layer is None or key != self._key or trails.point_count() < self._stamped:
            self._layer = np.zeros((height, width, 4), dtype=np.uint8)
            self._key = key
            self._stamped = 0

        for point in trails.points_since(self._stamped):
            stamp(self._layer, point, mode)
        self._stamped = trails.point_count()
        return self._layer.copy()


def stamp(layer: np.ndarray, point: TrailPoint, mode: BlendMode) -> None:
    """Blend one filled ellipse onto a BGRA layer in place."""
    h, w = layer.shape[:2]
    cx = int(round(point.x * w))
    cy = int(round(point.y * h))
    rx = max(1, int(round(point.radius_x)))
    ry = max(1, int(round(point.radius_y)))

    x0, x1 = max(cx - rx, 0), min(cx + rx + 1, w)
    y0, y1 = max(cy - ry, 0), min(cy + ry + 1, h)
    if x0 >= x1 or y0 >= y1:
        return

    roi = layer[y0:y1, x0:x1]
    mask = np.zeros(roi.shape[:2], dtype=np.uint8)
    cv2.ellipse(mask, (cx - x0, cy - y0), (rx, ry), 0, 0, 360, 255, -1)
    inside = mask > 0
    if not inside.any():
        return

    src = np.array(point.color, dtype=np.float32) / 255.0
    dst = roi[..., :3].astype(np.float32) / 255.0
    if mode is BlendMode.NORMAL:
        out = np.broadcast_to(src, dst.shape)
    else:
        inked = (roi[..., 3] > 0)[..., None]
        out = np.where(inked, mode.blend(dst, src), src)

    roi[..., :3][inside] = np.clip(out[inside] * 255.0 + 0.5, 0, 255).astype(np.uint8)
    roi[..., 3][inside] = 255


def overlay_on_frame(frame: np.ndarray, layer: np.ndarray, alpha: float = 1.0) -> np.ndarray:
    """
    Alpha-composite a BGRA layer over a BGR frame.

    Args:
        frame: BGR video frame
        layer: BGRA layer of the same size
        alpha: Overall opacity of the layer (0-1)

    Returns:
        New BGR image
    """
    layer_alpha = layer[:, :, 3:4].astype(np.float32) / 255.0 * alpha
    result = frame.astype(np.float32) * (1 - layer_alpha) + layer[:, :, :3].astype(np.float32) * layer_alpha
    return result.astype(np.uint8)


def mirror(image: np.ndarray) -> np.ndarray:
    """Flip an image horizontally."""
    return cv2.flip(image, 1)


def export_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC time with ':' and '.' made filename safe."""
    now = now or datetime.now(timezone.utc)
    iso = now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return iso.replace(":", "-").replace(".", "-")


def export_snapshot(surface: np.ndarray, output_dir: Path, now: Optional[datetime] = None) -> Optional[Path]:
    """
    Save a horizontally mirrored PNG of the drawing surface.

    Args:
        surface: BGRA (or BGR) drawing surface
        output_dir: Directory for the file, created if needed

    Returns:
        Path of the written file, or None when there is nothing to export
    """
    if surface is None or surface.size == 0:
        return None

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    filename = output_dir / f"drawing-{export_timestamp(now)}.png"
    if not cv2.imwrite(str(filename), mirror(surface)):
        raise OSError(f"Could not write {filename}")
    logger.info("Saved drawing: %s", filename)
    return filename


def encode_data_url(image: np.ndarray, format: str = 'PNG') -> str:
    """
    Encode a BGR/BGRA image as a data URL.

    Returns:
        'data:image/png;base64,...'
    """
    if image.ndim == 3 and image.shape[2] == 4:
        pil_image = Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA))
    elif image.ndim == 3:
        pil_image = Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))
    else:
        pil_image = Image.fromarray(image)

    buffer = io.BytesIO()
    pil_image.save(buffer, format=format)
    payload = base64.b64encode(buffer.getvalue()).decode('utf-8')
    return f"data:image/{format.lower()};base64,{payload}"


def decode_data_url(data_url: str) -> Optional[np.ndarray]:
    """
    Decode a base64 image data URL to a BGRA array.

    Returns:
        The image, or None if the URL is not a decodable image
    """
    header, sep, payload = data_url.partition(',')
    if not sep or not header.startswith('data:image/') or ';base64' not in header:
        return None

    try:
        raw = base64.b64decode(payload, validate=True)
        pil_image = Image.open(io.BytesIO(raw)).convert('RGBA')
    except (binascii.Error, ValueError, OSError):
        return None

    return cv2.cvtColor(np.array(pil_image), cv2.COLOR_RGBA2BGRA)


def thumbnail(image: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    """Letterbox an image into a BGR tile of (width, height)."""
    tile_w, tile_h = size
    if image.ndim == 3 and image.shape[2] == 4:
        backdrop = np.full(image.shape[:2] + (3,), 30, dtype=np.uint8)
        image = overlay_on_frame(backdrop, image)

    h, w = image.shape[:2]
    scale = min(tile_w / w, tile_h / h)
    new_w, new_h = max(1, int(w * scale)), max(1, int(h * scale))
    resized = cv2.resize(image, (new_w, new_h))

    tile = np.full((tile_h, tile_w, 3), 30, dtype=np.uint8)
    x = (tile_w - new_w) // 2
    y = (tile_h - new_h) // 2
    tile[y:y + new_h, x:x + new_w] = resized
    return tile
