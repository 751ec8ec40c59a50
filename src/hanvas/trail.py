"""
Trail Module - Per-Hand Ink Trails
==================================
Turns a jittery per-frame stream of cursor points into continuous strokes.

Each hand identity owns an append-only trail. Short jumps are filled with
interpolated points so fast motion still reads as a line; long jumps are
treated as a discontinuity and left as a gap.
"""

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from .hand_tracking import Landmark

Color = Tuple[int, int, int]  # BGR


@dataclass(frozen=True)
class HandIdentity:
    """Key routing a detected hand to its trail."""
    label: str

    @classmethod
    def resolve(cls, side: Optional[str], index: int, mirrored: bool = True) -> 'HandIdentity':
        """
        Identity for the index-th detected hand of a frame.

        The side label is swapped when the displayed feed is mirrored, so
        the identity names the hand as the user sees it. Hands without a
        label fall back to their position in the detection list.
        """
        if side in ("Left", "Right"):
            if mirrored:
                side = "Right" if side == "Left" else "Left"
            return cls(side)
        return cls(f"Hand {index + 1}")

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class TrailPoint:
    """A drawable dot."""
    x: float
    y: float
    z: float
    radius_x: float
    radius_y: float
    color: Color


class RadiusMode(Enum):
    """How the stamp radius of new points is chosen."""
    FIXED = "fixed"
    SPEED = "speed"


@dataclass
class TrailConfig:
    """
    Trail builder tuning.

    Attributes:
        nearby_threshold_px: Largest jump that is still interpolated
        max_gap_px: Spacing of interpolated points
        radius_mode: FIXED or SPEED
        fixed_radius: Stamp radius in FIXED mode
        min_radius: Radius at max_speed in SPEED mode
        max_radius: Radius at rest in SPEED mode
        max_speed: Speed (normalized units per second) mapped to min_radius
    """
    nearby_threshold_px: float = 80.0
    max_gap_px: float = 10.0
    radius_mode: RadiusMode = RadiusMode.FIXED
    fixed_radius: float = 10.0
    min_radius: float = 4.0
    max_radius: float = 14.0
    max_speed: float = 1.2


@dataclass(frozen=True)
class _Sample:
    point: Landmark
    time_s: float


class TrailSet:
    """
    Mapping from HandIdentity to its trail.

    Trails are append-only and are only ever cleared all together.
    Every appended point is also recorded in one chronological history, and
    `generation` increases on each clear, so a renderer can tell a grown
    set from a reset one.
    """

    def __init__(self, config: Optional[TrailConfig] = None):
        self.config = config or TrailConfig()
        self._trails: Dict[HandIdentity, List[TrailPoint]] = {}
        self._last_samples: Dict[HandIdentity, _Sample] = {}
        self._history: List[TrailPoint] = []
        self.generation = 0

    def add_point(
        self,
        identity: HandIdentity,
        cursor: Optional[Landmark],
        color: Color,
        surface_size: Tuple[int, int],
        now: Optional[float] = None
    ) -> int:
        """
        Feed one cursor sample for a hand.

        Args:
            identity: Hand the sample belongs to
            cursor: Normalized cursor position (None is ignored)
            color: Current paint color
            surface_size: (width, height) of the output surface in pixels
            now: Sample time in seconds (defaults to a monotonic clock)

        Returns:
            Number of points appended (0 when the sample was dropped)
        """
        if cursor is None:
            return 0

        now = time.perf_counter() if now is None else now
        trail = self._trails.get(identity)

        if not trail:
            radius = self._radius(identity, cursor, now)
            point = self._make_point(cursor, radius, color)
            self._trails[identity] = [point]
            self._history.append(point)
            self._last_samples[identity] = _Sample(cursor, now)
            return 1

        last = trail[-1]
        last_landmark = Landmark(last.x, last.y, last.z)
        # No motion, no point
        if cursor.distance_to(last_landmark) <= 0:
            return 0

        radius = self._radius(identity, cursor, now)
        new_points = []

        width, height = surface_size
        distance_px = math.hypot((cursor.x - last.x) * width, (cursor.y - last.y) * height)
        if 0 < distance_px <= self.config.nearby_threshold_px:
            steps = int(math.floor(distance_px / self.config.max_gap_px))
            for step in range(1, steps + 1):
                t = step / (steps + 1)
                new_points.append(TrailPoint(
                    x=last.x + (cursor.x - last.x) * t,
                    y=last.y + (cursor.y - last.y) * t,
                    z=last.z + (cursor.z - last.z) * t,
                    radius_x=radius,
                    radius_y=radius,
                    color=color
                ))

        new_points.append(self._make_point(cursor, radius, color))
        trail.extend(new_points)
        self._history.extend(new_points)
        self._last_samples[identity] = _Sample(cursor, now)
        return len(new_points)

    def _radius(self, identity: HandIdentity, cursor: Landmark, now: float) -> float:
        config = self.config
        if config.radius_mode is RadiusMode.FIXED:
            return config.fixed_radius

        last = self._last_samples.get(identity)
        if last is None:
            return config.max_radius

        elapsed = now - last.time_s
        if elapsed <= 0:
            speed = config.max_speed
        else:
            speed = cursor.distance_to(last.point) / elapsed
        speed = min(max(speed, 0.0), config.max_speed)

        return config.max_radius - (speed / config.max_speed) * (config.max_radius - config.min_radius)

    @staticmethod
    def _make_point(cursor: Landmark, radius: float, color: Color) -> TrailPoint:
        return TrailPoint(
            x=cursor.x, y=cursor.y, z=cursor.z,
            radius_x=radius, radius_y=radius,
            color=color
        )

    def clear(self):
        """Drop every trail and forget the last samples."""
        self._trails.clear()
        self._last_samples.clear()
        self._history.clear()
        self.generation += 1

    def trail(self, identity: HandIdentity) -> List[TrailPoint]:
        """Copy of one identity's trail (empty if unknown)."""
        return list(self._trails.get(identity, ()))

    def identities(self) -> List[HandIdentity]:
        return list(self._trails)

    def points(self) -> Iterator[TrailPoint]:
        """All points in the order they were added."""
        return iter(self._history)

    def points_since(self, start: int) -> List[TrailPoint]:
        """Points added after the first `start` ones."""
        return self._history[start:]

    def point_count(self) -> int:
        return len(self._history)

    def __len__(self) -> int:
        return len(self._trails)

    def __contains__(self, identity: HandIdentity) -> bool:
        return identity in self._trails

    def is_empty(self) -> bool:
        return self.point_count() == 0
