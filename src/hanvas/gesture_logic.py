"""
Gesture Logic Module - Hand State and Drawing Cursor
====================================================
Classifies a hand as open, fist or partially closed from finger extension
ratios, and computes the landmark centroid used as the drawing cursor.
"""

from enum import Enum
from typing import Optional

from .hand_tracking import HandLandmark, HandObservation, Landmark


class HandState(Enum):
    """Discrete hand states. Fist and Partial put the pen down."""
    OPEN = "Open hand"
    FIST = "Fist"
    PARTIAL = "Partial hand"

    @property
    def label(self) -> str:
        return self.value

    @property
    def is_pen_down(self) -> bool:
        return self is not HandState.OPEN


# (tip, base) pairs per finger
FINGERS = {
    'thumb': (HandLandmark.THUMB_TIP, HandLandmark.THUMB_MCP),
    'index': (HandLandmark.INDEX_TIP, HandLandmark.INDEX_MCP),
    'middle': (HandLandmark.MIDDLE_TIP, HandLandmark.MIDDLE_MCP),
    'ring': (HandLandmark.RING_TIP, HandLandmark.RING_MCP),
    'pinky': (HandLandmark.PINKY_TIP, HandLandmark.PINKY_MCP),
}

EXTENSION_RATIO = 1.15
OPEN_MIN_EXTENDED = 4
FIST_MAX_EXTENDED = 1


def count_extended_fingers(hand: HandObservation) -> int:
    """
    Count fingers whose tip is well beyond their base, measured from the wrist.

    A finger is extended when tip-to-wrist distance exceeds
    base-to-wrist distance by EXTENSION_RATIO.
    """
    wrist = hand[HandLandmark.WRIST]
    extended = 0
    for tip_lm, base_lm in FINGERS.values():
        tip_distance = hand[tip_lm].distance_to(wrist)
        base_distance = hand[base_lm].distance_to(wrist)
        if tip_distance > base_distance * EXTENSION_RATIO:
            extended += 1
    return extended


def classify_hand_state(hand: HandObservation) -> HandState:
    """
    Classify one hand.

    Args:
        hand: A 21-landmark observation

    Returns:
        OPEN for 4+ extended fingers, FIST for 0-1, PARTIAL otherwise
    """
    extended = count_extended_fingers(hand)
    if extended >= OPEN_MIN_EXTENDED:
        return HandState.OPEN
    if extended <= FIST_MAX_EXTENDED:
        return HandState.FIST
    return HandState.PARTIAL


def landmarks_midpoint(hand: Optional[HandObservation]) -> Optional[Landmark]:
    """Componentwise mean of all landmarks, or None for an empty observation."""
    if hand is None or len(hand) == 0:
        return None

    count = len(hand.landmarks)
    return Landmark(
        x=sum(lm.x for lm in hand.landmarks) / count,
        y=sum(lm.y for lm in hand.landmarks) / count,
        z=sum(lm.z for lm in hand.landmarks) / count,
    )
