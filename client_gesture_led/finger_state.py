"""
Finger State Classifier - open hand vs. anything else.

Pure functions that turn a single MediaPipe hand (21 normalized landmarks)
into per-finger open/closed flags and an aggregate ON/OFF gesture label.
No state and no I/O: the same landmarks always give the same label.
"""

import math
from enum import Enum
from typing import Dict, NamedTuple, Sequence, Tuple

from .config import OPEN_RATIO_THRESHOLD
from .errors import InvalidObservation

# ============================================================================
# MediaPipe Landmark Indices
# ============================================================================

NUM_LANDMARKS = 21

WRIST = 0
THUMB_CMC, THUMB_MCP, THUMB_IP, THUMB_TIP = 1, 2, 3, 4
INDEX_MCP, INDEX_PIP, INDEX_DIP, INDEX_TIP = 5, 6, 7, 8
MIDDLE_MCP, MIDDLE_PIP, MIDDLE_DIP, MIDDLE_TIP = 9, 10, 11, 12
RING_MCP, RING_PIP, RING_DIP, RING_TIP = 13, 14, 15, 16
PINKY_MCP, PINKY_PIP, PINKY_DIP, PINKY_TIP = 17, 18, 19, 20


# ============================================================================
# Types
# ============================================================================

class Landmark(NamedTuple):
    """Normalized landmark: x, y in [0, 1] of frame size, z relative depth."""
    x: float
    y: float
    z: float = 0.0


HandObservation = Tuple[Landmark, ...]


class Finger(Enum):
    """Finger with its (tip, base) landmark pair used for the openness ratio."""
    THUMB = (THUMB_TIP, THUMB_MCP)
    INDEX = (INDEX_TIP, INDEX_MCP)
    MIDDLE = (MIDDLE_TIP, MIDDLE_MCP)
    RING = (RING_TIP, RING_MCP)
    PINKY = (PINKY_TIP, PINKY_MCP)

    @property
    def tip(self) -> int:
        return self.value[0]

    @property
    def base(self) -> int:
        return self.value[1]


class GestureLabel(Enum):
    """Aggregate gesture; the value is what the status label and LED see."""
    OPEN = "ON"
    CLOSED = "OFF"

    @classmethod
    def from_open(cls, is_open: bool) -> "GestureLabel":
        return cls.OPEN if is_open else cls.CLOSED


# ============================================================================
# Geometry Helpers
# ============================================================================

def distance3d(p, q) -> float:
    """Euclidean distance between two landmarks."""
    return math.sqrt((p.x - q.x) ** 2 + (p.y - q.y) ** 2 + (p.z - q.z) ** 2)


def to_observation(landmarks: Sequence) -> HandObservation:
    """
    Copy landmarks into an immutable observation.

    Args:
        landmarks: Any sequence of objects exposing x, y, z
            (e.g. mediapipe NormalizedLandmark list).

    Returns:
        Tuple of Landmark
    """
    return tuple(Landmark(float(p.x), float(p.y), float(getattr(p, "z", 0.0))) for p in landmarks)


def _check(observation: Sequence) -> None:
    if observation is None or len(observation) < NUM_LANDMARKS:
        got = 0 if observation is None else len(observation)
        raise InvalidObservation(
            f"expected {NUM_LANDMARKS} landmarks, got {got}"
        )


# ============================================================================
# Classification
# ============================================================================

def finger_ratio(observation: Sequence, finger: Finger) -> float:
    """
    Openness ratio of one finger.

    dist(tip, wrist) / dist(base, wrist). Both distances scale together, so
    the ratio does not depend on hand size or position in the frame.

    Raises:
        InvalidObservation: if landmarks are missing or the base knuckle
            sits on the wrist.
    """
    _check(observation)
    wrist = observation[WRIST]
    base_dist = distance3d(observation[finger.base], wrist)
    if base_dist <= 1e-12:
        raise InvalidObservation(f"{finger.name.lower()} base coincides with wrist")
    return distance3d(observation[finger.tip], wrist) / base_dist


def finger_ratios(observation: Sequence) -> Dict[Finger, float]:
    """Ratios for all five fingers."""
    _check(observation)
    return {finger: finger_ratio(observation, finger) for finger in Finger}


def finger_states(
    observation: Sequence,
    threshold: float = OPEN_RATIO_THRESHOLD,
) -> Dict[Finger, bool]:
    """Per-finger open flags; open means ratio strictly above threshold."""
    return {finger: ratio > threshold for finger, ratio in finger_ratios(observation).items()}


def classify(observation: Sequence, threshold: float = OPEN_RATIO_THRESHOLD) -> GestureLabel:
    """
    Classify a hand as OPEN (all five fingers extended) or CLOSED.

    Args:
        observation: 21 landmarks of one hand
        threshold: Ratio a finger must exceed to count as open

    Returns:
        GestureLabel.OPEN or GestureLabel.CLOSED

    Raises:
        InvalidObservation: if the landmark set is incomplete or degenerate
    """
    states = finger_states(observation, threshold)
    return GestureLabel.from_open(all(states.values()))

