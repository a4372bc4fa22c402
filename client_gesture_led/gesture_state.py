"""
Gesture Debouncer - edge detection on the per-frame gesture label.

The classifier runs on every frame (~30/s). The LED only needs to hear
about changes, so the debouncer remembers the last emitted label and only
reports transitions.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .finger_state import GestureLabel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionEvent:
    """Gesture label changed between two consecutive observations."""
    previous: GestureLabel
    current: GestureLabel

    def __str__(self) -> str:
        return f"{self.previous.value} -> {self.current.value}"


class GestureDebouncer:
    """
    Tracks the last emitted gesture label.

    "No hand" is reported as None and counts as CLOSED, which is also the
    default state and the state after reset().
    """

    def __init__(self, initial: GestureLabel = GestureLabel.CLOSED):
        self._default = initial
        self._state = initial
        self.transitions = 0

    @property
    def state(self) -> GestureLabel:
        """Last emitted label."""
        return self._state

    def observe(self, label: Optional[GestureLabel]) -> Optional[TransitionEvent]:
        """
        Feed one frame's label.

        Args:
            label: Freshly classified label, or None when no hand was seen

        Returns:
            TransitionEvent if the label differs from the current state,
            otherwise None.
        """
        if label is None:
            label = GestureLabel.CLOSED

        if label == self._state:
            return None

        event = TransitionEvent(previous=self._state, current=label)
        self._state = label
        self.transitions += 1
        logger.debug(f"Gesture transition: {event}")
        return event

    def reset(self) -> None:
        """Return to the default (OFF) state unconditionally."""
        self._state = self._default
