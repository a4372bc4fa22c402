"""
LED command message and its wire format.

The actuator expects a form-urlencoded POST body with a single field:

    state=ON
    state=OFF
"""

import time
from dataclasses import dataclass, field
from urllib.parse import urlencode

from .finger_state import GestureLabel

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

VALID_STATES = ("ON", "OFF")


@dataclass(frozen=True)
class LedCommand:
    """
    Command sent to the LED actuator.

    Attributes:
        state: "ON" or "OFF"
        ts_ms: Monotonic timestamp in milliseconds when the command was made.
            Local bookkeeping only, never sent on the wire.
    """
    state: str
    ts_ms: int = field(default_factory=lambda: int(time.monotonic() * 1000))

    def __post_init__(self):
        if self.state not in VALID_STATES:
            raise ValueError(f"Invalid LED state: {self.state!r}")

    @classmethod
    def from_label(cls, label: GestureLabel) -> "LedCommand":
        """Create a command for a gesture label with the current timestamp."""
        return cls(state=label.value)

    def to_form(self) -> bytes:
        """Serialize to the form-urlencoded request body."""
        return urlencode({"state": self.state}).encode("ascii")

