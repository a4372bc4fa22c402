"""
Default configuration for the gesture LED client.

Everything here is an empirical default; the CLI exposes each value as a
flag and the most commonly tuned ones can be overridden from the
environment (see main.py).
"""

from dataclasses import dataclass, asdict

# Actuator (ESP32 soft-AP address)
DEFAULT_ACTUATOR_URL = "http://192.168.4.1/led"
DEFAULT_ACTUATOR_TIMEOUT = 2.0  # seconds before a request counts as failed

# Classifier: tip/wrist over base/wrist distance above which a finger is open
OPEN_RATIO_THRESHOLD = 1.7

# Consecutive detector failures before the session is reported degraded
DEGRADED_AFTER_FAILURES = 3

# Capture / canvas
FRAME_WIDTH = 640
FRAME_HEIGHT = 480
CAPTURE_FPS = 30.0
MIRROR = True

# Consecutive invalid frames (ms) before a stalled-capture warning
INVALID_FRAME_TIMEOUT_MS = 300


@dataclass(frozen=True)
class DetectorOptions:
    """Options handed to the hand landmark detector."""
    max_hands: int = 1
    model_complexity: int = 1
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5

    def to_dict(self) -> dict:
        return asdict(self)
