"""
Error types raised inside the gesture pipeline.

None of these are allowed to end a running session: the pipeline catches
them per frame (or per notification), logs, and carries on.
"""


class GestureLedError(Exception):
    """Base class for all client errors."""


class InvalidObservation(GestureLedError):
    """Landmark set is incomplete or geometrically unusable."""


class DetectorFailure(GestureLedError):
    """Hand detector raised while processing a single frame."""


class ActuatorUnreachable(GestureLedError):
    """LED actuator request failed (refused, timed out or non-2xx)."""


class CaptureError(GestureLedError):
    """Camera or stream could not be opened."""
