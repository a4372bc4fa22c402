"""
Frame and Detector Gates - per-frame failure bookkeeping.

A bad camera frame or a detector exception must never end the session:
the frame is skipped and treated as "no hand". The gates decide which
frames are usable and turn long failure streaks into a single warning.
"""

import time
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .config import DEGRADED_AFTER_FAILURES, INVALID_FRAME_TIMEOUT_MS

logger = logging.getLogger(__name__)


@dataclass
class FrameValidationResult:
    """Result of frame validation."""
    valid: bool
    reason: str
    frame: Optional[np.ndarray] = None


class FrameGate:
    """
    Quality gate for frames coming out of the capture source.

    Validates:
    - Frame was read at all (None means the read failed)
    - Frame not empty
    - Frame has shape (H, W, 3)
    - Shape consistency across frames (detect decode corruption)
    - Not an all-black decode artefact

    Tracks consecutive invalid frames and logs one warning per streak once
    the streak lasts longer than invalid_timeout_ms.
    """

    def __init__(
        self,
        invalid_timeout_ms: int = INVALID_FRAME_TIMEOUT_MS,
        allow_shape_change: bool = False,
    ):
        """
        Initialize FrameGate.

        Args:
            invalid_timeout_ms: Length of an invalid streak (ms) that is
                reported as a stalled capture.
            allow_shape_change: If True, don't treat shape changes as invalid.
        """
        self.invalid_timeout_ms = invalid_timeout_ms
        self.allow_shape_change = allow_shape_change

        self._invalid_since: Optional[float] = None
        self._stall_reported = False
        self._last_valid_shape: Optional[Tuple[int, ...]] = None
        self._total_invalid = 0
        self._total_valid = 0

    def validate(self, frame: Optional[np.ndarray]) -> FrameValidationResult:
        """
        Validate a frame delivered by the capture source.

        Args:
            frame: BGR image, or None if the read failed

        Returns:
            FrameValidationResult with valid flag, reason, and frame if valid.
        """
        if frame is None:
            return self._reject("read_failed")

        if not isinstance(frame, np.ndarray) or frame.size == 0:
            return self._reject("empty_frame")

        if frame.ndim != 3:
            return self._reject("invalid_dims")

        if frame.shape[2] != 3:
            return self._reject("invalid_channels")

        if not self.allow_shape_change and self._last_valid_shape is not None:
            if frame.shape != self._last_valid_shape:
                logger.warning(
                    f"Frame shape changed from {self._last_valid_shape} to {frame.shape} "
                    "- possible decode corruption"
                )
                return self._reject("shape_changed")

        if self._is_likely_corrupted(frame):
            return self._reject("likely_corrupted")

        self._total_valid += 1
        self._last_valid_shape = frame.shape
        self._invalid_since = None
        self._stall_reported = False
        return FrameValidationResult(True, "ok", frame)

    def _is_likely_corrupted(self, frame: np.ndarray) -> bool:
        """
        Cheap check for the classic all-black decode failure.

        Samples five pixels instead of scanning the whole frame.
        """
        h, w = frame.shape[:2]
        try:
            samples = [
                frame[h // 4, w // 4],
                frame[h // 4, 3 * w // 4],
                frame[h // 2, w // 2],
                frame[3 * h // 4, w // 4],
                frame[3 * h // 4, 3 * w // 4],
            ]
            if all(np.array_equal(s, samples[0]) for s in samples):
                if np.mean(samples[0]) < 5:
                    return True
        except (IndexError, ValueError):
            return True
        return False

    def _reject(self, reason: str) -> FrameValidationResult:
        now = time.monotonic()
        self._total_invalid += 1
        if self._invalid_since is None:
            self._invalid_since = now

        elapsed_ms = (now - self._invalid_since) * 1000
        if elapsed_ms >= self.invalid_timeout_ms and not self._stall_reported:
            self._stall_reported = True
            logger.warning(f"Capture stalled: {elapsed_ms:.0f}ms of invalid frames ({reason})")
        return FrameValidationResult(False, reason)

    def get_stats(self) -> dict:
        """Get validation statistics."""
        total = self._total_valid + self._total_invalid
        return {
            "total_frames": total,
            "valid_frames": self._total_valid,
            "invalid_frames": self._total_invalid,
            "valid_rate": self._total_valid / total if total > 0 else 0.0,
            "last_valid_shape": self._last_valid_shape,
        }


class DetectorGate:
    """
    Failure counter for hand detector calls.

    Three consecutive failures (by default) mark the session as degraded
    and log one warning. The session keeps running; the next success
    clears the streak.
    """

    def __init__(self, degraded_after: int = DEGRADED_AFTER_FAILURES):
        self.degraded_after = degraded_after
        self._consecutive_failures = 0
        self._total_failures = 0
        self._total_successes = 0
        self._degraded_reported = False

    def record_success(self) -> None:
        if self._degraded_reported:
            logger.info(
                f"Detector recovered after {self._consecutive_failures} consecutive failures"
            )
        self._consecutive_failures = 0
        self._degraded_reported = False
        self._total_successes += 1

    def record_failure(self, error: Exception) -> None:
        self._consecutive_failures += 1
        self._total_failures += 1
        logger.debug(f"Detector failure #{self._consecutive_failures}: {error}")

        if self.degraded and not self._degraded_reported:
            self._degraded_reported = True
            logger.warning(
                f"Session degraded: {self._consecutive_failures} consecutive detector "
                f"failures (last: {error})"
            )

    @property
    def degraded(self) -> bool:
        """True while the failure streak is at or above the threshold."""
        return self._consecutive_failures >= self.degraded_after

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def get_stats(self) -> dict:
        """Get processing statistics."""
        total = self._total_successes + self._total_failures
        return {
            "total_processed": total,
            "successes": self._total_successes,
            "failures": self._total_failures,
            "success_rate": self._total_successes / total if total > 0 else 0.0,
            "consecutive_failures": self._consecutive_failures,
            "degraded": self.degraded,
        }
