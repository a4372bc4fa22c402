"""
Pipeline Lifecycle Controller - camera to LED, one frame at a time.

Owns the acquisition session (capture source + hand detector + frame
callback) and the per-frame decision path:

    frame -> detector -> classify -> debounce -> status / LED notify -> overlay

States:
    IDLE -> STARTING -> RUNNING -> STOPPING -> IDLE
    any  -> DISPOSED (terminal)

Every session gets a token. Detector results carry the token they were
submitted under and are dropped unless it still matches the active
session, so nothing lands on a stopped session's state or canvas.
"""

import functools
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Sequence

import numpy as np

from .config import DEGRADED_AFTER_FAILURES, OPEN_RATIO_THRESHOLD, DetectorOptions
from .errors import InvalidObservation
from .finger_state import GestureLabel, HandObservation, classify
from .frame_gate import DetectorGate, FrameGate
from .gesture_state import GestureDebouncer
from .overlay import RenderOverlay

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    DISPOSED = "disposed"


@dataclass
class DetectorResult:
    """One processed frame: the image and zero or more hands found in it."""
    image: Optional[np.ndarray]
    observations: Sequence[HandObservation] = ()


@dataclass
class PipelineSession:
    """Live binding of a capture source, a detector and the frame callback."""
    token: int
    source: Any
    detector: Any
    frame_gate: FrameGate
    detector_gate: DetectorGate
    started_at: float = field(default_factory=time.monotonic)
    frames: int = 0
    results: int = 0


class GesturePipeline:
    """
    Start/stop/dispose state machine around the gesture pipeline.

    The capture source and detector are built by factories on every
    start(), so a restarted pipeline never reuses a stopped session's
    objects. All methods must be called from the event loop thread.

    Consumed interfaces:
        source:   async start(on_frame), async stop()
        detector: configure(options), on_result(callback),
                  async submit(image), async close()
        notifier: notify(label), fire-and-forget
    """

    def __init__(
        self,
        source_factory: Callable[[], Any],
        detector_factory: Callable[[], Any],
        notifier: Any,
        overlay: Optional[RenderOverlay] = None,
        detector_options: DetectorOptions = DetectorOptions(),
        threshold: float = OPEN_RATIO_THRESHOLD,
        degraded_after: int = DEGRADED_AFTER_FAILURES,
        release_on_stop: bool = False,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            source_factory: Builds a fresh capture source per session
            detector_factory: Builds a fresh hand detector per session
            notifier: Receives notify(label) on every gesture transition
            overlay: Render target, repainted on every detector result
            detector_options: Passed to detector.configure()
            threshold: Finger openness ratio threshold for the classifier
            degraded_after: Consecutive detector failures before warning
            release_on_stop: Send OFF to the actuator on stop if it was ON
            on_status: Called with "ON"/"OFF" whenever the status changes
        """
        self._source_factory = source_factory
        self._detector_factory = detector_factory
        self._notifier = notifier
        self.overlay = overlay or RenderOverlay()
        self.detector_options = detector_options
        self.threshold = threshold
        self.degraded_after = degraded_after
        self.release_on_stop = release_on_stop
        self.on_status = on_status

        self._state = PipelineState.IDLE
        self._session: Optional[PipelineSession] = None
        self._generation = 0

        self._debouncer = GestureDebouncer()
        self._status = self._debouncer.state.value

        self.sessions_started = 0
        self.stale_results = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def status(self) -> str:
        """Current user-facing status, "ON" or "OFF"."""
        return self._status

    @property
    def gesture(self) -> GestureLabel:
        return self._debouncer.state

    @property
    def session_active(self) -> bool:
        return self._session is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Open a new session (IDLE -> STARTING).

        No-op while a session is starting/running/stopping or after
        dispose(). If the source fails to open, the partial session is
        torn down, the pipeline returns to IDLE and the error propagates.
        """
        if self._state is not PipelineState.IDLE:
            logger.debug(f"start() ignored in state {self._state.value}")
            return

        self._state = PipelineState.STARTING
        self._generation += 1
        session = PipelineSession(
            token=self._generation,
            source=self._source_factory(),
            detector=self._detector_factory(),
            frame_gate=FrameGate(),
            detector_gate=DetectorGate(self.degraded_after),
        )
        self._session = session
        self.sessions_started += 1
        logger.info(f"Starting pipeline session #{session.token}")

        try:
            session.detector.configure(self.detector_options)
            session.detector.on_result(functools.partial(self._on_result, session.token))
            await session.source.start(functools.partial(self._on_frame, session))
        except Exception as e:
            logger.error(f"Failed to start session #{session.token}: {e}")
            if self._session is session:
                self._session = None
                self._generation += 1
                await self._teardown(session)
                if self._state is PipelineState.STARTING:
                    self._state = PipelineState.IDLE
            raise

    async def stop(self) -> None:
        """
        End the active session (STARTING/RUNNING -> STOPPING -> IDLE).

        Stopping an idle pipeline is a no-op.
        """
        if self._state not in (PipelineState.STARTING, PipelineState.RUNNING):
            logger.debug(f"stop() ignored in state {self._state.value}")
            return

        await self._stop_session()
        if self._state is PipelineState.STOPPING:
            self._state = PipelineState.IDLE

    async def dispose(self) -> None:
        """Tear down whatever is running and refuse all further calls."""
        if self._state is PipelineState.DISPOSED:
            return

        if self._state in (PipelineState.STARTING, PipelineState.RUNNING):
            await self._stop_session()
        self._state = PipelineState.DISPOSED
        logger.info("Pipeline disposed")

    async def _stop_session(self) -> None:
        session = self._session
        self._state = PipelineState.STOPPING
        self._session = None
        # Results still in flight now carry an outdated token
        self._generation += 1

        was_on = self._debouncer.state is GestureLabel.OPEN
        if session is not None:
            await self._teardown(session)

        self.overlay.clear()
        self._debouncer.reset()
        self._set_status(self._debouncer.state)

        if self.release_on_stop and was_on:
            self._notifier.notify(GestureLabel.CLOSED)

        if session is not None:
            uptime = time.monotonic() - session.started_at
            logger.info(
                f"Pipeline session #{session.token} stopped after {uptime:.1f}s "
                f"({session.frames} frames, {session.results} results)"
            )

    async def _teardown(self, session: PipelineSession) -> None:
        """Stop the source and close the detector; errors are logged only."""
        try:
            await session.source.stop()
        except Exception as e:
            logger.error(f"Error stopping capture source: {e}")
        try:
            await session.detector.close()
        except Exception as e:
            logger.error(f"Error closing detector: {e}")

    # ------------------------------------------------------------------
    # Per-frame path
    # ------------------------------------------------------------------

    async def _on_frame(self, session: PipelineSession, frame: Optional[np.ndarray]) -> None:
        """Frame callback bound to one session."""
        if session is not self._session:
            return

        verdict = session.frame_gate.validate(frame)

        if self._state is PipelineState.STARTING:
            if not verdict.valid:
                return
            self._state = PipelineState.RUNNING
            logger.info(f"Pipeline session #{session.token} running")

        if self._state is not PipelineState.RUNNING:
            return

        session.frames += 1

        if not verdict.valid:
            logger.debug(f"Frame skipped: {verdict.reason}")
            self._apply_label(None)
            return

        try:
            await session.detector.submit(verdict.frame)
        except Exception as e:
            if session is not self._session:
                return
            session.detector_gate.record_failure(e)
            self._apply_label(None)
            return

        if session is self._session:
            session.detector_gate.record_success()

    def _on_result(self, token: int, result: DetectorResult) -> None:
        """Detector result callback; applies only to the session it came from."""
        session = self._session
        if session is None or session.token != token or self._state is not PipelineState.RUNNING:
            self.stale_results += 1
            logger.debug(f"Discarding stale detector result from session #{token}")
            return

        session.results += 1
        observation = result.observations[0] if result.observations else None

        if observation is None:
            self._apply_label(None)
        else:
            try:
                label = classify(observation, self.threshold)
            except InvalidObservation as e:
                logger.debug(f"Unusable hand skipped: {e}")
                observation = None
            else:
                self._apply_label(label)

        self.overlay.render(result.image, observation, self._status)

    def _apply_label(self, label: Optional[GestureLabel]) -> None:
        event = self._debouncer.observe(label)
        if event is None:
            return

        logger.info(f"Gesture changed: {event}")
        self._set_status(event.current)
        self._notifier.notify(event.current)

    def _set_status(self, label: GestureLabel) -> None:
        self._status = label.value
        if self.on_status is not None:
            try:
                self.on_status(self._status)
            except Exception as e:
                logger.error(f"Error in status callback: {e}")

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self) -> dict:
        """Get pipeline statistics."""
        session = self._session
        stats = {
            "state": self._state.value,
            "status": self._status,
            "sessions_started": self.sessions_started,
            "transitions": self._debouncer.transitions,
            "stale_results": self.stale_results,
            "frames_rendered": self.overlay.frames_rendered,
            "session": None,
        }
        if session is not None:
            stats["session"] = {
                "token": session.token,
                "frames": session.frames,
                "results": session.results,
                "frame_gate": session.frame_gate.get_stats(),
                "detector": session.detector_gate.get_stats(),
            }
        if hasattr(self._notifier, "get_stats"):
            stats["actuator"] = self._notifier.get_stats()
        return stats
