"""Fake capture source, detector and pipeline rig for async scenarios."""

import asyncio
from collections import deque

import numpy as np

from client_gesture_led.actuator import ActuatorNotifier
from client_gesture_led.errors import ActuatorUnreachable
from client_gesture_led.overlay import Canvas, RenderOverlay
from client_gesture_led.pipeline import DetectorResult, GesturePipeline


class FakeSource:
    """Capture source driven by the test: every emit() is one frame."""

    def __init__(self, fail_with=None):
        self.fail_with = fail_with
        self.on_frame = None
        self.starts = 0
        self.stops = 0

    async def start(self, on_frame):
        self.starts += 1
        if self.fail_with is not None:
            raise self.fail_with
        self.on_frame = on_frame

    async def stop(self):
        self.stops += 1
        self.on_frame = None

    async def emit(self, frame):
        if self.on_frame is not None:
            await self.on_frame(frame)


class FakeDetector:
    """
    Detector returning scripted results.

    Each queued item is a list of observations or an exception to raise.
    An empty queue means "no hand".
    """

    def __init__(self):
        self.script = deque()
        self.callback = None
        self.options = None
        self.submitted = 0
        self.closed = False

    def push(self, *items):
        self.script.extend(items)

    def configure(self, options):
        self.options = options

    def on_result(self, callback):
        self.callback = callback

    async def submit(self, image):
        self.submitted += 1
        item = self.script.popleft() if self.script else []
        if isinstance(item, Exception):
            raise item
        await asyncio.sleep(0)
        if self.callback is not None:
            self.callback(DetectorResult(image=image, observations=item))

    async def close(self):
        self.closed = True
        self.callback = None


class SlowDetector(FakeDetector):
    """Holds each result until release() and keeps delivering after close()."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    def release(self):
        self.gate.set()

    async def submit(self, image):
        self.submitted += 1
        item = self.script.popleft() if self.script else []
        await self.gate.wait()
        if self.callback is not None:
            self.callback(DetectorResult(image=image, observations=item))

    async def close(self):
        self.closed = True


class PipelineRig:
    """GesturePipeline wired to fakes and a recording actuator sender."""

    def __init__(self, detector_cls=FakeDetector, source_error=None, **pipeline_kwargs):
        self.detector_cls = detector_cls
        self.source_error = source_error
        self.sources = []
        self.detectors = []
        self.sent = []
        self.fail_actuator = False
        self.statuses = []

        self.notifier = ActuatorNotifier(url="http://led.test/led", timeout=0.5, sender=self._send)
        self.overlay = RenderOverlay(Canvas(64, 48))
        self.pipeline = GesturePipeline(
            source_factory=self._new_source,
            detector_factory=self._new_detector,
            notifier=self.notifier,
            overlay=self.overlay,
            on_status=self.statuses.append,
            **pipeline_kwargs,
        )

    def _new_source(self):
        source = FakeSource(fail_with=self.source_error)
        self.sources.append(source)
        return source

    def _new_detector(self):
        detector = self.detector_cls()
        self.detectors.append(detector)
        return detector

    def _send(self, url, body, timeout):
        self.sent.append(body.decode("ascii"))
        if self.fail_actuator:
            raise ActuatorUnreachable("connection refused")
        return "LED is " + body.decode("ascii").split("=", 1)[1]

    @property
    def source(self):
        return self.sources[-1]

    @property
    def detector(self):
        return self.detectors[-1]

    async def frame(self, *observations, frame=None):
        """Queue one detector result and push one frame through the pipeline."""
        if frame is None:
            frame = np.full((48, 64, 3), 128, dtype=np.uint8)
        self.detector.push(list(observations))
        await self.source.emit(frame)

    async def settle(self):
        await self.notifier.drain()

    async def close(self):
        await self.pipeline.dispose()
        await self.notifier.aclose()
