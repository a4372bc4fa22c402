"""
Capture and detection adapters.

CameraSource wraps cv2.VideoCapture and pushes frames into a callback at
the camera rate. MediaPipeDetector wraps MediaPipe Hands behind the
configure / on_result / submit interface the pipeline consumes.
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Awaitable, Callable, List, Optional, Union

import cv2
import mediapipe as mp
import numpy as np

from .config import CAPTURE_FPS, FRAME_HEIGHT, FRAME_WIDTH, MIRROR, DetectorOptions
from .errors import CaptureError, DetectorFailure
from .finger_state import HandObservation, to_observation
from .pipeline import DetectorResult

logger = logging.getLogger(__name__)

FrameCallback = Callable[[Optional[np.ndarray]], Awaitable[None]]


def extract_observations(results) -> List[HandObservation]:
    """
    Convert MediaPipe Hands results into observations.

    Args:
        results: Object returned by Hands.process()

    Returns:
        One observation per detected hand, in detector order
    """
    hands = getattr(results, "multi_hand_landmarks", None) or []
    return [to_observation(hand.landmark) for hand in hands]


class MediaPipeDetector:
    """
    MediaPipe Hands behind an async submit().

    Hands.process() runs on a dedicated worker thread so the event loop
    keeps drawing while a frame is being analysed. One detector instance
    belongs to exactly one pipeline session.
    """

    def __init__(self):
        self.options: Optional[DetectorOptions] = None
        self._hands = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._callback: Optional[Callable[[DetectorResult], None]] = None

    def configure(self, options: DetectorOptions) -> None:
        """Create the MediaPipe graph with the given options."""
        if self._hands is not None:
            self._hands.close()

        try:
            self._hands = mp.solutions.hands.Hands(
                static_image_mode=False,
                max_num_hands=options.max_hands,
                model_complexity=options.model_complexity,
                min_detection_confidence=options.min_detection_confidence,
                min_tracking_confidence=options.min_tracking_confidence,
            )
        except Exception as e:
            # Also covers mediapipe builds without the legacy solutions API
            self._hands = None
            raise DetectorFailure(f"Cannot create MediaPipe Hands: {e}") from e
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="detector")
        self.options = options
        logger.info(f"MediaPipe Hands configured: {options.to_dict()}")

    def on_result(self, callback: Callable[[DetectorResult], None]) -> None:
        """Register the callback that receives every processed frame."""
        self._callback = callback

    async def submit(self, image: np.ndarray) -> None:
        """
        Detect hands in one BGR frame and deliver the result.

        Raises:
            DetectorFailure: if the detector is not configured or
                processing raised
        """
        if self._hands is None or self._executor is None:
            raise DetectorFailure("detector not configured")

        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        loop = asyncio.get_running_loop()
        try:
            results = await loop.run_in_executor(self._executor, self._hands.process, rgb)
        except Exception as e:
            raise DetectorFailure(f"MediaPipe processing error: {e}") from e

        if self._callback is not None:
            self._callback(DetectorResult(image=image, observations=extract_observations(results)))

    async def close(self) -> None:
        """Wait for an in-flight frame, then release the MediaPipe graph."""
        executor, hands = self._executor, self._hands
        self._executor = None
        self._hands = None
        self._callback = None

        if executor is not None:
            await asyncio.get_running_loop().run_in_executor(None, executor.shutdown)
        if hands is not None:
            hands.close()
        logger.debug("MediaPipe Hands closed")


class CameraSource:
    """
    Local camera or network stream as a frame callback source.

    The read loop calls on_frame(frame) once per frame, or on_frame(None)
    when a read fails, and never runs two callbacks at once.
    """

    def __init__(
        self,
        camera_index: int = 0,
        url: Optional[str] = None,
        width: int = FRAME_WIDTH,
        height: int = FRAME_HEIGHT,
        mirror: bool = MIRROR,
        fps: float = CAPTURE_FPS,
    ):
        """
        Initialize camera source.

        Args:
            camera_index: Camera device index (used if url is None)
            url: RTSP/HTTP stream URL (overrides camera_index if set)
            width: Requested capture width
            height: Requested capture height
            mirror: Flip frames horizontally (selfie view)
            fps: Upper bound on the callback rate
        """
        self.camera_index = camera_index
        self.url = url
        self.width = width
        self.height = height
        self.mirror = mirror
        self.fps = fps

        self.cap: Optional[cv2.VideoCapture] = None
        self._task: Optional[asyncio.Task] = None
        self.frames_read = 0
        self.read_failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _open(self) -> cv2.VideoCapture:
        source: Union[int, str]
        if self.url:
            source = self.url
            if source.startswith("rtsp://"):
                # Prefer TCP transport for reliability
                if '?' not in source:
                    source += '?rtsp_transport=tcp'
                elif 'rtsp_transport' not in source:
                    source += '&rtsp_transport=tcp'
            logger.info(f"Opening stream: {source}")
        else:
            source = self.camera_index
            logger.info(f"Opening camera index: {source}")

        cap = cv2.VideoCapture(source)
        if not cap.isOpened():
            cap.release()
            raise CaptureError(f"Failed to open camera source {source!r}")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        fps = cap.get(cv2.CAP_PROP_FPS)
        logger.info(f"Camera opened: {width}x{height} @ {fps:.1f} fps")
        return cap

    async def start(self, on_frame: FrameCallback) -> None:
        """
        Open the device and start delivering frames.

        Raises:
            CaptureError: if the device or stream cannot be opened
        """
        if self.running:
            return
        self.cap = self._open()
        self._task = asyncio.create_task(self._read_loop(on_frame))

    async def _read_loop(self, on_frame: FrameCallback) -> None:
        target_dt = 1.0 / self.fps if self.fps > 0 else 0.0

        while True:
            loop_start = time.monotonic()

            ok, frame = self.cap.read()
            if ok and frame is not None:
                self.frames_read += 1
                if self.mirror:
                    frame = cv2.flip(frame, 1)
            else:
                self.read_failures += 1
                frame = None

            try:
                await on_frame(frame)
            except Exception as e:
                logger.error(f"Error in frame callback: {e}")

            elapsed = time.monotonic() - loop_start
            await asyncio.sleep(max(0.0, target_dt - elapsed))

    async def stop(self) -> None:
        """Stop the read loop and release the device."""
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self.cap is not None:
            self.cap.release()
            self.cap = None
            logger.info(
                f"Camera released ({self.frames_read} frames, {self.read_failures} read failures)"
            )
