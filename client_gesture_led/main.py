#!/usr/bin/env python3
"""
Gesture LED Client - Main Entry Point

Watches the camera, classifies the first visible hand as open (all five
fingers extended) or not, and switches a network LED controller ON/OFF
on every change. A preview window shows the hand skeleton and status.

Environment Variables:
    GESTURE_LED_URL: Actuator endpoint (default: http://192.168.4.1/led)
    GESTURE_LED_TIMEOUT: Actuator request timeout in seconds (default: 2.0)
    GESTURE_LED_THRESHOLD: Finger openness ratio threshold (default: 1.7)

Usage:
    python -m client_gesture_led.main --camera 0
    python -m client_gesture_led.main --actuator-url http://127.0.0.1:8000/led --release-on-stop

Preview keys:
    s      start/stop the camera
    q/Esc  quit
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Optional

import cv2

from .actuator import ActuatorNotifier
from .config import (
    CAPTURE_FPS,
    DEFAULT_ACTUATOR_TIMEOUT,
    DEFAULT_ACTUATOR_URL,
    FRAME_HEIGHT,
    FRAME_WIDTH,
    OPEN_RATIO_THRESHOLD,
    DetectorOptions,
)
from .errors import CaptureError
from .overlay import Canvas, RenderOverlay
from .pipeline import GesturePipeline
from .sources import CameraSource, MediaPipeDetector

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

WINDOW_NAME = "Hand Gesture Detector"


class GestureLedClient:
    """
    Main client that wires the components together:
    - Camera capture (per session)
    - MediaPipe hand detection (per session)
    - Gesture pipeline (classifier, debouncer, lifecycle)
    - LED actuator notifier
    - Preview window
    """

    def __init__(
        self,
        actuator_url: str = DEFAULT_ACTUATOR_URL,
        timeout: float = DEFAULT_ACTUATOR_TIMEOUT,
        camera_index: int = 0,
        stream_url: Optional[str] = None,
        threshold: float = OPEN_RATIO_THRESHOLD,
        detector_options: DetectorOptions = DetectorOptions(),
        fps: float = CAPTURE_FPS,
        mirror: bool = True,
        show_preview: bool = True,
        release_on_stop: bool = False,
    ):
        """
        Initialize the client.

        Args:
            actuator_url: LED controller endpoint
            timeout: Actuator request timeout (seconds)
            camera_index: Camera device index (used if stream_url is None)
            stream_url: RTSP/HTTP stream URL (overrides camera_index if set)
            threshold: Finger openness ratio threshold
            detector_options: MediaPipe Hands options
            fps: Capture and preview rate (Hz)
            mirror: Flip frames horizontally
            show_preview: Whether to show the OpenCV preview window
            release_on_stop: Switch the LED off when the camera stops
        """
        self.camera_index = camera_index
        self.stream_url = stream_url
        self.fps = fps
        self.mirror = mirror
        self.show_preview = show_preview

        self.notifier = ActuatorNotifier(url=actuator_url, timeout=timeout)
        self.overlay = RenderOverlay(Canvas(FRAME_WIDTH, FRAME_HEIGHT))
        self.pipeline = GesturePipeline(
            source_factory=self._make_source,
            detector_factory=MediaPipeDetector,
            notifier=self.notifier,
            overlay=self.overlay,
            detector_options=detector_options,
            threshold=threshold,
            release_on_stop=release_on_stop,
            on_status=self._on_status,
        )

        self._running = False

    def _make_source(self) -> CameraSource:
        return CameraSource(
            camera_index=self.camera_index,
            url=self.stream_url,
            width=FRAME_WIDTH,
            height=FRAME_HEIGHT,
            mirror=self.mirror,
            fps=self.fps,
        )

    async def start(self) -> None:
        """Start the client with the camera running."""
        logger.info(f"Starting Gesture LED Client (actuator: {self.notifier.url})")
        self._running = True
        await self.pipeline.start()
        logger.info("Gesture LED Client started")

    async def stop(self) -> None:
        """Stop the client and clean up resources."""
        logger.info("Stopping Gesture LED Client...")
        self._running = False

        await self.pipeline.dispose()
        await self.notifier.aclose()

        if self.show_preview:
            cv2.destroyAllWindows()

        logger.info("Gesture LED Client stopped")

    def request_stop(self) -> None:
        """Ask run() to return at its next iteration."""
        self._running = False

    async def run(self) -> None:
        """Preview/UI loop; the frame pipeline runs in its own task."""
        target_dt = 1.0 / self.fps if self.fps > 0 else 0.05

        while self._running:
            if self.show_preview:
                cv2.imshow(WINDOW_NAME, self.overlay.canvas.image)
                key = cv2.waitKey(1) & 0xFF
                if key in (27, ord('q')):
                    logger.info("Quit requested")
                    self._running = False
                    break
                elif key in (ord('s'), ord('S')):
                    await self.toggle_camera()

            await asyncio.sleep(target_dt)

    async def toggle_camera(self) -> None:
        """Stop the camera if it is running, start it otherwise."""
        if self.pipeline.session_active:
            await self.pipeline.stop()
        else:
            try:
                await self.pipeline.start()
            except CaptureError as e:
                logger.error(f"Camera start failed: {e}")
            except Exception as e:
                logger.error(f"Pipeline start failed, press s to retry: {e}")

    def _on_status(self, status: str) -> None:
        logger.info(f"Status: {status}")


async def main_async(args: argparse.Namespace) -> None:
    """Async main entry point."""
    client = GestureLedClient(
        actuator_url=args.actuator_url,
        timeout=args.timeout,
        camera_index=args.camera,
        stream_url=args.url,
        threshold=args.threshold,
        detector_options=DetectorOptions(
            max_hands=1,
            model_complexity=args.model_complexity,
            min_detection_confidence=args.min_detection_confidence,
            min_tracking_confidence=args.min_tracking_confidence,
        ),
        fps=args.fps,
        mirror=not args.no_mirror,
        show_preview=not args.no_preview,
        release_on_stop=args.release_on_stop,
    )

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Shutdown signal received")
        client.request_stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    try:
        await client.start()
        await client.run()
    except Exception as e:
        logger.error(f"Client error: {e}")
    finally:
        await client.stop()


def build_parser() -> argparse.ArgumentParser:
    """Command line options; defaults honour the GESTURE_LED_* variables."""
    parser = argparse.ArgumentParser(
        description="Hand Gesture LED Client",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--actuator-url",
        type=str,
        default=os.environ.get("GESTURE_LED_URL", DEFAULT_ACTUATOR_URL),
        help="LED controller endpoint",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=float(os.environ.get("GESTURE_LED_TIMEOUT", DEFAULT_ACTUATOR_TIMEOUT)),
        help="Actuator request timeout (s)",
    )
    parser.add_argument(
        "--camera",
        type=int,
        default=0,
        help="Camera device index",
    )
    parser.add_argument(
        "--url",
        type=str,
        default=None,
        help="Stream URL (overrides --camera if set)",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=float(os.environ.get("GESTURE_LED_THRESHOLD", OPEN_RATIO_THRESHOLD)),
        help="Finger openness ratio threshold",
    )
    parser.add_argument(
        "--model-complexity",
        type=int,
        choices=(0, 1),
        default=1,
        help="MediaPipe model complexity (0=fastest)",
    )
    parser.add_argument(
        "--min-detection-confidence",
        type=float,
        default=0.5,
        help="Minimum hand detection confidence",
    )
    parser.add_argument(
        "--min-tracking-confidence",
        type=float,
        default=0.5,
        help="Minimum hand tracking confidence",
    )
    parser.add_argument(
        "--fps",
        type=float,
        default=CAPTURE_FPS,
        help="Capture rate (Hz)",
    )
    parser.add_argument(
        "--no-mirror",
        action="store_true",
        help="Do not flip the camera image horizontally",
    )
    parser.add_argument(
        "--no-preview",
        action="store_true",
        help="Run without the preview window",
    )
    parser.add_argument(
        "--release-on-stop",
        action="store_true",
        help="Switch the LED off when the camera stops",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        asyncio.run(main_async(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
