"""
Render Overlay - video frame, hand skeleton and status text.

Canvas is the drawing surface (a BGR numpy image). The skeleton is painted
with MediaPipe's drawing utilities and the status line with OpenCV.
RenderOverlay owns the composition: what gets painted, in which order and
with which colors.
"""

import logging
from typing import Optional, Sequence, Tuple

import cv2
import mediapipe as mp
import numpy as np
from mediapipe.framework.formats import landmark_pb2

from .config import FRAME_HEIGHT, FRAME_WIDTH

logger = logging.getLogger(__name__)

mp_hands = mp.solutions.hands
mp_draw = mp.solutions.drawing_utils

Color = Tuple[int, int, int]

# BGR
SKELETON_COLOR: Color = (0, 255, 0)   # #00FF00
SKELETON_WIDTH = 5
POINT_COLOR: Color = (0, 0, 255)      # #FF0000
POINT_WIDTH = 2
STATUS_ON_COLOR: Color = (0, 255, 0)
STATUS_OFF_COLOR: Color = (0, 0, 255)

POINT_SPEC = mp_draw.DrawingSpec(color=POINT_COLOR, thickness=POINT_WIDTH)
SKELETON_SPEC = mp_draw.DrawingSpec(color=SKELETON_COLOR, thickness=SKELETON_WIDTH)


def to_landmark_list(observation: Sequence) -> landmark_pb2.NormalizedLandmarkList:
    """Wrap an observation in the proto mp_draw.draw_landmarks expects."""
    hand = landmark_pb2.NormalizedLandmarkList()
    for lm in observation:
        hand.landmark.add(x=lm.x, y=lm.y, z=lm.z)
    return hand


class Canvas:
    """Fixed-size BGR drawing surface."""

    def __init__(self, width: int = FRAME_WIDTH, height: int = FRAME_HEIGHT):
        self.width = width
        self.height = height
        self.image = np.zeros((height, width, 3), dtype=np.uint8)
        self.font = cv2.FONT_HERSHEY_SIMPLEX

    def clear(self) -> None:
        self.image[:] = 0

    def draw_image(self, image: np.ndarray) -> None:
        """Paint a frame scaled to the whole canvas."""
        h, w = image.shape[:2]
        if (w, h) != (self.width, self.height):
            image = cv2.resize(image, (self.width, self.height))
        self.image[:] = image

    def draw_hand(self, observation: Sequence) -> None:
        """Skeleton lines and landmark points; off-frame landmarks are skipped."""
        mp_draw.draw_landmarks(
            self.image,
            to_landmark_list(observation),
            mp_hands.HAND_CONNECTIONS,
            POINT_SPEC,
            SKELETON_SPEC,
        )

    def draw_text(self, text: str, origin: Tuple[int, int], color: Color, scale: float = 0.9) -> None:
        cv2.putText(self.image, text, origin, self.font, scale, color, 2)


class RenderOverlay:
    """
    Paints one pipeline frame onto the canvas.

    Order: clear, video frame, hand skeleton and points, status text.
    """

    def __init__(self, canvas: Optional[Canvas] = None):
        self.canvas = canvas or Canvas()
        self.frames_rendered = 0

    def render(self, image: Optional[np.ndarray], observation: Optional[Sequence], status: str) -> None:
        """
        Repaint the canvas.

        Args:
            image: Latest video frame (BGR), or None to keep a blank background
            observation: Landmarks of the first hand, or None if no hand
            status: "ON" or "OFF"
        """
        canvas = self.canvas
        canvas.clear()
        if image is not None:
            canvas.draw_image(image)

        if observation is not None:
            canvas.draw_hand(observation)

        color = STATUS_ON_COLOR if status == "ON" else STATUS_OFF_COLOR
        canvas.draw_text(f"Status: {status}", (20, 40), color)
        self.frames_rendered += 1

    def clear(self) -> None:
        """Blank the canvas (camera stopped)."""
        self.canvas.clear()
        logger.debug("Canvas cleared")
