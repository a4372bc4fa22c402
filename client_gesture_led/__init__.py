"""
Client Gesture LED - open-hand gesture to LED switch.

This module runs next to a camera, tracks one hand with MediaPipe, and
switches a network LED controller ON when all five fingers are extended
and OFF otherwise, sending a request only when the state changes.
"""

__version__ = "1.0.0"
