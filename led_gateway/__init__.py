"""
LED Gateway - bench stand-in for the network LED controller.

Serves the same POST /led endpoint as the device so the gesture client can
be run and tested without hardware on the network.
"""

__version__ = "1.0.0"
