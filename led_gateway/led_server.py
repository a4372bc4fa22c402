"""
LED Server - simulated LED controller endpoint.

Handles:
- FastAPI POST /led with a form-urlencoded state=ON|OFF body
- GET /led for the current simulated LED state
- GET /health for monitoring
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional
from urllib.parse import parse_qs

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)

VALID_STATES = ("ON", "OFF")


@dataclass
class LedRequest:
    """Body of POST /led: a form-urlencoded state=ON|OFF."""
    state: str

    @classmethod
    def from_form(cls, body) -> "LedRequest":
        """
        Parse a form body. The state is matched case-insensitively.

        Raises:
            ValueError: if the state field is missing or not ON/OFF
        """
        if isinstance(body, bytes):
            body = body.decode("utf-8", errors="replace")
        values = parse_qs(body, keep_blank_values=True).get("state")
        if not values:
            raise ValueError("Missing 'state' field")
        state = values[0].strip().upper()
        if state not in VALID_STATES:
            raise ValueError(f"Invalid LED state: {values[0]!r}")
        return cls(state=state)


@dataclass
class LedState:
    """State of the simulated LED."""
    state: str = "OFF"
    changed_at: float = field(default_factory=time.time)
    changes: int = 0
    history: List[str] = field(default_factory=list)


class LedServer:
    """
    HTTP server that behaves like the LED controller firmware.

    Features:
    - Same endpoint and body format as the device
    - Plain-text reply "LED is ON" / "LED is OFF"
    - Optional callback on every state change
    """

    def __init__(
        self,
        initial_state: str = "OFF",
        on_change: Optional[Callable[[str], Awaitable[None]]] = None,
        history_size: int = 50,
    ):
        """
        Initialize LED server.

        Args:
            initial_state: "ON" or "OFF" at power-up
            on_change: Callback with the new state after every change
            history_size: Number of recent states kept for /led
        """
        if initial_state not in VALID_STATES:
            raise ValueError(f"Invalid initial state: {initial_state!r}")

        self.on_change = on_change
        self.history_size = history_size
        self.led = LedState(state=initial_state)

        # Statistics
        self._total_requests = 0
        self._invalid_requests = 0

        # FastAPI app
        self.app = FastAPI(title="Gesture LED Gateway")

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._setup_routes()

    def _setup_routes(self):
        """Set up FastAPI routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            return {
                "status": "ok",
                "led": self.led.state,
                "total_requests": self._total_requests,
                "invalid_requests": self._invalid_requests,
            }

        @self.app.get("/led")
        async def get_led():
            """Current LED state."""
            return {
                "state": self.led.state,
                "changes": self.led.changes,
                "changed_at": self.led.changed_at,
                "history": list(self.led.history),
            }

        @self.app.post("/led", response_class=PlainTextResponse)
        async def set_led(request: Request):
            """Switch the LED; body is state=ON or state=OFF."""
            body = await request.body()
            return await self._handle_command(body)

    async def _handle_command(self, body: bytes) -> str:
        self._total_requests += 1

        try:
            command = LedRequest.from_form(body)
        except ValueError as e:
            self._invalid_requests += 1
            logger.warning(f"Invalid LED request: {e}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        changed = command.state != self.led.state
        if changed:
            self.led.state = command.state
            self.led.changed_at = time.time()
            self.led.changes += 1
            self.led.history.append(command.state)
            del self.led.history[:-self.history_size]
            logger.info(f"LED switched {command.state}")
        else:
            logger.debug(f"LED already {command.state}")

        if changed and self.on_change:
            try:
                await self.on_change(command.state)
            except Exception as e:
                logger.error(f"Error in change callback: {e}")

        return f"LED is {command.state}"

    def get_stats(self) -> dict:
        """Get server statistics."""
        return {
            "led": self.led.state,
            "changes": self.led.changes,
            "total_requests": self._total_requests,
            "invalid_requests": self._invalid_requests,
        }
