"""
Actuator Notifier - HTTP client for the LED controller.

Handles:
- Form-urlencoded POST of ON/OFF commands to the ESP32 /led endpoint
- Non-blocking dispatch (the frame loop never waits on the network)
- Requests leave in the order notify() was called
- Failures are logged and counted, never raised
"""

import asyncio
import http.client
import logging
import time
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional, Set

from .config import DEFAULT_ACTUATOR_TIMEOUT, DEFAULT_ACTUATOR_URL
from .errors import ActuatorUnreachable
from .finger_state import GestureLabel
from .message import FORM_CONTENT_TYPE, LedCommand

logger = logging.getLogger(__name__)

Sender = Callable[[str, bytes, float], str]


def post_form(url: str, body: bytes, timeout: float) -> str:
    """
    POST a form-urlencoded body and return the response text.

    Args:
        url: Actuator endpoint
        body: Encoded form body
        timeout: Seconds to wait for connect + response

    Returns:
        Decoded response body

    Raises:
        ActuatorUnreachable: on refused connection, timeout or non-2xx status
    """
    request = urllib.request.Request(
        url,
        data=body,
        method="POST",
        headers={"Content-Type": FORM_CONTENT_TYPE},
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            status = getattr(response, "status", 200)
            text = response.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as e:
        raise ActuatorUnreachable(f"HTTP {e.code} from {url}") from e
    except urllib.error.URLError as e:
        raise ActuatorUnreachable(f"{url} unreachable: {e.reason}") from e
    except http.client.HTTPException as e:
        # Garbled status line or a reply cut short
        raise ActuatorUnreachable(f"Bad reply from {url}: {e!r}") from e
    except OSError as e:
        # socket.timeout and ConnectionResetError land here
        raise ActuatorUnreachable(f"{url} unreachable: {e}") from e

    if not 200 <= status < 300:
        raise ActuatorUnreachable(f"HTTP {status} from {url}")
    return text


@dataclass
class NotifierStats:
    """Statistics about actuator notifications."""
    dispatched: int = 0
    succeeded: int = 0
    failed: int = 0
    last_state: Optional[str] = None
    last_reply: Optional[str] = None
    last_error: Optional[str] = None
    last_latency_ms: Optional[float] = None


class ActuatorNotifier:
    """
    Fire-and-forget LED command sender.

    Each notify() hands the request to a single worker thread, so requests
    go out one after another in transition order. A detached task waits
    for the outcome and logs it; nobody else ever awaits it.
    """

    def __init__(
        self,
        url: str = DEFAULT_ACTUATOR_URL,
        timeout: float = DEFAULT_ACTUATOR_TIMEOUT,
        sender: Optional[Sender] = None,
    ):
        """
        Initialize notifier.

        Args:
            url: Actuator endpoint (e.g., http://192.168.4.1/led)
            timeout: Per-request timeout in seconds
            sender: Blocking callable (url, body, timeout) -> reply text.
                Defaults to post_form.
        """
        self.url = url
        self.timeout = timeout
        self._sender = sender or post_form

        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Set[asyncio.Task] = set()
        self._closed = False

        self.stats = NotifierStats()

    def notify(self, label: GestureLabel) -> None:
        """
        Dispatch a command for the new label without waiting for it.

        Must be called from a running event loop.
        """
        if self._closed:
            logger.debug(f"Notifier closed, dropping {label.value}")
            return

        command = LedCommand.from_label(label)
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="actuator")

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(
            self._executor, self._sender, self.url, command.to_form(), self.timeout
        )
        self.stats.dispatched += 1
        logger.debug(f"Dispatched LED {command.state} to {self.url}")

        task = loop.create_task(self._report(command, future))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _report(self, command: LedCommand, future: "asyncio.Future[str]") -> None:
        """Result sink: log the outcome of one request."""
        try:
            reply = await future
        except ActuatorUnreachable as e:
            self.stats.failed += 1
            self.stats.last_error = str(e)
            logger.warning(f"LED {command.state} not delivered: {e}")
            return
        except Exception as e:
            # A custom sender that does not map its errors
            self.stats.failed += 1
            self.stats.last_error = str(e)
            logger.warning(f"LED {command.state} not delivered: {e}")
            return

        latency_ms = time.monotonic() * 1000 - command.ts_ms
        self.stats.succeeded += 1
        self.stats.last_state = command.state
        self.stats.last_reply = reply
        self.stats.last_latency_ms = latency_ms
        logger.info(f"LED state: {reply.strip() or command.state} ({latency_ms:.0f} ms)")

    @property
    def in_flight(self) -> int:
        """Number of notifications whose outcome is not known yet."""
        return len(self._pending)

    async def drain(self) -> None:
        """Wait until every dispatched notification has been reported."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        """Drain outstanding requests and release the worker thread."""
        if self._closed:
            return
        self._closed = True
        await self.drain()
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        logger.info("Actuator notifier closed")

    def get_stats(self) -> dict:
        """Get notification statistics."""
        return {
            "url": self.url,
            "dispatched": self.stats.dispatched,
            "succeeded": self.stats.succeeded,
            "failed": self.stats.failed,
            "in_flight": self.in_flight,
            "last_state": self.stats.last_state,
            "last_reply": self.stats.last_reply,
            "last_error": self.stats.last_error,
            "last_latency_ms": self.stats.last_latency_ms,
        }
