#!/usr/bin/env python3
"""
LED Gateway - Main Entry Point

Runs a stand-in for the LED controller so the gesture client can be
exercised without the device: same POST /led endpoint, same replies.

Environment Variables:
    LED_HOST: Bind address (default: 0.0.0.0)
    LED_PORT: Port (default: 80, the device's port)
    LED_INITIAL_STATE: ON or OFF at startup (default: OFF)

Usage:
    LED_PORT=8000 python -m led_gateway.main
    python -m client_gesture_led.main --actuator-url http://127.0.0.1:8000/led
"""

import asyncio
import logging
import os
import signal
import sys

import uvicorn

from .led_server import LedServer

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def run_server(server: LedServer, host: str, port: int) -> None:
    """Run the app with uvicorn."""
    config = uvicorn.Config(
        server.app,
        host=host,
        port=port,
        log_level="info",
        access_log=True,
    )
    await uvicorn.Server(config).serve()


async def main_async() -> None:
    """Async main entry point."""
    host = os.environ.get("LED_HOST", "0.0.0.0")
    port = int(os.environ.get("LED_PORT", "80"))
    initial_state = os.environ.get("LED_INITIAL_STATE", "OFF").upper()

    try:
        server = LedServer(initial_state=initial_state)
    except ValueError as e:
        logger.error(f"Bad configuration: {e}")
        sys.exit(1)

    # Setup signal handlers
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Shutdown signal received")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            pass

    logger.info(f"LED Gateway listening on {host}:{port} (LED {server.led.state})")

    server_task = asyncio.create_task(run_server(server, host, port))
    shutdown_task = asyncio.create_task(shutdown_event.wait())

    try:
        done, pending = await asyncio.wait(
            [server_task, shutdown_task],
            return_when=asyncio.FIRST_COMPLETED,
        )

        # Cancel pending tasks
        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        for task in done:
            if task is server_task and task.exception() is not None:
                logger.error(f"Server error: {task.exception()}")
    finally:
        logger.info(f"LED Gateway stopped: {server.get_stats()}")


def main() -> None:
    """Main entry point."""
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
