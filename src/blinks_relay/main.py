"""Main entry point - runs the API and the event ingestion loop."""

import asyncio
import logging
import signal
from typing import Optional

import uvicorn

from blinks_relay.api.app import create_app
from blinks_relay.config import get_settings
from blinks_relay.container import RelayContainer, build_container
from blinks_relay.ledger.database import close_db, get_session_factory, init_db

logger = logging.getLogger(__name__)


class Application:
    """Main application that runs the API and event ingestion."""

    def __init__(self):
        self.settings = get_settings()
        self.container: Optional[RelayContainer] = None
        self._shutdown_event = asyncio.Event()

    async def start(self):
        """Start all services."""
        # Configure logging
        logging.basicConfig(
            level=self.settings.effective_log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        logger.info("Starting Blinks relay...")
        logger.info(f"Environment: {self.settings.environment}")
        logger.info(f"Network: {self.settings.network_passphrase}")

        # Initialize database
        await init_db()
        logger.info("Database initialized")

        self.container = build_container(self.settings, get_session_factory())

        # Start event ingestion if contracts are tracked
        if self.container.event_loop is not None:
            self.container.event_loop.start()
        else:
            logger.warning("Event ingestion disabled")

        # Start API server
        api_task = asyncio.create_task(self._run_api())
        logger.info("API task created")

        # Wait for shutdown signal
        await self._shutdown_event.wait()

        api_task.cancel()
        await asyncio.gather(api_task, return_exceptions=True)

        # Cleanup
        await self._cleanup()

    async def _run_api(self):
        """Run the FastAPI server."""
        try:
            app = create_app(self.container)
            config = uvicorn.Config(
                app,
                host=self.settings.api_host,
                port=self.settings.api_port,
                log_level="debug" if self.settings.debug else "info",
            )
            server = uvicorn.Server(config)
            logger.info(f"Starting API server on {self.settings.api_host}:{self.settings.api_port}")
            await server.serve()
        except asyncio.CancelledError:
            logger.info("API server cancelled")
        except Exception as e:
            logger.error(f"API error: {e}")
            raise

    async def _cleanup(self):
        """Cleanup resources."""
        logger.info("Cleaning up...")

        if self.container is not None:
            await self.container.close()

        await close_db()
        logger.info("Cleanup complete")

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()


def main():
    """Main entry point."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    app = Application()

    # Setup signal handlers
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        loop.close()


if __name__ == "__main__":
    main()
