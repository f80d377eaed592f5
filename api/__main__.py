"""Command line interface for running the API server and phase scheduler."""
import asyncio
import logging
import signal

import uvicorn

from config import pricing_settings
from database import init_db, close as db_close
from lifecycle import LifecycleController
from workers.phase_scheduler import run_worker
from . import app

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

class UvicornServer:
    """Wrapper for running uvicorn with proper lifecycle management."""

    def __init__(self, host: str = "0.0.0.0", port: int = 8000):
        self.config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level="info"
        )
        self.server = uvicorn.Server(self.config)

    async def run(self):
        """Run the server in a way that can be stopped."""
        await self.server.serve()

    async def stop(self):
        """Stop the server."""
        self.server.should_exit = True

async def run_api(server: UvicornServer, stop_event: asyncio.Event):
    """Run the API server; its exit stops everything else."""
    try:
        await server.run()
    finally:
        stop_event.set()

async def main():
    """Run the API server and the phase scheduler on one controller."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    logger.info("Initializing database...")
    await init_db()

    controller = LifecycleController(settings=pricing_settings)
    await controller.initialize()
    app.state.controller = controller

    server = UvicornServer()
    tasks = [
        asyncio.create_task(run_api(server, stop_event), name="api"),
        asyncio.create_task(run_worker(controller, stop_event=stop_event), name="scheduler")
    ]
    logger.info("All services started")

    try:
        await stop_event.wait()
        logger.info("Shutdown signal received. Cleaning up...")
    finally:
        stop_event.set()
        await server.stop()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for task, result in zip(tasks, results):
            if isinstance(result, Exception):
                logger.error(f"Task {task.get_name()} failed with error: {result}")

        await controller.audit.flush()
        logger.info("Closing database connections...")
        await db_close()
        logger.info("Cleanup complete.")

if __name__ == "__main__":
    asyncio.run(main())
