"""Main application entry point."""

import argparse
import signal
import sys
from collections import Counter
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Request
import uvicorn

from .utils.logger import logger
from .utils.config import settings
from .engine.aria2 import Aria2Engine
from .session.coordinator import SessionCoordinator
from .session.runner import SessionRunner
from .api.routes import router


VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown of the engine and the session loop.
    """
    engine = None
    runner = None

    # Startup
    logger.info("Starting torrentdesk")
    logger.info(f"Version: {VERSION}")
    logger.info(f"Download path: {settings.download_path}")
    logger.info(f"Tick interval: {settings.tick_interval}s")

    try:
        engine = Aria2Engine()
        await engine.start()

        coordinator = SessionCoordinator(engine)
        runner = SessionRunner(coordinator)
        await runner.start()

        app.state.coordinator = coordinator
        app.state.runner = runner

        logger.info("torrentdesk started successfully")

        yield

    except Exception as e:
        logger.error(f"Failed to start application: {e}", exc_info=True)
        sys.exit(1)

    finally:
        # Shutdown
        logger.info("Shutting down torrentdesk")

        if runner:
            await runner.stop()

        if engine:
            await engine.stop()

        logger.info("torrentdesk stopped")


# Create FastAPI app
app = FastAPI(
    title="torrentdesk",
    description="BitTorrent session front-end on top of aria2",
    version=VERSION,
    lifespan=lifespan,
)

# Include API routes
app.include_router(router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "torrentdesk",
        "version": VERSION,
        "status": "running",
    }


@app.get("/health")
async def health(request: Request):
    """Health check endpoint."""
    runner = getattr(request.app.state, "runner", None)
    return {
        "status": "healthy",
        "session": "running" if runner and runner.running else "stopped",
    }


@app.get("/metrics")
async def metrics(request: Request):
    """
    Metrics endpoint for monitoring.

    Returns:
        Dictionary with torrent counts per status and current limits
    """
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        return {"error": "session not running"}

    rows = coordinator.rows()
    limits = coordinator.limits
    return {
        "torrents": len(rows),
        "torrents_by_status": dict(Counter(row.status for row in rows)),
        "upload_limit": limits.upload,
        "download_limit": limits.download,
        "revision": coordinator.revision,
    }


def handle_signal(signum, frame):
    """Handle shutdown signals."""
    logger.info(f"Received signal {signum}, shutting down...")
    sys.exit(0)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="torrentdesk",
        usage="torrentdesk",
        description="BitTorrent session front-end. Configured through the environment.",
    )
    parser.add_argument("args", nargs="*", help=argparse.SUPPRESS)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.args:
        parser.print_usage(sys.stderr)
        return 2

    # Register signal handlers
    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    # Run FastAPI app
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
