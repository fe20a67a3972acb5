# Uvicorn application factory <https://www.uvicorn.org/#application-factories>
from asyncio import create_task, gather
from contextlib import asynccontextmanager
from logging import getLogger

from fastapi import FastAPI

from chat_relay.hub import RelayHub
from chat_relay.logging import logger
from chat_relay.routing import collect_subrouters
from chat_relay.tasks.liveness_sweeper import liveness_sweeper_task
from chat_relay.uvicorn_filters import ExcludeMetricsFilter


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager for startup and shutdown.

    Startup operations:
    - Filters monitoring endpoints out of uvicorn's access log
    - Starts the liveness sweeper for the application's RelayHub

    Shutdown operations:
    - Cancels and waits for background tasks
    - Closes every open WebSocket connection
    """
    logger.info("Application startup: initializing resources")

    getLogger("uvicorn.access").addFilter(ExcludeMetricsFilter())

    hub: RelayHub = app.state.relay

    background_tasks = []
    background_tasks.append(
        create_task(liveness_sweeper_task(hub), name="liveness_sweeper")
    )
    logger.info(f"Started {len(background_tasks)} background tasks")

    yield  # Application runs here

    logger.info("Application shutdown: cleaning up resources")

    if background_tasks:
        logger.info(f"Cancelling {len(background_tasks)} background tasks")
        for task in background_tasks:
            if not task.done():
                task.cancel()
        await gather(*background_tasks, return_exceptions=True)
        logger.info("All background tasks completed")

    await hub.connections.close_all()

    logger.info("Application shutdown complete")


def application(hub: RelayHub | None = None) -> FastAPI:
    """
    Initializes and configures the FastAPI application.

    The application owns exactly one RelayHub, exposed as `app.state.relay`
    to the WebSocket endpoint, the health endpoint and the liveness sweeper.

    Args:
        hub: Relay state to serve; a fresh one is created when omitted.

    Returns:
        The configured FastAPI application.
    """
    app = FastAPI(
        title="Chat relay",
        description="WebSocket broadcast relay",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.relay = hub if hub is not None else RelayHub()

    app.include_router(collect_subrouters())

    return app
