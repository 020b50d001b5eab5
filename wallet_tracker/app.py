"""
Wallet Tracker - Application wiring.

============================================================
RESPONSIBILITY
============================================================
Builds every component once and hands it to its consumers:

    config -> database -> adapters/registry -> gateway -> queue -> service

The FastAPI app owns the container for its lifetime: tables are created
and the queue consumer is started on startup, everything is closed on
shutdown.
============================================================
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .adapters import AdapterRegistry
from .api import router as wallet_router
from .api.schemas import HealthResponse
from .config import WalletTrackerConfig, get_config
from .job_queue import RedisJobQueue
from .persistence import Database, PersistenceGateway
from .service import WalletTrackingService


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


# ============================================================
# LOGGING
# ============================================================

def configure_logging(config: WalletTrackerConfig) -> None:
    """
    Console logging always; error.log and combined.log in production.
    """
    level = getattr(logging, (config.log_level or "INFO").upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    handlers: list[logging.Handler] = [console]

    if config.is_production:
        error_file = logging.FileHandler("error.log")
        error_file.setLevel(logging.ERROR)
        error_file.setFormatter(formatter)

        combined_file = logging.FileHandler("combined.log")
        combined_file.setFormatter(formatter)

        handlers.extend([error_file, combined_file])

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = handlers


# ============================================================
# CONTAINER
# ============================================================

@dataclass
class TrackerContainer:
    """All long-lived components of one tracker process."""
    config: WalletTrackerConfig
    database: Database
    registry: AdapterRegistry
    gateway: PersistenceGateway
    queue: RedisJobQueue
    service: WalletTrackingService

    async def close(self) -> None:
        await self.queue.close()
        await self.registry.close()
        await self.database.dispose()


def build_container(
    config: Optional[WalletTrackerConfig] = None,
    database: Optional[Database] = None,
    registry: Optional[AdapterRegistry] = None,
    queue: Optional[RedisJobQueue] = None,
) -> TrackerContainer:
    """Construct the component graph. Nothing connects until used."""
    config = config or get_config()
    database = database or Database(config.database)
    registry = registry or AdapterRegistry.from_config(config)
    gateway = PersistenceGateway(database)
    queue = queue or RedisJobQueue(config.queue)
    service = WalletTrackingService(registry, gateway, queue, config.tracking)

    return TrackerContainer(
        config=config,
        database=database,
        registry=registry,
        gateway=gateway,
        queue=queue,
        service=service,
    )


async def run_worker(container: TrackerContainer) -> None:
    """Consumer-only process: create tables, then consume until cancelled."""
    await container.database.initialize()
    try:
        await container.service.start_consumer()
    finally:
        await container.close()


# ============================================================
# FASTAPI APPLICATION
# ============================================================

def create_app(
    container: Optional[TrackerContainer] = None,
    start_consumer: bool = True,
) -> FastAPI:
    """
    Build the HTTP app around a container.

    Args:
        container: Pre-built components (a default one is built if None)
        start_consumer: Run the queue consumer inside this process
    """
    container = container or build_container()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await container.database.initialize()

        consumer_task: Optional[asyncio.Task] = None
        if start_consumer:
            consumer_task = asyncio.create_task(container.service.start_consumer())

        logger.info("Application initialized successfully")
        try:
            yield
        finally:
            logger.info("Shutting down gracefully...")
            container.service.stop()
            if consumer_task is not None:
                consumer_task.cancel()
                try:
                    await consumer_task
                except asyncio.CancelledError:
                    pass
            await container.close()

    app = FastAPI(
        title="Wallet Tracker API",
        description="Tracks token transfers and swaps of wallets on Aptos, Sui and Movement",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"{request.method} {request.url.path}")
        return await call_next(request)

    @app.exception_handler(404)
    async def not_found(request: Request, exc: Exception):
        return JSONResponse(status_code=404, content={"message": "Route not found"})

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error(f"Unhandled error: {exc}")
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        return {"status": "ok"}

    app.include_router(wallet_router)

    return app
