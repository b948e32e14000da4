"""FastAPI application factory."""

from __future__ import annotations

import logging
import platform
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tgrelay import __version__
from tgrelay.config import Settings, get_settings
from tgrelay.service.relay import RelayService
from tgrelay.storage.file import cleanup_orphaned_temp_files
from tgrelay.telegram.gateway import TelegramGateway
from tgrelay.web.exception_handlers import register_exception_handlers
from tgrelay.web.middleware import RequestIDMiddleware, RequestLoggingMiddleware
from tgrelay.web.routers.health import router as health_router
from tgrelay.web.routers.messages import router as messages_router
from tgrelay.web.routers.registration import router as registration_router
from tgrelay.web.routers.triggers import router as triggers_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler.

    Startup: build the relay service and reattach listeners for every
    account with persisted triggers.
    Shutdown: abort a pending registration and disconnect all accounts.
    """
    settings: Settings = app.state.settings

    logger.info("=" * 60)
    logger.info(f"tgrelay v{__version__} starting up")
    logger.info(
        f"Python: {platform.python_version()}, OS: {platform.system()} {platform.release()}"
    )
    logger.info("=" * 60)
    logger.info(f"Data directory: {settings.data_dir}")

    if settings.debug:
        logger.warning(
            "DEBUG MODE ENABLED - error responses include exception details. "
            "Set TGRELAY_DEBUG=false for production deployments."
        )

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    cleanup_orphaned_temp_files((settings.credentials_path, settings.triggers_path))

    relay = RelayService.from_settings(settings, gateway=app.state.gateway)
    app.state.relay = relay
    relay.start()
    logger.info("Application startup complete")

    yield

    logger.info("Initiating graceful shutdown")
    try:
        await relay.shutdown()
    except Exception as e:
        logger.error(f"Error stopping relay service during shutdown: {e}")
    app.state.relay = None
    logger.info("Graceful shutdown complete")


def create_app(
    *,
    settings: Settings | None = None,
    gateway: TelegramGateway | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Settings instance. If None, uses get_settings().
        gateway: Telegram gateway. If None, a TelethonGateway is built from settings.

    Example:
        ```python
        app = create_app()
        # Run with: uvicorn --factory tgrelay.web.app:create_app
        ```
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="tgrelay",
        description="HTTP relay for Telegram accounts with keyword auto-replies",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.gateway = gateway
    app.state.relay = None

    register_exception_handlers(app)

    # First added = last executed; request ID must be set before logging runs
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.include_router(health_router)
    app.include_router(messages_router)
    app.include_router(triggers_router)
    app.include_router(registration_router)

    return app
