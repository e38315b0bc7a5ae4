"""Application factory for the InfoMirror configuration API."""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import AppSettings, get_settings
from ..logger import configure_logging, get_logger
from ..runtime import InfoMirrorService
from . import routes


def create_application(
    settings: Optional[AppSettings] = None,
    service: Optional[InfoMirrorService] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = settings or get_settings()
    configure_logging(settings)
    logger = get_logger(__name__)
    logger.info(
        "Initialising InfoMirror FastAPI application (host=%s port=%s reload=%s mock=%s)",
        settings.host,
        settings.port,
        settings.reload,
        settings.mock_hardware,
    )
    app = FastAPI(
        title="InfoMirror Configuration API",
        version=__version__,
        summary="Smart-mirror sensor, LED and display controller.",
    )

    if settings.allowed_origins:
        logger.debug("Configuring CORS with allowed origins: %s", settings.allowed_origins)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=True,
        )

    service = service or InfoMirrorService(settings)
    app.state.settings = settings
    app.state.service = service

    app.include_router(routes.router)
    logger.debug("API routes registered")

    @app.on_event("startup")
    async def _start_service() -> None:
        service.config_server_running = True
        logger.info("Configuration server running on port %s", settings.port)
        service.publish("CONFIG_SERVER_STARTED", {"port": settings.port})
        if settings.hardware_enabled:
            try:
                service.initialize_hardware()
            except Exception:
                logger.exception("Hardware initialisation failed; continuing without hardware")
        if settings.helper_autostart:
            try:
                service.start_helper()
            except ValueError as exc:
                logger.warning("Helper autostart skipped: %s", exc)

    @app.on_event("shutdown")
    async def _stop_service() -> None:
        service.shutdown()

    return app
