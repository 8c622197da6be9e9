"""
FastAPI Application - Overlay server setup.

This module creates and configures the FastAPI application that owns the
avatar session and streams its events to browser overlays.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .. import __version__
from ..presenter.base import BasePresenter
from ..session.session import AvatarSession
from ..utils.config_loader import PROJECT_ROOT, AvatarConfig
from .routes import router
from .websocket import OverlayBroadcaster, websocket_router

logger = logging.getLogger(__name__)

SessionFactory = Callable[[AvatarConfig, BasePresenter], AvatarSession]


def create_app(
    config: Optional[AvatarConfig] = None,
    session_factory: Optional[SessionFactory] = None,
    frontend_path: Optional[Path] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Resolved avatar configuration
        session_factory: Builds the session from (config, presenter)
        frontend_path: Static overlay files to serve at '/', if present

    Returns:
        Configured FastAPI instance
    """
    config = config or AvatarConfig()
    session_factory = session_factory or (lambda cfg, presenter: AvatarSession(cfg, presenter))
    frontend_path = frontend_path or PROJECT_ROOT / "frontend"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        - Startup: create the broadcaster and session, start capture in OBS mode
        - Shutdown: release the audio source
        """
        logger.info("🚀 Starting PNGTuber overlay server...")
        broadcaster = OverlayBroadcaster()
        session = session_factory(config, broadcaster)
        app.state.broadcaster = broadcaster
        app.state.session = session

        logger.info(f"   Threshold: {config.threshold}")
        logger.info(f"   OBS mode: {config.obs_mode}"
                    + (f" (port {config.remote_port}, source '{config.remote_source_name}')"
                       if config.obs_mode else ""))

        await session.start()
        try:
            yield
        finally:
            logger.info("👋 Shutting down overlay server...")
            await session.stop()

    app = FastAPI(
        title="PNGTuber Overlay",
        description="Audio-reactive avatar events for streaming overlays",
        version=__version__,
        lifespan=lifespan,
    )

    # Overlays are loaded from file:// or an OBS browser source
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")
    app.include_router(websocket_router)

    if frontend_path.exists():
        app.mount("/", StaticFiles(directory=str(frontend_path), html=True), name="frontend")

    return app
