"""FastAPI application factory for the Draken dashboard."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .. import __version__
from ..config import Settings, load_settings
from ..events.bus import TaskEventBus
from ..orchestrator.service import TaskOrchestrator
from ..runner.isolated import IsolatedRunner
from ..storage.container import Container
from .auth import AuthService
from .auth_api import create_auth_router
from .project_api import create_project_router
from .task_api import create_task_router, create_terminal_router


def create_app(
    settings: Optional[Settings] = None,
    *,
    runner: Optional[IsolatedRunner] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Resolved settings; loaded from the environment when omitted.
        runner: Runner to use instead of one built from ``settings``.
        enable_cors: Whether to enable CORS.

    Returns:
        Configured app. Its lifespan fails leftover tasks on startup and stops
        live runs on shutdown.
    """
    settings = settings or load_settings()
    container = Container(settings.data_dir)
    runner = runner or IsolatedRunner(settings)
    bus = TaskEventBus()
    orchestrator = TaskOrchestrator(container, runner, bus, settings)
    auth = AuthService(settings.auth)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        orchestrator.recover_interrupted_tasks()
        logger.info("Draken ready (data dir {}, backend {})", settings.data_dir, settings.runner.backend)
        try:
            yield
        finally:
            await orchestrator.shutdown()
            container.close()
            logger.info("Draken stopped")

    app = FastAPI(
        title="Draken",
        description="Dashboard for running coding-agent tasks in isolated containers",
        version=__version__,
        lifespan=lifespan,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.settings = settings
    app.state.container = container
    app.state.runner = runner
    app.state.bus = bus
    app.state.orchestrator = orchestrator
    app.state.auth = auth

    @app.get("/api/health")
    async def health() -> dict[str, object]:
        return {
            "status": "ok",
            "version": __version__,
            "active_runs": len(runner.registry),
        }

    app.include_router(create_auth_router(auth))
    app.include_router(create_project_router(container, auth))
    app.include_router(create_task_router(orchestrator, auth))
    app.include_router(create_terminal_router(orchestrator, auth))
    return app
