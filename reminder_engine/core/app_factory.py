"""
FastAPI app factory for the reminder engine.

Builds the HTTP surface only; wiring of engine components lives in the container
and start/stop ordering in the lifespan.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reminder_engine.api.exception_handlers import register_exception_handlers
from reminder_engine.api.router import api_router
from reminder_engine.config.settings import Settings, get_settings

from .container import ReminderEngineContainer
from .lifecycle import lifespan

logger = logging.getLogger(__name__)


class AppFactory:
    """Assembles the reminder engine FastAPI app step by step."""

    def __init__(self, settings: Settings | None = None, container: ReminderEngineContainer | None = None) -> None:
        """
        Args:
            settings: Settings override; ignored when a container is given
            container: Pre-built container (tests). Built by the lifespan otherwise
        """
        self._settings = container.settings if container else settings or get_settings()
        self._container = container

    def create_app(self) -> FastAPI:
        """Build the app: state, CORS, error mapping, API router and health routes."""
        app = FastAPI(
            title=self._settings.PROJECT_NAME,
            description=self._settings.PROJECT_DESCRIPTION,
            version=self._settings.VERSION,
            docs_url=self._docs_path("docs"),
            redoc_url=self._docs_path("redoc"),
            lifespan=lifespan,
        )
        app.state.settings = self._settings
        app.state.container = self._container

        self._add_cors(app)
        register_exception_handlers(app)
        app.include_router(api_router, prefix=self._settings.API_V1_STR)
        self._add_health_routes(app)

        logger.info(f"Reminder engine app ready ({self._settings.ENVIRONMENT}), API at {self._settings.API_V1_STR}")
        return app

    def _docs_path(self, name: str) -> str | None:
        # Interactive docs only in debug
        return f"{self._settings.API_V1_STR}/{name}" if self._settings.DEBUG else None

    def _add_cors(self, app: FastAPI) -> None:
        origins = ["*"] if self._settings.DEBUG else self._settings.CORS_ORIGINS
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _add_health_routes(self, app: FastAPI) -> None:
        settings = self._settings

        @app.get("/health", tags=["health"])
        async def health_check() -> dict:
            """Liveness plus whether the reminder cadence is running."""
            container = getattr(app.state, "container", None)
            return {
                "status": "ok",
                "environment": settings.ENVIRONMENT,
                "scheduler_running": bool(container and container.scheduler.is_running),
            }

        @app.get("/", tags=["health"])
        async def root() -> dict[str, str]:
            return {
                "name": settings.PROJECT_NAME,
                "version": settings.VERSION,
                "docs": self._docs_path("docs") or "disabled",
            }


def create_app(settings: Settings | None = None, container: ReminderEngineContainer | None = None) -> FastAPI:
    """Entry point used by ``main`` and the integration tests."""
    return AppFactory(settings, container).create_app()
