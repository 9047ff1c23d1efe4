"""
Application factory for FastAPI.

This module provides a factory function for creating FastAPI application instances.
The factory pattern allows for:
- Easy testing with custom settings
- Multiple app instances with different configurations
- Clear separation of app creation from route definitions

Usage:
    from backend.main import create_app
    from backend.settings import Settings

    # Default app (uses get_settings())
    app = create_app()

    # Test app with custom settings
    test_settings = Settings(environment="test", _env_file=None)
    test_app = create_app(settings=test_settings)
"""

import logging
from typing import Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.observability import configure_observability, shutdown_observability
from backend.services.sync_history_ledger import SyncHistoryLedger
from backend.settings import Settings, get_settings
from infrastructure.db.in_memory_repositories import (
    InMemoryMoleculeRepository,
    InMemoryTemplateRepository,
)
from infrastructure.storage.sync_history_file_store import JsonFileSyncHistoryStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application Factory
# ---------------------------------------------------------------------------


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure a FastAPI application instance.

    Args:
        settings: Optional Settings instance. If not provided, uses get_settings()
                  which loads from environment variables.

    Returns:
        Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    _configure_logging(settings)

    # Install tracer and meter providers before the app is instrumented
    configure_observability(settings)

    # Initialize Sentry for error tracking
    _init_sentry(settings)

    app = FastAPI(
        title="Protocol Habits API",
        description="Habit scheduling, completion tracking and sync history",
        version="1.0.0",
    )

    # Store settings on app state for dependency providers
    app.state.settings = settings

    # Process-wide state
    app.state.sync_history = _build_sync_history(settings)
    app.state.molecule_repository = InMemoryMoleculeRepository()
    app.state.template_repository = InMemoryTemplateRepository()

    _configure_cors(app, settings)
    _include_routers(app)

    _register_shutdown(app)

    return app


def _configure_logging(settings: Settings) -> None:
    """Apply the configured level to the root logger."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(settings.log_level)


def _init_sentry(settings: Settings) -> None:
    """Initialize Sentry SDK if DSN is configured."""
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            release=settings.render_git_commit,
            traces_sample_rate=0.1,
        )
        logger.info(
            "Sentry initialized (release=%s)",
            settings.render_git_commit or "unknown",
        )


def _build_sync_history(settings: Settings) -> SyncHistoryLedger:
    """Create the sync history ledger, file-backed when a path is configured."""
    store = None
    if settings.sync_history_path:
        store = JsonFileSyncHistoryStore(settings.sync_history_path)
    ledger = SyncHistoryLedger(max_entries=settings.sync_history_max_entries, store=store)
    ledger.load()
    return ledger


def _configure_cors(app: FastAPI, settings: Settings) -> None:
    """Configure CORS middleware for the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _register_shutdown(app: FastAPI) -> None:
    """Flush telemetry when the server stops."""

    @app.on_event("shutdown")
    async def shutdown_event():
        shutdown_observability()
        logger.info("protocol-habits shutdown complete")


def _include_routers(app: FastAPI) -> None:
    """Include all API routers in the application."""
    from api.routers import health_router, molecules_router, sync_history_router, templates_router

    # Health router (no prefix - /health at root)
    app.include_router(health_router)

    # Molecules router (/api/molecules/*)
    app.include_router(molecules_router)

    # Templates router (/api/templates/*)
    app.include_router(templates_router)

    # Sync history router (/api/sync-history)
    app.include_router(sync_history_router)


# Default app instance for uvicorn
# This allows: uvicorn backend.main:app --reload
app = create_app()
