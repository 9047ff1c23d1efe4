"""
FastAPI Dependency Providers for the Protocol Habits API.

This module provides FastAPI dependency injection functions that return
interface types (Protocols) rather than concrete implementations.

Architecture:
- Settings come from the app that serves the request (app.state.settings)
- The Supabase client is cached per-process (lru_cache) per credential pair
- Repositories are per-request when Supabase is configured, and fall back to
  the app's shared in-memory repositories otherwise
- Use cases are wired through dependency chains
- The sync history ledger is created once by the app factory
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from supabase import Client, create_client

from application.ports.molecule_repository import MoleculeRepository
from application.ports.template_repository import TemplateRepository
from application.use_cases.expand_schedule import ExpandScheduleUseCase
from application.use_cases.manage_instances import ManageInstancesUseCase
from application.use_cases.media_capture import MediaCaptureUseCase
from application.use_cases.progression import ProgressionService
from backend.services.sync_history_ledger import SyncHistoryLedger
from backend.settings import Settings, get_settings as _get_settings
from infrastructure.db.molecule_repository import SupabaseMoleculeRepository
from infrastructure.db.template_repository import SupabaseTemplateRepository


# =============================================================================
# Settings Provider
# =============================================================================


def get_settings(request: Request) -> Settings:
    """
    Get application settings.

    Returns the Settings the serving app was created with, falling back to the
    cached environment settings.
    """
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else _get_settings()


# =============================================================================
# Supabase Client Provider
# =============================================================================


@lru_cache
def _create_supabase_client(url: str, key: str) -> Client:
    return create_client(url, key)


def get_supabase_client(settings: Settings = Depends(get_settings)) -> Optional[Client]:
    """
    Get Supabase client instance (cached).

    Returns None if credentials are not configured.
    """
    if not settings.supabase_url or not settings.supabase_key:
        return None
    return _create_supabase_client(settings.supabase_url, settings.supabase_key)


# =============================================================================
# Repository Providers
# =============================================================================


def get_molecule_repository(
    request: Request,
    client: Optional[Client] = Depends(get_supabase_client),
) -> MoleculeRepository:
    """One repository per request, so its identity map spans a single unit of work."""
    if client is None:
        return request.app.state.molecule_repository
    return SupabaseMoleculeRepository(client)


def get_template_repository(
    request: Request,
    client: Optional[Client] = Depends(get_supabase_client),
) -> TemplateRepository:
    if client is None:
        return request.app.state.template_repository
    return SupabaseTemplateRepository(client)


# =============================================================================
# Use Case Providers
# =============================================================================


def get_progression_service(
    repository: MoleculeRepository = Depends(get_molecule_repository),
    templates: TemplateRepository = Depends(get_template_repository),
) -> ProgressionService:
    return ProgressionService(repository, templates)


def get_expand_schedule_use_case(
    repository: MoleculeRepository = Depends(get_molecule_repository),
    settings: Settings = Depends(get_settings),
) -> ExpandScheduleUseCase:
    return ExpandScheduleUseCase(repository, horizon_days=settings.schedule_horizon_days)


def get_manage_instances_use_case(
    repository: MoleculeRepository = Depends(get_molecule_repository),
    templates: TemplateRepository = Depends(get_template_repository),
    expansion: ExpandScheduleUseCase = Depends(get_expand_schedule_use_case),
) -> ManageInstancesUseCase:
    return ManageInstancesUseCase(repository, templates, expansion)


def get_media_capture_use_case(
    progression: ProgressionService = Depends(get_progression_service),
    templates: TemplateRepository = Depends(get_template_repository),
) -> MediaCaptureUseCase:
    return MediaCaptureUseCase(progression, templates)


# =============================================================================
# Sync History
# =============================================================================


def get_sync_history_ledger(request: Request) -> SyncHistoryLedger:
    """Get the process-wide ledger created by the app factory."""
    ledger = getattr(request.app.state, "sync_history", None)
    if ledger is None:
        raise HTTPException(status_code=503, detail="Sync history not available")
    return ledger


def verify_internal_key(
    x_internal_key: Optional[str] = Header(None, alias="X-Internal-Key"),
    settings: Settings = Depends(get_settings),
) -> None:
    """Verify the X-Internal-Key header against the configured secret."""
    if not settings.internal_api_key:
        raise HTTPException(status_code=503, detail="Internal API key not configured")
    if x_internal_key != settings.internal_api_key:
        raise HTTPException(status_code=403, detail="Invalid internal API key")
