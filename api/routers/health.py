"""
Health check router.

This router provides health check endpoints for monitoring and load balancers.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.deps import get_settings, get_supabase_client
from backend.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Health"],
)

SERVICE_NAME = "protocol-habits"


@router.get("/health")
def health():
    """
    Simple liveness endpoint.

    Returns:
        dict: Status indicator for health checks
    """
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/health/ready")
def health_ready(
    settings: Settings = Depends(get_settings),
    client=Depends(get_supabase_client),
):
    """
    Readiness check of downstream dependencies.

    Verifies Supabase connectivity when configured. Returns 503 if it is unavailable.
    """
    checks = {"persistence": "supabase" if client is not None else "in_memory"}

    if client is not None:
        try:
            # Lightweight query to verify connectivity
            client.table("molecule_instances").select("id").limit(1).execute()
            checks["supabase"] = "ok"
        except Exception as e:
            logger.warning("Readiness check failed for supabase: %s", e)
            checks["supabase"] = "unavailable"
            return JSONResponse(
                status_code=503,
                content={
                    "status": "not_ready",
                    "service": SERVICE_NAME,
                    "checks": checks,
                },
            )

    checks["sync_history"] = "file" if settings.sync_history_path else "memory"
    return {"status": "ready", "service": SERVICE_NAME, "checks": checks}
