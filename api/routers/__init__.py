"""
Router package for the Protocol Habits API.

This package contains all API routers organized by domain:
- health: Health check endpoints
- molecules: Atom mutations, listing, deletion and rescheduling
- templates: Recurrence expansion
- sync_history: Sync history ledger
"""

from api.routers.health import router as health_router
from api.routers.molecules import router as molecules_router
from api.routers.sync_history import router as sync_history_router
from api.routers.templates import router as templates_router

__all__ = [
    "health_router",
    "molecules_router",
    "sync_history_router",
    "templates_router",
]
