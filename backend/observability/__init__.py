"""
OpenTelemetry observability package for the habit tracking service.

Usage:
    from backend.observability import configure_observability, HabitMetrics

    # In app factory
    configure_observability(settings)

    # Recording metrics
    HabitMetrics.sync_history_entries_total().add(1, {"status": "success"})
"""

from backend.observability.config import configure_observability, shutdown_observability
from backend.observability.metrics import HabitMetrics

__all__ = [
    "configure_observability",
    "shutdown_observability",
    "HabitMetrics",
]
