"""
Metrics definitions for the habit tracking service.

Defines counters using the OpenTelemetry Meter API. Without a configured
MeterProvider these are no-ops, so domain code can record unconditionally.
"""

import logging
from typing import Optional

from opentelemetry import metrics

logger = logging.getLogger(__name__)

# Meter name
_METER_NAME = "protocol-habits"


def _get_meter() -> metrics.Meter:
    """Get the metrics meter instance."""
    return metrics.get_meter(_METER_NAME)


class HabitMetrics:
    """
    Centralized metrics for scheduling, progression and sync history.

    All metrics are lazily initialized on first access.
    """

    _molecule_transitions_total: Optional[metrics.Counter] = None
    _instances_generated_total: Optional[metrics.Counter] = None
    _instances_deleted_total: Optional[metrics.Counter] = None
    _sync_history_entries_total: Optional[metrics.Counter] = None
    _commit_failures_total: Optional[metrics.Counter] = None

    @classmethod
    def molecule_transitions_total(cls) -> metrics.Counter:
        """Counter for molecule completion transitions by kind."""
        if cls._molecule_transitions_total is None:
            cls._molecule_transitions_total = _get_meter().create_counter(
                name="molecule_transitions_total",
                description="Molecule completion transitions (completed/reopened)",
                unit="1",
            )
        return cls._molecule_transitions_total

    @classmethod
    def instances_generated_total(cls) -> metrics.Counter:
        """Counter for molecule instances materialized by expansion."""
        if cls._instances_generated_total is None:
            cls._instances_generated_total = _get_meter().create_counter(
                name="instances_generated_total",
                description="Molecule instances created from recurrence expansion",
                unit="1",
            )
        return cls._instances_generated_total

    @classmethod
    def instances_deleted_total(cls) -> metrics.Counter:
        """Counter for deleted molecule instances by scope."""
        if cls._instances_deleted_total is None:
            cls._instances_deleted_total = _get_meter().create_counter(
                name="instances_deleted_total",
                description="Molecule instances deleted",
                unit="1",
            )
        return cls._instances_deleted_total

    @classmethod
    def sync_history_entries_total(cls) -> metrics.Counter:
        """Counter for sync history entries by status."""
        if cls._sync_history_entries_total is None:
            cls._sync_history_entries_total = _get_meter().create_counter(
                name="sync_history_entries_total",
                description="Sync attempts recorded in the history ledger",
                unit="1",
            )
        return cls._sync_history_entries_total

    @classmethod
    def commit_failures_total(cls) -> metrics.Counter:
        """Counter for failed persistence commits."""
        if cls._commit_failures_total is None:
            cls._commit_failures_total = _get_meter().create_counter(
                name="commit_failures_total",
                description="Persistence commits that reported failure",
                unit="1",
            )
        return cls._commit_failures_total
