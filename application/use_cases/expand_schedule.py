"""Use case: materialize molecule instances from a template's recurrence rule.

Re-running an expansion over the same range is safe: dates that already
have an instance for the template are skipped.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional

from application.models import MoleculeInstance, MoleculeTemplate
from application.ports.molecule_repository import MoleculeRepository
from backend.observability.metrics import HabitMetrics

logger = logging.getLogger(__name__)


@dataclass
class ExpansionResult:
    """Result of one expansion run."""

    created: List[MoleculeInstance] = field(default_factory=list)
    skipped_dates: List[date] = field(default_factory=list)
    committed: Optional[bool] = None  # None when nothing was created


class ExpandScheduleUseCase:
    """Expands a template's recurrence rule into stored instances."""

    def __init__(self, repository: MoleculeRepository, horizon_days: int = 30) -> None:
        self._repo = repository
        self._horizon_days = horizon_days

    def execute(
        self,
        template: MoleculeTemplate,
        start: date,
        end: Optional[date] = None,
    ) -> ExpansionResult:
        """Create instances for every occurrence in ``[start, end)``.

        Args:
            template: Template whose rule and atoms are expanded.
            start: First day of the range (inclusive).
            end: End of the range (exclusive). Defaults to the horizon.

        Returns:
            ExpansionResult with the new instances and the commit outcome.
        """
        result = self.stage(template, start, end)
        if not result.created:
            return result

        result.committed = self._repo.commit()
        if result.committed:
            HabitMetrics.instances_generated_total().add(len(result.created))
        else:
            HabitMetrics.commit_failures_total().add(1, {"operation": "expand_schedule"})
            logger.error("Commit failed after expanding template %s", template.id)

        logger.info(
            "Expanded template %s: %d created, %d already present",
            template.id,
            len(result.created),
            len(result.skipped_dates),
        )
        return result

    def stage(
        self,
        template: MoleculeTemplate,
        start: date,
        end: Optional[date] = None,
    ) -> ExpansionResult:
        """Add the missing instances to the repository without committing.

        A date counts as present when an instance of the template is scheduled
        on it or was moved away from it.
        """
        if end is None:
            end = start + timedelta(days=self._horizon_days)

        existing_dates = {
            day
            for instance in self._repo.fetch(lambda i: i.template_id == template.id)
            for day in instance.occupied_dates
        }

        result = ExpansionResult()
        for occurrence in template.recurrence.occurrences(start, end):
            if occurrence in existing_dates:
                result.skipped_dates.append(occurrence)
                continue
            instance = template.create_instance(occurrence)
            self._repo.add(instance)
            result.created.append(instance)

        if not result.created:
            logger.debug("No new instances for template %s in [%s, %s)", template.id, start, end)
        return result
