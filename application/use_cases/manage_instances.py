"""Use case: delete, reschedule and edit molecule instances.

Bulk deletions are irreversible. ``delete_future`` is relative to the moment
it runs: everything scheduled strictly after ``now`` is removed.

Edits and deletions of a recurring occurrence take a scope. "This event
only" detaches the occurrence from its series; "all future events" rewrites
the template and regenerates the series from the occurrence onward.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time
from enum import Enum
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from application.models import MoleculeInstance, MoleculeTemplate, local_now, naive_local
from application.ports.molecule_repository import MoleculeRepository
from application.ports.template_repository import TemplateRepository
from application.use_cases.expand_schedule import ExpandScheduleUseCase
from backend.observability.metrics import HabitMetrics

logger = logging.getLogger(__name__)


class EditScope(str, Enum):
    this_event_only = "this_event_only"
    all_future_events = "all_future_events"


class DeletionScope(str, Enum):
    this_event_only = "this_event_only"
    all_future_events = "all_future_events"
    all_events = "all_events"


@dataclass
class InstanceChangeResult:
    """Result of a delete, reschedule or edit operation."""

    affected: int = 0
    committed: Optional[bool] = None  # None when nothing changed
    found: bool = True


@dataclass
class InstanceEdit:
    title: Optional[str] = None
    scheduled_time: Optional[time] = None
    notes: Optional[str] = None


class ManageInstancesUseCase:
    """Deletion, rescheduling and editing of scheduled occurrences."""

    def __init__(
        self,
        repository: MoleculeRepository,
        templates: Optional[TemplateRepository] = None,
        expansion: Optional[ExpandScheduleUseCase] = None,
    ) -> None:
        self._repo = repository
        self._templates = templates
        self._expansion = expansion or ExpandScheduleUseCase(repository)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_instance(self, instance_id: UUID) -> InstanceChangeResult:
        return self.delete_events(instance_id, DeletionScope.this_event_only)

    def delete_selected(self, instance_ids: Iterable[UUID], scope: str = "selected") -> InstanceChangeResult:
        """Delete every instance whose id is in ``instance_ids``. Unknown ids are ignored."""
        wanted = set(instance_ids)
        if not wanted:
            return InstanceChangeResult()
        targets = self._repo.fetch(lambda i: i.id in wanted)
        return self._delete(targets, scope)

    def delete_future(self, now: Optional[datetime] = None) -> InstanceChangeResult:
        """Delete every instance scheduled after ``now``."""
        now = local_now(now)
        targets = self._repo.fetch(lambda i: i.is_future(now))
        return self._delete(targets, "future")

    def delete_events(
        self, instance_id: UUID, scope: DeletionScope = DeletionScope.this_event_only
    ) -> InstanceChangeResult:
        """Delete an occurrence, or the series it belongs to.

        ``all_future_events`` removes the occurrence and every later one of the
        same template, then ends the series the day before so expansion does
        not bring them back. ``all_events`` removes the template together with
        all of its occurrences. Occurrences without a template are always
        deleted on their own.
        """
        instance = self._repo.get(instance_id)
        if instance is None:
            return InstanceChangeResult(found=False)

        template = self._template_for(instance)
        if scope is DeletionScope.this_event_only or template is None:
            return self._delete([instance], "single")

        if scope is DeletionScope.all_future_events:
            start = instance.scheduled_date
            targets = self._repo.fetch(
                lambda i: i.template_id == template.id and i.scheduled_date >= start
            )
            template.end_before(start.date())
            if not self._templates.save_molecule_template(template):
                logger.error("Could not end series %s before %s", template.id, start.date())
                return InstanceChangeResult(committed=False)
            return self._delete(targets, "all_future")

        targets = self._repo.fetch(lambda i: i.template_id == template.id)
        if not self._templates.delete_molecule_template(template.id):
            logger.error("Could not delete template %s", template.id)
            return InstanceChangeResult(committed=False)
        return self._delete(targets, "all")

    def _delete(self, targets, scope: str) -> InstanceChangeResult:
        if not targets:
            return InstanceChangeResult()

        affected = self._repo.delete(targets)
        committed = self._commit(f"delete_{scope}")
        if committed:
            HabitMetrics.instances_deleted_total().add(affected, {"scope": scope})
        logger.info("Deleted %d instance(s) (scope=%s, committed=%s)", affected, scope, committed)
        return InstanceChangeResult(affected=affected, committed=committed)

    # ------------------------------------------------------------------
    # Moving and editing
    # ------------------------------------------------------------------

    def reschedule(
        self, instance_id: UUID, new_date: datetime, now: Optional[datetime] = None
    ) -> InstanceChangeResult:
        """Move one occurrence. Completed occurrences keep their date."""
        return self._change(instance_id, lambda i: i.reschedule(new_date, now), "reschedule")

    def snooze(self, instance_id: UUID, minutes: int, now: Optional[datetime] = None) -> InstanceChangeResult:
        return self._change(instance_id, lambda i: i.snooze(minutes, now), "snooze")

    def edit(
        self,
        instance_id: UUID,
        changes: InstanceEdit,
        scope: EditScope = EditScope.this_event_only,
        now: Optional[datetime] = None,
    ) -> InstanceChangeResult:
        """Apply ``changes`` to one occurrence or to the rest of its series.

        With ``all_future_events`` the template takes the new title and base
        time, and the series is regenerated from this occurrence onward.
        Notes always stay on the occurrence. Without a template the edit
        falls back to this occurrence only.
        """
        def edit_one(instance: MoleculeInstance) -> bool:
            return instance.edit(changes.title, changes.scheduled_time, changes.notes, now)

        if scope is EditScope.this_event_only:
            return self._change(instance_id, edit_one, "edit")

        instance = self._repo.get(instance_id)
        if instance is None:
            return InstanceChangeResult(found=False)
        template = self._template_for(instance)
        if template is None:
            logger.debug("Instance %s has no template, editing it alone", instance_id)
            return self._change(instance_id, edit_one, "edit")

        if changes.title is not None:
            template.title = changes.title
        if changes.scheduled_time is not None:
            template.base_time = changes.scheduled_time
        if not self._templates.save_molecule_template(template):
            logger.error("Could not save template %s", template.id)
            return InstanceChangeResult(committed=False)

        day = instance.scheduled_date.date()
        removed, created = self._stage_regeneration(template, instance.scheduled_date)
        if changes.notes is not None:
            # The occurrence may have been replaced by a regenerated one.
            current = self._repo.get(instance.id) or next(
                (i for i in created if i.scheduled_date.date() == day), None
            )
            if current is not None and current.notes != changes.notes:
                current.notes = changes.notes
                self._repo.mark_dirty(current)
        return self._finish_regeneration(template, instance.scheduled_date, removed, created)

    def regenerate_future_instances(
        self, template: MoleculeTemplate, start: datetime
    ) -> InstanceChangeResult:
        """Rebuild the series from ``start`` after a template change.

        Occurrences that were completed or edited on their own are kept;
        the rest are replaced by fresh ones from the template.
        """
        removed, created = self._stage_regeneration(template, start)
        return self._finish_regeneration(template, start, removed, created)

    def _stage_regeneration(
        self, template: MoleculeTemplate, start: datetime
    ) -> Tuple[int, List[MoleculeInstance]]:
        start = naive_local(start)
        stale = self._repo.fetch(
            lambda i: i.template_id == template.id
            and i.scheduled_date >= start
            and not i.is_date_frozen
            and not i.is_exception
        )
        removed = self._repo.delete(stale)
        return removed, self._expansion.stage(template, start.date()).created

    def _finish_regeneration(
        self,
        template: MoleculeTemplate,
        start: datetime,
        removed: int,
        created: List[MoleculeInstance],
    ) -> InstanceChangeResult:
        committed = self._commit("regenerate")
        if committed:
            HabitMetrics.instances_generated_total().add(len(created))
        logger.info(
            "Regenerated template %s from %s: %d replaced, %d created",
            template.id,
            start.date(),
            removed,
            len(created),
        )
        return InstanceChangeResult(affected=len(created), committed=committed)

    def _change(self, instance_id: UUID, mutation, operation: str) -> InstanceChangeResult:
        instance = self._repo.get(instance_id)
        if instance is None:
            return InstanceChangeResult(found=False)
        if not mutation(instance):
            logger.debug("%s left instance %s unchanged", operation, instance_id)
            return InstanceChangeResult()

        self._repo.mark_dirty(instance)
        return InstanceChangeResult(affected=1, committed=self._commit(operation))

    def _template_for(self, instance: MoleculeInstance) -> Optional[MoleculeTemplate]:
        if self._templates is None or instance.template_id is None:
            return None
        return self._templates.get_molecule_template(instance.template_id)

    def _commit(self, operation: str) -> bool:
        committed = self._repo.commit()
        if not committed:
            HabitMetrics.commit_failures_total().add(1, {"operation": operation})
            logger.error("Commit failed during %s", operation)
        return committed
