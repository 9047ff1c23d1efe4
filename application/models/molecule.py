"""Molecule templates and their concrete occurrences.

A MoleculeTemplate owns a RecurrenceRule and an ordered list of
AtomTemplates. Expanding the rule yields dates; each date becomes a
MoleculeInstance holding freshly cloned AtomInstances.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, computed_field, field_validator

from application.models.atom import AtomInputType, AtomInstance
from application.models.clock import local_now, naive_local, naive_local_or_none
from application.models.media import MediaCaptureSettings
from application.models.recurrence import EndRule, RecurrenceRule


class AtomTemplate(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    title: str
    input_type: AtomInputType = AtomInputType.binary
    target_value: Optional[float] = None
    unit: Optional[str] = None
    order: int = 0
    media_capture_settings: Optional[MediaCaptureSettings] = None

    def create_instance(self, molecule_id: UUID) -> AtomInstance:
        return AtomInstance(
            title=self.title,
            input_type=self.input_type,
            target_value=self.target_value,
            unit=self.unit,
            order=self.order,
            current_value=0.0 if self.input_type is AtomInputType.counter else None,
            source_template_id=self.id,
            parent_molecule_id=molecule_id,
        )


class MoleculeTemplate(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    title: str
    recurrence: RecurrenceRule
    base_time: time = time(9, 0)
    atom_templates: List[AtomTemplate] = Field(default_factory=list)

    def create_instance(self, on: date) -> "MoleculeInstance":
        """Materialize the occurrence for ``on``, cloning atoms in order."""
        instance = MoleculeInstance(
            template_id=self.id,
            title=self.title,
            scheduled_date=datetime.combine(on, self.base_time),
        )
        for atom_template in sorted(self.atom_templates, key=lambda a: a.order):
            instance.atoms.append(atom_template.create_instance(instance.id))
        return instance

    def end_before(self, day: date) -> None:
        """Stop the series so its last possible occurrence is the day before ``day``."""
        self.recurrence = self.recurrence.model_copy(
            update={"end_rule": EndRule.on(day - timedelta(days=1))}
        )


class MoleculeInstance(BaseModel):
    """One occurrence of a molecule on a specific date.

    ``is_completed`` and ``progress`` are derived from the atoms.
    ``completed_at`` and ``has_been_completed`` are bookkeeping maintained by
    ProgressionService; once the instance has been completed its scheduled
    date is frozen.
    """

    id: UUID = Field(default_factory=uuid4)
    template_id: Optional[UUID] = None
    title: str = "Untitled"
    scheduled_date: datetime
    original_scheduled_date: Optional[datetime] = None
    atoms: List[AtomInstance] = Field(default_factory=list)
    notes: Optional[str] = None
    # Edited or moved on its own; series regeneration leaves it in place.
    is_exception: bool = False

    completed_at: Optional[datetime] = None
    has_been_completed: bool = False
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator(
        "scheduled_date",
        "original_scheduled_date",
        "completed_at",
        "created_at",
        "updated_at",
    )
    @classmethod
    def _to_local(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_local_or_none(value)

    @computed_field
    @property
    def is_completed(self) -> bool:
        # An empty molecule is never complete.
        return bool(self.atoms) and all(atom.is_completed for atom in self.atoms)

    @property
    def completed_count(self) -> int:
        return sum(1 for atom in self.atoms if atom.is_completed)

    @computed_field
    @property
    def progress(self) -> float:
        if not self.atoms:
            return 0.0
        return self.completed_count / len(self.atoms)

    @property
    def progress_display_string(self) -> str:
        return f"{self.completed_count}/{len(self.atoms)}"

    def find_atom(self, atom_id: UUID) -> Optional[AtomInstance]:
        return next((a for a in self.atoms if a.id == atom_id), None)

    def is_future(self, now: datetime) -> bool:
        return self.scheduled_date > naive_local(now)

    @property
    def occupied_dates(self) -> List[date]:
        """Days this occurrence accounts for, including the slot it was moved from."""
        days = [self.scheduled_date.date()]
        if self.original_scheduled_date is not None:
            days.append(self.original_scheduled_date.date())
        return days

    @property
    def is_date_frozen(self) -> bool:
        return self.has_been_completed or self.is_completed

    def reschedule(self, new_date: datetime, now: Optional[datetime] = None) -> bool:
        """Move the occurrence. Refused once it has ever been completed."""
        new_date = naive_local(new_date)
        if self.is_date_frozen or new_date == self.scheduled_date:
            return False
        if self.original_scheduled_date is None:
            self.original_scheduled_date = self.scheduled_date
        self.scheduled_date = new_date
        self._touch(now, detach=True)
        return True

    def snooze(self, minutes: int, now: Optional[datetime] = None) -> bool:
        """Push the occurrence back by ``minutes``."""
        if minutes == 0:
            return False
        return self.reschedule(self.scheduled_date + timedelta(minutes=minutes), now)

    def edit(
        self,
        title: Optional[str] = None,
        scheduled_time: Optional[time] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Change this occurrence only. A time change keeps the day and obeys the date freeze."""
        changed = False
        if title is not None and title != self.title:
            self.title = title
            changed = True
        if notes is not None and notes != self.notes:
            self.notes = notes
            changed = True
        if changed:
            self._touch(now, detach=True)
        if scheduled_time is not None:
            moved = datetime.combine(self.scheduled_date.date(), scheduled_time)
            changed = self.reschedule(moved, now) or changed
        return changed

    def mark_complete(self, now: Optional[datetime] = None) -> bool:
        """Complete every binary and counter atom. Returns True if any atom changed."""
        changed = False
        for atom in self.atoms:
            changed = atom.mark_done(now) or changed
        return changed

    def mark_incomplete(self, now: Optional[datetime] = None) -> bool:
        """Reset every binary and counter atom. Returns True if any atom changed."""
        changed = False
        for atom in self.atoms:
            changed = atom.mark_not_done(now) or changed
        return changed

    def toggle_complete(self, now: Optional[datetime] = None) -> bool:
        if self.is_completed:
            return self.mark_incomplete(now)
        return self.mark_complete(now)

    def _touch(self, now: Optional[datetime], detach: bool = False) -> None:
        self.updated_at = local_now(now)
        if detach and self.template_id is not None:
            self.is_exception = True
