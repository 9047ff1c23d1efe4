"""Molecule instance endpoints.

POST   /api/molecules/{id}/atoms/{atom_id}/toggle|increment|decrement|value
POST   /api/molecules/{id}/atoms/{atom_id}/capture/begin|complete|fail|retry
POST   /api/molecules/{id}/complete|incomplete|toggle-complete
GET    /api/molecules?start=&end=
DELETE /api/molecules/{id}?scope=this_event_only|all_future_events|all_events
POST   /api/molecules/delete-selected
POST   /api/molecules/delete-future
POST   /api/molecules/{id}/reschedule
POST   /api/molecules/{id}/snooze
PATCH  /api/molecules/{id}

Timestamps with an offset are converted to server-local wall-clock time.
A failed persistence commit returns 503; the change stays applied in memory.
"""

from datetime import date, datetime, time
from typing import List, Optional, Union
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from api.deps import (
    get_manage_instances_use_case,
    get_media_capture_use_case,
    get_molecule_repository,
    get_progression_service,
)
from application.models import MediaCapture, MoleculeInstance, naive_local
from application.ports.molecule_repository import MoleculeRepository
from application.use_cases.manage_instances import (
    DeletionScope,
    EditScope,
    InstanceChangeResult,
    InstanceEdit,
    ManageInstancesUseCase,
)
from application.use_cases.media_capture import MediaCaptureUseCase
from application.use_cases.progression import AtomMutationResult, ProgressionService

router = APIRouter(prefix="/api/molecules", tags=["molecules"])


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------


class SetValueRequest(BaseModel):
    """Raw value as typed by the user; numeric strings are accepted."""
    value: Union[float, str, None] = None


class AtomMutationResponse(BaseModel):
    changed: bool
    transition: str
    committed: Optional[bool] = None
    molecule: MoleculeInstance


class DeleteSelectedRequest(BaseModel):
    ids: List[UUID] = Field(..., min_length=1)


class DeleteFutureRequest(BaseModel):
    now: Optional[datetime] = None

    @field_validator("now")
    @classmethod
    def _to_local(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_local(value) if value is not None else None


class InstanceChangeResponse(BaseModel):
    affected: int
    committed: Optional[bool] = None


class RescheduleRequest(BaseModel):
    scheduled_date: datetime

    @field_validator("scheduled_date")
    @classmethod
    def _to_local(cls, value: datetime) -> datetime:
        return naive_local(value)


class SnoozeRequest(BaseModel):
    minutes: int = Field(..., gt=0, le=24 * 60)


class EditRequest(BaseModel):
    scope: EditScope = EditScope.this_event_only
    title: Optional[str] = Field(None, min_length=1)
    scheduled_time: Optional[time] = None
    notes: Optional[str] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mutation_response(molecule_id: UUID, atom_id: UUID, result: AtomMutationResult) -> AtomMutationResponse:
    if not result.found:
        raise HTTPException(status_code=404, detail=f"Atom {atom_id} not found in molecule {molecule_id}")
    if result.committed is False:
        raise HTTPException(status_code=503, detail="Change applied but could not be saved")
    return AtomMutationResponse(
        changed=result.changed,
        transition=result.transition.value,
        committed=result.committed,
        molecule=result.molecule,
    )


def _change_response(result: InstanceChangeResult) -> InstanceChangeResponse:
    if result.committed is False:
        raise HTTPException(status_code=503, detail="Change applied but could not be saved")
    return InstanceChangeResponse(affected=result.affected, committed=result.committed)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


@router.get("", response_model=List[MoleculeInstance])
def list_molecules(
    start: Optional[date] = Query(None, description="First day, inclusive"),
    end: Optional[date] = Query(None, description="Last day, exclusive"),
    repository: MoleculeRepository = Depends(get_molecule_repository),
):
    """List scheduled instances, optionally limited to ``[start, end)``."""
    if start is not None and end is not None and end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")

    def in_range(instance: MoleculeInstance) -> bool:
        day = instance.scheduled_date.date()
        if start is not None and day < start:
            return False
        return end is None or day < end

    return repository.fetch(in_range)


# ---------------------------------------------------------------------------
# Atom mutations
# ---------------------------------------------------------------------------


@router.post("/{molecule_id}/atoms/{atom_id}/toggle", response_model=AtomMutationResponse)
def toggle_atom(
    molecule_id: UUID,
    atom_id: UUID,
    progression: ProgressionService = Depends(get_progression_service),
):
    return _mutation_response(molecule_id, atom_id, progression.toggle_atom(molecule_id, atom_id))


@router.post("/{molecule_id}/atoms/{atom_id}/increment", response_model=AtomMutationResponse)
def increment_atom(
    molecule_id: UUID,
    atom_id: UUID,
    progression: ProgressionService = Depends(get_progression_service),
):
    return _mutation_response(molecule_id, atom_id, progression.increment_atom(molecule_id, atom_id))


@router.post("/{molecule_id}/atoms/{atom_id}/decrement", response_model=AtomMutationResponse)
def decrement_atom(
    molecule_id: UUID,
    atom_id: UUID,
    progression: ProgressionService = Depends(get_progression_service),
):
    return _mutation_response(molecule_id, atom_id, progression.decrement_atom(molecule_id, atom_id))


@router.post("/{molecule_id}/atoms/{atom_id}/value", response_model=AtomMutationResponse)
def set_atom_value(
    molecule_id: UUID,
    atom_id: UUID,
    body: SetValueRequest,
    progression: ProgressionService = Depends(get_progression_service),
):
    """Set a value atom. Unparsable input is accepted and ignored (changed=false)."""
    result = progression.set_atom_value(molecule_id, atom_id, body.value)
    return _mutation_response(molecule_id, atom_id, result)


# ---------------------------------------------------------------------------
# Molecule-level completion
# ---------------------------------------------------------------------------


def _molecule_response(molecule_id: UUID, result: AtomMutationResult) -> AtomMutationResponse:
    if not result.found:
        raise HTTPException(status_code=404, detail=f"Molecule {molecule_id} not found")
    if result.committed is False:
        raise HTTPException(status_code=503, detail="Change applied but could not be saved")
    return AtomMutationResponse(
        changed=result.changed,
        transition=result.transition.value,
        committed=result.committed,
        molecule=result.molecule,
    )


@router.post("/{molecule_id}/complete", response_model=AtomMutationResponse)
def complete_molecule(
    molecule_id: UUID,
    progression: ProgressionService = Depends(get_progression_service),
):
    """Check every binary atom and fill every counter. Value and media atoms are left alone."""
    return _molecule_response(molecule_id, progression.mark_complete(molecule_id))


@router.post("/{molecule_id}/incomplete", response_model=AtomMutationResponse)
def uncomplete_molecule(
    molecule_id: UUID,
    progression: ProgressionService = Depends(get_progression_service),
):
    return _molecule_response(molecule_id, progression.mark_incomplete(molecule_id))


@router.post("/{molecule_id}/toggle-complete", response_model=AtomMutationResponse)
def toggle_molecule(
    molecule_id: UUID,
    progression: ProgressionService = Depends(get_progression_service),
):
    return _molecule_response(molecule_id, progression.toggle_complete(molecule_id))


# ---------------------------------------------------------------------------
# Media capture
# ---------------------------------------------------------------------------


@router.post("/{molecule_id}/atoms/{atom_id}/capture/begin", response_model=AtomMutationResponse)
def begin_capture(
    molecule_id: UUID,
    atom_id: UUID,
    capture: MediaCaptureUseCase = Depends(get_media_capture_use_case),
):
    return _mutation_response(molecule_id, atom_id, capture.begin(molecule_id, atom_id))


@router.post("/{molecule_id}/atoms/{atom_id}/capture/complete", response_model=AtomMutationResponse)
def complete_capture(
    molecule_id: UUID,
    atom_id: UUID,
    body: MediaCapture,
    capture: MediaCaptureUseCase = Depends(get_media_capture_use_case),
):
    return _mutation_response(molecule_id, atom_id, capture.complete(molecule_id, atom_id, body))


@router.post("/{molecule_id}/atoms/{atom_id}/capture/fail", response_model=AtomMutationResponse)
def fail_capture(
    molecule_id: UUID,
    atom_id: UUID,
    capture: MediaCaptureUseCase = Depends(get_media_capture_use_case),
):
    return _mutation_response(molecule_id, atom_id, capture.fail(molecule_id, atom_id))


@router.post("/{molecule_id}/atoms/{atom_id}/capture/retry", response_model=AtomMutationResponse)
def retry_capture(
    molecule_id: UUID,
    atom_id: UUID,
    capture: MediaCaptureUseCase = Depends(get_media_capture_use_case),
):
    return _mutation_response(molecule_id, atom_id, capture.retry(molecule_id, atom_id))


# ---------------------------------------------------------------------------
# Deletion and rescheduling
# ---------------------------------------------------------------------------


@router.post("/delete-selected", response_model=InstanceChangeResponse)
def delete_selected(
    body: DeleteSelectedRequest,
    use_case: ManageInstancesUseCase = Depends(get_manage_instances_use_case),
):
    """Delete the given instances. Unknown ids are ignored."""
    return _change_response(use_case.delete_selected(body.ids))


@router.post("/delete-future", response_model=InstanceChangeResponse)
def delete_future(
    body: Optional[DeleteFutureRequest] = None,
    use_case: ManageInstancesUseCase = Depends(get_manage_instances_use_case),
):
    """Delete every instance scheduled strictly after now."""
    now = body.now if body is not None else None
    return _change_response(use_case.delete_future(now))


@router.delete("/{molecule_id}", response_model=InstanceChangeResponse)
def delete_molecule(
    molecule_id: UUID,
    scope: DeletionScope = Query(DeletionScope.this_event_only),
    use_case: ManageInstancesUseCase = Depends(get_manage_instances_use_case),
):
    """Delete one occurrence, every occurrence from it onward, or the whole series."""
    result = use_case.delete_events(molecule_id, scope)
    if not result.found:
        raise HTTPException(status_code=404, detail=f"Molecule {molecule_id} not found")
    return _change_response(result)


@router.post("/{molecule_id}/reschedule", response_model=InstanceChangeResponse)
def reschedule_molecule(
    molecule_id: UUID,
    body: RescheduleRequest,
    use_case: ManageInstancesUseCase = Depends(get_manage_instances_use_case),
):
    """Move one occurrence. Returns 409 if it was ever completed or the date is unchanged."""
    result = use_case.reschedule(molecule_id, body.scheduled_date)
    if not result.found:
        raise HTTPException(status_code=404, detail=f"Molecule {molecule_id} not found")
    if result.affected == 0:
        raise HTTPException(status_code=409, detail="Occurrence was not rescheduled")
    return _change_response(result)


@router.post("/{molecule_id}/snooze", response_model=InstanceChangeResponse)
def snooze_molecule(
    molecule_id: UUID,
    body: SnoozeRequest,
    use_case: ManageInstancesUseCase = Depends(get_manage_instances_use_case),
):
    """Push one occurrence back. Completed occurrences cannot be snoozed (409)."""
    result = use_case.snooze(molecule_id, body.minutes)
    if not result.found:
        raise HTTPException(status_code=404, detail=f"Molecule {molecule_id} not found")
    if result.affected == 0:
        raise HTTPException(status_code=409, detail="Occurrence was not snoozed")
    return _change_response(result)


@router.patch("/{molecule_id}", response_model=InstanceChangeResponse)
def edit_molecule(
    molecule_id: UUID,
    body: EditRequest,
    use_case: ManageInstancesUseCase = Depends(get_manage_instances_use_case),
):
    """Edit this occurrence only, or the template and every occurrence from this one on.

    For ``all_future_events`` ``affected`` counts the regenerated occurrences.
    """
    changes = InstanceEdit(title=body.title, scheduled_time=body.scheduled_time, notes=body.notes)
    result = use_case.edit(molecule_id, changes, body.scope)
    if not result.found:
        raise HTTPException(status_code=404, detail=f"Molecule {molecule_id} not found")
    return _change_response(result)
