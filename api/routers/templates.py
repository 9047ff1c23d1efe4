"""Template endpoints.

POST /api/templates: create or replace a template with its atom templates
GET  /api/templates/{id}: fetch one template
POST /api/templates/{id}/expand: materialize instances for a date range
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from api.deps import get_expand_schedule_use_case, get_template_repository
from application.models import MoleculeInstance, MoleculeTemplate
from application.ports.template_repository import TemplateRepository
from application.use_cases.expand_schedule import ExpandScheduleUseCase

router = APIRouter(prefix="/api/templates", tags=["templates"])


class ExpandRequest(BaseModel):
    start: date
    end: Optional[date] = None  # defaults to the configured horizon


class ExpandResponse(BaseModel):
    created: List[MoleculeInstance]
    skipped_dates: List[date]
    committed: Optional[bool] = None


@router.post("", response_model=MoleculeTemplate, status_code=201)
def create_template(
    template: MoleculeTemplate,
    templates: TemplateRepository = Depends(get_template_repository),
):
    """Store a template. Posting an existing id replaces it and its atom templates."""
    if not templates.save_molecule_template(template):
        raise HTTPException(status_code=503, detail="Template could not be saved")
    return template


@router.get("/{template_id}", response_model=MoleculeTemplate)
def get_template(
    template_id: UUID,
    templates: TemplateRepository = Depends(get_template_repository),
):
    template = templates.get_molecule_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail=f"Template {template_id} not found")
    return template


@router.post("/{template_id}/expand", response_model=ExpandResponse)
def expand_template(
    template_id: UUID,
    body: ExpandRequest,
    templates: TemplateRepository = Depends(get_template_repository),
    use_case: ExpandScheduleUseCase = Depends(get_expand_schedule_use_case),
):
    """Create instances for every occurrence in ``[start, end)`` not already scheduled."""
    if body.end is not None and body.end < body.start:
        raise HTTPException(status_code=400, detail="end must not be before start")

    template = templates.get_molecule_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail=f"Template {template_id} not found")

    result = use_case.execute(template, body.start, body.end)
    if result.committed is False:
        raise HTTPException(status_code=503, detail="Instances created but could not be saved")
    return ExpandResponse(
        created=result.created,
        skipped_dates=result.skipped_dates,
        committed=result.committed,
    )
