"""Port interface for template lookups."""

from typing import Optional, Protocol
from uuid import UUID

from application.models import AtomTemplate, MediaCaptureSettings, MoleculeTemplate


class TemplateRepository(Protocol):
    """Read access to molecule and atom templates.

    Templates may be deleted while instances cloned from them live on, so
    every lookup can come back empty.
    """

    def get_molecule_template(self, template_id: UUID) -> Optional[MoleculeTemplate]:
        ...

    def get_atom_template(self, template_id: UUID) -> Optional[AtomTemplate]:
        ...

    def get_capture_settings(self, template_id: UUID) -> Optional[MediaCaptureSettings]:
        """Return the template-level capture override, if one is configured."""
        ...

    def update_atom_target(self, template_id: UUID, target_value: float) -> bool:
        """Raise the baseline target for future instances."""
        ...

    def save_molecule_template(self, template: MoleculeTemplate) -> bool:
        """Insert or replace a template together with its atom templates."""
        ...

    def delete_molecule_template(self, template_id: UUID) -> bool:
        """Remove a template and its atom templates. Returns False if nothing was removed."""
        ...
