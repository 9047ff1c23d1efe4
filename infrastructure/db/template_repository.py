"""Supabase implementation of TemplateRepository."""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from supabase import Client

from application.models import AtomTemplate, MediaCaptureSettings, MoleculeTemplate

logger = logging.getLogger(__name__)


class SupabaseTemplateRepository:
    """Supabase-backed template lookups.

    Molecule templates keep their recurrence rule as a JSON column; atom
    templates live in their own table keyed by ``molecule_template_id``.
    """

    MOLECULE_TABLE = "molecule_templates"
    ATOM_TABLE = "atom_templates"

    def __init__(self, client: Client) -> None:
        self._client = client

    def _atom_row(self, template_id: UUID) -> Optional[Dict[str, Any]]:
        result = (
            self._client.table(self.ATOM_TABLE)
            .select("*")
            .eq("id", str(template_id))
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    def get_molecule_template(self, template_id: UUID) -> Optional[MoleculeTemplate]:
        result = (
            self._client.table(self.MOLECULE_TABLE)
            .select("*")
            .eq("id", str(template_id))
            .limit(1)
            .execute()
        )
        if not result.data:
            return None

        atoms = (
            self._client.table(self.ATOM_TABLE)
            .select("*")
            .eq("molecule_template_id", str(template_id))
            .order("order")
            .execute()
        )
        row = dict(result.data[0])
        row["atom_templates"] = atoms.data or []
        return MoleculeTemplate.model_validate(row)

    def get_atom_template(self, template_id: UUID) -> Optional[AtomTemplate]:
        row = self._atom_row(template_id)
        return AtomTemplate.model_validate(row) if row else None

    def get_capture_settings(self, template_id: UUID) -> Optional[MediaCaptureSettings]:
        row = self._atom_row(template_id)
        if not row or not row.get("media_capture_settings"):
            return None
        raw = row["media_capture_settings"]
        if isinstance(raw, str):
            return MediaCaptureSettings.from_json(raw)
        return MediaCaptureSettings.model_validate(raw)

    def update_atom_target(self, template_id: UUID, target_value: float) -> bool:
        result = (
            self._client.table(self.ATOM_TABLE)
            .update({"target_value": target_value})
            .eq("id", str(template_id))
            .execute()
        )
        return bool(result.data)

    def save_molecule_template(self, template: MoleculeTemplate) -> bool:
        """Write the template and its atoms in one ``save_molecule_template`` call.

        The database function replaces the atom rows inside the same
        transaction, so a failed save leaves the previous version intact.
        """
        row = template.model_dump(mode="json", exclude={"atom_templates"})
        atoms = [
            {**atom.model_dump(mode="json"), "molecule_template_id": str(template.id)}
            for atom in template.atom_templates
        ]
        try:
            self._client.rpc(
                "save_molecule_template",
                {"p_template": row, "p_atoms": atoms},
            ).execute()
        except Exception as e:
            logger.error("Failed to save molecule template %s: %s", template.id, e)
            return False
        return True

    def delete_molecule_template(self, template_id: UUID) -> bool:
        try:
            result = (
                self._client.table(self.MOLECULE_TABLE)
                .delete()
                .eq("id", str(template_id))
                .execute()
            )
        except Exception as e:
            logger.error("Failed to delete molecule template %s: %s", template_id, e)
            return False
        # atom_templates rows go with it (ON DELETE CASCADE).
        return bool(result.data)
