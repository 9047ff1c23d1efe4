"""Use case: drive media atoms through pending → capturing → captured/failed.

Capture configuration is resolved from the atom's source template when it
carries an override for the atom's media type, and otherwise falls back to
the per-type default. Resolution never blocks or fails a capture.
"""

import logging
from typing import Optional
from uuid import UUID

from application.models import AtomInstance, MediaCapture, MediaCaptureSettings
from application.ports.template_repository import TemplateRepository
from application.use_cases.progression import AtomMutationResult, ProgressionService

logger = logging.getLogger(__name__)


class MediaCaptureUseCase:
    """Coordinates capture settings resolution and capture state changes."""

    def __init__(
        self,
        progression: ProgressionService,
        templates: Optional[TemplateRepository] = None,
    ) -> None:
        self._progression = progression
        self._templates = templates

    def resolve_settings(self, atom: AtomInstance) -> MediaCaptureSettings:
        """Return the capture settings to use for ``atom``.

        Raises ValueError only for non-media atoms, which never reach capture.
        """
        media_type = atom.input_type.media_type
        if media_type is None:
            raise ValueError(f"atom {atom.id} is not a media atom ({atom.input_type.value})")

        override = None
        if self._templates is not None and atom.source_template_id is not None:
            try:
                override = self._templates.get_capture_settings(atom.source_template_id)
            except Exception as e:
                logger.warning(
                    "Capture settings lookup failed for template %s, using default: %s",
                    atom.source_template_id,
                    e,
                )

        if override is not None and override.capture_type == media_type:
            return override
        if override is not None:
            logger.warning(
                "Template %s capture type %s does not match atom type %s, using default",
                atom.source_template_id,
                override.capture_type.value,
                media_type.value,
            )
        return MediaCaptureSettings.default_for(media_type)

    def begin(self, molecule_id: UUID, atom_id: UUID) -> AtomMutationResult:
        def start(atom: AtomInstance) -> bool:
            if not atom.input_type.is_media:
                return False
            return atom.begin_capture(self.resolve_settings(atom))

        return self._progression.apply(molecule_id, atom_id, start)

    def complete(self, molecule_id: UUID, atom_id: UUID, artifact: MediaCapture) -> AtomMutationResult:
        return self._progression.apply(
            molecule_id, atom_id, lambda atom: atom.complete_capture(artifact)
        )

    def fail(self, molecule_id: UUID, atom_id: UUID) -> AtomMutationResult:
        result = self._progression.apply(molecule_id, atom_id, lambda atom: atom.fail_capture())
        if result.changed:
            logger.info("Capture failed for atom %s; awaiting user retry", atom_id)
        return result

    def retry(self, molecule_id: UUID, atom_id: UUID) -> AtomMutationResult:
        return self._progression.apply(molecule_id, atom_id, lambda atom: atom.retry_capture())
