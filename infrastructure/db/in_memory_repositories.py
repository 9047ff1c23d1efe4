"""In-memory implementations of the molecule and template repositories.

Used when Supabase is not configured and as the default fixture in tests.
Objects are returned by identity, so mutations are visible immediately;
``commit`` only clears the staged change sets.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set
from uuid import UUID

from application.models import AtomTemplate, MediaCaptureSettings, MoleculeInstance, MoleculeTemplate
from application.ports.molecule_repository import MoleculePredicate

logger = logging.getLogger(__name__)


class InMemoryMoleculeRepository:
    """Dict-backed MoleculeRepository.

    Set ``fail_commits`` to make every commit report failure.
    """

    def __init__(self, instances: Optional[Iterable[MoleculeInstance]] = None) -> None:
        self._instances: Dict[UUID, MoleculeInstance] = {}
        self._dirty: Set[UUID] = set()
        self._deleted: Set[UUID] = set()
        self.fail_commits = False
        self.commit_count = 0
        for instance in instances or []:
            self._instances[instance.id] = instance

    def fetch(self, predicate: Optional[MoleculePredicate] = None) -> List[MoleculeInstance]:
        matches = [i for i in self._instances.values() if predicate is None or predicate(i)]
        return sorted(matches, key=lambda i: i.scheduled_date)

    def get(self, instance_id: UUID) -> Optional[MoleculeInstance]:
        return self._instances.get(instance_id)

    def add(self, instance: MoleculeInstance) -> None:
        self._instances[instance.id] = instance
        self._dirty.add(instance.id)
        self._deleted.discard(instance.id)

    def delete(self, instances: Iterable[MoleculeInstance]) -> int:
        count = 0
        for instance in instances:
            if self._instances.pop(instance.id, None) is not None:
                self._dirty.discard(instance.id)
                self._deleted.add(instance.id)
                count += 1
        return count

    def mark_dirty(self, instance: MoleculeInstance) -> None:
        if instance.id in self._instances:
            self._dirty.add(instance.id)

    @property
    def has_changes(self) -> bool:
        return bool(self._dirty or self._deleted)

    def commit(self) -> bool:
        if self.fail_commits:
            logger.warning("In-memory commit rejected (%d staged)", len(self._dirty) + len(self._deleted))
            return False
        self._dirty.clear()
        self._deleted.clear()
        self.commit_count += 1
        return True


class InMemoryTemplateRepository:
    """Dict-backed TemplateRepository."""

    def __init__(
        self,
        molecule_templates: Optional[Iterable[MoleculeTemplate]] = None,
        atom_templates: Optional[Iterable[AtomTemplate]] = None,
    ) -> None:
        self._molecules: Dict[UUID, MoleculeTemplate] = {}
        self._atoms: Dict[UUID, AtomTemplate] = {}
        for template in molecule_templates or []:
            self.add_molecule_template(template)
        for atom in atom_templates or []:
            self.add_atom_template(atom)

    def add_molecule_template(self, template: MoleculeTemplate) -> None:
        self._molecules[template.id] = template
        for atom in template.atom_templates:
            self._atoms[atom.id] = atom

    def add_atom_template(self, template: AtomTemplate) -> None:
        self._atoms[template.id] = template

    def remove_atom_template(self, template_id: UUID) -> None:
        self._atoms.pop(template_id, None)

    def get_molecule_template(self, template_id: UUID) -> Optional[MoleculeTemplate]:
        return self._molecules.get(template_id)

    def get_atom_template(self, template_id: UUID) -> Optional[AtomTemplate]:
        return self._atoms.get(template_id)

    def get_capture_settings(self, template_id: UUID) -> Optional[MediaCaptureSettings]:
        atom = self._atoms.get(template_id)
        return atom.media_capture_settings if atom is not None else None

    def update_atom_target(self, template_id: UUID, target_value: float) -> bool:
        atom = self._atoms.get(template_id)
        if atom is None:
            return False
        atom.target_value = target_value
        return True

    def save_molecule_template(self, template: MoleculeTemplate) -> bool:
        previous = self._molecules.get(template.id)
        if previous is not None:
            for atom in previous.atom_templates:
                self._atoms.pop(atom.id, None)
        self.add_molecule_template(template)
        return True

    def delete_molecule_template(self, template_id: UUID) -> bool:
        template = self._molecules.pop(template_id, None)
        if template is None:
            return False
        for atom in template.atom_templates:
            self._atoms.pop(atom.id, None)
        return True
