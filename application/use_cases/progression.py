"""Use case: propagate atom-level completion into molecule-level state.

ProgressionService is the only place that writes molecule completion
bookkeeping (``completed_at``, ``has_been_completed``). Completion itself is
computed from the atoms; this service records the transitions and makes sure
all derived state is settled before the repository commit runs.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable, Optional
from uuid import UUID

from application.models import AtomInputType, AtomInstance, MoleculeInstance, local_now
from application.ports.molecule_repository import MoleculeRepository
from application.ports.template_repository import TemplateRepository
from backend.observability.metrics import HabitMetrics

logger = logging.getLogger(__name__)


class ProgressionResult(str, Enum):
    completed = "completed"    # molecule just became complete
    reopened = "reopened"      # a completed molecule lost a completed atom
    unchanged = "unchanged"
    orphaned = "orphaned"      # owning molecule could not be resolved


@dataclass
class AtomMutationResult:
    """Outcome of one user-driven atom mutation."""

    found: bool
    changed: bool = False
    transition: ProgressionResult = ProgressionResult.unchanged
    committed: Optional[bool] = None  # None when nothing needed saving
    molecule: Optional[MoleculeInstance] = None
    atom: Optional[AtomInstance] = None


class ProgressionService:
    """Recomputes molecule state after atom mutations."""

    def __init__(
        self,
        repository: MoleculeRepository,
        templates: Optional[TemplateRepository] = None,
    ) -> None:
        self._repo = repository
        self._templates = templates

    # ------------------------------------------------------------------
    # Propagation
    # ------------------------------------------------------------------

    def notify_atom_changed(
        self, atom: AtomInstance, now: Optional[datetime] = None
    ) -> ProgressionResult:
        """Re-evaluate the molecule that owns ``atom``.

        Call only after the mutation has been fully applied. Calling it again
        with no intervening mutation has no effect. An orphaned atom is a
        silent no-op.
        """
        if atom.parent_molecule_id is None:
            return ProgressionResult.orphaned

        molecule = self._repo.get(atom.parent_molecule_id)
        if molecule is None:
            logger.debug("Atom %s has no resolvable molecule, skipping", atom.id)
            return ProgressionResult.orphaned

        index = next((i for i, a in enumerate(molecule.atoms) if a.id == atom.id), None)
        if index is None:
            logger.debug("Atom %s not found in molecule %s, skipping", atom.id, molecule.id)
            return ProgressionResult.orphaned
        if molecule.atoms[index] is not atom:
            # The caller mutated a different copy; the molecule must see it.
            molecule.atoms[index] = atom

        return self.refresh(molecule, now)

    def refresh(
        self, molecule: MoleculeInstance, now: Optional[datetime] = None
    ) -> ProgressionResult:
        """Record a completion transition for ``molecule`` if there is one."""
        is_completed = molecule.is_completed
        was_completed = molecule.completed_at is not None

        if is_completed == was_completed:
            return ProgressionResult.unchanged

        now = local_now(now)
        molecule.updated_at = now
        if is_completed:
            molecule.completed_at = now
            molecule.has_been_completed = True
            result = ProgressionResult.completed
        else:
            molecule.completed_at = None
            result = ProgressionResult.reopened

        self._repo.mark_dirty(molecule)
        HabitMetrics.molecule_transitions_total().add(1, {"transition": result.value})
        logger.info("Molecule %s %s (%s)", molecule.id, result.value, molecule.progress_display_string)
        return result

    @staticmethod
    def all_completed(instances: Iterable[MoleculeInstance]) -> bool:
        """True when there is at least one instance and every one is complete."""
        instances = list(instances)
        return bool(instances) and all(i.is_completed for i in instances)

    # ------------------------------------------------------------------
    # Atom mutations
    # ------------------------------------------------------------------

    def toggle_atom(self, molecule_id: UUID, atom_id: UUID, now: Optional[datetime] = None) -> AtomMutationResult:
        return self._mutate(molecule_id, atom_id, lambda atom: atom.toggle(now), now)

    def increment_atom(self, molecule_id: UUID, atom_id: UUID, now: Optional[datetime] = None) -> AtomMutationResult:
        return self._mutate(molecule_id, atom_id, lambda atom: atom.increment(now), now)

    def decrement_atom(self, molecule_id: UUID, atom_id: UUID, now: Optional[datetime] = None) -> AtomMutationResult:
        return self._mutate(molecule_id, atom_id, lambda atom: atom.decrement(now), now)

    def set_atom_value(
        self, molecule_id: UUID, atom_id: UUID, raw: Any, now: Optional[datetime] = None
    ) -> AtomMutationResult:
        result = self._mutate(molecule_id, atom_id, lambda atom: atom.set_value(raw, now), now)
        if result.changed and result.atom is not None:
            self.check_for_progression(result.atom)
        return result

    def apply(
        self,
        molecule_id: UUID,
        atom_id: UUID,
        mutation: Callable[[AtomInstance], bool],
        now: Optional[datetime] = None,
    ) -> AtomMutationResult:
        """Run an arbitrary atom mutation through propagation and commit."""
        return self._mutate(molecule_id, atom_id, mutation, now)

    def _mutate(
        self,
        molecule_id: UUID,
        atom_id: UUID,
        mutation: Callable[[AtomInstance], bool],
        now: Optional[datetime],
    ) -> AtomMutationResult:
        molecule = self._repo.get(molecule_id)
        atom = molecule.find_atom(atom_id) if molecule is not None else None
        if atom is None:
            return AtomMutationResult(found=False)

        if not mutation(atom):
            return AtomMutationResult(found=True, molecule=molecule, atom=atom)

        self._repo.mark_dirty(molecule)
        transition = self.notify_atom_changed(atom, now)

        # Derived state is settled; only now hand off to persistence.
        committed = self._repo.commit()
        if not committed:
            HabitMetrics.commit_failures_total().add(1, {"operation": "atom_mutation"})
            logger.error("Commit failed after mutating atom %s; in-memory state kept", atom.id)

        return AtomMutationResult(
            found=True,
            changed=True,
            transition=transition,
            committed=committed,
            molecule=molecule,
            atom=atom,
        )

    # ------------------------------------------------------------------
    # Molecule-level completion
    # ------------------------------------------------------------------

    def mark_complete(self, molecule_id: UUID, now: Optional[datetime] = None) -> AtomMutationResult:
        """Complete every binary and counter atom of the molecule.

        Value and media atoms still need real input, so a molecule holding
        unfinished ones stays incomplete.
        """
        return self._mutate_molecule(molecule_id, lambda m: m.mark_complete(now), now)

    def mark_incomplete(self, molecule_id: UUID, now: Optional[datetime] = None) -> AtomMutationResult:
        return self._mutate_molecule(molecule_id, lambda m: m.mark_incomplete(now), now)

    def toggle_complete(self, molecule_id: UUID, now: Optional[datetime] = None) -> AtomMutationResult:
        return self._mutate_molecule(molecule_id, lambda m: m.toggle_complete(now), now)

    def _mutate_molecule(
        self,
        molecule_id: UUID,
        mutation: Callable[[MoleculeInstance], bool],
        now: Optional[datetime],
    ) -> AtomMutationResult:
        molecule = self._repo.get(molecule_id)
        if molecule is None:
            return AtomMutationResult(found=False)

        if not mutation(molecule):
            return AtomMutationResult(found=True, molecule=molecule)

        self._repo.mark_dirty(molecule)
        transition = self.refresh(molecule, now)

        committed = self._repo.commit()
        if not committed:
            HabitMetrics.commit_failures_total().add(1, {"operation": "molecule_completion"})
            logger.error("Commit failed after updating molecule %s; in-memory state kept", molecule.id)

        return AtomMutationResult(
            found=True,
            changed=True,
            transition=transition,
            committed=committed,
            molecule=molecule,
        )

    # ------------------------------------------------------------------
    # Progressive overload
    # ------------------------------------------------------------------

    def check_for_progression(self, atom: AtomInstance) -> bool:
        """Raise the template target when a value atom beat it.

        Returns True if the template baseline was updated. A missing or
        deleted template is not an error.
        """
        if self._templates is None or atom.input_type is not AtomInputType.value:
            return False
        if atom.current_value is None or atom.target_value is None:
            return False
        if atom.current_value <= atom.target_value or atom.source_template_id is None:
            return False

        try:
            template = self._templates.get_atom_template(atom.source_template_id)
            if template is None:
                return False
            updated = self._templates.update_atom_target(template.id, atom.current_value)
        except Exception as e:
            logger.warning("Progressive overload skipped for atom %s: %s", atom.id, e)
            return False

        if updated:
            logger.info(
                "Progressive overload: template %s baseline raised to %s%s",
                template.id,
                atom.current_value,
                f" {template.unit}" if template.unit else "",
            )
        return updated
