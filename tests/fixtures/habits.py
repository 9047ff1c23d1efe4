"""
Builders for molecules, atoms and templates used across the test suite.

Each builder returns fresh objects; nothing is shared between tests.
"""

from datetime import date, datetime, time
from typing import Optional

from application.models import (
    AtomInputType,
    AtomInstance,
    AtomTemplate,
    MoleculeInstance,
    MoleculeTemplate,
    RecurrenceFrequency,
    RecurrenceRule,
)

DEFAULT_SCHEDULED = datetime(2024, 1, 1, 9, 0)


def build_molecule(
    *atoms: AtomInstance,
    scheduled_date: datetime = DEFAULT_SCHEDULED,
    template_id=None,
) -> MoleculeInstance:
    """Molecule owning ``atoms`` in the order given."""
    molecule = MoleculeInstance(title="Morning", scheduled_date=scheduled_date, template_id=template_id)
    for order, atom in enumerate(atoms):
        atom.parent_molecule_id = molecule.id
        atom.order = order
        molecule.atoms.append(atom)
    return molecule


def build_template(
    frequency: RecurrenceFrequency = RecurrenceFrequency.weekly,
    anchor: date = date(2024, 1, 1),
    base_time: time = time(9, 0),
    **rule_kwargs,
) -> MoleculeTemplate:
    """Two-atom template: a binary atom (order 0) and a counter (order 1)."""
    return MoleculeTemplate(
        title="Morning Routine",
        recurrence=RecurrenceRule(frequency=frequency, anchor=anchor, **rule_kwargs),
        base_time=base_time,
        atom_templates=[
            AtomTemplate(title="Push-ups", input_type=AtomInputType.counter, target_value=20, order=1),
            AtomTemplate(title="Meditate", input_type=AtomInputType.binary, order=0),
        ],
    )


def binary_atom(checked: bool = False) -> AtomInstance:
    return AtomInstance(title="Meditate", input_type=AtomInputType.binary, checked=checked)


def counter_atom(current: float = 0.0, target: Optional[float] = 5) -> AtomInstance:
    return AtomInstance(
        title="Glasses of water",
        input_type=AtomInputType.counter,
        current_value=current,
        target_value=target,
    )


def value_atom(
    current: Optional[float] = None,
    target: Optional[float] = None,
    unit: Optional[str] = "kg",
) -> AtomInstance:
    return AtomInstance(
        title="Bench press",
        input_type=AtomInputType.value,
        current_value=current,
        target_value=target,
        unit=unit,
    )


def media_atom(kind: AtomInputType = AtomInputType.photo) -> AtomInstance:
    return AtomInstance(title="Progress photo", input_type=kind)
