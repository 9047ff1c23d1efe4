"""Shared test builders and constants."""

from tests.fixtures.habits import (
    DEFAULT_SCHEDULED,
    binary_atom,
    build_molecule,
    build_template,
    counter_atom,
    media_atom,
    value_atom,
)

TEST_INTERNAL_KEY = "test-internal-key"

__all__ = [
    "TEST_INTERNAL_KEY",
    "DEFAULT_SCHEDULED",
    "binary_atom",
    "build_molecule",
    "build_template",
    "counter_atom",
    "media_atom",
    "value_atom",
]
