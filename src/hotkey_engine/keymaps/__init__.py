"""Binding grammar, conflict analysis and the actions registry."""

from .conflicts import KeyConflict, conflicts_list, find_conflicts, has_conflicts
from .grammar import (
    canonical_id,
    format_binding,
    format_combination,
    format_key_seq,
    parse_combo,
    parse_hotkey_string,
    parse_key_seq,
    serialize_key_seq,
)
from .models import (
    ActionDefinition,
    ActionRef,
    DigitElem,
    DigitsElem,
    KeyCombination,
    KeyCombinationDisplay,
    KeyElem,
    Keymap,
    KeySeq,
    Modifiers,
)
from .registry import (
    ActionsRegistry,
    KeymapConflictError,
    MemoryOverrideStore,
    RegistryStats,
)

__all__ = [
    "ActionDefinition",
    "ActionRef",
    "DigitElem",
    "DigitsElem",
    "KeyCombination",
    "KeyCombinationDisplay",
    "KeyElem",
    "Keymap",
    "KeySeq",
    "Modifiers",
    "canonical_id",
    "format_binding",
    "format_combination",
    "format_key_seq",
    "parse_combo",
    "parse_hotkey_string",
    "parse_key_seq",
    "serialize_key_seq",
    "KeyConflict",
    "conflicts_list",
    "find_conflicts",
    "has_conflicts",
    "ActionsRegistry",
    "KeymapConflictError",
    "MemoryOverrideStore",
    "RegistryStats",
]
