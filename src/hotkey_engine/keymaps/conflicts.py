"""Static conflict analysis over a keymap."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Literal, Mapping

from .grammar import combo_matches_elem, is_digit_key, parse_key_seq
from .models import DigitElem, DigitsElem, KeyElem, KeySeq, KeymapValue, SeqElem, action_ids

PREFIX_OF = "prefix of: "
HAS_PREFIX = "has prefix: "
CONFLICTS_WITH = "conflicts with: "

_TAGS = (PREFIX_OF, HAS_PREFIX, CONFLICTS_WITH)

ConflictType = Literal["duplicate", "prefix", "overlap"]


@dataclass(frozen=True, slots=True)
class KeyConflict:
    """Conflict summary for one binding string."""

    key: str
    actions: tuple[str, ...]
    type: ConflictType
    related: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class _Entry:
    key: str
    pattern: KeySeq
    actions: tuple[str, ...]


def elems_overlap(a: SeqElem, b: SeqElem) -> bool:
    """Whether two pattern elements can accept the same keypress."""

    a_placeholder = isinstance(a, (DigitElem, DigitsElem))
    b_placeholder = isinstance(b, (DigitElem, DigitsElem))
    if a_placeholder and b_placeholder:
        return True
    if a_placeholder:
        return isinstance(b, KeyElem) and is_digit_key(b.key)
    if b_placeholder:
        return isinstance(a, KeyElem) and is_digit_key(a.key)
    return combo_matches_elem(b.combination, a) or combo_matches_elem(
        a.combination, b
    )


def is_pattern_prefix(a: KeySeq, b: KeySeq) -> bool:
    """``a`` is a strict element-wise prefix of ``b``."""

    if len(a) >= len(b):
        return False
    return all(elems_overlap(x, y) for x, y in zip(a, b))


def patterns_overlap(a: KeySeq, b: KeySeq) -> bool:
    if len(a) != len(b):
        return False
    return all(elems_overlap(x, y) for x, y in zip(a, b))


def _record(
    conflicts: Dict[str, List[str]], entry: _Entry, tag: str
) -> None:
    bucket = conflicts.setdefault(entry.key, [])
    if tag in bucket:
        return
    for action in entry.actions:
        if action not in bucket:
            bucket.append(action)
    bucket.append(tag)


def find_conflicts(keymap: Mapping[str, KeymapValue]) -> Dict[str, List[str]]:
    """Map each conflicting binding to its actions plus relationship tags.

    Duplicates list every action bound to the same string. Overlapping and
    prefix relationships are written against both bindings, e.g. ``g`` gets
    ``"prefix of: g t"`` and ``g t`` gets ``"has prefix: g"``.
    """

    entries = [
        _Entry(key=key, pattern=parse_key_seq(key), actions=action_ids(value))
        for key, value in keymap.items()
    ]
    conflicts: Dict[str, List[str]] = {}

    for entry in entries:
        if len(entry.actions) > 1:
            conflicts[entry.key] = list(dict.fromkeys(entry.actions))

    for index, a in enumerate(entries):
        for b in entries[index + 1 :]:
            if patterns_overlap(a.pattern, b.pattern):
                _record(conflicts, a, f"{CONFLICTS_WITH}{b.key}")
                _record(conflicts, b, f"{CONFLICTS_WITH}{a.key}")
            elif is_pattern_prefix(a.pattern, b.pattern):
                _record(conflicts, a, f"{PREFIX_OF}{b.key}")
                _record(conflicts, b, f"{HAS_PREFIX}{a.key}")
            elif is_pattern_prefix(b.pattern, a.pattern):
                _record(conflicts, b, f"{PREFIX_OF}{a.key}")
                _record(conflicts, a, f"{HAS_PREFIX}{b.key}")

    return conflicts


def has_conflicts(keymap: Mapping[str, KeymapValue]) -> bool:
    return bool(find_conflicts(keymap))


def conflicting_bindings(keymap: Mapping[str, KeymapValue]) -> frozenset[str]:
    return frozenset(find_conflicts(keymap))


def conflicts_list(keymap: Mapping[str, KeymapValue]) -> list[KeyConflict]:
    result: list[KeyConflict] = []
    for key, items in find_conflicts(keymap).items():
        actions = tuple(item for item in items if not item.startswith(_TAGS))
        tags = [item for item in items if item.startswith(_TAGS)]
        if any(tag.startswith((PREFIX_OF, HAS_PREFIX)) for tag in tags):
            kind: ConflictType = "prefix"
        elif tags:
            kind = "overlap"
        else:
            kind = "duplicate"
        related = tuple(tag.split(": ", 1)[1] for tag in tags)
        result.append(KeyConflict(key=key, actions=actions, type=kind, related=related))
    return result


__all__ = [
    "KeyConflict",
    "ConflictType",
    "PREFIX_OF",
    "HAS_PREFIX",
    "CONFLICTS_WITH",
    "elems_overlap",
    "is_pattern_prefix",
    "patterns_overlap",
    "find_conflicts",
    "has_conflicts",
    "conflicting_bindings",
    "conflicts_list",
]
