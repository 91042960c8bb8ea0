"""Rank actions (or any labelled records) against a search query."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Protocol, Sequence

from hotkey_engine.keymaps.models import ActionDefinition, KeymapValue, action_ids

from .fuzzy import NO_MATCH, FuzzyMatchResult, Range, fuzzy_match

LABEL_WEIGHT = 3.0
DESCRIPTION_WEIGHT = 1.5
GROUP_WEIGHT = 1.0
ID_WEIGHT = 0.5
KEYWORD_WEIGHT = 2.0


class SearchRecord(Protocol):
    id: str
    label: str
    description: Optional[str]
    group: Optional[str]
    keywords: Sequence[str]


@dataclass(frozen=True, slots=True)
class ActionSearchResult:
    """A ranked hit; ``matches`` holds highlight ranges per matched field."""

    id: str
    action: ActionDefinition
    bindings: tuple[str, ...]
    score: float
    label_matches: tuple[Range, ...] = ()
    matches: Mapping[str, tuple[Range, ...]] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RankedRecord:
    record: object
    score: float
    matches: Mapping[str, tuple[Range, ...]] = field(default_factory=dict)


def action_bindings(keymap: Mapping[str, KeymapValue]) -> Dict[str, tuple[str, ...]]:
    """Invert a keymap into action id -> binding strings, in keymap order."""

    inverted: Dict[str, list[str]] = {}
    for binding, value in keymap.items():
        for action_id in action_ids(value):
            inverted.setdefault(action_id, []).append(binding)
    return {action_id: tuple(keys) for action_id, keys in inverted.items()}


def _optional_match(query: str, text: Optional[str]) -> FuzzyMatchResult:
    return fuzzy_match(query, text) if text else NO_MATCH


def _score_fields(
    query: str,
    record_id: str,
    label: str,
    description: Optional[str],
    group: Optional[str],
    keywords: Iterable[str],
) -> Optional[tuple[float, Dict[str, tuple[Range, ...]]]]:
    fields = {
        "label": (fuzzy_match(query, label), LABEL_WEIGHT),
        "description": (_optional_match(query, description), DESCRIPTION_WEIGHT),
        "group": (_optional_match(query, group), GROUP_WEIGHT),
        "id": (fuzzy_match(query, record_id), ID_WEIGHT),
    }
    keyword_scores = [
        result.score
        for result in (fuzzy_match(query, keyword) for keyword in keywords)
        if result.matched
    ]
    keyword_score = max(keyword_scores, default=0.0)

    matched = [name for name, (result, _weight) in fields.items() if result.matched]
    if not matched and not keyword_scores:
        return None

    score = sum(result.score * weight for result, weight in fields.values() if result.matched)
    score += keyword_score * KEYWORD_WEIGHT
    highlights = {name: fields[name][0].ranges for name in matched}
    return score, highlights


def search_actions(
    query: str,
    actions: Mapping[str, ActionDefinition],
    keymap: Optional[Mapping[str, KeymapValue]] = None,
) -> list[ActionSearchResult]:
    """Rank enabled actions by weighted fuzzy score across their fields.

    An empty query keeps every enabled action at score 0 in input order.
    """

    bindings = action_bindings(keymap) if keymap else {}
    results: list[ActionSearchResult] = []
    for action_id, definition in actions.items():
        if not definition.enabled:
            continue
        if not query:
            results.append(
                ActionSearchResult(
                    id=action_id,
                    action=definition,
                    bindings=bindings.get(action_id, ()),
                    score=0.0,
                )
            )
            continue

        scored = _score_fields(
            query,
            action_id,
            definition.label,
            definition.description,
            definition.group,
            definition.keywords,
        )
        if scored is None:
            continue
        score, highlights = scored
        results.append(
            ActionSearchResult(
                id=action_id,
                action=definition,
                bindings=bindings.get(action_id, ()),
                score=score,
                label_matches=highlights.get("label", ()),
                matches=highlights,
            )
        )

    results.sort(key=lambda result: -result.score)
    return results


def rank_records(query: str, records: Iterable[SearchRecord]) -> list[RankedRecord]:
    """Same ranking as :func:`search_actions` for omnibar-style entries."""

    ranked: list[RankedRecord] = []
    for record in records:
        if not query:
            ranked.append(RankedRecord(record=record, score=0.0))
            continue
        scored = _score_fields(
            query,
            record.id,
            record.label,
            record.description,
            record.group,
            record.keywords,
        )
        if scored is not None:
            ranked.append(RankedRecord(record=record, score=scored[0], matches=scored[1]))
    ranked.sort(key=lambda item: -item.score)
    return ranked


__all__ = [
    "ActionSearchResult",
    "RankedRecord",
    "SearchRecord",
    "action_bindings",
    "rank_records",
    "search_actions",
]
