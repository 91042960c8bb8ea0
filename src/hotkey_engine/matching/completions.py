"""Enumerate which bindings a partially typed sequence can still reach."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from hotkey_engine.keymaps.grammar import format_key_seq, parse_key_seq
from hotkey_engine.keymaps.models import (
    KeyCombination,
    KeyCombinationDisplay,
    KeymapValue,
    KeySeq,
    action_ids,
)
from hotkey_engine.runtime.config import Platform

from .state import (
    extract_captures,
    finalize_digits,
    is_complete,
    matched_positions,
    replay_pattern,
)


@dataclass(frozen=True, slots=True)
class SequenceCompletion:
    """One binding still consistent with the pending keys."""

    full_sequence: str
    display: KeyCombinationDisplay
    actions: tuple[str, ...]
    is_complete: bool
    next_keys: str = ""
    next_key_seq: KeySeq = ()
    captures: tuple[int, ...] = ()


def get_sequence_completions(
    pending: Sequence[KeyCombination],
    keymap: Mapping[str, KeymapValue],
    *,
    platform: Optional[Platform] = None,
) -> list[SequenceCompletion]:
    """List complete and still-open bindings for ``pending``.

    A ``\\d+`` position may absorb several presses, so progress is measured
    in matched pattern positions rather than in keys. Complete entries sort
    first, then everything by binding string.
    """

    if not pending:
        return []

    completions: list[SequenceCompletion] = []
    for binding, value in keymap.items():
        pattern = parse_key_seq(binding)
        state = replay_pattern(pattern, pending)
        if state is None:
            continue
        state = finalize_digits(state)
        display = format_key_seq(pattern, platform)
        actions = action_ids(value)

        if is_complete(state):
            completions.append(
                SequenceCompletion(
                    full_sequence=binding,
                    display=display,
                    actions=actions,
                    is_complete=True,
                    captures=extract_captures(state),
                )
            )
            continue

        remaining = pattern[matched_positions(state) :]
        completions.append(
            SequenceCompletion(
                full_sequence=binding,
                display=display,
                actions=actions,
                is_complete=False,
                next_keys=format_key_seq(remaining, platform).display,
                next_key_seq=remaining,
                captures=extract_captures(state),
            )
        )

    completions.sort(key=lambda c: (not c.is_complete, c.display.id, c.full_sequence))
    return completions


__all__ = ["SequenceCompletion", "get_sequence_completions"]
