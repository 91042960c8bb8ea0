"""Per-candidate match progress and the single-key advance rule."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal, Optional, Union

from hotkey_engine.keymaps.grammar import combo_matches_elem, is_plain_digit
from hotkey_engine.keymaps.models import DigitElem, DigitsElem, KeyCombination, KeySeq


@dataclass(frozen=True, slots=True)
class KeyElemState:
    matched: bool = False


@dataclass(frozen=True, slots=True)
class DigitElemState:
    value: Optional[int] = None


@dataclass(frozen=True, slots=True)
class DigitsElemState:
    """``partial`` holds digits still being typed; ``value`` is final."""

    value: Optional[int] = None
    partial: Optional[str] = None

    @property
    def collecting(self) -> bool:
        return self.value is None and self.partial is not None


SeqElemState = Union[KeyElemState, DigitElemState, DigitsElemState]
SeqMatchState = tuple[SeqElemState, ...]

AdvanceStatus = Literal["matched", "partial", "failed"]


@dataclass(frozen=True, slots=True)
class AdvanceResult:
    status: AdvanceStatus
    state: SeqMatchState = ()
    captures: tuple[int, ...] = ()


FAILED = AdvanceResult(status="failed")


def init_match_state(pattern: KeySeq) -> SeqMatchState:
    states: list[SeqElemState] = []
    for elem in pattern:
        if isinstance(elem, DigitElem):
            states.append(DigitElemState())
        elif isinstance(elem, DigitsElem):
            states.append(DigitsElemState())
        else:
            states.append(KeyElemState())
    return tuple(states)


def _is_done(elem_state: SeqElemState) -> bool:
    if isinstance(elem_state, KeyElemState):
        return elem_state.matched
    return elem_state.value is not None


def is_complete(state: SeqMatchState) -> bool:
    return bool(state) and all(_is_done(elem) for elem in state)


def is_collecting_digits(state: SeqMatchState) -> bool:
    return any(isinstance(e, DigitsElemState) and e.collecting for e in state)


def finalize_digits(state: SeqMatchState) -> SeqMatchState:
    """Turn an in-progress digit run into its integer value."""

    return tuple(
        DigitsElemState(value=int(e.partial))
        if isinstance(e, DigitsElemState) and e.collecting and e.partial
        else e
        for e in state
    )


def extract_captures(state: SeqMatchState) -> tuple[int, ...]:
    return tuple(
        e.value
        for e in state
        if isinstance(e, (DigitElemState, DigitsElemState)) and e.value is not None
    )


def matched_positions(state: SeqMatchState) -> int:
    """Number of leading pattern positions already satisfied."""

    count = 0
    for elem_state in state:
        if not _is_done(elem_state):
            break
        count += 1
    return count


def advance_match_state(
    state: SeqMatchState, pattern: KeySeq, combo: KeyCombination
) -> AdvanceResult:
    """Feed one press to a candidate.

    A digit run stays on its own position while digits keep coming. The first
    other key finalizes the run and is then checked against the next element.
    """

    new_state = list(state)
    pos = 0
    for index, elem_state in enumerate(state):
        if isinstance(elem_state, DigitsElemState) and elem_state.collecting:
            if is_plain_digit(combo):
                new_state[index] = DigitsElemState(
                    partial=f"{elem_state.partial}{combo.key}"
                )
                return AdvanceResult(status="partial", state=tuple(new_state))
            new_state[index] = DigitsElemState(value=int(elem_state.partial or "0"))
            pos = index + 1
            break
        if not _is_done(elem_state):
            break
        pos = index + 1

    if pos >= len(pattern):
        return FAILED

    elem = pattern[pos]
    if isinstance(elem, DigitElem):
        if not is_plain_digit(combo):
            return FAILED
        new_state[pos] = DigitElemState(value=int(combo.key))
    elif isinstance(elem, DigitsElem):
        if not is_plain_digit(combo):
            return FAILED
        new_state[pos] = DigitsElemState(partial=combo.key)
    else:
        if not combo_matches_elem(combo, elem):
            return FAILED
        new_state[pos] = KeyElemState(matched=True)

    advanced = tuple(new_state)
    if is_complete(advanced):
        return AdvanceResult(
            status="matched", state=advanced, captures=extract_captures(advanced)
        )
    return AdvanceResult(status="partial", state=advanced)


def replay_pattern(
    pattern: KeySeq, keys: Iterable[KeyCombination]
) -> Optional[SeqMatchState]:
    """Derive a candidate's state from scratch; None once a key fails."""

    state = init_match_state(pattern)
    for combo in keys:
        result = advance_match_state(state, pattern, combo)
        if result.status == "failed":
            return None
        state = result.state
    return state


__all__ = [
    "KeyElemState",
    "DigitElemState",
    "DigitsElemState",
    "SeqElemState",
    "SeqMatchState",
    "AdvanceResult",
    "init_match_state",
    "is_complete",
    "is_collecting_digits",
    "finalize_digits",
    "extract_captures",
    "matched_positions",
    "advance_match_state",
    "replay_pattern",
]
