from __future__ import annotations

from typing import Any, List, Mapping, Optional, Tuple

import pytest

from hotkey_engine.keymaps.grammar import parse_hotkey_string
from hotkey_engine.keymaps.models import KeyCombination
from hotkey_engine.matching import (
    MatcherHooks,
    MatcherOptions,
    MatchResult,
    SequenceMatcher,
)
from hotkey_engine.runtime import DeadlineScheduler, EngineSettings


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class Harness:
    def __init__(
        self,
        keymap: Mapping[str, Any],
        *,
        timeout_ms: Optional[int] = 1000,
        on_timeout: str = "submit",
        handlers: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.clock = FakeClock()
        self.scheduler = DeadlineScheduler(clock=self.clock)
        self.calls: List[Tuple[str, tuple]] = []
        self.starts: List[str] = []
        self.progress: List[str] = []
        self.cancels = 0
        self.timeouts: List[MatchResult] = []
        hooks = MatcherHooks(
            sequence_start=lambda keys: self.starts.append(self._ids(keys)),
            sequence_progress=lambda keys: self.progress.append(self._ids(keys)),
            sequence_cancel=self._on_cancel,
            timeout=self.timeouts.append,
        )
        self.matcher = SequenceMatcher(
            keymap,
            handlers if handlers is not None else self._lookup,
            options=MatcherOptions(
                sequence_timeout_ms=timeout_ms,
                on_timeout=on_timeout,  # type: ignore[arg-type]
            ),
            scheduler=self.scheduler,
            hooks=hooks,
            clock=self.clock,
        )

    @staticmethod
    def _ids(keys: tuple[KeyCombination, ...]) -> str:
        return " ".join(combo.id for combo in keys)

    def _on_cancel(self) -> None:
        self.cancels += 1

    def _lookup(self, action_id: str):
        return lambda *args: self.calls.append((action_id, args))

    def press(self, text: str) -> MatchResult:
        result = MatchResult(consumed=False, status="ignored")
        for combo in parse_hotkey_string(text):
            result = self.matcher.handle_key(combo)
        return result


def test_single_key_executes_immediately() -> None:
    harness = Harness({"a": "act"})

    result = harness.press("a")

    assert result.status == "executed"
    assert result.consumed is True
    assert result.action_id == "act"
    assert harness.calls == [("act", ())]
    assert not harness.matcher.is_awaiting_sequence


def test_sequence_executes_on_last_key() -> None:
    harness = Harness({"g t": "next_tab"})

    first = harness.press("g")
    assert first.status == "pending"
    assert first.consumed is True
    assert first.timeout_ms == 1000
    assert harness.starts == ["g"]

    second = harness.press("t")
    assert second.status == "executed"
    assert second.binding == "g t"
    assert harness.calls == [("next_tab", ())]


def test_prefix_binding_waits_then_submits_on_timeout() -> None:
    harness = Harness({"g": "go", "g t": "next_tab"})

    result = harness.press("g")
    assert result.status == "pending"
    assert harness.matcher.ready_bindings == ("g",)

    harness.clock.now = 0.5
    assert harness.scheduler.process_timeouts() == 0
    harness.clock.now = 1.0
    assert harness.scheduler.process_timeouts() == 1

    assert harness.calls == [("go", ())]
    assert [outcome.status for outcome in harness.timeouts] == ["executed"]
    assert not harness.matcher.is_awaiting_sequence


def test_prefix_binding_continues_to_longer_sequence() -> None:
    harness = Harness({"g": "go", "g t": "next_tab"})

    harness.press("g")
    result = harness.press("t")

    assert result.status == "executed"
    assert harness.calls == [("next_tab", ())]
    assert harness.scheduler.pending_count == 0


def test_timeout_cancel_policy_discards_sequence() -> None:
    harness = Harness({"g": "go", "g t": "next_tab"}, on_timeout="cancel")

    harness.press("g")
    harness.scheduler.force()

    assert harness.calls == []
    assert harness.cancels == 1
    assert harness.timeouts[0].status == "cancelled"


def test_digit_run_captures_value() -> None:
    harness = Harness({"\\d+ j": "down_n"})

    assert harness.press("5").status == "pending"
    assert harness.press("2").status == "pending"
    result = harness.press("j")

    assert result.status == "executed"
    assert result.captures == (52,)
    assert harness.calls == [("down_n", ([52],))]


def test_single_digit_placeholder() -> None:
    harness = Harness({"g \\d": "tab_n"})

    result = harness.press("g 3")

    assert result.status == "executed"
    assert harness.calls == [("tab_n", ([3],))]


def test_digit_placeholder_rejects_modified_digits() -> None:
    harness = Harness({"\\d": "digit"})

    result = harness.matcher.handle_key(KeyCombination.press("4", shift=True))

    assert result.status == "ignored"
    assert harness.calls == []


def test_commit_key_finalizes_trailing_digits() -> None:
    harness = Harness({"g \\d+": "goto_line"})

    harness.press("g 1 2")
    assert harness.matcher.is_awaiting_sequence
    result = harness.press("enter")

    assert result.status == "executed"
    assert result.captures == (12,)
    assert harness.calls == [("goto_line", ([12],))]


def test_commit_prefers_first_candidate_in_canonical_order() -> None:
    harness = Harness({"g \\d+": "many", "g \\d": "one"})

    assert harness.press("g 5").status == "pending"
    result = harness.matcher.commit()

    assert result.status == "executed"
    assert harness.calls == [("one", ([5],))]


def test_commit_without_complete_candidate_cancels() -> None:
    harness = Harness({"g t": "next_tab"})

    harness.press("g")
    result = harness.press("enter")

    assert result.status == "cancelled"
    assert result.consumed is True
    assert harness.calls == []
    assert harness.cancels == 1


def test_escape_cancels_pending_sequence() -> None:
    harness = Harness({"g t": "next_tab"})

    harness.press("g")
    result = harness.press("escape")

    assert result.status == "cancelled"
    assert result.consumed is True
    assert result.pending == (KeyCombination("g"),)
    assert not harness.matcher.is_awaiting_sequence
    assert harness.scheduler.pending_count == 0


def test_escape_while_idle_is_not_consumed() -> None:
    harness = Harness({"g t": "next_tab"})

    result = harness.press("escape")

    assert result.status == "ignored"
    assert result.consumed is False


def test_escape_while_idle_can_be_bound() -> None:
    harness = Harness({"escape": "close"})

    assert harness.press("escape").status == "executed"
    assert harness.calls == [("close", ())]


def test_unbound_key_is_ignored() -> None:
    harness = Harness({"a": "act"})

    result = harness.press("z")

    assert result == MatchResult(consumed=False, status="ignored")


def test_stale_sequence_falls_back_to_single_key_binding() -> None:
    harness = Harness({"g t": "next_tab", "x": "close"})

    harness.press("g")
    result = harness.press("x")

    assert result.status == "executed"
    assert harness.calls == [("close", ())]
    assert harness.cancels == 1


def test_stale_sequence_with_unbound_key_reports_cancel() -> None:
    harness = Harness({"g t": "next_tab"})

    harness.press("g")
    result = harness.press("z")

    assert result.status == "cancelled"
    assert result.consumed is False
    assert not harness.matcher.is_awaiting_sequence


def test_stale_sequence_key_can_start_new_sequence() -> None:
    harness = Harness({"g t": "next_tab", "d d": "delete_line"})

    harness.press("g")
    result = harness.press("d")

    assert result.status == "pending"
    assert harness.matcher.pending_keys == (KeyCombination("d"),)
    assert harness.press("d").status == "executed"
    assert harness.calls == [("delete_line", ())]


def test_backspace_removes_last_key() -> None:
    harness = Harness({"a b c": "abc"})

    harness.press("a b")
    result = harness.press("backspace")

    assert result.status == "pending"
    assert harness.matcher.pending_keys == (KeyCombination("a"),)
    assert harness.progress[-1] == "a"
    assert harness.press("b c").status == "executed"
    assert harness.calls == [("abc", ())]


def test_backspace_on_single_key_cancels() -> None:
    harness = Harness({"a b": "ab"})

    harness.press("a")
    result = harness.press("backspace")

    assert result.status == "cancelled"
    assert result.consumed is True
    assert not harness.matcher.is_awaiting_sequence


def test_backspace_edits_digit_run() -> None:
    harness = Harness({"\\d+ j": "down_n"})

    harness.press("1 2")
    harness.press("backspace")
    result = harness.press("j")

    assert result.captures == (1,)
    assert harness.calls == [("down_n", ([1],))]


def test_backspace_bound_in_sequence_is_matched_as_input() -> None:
    harness = Harness({"g backspace": "go_back", "g t": "next_tab"})

    harness.press("g")
    result = harness.press("backspace")

    assert result.status == "executed"
    assert harness.calls == [("go_back", ())]


def test_modifier_only_keys_are_ignored() -> None:
    harness = Harness({"g t": "next_tab"})

    harness.press("g")
    result = harness.matcher.handle_key(KeyCombination("shift"))

    assert result.status == "ignored"
    assert result.consumed is False
    assert harness.matcher.pending_keys == (KeyCombination("g"),)
    assert harness.scheduler.pending_count == 1


def test_modifiers_must_match_exactly() -> None:
    harness = Harness({"ctrl+k": "palette"})

    assert harness.press("k").status == "ignored"
    assert harness.matcher.handle_key(KeyCombination.press("k", ctrl=True, alt=True)).status == "ignored"
    assert harness.matcher.handle_key(KeyCombination.press("k", ctrl=True)).status == "executed"
    assert harness.calls == [("palette", ())]


def test_shifted_symbol_matches_without_shift_in_binding() -> None:
    harness = Harness({"?": "help"})

    result = harness.matcher.handle_key(KeyCombination.press("?", shift=True))

    assert result.status == "executed"


def test_each_key_restarts_the_timer() -> None:
    harness = Harness({"a b c": "abc"})

    harness.press("a")
    harness.clock.now = 0.8
    harness.press("b")
    assert harness.matcher.timeout_started_at == 0.8

    harness.clock.now = 1.2
    assert harness.scheduler.process_timeouts() == 0
    assert harness.matcher.is_awaiting_sequence

    harness.clock.now = 2.0
    assert harness.scheduler.process_timeouts() == 1
    assert not harness.matcher.is_awaiting_sequence
    assert harness.timeouts[0].status == "cancelled"
    assert harness.scheduler.pending_count == 0


def test_disabled_timeout_waits_for_commit() -> None:
    harness = Harness({"g": "go", "g t": "next_tab"}, timeout_ms=None)

    result = harness.press("g")

    assert result.timeout_ms is None
    assert harness.scheduler.pending_count == 0
    assert harness.matcher.timeout_started_at is None
    assert harness.matcher.commit().status == "executed"
    assert harness.calls == [("go", ())]


def test_missing_handler_reports_unhandled() -> None:
    harness = Harness({"a": "missing"}, handlers={})

    result = harness.press("a")

    assert result.status == "unhandled"
    assert result.consumed is False
    assert not harness.matcher.is_awaiting_sequence


def test_multi_action_binding_runs_first_available_handler() -> None:
    calls: List[str] = []
    harness = Harness(
        {"a": ["missing", "present"]},
        handlers={"present": lambda: calls.append("present")},
    )

    result = harness.press("a")

    assert result.action_id == "present"
    assert calls == ["present"]


def test_handler_errors_propagate_after_state_reset() -> None:
    def boom() -> None:
        raise RuntimeError("handler failed")

    harness = Harness({"g t": "explode"}, handlers={"explode": boom})

    harness.press("g")
    with pytest.raises(RuntimeError):
        harness.press("t")

    assert not harness.matcher.is_awaiting_sequence
    assert harness.scheduler.pending_count == 0


def test_close_discards_pending_keys_silently() -> None:
    harness = Harness({"g t": "next_tab", "g": "go"})

    harness.press("g")
    harness.matcher.close()
    harness.clock.now = 5.0

    assert not harness.matcher.is_awaiting_sequence
    assert harness.scheduler.process_timeouts() == 0
    assert harness.cancels == 0
    assert harness.calls == []
    assert harness.timeouts == []


def test_set_keymap_drops_pending_sequence() -> None:
    harness = Harness({"g t": "next_tab"})

    harness.press("g")
    harness.matcher.set_keymap({"x": "close"})

    assert not harness.matcher.is_awaiting_sequence
    assert harness.scheduler.pending_count == 0
    assert harness.press("x").status == "executed"


def test_completions_follow_pending_keys() -> None:
    harness = Harness({"g t": "next_tab", "g g": "top", "x": "close"})

    harness.press("g")
    completions = harness.matcher.completions(platform="linux")

    assert [c.full_sequence for c in completions] == ["g g", "g t"]
    assert [c.next_keys for c in completions] == ["G", "T"]
    assert harness.matcher.live_candidates == ("g g", "g t")


def test_options_from_settings() -> None:
    settings = EngineSettings(sequence_timeout_ms=250, on_timeout="cancel")

    options = MatcherOptions.from_settings(settings, commit_key="tab")

    assert options.sequence_timeout_ms == 250
    assert options.on_timeout == "cancel"
    assert options.commit_key == "tab"
    assert options.cancel_key == "escape"


def test_options_reject_negative_timeout() -> None:
    with pytest.raises(ValueError):
        MatcherOptions(sequence_timeout_ms=-1)


def test_two_sequences_sharing_a_prefix() -> None:
    harness = Harness({"g t": "nav:table", "g c": "nav:canvas"})

    assert harness.press("g").status == "pending"
    assert harness.matcher.live_candidates == ("g c", "g t")
    assert harness.calls == []

    assert harness.press("t").status == "executed"
    assert harness.calls == [("nav:table", ())]
    assert harness.matcher.live_candidates == ()
    assert not harness.matcher.is_awaiting_sequence


def test_digit_run_shadows_single_key_binding() -> None:
    harness = Harness({"\\d+ j": "downN", "j": "down"})

    harness.press("5 2")
    assert harness.matcher.pending_keys == parse_hotkey_string("5 2")
    harness.press("j")

    assert harness.calls == [("downN", ([52],))]


def test_digit_run_is_greedy() -> None:
    harness = Harness({"\\d+ j": "downN"})

    result = harness.press("1 2 3 j")

    assert result.captures == (123,)


def test_shift_selects_the_shifted_binding_only() -> None:
    harness = Harness({"n": "sortAsc", "shift+n": "sortDesc"})

    harness.matcher.handle_key(KeyCombination.press("n", shift=True))

    assert harness.calls == [("sortDesc", ())]
