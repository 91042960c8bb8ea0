"""Incremental matcher turning a keypress stream into action executions."""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import (
    Callable,
    Dict,
    Iterator,
    Literal,
    Mapping,
    Optional,
    Union,
)

from hotkey_engine.keymaps.grammar import is_modifier_key, parse_key_seq, serialize_key_seq
from hotkey_engine.keymaps.models import KeyCombination, KeymapValue, KeySeq, action_ids
from hotkey_engine.runtime.config import (
    DEFAULT_SEQUENCE_TIMEOUT_MS,
    EngineSettings,
    Platform,
    TimeoutPolicy,
    load_settings,
)
from hotkey_engine.runtime.telemetry import record_event, span
from hotkey_engine.runtime.timers import DeadlineScheduler, TimerHandle, TimerScheduler

from .completions import SequenceCompletion, get_sequence_completions
from .state import (
    SeqMatchState,
    advance_match_state,
    extract_captures,
    finalize_digits,
    init_match_state,
    is_collecting_digits,
    is_complete,
)

MatchStatus = Literal["executed", "pending", "cancelled", "ignored", "unhandled"]
Handler = Callable[..., object]
HandlerLookup = Callable[[str], Optional[Handler]]


def _noop(*_args, **_kwargs) -> None:  # pragma: no cover - default hook
    return None


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Outcome of feeding one key (or a commit/cancel/timeout) to a matcher."""

    consumed: bool
    status: MatchStatus
    binding: Optional[str] = None
    action_id: Optional[str] = None
    captures: tuple[int, ...] = ()
    pending: tuple[KeyCombination, ...] = ()
    timeout_ms: Optional[int] = None


@dataclass(slots=True)
class MatcherHooks:
    """Callbacks a host uses to mirror matcher state (e.g. a sequence modal)."""

    sequence_start: Callable[[tuple[KeyCombination, ...]], None] = _noop
    sequence_progress: Callable[[tuple[KeyCombination, ...]], None] = _noop
    sequence_cancel: Callable[[], None] = _noop
    executed: Callable[[str, tuple[int, ...]], None] = _noop
    timeout: Callable[[MatchResult], None] = _noop


@dataclass(frozen=True, slots=True)
class MatcherOptions:
    sequence_timeout_ms: Optional[int] = DEFAULT_SEQUENCE_TIMEOUT_MS
    on_timeout: TimeoutPolicy = "submit"
    commit_key: str = "enter"
    cancel_key: str = "escape"
    undo_key: str = "backspace"

    def __post_init__(self) -> None:
        if self.sequence_timeout_ms is not None and self.sequence_timeout_ms < 0:
            raise ValueError("sequence_timeout_ms cannot be negative")
        if self.on_timeout not in ("submit", "cancel"):
            raise ValueError(f"Unknown timeout policy '{self.on_timeout}'")

    @classmethod
    def from_settings(
        cls, settings: Optional[EngineSettings] = None, **overrides: object
    ) -> "MatcherOptions":
        settings = settings or load_settings()
        options = cls(
            sequence_timeout_ms=settings.sequence_timeout_ms,
            on_timeout=settings.on_timeout,
        )
        return replace(options, **overrides) if overrides else options


@dataclass(frozen=True, slots=True)
class KeymapEntry:
    binding: str
    pattern: KeySeq
    actions: tuple[str, ...]
    index: int

    @property
    def canonical(self) -> str:
        return serialize_key_seq(self.pattern)


class SequenceMatcher:
    """Matches discrete keypresses against every binding of a keymap at once.

    Idle until a key starts some pattern, then Collecting until a single
    candidate completes (executed), the commit key or timeout resolves the
    buffer, or the attempt is cancelled. At most one timer is outstanding and
    every transition cancels it before touching state.

    Candidates are ordered by canonical binding id, then by declaration
    order; the commit key runs the first complete candidate in that order.
    """

    def __init__(
        self,
        keymap: Mapping[str, KeymapValue],
        handlers: Union[Mapping[str, Handler], HandlerLookup],
        *,
        options: Optional[MatcherOptions] = None,
        scheduler: Optional[TimerScheduler] = None,
        hooks: Optional[MatcherHooks] = None,
        clock: Optional[Callable[[], float]] = None,
        logger_name: str | None = None,
    ) -> None:
        self.options = options or MatcherOptions.from_settings()
        self.hooks = hooks or MatcherHooks()
        self._lookup: HandlerLookup = (
            handlers.get if isinstance(handlers, Mapping) else handlers
        )
        self._scheduler: TimerScheduler = scheduler or DeadlineScheduler()
        self._clock = clock or time.monotonic
        self._logger_name = logger_name
        self._keymap: Dict[str, KeymapValue] = {}
        self._entries: tuple[KeymapEntry, ...] = ()
        self._by_binding: Dict[str, KeymapEntry] = {}
        self._buffer: list[KeyCombination] = []
        self._states: Dict[str, SeqMatchState] = {}
        self._timer: Optional[TimerHandle] = None
        self._timer_generation = 0
        self._timeout_started_at: Optional[float] = None
        self.set_keymap(keymap)

    @property
    def pending_keys(self) -> tuple[KeyCombination, ...]:
        return tuple(self._buffer)

    @property
    def is_awaiting_sequence(self) -> bool:
        return bool(self._buffer)

    @property
    def timeout_started_at(self) -> Optional[float]:
        return self._timeout_started_at

    @property
    def live_candidates(self) -> tuple[str, ...]:
        return tuple(self._states)

    @property
    def ready_bindings(self) -> tuple[str, ...]:
        """Candidates the commit key would accept right now, in order."""

        return tuple(
            binding
            for binding, state in self._states.items()
            if is_complete(finalize_digits(state))
        )

    def set_keymap(self, keymap: Mapping[str, KeymapValue]) -> None:
        """Swap the binding table; any in-progress attempt is dropped."""

        self._clear()
        self._keymap = dict(keymap)
        entries = [
            KeymapEntry(
                binding=binding,
                pattern=parse_key_seq(binding),
                actions=action_ids(value),
                index=index,
            )
            for index, (binding, value) in enumerate(self._keymap.items())
        ]
        entries.sort(key=lambda entry: (entry.canonical, entry.index))
        self._entries = tuple(entries)
        self._by_binding = {entry.binding: entry for entry in entries}

    def completions(self, *, platform: Optional[Platform] = None) -> list[SequenceCompletion]:
        """Bindings still reachable from the pending keys, for a sequence modal."""

        return get_sequence_completions(self._buffer, self._keymap, platform=platform)

    def handle_key(self, combo: KeyCombination) -> MatchResult:
        if is_modifier_key(combo.key):
            return MatchResult(consumed=False, status="ignored")

        with span(
            "matcher::handle_key",
            logger_name=self._logger_name,
            component="matching",
            metadata={"key": combo.id, "pending": len(self._buffer)},
        ) as handle:
            self._cancel_timer()
            options = self.options
            if combo.key == options.commit_key and self._buffer:
                result = self._commit()
            elif combo.key == options.cancel_key and self._buffer:
                result = self._cancel_sequence(consumed=True)
            elif (
                combo.key == options.undo_key
                and self._buffer
                and not self._extends_live_candidate(combo)
            ):
                result = self._undo()
            else:
                result = self._advance(combo)
            handle.add_metadata("status", result.status)
            return result

    def commit(self) -> MatchResult:
        """Resolve the buffer now, as the commit key would."""

        self._cancel_timer()
        if not self._buffer:
            return MatchResult(consumed=False, status="ignored")
        return self._commit()

    def cancel(self) -> MatchResult:
        self._cancel_timer()
        if not self._buffer:
            return MatchResult(consumed=False, status="ignored")
        return self._cancel_sequence(consumed=True)

    def close(self) -> None:
        """Drop pending keys and the timer without running any hook."""

        self._clear()

    def _iter_live(self) -> Iterator[tuple[KeymapEntry, SeqMatchState]]:
        if not self._buffer:
            for entry in self._entries:
                yield entry, init_match_state(entry.pattern)
            return
        for binding, state in self._states.items():
            yield self._by_binding[binding], state

    def _step(
        self,
        live: Iterator[tuple[KeymapEntry, SeqMatchState]],
        combo: KeyCombination,
    ) -> tuple[Dict[str, SeqMatchState], list[tuple[KeymapEntry, tuple[int, ...]]], bool]:
        states: Dict[str, SeqMatchState] = {}
        completed: list[tuple[KeymapEntry, tuple[int, ...]]] = []
        has_partial = False
        for entry, state in live:
            result = advance_match_state(state, entry.pattern, combo)
            if result.status == "failed":
                continue
            states[entry.binding] = result.state
            if result.status == "matched":
                completed.append((entry, result.captures))
            else:
                has_partial = True
        return states, completed, has_partial

    def _advance(self, combo: KeyCombination) -> MatchResult:
        was_collecting = bool(self._buffer)
        states, completed, has_partial = self._step(self._iter_live(), combo)

        if len(completed) == 1 and not has_partial:
            entry, captures = completed[0]
            pending = tuple(self._buffer) + (combo,)
            self._clear()
            return self._execute(entry, captures, pending)

        if completed or has_partial:
            self._buffer.append(combo)
            self._states = states
            keys = tuple(self._buffer)
            if was_collecting:
                self.hooks.sequence_progress(keys)
            else:
                self.hooks.sequence_start(keys)
            timeout_ms = self._arm_timer()
            return MatchResult(
                consumed=True, status="pending", pending=keys, timeout_ms=timeout_ms
            )

        if not was_collecting:
            return MatchResult(consumed=False, status="ignored")

        stale = self._cancel_sequence(consumed=False)
        fresh = self._advance(combo)
        if fresh.consumed:
            return fresh
        return stale

    def _extends_live_candidate(self, combo: KeyCombination) -> bool:
        for binding, state in self._states.items():
            # a digit run being typed is edited by backspace, never extended
            if is_collecting_digits(state):
                continue
            entry = self._by_binding[binding]
            if advance_match_state(state, entry.pattern, combo).status != "failed":
                return True
        return False

    def _undo(self) -> MatchResult:
        self._buffer.pop()
        if not self._buffer:
            return self._cancel_sequence(consumed=True)

        keys = tuple(self._buffer)
        states: Dict[str, SeqMatchState] = {}
        self._states = {}
        self._buffer = []
        for combo in keys:
            states, _completed, _partial = self._step(self._iter_live(), combo)
            self._states = states
            self._buffer.append(combo)
            if not states:
                break

        if not self._states:
            return self._cancel_sequence(consumed=True)
        self.hooks.sequence_progress(keys)
        timeout_ms = self._arm_timer()
        return MatchResult(
            consumed=True, status="pending", pending=keys, timeout_ms=timeout_ms
        )

    def _commit(self) -> MatchResult:
        chosen: Optional[tuple[KeymapEntry, tuple[int, ...]]] = None
        for binding, state in self._states.items():
            final = finalize_digits(state)
            if is_complete(final):
                chosen = (self._by_binding[binding], extract_captures(final))
                break

        if chosen is None:
            return self._cancel_sequence(consumed=True)
        pending = tuple(self._buffer)
        self._clear()
        return self._execute(chosen[0], chosen[1], pending)

    def _execute(
        self,
        entry: KeymapEntry,
        captures: tuple[int, ...],
        pending: tuple[KeyCombination, ...],
    ) -> MatchResult:
        for action_id in entry.actions:
            handler = self._lookup(action_id)
            if handler is None:
                continue
            if captures:
                handler(list(captures))
            else:
                handler()
            record_event(
                "matcher.execute",
                level="debug",
                data={
                    "binding": entry.binding,
                    "action_id": action_id,
                    "captures": list(captures),
                },
                logger_name=self._logger_name,
            )
            self.hooks.executed(action_id, captures)
            return MatchResult(
                consumed=True,
                status="executed",
                binding=entry.binding,
                action_id=action_id,
                captures=captures,
                pending=pending,
            )
        record_event(
            "matcher.unhandled",
            level="warning",
            data={"binding": entry.binding, "actions": list(entry.actions)},
            logger_name=self._logger_name,
        )
        return MatchResult(
            consumed=False, status="unhandled", binding=entry.binding, pending=pending
        )

    def _cancel_sequence(self, *, consumed: bool) -> MatchResult:
        pending = tuple(self._buffer)
        self._clear()
        self.hooks.sequence_cancel()
        return MatchResult(consumed=consumed, status="cancelled", pending=pending)

    def _clear(self) -> None:
        self._cancel_timer()
        self._buffer = []
        self._states = {}

    def _arm_timer(self) -> Optional[int]:
        timeout_ms = self.options.sequence_timeout_ms
        if timeout_ms is None:
            return None
        self._timer_generation += 1
        generation = self._timer_generation
        self._timer = self._scheduler.schedule(
            timeout_ms, lambda: self._on_timer(generation)
        )
        self._timeout_started_at = self._clock()
        return timeout_ms

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        # also invalidates a callback the host already dequeued
        self._timer_generation += 1
        self._timeout_started_at = None

    def _on_timer(self, generation: int) -> None:
        if generation != self._timer_generation or not self._buffer:
            return
        self._timer = None
        self._timeout_started_at = None
        with span(
            "matcher::timeout",
            logger_name=self._logger_name,
            component="matching",
            metadata={"policy": self.options.on_timeout, "pending": len(self._buffer)},
        ) as handle:
            if self.options.on_timeout == "submit":
                result = self._commit()
            else:
                result = self._cancel_sequence(consumed=True)
            handle.add_metadata("status", result.status)
        self.hooks.timeout(result)



__all__ = [
    "Handler",
    "HandlerLookup",
    "KeymapEntry",
    "MatchResult",
    "MatchStatus",
    "MatcherHooks",
    "MatcherOptions",
    "SequenceMatcher",
]
