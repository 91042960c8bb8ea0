"""Capture a new binding from live keypresses, for keybinding editors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from hotkey_engine.keymaps.grammar import (
    format_key_seq,
    is_modifier_key,
    is_shifted_symbol,
)
from hotkey_engine.keymaps.models import (
    DigitElem,
    DigitsElem,
    KeyCombination,
    KeyCombinationDisplay,
    KeyElem,
    KeySeq,
    Modifiers,
    SeqElem,
)
from hotkey_engine.runtime.config import DEFAULT_SEQUENCE_TIMEOUT_MS, Platform
from hotkey_engine.runtime.telemetry import record_event
from hotkey_engine.runtime.timers import DeadlineScheduler, TimerHandle, TimerScheduler

HASH_KEY = "#"


def _noop(*_args, **_kwargs) -> None:  # pragma: no cover - default hook
    return None


@dataclass(slots=True)
class RecorderHooks:
    capture: Callable[[KeySeq, KeyCombinationDisplay], None] = _noop
    cancel: Callable[[], None] = _noop
    tab: Callable[[], None] = _noop
    shift_tab: Callable[[], None] = _noop


class HotkeyRecorder:
    """Accumulates presses into a key sequence until submitted or cancelled.

    Enter submits, Escape cancels and Tab submits whatever is pending before
    handing focus back through the tab hooks. An unmodified ``#`` cycles the
    last element: one-digit placeholder, digit-run placeholder, literal
    ``#``, then a fresh one-digit placeholder.

    ``sequence_timeout_ms=0`` submits after every key; ``None`` only
    submits on Enter, Tab or :meth:`commit`.
    """

    def __init__(
        self,
        *,
        hooks: Optional[RecorderHooks] = None,
        scheduler: Optional[TimerScheduler] = None,
        sequence_timeout_ms: Optional[int] = DEFAULT_SEQUENCE_TIMEOUT_MS,
        platform: Optional[Platform] = None,
        logger_name: str | None = None,
    ) -> None:
        if sequence_timeout_ms is not None and sequence_timeout_ms < 0:
            raise ValueError("sequence_timeout_ms cannot be negative")
        self.hooks = hooks or RecorderHooks()
        self.sequence_timeout_ms = sequence_timeout_ms
        self._scheduler: TimerScheduler = scheduler or DeadlineScheduler()
        self._platform = platform
        self._logger_name = logger_name
        self._recording = False
        self._paused = False
        self._pending: list[SeqElem] = []
        self._sequence: Optional[KeySeq] = None
        self._hash_cycle = 0
        self._timer: Optional[TimerHandle] = None
        self._timer_generation = 0

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def pending(self) -> KeySeq:
        return tuple(self._pending)

    @property
    def sequence(self) -> Optional[KeySeq]:
        """Last captured sequence, cleared when a new recording starts."""

        return self._sequence

    @property
    def display(self) -> Optional[KeyCombinationDisplay]:
        if self._sequence is None:
            return None
        return format_key_seq(self._sequence, self._platform)

    def start(self) -> None:
        self._cancel_timer()
        self._recording = True
        self._sequence = None
        self._reset()

    def pause(self) -> None:
        self._paused = True
        self._cancel_timer()

    def resume(self) -> None:
        self._paused = False
        if self._recording and self._pending:
            self._schedule_submit()

    def commit(self) -> None:
        """Submit the pending keys now; with nothing pending this cancels."""

        if self._pending:
            self._submit()
        else:
            self.cancel()

    def cancel(self) -> None:
        self._cancel_timer()
        was_recording = self._recording
        self._recording = False
        self._reset()
        if was_recording:
            record_event("recorder.cancel", level="debug", logger_name=self._logger_name)
        self.hooks.cancel()

    def handle_key(self, combo: KeyCombination) -> bool:
        """Feed one press; returns whether the recorder consumed it."""

        if not self._recording:
            return False
        if is_modifier_key(combo.key):
            return True

        self._cancel_timer()
        if combo.key == "tab":
            self._handle_tab(shift=combo.modifiers.shift)
            return True
        if combo.key == "enter":
            if self._pending:
                self._submit()
            return True
        if combo.key == "escape":
            self.cancel()
            return True

        if is_shifted_symbol(combo.key) and combo.modifiers.shift:
            mods = combo.modifiers
            combo = KeyCombination(
                combo.key, Modifiers(ctrl=mods.ctrl, alt=mods.alt, meta=mods.meta)
            )

        if combo.key == HASH_KEY and not combo.modifiers.any():
            self._cycle_hash()
        else:
            self._hash_cycle = 0
            self._pending.append(KeyElem(combo.key, combo.modifiers))

        if self.sequence_timeout_ms == 0:
            self._submit()
        elif not self._paused:
            self._schedule_submit()
        return True

    def _cycle_hash(self) -> None:
        last = self._pending[-1] if self._pending else None
        if self._hash_cycle == 1 and isinstance(last, DigitElem):
            self._pending[-1] = DigitsElem()
            self._hash_cycle = 2
        elif self._hash_cycle == 2 and isinstance(last, DigitsElem):
            self._pending[-1] = KeyElem(HASH_KEY)
            self._hash_cycle = 3
        else:
            self._pending.append(DigitElem())
            self._hash_cycle = 1

    def _handle_tab(self, *, shift: bool) -> None:
        captured = tuple(self._pending)
        self._recording = False
        self._reset()
        if captured:
            self._deliver(captured)
        if shift:
            self.hooks.shift_tab()
        else:
            self.hooks.tab()

    def _submit(self) -> None:
        captured = tuple(self._pending)
        self._cancel_timer()
        self._recording = False
        self._reset()
        self._deliver(captured)

    def _deliver(self, captured: KeySeq) -> None:
        self._sequence = captured
        display = format_key_seq(captured, self._platform)
        record_event(
            "recorder.capture",
            level="debug",
            data={"binding": display.id},
            logger_name=self._logger_name,
        )
        self.hooks.capture(captured, display)

    def _reset(self) -> None:
        self._pending = []
        self._hash_cycle = 0

    def _schedule_submit(self) -> None:
        if self.sequence_timeout_ms is None:
            return
        if self.sequence_timeout_ms == 0:
            self._submit()
            return
        self._timer_generation += 1
        generation = self._timer_generation
        self._timer = self._scheduler.schedule(
            self.sequence_timeout_ms, lambda: self._on_timer(generation)
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._timer_generation += 1

    def _on_timer(self, generation: int) -> None:
        if generation != self._timer_generation or not self._pending:
            return
        self._timer = None
        self._submit()


__all__ = ["HASH_KEY", "HotkeyRecorder", "RecorderHooks"]
