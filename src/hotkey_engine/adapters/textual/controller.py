"""Minimal Textual adapter that feeds key events to a SequenceMatcher."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from textual import events

from hotkey_engine.keymaps.grammar import format_combination, normalize_key
from hotkey_engine.keymaps.models import KeyCombination, Modifiers
from hotkey_engine.matching import (
    MatcherHooks,
    MatchResult,
    SequenceCompletion,
    SequenceMatcher,
)
from hotkey_engine.runtime.config import Platform

# Textual key names that differ from the engine's canonical ids.
_TEXTUAL_KEYS = {
    "up": "arrowup",
    "down": "arrowdown",
    "left": "arrowleft",
    "right": "arrowright",
    "space": "space",
    "escape": "escape",
    "enter": "enter",
    "tab": "tab",
    "backspace": "backspace",
    "delete": "delete",
    "home": "home",
    "end": "end",
    "pageup": "pageup",
    "pagedown": "pagedown",
}


def _noop(*_args, **_kwargs) -> None:  # pragma: no cover - default hook
    return None


def textual_key_to_combination(
    key: str, character: Optional[str] = None
) -> KeyCombination:
    """Convert a Textual key name (``ctrl+k``, ``up``, ``K``) to a press."""

    *prefixes, name = key.split("+")
    modifiers = Modifiers.from_names(prefixes)
    shift = modifiers.shift

    if name in _TEXTUAL_KEYS:
        resolved = _TEXTUAL_KEYS[name]
    elif character and len(character) == 1 and character.isprintable():
        resolved = character
        if character.isalpha() and character.isupper():
            resolved, shift = character.lower(), True
    elif len(name) == 1 and name.isalpha() and name.isupper():
        resolved, shift = name.lower(), True
    else:
        resolved = normalize_key(name)

    return KeyCombination(
        resolved,
        Modifiers(ctrl=modifiers.ctrl, alt=modifiers.alt, shift=shift, meta=modifiers.meta),
    )


def key_event_to_combination(event: events.Key) -> KeyCombination:
    return textual_key_to_combination(event.key, event.character)


@dataclass(slots=True)
class _TextualTimerHandle:
    timer: Any

    def cancel(self) -> None:
        self.timer.stop()


class TextualTimerScheduler:
    """Schedules matcher timeouts on a Textual app or widget's event loop."""

    def __init__(self, host: Any) -> None:
        self.host = host

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> _TextualTimerHandle:
        timer = self.host.set_timer(delay_ms / 1000.0, callback)
        return _TextualTimerHandle(timer)


@dataclass(slots=True)
class TextualHotkeyHooks:
    """Callbacks invoked by the adapter to update Textual widgets."""

    update_status: Callable[[str], None] = _noop
    show_pending: Callable[[str], None] = _noop
    show_completions: Callable[[list[SequenceCompletion]], None] = _noop
    executed: Callable[[str, tuple[int, ...]], None] = _noop
    log: Callable[[str], None] = _noop


class TextualHotkeyAdapter:
    """Bridges a SequenceMatcher to a Textual-friendly surface.

    Takes over the matcher's hooks so sequence progress reaches the UI, and
    stops every key event the matcher consumed.
    """

    def __init__(
        self,
        matcher: SequenceMatcher,
        hooks: Optional[TextualHotkeyHooks] = None,
        *,
        platform: Optional[Platform] = None,
    ) -> None:
        self.matcher = matcher
        self.hooks = hooks or TextualHotkeyHooks()
        self.platform = platform
        matcher.hooks = MatcherHooks(
            sequence_start=self._on_sequence,
            sequence_progress=self._on_sequence,
            sequence_cancel=self._clear_sequence,
            executed=self._on_executed,
            timeout=self._after_result,
        )

    def handle_key_event(self, event: events.Key) -> MatchResult:
        result = self.handle_textual_key(event.key, character=event.character)
        if result.consumed:
            event.prevent_default()
            event.stop()
        return result

    def handle_textual_key(
        self, key: str, *, character: Optional[str] = None
    ) -> MatchResult:
        combo = textual_key_to_combination(key, character)
        self.hooks.log(f"key -> {combo.id}")
        result = self.matcher.handle_key(combo)
        self._after_result(result)
        return result

    def _after_result(self, result: MatchResult) -> None:
        if result.status != "pending" and result.pending:
            self._clear_sequence()
        if result.status == "executed" and result.action_id:
            self.hooks.update_status(result.action_id)
        elif result.status != "ignored":
            self.hooks.update_status(result.status)
        self.hooks.log(f"result <- status={result.status} consumed={result.consumed}")

    def _on_sequence(self, keys: tuple[KeyCombination, ...]) -> None:
        self.hooks.show_pending(format_combination(keys, self.platform).display)
        self.hooks.show_completions(self.matcher.completions(platform=self.platform))

    def _clear_sequence(self) -> None:
        self.hooks.show_pending("")
        self.hooks.show_completions([])

    def _on_executed(self, action_id: str, captures: tuple[int, ...]) -> None:
        self.hooks.executed(action_id, captures)


__all__ = [
    "TextualHotkeyAdapter",
    "TextualHotkeyHooks",
    "TextualTimerScheduler",
    "key_event_to_combination",
    "textual_key_to_combination",
]
