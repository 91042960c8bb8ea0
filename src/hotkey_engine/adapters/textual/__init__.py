"""Textual integration: key event conversion, timers and a matcher adapter."""

from .controller import (
    TextualHotkeyAdapter,
    TextualHotkeyHooks,
    TextualTimerScheduler,
    key_event_to_combination,
    textual_key_to_combination,
)

__all__ = [
    "TextualHotkeyAdapter",
    "TextualHotkeyHooks",
    "TextualTimerScheduler",
    "key_event_to_combination",
    "textual_key_to_combination",
]
