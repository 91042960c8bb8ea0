"""Binding-string grammar: parsing, canonical ids and display formatting.

Grammar::

    sequence = combo (" " combo)*
    combo    = (modifier "+")* key | "\\d" | "\\d+"
    modifier = ctrl | control | alt | option | shift | meta | cmd | command

Parsing never raises. Bindings often come from a half-finished key
recording, so unknown modifiers are dropped and an empty string parses to an
empty sequence.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence, Union

from hotkey_engine.runtime import telemetry
from hotkey_engine.runtime.config import Platform, load_settings

from .models import (
    MODIFIER_ALIASES,
    DigitElem,
    DigitsElem,
    KeyCombination,
    KeyCombinationDisplay,
    KeyElem,
    KeySeq,
    Modifiers,
    SeqElem,
)

DIGIT_TOKEN = "\\d"
DIGITS_TOKEN = "\\d+"

# Characters that need Shift on a US layout. Other layouts are not covered.
SHIFTED_SYMBOLS = frozenset('!@#$%^&*()_+{}|:"<>?~')

_KEY_NAMES = {
    " ": "space",
    "Spacebar": "space",
    "Escape": "escape",
    "Esc": "escape",
    "Enter": "enter",
    "Return": "enter",
    "Tab": "tab",
    "Backspace": "backspace",
    "Delete": "delete",
    "Del": "delete",
    "ArrowUp": "arrowup",
    "ArrowDown": "arrowdown",
    "ArrowLeft": "arrowleft",
    "ArrowRight": "arrowright",
    "Up": "arrowup",
    "Down": "arrowdown",
    "Left": "arrowleft",
    "Right": "arrowright",
    "Home": "home",
    "End": "end",
    "PageUp": "pageup",
    "PageDown": "pagedown",
}

_KEY_NAMES_LOWER = {name.lower(): key for name, key in _KEY_NAMES.items() if name.strip()}

_DISPLAY_NAMES = {
    "space": "Space",
    "escape": "Esc",
    "enter": "↵",
    "tab": "Tab",
    "backspace": "⌫",
    "delete": "Del",
    "arrowup": "↑",
    "arrowdown": "↓",
    "arrowleft": "←",
    "arrowright": "→",
    "home": "Home",
    "end": "End",
    "pageup": "PgUp",
    "pagedown": "PgDn",
}

_MODIFIER_KEYS = frozenset({"Control", "Alt", "Shift", "Meta", "control", "alt", "shift", "meta"})

_MAC_GLYPHS = {"ctrl": "⌃", "meta": "⌘", "alt": "⌥", "shift": "⇧"}
_MODIFIER_WORDS = {"ctrl": "Ctrl", "meta": "Meta", "alt": "Alt", "shift": "Shift"}

_FUNCTION_KEY = re.compile(r"^f\d{1,2}$")
_UPPER_LETTER = re.compile(r"^[A-Z]$")

DIGIT_DISPLAY = "⟨#⟩"
DIGITS_DISPLAY = "⟨##⟩"


def normalize_key(key: str) -> str:
    """Map a raw key name to its canonical lowercase id."""

    if key in _KEY_NAMES:
        return _KEY_NAMES[key]
    lowered = key.lower()
    return _KEY_NAMES_LOWER.get(lowered, lowered)


def is_modifier_key(key: str) -> bool:
    return key in _MODIFIER_KEYS


def is_shifted_symbol(key: str) -> bool:
    return key in SHIFTED_SYMBOLS


def is_digit_key(key: str) -> bool:
    return len(key) == 1 and "0" <= key <= "9"


def is_plain_digit(combo: KeyCombination) -> bool:
    """A digit pressed with no modifier held."""

    return is_digit_key(combo.key) and not combo.modifiers.any()


def combo_matches_elem(combo: KeyCombination, elem: KeyElem) -> bool:
    """Compare a press against a literal pattern element.

    ctrl/alt/meta must match exactly. For shifted symbols the shift bit is
    only compared when the pattern itself asks for shift, since those
    characters cannot be typed without it.
    """

    if combo.key != elem.key:
        return False
    pressed, wanted = combo.modifiers, elem.modifiers
    if (pressed.ctrl, pressed.alt, pressed.meta) != (wanted.ctrl, wanted.alt, wanted.meta):
        return False
    if is_shifted_symbol(combo.key) and not wanted.shift:
        return True
    return pressed.shift == wanted.shift


def _split_combo(token: str) -> tuple[list[str], str]:
    parts = token.lower().split("+")
    key = parts[-1]
    modifier_parts = [part for part in parts[:-1] if part]
    if not key and "+" in token:
        # trailing "+" means the plus key itself: "+", "ctrl++", "shift+"
        key = "+"
    elif len(key) > 1:
        key = normalize_key(key)
    return modifier_parts, key


def parse_combo(token: str) -> KeyCombination:
    """Parse one combo such as ``ctrl+shift+k`` or ``K``."""

    token = token.strip()
    if _UPPER_LETTER.match(token):
        return KeyCombination(token.lower(), Modifiers(shift=True))

    modifier_parts, key = _split_combo(token)
    unknown = [part for part in modifier_parts if part not in MODIFIER_ALIASES]
    if unknown:
        telemetry.record_event(
            "grammar.unknown_modifier",
            level="debug",
            data={"token": token, "unknown": ",".join(unknown)},
        )
    return KeyCombination(key, Modifiers.from_names(modifier_parts))


def parse_seq_elem(token: str) -> SeqElem:
    if token == DIGIT_TOKEN:
        return DigitElem()
    if token == DIGITS_TOKEN:
        return DigitsElem()
    combo = parse_combo(token)
    return KeyElem(combo.key, combo.modifiers)


def parse_key_seq(text: str) -> KeySeq:
    """Parse a binding string into a pattern with digit placeholders."""

    return tuple(parse_seq_elem(token) for token in text.split())


def parse_hotkey_string(text: str) -> tuple[KeyCombination, ...]:
    """Parse a binding string as literal presses only (no placeholders)."""

    return tuple(parse_combo(token) for token in text.split())


def serialize_elem(elem: SeqElem) -> str:
    if isinstance(elem, DigitElem):
        return DIGIT_TOKEN
    if isinstance(elem, DigitsElem):
        return DIGITS_TOKEN
    return "+".join(elem.modifiers.names + (elem.key,))


def serialize_key_seq(seq: Iterable[SeqElem]) -> str:
    """Canonical id: modifiers ctrl, meta, alt, shift then key; one space apart."""

    return " ".join(serialize_elem(elem) for elem in seq)


def canonical_id(text: str) -> str:
    return serialize_key_seq(parse_key_seq(text))


def format_key_for_display(key: str) -> str:
    if key in _DISPLAY_NAMES:
        return _DISPLAY_NAMES[key]
    if _FUNCTION_KEY.match(key) or len(key) == 1:
        return key.upper()
    return key


def _modifier_label(name: str, platform: Platform) -> str:
    if platform == "mac":
        return _MAC_GLYPHS[name]
    if name == "meta" and platform == "windows":
        return "Win"
    return _MODIFIER_WORDS[name]


def _display_elem(elem: SeqElem, platform: Platform) -> str:
    if isinstance(elem, DigitElem):
        return DIGIT_DISPLAY
    if isinstance(elem, DigitsElem):
        return DIGITS_DISPLAY
    parts = [_modifier_label(name, platform) for name in elem.modifiers.names]
    parts.append(format_key_for_display(elem.key))
    separator = "" if platform == "mac" else "+"
    return separator.join(parts)


def _resolve_platform(platform: Optional[Platform]) -> Platform:
    return platform or load_settings().platform


def format_key_seq(
    seq: Sequence[SeqElem], platform: Optional[Platform] = None
) -> KeyCombinationDisplay:
    if not seq:
        return KeyCombinationDisplay(display="", id="", is_sequence=False)
    resolved = _resolve_platform(platform)
    return KeyCombinationDisplay(
        display=" ".join(_display_elem(elem, resolved) for elem in seq),
        id=serialize_key_seq(seq),
        is_sequence=len(seq) > 1,
    )


def format_combination(
    combos: Union[KeyCombination, Sequence[KeyCombination]],
    platform: Optional[Platform] = None,
) -> KeyCombinationDisplay:
    if isinstance(combos, KeyCombination):
        combos = (combos,)
    return format_key_seq(
        tuple(KeyElem(combo.key, combo.modifiers) for combo in combos), platform
    )


def format_binding(text: str, platform: Optional[Platform] = None) -> str:
    """Display form of a binding string, e.g. ``meta+k`` -> ``⌘K`` on mac."""

    return format_key_seq(parse_key_seq(text), platform).display


def has_digit_placeholders(seq: Iterable[SeqElem]) -> bool:
    return any(isinstance(elem, (DigitElem, DigitsElem)) for elem in seq)


def count_placeholders(seq: Iterable[SeqElem]) -> int:
    return sum(1 for elem in seq if isinstance(elem, (DigitElem, DigitsElem)))


__all__ = [
    "DIGIT_TOKEN",
    "DIGITS_TOKEN",
    "DIGIT_DISPLAY",
    "DIGITS_DISPLAY",
    "SHIFTED_SYMBOLS",
    "normalize_key",
    "is_modifier_key",
    "is_shifted_symbol",
    "is_digit_key",
    "is_plain_digit",
    "combo_matches_elem",
    "parse_combo",
    "parse_seq_elem",
    "parse_key_seq",
    "parse_hotkey_string",
    "serialize_elem",
    "serialize_key_seq",
    "canonical_id",
    "format_key_for_display",
    "format_key_seq",
    "format_combination",
    "format_binding",
    "has_digit_placeholders",
    "count_placeholders",
]
