"""Dataclasses describing key presses, binding patterns and actions."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, MutableMapping, Optional, Sequence, Union

MODIFIER_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "ctrl": "ctrl",
        "control": "ctrl",
        "alt": "alt",
        "option": "alt",
        "shift": "shift",
        "meta": "meta",
        "cmd": "meta",
        "command": "meta",
    }
)

# Canonical order used by binding ids.
MODIFIER_ORDER: tuple[str, ...] = ("ctrl", "meta", "alt", "shift")


@dataclass(frozen=True, slots=True)
class Modifiers:
    """Modifier bits held during a single key press."""

    ctrl: bool = False
    alt: bool = False
    shift: bool = False
    meta: bool = False

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "Modifiers":
        """Build from modifier names, resolving aliases and ignoring unknowns."""

        flags = {MODIFIER_ALIASES.get(name.strip().lower()) for name in names}
        return cls(
            ctrl="ctrl" in flags,
            alt="alt" in flags,
            shift="shift" in flags,
            meta="meta" in flags,
        )

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(name for name in MODIFIER_ORDER if getattr(self, name))

    def any(self) -> bool:
        return self.ctrl or self.alt or self.shift or self.meta


NO_MODIFIERS = Modifiers()


@dataclass(frozen=True, slots=True)
class KeyCombination:
    """One physical press: a normalized key plus held modifiers."""

    key: str
    modifiers: Modifiers = NO_MODIFIERS

    @classmethod
    def press(
        cls,
        key: str,
        *,
        ctrl: bool = False,
        alt: bool = False,
        shift: bool = False,
        meta: bool = False,
    ) -> "KeyCombination":
        return cls(key, Modifiers(ctrl=ctrl, alt=alt, shift=shift, meta=meta))

    @property
    def id(self) -> str:
        return "+".join(self.modifiers.names + (self.key,))


@dataclass(frozen=True, slots=True)
class KeyElem:
    """Pattern element matching one literal key with exact modifiers."""

    key: str
    modifiers: Modifiers = NO_MODIFIERS

    @property
    def combination(self) -> KeyCombination:
        return KeyCombination(self.key, self.modifiers)


@dataclass(frozen=True, slots=True)
class DigitElem:
    """Placeholder matching exactly one unmodified digit (``\\d``)."""


@dataclass(frozen=True, slots=True)
class DigitsElem:
    """Placeholder matching a greedy run of unmodified digits (``\\d+``)."""


SeqElem = Union[KeyElem, DigitElem, DigitsElem]
KeySeq = tuple[SeqElem, ...]

# A keymap value is one action id or several.
KeymapValue = Union[str, Sequence[str]]
Keymap = Mapping[str, KeymapValue]


def action_ids(value: KeymapValue) -> tuple[str, ...]:
    """Normalize a keymap value to a tuple of non-empty action ids."""

    if isinstance(value, str):
        return (value,) if value else ()
    return tuple(item for item in value if item)


@dataclass(frozen=True, slots=True)
class KeyCombinationDisplay:
    """Human-readable and canonical renderings of a binding."""

    display: str
    id: str
    is_sequence: bool = False


def _normalize_keywords(keywords: Iterable[str]) -> tuple[str, ...]:
    seen: MutableMapping[str, None] = {}
    for keyword in keywords:
        cleaned = keyword.strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return tuple(seen)


@dataclass(frozen=True, slots=True)
class ActionDefinition:
    """Searchable metadata describing an action."""

    label: str
    description: Optional[str] = None
    group: Optional[str] = None
    keywords: tuple[str, ...] = ()
    icon: Optional[str] = None
    enabled: bool = True
    hide_from_modal: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "keywords", _normalize_keywords(self.keywords))


@dataclass(frozen=True, slots=True)
class ActionRef:
    """A registered action: handler, metadata and default bindings."""

    id: str
    handler: Callable[..., object]
    definition: Optional[ActionDefinition] = None
    default_bindings: tuple[str, ...] = ()
    metadata: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("ActionRef id cannot be empty")
        if not callable(self.handler):
            raise TypeError("handler must be callable")
        if self.definition is None:
            object.__setattr__(self, "definition", ActionDefinition(label=self.id))
        object.__setattr__(
            self,
            "default_bindings",
            tuple(dict.fromkeys(b.strip() for b in self.default_bindings if b.strip())),
        )
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def enabled(self) -> bool:
        return self.definition is None or self.definition.enabled

    def __call__(self, *args: object, **kwargs: object) -> object:
        return self.handler(*args, **kwargs)


__all__ = [
    "MODIFIER_ALIASES",
    "MODIFIER_ORDER",
    "NO_MODIFIERS",
    "Modifiers",
    "KeyCombination",
    "KeyElem",
    "DigitElem",
    "DigitsElem",
    "SeqElem",
    "KeySeq",
    "Keymap",
    "KeymapValue",
    "action_ids",
    "KeyCombinationDisplay",
    "ActionDefinition",
    "ActionRef",
]
