"""Actions registry owning handlers, default bindings and user overrides."""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Callable,
    Dict,
    Iterable,
    Iterator,
    Literal,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Union,
)

from hotkey_engine.runtime.config import EngineSettings, load_settings
from hotkey_engine.runtime.telemetry import record_event, span

from .conflicts import conflicting_bindings, find_conflicts
from .grammar import canonical_id
from .models import ActionDefinition, ActionRef

ConflictMode = Literal["allow", "warn", "prevent"]
OverrideValue = Union[str, Sequence[str]]

# Override value marking a default binding as explicitly removed.
REMOVED = ""


class OverrideStore(Protocol):
    """Persistence collaborator for the binding-string -> action override map."""

    def load(self) -> Mapping[str, OverrideValue]: ...

    def save(self, overrides: Mapping[str, OverrideValue]) -> None: ...


class MemoryOverrideStore:
    """Keeps overrides in a dict; hosts swap in their own storage."""

    def __init__(self, initial: Optional[Mapping[str, OverrideValue]] = None) -> None:
        self.data: Dict[str, OverrideValue] = dict(initial or {})
        self.saves = 0

    def load(self) -> Mapping[str, OverrideValue]:
        return dict(self.data)

    def save(self, overrides: Mapping[str, OverrideValue]) -> None:
        self.data = dict(overrides)
        self.saves += 1


@dataclass(slots=True)
class RegistryStats:
    """Lightweight snapshot describing registry state."""

    action_count: int
    binding_count: int
    override_count: int


class KeymapConflictError(RuntimeError):
    """Raised when a binding is rejected because it conflicts with others."""

    def __init__(self, binding: str, conflicts: Iterable[str]):
        conflicts_tuple = tuple(conflicts)
        super().__init__(f"Binding '{binding}' conflicts with {list(conflicts_tuple)}")
        self.binding = binding
        self.conflicts = conflicts_tuple


def _override_ids(value: OverrideValue) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,) if value else ()
    return tuple(dict.fromkeys(item for item in value if item))


def _override_value(ids: tuple[str, ...]) -> OverrideValue:
    if not ids:
        return REMOVED
    if len(ids) == 1:
        return ids[0]
    return list(ids)


class ActionsRegistry:
    """Owns registered actions and computes the effective keymap.

    The effective keymap is the default bindings of every registered action,
    minus defaults an override removed, merged with the user overrides. Keys
    are canonical binding ids; two actions on one key make a duplicate
    conflict rather than one silently winning.
    """

    def __init__(
        self,
        *,
        store: Optional[OverrideStore] = None,
        settings: Optional[EngineSettings] = None,
        logger_name: str | None = None,
    ) -> None:
        self._disable_conflicts = (settings or load_settings()).disable_conflicts
        self._actions: Dict[str, ActionRef] = {}
        self._overrides: Dict[str, tuple[str, ...]] = {}
        self._store = store
        self._logger_name = logger_name
        self._revision = 0
        self._keymap_cache: Optional[tuple[int, Dict[str, tuple[str, ...]]]] = None
        if store is not None:
            for key, value in store.load().items():
                binding = canonical_id(key)
                if binding:
                    self._overrides[binding] = _override_ids(value)

    def revision(self) -> int:
        return self._revision

    def get_action(self, action_id: str) -> ActionRef:
        try:
            return self._actions[action_id]
        except KeyError as exc:
            raise KeyError(f"Action '{action_id}' is not registered") from exc

    def iter_actions(self) -> Iterator[ActionRef]:
        yield from self._actions.values()

    def register_action(self, action: ActionRef, *, replace: bool = False) -> ActionRef:
        with span(
            "keymaps::register_action",
            logger_name=self._logger_name,
            component="keymaps",
            metadata={"action_id": action.id},
        ):
            if not replace and action.id in self._actions:
                raise ValueError(f"Action '{action.id}' already registered")
            self._actions[action.id] = action
            self._touch()
            return action

    def unregister_action(self, action_id: str) -> Optional[ActionRef]:
        with span(
            "keymaps::unregister_action",
            logger_name=self._logger_name,
            component="keymaps",
            metadata={"action_id": action_id},
        ):
            action = self._actions.pop(action_id, None)
            if action is not None:
                self._touch()
            return action

    def execute(self, action_id: str, captures: Sequence[int] = ()) -> bool:
        """Run an enabled action's handler; returns whether it ran."""

        action = self._actions.get(action_id)
        if action is None or not action.enabled:
            return False
        if captures:
            action.handler(list(captures))
        else:
            action.handler()
        record_event(
            "action.execute",
            level="debug",
            data={"action_id": action_id, "captures": list(captures)},
            logger_name=self._logger_name,
        )
        return True

    def handler_for(self, action_id: str) -> Optional[Callable[..., object]]:
        """Handler lookup for a matcher; disabled or unknown actions give None."""

        action = self._actions.get(action_id)
        if action is None or not action.enabled:
            return None
        return action.handler

    def action_definitions(self) -> Dict[str, ActionDefinition]:
        return {
            action.id: action.definition
            for action in self._actions.values()
            if action.definition is not None
        }

    @property
    def overrides(self) -> Dict[str, OverrideValue]:
        return {key: _override_value(ids) for key, ids in self._overrides.items()}

    def keymap(
        self, *, disable_conflicts: Optional[bool] = None
    ) -> Dict[str, tuple[str, ...]]:
        """Effective keymap; ``disable_conflicts`` drops every flagged binding.

        Defaults to the ``disable_conflicts`` engine setting.
        """

        if disable_conflicts is None:
            disable_conflicts = self._disable_conflicts
        keymap = self._merged_keymap()
        if not disable_conflicts:
            return dict(keymap)
        flagged = conflicting_bindings(keymap)
        return {key: ids for key, ids in keymap.items() if key not in flagged}

    def bindings_for_action(self, action_id: str) -> list[str]:
        return [key for key, ids in self._merged_keymap().items() if action_id in ids]

    def set_binding(
        self,
        action_id: str,
        binding: str,
        *,
        conflict_mode: ConflictMode = "allow",
    ) -> str:
        """Bind ``binding`` to ``action_id`` as a user override.

        Returns the canonical id actually stored.
        """

        with span(
            "keymaps::set_binding",
            logger_name=self._logger_name,
            component="keymaps",
            metadata={"action_id": action_id, "binding": binding},
        ) as handle:
            if action_id not in self._actions:
                handle.add_metadata("missing_action", action_id)
                raise KeyError(
                    f"Binding '{binding}' references unknown action '{action_id}'"
                )
            key = canonical_id(binding)
            if not key:
                raise ValueError("binding cannot be empty")

            if conflict_mode != "allow":
                proposed = {k: list(v) for k, v in self._merged_keymap().items()}
                proposed.setdefault(key, [])
                if action_id not in proposed[key]:
                    proposed[key].append(action_id)
                clashes = [
                    item.split(": ", 1)[1] if ": " in item else item
                    for item in find_conflicts(proposed).get(key, [])
                    if item != action_id
                ]
                if clashes:
                    handle.add_metadata("conflicts", ",".join(clashes))
                    if conflict_mode == "prevent":
                        raise KeymapConflictError(key, clashes)
                    record_event(
                        "keymaps.binding_conflict",
                        level="warning",
                        data={"binding": key, "conflicts": clashes},
                        logger_name=self._logger_name,
                    )

            self._overrides[key] = (action_id,)
            self._commit_overrides()
            return key

    def remove_binding(self, binding: str) -> None:
        """Drop a binding; defaults are masked, plain overrides are deleted."""

        key = canonical_id(binding)
        with span(
            "keymaps::remove_binding",
            logger_name=self._logger_name,
            component="keymaps",
            metadata={"binding": key},
        ):
            if self._is_default_key(key):
                self._overrides[key] = ()
            else:
                self._overrides.pop(key, None)
            self._commit_overrides()

    def reset_overrides(self) -> None:
        self._overrides.clear()
        self._commit_overrides()

    def stats(self) -> RegistryStats:
        return RegistryStats(
            action_count=len(self._actions),
            binding_count=len(self._merged_keymap()),
            override_count=len(self._overrides),
        )

    def _merged_keymap(self) -> Dict[str, tuple[str, ...]]:
        cached = self._keymap_cache
        if cached and cached[0] == self._revision:
            return cached[1]

        merged: Dict[str, list[str]] = {}

        def add(key: str, action_id: str) -> None:
            bucket = merged.setdefault(key, [])
            if action_id not in bucket:
                bucket.append(action_id)

        for action in self._actions.values():
            for binding in action.default_bindings:
                key = canonical_id(binding)
                if not key or self._overrides.get(key) == ():
                    continue
                add(key, action.id)
        for key, ids in self._overrides.items():
            for action_id in ids:
                add(key, action_id)

        keymap = {key: tuple(ids) for key, ids in merged.items()}
        self._keymap_cache = (self._revision, keymap)
        return keymap

    def _is_default_key(self, key: str) -> bool:
        return any(
            canonical_id(binding) == key
            for action in self._actions.values()
            for binding in action.default_bindings
        )

    def _is_default_binding(self, key: str, action_id: str) -> bool:
        action = self._actions.get(action_id)
        if action is None:
            return False
        return any(canonical_id(binding) == key for binding in action.default_bindings)

    def _commit_overrides(self) -> None:
        filtered: Dict[str, tuple[str, ...]] = {}
        for key, ids in self._overrides.items():
            if not ids:
                filtered[key] = ids
                continue
            extra = tuple(a for a in ids if not self._is_default_binding(key, a))
            if extra:
                filtered[key] = extra
        self._overrides = filtered
        if self._store is not None:
            self._store.save(self.overrides)
        self._touch()

    def _touch(self) -> None:
        self._revision += 1


__all__ = [
    "ActionsRegistry",
    "ConflictMode",
    "KeymapConflictError",
    "MemoryOverrideStore",
    "OverrideStore",
    "RegistryStats",
    "REMOVED",
]
