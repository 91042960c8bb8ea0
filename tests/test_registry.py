from __future__ import annotations

from typing import List

import pytest

from hotkey_engine.keymaps import (
    ActionDefinition,
    ActionRef,
    ActionsRegistry,
    KeymapConflictError,
    MemoryOverrideStore,
)
from hotkey_engine.runtime.config import EngineSettings


def make_action(
    action_id: str = "nav.top",
    *bindings: str,
    label: str | None = None,
    enabled: bool = True,
) -> ActionRef:
    return ActionRef(
        id=action_id,
        handler=lambda *args, **kwargs: None,
        definition=ActionDefinition(label=label or action_id, enabled=enabled),
        default_bindings=bindings,
    )


def make_registry(*actions: ActionRef, store: MemoryOverrideStore | None = None) -> ActionsRegistry:
    registry = ActionsRegistry(store=store)
    for action in actions:
        registry.register_action(action)
    return registry


def test_register_action_builds_keymap_from_defaults() -> None:
    registry = make_registry(make_action("nav.top", "g g"), make_action("nav.end", "shift+g"))

    assert registry.keymap() == {"g g": ("nav.top",), "shift+g": ("nav.end",)}
    assert registry.stats().action_count == 2
    assert registry.stats().binding_count == 2


def test_default_bindings_are_canonicalized() -> None:
    registry = make_registry(make_action("nav.end", "G"))

    assert registry.keymap() == {"shift+g": ("nav.end",)}
    assert registry.bindings_for_action("nav.end") == ["shift+g"]


def test_register_duplicate_action_rejected() -> None:
    registry = make_registry(make_action("nav.top"))

    with pytest.raises(ValueError):
        registry.register_action(make_action("nav.top"))

    registry.register_action(make_action("nav.top", "g g"), replace=True)
    assert registry.keymap() == {"g g": ("nav.top",)}


def test_unregister_action_drops_its_bindings() -> None:
    registry = make_registry(make_action("nav.top", "g g"))

    removed = registry.unregister_action("nav.top")

    assert removed is not None
    assert registry.keymap() == {}
    with pytest.raises(KeyError):
        registry.get_action("nav.top")


def test_shared_default_binding_merges_actions() -> None:
    registry = make_registry(make_action("a", "x"), make_action("b", "x"))

    assert registry.keymap() == {"x": ("a", "b")}


def test_set_binding_persists_override() -> None:
    store = MemoryOverrideStore()
    registry = make_registry(make_action("nav.top", "g g"), store=store)

    key = registry.set_binding("nav.top", "Ctrl+Home")

    assert key == "ctrl+home"
    assert registry.keymap() == {"g g": ("nav.top",), "ctrl+home": ("nav.top",)}
    assert store.data == {"ctrl+home": "nav.top"}


def test_override_equal_to_default_is_not_persisted() -> None:
    store = MemoryOverrideStore()
    registry = make_registry(make_action("nav.top", "g g"), store=store)

    registry.set_binding("nav.top", "g  g")

    assert registry.overrides == {}
    assert store.data == {}
    assert store.saves == 1


def test_remove_default_binding_masks_it() -> None:
    store = MemoryOverrideStore()
    registry = make_registry(make_action("nav.top", "g g"), store=store)

    registry.remove_binding("g g")

    assert registry.keymap() == {}
    assert store.data == {"g g": ""}

    registry.reset_overrides()
    assert registry.keymap() == {"g g": ("nav.top",)}
    assert store.data == {}


def test_remove_override_binding_deletes_it() -> None:
    registry = make_registry(make_action("nav.top", "g g"))
    registry.set_binding("nav.top", "ctrl+home")

    registry.remove_binding("ctrl+home")

    assert registry.overrides == {}
    assert registry.keymap() == {"g g": ("nav.top",)}


def test_overrides_loaded_from_store() -> None:
    store = MemoryOverrideStore({"Ctrl+K": "palette.open"})
    registry = make_registry(make_action("palette.open"), store=store)

    assert registry.overrides == {"ctrl+k": "palette.open"}
    assert registry.keymap() == {"ctrl+k": ("palette.open",)}


def test_set_binding_unknown_action() -> None:
    registry = make_registry()

    with pytest.raises(KeyError):
        registry.set_binding("missing", "x")


def test_set_binding_rejects_empty_binding() -> None:
    registry = make_registry(make_action("nav.top"))

    with pytest.raises(ValueError):
        registry.set_binding("nav.top", "   ")


def test_prevent_mode_rejects_prefix_conflict() -> None:
    registry = make_registry(make_action("go", "g"), make_action("next_tab"))

    with pytest.raises(KeymapConflictError) as excinfo:
        registry.set_binding("next_tab", "g t", conflict_mode="prevent")

    assert excinfo.value.binding == "g t"
    assert excinfo.value.conflicts == ("g",)
    assert registry.keymap() == {"g": ("go",)}


def test_prevent_mode_rejects_duplicate() -> None:
    registry = make_registry(make_action("go", "g"), make_action("grep"))

    with pytest.raises(KeymapConflictError):
        registry.set_binding("grep", "g", conflict_mode="prevent")


def test_warn_mode_stores_conflicting_binding() -> None:
    registry = make_registry(make_action("go", "g"), make_action("next_tab"))

    registry.set_binding("next_tab", "g t", conflict_mode="warn")

    assert registry.keymap()["g t"] == ("next_tab",)


def test_disable_conflicts_drops_flagged_bindings() -> None:
    registry = make_registry(
        make_action("go", "g"), make_action("next_tab", "g t"), make_action("close", "x")
    )

    assert registry.keymap(disable_conflicts=True) == {"x": ("close",)}


def test_disable_conflicts_setting_is_the_keymap_default() -> None:
    registry = ActionsRegistry(settings=EngineSettings(disable_conflicts=True))
    registry.register_action(make_action("go", "g"))
    registry.register_action(make_action("next_tab", "g t"))

    assert registry.keymap() == {}
    assert registry.keymap(disable_conflicts=False) == {"g": ("go",), "g t": ("next_tab",)}


def test_execute_passes_captures_and_skips_disabled() -> None:
    calls: List[object] = []
    registry = make_registry(
        ActionRef(id="down", handler=lambda *args: calls.append(args)),
        make_action("off", enabled=False),
    )

    assert registry.execute("down", (3,)) is True
    assert registry.execute("down") is True
    assert registry.execute("off") is False
    assert registry.execute("missing") is False
    assert calls == [([3],), ()]
    assert registry.handler_for("off") is None


def test_revision_bumps_on_mutation() -> None:
    registry = make_registry()
    start = registry.revision()

    registry.register_action(make_action("nav.top", "g g"))
    registry.set_binding("nav.top", "ctrl+home")

    assert registry.revision() > start + 1


def test_action_definitions_exposes_metadata() -> None:
    registry = make_registry(make_action("nav.top", label="Go to top"))

    assert registry.action_definitions()["nav.top"].label == "Go to top"
