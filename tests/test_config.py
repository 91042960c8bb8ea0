from __future__ import annotations

import pytest

from hotkey_engine.runtime.config import (
    DEFAULT_SEQUENCE_TIMEOUT_MS,
    EngineSettings,
    load_settings,
)


def test_defaults_without_environment() -> None:
    settings = load_settings({})

    assert settings.sequence_timeout_ms == DEFAULT_SEQUENCE_TIMEOUT_MS == 1000
    assert settings.on_timeout == "submit"
    assert settings.platform in ("mac", "windows", "linux")
    assert settings.disable_conflicts is False


def test_environment_overrides() -> None:
    settings = load_settings(
        {
            "HOTKEY_ENGINE_SEQUENCE_TIMEOUT_MS": "250",
            "HOTKEY_ENGINE_ON_TIMEOUT": "Cancel",
            "HOTKEY_ENGINE_PLATFORM": "darwin",
            "HOTKEY_ENGINE_DISABLE_CONFLICTS": "yes",
        }
    )

    assert settings == EngineSettings(
        sequence_timeout_ms=250,
        on_timeout="cancel",
        platform="mac",
        disable_conflicts=True,
    )


@pytest.mark.parametrize("raw", ["none", "inf", "Infinity"])
def test_timeout_can_be_disabled(raw: str) -> None:
    assert load_settings({"HOTKEY_ENGINE_SEQUENCE_TIMEOUT_MS": raw}).sequence_timeout_ms is None


@pytest.mark.parametrize("raw", ["soon", "-5", ""])
def test_invalid_timeout_falls_back(raw: str) -> None:
    settings = load_settings({"HOTKEY_ENGINE_SEQUENCE_TIMEOUT_MS": raw})

    assert settings.sequence_timeout_ms == DEFAULT_SEQUENCE_TIMEOUT_MS


def test_invalid_policy_falls_back() -> None:
    assert load_settings({"HOTKEY_ENGINE_ON_TIMEOUT": "explode"}).on_timeout == "submit"


def test_environment_read_from_process(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOTKEY_ENGINE_PLATFORM", "windows")

    assert load_settings().platform == "windows"


def test_settings_validation() -> None:
    with pytest.raises(ValueError):
        EngineSettings(sequence_timeout_ms=-1)
    with pytest.raises(ValueError):
        EngineSettings(platform="beos")  # type: ignore[arg-type]
