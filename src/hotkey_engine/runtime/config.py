"""Environment-driven engine settings."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Literal, Mapping, Optional

ENV_PREFIX = "HOTKEY_ENGINE_"

DEFAULT_SEQUENCE_TIMEOUT_MS = 1000

Platform = Literal["mac", "windows", "linux"]
TimeoutPolicy = Literal["submit", "cancel"]

_PLATFORMS = ("mac", "windows", "linux")
_TIMEOUT_POLICIES = ("submit", "cancel")


def env(
    name: str,
    default: Optional[str] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    source = os.environ if environ is None else environ
    return source.get(f"{ENV_PREFIX}{name}", default)


def env_flag(
    name: str, default: bool, *, environ: Optional[Mapping[str, str]] = None
) -> bool:
    raw = env(name, environ=environ)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def detect_platform() -> Platform:
    if sys.platform == "darwin":
        return "mac"
    if sys.platform.startswith("win"):
        return "windows"
    return "linux"


def _parse_timeout(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return DEFAULT_SEQUENCE_TIMEOUT_MS
    value = raw.strip().lower()
    if value in {"none", "inf", "infinity", "off"}:
        return None
    try:
        parsed = int(value)
    except ValueError:
        return DEFAULT_SEQUENCE_TIMEOUT_MS
    if parsed < 0:
        return DEFAULT_SEQUENCE_TIMEOUT_MS
    return parsed


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Process-wide defaults shared by matchers, recorders and formatters."""

    sequence_timeout_ms: Optional[int] = DEFAULT_SEQUENCE_TIMEOUT_MS
    on_timeout: TimeoutPolicy = "submit"
    platform: Platform = "linux"
    disable_conflicts: bool = False

    def __post_init__(self) -> None:
        if self.sequence_timeout_ms is not None and self.sequence_timeout_ms < 0:
            raise ValueError("sequence_timeout_ms cannot be negative")
        if self.on_timeout not in _TIMEOUT_POLICIES:
            raise ValueError(f"Unknown timeout policy '{self.on_timeout}'")
        if self.platform not in _PLATFORMS:
            raise ValueError(f"Unknown platform '{self.platform}'")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> EngineSettings:
    """Build settings from ``HOTKEY_ENGINE_*`` variables.

    Unparseable values fall back to the defaults instead of raising, so a bad
    shell export never prevents the engine from starting.
    """

    on_timeout = (env("ON_TIMEOUT", environ=environ) or "submit").strip().lower()
    if on_timeout not in _TIMEOUT_POLICIES:
        on_timeout = "submit"

    platform = (env("PLATFORM", environ=environ) or "").strip().lower()
    if platform in {"darwin", "macos", "osx"}:
        platform = "mac"
    if platform not in _PLATFORMS:
        platform = detect_platform()

    return EngineSettings(
        sequence_timeout_ms=_parse_timeout(
            env("SEQUENCE_TIMEOUT_MS", environ=environ)
        ),
        on_timeout=on_timeout,  # type: ignore[arg-type]
        platform=platform,  # type: ignore[arg-type]
        disable_conflicts=env_flag("DISABLE_CONFLICTS", False, environ=environ),
    )


__all__ = [
    "DEFAULT_SEQUENCE_TIMEOUT_MS",
    "ENV_PREFIX",
    "EngineSettings",
    "Platform",
    "TimeoutPolicy",
    "detect_platform",
    "env",
    "env_flag",
    "load_settings",
]
