"""Runtime services: settings, telemetry and timer scheduling."""

from .config import DEFAULT_SEQUENCE_TIMEOUT_MS, EngineSettings, load_settings
from .timers import AsyncioScheduler, DeadlineScheduler, TimerHandle, TimerScheduler

__all__ = [
    "DEFAULT_SEQUENCE_TIMEOUT_MS",
    "EngineSettings",
    "load_settings",
    "AsyncioScheduler",
    "DeadlineScheduler",
    "TimerHandle",
    "TimerScheduler",
]
