"""Runtime sequence matching, completions and binding capture."""

from .completions import SequenceCompletion, get_sequence_completions
from .matcher import MatcherHooks, MatcherOptions, MatchResult, SequenceMatcher
from .recorder import HotkeyRecorder, RecorderHooks

__all__ = [
    "SequenceCompletion",
    "get_sequence_completions",
    "MatcherHooks",
    "MatcherOptions",
    "MatchResult",
    "SequenceMatcher",
    "HotkeyRecorder",
    "RecorderHooks",
]
