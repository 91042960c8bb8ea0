"""Fuzzy search over actions and remote omnibar endpoints."""

from .actions import ActionSearchResult, action_bindings, rank_records, search_actions
from .endpoints import EndpointConfig, EndpointRegistry, OmnibarEntry
from .fuzzy import FuzzyMatchResult, fuzzy_match

__all__ = [
    "ActionSearchResult",
    "action_bindings",
    "rank_records",
    "search_actions",
    "EndpointConfig",
    "EndpointRegistry",
    "OmnibarEntry",
    "FuzzyMatchResult",
    "fuzzy_match",
]
