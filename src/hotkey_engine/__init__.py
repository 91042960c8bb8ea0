"""UI-agnostic keyboard binding engine."""

__all__ = [
    "adapters",
    "keymaps",
    "matching",
    "runtime",
    "search",
]

__version__ = "0.1.0"
