"""Host integrations for the hotkey engine."""

__all__ = ["textual"]
