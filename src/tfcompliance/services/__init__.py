"""Service layer helpers (settings persistence and secrets)."""

from .settings import SecretVault, Settings, SettingsStore

__all__ = ["SecretVault", "Settings", "SettingsStore"]
