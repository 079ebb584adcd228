"""Process-wide settings service."""

from dataclasses import dataclass
from typing import Protocol

ACTIVE_ACCOUNT_KEY = "activeAccountId"
CONTROL_PLANE_TOKEN_KEY = "controlPlaneSessionId"


class AppSettingsRepository(Protocol):
    """Persistence interface for key/value application settings."""

    def get_value(self, key: str) -> str | None:
        """Return the stored value for a key, if present."""

    def set_value(self, key: str, value: str) -> None:
        """Insert or replace the value for a key."""

    def delete_value(self, key: str) -> None:
        """Remove a key if present."""


@dataclass
class AppSettingsService:
    """Service for the active account and control plane credential."""

    repository: AppSettingsRepository

    def get_active_account_id(self) -> int | None:
        """Return the stored active account id, if it parses."""
        raw = self.repository.get_value(ACTIVE_ACCOUNT_KEY)
        if raw is None:
            return None
        cleaned = raw.strip()
        return int(cleaned) if cleaned.isdigit() else None

    def set_active_account_id(self, account_id: int) -> None:
        """Persist the active account id."""
        self.repository.set_value(ACTIVE_ACCOUNT_KEY, str(account_id))

    def get_control_plane_token(self) -> str | None:
        """Return the control plane credential, or None if unset or blank."""
        raw = self.repository.get_value(CONTROL_PLANE_TOKEN_KEY)
        cleaned = (raw or "").strip()
        return cleaned or None

    def set_control_plane_token(self, token: str) -> None:
        """Persist the control plane credential."""
        self.repository.set_value(CONTROL_PLANE_TOKEN_KEY, token.strip())

    def clear_control_plane_token(self) -> None:
        """Remove the control plane credential, returning to local mode."""
        self.repository.delete_value(CONTROL_PLANE_TOKEN_KEY)
