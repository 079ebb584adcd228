"""Supabase repository for key/value application settings."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from collab_sessions.services.app_settings import AppSettingsRepository


@dataclass
class SupabaseAppSettingsRepository(AppSettingsRepository):
    """Supabase implementation for application settings."""

    client: Client

    def get_value(self, key: str) -> str | None:
        """Return the stored value for a key."""
        response = (
            self.client.table("app_settings")
            .select("value")
            .eq("key", key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        value = response.data[0].get("value")
        return str(value) if value is not None else None

    def set_value(self, key: str, value: str) -> None:
        """Insert or replace a setting."""
        self.client.table("app_settings").upsert(
            {
                "key": key,
                "value": value,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            },
            on_conflict="key",
        ).execute()

    def delete_value(self, key: str) -> None:
        """Remove a setting if present."""
        self.client.table("app_settings").delete().eq("key", key).execute()
