"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from collab_sessions.adapters.control_plane_client import HttpxControlPlaneClient
from collab_sessions.adapters.supabase_account_repository import (
    SupabaseAccountRepository,
)
from collab_sessions.adapters.supabase_app_settings_repository import (
    SupabaseAppSettingsRepository,
)
from collab_sessions.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from collab_sessions.config import Settings, normalize_base_url
from collab_sessions.services.accounts import AccountService
from collab_sessions.services.app_settings import AppSettingsService
from collab_sessions.services.gateway import AccessControlGateway
from collab_sessions.services.sessions import LocalSessionAuthority


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    app_settings_service: AppSettingsService
    account_service: AccountService
    gateway: AccessControlGateway
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    app_settings_service = AppSettingsService(
        SupabaseAppSettingsRepository(supabase_client)
    )
    account_service = AccountService(
        repository=SupabaseAccountRepository(supabase_client),
        app_settings_service=app_settings_service,
    )
    local_authority = LocalSessionAuthority(
        repository=SupabaseSessionRepository(supabase_client),
        account_service=account_service,
    )
    control_plane_url = normalize_base_url(resolved_settings.control_plane_url)
    control_plane_client = (
        HttpxControlPlaneClient.create(
            control_plane_url,
            timeout=resolved_settings.control_plane_timeout_seconds,
        )
        if control_plane_url
        else None
    )
    gateway = AccessControlGateway(
        local_authority=local_authority,
        account_service=account_service,
        app_settings_service=app_settings_service,
        control_plane_client=control_plane_client,
    )

    async def close_resources() -> None:
        if control_plane_client is not None:
            await control_plane_client.close()

    return AppContainer(
        settings=resolved_settings,
        app_settings_service=app_settings_service,
        account_service=account_service,
        gateway=gateway,
        close_resources=close_resources,
    )
