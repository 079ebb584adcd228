"""Entry point for all session operations."""

from collections.abc import Mapping
from dataclasses import dataclass

from collab_sessions.adapters.control_plane_client import ControlPlaneClient
from collab_sessions.services.accounts import AccountService
from collab_sessions.services.app_settings import AppSettingsService
from collab_sessions.services.authority import SessionAuthority
from collab_sessions.services.delegation import DelegatingSessionAuthority
from collab_sessions.services.sessions import LocalSessionAuthority


@dataclass(frozen=True)
class BoundSession:
    """The authority chosen for one request and the account acting on it."""

    authority: SessionAuthority
    account_id: int | None


@dataclass
class AccessControlGateway:
    """Routes each operation to the local store or the control plane.

    The control plane is authoritative whenever a client is configured and a
    credential is stored. Local state is left untouched in that mode and
    becomes authoritative again once the credential is cleared.
    """

    local_authority: LocalSessionAuthority
    account_service: AccountService
    app_settings_service: AppSettingsService
    control_plane_client: ControlPlaneClient | None = None

    def select_authority(self) -> SessionAuthority:
        """Return the authority that serves the current call."""
        token = self.app_settings_service.get_control_plane_token()
        if self.control_plane_client is not None and token:
            return DelegatingSessionAuthority(self.control_plane_client, token)
        return self.local_authority

    def is_delegated(self) -> bool:
        return isinstance(self.select_authority(), DelegatingSessionAuthority)

    def bind(self) -> BoundSession:
        """Select the authority once and resolve the acting account for it.

        The account is None while delegating: the control plane identifies
        the caller from the credential.
        """
        authority = self.select_authority()
        if isinstance(authority, DelegatingSessionAuthority):
            return BoundSession(authority=authority, account_id=None)
        return BoundSession(
            authority=authority,
            account_id=self.account_service.resolve_acting_account(),
        )

    def resolve_acting_account(self) -> int | None:
        return self.bind().account_id

    async def list_sessions(self, account_id: int | None) -> dict[str, object]:
        return await self.select_authority().list_sessions(account_id)

    async def create_session(
        self, account_id: int | None, name: str | None = None
    ) -> dict[str, object]:
        return await self.select_authority().create_session(account_id, name)

    async def request_join(
        self, account_id: int | None, join_code: str
    ) -> dict[str, object]:
        return await self.select_authority().request_join(account_id, join_code)

    async def list_pending_requests(self, account_id: int | None) -> dict[str, object]:
        return await self.select_authority().list_pending_requests(account_id)

    async def decide_join_request(
        self,
        account_id: int | None,
        request_id: int,
        decision: str,
        grant: Mapping[str, object] | None = None,
    ) -> dict[str, object]:
        return await self.select_authority().decide_join_request(
            account_id, request_id, decision, grant
        )

    async def list_members(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        return await self.select_authority().list_members(account_id, session_id)

    async def leave_session(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        return await self.select_authority().leave_session(account_id, session_id)

    async def end_session(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        return await self.select_authority().end_session(account_id, session_id)

    async def rename_session(
        self, account_id: int | None, session_id: int, name: str
    ) -> dict[str, object]:
        return await self.select_authority().rename_session(
            account_id, session_id, name
        )

    async def regenerate_join_code(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        return await self.select_authority().regenerate_join_code(
            account_id, session_id
        )

    async def update_member_permissions(
        self,
        account_id: int | None,
        session_id: int,
        member_account_id: int,
        grant: Mapping[str, object] | None,
    ) -> dict[str, object]:
        return await self.select_authority().update_member_permissions(
            account_id, session_id, member_account_id, grant
        )

    async def remove_member(
        self, account_id: int | None, session_id: int, member_account_id: int
    ) -> dict[str, object]:
        return await self.select_authority().remove_member(
            account_id, session_id, member_account_id
        )
