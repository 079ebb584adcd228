"""Interface shared by the local and delegating session authorities."""

from collections.abc import Mapping
from typing import Protocol

SOURCE_LOCAL = "local"
SOURCE_CLOUD = "cloud"


class SessionAuthority(Protocol):
    """The public session operation set.

    Each call returns a JSON-ready payload tagged with a ``source`` key that
    names the authority that produced it. ``account_id`` is the acting
    account; the delegating authority identifies the caller from its
    credential instead and ignores it.
    """

    async def list_sessions(self, account_id: int | None) -> dict[str, object]:
        """Return the owned and joined sessions of the acting account."""

    async def create_session(
        self, account_id: int | None, name: str | None
    ) -> dict[str, object]:
        """Create a session owned by the acting account."""

    async def request_join(
        self, account_id: int | None, join_code: str
    ) -> dict[str, object]:
        """Ask to join the active session that holds a join code."""

    async def list_pending_requests(self, account_id: int | None) -> dict[str, object]:
        """Return pending requests for sessions the acting account owns."""

    async def decide_join_request(
        self,
        account_id: int | None,
        request_id: int,
        decision: str,
        grant: Mapping[str, object] | None,
    ) -> dict[str, object]:
        """Accept or reject a pending join request."""

    async def list_members(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        """Return a session and its members."""

    async def leave_session(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        """Remove the acting account's own membership."""

    async def end_session(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        """End a session owned by the acting account."""

    async def rename_session(
        self, account_id: int | None, session_id: int, name: str
    ) -> dict[str, object]:
        """Rename a session owned by the acting account."""

    async def regenerate_join_code(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        """Replace the join code of a session owned by the acting account."""

    async def update_member_permissions(
        self,
        account_id: int | None,
        session_id: int,
        member_account_id: int,
        grant: Mapping[str, object] | None,
    ) -> dict[str, object]:
        """Replace a member's capability grant."""

    async def remove_member(
        self, account_id: int | None, session_id: int, member_account_id: int
    ) -> dict[str, object]:
        """Remove a member from a session."""
