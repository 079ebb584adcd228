"""Session authority that forwards every operation to the control plane."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from collab_sessions.adapters.control_plane_client import ControlPlaneClient
from collab_sessions.domain.errors import DelegationFailure
from collab_sessions.services.authority import SOURCE_CLOUD

logger = logging.getLogger(__name__)


@dataclass
class DelegatingSessionAuthority:
    """Relays session operations to a remote authority.

    The local store is never read or written while delegating. Remote
    payloads are returned as-is apart from the ``source`` tag.
    """

    client: ControlPlaneClient
    token: str

    async def list_sessions(self, account_id: int | None) -> dict[str, object]:
        return await self._forward("GET", "")

    async def create_session(
        self, account_id: int | None, name: str | None
    ) -> dict[str, object]:
        payload: dict[str, object] = {} if name is None else {"name": name}
        return await self._forward("POST", "", payload)

    async def request_join(
        self, account_id: int | None, join_code: str
    ) -> dict[str, object]:
        return await self._forward("POST", "/join", {"joinCode": join_code})

    async def list_pending_requests(self, account_id: int | None) -> dict[str, object]:
        return await self._forward("GET", "/requests/pending")

    async def decide_join_request(
        self,
        account_id: int | None,
        request_id: int,
        decision: str,
        grant: Mapping[str, object] | None,
    ) -> dict[str, object]:
        payload: dict[str, object] = {
            "decision": decision,
            "permissions": dict(grant) if isinstance(grant, Mapping) else grant,
        }
        return await self._forward("POST", f"/requests/{request_id}/decide", payload)

    async def list_members(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        return await self._forward("GET", f"/{session_id}/members")

    async def leave_session(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        return await self._forward("POST", f"/{session_id}/leave")

    async def end_session(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        return await self._forward("POST", f"/{session_id}/end")

    async def rename_session(
        self, account_id: int | None, session_id: int, name: str
    ) -> dict[str, object]:
        return await self._forward("PUT", f"/{session_id}", {"name": name})

    async def regenerate_join_code(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        return await self._forward("POST", f"/{session_id}/join-code/regenerate")

    async def update_member_permissions(
        self,
        account_id: int | None,
        session_id: int,
        member_account_id: int,
        grant: Mapping[str, object] | None,
    ) -> dict[str, object]:
        payload: dict[str, object] = {
            "permissions": dict(grant) if isinstance(grant, Mapping) else grant
        }
        return await self._forward(
            "PUT", f"/{session_id}/members/{member_account_id}", payload
        )

    async def remove_member(
        self, account_id: int | None, session_id: int, member_account_id: int
    ) -> dict[str, object]:
        return await self._forward(
            "DELETE", f"/{session_id}/members/{member_account_id}"
        )

    async def _forward(
        self, method: str, path: str, payload: dict[str, object] | None = None
    ) -> dict[str, object]:
        logger.info("Proxying %s %s to control plane", method, path or "/")
        response = await self.client.send(method, path, self.token, payload)
        if response.status_code >= 400:
            logger.warning(
                "Control plane rejected %s %s with status %s",
                method,
                path or "/",
                response.status_code,
            )
            raise DelegationFailure(response.status_code, response.body)
        body = response.body
        result = dict(body) if isinstance(body, dict) else {"data": body}
        result.setdefault("source", SOURCE_CLOUD)
        return result
