"""Supabase-backed session repository."""

from dataclasses import dataclass
from datetime import UTC, datetime

from postgrest.exceptions import APIError
from supabase import Client

from collab_sessions.domain.errors import JoinCodeTaken
from collab_sessions.domain.permissions import PermissionGrant, normalize_grant
from collab_sessions.domain.sessions import (
    REQUEST_PENDING,
    ROLE_MEMBER,
    SESSION_ACTIVE,
    SESSION_ENDED,
    JoinRequestDecision,
    JoinRequestRecord,
    MembershipRecord,
    SessionRecord,
)
from collab_sessions.services.sessions import SessionRepository

_SESSION_COLUMNS = "id, owner_account_id, name, join_code, status, created_at, ended_at"
_MEMBER_COLUMNS = "session_id, account_id, role, permissions_json, created_at"
_REQUEST_COLUMNS = (
    "id, session_id, requester_account_id, status, requested_at, decided_at, "
    "decided_by_account_id, permissions_json"
)
_UNIQUE_VIOLATION = "23505"


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for sessions, memberships and join requests.

    Multi-row writes go through Postgres functions so each one commits or
    rolls back as a unit.
    """

    client: Client

    def create_session(
        self,
        owner_account_id: int,
        name: str | None,
        join_code: str,
        owner_permissions: PermissionGrant,
    ) -> SessionRecord:
        """Create the session and owner membership in one function call."""
        try:
            response = self.client.rpc(
                "create_session_with_owner",
                {
                    "p_owner_account_id": owner_account_id,
                    "p_name": name,
                    "p_join_code": join_code,
                    "p_owner_permissions": owner_permissions.to_dict(),
                },
            ).execute()
        except APIError as exc:
            _raise_if_unique_violation(exc)
            raise
        row = _first_row(response.data)
        if row is None:
            raise RuntimeError("Failed to create session")
        return _session_from_row(row)

    def get_session(self, session_id: int) -> SessionRecord | None:
        """Return a session by id, if present."""
        response = (
            self.client.table("sessions")
            .select(_SESSION_COLUMNS)
            .eq("id", session_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _session_from_row(response.data[0])

    def find_active_by_join_code(self, join_code: str) -> SessionRecord | None:
        """Return the active session holding a join code, if any."""
        response = (
            self.client.table("sessions")
            .select(_SESSION_COLUMNS)
            .eq("join_code", join_code)
            .eq("status", SESSION_ACTIVE)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _session_from_row(response.data[0])

    def join_code_in_use(self, join_code: str) -> bool:
        """Return True when an active session holds the join code."""
        return self.find_active_by_join_code(join_code) is not None

    def list_owned_sessions(self, account_id: int) -> list[SessionRecord]:
        """Return active sessions owned by an account, newest first."""
        response = (
            self.client.table("sessions")
            .select(_SESSION_COLUMNS)
            .eq("owner_account_id", account_id)
            .eq("status", SESSION_ACTIVE)
            .order("created_at", desc=True)
            .execute()
        )
        return [_session_from_row(row) for row in response.data or []]

    def list_joined_sessions(self, account_id: int) -> list[SessionRecord]:
        """Return active sessions where the account holds a member role."""
        memberships = (
            self.client.table("session_members")
            .select("session_id")
            .eq("account_id", account_id)
            .eq("role", ROLE_MEMBER)
            .execute()
        )
        session_ids = [row["session_id"] for row in memberships.data or []]
        if not session_ids:
            return []
        response = (
            self.client.table("sessions")
            .select(_SESSION_COLUMNS)
            .in_("id", session_ids)
            .eq("status", SESSION_ACTIVE)
            .order("created_at", desc=True)
            .execute()
        )
        return [_session_from_row(row) for row in response.data or []]

    def list_members(self, session_id: int) -> list[MembershipRecord]:
        """Return all memberships of a session in join order."""
        response = (
            self.client.table("session_members")
            .select(_MEMBER_COLUMNS)
            .eq("session_id", session_id)
            .order("created_at")
            .execute()
        )
        return [_membership_from_row(row) for row in response.data or []]

    def get_membership(
        self, session_id: int, account_id: int
    ) -> MembershipRecord | None:
        """Return one membership, if present."""
        response = (
            self.client.table("session_members")
            .select(_MEMBER_COLUMNS)
            .eq("session_id", session_id)
            .eq("account_id", account_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _membership_from_row(response.data[0])

    def upsert_membership(
        self,
        session_id: int,
        account_id: int,
        role: str,
        permissions: PermissionGrant,
    ) -> MembershipRecord:
        """Create or replace a membership row."""
        response = (
            self.client.table("session_members")
            .upsert(
                {
                    "session_id": session_id,
                    "account_id": account_id,
                    "role": role,
                    "permissions_json": permissions.to_dict(),
                },
                on_conflict="session_id,account_id",
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to save session member")
        return _membership_from_row(response.data[0])

    def delete_membership(self, session_id: int, account_id: int) -> bool:
        """Delete a membership; return whether a row was removed."""
        response = (
            self.client.table("session_members")
            .delete()
            .eq("session_id", session_id)
            .eq("account_id", account_id)
            .execute()
        )
        return bool(response.data)

    def create_join_request(
        self, session_id: int, requester_account_id: int
    ) -> JoinRequestRecord:
        """Insert a pending request; a concurrent duplicate returns the winner."""
        try:
            response = (
                self.client.table("session_join_requests")
                .insert(
                    {
                        "session_id": session_id,
                        "requester_account_id": requester_account_id,
                        "status": REQUEST_PENDING,
                    }
                )
                .execute()
            )
        except APIError as exc:
            if exc.code != _UNIQUE_VIOLATION:
                raise
            existing = self.find_pending_join_request(
                session_id, requester_account_id
            )
            if existing is None:
                raise
            return existing
        if not response.data:
            raise RuntimeError("Failed to create join request")
        return _request_from_row(response.data[0])

    def get_join_request(self, request_id: int) -> JoinRequestRecord | None:
        """Return a join request by id, if present."""
        response = (
            self.client.table("session_join_requests")
            .select(_REQUEST_COLUMNS)
            .eq("id", request_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _request_from_row(response.data[0])

    def find_pending_join_request(
        self, session_id: int, requester_account_id: int
    ) -> JoinRequestRecord | None:
        """Return the pending request for a requester, if present."""
        response = (
            self.client.table("session_join_requests")
            .select(_REQUEST_COLUMNS)
            .eq("session_id", session_id)
            .eq("requester_account_id", requester_account_id)
            .eq("status", REQUEST_PENDING)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _request_from_row(response.data[0])

    def list_pending_requests_for_owner(
        self, owner_account_id: int
    ) -> list[JoinRequestRecord]:
        """Return pending requests across the owner's active sessions."""
        session_ids = [
            session.id for session in self.list_owned_sessions(owner_account_id)
        ]
        if not session_ids:
            return []
        response = (
            self.client.table("session_join_requests")
            .select(_REQUEST_COLUMNS)
            .in_("session_id", session_ids)
            .eq("status", REQUEST_PENDING)
            .order("requested_at")
            .execute()
        )
        return [_request_from_row(row) for row in response.data or []]

    def decide_join_request(
        self,
        request_id: int,
        status: str,
        decided_by_account_id: int,
        permissions: PermissionGrant | None,
    ) -> JoinRequestDecision | None:
        """Decide a request and write the membership in one function call."""
        response = self.client.rpc(
            "decide_session_join_request",
            {
                "p_request_id": request_id,
                "p_status": status,
                "p_decided_by": decided_by_account_id,
                "p_permissions": permissions.to_dict() if permissions else None,
            },
        ).execute()
        payload = _first_row(response.data)
        if not payload or not payload.get("request"):
            return None
        membership = payload.get("membership")
        return JoinRequestDecision(
            request=_request_from_row(payload["request"]),
            membership=_membership_from_row(membership) if membership else None,
        )

    def rename_session(self, session_id: int, name: str) -> SessionRecord:
        """Update the session name."""
        return self._update_session(session_id, {"name": name})

    def update_join_code(self, session_id: int, join_code: str) -> SessionRecord:
        """Replace the session join code."""
        try:
            return self._update_session(session_id, {"join_code": join_code})
        except APIError as exc:
            _raise_if_unique_violation(exc)
            raise

    def end_session(self, session_id: int) -> SessionRecord:
        """Mark the session ended."""
        return self._update_session(
            session_id,
            {"status": SESSION_ENDED, "ended_at": datetime.now(tz=UTC).isoformat()},
        )

    def _update_session(
        self, session_id: int, values: dict[str, object]
    ) -> SessionRecord:
        response = (
            self.client.table("sessions")
            .update(values)
            .eq("id", session_id)
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to update session")
        return _session_from_row(response.data[0])


def _raise_if_unique_violation(exc: APIError) -> None:
    if exc.code == _UNIQUE_VIOLATION:
        raise JoinCodeTaken() from exc


def _first_row(data: object) -> dict[str, object] | None:
    if isinstance(data, list):
        return data[0] if data else None
    if isinstance(data, dict):
        return data
    return None


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None


def _session_from_row(row: dict[str, object]) -> SessionRecord:
    return SessionRecord(
        id=int(row["id"]),
        owner_account_id=int(row["owner_account_id"]),
        name=row.get("name"),
        join_code=row["join_code"],
        status=row["status"],
        created_at=_parse_datetime(row.get("created_at")),
        ended_at=_parse_datetime(row.get("ended_at")),
    )


def _membership_from_row(row: dict[str, object]) -> MembershipRecord:
    return MembershipRecord(
        session_id=int(row["session_id"]),
        account_id=int(row["account_id"]),
        role=row["role"],
        permissions=normalize_grant(row.get("permissions_json")),
        created_at=_parse_datetime(row.get("created_at")),
    )


def _request_from_row(row: dict[str, object]) -> JoinRequestRecord:
    decided_by = row.get("decided_by_account_id")
    granted = row.get("permissions_json")
    return JoinRequestRecord(
        id=int(row["id"]),
        session_id=int(row["session_id"]),
        requester_account_id=int(row["requester_account_id"]),
        status=row["status"],
        requested_at=_parse_datetime(row.get("requested_at")),
        decided_at=_parse_datetime(row.get("decided_at")),
        decided_by_account_id=int(decided_by) if decided_by is not None else None,
        granted_permissions=normalize_grant(granted) if granted else None,
    )
