"""Local session authority and its persistence interface.

Join requests follow a one-way state machine per (session, requester)::

    [none] --request_join--> pending --accept--> accepted
                                     \\--reject--> rejected

Both decided states are terminal. Accepting writes the membership and the
request decision in a single store transaction.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from collab_sessions.domain.errors import (
    AlreadyMember,
    AlreadyOwner,
    CannotModifyOwner,
    JoinCodeExhausted,
    JoinCodeTaken,
    MemberNotFound,
    NoActiveAccount,
    NotMember,
    NotOwner,
    OwnerCannotBeRemoved,
    OwnerMustEndSession,
    RequestAlreadyDecided,
    RequestNotFound,
    SessionNotActive,
    SessionNotFound,
    ValidationError,
)
from collab_sessions.domain.permissions import (
    PermissionGrant,
    default_member_grant,
    default_owner_grant,
    normalize_grant,
    validate_grant,
)
from collab_sessions.domain.sessions import (
    DECISION_ACCEPT,
    DECISION_REJECT,
    REQUEST_ACCEPTED,
    REQUEST_REJECTED,
    ROLE_OWNER,
    JoinRequestDecision,
    JoinRequestRecord,
    MembershipRecord,
    SessionRecord,
)
from collab_sessions.services.accounts import AccountService
from collab_sessions.services.authority import SOURCE_LOCAL
from collab_sessions.services.join_codes import JoinCodeGenerator

logger = logging.getLogger(__name__)

JOIN_CODE_WRITE_ATTEMPTS = 3


class SessionRepository(Protocol):
    """Persistence interface for sessions, memberships and join requests."""

    def create_session(
        self,
        owner_account_id: int,
        name: str | None,
        join_code: str,
        owner_permissions: PermissionGrant,
    ) -> SessionRecord:
        """Create a session and its owner membership atomically.

        Raises ``JoinCodeTaken`` when an active session already holds the code.
        """

    def get_session(self, session_id: int) -> SessionRecord | None:
        """Return a session by id, if present."""

    def find_active_by_join_code(self, join_code: str) -> SessionRecord | None:
        """Return the active session holding a join code, if any."""

    def join_code_in_use(self, join_code: str) -> bool:
        """Return True when an active session holds the join code."""

    def list_owned_sessions(self, account_id: int) -> list[SessionRecord]:
        """Return active sessions owned by an account, newest first."""

    def list_joined_sessions(self, account_id: int) -> list[SessionRecord]:
        """Return active sessions where the account is a non-owner member."""

    def list_members(self, session_id: int) -> list[MembershipRecord]:
        """Return all memberships of a session."""

    def get_membership(
        self, session_id: int, account_id: int
    ) -> MembershipRecord | None:
        """Return one membership, if present."""

    def upsert_membership(
        self,
        session_id: int,
        account_id: int,
        role: str,
        permissions: PermissionGrant,
    ) -> MembershipRecord:
        """Create or replace a membership and return it."""

    def delete_membership(self, session_id: int, account_id: int) -> bool:
        """Delete a membership; return whether one existed."""

    def create_join_request(
        self, session_id: int, requester_account_id: int
    ) -> JoinRequestRecord:
        """Create a pending join request, or return the existing pending one."""

    def get_join_request(self, request_id: int) -> JoinRequestRecord | None:
        """Return a join request by id, if present."""

    def find_pending_join_request(
        self, session_id: int, requester_account_id: int
    ) -> JoinRequestRecord | None:
        """Return the pending request for a requester, if present."""

    def list_pending_requests_for_owner(
        self, owner_account_id: int
    ) -> list[JoinRequestRecord]:
        """Return pending requests on active owned sessions, oldest first."""

    def decide_join_request(
        self,
        request_id: int,
        status: str,
        decided_by_account_id: int,
        permissions: PermissionGrant | None,
    ) -> JoinRequestDecision | None:
        """Decide a pending request in one transaction.

        On acceptance the member row is written together with the request
        update. Returns None, changing nothing, when the request is no
        longer pending.
        """

    def rename_session(self, session_id: int, name: str) -> SessionRecord:
        """Update a session name and return the session."""

    def update_join_code(self, session_id: int, join_code: str) -> SessionRecord:
        """Replace a session join code and return the session.

        Raises ``JoinCodeTaken`` when an active session already holds the code.
        """

    def end_session(self, session_id: int) -> SessionRecord:
        """Mark a session ended and return it."""


@dataclass
class LocalSessionAuthority:
    """Serves session operations from the local store."""

    repository: SessionRepository
    account_service: AccountService
    join_codes: JoinCodeGenerator = field(default_factory=JoinCodeGenerator)

    async def list_sessions(self, account_id: int | None) -> dict[str, object]:
        """Return owned and joined active sessions with an ``isOwner`` flag."""
        actor = _require_actor(account_id)
        owned = self.repository.list_owned_sessions(actor)
        joined = self.repository.list_joined_sessions(actor)
        return {
            "source": SOURCE_LOCAL,
            "owned": [_serialize_session(session, actor) for session in owned],
            "joined": [_serialize_session(session, actor) for session in joined],
        }

    async def create_session(
        self, account_id: int | None, name: str | None
    ) -> dict[str, object]:
        """Create a session with the acting account as owner."""
        actor = _require_actor(account_id)
        cleaned = (name or "").strip() or None
        session = self._write_with_fresh_code(
            lambda join_code: self.repository.create_session(
                owner_account_id=actor,
                name=cleaned,
                join_code=join_code,
                owner_permissions=default_owner_grant(),
            )
        )
        logger.info("Account %s created session %s", actor, session.id)
        return {
            "source": SOURCE_LOCAL,
            "message": "Session created",
            "session": _serialize_session(session, actor),
            "joinCode": session.join_code,
        }

    async def request_join(
        self, account_id: int | None, join_code: str
    ) -> dict[str, object]:
        """Create a pending join request, reusing an existing pending one."""
        actor = _require_actor(account_id)
        code = (join_code or "").strip().upper()
        if not code:
            raise ValidationError("joinCode is required")

        session = self.repository.find_active_by_join_code(code)
        if session is None:
            raise SessionNotFound()
        if session.owner_account_id == actor:
            raise AlreadyOwner()
        if self.repository.get_membership(session.id, actor):
            raise AlreadyMember()

        pending = self.repository.find_pending_join_request(session.id, actor)
        if pending:
            return {
                "source": SOURCE_LOCAL,
                "message": "Join request already pending",
                "request": _serialize_request(pending),
            }

        request = self.repository.create_join_request(session.id, actor)
        logger.info(
            "Account %s requested to join session %s (request %s)",
            actor,
            session.id,
            request.id,
        )
        return {
            "source": SOURCE_LOCAL,
            "message": "Join request submitted",
            "request": _serialize_request(request),
        }

    async def list_pending_requests(self, account_id: int | None) -> dict[str, object]:
        """Return pending requests on the acting account's active sessions."""
        actor = _require_actor(account_id)
        requests = self.repository.list_pending_requests_for_owner(actor)
        sessions: dict[int, SessionRecord | None] = {}
        for request in requests:
            if request.session_id not in sessions:
                sessions[request.session_id] = self.repository.get_session(
                    request.session_id
                )
        names = self.account_service.display_names(
            [request.requester_account_id for request in requests]
        )
        rows = []
        for request in requests:
            session = sessions.get(request.session_id)
            row = _serialize_request(request)
            row["join_code"] = session.join_code if session else None
            row["session_name"] = session.name if session else None
            row["owner_account_id"] = actor
            row["requester_display_name"] = names.get(request.requester_account_id)
            rows.append(row)
        return {"source": SOURCE_LOCAL, "requests": rows}

    async def decide_join_request(
        self,
        account_id: int | None,
        request_id: int,
        decision: str,
        grant: Mapping[str, object] | None,
    ) -> dict[str, object]:
        """Accept or reject a pending request as the session owner."""
        actor = _require_actor(account_id)
        cleaned = (decision or "").strip().lower()
        if cleaned not in {DECISION_ACCEPT, DECISION_REJECT}:
            raise ValidationError("decision must be accept or reject")

        request = self.repository.get_join_request(request_id)
        if request is None:
            raise RequestNotFound()
        if not request.is_pending:
            raise RequestAlreadyDecided()
        session = self.repository.get_session(request.session_id)
        if session is None or not session.is_active:
            raise SessionNotActive()
        if session.owner_account_id != actor:
            raise NotOwner("Only the session owner can decide join requests")

        if cleaned == DECISION_ACCEPT:
            status = REQUEST_ACCEPTED
            permissions = (
                normalize_grant(grant)
                if isinstance(grant, Mapping)
                else default_member_grant()
            )
        else:
            status = REQUEST_REJECTED
            permissions = None

        outcome = self.repository.decide_join_request(
            request_id=request.id,
            status=status,
            decided_by_account_id=actor,
            permissions=permissions,
        )
        if outcome is None:
            raise RequestAlreadyDecided()
        logger.info(
            "Account %s %s join request %s for session %s",
            actor,
            status,
            request.id,
            session.id,
        )
        return {
            "source": SOURCE_LOCAL,
            "message": "Decision saved",
            "request": _serialize_request(outcome.request),
        }

    async def list_members(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        """Return the session and its members to the owner or a member."""
        actor = _require_actor(account_id)
        session = self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFound()
        is_owner = session.owner_account_id == actor
        if not is_owner and self.repository.get_membership(session_id, actor) is None:
            raise NotMember("Not allowed")

        members = sorted(
            self.repository.list_members(session_id),
            key=lambda member: (not member.is_owner, _sort_time(member.created_at)),
        )
        names = self.account_service.display_names(
            [member.account_id for member in members]
        )
        return {
            "source": SOURCE_LOCAL,
            "session": _serialize_session(session, actor),
            "members": [
                _serialize_membership(member, names.get(member.account_id))
                for member in members
            ],
        }

    async def leave_session(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        """Remove the acting account's non-owner membership."""
        actor = _require_actor(account_id)
        session = self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFound()
        if session.owner_account_id == actor:
            raise OwnerMustEndSession()
        if not session.is_active:
            raise SessionNotActive()
        if not self.repository.delete_membership(session_id, actor):
            raise MemberNotFound()
        logger.info("Account %s left session %s", actor, session_id)
        return {"source": SOURCE_LOCAL, "message": "Left session"}

    async def end_session(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        """End a session; ended sessions stay readable but never reopen."""
        actor = _require_actor(account_id)
        session = self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFound()
        if session.owner_account_id != actor:
            raise NotOwner("Only the owner can end a session")
        if not session.is_active:
            raise SessionNotActive()
        self.repository.end_session(session_id)
        logger.info("Account %s ended session %s", actor, session_id)
        return {"source": SOURCE_LOCAL, "message": "Session ended"}

    async def rename_session(
        self, account_id: int | None, session_id: int, name: str
    ) -> dict[str, object]:
        actor = _require_actor(account_id)
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("name is required")
        self._require_owner(session_id, actor)
        updated = self.repository.rename_session(session_id, cleaned)
        return {
            "source": SOURCE_LOCAL,
            "message": "Session updated",
            "session": _serialize_session(updated, actor),
        }

    async def regenerate_join_code(
        self, account_id: int | None, session_id: int
    ) -> dict[str, object]:
        actor = _require_actor(account_id)
        self._require_owner(session_id, actor)
        updated = self._write_with_fresh_code(
            lambda join_code: self.repository.update_join_code(session_id, join_code)
        )
        logger.info("Account %s regenerated join code of session %s", actor, session_id)
        return {
            "source": SOURCE_LOCAL,
            "message": "Join code regenerated",
            "session": _serialize_session(updated, actor),
            "joinCode": updated.join_code,
        }

    async def update_member_permissions(
        self,
        account_id: int | None,
        session_id: int,
        member_account_id: int,
        grant: Mapping[str, object] | None,
    ) -> dict[str, object]:
        """Replace a non-owner member's grant."""
        actor = _require_actor(account_id)
        if not isinstance(grant, Mapping):
            raise ValidationError("permissions is required")
        permissions = validate_grant(grant)
        session = self._require_owner(session_id, actor)
        if member_account_id == session.owner_account_id:
            raise CannotModifyOwner()
        existing = self.repository.get_membership(session_id, member_account_id)
        if existing is None:
            raise MemberNotFound()
        if existing.is_owner:
            raise CannotModifyOwner()

        updated = self.repository.upsert_membership(
            session_id=session_id,
            account_id=member_account_id,
            role=existing.role,
            permissions=permissions,
        )
        return {
            "source": SOURCE_LOCAL,
            "message": "Member permissions updated",
            "member": _serialize_membership(updated),
        }

    async def remove_member(
        self, account_id: int | None, session_id: int, member_account_id: int
    ) -> dict[str, object]:
        actor = _require_actor(account_id)
        session = self._require_owner(session_id, actor)
        if member_account_id == session.owner_account_id:
            raise OwnerCannotBeRemoved()
        existing = self.repository.get_membership(session_id, member_account_id)
        if existing is not None and existing.is_owner:
            raise OwnerCannotBeRemoved()
        if not self.repository.delete_membership(session_id, member_account_id):
            raise MemberNotFound()
        logger.info(
            "Account %s removed account %s from session %s",
            actor,
            member_account_id,
            session_id,
        )
        return {"source": SOURCE_LOCAL, "message": "Member removed"}

    def _write_with_fresh_code(
        self, write: Callable[[str], SessionRecord]
    ) -> SessionRecord:
        """Run a join code write, drawing a new code when one is claimed first."""
        for attempt in range(1, JOIN_CODE_WRITE_ATTEMPTS + 1):
            join_code = self.join_codes.ensure_unique(self.repository)
            try:
                return write(join_code)
            except JoinCodeTaken:
                logger.warning(
                    "Join code %s was claimed concurrently (attempt %s)",
                    join_code,
                    attempt,
                )
        raise JoinCodeExhausted()

    def _require_owner(self, session_id: int, account_id: int) -> SessionRecord:
        session = self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFound()
        if not session.is_active:
            raise SessionNotActive()
        if session.owner_account_id != account_id:
            raise NotOwner()
        return session


def _require_actor(account_id: int | None) -> int:
    if account_id is None:
        raise NoActiveAccount()
    return account_id


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _sort_time(value: datetime | None) -> float:
    return value.timestamp() if value else 0.0


def _serialize_session(
    session: SessionRecord, account_id: int | None = None
) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": session.id,
        "owner_account_id": session.owner_account_id,
        "name": session.name,
        "join_code": session.join_code,
        "status": session.status,
        "created_at": _iso(session.created_at),
        "ended_at": _iso(session.ended_at),
    }
    if account_id is not None:
        payload["isOwner"] = session.owner_account_id == account_id
    return payload


def _serialize_membership(
    member: MembershipRecord, display_name: str | None = None
) -> dict[str, object]:
    return {
        "session_id": member.session_id,
        "account_id": member.account_id,
        "role": member.role,
        "permissions": member.permissions.to_dict(),
        "created_at": _iso(member.created_at),
        "display_name": display_name,
        "isOwner": member.role == ROLE_OWNER,
    }


def _serialize_request(request: JoinRequestRecord) -> dict[str, object]:
    granted = request.granted_permissions
    return {
        "id": request.id,
        "session_id": request.session_id,
        "requester_account_id": request.requester_account_id,
        "status": request.status,
        "requested_at": _iso(request.requested_at),
        "decided_at": _iso(request.decided_at),
        "decided_by_account_id": request.decided_by_account_id,
        "granted_permissions": granted.to_dict() if granted else None,
    }
