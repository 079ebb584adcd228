"""Domain models for collaborative sessions."""

from dataclasses import dataclass
from datetime import datetime

from collab_sessions.domain.permissions import PermissionGrant

SESSION_ACTIVE = "active"
SESSION_ENDED = "ended"

ROLE_OWNER = "owner"
ROLE_MEMBER = "member"

REQUEST_PENDING = "pending"
REQUEST_ACCEPTED = "accepted"
REQUEST_REJECTED = "rejected"

DECISION_ACCEPT = "accept"
DECISION_REJECT = "reject"


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted collaborative session."""

    id: int
    owner_account_id: int
    name: str | None
    join_code: str
    status: str
    created_at: datetime | None
    ended_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == SESSION_ACTIVE


@dataclass(frozen=True)
class MembershipRecord:
    """An account's standing within a session."""

    session_id: int
    account_id: int
    role: str
    permissions: PermissionGrant
    created_at: datetime | None = None

    @property
    def is_owner(self) -> bool:
        return self.role == ROLE_OWNER


@dataclass(frozen=True)
class JoinRequestRecord:
    """A request to join a session, decided once by the owner."""

    id: int
    session_id: int
    requester_account_id: int
    status: str
    requested_at: datetime | None
    decided_at: datetime | None = None
    decided_by_account_id: int | None = None
    granted_permissions: PermissionGrant | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == REQUEST_PENDING


@dataclass(frozen=True)
class JoinRequestDecision:
    """Outcome of deciding a join request in one transaction."""

    request: JoinRequestRecord
    membership: MembershipRecord | None
