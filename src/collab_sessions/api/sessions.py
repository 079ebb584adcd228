"""Session API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from collab_sessions.api.models import (
    CreateSessionBody,
    DecideRequestBody,
    JoinSessionBody,
    MemberPermissionsBody,
    RenameSessionBody,
)
from collab_sessions.services.gateway import BoundSession

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


async def bound_session(request: Request) -> BoundSession:
    """Pick the authority and acting account once per request."""
    return request.app.state.container.gateway.bind()


@router.get("")
async def list_sessions(
    session: BoundSession = Depends(bound_session),
) -> dict[str, object]:
    """Return owned and joined sessions."""
    return await session.authority.list_sessions(session.account_id)


@router.post("")
async def create_session(
    body: CreateSessionBody | None = None,
    session: BoundSession = Depends(bound_session),
) -> dict[str, object]:
    """Create a session owned by the acting account."""
    name = body.name if body else None
    return await session.authority.create_session(session.account_id, name)


@router.post("/join")
async def request_join(
    body: JoinSessionBody,
    session: BoundSession = Depends(bound_session),
) -> dict[str, object]:
    """Submit a join request for a join code."""
    return await session.authority.request_join(session.account_id, body.join_code)


@router.get("/requests/pending")
async def list_pending_requests(
    session: BoundSession = Depends(bound_session),
) -> dict[str, object]:
    """Return pending requests on owned sessions."""
    return await session.authority.list_pending_requests(session.account_id)


@router.post("/requests/{request_id}/decide")
async def decide_join_request(
    request_id: int,
    body: DecideRequestBody,
    session: BoundSession = Depends(bound_session),
) -> dict[str, object]:
    """Accept or reject a join request."""
    return await session.authority.decide_join_request(
        session.account_id, request_id, body.decision, body.permissions
    )


@router.get("/{session_id}/members")
async def list_members(
    session_id: int,
    session: BoundSession = Depends(bound_session),
) -> dict[str, object]:
    """Return a session with its members."""
    return await session.authority.list_members(session.account_id, session_id)


@router.post("/{session_id}/leave")
async def leave_session(
    session_id: int,
    session: BoundSession = Depends(bound_session),
) -> dict[str, object]:
    """Leave a joined session."""
    return await session.authority.leave_session(session.account_id, session_id)


@router.post("/{session_id}/end")
async def end_session(
    session_id: int,
    session: BoundSession = Depends(bound_session),
) -> dict[str, object]:
    """End an owned session."""
    return await session.authority.end_session(session.account_id, session_id)


@router.put("/{session_id}")
async def rename_session(
    session_id: int,
    body: RenameSessionBody,
    session: BoundSession = Depends(bound_session),
) -> dict[str, object]:
    """Rename an owned session."""
    return await session.authority.rename_session(
        session.account_id, session_id, body.name
    )


@router.post("/{session_id}/join-code/regenerate")
async def regenerate_join_code(
    session_id: int,
    session: BoundSession = Depends(bound_session),
) -> dict[str, object]:
    """Issue a new join code for an owned session."""
    return await session.authority.regenerate_join_code(
        session.account_id, session_id
    )


@router.put("/{session_id}/members/{member_account_id}")
async def update_member_permissions(
    session_id: int,
    member_account_id: int,
    body: MemberPermissionsBody,
    session: BoundSession = Depends(bound_session),
) -> dict[str, object]:
    """Replace a member's capability grant."""
    return await session.authority.update_member_permissions(
        session.account_id, session_id, member_account_id, body.permissions
    )


@router.delete("/{session_id}/members/{member_account_id}")
async def remove_member(
    session_id: int,
    member_account_id: int,
    session: BoundSession = Depends(bound_session),
) -> dict[str, object]:
    """Remove a member from an owned session."""
    return await session.authority.remove_member(
        session.account_id, session_id, member_account_id
    )
