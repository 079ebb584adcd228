"""Shared test fixtures."""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from collab_sessions.adapters.control_plane_client import HttpxControlPlaneClient
from collab_sessions.config import Settings
from collab_sessions.containers import AppContainer
from collab_sessions.domain.errors import JoinCodeTaken
from collab_sessions.domain.models import AccountRecord
from collab_sessions.domain.permissions import PermissionGrant
from collab_sessions.domain.sessions import (
    REQUEST_ACCEPTED,
    REQUEST_PENDING,
    ROLE_MEMBER,
    ROLE_OWNER,
    SESSION_ACTIVE,
    SESSION_ENDED,
    JoinRequestDecision,
    JoinRequestRecord,
    MembershipRecord,
    SessionRecord,
)
from collab_sessions.services.accounts import AccountRepository, AccountService
from collab_sessions.services.app_settings import (
    CONTROL_PLANE_TOKEN_KEY,
    AppSettingsRepository,
    AppSettingsService,
)
from collab_sessions.services.gateway import AccessControlGateway
from collab_sessions.services.sessions import (
    LocalSessionAuthority,
    SessionRepository,
)

_EPOCH = datetime(2025, 1, 1, tzinfo=UTC)


@dataclass
class InMemoryAccountRepository(AccountRepository):
    """In-memory account repository for tests."""

    accounts: dict[int, AccountRecord] = field(default_factory=dict)

    def add(self, account_id: int, display_name: str | None = None) -> AccountRecord:
        account = AccountRecord(id=account_id, display_name=display_name)
        self.accounts[account_id] = account
        return account

    def get_account(self, account_id: int) -> AccountRecord | None:
        return self.accounts.get(account_id)

    def get_first_account(self) -> AccountRecord | None:
        if not self.accounts:
            return None
        return self.accounts[min(self.accounts)]

    def get_accounts(self, account_ids: list[int]) -> dict[int, AccountRecord]:
        return {
            account_id: self.accounts[account_id]
            for account_id in account_ids
            if account_id in self.accounts
        }


@dataclass
class InMemoryAppSettingsRepository(AppSettingsRepository):
    """In-memory key/value settings for tests."""

    values: dict[str, str] = field(default_factory=dict)
    writes: list[tuple[str, str]] = field(default_factory=list)

    def get_value(self, key: str) -> str | None:
        return self.values.get(key)

    def set_value(self, key: str, value: str) -> None:
        self.values[key] = value
        self.writes.append((key, value))

    def delete_value(self, key: str) -> None:
        self.values.pop(key, None)


@dataclass
class ClearedAfterFirstRead(InMemoryAppSettingsRepository):
    """Settings whose control plane credential disappears after one read."""

    token_reads: int = 0

    def get_value(self, key: str) -> str | None:
        if key == CONTROL_PLANE_TOKEN_KEY:
            self.token_reads += 1
            return "remote-token" if self.token_reads == 1 else None
        return super().get_value(key)


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session store; multi-row writes are staged then committed."""

    sessions: dict[int, SessionRecord] = field(default_factory=dict)
    members: dict[tuple[int, int], MembershipRecord] = field(default_factory=dict)
    requests: dict[int, JoinRequestRecord] = field(default_factory=dict)
    fail_membership_writes: bool = False
    concurrent_decision: str | None = None
    join_code_write_conflicts: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)
    _counter: int = 0

    def _next(self) -> tuple[int, datetime]:
        self._counter += 1
        return self._counter, _EPOCH + timedelta(seconds=self._counter)

    def create_session(
        self,
        owner_account_id: int,
        name: str | None,
        join_code: str,
        owner_permissions: PermissionGrant,
    ) -> SessionRecord:
        with self.lock:
            self._claim_join_code()
            session_id, now = self._next()
            session = SessionRecord(
                id=session_id,
                owner_account_id=owner_account_id,
                name=name,
                join_code=join_code,
                status=SESSION_ACTIVE,
                created_at=now,
            )
            owner = MembershipRecord(
                session_id=session_id,
                account_id=owner_account_id,
                role=ROLE_OWNER,
                permissions=owner_permissions,
                created_at=now,
            )
            self.sessions[session_id] = session
            self.members[(session_id, owner_account_id)] = owner
            return session

    def get_session(self, session_id: int) -> SessionRecord | None:
        return self.sessions.get(session_id)

    def find_active_by_join_code(self, join_code: str) -> SessionRecord | None:
        for session in self.sessions.values():
            if session.join_code == join_code and session.status == SESSION_ACTIVE:
                return session
        return None

    def join_code_in_use(self, join_code: str) -> bool:
        return self.find_active_by_join_code(join_code) is not None

    def list_owned_sessions(self, account_id: int) -> list[SessionRecord]:
        owned = [
            session
            for session in self.sessions.values()
            if session.owner_account_id == account_id
            and session.status == SESSION_ACTIVE
        ]
        return sorted(owned, key=lambda session: session.id, reverse=True)

    def list_joined_sessions(self, account_id: int) -> list[SessionRecord]:
        joined = [
            self.sessions[member.session_id]
            for member in self.members.values()
            if member.account_id == account_id
            and member.role == ROLE_MEMBER
            and self.sessions[member.session_id].status == SESSION_ACTIVE
        ]
        return sorted(joined, key=lambda session: session.id, reverse=True)

    def list_members(self, session_id: int) -> list[MembershipRecord]:
        return [
            member
            for member in self.members.values()
            if member.session_id == session_id
        ]

    def get_membership(
        self, session_id: int, account_id: int
    ) -> MembershipRecord | None:
        return self.members.get((session_id, account_id))

    def upsert_membership(
        self,
        session_id: int,
        account_id: int,
        role: str,
        permissions: PermissionGrant,
    ) -> MembershipRecord:
        with self.lock:
            existing = self.members.get((session_id, account_id))
            created_at = existing.created_at if existing else self._next()[1]
            member = MembershipRecord(
                session_id=session_id,
                account_id=account_id,
                role=role,
                permissions=permissions,
                created_at=created_at,
            )
            self.members[(session_id, account_id)] = member
            return member

    def delete_membership(self, session_id: int, account_id: int) -> bool:
        with self.lock:
            return self.members.pop((session_id, account_id), None) is not None

    def create_join_request(
        self, session_id: int, requester_account_id: int
    ) -> JoinRequestRecord:
        with self.lock:
            existing = self.find_pending_join_request(session_id, requester_account_id)
            if existing:
                return existing
            request_id, now = self._next()
            request = JoinRequestRecord(
                id=request_id,
                session_id=session_id,
                requester_account_id=requester_account_id,
                status=REQUEST_PENDING,
                requested_at=now,
            )
            self.requests[request_id] = request
            return request

    def get_join_request(self, request_id: int) -> JoinRequestRecord | None:
        return self.requests.get(request_id)

    def find_pending_join_request(
        self, session_id: int, requester_account_id: int
    ) -> JoinRequestRecord | None:
        for request in self.requests.values():
            if (
                request.session_id == session_id
                and request.requester_account_id == requester_account_id
                and request.status == REQUEST_PENDING
            ):
                return request
        return None

    def list_pending_requests_for_owner(
        self, owner_account_id: int
    ) -> list[JoinRequestRecord]:
        owned = {session.id for session in self.list_owned_sessions(owner_account_id)}
        pending = [
            request
            for request in self.requests.values()
            if request.session_id in owned and request.status == REQUEST_PENDING
        ]
        return sorted(pending, key=lambda request: request.id)

    def decide_join_request(
        self,
        request_id: int,
        status: str,
        decided_by_account_id: int,
        permissions: PermissionGrant | None,
    ) -> JoinRequestDecision | None:
        with self.lock:
            if self.concurrent_decision is not None:
                # Another owner's decision commits first.
                self.requests[request_id] = replace(
                    self.requests[request_id], status=self.concurrent_decision
                )
                self.concurrent_decision = None
            request = self.requests.get(request_id)
            if request is None or request.status != REQUEST_PENDING:
                return None
            _, now = self._next()
            accepted = status == REQUEST_ACCEPTED
            decided = replace(
                request,
                status=status,
                decided_at=now,
                decided_by_account_id=decided_by_account_id,
                granted_permissions=permissions if accepted else None,
            )
            membership = None
            if accepted:
                if self.fail_membership_writes:
                    raise RuntimeError("membership write failed")
                membership = MembershipRecord(
                    session_id=request.session_id,
                    account_id=request.requester_account_id,
                    role=ROLE_MEMBER,
                    permissions=permissions or PermissionGrant(),
                    created_at=now,
                )
            self.requests[request_id] = decided
            if membership:
                self.members[(membership.session_id, membership.account_id)] = (
                    membership
                )
            return JoinRequestDecision(request=decided, membership=membership)

    def rename_session(self, session_id: int, name: str) -> SessionRecord:
        return self._update(session_id, name=name)

    def update_join_code(self, session_id: int, join_code: str) -> SessionRecord:
        with self.lock:
            self._claim_join_code()
        return self._update(session_id, join_code=join_code)

    def _claim_join_code(self) -> None:
        if self.join_code_write_conflicts > 0:
            self.join_code_write_conflicts -= 1
            raise JoinCodeTaken()

    def end_session(self, session_id: int) -> SessionRecord:
        return self._update(session_id, status=SESSION_ENDED, ended_at=self._next()[1])

    def _update(self, session_id: int, **changes: object) -> SessionRecord:
        with self.lock:
            session = replace(self.sessions[session_id], **changes)
            self.sessions[session_id] = session
            return session


@dataclass
class RecordingTransport:
    """Builds an httpx mock transport that records forwarded requests."""

    status_code: int = 200
    body: object = field(default_factory=lambda: {"ok": True})
    error: Callable[[httpx.Request], Exception] | None = None
    requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error(request)
        if isinstance(self.body, str):
            return httpx.Response(self.status_code, text=self.body)
        return httpx.Response(self.status_code, json=self.body)

    def client(self) -> HttpxControlPlaneClient:
        return HttpxControlPlaneClient(
            base_url="https://control.test",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)),
        )


def build_gateway(
    session_repository: InMemorySessionRepository,
    account_repository: InMemoryAccountRepository,
    app_settings_repository: InMemoryAppSettingsRepository,
    control_plane_client: HttpxControlPlaneClient | None = None,
) -> AccessControlGateway:
    app_settings_service = AppSettingsService(app_settings_repository)
    account_service = AccountService(account_repository, app_settings_service)
    return AccessControlGateway(
        local_authority=LocalSessionAuthority(session_repository, account_service),
        account_service=account_service,
        app_settings_service=app_settings_service,
        control_plane_client=control_plane_client,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
    )


@pytest.fixture
def account_repository() -> InMemoryAccountRepository:
    repository = InMemoryAccountRepository()
    repository.add(1, "Alice")
    repository.add(2, "Bob")
    repository.add(3, "Carol")
    return repository


@pytest.fixture
def app_settings_repository() -> InMemoryAppSettingsRepository:
    return InMemoryAppSettingsRepository()


@pytest.fixture
def session_repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def control_plane() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def gateway(
    session_repository: InMemorySessionRepository,
    account_repository: InMemoryAccountRepository,
    app_settings_repository: InMemoryAppSettingsRepository,
    control_plane: RecordingTransport,
) -> AccessControlGateway:
    return build_gateway(
        session_repository,
        account_repository,
        app_settings_repository,
        control_plane_client=control_plane.client(),
    )


@pytest.fixture
def container(settings: Settings, gateway: AccessControlGateway) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        app_settings_service=gateway.app_settings_service,
        account_service=gateway.account_service,
        gateway=gateway,
        close_resources=close_resources,
    )
