"""Control plane HTTP client."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from collab_sessions.domain.errors import DelegationUnavailable

SESSIONS_PATH = "/api/app/sessions"


@dataclass(frozen=True)
class ControlPlaneResponse:
    """Raw status and decoded body of a control plane reply."""

    status_code: int
    body: object


class ControlPlaneClient(Protocol):
    """Interface for forwarding session calls to the control plane."""

    async def send(
        self,
        method: str,
        path: str,
        token: str,
        payload: dict[str, object] | None = None,
    ) -> ControlPlaneResponse:
        """Send a session call and return the reply without judging it."""


@dataclass
class HttpxControlPlaneClient:
    """HTTPX-backed control plane client."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 20.0

    @classmethod
    def create(cls, base_url: str, timeout: float = 20.0) -> "HttpxControlPlaneClient":
        """Create a control plane client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def send(
        self,
        method: str,
        path: str,
        token: str,
        payload: dict[str, object] | None = None,
    ) -> ControlPlaneResponse:
        """Forward a session call; transport failures raise DelegationUnavailable."""
        url = f"{self.base_url}{SESSIONS_PATH}{path}"
        try:
            response = await self.http_client.request(
                method,
                url,
                headers={"Authorization": f"Bearer {token}"},
                json=payload,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise DelegationUnavailable("Control plane request timed out") from exc
        except httpx.TransportError as exc:
            raise DelegationUnavailable(str(exc) or None) from exc
        return ControlPlaneResponse(
            status_code=response.status_code, body=_decode_body(response)
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _decode_body(response: httpx.Response) -> object:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
