"""Admin API endpoints with simple token auth."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from collab_sessions.api.models import ActiveAccountBody, ControlPlaneTokenBody

if TYPE_CHECKING:
    from collab_sessions.containers import AppContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/settings", dependencies=[Depends(require_admin)])
async def get_settings(request: Request) -> dict[str, object]:
    """Return the active account and whether delegation is on."""
    container: AppContainer = request.app.state.container
    return {
        "activeAccountId": container.app_settings_service.get_active_account_id(),
        "controlPlaneConfigured": container.gateway.control_plane_client is not None,
        "delegated": container.gateway.is_delegated(),
    }


@router.put("/active-account", dependencies=[Depends(require_admin)])
async def select_active_account(
    body: ActiveAccountBody, request: Request
) -> dict[str, object]:
    """Select the account that local requests act as."""
    container: AppContainer = request.app.state.container
    account = container.account_service.select_account(body.account_id)
    return {"activeAccountId": account.id, "displayName": account.display_name}


@router.put("/control-plane", dependencies=[Depends(require_admin)])
async def set_control_plane_token(
    body: ControlPlaneTokenBody, request: Request
) -> dict[str, object]:
    """Store the control plane credential, switching to delegated mode."""
    container: AppContainer = request.app.state.container
    container.app_settings_service.set_control_plane_token(body.token)
    logger.info("Control plane credential stored")
    return {"delegated": container.gateway.is_delegated()}


@router.delete("/control-plane", dependencies=[Depends(require_admin)])
async def clear_control_plane_token(request: Request) -> dict[str, object]:
    """Remove the control plane credential, returning to local mode."""
    container: AppContainer = request.app.state.container
    container.app_settings_service.clear_control_plane_token()
    logger.info("Control plane credential cleared")
    return {"delegated": container.gateway.is_delegated()}
