"""Pydantic models for session API payloads."""

from pydantic import BaseModel, ConfigDict, Field


class CreateSessionBody(BaseModel):
    """Create session payload."""

    name: str | None = None


class JoinSessionBody(BaseModel):
    """Join request payload."""

    model_config = ConfigDict(populate_by_name=True)

    join_code: str = Field(default="", alias="joinCode")


class DecideRequestBody(BaseModel):
    """Join request decision payload."""

    decision: str = ""
    permissions: dict[str, object] | None = None


class RenameSessionBody(BaseModel):
    """Rename session payload."""

    name: str = ""


class MemberPermissionsBody(BaseModel):
    """Member grant update payload."""

    permissions: dict[str, object] | None = None


class ActiveAccountBody(BaseModel):
    """Active account selection payload."""

    model_config = ConfigDict(populate_by_name=True)

    account_id: int = Field(alias="accountId")


class ControlPlaneTokenBody(BaseModel):
    """Control plane credential payload."""

    token: str = Field(min_length=1)
