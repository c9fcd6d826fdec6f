"""Authentication schemas."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Email/password credentials. Email is matched case-insensitively."""

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class WorkspaceMembershipRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    workspace_id: int
    role: str


class UserRead(BaseModel):
    """Current user with the workspaces they belong to."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    global_role: str
    current_workspace_id: int | None = None
    workspaces: list[WorkspaceMembershipRead] = Field(
        default_factory=list,
        validation_alias=AliasChoices("workspace_memberships", "workspaces"),
    )


class LoginResponse(BaseModel):
    """Issued JWT plus the signed-in user, so clients need no second call."""

    access_token: str
    token_type: str = "bearer"
    user: UserRead
