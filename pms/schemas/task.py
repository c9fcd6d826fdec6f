"""Task and capability schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TaskCreateRequest(BaseModel):
    project_id: int = Field(..., gt=0)
    title: str = Field(..., min_length=1, max_length=255)
    assignee_id: int = Field(..., gt=0)
    category: str | None = Field(None, max_length=255)
    status: str = "to-do"


class TaskStatusUpdateRequest(BaseModel):
    """Status is validated by the service so unknown values surface as 400."""

    status: str


class TaskRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    title: str
    category: str
    assignee_id: int
    creator_id: int
    status: str
    completed_at: datetime | None = None
    is_active: bool
    created_at: datetime


class CapabilitiesRead(BaseModel):
    """Resolved capabilities of the current user on one task."""

    user_id: int
    task_id: int
    is_global_admin: bool
    is_assignee: bool
    is_category_lead: bool
    is_creator: bool
    is_workspace_admin: bool
    workspace_role: str | None = None
    category_role: str | None = None
    can_open_thread: bool
    can_reply: bool
    can_manage_task: bool
