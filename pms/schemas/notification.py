"""Notification schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    recipient_id: int
    sender_id: int | None = None
    type: str
    title: str
    message: str
    workspace_id: int | None = None
    project_id: int | None = None
    task_id: int | None = None
    comment_id: int | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime


class NotificationPagination(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    unread_count: int


class NotificationListResponse(BaseModel):
    notifications: list[NotificationRead]
    pagination: NotificationPagination


class MarkAllReadResponse(BaseModel):
    updated: int
