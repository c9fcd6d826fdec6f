"""Comment schemas for request/response validation."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AuthorRead(BaseModel):
    """Public author fields embedded in comments."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str


class AttachmentIn(BaseModel):
    """Metadata of an uploaded file to attach to a new comment."""

    file_name: str = Field(..., min_length=1, max_length=255)
    file_url: str = Field(..., min_length=1, max_length=1024)
    file_type: Literal["image", "document"]
    file_size: int = Field(..., ge=0)
    mime_type: str = Field(..., min_length=1, max_length=255)


class AttachmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    file_name: str
    file_url: str
    file_type: str
    file_size: int
    mime_type: str


class CommentCreateRequest(BaseModel):
    """Schema for creating a comment or reply.

    Content emptiness and length are checked by the service so that they are
    reported like every other comment validation failure.
    """

    task_id: int = Field(..., gt=0)
    content: str
    parent_comment_id: int | None = Field(None, gt=0)
    attachments: list[AttachmentIn] = Field(default_factory=list)


class CommentUpdateRequest(BaseModel):
    content: str


class CommentRead(BaseModel):
    """Single comment in API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: int
    author: AuthorRead
    content: str
    parent_comment_id: int | None
    attachments: list[AttachmentRead] = Field(default_factory=list)
    is_edited: bool
    edited_at: datetime | None = None
    is_active: bool
    created_at: datetime


class RootCommentRead(CommentRead):
    """Root comment with its live reply count."""

    reply_count: int
    has_replies: bool


class TaskCommentsResponse(BaseModel):
    thread_state: Literal["empty", "open"]
    comments: list[RootCommentRead]


class CommentRepliesResponse(BaseModel):
    replies: list[CommentRead]
