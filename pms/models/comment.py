"""Comment model: threaded task discussion (soft-deletable) and its attachments."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pms.db.session import Base

if TYPE_CHECKING:
    from pms.models.task import Task
    from pms.models.user import User


class Comment(Base):
    """Comment on a task. parent_comment_id NULL means a root comment.

    The root comment that opens an empty thread carries is_thread_opener=True;
    the partial unique index admits one live opener per task, which is what
    makes the assignee-only first comment safe under concurrent requests.
    """

    __tablename__ = "comments"

    __table_args__ = (
        Index(
            "uq_comments_task_thread_opener",
            "task_id",
            unique=True,
            postgresql_where=text("is_thread_opener = true AND is_active = true"),
            sqlite_where=text("is_thread_opener = 1 AND is_active = 1"),
        ),
        Index("ix_comments_task_created", "task_id", "created_at"),
        Index("ix_comments_parent", "parent_comment_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    parent_comment_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("comments.id", ondelete="SET NULL"), nullable=True
    )
    is_thread_opener: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    task: Mapped[Task] = relationship("Task")
    author: Mapped[User] = relationship("User")
    attachments: Mapped[list[CommentAttachment]] = relationship(
        "CommentAttachment",
        back_populates="comment",
        cascade="all, delete-orphan",
        order_by="CommentAttachment.id",
    )


class CommentAttachment(Base):
    """File attached to a comment. file_url is relative to the upload root."""

    __tablename__ = "comment_attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    comment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_type: Mapped[str] = mapped_column(String(16), nullable=False)  # image | document
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)

    comment: Mapped[Comment] = relationship("Comment", back_populates="attachments")
