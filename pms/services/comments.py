"""Comment thread engine: gated create/edit/delete and thread listings.

A task's thread is EMPTY until it has an active root comment and OPEN after.
Only the assignee may post the root comment that opens an EMPTY thread; every
other create (root on an OPEN thread, or any reply) needs the reply capability
(assignee, global admin or category Lead). Edits and deletes are author-only.

The opening comment is written with is_thread_opener=True. The partial unique
index uq_comments_task_thread_opener rejects a second live opener for the same
task, so two requests that both counted zero roots cannot both open the
thread: the loser's insert fails, is rolled back, and the request is gated
again against the now OPEN thread.

The opposite interleaving also exists: a root create that saw OPEN can land
after the only live root was deleted. Such an insert is flushed, the other
live roots are counted inside the same transaction, and when none remain the
insert is rolled back and gated again against the EMPTY thread.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pms.config import get_settings
from pms.models import Comment, CommentAttachment, Task, User
from pms.schemas.comment import CommentRead, RootCommentRead
from pms.services import roles
from pms.services.attachment_storage import AttachmentStorage
from pms.services.errors import InternalError, NotFoundError, PermissionDenied, ValidationError
from pms.services.membership import resolve_capabilities
from pms.services.notifications import (
    NotificationRequest,
    NotificationType,
    RelatedEntities,
    dedupe_requests,
)
from pms.services.roles import Capabilities

logger = logging.getLogger(__name__)

ATTACHMENT_TYPES = ("image", "document")
UPLOAD_PREFIXES = {
    "image": "/uploads/comments/images/",
    "document": "/uploads/comments/documents/",
}

FIRST_COMMENT_DENIED = "first comment must be from assignee"
COMMENT_DENIED = "Only task assignee, leads, admins, and super admins can comment"
REPLY_DENIED = "Only task assignee, leads, admins, and super admins can reply to comments"


class ThreadState(str, Enum):
    EMPTY = "empty"
    OPEN = "open"


@dataclass(frozen=True)
class AttachmentInput:
    """Metadata of an already-stored upload to attach to a new comment."""

    file_name: str
    file_url: str
    file_type: str
    file_size: int
    mime_type: str


def _clean_content(content: str | None, max_length: int) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Comment content is required")
    if len(text) > max_length:
        raise ValidationError(f"Comment content must be at most {max_length} characters")
    return text


def _stored_name(file_url: str, file_type: str) -> str | None:
    """File name below the upload folder for file_type, or None if file_url is elsewhere."""
    prefix = UPLOAD_PREFIXES[file_type]
    if not file_url.startswith(prefix):
        return None
    name = file_url[len(prefix):]
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        return None
    return name


def _check_attachments(
    db: Session, attachments: Sequence[AttachmentInput] | None, max_count: int
) -> list[AttachmentInput]:
    """Validate attachment metadata against the comment upload layout.

    A file must sit directly in the upload folder of its type and may belong to
    one comment only.
    """
    files = list(attachments or [])
    if len(files) > max_count:
        raise ValidationError(f"At most {max_count} attachments per comment")
    for f in files:
        if f.file_type not in ATTACHMENT_TYPES:
            raise ValidationError(f"Unsupported attachment type: {f.file_type}")
        if not f.file_url or not f.file_name:
            raise ValidationError("Attachment file name and url are required")
        if f.file_size < 0:
            raise ValidationError("Attachment size must not be negative")
        if _stored_name(f.file_url, f.file_type) is None:
            raise ValidationError(
                f"Attachment url must name a file in {UPLOAD_PREFIXES[f.file_type]}"
            )

    urls = [f.file_url for f in files]
    if len(set(urls)) != len(urls):
        raise ValidationError("The same file is attached twice")
    if urls:
        taken = (
            db.query(CommentAttachment.id)
            .filter(CommentAttachment.file_url.in_(urls))
            .first()
        )
        if taken is not None:
            raise ValidationError("Attachment already belongs to another comment")
    return files


def count_active_root_comments(db: Session, task_id: int) -> int:
    return (
        db.query(func.count(Comment.id))
        .filter(
            Comment.task_id == task_id,
            Comment.parent_comment_id.is_(None),
            Comment.is_active == True,
        )
        .scalar()
        or 0
    )


def get_thread_state(db: Session, task_id: int) -> ThreadState:
    if count_active_root_comments(db, task_id) == 0:
        return ThreadState.EMPTY
    return ThreadState.OPEN


def get_comment(db: Session, comment_id: int, *, active_only: bool = True) -> Comment:
    """Load a comment. Soft-deleted comments are NotFound unless active_only=False."""
    comment = db.get(Comment, comment_id)
    if comment is None or (active_only and not comment.is_active):
        raise NotFoundError("comment", "Comment not found")
    return comment


def _load_parent(db: Session, parent_comment_id: int, task_id: int) -> Comment:
    parent = db.get(Comment, parent_comment_id)
    if parent is None or not parent.is_active:
        raise NotFoundError("parent comment", "Parent comment not found")
    if parent.task_id != task_id:
        raise ValidationError("Parent comment belongs to a different task")
    return parent


def _gate_root_comment(db: Session, caps: Capabilities) -> bool:
    """Apply the root-comment rule for the current thread state.

    Returns True when this comment would open the thread.
    """
    if get_thread_state(db, caps.task_id) is ThreadState.EMPTY:
        if not roles.can_open_thread(caps):
            raise PermissionDenied(FIRST_COMMENT_DENIED)
        return True
    if not roles.can_reply(caps):
        raise PermissionDenied(COMMENT_DENIED)
    return False


class _ThreadEmptied(Exception):
    """A non-opening root comment found no other live root at write time."""


def _insert_comment(
    db: Session,
    user_id: int,
    task_id: int,
    content: str,
    parent_comment_id: int | None,
    files: Iterable[AttachmentInput],
    opener: bool,
) -> Comment:
    """Write the comment and its attachments in one commit.

    IntegrityError is re-raised after rollback so the caller can tell an opener
    conflict apart from other storage failures. A root comment that does not
    open the thread raises _ThreadEmptied (after rollback) when it would be the
    only live root.
    """
    comment = Comment(
        task_id=task_id,
        author_id=user_id,
        content=content,
        parent_comment_id=parent_comment_id,
        is_thread_opener=opener,
        is_active=True,
        is_edited=False,
        attachments=[
            CommentAttachment(
                file_name=f.file_name,
                file_url=f.file_url,
                file_type=f.file_type,
                file_size=f.file_size,
                mime_type=f.mime_type,
            )
            for f in files
        ],
    )
    db.add(comment)
    try:
        db.flush()
        if parent_comment_id is None and not opener:
            if count_active_root_comments(db, task_id) <= 1:
                db.rollback()
                raise _ThreadEmptied()
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("comment_persist_failed: task_id=%s error=%s", task_id, exc)
        raise InternalError("Could not save comment") from exc
    db.refresh(comment)
    return comment


def create_comment(
    db: Session,
    user_id: int,
    task_id: int,
    content: str,
    parent_comment_id: int | None = None,
    attachments: Sequence[AttachmentInput] | None = None,
) -> Comment:
    """Create a root comment or a reply on task_id as user_id.

    Raises:
        ValidationError: empty/oversized content, bad attachments, parent on
            another task.
        NotFoundError: task, project, workspace, user or parent comment missing.
        PermissionDenied: thread/reply gate failed (ForbiddenError when the
            user is not in the task's workspace).
        InternalError: the comment could not be stored.
    """
    settings = get_settings()
    text = _clean_content(content, settings.comment_max_length)
    files = _check_attachments(db, attachments, settings.comment_max_attachments)

    caps = resolve_capabilities(db, user_id, task_id)

    if parent_comment_id is not None:
        if not roles.can_reply(caps):
            raise PermissionDenied(REPLY_DENIED)
        _load_parent(db, parent_comment_id, task_id)
        comment = _insert_comment(db, user_id, task_id, text, parent_comment_id, files, False)
    else:
        opener = _gate_root_comment(db, caps)
        try:
            comment = _insert_comment(db, user_id, task_id, text, None, files, opener)
        except (IntegrityError, _ThreadEmptied) as exc:
            if isinstance(exc, IntegrityError) and not opener:
                logger.error("comment_persist_failed: task_id=%s error=%s", task_id, exc)
                raise InternalError("Could not save comment") from exc
            # The thread changed state between our count and our insert
            logger.info(
                "thread_state_conflict: task_id=%s user_id=%s opener=%s",
                task_id,
                user_id,
                opener,
            )
            opener = _gate_root_comment(db, caps)
            try:
                comment = _insert_comment(db, user_id, task_id, text, None, files, opener)
            except (IntegrityError, _ThreadEmptied) as retry_exc:
                logger.error(
                    "comment_persist_failed: task_id=%s error=%r", task_id, retry_exc
                )
                raise InternalError("Could not save comment") from retry_exc

    logger.info(
        "comment_created: comment_id=%s task_id=%s author_id=%s parent_id=%s opener=%s",
        comment.id,
        task_id,
        user_id,
        parent_comment_id,
        comment.is_thread_opener,
    )
    return comment


def edit_comment(db: Session, user_id: int, comment_id: int, content: str) -> Comment:
    """Replace the content of user_id's own comment and mark it edited.

    Only the author may edit; global and category roles grant nothing here.
    """
    text = _clean_content(content, get_settings().comment_max_length)
    comment = get_comment(db, comment_id)
    if comment.author_id != user_id:
        raise PermissionDenied("You can only edit your own comments")

    comment.content = text
    comment.is_edited = True
    comment.edited_at = datetime.now(UTC)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("comment_edit_failed: comment_id=%s error=%s", comment_id, exc)
        raise InternalError("Could not update comment") from exc
    db.refresh(comment)
    logger.info("comment_edited: comment_id=%s author_id=%s", comment_id, user_id)
    return comment


def delete_comment(
    db: Session,
    user_id: int,
    comment_id: int,
    storage: AttachmentStorage | None = None,
) -> None:
    """Soft-delete user_id's own comment, then remove its attachment files.

    Replies are left in place. File removal runs after the commit and its
    failures are only logged.
    """
    comment = get_comment(db, comment_id)
    if comment.author_id != user_id:
        raise PermissionDenied("You can only delete your own comments")

    file_urls = [a.file_url for a in comment.attachments]
    if file_urls:
        # Files also referenced from another comment's attachment row stay on disk
        shared = {
            url
            for (url,) in db.query(CommentAttachment.file_url)
            .filter(
                CommentAttachment.file_url.in_(file_urls),
                CommentAttachment.comment_id != comment.id,
            )
            .all()
        }
        if shared:
            logger.warning(
                "comment_attachments_shared: comment_id=%s kept=%d", comment_id, len(shared)
            )
        file_urls = [url for url in file_urls if url not in shared]
    comment.is_active = False
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("comment_delete_failed: comment_id=%s error=%s", comment_id, exc)
        raise InternalError("Could not delete comment") from exc
    logger.info("comment_deleted: comment_id=%s author_id=%s", comment_id, user_id)

    if storage is not None and file_urls:
        try:
            removed = storage.delete_all(file_urls)
            logger.info(
                "comment_attachments_cleaned: comment_id=%s removed=%d of=%d",
                comment_id,
                removed,
                len(file_urls),
            )
        except Exception:
            logger.exception("comment_attachment_cleanup_failed: comment_id=%s", comment_id)


def _reply_counts(db: Session, parent_ids: list[int]) -> dict[int, int]:
    """Live count of active replies per parent id."""
    if not parent_ids:
        return {}
    rows = (
        db.query(Comment.parent_comment_id, func.count(Comment.id))
        .filter(Comment.parent_comment_id.in_(parent_ids), Comment.is_active == True)
        .group_by(Comment.parent_comment_id)
        .all()
    )
    return {parent_id: count for parent_id, count in rows}


def list_root_comments(db: Session, task_id: int) -> list[RootCommentRead]:
    """Active root comments oldest-first, each with its live reply count."""
    roots = (
        db.query(Comment)
        .filter(
            Comment.task_id == task_id,
            Comment.parent_comment_id.is_(None),
            Comment.is_active == True,
        )
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )
    counts = _reply_counts(db, [c.id for c in roots])

    result: list[RootCommentRead] = []
    for comment in roots:
        reply_count = counts.get(comment.id, 0)
        base = CommentRead.model_validate(comment)
        result.append(
            RootCommentRead(
                **base.model_dump(),
                reply_count=reply_count,
                has_replies=reply_count > 0,
            )
        )
    return result


def list_replies(db: Session, parent_comment_id: int) -> list[Comment]:
    """Active direct replies to parent_comment_id, oldest-first."""
    return (
        db.query(Comment)
        .filter(Comment.parent_comment_id == parent_comment_id, Comment.is_active == True)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )


def build_comment_notifications(
    db: Session, comment: Comment, actor: User
) -> list[NotificationRequest]:
    """Who hears about a new comment.

    Reply: the parent comment's author. Root comment: task assignee and task
    creator. Never the actor, each recipient once.
    """
    task = db.get(Task, comment.task_id)
    if task is None:
        return []
    related = RelatedEntities(
        workspace_id=task.project.workspace_id if task.project else None,
        project_id=task.project_id,
        task_id=task.id,
        comment_id=comment.id,
    )

    requests: list[NotificationRequest] = []
    if comment.parent_comment_id is not None:
        parent = db.get(Comment, comment.parent_comment_id)
        if parent is not None:
            requests.append(
                NotificationRequest(
                    recipient_id=parent.author_id,
                    type=NotificationType.COMMENT_REPLY,
                    title="New reply",
                    message=f'{actor.name} replied to your comment on "{task.title}"',
                    sender_id=actor.id,
                    related=related,
                )
            )
    else:
        for recipient_id in (task.assignee_id, task.creator_id):
            requests.append(
                NotificationRequest(
                    recipient_id=recipient_id,
                    type=NotificationType.TASK_COMMENT,
                    title="New comment",
                    message=f'{actor.name} commented on "{task.title}"',
                    sender_id=actor.id,
                    related=related,
                )
            )
    return dedupe_requests(requests, exclude_user_id=actor.id)
