"""Comment API routes: task threads, replies, edit and soft-delete."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from pms.api.deps import get_notifier, get_storage, http_error, require_auth
from pms.db.session import get_db
from pms.models.user import User
from pms.schemas.comment import (
    CommentCreateRequest,
    CommentRead,
    CommentRepliesResponse,
    CommentUpdateRequest,
    TaskCommentsResponse,
)
from pms.services.attachment_storage import AttachmentStorage
from pms.services.comments import (
    AttachmentInput,
    build_comment_notifications,
    create_comment,
    delete_comment,
    edit_comment,
    get_comment,
    get_thread_state,
    list_replies,
    list_root_comments,
)
from pms.services.errors import CoreError
from pms.services.membership import resolve_capabilities
from pms.services.notifications import NotificationDispatcher

router = APIRouter()


@router.post("", status_code=201, response_model=CommentRead)
def api_create_comment(
    data: CommentCreateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> CommentRead:
    """Create a root comment or a reply; notifies after the response is sent."""
    attachments = [AttachmentInput(**a.model_dump()) for a in data.attachments]
    try:
        comment = create_comment(
            db,
            user.id,
            data.task_id,
            data.content,
            parent_comment_id=data.parent_comment_id,
            attachments=attachments,
        )
    except CoreError as exc:
        raise http_error(exc) from exc

    requests = build_comment_notifications(db, comment, user)
    if requests:
        background_tasks.add_task(notifier.dispatch, requests, user.id)
    return CommentRead.model_validate(comment)


@router.get("/task/{task_id}", response_model=TaskCommentsResponse)
def api_list_task_comments(
    task_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> TaskCommentsResponse:
    """Root comments of a task, oldest first, with reply counts."""
    try:
        resolve_capabilities(db, user.id, task_id)
    except CoreError as exc:
        raise http_error(exc) from exc
    return TaskCommentsResponse(
        thread_state=get_thread_state(db, task_id).value,
        comments=list_root_comments(db, task_id),
    )


@router.get("/{comment_id}/replies", response_model=CommentRepliesResponse)
def api_list_replies(
    comment_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> CommentRepliesResponse:
    """Active replies to a comment. Works for a soft-deleted parent too."""
    try:
        parent = get_comment(db, comment_id, active_only=False)
        resolve_capabilities(db, user.id, parent.task_id)
    except CoreError as exc:
        raise http_error(exc) from exc
    replies = list_replies(db, comment_id)
    return CommentRepliesResponse(replies=[CommentRead.model_validate(r) for r in replies])


@router.put("/{comment_id}", response_model=CommentRead)
def api_edit_comment(
    comment_id: int,
    data: CommentUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> CommentRead:
    """Edit own comment."""
    try:
        comment = edit_comment(db, user.id, comment_id, data.content)
    except CoreError as exc:
        raise http_error(exc) from exc
    return CommentRead.model_validate(comment)


@router.delete("/{comment_id}", status_code=204)
def api_delete_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
    storage: AttachmentStorage = Depends(get_storage),
) -> None:
    """Soft-delete own comment and remove its attachment files."""
    try:
        delete_comment(db, user.id, comment_id, storage=storage)
    except CoreError as exc:
        raise http_error(exc) from exc
