"""Task API routes: creation, status updates, capability lookup."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from pms.api.deps import get_notifier, http_error, require_auth
from pms.db.session import get_db
from pms.models.user import User
from pms.schemas.task import (
    CapabilitiesRead,
    TaskCreateRequest,
    TaskRead,
    TaskStatusUpdateRequest,
)
from pms.services import roles
from pms.services.errors import CoreError
from pms.services.membership import resolve_capabilities
from pms.services.notifications import NotificationDispatcher
from pms.services.tasks import (
    build_task_assigned_notifications,
    build_task_status_notifications,
    create_task,
    update_task_status,
)

router = APIRouter()


@router.post("", status_code=201, response_model=TaskRead)
def api_create_task(
    data: TaskCreateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> TaskRead:
    """Create a task and notify its assignee."""
    try:
        task = create_task(
            db,
            user.id,
            data.project_id,
            data.title,
            data.assignee_id,
            category=data.category,
            status=data.status,
        )
    except CoreError as exc:
        raise http_error(exc) from exc

    requests = build_task_assigned_notifications(task, user)
    if requests:
        background_tasks.add_task(notifier.dispatch, requests, user.id)
    return TaskRead.model_validate(task)


@router.patch("/{task_id}/status", response_model=TaskRead)
def api_update_task_status(
    task_id: int,
    data: TaskStatusUpdateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> TaskRead:
    """Update task status (assignee, creator or global admin)."""
    try:
        task = update_task_status(db, user.id, task_id, data.status)
    except CoreError as exc:
        raise http_error(exc) from exc

    requests = build_task_status_notifications(task, user)
    if requests:
        background_tasks.add_task(notifier.dispatch, requests, user.id)
    return TaskRead.model_validate(task)


@router.get("/{task_id}/capabilities", response_model=CapabilitiesRead)
def api_task_capabilities(
    task_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> CapabilitiesRead:
    """What the current user may do on this task's thread."""
    try:
        caps = resolve_capabilities(db, user.id, task_id)
    except CoreError as exc:
        raise http_error(exc) from exc
    return CapabilitiesRead(
        user_id=caps.user_id,
        task_id=caps.task_id,
        is_global_admin=caps.is_global_admin,
        is_assignee=caps.is_assignee,
        is_category_lead=caps.is_category_lead,
        is_creator=caps.is_creator,
        is_workspace_admin=caps.is_workspace_admin,
        workspace_role=caps.workspace_role.value if caps.workspace_role else None,
        category_role=caps.category_role.value if caps.category_role else None,
        can_open_thread=roles.can_open_thread(caps),
        can_reply=roles.can_reply(caps),
        can_manage_task=roles.can_manage_task(caps),
    )
