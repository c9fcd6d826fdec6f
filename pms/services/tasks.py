"""Task creation and status updates, with their notifications.

Task-side permissions are wider than comment permissions: the task creator may
update a task it does not own, while creating comments needs assignee, Lead or
global admin (see roles.can_manage_task vs roles.can_reply).
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pms.models import Project, Task, User
from pms.services import roles
from pms.services.errors import InternalError, NotFoundError, PermissionDenied, ValidationError
from pms.services.membership import resolve_capabilities
from pms.services.notifications import (
    NotificationRequest,
    NotificationType,
    RelatedEntities,
    dedupe_requests,
)
from pms.services.roles import GlobalRole

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    TODO = "to-do"
    IN_PROGRESS = "in-progress"
    DONE = "done"


def _parse_status(value: str) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise ValidationError("Invalid status") from None


def _commit(db: Session, event: str, **fields) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("%s_failed: %s error=%s", event, fields, exc)
        raise InternalError("Could not save task") from exc


def create_task(
    db: Session,
    actor_id: int,
    project_id: int,
    title: str,
    assignee_id: int,
    category: str | None = None,
    status: str = TaskStatus.TODO.value,
) -> Task:
    """Create a task in one of the project's categories.

    The category defaults to the actor's first category in the project and must
    name an existing category. Non-admin actors must belong to that category and
    may only assign to its members; global admins may assign to anyone.
    """
    title = (title or "").strip()
    if not title:
        raise ValidationError("Task title is required")
    task_status = _parse_status(status)

    project = db.get(Project, project_id)
    if project is None or not project.is_active:
        raise NotFoundError("project", "Project not found")

    actor = db.get(User, actor_id)
    if actor is None:
        raise NotFoundError("user", "User not found")
    actor_is_admin = roles.is_global_admin(GlobalRole.parse(actor.global_role))

    actor_categories = [
        cat for cat in project.categories if any(m.user_id == actor_id for m in cat.members)
    ]
    if not actor_categories and not actor_is_admin:
        raise PermissionDenied("You are not a member of this project")

    if category is None:
        if not actor_categories:
            raise ValidationError("Category is required")
        category = actor_categories[0].name

    target = next((cat for cat in project.categories if cat.name == category), None)
    if target is None:
        raise ValidationError(f"Unknown category: {category}")
    if not actor_is_admin and target not in actor_categories:
        raise PermissionDenied("You can only create tasks in your own category")

    assignee = db.get(User, assignee_id)
    if assignee is None:
        raise NotFoundError("assignee", "Assignee not found")
    if not actor_is_admin and not any(m.user_id == assignee_id for m in target.members):
        raise PermissionDenied("You can only assign tasks to members of your category")

    task = Task(
        project_id=project.id,
        title=title,
        category=target.name,
        assignee_id=assignee_id,
        creator_id=actor_id,
        status=task_status.value,
        completed_at=datetime.now(UTC) if task_status is TaskStatus.DONE else None,
        is_active=True,
    )
    db.add(task)
    _commit(db, "task_create", project_id=project_id)
    db.refresh(task)
    logger.info(
        "task_created: task_id=%s project_id=%s assignee_id=%s creator_id=%s",
        task.id,
        project_id,
        assignee_id,
        actor_id,
    )
    return task


def update_task_status(db: Session, actor_id: int, task_id: int, status: str) -> Task:
    """Change a task's status as assignee, creator or global admin."""
    new_status = _parse_status(status)
    caps = resolve_capabilities(db, actor_id, task_id)
    if not roles.can_manage_task(caps):
        raise PermissionDenied("Permission denied to update this task")

    task = db.get(Task, task_id)
    task.status = new_status.value
    if new_status is TaskStatus.DONE:
        task.completed_at = datetime.now(UTC)
    _commit(db, "task_status_update", task_id=task_id)
    db.refresh(task)
    logger.info(
        "task_status_updated: task_id=%s status=%s actor_id=%s", task_id, task.status, actor_id
    )
    return task


def _related(task: Task) -> RelatedEntities:
    return RelatedEntities(
        workspace_id=task.project.workspace_id if task.project else None,
        project_id=task.project_id,
        task_id=task.id,
    )


def build_task_assigned_notifications(task: Task, actor: User) -> list[NotificationRequest]:
    """Notify the assignee of a new task, unless they created it themselves."""
    return dedupe_requests(
        [
            NotificationRequest(
                recipient_id=task.assignee_id,
                type=NotificationType.TASK_ASSIGNED,
                title="New Task Assigned",
                message=f'You\'ve been assigned a new task: "{task.title}"',
                sender_id=actor.id,
                related=_related(task),
            )
        ],
        exclude_user_id=actor.id,
    )


def build_task_status_notifications(task: Task, actor: User) -> list[NotificationRequest]:
    """Notify the assignee when someone else changes the status."""
    return dedupe_requests(
        [
            NotificationRequest(
                recipient_id=task.assignee_id,
                type=NotificationType.TASK_UPDATED,
                title="Task Status Updated",
                message=(
                    f'Your task "{task.title}" status changed to '
                    f"{task.status.replace('-', ' ')}"
                ),
                sender_id=actor.id,
                related=_related(task),
            )
        ],
        exclude_user_id=actor.id,
    )
