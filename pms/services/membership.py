"""Membership resolver: builds a Capabilities snapshot for (user, task).

Read-only: loads task → project → workspace, the user's global and workspace
roles, and the member list of the task's category, then hands the parsed roles
to the role model. Nothing is cached; every request resolves afresh.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from pms.models import (
    CategoryMember,
    Project,
    ProjectCategory,
    Task,
    User,
    Workspace,
    WorkspaceMember,
)
from pms.services import roles
from pms.services.errors import ForbiddenError, NotFoundError
from pms.services.roles import (
    Capabilities,
    CategoryMembership,
    CategoryRole,
    GlobalRole,
    WorkspaceRole,
)

logger = logging.getLogger(__name__)


def load_active_task(db: Session, task_id: int) -> Task:
    """Return the task or raise NotFoundError when absent or soft-deleted."""
    task = db.get(Task, task_id)
    if task is None or not task.is_active:
        raise NotFoundError("task", "Task not found")
    return task


def load_category_members(
    db: Session, project_id: int, category_name: str
) -> list[CategoryMembership]:
    """Parsed member list of the named category; empty when the category is gone."""
    rows = (
        db.query(CategoryMember.user_id, CategoryMember.role)
        .join(ProjectCategory, CategoryMember.category_id == ProjectCategory.id)
        .filter(
            ProjectCategory.project_id == project_id,
            ProjectCategory.name == category_name,
        )
        .all()
    )
    return [CategoryMembership(user_id=uid, role=CategoryRole.parse(role)) for uid, role in rows]


def get_workspace_role(db: Session, user_id: int, workspace_id: int) -> WorkspaceRole | None:
    """Workspace role of user_id, or None when not a member."""
    membership = (
        db.query(WorkspaceMember)
        .filter(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
        )
        .first()
    )
    if membership is None:
        return None
    # A membership row with an unparseable role still counts as membership
    return WorkspaceRole.parse(membership.role) or WorkspaceRole.VIEWER


def resolve_capabilities(db: Session, user_id: int, task_id: int) -> Capabilities:
    """Resolve what user_id may do on task_id.

    Raises:
        NotFoundError: task or project missing or inactive, workspace or user missing.
        ForbiddenError: user is not a member of the task's workspace and holds
            no global admin role.
    """
    task = load_active_task(db, task_id)

    project = db.get(Project, task.project_id)
    if project is None or not project.is_active:
        raise NotFoundError("project", "Project not found")

    workspace = db.get(Workspace, project.workspace_id)
    if workspace is None:
        raise NotFoundError("workspace", "Workspace not found")

    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("user", "User not found")

    global_admin = roles.is_global_admin(GlobalRole.parse(user.global_role))
    workspace_role = get_workspace_role(db, user_id, workspace.id)
    if workspace_role is None and not global_admin:
        logger.info(
            "capabilities_forbidden: user_id=%s task_id=%s workspace_id=%s",
            user_id,
            task_id,
            workspace.id,
        )
        raise ForbiddenError("You are not a member of this workspace")

    members = load_category_members(db, project.id, task.category)

    return Capabilities(
        user_id=user_id,
        task_id=task.id,
        is_global_admin=global_admin,
        is_assignee=task.assignee_id == user_id,
        is_category_lead=roles.is_category_lead(members, user_id),
        is_creator=task.creator_id == user_id,
        workspace_role=workspace_role,
        category_role=roles.category_role_of(members, user_id),
    )
