"""Membership resolver tests (real SQLite session)."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from pms.models import CategoryMember, Project, Task, WorkspaceMember
from pms.services.errors import ForbiddenError, NotFoundError, PermissionDenied
from pms.services.membership import (
    get_workspace_role,
    load_category_members,
    resolve_capabilities,
)
from pms.services.roles import CategoryRole, WorkspaceRole


def test_assignee_capabilities(db: Session, team: dict) -> None:
    caps = resolve_capabilities(db, team["u1"].id, team["task"].id)
    assert caps.is_assignee is True
    assert caps.is_category_lead is False
    assert caps.is_global_admin is False
    assert caps.is_creator is False
    assert caps.workspace_role is WorkspaceRole.MEMBER
    assert caps.category_role is CategoryRole.MEMBER


def test_category_lead_capabilities(db: Session, team: dict) -> None:
    caps = resolve_capabilities(db, team["u3"].id, team["task"].id)
    assert caps.is_category_lead is True
    assert caps.is_assignee is False
    assert caps.category_role is CategoryRole.LEAD


def test_creator_and_workspace_owner(db: Session, team: dict) -> None:
    caps = resolve_capabilities(db, team["u4"].id, team["task"].id)
    assert caps.is_creator is True
    assert caps.is_workspace_admin is True
    assert caps.category_role is None


def test_global_admin_without_membership_is_not_forbidden(db: Session, team: dict) -> None:
    caps = resolve_capabilities(db, team["admin"].id, team["task"].id)
    assert caps.is_global_admin is True
    assert caps.workspace_role is None


def test_non_member_is_forbidden(db: Session, team: dict) -> None:
    with pytest.raises(ForbiddenError) as exc_info:
        resolve_capabilities(db, team["outsider"].id, team["task"].id)
    assert isinstance(exc_info.value, PermissionDenied)


def test_missing_task_is_not_found(db: Session, team: dict) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        resolve_capabilities(db, team["u1"].id, 99999)
    assert exc_info.value.entity == "task"


def test_inactive_task_is_not_found(db: Session, team: dict) -> None:
    task = db.get(Task, team["task"].id)
    task.is_active = False
    db.commit()
    with pytest.raises(NotFoundError):
        resolve_capabilities(db, team["u1"].id, task.id)


def test_task_in_inactive_project_is_not_found(db: Session, team: dict) -> None:
    project = db.get(Project, team["project"].id)
    project.is_active = False
    db.commit()
    with pytest.raises(NotFoundError) as exc_info:
        resolve_capabilities(db, team["u1"].id, team["task"].id)
    assert exc_info.value.entity == "project"


def test_inactive_project_hides_task_from_admin_too(db: Session, team: dict) -> None:
    project = db.get(Project, team["project"].id)
    project.is_active = False
    db.commit()
    with pytest.raises(NotFoundError):
        resolve_capabilities(db, team["admin"].id, team["task"].id)


def test_missing_workspace_is_not_found(db: Session, team: dict) -> None:
    project = db.get(Project, team["project"].id)
    project.workspace_id = 9999
    db.commit()
    with pytest.raises(NotFoundError) as exc_info:
        resolve_capabilities(db, team["u1"].id, team["task"].id)
    assert exc_info.value.entity == "workspace"


def test_missing_user_is_not_found(db: Session, team: dict) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        resolve_capabilities(db, 424242, team["task"].id)
    assert exc_info.value.entity == "user"


def test_lead_of_another_category_is_not_lead(db: Session, team: dict) -> None:
    """Lead status is scoped to the task's own category."""
    db.add(CategoryMember(category_id=team["design"].id, user_id=team["u2"].id, role="Lead"))
    db.commit()
    caps = resolve_capabilities(db, team["u2"].id, team["task"].id)
    assert caps.is_category_lead is False


def test_lowercase_stored_category_role_still_counts(db: Session, team: dict) -> None:
    member = db.get(CategoryMember, (team["backend"].id, team["u2"].id))
    member.role = "lead"
    db.commit()
    caps = resolve_capabilities(db, team["u2"].id, team["task"].id)
    assert caps.is_category_lead is True


def test_load_category_members_unknown_category_is_empty(db: Session, team: dict) -> None:
    assert load_category_members(db, team["project"].id, "Nope") == []
    members = load_category_members(db, team["project"].id, "Backend")
    assert {m.user_id for m in members} == {team["u1"].id, team["u2"].id, team["u3"].id}


def test_unparseable_workspace_role_is_viewer(db: Session, team: dict) -> None:
    membership = db.get(WorkspaceMember, (team["workspace"].id, team["u2"].id))
    membership.role = "chief"
    db.commit()
    assert get_workspace_role(db, team["u2"].id, team["workspace"].id) is WorkspaceRole.VIEWER
    assert get_workspace_role(db, team["outsider"].id, team["workspace"].id) is None
