"""Task creation, status updates and capability endpoint tests."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from pms.models import Notification
from pms.services.errors import NotFoundError, PermissionDenied, ValidationError
from pms.services.notifications import NotificationType
from pms.services.tasks import (
    build_task_assigned_notifications,
    build_task_status_notifications,
    create_task,
    update_task_status,
)


class TestCreateTask:
    def test_member_creates_task_in_own_category(self, db: Session, team: dict) -> None:
        task = create_task(db, team["u2"].id, team["project"].id, "Write docs", team["u1"].id)
        assert task.category == "Backend"
        assert task.creator_id == team["u2"].id
        assert task.status == "to-do"
        assert task.completed_at is None

    def test_done_status_stamps_completed_at(self, db: Session, team: dict) -> None:
        task = create_task(
            db, team["u3"].id, team["project"].id, "Old work", team["u1"].id, status="done"
        )
        assert task.completed_at is not None

    def test_blank_title_rejected(self, db: Session, team: dict) -> None:
        with pytest.raises(ValidationError):
            create_task(db, team["u2"].id, team["project"].id, "  ", team["u1"].id)

    def test_unknown_status_rejected(self, db: Session, team: dict) -> None:
        with pytest.raises(ValidationError):
            create_task(
                db, team["u2"].id, team["project"].id, "T", team["u1"].id, status="blocked"
            )

    def test_unknown_project_not_found(self, db: Session, team: dict) -> None:
        with pytest.raises(NotFoundError):
            create_task(db, team["u2"].id, 4040, "T", team["u1"].id)

    def test_non_project_member_denied(self, db: Session, team: dict) -> None:
        with pytest.raises(PermissionDenied):
            create_task(db, team["outsider"].id, team["project"].id, "T", team["u1"].id)

    def test_other_category_denied(self, db: Session, team: dict) -> None:
        with pytest.raises(PermissionDenied):
            create_task(
                db, team["u2"].id, team["project"].id, "T", team["u1"].id, category="Design"
            )

    def test_unknown_category_rejected(self, db: Session, team: dict) -> None:
        with pytest.raises(ValidationError):
            create_task(
                db, team["u2"].id, team["project"].id, "T", team["u1"].id, category="Ops"
            )

    def test_assignee_outside_category_denied(self, db: Session, team: dict) -> None:
        with pytest.raises(PermissionDenied):
            create_task(db, team["u2"].id, team["project"].id, "T", team["u4"].id)

    def test_global_admin_may_assign_anyone_anywhere(self, db: Session, team: dict) -> None:
        task = create_task(
            db,
            team["admin"].id,
            team["project"].id,
            "Audit",
            team["outsider"].id,
            category="Design",
        )
        assert task.assignee_id == team["outsider"].id

    def test_global_admin_needs_explicit_category(self, db: Session, team: dict) -> None:
        with pytest.raises(ValidationError):
            create_task(db, team["admin"].id, team["project"].id, "Audit", team["u1"].id)


class TestUpdateTaskStatus:
    @pytest.mark.parametrize("who", ["u1", "u4", "admin"])
    def test_assignee_creator_admin_may_update(self, db: Session, team: dict, who: str) -> None:
        task = update_task_status(db, team[who].id, team["task"].id, "in-progress")
        assert task.status == "in-progress"

    def test_lead_may_not_update(self, db: Session, team: dict) -> None:
        """Category Leads may comment but not change status."""
        with pytest.raises(PermissionDenied):
            update_task_status(db, team["u3"].id, team["task"].id, "done")

    def test_done_sets_completed_at(self, db: Session, team: dict) -> None:
        task = update_task_status(db, team["u1"].id, team["task"].id, "done")
        assert task.completed_at is not None

    def test_invalid_status(self, db: Session, team: dict) -> None:
        with pytest.raises(ValidationError):
            update_task_status(db, team["u1"].id, team["task"].id, "finished")


class TestTaskNotifications:
    def test_assigned_notification_skips_self_assignment(self, db: Session, team: dict) -> None:
        task = team["task"]
        assert build_task_assigned_notifications(task, team["u1"]) == []
        (req,) = build_task_assigned_notifications(task, team["u4"])
        assert req.recipient_id == team["u1"].id
        assert req.type is NotificationType.TASK_ASSIGNED

    def test_status_notification_message(self, db: Session, team: dict) -> None:
        task = update_task_status(db, team["u4"].id, team["task"].id, "in-progress")
        (req,) = build_task_status_notifications(task, team["u4"])
        assert req.message == 'Your task "Build API" status changed to in progress'


class TestTaskApi:
    """Tests for /api/tasks."""

    def test_create_task_notifies_assignee(self, db: Session, team: dict, as_user) -> None:
        response = as_user(team["u3"]).post(
            "/api/tasks",
            json={
                "project_id": team["project"].id,
                "title": "Add caching",
                "assignee_id": team["u2"].id,
            },
        )
        assert response.status_code == 201
        assert response.json()["category"] == "Backend"

        notes = db.query(Notification).all()
        assert [(n.recipient_id, n.type) for n in notes] == [(team["u2"].id, "task_assigned")]

    def test_update_status_by_lead_returns_403(self, team: dict, as_user) -> None:
        response = as_user(team["u3"]).patch(
            f"/api/tasks/{team['task'].id}/status", json={"status": "done"}
        )
        assert response.status_code == 403

    def test_update_status_invalid_returns_400(self, team: dict, as_user) -> None:
        response = as_user(team["u1"]).patch(
            f"/api/tasks/{team['task'].id}/status", json={"status": "nope"}
        )
        assert response.status_code == 400

    def test_capabilities_for_lead(self, team: dict, as_user) -> None:
        response = as_user(team["u3"]).get(f"/api/tasks/{team['task'].id}/capabilities")
        assert response.status_code == 200
        data = response.json()
        assert data["is_category_lead"] is True
        assert data["category_role"] == "Lead"
        assert data["can_open_thread"] is False
        assert data["can_reply"] is True
        assert data["can_manage_task"] is False

    def test_capabilities_for_outsider_returns_403(self, team: dict, as_user) -> None:
        response = as_user(team["outsider"]).get(f"/api/tasks/{team['task'].id}/capabilities")
        assert response.status_code == 403
