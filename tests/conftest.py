"""
Pytest configuration and fixtures.

Tests run against an in-memory SQLite database shared through a StaticPool, so
no PostgreSQL server is needed. Tables are created and dropped per test.
"""

from __future__ import annotations

import os
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tests.test_constants import TEST_DATABASE_URL, TEST_PASSWORD, TEST_SECRET_KEY

# Force the test DB when pytest runs; don't inherit from .env
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ.setdefault("SECRET_KEY", TEST_SECRET_KEY)
os.environ["SMTP_HOST"] = ""


@pytest.fixture
def db() -> Session:
    """Session on a freshly created schema."""
    from pms.db.session import Base, SessionLocal, engine
    import pms.models  # noqa: F401  (register tables on Base.metadata)

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _make_user(db: Session, email: str, name: str, global_role: str = "member"):
    from pms.models import User

    user = User(email=email, name=name, global_role=global_role)
    user.set_password(TEST_PASSWORD)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_user(db: Session):
    """Factory: make_user(email, name, global_role="member") -> User."""

    def _factory(email: str, name: str, global_role: str = "member"):
        return _make_user(db, email, name, global_role)

    return _factory


@pytest.fixture
def team(db: Session) -> dict:
    """Workspace with one project, category "Backend" and a task assigned to U1.

    U1 assignee (category Member), U2 plain Member, U3 category Lead,
    U4 task creator (workspace owner, not in the category), ADMIN global admin
    without workspace membership, OUTSIDER with no membership at all.
    """
    from pms.models import (
        CategoryMember,
        Project,
        ProjectCategory,
        Task,
        Workspace,
        WorkspaceMember,
    )

    u1 = _make_user(db, "u1@example.com", "Uma Assignee")
    u2 = _make_user(db, "u2@example.com", "Uli Member")
    u3 = _make_user(db, "u3@example.com", "Una Lead")
    u4 = _make_user(db, "u4@example.com", "Ugo Creator")
    admin = _make_user(db, "admin@example.com", "Ada Admin", global_role="admin")
    outsider = _make_user(db, "out@example.com", "Otto Outsider")

    workspace = Workspace(name="Acme", created_by_id=u4.id)
    db.add(workspace)
    db.flush()
    db.add_all(
        [
            WorkspaceMember(workspace_id=workspace.id, user_id=u4.id, role="owner"),
            WorkspaceMember(workspace_id=workspace.id, user_id=u1.id, role="member"),
            WorkspaceMember(workspace_id=workspace.id, user_id=u2.id, role="member"),
            WorkspaceMember(workspace_id=workspace.id, user_id=u3.id, role="member"),
        ]
    )
    project = Project(workspace_id=workspace.id, creator_id=u4.id, title="Launch")
    db.add(project)
    db.flush()
    backend = ProjectCategory(project_id=project.id, name="Backend", position=0)
    design = ProjectCategory(project_id=project.id, name="Design", position=1)
    db.add_all([backend, design])
    db.flush()
    db.add_all(
        [
            CategoryMember(category_id=backend.id, user_id=u1.id, role="Member"),
            CategoryMember(category_id=backend.id, user_id=u2.id, role="Member"),
            CategoryMember(category_id=backend.id, user_id=u3.id, role="Lead"),
        ]
    )
    task = Task(
        project_id=project.id,
        title="Build API",
        category="Backend",
        assignee_id=u1.id,
        creator_id=u4.id,
    )
    db.add(task)
    db.commit()
    db.refresh(task)

    return {
        "u1": u1,
        "u2": u2,
        "u3": u3,
        "u4": u4,
        "admin": admin,
        "outsider": outsider,
        "workspace": workspace,
        "project": project,
        "backend": backend,
        "design": design,
        "task": task,
    }


@pytest.fixture
def mailer() -> MagicMock:
    """Stand-in SMTP mailer recording send_notification calls."""
    mock = MagicMock()
    mock.configured = True
    mock.send_notification.return_value = True
    return mock


@pytest.fixture
def as_user(db: Session, mailer: MagicMock):
    """Factory: as_user(user) -> TestClient authenticated as user.

    get_db is overridden to the test session and the app's notifier uses the
    mock mailer, so background notifications land in the same database.
    """
    from pms.api.deps import require_auth
    from pms.db.session import SessionLocal, get_db
    from pms.main import app
    from pms.services.notifications import NotificationDispatcher

    saved_notifier = app.state.notifier
    app.state.notifier = NotificationDispatcher(SessionLocal, mailer)

    def override_get_db():
        yield db

    def _factory(user) -> TestClient:
        def override_auth():
            return user

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[require_auth] = override_auth
        return TestClient(app)

    yield _factory
    app.dependency_overrides.clear()
    app.state.notifier = saved_notifier


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client without overrides."""
    from pms.main import app

    return TestClient(app)
