"""Project model with ordered member categories."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pms.db.session import Base

if TYPE_CHECKING:
    from pms.models.workspace import Workspace


class Project(Base):
    """Project inside a workspace. Categories are ordered by `position`."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    workspace_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    creator_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    workspace: Mapped[Workspace] = relationship("Workspace", back_populates="projects")
    categories: Mapped[list[ProjectCategory]] = relationship(
        "ProjectCategory",
        back_populates="project",
        order_by="ProjectCategory.position",
        cascade="all, delete-orphan",
    )


class ProjectCategory(Base):
    """Named group of project members; name is unique within its project."""

    __tablename__ = "project_categories"

    __table_args__ = (
        UniqueConstraint("project_id", "name", name="uq_project_categories_project_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    project: Mapped[Project] = relationship("Project", back_populates="categories")
    members: Mapped[list[CategoryMember]] = relationship(
        "CategoryMember", back_populates="category", cascade="all, delete-orphan"
    )


class CategoryMember(Base):
    """User's role inside one project category (Lead / Member / Viewer)."""

    __tablename__ = "category_members"

    category_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("project_categories.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="Member")

    category: Mapped[ProjectCategory] = relationship("ProjectCategory", back_populates="members")
