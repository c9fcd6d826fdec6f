"""Role model: closed role enums and pure capability rules.

Three role dimensions exist: global (on the user), workspace (on the
membership row) and category (inside a project). Stored values are strings;
they are parsed into the enums here and nowhere else. Capabilities compose
additively: any one qualifying role grants, the most permissive role wins.
No I/O in this module.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class _ParsableRole(str, Enum):
    """str-valued enum with case-insensitive parsing of stored role strings."""

    @classmethod
    def _aliases(cls) -> dict[str, str]:
        return {}

    @classmethod
    def parse(cls, value: str | None):
        """Return the member for value (case-insensitive), or None when unknown/empty."""
        if value is None:
            return None
        key = str(value).strip().lower()
        key = cls._aliases().get(key, key)
        for member in cls:
            if member.value.lower() == key:
                return member
        logger.warning("unknown_role_value: enum=%s value=%r", cls.__name__, value)
        return None


class GlobalRole(_ParsableRole):
    MEMBER = "member"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @classmethod
    def _aliases(cls) -> dict[str, str]:
        # Older user records use "user" for the default role
        return {"user": "member", "superadmin": "super_admin", "super-admin": "super_admin"}


class WorkspaceRole(_ParsableRole):
    OWNER = "owner"
    ADMIN = "admin"
    LEAD = "lead"
    MEMBER = "member"
    VIEWER = "viewer"


class CategoryRole(_ParsableRole):
    LEAD = "Lead"
    MEMBER = "Member"
    VIEWER = "Viewer"


@dataclass(frozen=True)
class CategoryMembership:
    """One (user, role) entry of a category member list, already parsed."""

    user_id: int
    role: CategoryRole | None


@dataclass(frozen=True)
class Capabilities:
    """Per-request snapshot of what a user may do on one task. Never persisted."""

    user_id: int
    task_id: int
    is_global_admin: bool
    is_assignee: bool
    is_category_lead: bool
    is_creator: bool
    workspace_role: WorkspaceRole | None = None
    category_role: CategoryRole | None = None

    @property
    def is_workspace_admin(self) -> bool:
        return is_workspace_owner_or_admin(self.workspace_role)


def is_global_admin(role: GlobalRole | None) -> bool:
    return role in (GlobalRole.ADMIN, GlobalRole.SUPER_ADMIN)


def is_workspace_owner_or_admin(role: WorkspaceRole | None) -> bool:
    return role in (WorkspaceRole.OWNER, WorkspaceRole.ADMIN)


def is_category_lead(members: Iterable[CategoryMembership], user_id: int) -> bool:
    return any(m.user_id == user_id and m.role is CategoryRole.LEAD for m in members)


def category_role_of(members: Iterable[CategoryMembership], user_id: int) -> CategoryRole | None:
    """Most permissive category role held by user_id (Lead > Member > Viewer)."""
    rank = {CategoryRole.LEAD: 3, CategoryRole.MEMBER: 2, CategoryRole.VIEWER: 1}
    best: CategoryRole | None = None
    for m in members:
        if m.user_id != user_id or m.role is None:
            continue
        if best is None or rank[m.role] > rank[best]:
            best = m.role
    return best


def can_open_thread(caps: Capabilities) -> bool:
    """Only the assignee may post the first root comment on an empty thread."""
    return caps.is_assignee


def can_reply(caps: Capabilities) -> bool:
    """Root comments on an open thread and all replies.

    The task creator alone does not qualify here, unlike can_manage_task.
    """
    return caps.is_assignee or caps.is_global_admin or caps.is_category_lead


def can_manage_task(caps: Capabilities) -> bool:
    """Task status updates: assignee, creator or global admin."""
    return caps.is_assignee or caps.is_creator or caps.is_global_admin
