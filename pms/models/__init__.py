"""SQLAlchemy models."""

from pms.models.comment import Comment, CommentAttachment
from pms.models.notification import Notification
from pms.models.project import CategoryMember, Project, ProjectCategory
from pms.models.task import Task
from pms.models.user import User
from pms.models.workspace import Workspace, WorkspaceMember

__all__ = [
    "CategoryMember",
    "Comment",
    "CommentAttachment",
    "Notification",
    "Project",
    "ProjectCategory",
    "Task",
    "User",
    "Workspace",
    "WorkspaceMember",
]
