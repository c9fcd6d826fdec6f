"""Error taxonomy shared by the access-control and comment services.

Routes map each kind to one HTTP status (see pms.api.deps.http_error), so
"this does not exist" and "you may not do this" never collapse into one answer.
"""

from __future__ import annotations


class CoreError(Exception):
    """Base for errors surfaced to request handlers."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(CoreError):
    """Referenced entity is absent or inactive."""

    def __init__(self, entity: str, message: str | None = None) -> None:
        self.entity = entity
        super().__init__(message or f"{entity} not found")


class PermissionDenied(CoreError):
    """Capability check failed."""


class ForbiddenError(PermissionDenied):
    """User has no membership in the workspace that owns the resource."""


class ValidationError(CoreError):
    """Malformed input (empty content, parent on another task, unknown status...)."""


class InternalError(CoreError):
    """Persistence or storage failure unrelated to caller input."""
