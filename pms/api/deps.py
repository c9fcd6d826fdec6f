"""Shared FastAPI dependencies for API routes."""

from __future__ import annotations

from fastapi import Cookie, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from pms.db.session import get_db  # re-export
from pms.models.user import User
from pms.services.attachment_storage import AttachmentStorage
from pms.services.auth import get_user_from_token
from pms.services.errors import (
    CoreError,
    InternalError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from pms.services.notifications import NotificationDispatcher

__all__ = [
    "get_db",
    "get_current_user",
    "get_notifier",
    "get_storage",
    "http_error",
    "require_auth",
]


# Cookie name for browser sessions
AUTH_COOKIE = "access_token"

_STATUS_BY_ERROR: tuple[tuple[type[CoreError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),  # includes ForbiddenError
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InternalError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def http_error(exc: CoreError) -> HTTPException:
    """HTTPException for a service error, keeping not-found and forbidden apart."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            detail = "Internal server error" if error_type is InternalError else exc.message
            return HTTPException(status_code=status_code, detail=detail)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    authorization: str | None = Header(None),
    access_token: str | None = Cookie(None),
) -> User | None:
    """Return the authenticated user or None.

    Checks (in order):
    1. Authorization: Bearer <token> header
    2. access_token cookie
    """
    token: str | None = None

    # Check Authorization header
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer ") :]

    # Fall back to cookie
    if token is None and access_token:
        token = access_token

    if token is None:
        return None

    return get_user_from_token(db, token)


def require_auth(
    request: Request,
    user: User | None = Depends(get_current_user),
) -> User:
    """Dependency that requires authentication; 401 when no valid token."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


def get_notifier(request: Request) -> NotificationDispatcher:
    """Notification dispatcher built once in create_app()."""
    return request.app.state.notifier


def get_storage(request: Request) -> AttachmentStorage:
    """Attachment storage built once in create_app()."""
    return request.app.state.attachment_storage
