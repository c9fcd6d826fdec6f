"""Authentication API routes: email login issuing a JWT, logout, current user."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from pms.api.deps import AUTH_COOKIE, get_db, require_auth
from pms.models.user import User
from pms.schemas.auth import LoginRequest, LoginResponse, UserRead
from pms.services.auth import ACCESS_TOKEN_EXPIRE_HOURS, authenticate_user, create_access_token

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
) -> LoginResponse:
    """Exchange email and password for a token (also set as an httponly cookie)."""
    user = authenticate_user(db, body.email, body.password)
    if user is None:
        logger.info("login_failed: email=%s", body.email.strip().lower())
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    token = create_access_token(data={"sub": user.email, "uid": user.id})
    response.set_cookie(
        key=AUTH_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        max_age=ACCESS_TOKEN_EXPIRE_HOURS * 3600,
        path="/",
    )
    logger.info("login_succeeded: user_id=%s", user.id)
    return LoginResponse(access_token=token, user=UserRead.model_validate(user))


@router.post("/logout", status_code=204)
def logout(response: Response) -> None:
    """Drop the session cookie; bearer tokens simply expire."""
    response.delete_cookie(key=AUTH_COOKIE, path="/")


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(require_auth)) -> UserRead:
    """Signed-in user with workspace memberships and roles."""
    return UserRead.model_validate(current_user)
