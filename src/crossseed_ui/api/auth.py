"""
Authentication API endpoints for CrossSeed UI.

- First-run account creation (only while no account exists)
- Login / logout with an HTTP-only session cookie
- Session introspection (public; reports auth-disabled mode)
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from crossseed_ui.config import settings
from crossseed_ui.core.auth import (
    SESSION_COOKIE,
    authenticate_user,
    create_session_token,
    create_user,
    has_users,
    resolve_session,
)
from crossseed_ui.core.rate_limit import limiter
from crossseed_ui.database import get_db
from crossseed_ui.schemas.auth import Credentials, SetupRequest

logger = structlog.get_logger()

router = APIRouter(
    prefix="/api/auth",
    tags=["authentication"],
)


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        max_age=settings.session_expire_hours * 60 * 60,
        path="/",
    )


@router.post("/setup")
@limiter.limit("5/minute")
async def setup(
    request: Request,
    payload: SetupRequest,
    db: Session = Depends(get_db),
) -> JSONResponse:
    """Create the dashboard account. Only allowed while none exists."""
    if has_users(db):
        logger.warning("setup_rejected_user_exists", username=payload.username)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Setup already completed",
        )

    user = create_user(db, payload.username, payload.password)
    token, _ = create_session_token(user.id, user.username)

    response = JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={"success": True, "user": {"id": user.id, "username": user.username}},
    )
    set_session_cookie(response, token)
    return response


@router.post("/login")
@limiter.limit("10/minute")
async def login(
    request: Request,
    payload: Credentials,
    db: Session = Depends(get_db),
) -> JSONResponse:
    user = authenticate_user(db, payload.username, payload.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )

    token, expires_at = create_session_token(user.id, user.username)
    response = JSONResponse(
        content={
            "success": True,
            "user": {"id": user.id, "username": user.username},
            "expires_at": expires_at.isoformat(),
        }
    )
    set_session_cookie(response, token)
    return response


@router.post("/logout")
async def logout() -> JSONResponse:
    response = JSONResponse(content={"success": True})
    response.delete_cookie(key=SESSION_COOKIE, path="/")
    logger.debug("session_cookie_cleared")
    return response


@router.get("/session")
async def session(
    request: Request,
    session_token: Annotated[str | None, Cookie(alias=SESSION_COOKIE)] = None,
    db: Session = Depends(get_db),
) -> JSONResponse:
    """Report whether the caller is logged in and whether setup is still needed."""
    principal = resolve_session(session_token, db)
    setup_required = not settings.disable_auth and not has_users(db)

    if principal is None:
        return JSONResponse(
            content={
                "authenticated": False,
                "auth_disabled": False,
                "setup_required": setup_required,
            }
        )

    return JSONResponse(
        content={
            "authenticated": True,
            "auth_disabled": principal.auth_disabled,
            "setup_required": setup_required,
            "user": {"id": principal.user_id, "username": principal.username},
            "expires_at": principal.expires_at.isoformat() if principal.expires_at else None,
        }
    )
