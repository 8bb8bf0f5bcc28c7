"""
Session authentication for CrossSeed UI.

The dashboard has one account. The first visitor creates it via setup,
after which login issues a signed HS256 JWT in the ``crossseed-session``
cookie. ``require_session`` is the FastAPI dependency every protected router
uses; with ``DISABLE_AUTH=true`` it admits everyone as ``admin``.
"""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Annotated, Any

import jwt
import structlog
from fastapi import Cookie, Depends, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy.orm import Session

from crossseed_ui.config import settings
from crossseed_ui.core.security import DUMMY_PASSWORD_HASH, hash_password, verify_password
from crossseed_ui.database import get_db
from crossseed_ui.models.user import User

logger = structlog.get_logger()

SESSION_COOKIE = "crossseed-session"

# Algorithm whitelist; never read from configuration.
ALLOWED_JWT_ALGORITHMS = ["HS256"]


class TokenError(Exception):
    """Exception raised when a session token is missing, invalid or expired."""

    pass


@dataclass(frozen=True)
class SessionPrincipal:
    """The identity attached to a request."""

    user_id: int
    username: str
    auth_disabled: bool = False
    expires_at: datetime | None = None


def has_users(db: Session) -> bool:
    """Return True once the dashboard account exists."""
    return db.query(User.id).first() is not None


def create_user(db: Session, username: str, password: str) -> User:
    """Create the dashboard account."""
    user = User(username=username, password_hash=hash_password(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("dashboard_user_created", user_id=user.id, username=username)
    return user


def authenticate_user(db: Session, username: str, password: str) -> User | None:
    """
    Check a username/password pair.

    Returns:
        User | None: The user on success, None on any mismatch
    """
    user = db.query(User).filter(User.username == username).first()

    if not user:
        # Equalize timing with the wrong-password path.
        verify_password("dummy", DUMMY_PASSWORD_HASH)
        logger.warning("authentication_failed_user_not_found", username=username)
        return None

    if not verify_password(password, user.password_hash):
        logger.warning("authentication_failed_invalid_password", username=username)
        return None

    user.last_login = datetime.now(UTC).replace(tzinfo=None)
    db.commit()

    logger.info("authentication_successful", username=username, user_id=user.id)
    return user


def create_session_token(user_id: int, username: str) -> tuple[str, datetime]:
    """
    Create a signed session token.

    Returns:
        tuple: (token, expiry)
    """
    now = datetime.now(UTC)
    expire = now + timedelta(hours=settings.session_expire_hours)
    claims: dict[str, Any] = {
        "sub": str(user_id),
        "username": username,
        "type": "session",
        "exp": expire,
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    token = jwt.encode(claims, settings.get_secret_key(), algorithm=ALLOWED_JWT_ALGORITHMS[0])
    logger.debug("session_token_created", user_id=user_id, expires_at=expire.isoformat())
    return token, expire


def verify_session_token(token: str) -> dict[str, Any]:
    """
    Verify and decode a session token.

    Raises:
        TokenError: If the token is invalid, expired, or of the wrong type
    """
    try:
        payload = jwt.decode(token, settings.get_secret_key(), algorithms=ALLOWED_JWT_ALGORITHMS)
    except InvalidTokenError as e:
        logger.warning("session_token_verification_failed", error=str(e))
        raise TokenError(f"Invalid session token: {e}") from e

    if payload.get("type") != "session":
        raise TokenError("Invalid token type")

    return payload


def resolve_session(token: str | None, db: Session) -> SessionPrincipal | None:
    """Return the principal for ``token``, or None when it is not a live session."""
    if settings.disable_auth:
        return SessionPrincipal(user_id=0, username="admin", auth_disabled=True)

    if not token:
        return None

    try:
        payload = verify_session_token(token)
        user_id = int(payload["sub"])
    except (TokenError, KeyError, ValueError):
        return None

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        return None

    return SessionPrincipal(
        user_id=user.id,
        username=user.username,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
    )


async def require_session(
    session_token: Annotated[str | None, Cookie(alias=SESSION_COOKIE)] = None,
    db: Session = Depends(get_db),
) -> SessionPrincipal:
    """
    FastAPI dependency guarding every protected route.

    Raises:
        HTTPException: 401 when there is no valid session
    """
    principal = resolve_session(session_token, db)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return principal
