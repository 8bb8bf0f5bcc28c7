"""
User database model.

The dashboard has exactly one account, created on first run.
"""

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from crossseed_ui.database import Base


class User(Base):
    """Dashboard login. Passwords are hashed with Argon2id (see core.security)."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    username = Column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
        comment="Login name",
    )
    password_hash = Column(
        String(255),
        nullable=False,
        comment="Argon2id password hash",
    )

    last_login = Column(
        DateTime,
        nullable=True,
        comment="Timestamp of most recent successful login",
    )
    created_at = Column(
        DateTime,
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"
