"""
Module: records_kernel.models.user
Responsibility: ORM persistence for office users and their login sessions.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/dtos.py (UserRole) only.

Invariants enforced:
    - username is unique (uq_user_username).
    - No plaintext secret is stored: ``password_hash`` holds a salted
      PBKDF2 digest and ``UserSession.token_hash`` a SHA-256 digest of the
      bearer token.

Failure modes:
    - IntegrityError on duplicate username or token hash.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from records_kernel.db.base import Base, UUIDString
from records_kernel.domain.dtos import UserRole


class User(Base):
    """An office user who can log in and act on records."""

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("username", name="uq_user_username"),
    )

    username: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Display name written to receivedBy / updatedBy
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    role: Mapped[UserRole] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.USER,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    sessions: Mapped[list["UserSession"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User {self.username} ({self.role})>"


class UserSession(Base):
    """A login session identified by the digest of its bearer token."""

    __tablename__ = "user_sessions"

    __table_args__ = (
        UniqueConstraint("token_hash", name="uq_user_session_token"),
        Index("idx_user_session_user", "user_id"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    token_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    revoked_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    user: Mapped[User] = relationship(back_populates="sessions")
