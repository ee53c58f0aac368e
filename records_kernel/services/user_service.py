"""
Service layer for users and login sessions.

Responsibility:
    Registers office users, verifies credentials and issues / resolves /
    revokes bearer-token sessions.

Invariants enforced:
    - Passwords are stored only as bcrypt digests.
    - Session tokens are returned once to the caller and stored only as
      SHA-256 digests.
    - A session stops resolving after ``expires_at`` or after logout.

Failure modes:
    - DuplicateUsernameError, InvalidCredentialsError, UserNotFoundError,
      SessionExpiredError, ValidationError (blank username / password).

Returns UserInfo / SessionToken DTOs instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from records_kernel.domain.clock import Clock, SystemClock
from records_kernel.domain.dtos import Actor, UserRole
from records_kernel.exceptions import (
    DuplicateUsernameError,
    InvalidCredentialsError,
    SessionExpiredError,
    UserNotFoundError,
    ValidationError,
)
from records_kernel.logging_config import get_logger
from records_kernel.models.user import User, UserSession
from records_kernel.services.base import BaseService
from records_kernel.utils.hashing import (
    hash_password,
    hash_token,
    new_session_token,
    verify_password,
)

logger = get_logger("services.user")

DEFAULT_SESSION_TTL_MINUTES = 8 * 60


@dataclass(frozen=True)
class UserInfo:
    """Immutable DTO for a user.  Never carries the password digest."""

    id: UUID
    username: str
    name: str
    role: UserRole
    is_active: bool

    def as_actor(self) -> Actor:
        return Actor(name=self.name, role=self.role)


@dataclass(frozen=True)
class SessionToken:
    """A freshly issued login session.  ``token`` is shown only once."""

    token: str
    user: UserInfo
    expires_at: datetime


class UserService(BaseService[User]):
    """Manages users, credentials and sessions."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        session_ttl_minutes: int = DEFAULT_SESSION_TTL_MINUTES,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._ttl = timedelta(minutes=session_ttl_minutes)

    def _to_dto(self, user: User) -> UserInfo:
        return UserInfo(
            id=user.id,
            username=user.username,
            name=user.name,
            role=UserRole(user.role),
            is_active=user.is_active,
        )

    def _by_username(self, username: str) -> User | None:
        return self.session.execute(
            select(User).where(User.username == username)
        ).scalar_one_or_none()

    def add_user(
        self,
        username: str,
        password: str,
        name: str | None = None,
        role: UserRole | str = UserRole.USER,
    ) -> UserInfo:
        """
        Register a user.

        Raises:
            ValidationError: Blank username or password, or unknown role.
            DuplicateUsernameError: Username already taken.
        """
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username is required", "username")
        if not password:
            raise ValidationError("Password is required", "password")
        try:
            role = UserRole(role)
        except ValueError as exc:
            raise ValidationError(f"Unknown role: {role!r}", "role") from exc
        if self._by_username(username) is not None:
            raise DuplicateUsernameError(username)

        user = User(
            username=username,
            name=(name or username).strip(),
            role=role.value,
            password_hash=hash_password(password),
            is_active=True,
            created_at=self._clock.now(),
        )
        self.session.add(user)
        self.session.flush()
        logger.info("user_added", extra={"username": username, "role": role.value})
        return self._to_dto(user)

    def authenticate(self, username: str, password: str) -> SessionToken:
        """
        Verify credentials and open a session.

        Raises:
            InvalidCredentialsError: Unknown user, inactive user or wrong password.
        """
        user = self._by_username((username or "").strip())
        if (
            user is None
            or not user.is_active
            or not verify_password(password or "", user.password_hash)
        ):
            logger.warning("login_failed", extra={"username": username})
            raise InvalidCredentialsError(username)

        token = new_session_token()
        now = self._clock.now()
        expires_at = now + self._ttl
        self.session.add(
            UserSession(
                user_id=user.id,
                token_hash=hash_token(token),
                created_at=now,
                expires_at=expires_at,
            )
        )
        self.session.flush()
        logger.info("login_succeeded", extra={"username": user.username})
        return SessionToken(token=token, user=self._to_dto(user), expires_at=expires_at)

    def _live_session(self, token: str) -> UserSession:
        row = self.session.execute(
            select(UserSession).where(UserSession.token_hash == hash_token(token or ""))
        ).scalar_one_or_none()
        if (
            row is None
            or row.revoked_at is not None
            or row.expires_at <= self._clock.now()
            or not row.user.is_active
        ):
            raise SessionExpiredError()
        return row

    def resolve(self, token: str) -> UserInfo:
        """User behind a live session token."""
        return self._to_dto(self._live_session(token).user)

    def logout(self, token: str) -> None:
        """Revoke a session.  Revoking an already dead token is a no-op."""
        try:
            row = self._live_session(token)
        except SessionExpiredError:
            return
        row.revoked_at = self._clock.now()
        self.session.flush()
        logger.info("logout", extra={"username": row.user.username})

    def delete_user(self, user_id: UUID | str) -> None:
        try:
            key = user_id if isinstance(user_id, UUID) else UUID(str(user_id))
        except ValueError as exc:
            raise UserNotFoundError(str(user_id)) from exc
        user = self.session.get(User, key)
        if user is None:
            raise UserNotFoundError(str(user_id))
        self.session.delete(user)
        self.session.flush()
        logger.info("user_deleted", extra={"username": user.username})

    def list_users(self) -> list[UserInfo]:
        users = self.session.execute(select(User).order_by(User.username)).scalars()
        return [self._to_dto(user) for user in users]

    def ensure_bootstrap_admin(self, username: str, password: str) -> UserInfo | None:
        """
        Create the first admin when no user exists yet.

        Returns the created admin, or None when users already exist.
        """
        if self.session.execute(select(User.id).limit(1)).first() is not None:
            return None
        logger.info("bootstrap_admin_created", extra={"username": username})
        return self.add_user(username, password, name="Administrator", role=UserRole.ADMIN)
