"""
Tests for DesignationService and UserService.

Covers:
- Ordered, unique designation list: add / rename / remove / replace / seed
- User registration with hashed passwords
- Login sessions: issue, resolve, expire, revoke
"""

import pytest
from sqlalchemy import select

from records_kernel.domain.dtos import UserRole
from records_kernel.exceptions import (
    DesignationExistsError,
    DesignationNotFoundError,
    DuplicateUsernameError,
    InvalidCredentialsError,
    SessionExpiredError,
    UserNotFoundError,
    ValidationError,
)
from records_kernel.models.user import User, UserSession
from records_kernel.utils.hashing import hash_token, verify_password


class TestDesignationService:

    def test_empty_by_default(self, designation_service):
        assert designation_service.list() == []

    def test_add_keeps_order(self, designation_service):
        designation_service.add("Staff")
        designation_service.add("Admin")

        assert designation_service.add("  Manager ") == ["Staff", "Admin", "Manager"]

    def test_add_duplicate(self, designation_service):
        designation_service.add("Staff")

        with pytest.raises(DesignationExistsError):
            designation_service.add("Staff")

    def test_add_blank(self, designation_service):
        with pytest.raises(ValidationError):
            designation_service.add("   ")

    def test_rename_keeps_position(self, designation_service):
        designation_service.replace_all(["Admin", "Staff", "Officer"])

        assert designation_service.rename("Staff", "Clerk") == ["Admin", "Clerk", "Officer"]

    def test_rename_to_existing(self, designation_service):
        designation_service.replace_all(["Admin", "Staff"])

        with pytest.raises(DesignationExistsError):
            designation_service.rename("Staff", "Admin")

    def test_rename_unknown(self, designation_service):
        with pytest.raises(DesignationNotFoundError):
            designation_service.rename("Nobody", "Somebody")

    def test_remove(self, designation_service):
        designation_service.replace_all(["Admin", "Staff"])

        assert designation_service.remove("Admin") == ["Staff"]

        with pytest.raises(DesignationNotFoundError):
            designation_service.remove("Admin")

    def test_replace_all_drops_blanks(self, designation_service):
        assert designation_service.replace_all(["Admin", "", "  ", "Staff"]) == ["Admin", "Staff"]

    def test_replace_all_duplicate_writes_nothing(self, designation_service):
        designation_service.replace_all(["Admin"])

        with pytest.raises(DesignationExistsError):
            designation_service.replace_all(["Staff", "Staff"])

        assert designation_service.list() == ["Admin"]

    def test_seed_defaults_only_when_empty(self, designation_service, records_config):
        seeded = designation_service.seed_defaults(records_config.default_designations)
        assert seeded == ["Admin", "Manager", "Staff", "Officer"]

        designation_service.remove("Officer")

        assert designation_service.seed_defaults(["Other"]) == ["Admin", "Manager", "Staff"]


class TestUserService:

    def test_add_user_hashes_password(self, user_service, session):
        info = user_service.add_user("jdelacruz", "s3cret", name="Juan Dela Cruz")

        assert info.username == "jdelacruz"
        assert info.name == "Juan Dela Cruz"
        assert info.role == UserRole.USER
        stored = session.execute(select(User).where(User.id == info.id)).scalar_one()
        assert stored.password_hash != "s3cret"
        assert stored.password_hash.startswith("$2b$")
        assert verify_password("s3cret", stored.password_hash)

    def test_name_defaults_to_username(self, user_service):
        assert user_service.add_user("mreyes", "pw").name == "mreyes"

    def test_duplicate_username(self, user_service):
        user_service.add_user("admin", "pw")

        with pytest.raises(DuplicateUsernameError):
            user_service.add_user("admin", "other")

    @pytest.mark.parametrize(
        "username, password, role",
        [("", "pw", "user"), ("clerk", "", "user"), ("clerk", "pw", "superuser")],
    )
    def test_invalid_input(self, user_service, username, password, role):
        with pytest.raises(ValidationError):
            user_service.add_user(username, password, role=role)

    def test_authenticate_and_resolve(self, user_service, deterministic_clock):
        user_service.add_user("admin", "pw", name="Administrator", role="admin")

        token = user_service.authenticate("admin", "pw")

        assert token.user.role == UserRole.ADMIN
        assert token.expires_at > deterministic_clock.now()
        actor = user_service.resolve(token.token).as_actor()
        assert actor.name == "Administrator"
        assert actor.is_admin

    def test_token_stored_as_digest(self, user_service, session):
        user_service.add_user("clerk", "pw")
        token = user_service.authenticate("clerk", "pw")

        stored = session.execute(select(UserSession)).scalar_one()
        assert stored.token_hash == hash_token(token.token)
        assert stored.token_hash != token.token

    @pytest.mark.parametrize("username, password", [("clerk", "wrong"), ("ghost", "pw")])
    def test_invalid_credentials(self, user_service, username, password):
        user_service.add_user("clerk", "pw")

        with pytest.raises(InvalidCredentialsError):
            user_service.authenticate(username, password)

    def test_session_expires(self, user_service, deterministic_clock):
        user_service.add_user("clerk", "pw")
        token = user_service.authenticate("clerk", "pw")

        deterministic_clock.advance(61 * 60)

        with pytest.raises(SessionExpiredError):
            user_service.resolve(token.token)

    def test_logout_revokes(self, user_service):
        user_service.add_user("clerk", "pw")
        token = user_service.authenticate("clerk", "pw")

        user_service.logout(token.token)
        user_service.logout(token.token)

        with pytest.raises(SessionExpiredError):
            user_service.resolve(token.token)

    def test_unknown_token(self, user_service):
        with pytest.raises(SessionExpiredError):
            user_service.resolve("not-a-token")

    def test_delete_user(self, user_service):
        info = user_service.add_user("clerk", "pw")
        user_service.authenticate("clerk", "pw")

        user_service.delete_user(info.id)

        assert user_service.list_users() == []
        with pytest.raises(UserNotFoundError):
            user_service.delete_user(info.id)

    def test_bootstrap_admin_only_once(self, user_service):
        admin = user_service.ensure_bootstrap_admin("admin", "pw")

        assert admin is not None
        assert admin.role == UserRole.ADMIN
        assert user_service.ensure_bootstrap_admin("admin2", "pw") is None
        assert [u.username for u in user_service.list_users()] == ["admin"]
