"""Registration, sessions and profile administration."""

from datetime import timedelta

import pytest

from stockroom.extensions import db
from stockroom.models import Profile, SessionToken
from stockroom.policy import AuthorizationError
from stockroom.services import auth_service, profile_service, session_service
from stockroom.services.auth_service import PasswordValidationError
from stockroom.validation import ConflictError, NotFoundError, ValidationError

from conftest import PASSWORD


# =============================================================================
# REGISTRATION / LOGIN
# =============================================================================


class TestRegistration:

    def test_profile_created_with_account(self, db_session):
        user = auth_service.register_user(email="  New@Example.com ", password=PASSWORD)
        assert user.email == "new@example.com"
        assert user.profile.id == user.id
        assert user.profile.name == "User"
        assert user.profile.role == "staff"
        assert user.profile.is_active is True

    def test_duplicate_email(self, staff_user):
        with pytest.raises(ConflictError):
            auth_service.register_user(email="STAFF@example.com", password=PASSWORD)

    @pytest.mark.parametrize("password", ["short1!", "nouppercase1!", "NOLOWER1!", "NoDigits!!", "NoSpecial11"])
    def test_weak_passwords(self, db_session, password):
        with pytest.raises(PasswordValidationError):
            auth_service.register_user(email="weak@example.com", password=password)

    def test_bad_email(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.register_user(email="not-an-email", password=PASSWORD)

    def test_authenticate(self, staff_user):
        assert auth_service.authenticate("staff@example.com", PASSWORD).id == staff_user.id
        assert auth_service.authenticate("staff@example.com", "Wrong123!") is None
        assert auth_service.authenticate("nobody@example.com", PASSWORD) is None

    def test_inactive_user_can_authenticate(self, inactive_user):
        assert auth_service.authenticate("inactive@example.com", PASSWORD) is not None

    @pytest.mark.parametrize("email", [12345, ["new@example.com"], {"email": "new@example.com"}])
    def test_non_string_email(self, db_session, email):
        with pytest.raises(ValidationError, match="A valid email address is required"):
            auth_service.register_user(email=email, password=PASSWORD)

    @pytest.mark.parametrize("password", [12345678, ["Password123!"], None])
    def test_non_string_password(self, db_session, password):
        with pytest.raises(PasswordValidationError, match="Password must be a string"):
            auth_service.register_user(email="new@example.com", password=password)

    def test_non_string_name(self, db_session):
        with pytest.raises(ValidationError, match="name must be a string"):
            auth_service.register_user(email="new@example.com", password=PASSWORD, name=["Nia"])

    def test_authenticate_non_string_credentials(self, staff_user):
        assert auth_service.authenticate(["staff@example.com"], PASSWORD) is None
        assert auth_service.authenticate("staff@example.com", 12345678) is None


class TestSessions:

    def test_validate_returns_context(self, staff_user):
        _, token = session_service.create_session(user_id=staff_user.id)
        context = session_service.validate_session(token)
        assert context.user.id == staff_user.id
        assert context.profile.role == "staff"

    def test_token_stored_hashed(self, staff_user):
        session, token = session_service.create_session(user_id=staff_user.id)
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token

    def test_revoked_token_invalid(self, staff_user):
        _, token = session_service.create_session(user_id=staff_user.id)
        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token) is None
        assert session_service.revoke_session(token) is False

    def test_expired_token_invalid(self, staff_user):
        session, token = session_service.create_session(user_id=staff_user.id)
        session.expires_at = session.expires_at - timedelta(days=2)
        db.session.commit()
        assert session_service.validate_session(token) is None

    def test_idle_token_revoked(self, staff_user):
        session, token = session_service.create_session(user_id=staff_user.id)
        session.last_used_at = session.last_used_at - timedelta(hours=3)
        db.session.commit()

        assert session_service.validate_session(token) is None
        assert db.session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_inactive_profile_still_validates(self, inactive_user):
        _, token = session_service.create_session(user_id=inactive_user.id)
        assert session_service.validate_session(token).profile.is_active is False


# =============================================================================
# PROFILE ADMINISTRATION
# =============================================================================


class TestProfileUpdates:

    def test_self_rename(self, staff_ctx):
        profile = profile_service.update_profile(staff_ctx, profile_id=staff_ctx.profile.id, patch={"name": "Sammy"})
        assert profile.name == "Sammy"

    def test_staff_cannot_promote_self(self, staff_ctx):
        with pytest.raises(AuthorizationError):
            profile_service.update_profile(staff_ctx, profile_id=staff_ctx.profile.id, patch={"role": "admin"})
        assert db.session.get(Profile, staff_ctx.profile.id).role == "staff"

    def test_staff_cannot_edit_others(self, staff_ctx, admin_user):
        with pytest.raises(AuthorizationError):
            profile_service.update_profile(staff_ctx, profile_id=admin_user.id, patch={"name": "x"})

    def test_admin_sets_role_and_active(self, admin_ctx, staff_user):
        profile = profile_service.update_profile(
            admin_ctx, profile_id=staff_user.id, patch={"role": "admin", "is_active": False}
        )
        assert profile.role == "admin"
        assert profile.is_active is False

    def test_admin_cannot_demote_self(self, admin_ctx):
        with pytest.raises(ConflictError):
            profile_service.update_profile(admin_ctx, profile_id=admin_ctx.profile.id, patch={"role": "staff"})

    def test_admin_may_resubmit_own_unchanged_role(self, admin_ctx):
        profile = profile_service.update_profile(
            admin_ctx, profile_id=admin_ctx.profile.id, patch={"name": "Ada", "role": "admin"}
        )
        assert profile.name == "Ada"

    def test_missing_profile(self, admin_ctx):
        with pytest.raises(NotFoundError):
            profile_service.update_profile(admin_ctx, profile_id=999_999, patch={"name": "x"})

    def test_list_newest_first(self, admin_user, staff_user, staff_ctx):
        ids = [p.id for p in profile_service.list_profiles(staff_ctx)]
        assert ids == [staff_user.id, admin_user.id]

    def test_account_deletion_removes_profile(self, staff_user):
        user_id = staff_user.id
        db.session.delete(staff_user)
        db.session.commit()
        assert db.session.get(Profile, user_id) is None
