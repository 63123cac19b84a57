"""
Operator authentication tests.

Verifies:
- Password strength rules and bcrypt hashing
- Login / me / logout through the API
- Expired and revoked sessions are rejected
"""

from datetime import timedelta

import pytest

from clothstock.models import SessionToken, User
from clothstock.services import auth_service, session_service
from clothstock.services.auth_service import PasswordValidationError

from conftest import OPERATOR_EMAIL, OPERATOR_PASSWORD, get_auth_token


class TestPasswords:

    @pytest.mark.parametrize("password", ["Sh0rt!", "alllower1!", "ALLUPPER1!", "NoDigits!!", "NoSpecial12"])
    def test_weak_passwords_rejected(self, app, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_hash_and_verify(self, app):
        hashed = auth_service.hash_password("Str0ng!Pass")
        assert hashed != "Str0ng!Pass"
        assert auth_service.verify_password("Str0ng!Pass", hashed)
        assert not auth_service.verify_password("wrong", hashed)

    def test_malformed_hash_is_mismatch(self, app):
        assert auth_service.verify_password("anything", "not-a-bcrypt-hash") is False


class TestOperatorAccount:

    def test_create_user_normalizes_email(self, db_session):
        user = auth_service.create_user("  Owner@Shop.Local ", "Password123!")
        assert user.email == "owner@shop.local"

    def test_duplicate_email(self, db_session, operator):
        with pytest.raises(ValueError):
            auth_service.create_user(OPERATOR_EMAIL.upper(), "Password123!")

    def test_ensure_operator_is_idempotent(self, db_session):
        first, created = auth_service.ensure_operator("boss@shop.local", "Password123!")
        again, created_again = auth_service.ensure_operator("boss@shop.local", "Different123!")

        assert created is True
        assert created_again is False
        assert first.id == again.id
        assert db_session.query(User).count() == 1

    def test_authenticate(self, db_session, operator):
        assert auth_service.authenticate(OPERATOR_EMAIL, "wrong") is None
        user = auth_service.authenticate(OPERATOR_EMAIL, OPERATOR_PASSWORD)
        assert user.id == operator.id
        assert user.last_login_at is not None

    def test_inactive_operator_cannot_login(self, db_session, operator):
        operator.is_active = False
        db_session.commit()
        assert auth_service.authenticate(OPERATOR_EMAIL, OPERATOR_PASSWORD) is None


class TestSessions:

    def test_token_is_stored_hashed(self, db_session, operator):
        session, token = session_service.create_session(operator.id)
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token
        assert session_service.validate_session(token).id == operator.id

    def test_expired_session(self, db_session, operator):
        session, token = session_service.create_session(operator.id)
        session.expires_at = session.created_at - timedelta(seconds=1)
        db_session.commit()

        assert session_service.validate_session(token) is None

    def test_revoked_session(self, db_session, operator):
        _, token = session_service.create_session(operator.id)
        session_service.revoke_session(token)

        assert session_service.validate_session(token) is None
        assert db_session.query(SessionToken).filter_by(is_revoked=True).count() == 1


class TestAuthRoutes:

    def test_login_me_logout(self, client, operator):
        token = get_auth_token(client, OPERATOR_EMAIL, OPERATOR_PASSWORD)
        headers = {"Authorization": f"Bearer {token}"}

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.json["user"]["email"] == OPERATOR_EMAIL
        assert "password_hash" not in me.json["user"]

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_bad_credentials(self, client, operator):
        response = client.post("/api/auth/login", json={"email": OPERATOR_EMAIL, "password": "nope"})
        assert response.status_code == 401
        assert response.json["code"] == "UNAUTHORIZED"

    def test_missing_fields(self, client, db_session):
        response = client.post("/api/auth/login", json={"email": OPERATOR_EMAIL})
        assert response.status_code == 400
