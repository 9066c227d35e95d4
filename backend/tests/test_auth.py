"""Tests for authentication: hashing, tokens, registration, login and lockout."""

from datetime import timedelta

from franchisehub.core.security import (
    blacklist_token,
    create_access_token,
    decode_access_token,
    generate_temporary_password,
    get_password_hash,
    verify_password,
)
from franchisehub.models import User, UserStatus
from franchisehub.schemas.auth import PASSWORD_RULE

from conftest import TEST_PASSWORD

API = "/api/v1/auth"


# ============== Password hashing ==============

class TestPasswordHashing:
    def test_hash_and_verify(self):
        h = get_password_hash("Secret@123")
        assert verify_password("Secret@123", h)

    def test_wrong_password_rejected(self):
        h = get_password_hash("Secret@123")
        assert not verify_password("wrong", h)

    def test_hash_is_salted(self):
        assert get_password_hash("same") != get_password_hash("same")

    def test_invalid_hash_returns_false(self):
        assert not verify_password("test", "not-a-hash")

    def test_temporary_password_meets_rules(self):
        for _ in range(20):
            assert PASSWORD_RULE.match(generate_temporary_password())


# ============== JWT tokens ==============

class TestJWTTokens:
    def test_create_and_decode(self):
        token = create_access_token(data={"sub": "42", "email": "a@b.com", "role": "franchisor"})
        payload = decode_access_token(token)
        assert payload["sub"] == "42"
        assert payload["role"] == "franchisor"
        assert "exp" in payload
        assert "jti" in payload

    def test_expired_token_rejected(self):
        token = create_access_token(data={"sub": "1"}, expires_delta=timedelta(seconds=-10))
        assert decode_access_token(token) is None

    def test_garbage_token_rejected(self):
        assert decode_access_token("not.a.token") is None

    def test_blacklisted_token_rejected(self):
        token = create_access_token(data={"sub": "7"})
        assert blacklist_token(token)
        assert decode_access_token(token) is None


# ============== Registration ==============

class TestRegister:
    def _payload(self, **overrides):
        payload = {
            "name": "New Owner",
            "email": "new.owner@example.com",
            "password": TEST_PASSWORD,
            "password_confirmation": TEST_PASSWORD,
            "role": "franchisor",
        }
        payload.update(overrides)
        return payload

    def test_register_franchisor(self, client, db_session):
        response = client.post(f"{API}/register", json=self._payload())
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["token_type"] == "bearer"
        assert body["data"]["requires_franchise_registration"] is True
        assert body["data"]["user"]["status"] == "pending"
        user = db_session.query(User).filter(User.email == "new.owner@example.com").first()
        assert user.password_hash != TEST_PASSWORD

    def test_register_broker_needs_no_franchise(self, client):
        response = client.post(f"{API}/register", json=self._payload(role="broker"))
        assert response.status_code == 201
        assert response.json()["data"]["requires_franchise_registration"] is False

    def test_register_franchisee_rejected(self, client):
        response = client.post(f"{API}/register", json=self._payload(role="franchisee"))
        assert response.status_code == 422

    def test_weak_password(self, client):
        response = client.post(
            f"{API}/register", json=self._payload(password="password", password_confirmation="password")
        )
        assert response.status_code == 422
        body = response.json()
        assert body["message"] == "Validation failed"
        assert "password" in body["errors"]

    def test_password_mismatch(self, client):
        response = client.post(f"{API}/register", json=self._payload(password_confirmation="Other0ne!"))
        assert response.status_code == 422

    def test_duplicate_email(self, client, franchisor_user):
        response = client.post(f"{API}/register", json=self._payload(email=franchisor_user.email))
        assert response.status_code == 422
        assert "email" in response.json()["errors"]


# ============== Login ==============

class TestLogin:
    def test_login_success(self, client, franchisor_user):
        response = client.post(f"{API}/login", json={"email": franchisor_user.email, "password": TEST_PASSWORD})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["access_token"]
        assert data["user"]["email"] == franchisor_user.email
        assert "password_hash" not in data["user"]

    def test_login_is_case_insensitive_on_email(self, client, franchisor_user):
        response = client.post(f"{API}/login", json={"email": "OWNER@example.com", "password": TEST_PASSWORD})
        assert response.status_code == 200

    def test_remember_me_extends_expiry(self, client, franchisor_user):
        short = client.post(f"{API}/login", json={"email": franchisor_user.email, "password": TEST_PASSWORD})
        long = client.post(
            f"{API}/login", json={"email": franchisor_user.email, "password": TEST_PASSWORD, "remember": True}
        )
        assert long.json()["data"]["expires_in"] > short.json()["data"]["expires_in"]

    def test_wrong_password(self, client, franchisor_user):
        response = client.post(f"{API}/login", json={"email": franchisor_user.email, "password": "Wrong0ne!"})
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid email or password"}

    def test_unknown_email(self, client):
        response = client.post(f"{API}/login", json={"email": "ghost@example.com", "password": TEST_PASSWORD})
        assert response.status_code == 401

    def test_suspended_user(self, client, db_session, franchisor_user):
        franchisor_user.status = UserStatus.SUSPENDED
        db_session.commit()
        response = client.post(f"{API}/login", json={"email": franchisor_user.email, "password": TEST_PASSWORD})
        assert response.status_code == 401

    def test_lockout_after_repeated_failures(self, client, db_session, franchisor_user):
        for _ in range(5):
            response = client.post(
                f"{API}/login", json={"email": franchisor_user.email, "password": "Wrong0ne!"}
            )
            assert response.status_code == 401
        response = client.post(f"{API}/login", json={"email": franchisor_user.email, "password": TEST_PASSWORD})
        assert response.status_code == 429
        db_session.refresh(franchisor_user)
        assert franchisor_user.locked_until is not None


# ============== Session ==============

class TestSession:
    def test_me(self, client, franchisor_user, franchisor_headers):
        response = client.get(f"{API}/me", headers=franchisor_headers)
        assert response.status_code == 200
        assert response.json()["data"]["id"] == franchisor_user.id

    def test_api_requires_token(self, client):
        response = client.get("/api/v1/units/")
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Authentication required"}

    def test_invalid_token(self, client):
        response = client.get(f"{API}/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_logout_revokes_token(self, client, franchisor_headers):
        response = client.post(f"{API}/logout", headers=franchisor_headers)
        assert response.status_code == 200
        response = client.get(f"{API}/me", headers=franchisor_headers)
        assert response.status_code == 401

    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_security_headers(self, client):
        response = client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
