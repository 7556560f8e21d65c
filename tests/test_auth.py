"""Authentication and capability policy tests."""
import time
from datetime import timedelta

import pytest
from jose import jwt

import auth
from config import get_settings
from errors import UnauthorizedError


class TestTokens:
    def test_token_carries_identity_claims(self):
        user = {"id": "65f000000000000000000001", "email": "a@b.com", "user_type": "medical_staff"}
        token = auth.create_access_token(user)

        claims = auth.decode_access_token(token)

        assert claims["id"] == user["id"]
        assert claims["email"] == "a@b.com"
        assert claims["userType"] == "medical_staff"

    def test_token_valid_for_24_hours(self):
        user = {"id": "65f000000000000000000001", "email": "a@b.com", "user_type": "medical_staff"}
        claims = jwt.get_unverified_claims(auth.create_access_token(user))
        assert abs(claims["exp"] - (time.time() + 24 * 60 * 60)) < 60

    def test_expired_token_rejected(self):
        user = {"id": "65f000000000000000000001", "email": "a@b.com", "user_type": "medical_staff"}
        token = auth.create_access_token(user, expires_delta=timedelta(seconds=-5))
        with pytest.raises(UnauthorizedError, match="expired"):
            auth.decode_access_token(token)

    def test_foreign_signature_rejected(self):
        token = jwt.encode({"id": "x", "userType": "medical_staff"}, "other-secret", algorithm="HS256")
        with pytest.raises(UnauthorizedError):
            auth.decode_access_token(token)

    def test_missing_claims_rejected(self):
        settings = get_settings()
        token = jwt.encode({"email": "a@b.com"}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
        with pytest.raises(UnauthorizedError):
            auth.decode_access_token(token)

    def test_missing_token_rejected(self):
        with pytest.raises(UnauthorizedError, match="no token"):
            auth.decode_access_token(None)


class TestPasswords:
    def test_hash_roundtrip(self):
        hashed = auth.hash_password("pw-123456")
        assert hashed != "pw-123456"
        assert auth.verify_password("pw-123456", hashed)
        assert not auth.verify_password("wrong", hashed)


class TestAuthEndpoints:
    def test_register_returns_token_and_public_user(self, client):
        response = client.post(
            "/api/auth/register",
            json={
                "firstName": "Ada",
                "lastName": "Nurse",
                "email": "Ada@Example.com",
                "password": "s3cret-pass",
                "userType": "medical_staff",
                "department": "ICU",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["token"]
        assert data["user"]["email"] == "ada@example.com"
        assert data["user"]["userType"] == "medical_staff"
        assert data["user"]["department"] == "ICU"
        assert "passwordHash" not in data["user"]
        assert "password_hash" not in data["user"]

    def test_register_duplicate_email(self, client, medical):
        response = client.post(
            "/api/auth/register",
            json={
                "firstName": "Dup",
                "lastName": "User",
                "email": "medic@example.com",
                "password": "another-pass",
                "userType": "medical_staff",
            },
        )
        assert response.status_code == 400
        assert response.json()["message"] == "User already exists"

    def test_register_rejects_unknown_role(self, client):
        response = client.post(
            "/api/auth/register",
            json={
                "firstName": "X",
                "lastName": "Y",
                "email": "x@example.com",
                "password": "s3cret-pass",
                "userType": "admin",
            },
        )
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_login_and_profile(self, client, medical):
        response = client.post("/api/auth/login", json={"email": "medic@example.com", "password": "s3cret-pass"})
        assert response.status_code == 200
        token = response.json()["token"]

        profile = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert profile.status_code == 200
        assert profile.json()["id"] == medical["user"]["id"]
        assert profile.json()["firstName"] == "Test"

    def test_login_wrong_password(self, client, medical):
        response = client.post("/api/auth/login", json={"email": "medic@example.com", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    def test_profile_requires_token(self, client):
        response = client.get("/api/auth/profile")
        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHORIZED"

    def test_profile_rejects_garbage_token(self, client):
        response = client.get("/api/auth/profile", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_token_for_deleted_user_rejected(self, client, medical, mongo):
        mongo["users"].delete_many({})
        response = client.get("/api/auth/profile", headers=medical["headers"])
        assert response.status_code == 401


class TestCapabilityPolicy:
    def test_every_operation_has_roles(self):
        for operation, roles in auth.POLICY.items():
            assert roles, operation
            assert roles <= {auth.MEDICAL_STAFF, auth.DISPOSAL_STAFF}

    @pytest.mark.parametrize(
        "method,path,role_fixture",
        [
            ("get", "/api/requests/pending", "medical"),
            ("get", "/api/requests/my-requests", "disposal"),
            ("put", "/api/requests/65f000000000000000000001/assign", "medical"),
        ],
    )
    def test_wrong_role_forbidden(self, client, request, method, path, role_fixture):
        user = request.getfixturevalue(role_fixture)
        response = getattr(client, method)(path, headers=user["headers"])
        assert response.status_code == 403
        assert "not authorized" in response.json()["message"]

    def test_disposal_staff_cannot_create(self, client, disposal):
        response = client.post(
            "/api/requests/create",
            headers=disposal["headers"],
            json={"wasteType": "general", "quantity": 1, "unit": "kg", "urgency": "low"},
        )
        assert response.status_code == 403
