"""
tests/test_api_routes.py -- Integration tests for the auth and private routes.

These tests exercise the full stack: FastAPI routing -> access-control
dependencies -> AuthService/UserStore -> response model serialization.

Coverage:
  - Register: 201 with token + user (no password field), duplicate 409, validation 422
  - Login: 200, identical 401 for unknown email and wrong password
  - /auth/me and /private/user: 401 for every malformed/invalid Authorization
  - /private/admin: 403 for a user token, 200 for an admin token
  - The end-to-end register/login/forbidden scenario
  - Unknown routes and wrong methods answer with the error envelope

Fixtures used (from conftest.py):
  - api_client: (client, admin_token, admin_id) -- admin is root@test.com / adminpass123
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.models import User
from auth.passwords import PasswordHasher
from auth.tokens import TokenService
from core.config import Settings

# Seeded by the api_client fixture in conftest.py.
ADMIN_EMAIL = "root@test.com"
ADMIN_PASSWORD = "adminpass123"

Client = tuple[TestClient, str, int]


def _register(client: TestClient, email: str, **overrides):
    body = {"name": "Test Person", "email": email, "password": "secret123"}
    body.update(overrides)
    return client.post("/api/v1/auth/register", json=body)


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestRegisterRoute:
    def test_register_created(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        resp = _register(client, "reg-created@test.com", name="Reg Created")
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["token"]
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 86400
        assert data["user"]["email"] == "reg-created@test.com"
        assert data["user"]["name"] == "Reg Created"
        assert data["user"]["role"] == "user"
        assert resp.headers["Cache-Control"] == "no-store"

    def test_register_never_returns_password(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        resp = _register(client, "reg-nopw@test.com")
        assert resp.status_code == 201
        user = resp.json()["user"]
        assert not any("password" in key for key in user)
        assert "secret123" not in resp.text
        assert "$2b$" not in resp.text

    def test_register_normalizes_email(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        resp = _register(client, "  Reg-Mixed@Test.COM ")
        assert resp.status_code == 201, resp.text
        assert resp.json()["user"]["email"] == "reg-mixed@test.com"
        again = _register(client, "reg-mixed@test.com")
        assert again.status_code == 409

    def test_register_duplicate_conflict(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        assert _register(client, "reg-dup@test.com").status_code == 201
        resp = _register(client, "reg-dup@test.com", name="Somebody Else", password="otherpass1")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "duplicate_user"

    def test_register_validation_error(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        resp = _register(client, "not-an-email", password="123")
        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["code"] == "validation_error"
        assert "not-an-email" not in resp.text

    def test_register_unknown_role_rejected(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        resp = _register(client, "reg-role@test.com", role="superuser")
        assert resp.status_code == 422

    def test_register_missing_fields(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/v1/auth/register", json={"email": "x@test.com"})
        assert resp.status_code == 422


class TestLoginRoute:
    def test_login_valid_credentials(self, api_client: Client) -> None:
        client, _token, uid = api_client
        resp = client.post("/api/v1/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["user"]["id"] == uid
        assert data["user"]["role"] == "admin"
        assert resp.headers["Cache-Control"] == "no-store"

    def test_login_failures_are_indistinguishable(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        unknown = client.post("/api/v1/auth/login", json={"email": "ghost@test.com", "password": ADMIN_PASSWORD})
        wrong = client.post("/api/v1/auth/login", json={"email": ADMIN_EMAIL, "password": "wrongpassword"})
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()
        assert unknown.json()["error"]["code"] == "invalid_credentials"


class TestAuthenticationRequired:
    def test_me_without_header(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthenticated"
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    def test_all_rejections_share_one_body(self, api_client: Client) -> None:
        client, token, _uid = api_client
        headers = [
            {},
            {"Authorization": token},
            {"Authorization": f"bearer {token}"},
            {"Authorization": f"Basic {token}"},
            {"Authorization": "Bearer not.a.token"},
            {"Authorization": f"Bearer {token}x"},
        ]
        bodies = []
        for h in headers:
            resp = client.get("/api/v1/private/user", headers=h)
            assert resp.status_code == 401, f"{h!r} -> {resp.status_code}"
            bodies.append(resp.json())
        assert all(body == bodies[0] for body in bodies)

    def test_me_authenticated(self, api_client: Client) -> None:
        client, token, uid = api_client
        resp = client.get("/api/v1/auth/me", headers=_bearer(token))
        assert resp.status_code == 200
        data = resp.json()
        assert data["id"] == uid
        assert data["email"] == ADMIN_EMAIL
        assert "hashed_password" not in data

    def test_private_user_route(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        user_token = _register(client, "private-user@test.com").json()["token"]
        resp = client.get("/api/v1/private/user", headers=_bearer(user_token))
        assert resp.status_code == 200
        assert resp.json()["role"] == "user"


class TestRoleGate:
    def test_admin_route_forbids_user(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        user_token = _register(client, "gate-user@test.com").json()["token"]
        resp = client.get("/api/v1/private/admin", headers=_bearer(user_token))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    def test_admin_route_allows_admin(self, api_client: Client) -> None:
        client, token, uid = api_client
        resp = client.get("/api/v1/private/admin", headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json()["user_id"] == uid
        assert resp.json()["role"] == "admin"

    def test_admin_route_without_token_is_401_not_403(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        assert client.get("/api/v1/private/admin").status_code == 401


class TestScenario:
    def test_register_login_and_forbidden(self, api_client: Client) -> None:
        """Register Ana, fail a re-register, log in, fail a bad login, get 403 on the admin route."""
        client, _token, _uid = api_client
        ana = {"name": "Ana Ruiz", "email": "ana@test.com", "password": "secret123"}

        created = client.post("/api/v1/auth/register", json=ana)
        assert created.status_code == 201
        assert created.json()["token"]
        assert "password" not in created.json()["user"]

        dup = client.post("/api/v1/auth/register", json=ana)
        assert dup.status_code == 409
        assert dup.json()["error"]["code"] == "duplicate_user"

        login = client.post("/api/v1/auth/login", json={"email": "ana@test.com", "password": "secret123"})
        assert login.status_code == 200
        assert login.json()["user"]["email"] == "ana@test.com"
        token = login.json()["token"]

        bad = client.post("/api/v1/auth/login", json={"email": "ana@test.com", "password": "wrong-one"})
        assert bad.status_code == 401
        assert bad.json()["error"]["code"] == "invalid_credentials"

        forbidden = client.get("/api/v1/private/admin", headers=_bearer(token))
        assert forbidden.status_code == 403


class TestStrictRolePolicy:
    """With SELF_ASSIGN_ROLE=false, only an admin bearer token may choose a role at registration."""

    @pytest.fixture
    def strict_client(self, make_store):
        settings = Settings(secret_key="s" * 32, bcrypt_rounds=4, self_assign_role=False)
        store = make_store()
        admin_id = store.create_user(
            User(
                name="Root Admin",
                email=ADMIN_EMAIL,
                hashed_password=PasswordHasher(rounds=4).hash("x" * 8),
                role="admin",
            )
        )
        admin_token = TokenService(settings).issue(admin_id, "admin")
        with TestClient(create_app(settings, user_store=store)) as client:
            yield client, admin_token

    def test_anonymous_admin_request_gets_user_role(self, strict_client) -> None:
        client, _admin_token = strict_client
        resp = _register(client, "sneaky@test.com", role="admin")
        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "user"

    def test_admin_can_create_admin(self, strict_client) -> None:
        client, admin_token = strict_client
        resp = client.post(
            "/api/v1/auth/register",
            json={"name": "Second Admin", "email": "second@test.com", "password": "secret123", "role": "admin"},
            headers=_bearer(admin_token),
        )
        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "admin"


class TestErrorEnvelope:
    def test_unknown_route_uses_envelope(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        resp = client.get("/api/v1/nope")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "http_404"
        assert set(resp.json()) == {"error"}

    def test_wrong_method_uses_envelope(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        resp = client.get("/api/v1/auth/login")
        assert resp.status_code == 405
        assert resp.json()["error"]["code"] == "http_405"
        assert "POST" in resp.headers["Allow"]

    def test_unauthenticated_body_is_envelope(self, api_client: Client) -> None:
        client, _token, _uid = api_client
        body = client.get("/api/v1/private/user").json()
        assert set(body) == {"error"}
        assert body["error"]["message"] == "Authentication required."
