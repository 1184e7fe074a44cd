"""End-to-end tests for the HTTP endpoints with in-memory collaborators."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from main import app
from portfolio_api.api.dependencies import get_account_store, get_mailer
from tests.conftest import PASSWORD
from tests.fakes import InMemoryAccountStore, RecordingMailer


@pytest.fixture()
def api_store() -> InMemoryAccountStore:
    return InMemoryAccountStore()


@pytest.fixture()
def api_mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def client(api_store, api_mailer):
    """Return a test client wired to the in-memory store and mailer."""

    app.dependency_overrides[get_account_store] = lambda: api_store
    app.dependency_overrides[get_mailer] = lambda: api_mailer
    yield TestClient(app)
    app.dependency_overrides.clear()


def _register(client: TestClient, username: str = "alice", email: str = "alice@x.com"):
    return client.post("/api/v1/users/register", json={
        "full_name": "Alice Example",
        "email": email,
        "username": username,
        "password": PASSWORD,
    })


def _verified_user(client: TestClient, api_mailer: RecordingMailer, username: str = "alice") -> dict:
    user = _register(client, username, f"{username}@x.com").json()["data"]
    client.post("/api/v1/users/email-verification", json={"email": f"{username}@x.com"})
    response = client.patch(f"/api/v1/users/email-verification/{api_mailer.last_link_token()}")
    assert response.status_code == 200
    return user


def _login(client: TestClient, username: str = "alice", password: str = PASSWORD):
    return client.post("/api/v1/users/login", json={"username": username, "password": password})


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_register_returns_201_and_hides_secrets(client):
    response = _register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["username"] == "alice"
    assert "password" not in body["data"]


def test_duplicate_registration_is_409(client):
    _register(client)

    response = _register(client, username="someone-else")

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["status_code"] == 409
    assert body["path"] == "/api/v1/users/register"


def test_register_rejects_malformed_email(client):
    response = _register(client, email="nope")

    assert response.status_code == 422


def test_login_before_verification_is_412(client):
    _register(client)

    response = _login(client)

    assert response.status_code == 412
    assert "access_token" not in response.cookies


def test_login_sets_httponly_cookies_and_returns_tokens(client, api_mailer):
    _verified_user(client, api_mailer)

    response = _login(client)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["access_token"] and data["refresh_token"]
    cookies = response.headers.get_list("set-cookie")
    assert any(c.startswith("access_token=") and "HttpOnly" in c and "Secure" in c for c in cookies)
    assert any(c.startswith("refresh_token=") and "HttpOnly" in c for c in cookies)


def test_login_with_email_field(client, api_mailer):
    _verified_user(client, api_mailer)

    response = client.post("/api/v1/users/login", json={"email": "ALICE@x.com", "password": PASSWORD})

    assert response.status_code == 200


def test_bad_password_is_401(client, api_mailer):
    _verified_user(client, api_mailer)

    assert _login(client, password="wrong-password").status_code == 401
    assert _login(client, username="ghost").status_code == 401


def test_profile_requires_valid_access_token(client, api_mailer):
    _verified_user(client, api_mailer)
    token = _login(client).json()["data"]["access_token"]

    assert client.get("/api/v1/users/profile").status_code == 401
    assert client.get("/api/v1/users/profile", headers=_auth("garbage")).status_code == 401

    response = client.get("/api/v1/users/profile", headers=_auth(token))
    assert response.status_code == 200
    assert response.json()["data"]["email"] == "alice@x.com"


def test_refresh_token_cannot_authenticate_requests(client, api_mailer):
    _verified_user(client, api_mailer)
    refresh = _login(client).json()["data"]["refresh_token"]

    assert client.get("/api/v1/users/profile", headers=_auth(refresh)).status_code == 401


def test_refresh_rotation_and_replay(client, api_mailer):
    _verified_user(client, api_mailer)
    original = _login(client).json()["data"]["refresh_token"]

    rotated = client.post("/api/v1/users/refresh", json={"refresh_token": original})
    assert rotated.status_code == 200
    assert rotated.json()["data"]["refresh_token"] != original

    replay = client.post("/api/v1/users/refresh", json={"refresh_token": original})
    assert replay.status_code == 401


def test_refresh_without_token_is_401(client):
    assert client.post("/api/v1/users/refresh").status_code == 401


def test_logout_twice_succeeds(client, api_mailer, api_store):
    user = _verified_user(client, api_mailer)
    token = _login(client).json()["data"]["access_token"]

    first = client.post("/api/v1/users/logout", headers=_auth(token))
    second = client.post("/api/v1/users/logout", headers=_auth(token))

    assert first.status_code == 200
    assert second.status_code == 200
    assert api_store.find_by_id(user["id"]).refresh_token is None


def test_two_step_toggle_then_otp_login(client, api_mailer):
    _verified_user(client, api_mailer)
    token = _login(client).json()["data"]["access_token"]

    sent = client.post("/api/v1/users/send-otp-for-two-step-verification",
                       json={"password": PASSWORD}, headers=_auth(token))
    assert sent.status_code == 200
    assert "otp" not in sent.json()["data"]

    toggled = client.patch("/api/v1/users/verify-otp-for-two-step-verification",
                           json={"otp": api_mailer.last_otp()}, headers=_auth(token))
    assert toggled.status_code == 200
    assert toggled.json()["data"]["is_two_factor_enabled"] is True

    pending = _login(client)
    assert pending.status_code == 200
    assert pending.json()["data"] == {"otp_required": True}

    completed = client.patch("/api/v1/users/verify-otp-while-login", json={"otp": api_mailer.last_otp()})
    assert completed.status_code == 200
    assert completed.json()["data"]["access_token"]


def test_password_reset_endpoints(client, api_mailer):
    _verified_user(client, api_mailer)
    assert client.post("/api/v1/users/forgot-password", json={"email": "alice@x.com"}).status_code == 200
    token = api_mailer.last_link_token()

    mismatch = client.patch(f"/api/v1/users/reset-password/{token}",
                            json={"password": "N3w-password", "confirm_password": "other"})
    assert mismatch.status_code == 400

    reset = client.patch(f"/api/v1/users/reset-password/{token}",
                         json={"password": "N3w-password", "confirm_password": "N3w-password"})
    assert reset.status_code == 200
    assert _login(client).status_code == 401
    assert _login(client, password="N3w-password").status_code == 200


def test_mail_failure_is_502(client, api_mailer):
    _register(client)
    api_mailer.succeed = False

    response = client.post("/api/v1/users/email-verification", json={"email": "alice@x.com"})

    assert response.status_code == 502


def test_block_unblock_requires_admin(client, api_mailer, api_store):
    target = _verified_user(client, api_mailer, "alice")
    admin = _verified_user(client, api_mailer, "root")
    api_store.update_fields(admin["id"], role="admin")
    user_token = _login(client, "alice").json()["data"]["access_token"]
    admin_token = _login(client, "root").json()["data"]["access_token"]
    url = f"/api/v1/admin/user/block-unblock/{target['id']}"

    assert client.patch(url).status_code == 401
    assert client.patch(url, headers=_auth(user_token)).status_code == 403

    blocked = client.patch(url, headers=_auth(admin_token))
    assert blocked.status_code == 200
    assert blocked.json()["data"]["is_blocked"] is True

    login = _login(client, "alice")
    assert login.status_code == 403
    assert "Try again in" in login.json()["message"]

    unblocked = client.patch(url, headers=_auth(admin_token))
    assert unblocked.json()["data"]["is_blocked"] is False
    assert _login(client, "alice").status_code == 200


def test_block_unknown_account_is_404(client, api_mailer, api_store):
    admin = _verified_user(client, api_mailer, "root")
    api_store.update_fields(admin["id"], role="admin")
    admin_token = _login(client, "root").json()["data"]["access_token"]

    response = client.patch("/api/v1/admin/user/block-unblock/64b000000000000000000000",
                            headers=_auth(admin_token))

    assert response.status_code == 404


def test_update_account_details_endpoint(client, api_mailer, api_store):
    user = _verified_user(client, api_mailer)
    _verified_user(client, api_mailer, "bob")
    password_hash = api_store.find_by_id(user["id"]).password
    token = _login(client).json()["data"]["access_token"]
    url = "/api/v1/users/update-account-details"
    details = {"full_name": "Alice Renamed", "email": "renamed@x.com", "username": "alice"}

    assert client.patch(url, json=details).status_code == 401
    assert client.patch(url, json={**details, "username": "bob"}, headers=_auth(token)).status_code == 409

    response = client.patch(url, json=details, headers=_auth(token))

    assert response.status_code == 200
    assert response.json()["data"]["email"] == "renamed@x.com"
    assert api_store.find_by_id(user["id"]).password == password_hash
