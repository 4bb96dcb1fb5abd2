from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.core.config import (
    AppConfig,
    AuthConfig,
    EmailConfig,
    LoggingConfig,
    SecurityConfig,
    StorageConfig,
)
from app.notifications.email import EmailDeliveryError
from web_api import create_app


@dataclass
class _Mailer:
    sent: list[tuple[str, str]] = field(default_factory=list)
    fail: bool = False

    def send_verification_email(self, to: str, raw_token: str) -> None:
        if self.fail:
            raise EmailDeliveryError("smtp down")
        self.sent.append((to, raw_token))


def _config() -> AppConfig:
    return AppConfig(
        auth=AuthConfig(
            access_secret="access-secret",
            refresh_secret="refresh-secret",
            access_token_ttl_seconds=300,
            refresh_token_ttl_seconds=1200,
            verification_token_ttl_seconds=3600,
            issuer="task-tracker-test",
        ),
        storage=StorageConfig(mongo_uri="", mongo_db="test", reaper_interval_seconds=3600),
        email=EmailConfig(
            smtp_host="",
            smtp_port=587,
            smtp_user="",
            smtp_password="",
            smtp_use_tls=True,
            from_email="noreply@test.local",
            from_name="Task Tracker",
            app_base_url="http://testserver",
        ),
        logging=LoggingConfig(level="INFO"),
        security=SecurityConfig(
            cors_allowed_origins=["http://localhost:3000"],
            request_max_bytes=64 * 1024,
            frontend_url="http://localhost:3000",
        ),
    )


@pytest.fixture
def mailer() -> _Mailer:
    return _Mailer()


@pytest.fixture
def client(tmp_path: Path, mailer: _Mailer):
    app = create_app(_config(), app_root=tmp_path, email_sender=mailer)
    with TestClient(app) as test_client:
        yield test_client


def _register_and_verify(client: TestClient, mailer: _Mailer) -> None:
    response = client.post(
        "/users/register",
        json={"name": "Alice", "email": "a@x.com", "password": "secret1"},
    )
    assert response.status_code == 201
    token = mailer.sent[-1][1]
    verified = client.get("/auth/verify-email", params={"token": token})
    assert verified.status_code == 200
    assert "Email Verified!" in verified.text


def test_health(client: TestClient) -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Frame-Options"] == "DENY"


def test_full_login_refresh_logout_flow(client: TestClient, mailer: _Mailer) -> None:
    _register_and_verify(client, mailer)

    login = client.post("/auth/login", json={"email": "a@x.com", "password": "secret1"})
    assert login.status_code == 200
    body = login.json()
    assert body["user"]["email"] == "a@x.com"
    assert body["token_type"] == "bearer"

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "a@x.com"

    refreshed = client.post("/auth/refresh", json={"refresh_token": body["refresh_token"]})
    assert refreshed.status_code == 200
    new_refresh = refreshed.json()["refresh_token"]
    assert new_refresh != body["refresh_token"]

    logout = client.post("/auth/logout", json={"refresh_token": new_refresh})
    assert logout.status_code == 200
    again = client.post("/auth/logout", json={"refresh_token": new_refresh})
    assert again.status_code == 200

    dead = client.post("/auth/refresh", json={"refresh_token": new_refresh})
    assert dead.status_code == 401
    assert dead.json()["error_code"] == "AUTH_TOKEN_INVALID"


def test_refresh_replay_returns_distinct_error_and_kills_family(
    client: TestClient, mailer: _Mailer
) -> None:
    _register_and_verify(client, mailer)
    login = client.post("/auth/login", json={"email": "a@x.com", "password": "secret1"})
    original = login.json()["refresh_token"]
    rotated = client.post("/auth/refresh", json={"refresh_token": original}).json()

    replay = client.post("/auth/refresh", json={"refresh_token": original})
    follow_up = client.post("/auth/refresh", json={"refresh_token": rotated["refresh_token"]})

    assert replay.status_code == 401
    assert replay.json()["error_code"] == "AUTH_REFRESH_REPLAY"
    assert follow_up.status_code == 401
    assert follow_up.json()["error_code"] == "AUTH_TOKEN_INVALID"


def test_login_failure_does_not_reveal_which_field_was_wrong(
    client: TestClient, mailer: _Mailer
) -> None:
    _register_and_verify(client, mailer)

    unknown = client.post("/auth/login", json={"email": "b@x.com", "password": "secret1"})
    wrong = client.post("/auth/login", json={"email": "a@x.com", "password": "nope"})

    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json() == wrong.json()


def test_login_before_verification_fails(client: TestClient) -> None:
    client.post(
        "/users/register",
        json={"name": "Alice", "email": "a@x.com", "password": "secret1"},
    )

    response = client.post("/auth/login", json={"email": "a@x.com", "password": "secret1"})

    assert response.status_code == 401


def test_register_twice_invalidates_first_link(client: TestClient, mailer: _Mailer) -> None:
    payload = {"name": "Alice", "email": "a@x.com", "password": "secret1"}

    assert client.post("/users/register", json=payload).status_code == 201
    assert client.post("/users/register", json=payload).status_code == 201

    stale = client.get("/auth/verify-email", params={"token": mailer.sent[0][1]})
    fresh = client.get("/auth/verify-email", params={"token": mailer.sent[1][1]})
    assert stale.status_code == 400
    assert "Verification Failed" in stale.text
    assert fresh.status_code == 200


def test_register_existing_account_conflicts(client: TestClient, mailer: _Mailer) -> None:
    _register_and_verify(client, mailer)

    response = client.post(
        "/users/register",
        json={"name": "Alice", "email": "a@x.com", "password": "secret1"},
    )

    assert response.status_code == 409


def test_register_reports_email_failure(client: TestClient, mailer: _Mailer) -> None:
    mailer.fail = True

    response = client.post(
        "/users/register",
        json={"name": "Alice", "email": "a@x.com", "password": "secret1"},
    )

    assert response.status_code == 502
    assert response.json()["error_code"] == "EMAIL_DELIVERY_FAILED"


def test_register_validates_payload(client: TestClient) -> None:
    response = client.post(
        "/users/register", json={"name": "Alice", "email": "not-an-email", "password": "x"}
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_verify_email_bad_token_renders_error_page(client: TestClient) -> None:
    response = client.get("/auth/verify-email", params={"token": "bad-token"})
    missing = client.get("/auth/verify-email")

    assert response.status_code == 400
    assert "Verification Failed" in response.text
    assert missing.status_code == 400


def test_legacy_verify_link_redirects(client: TestClient) -> None:
    response = client.get(
        "/verify-email", params={"token": "abc"}, follow_redirects=False
    )

    assert response.status_code == 302
    assert response.headers["location"] == "/auth/verify-email?token=abc"


def test_resend_verification_paths(client: TestClient, mailer: _Mailer) -> None:
    unknown = client.post("/auth/resend-verification", json={"email": "ghost@x.com"})
    assert unknown.status_code == 200
    assert mailer.sent == []

    client.post(
        "/users/register",
        json={"name": "Alice", "email": "a@x.com", "password": "secret1"},
    )
    pending = client.post("/auth/resend-verification", json={"email": "a@x.com"})
    assert pending.status_code == 200
    assert len(mailer.sent) == 2

    client.get("/auth/verify-email", params={"token": mailer.sent[-1][1]})
    verified = client.post("/auth/resend-verification", json={"email": "a@x.com"})
    assert verified.status_code == 409
    assert verified.json()["error_code"] == "AUTH_ALREADY_VERIFIED"


def test_check_verification_status(client: TestClient, mailer: _Mailer) -> None:
    before = client.get("/auth/check-verification-status", params={"email": "a@x.com"})
    _register_and_verify(client, mailer)
    after = client.get("/auth/check-verification-status", params={"email": "a@x.com"})

    assert before.json() == {"verified": False}
    assert after.json() == {"verified": True}


def test_protected_routes_require_bearer_token(client: TestClient) -> None:
    missing = client.get("/auth/me")
    invalid = client.get("/auth/me", headers={"Authorization": "Bearer nope"})

    assert missing.status_code == 401
    assert missing.json()["error_code"] == "AUTH_MISSING_TOKEN"
    assert invalid.status_code == 401
    assert invalid.json()["error_code"] == "AUTH_TOKEN_INVALID"


def test_logout_all_revokes_every_session(client: TestClient, mailer: _Mailer) -> None:
    _register_and_verify(client, mailer)
    creds = {"email": "a@x.com", "password": "secret1"}
    first = client.post("/auth/login", json=creds).json()
    second = client.post("/auth/login", json=creds).json()

    response = client.post(
        "/auth/logout-all", headers={"Authorization": f"Bearer {first['access_token']}"}
    )

    assert response.status_code == 200
    assert response.json()["revoked"] == 2
    for session in (first, second):
        dead = client.post("/auth/refresh", json={"refresh_token": session["refresh_token"]})
        assert dead.status_code == 401
