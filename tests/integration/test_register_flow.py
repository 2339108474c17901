"""
Integration tests for the registration and login flows.

Drives the full API with a real database and the console email sender,
reading OTP codes from the application log.
Requires PostgreSQL to be running; skipped otherwise.
"""

import logging
import re
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from psycopg_pool import ConnectionPool

from pinauth.api.main import app

pytestmark = pytest.mark.integration


@pytest.fixture
def client(pool: ConnectionPool) -> TestClient:
    """Create test client with real database connection."""
    # Override the app's pool with our test pool
    app.state.pool = pool
    return TestClient(app)


def request_code(client: TestClient, caplog: pytest.LogCaptureFixture, email: str) -> str:
    """Request an OTP and return the code the console sender logged."""
    caplog.clear()
    with caplog.at_level(logging.INFO):
        response = client.post("/v1/auth/check-email-register", json={"email": email})
    assert response.status_code == 200
    match = re.search(rf"\[OTP\] Email: {re.escape(email)} Code: (\d{{6}})", caplog.text)
    assert match, "OTP code not found in logs"
    return match.group(1)


def register(client: TestClient, caplog: pytest.LogCaptureFixture, email: str, name: str, pin: str) -> dict:
    code = request_code(client, caplog, email)
    client.post("/v1/auth/verify-otp", json={"email": email, "otp_code": code})
    client.post("/v1/auth/set-name", json={"email": email, "name": name})
    response = client.post("/v1/auth/set-pin", json={"email": email, "pin_code": pin})
    assert response.status_code == 201
    return response.json()


class TestRegisterFlow:
    def test_full_registration_flow(self, client, caplog, pool) -> None:
        code = request_code(client, caplog, "a@x.com")

        response = client.post("/v1/auth/verify-otp", json={"email": "a@x.com", "otp_code": code})
        assert response.json()["status"] == "verified"

        response = client.post("/v1/auth/set-name", json={"email": "a@x.com", "name": "Ana"})
        assert response.json()["status"] == "name_saved"

        response = client.post("/v1/auth/set-pin", json={"email": "a@x.com", "pin_code": "123456"})
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "registered"
        assert body["user"]["name"] == "Ana"
        assert body["user"]["email"] == "a@x.com"
        assert re.match(r"^\d+\|[0-9a-f]{40}$", body["token"])

        with pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("SELECT COUNT(*) FROM otp_registrations WHERE email = %s", ("a@x.com",))
            assert cursor.fetchone()[0] == 0
            cursor.execute("SELECT COUNT(*), MIN(pin_code) FROM users WHERE email = %s", ("a@x.com",))
            count, pin_hash = cursor.fetchone()
        assert count == 1
        assert pin_hash != "123456"

    def test_code_is_stored_hashed(self, client, caplog, pool) -> None:
        code = request_code(client, caplog, "a@x.com")

        with pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("SELECT otp_code FROM otp_registrations WHERE email = %s", ("a@x.com",))
            stored = cursor.fetchone()[0]
        assert stored != code
        assert stored.startswith("$2")

    def test_new_request_invalidates_old_code(self, client, caplog) -> None:
        first = request_code(client, caplog, "a@x.com")
        second = request_code(client, caplog, "a@x.com")

        if first != second:
            response = client.post("/v1/auth/verify-otp", json={"email": "a@x.com", "otp_code": first})
            assert response.status_code == 422
        response = client.post("/v1/auth/verify-otp", json={"email": "a@x.com", "otp_code": second})
        assert response.status_code == 200

    def test_expired_code_is_rejected(self, client, caplog, pool) -> None:
        code = request_code(client, caplog, "a@x.com")
        with pool.connection() as conn:
            conn.execute(
                "UPDATE otp_registrations SET expires_at = %s WHERE email = %s",
                (datetime.now(timezone.utc) - timedelta(seconds=1), "a@x.com"),
            )
            conn.commit()

        response = client.post("/v1/auth/verify-otp", json={"email": "a@x.com", "otp_code": code})

        assert response.status_code == 422
        assert response.json()["status"] == "invalid"

    def test_set_name_before_verification(self, client, caplog) -> None:
        request_code(client, caplog, "a@x.com")

        response = client.post("/v1/auth/set-name", json={"email": "a@x.com", "name": "Ana"})

        assert response.status_code == 422
        assert response.json()["status"] == "otp_required"

    def test_set_pin_before_name(self, client, caplog) -> None:
        code = request_code(client, caplog, "a@x.com")
        client.post("/v1/auth/verify-otp", json={"email": "a@x.com", "otp_code": code})

        response = client.post("/v1/auth/set-pin", json={"email": "a@x.com", "pin_code": "123456"})

        assert response.status_code == 422
        assert response.json()["status"] == "incomplete_data"

    def test_registered_email_cannot_request_code(self, client, caplog) -> None:
        register(client, caplog, "a@x.com", "Ana", "123456")

        response = client.post("/v1/auth/check-email-register", json={"email": "a@x.com"})

        assert response.status_code == 422
        assert response.json()["status"] == "used"


class TestLoginFlow:
    def test_check_email(self, client, caplog) -> None:
        response = client.post("/v1/auth/check-email-login", json={"email": "a@x.com"})
        assert response.status_code == 404

        register(client, caplog, "a@x.com", "Ana", "123456")

        response = client.post("/v1/auth/check-email-login", json={"email": "a@x.com"})
        assert response.status_code == 200
        assert response.json()["status"] == "registered"

    def test_login_me_logout(self, client, caplog) -> None:
        registered = register(client, caplog, "a@x.com", "Ana", "123456")

        response = client.post("/v1/auth/login-pin", json={"email": "a@x.com", "pin_code": "123456"})
        assert response.status_code == 200
        token = response.json()["token"]
        headers = {"Authorization": f"Bearer {token}"}

        me = client.get("/v1/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.json()["data"]["id"] == registered["user"]["id"]

        assert client.post("/v1/auth/logout", headers=headers).status_code == 200
        assert client.get("/v1/auth/me", headers=headers).status_code == 401

        other = {"Authorization": f"Bearer {registered['token']}"}
        assert client.get("/v1/auth/me", headers=other).status_code == 200

    def test_wrong_pin_and_unknown_email_look_the_same(self, client, caplog) -> None:
        register(client, caplog, "a@x.com", "Ana", "123456")

        wrong_pin = client.post("/v1/auth/login-pin", json={"email": "a@x.com", "pin_code": "000000"})
        unknown = client.post("/v1/auth/login-pin", json={"email": "b@x.com", "pin_code": "123456"})

        assert wrong_pin.status_code == unknown.status_code == 401
        assert wrong_pin.json() == unknown.json()


class TestHealth:
    def test_health_checks_database(self, client) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}
