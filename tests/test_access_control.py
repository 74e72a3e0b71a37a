"""
Tests for the access-control dependencies.

These tests verify:
  - The token is accepted from the Authorization header or the auth cookie
  - Missing, forged, expired and malformed tokens are rejected with 401
  - A token whose user was deleted is rejected with 401
  - A token issued before the last password change is rejected (stale),
    and accepted when the change is at or before its issued-at time
  - The soft /session check never fails, it only reports anonymous
  - Role enforcement: only admins reach /admin/*
"""

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, update
from sqlalchemy.exc import OperationalError

from marketplace_api.config import settings
from marketplace_api.models.user import User
from marketplace_api.security import TokenIssuer
from marketplace_api.services import user_service

from conftest import signup_payload


async def _signup(client, email="member@example.com") -> tuple[uuid.UUID, str]:
    response = await client.post("/signup/user", json=signup_payload(email=email))
    assert response.status_code == 201
    client.cookies.clear()
    body = response.json()
    return uuid.UUID(body["user"]["id"]), body["token"]


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestTokenTransport:

    async def test_no_token_returns_401(self, client):
        response = await client.get("/me")
        assert response.status_code == 401
        assert response.json()["error_type"] == "unauthenticated"
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_bearer_header(self, client):
        _, token = await _signup(client)
        response = await client.get("/me", headers=_bearer(token))
        assert response.status_code == 200

    async def test_cookie(self, client):
        _, token = await _signup(client)
        client.cookies.set("jwt", token)
        response = await client.get("/me")
        assert response.status_code == 200

    async def test_header_takes_precedence_over_cookie(self, client):
        _, token = await _signup(client)
        client.cookies.set("jwt", token)
        response = await client.get("/me", headers=_bearer("totally.fake.token"))
        assert response.status_code == 401

    async def test_malformed_auth_header_returns_401(self, client):
        _, token = await _signup(client)
        response = await client.get("/me", headers={"Authorization": f"NotBearer {token}"})
        assert response.status_code == 401


class TestTokenVerification:

    async def test_forged_token_returns_401(self, client):
        user_id, _ = await _signup(client)
        forged = TokenIssuer("not-the-server-secret").issue(user_id)
        response = await client.get("/me", headers=_bearer(forged))
        assert response.status_code == 401
        assert response.json()["error_type"] == "invalid_token"

    async def test_expired_token_returns_401(self, client):
        user_id, _ = await _signup(client)
        two_days_ago = datetime.now(timezone.utc) - timedelta(days=2)
        issuer = TokenIssuer(
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            lifetime=timedelta(days=1),
            clock=lambda: two_days_ago,
        )
        response = await client.get("/me", headers=_bearer(issuer.issue(user_id)))
        assert response.status_code == 401
        assert response.json()["error_type"] == "invalid_token"

    async def test_expired_and_forged_look_the_same(self, client):
        user_id, _ = await _signup(client)
        old = datetime.now(timezone.utc) - timedelta(days=2)
        expired = TokenIssuer(settings.SECRET_KEY, lifetime=timedelta(days=1), clock=lambda: old)
        forged = TokenIssuer("not-the-server-secret")

        r1 = await client.get("/me", headers=_bearer(expired.issue(user_id)))
        r2 = await client.get("/me", headers=_bearer(forged.issue(user_id)))
        assert r1.json() == r2.json()

    async def test_deleted_user_returns_401(self, client, db_session):
        user_id, token = await _signup(client)
        await db_session.execute(delete(User).where(User.id == user_id))
        await db_session.commit()

        response = await client.get("/me", headers=_bearer(token))
        assert response.status_code == 401
        assert response.json()["error_type"] == "token_user_not_found"


class TestPasswordFreshness:

    async def test_token_older_than_password_change_is_rejected(self, client, db_session):
        user_id, token = await _signup(client)
        await db_session.execute(
            update(User)
            .where(User.id == user_id)
            .values(password_changed_at=datetime.now(timezone.utc) + timedelta(seconds=5))
        )
        await db_session.commit()

        response = await client.get("/me", headers=_bearer(token))
        assert response.status_code == 401
        assert response.json()["error_type"] == "stale_password"

    async def test_token_newer_than_password_change_is_accepted(self, client, db_session):
        user_id, token = await _signup(client)
        await db_session.execute(
            update(User)
            .where(User.id == user_id)
            .values(password_changed_at=datetime.now(timezone.utc) - timedelta(minutes=5))
        )
        await db_session.commit()

        response = await client.get("/me", headers=_bearer(token))
        assert response.status_code == 200

    async def test_change_at_exactly_issued_at_is_accepted(self, client, db_session):
        issued_at = datetime.now(timezone.utc).replace(microsecond=0)
        user_id, _ = await _signup(client)
        issuer = TokenIssuer(settings.SECRET_KEY, clock=lambda: issued_at)
        await db_session.execute(
            update(User).where(User.id == user_id).values(password_changed_at=issued_at)
        )
        await db_session.commit()

        response = await client.get("/me", headers=_bearer(issuer.issue(user_id)))
        assert response.status_code == 200


class TestSoftSession:
    """GET /session runs the same checks but never rejects."""

    async def test_anonymous(self, client):
        response = await client.get("/session")
        assert response.status_code == 200
        assert response.json() == {"authenticated": False, "user": None}

    async def test_logged_in(self, client):
        _, token = await _signup(client)
        response = await client.get("/session", headers=_bearer(token))
        assert response.status_code == 200
        assert response.json()["authenticated"] is True
        assert response.json()["user"]["email"] == "member@example.com"

    async def test_invalid_token_reads_as_anonymous(self, client):
        response = await client.get("/session", headers=_bearer("totally.fake.token"))
        assert response.status_code == 200
        assert response.json()["authenticated"] is False

    async def test_stale_token_reads_as_anonymous(self, client, db_session):
        user_id, token = await _signup(client)
        await db_session.execute(
            update(User)
            .where(User.id == user_id)
            .values(password_changed_at=datetime.now(timezone.utc) + timedelta(seconds=5))
        )
        await db_session.commit()

        response = await client.get("/session", headers=_bearer(token))
        assert response.status_code == 200
        assert response.json()["authenticated"] is False

    async def test_store_error_reads_as_anonymous(self, client, monkeypatch):
        _, token = await _signup(client)

        async def failing_lookup(db, user_id):
            raise OperationalError("SELECT users", {}, Exception("database is locked"))

        monkeypatch.setattr(user_service, "get_user_by_id", failing_lookup)

        response = await client.get("/session", headers=_bearer(token))
        assert response.status_code == 200
        assert response.json() == {"authenticated": False, "user": None}


class TestRoleEnforcement:

    async def test_customer_cannot_list_users(self, authenticated_client):
        response = await authenticated_client.get("/admin/users")
        assert response.status_code == 403
        assert response.json()["error_type"] == "forbidden"

    async def test_engineer_cannot_list_users(self, client):
        response = await client.post("/signup/user", json=signup_payload(role="engineer"))
        client.cookies.clear()
        token = response.json()["token"]
        response = await client.get("/admin/users", headers=_bearer(token))
        assert response.status_code == 403

    async def test_admin_can_list_users(self, admin_client):
        response = await admin_client.get("/admin/users")
        assert response.status_code == 200
        assert [user["email"] for user in response.json()] == ["admin@example.com"]
        assert response.json()[0]["role"] == "admin"

    async def test_admin_can_get_user(self, admin_client):
        listing = await admin_client.get("/admin/users")
        user_id = listing.json()[0]["id"]
        response = await admin_client.get(f"/admin/users/{user_id}")
        assert response.status_code == 200

    async def test_admin_get_unknown_user(self, admin_client):
        response = await admin_client.get(f"/admin/users/{uuid.uuid4()}")
        assert response.status_code == 404

    async def test_admin_endpoints_require_authentication(self, client):
        response = await client.get("/admin/users")
        assert response.status_code == 401
