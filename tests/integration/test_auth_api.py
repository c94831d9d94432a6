"""Integration tests for auth API endpoints."""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from teller.api.deps import DbSession, get_credential_service
from teller.database import get_db
from teller.kernel.identity.identity_service import CredentialService
from teller.kernel.identity.notifications import NotificationKind
from teller.kernel.identity.store import SqlAlchemyIdentityStore
from teller.main import app

PASSWORD = "SecurePass123"


@pytest_asyncio.fixture
async def client(session_maker, notifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with an in-memory database."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def override_get_credential_service(db: DbSession) -> CredentialService:
        return CredentialService(SqlAlchemyIdentityStore(db), notifier=notifier)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_credential_service] = override_get_credential_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def register(client: AsyncClient, username: str = "newuser", email: str = "newuser@example.com"):
    return await client.post(
        "/api/v1/auth/register",
        json={
            "username": username,
            "email": email,
            "password": PASSWORD,
            "confirm_password": PASSWORD,
        },
    )


class TestRegister:
    """Tests for POST /api/v1/auth/register."""

    @pytest.mark.asyncio
    async def test_register_new_user(self, client: AsyncClient):
        response = await register(client)

        assert response.status_code == 201
        data = response.json()
        assert data["access_token"]
        assert data["token_type"] == "bearer"
        assert data["expires_in"] > 0
        assert data["user"]["email"] == "newuser@example.com"
        assert data["user"]["username"] == "newuser"
        assert data["user"]["email_verified"] is False
        assert "password_hash" not in data["user"]

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client: AsyncClient):
        await register(client)

        response = await register(client, username="another", email="NewUser@example.com")

        assert response.status_code == 409
        assert response.json() == {"detail": "Email is already in use"}

    @pytest.mark.asyncio
    async def test_register_duplicate_username(self, client: AsyncClient):
        await register(client)

        response = await register(client, username="NEWUSER", email="other@example.com")

        assert response.status_code == 409
        assert response.json()["detail"] == "Username is already in use"

    @pytest.mark.asyncio
    async def test_register_password_mismatch(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "username": "newuser",
                "email": "newuser@example.com",
                "password": PASSWORD,
                "confirm_password": "SecurePass124",
            },
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Passwords do not match"

    @pytest.mark.asyncio
    async def test_register_trims_username(self, client: AsyncClient):
        response = await register(client, username="  bob  ")

        assert response.status_code == 201
        assert response.json()["user"]["username"] == "bob"

    @pytest.mark.asyncio
    async def test_username_length_counts_trimmed_value(self, client: AsyncClient):
        response = await register(client, username="  ab  ")

        assert response.status_code == 422
        assert [error["field"] for error in response.json()["errors"]] == ["body.username"]

    @pytest.mark.asyncio
    async def test_register_invalid_payload(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "username": "nu",
                "email": "not-an-email",
                "password": "short",
                "confirm_password": "short",
            },
        )

        assert response.status_code == 422
        fields = {error["field"] for error in response.json()["errors"]}
        assert {"body.username", "body.email", "body.password"} <= fields


class TestLogin:
    """Tests for POST /api/v1/auth/login."""

    @pytest.mark.asyncio
    async def test_login_success(self, client: AsyncClient):
        await register(client)

        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "newuser@example.com", "password": PASSWORD},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["user"]["last_login_at"] is not None

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_look_the_same(self, client: AsyncClient):
        await register(client)

        wrong_password = await client.post(
            "/api/v1/auth/login",
            json={"email": "newuser@example.com", "password": "WrongPass123"},
        )
        unknown_email = await client.post(
            "/api/v1/auth/login",
            json={"email": "nobody@example.com", "password": PASSWORD},
        )

        assert wrong_password.status_code == 401
        assert unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json()
        assert wrong_password.headers["www-authenticate"] == "Bearer"


class TestPasswordReset:
    """Tests for the forgot/reset password flow."""

    @pytest.mark.asyncio
    async def test_forgot_password_same_response_for_unknown_email(self, client: AsyncClient, notifier):
        await register(client)

        known = await client.post("/api/v1/auth/forgot-password", json={"email": "newuser@example.com"})
        unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})

        assert known.status_code == 200
        assert unknown.status_code == 200
        assert known.json() == unknown.json()
        reset_tokens = [sent for sent in notifier.sent if sent[2] == NotificationKind.PASSWORD_RESET]
        assert len(reset_tokens) == 1

    @pytest.mark.asyncio
    async def test_reset_flow(self, client: AsyncClient, notifier):
        await register(client)
        await client.post("/api/v1/auth/forgot-password", json={"email": "newuser@example.com"})
        token = notifier.last_token(NotificationKind.PASSWORD_RESET)
        payload = {
            "email": "newuser@example.com",
            "token": token,
            "new_password": "BrandNewPass456",
            "confirm_new_password": "BrandNewPass456",
        }

        response = await client.post("/api/v1/auth/reset-password", json=payload)
        assert response.status_code == 200

        reused = await client.post("/api/v1/auth/reset-password", json=payload)
        assert reused.status_code == 400
        assert reused.json()["detail"] == "Invalid token"

        old = await client.post(
            "/api/v1/auth/login",
            json={"email": "newuser@example.com", "password": PASSWORD},
        )
        new = await client.post(
            "/api/v1/auth/login",
            json={"email": "newuser@example.com", "password": "BrandNewPass456"},
        )
        assert old.status_code == 401
        assert new.status_code == 200

    @pytest.mark.asyncio
    async def test_reset_with_wrong_token(self, client: AsyncClient):
        await register(client)
        await client.post("/api/v1/auth/forgot-password", json={"email": "newuser@example.com"})

        response = await client.post(
            "/api/v1/auth/reset-password",
            json={
                "email": "newuser@example.com",
                "token": "0" * 32,
                "new_password": "BrandNewPass456",
                "confirm_new_password": "BrandNewPass456",
            },
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid token"


class TestVerifyEmail:
    """Tests for GET /api/v1/auth/verify-email."""

    @pytest.mark.asyncio
    async def test_verify_email_once(self, client: AsyncClient, notifier):
        registered = await register(client)
        access_token = registered.json()["access_token"]
        token = notifier.last_token(NotificationKind.VERIFICATION)

        first = await client.get("/api/v1/auth/verify-email", params={"token": token})
        second = await client.get("/api/v1/auth/verify-email", params={"token": token})

        assert first.status_code == 200
        assert second.status_code == 400

        me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {access_token}"})
        assert me.json()["email_verified"] is True

    @pytest.mark.asyncio
    async def test_verify_email_requires_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/verify-email")

        assert response.status_code == 422


class TestMe:
    """Tests for GET /api/v1/auth/me."""

    @pytest.mark.asyncio
    async def test_me_with_token(self, client: AsyncClient):
        registered = await register(client)
        access_token = registered.json()["access_token"]

        response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {access_token}"})

        assert response.status_code == 200
        assert response.json()["id"] == registered.json()["user"]["id"]

    @pytest.mark.asyncio
    async def test_me_without_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"

    @pytest.mark.asyncio
    async def test_me_with_garbage_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
