"""Tests for auth dependencies — get_current_profile edge cases."""

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import create_access_token
from app.config import settings
from app.models.profile import Profile

STATUS_URL = "/api/v1/billing/subscription"


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestGetCurrentProfile:
    """Test get_current_profile via the subscription status endpoint."""

    async def test_valid_token(self, client: AsyncClient, guardian_headers: dict):
        response = await client.get(STATUS_URL, headers=guardian_headers)
        assert response.status_code == 200

    async def test_missing_header(self, client: AsyncClient):
        response = await client.get(STATUS_URL)
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
        assert response.json()["error"] == "Missing Authorization header"

    async def test_expired_token_rejected(self, client: AsyncClient, guardian: Profile):
        token = create_access_token({"sub": str(guardian.id)}, expires_delta=timedelta(seconds=-1))
        response = await client.get(STATUS_URL, headers=_bearer(token))
        assert response.status_code == 401

    async def test_invalid_token_format(self, client: AsyncClient):
        response = await client.get(STATUS_URL, headers=_bearer("not.a.valid.jwt"))
        assert response.status_code == 401

    async def test_refresh_token_type_rejected(self, client: AsyncClient, guardian: Profile):
        token = create_access_token({"sub": str(guardian.id), "type": "refresh"})
        response = await client.get(STATUS_URL, headers=_bearer(token))
        assert response.status_code == 401

    async def test_token_without_type_accepted(self, client: AsyncClient, guardian: Profile):
        """Tokens minted by the identity provider have no type claim."""
        token = jwt.encode(
            {"sub": str(guardian.id)}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm
        )
        response = await client.get(STATUS_URL, headers=_bearer(token))
        assert response.status_code == 200

    async def test_nonexistent_profile_rejected(self, client: AsyncClient):
        token = create_access_token({"sub": str(uuid.uuid4())})
        response = await client.get(STATUS_URL, headers=_bearer(token))
        assert response.status_code == 401

    async def test_non_uuid_sub_rejected(self, client: AsyncClient):
        token = create_access_token({"sub": "not-a-uuid"})
        response = await client.get(STATUS_URL, headers=_bearer(token))
        assert response.status_code == 401

    async def test_missing_sub_rejected(self, client: AsyncClient):
        token = create_access_token({"email": "nobody@test.com"})
        response = await client.get(STATUS_URL, headers=_bearer(token))
        assert response.status_code == 401


class TestGetCurrentActiveProfile:
    """Account status gates every authenticated billing route."""

    @pytest.mark.parametrize("status", ["suspended", "deactivated"])
    async def test_blocked_statuses(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        guardian: Profile,
        guardian_headers: dict,
        status: str,
    ):
        guardian.status = status
        await db_session.flush()
        response = await client.get(STATUS_URL, headers=guardian_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Account is not active"

    async def test_pending_account_allowed(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        guardian: Profile,
        guardian_headers: dict,
    ):
        guardian.status = "pending"
        await db_session.flush()
        response = await client.get(STATUS_URL, headers=guardian_headers)
        assert response.status_code == 200
