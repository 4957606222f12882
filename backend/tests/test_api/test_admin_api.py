"""Tests for admin endpoints — role gate, subscription oversight, profile management."""

import dataclasses
import uuid
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.plans import PLANS
from app.errors import ProviderRequestError
from app.models.profile import Profile
from app.models.subscription import Subscription
from app.schemas.paypal import ProviderPlanResource, ProviderSubscriptionResource


def _monthly_plan_configured():
    configured = dataclasses.replace(PLANS["basic-monthly"], paypal_plan_id="P-MONTHLY")
    return patch.dict("app.billing.plans.PLANS", {"basic-monthly": configured})


class TestAdminGate:
    """Every admin route rejects non-admins."""

    @pytest.mark.asyncio
    async def test_guardian_forbidden(self, client: AsyncClient, guardian_headers: dict):
        response = await client.get("/api/v1/admin/subscriptions", headers=guardian_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Admin access required"

    @pytest.mark.asyncio
    async def test_unauthenticated(self, client: AsyncClient):
        response = await client.get("/api/v1/admin/subscriptions")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_suspended_admin_forbidden(
        self, client: AsyncClient, db_session: AsyncSession, admin: Profile, admin_headers: dict
    ):
        admin.status = "suspended"
        await db_session.flush()
        response = await client.get("/api/v1/admin/subscriptions", headers=admin_headers)
        assert response.status_code == 403


class TestListSubscriptions:
    """Test GET /api/v1/admin/subscriptions."""

    @pytest.mark.asyncio
    async def test_lists_all(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        guardian: Profile,
        admin: Profile,
        admin_headers: dict,
    ):
        db_session.add(
            Subscription(user_id=guardian.id, plan_id="basic-monthly", status="active")
        )
        await db_session.flush()

        response = await client.get("/api/v1/admin/subscriptions", headers=admin_headers)
        assert response.status_code == 200
        rows = response.json()
        assert len(rows) == 1
        assert rows[0]["user_id"] == str(guardian.id)


class TestProviderDetails:
    """Test GET /api/v1/admin/subscriptions/{id}/details."""

    @pytest.mark.asyncio
    async def test_any_subscription(self, client: AsyncClient, admin_headers: dict, paypal_creds):
        resource = ProviderSubscriptionResource(id="I-ANY", status="ACTIVE")
        with patch(
            "app.billing.paypal_client.get_subscription_details",
            new_callable=AsyncMock,
            return_value=resource,
        ) as mock_details:
            response = await client.get(
                "/api/v1/admin/subscriptions/I-ANY/details", headers=admin_headers
            )

        assert response.status_code == 200
        assert response.json()["id"] == "I-ANY"
        assert mock_details.call_args.args[-1] == "I-ANY"


class TestPlanDetails:
    """Test GET /api/v1/admin/plans/{plan_id}/details."""

    @pytest.mark.asyncio
    async def test_returns_provider_plan(
        self, client: AsyncClient, admin_headers: dict, paypal_creds
    ):
        plan = ProviderPlanResource(
            id="P-MONTHLY",
            status="ACTIVE",
            billing_cycles=[{"tenure_type": "REGULAR", "sequence": 1}],
        )
        with (
            _monthly_plan_configured(),
            patch(
                "app.billing.paypal_client.get_plan_details",
                new_callable=AsyncMock,
                return_value=plan,
            ) as mock_details,
        ):
            response = await client.get(
                "/api/v1/admin/plans/basic-monthly/details", headers=admin_headers
            )

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "P-MONTHLY"
        assert body["billing_cycles"][0]["tenure_type"] == "REGULAR"
        assert mock_details.call_args.args[-1] == "P-MONTHLY"

    @pytest.mark.asyncio
    async def test_unknown_plan_is_404(
        self, client: AsyncClient, admin_headers: dict, paypal_creds
    ):
        response = await client.get("/api/v1/admin/plans/platinum/details", headers=admin_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_provider_error_is_500(
        self, client: AsyncClient, admin_headers: dict, paypal_creds
    ):
        with (
            _monthly_plan_configured(),
            patch(
                "app.billing.paypal_client.get_plan_details",
                new_callable=AsyncMock,
                side_effect=ProviderRequestError(503, "<html>down</html>"),
            ),
        ):
            response = await client.get(
                "/api/v1/admin/plans/basic-monthly/details", headers=admin_headers
            )

        assert response.status_code == 500
        assert "<html>" not in response.text

    @pytest.mark.asyncio
    async def test_guardian_forbidden(self, client: AsyncClient, guardian_headers: dict):
        with patch(
            "app.billing.paypal_client.get_plan_details", new_callable=AsyncMock
        ) as mock_details:
            response = await client.get(
                "/api/v1/admin/plans/basic-monthly/details", headers=guardian_headers
            )
        assert response.status_code == 403
        mock_details.assert_not_awaited()


class TestExemption:
    """Test POST /api/v1/admin/users/{id}/exemption."""

    @pytest.mark.asyncio
    async def test_grant_exemption_makes_user_subscribed(
        self,
        client: AsyncClient,
        guardian: Profile,
        guardian_headers: dict,
        admin_headers: dict,
    ):
        response = await client.post(
            f"/api/v1/admin/users/{guardian.id}/exemption",
            json={"exempt": True},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["subscription_exempt"] is True

        status = await client.get("/api/v1/billing/subscription", headers=guardian_headers)
        flags = status.json()["flags"]
        assert flags["is_exempt"] is True
        assert flags["is_subscribed"] is True

    @pytest.mark.asyncio
    async def test_unknown_user(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            f"/api/v1/admin/users/{uuid.uuid4()}/exemption",
            json={"exempt": True},
            headers=admin_headers,
        )
        assert response.status_code == 404
        assert response.json()["error"] == "User not found."


class TestRoleAndStatus:
    """Test PATCH role and status."""

    @pytest.mark.asyncio
    async def test_change_role(self, client: AsyncClient, guardian: Profile, admin_headers: dict):
        response = await client.patch(
            f"/api/v1/admin/users/{guardian.id}/role",
            json={"role": "student"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["role"] == "student"

    @pytest.mark.asyncio
    async def test_cannot_change_own_role(
        self, client: AsyncClient, admin: Profile, admin_headers: dict
    ):
        response = await client.patch(
            f"/api/v1/admin/users/{admin.id}/role",
            json={"role": "guardian"},
            headers=admin_headers,
        )
        assert response.status_code == 403
        assert admin.role == "admin"

    @pytest.mark.asyncio
    async def test_invalid_role_is_422(
        self, client: AsyncClient, guardian: Profile, admin_headers: dict
    ):
        response = await client.patch(
            f"/api/v1/admin/users/{guardian.id}/role",
            json={"role": "superuser"},
            headers=admin_headers,
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_suspend_user_blocks_billing(
        self,
        client: AsyncClient,
        guardian: Profile,
        guardian_headers: dict,
        admin_headers: dict,
    ):
        response = await client.patch(
            f"/api/v1/admin/users/{guardian.id}/status",
            json={"status": "suspended"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "suspended"

        blocked = await client.get("/api/v1/billing/subscription", headers=guardian_headers)
        assert blocked.status_code == 403
