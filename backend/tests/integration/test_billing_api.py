"""
Integration tests for the plan catalogue and payment request endpoints.
"""

import pytest
from fastapi import status
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


def _purchase(plan_id: str = "premium-monthly", method: str = "orange-money") -> dict:
    return {
        "plan_id": plan_id,
        "payment_method": method,
        "phone_number": "+227 90 00 00 00",
        "reference_number": "OM-12345",
    }


class TestPlans:
    async def test_lists_plans_with_free_allowance(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/billing/plans")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        ids = {plan["id"] for plan in data["plans"]}
        assert ids == {"standard-monthly", "standard-yearly", "premium-monthly", "premium-yearly"}
        yearly = next(p for p in data["plans"] if p["id"] == "premium-yearly")
        assert yearly["tier"] == "premium"
        assert yearly["duration_days"] == 365
        assert yearly["currency"] == "XOF"
        assert data["free"]["premium_reads_per_window"] == 3
        assert "3 premium articles every 30 days" in data["free"]["features"]


class TestCreatePaymentRequest:
    async def test_creates_pending_request_priced_from_plan(
        self, async_client: AsyncClient, auth_headers, free_profile
    ):
        response = await async_client.post(
            "/api/v1/billing/payment-requests", json=_purchase(), headers=auth_headers
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["user_id"] == free_profile.id
        assert data["user_email"] == free_profile.email
        assert data["status"] == "pending"
        assert data["tier"] == "premium"
        assert data["amount"] == 10000
        assert data["reference_number"] == "OM-12345"

    async def test_does_not_grant_subscription(self, async_client: AsyncClient, auth_headers):
        await async_client.post(
            "/api/v1/billing/payment-requests", json=_purchase(), headers=auth_headers
        )

        me = await async_client.get("/api/v1/entitlements/me", headers=auth_headers)
        assert me.json()["tier"] == "free"

    async def test_legacy_plan_alias_is_accepted(self, async_client: AsyncClient, auth_headers):
        response = await async_client.post(
            "/api/v1/billing/payment-requests",
            json=_purchase(plan_id="standard"),
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["plan_id"] == "standard-monthly"

    async def test_unknown_plan_is_rejected(self, async_client: AsyncClient, auth_headers):
        response = await async_client.post(
            "/api/v1/billing/payment-requests",
            json=_purchase(plan_id="gold-lifetime"),
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Unknown plan: gold-lifetime"

    async def test_unknown_payment_method_is_rejected(
        self, async_client: AsyncClient, auth_headers
    ):
        response = await async_client.post(
            "/api/v1/billing/payment-requests",
            json=_purchase(method="bitcoin"),
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_requires_identity(self, async_client: AsyncClient):
        response = await async_client.post("/api/v1/billing/payment-requests", json=_purchase())

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_creates_profile_for_first_time_buyer(
        self, async_client: AsyncClient, identity_headers
    ):
        headers = identity_headers("buyer_1", email="buyer@example.com", name="Buyer")

        response = await async_client.post(
            "/api/v1/billing/payment-requests", json=_purchase(), headers=headers
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["user_name"] == "Buyer"
        me = await async_client.get("/api/v1/entitlements/me", headers=headers)
        assert me.json()["remaining_reads"] == 3


class TestListMyPaymentRequests:
    async def test_lists_only_own_requests(
        self, async_client: AsyncClient, auth_headers, identity_headers
    ):
        await async_client.post(
            "/api/v1/billing/payment-requests", json=_purchase(), headers=auth_headers
        )
        await async_client.post(
            "/api/v1/billing/payment-requests",
            json=_purchase("standard-yearly"),
            headers=auth_headers,
        )
        await async_client.post(
            "/api/v1/billing/payment-requests",
            json=_purchase(),
            headers=identity_headers("someone_else"),
        )

        response = await async_client.get("/api/v1/billing/payment-requests", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        plans = {r["plan_id"] for r in response.json()}
        assert plans == {"premium-monthly", "standard-yearly"}

    async def test_requires_identity(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/billing/payment-requests")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
