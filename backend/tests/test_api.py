"""Endpoint tests for credits, generation and health routes."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import redis.asyncio as redis
from fastapi import status

from conftest import JPEG_BYTES, PNG_BYTES, FakeProvider, ledger_sum
from headshot_studio.core.config import settings
from headshot_studio.models import LedgerCategory
from headshot_studio.providers.errors import ContentPolicyError, ProviderFailure
from headshot_studio.services.auth_service import AuthService
from headshot_studio.services.generation_service import GenerationService


def headers_for(account) -> dict:
    token, _ = AuthService.create_access_token(account.id)
    return {"Authorization": f"Bearer {token}"}


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_check(self, async_client):
        response = await async_client.get("/api/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"status": "ok", "service": "headshot-studio-backend"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "ping,expected",
        [
            (AsyncMock(return_value=True), "connected"),
            (AsyncMock(side_effect=redis.ConnectionError("refused")), "disconnected"),
        ],
    )
    async def test_status_reports_redis(self, async_client, ping, expected):
        client = MagicMock()
        client.ping = ping

        with patch("headshot_studio.core.redis.get_redis", return_value=client):
            response = await async_client.get("/api/v1/status")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["services"]["redis"] == expected


class TestCreditsEndpoints:
    """Tests for balance, history, packages and direct purchases."""

    @pytest.mark.asyncio
    async def test_balance(self, async_client, auth_headers, account):
        response = await async_client.get("/api/v1/credits/balance", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["account_id"] == account.id
        assert data["credits"] == 10
        assert data["total_credits_purchased"] == 0

    @pytest.mark.asyncio
    async def test_balance_requires_authentication(self, async_client):
        response = await async_client.get("/api/v1/credits/balance")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_history_newest_first(self, async_client, auth_headers, account, ledger):
        await ledger.apply_delta(account.id, -3, LedgerCategory.USAGE, "Spent three")

        response = await async_client.get("/api/v1/credits/history", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["count"] == 2
        assert [e["delta"] for e in data["entries"]] == [-3, 10]
        assert data["entries"][1]["category"] == "bonus"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, 101])
    async def test_history_limit_bounds(self, async_client, auth_headers, limit):
        response = await async_client.get(
            "/api/v1/credits/history", params={"limit": limit}, headers=auth_headers
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_packages_are_public(self, async_client):
        response = await async_client.get("/api/v1/credits/packages")

        assert response.status_code == status.HTTP_200_OK
        ids = [pkg["id"] for pkg in response.json()["packages"]]
        assert ids == ["starter", "popular", "professional", "business"]

    @pytest.mark.asyncio
    async def test_direct_purchase_disabled_by_default(
        self, async_client, auth_headers, monkeypatch
    ):
        monkeypatch.setattr(settings, "ALLOW_MOCK_PURCHASES", False)

        response = await async_client.post(
            "/api/v1/credits/purchase", json={"package_id": "starter"}, headers=auth_headers
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_direct_purchase(
        self, async_client, auth_headers, account, session_factory, monkeypatch
    ):
        monkeypatch.setattr(settings, "ALLOW_MOCK_PURCHASES", True)

        response = await async_client.post(
            "/api/v1/credits/purchase",
            json={"package_id": "popular", "quantity": 2},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["credits_added"] == 120
        assert data["new_balance"] == 130
        assert await ledger_sum(session_factory, account.id) == 130

    @pytest.mark.asyncio
    async def test_direct_purchase_invalid_package(
        self, async_client, auth_headers, monkeypatch
    ):
        monkeypatch.setattr(settings, "ALLOW_MOCK_PURCHASES", True)

        response = await async_client.post(
            "/api/v1/credits/purchase", json={"package_id": "gold"}, headers=auth_headers
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestGenerationEndpoints:
    """Tests for the costed generation routes."""

    @pytest.mark.asyncio
    async def test_headshot_success(self, async_client, auth_headers, fake_provider):
        response = await async_client.post(
            "/api/v1/generate/headshot",
            files={"image": ("face.png", PNG_BYTES, "image/png")},
            data={"background": "office", "gender": "female"},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["image_url"] == fake_provider.result
        assert data["credits_remaining"] == 9
        assert data["generation"]["status"] == "completed"
        assert data["generation"]["parameters"]["background"] == "office"

        call = fake_provider.calls[0]
        assert call["mime_type"] == "image/png"
        assert call["parameters"]["gender"] == "female"

    @pytest.mark.asyncio
    async def test_image_edit_success(self, async_client, auth_headers, fake_provider):
        response = await async_client.post(
            "/api/v1/generate/image-edit",
            files={"image": ("photo.jpg", JPEG_BYTES, "image/jpeg")},
            data={"prompt": "  make the sky orange  ", "output_format": "png"},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["generation"]["kind"] == "image_edit"
        assert fake_provider.calls[0]["parameters"] == {
            "prompt": "make the sky orange",
            "output_format": "png",
        }

    @pytest.mark.asyncio
    async def test_provider_failure_refunds(
        self, async_client, auth_headers, account, fake_provider, ledger, session_factory
    ):
        fake_provider.error = ContentPolicyError("NSFW content detected")

        response = await async_client.post(
            "/api/v1/generate/headshot",
            files={"image": ("face.png", PNG_BYTES, "image/png")},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        detail = response.json()["detail"]
        assert detail["error"] == ContentPolicyError.user_message
        assert detail["credits_refunded"] is True
        assert detail["credits_remaining"] == 10
        assert await ledger.get_balance(account.id) == 10
        assert await ledger_sum(session_factory, account.id) == 10

    @pytest.mark.asyncio
    async def test_insufficient_credits(self, async_client, empty_account, fake_provider):
        response = await async_client.post(
            "/api/v1/generate/headshot",
            files={"image": ("face.png", PNG_BYTES, "image/png")},
            headers=headers_for(empty_account),
        )

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        detail = response.json()["detail"]
        assert detail["required"] == 1
        assert detail["available"] == 0
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_rejects_non_image(self, async_client, auth_headers, fake_provider, ledger, account):
        response = await async_client.post(
            "/api/v1/generate/headshot",
            files={"image": ("notes.png", b"plain text, not an image", "image/png")},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert fake_provider.calls == []
        assert await ledger.get_balance(account.id) == 10

    @pytest.mark.asyncio
    async def test_rejects_oversized_upload(
        self, async_client, auth_headers, fake_provider, monkeypatch
    ):
        monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 32)

        response = await async_client.post(
            "/api/v1/generate/headshot",
            files={"image": ("face.png", PNG_BYTES, "image/png")},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_blank_prompt_is_rejected(self, async_client, auth_headers, fake_provider):
        response = await async_client.post(
            "/api/v1/generate/image-edit",
            files={"image": ("photo.jpg", JPEG_BYTES, "image/jpeg")},
            data={"prompt": "   "},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_invalid_headshot_option(self, async_client, auth_headers, fake_provider):
        response = await async_client.post(
            "/api/v1/generate/headshot",
            files={"image": ("face.png", PNG_BYTES, "image/png")},
            data={"aspect_ratio": "7:5"},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_generation_history(self, async_client, auth_headers, fake_provider):
        for _ in range(2):
            await async_client.post(
                "/api/v1/generate/headshot",
                files={"image": ("face.png", PNG_BYTES, "image/png")},
                headers=auth_headers,
            )

        response = await async_client.get("/api/v1/generate/history", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["count"] == 2
        assert all(g["status"] == "completed" for g in data["generations"])


class TestSettlementResponses:
    """Tests for generations whose settlement did not go the normal way."""

    @staticmethod
    def post_headshot(async_client, headers):
        return async_client.post(
            "/api/v1/generate/headshot",
            files={"image": ("face.png", PNG_BYTES, "image/png")},
            headers=headers,
        )

    @staticmethod
    async def sweep_everything_pending(ledger, alert_sink) -> None:
        sweeper = GenerationService(ledger, FakeProvider(), alert_sink, cost=1)
        report = await sweeper.reconcile_stale_reservations(older_than=timedelta(seconds=-60))
        assert report.refunded == 1

    @pytest.mark.asyncio
    async def test_failed_refund_returns_500_and_alerts(
        self, async_client, auth_headers, account, fake_provider, ledger, alert_sink
    ):
        fake_provider.error = ProviderFailure("Replicate returned 500")

        with patch.object(
            ledger, "refund", AsyncMock(side_effect=ConnectionError("database unavailable"))
        ):
            response = await self.post_headshot(async_client, auth_headers)

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert "refund could not be applied" in response.json()["detail"]["error"]
        assert len(alert_sink.alerts) == 1
        alert = alert_sink.alerts[0]
        assert alert.account_id == account.id
        assert alert.cost == 1
        assert "database unavailable" in alert.reason

    @pytest.mark.asyncio
    async def test_result_after_sweep_returns_502_with_refund(
        self, async_client, auth_headers, account, fake_provider, ledger, alert_sink,
        session_factory,
    ):
        fake_provider.delay = 0.2

        request = asyncio.create_task(self.post_headshot(async_client, auth_headers))
        await fake_provider.started.wait()
        await self.sweep_everything_pending(ledger, alert_sink)
        response = await request

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.json()["detail"]["credits_refunded"] is True
        assert await ledger.get_balance(account.id) == 10
        assert await ledger_sum(session_factory, account.id) == 10
        assert alert_sink.alerts == []

    @pytest.mark.asyncio
    async def test_failure_after_sweep_reports_refund(
        self, async_client, auth_headers, account, fake_provider, ledger, alert_sink
    ):
        fake_provider.delay = 0.2
        fake_provider.error = ProviderFailure("Replicate returned 500")

        request = asyncio.create_task(self.post_headshot(async_client, auth_headers))
        await fake_provider.started.wait()
        await self.sweep_everything_pending(ledger, alert_sink)
        response = await request

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        detail = response.json()["detail"]
        assert detail["credits_refunded"] is True
        assert detail["credits_remaining"] == 10
        assert await ledger.get_balance(account.id) == 10
