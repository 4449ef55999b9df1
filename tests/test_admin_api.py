"""
Tests for the admin API: link creation, stats, IP block list and suspicious clicks.
"""

import pytest

from app.core.setting import settings
from tests.conftest import ADMIN_HEADERS, CHROME_UA, GOOGLEBOT_UA, create_link, create_partner


class TestAdminAuth:

    @pytest.mark.asyncio
    async def test_missing_key_rejected(self, client):
        response = await client.get("/api/clicks/suspicious")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_key_rejected(self, client):
        response = await client.get("/api/clicks/suspicious", headers={"X-Admin-Key": "nope"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_disabled_without_configured_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_API_KEY", None)
        response = await client.get("/api/clicks/suspicious", headers=ADMIN_HEADERS)
        assert response.status_code == 503


class TestCreateLink:

    @pytest.mark.asyncio
    async def test_create_and_follow_link(self, client, session, click_worker):
        partner = await create_partner(session, slug="acme")

        response = await client.post(
            "/api/links",
            json={"partner_id": partner.id, "url": "https://vendor.example/kit", "product_slug": "kit"},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["short_code"].startswith("bh-acme-kit-")
        assert body["short_url"].endswith(f"/go/{body['short_code']}")

        redirect = await client.get(f"/go/{body['short_code']}", headers={"User-Agent": CHROME_UA})
        await click_worker.join()
        assert redirect.status_code == 302
        assert redirect.headers["location"] == body["tracking_url"]

    @pytest.mark.asyncio
    async def test_unknown_partner(self, client):
        response = await client.post(
            "/api/links",
            json={"partner_id": 404, "url": "https://vendor.example/kit"},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_url(self, client, session):
        partner = await create_partner(session)
        response = await client.post(
            "/api/links",
            json={"partner_id": partner.id, "url": "not-a-url"},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 422


class TestLinkStats:

    @pytest.mark.asyncio
    async def test_stats_after_clicks(self, client, session, click_worker):
        partner = await create_partner(session)
        await create_link(session, partner)

        await client.get("/go/abc123", headers={"User-Agent": CHROME_UA})
        await client.get("/go/abc123", headers={"User-Agent": GOOGLEBOT_UA})
        await click_worker.join()

        response = await client.get("/api/links/abc123/stats", headers=ADMIN_HEADERS)
        assert response.status_code == 200
        stats = response.json()
        assert stats["total_clicks"] == 2
        assert stats["unique_sessions"] == 2
        assert stats["bot_clicks"] == 1
        assert stats["by_browser"] == {"Chrome": 1, "Unknown": 1}
        assert stats["by_country"] == {}

    @pytest.mark.asyncio
    async def test_unknown_link(self, client):
        response = await client.get("/api/links/nothere/stats", headers=ADMIN_HEADERS)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_malformed_code(self, client):
        response = await client.get("/api/links/bad!code/stats", headers=ADMIN_HEADERS)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_rate_limited_per_peer_address(self, client):
        for _ in range(60):
            response = await client.get("/api/links/nothere/stats", headers=ADMIN_HEADERS)
            assert response.status_code == 404

        limited = await client.get("/api/links/nothere/stats", headers=ADMIN_HEADERS)
        assert limited.status_code == 429

    @pytest.mark.asyncio
    async def test_forwarded_for_does_not_reset_limit(self, client):
        for i in range(60):
            spoofed = {**ADMIN_HEADERS, "X-Forwarded-For": f"198.51.100.{i}"}
            response = await client.get("/api/links/nothere/stats", headers=spoofed)
            assert response.status_code == 404

        spoofed = {**ADMIN_HEADERS, "X-Forwarded-For": "203.0.113.250"}
        limited = await client.get("/api/links/nothere/stats", headers=spoofed)
        assert limited.status_code == 429


class TestBlockList:

    @pytest.mark.asyncio
    async def test_block_then_unblock_range(self, client, session, click_worker):
        partner = await create_partner(session)
        await create_link(session, partner)
        visitor = {"User-Agent": CHROME_UA, "X-Forwarded-For": "192.0.2.44"}

        response = await client.post(
            "/api/blocked-ips",
            json={"ip_address": "192.0.2.0/24", "reason": "scraper"},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 201
        assert response.json()["ip_address"] == "192.0.2.0/24"

        blocked = await client.get("/go/abc123", headers=visitor)
        assert "set-cookie" not in blocked.headers

        response = await client.delete("/api/blocked-ips/192.0.2.0/24", headers=ADMIN_HEADERS)
        assert response.status_code == 204

        tracked = await client.get("/go/abc123", headers=visitor)
        await click_worker.join()
        assert "set-cookie" in tracked.headers

    @pytest.mark.asyncio
    async def test_blocking_is_idempotent(self, client):
        for _ in range(2):
            response = await client.post(
                "/api/blocked-ips", json={"ip_address": "198.51.100.7"}, headers=ADMIN_HEADERS
            )
            assert response.status_code == 201
            assert response.json()["ip_address"] == "198.51.100.7"

    @pytest.mark.asyncio
    async def test_invalid_address(self, client):
        response = await client.post(
            "/api/blocked-ips", json={"ip_address": "not-an-ip"}, headers=ADMIN_HEADERS
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unblock_unknown_address(self, client):
        response = await client.delete("/api/blocked-ips/198.51.100.8", headers=ADMIN_HEADERS)
        assert response.status_code == 404


class TestSuspiciousClicks:

    @pytest.mark.asyncio
    async def test_lists_only_bot_clicks(self, client, session, click_worker):
        partner = await create_partner(session)
        await create_link(session, partner)

        await client.get("/go/abc123", headers={"User-Agent": CHROME_UA})
        await client.get("/go/abc123", headers={"User-Agent": GOOGLEBOT_UA, "X-Forwarded-For": "66.249.66.1"})
        await click_worker.join()

        response = await client.get("/api/clicks/suspicious", headers=ADMIN_HEADERS)
        assert response.status_code == 200
        body = response.json()
        assert body["limit"] == 50
        assert len(body["clicks"]) == 1
        click = body["clicks"][0]
        assert click["ip_address"] == "66.249.66.1"
        assert click["bot_type"] == "googlebot"
        assert click["reason"] == "Bot detected: googlebot"
