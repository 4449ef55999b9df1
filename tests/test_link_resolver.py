"""
Tests for short code resolution and link eligibility.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import DatabaseError
from app.db.models import AffiliateLink, AffiliatePartner
from app.services.link_resolver import LinkResolver, ResolutionOutcome, evaluate_link
from tests.conftest import create_link, create_partner

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_link(status="active", expires_at=None, partner_status="active"):
    partner = AffiliatePartner(id=1, name="Acme", slug="acme", status=partner_status)
    link = AffiliateLink(
        id=1,
        short_code="abc123",
        partner_id=1,
        original_url="https://vendor.example",
        status=status,
        expires_at=expires_at,
    )
    link.partner = partner
    return link


class TestEvaluateLink:
    """Test eligibility rules, checked in order."""

    def test_missing_link(self):
        assert evaluate_link(None, NOW) == ResolutionOutcome.NOT_FOUND

    def test_active_link_with_active_partner(self):
        assert evaluate_link(make_link(), NOW) == ResolutionOutcome.ELIGIBLE

    def test_non_active_statuses(self):
        for status in ["paused", "expired", "archived"]:
            assert evaluate_link(make_link(status=status), NOW) == ResolutionOutcome.INACTIVE

    def test_expiry_boundary(self):
        """A link expiring exactly now is already expired."""
        assert evaluate_link(make_link(expires_at=NOW), NOW) == ResolutionOutcome.EXPIRED
        assert evaluate_link(make_link(expires_at=NOW - timedelta(seconds=1)), NOW) == ResolutionOutcome.EXPIRED
        assert evaluate_link(make_link(expires_at=NOW + timedelta(seconds=1)), NOW) == ResolutionOutcome.ELIGIBLE

    def test_naive_expiry_is_treated_as_utc(self):
        naive = (NOW - timedelta(minutes=1)).replace(tzinfo=None)
        assert evaluate_link(make_link(expires_at=naive), NOW) == ResolutionOutcome.EXPIRED

    def test_partner_not_active(self):
        for status in ["pending", "suspended", "terminated"]:
            link = make_link(partner_status=status)
            assert evaluate_link(link, NOW) == ResolutionOutcome.PARTNER_INACTIVE

    def test_inactive_takes_precedence_over_expired_and_partner(self):
        link = make_link(status="paused", expires_at=NOW - timedelta(days=1), partner_status="suspended")
        assert evaluate_link(link, NOW) == ResolutionOutcome.INACTIVE

    def test_expired_takes_precedence_over_partner(self):
        link = make_link(expires_at=NOW - timedelta(days=1), partner_status="suspended")
        assert evaluate_link(link, NOW) == ResolutionOutcome.EXPIRED


class TestLinkResolver:

    @pytest.mark.asyncio
    async def test_resolves_with_partner_loaded(self, session):
        partner = await create_partner(session, cookie_duration=45)
        await create_link(session, partner, tracking_url="https://vendor.example/p?ref=abc123")

        resolution = await LinkResolver(session).resolve("abc123")

        assert resolution.is_eligible
        assert resolution.link.partner.cookie_duration == 45
        assert resolution.link.destination_url == "https://vendor.example/p?ref=abc123"

    @pytest.mark.asyncio
    async def test_unknown_code(self, session):
        resolution = await LinkResolver(session).resolve("nope404")
        assert resolution.outcome == ResolutionOutcome.NOT_FOUND
        assert resolution.link is None

    @pytest.mark.asyncio
    async def test_expired_link_in_store(self, session):
        partner = await create_partner(session)
        await create_link(session, partner, expires_at=NOW)

        resolver = LinkResolver(session, clock=lambda: NOW + timedelta(hours=1))
        resolution = await resolver.resolve("abc123")
        assert resolution.outcome == ResolutionOutcome.EXPIRED

    @pytest.mark.asyncio
    async def test_malformed_code_never_queries(self):
        class NoQuerySession:
            async def execute(self, *args, **kwargs):
                raise AssertionError("malformed codes must not reach the store")

        resolution = await LinkResolver(NoQuerySession()).resolve("../../etc/passwd")
        assert resolution.outcome == ResolutionOutcome.NOT_FOUND

    @pytest.mark.asyncio
    async def test_store_failure_raises_database_error(self):
        class FailingSession:
            async def execute(self, *args, **kwargs):
                raise OperationalError("SELECT", {}, Exception("database is locked"))

        with pytest.raises(DatabaseError):
            await LinkResolver(FailingSession()).resolve("abc123")
