"""
Test configuration and fixtures for the affiliate redirect service.

Each test gets its own SQLite database file (NullPool, one connection per
session) so the click recording worker and request sessions never share a
connection, mirroring production behaviour.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")

from datetime import datetime, timezone  # noqa: E402
from http.cookiejar import DefaultCookiePolicy  # noqa: E402
from http.cookies import SimpleCookie  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402
from sqlmodel.ext.asyncio.session import AsyncSession  # noqa: E402

from app.core.cache import TTLCache  # noqa: E402
from app.core.rate_limit import limiter  # noqa: E402
from app.db.models import AffiliateLink, AffiliatePartner  # noqa: E402
from app.db.session import get_read_session, get_session  # noqa: E402
from app.main import app  # noqa: E402
from app.services.click_recorder import ClickRecordingWorker  # noqa: E402

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}

CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
GOOGLEBOT_UA = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"


@pytest_asyncio.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as db_session:
        yield db_session


@pytest_asyncio.fixture
async def click_worker(session_factory):
    worker = ClickRecordingWorker(session_factory=session_factory)
    worker.start()
    yield worker
    await worker.stop()


@pytest_asyncio.fixture
async def client(session_factory, click_worker):
    """HTTP client wired to the test database and a running click worker."""

    async def override_get_session():
        async with session_factory() as db_session:
            try:
                yield db_session
                await db_session.commit()
            except Exception:
                await db_session.rollback()
                raise

    async def override_get_read_session():
        async with session_factory() as db_session:
            yield db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_read_session] = override_get_read_session
    app.state.click_worker = click_worker
    app.state.blocklist_cache = TTLCache(ttl_seconds=60)
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=False) as http_client:
        # Requests carry only the cookies a test sets explicitly
        http_client.cookies.jar.set_policy(DefaultCookiePolicy(allowed_domains=[]))
        yield http_client

    app.dependency_overrides.clear()
    app.state.click_worker = None
    app.state.blocklist_cache = None


async def create_partner(
    db_session,
    slug: str = "acme",
    status: str = "active",
    cookie_duration: Optional[int] = 30,
) -> AffiliatePartner:
    partner = AffiliatePartner(
        name=slug.title(),
        slug=slug,
        status=status,
        cookie_duration=cookie_duration,
    )
    db_session.add(partner)
    await db_session.commit()
    await db_session.refresh(partner)
    return partner


async def create_link(
    db_session,
    partner: AffiliatePartner,
    short_code: str = "abc123",
    original_url: str = "https://vendor.example/product",
    tracking_url: Optional[str] = None,
    status: str = "active",
    expires_at: Optional[datetime] = None,
    product_id: Optional[str] = None,
) -> AffiliateLink:
    link = AffiliateLink(
        short_code=short_code,
        partner_id=partner.id,
        original_url=original_url,
        tracking_url=tracking_url,
        status=status,
        expires_at=expires_at,
        product_id=product_id,
    )
    db_session.add(link)
    await db_session.commit()
    await db_session.refresh(link)
    return link


def response_cookies(response) -> dict:
    """Parse every Set-Cookie header on a response into name -> Morsel."""
    parsed = {}
    for header in response.headers.get_list("set-cookie"):
        cookie = SimpleCookie()
        cookie.load(header)
        parsed.update(cookie)
    return parsed


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
