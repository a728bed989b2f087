"""Shared fixtures: in-memory repository, fake HTTP and SQLite sessions."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from itertools import count
from typing import Callable, Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from linkvault.db.models import Base
from linkvault.db.repository import StaleRotationConfigError
from linkvault.ingest.platforms import PLATFORMS
from linkvault.rotation.engine import RotationConfig

_ids = count(1)


@dataclass
class FakeAnalytics:
    total_clicks: int = 0
    total_conversions: int = 0
    total_revenue: Decimal = Decimal("0")


@dataclass
class FakePlatform:
    id: str
    name: str
    display_name: str
    base_url: str = ""
    is_active: bool = True


@dataclass
class FakeLink:
    id: str
    original_url: str
    product_id: str = "product-1"
    platform_id: str = "platform-1"
    shortened_url: Optional[str] = None
    short_code: Optional[str] = None
    commission_rate: Decimal = Decimal("0")
    is_active: bool = True
    priority: int = 0
    version: int = 1
    analytics: Optional[FakeAnalytics] = None
    platform: Optional[FakePlatform] = None


@dataclass
class FakeClick:
    link_id: str
    timestamp: datetime
    device: Optional[str] = None
    country: Optional[str] = None
    referrer: Optional[str] = None


@dataclass
class FakeConversion:
    link_id: str
    timestamp: datetime
    order_value: Decimal


def make_link(link_id: Optional[str] = None, url: Optional[str] = None, **kwargs) -> FakeLink:
    link_id = link_id or f"link-{next(_ids):04d}"
    return FakeLink(id=link_id, original_url=url or f"https://example.com/{link_id}", **kwargs)


@dataclass
class InMemoryLinkRepository:
    """LinkRepository fake keeping everything in dicts."""

    links: dict = field(default_factory=dict)
    platforms: dict = field(default_factory=dict)
    clicks: list = field(default_factory=list)
    conversions: list = field(default_factory=list)
    rotation_configs: dict = field(default_factory=dict)
    deactivate_calls: list = field(default_factory=list)

    def add(self, *links: FakeLink) -> None:
        for link in links:
            self.links[link.id] = link

    async def get_links(self, link_ids):
        return [self.links[i] for i in link_ids if i in self.links]

    async def list_active_links(self, after_id=None, limit=50):
        active = sorted(
            (link for link in self.links.values() if link.is_active), key=lambda link: link.id
        )
        if after_id is not None:
            active = [link for link in active if link.id > after_id]
        return active[:limit]

    async def deactivate_link(self, link_id):
        self.deactivate_calls.append(link_id)
        link = self.links.get(link_id)
        if link is None or not link.is_active:
            return False
        link.is_active = False
        link.version += 1
        return True

    async def short_code_exists(self, code):
        return any(link.short_code == code for link in self.links.values())

    async def get_or_create_platform(self, name):
        if name not in self.platforms:
            pattern = PLATFORMS.get(name)
            self.platforms[name] = FakePlatform(
                id=f"platform-{name}",
                name=name,
                display_name=pattern.display_name if pattern else name.capitalize(),
                base_url=pattern.base_url if pattern else "",
            )
        return self.platforms[name]

    async def create_affiliate_link(
        self,
        product_id,
        platform_id,
        original_url,
        shortened_url=None,
        short_code=None,
        commission_rate=Decimal("0"),
    ):
        link = make_link(
            url=original_url,
            product_id=product_id,
            platform_id=platform_id,
            shortened_url=shortened_url,
            short_code=short_code,
            commission_rate=commission_rate,
        )
        self.add(link)
        return link

    async def find_link_by_original_url(self, url):
        return next((link for link in self.links.values() if link.original_url == url), None)

    async def get_active_links_for_product(self, product_id):
        return [
            link for link in self.links.values() if link.product_id == product_id and link.is_active
        ]

    async def get_click_events(self, link_ids, start, end):
        return [c for c in self.clicks if c.link_id in link_ids and start <= c.timestamp <= end]

    async def get_conversion_events(self, link_ids, start, end):
        return [
            c for c in self.conversions if c.link_id in link_ids and start <= c.timestamp <= end
        ]

    async def get_rotation_config(self, product_id):
        return self.rotation_configs.get(product_id)

    async def save_rotation_config(self, config: RotationConfig, expected_version=None):
        current = self.rotation_configs.get(config.product_id)
        current_version = current.version if current else 0
        if expected_version is not None and expected_version != current_version:
            raise StaleRotationConfigError(config.product_id)
        config.version = current_version + 1
        self.rotation_configs[config.product_id] = config
        return config


@pytest.fixture
def repository() -> InMemoryLinkRepository:
    return InMemoryLinkRepository()


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by handler."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)


def html_response(html: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code, text=html, headers={"Content-Type": "text/html; charset=utf-8"}
    )


@pytest_asyncio.fixture
async def db_session():
    """Session on a fresh in-memory SQLite database."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()
