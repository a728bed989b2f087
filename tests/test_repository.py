"""Tests for the SQLAlchemy link repository (SQLite)."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from linkvault.db.models import ClickEvent, ConversionEvent, LinkAnalytics
from linkvault.db.repository import SqlAlchemyLinkRepository, StaleRotationConfigError
from linkvault.rotation.engine import RotationConfig, RotationEngine, setup_link_rotation


async def _seed_links(
    repo: SqlAlchemyLinkRepository, count: int, product_id: str = "prod-1", offset: int = 0
):
    platform = await repo.get_or_create_platform("amazon")
    links = []
    for i in range(offset, offset + count):
        links.append(
            await repo.create_affiliate_link(
                product_id=product_id,
                platform_id=platform.id,
                original_url=f"https://www.amazon.com/dp/B00000000{i}",
                shortened_url=f"https://lv.example/l/code{i:04d}",
                short_code=f"code{i:04d}",
                commission_rate=Decimal("0.05"),
            )
        )
    return links


@pytest.mark.asyncio
async def test_get_or_create_platform_is_idempotent(db_session):
    repo = SqlAlchemyLinkRepository(db_session)

    first = await repo.get_or_create_platform("amazon")
    second = await repo.get_or_create_platform("amazon")
    custom = await repo.get_or_create_platform("newshop")

    assert first.id == second.id
    assert first.display_name == "Amazon"
    assert first.base_url == "https://amazon.com"
    assert custom.display_name == "Newshop"
    assert custom.base_url == ""


@pytest.mark.asyncio
async def test_create_and_find_links(db_session):
    repo = SqlAlchemyLinkRepository(db_session)
    links = await _seed_links(repo, 2)

    found = await repo.find_link_by_original_url("https://www.amazon.com/dp/B000000001")

    assert found.id == links[1].id
    assert found.platform.name == "amazon"
    assert found.version == 1
    assert await repo.short_code_exists("code0000") is True
    assert await repo.short_code_exists("nope") is False
    assert await repo.find_link_by_original_url("https://missing.example") is None


@pytest.mark.asyncio
async def test_keyset_pagination_survives_deactivation(db_session):
    repo = SqlAlchemyLinkRepository(db_session)
    await _seed_links(repo, 5)

    seen = []
    after_id = None
    while True:
        page = await repo.list_active_links(after_id=after_id, limit=2)
        if not page:
            break
        seen.extend(link.id for link in page)
        # Deactivating the page must not shift the next one
        for link in page:
            await repo.deactivate_link(link.id)
        after_id = page[-1].id

    assert len(seen) == 5
    assert seen == sorted(seen)
    assert await repo.list_active_links() == []


@pytest.mark.asyncio
async def test_deactivate_link_is_conditional(db_session):
    repo = SqlAlchemyLinkRepository(db_session)
    (link,) = await _seed_links(repo, 1)
    link_id = link.id

    assert await repo.deactivate_link(link_id) is True
    assert await repo.deactivate_link(link_id) is False
    assert await repo.deactivate_link("missing") is False
    db_session.expire_all()

    (reloaded,) = await repo.get_links([link_id])
    assert reloaded.is_active is False
    assert reloaded.version == 2


@pytest.mark.asyncio
async def test_active_links_for_product_include_analytics(db_session):
    repo = SqlAlchemyLinkRepository(db_session)
    ids = [link.id for link in await _seed_links(repo, 3)]
    await _seed_links(repo, 1, product_id="prod-2", offset=10)
    db_session.add(LinkAnalytics(link_id=ids[0], total_conversions=7))
    await db_session.commit()
    await repo.deactivate_link(ids[2])
    db_session.expire_all()

    active = await repo.get_active_links_for_product("prod-1")

    assert {link.id for link in active} == {ids[0], ids[1]}
    by_id = {link.id: link for link in active}
    assert by_id[ids[0]].analytics.total_conversions == 7
    assert by_id[ids[1]].analytics is None


@pytest.mark.asyncio
async def test_event_queries_use_inclusive_window(db_session):
    repo = SqlAlchemyLinkRepository(db_session)
    (link,) = await _seed_links(repo, 1)
    start, end = datetime(2026, 3, 1), datetime(2026, 3, 31)
    db_session.add_all([
        ClickEvent(link_id=link.id, timestamp=start, device="mobile"),
        ClickEvent(link_id=link.id, timestamp=end),
        ClickEvent(link_id=link.id, timestamp=end + timedelta(seconds=1)),
        ConversionEvent(link_id=link.id, timestamp=start, order_value=Decimal("12.50")),
        ConversionEvent(link_id=link.id, timestamp=start - timedelta(days=1), order_value=Decimal("1")),
    ])
    await db_session.commit()

    clicks = await repo.get_click_events([link.id], start, end)
    conversions = await repo.get_conversion_events([link.id], start, end)

    assert len(clicks) == 2
    assert [c.order_value for c in conversions] == [Decimal("12.50")]
    assert await repo.get_click_events([], start, end) == []


@pytest.mark.asyncio
async def test_rotation_config_round_trip_and_versioning(db_session):
    repo = SqlAlchemyLinkRepository(db_session)
    links = await _seed_links(repo, 2)
    config = setup_link_rotation(
        "prod-1",
        links,
        "weighted",
        weights={links[0].id: 0.3, links[1].id: 0.7},
        geo_targeting={links[0].id: ["US"]},
    )

    saved = await repo.save_rotation_config(config, expected_version=0)
    loaded = await repo.get_rotation_config("prod-1")

    assert saved.version == 1
    assert loaded.version == 1
    assert loaded.weights == pytest.approx({links[0].id: 0.3, links[1].id: 0.7})
    assert loaded.geo_targeting == {links[0].id: ["US"]}
    assert loaded.expires_at is not None

    # The loaded config drives selection directly
    chosen = RotationEngine(loaded).select(links)
    assert chosen.id in {links[0].id, links[1].id}

    updated = RotationConfig(product_id="prod-1", strategy="round_robin")
    assert (await repo.save_rotation_config(updated, expected_version=1)).version == 2

    with pytest.raises(StaleRotationConfigError):
        await repo.save_rotation_config(updated, expected_version=1)

    assert (await repo.get_rotation_config("prod-1")).strategy.value == "round_robin"
    assert await repo.get_rotation_config("missing") is None
