"""Persistence collaborator for links, platforms, events and rotation configs."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linkvault.db.models import (
    AffiliateLink,
    ClickEvent,
    ConversionEvent,
    Platform,
    RotationConfigRecord,
    utcnow,
)
from linkvault.ingest.platforms import PLATFORMS
from linkvault.rotation.engine import RotationConfig

logger = logging.getLogger(__name__)


class StaleRotationConfigError(RuntimeError):
    """Raised when a rotation config changed since the caller read it."""


class LinkRepository(Protocol):
    """Operations the link subsystem needs from storage."""

    async def get_links(self, link_ids: Sequence[str]) -> list[AffiliateLink]: ...

    async def list_active_links(
        self, after_id: Optional[str] = None, limit: int = 50
    ) -> list[AffiliateLink]: ...

    async def deactivate_link(self, link_id: str) -> bool: ...

    async def short_code_exists(self, code: str) -> bool: ...

    async def get_or_create_platform(self, name: str) -> Platform: ...

    async def create_affiliate_link(
        self,
        product_id: str,
        platform_id: str,
        original_url: str,
        shortened_url: Optional[str] = None,
        short_code: Optional[str] = None,
        commission_rate: Decimal = Decimal("0"),
    ) -> AffiliateLink: ...

    async def find_link_by_original_url(self, url: str) -> Optional[AffiliateLink]: ...

    async def get_active_links_for_product(self, product_id: str) -> list[AffiliateLink]: ...

    async def get_click_events(
        self, link_ids: Sequence[str], start: datetime, end: datetime
    ) -> list[ClickEvent]: ...

    async def get_conversion_events(
        self, link_ids: Sequence[str], start: datetime, end: datetime
    ) -> list[ConversionEvent]: ...

    async def get_rotation_config(self, product_id: str) -> Optional[RotationConfig]: ...

    async def save_rotation_config(
        self, config: RotationConfig, expected_version: Optional[int] = None
    ) -> RotationConfig: ...


def _to_config(record: RotationConfigRecord) -> RotationConfig:
    return RotationConfig(
        product_id=record.product_id,
        strategy=record.strategy,
        weights=dict(record.weights or {}),
        test_duration_days=record.test_duration_days,
        traffic_split=record.traffic_split,
        geo_targeting=dict(record.geo_targeting or {}),
        device_targeting=dict(record.device_targeting or {}),
        created_at=record.created_at,
        expires_at=record.expires_at,
        version=record.version,
    )


class SqlAlchemyLinkRepository:
    """LinkRepository backed by an AsyncSession. Each write commits."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_links(self, link_ids: Sequence[str]) -> list[AffiliateLink]:
        if not link_ids:
            return []
        result = await self.db.execute(
            select(AffiliateLink).where(AffiliateLink.id.in_(list(link_ids)))
        )
        return list(result.scalars().all())

    async def list_active_links(
        self, after_id: Optional[str] = None, limit: int = 50
    ) -> list[AffiliateLink]:
        """Keyset page of active links ordered by id."""
        query = select(AffiliateLink).where(AffiliateLink.is_active == True)  # noqa: E712
        if after_id is not None:
            query = query.where(AffiliateLink.id > after_id)
        query = query.order_by(AffiliateLink.id).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def deactivate_link(self, link_id: str) -> bool:
        """
        Mark a link inactive if it is still active.

        Returns False when the link is missing or already inactive.
        """
        result = await self.db.execute(
            update(AffiliateLink)
            .where(AffiliateLink.id == link_id, AffiliateLink.is_active == True)  # noqa: E712
            .values(
                is_active=False,
                version=AffiliateLink.version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session="fetch")
        )
        await self.db.commit()
        return result.rowcount == 1

    async def short_code_exists(self, code: str) -> bool:
        result = await self.db.execute(
            select(AffiliateLink.id).where(AffiliateLink.short_code == code).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def get_or_create_platform(self, name: str) -> Platform:
        result = await self.db.execute(select(Platform).where(Platform.name == name))
        platform = result.scalar_one_or_none()
        if platform:
            return platform

        pattern = PLATFORMS.get(name)
        platform = Platform(
            name=name,
            display_name=pattern.display_name if pattern else name.capitalize(),
            base_url=pattern.base_url if pattern else "",
            is_active=True,
        )
        self.db.add(platform)
        try:
            await self.db.commit()
        except IntegrityError:
            # Created concurrently by another request
            await self.db.rollback()
            result = await self.db.execute(select(Platform).where(Platform.name == name))
            return result.scalar_one()

        logger.info(f"Registered new platform: {name}")
        return platform

    async def create_affiliate_link(
        self,
        product_id: str,
        platform_id: str,
        original_url: str,
        shortened_url: Optional[str] = None,
        short_code: Optional[str] = None,
        commission_rate: Decimal = Decimal("0"),
    ) -> AffiliateLink:
        link = AffiliateLink(
            product_id=product_id,
            platform_id=platform_id,
            original_url=original_url,
            shortened_url=shortened_url,
            short_code=short_code,
            commission_rate=commission_rate,
            is_active=True,
        )
        self.db.add(link)
        await self.db.commit()
        await self.db.refresh(link)
        return link

    async def find_link_by_original_url(self, url: str) -> Optional[AffiliateLink]:
        result = await self.db.execute(
            select(AffiliateLink).where(AffiliateLink.original_url == url).limit(1)
        )
        return result.scalar_one_or_none()

    async def get_active_links_for_product(self, product_id: str) -> list[AffiliateLink]:
        result = await self.db.execute(
            select(AffiliateLink)
            .where(AffiliateLink.product_id == product_id, AffiliateLink.is_active == True)  # noqa: E712
            .order_by(AffiliateLink.priority.desc(), AffiliateLink.created_at)
        )
        return list(result.scalars().all())

    async def get_click_events(
        self, link_ids: Sequence[str], start: datetime, end: datetime
    ) -> list[ClickEvent]:
        if not link_ids:
            return []
        result = await self.db.execute(
            select(ClickEvent).where(
                ClickEvent.link_id.in_(list(link_ids)),
                ClickEvent.timestamp >= start,
                ClickEvent.timestamp <= end,
            )
        )
        return list(result.scalars().all())

    async def get_conversion_events(
        self, link_ids: Sequence[str], start: datetime, end: datetime
    ) -> list[ConversionEvent]:
        if not link_ids:
            return []
        result = await self.db.execute(
            select(ConversionEvent).where(
                ConversionEvent.link_id.in_(list(link_ids)),
                ConversionEvent.timestamp >= start,
                ConversionEvent.timestamp <= end,
            )
        )
        return list(result.scalars().all())

    async def get_rotation_config(self, product_id: str) -> Optional[RotationConfig]:
        record = await self.db.get(RotationConfigRecord, product_id)
        return _to_config(record) if record else None

    async def save_rotation_config(
        self, config: RotationConfig, expected_version: Optional[int] = None
    ) -> RotationConfig:
        """
        Insert or update a product's rotation config.

        Args:
            config: Config to store
            expected_version: Version the caller last read; None skips the check

        Raises:
            StaleRotationConfigError: stored version differs from expected_version
        """
        values = dict(
            strategy=config.strategy.value,
            weights=dict(config.weights),
            test_duration_days=config.test_duration_days,
            traffic_split=config.traffic_split,
            geo_targeting=dict(config.geo_targeting),
            device_targeting=dict(config.device_targeting),
            expires_at=config.expires_at,
        )

        record = await self.db.get(RotationConfigRecord, config.product_id)
        if record is None:
            if expected_version not in (None, 0):
                raise StaleRotationConfigError(
                    f"Rotation config for {config.product_id} no longer exists"
                )
            record = RotationConfigRecord(
                product_id=config.product_id,
                created_at=config.created_at or utcnow(),
                version=1,
                **values,
            )
            self.db.add(record)
            await self.db.commit()
            return _to_config(record)

        current_version = record.version
        if expected_version is not None and expected_version != current_version:
            raise StaleRotationConfigError(
                f"Rotation config for {config.product_id} is at version {current_version}, "
                f"expected {expected_version}"
            )

        result = await self.db.execute(
            update(RotationConfigRecord)
            .where(
                RotationConfigRecord.product_id == config.product_id,
                RotationConfigRecord.version == current_version,
            )
            .values(version=current_version + 1, updated_at=utcnow(), **values)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise StaleRotationConfigError(
                f"Rotation config for {config.product_id} was modified concurrently"
            )
        await self.db.commit()
        await self.db.refresh(record)
        return _to_config(record)
