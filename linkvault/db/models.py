"""SQLAlchemy database models."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Platform(Base):
    """E-commerce platform registry entry, created on first detection."""

    __tablename__ = "platforms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(64), nullable=False)
    base_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    links: Mapped[list["AffiliateLink"]] = relationship("AffiliateLink", back_populates="platform")


class AffiliateLink(Base):
    """Monetizable URL for a product on a platform."""

    __tablename__ = "affiliate_links"
    __table_args__ = (
        Index("ix_affiliate_links_product_active", "product_id", "is_active"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    product_id: Mapped[str] = mapped_column(String(36), nullable=False)
    platform_id: Mapped[str] = mapped_column(ForeignKey("platforms.id"), nullable=False)
    original_url: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    shortened_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    short_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True)
    commission_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 4), default=Decimal("0"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Optimistic concurrency counter, bumped on every state change
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    platform: Mapped["Platform"] = relationship("Platform", back_populates="links", lazy="selectin")
    analytics: Mapped[Optional["LinkAnalytics"]] = relationship(
        "LinkAnalytics",
        back_populates="link",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )


class LinkAnalytics(Base):
    """Rolled-up counters for a link, maintained by the click recorder."""

    __tablename__ = "link_analytics"

    link_id: Mapped[str] = mapped_column(
        ForeignKey("affiliate_links.id", ondelete="CASCADE"), primary_key=True
    )
    total_clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_conversions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    link: Mapped["AffiliateLink"] = relationship("AffiliateLink", back_populates="analytics")


class ClickEvent(Base):
    """Append-only click fact."""

    __tablename__ = "click_events"
    __table_args__ = (
        Index("ix_click_events_link_timestamp", "link_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    link_id: Mapped[str] = mapped_column(String(36), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    device: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    referrer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class ConversionEvent(Base):
    """Append-only conversion fact."""

    __tablename__ = "conversion_events"
    __table_args__ = (
        Index("ix_conversion_events_link_timestamp", "link_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    link_id: Mapped[str] = mapped_column(String(36), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    order_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)


class RotationConfigRecord(Base):
    """Persisted rotation configuration, one per product."""

    __tablename__ = "rotation_configs"

    product_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    strategy: Mapped[str] = mapped_column(String(32), nullable=False)
    weights: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    test_duration_days: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    traffic_split: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    geo_targeting: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    device_targeting: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )
