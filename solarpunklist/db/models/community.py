from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from solarpunklist.db.base import Base, JSONType


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CommunityORM(Base):
    __tablename__ = "communities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)

    tagline: Mapped[str | None] = mapped_column(Text, nullable=True)
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)
    location_country: Mapped[str | None] = mapped_column(Text, nullable=True)
    location_region: Mapped[str | None] = mapped_column(Text, nullable=True)
    location_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    stage: Mapped[str | None] = mapped_column(String(32), nullable=True)
    population: Mapped[int | None] = mapped_column(Integer, nullable=True)
    founded_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    website_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    hero_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    solarpunk_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    score_energy: Mapped[float | None] = mapped_column(Float, nullable=True)
    score_land: Mapped[float | None] = mapped_column(Float, nullable=True)
    score_tech: Mapped[float | None] = mapped_column(Float, nullable=True)
    score_governance: Mapped[float | None] = mapped_column(Float, nullable=True)
    score_community: Mapped[float | None] = mapped_column(Float, nullable=True)
    score_circularity: Mapped[float | None] = mapped_column(Float, nullable=True)

    tech_stack: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    community_life: Mapped[str | None] = mapped_column(Text, nullable=True)
    how_to_join: Mapped[str | None] = mapped_column(Text, nullable=True)
    land_description: Mapped[str | None] = mapped_column(Text, nullable=True)

    ai_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    sources_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="discovery")

    last_researched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_refreshed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refresh_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_forming_disclaimer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, nullable=False)

    tags: Mapped[list["CommunityTagORM"]] = relationship(
        "CommunityTagORM",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    links: Mapped[list["CommunityLinkORM"]] = relationship(
        "CommunityLinkORM",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    images: Mapped[list["CommunityImageORM"]] = relationship(
        "CommunityImageORM",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CommunityImageORM.sort_order",
    )


class CommunityTagORM(Base):
    __tablename__ = "community_tags"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    community_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("communities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tag: Mapped[str] = mapped_column(Text, nullable=False)


class CommunityLinkORM(Base):
    __tablename__ = "community_links"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    community_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("communities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "website" | "social" | "article"
    type: Mapped[str | None] = mapped_column(String(32), nullable=True)


class CommunityImageORM(Base):
    __tablename__ = "community_images"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    community_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("communities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    alt_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_hero: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, nullable=False)
