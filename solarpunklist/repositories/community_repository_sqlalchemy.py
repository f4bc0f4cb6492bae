from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from solarpunklist.db.models.community import (
    CommunityImageORM,
    CommunityLinkORM,
    CommunityORM,
    CommunityTagORM,
)
from solarpunklist.db.models.run import DiscoveryRunORM, RefreshRunORM
from solarpunklist.exceptions import DuplicateCommunityError
from solarpunklist.models import (
    Community,
    CommunityCreate,
    CommunityImage,
    CommunityLink,
    CommunityTag,
    CommunityUpdate,
    DiscoverySummary,
    ImageCreate,
    LinkCreate,
    RefreshSummary,
)


def _to_model(orm: CommunityORM) -> Community:
    return Community(
        id=orm.id,
        name=orm.name,
        slug=orm.slug,
        tagline=orm.tagline,
        overview=orm.overview,
        location_country=orm.location_country,
        location_region=orm.location_region,
        location_lat=orm.location_lat,
        location_lng=orm.location_lng,
        stage=orm.stage,
        population=orm.population,
        founded_year=orm.founded_year,
        website_url=orm.website_url,
        hero_image_url=orm.hero_image_url,
        solarpunk_score=orm.solarpunk_score,
        score_energy=orm.score_energy,
        score_land=orm.score_land,
        score_tech=orm.score_tech,
        score_governance=orm.score_governance,
        score_community=orm.score_community,
        score_circularity=orm.score_circularity,
        tech_stack=orm.tech_stack,
        community_life=orm.community_life,
        how_to_join=orm.how_to_join,
        land_description=orm.land_description,
        ai_confidence=orm.ai_confidence,
        sources_count=orm.sources_count or 0,
        source=orm.source,
        last_researched_at=orm.last_researched_at,
        last_refreshed_at=orm.last_refreshed_at,
        refresh_count=orm.refresh_count or 0,
        is_published=orm.is_published,
        is_forming_disclaimer=orm.is_forming_disclaimer,
        created_at=orm.created_at,
        updated_at=orm.updated_at,
        tags=[_tag_to_model(t) for t in orm.tags],
        links=[_link_to_model(link) for link in orm.links],
        images=[_image_to_model(i) for i in orm.images],
    )


def _tag_to_model(orm: CommunityTagORM) -> CommunityTag:
    return CommunityTag(id=orm.id, community_id=orm.community_id, tag=orm.tag)


def _link_to_model(orm: CommunityLinkORM) -> CommunityLink:
    return CommunityLink(
        id=orm.id,
        community_id=orm.community_id,
        url=orm.url,
        title=orm.title,
        type=orm.type,
    )


def _image_to_model(orm: CommunityImageORM) -> CommunityImage:
    return CommunityImage(
        id=orm.id,
        community_id=orm.community_id,
        image_url=orm.image_url,
        alt_text=orm.alt_text,
        source_url=orm.source_url,
        is_hero=orm.is_hero,
        sort_order=orm.sort_order,
        created_at=orm.created_at,
    )


class CommunityRepositorySQLAlchemy:
    """Record store for communities, their child rows and run audits."""

    def __init__(self, db: Session):
        self.db = db

    # -- communities ---------------------------------------------------------

    def get(self, community_id: str) -> Community | None:
        orm = self.db.get(CommunityORM, community_id)
        return _to_model(orm) if orm else None

    def get_by_slug(self, slug: str, include_unpublished: bool = False) -> Community | None:
        q = self.db.query(CommunityORM).filter(CommunityORM.slug == slug)
        if not include_unpublished:
            q = q.filter(CommunityORM.is_published.is_(True))
        orm = q.one_or_none()
        return _to_model(orm) if orm else None

    def list_published(self) -> list[Community]:
        rows = (
            self.db.query(CommunityORM)
            .filter(CommunityORM.is_published.is_(True))
            .order_by(CommunityORM.solarpunk_score.desc().nullslast(), CommunityORM.name.asc())
            .all()
        )
        return [_to_model(r) for r in rows]

    def list_all(self) -> list[Community]:
        rows = self.db.query(CommunityORM).order_by(CommunityORM.name.asc()).all()
        return [_to_model(r) for r in rows]

    def count(self) -> int:
        return int(self.db.query(func.count(CommunityORM.id)).scalar() or 0)

    def list_known_slugs(self) -> list[str]:
        # Every slug, published or not: slugs are unique across the whole table.
        return [row[0] for row in self.db.query(CommunityORM.slug).all()]

    def list_known_names(self) -> list[str]:
        return [row[0] for row in self.db.query(CommunityORM.name).all()]

    def create(self, data: CommunityCreate) -> Community:
        """Insert a community.

        Raises:
            DuplicateCommunityError: the slug is already taken.
        """
        now = datetime.now(timezone.utc)
        orm = CommunityORM(**data.model_dump(), created_at=now, updated_at=now)
        self.db.add(orm)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateCommunityError(data.name) from e
        self.db.refresh(orm)
        return _to_model(orm)

    def update(self, community_id: str, data: CommunityUpdate) -> Community | None:
        orm = self.db.get(CommunityORM, community_id)
        if not orm:
            return None

        patch = data.model_dump(exclude_unset=True)
        for k, v in patch.items():
            setattr(orm, k, v)
        orm.updated_at = datetime.now(timezone.utc)

        self.db.commit()
        self.db.refresh(orm)
        return _to_model(orm)

    # -- child collections ---------------------------------------------------

    def add_tags(self, community_id: str, tags: list[str]) -> list[CommunityTag]:
        if not tags:
            return []
        rows = [CommunityTagORM(community_id=community_id, tag=tag) for tag in tags]
        self.db.add_all(rows)
        self.db.commit()
        return [_tag_to_model(r) for r in rows]

    def list_tags(self, community_id: str) -> list[str]:
        rows = self.db.query(CommunityTagORM.tag).filter(CommunityTagORM.community_id == community_id).all()
        return [row[0] for row in rows]

    def add_links(self, community_id: str, links: list[LinkCreate]) -> list[CommunityLink]:
        if not links:
            return []
        rows = [CommunityLinkORM(community_id=community_id, **link.model_dump()) for link in links]
        self.db.add_all(rows)
        self.db.commit()
        return [_link_to_model(r) for r in rows]

    def add_images(self, community_id: str, images: list[ImageCreate]) -> list[CommunityImage]:
        if not images:
            return []
        rows = [CommunityImageORM(community_id=community_id, **img.model_dump()) for img in images]
        self.db.add_all(rows)
        self.db.commit()
        return [_image_to_model(r) for r in rows]

    def list_images(self, community_id: str) -> list[CommunityImage]:
        rows = (
            self.db.query(CommunityImageORM)
            .filter(CommunityImageORM.community_id == community_id)
            .order_by(CommunityImageORM.sort_order.asc())
            .all()
        )
        return [_image_to_model(r) for r in rows]

    def set_hero_image(
        self,
        community_id: str,
        image_url: str,
        *,
        alt_text: str | None = None,
        source_url: str | None = None,
    ) -> Community | None:
        """Make ``image_url`` the community's only hero image.

        An existing image row with the same URL is flagged; otherwise a new row
        is appended after the current images.
        """
        orm = self.db.get(CommunityORM, community_id)
        if not orm:
            return None

        rows = (
            self.db.query(CommunityImageORM)
            .filter(CommunityImageORM.community_id == community_id)
            .all()
        )
        matched = False
        for row in rows:
            row.is_hero = row.image_url == image_url and not matched
            matched = matched or row.is_hero
        if not matched:
            self.db.add(CommunityImageORM(
                community_id=community_id,
                image_url=image_url,
                alt_text=alt_text or f"{orm.name} photo",
                source_url=source_url,
                is_hero=True,
                sort_order=len(rows),
            ))

        orm.hero_image_url = image_url
        orm.updated_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(orm)
        return _to_model(orm)

    # -- run audits ----------------------------------------------------------

    def write_discovery_run(self, summary: DiscoverySummary) -> None:
        self.db.add(DiscoveryRunORM(
            queries_executed=summary.queries_executed,
            results_found=summary.results_found,
            duplicates_skipped=summary.duplicates_skipped,
            new_communities_added=summary.new_communities_added,
            errors=summary.errors or None,
            status="completed",
        ))
        self.db.commit()

    def write_refresh_run(self, summary: RefreshSummary) -> None:
        self.db.add(RefreshRunORM(
            communities_checked=summary.communities_checked,
            content_changes_detected=summary.content_changes_detected,
            stage_changes=summary.stage_changes,
            dormant_flagged=summary.dormant_flagged,
            errors=summary.errors or None,
            status="completed",
        ))
        self.db.commit()
