"""Refresh pipeline: re-research stale communities and apply what changed."""

import logging
from datetime import datetime, timedelta, timezone

from solarpunklist.models import Community, CommunityUpdate, RefreshSummary
from solarpunklist.repositories.community_repository_sqlalchemy import CommunityRepositorySQLAlchemy
from solarpunklist.services.profile_service import ProfileService
from solarpunklist.services.search_service import SearchService, get_search_service

logger = logging.getLogger(__name__)

STALE_AFTER = timedelta(days=30)
REFRESH_RESULT_COUNT = 5
REFRESH_TEXT_CHARS = 3000


def is_stale(community: Community, now: datetime) -> bool:
    """True when the community was never refreshed or not within STALE_AFTER."""
    last = community.last_refreshed_at
    if last is None:
        return True
    if last.tzinfo is None:
        last = last.replace(tzinfo=timezone.utc)
    return last < now - STALE_AFTER


class RefreshService:
    """Keeps published communities current."""

    def __init__(
        self,
        repo: CommunityRepositorySQLAlchemy,
        search: SearchService | None = None,
        profiles: ProfileService | None = None,
    ) -> None:
        self.repo = repo
        self.search = search or get_search_service()
        self.profiles = profiles or ProfileService()

    async def run_refresh(self, now: datetime | None = None) -> RefreshSummary:
        """Refresh every stale published community. Never raises; records exactly one run."""
        now = now or datetime.now(timezone.utc)
        published = self.repo.list_published()
        stale = [c for c in published if is_stale(c, now)]
        logger.info(f"[refresh] Found {len(stale)} communities needing refresh out of {len(published)} total")

        summary = RefreshSummary(communities_checked=len(stale))
        for community in stale:
            try:
                await self._refresh_one(community, now, summary)
            except Exception as e:
                logger.error(f"[refresh] Refresh failed for {community.name}: {e}")
                summary.errors.append(f"Refresh failed for {community.name}: {e}")

        self.repo.write_refresh_run(summary)
        logger.info(
            f"[refresh] Complete: {summary.communities_checked} checked, "
            f"{summary.content_changes_detected} content changes, {summary.stage_changes} stage changes, "
            f"{summary.dormant_flagged} dormant"
        )
        return summary

    async def _refresh_one(self, community: Community, now: datetime, summary: RefreshSummary) -> None:
        update = CommunityUpdate(last_refreshed_at=now, refresh_count=community.refresh_count + 1)

        documents = await self.search.search(
            f"{community.name} intentional community ecovillage",
            REFRESH_RESULT_COUNT,
            text_chars=REFRESH_TEXT_CHARS,
        )
        if not documents:
            self.repo.update(community.id, update)
            return

        diff = await self.profiles.generate_refresh_diff(community.name, community.overview, documents)
        if diff is None or not diff.status_change:
            self.repo.update(community.id, update)
            return

        if diff.overview:
            update.overview = diff.overview
            summary.content_changes_detected += 1
        if diff.stage and diff.stage != community.stage:
            update.stage = diff.stage
            summary.stage_changes += 1
        if diff.is_dormant:
            update.stage = "dormant"
            summary.dormant_flagged += 1
        if diff.population:
            update.population = diff.population
        if diff.community_life:
            update.community_life = diff.community_life
        if diff.how_to_join:
            update.how_to_join = diff.how_to_join
        if diff.confidence_adjustment is not None:
            update.ai_confidence = diff.confidence_adjustment

        self.repo.update(community.id, update)

        existing = {t.casefold() for t in self.repo.list_tags(community.id)}
        new_tags: list[str] = []
        for tag in diff.new_tags:
            if tag.casefold() not in existing:
                existing.add(tag.casefold())
                new_tags.append(tag)
        self.repo.add_tags(community.id, new_tags)

        logger.info(f"  Refreshed: {community.name} - {diff.status_change}")
