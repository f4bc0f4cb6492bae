"""Tests for the refresh pipeline."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from solarpunklist.db.models import RefreshRunORM
from solarpunklist.models import Community, RefreshDiff
from solarpunklist.services.profile_service import ProfileService
from solarpunklist.services.refresh_service import RefreshService, is_stale
from solarpunklist.services.search_service import SearchDocument

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fake_profiles():
    profiles = MagicMock(spec=ProfileService)
    profiles.generate_refresh_diff = AsyncMock(return_value=None)
    return profiles


@pytest.fixture
def service(community_repo, fake_search, fake_profiles):
    fake_search.search.return_value = [
        SearchDocument(title="News", url="https://news.example.org", text="Fresh research text."),
    ]
    return RefreshService(community_repo, search=fake_search, profiles=fake_profiles)


class TestIsStale:
    """Test staleness selection."""

    def _community(self, last_refreshed_at):
        return Community(id="c1", name="X", slug="x", last_refreshed_at=last_refreshed_at)

    def test_refreshed_31_days_ago_is_stale(self):
        assert is_stale(self._community(NOW - timedelta(days=31)), NOW)

    def test_refreshed_29_days_ago_is_fresh(self):
        assert not is_stale(self._community(NOW - timedelta(days=29)), NOW)

    def test_never_refreshed_is_stale(self):
        assert is_stale(self._community(None), NOW)

    def test_naive_timestamps_treated_as_utc(self):
        naive = (NOW - timedelta(days=31)).replace(tzinfo=None)
        assert is_stale(self._community(naive), NOW)


class TestRunRefresh:
    """Test one refresh pass against the in-memory store."""

    @pytest.mark.asyncio
    async def test_selects_only_stale_published(self, service, make_community, fake_search):
        make_community("Old Place", last_refreshed_at=NOW - timedelta(days=31))
        make_community("Fresh Place", last_refreshed_at=NOW - timedelta(days=29))
        make_community("Never Place", last_refreshed_at=None)
        make_community("Hidden Place", is_published=False, last_refreshed_at=None)

        summary = await service.run_refresh(now=NOW)

        assert summary.communities_checked == 2
        queries = sorted(call.args[0] for call in fake_search.search.await_args_list)
        assert queries == [
            "Never Place intentional community ecovillage",
            "Old Place intentional community ecovillage",
        ]
        assert fake_search.search.await_args.args[1] == 5

    @pytest.mark.asyncio
    async def test_no_diff_only_touches(self, service, make_community, community_repo):
        created = make_community("Old Place", overview="Original")

        await service.run_refresh(now=NOW)

        community = community_repo.get(created.id)
        assert community.refresh_count == 1
        assert community.last_refreshed_at.replace(tzinfo=timezone.utc) == NOW
        assert community.overview == "Original"

    @pytest.mark.asyncio
    async def test_empty_search_touches_without_llm(self, service, make_community, fake_search, fake_profiles):
        make_community("Old Place")
        fake_search.search.return_value = []

        summary = await service.run_refresh(now=NOW)

        fake_profiles.generate_refresh_diff.assert_not_awaited()
        assert summary.communities_checked == 1

    @pytest.mark.asyncio
    async def test_diff_without_status_change_is_ignored(
        self, service, make_community, community_repo, fake_profiles
    ):
        created = make_community("Old Place", overview="Original", stage="forming")
        fake_profiles.generate_refresh_diff.return_value = RefreshDiff(overview="Rewritten", stage="mature")

        summary = await service.run_refresh(now=NOW)

        community = community_repo.get(created.id)
        assert community.overview == "Original"
        assert community.stage == "forming"
        assert community.refresh_count == 1
        assert summary.content_changes_detected == 0

    @pytest.mark.asyncio
    async def test_applies_diff(self, service, make_community, community_repo, fake_profiles):
        created = make_community("Old Place", overview="Original", stage="forming", population=20)
        fake_profiles.generate_refresh_diff.return_value = RefreshDiff(
            overview="Now a thriving village.",
            stage="established",
            population=45,
            how_to_join="Visitor weeks every summer.",
            status_change="Grew and opened to visitors",
            confidence_adjustment=0.9,
        )

        summary = await service.run_refresh(now=NOW)

        community = community_repo.get(created.id)
        assert community.overview == "Now a thriving village."
        assert community.stage == "established"
        assert community.population == 45
        assert community.how_to_join == "Visitor weeks every summer."
        assert community.ai_confidence == 0.9
        assert summary.content_changes_detected == 1
        assert summary.stage_changes == 1
        assert summary.dormant_flagged == 0

    @pytest.mark.asyncio
    async def test_dormancy_takes_precedence(self, service, make_community, community_repo, fake_profiles):
        created = make_community("Old Place", stage="forming")
        fake_profiles.generate_refresh_diff.return_value = RefreshDiff(
            stage="established", is_dormant=True, status_change="Website offline, members dispersed"
        )

        summary = await service.run_refresh(now=NOW)

        assert community_repo.get(created.id).stage == "dormant"
        assert summary.dormant_flagged == 1

    @pytest.mark.asyncio
    async def test_same_stage_not_counted(self, service, make_community, fake_profiles):
        make_community("Old Place", stage="mature")
        fake_profiles.generate_refresh_diff.return_value = RefreshDiff(stage="mature", status_change="Minor")

        summary = await service.run_refresh(now=NOW)
        assert summary.stage_changes == 0

    @pytest.mark.asyncio
    async def test_new_tags_added_without_duplicates(
        self, service, make_community, community_repo, fake_profiles
    ):
        created = make_community("Old Place")
        community_repo.add_tags(created.id, ["Permaculture"])
        fake_profiles.generate_refresh_diff.return_value = RefreshDiff(
            new_tags=["permaculture", "agroforestry", "Agroforestry"], status_change="New projects"
        )

        await service.run_refresh(now=NOW)

        assert sorted(community_repo.list_tags(created.id)) == ["Permaculture", "agroforestry"]

    @pytest.mark.asyncio
    async def test_failure_recorded_and_run_continues(
        self, service, make_community, community_repo, fake_profiles
    ):
        make_community("Alpha")
        make_community("Beta")
        fake_profiles.generate_refresh_diff.side_effect = [RuntimeError("timeout"), None]

        summary = await service.run_refresh(now=NOW)

        assert len(summary.errors) == 1
        assert summary.errors[0] in ("Refresh failed for Alpha: timeout", "Refresh failed for Beta: timeout")
        assert summary.communities_checked == 2

    @pytest.mark.asyncio
    async def test_exactly_one_run_recorded(self, service, db_session, make_community):
        make_community("Old Place")
        await service.run_refresh(now=NOW)

        run = db_session.query(RefreshRunORM).one()
        assert run.status == "completed"
        assert run.communities_checked == 1
        assert run.errors is None


class TestPlaceholderDiffValues:
    """Test that placeholder strings from the model are read as absent values."""

    @pytest.mark.asyncio
    async def test_null_status_change_keeps_record(self, service, make_community, community_repo, fake_profiles):
        created = make_community("Old Place", overview="Original", stage="forming")
        fake_profiles.generate_refresh_diff.return_value = RefreshDiff.model_validate(
            {"overview": "Rewritten", "stage": "mature", "status_change": "null"}
        )

        summary = await service.run_refresh(now=NOW)

        community = community_repo.get(created.id)
        assert community.overview == "Original"
        assert community.stage == "forming"
        assert summary.content_changes_detected == 0

    def test_unchanged_status_change_is_none(self):
        assert RefreshDiff.model_validate({"status_change": " Unchanged "}).status_change is None

    @pytest.mark.asyncio
    async def test_null_stage_still_flags_dormant(self, service, make_community, community_repo, fake_profiles):
        created = make_community("Old Place", stage="forming")
        fake_profiles.generate_refresh_diff.return_value = RefreshDiff.model_validate(
            {"stage": "null", "is_dormant": True, "status_change": "Members dispersed"}
        )

        summary = await service.run_refresh(now=NOW)

        assert community_repo.get(created.id).stage == "dormant"
        assert summary.dormant_flagged == 1
        assert summary.stage_changes == 0

    def test_unchanged_stage_is_none(self):
        diff = RefreshDiff.model_validate({"stage": "unchanged", "status_change": "Minor"})
        assert diff.stage is None
        assert diff.status_change == "Minor"
