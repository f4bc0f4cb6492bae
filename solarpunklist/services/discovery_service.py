"""Discovery pipeline and single-URL submission.

Discovery searches a rotating sample of topical queries, asks the model which
specific communities the results mention, then researches, profiles and
stores each new one. Submission does the same for one user-supplied URL and
reports failures back to the caller instead of collecting them.
"""

import logging
import random
from collections.abc import Awaitable, Callable

import httpx

from solarpunklist.exceptions import (
    DuplicateCommunityError,
    InsufficientEvidenceError,
    ResearchError,
)
from solarpunklist.models import (
    CandidateCommunity,
    Community,
    DiscoverySummary,
    GeneratedProfile,
    LinkCreate,
    SubmissionResult,
)
from solarpunklist.repositories.community_repository_sqlalchemy import CommunityRepositorySQLAlchemy
from solarpunklist.services.identity import DedupIndex, slugify
from solarpunklist.services.image_service import ImageService
from solarpunklist.services.notification_service import NotificationService
from solarpunklist.services.profile_service import ProfileService, build_community_create
from solarpunklist.services.search_service import SearchDocument, SearchService, get_search_service
from solarpunklist.services.website_scraper_service import ScrapedPage, scrape_page

logger = logging.getLogger(__name__)

DISCOVERY_QUERIES = [
    "intentional community regenerative technology solar off-grid",
    "ecovillage IoT sensors permaculture smart grid",
    "solarpunk land project decentralized infrastructure",
    "regenerative community robotics automation green energy",
    "off-grid community drone agriculture water recycling",
    "community land trust renewable energy food forest tech",
    "cooperative ecovillage blockchain governance solar",
    "earth-ship community aquaponics renewable",
    "bioregional community open source hardware",
    "transition town technology permaculture design",
]

QUERIES_PER_RUN = 5
RESULTS_PER_QUERY = 10
QUERY_TEXT_CHARS = 3000

# Discovered profiles are backed by the candidate's sources plus the research search
DISCOVERY_EXTRA_SOURCES = 5

# Submitted pages shorter than this cannot support a profile
MIN_PAGE_CONTENT_CHARS = 50
SUBMISSION_CONTENT_CHARS = 5000

NOT_A_COMMUNITY_MESSAGE = "This URL doesn't appear to be a solarpunk community or regenerative project."


class DiscoveryService:
    """Finds and adds new communities to the directory."""

    def __init__(
        self,
        repo: CommunityRepositorySQLAlchemy,
        search: SearchService | None = None,
        profiles: ProfileService | None = None,
        images: ImageService | None = None,
        notifier: NotificationService | None = None,
        rng: random.Random | None = None,
        scrape: Callable[[str], Awaitable[ScrapedPage]] | None = None,
    ) -> None:
        self.repo = repo
        self.search = search or get_search_service()
        self.profiles = profiles or ProfileService()
        self.images = images or ImageService(repo, self.search)
        self.notifier = notifier
        self.rng = rng or random.Random()
        self.scrape = scrape or scrape_page

    # =========================================================================
    # Discovery run
    # =========================================================================

    async def run_discovery(self) -> DiscoverySummary:
        """Run one discovery pass. Never raises; always records exactly one run."""
        summary = DiscoverySummary()
        existing_names = self.repo.list_known_names()
        index = DedupIndex.from_known(self.repo.list_known_slugs(), existing_names)

        queries = self.rng.sample(DISCOVERY_QUERIES, QUERIES_PER_RUN)
        summary.queries_executed = len(queries)
        logger.info(f"[discovery] Running {len(queries)} search queries...")

        documents: list[SearchDocument] = []
        for query in queries:
            try:
                results = await self.search.search(query, RESULTS_PER_QUERY, text_chars=QUERY_TEXT_CHARS)
            except Exception as e:
                summary.errors.append(f'Search failed for query "{query}": {e}')
                continue
            documents.extend(results)
            summary.results_found += len(results)
            logger.info(f'  Query "{query[:40]}..." returned {len(results)} results')

        unique: dict[str, SearchDocument] = {}
        for doc in documents:
            if doc.url and doc.url not in unique:
                unique[doc.url] = doc

        logger.info(f"[discovery] {len(unique)} unique URLs from {summary.results_found} total results")
        logger.info(f"[discovery] Extracting community names (excluding {len(existing_names)} existing)...")

        try:
            candidates = await self.profiles.extract_candidates(list(unique.values()), existing_names)
        except Exception as e:
            logger.error(f"[discovery] Candidate extraction failed: {e}")
            summary.errors.append(f"Candidate extraction failed: {e}")
            candidates = []

        logger.info(f"[discovery] Found {len(candidates)} potential new communities")

        for candidate in candidates:
            try:
                await self._process_candidate(candidate, index, summary)
            except Exception as e:
                logger.error(f"[discovery] Processing failed for {candidate.name}: {e}")
                summary.errors.append(f"Processing failed for {candidate.name}: {e}")

        self.repo.write_discovery_run(summary)
        logger.info(
            f"[discovery] Complete: {summary.new_communities_added} added, "
            f"{summary.duplicates_skipped} duplicates, {len(summary.errors)} errors"
        )
        return summary

    async def _process_candidate(
        self,
        candidate: CandidateCommunity,
        index: DedupIndex,
        summary: DiscoverySummary,
    ) -> None:
        if index.is_duplicate(candidate.name):
            logger.info(f'  Skipping "{candidate.name}" - already in directory')
            summary.duplicates_skipped += 1
            return

        logger.info(f"  Researching: {candidate.name}...")
        profile = await self.profiles.generate_profile(candidate.name, await self._research(candidate.name))
        if profile is None:
            logger.info(f"  Could not generate profile for {candidate.name}")
            return

        slug = slugify(profile.name)
        if index.is_duplicate(profile.name, slug):
            logger.info(f'  Skipping "{profile.name}" - already in directory')
            summary.duplicates_skipped += 1
            return

        try:
            community = await self._persist(
                profile,
                source="discovery",
                sources_count=len(candidate.sources) + DISCOVERY_EXTRA_SOURCES,
            )
        except DuplicateCommunityError:
            summary.duplicates_skipped += 1
            return

        index.add(community.name, community.slug)
        summary.new_communities_added += 1
        logger.info(
            f"  Added: {community.name} (score: {community.solarpunk_score or 0:.0f}, "
            f"confidence: {community.ai_confidence})"
        )

    # =========================================================================
    # URL submission
    # =========================================================================

    async def research_from_url(self, url: str) -> SubmissionResult:
        """Profile the community behind a submitted URL and add it.

        Raises:
            InsufficientEvidenceError: the page is too thin or not a community.
            DuplicateCommunityError: the community is already listed.
            ResearchError: the page or the model could not be reached.
        """
        title, content = await self._fetch_page(url)
        if len(content) < MIN_PAGE_CONTENT_CHARS:
            raise InsufficientEvidenceError(
                "Not enough content found at this URL to generate a community profile."
            )

        classification = await self.profiles.classify_page(title, url, content)
        if classification is None:
            raise ResearchError("Failed to analyze the URL.")
        if not classification.is_community or not classification.name.strip():
            raise InsufficientEvidenceError(classification.reason or NOT_A_COMMUNITY_MESSAGE)

        name = classification.name.strip()
        index = DedupIndex.from_known(self.repo.list_known_slugs(), self.repo.list_known_names())
        if index.is_duplicate(name):
            raise DuplicateCommunityError(name)

        documents = [SearchDocument(title=title, url=url, text=content)] + await self._research(name)
        profile = await self.profiles.generate_profile(name, documents)
        if profile is None:
            raise ResearchError("Could not generate a profile for this community. Please try a different URL.")

        if index.is_duplicate(profile.name):
            raise DuplicateCommunityError(profile.name)

        community = await self._persist(profile, source="submission", sources_count=1, website_url=url)
        logger.info(
            f"[submit] Added: {community.name} (score: {community.solarpunk_score or 0:.0f}, "
            f"slug: {community.slug})"
        )
        return SubmissionResult(slug=community.slug, name=community.name)

    async def _fetch_page(self, url: str) -> tuple[str, str]:
        title, content = "", ""
        doc = await self.search.get_contents(url, SUBMISSION_CONTENT_CHARS)
        if doc is not None:
            title, content = doc.title, doc.text

        if len(content) < MIN_PAGE_CONTENT_CHARS:
            try:
                page = await self.scrape(url)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                logger.warning(f"[submit] Direct fetch failed for {url}: {e}")
                raise ResearchError(
                    "Could not fetch content from this URL. Please check the URL and try again."
                ) from e
            content = page.text
            title = page.title or title
        return title, content

    # =========================================================================
    # Shared steps
    # =========================================================================

    async def _research(self, name: str) -> list[SearchDocument]:
        return await self.search.search(
            f'"{name}" intentional community ecovillage',
            RESULTS_PER_QUERY,
            text_chars=QUERY_TEXT_CHARS,
        )

    async def _persist(
        self,
        profile: GeneratedProfile,
        *,
        source: str,
        sources_count: int,
        website_url: str | None = None,
    ) -> Community:
        data = build_community_create(
            profile,
            source=source,
            sources_count=sources_count,
            website_url=website_url,
        )
        community = self.repo.create(data)

        self.repo.add_tags(community.id, profile.tags)
        if data.website_url:
            self.repo.add_links(community.id, [
                LinkCreate(url=data.website_url, title="Official Website", type="website"),
            ])

        try:
            await self.images.fetch_and_store_images(community.id, community.name, data.website_url)
        except Exception as e:
            logger.error(f"  Image fetch failed for {community.name}: {e}")

        if self.notifier is not None:
            try:
                await self.notifier.notify_subscribers(community)
            except Exception as e:
                logger.error(f"[email] notification error: {e}")

        return community
