"""Image acquisition and hero validation.

Candidate images come from Exa search results (the page's lead image plus
extracted image links). They are filtered syntactically, then verified over
the network before being stored. Hero images get a stricter check that reads
the PNG header to catch tiny images and transparent logos.
"""

import logging
import re
import struct
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

from solarpunklist.models import (
    AuditEntry,
    AuditReport,
    BackfillReport,
    Community,
    CommunityUpdate,
    ImageCreate,
)
from solarpunklist.repositories.community_repository_sqlalchemy import CommunityRepositorySQLAlchemy
from solarpunklist.services.search_service import SearchService, get_search_service
from solarpunklist.services.validation_service import ImageUrlValidator

logger = logging.getLogger(__name__)

USER_AGENT = "SolarpunkList/1.0"

# Timeouts (seconds)
HEAD_TIMEOUT = 5.0
HERO_GET_TIMEOUT = 10.0

MIN_IMAGE_BYTES = 5000

# Acquisition limits
SEARCH_RESULT_COUNT = 10
IMAGE_LINKS_PER_RESULT = 5
TARGET_CANDIDATES = 6
MAX_CANDIDATES_TRIED = 12
MAX_IMAGES_STORED = 8
BACKFILL_MIN_IMAGES = 3
REPAIR_CANDIDATES_TRIED = 8

# Hero checks
HERO_RANGE_BYTES = 65535
MIN_HERO_WIDTH = 300
MIN_HERO_HEIGHT = 200
# Transparent PNGs this large, or this wide and large, are treated as photos
TRANSPARENT_PHOTO_BYTES = 150_000
WIDE_ASPECT_RATIO = 1.7
WIDE_TRANSPARENT_PHOTO_BYTES = 60_000

LOCAL_FALLBACK_TEMPLATE = "/images/communities/{slug}.jpg"

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
_CONTENT_RANGE_TOTAL = re.compile(r"/\s*(\d+)\s*$")

_image_url_validator = ImageUrlValidator()


def is_valid_image_url(url: str | None) -> bool:
    """Cheap pre-network filter for image URLs."""
    return _image_url_validator.is_valid(url)


def extract_domain(url: str | None) -> str | None:
    if not url:
        return None
    try:
        return urlparse(url).hostname or None
    except ValueError:
        return None


@dataclass
class ImageCandidate:
    image_url: str
    source_url: str
    alt_text: str = ""


@dataclass
class HeroValidation:
    """Outcome of a hero check; ``url`` may differ from the input after an https upgrade."""

    is_valid: bool
    reason: str
    url: str


@dataclass
class PngInfo:
    width: int
    height: int
    has_alpha: bool


def inspect_png(data: bytes) -> PngInfo | None:
    """Read dimensions and alpha from a PNG IHDR chunk.

    Width and height are big-endian uint32 at bytes 16-23, colour type is
    byte 25 (4 = grey+alpha, 6 = RGBA). Returns None for non-PNG data.
    """
    if len(data) < 26 or not data.startswith(PNG_SIGNATURE) or data[12:16] != b"IHDR":
        return None
    width, height = struct.unpack(">II", data[16:24])
    return PngInfo(width=width, height=height, has_alpha=data[25] in (4, 6))


def _total_size(response: httpx.Response, head: bytes) -> int:
    content_range = response.headers.get("content-range", "")
    match = _CONTENT_RANGE_TOTAL.search(content_range)
    if match:
        return int(match.group(1))
    content_length = response.headers.get("content-length")
    if content_length and content_length.isdigit():
        return int(content_length)
    return len(head)


async def _read_head(response: httpx.Response, limit: int) -> bytes:
    """Read at most ``limit`` bytes of a streamed body, even if the server ignored Range."""
    data = bytearray()
    async for chunk in response.aiter_bytes():
        data.extend(chunk)
        if len(data) >= limit:
            break
    return bytes(data[:limit])


def _is_supported_image_type(content_type: str) -> bool:
    return content_type.startswith("image/") and "gif" not in content_type and "svg" not in content_type


class ImageService:
    """Finds, verifies and stores community photos and keeps hero images healthy."""

    def __init__(
        self,
        repo: CommunityRepositorySQLAlchemy,
        search: SearchService | None = None,
    ) -> None:
        self.repo = repo
        self.search = search or get_search_service()
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client and release resources."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    # =========================================================================
    # Acquisition
    # =========================================================================

    async def search_images(
        self,
        query: str,
        include_domains: list[str] | None = None,
    ) -> list[ImageCandidate]:
        """Collect candidate image URLs from search results, deduplicated and filtered."""
        documents = await self.search.search(
            query,
            SEARCH_RESULT_COUNT,
            include_domains=include_domains,
            text_chars=None,
            image_links=IMAGE_LINKS_PER_RESULT,
        )

        candidates: list[ImageCandidate] = []
        seen: set[str] = set()
        for doc in documents:
            urls = ([doc.image] if doc.image else []) + doc.image_links
            for url in urls:
                if url in seen or not is_valid_image_url(url):
                    continue
                seen.add(url)
                candidates.append(ImageCandidate(image_url=url, source_url=doc.url, alt_text=doc.title))
        return candidates

    async def verify_image_url(self, url: str) -> bool:
        """HEAD the URL and check it serves a reasonably sized still image."""
        try:
            client = await self._get_client()
            response = await client.head(url, timeout=HEAD_TIMEOUT)
        except Exception as e:
            logger.debug(f"HEAD failed for {url}: {e}")
            return False

        if not response.is_success:
            return False

        if not _is_supported_image_type(response.headers.get("content-type", "").lower()):
            return False

        content_length = response.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) < MIN_IMAGE_BYTES:
            return False
        return True

    async def fetch_and_store_images(
        self,
        community_id: str,
        name: str,
        website_url: str | None,
    ) -> int:
        """Find and store new verified images for a community.

        Site-scoped results are preferred; unscoped queries fill in when fewer
        than TARGET_CANDIDATES were found. Returns the number of images stored.
        """
        logger.info(f"  [images] Fetching images for {name}...")

        existing = self.repo.list_images(community_id)
        existing_urls = {img.image_url for img in existing}

        found: list[ImageCandidate] = []

        def collect(candidates: list[ImageCandidate]) -> None:
            for c in candidates:
                if c.image_url in existing_urls or any(f.image_url == c.image_url for f in found):
                    continue
                found.append(c)

        domain = extract_domain(website_url)
        if domain:
            collect(await self.search_images(f"{name} community", [domain]))

        if len(found) < TARGET_CANDIDATES:
            for query in (f'"{name}" ecovillage community photos', f"{name} sustainable community"):
                collect(await self.search_images(query))
                if len(found) >= TARGET_CANDIDATES:
                    break

        if not found:
            logger.info(f"  [images] No new images found for {name}")
            return 0

        verified: list[ImageCandidate] = []
        for candidate in found[:MAX_CANDIDATES_TRIED]:
            if len(verified) >= MAX_IMAGES_STORED:
                break
            if await self.verify_image_url(candidate.image_url):
                verified.append(candidate)

        if not verified:
            logger.info(f"  [images] No verified images for {name}")
            return 0

        first_images = not existing
        start_order = len(existing)
        self.repo.add_images(community_id, [
            ImageCreate(
                image_url=img.image_url,
                alt_text=img.alt_text or f"{name} photo",
                source_url=img.source_url,
                is_hero=first_images and i == 0,
                sort_order=start_order + i,
            )
            for i, img in enumerate(verified)
        ])
        if first_images:
            self.repo.update(community_id, CommunityUpdate(hero_image_url=verified[0].image_url))

        logger.info(f"  [images] Stored {len(verified)} images for {name}")
        return len(verified)

    async def backfill_all_images(self) -> BackfillReport:
        """Top up every published community that has fewer than BACKFILL_MIN_IMAGES images."""
        report = BackfillReport()
        needs_images = [c for c in self.repo.list_published() if len(c.images) < BACKFILL_MIN_IMAGES]
        logger.info(
            f"[images] Backfilling images for {len(needs_images)} communities "
            f"(< {BACKFILL_MIN_IMAGES} images)..."
        )

        for community in needs_images:
            try:
                report.total_images_added += await self.fetch_and_store_images(
                    community.id, community.name, community.website_url
                )
                report.communities_processed += 1
            except Exception as e:
                logger.error(f"[images] Backfill failed for {community.name}: {e}")
                report.errors.append(f"Failed for {community.name}: {e}")

        logger.info(
            f"[images] Backfill complete: {report.communities_processed} communities, "
            f"{report.total_images_added} images added"
        )
        return report

    # =========================================================================
    # Hero validation and repair
    # =========================================================================

    async def validate_hero_image(self, url: str | None) -> HeroValidation:
        """Check that a hero image is a real, photo-sized picture.

        ``http://`` URLs are retried over https; the upgraded URL is returned
        when it validates.
        """
        if not url:
            return HeroValidation(False, "missing", url or "")

        if url.startswith("/"):
            return HeroValidation(True, "local_path", url)

        if url.startswith("http://"):
            upgraded = await self.validate_hero_image("https://" + url[len("http://"):])
            if upgraded.is_valid:
                return upgraded
            return HeroValidation(False, "insecure_http", url)

        lower = url.lower()
        if any(marker in lower for marker in ("logo", "favicon", "icon")):
            return HeroValidation(False, "logo_or_icon_url", url)

        try:
            client = await self._get_client()
            async with client.stream(
                "GET",
                url,
                headers={"Range": f"bytes=0-{HERO_RANGE_BYTES}"},
                timeout=HERO_GET_TIMEOUT,
            ) as response:
                content_type = response.headers.get("content-type", "").lower()
                head = b""
                if response.is_success and content_type.startswith("image/"):
                    head = await _read_head(response, HERO_RANGE_BYTES + 1)
        except Exception as e:
            logger.debug(f"Hero fetch failed for {url}: {e}")
            return HeroValidation(False, "unreachable", url)

        if not response.is_success:
            return HeroValidation(False, f"http_{response.status_code}", url)

        if not content_type.startswith("image/"):
            return HeroValidation(False, "not_an_image", url)
        if not _is_supported_image_type(content_type):
            return HeroValidation(False, "unsupported_format", url)

        size = _total_size(response, head)
        if size < MIN_IMAGE_BYTES:
            return HeroValidation(False, "file_too_small", url)

        png = inspect_png(head)
        if png is not None:
            if png.width < MIN_HERO_WIDTH or png.height < MIN_HERO_HEIGHT:
                return HeroValidation(False, "too_small_dimensions", url)
            if png.has_alpha and not self._looks_like_photo(png, size):
                return HeroValidation(False, "transparent_png_likely_logo", url)

        return HeroValidation(True, "ok", url)

    @staticmethod
    def _looks_like_photo(png: PngInfo, size: int) -> bool:
        if size >= TRANSPARENT_PHOTO_BYTES:
            return True
        aspect = png.width / png.height if png.height else 0
        return aspect >= WIDE_ASPECT_RATIO and size >= WIDE_TRANSPARENT_PHOTO_BYTES

    async def _first_valid_hero(self, candidates: list[ImageCandidate]) -> ImageCandidate | None:
        for candidate in candidates[:REPAIR_CANDIDATES_TRIED]:
            result = await self.validate_hero_image(candidate.image_url)
            if result.is_valid:
                return ImageCandidate(result.url, candidate.source_url, candidate.alt_text)
        return None

    async def repair_hero_image(self, community: Community) -> tuple[str, str]:
        """Replace a broken hero image; the first working option wins.

        Returns ``(action, new_url)`` where action is one of ``https_upgrade``,
        ``site_image``, ``web_image`` or ``local_fallback``.
        """
        hero = community.hero_image_url
        if hero and hero.startswith("http://"):
            upgraded = "https://" + hero[len("http://"):]
            if await self.verify_image_url(upgraded):
                self.repo.set_hero_image(community.id, upgraded)
                return "https_upgrade", upgraded

        domain = extract_domain(community.website_url)
        if domain:
            found = await self._first_valid_hero(
                await self.search_images(f"{community.name} community", [domain])
            )
            if found:
                self.repo.set_hero_image(
                    community.id, found.image_url, alt_text=found.alt_text or None, source_url=found.source_url
                )
                return "site_image", found.image_url

        found = await self._first_valid_hero(
            await self.search_images(f'"{community.name}" ecovillage community photos')
        )
        if found:
            self.repo.set_hero_image(
                community.id, found.image_url, alt_text=found.alt_text or None, source_url=found.source_url
            )
            return "web_image", found.image_url

        fallback = LOCAL_FALLBACK_TEMPLATE.format(slug=community.slug)
        self.repo.set_hero_image(community.id, fallback)
        return "local_fallback", fallback

    async def audit_and_fix_hero_images(self) -> AuditReport:
        """Validate every community's hero image and repair the broken ones."""
        report = AuditReport()
        communities = self.repo.list_all()
        logger.info(f"[images] Auditing hero images for {len(communities)} communities...")

        for community in communities:
            report.checked += 1
            try:
                hero = community.hero_image_url
                if not hero:
                    issue = "missing_hero"
                else:
                    result = await self.validate_hero_image(hero)
                    if result.is_valid and result.url == hero:
                        report.valid += 1
                        continue
                    if result.is_valid:
                        self.repo.set_hero_image(community.id, result.url)
                        report.repaired += 1
                        report.entries.append(AuditEntry(
                            slug=community.slug,
                            name=community.name,
                            issue="insecure_http",
                            action="https_upgrade",
                            new_url=result.url,
                        ))
                        continue
                    issue = result.reason

                action, new_url = await self.repair_hero_image(community)
                if action == "local_fallback":
                    report.fallbacks += 1
                else:
                    report.repaired += 1
                report.entries.append(AuditEntry(
                    slug=community.slug,
                    name=community.name,
                    issue=issue,
                    action=action,
                    new_url=new_url,
                ))
                logger.info(f"  [images] {community.name}: {issue} -> {action}")
            except Exception as e:
                logger.error(f"[images] Hero audit failed for {community.name}: {e}")
                report.errors.append(f"Audit failed for {community.name}: {e}")

        logger.info(
            f"[images] Hero audit complete: {report.valid} valid, {report.repaired} repaired, "
            f"{report.fallbacks} fallbacks"
        )
        return report
