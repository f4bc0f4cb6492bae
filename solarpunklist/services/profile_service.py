"""Profile synthesis: turns search results into structured community profiles.

The language model receives a bounded research context and answers with a
JSON document. Documents are validated into pydantic models and rejected as a
whole when anything is malformed, so callers only ever see complete profiles
or ``None``.
"""

import logging
from datetime import datetime, timezone

from pydantic import ValidationError

from solarpunklist.models import (
    SCORE_WEIGHTS,
    CandidateCommunity,
    CommunityCreate,
    GeneratedProfile,
    PageClassification,
    RefreshDiff,
)
from solarpunklist.services.identity import slugify
from solarpunklist.services.openrouter_service import (
    OpenRouterService,
    extract_json_array,
    extract_json_object,
    get_openrouter_service,
    sanitize_prompt_input,
)
from solarpunklist.services.search_service import SearchDocument

logger = logging.getLogger(__name__)

# Per-document body limits keep prompts within a predictable token budget
PROFILE_DOC_CHARS = 3000
EXTRACTION_DOC_CHARS = 1500
REFRESH_DOC_CHARS = 3000

# Research context shorter than this is not worth a profile call
MIN_RESEARCH_CONTEXT_CHARS = 100

MAX_CANDIDATES_PER_RUN = 5

PROFILE_MAX_TOKENS = 8192
EXTRACTION_MAX_TOKENS = 4096
REFRESH_MAX_TOKENS = 4096
CLASSIFY_MAX_TOKENS = 1024


def compute_solarpunk_score(scores: dict[str, float]) -> float:
    """Weighted 0-100 score from the six 0-10 sub-scores.

    ``(energy*20 + land*20 + tech*20 + governance*15 + community*15 + circularity*10) / 10``
    """
    return sum(scores[dim] * weight for dim, weight in SCORE_WEIGHTS.items()) / 10


def build_research_context(documents: list[SearchDocument], max_chars_per_doc: int) -> str:
    """Render search documents as one prompt section."""
    return "\n\n---\n\n".join(
        f"Title: {doc.title}\nURL: {doc.url}\nContent: {(doc.text or '')[:max_chars_per_doc]}"
        for doc in documents
    )


def build_community_create(
    profile: GeneratedProfile,
    *,
    source: str,
    sources_count: int,
    website_url: str | None = None,
    now: datetime | None = None,
) -> CommunityCreate:
    """Map a validated profile onto the fields persisted for a new community."""
    now = now or datetime.now(timezone.utc)
    scores = profile.scores.as_values()
    return CommunityCreate(
        name=profile.name,
        slug=slugify(profile.name),
        tagline=profile.tagline,
        overview=profile.overview,
        location_country=profile.location_country,
        location_region=profile.location_region,
        location_lat=profile.location_lat,
        location_lng=profile.location_lng,
        stage=profile.stage,
        population=profile.population,
        founded_year=profile.founded_year,
        website_url=profile.website_url or website_url,
        solarpunk_score=compute_solarpunk_score(scores),
        score_energy=scores["energy"],
        score_land=scores["land"],
        score_tech=scores["tech"],
        score_governance=scores["governance"],
        score_community=scores["community"],
        score_circularity=scores["circularity"],
        tech_stack=profile.tech_stack,
        community_life=profile.community_life,
        how_to_join=profile.how_to_join,
        land_description=profile.land_description,
        ai_confidence=profile.ai_confidence,
        sources_count=sources_count,
        source=source,
        is_published=True,
        is_forming_disclaimer=profile.is_forming_disclaimer,
        last_researched_at=now,
        last_refreshed_at=now,
    )


class ProfileService:
    """Language-model backed research steps used by the pipelines."""

    def __init__(self, llm: OpenRouterService | None = None) -> None:
        self.llm = llm or get_openrouter_service()

    async def extract_candidates(
        self,
        documents: list[SearchDocument],
        existing_names: list[str],
    ) -> list[CandidateCommunity]:
        """Pull the names of specific communities out of search results.

        Known communities are listed in the prompt so the model skips them;
        the caller still dedupes. At most MAX_CANDIDATES_PER_RUN are returned.
        """
        if not documents:
            return []

        prompt = self._build_extraction_prompt(
            build_research_context(documents, EXTRACTION_DOC_CHARS),
            existing_names,
        )
        text = await self.llm.complete(prompt, max_tokens=EXTRACTION_MAX_TOKENS)
        items = extract_json_array(text)
        if not items:
            return []

        candidates: list[CandidateCommunity] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                candidates.append(CandidateCommunity.model_validate(item))
            except ValidationError as e:
                logger.debug(f"Dropped malformed candidate {item!r}: {e}")
            if len(candidates) >= MAX_CANDIDATES_PER_RUN:
                break
        return candidates

    async def generate_profile(
        self,
        name: str,
        documents: list[SearchDocument],
    ) -> GeneratedProfile | None:
        """Research a community into a full profile.

        Returns None when research is too thin, the model is unavailable, or
        its answer does not validate.
        """
        context = build_research_context(documents, PROFILE_DOC_CHARS)
        if len(context) < MIN_RESEARCH_CONTEXT_CHARS:
            logger.info(f"  Skipping {name} - insufficient research data")
            return None

        text = await self.llm.complete(
            self._build_profile_prompt(name, context),
            max_tokens=PROFILE_MAX_TOKENS,
        )
        data = extract_json_object(text)
        if data is None:
            return None

        try:
            return GeneratedProfile.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Rejected generated profile for {name}: {e.error_count()} invalid field(s)")
            return None

    async def generate_refresh_diff(
        self,
        name: str,
        existing_overview: str | None,
        documents: list[SearchDocument],
    ) -> RefreshDiff | None:
        """Ask what changed for an existing community given fresh research."""
        text = await self.llm.complete(
            self._build_refresh_prompt(
                name,
                existing_overview,
                build_research_context(documents, REFRESH_DOC_CHARS),
            ),
            max_tokens=REFRESH_MAX_TOKENS,
        )
        data = extract_json_object(text)
        if data is None:
            return None

        try:
            return RefreshDiff.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Rejected refresh diff for {name}: {e.error_count()} invalid field(s)")
            return None

    async def classify_page(self, title: str, url: str, content: str) -> PageClassification | None:
        """Decide whether a submitted page describes a community, and name it."""
        text = await self.llm.complete(
            self._build_classification_prompt(title, url, content),
            max_tokens=CLASSIFY_MAX_TOKENS,
        )
        data = extract_json_object(text)
        if data is None:
            return None

        try:
            return PageClassification.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Rejected page classification for {url}: {e}")
            return None

    def _build_extraction_prompt(self, context: str, existing_names: list[str]) -> str:
        existing = "\n".join(f"- {n}" for n in existing_names) or "- (none yet)"
        return f'''You are a researcher finding intentional communities, ecovillages, and regenerative land projects. Analyze the following web search results and extract the names of SPECIFIC, REAL communities or projects mentioned.

IMPORTANT: These communities ALREADY EXIST in our database, so DO NOT include them:
{existing}

SEARCH RESULTS:
{context}

Return a JSON array of NEW communities NOT in the list above. Each entry should have:
- "name": the official/common name of the community
- "sources": array of URLs where this community was mentioned

Rules:
- Only include real, specific communities with a physical location
- Do NOT include organizations, networks, or umbrella groups (e.g., "Global Ecovillage Network" is not a community)
- Do NOT include any community already in the existing list above
- Do NOT fabricate communities - they must be explicitly mentioned in the search results
- Include at most {MAX_CANDIDATES_PER_RUN} communities to keep quality high

Return ONLY a valid JSON array like: [{{"name": "Community Name", "sources": ["url1"]}}]
If no new communities are found, return: []'''

    def _build_profile_prompt(self, name: str, context: str) -> str:
        safe_name = sanitize_prompt_input(name, max_length=200)
        return f'''You are a researcher specializing in intentional communities, ecovillages, and regenerative land projects. Based on the following research about "{safe_name}", generate a comprehensive community profile.

RESEARCH CONTEXT:
{context}

Generate a JSON object with these fields:
{{
  "name": "Official community name",
  "tagline": "One compelling sentence describing the community",
  "overview": "2-3 paragraphs, editorial tone describing the community",
  "stage": "forming|established|mature",
  "founded_year": number or null,
  "population": number or null,
  "location_country": "Country name",
  "location_region": "State/Province/Region",
  "location_lat": number or null,
  "location_lng": number or null,
  "website_url": "primary website URL or null",
  "scores": {{
    "energy": {{ "score": 0-10, "reasoning": "brief explanation" }},
    "land": {{ "score": 0-10, "reasoning": "brief explanation" }},
    "tech": {{ "score": 0-10, "reasoning": "brief explanation" }},
    "governance": {{ "score": 0-10, "reasoning": "brief explanation" }},
    "community": {{ "score": 0-10, "reasoning": "brief explanation" }},
    "circularity": {{ "score": 0-10, "reasoning": "brief explanation" }}
  }},
  "tech_stack": {{
    "energy": ["list of energy technologies"],
    "water": ["list of water technologies"],
    "food": ["list of food technologies"],
    "shelter": ["list of shelter technologies"],
    "digital": ["list of digital technologies"],
    "governance": ["list of governance tools"]
  }},
  "land_description": "Description of the land and terrain",
  "community_life": "Description of daily life and culture",
  "how_to_join": "How to visit or join the community",
  "tags": ["tag1", "tag2"],
  "ai_confidence": 0.0-1.0,
  "is_forming_disclaimer": true/false
}}

IMPORTANT:
- Cite evidence for every score
- Default to lower scores when information is sparse
- Never fabricate details
- Flag when information is uncertain
- Set ai_confidence based on how much verifiable information you found
- Return ONLY valid JSON, no markdown wrapping'''

    def _build_refresh_prompt(self, name: str, existing_overview: str | None, context: str) -> str:
        safe_name = sanitize_prompt_input(name, max_length=200)
        return f'''You are a researcher tracking intentional communities and ecovillages. Given the existing profile of "{safe_name}" and new research, determine what has changed and provide an updated profile.

EXISTING OVERVIEW:
{existing_overview or "No existing overview."}

NEW RESEARCH:
{context}

Return a JSON object with ONLY the fields that should be updated:
{{
  "overview": "updated overview if changed, or null",
  "stage": "forming|established|mature|dormant or null if unchanged",
  "population": number or null if unchanged,
  "community_life": "updated text or null",
  "how_to_join": "updated text or null",
  "new_tags": ["any new tags to add"] or [],
  "status_change": "description of what changed" or null,
  "is_dormant": true/false,
  "confidence_adjustment": 0.0-1.0
}}

If nothing meaningful has changed, return {{"status_change": null, "confidence_adjustment": null}}.
Return ONLY valid JSON.'''

    def _build_classification_prompt(self, title: str, url: str, content: str) -> str:
        page = sanitize_prompt_input(
            f"Title: {title}\nURL: {url}\nContent: {content}",
            max_length=6000,
        )
        return f'''Analyze this web page and determine if it represents an intentional community, ecovillage, regenerative land project, or similar solarpunk community.

PAGE CONTENT:
{page}

If this IS a community/project, return a JSON object: {{"name": "Community Name", "is_community": true}}
If this is NOT a community/project, return: {{"name": "", "is_community": false, "reason": "brief reason"}}

Return ONLY valid JSON.'''
