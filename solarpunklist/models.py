"""Pydantic models for the SolarpunkList community directory.

API-facing models serialise with camelCase aliases. The ``Generated*`` and
``RefreshDiff`` models describe the JSON documents the language model returns
and are used to validate those documents before anything is persisted.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase."""
    components = string.split("_")
    return components[0] + "".join(word.capitalize() for word in components[1:])


CAMEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    serialize_by_alias=True,
)

Stage = Literal["forming", "established", "mature", "dormant"]
STAGES: tuple[str, ...] = ("forming", "established", "mature", "dormant")

# Weights of the six sub-scores in the 0-100 solarpunk score (sum to 100).
SCORE_WEIGHTS: dict[str, int] = {
    "energy": 20,
    "land": 20,
    "tech": 20,
    "governance": 15,
    "community": 15,
    "circularity": 10,
}

TECH_STACK_CATEGORIES: tuple[str, ...] = (
    "energy",
    "water",
    "food",
    "shelter",
    "digital",
    "governance",
)


# String placeholders the model uses for "no value"
_NULL_STRINGS = {"", "null", "none", "unknown", "n/a", "unchanged"}


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip().lower() in _NULL_STRINGS:
        return None
    return value


def _normalize_stage(value: Any) -> Any:
    value = _blank_to_none(value)
    if isinstance(value, str):
        return value.strip().lower()
    return value


# =============================================================================
# Stored entities
# =============================================================================


class CommunityTag(BaseModel):
    model_config = CAMEL_CONFIG

    id: str
    community_id: str
    tag: str


class CommunityLink(BaseModel):
    model_config = CAMEL_CONFIG

    id: str
    community_id: str
    url: str
    title: str | None = None
    type: str | None = None


class CommunityImage(BaseModel):
    model_config = CAMEL_CONFIG

    id: str
    community_id: str
    image_url: str
    alt_text: str | None = None
    source_url: str | None = None
    is_hero: bool = False
    sort_order: int = 0
    created_at: datetime | None = None


class Community(BaseModel):
    """A researched community as stored in the directory.

    ``slug`` is derived from ``name`` at creation and never changes.
    ``last_researched_at`` is set once; ``last_refreshed_at`` moves forward on
    every refresh pass whether or not anything changed.
    """

    model_config = CAMEL_CONFIG

    id: str
    name: str
    slug: str
    tagline: str | None = None
    overview: str | None = None
    location_country: str | None = None
    location_region: str | None = None
    location_lat: float | None = None
    location_lng: float | None = None
    stage: str | None = None
    population: int | None = None
    founded_year: int | None = None
    website_url: str | None = None
    hero_image_url: str | None = None

    solarpunk_score: float | None = None
    score_energy: float | None = None
    score_land: float | None = None
    score_tech: float | None = None
    score_governance: float | None = None
    score_community: float | None = None
    score_circularity: float | None = None

    tech_stack: dict[str, list[str]] | None = None
    community_life: str | None = None
    how_to_join: str | None = None
    land_description: str | None = None

    ai_confidence: float | None = None
    sources_count: int = 0
    source: str = "discovery"
    last_researched_at: datetime | None = None
    last_refreshed_at: datetime | None = None
    refresh_count: int = 0
    is_published: bool = False
    is_forming_disclaimer: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    tags: list[CommunityTag] = Field(default_factory=list)
    links: list[CommunityLink] = Field(default_factory=list)
    images: list[CommunityImage] = Field(default_factory=list)


class CommunityCreate(BaseModel):
    """Fields accepted when a community is first persisted."""

    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    tagline: str | None = None
    overview: str | None = None
    location_country: str | None = None
    location_region: str | None = None
    location_lat: float | None = None
    location_lng: float | None = None
    stage: str | None = None
    population: int | None = None
    founded_year: int | None = None
    website_url: str | None = None
    hero_image_url: str | None = None
    solarpunk_score: float | None = None
    score_energy: float | None = None
    score_land: float | None = None
    score_tech: float | None = None
    score_governance: float | None = None
    score_community: float | None = None
    score_circularity: float | None = None
    tech_stack: dict[str, list[str]] | None = None
    community_life: str | None = None
    how_to_join: str | None = None
    land_description: str | None = None
    ai_confidence: float | None = None
    sources_count: int = 0
    source: Literal["discovery", "submission"] = "discovery"
    is_published: bool = False
    is_forming_disclaimer: bool = False
    last_researched_at: datetime | None = None
    last_refreshed_at: datetime | None = None


class CommunityUpdate(BaseModel):
    """Partial update. Only fields explicitly set are written.

    ``name`` and ``slug`` are deliberately absent: identity is immutable.
    """

    tagline: str | None = None
    overview: str | None = None
    stage: str | None = None
    population: int | None = None
    community_life: str | None = None
    how_to_join: str | None = None
    hero_image_url: str | None = None
    ai_confidence: float | None = None
    is_published: bool | None = None
    last_refreshed_at: datetime | None = None
    refresh_count: int | None = None


class ImageCreate(BaseModel):
    image_url: str
    alt_text: str | None = None
    source_url: str | None = None
    is_hero: bool = False
    sort_order: int = 0


class LinkCreate(BaseModel):
    url: str
    title: str | None = None
    type: str | None = None


# =============================================================================
# Language model documents
# =============================================================================


class DimensionScore(BaseModel):
    """One of the six 0-10 sub-scores with the model's justification."""

    score: float = Field(..., ge=0, le=10)
    reasoning: str | None = None

    @model_validator(mode="before")
    @classmethod
    def accept_bare_number(cls, data: Any) -> Any:
        if isinstance(data, (int, float)) and not isinstance(data, bool):
            return {"score": data}
        return data


class ProfileScores(BaseModel):
    energy: DimensionScore
    land: DimensionScore
    tech: DimensionScore
    governance: DimensionScore
    community: DimensionScore
    circularity: DimensionScore

    def as_values(self) -> dict[str, float]:
        return {dim: getattr(self, dim).score for dim in SCORE_WEIGHTS}


class GeneratedProfile(BaseModel):
    """Community profile produced by the synthesis prompt.

    Validation is strict: any malformed field rejects the whole document so a
    partial record is never persisted.
    """

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, max_length=300)
    tagline: str | None = None
    overview: str | None = None
    stage: Stage | None = None
    founded_year: int | None = Field(default=None, ge=1800, le=2100)
    population: int | None = Field(default=None, ge=0)
    location_country: str | None = None
    location_region: str | None = None
    location_lat: float | None = Field(default=None, ge=-90, le=90)
    location_lng: float | None = Field(default=None, ge=-180, le=180)
    website_url: str | None = None
    scores: ProfileScores
    tech_stack: dict[str, list[str]] | None = None
    land_description: str | None = None
    community_life: str | None = None
    how_to_join: str | None = None
    tags: list[str] = Field(default_factory=list)
    ai_confidence: float = Field(default=0.0, ge=0, le=1)
    is_forming_disclaimer: bool = False

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("stage", mode="before")
    @classmethod
    def normalize_stage(cls, v: Any) -> Any:
        return _normalize_stage(v)

    @field_validator(
        "founded_year", "population", "location_lat", "location_lng", "website_url",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return [t.strip() for t in v if isinstance(t, str) and t.strip()]
        return v

    @field_validator("is_forming_disclaimer", mode="before")
    @classmethod
    def none_is_false(cls, v: Any) -> Any:
        return False if v is None else v


class RefreshDiff(BaseModel):
    """Sparse patch produced by the refresh prompt; ``None`` means unchanged."""

    model_config = ConfigDict(extra="ignore")

    overview: str | None = None
    stage: Stage | None = None
    population: int | None = Field(default=None, ge=0)
    community_life: str | None = None
    how_to_join: str | None = None
    new_tags: list[str] = Field(default_factory=list)
    status_change: str | None = None
    is_dormant: bool = False
    confidence_adjustment: float | None = Field(default=None, ge=0, le=1)

    @field_validator("stage", mode="before")
    @classmethod
    def normalize_stage(cls, v: Any) -> Any:
        return _normalize_stage(v)

    @field_validator("population", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("new_tags", mode="before")
    @classmethod
    def clean_tags(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return [t.strip() for t in v if isinstance(t, str) and t.strip()]
        return v

    @field_validator("is_dormant", mode="before")
    @classmethod
    def none_is_false(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("status_change", mode="before")
    @classmethod
    def blank_status_is_none(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return v.strip() if isinstance(v, str) else v


class CandidateCommunity(BaseModel):
    """A community name pulled out of discovery search results."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, max_length=300)
    sources: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("sources", mode="before")
    @classmethod
    def clean_sources(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return [s for s in v if isinstance(s, str) and s]
        return v


class PageClassification(BaseModel):
    """Verdict on whether a submitted page describes a community."""

    model_config = ConfigDict(extra="ignore")

    is_community: bool = False
    name: str = ""
    reason: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def none_is_blank(cls, v: Any) -> Any:
        return "" if v is None else v


# =============================================================================
# Run results
# =============================================================================


class DiscoverySummary(BaseModel):
    model_config = CAMEL_CONFIG

    queries_executed: int = 0
    results_found: int = 0
    duplicates_skipped: int = 0
    new_communities_added: int = 0
    errors: list[str] = Field(default_factory=list)


class RefreshSummary(BaseModel):
    model_config = CAMEL_CONFIG

    communities_checked: int = 0
    content_changes_detected: int = 0
    stage_changes: int = 0
    dormant_flagged: int = 0
    errors: list[str] = Field(default_factory=list)


class SubmissionResult(BaseModel):
    model_config = CAMEL_CONFIG

    slug: str
    name: str


class AuditEntry(BaseModel):
    """What the hero audit found for one community and what it did about it."""

    model_config = CAMEL_CONFIG

    slug: str
    name: str
    issue: str
    action: str
    new_url: str | None = None


class AuditReport(BaseModel):
    model_config = CAMEL_CONFIG

    checked: int = 0
    valid: int = 0
    repaired: int = 0
    fallbacks: int = 0
    entries: list[AuditEntry] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class BackfillReport(BaseModel):
    model_config = CAMEL_CONFIG

    communities_processed: int = 0
    total_images_added: int = 0
    errors: list[str] = Field(default_factory=list)


class NotificationResult(BaseModel):
    model_config = CAMEL_CONFIG

    sent: int = 0
    failed: int = 0


class VisitStats(BaseModel):
    model_config = CAMEL_CONFIG

    total_visits: int = 0
    monthly_average: int = 0
