from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from common.utils import normalize_terms
from pydantic import BaseModel, ConfigDict, Field, field_validator

SOURCE_REMOTIVE = "remotive"
SOURCE_JOBICY = "jobicy"
SOURCE_ARBEITNOW = "arbeitnow"
SOURCE_REDDIT = "reddit"
SOURCE_HACKERNEWS = "hackernews"
ALL_SOURCES = (
    SOURCE_REMOTIVE,
    SOURCE_JOBICY,
    SOURCE_ARBEITNOW,
    SOURCE_REDDIT,
    SOURCE_HACKERNEWS,
)

FRESHNESS_PRESETS: dict[str, int | None] = {
    "24h": 24,
    "3d": 72,
    "7d": 168,
    "30d": 720,
    "all": None,
}

MATCH_STATUSES = ("new", "saved", "dismissed", "added_to_crm")
MatchStatus = Literal["new", "saved", "dismissed", "added_to_crm"]


def validate_sources(sources: list[str]) -> list[str]:
    unknown = sorted({source for source in sources if source not in ALL_SOURCES})
    if unknown:
        raise ValueError(
            f"Unknown source(s): {', '.join(unknown)}. Valid values: {', '.join(ALL_SOURCES)}"
        )
    return [source for source in ALL_SOURCES if source in sources]


def validate_freshness(freshness: str) -> str:
    if freshness not in FRESHNESS_PRESETS:
        raise ValueError(
            f"Invalid freshness. Valid values: {', '.join(FRESHNESS_PRESETS)}"
        )
    return freshness


def require_keywords(keywords: list[str]) -> list[str]:
    normalized = normalize_terms(keywords)
    if not normalized:
        raise ValueError("At least one keyword is required")
    return normalized


class NormalizedListing(BaseModel):
    model_config = ConfigDict(frozen=True)

    external_id: str = Field(..., description="'<source>:<provider id>', stable across fetches")
    source: str
    title: str
    company: str | None = None
    description: str | None = None
    url: str
    contact_email: str | None = None
    location: str | None = None
    salary: str | None = None
    tags: list[str] = Field(default_factory=list)
    published_at: datetime

    @field_validator("published_at")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        # naive provider timestamps are treated as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class StoredListing(BaseModel):
    id: int
    external_id: str
    source: str
    title: str
    company: str | None = None
    description: str | None = None
    url: str
    contact_email: str | None = None
    location: str | None = None
    salary: str | None = None
    tags: list[str]
    published_at: str
    created_at: str


class AlertCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    keywords: list[str] = Field(..., min_length=1)
    exclude_keywords: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)
    max_per_day: int = Field(default=5, ge=1, le=50)
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("Alert name is required")
        return name

    @field_validator("keywords")
    @classmethod
    def normalize_keywords(cls, value: list[str]) -> list[str]:
        return require_keywords(value)

    @field_validator("exclude_keywords")
    @classmethod
    def normalize_exclude_keywords(cls, value: list[str]) -> list[str]:
        return normalize_terms(value)

    @field_validator("sources")
    @classmethod
    def check_sources(cls, value: list[str]) -> list[str]:
        return validate_sources(value)


class AlertUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    keywords: list[str] | None = None
    exclude_keywords: list[str] | None = None
    sources: list[str] | None = None
    max_per_day: int | None = Field(default=None, ge=1, le=50)
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        name = value.strip()
        if not name:
            raise ValueError("Alert name cannot be blank")
        return name

    @field_validator("keywords")
    @classmethod
    def normalize_keywords(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else require_keywords(value)

    @field_validator("exclude_keywords")
    @classmethod
    def normalize_exclude_keywords(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else normalize_terms(value)

    @field_validator("sources")
    @classmethod
    def check_sources(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else validate_sources(value)


class JobAlert(BaseModel):
    alert_id: str
    user_id: str
    name: str
    keywords: list[str]
    exclude_keywords: list[str]
    sources: list[str]
    max_per_day: int
    is_active: bool
    last_fetch_at: str | None = None
    created_at: str
    updated_at: str
    match_count: int = 0

    def effective_sources(self) -> list[str]:
        """Empty source selection means every provider."""
        return list(self.sources) if self.sources else list(ALL_SOURCES)


class AlertMatch(BaseModel):
    match_id: str
    user_id: str
    alert_id: str
    job_listing_id: int
    status: MatchStatus
    created_at: str
    updated_at: str


class AlertMatchWithListing(AlertMatch):
    alert_name: str
    listing: StoredListing


class MatchStatusUpdateRequest(BaseModel):
    status: MatchStatus


class MatchListResponse(BaseModel):
    matches: list[AlertMatchWithListing]
    total: int
    page: int
    limit: int
    total_pages: int
    counts: dict[str, int]


class MatchedJobPreview(BaseModel):
    title: str
    company: str | None = None
    source: str
    url: str
    published_at: datetime


class AlertRunResult(BaseModel):
    alert_id: str
    alert_name: str
    keywords: list[str]
    sources: list[str]
    jobs_fetched: int
    jobs_matched: int
    matches_saved: int
    matched_jobs: list[MatchedJobPreview]


class FetchRunSummary(BaseModel):
    ran_at: str
    total_sources_fetched: list[str]
    total_jobs_fetched: int
    total_listings_saved: int
    alerts_processed: int
    alerts: list[AlertRunResult]


class SearchRequest(BaseModel):
    keywords: list[str] = Field(default_factory=list, validate_default=True)
    sources: list[str] = Field(default_factory=list)
    freshness: str | None = None
    exclude_keywords: list[str] = Field(default_factory=list)

    @field_validator("keywords")
    @classmethod
    def normalize_keywords(cls, value: list[str]) -> list[str]:
        return require_keywords(value)

    @field_validator("exclude_keywords")
    @classmethod
    def normalize_exclude_keywords(cls, value: list[str]) -> list[str]:
        return normalize_terms(value)

    @field_validator("sources")
    @classmethod
    def check_sources(cls, value: list[str]) -> list[str]:
        return validate_sources(value)

    @field_validator("freshness")
    @classmethod
    def check_freshness(cls, value: str | None) -> str | None:
        return None if value is None else validate_freshness(value)


class SearchResponse(BaseModel):
    results: list[NormalizedListing]
    total: int
    total_fetched: int
    freshness: str
    sources: list[str]
    keywords: list[str]
    cached: bool
