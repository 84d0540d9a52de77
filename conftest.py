from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta

import pytest
from common.utils import now_utc
from jobpulse.models import NormalizedListing
from jobpulse.sources import SourceFetcher


@pytest.fixture
def make_listing() -> Callable[..., NormalizedListing]:
    def factory(
        source: str = "remotive",
        native_id: str = "1",
        *,
        title: str = "Backend Engineer",
        description: str | None = None,
        company: str | None = "Acme Labs",
        tags: list[str] | None = None,
        age_hours: float = 1.0,
    ) -> NormalizedListing:
        return NormalizedListing(
            external_id=f"{source}:{native_id}",
            source=source,
            title=title,
            company=company,
            description=description,
            url=f"https://jobs.example.com/{source}/{native_id}",
            tags=list(tags or []),
            published_at=now_utc() - timedelta(hours=age_hours),
        )

    return factory


@pytest.fixture
def static_fetcher() -> Callable[..., SourceFetcher]:
    """Build a source fetcher that returns fixed listings and counts its calls."""

    def factory(listings: list[NormalizedListing], calls: list[int] | None = None) -> SourceFetcher:
        async def fetch(client) -> list[NormalizedListing]:
            del client
            if calls is not None:
                calls.append(1)
            return list(listings)

        return fetch

    return factory


@pytest.fixture
def failing_fetcher() -> SourceFetcher:
    async def fetch(client) -> list[NormalizedListing]:
        del client
        raise RuntimeError("provider exploded")

    return fetch
