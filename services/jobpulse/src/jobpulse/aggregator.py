from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime, timedelta

import httpx
from common.utils import now_utc

from jobpulse.models import NormalizedListing
from jobpulse.sources import SourceFetcher, default_fetchers

LOGGER = logging.getLogger("jobpulse.aggregator")
DEFAULT_TIMEOUT = httpx.Timeout(15.0)


def filter_fresh(
    listings: Iterable[NormalizedListing],
    *,
    now: datetime,
    freshness_hours: int | None,
) -> list[NormalizedListing]:
    if freshness_hours is None:
        return list(listings)
    cutoff = now - timedelta(hours=freshness_hours)
    return [listing for listing in listings if listing.published_at >= cutoff]


def keep_newest(listings: list[NormalizedListing], cap: int | None) -> list[NormalizedListing]:
    ordered = sorted(listings, key=lambda listing: listing.published_at, reverse=True)
    if cap is None:
        return ordered
    return ordered[:cap]


class JobAggregator:
    """Fans out to the source adapters and merges their fresh, capped output."""

    def __init__(
        self,
        fetchers: dict[str, SourceFetcher] | None = None,
        *,
        user_agent: str = "Mozilla/5.0 (compatible; JobPulseBot/1.0)",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.fetchers = dict(fetchers) if fetchers is not None else default_fetchers()
        self._user_agent = user_agent
        self._transport = transport

    @property
    def known_sources(self) -> list[str]:
        return list(self.fetchers)

    def resolve_sources(self, sources: Iterable[str] | None) -> list[str]:
        requested = list(sources) if sources else self.known_sources
        return [source for source in dict.fromkeys(requested) if source in self.fetchers]

    async def fetch_all(
        self,
        sources: Iterable[str] | None = None,
        *,
        freshness_hours: int | None = 24,
        per_source_cap: int | None = 2,
        now: datetime | None = None,
    ) -> list[NormalizedListing]:
        active = self.resolve_sources(sources)
        reference = now or now_utc()
        LOGGER.info("Fetching from %d sources: %s", len(active), ", ".join(active))
        if not active:
            return []

        async with httpx.AsyncClient(
            timeout=DEFAULT_TIMEOUT,
            headers={"User-Agent": self._user_agent, "Accept": "application/json"},
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            # settle-all: one failing source must not cancel the others
            results = await asyncio.gather(
                *(self.fetchers[source](client) for source in active),
                return_exceptions=True,
            )

        merged: list[NormalizedListing] = []
        seen_ids: set[str] = set()
        for source, result in zip(active, results):
            if isinstance(result, BaseException):
                LOGGER.error("[%s] source failed: %s", source, result)
                continue

            try:
                fresh = filter_fresh(result, now=reference, freshness_hours=freshness_hours)
                kept = keep_newest(fresh, per_source_cap)
            except (TypeError, AttributeError) as exc:
                LOGGER.error("[%s] malformed listings: %s", source, exc)
                continue
            LOGGER.info(
                "[%s] %d fetched -> %d fresh -> %d kept (max %s)",
                source,
                len(result),
                len(fresh),
                len(kept),
                per_source_cap if per_source_cap is not None else "unbounded",
            )
            for listing in kept:
                if listing.external_id in seen_ids:
                    continue
                seen_ids.add(listing.external_id)
                merged.append(listing)

        LOGGER.info("Total: %d fresh unique listings from %d sources", len(merged), len(active))
        return merged
