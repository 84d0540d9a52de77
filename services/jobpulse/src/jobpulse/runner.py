"""Fetch, persist and match pipeline for a user's alerts.

Used by the manual trigger endpoint and by any time-based caller. Listings are
fetched once for the union of sources the alerts need, stored on first sighting,
then matched per alert. A match row is unique per user and listing, so the
first alert to claim a listing owns it.
"""
from __future__ import annotations

import logging
import sqlite3

from common.utils import now_utc_iso
from fastapi.concurrency import run_in_threadpool

from jobpulse.aggregator import JobAggregator
from jobpulse.matcher import match_listings
from jobpulse.models import (
    AlertRunResult,
    FetchRunSummary,
    JobAlert,
    MatchedJobPreview,
    NormalizedListing,
)
from jobpulse.repository import JobPulseRepository
from jobpulse.settings import PipelineSettings

LOGGER = logging.getLogger("jobpulse.runner")
MAX_PREVIEW_JOBS = 10


class NoActiveAlertsError(ValueError):
    pass


def needed_sources(alerts: list[JobAlert]) -> list[str]:
    sources: dict[str, None] = {}
    for alert in alerts:
        for source in alert.effective_sources():
            sources.setdefault(source, None)
    return list(sources)


async def persist_listings(
    repository: JobPulseRepository,
    listings: list[NormalizedListing],
) -> int:
    created = 0
    for listing in listings:
        try:
            if await run_in_threadpool(repository.insert_listing_if_absent, listing):
                created += 1
        except sqlite3.Error as exc:
            LOGGER.debug("Skipping listing %s: %s", listing.external_id, exc)
    return created


async def match_and_save_for_alert(
    repository: JobPulseRepository,
    alert: JobAlert,
    listings: list[NormalizedListing],
    user_id: str,
    *,
    diversity_cap: int,
) -> AlertRunResult:
    sources_for_alert = alert.effective_sources()
    candidates = [listing for listing in listings if listing.source in sources_for_alert]
    matched = match_listings(
        candidates,
        alert.keywords,
        alert.exclude_keywords,
        alert.max_per_day,
        diversity_cap=diversity_cap,
    )

    saved = 0
    for listing in matched:
        try:
            listing_id = await run_in_threadpool(repository.get_listing_id, listing.external_id)
            if listing_id is None:
                continue
            if await run_in_threadpool(
                repository.insert_match_if_absent,
                user_id,
                alert.alert_id,
                listing_id,
            ):
                saved += 1
        except sqlite3.Error as exc:
            LOGGER.debug("Skipping match %s for alert %s: %s", listing.external_id, alert.alert_id, exc)

    try:
        await run_in_threadpool(repository.touch_alert_last_fetch, alert.alert_id, now_utc_iso())
    except sqlite3.Error as exc:
        LOGGER.warning("Could not record last fetch for alert %s: %s", alert.alert_id, exc)
    LOGGER.info(
        "Alert %r: %d candidates -> %d matched -> %d new matches",
        alert.name,
        len(candidates),
        len(matched),
        saved,
    )
    return AlertRunResult(
        alert_id=alert.alert_id,
        alert_name=alert.name,
        keywords=alert.keywords,
        sources=sources_for_alert,
        jobs_fetched=len(candidates),
        jobs_matched=len(matched),
        matches_saved=saved,
        matched_jobs=[
            MatchedJobPreview(
                title=listing.title,
                company=listing.company,
                source=listing.source,
                url=listing.url,
                published_at=listing.published_at,
            )
            for listing in matched[:MAX_PREVIEW_JOBS]
        ],
    )


async def run_fetch_for_alerts(
    repository: JobPulseRepository,
    aggregator: JobAggregator,
    alerts: list[JobAlert],
    user_id: str,
    *,
    settings: PipelineSettings | None = None,
) -> FetchRunSummary:
    if not alerts:
        raise NoActiveAlertsError(
            "No active job alerts found. Create and activate at least one alert first."
        )
    resolved = settings or PipelineSettings()

    sources = needed_sources(alerts)
    listings = await aggregator.fetch_all(
        sources,
        freshness_hours=resolved.freshness_hours,
        per_source_cap=resolved.per_source_cap,
    )
    listings_saved = await persist_listings(repository, listings)

    results: list[AlertRunResult] = []
    for alert in alerts:
        results.append(
            await match_and_save_for_alert(
                repository,
                alert,
                listings,
                user_id,
                diversity_cap=resolved.diversity_cap,
            )
        )

    LOGGER.info(
        "Run for user %s: sources=%d fetched=%d new_listings=%d alerts=%d",
        user_id,
        len(sources),
        len(listings),
        listings_saved,
        len(alerts),
    )
    return FetchRunSummary(
        ran_at=now_utc_iso(),
        total_sources_fetched=sources,
        total_jobs_fetched=len(listings),
        total_listings_saved=listings_saved,
        alerts_processed=len(alerts),
        alerts=results,
    )
