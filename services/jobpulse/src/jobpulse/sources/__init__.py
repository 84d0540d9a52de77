from __future__ import annotations

from jobpulse.models import (
    SOURCE_ARBEITNOW,
    SOURCE_HACKERNEWS,
    SOURCE_JOBICY,
    SOURCE_REDDIT,
    SOURCE_REMOTIVE,
)
from jobpulse.sources.arbeitnow import fetch_arbeitnow_jobs
from jobpulse.sources.fetching import SourceFetcher
from jobpulse.sources.hackernews import fetch_hackernews_jobs
from jobpulse.sources.jobicy import fetch_jobicy_jobs
from jobpulse.sources.reddit import fetch_reddit_jobs
from jobpulse.sources.remotive import fetch_remotive_jobs

__all__ = ["SOURCE_FETCHERS", "SourceFetcher", "default_fetchers"]

SOURCE_FETCHERS: dict[str, SourceFetcher] = {
    SOURCE_REMOTIVE: fetch_remotive_jobs,
    SOURCE_JOBICY: fetch_jobicy_jobs,
    SOURCE_ARBEITNOW: fetch_arbeitnow_jobs,
    SOURCE_REDDIT: fetch_reddit_jobs,
    SOURCE_HACKERNEWS: fetch_hackernews_jobs,
}


def default_fetchers() -> dict[str, SourceFetcher]:
    return dict(SOURCE_FETCHERS)
