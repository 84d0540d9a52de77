"""Jobicy remote-jobs feed. Free, but meant for a few calls per day."""
from __future__ import annotations

from typing import Any

import httpx

from jobpulse.models import SOURCE_JOBICY, NormalizedListing
from jobpulse.sources.fetching import get_json, map_items
from jobpulse.text import (
    cap_description,
    compact_tags,
    extract_email,
    normalize_whitespace,
    parse_timestamp,
    strip_markup,
)

API_URL = "https://jobicy.com/api/v2/remote-jobs"
REQUEST_TIMEOUT = 15.0
PAGE_COUNT = 50


def format_salary(item: dict[str, Any]) -> str | None:
    minimum = item.get("salaryMin") or item.get("annualSalaryMin")
    maximum = item.get("salaryMax") or item.get("annualSalaryMax")
    currency = item.get("salaryCurrency")
    if minimum and maximum and currency:
        return f"{minimum}-{maximum} {currency}"
    return None


def to_listing(item: dict[str, Any]) -> NormalizedListing | None:
    raw_id = item.get("id")
    title = normalize_whitespace(strip_markup(str(item.get("jobTitle") or "")))
    url = str(item.get("url") or "").strip()
    published_at = parse_timestamp(item.get("pubDate"))
    if raw_id is None or not title or not url or published_at is None:
        return None

    raw_description = str(item.get("jobDescription") or item.get("jobExcerpt") or "")
    return NormalizedListing(
        external_id=f"{SOURCE_JOBICY}:{raw_id}",
        source=SOURCE_JOBICY,
        title=title,
        company=normalize_whitespace(str(item.get("companyName") or "")) or None,
        description=cap_description(strip_markup(raw_description)),
        url=url,
        contact_email=extract_email(str(item.get("jobDescription") or "")),
        location=normalize_whitespace(str(item.get("jobGeo") or "")) or None,
        salary=format_salary(item),
        tags=compact_tags(
            item.get("jobIndustry") or [],
            item.get("jobType") or [],
            item.get("jobLevel"),
        ),
        published_at=published_at,
    )


async def fetch_jobicy_jobs(client: httpx.AsyncClient) -> list[NormalizedListing]:
    payload = await get_json(
        client,
        API_URL,
        source=SOURCE_JOBICY,
        params={"count": PAGE_COUNT},
        timeout=REQUEST_TIMEOUT,
    )
    if not isinstance(payload, dict):
        return []
    return map_items(payload.get("jobs"), to_listing)
