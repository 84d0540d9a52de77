"""Arbeitnow job board (Europe and remote roles).

Docs: https://www.arbeitnow.com/api/job-board-api
"""
from __future__ import annotations

from typing import Any

import httpx

from jobpulse.models import SOURCE_ARBEITNOW, NormalizedListing
from jobpulse.sources.fetching import get_json, map_items
from jobpulse.text import (
    cap_description,
    compact_tags,
    extract_email,
    normalize_whitespace,
    parse_timestamp,
    strip_markup,
)

API_URL = "https://www.arbeitnow.com/api/job-board-api"
REQUEST_TIMEOUT = 15.0
MAX_POSTINGS = 50


def to_listing(item: dict[str, Any]) -> NormalizedListing | None:
    slug = str(item.get("slug") or "").strip()
    title = normalize_whitespace(str(item.get("title") or ""))
    url = str(item.get("url") or "").strip()
    # created_at is epoch seconds
    published_at = parse_timestamp(item.get("created_at"))
    if not slug or not title or not url or published_at is None:
        return None

    raw_description = str(item.get("description") or "")
    location = normalize_whitespace(str(item.get("location") or "")) or None
    if location is None and item.get("remote"):
        location = "Remote"
    return NormalizedListing(
        external_id=f"{SOURCE_ARBEITNOW}:{slug}",
        source=SOURCE_ARBEITNOW,
        title=title,
        company=normalize_whitespace(str(item.get("company_name") or "")) or None,
        description=cap_description(strip_markup(raw_description)),
        url=url,
        contact_email=extract_email(raw_description),
        location=location,
        salary=None,
        tags=compact_tags(item.get("tags") or [], item.get("job_types") or []),
        published_at=published_at,
    )


async def fetch_arbeitnow_jobs(client: httpx.AsyncClient) -> list[NormalizedListing]:
    payload = await get_json(client, API_URL, source=SOURCE_ARBEITNOW, timeout=REQUEST_TIMEOUT)
    if not isinstance(payload, dict):
        return []
    items = payload.get("data")
    if not isinstance(items, list):
        return []
    return map_items(items[:MAX_POSTINGS], to_listing)
