"""Remotive remote-jobs feed.

Docs: https://remotive.com/api/remote-jobs
"""
from __future__ import annotations

from typing import Any

import httpx

from jobpulse.models import SOURCE_REMOTIVE, NormalizedListing
from jobpulse.sources.fetching import get_json, map_items
from jobpulse.text import (
    cap_description,
    compact_tags,
    extract_email,
    normalize_whitespace,
    parse_timestamp,
    strip_markup,
)

API_URL = "https://remotive.com/api/remote-jobs"
REQUEST_TIMEOUT = 15.0
PAGE_LIMIT = 50


def to_listing(item: dict[str, Any]) -> NormalizedListing | None:
    raw_id = item.get("id")
    title = normalize_whitespace(str(item.get("title") or ""))
    url = str(item.get("url") or "").strip()
    published_at = parse_timestamp(item.get("publication_date"))
    if raw_id is None or not title or not url or published_at is None:
        return None

    raw_description = str(item.get("description") or "")
    return NormalizedListing(
        external_id=f"{SOURCE_REMOTIVE}:{raw_id}",
        source=SOURCE_REMOTIVE,
        title=title,
        company=normalize_whitespace(str(item.get("company_name") or "")) or None,
        description=cap_description(strip_markup(raw_description)),
        url=url,
        contact_email=extract_email(raw_description),
        location=normalize_whitespace(str(item.get("candidate_required_location") or "")) or None,
        salary=normalize_whitespace(str(item.get("salary") or "")) or None,
        tags=compact_tags(item.get("tags") or [], item.get("category")),
        published_at=published_at,
    )


async def fetch_remotive_jobs(client: httpx.AsyncClient) -> list[NormalizedListing]:
    payload = await get_json(
        client,
        API_URL,
        source=SOURCE_REMOTIVE,
        params={"limit": PAGE_LIMIT},
        timeout=REQUEST_TIMEOUT,
    )
    if not isinstance(payload, dict):
        return []
    return map_items(payload.get("jobs"), to_listing)
