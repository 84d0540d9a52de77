"""Postings from the newest Hacker News "Who is hiring?" thread.

The thread itself is only used to find its top-level comments; every comment
is one posting.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from jobpulse.models import SOURCE_HACKERNEWS, NormalizedListing
from jobpulse.sources.fetching import get_json
from jobpulse.text import (
    cap_description,
    extract_email,
    extract_location,
    normalize_whitespace,
    parse_timestamp,
    strip_markup,
)

SEARCH_URL = "https://hn.algolia.com/api/v1/search"
THREAD_AUTHOR = "whoishiring"
ITEM_URL = "https://hacker-news.firebaseio.com/v0/item/{item_id}.json"
THREAD_QUERY = '"Ask HN: Who is hiring"'
THREAD_TIMEOUT = 10.0
COMMENT_TIMEOUT = 8.0
MAX_COMMENTS = 40
BATCH_SIZE = 10
MAX_TITLE_LENGTH = 200
MAX_COMPANY_LENGTH = 80

LOGGER = logging.getLogger("jobpulse.sources.hackernews")


def extract_company(first_line: str) -> str | None:
    # "Company | Role | Location | ..."
    company = first_line.split("|", 1)[0].strip()
    if company and len(company) < MAX_COMPANY_LENGTH:
        return company
    return None


def comment_to_listing(comment: Any) -> NormalizedListing | None:
    if not isinstance(comment, dict) or comment.get("deleted") or comment.get("dead"):
        return None
    comment_id = comment.get("id")
    published_at = parse_timestamp(comment.get("time"))
    text = strip_markup(str(comment.get("text") or ""), keep_lines=True)
    if comment_id is None or published_at is None or not text:
        return None

    first_line = text.split("\n", 1)[0]
    flat_text = normalize_whitespace(text)
    return NormalizedListing(
        external_id=f"{SOURCE_HACKERNEWS}:{comment_id}",
        source=SOURCE_HACKERNEWS,
        title=first_line[:MAX_TITLE_LENGTH],
        company=extract_company(first_line),
        description=cap_description(flat_text),
        url=f"https://news.ycombinator.com/item?id={comment_id}",
        contact_email=extract_email(flat_text),
        location=extract_location(flat_text),
        salary=None,
        tags=["hackernews", "who-is-hiring"],
        published_at=published_at,
    )


async def find_hiring_thread_id(client: httpx.AsyncClient) -> str | None:
    payload = await get_json(
        client,
        SEARCH_URL,
        source=SOURCE_HACKERNEWS,
        params={"query": THREAD_QUERY, "tags": f"story,author_{THREAD_AUTHOR}", "hitsPerPage": 5},
        timeout=THREAD_TIMEOUT,
    )
    if not isinstance(payload, dict) or not isinstance(payload.get("hits"), list):
        return None
    # only the monthly thread posted by the whoishiring account; newest wins
    threads = [
        hit
        for hit in payload["hits"]
        if isinstance(hit, dict)
        and hit.get("objectID")
        and hit.get("author") == THREAD_AUTHOR
        and "who is hiring" in str(hit.get("title") or "").lower()
    ]
    if not threads:
        return None
    newest = max(threads, key=lambda hit: int(hit.get("created_at_i") or 0))
    return str(newest["objectID"])


async def fetch_item(client: httpx.AsyncClient, item_id: Any, *, timeout: float) -> Any | None:
    return await get_json(
        client,
        ITEM_URL.format(item_id=item_id),
        source=SOURCE_HACKERNEWS,
        timeout=timeout,
    )


async def fetch_hackernews_jobs(client: httpx.AsyncClient) -> list[NormalizedListing]:
    thread_id = await find_hiring_thread_id(client)
    if thread_id is None:
        LOGGER.warning("[%s] no 'Who is hiring?' thread found", SOURCE_HACKERNEWS)
        return []

    thread = await fetch_item(client, thread_id, timeout=THREAD_TIMEOUT)
    if not isinstance(thread, dict) or not isinstance(thread.get("kids"), list):
        return []
    comment_ids = thread["kids"][:MAX_COMMENTS]

    listings: list[NormalizedListing] = []
    # bounded batches keep us polite to the Firebase API
    for start in range(0, len(comment_ids), BATCH_SIZE):
        batch = comment_ids[start : start + BATCH_SIZE]
        comments = await asyncio.gather(
            *(fetch_item(client, comment_id, timeout=COMMENT_TIMEOUT) for comment_id in batch),
            return_exceptions=True,
        )
        for comment in comments:
            if isinstance(comment, BaseException):
                LOGGER.debug("[%s] comment fetch failed: %s", SOURCE_HACKERNEWS, comment)
                continue
            listing = comment_to_listing(comment)
            if listing is not None:
                listings.append(listing)
    return listings
