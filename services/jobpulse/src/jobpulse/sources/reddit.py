"""Hiring posts from job subreddits via Reddit's public JSON listings.

Subreddit posts are untagged free text, so only posts that look like a
hiring offer (flair, "[hiring]" tag or a "looking for" title) are kept.
"""
from __future__ import annotations

import asyncio
from typing import Any

import httpx

from jobpulse.models import SOURCE_REDDIT, NormalizedListing
from jobpulse.sources.fetching import get_json, map_items
from jobpulse.text import (
    cap_description,
    compact_tags,
    extract_email,
    extract_salary,
    normalize_whitespace,
    parse_timestamp,
)

SUBREDDITS = ("forhire", "remotejs", "hiring")
LISTING_URL = "https://www.reddit.com/r/{subreddit}/new.json"
REQUEST_TIMEOUT = 15.0
POSTS_PER_SUBREDDIT = 25
SUBREDDIT_PAUSE_SECONDS = 0.5


def is_hiring_post(post: dict[str, Any]) -> bool:
    flair = str(post.get("link_flair_text") or "").lower()
    title = str(post.get("title") or "").lower()
    return "hiring" in flair or "[hiring]" in title or "looking for" in title


def to_listing(child: dict[str, Any]) -> NormalizedListing | None:
    post = child.get("data")
    if not isinstance(post, dict) or not is_hiring_post(post):
        return None

    post_id = str(post.get("id") or "").strip()
    title = normalize_whitespace(str(post.get("title") or ""))
    permalink = str(post.get("permalink") or "").strip()
    published_at = parse_timestamp(post.get("created_utc"))
    if not post_id or not title or not permalink or published_at is None:
        return None

    body = str(post.get("selftext") or "")
    subreddit = str(post.get("subreddit") or "").strip()
    return NormalizedListing(
        external_id=f"{SOURCE_REDDIT}:{post_id}",
        source=SOURCE_REDDIT,
        title=title,
        company=None,
        description=cap_description(normalize_whitespace(body)),
        url=f"https://www.reddit.com{permalink}",
        contact_email=extract_email(body),
        location=None,
        salary=extract_salary(f"{title} {body}"),
        tags=compact_tags(f"r/{subreddit}" if subreddit else None, post.get("link_flair_text")),
        published_at=published_at,
    )


async def fetch_reddit_jobs(
    client: httpx.AsyncClient,
    *,
    pause_seconds: float = SUBREDDIT_PAUSE_SECONDS,
) -> list[NormalizedListing]:
    listings: list[NormalizedListing] = []
    for index, subreddit in enumerate(SUBREDDITS):
        if index and pause_seconds:
            # stay well under the 100 req/min unauthenticated limit
            await asyncio.sleep(pause_seconds)
        payload = await get_json(
            client,
            LISTING_URL.format(subreddit=subreddit),
            source=SOURCE_REDDIT,
            params={"limit": POSTS_PER_SUBREDDIT},
            timeout=REQUEST_TIMEOUT,
        )
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
            continue
        listings.extend(map_items(payload["data"].get("children"), to_listing))
    return listings
