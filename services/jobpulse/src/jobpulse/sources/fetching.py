from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from jobpulse.models import NormalizedListing

LOGGER = logging.getLogger("jobpulse.sources")

SourceFetcher = Callable[[httpx.AsyncClient], Awaitable[list[NormalizedListing]]]


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    source: str,
    params: dict[str, Any] | None = None,
    timeout: float = 15.0,
) -> Any | None:
    """GET a JSON document, returning None on timeout, non-2xx or a malformed body."""
    try:
        response = await client.get(url, params=params, timeout=timeout)
    except httpx.HTTPError as exc:
        LOGGER.warning("[%s] request to %s failed: %s", source, url, exc)
        return None

    if not response.is_success:
        LOGGER.warning("[%s] %s returned HTTP %s", source, url, response.status_code)
        return None

    try:
        return response.json()
    except ValueError:
        LOGGER.warning("[%s] %s returned a malformed JSON body", source, url)
        return None


def map_items(
    items: Any,
    mapper: Callable[[dict[str, Any]], NormalizedListing | None],
) -> list[NormalizedListing]:
    if not isinstance(items, list):
        return []
    listings: list[NormalizedListing] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            listing = mapper(item)
        except (ValueError, TypeError) as exc:
            LOGGER.debug("Skipping unmappable item %r: %s", item.get("id"), exc)
            continue
        if listing is not None:
            listings.append(listing)
    return listings
