"""Keyword scoring and ranking of listings against an alert.

Scoring per keyword: +3 when it appears in the title, +1 in the description
and +1 in the joined tags. Any exclude keyword found in the title or
description drops the listing, and a listing scoring 0 is never returned.
Ranking is score desc, then newest first. The final walk keeps at most
``diversity_cap`` listings per source.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from common.utils import normalize_terms

from jobpulse.models import NormalizedListing

TITLE_WEIGHT = 3
DESCRIPTION_WEIGHT = 1
TAG_WEIGHT = 1
DEFAULT_DIVERSITY_CAP = 2


@dataclass(frozen=True)
class ScoredListing:
    listing: NormalizedListing
    score: int


def score_listing(
    listing: NormalizedListing,
    keywords: list[str],
    exclude_keywords: list[str],
) -> int | None:
    """Return the keyword score, or None when an exclude keyword matches."""
    title = (listing.title or "").lower()
    description = (listing.description or "").lower()
    tags = " ".join(listing.tags).lower()

    searchable = f"{title} {description}"
    if any(excluded in searchable for excluded in exclude_keywords):
        return None

    score = 0
    for keyword in keywords:
        if keyword in title:
            score += TITLE_WEIGHT
        if keyword in description:
            score += DESCRIPTION_WEIGHT
        if keyword in tags:
            score += TAG_WEIGHT
    return score


def rank_listings(
    listings: list[NormalizedListing],
    keywords: list[str],
    exclude_keywords: list[str] | None = None,
) -> list[ScoredListing]:
    normalized_keywords = normalize_terms(keywords)
    normalized_excludes = normalize_terms(exclude_keywords)
    if not normalized_keywords:
        return []

    scored: list[ScoredListing] = []
    for listing in listings:
        score = score_listing(listing, normalized_keywords, normalized_excludes)
        if score:
            scored.append(ScoredListing(listing=listing, score=score))

    scored.sort(key=lambda item: (item.score, item.listing.published_at), reverse=True)
    return scored


def diversify(
    ranked: list[ScoredListing],
    *,
    max_results: int,
    diversity_cap: int = DEFAULT_DIVERSITY_CAP,
) -> list[ScoredListing]:
    per_source: Counter[str] = Counter()
    accepted: list[ScoredListing] = []
    for item in ranked:
        source = item.listing.source
        if per_source[source] >= diversity_cap:
            continue
        per_source[source] += 1
        accepted.append(item)
        if len(accepted) >= max_results:
            break

    if not accepted and ranked:
        accepted.append(ranked[0])
    return accepted


def match_scored(
    listings: list[NormalizedListing],
    keywords: list[str],
    exclude_keywords: list[str] | None = None,
    max_results: int = 5,
    *,
    diversity_cap: int = DEFAULT_DIVERSITY_CAP,
) -> list[ScoredListing]:
    ranked = rank_listings(listings, keywords, exclude_keywords)
    return diversify(ranked, max_results=max_results, diversity_cap=diversity_cap)


def match_listings(
    listings: list[NormalizedListing],
    keywords: list[str],
    exclude_keywords: list[str] | None = None,
    max_results: int = 5,
    *,
    diversity_cap: int = DEFAULT_DIVERSITY_CAP,
) -> list[NormalizedListing]:
    return [
        item.listing
        for item in match_scored(
            listings,
            keywords,
            exclude_keywords,
            max_results,
            diversity_cap=diversity_cap,
        )
    ]
