from __future__ import annotations

from datetime import UTC, datetime


def now_utc() -> datetime:
    return datetime.now(UTC)


def now_utc_iso() -> str:
    return now_utc().isoformat()


def normalize_terms(values: list[str] | None) -> list[str]:
    """Trim, lower-case and dedupe terms, keeping first-seen order."""
    seen: set[str] = set()
    terms: list[str] = []
    for value in values or []:
        term = " ".join(str(value).split()).lower()
        if not term or term in seen:
            continue
        seen.add(term)
        terms.append(term)
    return terms
