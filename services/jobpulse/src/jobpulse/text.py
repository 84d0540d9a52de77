from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any

from bs4 import BeautifulSoup

MAX_DESCRIPTION_LENGTH = 2000

EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
SALARY_PATTERN = re.compile(
    r"\$[\d,]+(?:\s*[-–]\s*\$?[\d,]+)?(?:\s*/?\s*(?:hr|hour|yr|year|month|mo|week|wk|k))?",
    re.IGNORECASE,
)
LOCATION_PATTERNS = (
    re.compile(r"\b(?:remote|onsite|hybrid)\b", re.IGNORECASE),
    re.compile(r"\b(?:san francisco|new york|berlin|london|paris|worldwide)\b", re.IGNORECASE),
)
LINE_BREAK_TAGS = re.compile(r"<br\s*/?>|<p\s*/?>", re.IGNORECASE)


def normalize_whitespace(text: str) -> str:
    return " ".join(text.split())


def strip_markup(markup: str | None, *, keep_lines: bool = False) -> str:
    """Return the visible text of an HTML fragment.

    With ``keep_lines`` the ``<p>``/``<br>`` boundaries survive as newlines and
    only runs of spaces inside each line are collapsed.
    """
    if not markup:
        return ""
    if keep_lines:
        markup = LINE_BREAK_TAGS.sub("\n", markup)
    text = BeautifulSoup(markup, "html.parser").get_text(" ")
    if not keep_lines:
        return normalize_whitespace(text)
    lines = (normalize_whitespace(line) for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def cap_description(text: str | None) -> str | None:
    if not text:
        return None
    return text[:MAX_DESCRIPTION_LENGTH]


def extract_email(text: str | None) -> str | None:
    if not text:
        return None
    match = EMAIL_PATTERN.search(text)
    return match.group(0) if match else None


def extract_salary(text: str | None) -> str | None:
    if not text:
        return None
    match = SALARY_PATTERN.search(text)
    return match.group(0) if match else None


def extract_location(text: str | None) -> str | None:
    if not text:
        return None
    for pattern in LOCATION_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None


def compact_tags(*groups: Any) -> list[str]:
    """Flatten tag groups into a deduped list, dropping blanks."""
    tags: list[str] = []
    for group in groups:
        values = group if isinstance(group, (list, tuple)) else [group]
        for value in values:
            if value is None:
                continue
            tag = normalize_whitespace(str(value))
            if tag and tag not in tags:
                tags.append(tag)
    return tags


def parse_timestamp(value: Any) -> datetime | None:
    """Parse epoch seconds or an ISO-8601 string into an aware UTC datetime."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(float(value), tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
