from __future__ import annotations

from datetime import datetime

import pytest
from common.utils import normalize_terms, now_utc, now_utc_iso

pytestmark = pytest.mark.unit


def test_normalize_terms_trims_lowers_and_dedupes() -> None:
    terms = normalize_terms(["  React ", "react", "Senior  Engineer", ""])
    assert terms == ["react", "senior engineer"]


def test_normalize_terms_accepts_none() -> None:
    assert normalize_terms(None) == []


def test_now_utc_iso_returns_parseable_utc_timestamp() -> None:
    parsed = datetime.fromisoformat(now_utc_iso())
    assert parsed.tzinfo is not None
    assert parsed.utcoffset() is not None
    assert parsed.utcoffset().total_seconds() == 0


def test_now_utc_is_timezone_aware() -> None:
    assert now_utc().utcoffset().total_seconds() == 0
