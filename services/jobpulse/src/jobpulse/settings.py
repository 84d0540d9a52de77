from __future__ import annotations

import os
import tempfile

from pydantic import BaseModel, Field, field_validator

from jobpulse.models import validate_freshness

DEFAULT_DB_PATH = os.path.join(tempfile.gettempdir(), "jobpulse", "jobpulse.sqlite3")
ENV_PREFIX = "JOBPULSE_"


class PipelineSettings(BaseModel):
    """Tunables shared by the alert trigger and the ad-hoc search paths."""

    freshness_hours: int = Field(default=24, ge=1)
    per_source_cap: int = Field(default=2, ge=1)
    diversity_cap: int = Field(default=2, ge=0)
    search_default_freshness: str = "7d"
    search_max_results: int = Field(default=50, ge=1, le=500)
    search_cache_ttl_seconds: float = Field(default=300.0, ge=0)
    user_agent: str = "Mozilla/5.0 (compatible; JobPulseBot/1.0)"

    @field_validator("search_default_freshness")
    @classmethod
    def check_default_freshness(cls, value: str) -> str:
        return validate_freshness(value)

    @classmethod
    def from_env(cls) -> PipelineSettings:
        values: dict[str, str] = {}
        for field_name in cls.model_fields:
            raw = os.getenv(f"{ENV_PREFIX}{field_name.upper()}", "").strip()
            if raw:
                values[field_name] = raw
        return cls(**values)
