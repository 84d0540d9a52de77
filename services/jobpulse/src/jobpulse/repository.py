from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from pathlib import Path

from common.utils import now_utc_iso

from jobpulse.models import (
    AlertCreateRequest,
    AlertMatch,
    AlertMatchWithListing,
    AlertUpdateRequest,
    JobAlert,
    NormalizedListing,
    StoredListing,
)

LOGGER = logging.getLogger("jobpulse.repository")

LISTING_COLUMNS = (
    "id",
    "external_id",
    "source",
    "title",
    "company",
    "description",
    "url",
    "contact_email",
    "location",
    "salary",
    "tags_json",
    "published_at",
    "created_at",
)


class JobPulseRepository:
    """sqlite store for listings, alerts and per-user alert matches.

    Listings are unique by ``external_id`` and matches by
    ``(user_id, job_listing_id)``. Both inserts are no-ops when the natural
    key already exists, which is what makes repeated or concurrent runs safe.
    """

    def __init__(self, database_path: str) -> None:
        self.database_path = Path(database_path)
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise RuntimeError("Database connection is not initialized")
        return self._connection

    def connect(self) -> None:
        with self._lock:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(self.database_path, check_same_thread=False)
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys=ON")
            self._connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS job_listings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    external_id TEXT NOT NULL UNIQUE,
                    source TEXT NOT NULL,
                    title TEXT NOT NULL,
                    company TEXT,
                    description TEXT,
                    url TEXT NOT NULL,
                    contact_email TEXT,
                    location TEXT,
                    salary TEXT,
                    tags_json TEXT NOT NULL DEFAULT '[]',
                    published_at TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS job_alerts (
                    alert_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    config_json TEXT NOT NULL,
                    max_per_day INTEGER NOT NULL DEFAULT 5,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    last_fetch_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_job_alerts_user
                    ON job_alerts (user_id, is_active);

                CREATE TABLE IF NOT EXISTS job_alert_matches (
                    match_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    alert_id TEXT NOT NULL REFERENCES job_alerts(alert_id) ON DELETE CASCADE,
                    job_listing_id INTEGER NOT NULL REFERENCES job_listings(id),
                    status TEXT NOT NULL DEFAULT 'new',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (user_id, job_listing_id)
                );

                CREATE INDEX IF NOT EXISTS idx_job_alert_matches_user_status
                    ON job_alert_matches (user_id, status);
                """
            )
            self._connection.commit()

    def close(self) -> None:
        with self._lock:
            if self._connection is None:
                return
            self._connection.close()
            self._connection = None

    def insert_listing_if_absent(self, listing: NormalizedListing) -> bool:
        """Store a listing on first sighting; return True only if a row was created."""
        with self._lock:
            try:
                cursor = self.connection.execute(
                    """
                    INSERT INTO job_listings (
                        external_id,
                        source,
                        title,
                        company,
                        description,
                        url,
                        contact_email,
                        location,
                        salary,
                        tags_json,
                        published_at,
                        created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(external_id) DO NOTHING
                    """,
                    (
                        listing.external_id,
                        listing.source,
                        listing.title,
                        listing.company,
                        listing.description,
                        listing.url,
                        listing.contact_email,
                        listing.location,
                        listing.salary,
                        json.dumps(listing.tags),
                        listing.published_at.isoformat(),
                        now_utc_iso(),
                    ),
                )
            except sqlite3.IntegrityError:
                self.connection.rollback()
                LOGGER.debug("Listing %s already stored", listing.external_id)
                return False
            self.connection.commit()
            return cursor.rowcount == 1

    def get_listing_id(self, external_id: str) -> int | None:
        with self._lock:
            row = self.connection.execute(
                "SELECT id FROM job_listings WHERE external_id = ?",
                (external_id,),
            ).fetchone()
            return None if row is None else int(row["id"])

    def get_listing(self, external_id: str) -> StoredListing | None:
        with self._lock:
            row = self.connection.execute(
                f"SELECT {', '.join(LISTING_COLUMNS)} FROM job_listings WHERE external_id = ?",
                (external_id,),
            ).fetchone()
            return None if row is None else self._to_stored_listing(row)

    def count_listings(self) -> int:
        with self._lock:
            row = self.connection.execute("SELECT COUNT(1) AS c FROM job_listings").fetchone()
            return int(row["c"])

    def create_alert(self, user_id: str, payload: AlertCreateRequest) -> JobAlert:
        with self._lock:
            now = now_utc_iso()
            alert_id = uuid.uuid4().hex
            self.connection.execute(
                """
                INSERT INTO job_alerts (
                    alert_id,
                    user_id,
                    name,
                    config_json,
                    max_per_day,
                    is_active,
                    created_at,
                    updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    alert_id,
                    user_id,
                    payload.name,
                    self._config_json(
                        payload.keywords,
                        payload.exclude_keywords,
                        payload.sources,
                    ),
                    payload.max_per_day,
                    1 if payload.is_active else 0,
                    now,
                    now,
                ),
            )
            self.connection.commit()
            return self.get_alert_or_raise(user_id, alert_id)

    def get_alert_or_raise(self, user_id: str, alert_id: str) -> JobAlert:
        alert = self.get_alert(user_id, alert_id)
        if alert is None:
            raise KeyError(f"Unknown alert_id: {alert_id}")
        return alert

    def get_alert(self, user_id: str, alert_id: str) -> JobAlert | None:
        with self._lock:
            row = self.connection.execute(
                """
                SELECT
                    a.*,
                    (SELECT COUNT(1) FROM job_alert_matches m WHERE m.alert_id = a.alert_id)
                        AS match_count
                FROM job_alerts a
                WHERE a.alert_id = ? AND a.user_id = ?
                """,
                (alert_id, user_id),
            ).fetchone()
            if row is None:
                return None
            return self._to_alert(row)

    def list_alerts(self, user_id: str, *, active_only: bool = False) -> list[JobAlert]:
        with self._lock:
            query = """
                SELECT
                    a.*,
                    (SELECT COUNT(1) FROM job_alert_matches m WHERE m.alert_id = a.alert_id)
                        AS match_count
                FROM job_alerts a
                WHERE a.user_id = ?
            """
            if active_only:
                query += " AND a.is_active = 1"
            query += " ORDER BY a.created_at DESC, a.rowid DESC"
            cursor = self.connection.execute(query, (user_id,))
            return [self._to_alert(row) for row in cursor.fetchall()]

    def update_alert(self, user_id: str, alert_id: str, payload: AlertUpdateRequest) -> JobAlert:
        with self._lock:
            existing = self.get_alert_or_raise(user_id, alert_id)
            keywords = payload.keywords if payload.keywords is not None else existing.keywords
            exclude_keywords = (
                payload.exclude_keywords
                if payload.exclude_keywords is not None
                else existing.exclude_keywords
            )
            sources = payload.sources if payload.sources is not None else existing.sources
            name = payload.name if payload.name is not None else existing.name
            max_per_day = (
                payload.max_per_day if payload.max_per_day is not None else existing.max_per_day
            )
            is_active = payload.is_active if payload.is_active is not None else existing.is_active

            self.connection.execute(
                """
                UPDATE job_alerts
                SET name = ?,
                    config_json = ?,
                    max_per_day = ?,
                    is_active = ?,
                    updated_at = ?
                WHERE alert_id = ? AND user_id = ?
                """,
                (
                    name,
                    self._config_json(keywords, exclude_keywords, sources),
                    max_per_day,
                    1 if is_active else 0,
                    now_utc_iso(),
                    alert_id,
                    user_id,
                ),
            )
            self.connection.commit()
            return self.get_alert_or_raise(user_id, alert_id)

    def delete_alert(self, user_id: str, alert_id: str) -> bool:
        with self._lock:
            cursor = self.connection.execute(
                "DELETE FROM job_alerts WHERE alert_id = ? AND user_id = ?",
                (alert_id, user_id),
            )
            self.connection.commit()
            return cursor.rowcount > 0

    def touch_alert_last_fetch(self, alert_id: str, fetched_at: str) -> None:
        with self._lock:
            self.connection.execute(
                "UPDATE job_alerts SET last_fetch_at = ? WHERE alert_id = ?",
                (fetched_at, alert_id),
            )
            self.connection.commit()

    def insert_match_if_absent(self, user_id: str, alert_id: str, job_listing_id: int) -> bool:
        """Create a 'new' match unless the user already has one for this listing."""
        with self._lock:
            now = now_utc_iso()
            try:
                cursor = self.connection.execute(
                    """
                    INSERT INTO job_alert_matches (
                        match_id,
                        user_id,
                        alert_id,
                        job_listing_id,
                        status,
                        created_at,
                        updated_at
                    )
                    VALUES (?, ?, ?, ?, 'new', ?, ?)
                    ON CONFLICT(user_id, job_listing_id) DO NOTHING
                    """,
                    (uuid.uuid4().hex, user_id, alert_id, job_listing_id, now, now),
                )
            except sqlite3.IntegrityError:
                self.connection.rollback()
                LOGGER.debug("Match for user %s listing %s already stored", user_id, job_listing_id)
                return False
            self.connection.commit()
            return cursor.rowcount == 1

    def count_matches(self, user_id: str) -> int:
        with self._lock:
            row = self.connection.execute(
                "SELECT COUNT(1) AS c FROM job_alert_matches WHERE user_id = ?",
                (user_id,),
            ).fetchone()
            return int(row["c"])

    def list_matches(
        self,
        user_id: str,
        *,
        status: str | None,
        alert_id: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[AlertMatchWithListing], int]:
        with self._lock:
            filters = ["m.user_id = ?"]
            params: list[object] = [user_id]
            if status is not None:
                filters.append("m.status = ?")
                params.append(status)
            if alert_id is not None:
                filters.append("m.alert_id = ?")
                params.append(alert_id)
            where_clause = " AND ".join(filters)

            total = int(
                self.connection.execute(
                    f"SELECT COUNT(1) AS c FROM job_alert_matches m WHERE {where_clause}",
                    tuple(params),
                ).fetchone()["c"]
            )
            listing_columns = ", ".join(f"l.{column} AS listing_{column}" for column in LISTING_COLUMNS)
            cursor = self.connection.execute(
                f"""
                SELECT
                    m.match_id,
                    m.user_id,
                    m.alert_id,
                    m.job_listing_id,
                    m.status,
                    m.created_at,
                    m.updated_at,
                    a.name AS alert_name,
                    {listing_columns}
                FROM job_alert_matches m
                JOIN job_alerts a ON a.alert_id = m.alert_id
                JOIN job_listings l ON l.id = m.job_listing_id
                WHERE {where_clause}
                ORDER BY m.created_at DESC, m.rowid DESC
                LIMIT ? OFFSET ?
                """,
                (*params, limit, offset),
            )
            matches = [self._to_match_with_listing(row) for row in cursor.fetchall()]
            return matches, total

    def match_status_counts(self, user_id: str) -> dict[str, int]:
        with self._lock:
            cursor = self.connection.execute(
                """
                SELECT status, COUNT(1) AS c
                FROM job_alert_matches
                WHERE user_id = ?
                GROUP BY status
                """,
                (user_id,),
            )
            return {row["status"]: int(row["c"]) for row in cursor.fetchall()}

    def update_match_status(self, user_id: str, match_id: str, status: str) -> AlertMatch:
        with self._lock:
            cursor = self.connection.execute(
                """
                UPDATE job_alert_matches
                SET status = ?, updated_at = ?
                WHERE match_id = ? AND user_id = ?
                """,
                (status, now_utc_iso(), match_id, user_id),
            )
            self.connection.commit()
            if cursor.rowcount == 0:
                raise KeyError(f"Unknown match_id: {match_id}")
            row = self.connection.execute(
                """
                SELECT match_id, user_id, alert_id, job_listing_id, status, created_at, updated_at
                FROM job_alert_matches
                WHERE match_id = ?
                """,
                (match_id,),
            ).fetchone()
            return AlertMatch(**dict(row))

    @staticmethod
    def _config_json(keywords: list[str], exclude_keywords: list[str], sources: list[str]) -> str:
        return json.dumps(
            {
                "keywords": keywords,
                "exclude_keywords": exclude_keywords,
                "sources": sources,
            }
        )

    def _to_alert(self, row: sqlite3.Row) -> JobAlert:
        config = json.loads(row["config_json"])
        return JobAlert(
            alert_id=row["alert_id"],
            user_id=row["user_id"],
            name=row["name"],
            keywords=list(config.get("keywords", [])),
            exclude_keywords=list(config.get("exclude_keywords", [])),
            sources=list(config.get("sources", [])),
            max_per_day=int(row["max_per_day"]),
            is_active=bool(row["is_active"]),
            last_fetch_at=row["last_fetch_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            match_count=int(row["match_count"]),
        )

    def _to_stored_listing(self, row: sqlite3.Row, prefix: str = "") -> StoredListing:
        values = {column: row[f"{prefix}{column}"] for column in LISTING_COLUMNS}
        values["tags"] = json.loads(values.pop("tags_json") or "[]")
        return StoredListing(**values)

    def _to_match_with_listing(self, row: sqlite3.Row) -> AlertMatchWithListing:
        return AlertMatchWithListing(
            match_id=row["match_id"],
            user_id=row["user_id"],
            alert_id=row["alert_id"],
            job_listing_id=row["job_listing_id"],
            status=row["status"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            alert_name=row["alert_name"],
            listing=self._to_stored_listing(row, prefix="listing_"),
        )
