from __future__ import annotations

from typing import Any

import httpx
import pytest
from common.utils import now_utc
from fastapi.testclient import TestClient
from jobpulse.main import create_app
from jobpulse.settings import PipelineSettings

pytestmark = [pytest.mark.integration, pytest.mark.smoke]

HEADERS = {"x-user-id": "smoke-user"}


def provider_routes() -> dict[str, Any]:
    now = now_utc()
    epoch = int(now.timestamp())
    empty_subreddit = {"data": {"children": []}}
    return {
        "remotive.com/api/remote-jobs": {
            "jobs": [
                {
                    "id": 1,
                    "title": "Python Backend Engineer",
                    "company_name": "Remote Co",
                    "url": "https://remotive.com/jobs/1",
                    "description": "<p>APIs</p>",
                    "tags": ["python"],
                    "publication_date": now.isoformat(),
                }
            ]
        },
        "jobicy.com/api/v2/remote-jobs": {
            "jobs": [
                {
                    "id": 2,
                    "jobTitle": "Python Data Engineer",
                    "companyName": "Jobicy Co",
                    "url": "https://jobicy.com/jobs/2",
                    "jobExcerpt": "ETL",
                    "pubDate": now.strftime("%Y-%m-%d %H:%M:%S"),
                }
            ]
        },
        "www.arbeitnow.com/api/job-board-api": {
            "data": [
                {
                    "slug": "python-dev-3",
                    "title": "Python Developer",
                    "url": "https://www.arbeitnow.com/jobs/python-dev-3",
                    "remote": True,
                    "created_at": epoch,
                }
            ]
        },
        "www.reddit.com/r/forhire/new.json": {
            "data": {
                "children": [
                    {
                        "data": {
                            "id": "r4",
                            "title": "[Hiring] Python scraper needed",
                            "selftext": "Short gig",
                            "permalink": "/r/forhire/comments/r4/",
                            "subreddit": "forhire",
                            "created_utc": epoch,
                        }
                    }
                ]
            }
        },
        "www.reddit.com/r/remotejs/new.json": empty_subreddit,
        "www.reddit.com/r/hiring/new.json": empty_subreddit,
        "hn.algolia.com/api/v1/search": {
            "hits": [{"objectID": "500", "author": "whoishiring", "title": "Ask HN: Who is hiring? (October 2026)"}]
        },
        "hacker-news.firebaseio.com/v0/item/500.json": {"id": 500, "kids": [501]},
        "hacker-news.firebaseio.com/v0/item/501.json": {
            "id": 501,
            "time": epoch,
            "text": "HN Co | Python Engineer | Remote<p>jobs@hn.example",
        },
    }


def mock_transport() -> httpx.MockTransport:
    routes = provider_routes()

    def handler(request: httpx.Request) -> httpx.Response:
        payload = routes.get(f"{request.url.host}{request.url.path}")
        if payload is None:
            return httpx.Response(404)
        return httpx.Response(200, json=payload)

    return httpx.MockTransport(handler)


def test_smoke_trigger_runs_every_provider(tmp_path) -> None:
    app = create_app(
        database_path=str(tmp_path / "smoke.sqlite3"),
        settings=PipelineSettings(),
        transport=mock_transport(),
    )

    with TestClient(app) as client:
        health = client.get("/health")
        created = client.post(
            "/job-alerts",
            json={"name": "Python everywhere", "keywords": ["python"], "max_per_day": 10},
            headers=HEADERS,
        )
        trigger = client.post("/job-alerts/trigger", headers=HEADERS)
        listings = client.get("/job-listings", headers=HEADERS)

    assert health.status_code == 200
    assert created.status_code == 201
    assert trigger.status_code == 200
    summary = trigger.json()
    assert summary["total_sources_fetched"] == ["remotive", "jobicy", "arbeitnow", "reddit", "hackernews"]
    assert summary["total_jobs_fetched"] == 5
    assert summary["alerts"][0]["matches_saved"] == 5
    sources = {match["listing"]["source"] for match in listings.json()["matches"]}
    assert sources == {"remotive", "jobicy", "arbeitnow", "reddit", "hackernews"}


def test_smoke_search_across_providers(tmp_path) -> None:
    app = create_app(
        database_path=str(tmp_path / "smoke.sqlite3"),
        settings=PipelineSettings(),
        transport=mock_transport(),
    )

    with TestClient(app) as client:
        response = client.post("/job-search", json={"keywords": ["engineer"], "freshness": "24h"})

    assert response.status_code == 200
    titles = [item["title"] for item in response.json()["results"]]
    assert titles[0] in {"Python Backend Engineer", "Python Data Engineer", "HN Co | Python Engineer | Remote"}
    assert len(titles) == 3
