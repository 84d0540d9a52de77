from __future__ import annotations

import json
import logging
import math
import os
import time
import uuid
from contextlib import asynccontextmanager
from typing import Annotated

import httpx
from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from jobpulse.aggregator import JobAggregator
from jobpulse.cache import SearchCache, build_search_key
from jobpulse.matcher import match_listings
from jobpulse.models import (
    ALL_SOURCES,
    FRESHNESS_PRESETS,
    AlertCreateRequest,
    AlertMatch,
    AlertUpdateRequest,
    FetchRunSummary,
    JobAlert,
    MatchListResponse,
    MatchStatusUpdateRequest,
    SearchRequest,
    SearchResponse,
)
from jobpulse.repository import JobPulseRepository
from jobpulse.runner import NoActiveAlertsError, run_fetch_for_alerts
from jobpulse.settings import DEFAULT_DB_PATH, PipelineSettings
from jobpulse.sources import SourceFetcher

LOGGER = logging.getLogger("jobpulse")

UserId = Annotated[str, Header(alias="x-user-id", min_length=1, max_length=128)]


def create_app(
    *,
    database_path: str | None = None,
    settings: PipelineSettings | None = None,
    fetchers: dict[str, SourceFetcher] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    resolved_path = database_path or os.getenv("JOBPULSE_DB_PATH", DEFAULT_DB_PATH)
    resolved_settings = settings or PipelineSettings.from_env()

    repository = JobPulseRepository(database_path=resolved_path)
    aggregator = JobAggregator(
        fetchers,
        user_agent=resolved_settings.user_agent,
        transport=transport,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await run_in_threadpool(repository.connect)
        app.state.repository = repository
        app.state.aggregator = aggregator
        app.state.settings = resolved_settings
        app.state.search_cache = SearchCache(resolved_settings.search_cache_ttl_seconds)
        try:
            yield
        finally:
            await run_in_threadpool(repository.close)

    app = FastAPI(title="JobPulse", version="0.3.0", lifespan=lifespan)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.perf_counter() - started) * 1000
            LOGGER.exception(
                json.dumps(
                    {
                        "event": "request_complete",
                        "request_id": request_id,
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": 500,
                        "duration_ms": round(duration_ms, 3),
                        "error": str(exc),
                    }
                )
            )
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal Server Error", "request_id": request_id},
                headers={"x-request-id": request_id},
            )

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers["x-request-id"] = request_id
        LOGGER.info(
            json.dumps(
                {
                    "event": "request_complete",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 3),
                }
            )
        )
        return response

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "jobpulse"}

    @app.post("/job-alerts", response_model=JobAlert, status_code=201)
    async def create_alert(
        payload: AlertCreateRequest,
        request: Request,
        user_id: UserId,
    ) -> JobAlert:
        return await run_in_threadpool(request.app.state.repository.create_alert, user_id, payload)

    @app.get("/job-alerts", response_model=list[JobAlert])
    async def list_alerts(request: Request, user_id: UserId) -> list[JobAlert]:
        return await run_in_threadpool(request.app.state.repository.list_alerts, user_id)

    @app.post("/job-alerts/trigger", response_model=FetchRunSummary)
    async def trigger_alerts(request: Request, user_id: UserId) -> FetchRunSummary:
        alerts = await run_in_threadpool(
            request.app.state.repository.list_alerts,
            user_id,
            active_only=True,
        )
        try:
            return await run_fetch_for_alerts(
                request.app.state.repository,
                request.app.state.aggregator,
                alerts,
                user_id,
                settings=request.app.state.settings,
            )
        except NoActiveAlertsError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @app.put("/job-alerts/{alert_id}", response_model=JobAlert)
    async def update_alert(
        alert_id: str,
        payload: AlertUpdateRequest,
        request: Request,
        user_id: UserId,
    ) -> JobAlert:
        try:
            return await run_in_threadpool(
                request.app.state.repository.update_alert,
                user_id,
                alert_id,
                payload,
            )
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Job alert not found") from exc

    @app.delete("/job-alerts/{alert_id}")
    async def delete_alert(
        alert_id: str,
        request: Request,
        user_id: UserId,
    ) -> dict[str, bool]:
        deleted = await run_in_threadpool(
            request.app.state.repository.delete_alert,
            user_id,
            alert_id,
        )
        if not deleted:
            raise HTTPException(status_code=404, detail="Job alert not found")
        return {"deleted": True}

    @app.get("/job-listings", response_model=MatchListResponse)
    async def list_job_listings(
        request: Request,
        user_id: UserId,
        status: str = Query(default="new", pattern=r"^(all|new|saved|dismissed|added_to_crm)$"),
        alert_id: str | None = None,
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=20, ge=1, le=100),
    ) -> MatchListResponse:
        matches, total = await run_in_threadpool(
            request.app.state.repository.list_matches,
            user_id,
            status=None if status == "all" else status,
            alert_id=alert_id,
            limit=limit,
            offset=(page - 1) * limit,
        )
        counts = await run_in_threadpool(request.app.state.repository.match_status_counts, user_id)
        return MatchListResponse(
            matches=matches,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
            counts=counts,
        )

    @app.put("/job-listings/{match_id}", response_model=AlertMatch)
    async def update_job_listing_status(
        match_id: str,
        payload: MatchStatusUpdateRequest,
        request: Request,
        user_id: UserId,
    ) -> AlertMatch:
        try:
            return await run_in_threadpool(
                request.app.state.repository.update_match_status,
                user_id,
                match_id,
                payload.status,
            )
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Job match not found") from exc

    @app.post("/job-search", response_model=SearchResponse)
    async def job_search(payload: SearchRequest, request: Request) -> SearchResponse:
        settings: PipelineSettings = request.app.state.settings
        cache: SearchCache = request.app.state.search_cache
        freshness = payload.freshness or settings.search_default_freshness
        sources = payload.sources or list(ALL_SOURCES)

        cache.sweep()
        cache_key = build_search_key(payload.keywords, sources, freshness)
        listings = cache.get(cache_key)
        cached = listings is not None
        if listings is None:
            listings = await request.app.state.aggregator.fetch_all(
                sources,
                freshness_hours=FRESHNESS_PRESETS[freshness],
                per_source_cap=None,
            )
            cache.put(cache_key, listings)
        else:
            LOGGER.info("Search cache hit for %s", cache_key)

        matched = match_listings(
            listings,
            payload.keywords,
            payload.exclude_keywords,
            settings.search_max_results,
            diversity_cap=settings.diversity_cap,
        )
        return SearchResponse(
            results=matched,
            total=len(matched),
            total_fetched=len(listings),
            freshness=freshness,
            sources=sources,
            keywords=payload.keywords,
            cached=cached,
        )

    return app


app = create_app()
