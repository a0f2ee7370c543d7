"""
Visit Counter API Routes.

Thin handlers over VisitStatsEngine: validation errors become 400s, anything
else falls through to the app's generic 500 handler.
"""

from __future__ import annotations

from typing import Any, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from src.api.deps import get_engine
from src.components.visits import VisitStatsEngine, VisitsValidationError

router = APIRouter()


# --- Request Models ---


class VisitRequest(BaseModel):
    """Visit event. Route is validated by the engine, not here."""

    site: Any = Field(None, description="Site identifier or alias")
    route: Any = Field(None, description="Visited route, e.g. /blog/post")


class DurationRequest(BaseModel):
    """Duration sample for a whole session or a single route."""

    site: Any = Field(None, description="Site identifier or alias")
    scope: Any = Field(None, description='"session" or "route"')
    duration_ms: Any = Field(None, alias="durationMs", description="Duration in ms")
    route: Any = Field(None, description="Route, required when scope is route")

    model_config = ConfigDict(populate_by_name=True)


# --- Helpers ---


def _bad_request(error: VisitsValidationError) -> NoReturn:
    raise HTTPException(status_code=400, detail=error.to_dict()) from error


# --- Routes ---


@router.get("", response_model=dict[str, Any])
def get_visits(
    site: str | None = Query(None),
    engine: VisitStatsEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Full stats for a site."""
    try:
        return engine.snapshot(site).to_dict()
    except VisitsValidationError as e:
        _bad_request(e)


@router.get("/daily", response_model=dict[str, Any])
def get_daily_visits(
    site: str | None = Query(None),
    range_key: str | None = Query(None, alias="range"),
    engine: VisitStatsEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Per-day visits for a preset range (week, 30d, year or an alias)."""
    try:
        return engine.query_range(range_key, site).to_dict()
    except VisitsValidationError as e:
        _bad_request(e)


@router.get("/durations", response_model=dict[str, Any])
def get_durations(
    site: str | None = Query(None),
    range_key: str | None = Query(None, alias="range"),
    engine: VisitStatsEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Per-day session and route duration summaries for a preset range."""
    try:
        return engine.query_durations(range_key, site).to_dict()
    except VisitsValidationError as e:
        _bad_request(e)


@router.post("", response_model=dict[str, Any])
def record_visit(
    body: VisitRequest | None = None,
    engine: VisitStatsEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Count a visit and return the site's updated stats."""
    body = body or VisitRequest()
    try:
        return engine.record_visit(body.route, body.site).to_dict()
    except VisitsValidationError as e:
        _bad_request(e)


@router.post("/durations", response_model=dict[str, Any])
def record_duration(
    body: DurationRequest | None = None,
    engine: VisitStatsEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Record a session or route duration and return the day's summary."""
    body = body or DurationRequest()
    try:
        record = engine.record_duration(
            body.scope, body.duration_ms, route=body.route, site=body.site
        )
    except VisitsValidationError as e:
        _bad_request(e)
    return record.to_dict()
