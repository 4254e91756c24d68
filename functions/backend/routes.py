"""
HTTP routes for the seismic monitor backend.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from backend.analysis import AnalysisCache
from backend.dependencies import (
    get_analysis_cache,
    get_preference_store,
    get_source_fetcher,
)
from backend.errors import UpstreamFetchError
from backend.feed import SourceFetcher
from backend.preferences import AlertPreferenceInput, PreferenceStore
from backend.schemas import (
    AlertPreferencePayload,
    AlertPreferenceResponse,
    AnalysisResult,
    AnalyzeRequest,
)
from shared.types import EventCollection

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/earthquakes")
def get_earthquakes(fetcher: SourceFetcher = Depends(get_source_fetcher)):
    """Regional USGS feed as GeoJSON, refreshed at most once per cache TTL."""
    try:
        collection = fetcher.get()
    except UpstreamFetchError as exc:
        logger.error("Earthquake feed unavailable: %s", exc)
        raise HTTPException(
            status_code=502, detail="Failed to fetch earthquake data"
        ) from exc
    return collection.to_geojson()


@router.post("/analyze", response_model=AnalysisResult)
def analyze(
    payload: AnalyzeRequest,
    analysis: AnalysisCache = Depends(get_analysis_cache),
):
    if payload.quakes is None:
        raise HTTPException(status_code=400, detail="No earthquake data provided")
    try:
        events = EventCollection.from_features(payload.quakes)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Malformed earthquake data: {exc}")
    return analysis.analyze(events)


@router.post("/alerts", response_model=AlertPreferenceResponse, response_model_exclude_none=True)
def save_alert_preference(
    payload: AlertPreferencePayload,
    store: PreferenceStore = Depends(get_preference_store),
):
    result = store.upsert(
        AlertPreferenceInput(
            location_name=payload.locationName,
            phone_number=payload.phoneNumber,
            email=payload.email,
            discord_webhook=payload.discordWebhook,
            min_magnitude=payload.minMagnitude,
            notifications_enabled=payload.notificationsEnabled,
        )
    )
    message = "Updated existing preferences" if result.merged else None
    return AlertPreferenceResponse(id=result.id, message=message)
