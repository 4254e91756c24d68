"""
Cache-aside wrapper around the Gemini situation report.

The cached report is keyed by a content signature of the freshest event
(id + updated time), so repeated requests during a quiet period cost no
model calls. Generation failures fall back to whatever report is cached,
then to a static "unavailable" report; analyze() never raises.
"""

from __future__ import annotations

import json
import logging
from typing import Optional, Protocol

from backend.cache import Cache, SingleFlight
from backend.errors import CacheUnavailable, GenerationError
from backend.schemas import AnalysisResult
from models import gemini
from models import prompts
from shared.types import EventCollection, RiskLevel

logger = logging.getLogger(__name__)

ANALYSIS_CACHE_KEY = "bd_quake_analysis_cache"
ANALYSIS_CACHE_TTL_SECONDS = 3600
MAX_PROMPT_EVENTS = 15

NO_ACTIVITY_RESULT = AnalysisResult(
    summary="No significant seismic activity detected in the region recently.",
    riskLevel=RiskLevel.LOW,
    advice="Standard preparedness applies.",
    hotspots=["None"],
    depthTrend="No recent data to analyze.",
    seasonalContext="Activity is below average.",
)

UNAVAILABLE_RESULT = AnalysisResult(
    summary="AI Analysis currently unavailable.",
    riskLevel=RiskLevel.LOW,
    advice="Stay alert and follow local guidelines.",
    hotspots=[],
    depthTrend="Unavailable",
    seasonalContext="Unavailable",
)

NOT_CONFIGURED_RESULT = AnalysisResult(
    summary="API Key not configured. Cannot generate AI analysis.",
    riskLevel=RiskLevel.LOW,
    advice="Please monitor official local news channels.",
    hotspots=[],
    depthTrend="N/A",
    seasonalContext="N/A",
)


class AnalysisGenerator(Protocol):
    """Produces a situation report for a prompt, raising GenerationError on failure."""

    def generate(self, prompt: str) -> AnalysisResult:
        ...


class GeminiAnalysisGenerator:
    def __init__(self, api_key: str, model: str = gemini.DEFAULT_MODEL, client=None):
        self.api_key = api_key
        self.model = model
        self.client = client

    def generate(self, prompt: str) -> AnalysisResult:
        try:
            return gemini.call_predict_with_schema(
                prompt,
                AnalysisResult,
                api_key=self.api_key,
                model=self.model,
                client=self.client,
            )
        except Exception as exc:
            # Any SDK, transport or schema failure is a generation failure.
            raise GenerationError(str(exc)) from exc


def build_analysis_prompt(events: EventCollection) -> str:
    projected = [event.to_prompt_dict() for event in events.events[:MAX_PROMPT_EVENTS]]
    return prompts.make_seismic_analysis_prompt(projected)


class AnalysisCache:
    def __init__(
        self,
        cache: Cache,
        generator: Optional[AnalysisGenerator],
        *,
        ttl_seconds: int = ANALYSIS_CACHE_TTL_SECONDS,
        single_flight: Optional[SingleFlight] = None,
    ):
        self.cache = cache
        self.generator = generator
        self.ttl_seconds = ttl_seconds
        self.single_flight = single_flight or SingleFlight()

    def analyze(self, events: EventCollection) -> AnalysisResult:
        if len(events) == 0:
            return NO_ACTIVITY_RESULT.model_copy(deep=True)
        if self.generator is None:
            return NOT_CONFIGURED_RESULT.model_copy(deep=True)

        signature = events.freshest.signature
        fresh = self._cached_for(signature)
        if fresh is not None:
            logger.info("Serving analysis from cache for %s", signature)
            return fresh

        return self.single_flight.do(
            f"{ANALYSIS_CACHE_KEY}:{signature}",
            lambda: self._regenerate(events, signature),
        )

    def _regenerate(self, events: EventCollection, signature: str) -> AnalysisResult:
        fresh = self._cached_for(signature)
        if fresh is not None:
            return fresh

        logger.info("New earthquake data or update detected (%s), calling Gemini", signature)
        try:
            result = self.generator.generate(build_analysis_prompt(events))
        except (GenerationError, TypeError, ValueError) as exc:
            logger.error("Gemini analysis failed: %s", exc)
            return self._fallback()

        entry = {"signature": signature, "analysis": result.model_dump(mode="json")}
        try:
            self.cache.set(
                ANALYSIS_CACHE_KEY,
                json.dumps(entry).encode("utf-8"),
                self.ttl_seconds,
            )
        except CacheUnavailable as exc:
            logger.error("Cache set error: %s", exc)
        return result

    def _fallback(self) -> AnalysisResult:
        entry = self._read_entry()
        if entry is not None:
            logger.warning("Serving stale analysis for %s", entry[0])
            return entry[1]
        return UNAVAILABLE_RESULT.model_copy(deep=True)

    def _cached_for(self, signature: str) -> Optional[AnalysisResult]:
        entry = self._read_entry()
        if entry is not None and entry[0] == signature:
            return entry[1]
        return None

    def _read_entry(self) -> Optional[tuple[str, AnalysisResult]]:
        try:
            cached = self.cache.get(ANALYSIS_CACHE_KEY)
        except CacheUnavailable as exc:
            logger.error("Cache get error: %s", exc)
            return None
        if not cached:
            return None
        try:
            payload = json.loads(cached)
            return payload.get("signature"), AnalysisResult.model_validate(
                payload["analysis"]
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Discarding unreadable analysis cache entry: %s", exc)
            return None
