"""
Read-through cache around the USGS earthquake feed.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

import requests

from backend.cache import Cache, SingleFlight
from backend.errors import CacheUnavailable, UpstreamFetchError
from shared.types import EventCollection

logger = logging.getLogger(__name__)

USGS_FEED_URL = "https://earthquake.usgs.gov/fdsnws/event/1/query"
FEED_CACHE_KEY = "bd_quake_data_cache"
FEED_CACHE_TTL_SECONDS = 60
REQUEST_TIMEOUT = 30  # seconds

# Bangladesh and the surrounding India/Myanmar border region.
FEED_QUERY_PARAMS = {
    "format": "geojson",
    "minlatitude": "20",
    "maxlatitude": "27",
    "minlongitude": "88",
    "maxlongitude": "93",
    "orderby": "time",
    "limit": "50",
    "minmagnitude": "2.5",
}


class SourceFetcher:
    """Serves the regional event collection, refetching at most once per TTL."""

    def __init__(
        self,
        cache: Cache,
        *,
        session: Optional[requests.Session] = None,
        url: str = USGS_FEED_URL,
        ttl_seconds: int = FEED_CACHE_TTL_SECONDS,
        timeout: float = REQUEST_TIMEOUT,
        single_flight: Optional[SingleFlight] = None,
    ):
        self.cache = cache
        self.session = session or requests.Session()
        self.url = url
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout
        self.single_flight = single_flight or SingleFlight()

    def get(self) -> EventCollection:
        cached = self._read_cache()
        if cached is not None:
            logger.info("Serving USGS data from cache")
            return cached
        return self.single_flight.do(FEED_CACHE_KEY, self._refresh)

    def _refresh(self) -> EventCollection:
        # Another caller may have filled the cache while we waited to lead.
        cached = self._read_cache()
        if cached is not None:
            return cached

        payload = self._fetch()
        try:
            collection = EventCollection.from_geojson(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise UpstreamFetchError(f"Malformed USGS response: {exc}") from exc

        try:
            self.cache.set(
                FEED_CACHE_KEY,
                json.dumps(payload).encode("utf-8"),
                self.ttl_seconds,
            )
        except CacheUnavailable as exc:
            logger.error("Cache set error: %s", exc)
        return collection

    def _fetch(self) -> dict:
        try:
            response = self.session.get(
                self.url, params=FEED_QUERY_PARAMS, timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            logger.error("Failed to fetch earthquake data: %s", exc)
            raise UpstreamFetchError(f"USGS API Error: {exc}") from exc
        except ValueError as exc:
            logger.error("USGS returned a non-JSON body: %s", exc)
            raise UpstreamFetchError("USGS API returned invalid JSON") from exc

    def _read_cache(self) -> Optional[EventCollection]:
        try:
            cached = self.cache.get(FEED_CACHE_KEY)
        except CacheUnavailable as exc:
            logger.error("Cache get error: %s", exc)
            return None
        if not cached:
            return None
        try:
            return EventCollection.from_geojson(json.loads(cached))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Discarding unreadable feed cache entry: %s", exc)
            return None
