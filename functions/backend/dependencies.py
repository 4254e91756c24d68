"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from backend.analysis import AnalysisCache, GeminiAnalysisGenerator
from backend.cache import Cache, InMemoryCache, RedisCache
from backend.config import get_settings
from backend.db import DbClient, InMemoryDbClient, PostgresDbClient
from backend.feed import SourceFetcher
from backend.preferences import PreferenceStore

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_cache_client: Cache | None = None
_source_fetcher: SourceFetcher | None = None
_analysis_cache: AnalysisCache | None = None
_preference_store: PreferenceStore | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so preferences persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_cache_client() -> Cache:
    """
    Return a singleton cache client shared by the feed and analysis services.
    """
    global _cache_client
    if _cache_client:
        return _cache_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.redis_url:
        logger.warning("REDIS_URL not set, using the in-process cache")
        _cache_client = InMemoryCache()
    else:
        _cache_client = RedisCache(
            url=settings.redis_url,
            socket_timeout=settings.redis_socket_timeout_seconds,
        )
    return _cache_client


def get_source_fetcher() -> SourceFetcher:
    global _source_fetcher
    if _source_fetcher:
        return _source_fetcher

    settings = get_settings()
    _source_fetcher = SourceFetcher(
        get_cache_client(),
        url=settings.usgs_feed_url,
        ttl_seconds=settings.feed_cache_ttl_seconds,
        timeout=settings.request_timeout_seconds,
    )
    return _source_fetcher


def get_analysis_cache() -> AnalysisCache:
    global _analysis_cache
    if _analysis_cache:
        return _analysis_cache

    settings = get_settings()
    generator = None
    if settings.gemini_api_key:
        generator = GeminiAnalysisGenerator(
            api_key=settings.gemini_api_key, model=settings.gemini_model
        )
    else:
        logger.warning("GEMINI_API_KEY not set, analysis is disabled")
    _analysis_cache = AnalysisCache(
        get_cache_client(),
        generator,
        ttl_seconds=settings.analysis_cache_ttl_seconds,
    )
    return _analysis_cache


def get_preference_store() -> PreferenceStore:
    global _preference_store
    if _preference_store:
        return _preference_store
    _preference_store = PreferenceStore(get_db_client())
    return _preference_store
