"""
Shared fakes for backend tests.
"""

from __future__ import annotations

from backend.errors import CacheUnavailable
from backend.schemas import AnalysisResult
from shared.types import RiskLevel


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenCache:
    """Cache whose backing store is down for every call."""

    def __init__(self):
        self.get_calls = 0
        self.set_calls = 0

    def get(self, key):
        self.get_calls += 1
        raise CacheUnavailable("connection refused")

    def set(self, key, value, ttl_seconds):
        self.set_calls += 1
        raise CacheUnavailable("connection refused")


class FakeGenerator:
    def __init__(self, result: AnalysisResult | None = None, error: Exception | None = None):
        self.result = result or make_result()
        self.error = error
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def generate(self, prompt: str) -> AnalysisResult:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.result


def make_result(summary: str = "Two moderate tremors near Sylhet.", risk=RiskLevel.MODERATE):
    return AnalysisResult(
        summary=summary,
        riskLevel=risk,
        advice="Secure heavy furniture.",
        hotspots=["Sylhet", "Chittagong"],
        depthTrend="Mostly shallow events implying felt tremors.",
        seasonalContext="Slightly above the typical monthly frequency.",
    )


def make_feature(
    event_id: str = "us7000abcd",
    updated: int = 1700000300000,
    *,
    mag: float = 4.6,
    place: str = "12 km NNE of Sylhet, Bangladesh",
    time: int = 1700000000000,
    depth: float = 35.0,
) -> dict:
    return {
        "type": "Feature",
        "id": event_id,
        "properties": {
            "mag": mag,
            "place": place,
            "time": time,
            "updated": updated,
            "url": f"https://earthquake.usgs.gov/earthquakes/eventpage/{event_id}",
            "status": "reviewed",
            "magType": "mb",
        },
        "geometry": {"type": "Point", "coordinates": [91.9, 24.9, depth]},
    }


def make_geojson(features: list[dict]) -> dict:
    return {
        "type": "FeatureCollection",
        "metadata": {
            "generated": 1700000400000,
            "url": "https://earthquake.usgs.gov/fdsnws/event/1/query",
            "title": "USGS Earthquakes",
            "status": 200,
            "api": "1.14.1",
            "count": len(features),
        },
        "features": features,
    }


