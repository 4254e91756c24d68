# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional


class RiskLevel(str, Enum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    CRITICAL = "Critical"


@dataclass
class Event:
    """A single earthquake feature from the USGS GeoJSON feed."""

    id: str
    magnitude: float
    place: str
    time: int  # epoch milliseconds
    updated: int  # epoch milliseconds
    depth: float
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_feature(cls, feature: dict) -> "Event":
        properties = feature.get("properties") or {}
        coordinates = (feature.get("geometry") or {}).get("coordinates") or []
        depth = coordinates[2] if len(coordinates) > 2 else None
        return cls(
            id=str(feature["id"]),
            magnitude=properties.get("mag"),
            place=properties.get("place") or "",
            time=properties.get("time"),
            updated=properties.get("updated"),
            depth=depth,
            raw=feature,
        )

    @property
    def signature(self) -> str:
        # Changes when a new event appears or USGS revises an existing one.
        return f"{self.id}-{self.updated}"

    def iso_time(self) -> str:
        moment = datetime.fromtimestamp(self.time / 1000, tz=timezone.utc)
        return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"

    def to_prompt_dict(self) -> dict:
        return {
            "mag": self.magnitude,
            "place": self.place,
            "time": self.iso_time(),
            "depth": self.depth,
        }


@dataclass
class EventCollection:
    """
    Ordered earthquake collection, freshest first.

    The order is the upstream's (orderby=time) and is never changed here: the
    first event is the one used for analysis signatures.
    """

    events: List[Event] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_geojson(cls, payload: dict) -> "EventCollection":
        features = payload.get("features")
        if not isinstance(features, list):
            raise ValueError("GeoJSON payload has no feature list")
        return cls(
            events=[Event.from_feature(feature) for feature in features],
            metadata=payload.get("metadata") or {},
            raw=payload,
        )

    @classmethod
    def from_features(cls, features: list[dict]) -> "EventCollection":
        return cls.from_geojson({"type": "FeatureCollection", "features": features})

    def to_geojson(self) -> dict:
        if self.raw:
            return self.raw
        return {
            "type": "FeatureCollection",
            "metadata": self.metadata,
            "features": [event.raw for event in self.events],
        }

    @property
    def freshest(self) -> Optional[Event]:
        return self.events[0] if self.events else None

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self):
        return iter(self.events)


@dataclass
class AlertPreference:
    id: str
    min_magnitude: float
    notifications_enabled: bool
    location_name: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    discord_webhook: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "locationName": self.location_name,
            "phoneNumber": self.phone_number,
            "email": self.email,
            "discordWebhook": self.discord_webhook,
            "minMagnitude": self.min_magnitude,
            "notificationsEnabled": self.notifications_enabled,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
