"""
Identity-resolving upsert for alert subscriptions.

A write is matched to an existing subscription by trying each identity
strategy in IDENTITY_STRATEGIES order (phone number, then email). The first
match is updated in place with non-destructive merge semantics; no match
creates a new subscription.
"""

from __future__ import annotations

import logging
import math
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Iterator, Optional

from backend.db import DbClient, new_preference_id
from backend.errors import IdentityConflictError, ValidationError
from shared.types import AlertPreference

logger = logging.getLogger(__name__)

MIN_MAGNITUDE = 0.0
MAX_MAGNITUDE = 10.0


@dataclass
class AlertPreferenceInput:
    min_magnitude: float
    notifications_enabled: bool
    location_name: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    discord_webhook: Optional[str] = None


@dataclass(frozen=True)
class UpsertResult:
    id: str
    merged: bool


@dataclass(frozen=True)
class IdentityStrategy:
    """One unique key an incoming write can be matched on."""

    field: str
    lookup: Callable[[DbClient, str], Optional[AlertPreference]]

    def value(self, pref: AlertPreferenceInput) -> Optional[str]:
        return _clean(getattr(pref, self.field))


# Resolution order is part of the contract: phone first, then email.
IDENTITY_STRATEGIES: tuple[IdentityStrategy, ...] = (
    IdentityStrategy("phone_number", lambda db, value: db.find_by_phone(value)),
    IdentityStrategy("email", lambda db, value: db.find_by_email(value)),
)

_FIELD_LABELS = {"phone_number": "phoneNumber", "email": "email"}


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class IdentityLocks:
    """Short-lived per-identity locks for the read-decide-write sequence."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}

    @contextmanager
    def hold(self, keys: Iterable[str]) -> Iterator[None]:
        acquired: list[tuple[str, threading.Lock]] = []
        try:
            # Sorted acquisition keeps two multi-key writers from deadlocking.
            for key in sorted(set(keys)):
                lock = self._checkout(key)
                lock.acquire()
                acquired.append((key, lock))
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._checkin(key)

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]


class PreferenceStore:
    def __init__(
        self,
        db: DbClient,
        strategies: tuple[IdentityStrategy, ...] = IDENTITY_STRATEGIES,
    ):
        self.db = db
        self.strategies = strategies
        self._locks = IdentityLocks()

    def upsert(self, pref: AlertPreferenceInput) -> UpsertResult:
        self._validate(pref)
        identities = [
            (strategy, strategy.value(pref))
            for strategy in self.strategies
            if strategy.value(pref)
        ]
        lock_keys = [f"{strategy.field}:{value}" for strategy, value in identities]

        with self._locks.hold(lock_keys):
            for strategy, value in identities:
                existing = strategy.lookup(self.db, value)
                if existing is None:
                    continue
                # Writes matched through different identities still meet on
                # the record itself; merge against a re-read under its lock.
                with self._locks.hold([f"id:{existing.id}"]):
                    current = self.db.get_preference(existing.id) or existing
                    self._check_cross_identity(current, strategy, identities)
                    updated = self.db.update_preference(self._merge(current, pref))
                logger.info(
                    "Updated alert preference %s matched by %s", updated.id, strategy.field
                )
                return UpsertResult(id=updated.id, merged=True)

            created = self.db.create_preference(
                AlertPreference(
                    id=new_preference_id(),
                    location_name=_clean(pref.location_name),
                    phone_number=_clean(pref.phone_number),
                    email=_clean(pref.email),
                    discord_webhook=_clean(pref.discord_webhook),
                    min_magnitude=float(pref.min_magnitude),
                    notifications_enabled=pref.notifications_enabled,
                )
            )
            logger.info("Created alert preference %s", created.id)
            return UpsertResult(id=created.id, merged=False)

    def _check_cross_identity(
        self,
        target: AlertPreference,
        matched: IdentityStrategy,
        identities: list[tuple[IdentityStrategy, str]],
    ) -> None:
        # A later identity owned by another subscription would be attached to
        # the wrong person and break its uniqueness; refuse the write instead.
        for strategy, value in identities:
            if strategy is matched:
                continue
            owner = strategy.lookup(self.db, value)
            if owner is not None and owner.id != target.id:
                label = _FIELD_LABELS.get(strategy.field, strategy.field)
                raise IdentityConflictError(
                    "Identity belongs to a different subscription",
                    details={label: "already registered to another subscription"},
                )

    @staticmethod
    def _merge(existing: AlertPreference, pref: AlertPreferenceInput) -> AlertPreference:
        return replace(
            existing,
            location_name=_clean(pref.location_name) or existing.location_name,
            phone_number=_clean(pref.phone_number) or existing.phone_number,
            email=_clean(pref.email) or existing.email,
            discord_webhook=_clean(pref.discord_webhook) or existing.discord_webhook,
            min_magnitude=float(pref.min_magnitude),
            notifications_enabled=pref.notifications_enabled,
        )

    @staticmethod
    def _validate(pref: AlertPreferenceInput) -> None:
        details = {}
        magnitude = pref.min_magnitude
        if (
            isinstance(magnitude, bool)
            or not isinstance(magnitude, (int, float))
            or math.isnan(magnitude)
            or not MIN_MAGNITUDE <= magnitude <= MAX_MAGNITUDE
        ):
            details["minMagnitude"] = (
                f"must be a number between {MIN_MAGNITUDE:g} and {MAX_MAGNITUDE:g}"
            )
        if not isinstance(pref.notifications_enabled, bool):
            details["notificationsEnabled"] = "must be a boolean"
        if details:
            raise ValidationError("Invalid alert preference", details=details)
