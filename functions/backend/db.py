"""
Database abstraction for alert preferences: Postgres (SQLAlchemy) and an
in-memory test implementation.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import replace
from typing import Dict, Optional, Protocol

from sqlalchemy import Boolean, Column, Float, String, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend.errors import StorageError
from shared.types import AlertPreference


class DbClient(Protocol):
    """Interface for alert preference storage."""

    def find_by_phone(self, phone_number: str) -> Optional[AlertPreference]:
        ...

    def find_by_email(self, email: str) -> Optional[AlertPreference]:
        ...

    def create_preference(self, preference: AlertPreference) -> AlertPreference:
        ...

    def update_preference(self, preference: AlertPreference) -> AlertPreference:
        ...

    def get_preference(self, preference_id: str) -> Optional[AlertPreference]:
        ...

    def list_preferences(self, limit: int = 100) -> list[AlertPreference]:
        ...


def new_preference_id() -> str:
    return uuid.uuid4().hex


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.preferences: Dict[str, AlertPreference] = {}

    def find_by_phone(self, phone_number: str) -> Optional[AlertPreference]:
        for preference in self.preferences.values():
            if preference.phone_number == phone_number:
                return replace(preference)
        return None

    def find_by_email(self, email: str) -> Optional[AlertPreference]:
        for preference in self.preferences.values():
            if preference.email == email:
                return replace(preference)
        return None

    def create_preference(self, preference: AlertPreference) -> AlertPreference:
        self._check_unique(preference)
        self.preferences[preference.id] = replace(preference)
        return replace(preference)

    def update_preference(self, preference: AlertPreference) -> AlertPreference:
        if preference.id not in self.preferences:
            raise StorageError(f"Alert preference {preference.id} not found")
        self._check_unique(preference)
        preference.updated_at = time.time()
        self.preferences[preference.id] = replace(preference)
        return replace(preference)

    def get_preference(self, preference_id: str) -> Optional[AlertPreference]:
        stored = self.preferences.get(preference_id)
        return replace(stored) if stored else None

    def list_preferences(self, limit: int = 100) -> list[AlertPreference]:
        return [replace(p) for p in list(self.preferences.values())[:limit]]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.preferences.clear()

    def _check_unique(self, preference: AlertPreference) -> None:
        # Mirrors the unique constraints on the SQL table.
        for other in self.preferences.values():
            if other.id == preference.id:
                continue
            if preference.phone_number and other.phone_number == preference.phone_number:
                raise StorageError("phoneNumber already registered")
            if preference.email and other.email == preference.email:
                raise StorageError("email already registered")


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_record(self, row: "AlertPreferenceRow") -> AlertPreference:
        return AlertPreference(
            id=row.id,
            location_name=row.location_name,
            phone_number=row.phone_number,
            email=row.email,
            discord_webhook=row.discord_webhook,
            min_magnitude=row.min_magnitude,
            notifications_enabled=row.notifications_enabled,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _find_one(self, column, value: str) -> Optional[AlertPreference]:
        try:
            with self.Session() as session:
                stmt = select(AlertPreferenceRow).where(column == value).limit(1)
                row = session.execute(stmt).scalar_one_or_none()
                return self._to_record(row) if row else None
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def find_by_phone(self, phone_number: str) -> Optional[AlertPreference]:
        return self._find_one(AlertPreferenceRow.phone_number, phone_number)

    def find_by_email(self, email: str) -> Optional[AlertPreference]:
        return self._find_one(AlertPreferenceRow.email, email)

    def create_preference(self, preference: AlertPreference) -> AlertPreference:
        now = time.time()
        try:
            with self.Session() as session:
                row = AlertPreferenceRow(
                    id=preference.id,
                    location_name=preference.location_name,
                    phone_number=preference.phone_number,
                    email=preference.email,
                    discord_webhook=preference.discord_webhook,
                    min_magnitude=preference.min_magnitude,
                    notifications_enabled=preference.notifications_enabled,
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
                session.commit()
                session.refresh(row)
                return self._to_record(row)
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def update_preference(self, preference: AlertPreference) -> AlertPreference:
        try:
            with self.Session() as session:
                row = session.get(AlertPreferenceRow, preference.id)
                if not row:
                    raise StorageError(f"Alert preference {preference.id} not found")
                row.location_name = preference.location_name
                row.phone_number = preference.phone_number
                row.email = preference.email
                row.discord_webhook = preference.discord_webhook
                row.min_magnitude = preference.min_magnitude
                row.notifications_enabled = preference.notifications_enabled
                row.updated_at = time.time()
                session.commit()
                session.refresh(row)
                return self._to_record(row)
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def get_preference(self, preference_id: str) -> Optional[AlertPreference]:
        try:
            with self.Session() as session:
                row = session.get(AlertPreferenceRow, preference_id)
                return self._to_record(row) if row else None
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def list_preferences(self, limit: int = 100) -> list[AlertPreference]:
        try:
            with self.Session() as session:
                rows = (
                    session.query(AlertPreferenceRow)
                    .order_by(AlertPreferenceRow.created_at.asc())
                    .limit(limit)
                    .all()
                )
                return [self._to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc


Base = declarative_base()


class AlertPreferenceRow(Base):
    __tablename__ = "alert_preferences"

    id = Column(String, primary_key=True)
    location_name = Column(String, nullable=True)
    phone_number = Column(String, nullable=True, unique=True)
    email = Column(String, nullable=True, unique=True)
    discord_webhook = Column(String, nullable=True)
    min_magnitude = Column(Float, nullable=False)
    notifications_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)
