"""
Subscriber model and preference normalization.

Stored preferences come from several generations of the settings UI, so
preferred_send_times may be a JSON string, a list, or a list with some
malformed entries. Normalization always yields a non-empty list: invalid
entries are dropped and an empty result falls back to the default slot.
"""

import json
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from pydantic import BaseModel, Field, field_validator

logger = structlog.get_logger()

DEFAULT_TIMEZONE = "UTC"


class PreferredSendTime(BaseModel):
    """A weekly delivery slot in the subscriber's local time."""

    day_of_week: int = Field(ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    hour: int = Field(ge=0, le=23)


DEFAULT_PREFERRED_SEND_TIMES: tuple[PreferredSendTime, ...] = (
    PreferredSendTime(day_of_week=5, hour=9),
)


class SelectedCity(BaseModel):
    name: str
    state: str = ""


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not number.is_integer():
        return None
    return int(number)


def normalize_send_times(raw: Any) -> list[PreferredSendTime]:
    """
    Normalize stored send-time preferences.

    Accepts a JSON string or a list of {"dayOfWeek", "hour"} mappings
    (snake_case keys and PreferredSendTime instances also work).
    Returns the default slot when nothing valid remains.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raw = None

    normalized: list[PreferredSendTime] = []

    if isinstance(raw, list):
        for entry in raw:
            if isinstance(entry, PreferredSendTime):
                normalized.append(entry)
                continue
            if not isinstance(entry, dict):
                continue

            day = _coerce_int(entry.get("dayOfWeek", entry.get("day_of_week")))
            hour = _coerce_int(entry.get("hour"))
            if day is None or hour is None:
                continue
            if 0 <= day <= 6 and 0 <= hour <= 23:
                normalized.append(PreferredSendTime(day_of_week=day, hour=hour))

    return normalized or list(DEFAULT_PREFERRED_SEND_TIMES)


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Return the zone for name, falling back to UTC when unknown or missing."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone, using UTC", timezone=name)
    return ZoneInfo(DEFAULT_TIMEZONE)


class Subscriber(BaseModel):
    """A newsletter subscriber with delivery and geography preferences."""

    id: int
    email: str
    first_name: str = ""
    is_active: bool = True
    interests: str | None = None
    timezone: str | None = None
    preferred_send_times: list[PreferredSendTime] = Field(
        default_factory=lambda: list(DEFAULT_PREFERRED_SEND_TIMES)
    )
    selected_counties: list[str] = Field(default_factory=list)
    selected_cities: list[SelectedCity] = Field(default_factory=list)
    last_sent_at: datetime | None = None

    @field_validator("preferred_send_times", mode="before")
    @classmethod
    def _normalize_send_times(cls, value: Any) -> list[PreferredSendTime]:
        return normalize_send_times(value)

    @field_validator("selected_counties", mode="before")
    @classmethod
    def _normalize_counties(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                return []
        if not isinstance(value, list):
            return []
        return [county for county in value if isinstance(county, str) and county]

    @field_validator("selected_cities", mode="before")
    @classmethod
    def _normalize_cities(cls, value: Any) -> list[dict]:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                return []
        if not isinstance(value, list):
            return []
        cities = []
        for city in value:
            if isinstance(city, str) and city:
                cities.append({"name": city})
            elif isinstance(city, SelectedCity):
                cities.append(city)
            elif isinstance(city, dict):
                name = city.get("name")
                # Entries without a usable name are dropped, not the subscriber
                if isinstance(name, str) and name.strip():
                    state = city.get("state")
                    cities.append({"name": name, "state": state if isinstance(state, str) else ""})
        return cities

    @property
    def zone(self) -> ZoneInfo:
        return resolve_timezone(self.timezone)

    @property
    def city_names(self) -> list[str]:
        return [city.name for city in self.selected_cities]


def format_interests(interests: str | None) -> str:
    """
    Render stored interests for display.

    Interests are saved either as free text or as a JSON array of sentences.
    """
    if not interests:
        return ""
    try:
        parsed = json.loads(interests)
    except ValueError:
        return interests
    if isinstance(parsed, list):
        return " ".join(str(item) for item in parsed)
    return interests
