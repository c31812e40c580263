"""Pydantic schemas for the Garmin integration: raw activities, weekly stats, connection status."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


class RawActivity(BaseModel):
    """Single activity as listed by the provider. Transient: never stored locally."""

    activity_id: str | None = None
    name: str | None = None
    activity_type: str = ""  # provider type key, e.g. running, trail_running, cycling
    start_time: datetime | None = None  # local start time when the provider gives one, else UTC
    distance_m: float = 0.0
    duration_sec: float = 0.0
    raw: dict[str, Any] | None = None


class WeeklyStatData(BaseModel):
    """Aggregated running summary for one Monday-aligned week."""

    week_start: date
    total_distance_km: float
    total_runs: int
    avg_pace_min_km: float  # distance-weighted
    total_time_minutes: int


class ConnectionStatus(BaseModel):
    connected: bool
    garmin_user_id: str | None = None
    connected_at: datetime | None = None
    last_sync_at: datetime | None = None


class ConnectBody(BaseModel):
    username: str = ""
    password: str = ""


class SyncBody(BaseModel):
    run_ids: list[int] = Field(default_factory=list)
