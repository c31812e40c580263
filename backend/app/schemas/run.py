"""Pydantic schemas for the runs calendar."""

import datetime
from datetime import date

from pydantic import BaseModel, Field


class RunCreate(BaseModel):
    """Body for scheduling a run (coach only)."""

    athlete_id: int
    date: date
    title: str = Field(..., min_length=1, max_length=255)
    run_type: str = Field("easy", max_length=32)
    distance_km: float | None = Field(None, ge=0)
    notes: str | None = None


class RunUpdate(BaseModel):
    """Body for updating a run (partial). Athletes may only send `completed`."""

    date: datetime.date | None = None
    title: str | None = Field(None, min_length=1, max_length=255)
    run_type: str | None = Field(None, max_length=32)
    distance_km: float | None = Field(None, ge=0)
    notes: str | None = None
    completed: bool | None = None
