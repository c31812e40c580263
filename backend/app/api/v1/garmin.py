"""Garmin Connect: connect (encrypted credentials), status, disconnect, activities, weekly stats refresh."""

import logging
from datetime import date, datetime, time, timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import ensure_can_view_athlete, get_current_user
from app.config import settings
from app.db.session import get_db
from app.models.user import User
from app.models.weekly_stat import WeeklyStat
from app.schemas.garmin import ConnectBody, RawActivity, SyncBody
from app.services import garmin_store
from app.services.audit import GARMIN_CONNECT, GARMIN_DISCONNECT, client_ip, log_action
from app.services.garmin_activities import fetch_activities
from app.services.garmin_errors import (
    GarminError,
    InvalidCredentials,
    NotConnected,
    UnsupportedAccount,
)
from app.services.garmin_session import GarminSessionManager, get_session_manager
from app.services.garmin_sync import refresh_weekly_stats
from app.services.stats_calculator import format_pace

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/garmin", tags=["garmin"])

DEFAULT_ACTIVITY_DAYS = 30


def _http_error(e: GarminError) -> HTTPException:
    if isinstance(e, (InvalidCredentials, UnsupportedAccount)):
        return HTTPException(status_code=401, detail=e.message)
    if isinstance(e, NotConnected):
        return HTTPException(status_code=400, detail=e.message)
    return HTTPException(status_code=503, detail=e.message)


def weekly_stat_to_response(row: WeeklyStat) -> dict:
    return {
        "id": row.id,
        "athlete_id": row.athlete_id,
        "week_start": row.week_start.isoformat(),
        "total_distance_km": row.total_distance_km,
        "total_runs": row.total_runs,
        "avg_pace_min_km": row.avg_pace_min_km,
        "avg_pace_display": format_pace(row.avg_pace_min_km) if row.avg_pace_min_km else None,
        "total_time_minutes": row.total_time_minutes,
    }


def _activity_to_response(a: RawActivity) -> dict:
    distance_km = round(a.distance_m / 1000, 2)
    duration_minutes = round(a.duration_sec / 60)
    return {
        "id": a.activity_id,
        "name": a.name,
        "type": a.activity_type,
        "start_time": a.start_time.isoformat() if a.start_time else None,
        "distance_km": distance_km,
        "duration_minutes": duration_minutes,
        "avg_pace_min_km": round(a.duration_sec / 60 / distance_km, 2) if distance_km > 0 else None,
    }


@router.get("/status")
async def get_garmin_status(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[GarminSessionManager, Depends(get_session_manager)],
) -> dict:
    """Whether Garmin is connected for the current user (never returns credentials)."""
    status = await manager.get_connection_status(session, user.id)
    if not status.connected:
        return {"connected": False}
    return {
        "connected": True,
        "garmin_user_id": status.garmin_user_id,
        "connected_at": status.connected_at.isoformat() if status.connected_at else None,
        "last_sync_at": status.last_sync_at.isoformat() if status.last_sync_at else None,
        # 0 after a sync: the last refresh stored nothing
        "weekly_stats_count": await garmin_store.count_weekly_stats(session, user.id),
    }


@router.post(
    "/connect",
    responses={
        400: {"description": "Username and password are required"},
        401: {"description": "Invalid credentials or MFA-protected account"},
        503: {"description": "Garmin unavailable"},
    },
)
async def connect_garmin(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[GarminSessionManager, Depends(get_session_manager)],
    body: ConnectBody,
) -> dict:
    """Log in to Garmin, store encrypted credentials (replacing any previous connection), seed weekly stats."""
    username = (body.username or "").strip()
    if not username or not body.password:
        raise HTTPException(status_code=400, detail="Username and password are required")
    try:
        garmin_user_id = await manager.connect(session, user.id, username, body.password)
    except GarminError as e:
        raise _http_error(e) from e
    await log_action(
        session,
        user.id,
        GARMIN_CONNECT,
        resource_id=user.id,
        details={"garmin_user_id": garmin_user_id},
        ip_address=client_ip(request),
    )

    stats_count = 0
    stats_error = None
    try:
        stats = await refresh_weekly_stats(session, manager, user.id, settings.stats_weeks)
        stats_count = len(stats)
    except GarminError as e:
        logger.warning("Initial Garmin stats refresh failed for user_id=%s: %s", user.id, e.message)
        stats_error = e.message
    out = {
        "connected": True,
        "garmin_user_id": garmin_user_id,
        "message": "Garmin connected successfully",
        "stats_count": stats_count,
    }
    if stats_error:
        out["stats_error"] = stats_error
    return out


@router.post("/disconnect")
async def disconnect_garmin(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[GarminSessionManager, Depends(get_session_manager)],
) -> dict:
    """Remove stored credentials, tokens and weekly stats. Idempotent."""
    await manager.disconnect(session, user.id)
    await log_action(session, user.id, GARMIN_DISCONNECT, resource_id=user.id, ip_address=client_ip(request))
    return {"message": "Garmin disconnected"}


@router.get("/stats/weekly", responses={403: {"description": "Access denied"}})
async def get_weekly_stats(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    athlete_id: int | None = None,
) -> list[dict]:
    """Stored weekly stats, most recent week first."""
    athlete_id = athlete_id or user.id
    await ensure_can_view_athlete(session, user, athlete_id)
    rows = await garmin_store.list_weekly_stats(session, athlete_id, limit=settings.stats_weeks)
    return [weekly_stat_to_response(row) for row in rows]


@router.get("/activities", responses={400: {"description": "Not connected"}, 503: {"description": "Garmin unavailable"}})
async def get_activities(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[GarminSessionManager, Depends(get_session_manager)],
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = Query(default=50, ge=1, le=200),
) -> dict:
    """Recent Garmin activities in [start_date, end_date] (default: last 30 days)."""
    end_date = end_date or date.today()
    start_date = start_date or (end_date - timedelta(days=DEFAULT_ACTIVITY_DAYS))
    start = datetime.combine(start_date, time.min)
    end = datetime.combine(end_date, time.max)
    try:
        activities = await fetch_activities(session, manager, user.id, start, end)
    except GarminError as e:
        raise _http_error(e) from e
    return {
        "activities": [_activity_to_response(a) for a in activities[:limit]],
        "count": len(activities),
    }


@router.post("/refresh", responses={400: {"description": "Not connected"}, 503: {"description": "Garmin unavailable"}})
async def refresh_stats(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[GarminSessionManager, Depends(get_session_manager)],
) -> dict:
    """Fetch fresh activities and replace the stored weekly stats."""
    status = await manager.get_connection_status(session, user.id)
    if not status.connected:
        raise HTTPException(status_code=400, detail="Garmin not connected")
    try:
        stats = await refresh_weekly_stats(session, manager, user.id, settings.stats_weeks)
    except GarminError as e:
        raise _http_error(e) from e
    return {"message": "Stats refreshed from Garmin", "stats_count": len(stats)}


@router.post("/sync", responses={400: {"description": "Not connected"}})
async def sync_runs(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[GarminSessionManager, Depends(get_session_manager)],
    body: SyncBody | None = None,
) -> dict:
    """Acknowledge runs to push to Garmin. Workout upload is not supported by python-garminconnect."""
    status = await manager.get_connection_status(session, user.id)
    if not status.connected:
        raise HTTPException(status_code=400, detail="Garmin not connected")
    return {
        "synced": len(body.run_ids) if body else 0,
        "message": "Workout sync has limited support with unofficial Garmin API",
    }
