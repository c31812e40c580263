"""Persistence for Garmin connections and weekly stats. Each public write commits on its own."""

from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.garmin_connection import GarminConnection
from app.models.weekly_stat import WeeklyStat
from app.schemas.garmin import WeeklyStatData


async def get_connection(session: AsyncSession, user_id: int) -> GarminConnection | None:
    r = await session.execute(select(GarminConnection).where(GarminConnection.user_id == user_id))
    return r.scalar_one_or_none()


async def save_connection(
    session: AsyncSession,
    user_id: int,
    *,
    encrypted_username: str,
    encrypted_password: str,
    encrypted_session_tokens: str | None,
    garmin_user_id: str | None,
) -> GarminConnection:
    """Write a fresh connection row; any previous row for the user is removed first."""
    await session.execute(delete(GarminConnection).where(GarminConnection.user_id == user_id))
    await session.flush()
    conn = GarminConnection(
        user_id=user_id,
        encrypted_username=encrypted_username,
        encrypted_password=encrypted_password,
        encrypted_session_tokens=encrypted_session_tokens,
        garmin_user_id=garmin_user_id,
        connected_at=datetime.now(timezone.utc),
    )
    session.add(conn)
    await session.commit()
    return conn


async def save_session_tokens(session: AsyncSession, user_id: int, encrypted_session_tokens: str | None) -> None:
    conn = await get_connection(session, user_id)
    if conn is None:
        return
    conn.encrypted_session_tokens = encrypted_session_tokens
    await session.commit()


async def mark_synced(session: AsyncSession, user_id: int) -> None:
    conn = await get_connection(session, user_id)
    if conn is None:
        return
    conn.last_sync_at = datetime.now(timezone.utc)
    await session.commit()


async def delete_connection(session: AsyncSession, user_id: int) -> bool:
    """Remove connection row and the weekly stats derived from it. Returns True if a row existed."""
    r = await session.execute(delete(GarminConnection).where(GarminConnection.user_id == user_id))
    await session.execute(delete(WeeklyStat).where(WeeklyStat.athlete_id == user_id))
    await session.commit()
    return (r.rowcount or 0) > 0


async def list_connected_user_ids(session: AsyncSession) -> list[int]:
    r = await session.execute(select(GarminConnection.user_id))
    return [row[0] for row in r.all()]


async def replace_weekly_stats(session: AsyncSession, athlete_id: int, stats: Sequence[WeeklyStatData]) -> int:
    """Delete all weekly stats for the athlete and insert `stats`, in one transaction."""
    try:
        await session.execute(delete(WeeklyStat).where(WeeklyStat.athlete_id == athlete_id))
        session.add_all(
            WeeklyStat(
                athlete_id=athlete_id,
                week_start=s.week_start,
                total_distance_km=s.total_distance_km,
                total_runs=s.total_runs,
                avg_pace_min_km=s.avg_pace_min_km,
                total_time_minutes=s.total_time_minutes,
            )
            for s in stats
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return len(stats)


async def list_weekly_stats(session: AsyncSession, athlete_id: int, limit: int = 8) -> list[WeeklyStat]:
    r = await session.execute(
        select(WeeklyStat)
        .where(WeeklyStat.athlete_id == athlete_id)
        .order_by(WeeklyStat.week_start.desc())
        .limit(limit)
    )
    return list(r.scalars().all())


async def count_weekly_stats(session: AsyncSession, athlete_id: int) -> int:
    r = await session.execute(select(func.count(WeeklyStat.id)).where(WeeklyStat.athlete_id == athlete_id))
    return r.scalar() or 0
