"""Athletes: a coach's team, athlete detail (recent weekly stats + upcoming runs), remove from team."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import ensure_can_view_athlete, get_current_user, require_coach
from app.api.v1.garmin import weekly_stat_to_response
from app.db.session import get_db
from app.models.garmin_connection import GarminConnection
from app.models.run import Run
from app.models.user import User
from app.services import garmin_store

router = APIRouter(prefix="/athletes", tags=["athletes"])

DETAIL_STATS_WEEKS = 4
DETAIL_UPCOMING_RUNS = 7


@router.get("", summary="List my athletes", responses={403: {"description": "Coach only"}})
async def list_athletes(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
) -> list[dict]:
    completed_q = (
        select(func.count(Run.id))
        .where(Run.athlete_id == User.id, Run.completed.is_(True))
        .correlate(User)
        .scalar_subquery()
    )
    total_q = select(func.count(Run.id)).where(Run.athlete_id == User.id).correlate(User).scalar_subquery()
    r = await session.execute(
        select(
            User,
            GarminConnection.id.label("garmin_id"),
            completed_q.label("completed_runs"),
            total_q.label("total_runs"),
        )
        .outerjoin(GarminConnection, GarminConnection.user_id == User.id)
        .where(User.coach_id == coach.id)
        .order_by(User.name.asc())
    )
    return [
        {
            "id": u.id,
            "email": u.email,
            "name": u.name,
            "created_at": u.created_at.isoformat() if u.created_at else None,
            "garmin_connected": garmin_id is not None,
            "completed_runs": completed_runs or 0,
            "total_runs": total_runs or 0,
        }
        for u, garmin_id, completed_runs, total_runs in r.all()
    ]


@router.get("/{athlete_id}", summary="Athlete detail", responses={403: {"description": "Access denied"}, 404: {"description": "Athlete not found"}})
async def get_athlete(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    athlete_id: int,
) -> dict:
    await ensure_can_view_athlete(session, user, athlete_id)
    r = await session.execute(
        select(User, GarminConnection.id)
        .outerjoin(GarminConnection, GarminConnection.user_id == User.id)
        .where(User.id == athlete_id)
    )
    row = r.first()
    if row is None:
        raise HTTPException(status_code=404, detail="Athlete not found")
    athlete, garmin_id = row
    stats = await garmin_store.list_weekly_stats(session, athlete_id, limit=DETAIL_STATS_WEEKS)
    runs_r = await session.execute(
        select(Run)
        .where(Run.athlete_id == athlete_id, Run.date >= date.today())
        .order_by(Run.date.asc())
        .limit(DETAIL_UPCOMING_RUNS)
    )
    return {
        "id": athlete.id,
        "email": athlete.email,
        "name": athlete.name,
        "coach_id": athlete.coach_id,
        "created_at": athlete.created_at.isoformat() if athlete.created_at else None,
        "garmin_connected": garmin_id is not None,
        "weekly_stats": [weekly_stat_to_response(s) for s in stats],
        "upcoming_runs": [
            {
                "id": run.id,
                "date": run.date.isoformat(),
                "title": run.title,
                "run_type": run.run_type,
                "distance_km": run.distance_km,
                "completed": run.completed,
            }
            for run in runs_r.scalars().all()
        ],
    }


@router.delete("/{athlete_id}", summary="Remove athlete from team", responses={404: {"description": "Athlete not found"}})
async def remove_athlete(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    athlete_id: int,
) -> dict:
    r = await session.execute(select(User).where(User.id == athlete_id, User.coach_id == coach.id))
    athlete = r.scalar_one_or_none()
    if not athlete:
        raise HTTPException(status_code=404, detail="Athlete not found")
    athlete.coach_id = None
    await session.flush()
    return {"message": "Athlete removed from team"}
