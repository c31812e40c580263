"""Runs calendar: coaches schedule runs, athletes mark them complete."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import ensure_can_view_athlete, get_current_user, require_coach
from app.db.session import get_db
from app.models.run import Run
from app.models.user import User
from app.schemas.run import RunCreate, RunUpdate

router = APIRouter(prefix="/runs", tags=["runs"])


def _row_to_response(row: Run, athlete_name: str | None = None) -> dict:
    return {
        "id": row.id,
        "athlete_id": row.athlete_id,
        "athlete_name": athlete_name,
        "date": row.date.isoformat() if row.date else None,
        "title": row.title,
        "run_type": row.run_type,
        "distance_km": row.distance_km,
        "notes": row.notes,
        "completed": row.completed,
    }


async def _get_run_with_name(session: AsyncSession, run_id: int) -> tuple[Run, str | None]:
    r = await session.execute(
        select(Run, User.name).join(User, User.id == Run.athlete_id).where(Run.id == run_id)
    )
    row = r.first()
    if row is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return row[0], row[1]


@router.get("", summary="List runs", responses={401: {"description": "Not authenticated"}})
async def list_runs(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    start_date: date | None = None,
    end_date: date | None = None,
    athlete_id: int | None = None,
) -> list[dict]:
    """Athletes get their own runs; coaches one athlete's runs or the whole team's."""
    q = select(Run, User.name).join(User, User.id == Run.athlete_id)
    if not user.is_coach:
        q = q.where(Run.athlete_id == user.id)
    elif athlete_id is not None:
        await ensure_can_view_athlete(session, user, athlete_id)
        q = q.where(Run.athlete_id == athlete_id)
    else:
        q = q.where(or_(User.coach_id == user.id, User.id == user.id))
    if start_date:
        q = q.where(Run.date >= start_date)
    if end_date:
        q = q.where(Run.date <= end_date)
    r = await session.execute(q.order_by(Run.date.asc(), Run.id.asc()))
    return [_row_to_response(run, name) for run, name in r.all()]


@router.get("/{run_id}", summary="Get a run", responses={403: {"description": "Access denied"}, 404: {"description": "Run not found"}})
async def get_run(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    run_id: int,
) -> dict:
    run, name = await _get_run_with_name(session, run_id)
    await ensure_can_view_athlete(session, user, run.athlete_id)
    return _row_to_response(run, name)


@router.post("", status_code=201, summary="Schedule a run", responses={403: {"description": "Coach only"}})
async def create_run(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    body: RunCreate,
) -> dict:
    await ensure_can_view_athlete(session, coach, body.athlete_id)
    r = await session.execute(select(User.name).where(User.id == body.athlete_id))
    athlete_name = r.scalar_one_or_none()
    if athlete_name is None:
        raise HTTPException(status_code=404, detail="Athlete not found")
    run = Run(
        athlete_id=body.athlete_id,
        date=body.date,
        title=body.title,
        run_type=body.run_type or "easy",
        distance_km=body.distance_km,
        notes=body.notes,
        completed=False,
    )
    session.add(run)
    await session.flush()
    await session.refresh(run)
    return _row_to_response(run, athlete_name)


@router.put("/{run_id}", summary="Update a run", responses={403: {"description": "Access denied"}, 404: {"description": "Run not found"}})
async def update_run(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    run_id: int,
    body: RunUpdate,
) -> dict:
    """Athletes may only toggle `completed` on their own runs; coaches may change any field."""
    run, name = await _get_run_with_name(session, run_id)
    await ensure_can_view_athlete(session, user, run.athlete_id)
    if not user.is_coach:
        run.completed = bool(body.completed)
    else:
        for field, value in body.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(run, field, value)
    await session.flush()
    return _row_to_response(run, name)


@router.delete("/{run_id}", summary="Delete a run", responses={403: {"description": "Coach only"}, 404: {"description": "Run not found"}})
async def delete_run(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    run_id: int,
) -> dict:
    run, _ = await _get_run_with_name(session, run_id)
    await ensure_can_view_athlete(session, coach, run.athlete_id)
    await session.delete(run)
    await session.flush()
    return {"message": "Run deleted"}
