"""Invites: coaches invite athletes by email; athletes register with the invite token."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_coach
from app.config import settings
from app.db.session import get_db
from app.models.invite import Invite
from app.models.user import User

router = APIRouter(prefix="/invites", tags=["invites"])


class InviteBody(BaseModel):
    email: str


def _invite_url(token: str) -> str:
    return f"{settings.app_url.rstrip('/')}/register?invite={token}"


def _row_to_response(row: Invite) -> dict:
    return {
        "id": row.id,
        "email": row.email,
        "token": row.token,
        "used": row.used,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "expires_at": row.expires_at.isoformat() if row.expires_at else None,
    }


@router.post(
    "",
    status_code=201,
    summary="Invite an athlete",
    responses={400: {"description": "User exists or invite already pending"}, 403: {"description": "Coach only"}},
)
async def create_invite(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    body: InviteBody,
) -> dict:
    email = (body.email or "").strip().lower()
    if not email:
        raise HTTPException(status_code=400, detail="Email required")
    r = await session.execute(select(User.id).where(User.email == email))
    if r.scalar_one_or_none() is not None:
        raise HTTPException(status_code=400, detail="User with this email already exists")
    now = datetime.now(timezone.utc)
    r = await session.execute(
        select(Invite.id).where(
            Invite.email == email,
            Invite.coach_id == coach.id,
            Invite.used.is_(False),
            Invite.expires_at > now,
        )
    )
    if r.first() is not None:
        raise HTTPException(status_code=400, detail="Invite already sent to this email")
    invite = Invite(
        coach_id=coach.id,
        email=email,
        token=secrets.token_urlsafe(24),
        expires_at=now + timedelta(days=settings.invite_expire_days),
        created_at=now,
    )
    session.add(invite)
    await session.flush()
    await session.refresh(invite)
    return {**_row_to_response(invite), "invite_url": _invite_url(invite.token)}


@router.get("", summary="List my invites", responses={403: {"description": "Coach only"}})
async def list_invites(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
) -> list[dict]:
    r = await session.execute(
        select(Invite).where(Invite.coach_id == coach.id).order_by(Invite.created_at.desc(), Invite.id.desc())
    )
    return [_row_to_response(row) for row in r.scalars().all()]


@router.get(
    "/verify/{token}",
    summary="Check an invite token (public)",
    responses={404: {"description": "Invalid or expired invite"}},
)
async def verify_invite(
    session: Annotated[AsyncSession, Depends(get_db)],
    token: str,
) -> dict:
    r = await session.execute(
        select(Invite, User.name)
        .join(User, User.id == Invite.coach_id)
        .where(
            Invite.token == token,
            Invite.used.is_(False),
            Invite.expires_at > datetime.now(timezone.utc),
        )
    )
    row = r.first()
    if row is None:
        raise HTTPException(status_code=404, detail="Invalid or expired invite")
    invite, coach_name = row
    return {
        "email": invite.email,
        "coach_name": coach_name,
        "expires_at": invite.expires_at.isoformat() if invite.expires_at else None,
    }


@router.delete("/{invite_id}", summary="Delete an invite", responses={404: {"description": "Invite not found"}})
async def delete_invite(
    session: Annotated[AsyncSession, Depends(get_db)],
    coach: Annotated[User, Depends(require_coach)],
    invite_id: int,
) -> dict:
    r = await session.execute(select(Invite).where(Invite.id == invite_id, Invite.coach_id == coach.id))
    invite = r.scalar_one_or_none()
    if not invite:
        raise HTTPException(status_code=404, detail="Invite not found")
    await session.delete(invite)
    await session.flush()
    return {"message": "Invite deleted"}
