"""FastAPI dependencies: current user from JWT, coach-only access, athlete visibility."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import decode_token
from app.db.session import get_db
from app.models.user import User


async def get_current_user(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    token = auth_header[7:].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    user_id_str = payload.get("sub")
    if not user_id_str:
        raise HTTPException(status_code=401, detail="Invalid token")
    try:
        user_id = int(user_id_str)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")
    r = await session.execute(select(User).where(User.id == user_id))
    user = r.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def require_coach(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Require coach role. Raises 403 otherwise."""
    if not user.is_coach:
        raise HTTPException(status_code=403, detail="Coach access required")
    return user


async def ensure_can_view_athlete(session: AsyncSession, user: User, athlete_id: int) -> None:
    """Athletes see only themselves; coaches see themselves and athletes on their team. Raises 403."""
    if athlete_id == user.id:
        return
    if not user.is_coach:
        raise HTTPException(status_code=403, detail="Access denied")
    r = await session.execute(select(User.coach_id).where(User.id == athlete_id))
    coach_id = r.scalar_one_or_none()
    if coach_id != user.id:
        raise HTTPException(status_code=403, detail="Access denied")
