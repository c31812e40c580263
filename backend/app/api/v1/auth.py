"""Auth: register coach, register athlete via invite, login, me."""

import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.config import settings
from app.core.auth import create_access_token, hash_password, verify_password
from app.db.session import get_db
from app.models.invite import Invite
from app.models.user import ROLE_ATHLETE, ROLE_COACH, User

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterBody(BaseModel):
    email: str
    password: str
    name: str


class RegisterAthleteBody(RegisterBody):
    invite_token: str


class LoginBody(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: int
    email: str
    name: str
    role: str
    coach_id: int | None = None


class TokenResponse(BaseModel):
    token: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until access token expires
    user: UserOut


def _user_out(user: User) -> UserOut:
    return UserOut(id=user.id, email=user.email, name=user.name, role=user.role, coach_id=user.coach_id)


def _token_response(user: User) -> TokenResponse:
    token = create_access_token(user.id, user.email, user.role)
    return TokenResponse(
        token=token,
        access_token=token,
        expires_in=settings.access_token_expire_minutes * 60,
        user=_user_out(user),
    )


def _normalize(body: RegisterBody) -> tuple[str, str, str]:
    email = (body.email or "").strip().lower()
    password = body.password or ""
    name = (body.name or "").strip()
    if not email or not password or not name:
        raise HTTPException(status_code=400, detail="Email, password and name required")
    return email, password, name


async def _create_user(session: AsyncSession, **fields) -> User:
    try:
        user = User(**fields)
        session.add(user)
        await session.flush()
        await session.refresh(user)
    except IntegrityError as e:
        logger.warning("Register IntegrityError: %s", e)
        raise HTTPException(status_code=400, detail="Email already registered") from e
    return user


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=201,
    summary="Register a new coach",
    responses={400: {"description": "Missing fields or email already registered"}},
)
async def register(
    session: Annotated[AsyncSession, Depends(get_db)],
    body: RegisterBody,
) -> TokenResponse:
    email, password, name = _normalize(body)
    r = await session.execute(select(User).where(User.email == email))
    if r.scalar_one_or_none() is not None:
        raise HTTPException(status_code=400, detail="Email already registered")
    user = await _create_user(
        session, email=email, password_hash=hash_password(password), name=name, role=ROLE_COACH
    )
    return _token_response(user)


@router.post(
    "/register/athlete",
    response_model=TokenResponse,
    status_code=201,
    summary="Register an athlete with a coach's invite token",
    responses={400: {"description": "Invalid or expired invite, or email mismatch"}},
)
async def register_athlete(
    session: Annotated[AsyncSession, Depends(get_db)],
    body: RegisterAthleteBody,
) -> TokenResponse:
    email, password, name = _normalize(body)
    r = await session.execute(
        select(Invite).where(
            Invite.token == body.invite_token,
            Invite.used.is_(False),
            Invite.expires_at > datetime.now(timezone.utc),
        )
    )
    invite = r.scalar_one_or_none()
    if not invite:
        raise HTTPException(status_code=400, detail="Invalid or expired invite")
    if invite.email.lower() != email:
        raise HTTPException(status_code=400, detail="Email does not match invite")
    r = await session.execute(select(User).where(User.email == email))
    if r.scalar_one_or_none() is not None:
        raise HTTPException(status_code=400, detail="Email already registered")
    user = await _create_user(
        session,
        email=email,
        password_hash=hash_password(password),
        name=name,
        role=ROLE_ATHLETE,
        coach_id=invite.coach_id,
    )
    invite.used = True
    await session.flush()
    return _token_response(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login with email and password",
    responses={401: {"description": "Invalid email or password"}},
)
async def login(
    session: Annotated[AsyncSession, Depends(get_db)],
    body: LoginBody,
) -> TokenResponse:
    email = (body.email or "").strip().lower()
    password = body.password or ""
    if not email or not password:
        raise HTTPException(status_code=401, detail="Email and password required")
    r = await session.execute(select(User).where(User.email == email))
    user = r.scalar_one_or_none()
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return _token_response(user)


@router.get(
    "/me",
    response_model=UserOut,
    summary="Get current authenticated user",
    responses={401: {"description": "Not authenticated or invalid token"}},
)
async def me(user: Annotated[User, Depends(get_current_user)]) -> UserOut:
    return _user_out(user)
