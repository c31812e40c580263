"""Tests for auth endpoints: register coach, register athlete via invite, login, me."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from app.db.session import async_session_maker
from app.models.invite import Invite


async def _add_invite(coach_id: int, email: str, token: str, *, used: bool = False, days: int = 7) -> None:
    now = datetime.now(timezone.utc)
    async with async_session_maker() as session:
        session.add(
            Invite(
                coach_id=coach_id,
                email=email,
                token=token,
                used=used,
                created_at=now,
                expires_at=now + timedelta(days=days),
            )
        )
        await session.commit()


@pytest.mark.asyncio
async def test_register(client: AsyncClient, clean_db):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "NewCoach@Test.com", "password": "securepass123", "name": "New Coach"},
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["user"]["email"] == "newcoach@test.com"
    assert data["user"]["role"] == "coach"
    assert data["user"]["coach_id"] is None
    assert data["token"]
    assert data["access_token"] == data["token"]
    assert data["token_type"] == "bearer"
    assert data["expires_in"] > 0


@pytest.mark.asyncio
async def test_register_missing_fields(client: AsyncClient, clean_db):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "x@test.com", "password": "securepass123", "name": "  "},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email, password and name required"


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, coach_user):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "coach@test.com", "password": "other", "name": "Dup"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_register_athlete_with_invite(client: AsyncClient, coach_user):
    coach_id = coach_user[0]
    await _add_invite(coach_id, "runner@test.com", "invite-token-1")
    resp = await client.post(
        "/api/v1/auth/register/athlete",
        json={
            "email": "runner@test.com",
            "password": "runpass123",
            "name": "Runner",
            "invite_token": "invite-token-1",
        },
    )
    assert resp.status_code == 201
    assert resp.json()["token"]
    user = resp.json()["user"]
    assert user["role"] == "athlete"
    assert user["coach_id"] == coach_id

    # Invite is single-use
    again = await client.post(
        "/api/v1/auth/register/athlete",
        json={
            "email": "runner@test.com",
            "password": "runpass123",
            "name": "Runner",
            "invite_token": "invite-token-1",
        },
    )
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_register_athlete_email_mismatch(client: AsyncClient, coach_user):
    await _add_invite(coach_user[0], "runner@test.com", "invite-token-2")
    resp = await client.post(
        "/api/v1/auth/register/athlete",
        json={
            "email": "someone-else@test.com",
            "password": "runpass123",
            "name": "Runner",
            "invite_token": "invite-token-2",
        },
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email does not match invite"


@pytest.mark.asyncio
async def test_register_athlete_expired_invite(client: AsyncClient, coach_user):
    await _add_invite(coach_user[0], "late@test.com", "invite-token-3", days=-1)
    resp = await client.post(
        "/api/v1/auth/register/athlete",
        json={"email": "late@test.com", "password": "p", "name": "Late", "invite_token": "invite-token-3"},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid or expired invite"


@pytest.mark.asyncio
async def test_login(client: AsyncClient, auth_headers: dict):
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": "coach@test.com", "password": "password123"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["user"]["email"] == "coach@test.com"
    assert data["user"]["name"] == "Coach Carter"
    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "coach@test.com"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, auth_headers: dict):
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": "coach@test.com", "password": "wrong"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me(client: AsyncClient, athlete_headers: dict, athlete_user, coach_user):
    resp = await client.get("/api/v1/auth/me", headers=athlete_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["email"] == "athlete@test.com"
    assert data["role"] == "athlete"
    assert data["coach_id"] == coach_user[0]


@pytest.mark.asyncio
async def test_me_unauthorized(client: AsyncClient):
    resp = await client.get("/api/v1/auth/me")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me_garbage_token(client: AsyncClient):
    resp = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
