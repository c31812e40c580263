"""
Garmin Connect provider: login, session-token validation, recent activity listing.
python-garminconnect is blocking, so every call runs in a worker thread under an outer timeout.
Callers pass decrypted credentials; nothing here touches the database.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from garminconnect import (
    Garmin,
    GarminConnectAuthenticationError,
    GarminConnectConnectionError,
    GarminConnectTooManyRequestsError,
)

from app.schemas.garmin import RawActivity
from app.services.garmin_errors import (
    ProviderAuthError,
    ProviderError,
    ProviderResponseError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

_MFA_MARKERS = ("mfa", "verification", "two-factor", "2fa")
_AUTH_MARKERS = ("credentials", "401", "unauthorized")


@dataclass
class ProviderSession:
    """Live authenticated handle: provider client object, remote user id, serialized tokens."""

    handle: Any
    garmin_user_id: str | None
    tokens: str | None = None


class ActivityProvider(Protocol):
    async def login(self, username: str, password: str) -> ProviderSession: ...

    async def validate_session(self, tokens: str) -> ProviderSession: ...

    async def list_recent_activities(self, session: ProviderSession, page_size: int) -> list[dict]: ...


def classify_provider_exception(exc: Exception) -> ProviderError:
    """Map a garminconnect/garth exception onto a coarse provider error category."""
    if isinstance(exc, ProviderError):
        return exc
    text = str(exc).lower()
    if any(m in text for m in _MFA_MARKERS):
        return ProviderAuthError(str(exc), mfa_required=True)
    if isinstance(exc, GarminConnectAuthenticationError) or any(m in text for m in _AUTH_MARKERS):
        return ProviderAuthError(str(exc))
    if isinstance(exc, (GarminConnectTooManyRequestsError, GarminConnectConnectionError, OSError)):
        return ProviderUnavailableError(str(exc))
    if isinstance(exc, (KeyError, TypeError, ValueError)):
        return ProviderResponseError(f"{type(exc).__name__}: {exc}")
    return ProviderUnavailableError(f"{type(exc).__name__}: {exc}")


def _parse_start(value: Any) -> datetime | None:
    """Parse Garmin 'YYYY-MM-DD HH:MM:SS' (or ISO) start time into a naive datetime."""
    if not value or not isinstance(value, str):
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _number(value: Any) -> float:
    return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else 0.0


def parse_garmin_activity(item: dict) -> RawActivity:
    """Build a RawActivity from an activity-list item. Missing distance/duration default to zero."""
    type_raw = item.get("activityType")
    if isinstance(type_raw, dict):
        activity_type = type_raw.get("typeKey") or ""
    else:
        activity_type = type_raw or ""
    duration = item.get("duration")
    if not duration:
        duration = item.get("movingDuration")
    activity_id = item.get("activityId")
    return RawActivity(
        activity_id=str(activity_id) if activity_id is not None else None,
        name=item.get("activityName"),
        activity_type=str(activity_type),
        start_time=_parse_start(item.get("startTimeLocal")) or _parse_start(item.get("startTimeGMT")),
        distance_m=_number(item.get("distance")),
        duration_sec=_number(duration),
        raw=item,
    )


class GarminConnectProvider:
    """ActivityProvider backed by python-garminconnect (garth tokens under the hood)."""

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout

    async def _run(self, fn, *args):
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ProviderUnavailableError(f"Garmin call timed out after {self.timeout}s") from e
        except ProviderError:
            raise
        except Exception as e:
            raise classify_provider_exception(e) from e

    def _login_sync(self, username: str, password: str) -> ProviderSession:
        client = Garmin(email=username, password=password, return_on_mfa=True)
        result = client.login()
        if isinstance(result, tuple) and result and result[0] == "needs_mfa":
            raise ProviderAuthError("Garmin account requires MFA", mfa_required=True)
        return ProviderSession(
            handle=client,
            garmin_user_id=client.display_name or username.split("@")[0],
            tokens=client.garth.dumps(),
        )

    def _validate_sync(self, tokens: str) -> ProviderSession:
        client = Garmin()
        # Loading a token store makes garminconnect fetch the user profile: a cheap "who am I" probe.
        client.login(tokenstore=tokens)
        if not client.display_name:
            raise ProviderResponseError("Garmin profile probe returned no display name")
        return ProviderSession(handle=client, garmin_user_id=client.display_name, tokens=client.garth.dumps())

    def _list_sync(self, session: ProviderSession, page_size: int) -> list[dict]:
        data = session.handle.get_activities(0, page_size)
        if not isinstance(data, list):
            raise ProviderResponseError(f"Unexpected activity list payload: {type(data).__name__}")
        return [item for item in data if isinstance(item, dict)]

    async def login(self, username: str, password: str) -> ProviderSession:
        return await self._run(self._login_sync, username, password)

    async def validate_session(self, tokens: str) -> ProviderSession:
        return await self._run(self._validate_sync, tokens)

    async def list_recent_activities(self, session: ProviderSession, page_size: int) -> list[dict]:
        activities = await self._run(self._list_sync, session, page_size)
        logger.debug("Garmin returned %s activities for %s", len(activities), session.garmin_user_id)
        return activities
