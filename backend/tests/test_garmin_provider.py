"""Garmin Connect adapter: activity parsing and exception classification (no network)."""

import time
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from garminconnect import GarminConnectAuthenticationError, GarminConnectConnectionError, GarminConnectTooManyRequestsError

from app.services.garmin_activities import fetch_activities
from app.services.garmin_errors import (
    ProviderAuthError,
    ProviderResponseError,
    ProviderUnavailable,
    ProviderUnavailableError,
)
from app.services.garmin_provider import (
    GarminConnectProvider,
    ProviderSession,
    classify_provider_exception,
    parse_garmin_activity,
)


def test_parse_activity_list_item():
    item = {
        "activityId": 123456789,
        "activityName": "Morning Run",
        "activityType": {"typeId": 1, "typeKey": "running"},
        "startTimeLocal": "2024-03-11 07:15:00",
        "startTimeGMT": "2024-03-11 06:15:00",
        "distance": 10012.5,
        "duration": 3001.2,
        "averageHR": 148,
    }
    activity = parse_garmin_activity(item)
    assert activity.activity_id == "123456789"
    assert activity.name == "Morning Run"
    assert activity.activity_type == "running"
    assert activity.start_time == datetime(2024, 3, 11, 7, 15)
    assert activity.distance_m == 10012.5
    assert activity.duration_sec == 3001.2
    assert activity.raw["averageHR"] == 148


def test_parse_falls_back_to_gmt_and_moving_duration():
    activity = parse_garmin_activity(
        {
            "activityId": 1,
            "activityType": {"typeKey": "trail_running"},
            "startTimeGMT": "2024-03-11T06:15:00Z",
            "distance": 5000,
            "movingDuration": 1700,
        }
    )
    assert activity.start_time == datetime(2024, 3, 11, 6, 15)
    assert activity.duration_sec == 1700


def test_parse_missing_fields_default_to_zero():
    activity = parse_garmin_activity({"activityType": "running", "distance": None})
    assert activity.activity_id is None
    assert activity.activity_type == "running"
    assert activity.start_time is None
    assert activity.distance_m == 0.0
    assert activity.duration_sec == 0.0


def test_parse_garbage_start_time():
    activity = parse_garmin_activity({"activityType": {"typeKey": "running"}, "startTimeLocal": "yesterday"})
    assert activity.start_time is None


@pytest.mark.parametrize(
    "exc,expected",
    [
        (GarminConnectAuthenticationError("bad creds"), ProviderAuthError),
        (GarminConnectTooManyRequestsError("429"), ProviderUnavailableError),
        (GarminConnectConnectionError("boom"), ProviderUnavailableError),
        (ConnectionResetError("reset"), ProviderUnavailableError),
        (KeyError("activityId"), ProviderResponseError),
        (RuntimeError("something odd"), ProviderUnavailableError),
        (Exception("403 Client Error: Forbidden"), ProviderUnavailableError),
        (GarminConnectConnectionError("403 Forbidden"), ProviderUnavailableError),
        (Exception("401 Client Error: Unauthorized"), ProviderAuthError),
    ],
)
def test_classify_provider_exception(exc, expected):
    assert isinstance(classify_provider_exception(exc), expected)


def test_classify_mfa_message():
    err = classify_provider_exception(Exception("MFA code required"))
    assert isinstance(err, ProviderAuthError)
    assert err.mfa_required is True


def test_classify_passes_provider_errors_through():
    original = ProviderUnavailableError("x")
    assert classify_provider_exception(original) is original


@pytest.mark.asyncio
async def test_login_needs_mfa():
    client = MagicMock()
    client.login.return_value = ("needs_mfa", {})
    with patch("app.services.garmin_provider.Garmin", return_value=client):
        with pytest.raises(ProviderAuthError) as exc_info:
            await GarminConnectProvider(timeout=5).login("mfa@garmin.com", "pw")
    assert exc_info.value.mfa_required is True


@pytest.mark.asyncio
async def test_login_success_dumps_tokens():
    client = MagicMock()
    client.login.return_value = (None, None)
    client.display_name = "alice-display"
    client.garth.dumps.return_value = "serialized-tokens"
    with patch("app.services.garmin_provider.Garmin", return_value=client):
        live = await GarminConnectProvider(timeout=5).login("alice@garmin.com", "pw")
    assert live.garmin_user_id == "alice-display"
    assert live.tokens == "serialized-tokens"


@pytest.mark.asyncio
async def test_login_auth_failure_is_classified():
    client = MagicMock()
    client.login.side_effect = GarminConnectAuthenticationError("401 Client Error: Unauthorized")
    with patch("app.services.garmin_provider.Garmin", return_value=client):
        with pytest.raises(ProviderAuthError):
            await GarminConnectProvider(timeout=5).login("alice@garmin.com", "bad")


@pytest.mark.asyncio
async def test_list_recent_activities_rejects_non_list():
    handle = MagicMock()
    handle.get_activities.return_value = {"error": "unexpected"}
    with pytest.raises(ProviderResponseError):
        await GarminConnectProvider(timeout=5).list_recent_activities(
            ProviderSession(handle=handle, garmin_user_id="alice"), 10
        )


@pytest.mark.asyncio
async def test_login_timeout_is_unavailable():
    provider = GarminConnectProvider(timeout=0.1)
    with patch.object(provider, "_login_sync", side_effect=lambda *args: time.sleep(0.5)):
        with pytest.raises(ProviderUnavailableError) as exc_info:
            await provider.login("alice@garmin.com", "pw")
    assert "timed out" in str(exc_info.value)


@pytest.mark.asyncio
async def test_fetch_activities_timeout_is_provider_unavailable(db, coach_user, session_manager):
    user_id = coach_user[0]
    await session_manager.connect(db, user_id, "alice@garmin.com", "garmin-pass")

    slow = GarminConnectProvider(timeout=0.1)
    session_manager.provider = slow
    with patch.object(slow, "_list_sync", side_effect=lambda *args: time.sleep(0.5)):
        with pytest.raises(ProviderUnavailable):
            await fetch_activities(db, session_manager, user_id, datetime(2024, 1, 1), datetime(2024, 2, 1))
