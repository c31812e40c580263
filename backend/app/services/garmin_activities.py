"""Fetch recent Garmin activities for a user and filter them to a date window."""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.schemas.garmin import RawActivity
from app.services import garmin_store
from app.services.garmin_errors import NotConnected, ProviderAuthError, ProviderError, ProviderUnavailable
from app.services.garmin_provider import parse_garmin_activity
from app.services.garmin_session import GarminSessionManager

logger = logging.getLogger(__name__)


async def fetch_activities(
    db: AsyncSession,
    manager: GarminSessionManager,
    user_id: int,
    start: datetime,
    end: datetime,
) -> list[RawActivity]:
    """
    Activities whose start time falls in [start, end] (inclusive).
    Garmin has no range query: fetch the most recent page, then filter locally.
    Raises NotConnected when the user has no usable session, ProviderUnavailable on provider errors.
    """
    live = await manager.get_client(db, user_id)
    if live is None:
        raise NotConnected()
    try:
        items = await manager.provider.list_recent_activities(live, settings.garmin_activity_page_size)
    except ProviderError as e:
        if isinstance(e, ProviderAuthError):
            # Session went stale inside the cache window; next call rehydrates.
            manager.cache.evict(user_id)
        logger.warning("Garmin activity fetch failed for user_id=%s: %s", user_id, type(e).__name__)
        raise ProviderUnavailable() from e

    activities = [parse_garmin_activity(item) for item in items]
    in_range = [a for a in activities if a.start_time is not None and start <= a.start_time <= end]
    await garmin_store.mark_synced(db, user_id)
    logger.info(
        "Garmin fetch for user_id=%s: %s listed, %s in range %s..%s",
        user_id,
        len(activities),
        len(in_range),
        start.date().isoformat(),
        end.date().isoformat(),
    )
    return in_range
