"""
Garmin session lifecycle per local user.

Two tiers: a live ProviderSession held in an in-process SessionCache for a short window,
and the dormant form in garmin_connections (encrypted credentials + session tokens) that
survives restarts. get_client() rehydrates a dormant session by probing the stored tokens
first and only falls back to a full login when they are rejected, since Garmin's login
endpoint is rate limited.

Concurrent requests for the same user may both rehydrate; that costs an extra login,
no lock is taken.
"""
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from cryptography.fernet import InvalidToken
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.schemas.garmin import ConnectionStatus
from app.services import garmin_store
from app.services.crypto import decrypt_value, encrypt_value
from app.services.garmin_errors import (
    ConnectFailed,
    InvalidCredentials,
    ProviderAuthError,
    ProviderError,
    UnsupportedAccount,
)
from app.services.garmin_provider import ActivityProvider, GarminConnectProvider, ProviderSession

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    session: ProviderSession
    cached_at: float


class SessionCache:
    """Live sessions keyed by local user id, valid for `ttl_seconds` after caching."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[int, _CacheEntry] = {}

    def get(self, user_id: int) -> ProviderSession | None:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if self.clock() - entry.cached_at >= self.ttl_seconds:
            self._entries.pop(user_id, None)
            return None
        return entry.session

    def put(self, user_id: int, session: ProviderSession) -> None:
        self._entries[user_id] = _CacheEntry(session=session, cached_at=self.clock())

    def evict(self, user_id: int) -> None:
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._entries


class GarminSessionManager:
    def __init__(self, provider: ActivityProvider, cache: SessionCache):
        self.provider = provider
        self.cache = cache

    async def connect(self, db: AsyncSession, user_id: int, username: str, password: str) -> str:
        """
        Log in with the given credentials and make this the user's only session.
        Returns the Garmin user id. A failed login leaves any existing connection untouched;
        on success the old connection (cache entry and row) is replaced.
        """
        try:
            live = await self.provider.login(username, password)
        except ProviderAuthError as e:
            logger.warning("Garmin connect rejected for user_id=%s (mfa=%s)", user_id, e.mfa_required)
            if e.mfa_required:
                raise UnsupportedAccount() from e
            raise InvalidCredentials() from e
        except ProviderError as e:
            logger.warning("Garmin connect failed for user_id=%s: %s", user_id, type(e).__name__)
            raise ConnectFailed() from e

        garmin_user_id = live.garmin_user_id or username.split("@")[0]
        self.cache.evict(user_id)
        await garmin_store.save_connection(
            db,
            user_id,
            encrypted_username=encrypt_value(username),
            encrypted_password=encrypt_value(password),
            encrypted_session_tokens=encrypt_value(live.tokens),
            garmin_user_id=garmin_user_id,
        )
        self.cache.put(user_id, live)
        logger.info("Garmin connected for user_id=%s as %s", user_id, garmin_user_id)
        return garmin_user_id

    async def get_client(self, db: AsyncSession, user_id: int) -> ProviderSession | None:
        """Live session for the user, rehydrated from storage if the cache is cold. None if not connected."""
        cached = self.cache.get(user_id)
        if cached is not None:
            return cached

        conn = await garmin_store.get_connection(db, user_id)
        if conn is None:
            return None
        try:
            username = decrypt_value(conn.encrypted_username)
            password = decrypt_value(conn.encrypted_password)
            tokens = decrypt_value(conn.encrypted_session_tokens)
        except InvalidToken:
            logger.error("Garmin stored credentials could not be decrypted for user_id=%s", user_id)
            return None

        if tokens:
            try:
                live = await self.provider.validate_session(tokens)
            except ProviderError as e:
                logger.info("Garmin tokens rejected for user_id=%s (%s), re-authenticating", user_id, type(e).__name__)
            else:
                if live.tokens and live.tokens != tokens:
                    await garmin_store.save_session_tokens(db, user_id, encrypt_value(live.tokens))
                self.cache.put(user_id, live)
                return live

        if not username or not password:
            logger.error("Garmin connection for user_id=%s has no usable credentials", user_id)
            return None
        try:
            live = await self.provider.login(username, password)
        except ProviderError as e:
            logger.warning("Garmin re-authentication failed for user_id=%s: %s", user_id, type(e).__name__)
            return None
        await garmin_store.save_session_tokens(db, user_id, encrypt_value(live.tokens))
        self.cache.put(user_id, live)
        return live

    async def disconnect(self, db: AsyncSession, user_id: int) -> None:
        """Forget everything about the user's Garmin connection. Safe to call repeatedly."""
        self.cache.evict(user_id)
        removed = await garmin_store.delete_connection(db, user_id)
        if removed:
            logger.info("Garmin disconnected for user_id=%s", user_id)

    async def get_connection_status(self, db: AsyncSession, user_id: int) -> ConnectionStatus:
        """Read persisted state only; never touches the cache or the network."""
        conn = await garmin_store.get_connection(db, user_id)
        if conn is None:
            return ConnectionStatus(connected=False)
        return ConnectionStatus(
            connected=True,
            garmin_user_id=conn.garmin_user_id,
            connected_at=conn.connected_at,
            last_sync_at=conn.last_sync_at,
        )


_manager: GarminSessionManager | None = None


def build_session_manager() -> GarminSessionManager:
    if settings.garmin_mock_mode:
        from app.services.garmin_mock import MockGarminProvider

        provider: ActivityProvider = MockGarminProvider()
    else:
        provider = GarminConnectProvider(timeout=settings.garmin_request_timeout_seconds)
    return GarminSessionManager(provider, SessionCache(ttl_seconds=settings.garmin_session_cache_minutes * 60))


def get_session_manager() -> GarminSessionManager:
    """Process-wide manager (FastAPI dependency; override in tests)."""
    global _manager
    if _manager is None:
        _manager = build_session_manager()
    return _manager
