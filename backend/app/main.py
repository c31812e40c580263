import logging
import sys
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from app.api.v1 import athletes, auth, garmin, invites, runs

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logging.getLogger("app").setLevel(logging.DEBUG)
from app.config import settings
from app.db.session import init_db
from app.services.crypto import get_fernet
from prometheus_client import make_asgi_app

logger = logging.getLogger(__name__)
scheduler = AsyncIOScheduler()


async def scheduled_stats_refresh():
    """Refresh weekly stats for every athlete with a Garmin connection."""
    from app.db.session import async_session_maker
    from app.services.garmin_session import get_session_manager
    from app.services.garmin_sync import refresh_all_connected

    refreshed = await refresh_all_connected(async_session_maker, get_session_manager())
    logger.info("Scheduled stats refresh done: %s athletes refreshed", refreshed)


def refresh_hours() -> list[int]:
    """Hours (0-23) from STATS_REFRESH_CRON_HOURS; falls back to 5 on a malformed value."""
    try:
        hours = [int(h.strip()) for h in settings.stats_refresh_cron_hours.split(",") if h.strip()]
    except ValueError:
        logger.warning("Bad STATS_REFRESH_CRON_HOURS=%r, using 5", settings.stats_refresh_cron_hours)
        return [5]
    return sorted({h for h in hours if 0 <= h <= 23})


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ConfigurationError here when ENCRYPTION_KEY is missing or malformed
    get_fernet()
    await init_db()

    hours = refresh_hours()
    for hour in hours:
        scheduler.add_job(scheduled_stats_refresh, "cron", hour=hour, minute=0)
    logger.info("Weekly stats refresh scheduled at hours %s (mock_mode=%s)", hours, settings.garmin_mock_mode)

    scheduler.start()
    yield
    scheduler.shutdown()


limiter = Limiter(key_func=get_remote_address, default_limits=["200/minute"])

app = FastAPI(
    title="Running Coach API",
    description="Coach/athlete training log: run calendar, invites, Garmin weekly stats",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if getattr(settings, "enable_hsts", False):
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] if settings.cors_origins else ["*"]
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth.router, prefix="/api/v1")
app.include_router(invites.router, prefix="/api/v1")
app.include_router(runs.router, prefix="/api/v1")
app.include_router(athletes.router, prefix="/api/v1")
app.include_router(garmin.router, prefix="/api/v1")

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    return {"status": "ok"}
