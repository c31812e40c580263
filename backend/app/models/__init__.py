from app.models.user import User
from app.models.invite import Invite
from app.models.run import Run
from app.models.garmin_connection import GarminConnection
from app.models.weekly_stat import WeeklyStat
from app.models.audit_log import AuditLog

__all__ = [
    "User",
    "Invite",
    "Run",
    "GarminConnection",
    "WeeklyStat",
    "AuditLog",
]
