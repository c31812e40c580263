"""Account-level audit trail (Garmin connect/disconnect). Never record credentials or tokens."""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditLog

GARMIN_CONNECT = "garmin_connect"
GARMIN_DISCONNECT = "garmin_disconnect"
GARMIN_RESOURCE = "garmin_connection"


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


async def log_action(
    session: AsyncSession,
    user_id: int | None,
    action: str,
    resource: str = GARMIN_RESOURCE,
    resource_id: str | int | None = None,
    details: dict | None = None,
    ip_address: str | None = None,
) -> AuditLog:
    entry = AuditLog(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details,
        ip_address=ip_address,
    )
    session.add(entry)
    await session.flush()
    return entry
