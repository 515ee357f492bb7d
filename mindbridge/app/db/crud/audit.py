"""Security and admin audit log writes."""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mindbridge.app.db.models import AdminLog, SecurityLog


async def log_security_event(
    session: AsyncSession,
    event_type: str,
    *,
    user_id: Optional[str] = None,
    email: Optional[str] = None,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    success: bool = True,
    detail: Optional[str] = None,
) -> SecurityLog:
    entry = SecurityLog(
        event_type=event_type,
        user_id=user_id,
        email=email,
        ip=ip,
        user_agent=(user_agent or "")[:500] or None,
        success=success,
        detail=detail,
        timestamp=datetime.now(timezone.utc),
    )
    session.add(entry)
    return entry


async def log_admin_action(
    session: AsyncSession,
    admin_id: str,
    action: str,
    target_user_id: str,
    ip_address: Optional[str] = None,
) -> AdminLog:
    entry = AdminLog(
        admin_id=admin_id,
        action=action,
        target_user_id=target_user_id,
        ip_address=ip_address,
        timestamp=datetime.now(timezone.utc),
    )
    session.add(entry)
    return entry
