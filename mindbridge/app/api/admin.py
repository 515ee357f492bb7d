"""Admin API: system stats, user listing, therapist verification and deletion.

The gate already rejects non-admin callers on ``/api/admin``; the
``CurrentAdmin`` dependency repeats the check so the router is safe to mount
on its own.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field

from mindbridge.app.api.serializers import serialize_user
from mindbridge.app.core.logging import get_log_context, get_logger
from mindbridge.app.db.async_session import SessionDep
from mindbridge.app.db.crud import (
    count_users,
    delete_user,
    get_system_stats,
    get_user_by_id,
    list_users,
    log_admin_action,
    verify_therapist,
)
from mindbridge.app.middleware.auth import CurrentAdmin
from mindbridge.app.middleware.gate import get_client_ip

logger = get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

GET_ACTIONS = ("system_stats", "list_users")
POST_ACTIONS = ("verify_therapist", "delete_user")
MAX_PAGE_SIZE = 50


class AdminActionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str
    user_id: Optional[str] = Field(None, alias="userId")


@router.get("")
async def admin_query(
    admin: CurrentAdmin,
    session: SessionDep,
    action: str = Query("system_stats"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
) -> dict:
    """Read-only admin actions selected by ``action`` (default ``system_stats``).

    ``limit`` above 50 is clamped rather than rejected.
    """
    limit = min(limit, MAX_PAGE_SIZE)
    if action == "system_stats":
        stats = await get_system_stats(session)
        stats["lastUpdated"] = datetime.now(timezone.utc).isoformat()
        return {"stats": stats}

    if action == "list_users":
        users = await list_users(session, page=page, limit=limit)
        total = await count_users(session)
        return {
            "users": [serialize_user(u) for u in users],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
        }

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Invalid action. Expected one of: {', '.join(GET_ACTIONS)}",
    )


@router.post("")
async def admin_command(
    data: AdminActionRequest,
    request: Request,
    admin: CurrentAdmin,
    session: SessionDep,
) -> dict:
    """Mutating admin actions.

    Raises:
        HTTPException: 400 for an unknown action, a missing ``userId`` or an
            attempt to delete yourself; 404 if the target does not exist
    """
    if data.action not in POST_ACTIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid action. Expected one of: {', '.join(POST_ACTIONS)}",
        )
    if not data.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="userId is required",
        )

    client_ip = get_client_ip(request)

    if data.action == "verify_therapist":
        if not await verify_therapist(session, data.user_id, verified_by=admin.subject_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Therapist not found",
            )
        await log_admin_action(session, admin.subject_id, data.action, data.user_id, client_ip)
        logger.info(
            "Therapist verified",
            extra=get_log_context(client_ip=client_ip, user_id=admin.subject_id, target=data.user_id),
        )
        return {"success": True, "message": "Therapist verified successfully"}

    if data.user_id == admin.subject_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account",
        )
    if await get_user_by_id(session, data.user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    await delete_user(session, data.user_id)
    await log_admin_action(session, admin.subject_id, data.action, data.user_id, client_ip)
    logger.warning(
        "User deleted by admin",
        extra=get_log_context(client_ip=client_ip, user_id=admin.subject_id, target=data.user_id),
    )
    return {"success": True, "message": "User deleted successfully"}
