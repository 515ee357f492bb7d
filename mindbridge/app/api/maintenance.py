"""Maintenance endpoints for test environments."""

from fastapi import APIRouter, HTTPException, Request, status

from mindbridge.app.core.config import settings
from mindbridge.app.core.logging import get_logger
from mindbridge.app.middleware.gate import get_client_ip

logger = get_logger(__name__)

router = APIRouter(prefix="/api/test-utils", tags=["maintenance"])


@router.post("/reset-rate-limit")
async def reset_rate_limit(request: Request) -> dict:
    """Clear every rate window. Disabled in production."""
    if settings.is_production:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not available in production",
        )

    store = request.app.state.window_store
    store.reset()
    logger.warning(f"Rate limit store reset by {get_client_ip(request)}")
    return {"success": True, "message": "Rate limit store cleared"}
