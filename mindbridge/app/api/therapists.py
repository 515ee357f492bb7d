"""Public therapist directory search."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Response, status

from mindbridge.app.core.logging import get_logger
from mindbridge.app.services.therapist_directory import (
    MAX_SEARCH_LENGTH,
    THERAPIST_CATALOGUE,
    search_therapists,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/therapists", tags=["therapists"])


@router.get("")
async def list_therapists(
    response: Response,
    state: Optional[str] = Query(None),
    specialization: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    lat: Optional[float] = Query(None),
    lng: Optional[float] = Query(None),
    radius: Optional[float] = Query(None),
) -> dict:
    """Search verified therapists.

    ``lat``, ``lng`` and ``radius`` are accepted for forward compatibility but
    do not filter results.
    """
    if search is not None and len(search) > MAX_SEARCH_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Search query too long",
        )

    results = search_therapists(
        THERAPIST_CATALOGUE,
        state=state,
        specialization=specialization,
        search=search,
    )

    response.headers["Cache-Control"] = "public, max-age=300"
    return {
        "therapists": [t.to_dict() for t in results],
        "total": len(results),
        "success": True,
    }
