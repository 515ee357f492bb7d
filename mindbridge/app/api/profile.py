"""Profile endpoints for the signed-in user."""

import re
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from mindbridge.app.api.serializers import serialize_user
from mindbridge.app.core.logging import get_log_context, get_logger
from mindbridge.app.db.async_session import SessionDep
from mindbridge.app.db.crud import get_user_by_email, get_user_by_id, update_user_profile
from mindbridge.app.middleware.auth import CurrentUser

logger = get_logger(__name__)

router = APIRouter(prefix="/api/users/profile", tags=["profile"])

UNSAFE_CHARS = re.compile(r"[<>'\"\\;]")


def strip_unsafe(value: str) -> str:
    return UNSAFE_CHARS.sub("", value).strip()


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    state: Optional[str] = Field(None, max_length=50)
    city: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)

    @field_validator("name", "phone", "state", "city", "bio", mode="before")
    @classmethod
    def sanitize(cls, v):
        if isinstance(v, str):
            return strip_unsafe(v)
        return v

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            v = strip_unsafe(v).lower()
            if "@" not in v:
                raise ValueError("Invalid email format")
        return v


@router.get("")
async def get_profile(token: CurrentUser, session: SessionDep) -> dict:
    """Return the current user's profile."""
    user = await get_user_by_id(session, token.subject_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return {"user": serialize_user(user)}


@router.put("")
async def update_profile(
    data: ProfileUpdate,
    token: CurrentUser,
    session: SessionDep,
) -> dict:
    """Update the current user's profile.

    Raises:
        HTTPException: 404 if the user is gone, 409 if the new e-mail is taken
    """
    changes = data.model_dump(exclude_none=True)

    if "email" in changes:
        existing = await get_user_by_email(session, changes["email"])
        if existing is not None and existing.id != token.subject_id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Email already in use",
            )

    user = await update_user_profile(session, token.subject_id, changes)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    logger.info(
        "Profile updated",
        extra=get_log_context(user_id=user.id, fields=sorted(changes)),
    )
    return {"message": "Profile updated successfully", "user": serialize_user(user)}
