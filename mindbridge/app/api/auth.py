"""Registration and login endpoints.

Registration is rate limited per client IP by the gate (3 attempts per
hour). Login issues a signed access token, returned in the body and set as
the session cookie so dashboard pages pass the gate.
"""

from __future__ import annotations

import html
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from fastapi import APIRouter, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy.exc import IntegrityError

from mindbridge.app.api.serializers import serialize_user
from mindbridge.app.core.config import settings
from mindbridge.app.core.logging import get_log_context, get_logger
from mindbridge.app.core.security import create_access_token, hash_password, verify_password
from mindbridge.app.db.async_session import SessionDep
from mindbridge.app.db.crud import get_user_by_email, log_security_event
from mindbridge.app.db.models import User
from mindbridge.app.exceptions import validation_error_content
from mindbridge.app.middleware.gate import get_client_ip

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_PATTERN = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]"
)

SANITIZED_FIELDS = (
    "firstName", "lastName", "email", "phone", "state", "city",
    "license", "specialization", "experience",
)


def sanitize_string(value: str) -> str:
    """Trim and HTML-escape a free-text field."""
    return html.escape(value.strip(), quote=True)


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(..., alias="firstName", min_length=2, max_length=50)
    last_name: str = Field(..., alias="lastName", min_length=2, max_length=50)
    email: str = Field(..., max_length=100)
    password: str = Field(..., min_length=8, max_length=128)
    phone: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    user_type: Literal["user", "therapist"] = Field("user", alias="userType")
    license: Optional[str] = None
    specialization: Optional[str] = None
    experience: Optional[str] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def letters_only(cls, v: str) -> str:
        if not NAME_PATTERN.match(v):
            raise ValueError("Name can only contain letters and spaces")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        if not PASSWORD_PATTERN.match(v):
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase "
                "letter, one number, and one special character"
            )
        return v


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


def _validation_failed(exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=validation_error_content(exc.errors()),
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: Request, session: SessionDep) -> Any:
    """Register a user or therapist.

    Regular users are verified immediately; therapists wait for an admin.
    """
    client_ip = get_client_ip(request)

    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Bad Request", "message": "Invalid JSON format"},
        )
    if not isinstance(body, dict):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Bad Request", "message": "Invalid JSON format"},
        )

    sanitized = dict(body)
    for name in SANITIZED_FIELDS:
        if isinstance(sanitized.get(name), str):
            sanitized[name] = sanitize_string(sanitized[name])

    try:
        data = RegisterRequest.model_validate(sanitized)
    except ValidationError as e:
        return _validation_failed(e)

    if await get_user_by_email(session, data.email) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already exists with this email",
        )

    now = datetime.now(timezone.utc)
    is_therapist = data.user_type == "therapist"
    user = User(
        id=str(uuid.uuid4()),
        first_name=data.first_name,
        last_name=data.last_name,
        name=f"{data.first_name} {data.last_name}",
        email=data.email,
        password_hash=hash_password(data.password),
        role=data.user_type,
        phone=data.phone,
        state=data.state,
        city=data.city,
        is_verified=not is_therapist,
        is_active=True,
        license=data.license if is_therapist else None,
        specialization=data.specialization if is_therapist else None,
        experience=data.experience if is_therapist else None,
        registration_ip=client_ip,
        created_at=now,
        updated_at=now,
    )
    session.add(user)
    try:
        # Flush to surface unique/email conflicts before responding.
        await session.flush()
    except IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already exists with this email",
        )

    await log_security_event(
        session,
        "user_registration",
        user_id=user.id,
        email=user.email,
        ip=client_ip,
        user_agent=request.headers.get("user-agent"),
        detail=data.user_type,
    )
    logger.info(
        "User registered",
        extra=get_log_context(client_ip=client_ip, user_id=user.id, role=user.role),
    )

    return {
        "success": True,
        "user": serialize_user(user),
        "message": (
            "Account created! Please wait for verification."
            if is_therapist
            else "Account created successfully!"
        ),
    }


@router.post("/login")
async def login(data: LoginRequest, response: Response, session: SessionDep) -> dict:
    """Exchange credentials for an access token."""
    user = await get_user_by_email(session, data.email)
    if user is None or not verify_password(data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is disabled",
        )

    token = create_access_token(user.id, user.role)
    expires_in = settings.access_token_expire_minutes * 60
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=expires_in,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_in": expires_in,
        "user": serialize_user(user),
    }


@router.post("/logout")
async def logout(response: Response) -> dict:
    """Clear the session cookie."""
    response.delete_cookie(settings.session_cookie_name)
    return {"success": True}
