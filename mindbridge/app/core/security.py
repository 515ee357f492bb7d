import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from jwt.exceptions import InvalidTokenError

from mindbridge.app.core.config import settings
from mindbridge.app.core.logging import get_logger

logger = get_logger(__name__)

PBKDF2_ITERATIONS = 100000


@dataclass(frozen=True)
class AuthToken:
    """Verified claims of an access token.

    The gate reads these for the lifetime of one request and never stores
    them anywhere else.
    """
    subject_id: str
    role: str
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def hash_password_with_salt(raw_password: str, salt: str | None = None) -> tuple[str, str]:
    """Hash a password using PBKDF2 with SHA256.

    Args:
        raw_password: The plain text password
        salt: Optional salt. If not provided, a random salt will be generated.

    Returns:
        A tuple of (salt, hashed_password)
    """
    if salt is None:
        salt = secrets.token_hex(16)

    hashed = hashlib.pbkdf2_hmac(
        "sha256", raw_password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS
    ).hex()

    return salt, hashed


def hash_password(raw_password: str) -> str:
    """Hash a password for storage as ``salt$hash``."""
    salt, hashed = hash_password_with_salt(raw_password)
    return f"{salt}${hashed}"


def verify_password(raw_password: str, stored: str) -> bool:
    """Verify a raw password against a ``salt$hash`` string.

    Returns:
        True if the password matches, False otherwise (including for a
        malformed stored value)
    """
    salt, sep, hashed = stored.partition("$")
    if not sep:
        return False
    _, computed = hash_password_with_salt(raw_password, salt)
    return secrets.compare_digest(computed, hashed)


def create_access_token(
    subject_id: str,
    role: str,
    expires_minutes: int | None = None,
) -> str:
    """Issue a signed access token for a user.

    Args:
        subject_id: User ID placed in the ``sub`` claim
        role: One of ``user``, ``therapist`` or ``admin``
        expires_minutes: Lifetime override; defaults to settings

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    lifetime = expires_minutes
    if lifetime is None:
        lifetime = settings.access_token_expire_minutes
    payload = {
        "sub": subject_id,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=lifetime),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[AuthToken]:
    """Verify a token's signature and expiry.

    Returns:
        AuthToken with the verified claims, or None when the token is
        malformed, tampered with, expired or lacks ``sub``/``role``
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except InvalidTokenError as e:
        logger.debug(f"Rejected access token: {e}")
        return None

    role = payload.get("role")
    if not isinstance(role, str) or not role:
        return None

    return AuthToken(
        subject_id=str(payload["sub"]),
        role=role,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )
