"""Database initialization utilities."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncEngine

from mindbridge.app.core.config import settings
from mindbridge.app.core.logging import get_logger
from mindbridge.app.core.security import hash_password
from mindbridge.app.db.async_session import get_async_engine, get_async_session
from mindbridge.app.db.base import Base
from mindbridge.app.db.models import User

logger = get_logger(__name__)


async def drop_all_tables(engine: AsyncEngine | None = None) -> None:
    """Drop all database tables.

    WARNING: This will delete all data. Use only in development.
    """
    if engine is None:
        engine = get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def create_all_tables(engine: AsyncEngine | None = None) -> None:
    """Create all database tables."""
    if engine is None:
        engine = get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_database(drop_first: bool = False) -> None:
    """Initialize database with all tables.

    Args:
        drop_first: If True, drop existing tables before creating.
    """
    if drop_first:
        await drop_all_tables()
    await create_all_tables()


async def ensure_admin_account() -> bool:
    """Create the bootstrap admin from ADMIN_EMAIL / ADMIN_PASSWORD.

    Returns:
        True if an account was created, False if not configured or present
    """
    email = settings.admin_email.strip().lower()
    password = settings.admin_password.strip()
    if not email or not password:
        return False

    async with get_async_session() as session:
        existing = await session.execute(select(User.id).where(User.email == email))
        if existing.scalar_one_or_none() is not None:
            return False

        now = datetime.now(timezone.utc)
        session.add(User(
            id=str(uuid.uuid4()),
            first_name="Platform",
            last_name="Admin",
            name="Platform Admin",
            email=email,
            password_hash=hash_password(password),
            role="admin",
            is_verified=True,
            is_active=True,
            created_at=now,
            updated_at=now,
        ))
        await session.commit()

    logger.info("Created bootstrap admin account")
    return True


async def verify_connection() -> bool:
    """Verify database connection is working.

    Returns:
        True if connection successful, False otherwise.
    """
    try:
        engine = get_async_engine()
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.scalar() == 1
    except Exception as e:
        logger.warning(f"Database connection failed: {e}")
        return False
