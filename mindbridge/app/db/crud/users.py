"""User CRUD operations."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mindbridge.app.db.models import TherapySession, User


async def get_user_by_id(
    session: AsyncSession,
    user_id: str
) -> Optional[User]:
    """Get a user by ID.

    Args:
        session: Database session from FastAPI dependency
        user_id: The user ID

    Returns:
        User object if found, None otherwise
    """
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(
    session: AsyncSession,
    email: str
) -> Optional[User]:
    """Find a user by e-mail, ignoring case."""
    result = await session.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def list_users(
    session: AsyncSession,
    page: int = 1,
    limit: int = 10,
) -> List[User]:
    """Get one page of users, newest first."""
    result = await session.execute(
        select(User)
        .order_by(User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all())


async def count_users(session: AsyncSession, **filters: Any) -> int:
    """Count users matching simple equality filters (e.g. ``role="therapist"``)."""
    stmt = select(func.count()).select_from(User)
    for column, value in filters.items():
        stmt = stmt.where(getattr(User, column) == value)
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def get_system_stats(session: AsyncSession) -> Dict[str, int]:
    """Aggregate counts for the admin dashboard."""
    total_users = await count_users(session)
    total_therapists = await count_users(session, role="therapist")
    sessions = await session.execute(select(func.count()).select_from(TherapySession))
    unverified_users = await count_users(session, role="user", is_verified=False)
    unverified_therapists = await count_users(session, role="therapist", is_verified=False)

    return {
        "totalUsers": total_users - total_therapists,
        "totalTherapists": total_therapists,
        "totalSessions": int(sessions.scalar_one()),
        "unverifiedUsers": unverified_users,
        "unverifiedTherapists": unverified_therapists,
    }


async def update_user_profile(
    session: AsyncSession,
    user_id: str,
    changes: Dict[str, Any],
) -> Optional[User]:
    """Apply profile changes and return the refreshed user, or None if absent."""
    if changes:
        values = dict(changes)
        values["updated_at"] = datetime.now(timezone.utc)
        result = await session.execute(
            update(User).where(User.id == user_id).values(**values)
        )
        if result.rowcount == 0:
            return None
        await session.flush()

    user = await get_user_by_id(session, user_id)
    if user is not None:
        await session.refresh(user)
    return user


async def verify_therapist(
    session: AsyncSession,
    therapist_id: str,
    verified_by: str,
) -> bool:
    """Mark a therapist as verified.

    Returns:
        False if no therapist with that ID exists
    """
    now = datetime.now(timezone.utc)
    result = await session.execute(
        update(User)
        .where(User.id == therapist_id, User.role == "therapist")
        .values(is_verified=True, verified_at=now, verified_by=verified_by, updated_at=now)
    )
    return result.rowcount > 0


async def delete_user(session: AsyncSession, user_id: str) -> bool:
    """Delete a user.

    Returns:
        False if no user with that ID exists
    """
    result = await session.execute(delete(User).where(User.id == user_id))
    return result.rowcount > 0
