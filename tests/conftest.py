import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from mindbridge.app.core.security import create_access_token, hash_password
from mindbridge.app.db.async_session import get_db
from mindbridge.app.db.base import Base
from mindbridge.app.db.models import User
from mindbridge.app.main import create_app
from mindbridge.app.middleware.rate_limit import InMemoryWindowStore

DEFAULT_PASSWORD = "Str0ng!Pass"


def _sqlite_url_from_absolute_path(path: str) -> str:
    # SQLAlchemy expects 4 slashes for absolute paths. The path already starts
    # with '/', so strip it when appending after '////'.
    return f"sqlite+aiosqlite:////{path.lstrip('/')}"


@pytest.fixture
def session_maker(tmp_path):
    engine = create_async_engine(
        _sqlite_url_from_absolute_path(str(tmp_path / "mindbridge_test.db")),
        poolclass=NullPool,
    )

    async def init_db() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_db())
    yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def window_store():
    return InMemoryWindowStore()


@pytest.fixture
def app(session_maker, window_store):
    app = create_app(store=window_store)

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def make_user(session_maker):
    """Insert a user directly and return its ID."""

    def _make_user(
        email: str,
        role: str = "user",
        password: str = DEFAULT_PASSWORD,
        is_verified: bool = True,
        created_offset_seconds: int = 0,
    ) -> str:
        user_id = str(uuid.uuid4())
        created = datetime.now(timezone.utc) + timedelta(seconds=created_offset_seconds)

        async def insert() -> None:
            async with session_maker() as session:
                session.add(User(
                    id=user_id,
                    first_name="Test",
                    last_name="Person",
                    name="Test Person",
                    email=email,
                    password_hash=hash_password(password),
                    role=role,
                    is_verified=is_verified,
                    is_active=True,
                    created_at=created,
                    updated_at=created,
                ))
                await session.commit()

        asyncio.run(insert())
        return user_id

    return _make_user


@pytest.fixture
def fetch_user(session_maker):
    """Load a user by ID outside the request cycle."""

    def _fetch_user(user_id: str):
        async def load():
            async with session_maker() as session:
                return await session.get(User, user_id)

        return asyncio.run(load())

    return _fetch_user


@pytest.fixture
def auth_headers():
    """Build a Bearer header carrying a real access token."""

    def _auth_headers(user_id: str, role: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}

    return _auth_headers
