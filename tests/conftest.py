"""Pytest configuration and fixtures."""
import os
import uuid
from datetime import timedelta
from pathlib import Path

import jwt
import pytest
from alembic import command
from alembic.config import Config as AlembicConfig
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Ensure the application uses a dedicated SQLite database during tests
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
# In-process locks only
os.environ["REDIS_URL"] = ""
os.environ["ENVIRONMENT"] = "test"

from arena.config import get_settings
from arena.models.player import Player
from arena.models.system_config import SystemConfig
from arena.utils import utc_now


BASE_DIR = Path(__file__).resolve().parent.parent
TEST_DB_PATH = BASE_DIR / "test.db"
settings = get_settings()


@pytest.fixture(scope="session", autouse=True)
def apply_migrations():
    """Apply database migrations against the test database."""
    if TEST_DB_PATH.exists():
        TEST_DB_PATH.unlink()

    alembic_cfg = AlembicConfig(str(BASE_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(BASE_DIR / "arena" / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    command.upgrade(alembic_cfg, "head")

    yield

    if TEST_DB_PATH.exists():
        try:
            TEST_DB_PATH.unlink()
        except PermissionError:
            # On Windows the file may still be open; the next run removes it
            pass


@pytest.fixture
async def test_engine():
    """Engine bound to the migrated test database."""
    engine = create_async_engine(settings.database_url, echo=False)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory for tests that need several independent sessions."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()
        await session.close()


@pytest.fixture(autouse=True)
async def reset_policy_overrides(session_factory):
    """Policy overrides written by one test must not leak into the next."""
    yield
    async with session_factory() as session:
        await session.execute(delete(SystemConfig))
        await session.commit()


@pytest.fixture
async def test_app(session_factory):
    """Create test app with database override."""
    from arena.main import app
    from arena.database import get_db

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def player_factory(db_session):
    """Factory for creating funded test players with unique names."""

    async def _create_player(balance: int = 1000, is_admin: bool = False, username: str | None = None):
        unique_id = uuid.uuid4().hex[:8]
        username = username or f"player_{unique_id}"
        player = Player(
            player_id=uuid.uuid4(),
            username=username,
            email=f"{username}@example.com",
            balance=balance,
            is_admin=is_admin,
        )
        db_session.add(player)
        await db_session.commit()
        return player

    return _create_player


@pytest.fixture
async def admin_player(player_factory):
    return await player_factory(balance=0, is_admin=True)


@pytest.fixture
def auth_headers():
    """Bearer headers for a player, signed the way the identity service signs them."""

    def _headers(player: Player) -> dict[str, str]:
        token = jwt.encode(
            {"sub": str(player.player_id), "exp": utc_now() + timedelta(hours=1)},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers
