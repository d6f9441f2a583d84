"""Shared test fixtures."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from secgate.db.base import Base
# Import all models to register with Base.metadata
import secgate.db.models  # noqa: F401
from secgate.db.models.repository import RepositoryRow
from secgate.events.notifier import ScanNotifier


class RecordingNotifier(ScanNotifier):
    """Collects events instead of delivering them."""

    def __init__(self):
        self.events = []

    async def notify(self, event):
        self.events.append(event)

    def types(self) -> list[str]:
        return [e.event_type for e in self.events]


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite so every session sees the same database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'secgate-test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def repository(session_factory):
    """A registered repository to hang scans and schedules off."""
    async with session_factory() as session:
        row = RepositoryRow(
            repository_id="repo_test0000000001",
            name="acme/webapp",
            url="https://github.com/acme/webapp",
            default_branch="main",
        )
        session.add(row)
        await session.commit()
    return row


@pytest.fixture
def notifier():
    return RecordingNotifier()
