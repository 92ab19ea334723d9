"""
Pytest configuration and fixtures.
"""

import asyncio
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from PySide6.QtCore import QCoreApplication
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Add project root
sys.path.insert(0, str(Path(__file__).parent.parent))

from timegrid.infra.api_client import RemoteStore, RemoteStoreError
from timegrid.infra.connectivity import ConnectivityMonitor
from timegrid.infra.db import Base
from timegrid.infra.offline_store import OfflineStore


@pytest.fixture(scope="session", autouse=True)
def qapp():
    """Qt application object for signals and timers"""
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest_asyncio.fixture
async def db_engine():
    """Create an in-memory SQLite database for testing"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Create a new session for a test"""
    async_session = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session


@pytest.fixture
def offline_store(tmp_path):
    return OfflineStore(tmp_path / "offline_data")


class FakeRemoteStore(RemoteStore):
    """
    In-memory remote store recording every call.

    `fail = True` makes every call raise; `failures_left = n` fails the next n calls.
    `on_call` runs before each call (used to enqueue while a drain is running).
    """

    def __init__(self):
        self.calls = []
        self.rows = {"entry": [], "project": [], "client": [], "tag": []}
        self.fail = False
        self.failures_left = 0
        self.on_call = None
        self._next_id = 1

    async def _begin(self, call):
        self.calls.append(call)
        if self.on_call:
            self.on_call(call)
        # Yield to the loop like a real network call
        await asyncio.sleep(0)
        if self.fail:
            raise RemoteStoreError("server unavailable", status_code=503)
        if self.failures_left:
            self.failures_left -= 1
            raise RemoteStoreError("temporary failure", status_code=502)

    async def add(self, entity, payload):
        await self._begin(("add", entity, dict(payload)))
        row = dict(payload, id=f"srv-{self._next_id}")
        self._next_id += 1
        self.rows[entity].append(row)
        return row

    async def update(self, entity, record_id, changes):
        await self._begin(("update", entity, record_id, dict(changes)))

    async def delete(self, entity, record_id):
        await self._begin(("delete", entity, record_id))

    async def select(self, entity, filters=None):
        await self._begin(("select", entity))
        return [dict(row) for row in self.rows[entity]]

    def calls_of(self, kind):
        return [call for call in self.calls if call[0] == kind]


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def connectivity():
    """Starts offline so nothing drains unless a test asks for it"""
    return ConnectivityMonitor(online=False)


async def _settle(rounds: int = 50):
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settle():
    """Awaitable that lets scheduled tasks run"""
    return _settle
