import pytest
import pytest_asyncio

from trait_xp.core.events import EventBus
from trait_xp.storage.database import Database
from trait_xp.system.exp_engine import ExpEngine


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(str(tmp_path / "trait_xp.db"))
    await database.connect()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def engine(db, bus) -> ExpEngine:
    return ExpEngine(db, bus)
