"""
Shared fixtures: a fresh in-memory SQLite store per test, a seeded region with
stock, and a controllable clock for the duplicate window.
"""
import sys
from datetime import datetime, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from app.constants import UserRole
from database.connection import build_engine, build_session_factory, init_db
from database.repository import AidStore
from database.schemas import SessionContext


class FakeClock:
    """Callable clock returning a fixed naive-UTC time until advanced."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:", echo=False)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def store(session_factory):
    async with session_factory() as session:
        yield AidStore(session)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 10, 0, 0))


@pytest.fixture
async def world(store):
    """Region R with Water (3 units) and Blankets (0 units), disburser D and beneficiary Alice."""
    region = await store.create_region("Machakos")
    other_region = await store.create_region("Turkana")
    disburser = await store.create_disburser("Jane Field", "0700000001", region.id)
    water = await store.create_goods_type("Water", "20L jerrycan")
    blankets = await store.create_goods_type("Blankets")
    water_line = await store.insert_regional_goods(region.id, water.id, quantity=3)
    blanket_line = await store.insert_regional_goods(region.id, blankets.id, quantity=0)
    alice = await store.insert_beneficiary(
        name="Alice Mwangi",
        region_id=region.id,
        registered_by=disburser.id,
        unique_identifiers={"national_id": "12345678", "features": "scar on left hand"},
        estimated_age=34,
    )
    bob = await store.insert_beneficiary(
        name="Bob Otieno",
        region_id=region.id,
        registered_by=disburser.id,
        unique_identifiers={"passport": "AK998877"},
    )
    return SimpleNamespace(
        region=region,
        other_region=other_region,
        disburser=disburser,
        water=water,
        blankets=blankets,
        water_line=water_line,
        blanket_line=blanket_line,
        alice=alice,
        bob=bob,
    )


@pytest.fixture
def disburser_session(world):
    return SessionContext(user_id=world.disburser.id, role=UserRole.DISBURSER,
                          region_id=world.region.id)
