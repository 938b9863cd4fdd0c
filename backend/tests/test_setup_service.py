"""Tests for first-run seeding and the small shared utilities."""
import uuid

import pytest

from app.constants import DEFAULT_DISBURSER_PHONE, DEFAULT_REGION_NAME, UserRole
from app.exceptions import InvalidIdentifier
from database.models import Disburser, Region
from database.schemas import SessionContext
from services.setup_service import ensure_initial_setup
from utils.identifiers import is_valid_uuid, new_id, require_uuid


class TestInitialSetup:
    async def test_seeds_empty_store(self, store):
        assert await ensure_initial_setup(store) is True

        [region] = await store.list_regions()
        [disburser] = await store.list_disbursers()
        assert region.name == DEFAULT_REGION_NAME
        assert disburser.phone_number == DEFAULT_DISBURSER_PHONE
        assert disburser.region_id == region.id

    async def test_runs_once(self, store):
        await ensure_initial_setup(store)
        assert await ensure_initial_setup(store) is False
        assert await store.count_rows(Region) == 1
        assert await store.count_rows(Disburser) == 1

    async def test_skips_populated_store(self, store, world):
        assert await ensure_initial_setup(store) is False
        assert await store.count_rows(Region) == 2


class TestIdentifiers:
    def test_new_ids_are_valid(self):
        assert is_valid_uuid(new_id())

    def test_require_uuid_normalises(self):
        raw = "6F1C8A52-3D0E-4B7F-9A61-2C5E8D4B7F10"
        assert require_uuid(raw, "region_id") == raw.lower()
        assert require_uuid(uuid.UUID(raw), "region_id") == raw.lower()

    @pytest.mark.parametrize("bad", ["", "   ", "6f1c8a52-3d0e-4b7f-9a61", "6f1c8a52-3d0e-7b7f-9a61-2c5e8d4b7f10"])
    def test_require_uuid_rejects(self, bad):
        with pytest.raises(InvalidIdentifier) as excinfo:
            require_uuid(bad, "region_id")
        assert excinfo.value.field == "region_id"

    def test_session_context_validates_ids(self):
        with pytest.raises(InvalidIdentifier):
            SessionContext(user_id="user-1", role=UserRole.DISBURSER)
        session = SessionContext(user_id=new_id(), role=UserRole.ADMIN, region_id="")
        assert session.region_id is None
