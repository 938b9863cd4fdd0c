"""Tests for beneficiary registration and directory search."""
import uuid
from types import SimpleNamespace

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.constants import UserRole
from app.exceptions import NotFoundError, PermissionDenied, ValidationError
from database.schemas import BeneficiaryCreate, SessionContext
from services.beneficiary_service import BeneficiaryService, search_beneficiaries


def _person(name, **identifiers):
    return SimpleNamespace(name=name, unique_identifiers=identifiers)


PEOPLE = [
    _person("Alice Mwangi", national_id="12345678", features="scar on left hand"),
    _person("Bob Otieno", passport="AK998877"),
    _person("Carol Achieng"),
]


class TestSearch:
    @pytest.mark.parametrize("query,expected", [
        ("alice", ["Alice Mwangi"]),
        ("OTIENO", ["Bob Otieno"]),
        ("1234", ["Alice Mwangi"]),
        ("ak99", ["Bob Otieno"]),
        ("left hand", ["Alice Mwangi"]),
        ("ng", ["Alice Mwangi", "Carol Achieng"]),
        ("nobody", []),
    ])
    def test_matches_name_or_identifier(self, query, expected):
        assert [p.name for p in search_beneficiaries(PEOPLE, query)] == expected

    @pytest.mark.parametrize("query", [None, "", "   "])
    def test_blank_query_keeps_all(self, query):
        assert search_beneficiaries(PEOPLE, query) == PEOPLE

    def test_missing_identifiers_tolerated(self):
        people = [SimpleNamespace(name="Dan", unique_identifiers=None)]
        assert search_beneficiaries(people, "dan") == people
        assert search_beneficiaries(people, "123") == []


class TestRegistration:
    async def test_register_defaults_to_session_region(self, store, world, disburser_session):
        payload = BeneficiaryCreate(name="  Esther Wanjiru ", unique_identifiers={"voter_card": "V-1"})
        created = await BeneficiaryService(store).register(disburser_session, payload)

        assert created.name == "Esther Wanjiru"
        assert created.region_id == world.region.id
        assert created.registered_by == world.disburser.id
        assert created.unique_identifiers == {"voter_card": "V-1"}

    async def test_register_into_missing_region(self, store, world):
        session = SessionContext(user_id=world.disburser.id, role=UserRole.DISBURSER,
                                 region_id=str(uuid.uuid4()))
        with pytest.raises(ValidationError):
            await BeneficiaryService(store).register(session, BeneficiaryCreate(name="Esther"))

    async def test_disburser_cannot_register_elsewhere(self, store, world, disburser_session):
        payload = BeneficiaryCreate(name="Esther", region_id=world.other_region.id)
        with pytest.raises(PermissionDenied):
            await BeneficiaryService(store).register(disburser_session, payload)
        assert await store.list_beneficiaries_by_region(world.other_region.id) == []

    async def test_explicit_own_region_accepted(self, store, world, disburser_session):
        payload = BeneficiaryCreate(name="Esther", region_id=world.region.id.upper())
        created = await BeneficiaryService(store).register(disburser_session, payload)
        assert created.region_id == world.region.id

    async def test_admin_may_register_anywhere(self, store, world):
        admin = SessionContext(user_id=str(uuid.uuid4()), role=UserRole.ADMIN)
        payload = BeneficiaryCreate(name="Esther", region_id=world.other_region.id)
        created = await BeneficiaryService(store).register(admin, payload)
        assert created.region_id == world.other_region.id

    def test_unknown_identifier_kind_rejected(self):
        with pytest.raises(PydanticValidationError):
            BeneficiaryCreate(name="Esther", unique_identifiers={"shoe_size": "42"})

    def test_blank_identifiers_dropped(self):
        payload = BeneficiaryCreate(name="Esther", unique_identifiers={"passport": "  ", "national_id": "9"})
        assert payload.unique_identifiers == {"national_id": "9"}

    async def test_directory_is_region_scoped(self, store, world):
        service = BeneficiaryService(store)
        assert [b.name for b in await service.directory(world.region.id, "mwangi")] == ["Alice Mwangi"]
        assert await service.directory(world.other_region.id) == []

    async def test_get_unknown(self, store, world):
        with pytest.raises(NotFoundError):
            await BeneficiaryService(store).get(str(uuid.uuid4()))
