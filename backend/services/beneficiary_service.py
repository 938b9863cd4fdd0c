"""Beneficiary registration and directory search."""
import logging
from typing import Iterable, List, Optional

from app.constants import UserRole
from app.exceptions import NotFoundError, PermissionDenied, ValidationError
from database.models import Beneficiary
from database.repository import AidStore
from database.schemas import BeneficiaryCreate, SessionContext
from utils.identifiers import require_uuid

logger = logging.getLogger(__name__)


def search_beneficiaries(beneficiaries: Iterable[Beneficiary], query: Optional[str]) -> List[Beneficiary]:
    """
    Case-insensitive substring filter over name and every populated identifier.

    Runs over an already-fetched list; a blank query keeps everything.
    """
    beneficiaries = list(beneficiaries)
    needle = (query or "").strip().lower()
    if not needle:
        return beneficiaries

    def _matches(b: Beneficiary) -> bool:
        if needle in (b.name or "").lower():
            return True
        return any(
            needle in str(value).lower()
            for value in (b.unique_identifiers or {}).values()
            if value
        )

    return [b for b in beneficiaries if _matches(b)]


class BeneficiaryService:
    def __init__(self, store: AidStore):
        self.store = store

    async def register(self, session: SessionContext, payload: BeneficiaryCreate) -> Beneficiary:
        region_id = require_uuid(payload.region_id, "region_id") if payload.region_id else session.region_id
        if not region_id:
            raise ValidationError("A region is required to register a beneficiary")
        if session.role == UserRole.DISBURSER and region_id != session.region_id:
            raise PermissionDenied("Disbursers can only register beneficiaries in their own region")
        if await self.store.get_region(region_id) is None:
            raise ValidationError(f"Region {region_id} does not exist")
        beneficiary = await self.store.insert_beneficiary(
            name=payload.name.strip(),
            region_id=region_id,
            registered_by=session.user_id,
            unique_identifiers=payload.unique_identifiers,
            estimated_age=payload.estimated_age,
            height=payload.height,
        )
        logger.info(f"Registered beneficiary {beneficiary.id} in region {region_id}")
        return beneficiary

    async def directory(self, region_id: str, query: Optional[str] = None) -> List[Beneficiary]:
        return search_beneficiaries(await self.store.list_beneficiaries_by_region(region_id), query)

    async def get(self, beneficiary_id: str) -> Beneficiary:
        beneficiary = await self.store.get_beneficiary(beneficiary_id)
        if beneficiary is None:
            raise NotFoundError(f"Beneficiary {beneficiary_id} not found")
        return beneficiary
