"""Beneficiary registration and directory routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.constants import UserRole
from app.exceptions import PermissionDenied, ValidationError
from database.repository import AidStore
from database.schemas import BeneficiaryCreate, BeneficiaryResponse, SessionContext
from routes.deps import get_session_context, get_store, require_disburser
from services.beneficiary_service import BeneficiaryService, search_beneficiaries

router = APIRouter(prefix="/api/v1/beneficiaries", tags=["Beneficiaries"])


@router.post("", response_model=BeneficiaryResponse, status_code=201)
async def register_beneficiary(
    payload: BeneficiaryCreate,
    session: SessionContext = Depends(require_disburser),
    store: AidStore = Depends(get_store),
):
    return await BeneficiaryService(store).register(session, payload)


@router.get("", response_model=List[BeneficiaryResponse])
async def list_beneficiaries(
    q: Optional[str] = Query(None, description="Search name or identifiers"),
    region_id: Optional[str] = Query(None),
    session: SessionContext = Depends(get_session_context),
    store: AidStore = Depends(get_store),
):
    """
    Disbursers see their own region; admins see one region or everything.
    """
    if session.role == UserRole.DISBURSER:
        if region_id and region_id.lower() != session.region_id:
            raise PermissionDenied("Disbursers can only view their own region")
        region_id = session.region_id
        if not region_id:
            raise ValidationError("Disburser session has no region")
    service = BeneficiaryService(store)
    if region_id:
        return await service.directory(region_id, q)
    return search_beneficiaries(await store.list_beneficiaries(), q)


@router.get("/{beneficiary_id}", response_model=BeneficiaryResponse)
async def get_beneficiary(
    beneficiary_id: str,
    _: SessionContext = Depends(get_session_context),
    store: AidStore = Depends(get_store),
):
    return await BeneficiaryService(store).get(beneficiary_id)
