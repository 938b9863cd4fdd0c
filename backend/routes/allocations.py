"""Allocation API routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.constants import AllocationOutcome
from app.exceptions import PermissionDenied
from database.repository import AidStore
from database.schemas import (
    AllocationListItem, AllocationRequest, AllocationResponse, AllocationResult, SessionContext,
)
from routes.deps import get_allocation_locks, get_store, require_admin, require_disburser
from services.allocation_service import AllocationWorkflow, BeneficiaryLocks
from utils.identifiers import require_uuid

router = APIRouter(prefix="/api/v1/allocations", tags=["Allocations"])


@router.post("", response_model=AllocationResult, status_code=201)
async def allocate_resources(
    request: AllocationRequest,
    session: SessionContext = Depends(require_disburser),
    store: AidStore = Depends(get_store),
    locks: BeneficiaryLocks = Depends(get_allocation_locks),
):
    """Allocate the selected goods to a beneficiary, or reject a duplicate attempt."""
    if request.beneficiary_id and request.goods_type_ids:
        beneficiary = await store.get_beneficiary(request.beneficiary_id)
        # unknown beneficiaries are reported by the workflow's validation
        if beneficiary is not None and beneficiary.region_id != session.region_id:
            raise PermissionDenied("Disbursers can only allocate to beneficiaries in their own region")

    result = await AllocationWorkflow(store, locks=locks).allocate(session, request)
    if result.outcome == AllocationOutcome.FRAUD_REJECTED:
        return JSONResponse(status_code=409, content=result.model_dump(mode="json"))
    return result


@router.get("", response_model=List[AllocationListItem])
async def list_allocations(
    q: Optional[str] = Query(None, description="Search beneficiary or disburser name"),
    beneficiary_id: Optional[str] = Query(None),
    disburser_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    _: SessionContext = Depends(require_admin),
    store: AidStore = Depends(get_store),
):
    """Allocations with beneficiary and disburser names, newest first."""
    if disburser_id:
        disburser_id = require_uuid(disburser_id, "disburser_id")
    beneficiary_names = {b.id: b.name for b in await store.list_beneficiaries()}
    disburser_names = {d.id: d.name for d in await store.list_disbursers()}
    needle = (q or "").strip().lower()

    items = []
    for allocation in await store.list_allocations(beneficiary_id=beneficiary_id):
        if disburser_id and allocation.disburser_id != disburser_id:
            continue
        item = AllocationListItem(
            **AllocationResponse.model_validate(allocation).model_dump(),
            beneficiary_name=beneficiary_names.get(allocation.beneficiary_id),
            disburser_name=disburser_names.get(allocation.disburser_id),
        )
        if needle and not any(
            needle in (name or "").lower() for name in (item.beneficiary_name, item.disburser_name)
        ):
            continue
        items.append(item)
        if len(items) >= limit:
            break
    return items
