"""Regional inventory routes."""
from typing import List

from fastapi import APIRouter, Depends

from app.constants import UserRole
from app.exceptions import PermissionDenied
from database.repository import AidStore
from database.schemas import QuantityUpdate, RegionalGoodsLine, SessionContext
from routes.deps import get_session_context, get_store, require_admin
from services.inventory_service import InventoryService

router = APIRouter(prefix="/api/v1/inventory", tags=["Inventory"])


@router.get("/regions/{region_id}", response_model=List[RegionalGoodsLine])
async def get_region_inventory(
    region_id: str,
    session: SessionContext = Depends(get_session_context),
    store: AidStore = Depends(get_store),
):
    """Stock lines for every goods type in a region (missing lines created at 0)."""
    if session.role == UserRole.DISBURSER and region_id.lower() != session.region_id:
        raise PermissionDenied("Disbursers can only view their own region")
    return await InventoryService(store).region_inventory(region_id)


@router.put("/lines/{line_id}", response_model=RegionalGoodsLine)
async def update_quantity(
    line_id: str,
    update: QuantityUpdate,
    _: SessionContext = Depends(require_admin),
    store: AidStore = Depends(get_store),
):
    return await InventoryService(store).set_quantity(line_id, update.quantity)
