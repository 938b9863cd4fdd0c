"""Admin catalog routes: regions, goods types and disbursers."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response

from app.exceptions import ValidationError
from database.repository import AidStore
from database.schemas import (
    DisburserCreate, DisburserResponse, DisburserUpdate, GoodsTypeCreate,
    GoodsTypeResponse, RegionCreate, RegionResponse, SessionContext,
)
from routes.deps import get_session_context, get_store, require_admin

router = APIRouter(prefix="/api/v1/admin", tags=["Administration"])
logger = logging.getLogger(__name__)


# ── Regions ────────────────────────────────────────────────────────────────────

@router.get("/regions", response_model=List[RegionResponse])
async def list_regions(
    _: SessionContext = Depends(get_session_context),
    store: AidStore = Depends(get_store),
):
    return await store.list_regions()


@router.post("/regions", response_model=RegionResponse, status_code=201)
async def create_region(
    payload: RegionCreate,
    _: SessionContext = Depends(require_admin),
    store: AidStore = Depends(get_store),
):
    region = await store.create_region(payload.name)
    logger.info(f"Region created: {region.name} ({region.id})")
    return region


# ── Goods types ────────────────────────────────────────────────────────────────

@router.get("/goods-types", response_model=List[GoodsTypeResponse])
async def list_goods_types(
    _: SessionContext = Depends(get_session_context),
    store: AidStore = Depends(get_store),
):
    return await store.list_goods_types()


@router.post("/goods-types", response_model=GoodsTypeResponse, status_code=201)
async def create_goods_type(
    payload: GoodsTypeCreate,
    _: SessionContext = Depends(require_admin),
    store: AidStore = Depends(get_store),
):
    return await store.create_goods_type(payload.name, payload.description)


# ── Disbursers ─────────────────────────────────────────────────────────────────

@router.get("/disbursers", response_model=List[DisburserResponse])
async def list_disbursers(
    region_id: Optional[str] = Query(None),
    _: SessionContext = Depends(require_admin),
    store: AidStore = Depends(get_store),
):
    return await store.list_disbursers(region_id=region_id)


@router.post("/disbursers", response_model=DisburserResponse, status_code=201)
async def create_disburser(
    payload: DisburserCreate,
    _: SessionContext = Depends(require_admin),
    store: AidStore = Depends(get_store),
):
    if await store.get_region(payload.region_id) is None:
        raise ValidationError(f"Region {payload.region_id} does not exist")
    return await store.create_disburser(
        name=payload.name.strip(),
        phone_number=payload.phone_number.strip(),
        region_id=payload.region_id,
        is_active=payload.is_active,
    )


@router.patch("/disbursers/{disburser_id}", response_model=DisburserResponse)
async def update_disburser(
    disburser_id: str,
    payload: DisburserUpdate,
    _: SessionContext = Depends(require_admin),
    store: AidStore = Depends(get_store),
):
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if changes.get("region_id") and await store.get_region(changes["region_id"]) is None:
        raise ValidationError(f"Region {changes['region_id']} does not exist")
    return await store.update_disburser(disburser_id, changes)


@router.delete("/disbursers/{disburser_id}", status_code=204)
async def delete_disburser(
    disburser_id: str,
    _: SessionContext = Depends(require_admin),
    store: AidStore = Depends(get_store),
):
    await store.delete_disburser(disburser_id)
    return Response(status_code=204)
