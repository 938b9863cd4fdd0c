"""Admin dashboard routes."""
import logging
from datetime import datetime, timedelta
from typing import Dict, List

import pandas as pd
from fastapi import APIRouter, Depends

from app.config import settings
from database.models import Beneficiary, Disburser, FraudAlert, Region
from database.repository import AidStore
from database.schemas import DashboardMetrics, SessionContext
from routes.deps import get_store, require_admin
from services.inventory_service import to_line

router = APIRouter(prefix="/api/v1/dashboard", tags=["Dashboard"])
logger = logging.getLogger(__name__)

TREND_DAYS = 7


def _allocations_per_day(alloc_df: pd.DataFrame, now: datetime, days: int = TREND_DAYS) -> Dict[str, int]:
    """
    Allocation counts for each of the last `days` calendar days (UTC),
    zero-filled so the chart always has every day.
    """
    end = pd.Timestamp(now).normalize()
    index = pd.date_range(end=end, periods=days, freq="D")
    if alloc_df.empty:
        counts = pd.Series(0, index=index)
    else:
        counts = (
            alloc_df["allocated_at"].dt.normalize()
            .value_counts()
            .reindex(index, fill_value=0)
        )
    return {ts.strftime("%Y-%m-%d"): int(n) for ts, n in counts.items()}


def _units_distributed(goods_rows: List[dict]) -> Dict[str, int]:
    """Units handed out per goods type name across all allocations."""
    if not goods_rows:
        return {}
    goods_df = pd.DataFrame(goods_rows)
    if "name" not in goods_df.columns or "quantity" not in goods_df.columns:
        return {}
    totals = goods_df.groupby("name")["quantity"].sum().sort_values(ascending=False)
    return {name: int(qty) for name, qty in totals.items()}


@router.get("/metrics", response_model=DashboardMetrics)
async def get_dashboard_metrics(
    _: SessionContext = Depends(require_admin),
    store: AidStore = Depends(get_store),
):
    """Aggregated KPIs for the admin dashboard."""
    now = datetime.utcnow()
    allocations = await store.list_allocations()

    alloc_df = pd.DataFrame(
        [{"id": a.id, "allocated_at": a.allocated_at} for a in allocations],
        columns=["id", "allocated_at"],
    )
    alloc_df["allocated_at"] = pd.to_datetime(alloc_df["allocated_at"])
    recent_df = alloc_df[alloc_df["allocated_at"] > now - timedelta(days=TREND_DAYS)]

    goods_rows = [item for a in allocations for item in (a.goods or [])]
    low_stock = await store.list_low_stock(settings.LOW_STOCK_THRESHOLD)

    metrics = DashboardMetrics(
        total_regions=await store.count_rows(Region),
        total_disbursers=await store.count_rows(Disburser),
        total_beneficiaries=await store.count_rows(Beneficiary),
        total_allocations=len(allocations),
        total_fraud_alerts=await store.count_rows(FraudAlert),
        allocations_last_7_days=_allocations_per_day(recent_df, now),
        units_distributed=_units_distributed(goods_rows),
        low_stock_lines=[to_line(row) for row in low_stock],
        last_updated=now,
    )
    logger.info(f"Dashboard: {metrics.total_allocations} allocations, "
                f"{len(metrics.low_stock_lines)} low-stock lines")
    return metrics
