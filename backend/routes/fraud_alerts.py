"""Fraud ledger, fraud checks and notification feed routes."""
from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from datetime import datetime

from app.constants import NotificationSeverity
from database.repository import AidStore
from database.schemas import FraudAlertResponse, FraudCheck, Notification, SessionContext
from routes.deps import get_notification_feed, get_store, require_admin
from services.fraud_checks import compute_fraud_checks
from services.fraud_monitor import NotificationFeed
from utils.identifiers import require_uuid

router = APIRouter(prefix="/api/v1", tags=["Fraud Detection"])


@router.get("/fraud/alerts", response_model=List[FraudAlertResponse])
async def get_fraud_alerts(
    beneficiary_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    _: SessionContext = Depends(require_admin),
    store: AidStore = Depends(get_store),
):
    """Rejected duplicate attempts, newest first."""
    if beneficiary_id:
        beneficiary_id = require_uuid(beneficiary_id, "beneficiary_id")
    alerts = await store.list_fraud_alerts()
    if beneficiary_id:
        alerts = [a for a in alerts if a.beneficiary_id == beneficiary_id]
    return alerts[:limit]


@router.get("/fraud-detection/check", response_model=List[FraudCheck])
async def fraud_check(
    lookback_hours: Optional[int] = Query(None, ge=1, le=24 * 30),
    store: AidStore = Depends(get_store),
):
    """Severity-tiered fraud checks polled by the fraud monitor."""
    return await compute_fraud_checks(store, lookback_hours=lookback_hours)


@router.get("/fraud/notifications")
async def get_notifications(
    severity: Optional[NotificationSeverity] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    _: SessionContext = Depends(require_admin),
    feed: NotificationFeed = Depends(get_notification_feed),
):
    items: List[Notification] = feed.recent(limit=limit, severity=severity)
    return {
        "notifications": [n.model_dump(mode="json") for n in items],
        "count": len(items),
        "generated_at": datetime.utcnow().isoformat(),
    }
