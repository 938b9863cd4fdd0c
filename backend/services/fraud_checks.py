"""
Rule-Based Fraud Checks
Deterministic rules over the fraud ledger and recent allocations, served to
the fraud monitor as severity-tiered checks.
"""
import uuid
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pandas as pd

from app.config import settings
from app.constants import FraudCheckType, NotificationSeverity
from database.repository import AidStore
from database.schemas import FraudCheck

logger = logging.getLogger(__name__)

# Stable ids so that repeated polls describe the same finding with the same id
_CHECK_NAMESPACE = uuid.UUID("6f1c8a52-3d0e-4b7f-9a61-2c5e8d4b7f10")


def _check_id(*parts: str) -> str:
    return str(uuid.uuid5(_CHECK_NAMESPACE, "|".join(parts)))


class FraudCheckEngine:
    """
    Each rule takes a DataFrame and returns a list of FraudCheck records.
    Thresholds come from settings unless a config dict is supplied.
    """

    def __init__(self, rules_config: Dict = None):
        self.config = rules_config or {
            "duplicate_alerts_medium": settings.DUPLICATE_ALERTS_MEDIUM,
            "duplicate_alerts_high": settings.DUPLICATE_ALERTS_HIGH,
            "disburser_alerts_medium": settings.DISBURSER_ALERTS_MEDIUM,
            "disburser_alerts_high": settings.DISBURSER_ALERTS_HIGH,
        }

    # ── Rule 1: Repeated duplicate attempts per beneficiary ──────────────────

    def detect_duplicate_payments(self, alerts_df: pd.DataFrame) -> List[FraudCheck]:
        if alerts_df.empty:
            return []
        checks = []
        grouped = alerts_df.groupby("beneficiary_id").agg(
            attempts=("id", "count"),
            last_attempt=("attempted_at", "max"),
        )
        for beneficiary_id, row in grouped.iterrows():
            attempts = int(row["attempts"])
            if attempts >= self.config["duplicate_alerts_high"]:
                severity = NotificationSeverity.HIGH
            elif attempts >= self.config["duplicate_alerts_medium"]:
                severity = NotificationSeverity.MEDIUM
            else:
                severity = NotificationSeverity.LOW
            checks.append(FraudCheck(
                id=_check_id("duplicate", beneficiary_id),
                type=FraudCheckType.DUPLICATE_PAYMENT,
                severity=severity,
                description=(
                    f"Beneficiary {beneficiary_id} had {attempts} duplicate "
                    f"allocation attempt(s) rejected"
                ),
                timestamp=row["last_attempt"].to_pydatetime(),
            ))
        return checks

    # ── Rule 2: Disbursers repeatedly triggering the duplicate check ─────────

    def detect_unusual_patterns(self, alerts_df: pd.DataFrame) -> List[FraudCheck]:
        if alerts_df.empty:
            return []
        checks = []
        grouped = alerts_df.groupby("disburser_id").agg(
            attempts=("id", "count"),
            beneficiaries=("beneficiary_id", "nunique"),
            last_attempt=("attempted_at", "max"),
        )
        flagged = grouped[grouped["attempts"] >= self.config["disburser_alerts_medium"]]
        for disburser_id, row in flagged.iterrows():
            attempts = int(row["attempts"])
            severity = (
                NotificationSeverity.HIGH
                if attempts >= self.config["disburser_alerts_high"]
                else NotificationSeverity.MEDIUM
            )
            checks.append(FraudCheck(
                id=_check_id("disburser", disburser_id),
                type=FraudCheckType.UNUSUAL_PATTERN,
                severity=severity,
                description=(
                    f"Disburser {disburser_id} triggered {attempts} duplicate checks "
                    f"across {int(row['beneficiaries'])} beneficiaries"
                ),
                timestamp=row["last_attempt"].to_pydatetime(),
            ))
        return checks

    # ── Rule 3: Allocations outside the disburser's region ───────────────────

    def detect_cross_region(self, allocations_df: pd.DataFrame) -> List[FraudCheck]:
        if allocations_df.empty:
            return []
        crossed = allocations_df[
            allocations_df["disburser_region_id"].notna()
            & (allocations_df["disburser_region_id"] != allocations_df["beneficiary_region_id"])
        ]
        return [
            FraudCheck(
                id=_check_id("region", row["id"]),
                type=FraudCheckType.MULTIPLE_REGION,
                severity=NotificationSeverity.MEDIUM,
                description=(
                    f"Disburser {row['disburser_id']} allocated to beneficiary "
                    f"{row['beneficiary_id']} registered in another region"
                ),
                timestamp=row["allocated_at"].to_pydatetime(),
            )
            for _, row in crossed.iterrows()
        ]

    def run_all_rules(self, alerts_df: pd.DataFrame, allocations_df: pd.DataFrame) -> List[FraudCheck]:
        checks: List[FraudCheck] = []
        checks.extend(self.detect_duplicate_payments(alerts_df))
        checks.extend(self.detect_unusual_patterns(alerts_df))
        checks.extend(self.detect_cross_region(allocations_df))
        logger.info(
            f"Fraud checks produced {len(checks)} finding(s) from {len(alerts_df)} alerts "
            f"and {len(allocations_df)} allocations"
        )
        return checks


async def compute_fraud_checks(store: AidStore, now: Optional[datetime] = None,
                               lookback_hours: Optional[int] = None,
                               engine: Optional[FraudCheckEngine] = None) -> List[FraudCheck]:
    """Load the lookback window from the store and run every rule over it."""
    now = now or datetime.utcnow()
    hours = settings.FRAUD_CHECK_LOOKBACK_HOURS if lookback_hours is None else lookback_hours
    since = now - timedelta(hours=hours)

    alerts = await store.list_fraud_alerts(since=since)
    alerts_df = pd.DataFrame(
        [
            {
                "id": a.id,
                "beneficiary_id": a.beneficiary_id,
                "disburser_id": a.disburser_id,
                "attempted_at": a.attempted_at,
            }
            for a in alerts
        ],
        columns=["id", "beneficiary_id", "disburser_id", "attempted_at"],
    )
    alerts_df["attempted_at"] = pd.to_datetime(alerts_df["attempted_at"])

    allocations = await store.list_allocations(since=since)
    beneficiary_regions = {b.id: b.region_id for b in await store.list_beneficiaries()}
    disburser_regions = {d.id: d.region_id for d in await store.list_disbursers()}
    allocations_df = pd.DataFrame(
        [
            {
                "id": a.id,
                "beneficiary_id": a.beneficiary_id,
                "disburser_id": a.disburser_id,
                "allocated_at": a.allocated_at,
                "beneficiary_region_id": beneficiary_regions.get(a.beneficiary_id),
                "disburser_region_id": disburser_regions.get(a.disburser_id),
            }
            for a in allocations
        ],
        columns=["id", "beneficiary_id", "disburser_id", "allocated_at",
                 "beneficiary_region_id", "disburser_region_id"],
    )
    allocations_df["allocated_at"] = pd.to_datetime(allocations_df["allocated_at"])

    return (engine or FraudCheckEngine()).run_all_rules(alerts_df, allocations_df)
