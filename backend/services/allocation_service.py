"""
Allocation & Duplicate-Detection Workflow
=========================================
One linear pipeline per attempt, no retries:

  IDLE → VALIDATING → CHECKING_DUPLICATE → FRAUD_REJECTED
                                         → COMMITTING → STOCK_ADJUSTING → SUCCESS
  any failing step → FAILED

A beneficiary with an allocation inside the duplicate window is rejected and
a fraud alert is written instead. Otherwise the allocation is committed and
each selected goods line is decremented by one, one write at a time in
selection order. Nothing is rolled back: a store failure after the commit
leaves the allocation in place with some decrements missing.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

from app.config import settings
from app.constants import AllocationOutcome, AllocationState, UNITS_PER_ALLOCATION
from app.exceptions import AidServiceError, PersistenceError, ValidationError
from database.repository import AidStore
from database.schemas import (
    AllocatedGoods, AllocationRequest, AllocationResponse, AllocationResult,
    FraudAlertResponse, SessionContext,
)
from utils.identifiers import require_uuid

logger = logging.getLogger(__name__)


class BeneficiaryLocks:
    """
    Serialises check → commit per beneficiary within this process.

    A lock lives only while some attempt holds or waits on it, so the
    registry stays as small as the number of in-flight beneficiaries.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, beneficiary_id: str):
        lock = self._locks.get(beneficiary_id)
        if lock is None:
            lock = self._locks[beneficiary_id] = asyncio.Lock()
        self._users[beneficiary_id] = self._users.get(beneficiary_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[beneficiary_id] -= 1
            if not self._users[beneficiary_id]:
                del self._users[beneficiary_id]
                del self._locks[beneficiary_id]

    def __len__(self):
        return len(self._locks)


class StockTarget(NamedTuple):
    line_id: str
    goods_type_id: str
    name: str


class AllocationWorkflow:
    """
    Decides between recording an allocation and rejecting a duplicate.

    The clock is injectable so the duplicate window can be tested at its
    edges; it must return naive UTC datetimes like the store does.
    Requests that may race must share one BeneficiaryLocks; without one
    the workflow only serialises against itself.
    """

    def __init__(
        self,
        store: AidStore,
        clock: Callable[[], datetime] = datetime.utcnow,
        window_minutes: Optional[int] = None,
        locks: Optional[BeneficiaryLocks] = None,
    ):
        self.store = store
        self.clock = clock
        self.window = timedelta(
            minutes=settings.DUPLICATE_WINDOW_MINUTES if window_minutes is None else window_minutes
        )
        self.locks = BeneficiaryLocks() if locks is None else locks
        self.state = AllocationState.IDLE
        self.history: List[AllocationState] = [AllocationState.IDLE]

    def _enter(self, state: AllocationState):
        self.state = state
        self.history.append(state)
        logger.debug(f"Allocation workflow → {state.value}")

    # ── Step 1: validation ────────────────────────────────────────────────────

    @staticmethod
    def _selected_goods(goods_type_ids: List[str]) -> List[str]:
        """Validated goods-type ids, duplicates collapsed, selection order kept."""
        selected: List[str] = []
        for raw in goods_type_ids:
            goods_type_id = require_uuid(raw, "goods_type_id")
            if goods_type_id not in selected:
                selected.append(goods_type_id)
        return selected

    async def _validate(self, request: AllocationRequest) -> Tuple[str, List[StockTarget]]:
        if not request.beneficiary_id:
            raise ValidationError("Please select a beneficiary")
        if not request.goods_type_ids:
            raise ValidationError("Please select at least one goods type")
        beneficiary_id = require_uuid(request.beneficiary_id, "beneficiary_id")
        selected = self._selected_goods(request.goods_type_ids)

        beneficiary = await self.store.get_beneficiary(beneficiary_id)
        if beneficiary is None:
            raise ValidationError(f"Beneficiary {beneficiary_id} does not exist")

        lines = {
            line.goods_type_id: line
            for line in await self.store.get_regional_goods(beneficiary.region_id)
        }
        # plain values only: a failed write later rolls back and expires ORM rows
        targets: List[StockTarget] = []
        for goods_type_id in selected:
            line = lines.get(goods_type_id)
            if line is None or line.quantity <= 0:
                name = line.goods_type.name if line is not None else goods_type_id
                raise ValidationError(f"No stock of {name} available in this region")
            targets.append(StockTarget(line.id, line.goods_type_id, line.goods_type.name))
        return beneficiary.id, targets

    # ── Entry point ───────────────────────────────────────────────────────────

    async def allocate(self, session: SessionContext, request: AllocationRequest) -> AllocationResult:
        """Run one allocation attempt on behalf of the session's user."""
        self._enter(AllocationState.VALIDATING)
        try:
            beneficiary_id, targets = await self._validate(request)
            location = request.location.model_dump() if request.location else None

            async with self.locks.hold(beneficiary_id):
                self._enter(AllocationState.CHECKING_DUPLICATE)
                since = self.clock() - self.window
                if await self.store.exists_allocation(beneficiary_id, since):
                    return await self._reject(session, beneficiary_id, location)

                self._enter(AllocationState.COMMITTING)
                goods = [
                    AllocatedGoods(
                        goods_type_id=target.goods_type_id,
                        name=target.name,
                        quantity=UNITS_PER_ALLOCATION,
                    ).model_dump()
                    for target in targets
                ]
                allocation = AllocationResponse.model_validate(
                    await self.store.insert_allocation(
                        beneficiary_id=beneficiary_id,
                        disburser_id=session.user_id,
                        goods=goods,
                        location=location,
                        allocated_at=self.clock(),
                    )
                )

            self._enter(AllocationState.STOCK_ADJUSTING)
            remaining: Dict[str, int] = {}
            for target in targets:
                try:
                    remaining[target.goods_type_id] = await self.store.decrement_regional_goods(
                        target.line_id
                    )
                except AidServiceError as e:
                    logger.error(
                        f"Allocation {allocation.id} committed but stock line {target.line_id} "
                        f"was not decremented: {e.message}"
                    )
                    raise PersistenceError(
                        f"Allocation recorded but inventory update failed for {target.name}",
                        allocation_id=allocation.id,
                    )
        except Exception:
            self._enter(AllocationState.FAILED)
            raise

        self._enter(AllocationState.SUCCESS)
        logger.info(
            f"Allocated {len(targets)} goods type(s) to beneficiary {beneficiary_id} "
            f"by disburser {session.user_id}"
        )
        return AllocationResult(
            outcome=AllocationOutcome.SUCCESS,
            message="Resources allocated successfully",
            allocation=allocation,
            remaining_stock=remaining,
        )

    async def _reject(self, session: SessionContext, beneficiary_id: str,
                      location: Optional[Dict[str, float]]) -> AllocationResult:
        self._enter(AllocationState.FRAUD_REJECTED)
        alert = await self.store.insert_fraud_alert(
            beneficiary_id=beneficiary_id,
            disburser_id=session.user_id,
            location=location,
            details=settings.FRAUD_ALERT_DETAILS,
            attempted_at=self.clock(),
        )
        logger.warning(
            f"Duplicate allocation attempt for beneficiary {beneficiary_id} "
            f"by disburser {session.user_id} (alert {alert.id})"
        )
        return AllocationResult(
            outcome=AllocationOutcome.FRAUD_REJECTED,
            message=settings.FRAUD_REJECTION_MESSAGE,
            fraud_alert=FraudAlertResponse.model_validate(alert),
        )
