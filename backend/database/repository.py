"""
Data-access boundary for the aid distribution store.

Every identifier is validated before a query is built, so a malformed id
fails with InvalidIdentifier without touching the database. Every driver or
ORM failure is rolled back and re-raised as PersistenceError. Writes commit
individually; callers compose them without a surrounding transaction.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, delete, func, case
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from app.exceptions import ConflictError, NotFoundError, PersistenceError
from database.models import (
    Allocation, Beneficiary, Disburser, FraudAlert, GoodsType, Region, RegionalGoods,
)
from utils.identifiers import require_uuid

logger = logging.getLogger(__name__)


class AidStore:
    """Row-level CRUD and filtered queries over one AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _guard(self, action: str):
        try:
            yield
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"Conflict while {action}: {e.orig}")
            raise ConflictError(f"Conflict while {action}")
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error {action}: {e}")
            raise PersistenceError(f"Store failure while {action}")

    async def _add(self, row, action: str):
        async with self._guard(action):
            self.session.add(row)
            await self.session.commit()
        return row

    async def count_rows(self, model) -> int:
        async with self._guard(f"counting {model.__tablename__}"):
            return int(await self.session.scalar(select(func.count()).select_from(model)))

    # ── Regions ───────────────────────────────────────────────────────────────

    async def create_region(self, name: str) -> Region:
        return await self._add(Region(name=name), "creating region")

    async def list_regions(self) -> List[Region]:
        async with self._guard("fetching regions"):
            result = await self.session.execute(select(Region).order_by(Region.name))
            return list(result.scalars())

    async def get_region(self, region_id: str) -> Optional[Region]:
        region_id = require_uuid(region_id, "region_id")
        async with self._guard("fetching region"):
            return await self.session.get(Region, region_id)

    # ── Disbursers ────────────────────────────────────────────────────────────

    async def create_disburser(self, name: str, phone_number: str, region_id: str,
                               is_active: bool = True) -> Disburser:
        region_id = require_uuid(region_id, "region_id")
        row = Disburser(name=name, phone_number=phone_number, region_id=region_id,
                        is_active=is_active)
        return await self._add(row, "creating disburser")

    async def list_disbursers(self, region_id: Optional[str] = None) -> List[Disburser]:
        query = select(Disburser).order_by(Disburser.name)
        if region_id is not None:
            query = query.where(Disburser.region_id == require_uuid(region_id, "region_id"))
        async with self._guard("fetching disbursers"):
            result = await self.session.execute(query)
            return list(result.scalars())

    async def get_disburser(self, disburser_id: str) -> Optional[Disburser]:
        disburser_id = require_uuid(disburser_id, "disburser_id")
        async with self._guard("fetching disburser"):
            return await self.session.get(Disburser, disburser_id)

    async def update_disburser(self, disburser_id: str, changes: Dict[str, Any]) -> Disburser:
        disburser = await self.get_disburser(disburser_id)
        if disburser is None:
            raise NotFoundError(f"Disburser {disburser_id} not found")
        if changes.get("region_id") is not None:
            changes["region_id"] = require_uuid(changes["region_id"], "region_id")
        async with self._guard("updating disburser"):
            for field, value in changes.items():
                setattr(disburser, field, value)
            await self.session.commit()
        return disburser

    async def delete_disburser(self, disburser_id: str) -> None:
        disburser_id = require_uuid(disburser_id, "disburser_id")
        async with self._guard("deleting disburser"):
            result = await self.session.execute(
                delete(Disburser).where(Disburser.id == disburser_id)
            )
            await self.session.commit()
        if result.rowcount == 0:
            raise NotFoundError(f"Disburser {disburser_id} not found")

    # ── Beneficiaries ─────────────────────────────────────────────────────────

    async def insert_beneficiary(self, name: str, region_id: str, registered_by: str,
                                 unique_identifiers: Dict[str, str],
                                 estimated_age: Optional[int] = None,
                                 height: Optional[float] = None) -> Beneficiary:
        row = Beneficiary(
            name=name,
            region_id=require_uuid(region_id, "region_id"),
            registered_by=require_uuid(registered_by, "registered_by"),
            unique_identifiers=dict(unique_identifiers),
            estimated_age=estimated_age,
            height=height,
        )
        return await self._add(row, "registering beneficiary")

    async def get_beneficiary(self, beneficiary_id: str) -> Optional[Beneficiary]:
        beneficiary_id = require_uuid(beneficiary_id, "beneficiary_id")
        async with self._guard("fetching beneficiary"):
            return await self.session.get(Beneficiary, beneficiary_id)

    async def list_beneficiaries_by_region(self, region_id: str) -> List[Beneficiary]:
        region_id = require_uuid(region_id, "region_id")
        async with self._guard("fetching beneficiaries"):
            result = await self.session.execute(
                select(Beneficiary)
                .where(Beneficiary.region_id == region_id)
                .order_by(Beneficiary.name)
            )
            return list(result.scalars())

    async def list_beneficiaries(self) -> List[Beneficiary]:
        async with self._guard("fetching beneficiaries"):
            result = await self.session.execute(
                select(Beneficiary).order_by(Beneficiary.created_at.desc())
            )
            return list(result.scalars())

    # ── Goods catalog ─────────────────────────────────────────────────────────

    async def create_goods_type(self, name: str, description: Optional[str] = None) -> GoodsType:
        return await self._add(GoodsType(name=name, description=description),
                               "creating goods type")

    async def list_goods_types(self) -> List[GoodsType]:
        async with self._guard("fetching goods types"):
            result = await self.session.execute(select(GoodsType).order_by(GoodsType.name))
            return list(result.scalars())

    # ── Regional stock ────────────────────────────────────────────────────────

    def _stock_query(self):
        return (
            select(RegionalGoods)
            .join(GoodsType, RegionalGoods.goods_type_id == GoodsType.id)
            .options(contains_eager(RegionalGoods.goods_type))
            .order_by(GoodsType.name)
            # quantities change under bulk UPDATEs; always reload them
            .execution_options(populate_existing=True)
        )

    async def get_regional_goods(self, region_id: str) -> List[RegionalGoods]:
        region_id = require_uuid(region_id, "region_id")
        async with self._guard("fetching regional goods"):
            result = await self.session.execute(
                self._stock_query().where(RegionalGoods.region_id == region_id)
            )
            return list(result.scalars())

    async def get_regional_goods_line(self, line_id: str) -> Optional[RegionalGoods]:
        line_id = require_uuid(line_id, "line_id")
        async with self._guard("fetching regional goods line"):
            result = await self.session.execute(
                self._stock_query().where(RegionalGoods.id == line_id)
            )
            return result.scalars().first()

    async def list_low_stock(self, threshold: int) -> List[RegionalGoods]:
        async with self._guard("fetching low stock lines"):
            result = await self.session.execute(
                self._stock_query().where(RegionalGoods.quantity <= threshold)
            )
            return list(result.scalars())

    async def insert_regional_goods(self, region_id: str, goods_type_id: str,
                                    quantity: int = 0) -> RegionalGoods:
        row = RegionalGoods(
            region_id=require_uuid(region_id, "region_id"),
            goods_type_id=require_uuid(goods_type_id, "goods_type_id"),
            quantity=max(0, quantity),
        )
        return await self._add(row, "creating regional goods entry")

    async def set_regional_goods_quantity(self, line_id: str, quantity: int) -> int:
        line_id = require_uuid(line_id, "line_id")
        quantity = max(0, int(quantity))
        async with self._guard("updating regional goods quantity"):
            result = await self.session.execute(
                update(RegionalGoods)
                .where(RegionalGoods.id == line_id)
                .values(quantity=quantity, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        if result.rowcount == 0:
            raise NotFoundError(f"Regional goods line {line_id} not found")
        return quantity

    async def decrement_regional_goods(self, line_id: str) -> int:
        """Take one unit off a stock line at the store, never below zero."""
        line_id = require_uuid(line_id, "line_id")
        async with self._guard("decrementing regional goods"):
            result = await self.session.execute(
                update(RegionalGoods)
                .where(RegionalGoods.id == line_id)
                .values(
                    quantity=case(
                        (RegionalGoods.quantity > 0, RegionalGoods.quantity - 1),
                        else_=0,
                    ),
                    updated_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            if result.rowcount == 0:
                raise NotFoundError(f"Regional goods line {line_id} not found")
            return int(await self.session.scalar(
                select(RegionalGoods.quantity).where(RegionalGoods.id == line_id)
            ))

    # ── Allocations ───────────────────────────────────────────────────────────

    async def list_allocations(self, beneficiary_id: Optional[str] = None,
                               since: Optional[datetime] = None) -> List[Allocation]:
        query = select(Allocation).order_by(Allocation.allocated_at.desc())
        if beneficiary_id is not None:
            query = query.where(
                Allocation.beneficiary_id == require_uuid(beneficiary_id, "beneficiary_id")
            )
        if since is not None:
            query = query.where(Allocation.allocated_at > since)
        async with self._guard("fetching allocations"):
            result = await self.session.execute(query)
            return list(result.scalars())

    async def exists_allocation(self, beneficiary_id: str, since: datetime) -> bool:
        """True if the beneficiary has an allocation strictly after `since`."""
        beneficiary_id = require_uuid(beneficiary_id, "beneficiary_id")
        async with self._guard("checking recent allocations"):
            found = await self.session.scalar(
                select(Allocation.id)
                .where(Allocation.beneficiary_id == beneficiary_id)
                .where(Allocation.allocated_at > since)
                .limit(1)
            )
        return found is not None

    async def insert_allocation(self, beneficiary_id: str, disburser_id: str,
                                goods: List[Dict[str, Any]],
                                location: Optional[Dict[str, float]] = None,
                                allocated_at: Optional[datetime] = None) -> Allocation:
        row = Allocation(
            beneficiary_id=require_uuid(beneficiary_id, "beneficiary_id"),
            disburser_id=require_uuid(disburser_id, "disburser_id"),
            goods=goods,
            location=location,
            allocated_at=allocated_at or datetime.utcnow(),
        )
        return await self._add(row, "creating allocation")

    # ── Fraud ledger ──────────────────────────────────────────────────────────

    async def insert_fraud_alert(self, beneficiary_id: str, disburser_id: str,
                                 location: Optional[Dict[str, float]] = None,
                                 details: Optional[str] = None,
                                 attempted_at: Optional[datetime] = None) -> FraudAlert:
        row = FraudAlert(
            beneficiary_id=require_uuid(beneficiary_id, "beneficiary_id"),
            disburser_id=require_uuid(disburser_id, "disburser_id"),
            location=location,
            details=details,
            attempted_at=attempted_at or datetime.utcnow(),
        )
        return await self._add(row, "creating fraud alert")

    async def list_fraud_alerts(self, since: Optional[datetime] = None) -> List[FraudAlert]:
        query = select(FraudAlert).order_by(FraudAlert.attempted_at.desc())
        if since is not None:
            query = query.where(FraudAlert.attempted_at > since)
        async with self._guard("fetching fraud alerts"):
            result = await self.session.execute(query)
            return list(result.scalars())
