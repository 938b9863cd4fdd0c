"""Regional inventory views, reconciliation and manual stock edits."""
import logging
from typing import List

from app.exceptions import ConflictError, NotFoundError, ValidationError
from database.models import RegionalGoods
from database.repository import AidStore
from database.schemas import RegionalGoodsLine

logger = logging.getLogger(__name__)


def to_line(row: RegionalGoods) -> RegionalGoodsLine:
    return RegionalGoodsLine(
        id=row.id,
        region_id=row.region_id,
        goods_type_id=row.goods_type_id,
        goods_name=row.goods_type.name,
        description=row.goods_type.description,
        quantity=row.quantity,
    )


class InventoryService:
    def __init__(self, store: AidStore):
        self.store = store

    async def reconcile_region(self, region_id: str) -> int:
        """
        Create a zero-quantity stock line for every goods type the region lacks.

        Returns the number of lines created. Running it again once the lines
        exist creates nothing; a concurrent insert that wins the uniqueness
        constraint is skipped.
        """
        if await self.store.get_region(region_id) is None:
            raise NotFoundError(f"Region {region_id} not found")
        existing = {line.goods_type_id for line in await self.store.get_regional_goods(region_id)}
        missing = [
            (goods_type.id, goods_type.name)
            for goods_type in await self.store.list_goods_types()
            if goods_type.id not in existing
        ]
        created = 0
        for goods_type_id, name in missing:
            try:
                await self.store.insert_regional_goods(region_id, goods_type_id, quantity=0)
                created += 1
            except ConflictError:
                logger.info(f"Stock line for {name} in region {region_id} already exists")
        if created:
            logger.info(f"Reconciled region {region_id}: created {created} stock line(s)")
        return created

    async def region_inventory(self, region_id: str) -> List[RegionalGoodsLine]:
        """Reconcile, then return every stock line in the region."""
        await self.reconcile_region(region_id)
        return [to_line(row) for row in await self.store.get_regional_goods(region_id)]

    async def set_quantity(self, line_id: str, quantity: int) -> RegionalGoodsLine:
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative")
        await self.store.set_regional_goods_quantity(line_id, quantity)
        row = await self.store.get_regional_goods_line(line_id)
        logger.info(f"Stock line {line_id} set to {quantity}")
        return to_line(row)
