import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import and_, func
from app.core.config import settings
from app.core.exceptions import ValidationError
from app.models.inventory.stock import Stock
from app.models.inventory.stock_batch import StockBatch
from app.utils.quantities import Number, quantize_cost, quantize_quantity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchDraw:
    batch_id: int
    batch_number: str
    quantity: Decimal
    unit_cost: Decimal

    @property
    def cost(self) -> Decimal:
        return self.quantity * self.unit_cost


@dataclass
class FifoConsumption:
    quantity: Decimal
    draws: List[BatchDraw] = field(default_factory=list)
    unbatched_quantity: Decimal = Decimal("0")
    unbatched_unit_cost: Decimal = Decimal("0")

    @property
    def total_cost(self) -> Decimal:
        batched = sum((draw.cost for draw in self.draws), Decimal("0"))
        return batched + self.unbatched_quantity * self.unbatched_unit_cost

    @property
    def unit_cost(self) -> Decimal:
        """Cost per unit of the whole consumption"""
        if not self.quantity:
            return Decimal("0")
        return quantize_cost(self.total_cost / self.quantity)


class StockBatchService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_receipt(
        self,
        stock: Stock,
        quantity: Number,
        unit_cost: Number,
        received_date: Optional[date] = None,
        purchase_item_id: Optional[int] = None,
        purchase_reference: Optional[str] = None,
        batch_number: Optional[str] = None,
        expiry_date: Optional[date] = None,
        notes: Optional[str] = None,
        current_user_id: Optional[int] = None
    ) -> StockBatch:
        """Create a batch for received stock"""
        quantity = quantize_quantity(quantity)
        if quantity <= 0:
            raise ValidationError("Batch quantity must be greater than zero")

        received_date = received_date or date.today()
        if not batch_number:
            batch_number = await self._generate_batch_number(stock.business_id, received_date)

        batch = StockBatch(
            business_id=stock.business_id,
            branch_id=stock.branch_id,
            stock_id=stock.id,
            product_id=stock.product_id,
            purchase_item_id=purchase_item_id,
            batch_number=batch_number,
            purchase_reference=purchase_reference,
            quantity_received=quantity,
            quantity_remaining=quantity,
            unit_cost=quantize_cost(unit_cost),
            received_date=received_date,
            expiry_date=expiry_date,
            notes=notes,
            created_by=current_user_id
        )
        self.db.add(batch)
        await self.db.flush()
        return batch

    async def _generate_batch_number(self, business_id: int, on_date: date) -> str:
        """Generate batch number unique per business per day"""
        prefix = f"BATCH-{on_date.strftime('%Y%m%d')}"

        result = await self.db.execute(
            select(func.max(StockBatch.batch_number))
            .where(and_(
                StockBatch.business_id == business_id,
                StockBatch.batch_number.like(f"{prefix}-%")
            ))
        )
        last_number = result.scalar()
        sequence = int(last_number.rsplit("-", 1)[1]) + 1 if last_number else 1

        return f"{prefix}-{sequence:05d}"

    async def consume_fifo(self, stock: Stock, quantity: Number) -> FifoConsumption:
        """Draw down open batches oldest first.

        Quantity the batches cannot cover is costed at the stock's current
        weighted average and reported as unbatched.
        """
        quantity = quantize_quantity(quantity)
        if quantity <= 0:
            raise ValidationError("Quantity to consume must be greater than zero")

        consumption = FifoConsumption(quantity=quantity, unbatched_unit_cost=Decimal(stock.unit_cost or 0))
        remaining = quantity

        for batch in await self.available_batches(stock.id, for_update=True):
            if remaining <= 0:
                break
            available = Decimal(batch.quantity_remaining)
            take = min(available, remaining)
            batch.quantity_remaining = available - take
            remaining -= take
            consumption.draws.append(BatchDraw(
                batch_id=batch.id,
                batch_number=batch.batch_number,
                quantity=take,
                unit_cost=Decimal(batch.unit_cost)
            ))

        if remaining > 0:
            consumption.unbatched_quantity = remaining
            logger.warning(
                f"Stock {stock.id}: {remaining} of {quantity} not covered by batches, "
                f"costed at average {consumption.unbatched_unit_cost}"
            )

        await self.db.flush()
        return consumption

    async def available_batches(self, stock_id: int, for_update: bool = False) -> List[StockBatch]:
        """Get batches with remaining quantity in FIFO order"""
        query = (
            select(StockBatch)
            .where(and_(
                StockBatch.stock_id == stock_id,
                StockBatch.quantity_remaining > 0
            ))
            .order_by(StockBatch.received_date, StockBatch.id)
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalars().all()

    async def expiring_batches(
        self,
        business_id: int,
        days: Optional[int] = None,
        branch_id: Optional[int] = None
    ) -> List[StockBatch]:
        """Get open batches expiring within the given number of days"""
        days = settings.EXPIRING_BATCH_DAYS if days is None else days
        threshold = date.today() + timedelta(days=days)

        query = select(StockBatch).where(and_(
            StockBatch.business_id == business_id,
            StockBatch.quantity_remaining > 0,
            StockBatch.expiry_date.isnot(None),
            StockBatch.expiry_date <= threshold
        ))
        if branch_id:
            query = query.where(StockBatch.branch_id == branch_id)

        result = await self.db.execute(query.order_by(StockBatch.expiry_date, StockBatch.id))
        return result.scalars().all()
