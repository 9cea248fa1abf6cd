import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import and_, delete, desc, func, cast, Date
from app.models.inventory.stock import Stock
from app.models.inventory.stock_movement import StockMovement
from app.models.shared.enums import StockMovementType, AdjustmentReason
from app.models.shared.references import MovementReference

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reconciliation:
    stock_id: int
    ledger_quantity: Decimal
    movement_quantity: Decimal
    movement_count: int

    @property
    def variance(self) -> Decimal:
        return self.ledger_quantity - self.movement_quantity

    @property
    def is_consistent(self) -> bool:
        return self.variance == 0


class StockMovementService:
    """Append-only history of quantity changes.

    Rows are written only by StockLedgerService.apply_delta. The one
    exception to immutability is delete_for_reference, used when an
    unapproved adjustment is removed together with its movements.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        stock: Stock,
        movement_type: StockMovementType,
        quantity: Decimal,
        previous_quantity: Decimal,
        new_quantity: Decimal,
        unit_cost: Decimal,
        reference: MovementReference,
        current_user_id: Optional[int],
        reason: Optional[AdjustmentReason] = None,
        notes: Optional[str] = None
    ) -> StockMovement:
        movement = StockMovement(
            business_id=stock.business_id,
            branch_id=stock.branch_id,
            product_id=stock.product_id,
            stock_id=stock.id,
            user_id=current_user_id,
            movement_type=movement_type,
            quantity=quantity,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
            unit_cost=unit_cost,
            reference=reference,
            reason=reason,
            notes=notes,
            created_by=current_user_id
        )
        self.db.add(movement)
        await self.db.flush()
        logger.debug(
            f"Movement {movement.id} {movement_type.value} {quantity} on stock {stock.id} ({reference})"
        )
        return movement

    async def list_movements(
        self,
        business_id: int,
        branch_id: Optional[int] = None,
        product_id: Optional[int] = None,
        movement_type: Optional[StockMovementType] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[StockMovement]:
        """Get movements with optional filters, newest first"""
        conditions = [StockMovement.business_id == business_id]

        if branch_id:
            conditions.append(StockMovement.branch_id == branch_id)

        if product_id:
            conditions.append(StockMovement.product_id == product_id)

        if movement_type:
            conditions.append(StockMovement.movement_type == movement_type)

        if start_date:
            conditions.append(cast(StockMovement.movement_date, Date) >= start_date)

        if end_date:
            conditions.append(cast(StockMovement.movement_date, Date) <= end_date)

        query = (
            select(StockMovement)
            .where(and_(*conditions))
            .order_by(desc(StockMovement.id))
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return result.scalars().all()

    async def get_by_reference(self, reference: MovementReference) -> List[StockMovement]:
        """Get movements caused by one purchase, transfer, adjustment, sale or return"""
        result = await self.db.execute(
            select(StockMovement)
            .where(StockMovement.reference == reference)
            .order_by(StockMovement.id)
        )
        return result.scalars().all()

    async def delete_for_reference(self, reference: MovementReference) -> int:
        result = await self.db.execute(
            delete(StockMovement)
            .where(StockMovement.reference == reference)
            .execution_options(synchronize_session="fetch")
        )
        logger.info(f"Removed {result.rowcount} movements for {reference}")
        return result.rowcount

    async def net_quantity(self, business_id: int, branch_id: int, product_id: int) -> Decimal:
        """Sum of all deltas recorded for one ledger key"""
        result = await self.db.execute(
            select(func.coalesce(func.sum(StockMovement.quantity), 0))
            .where(and_(
                StockMovement.business_id == business_id,
                StockMovement.branch_id == branch_id,
                StockMovement.product_id == product_id
            ))
        )
        return Decimal(result.scalar() or 0)

    async def reconcile(self, stock: Stock) -> Reconciliation:
        result = await self.db.execute(
            select(
                func.coalesce(func.sum(StockMovement.quantity), 0),
                func.count(StockMovement.id)
            )
            .where(StockMovement.stock_id == stock.id)
        )
        total, count = result.one()
        reconciliation = Reconciliation(
            stock_id=stock.id,
            ledger_quantity=Decimal(stock.quantity or 0),
            movement_quantity=Decimal(total or 0),
            movement_count=int(count)
        )
        if not reconciliation.is_consistent:
            logger.warning(
                f"Stock {stock.id} variance {reconciliation.variance}: ledger {reconciliation.ledger_quantity}, "
                f"movements {reconciliation.movement_quantity}"
            )
        return reconciliation
