import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import and_, func
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.exceptions import (
    InsufficientStockError,
    LockTimeoutError,
    NotFoundError,
    ValidationError,
)
from app.core.unit_of_work import is_lock_not_available
from app.models.inventory.product import Product
from app.models.inventory.stock import Stock, StockSnapshot
from app.models.inventory.stock_movement import StockMovement
from app.models.organization.branch import Branch
from app.models.shared.enums import AdjustmentReason, StockMovementType
from app.models.shared.references import MovementReference
from app.services.inventory.stock_movement_service import StockMovementService
from app.utils.quantities import Number, quantize_cost, quantize_quantity, to_decimal, weighted_average_cost

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerChange:
    """Result of one apply_delta call"""
    previous: StockSnapshot
    current: StockSnapshot
    movement: StockMovement
    stock: Stock


class StockLedgerService:
    """Per (business, branch, product) quantity and weighted-average cost.

    Every mutation goes through apply_delta, which holds the stock row lock
    from read to movement insert and writes exactly one movement. The lock is
    released when the caller's unit of work commits or rolls back.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.movements = StockMovementService(db)

    def _stock_query(self, business_id: int, branch_id: int, product_id: int):
        return select(Stock).where(and_(
            Stock.business_id == business_id,
            Stock.branch_id == branch_id,
            Stock.product_id == product_id
        ))

    async def get_stock(self, business_id: int, branch_id: int, product_id: int) -> Optional[Stock]:
        """Get stock row without locking"""
        result = await self.db.execute(self._stock_query(business_id, branch_id, product_id))
        return result.scalar_one_or_none()

    async def get_stock_by_id(self, stock_id: int) -> Optional[Stock]:
        result = await self.db.execute(select(Stock).where(Stock.id == stock_id))
        return result.scalar_one_or_none()

    async def _lock_stock(self, business_id: int, branch_id: int, product_id: int) -> Optional[Stock]:
        # of=Stock keeps the joined product/branch rows out of FOR UPDATE
        query = (
            self._stock_query(business_id, branch_id, product_id)
            .with_for_update(of=Stock)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.db.execute(query)
        except DBAPIError as e:
            if is_lock_not_available(e):
                logger.warning(f"Lock timeout on stock {business_id}/{branch_id}/{product_id}")
                raise LockTimeoutError(business_id, branch_id, product_id) from e
            raise
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        business_id: int,
        branch_id: int,
        product_id: int,
        current_user_id: Optional[int] = None
    ) -> Stock:
        """Get the stock row locked for update, creating an empty one on first use"""
        stock = await self._lock_stock(business_id, branch_id, product_id)
        if stock is not None:
            return stock

        await self._validate_key(business_id, branch_id, product_id)
        await self._insert_if_missing(business_id, branch_id, product_id, current_user_id)

        stock = await self._lock_stock(business_id, branch_id, product_id)
        if stock is None:
            raise NotFoundError(f"Stock for product {product_id} at branch {branch_id} could not be created")
        return stock

    async def _insert_if_missing(
        self,
        business_id: int,
        branch_id: int,
        product_id: int,
        current_user_id: Optional[int]
    ) -> None:
        """Insert an empty stock row; a concurrent insert of the same key wins silently"""
        values = dict(
            business_id=business_id,
            branch_id=branch_id,
            product_id=product_id,
            quantity=0,
            reserved_quantity=0,
            unit_cost=0,
            created_by=current_user_id,
            updated_by=current_user_id
        )
        dialect = self.db.get_bind().dialect.name
        if dialect in ("postgresql", "sqlite"):
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert
            else:
                from sqlalchemy.dialects.sqlite import insert
            statement = insert(Stock).values(**values).on_conflict_do_nothing(
                index_elements=["business_id", "branch_id", "product_id"]
            )
            await self.db.execute(statement)
            return

        try:
            async with self.db.begin_nested():
                self.db.add(Stock(**values))
        except IntegrityError:
            logger.debug(f"Stock {business_id}/{branch_id}/{product_id} created concurrently")

    async def _validate_key(self, business_id: int, branch_id: int, product_id: int) -> None:
        branch = await self.db.execute(
            select(Branch.business_id).where(Branch.id == branch_id)
        )
        branch_business = branch.scalar_one_or_none()
        if branch_business is None:
            raise NotFoundError(f"Branch {branch_id} not found")
        if branch_business != business_id:
            raise ValidationError(f"Branch {branch_id} does not belong to business {business_id}")

        product = await self.db.execute(
            select(Product.business_id).where(Product.id == product_id)
        )
        product_business = product.scalar_one_or_none()
        if product_business is None:
            raise NotFoundError(f"Product {product_id} not found")
        if product_business != business_id:
            raise ValidationError(f"Product {product_id} does not belong to business {business_id}")

    async def apply_delta(
        self,
        business_id: int,
        branch_id: int,
        product_id: int,
        quantity_delta: Number,
        unit_cost: Optional[Number] = None,
        is_receipt: bool = False,
        *,
        movement_type: StockMovementType,
        reference: MovementReference,
        current_user_id: Optional[int],
        reason: Optional[AdjustmentReason] = None,
        notes: Optional[str] = None
    ) -> LedgerChange:
        """Apply a signed quantity change and append its movement.

        Increases require the unit cost of the incoming quantity and fold it
        into the weighted average. Decreases leave the average untouched and
        fail with InsufficientStockError when the result would be negative
        and the product does not allow negative stock. ``unit_cost`` on a
        decrease only sets the cost basis recorded on the movement.
        """
        delta = quantize_quantity(quantity_delta)
        if delta == 0:
            raise ValidationError("Quantity change cannot be zero")
        if delta > 0 and unit_cost is None:
            raise ValidationError("Unit cost is required for stock increases")
        if unit_cost is not None and to_decimal(unit_cost) < 0:
            raise ValidationError("Unit cost cannot be negative")

        stock = await self.get_or_create(business_id, branch_id, product_id, current_user_id)
        previous = stock.snapshot()
        new_quantity = previous.quantity + delta

        if delta > 0:
            movement_cost = quantize_cost(unit_cost)
            stock.unit_cost = weighted_average_cost(
                previous.quantity, previous.unit_cost, delta, movement_cost
            )
            if is_receipt:
                stock.last_restocked_at = datetime.now(timezone.utc)
        else:
            if new_quantity < 0 and not stock.product.allow_negative_stock:
                raise InsufficientStockError(
                    product_id=product_id,
                    branch_id=branch_id,
                    requested=-delta,
                    available=previous.quantity
                )
            movement_cost = quantize_cost(unit_cost) if unit_cost is not None else previous.unit_cost

        stock.quantity = new_quantity
        stock.updated_by = current_user_id

        movement = await self.movements.record(
            stock=stock,
            movement_type=movement_type,
            quantity=delta,
            previous_quantity=previous.quantity,
            new_quantity=new_quantity,
            unit_cost=movement_cost,
            reference=reference,
            current_user_id=current_user_id,
            reason=reason,
            notes=notes
        )
        return LedgerChange(previous=previous, current=stock.snapshot(), movement=movement, stock=stock)

    async def list_stock(
        self,
        business_id: int,
        branch_id: Optional[int] = None,
        low_stock_only: bool = False
    ) -> List[Stock]:
        """Get stock rows for a business, optionally only tracked products below their minimum"""
        query = select(Stock).where(Stock.business_id == business_id)
        if branch_id:
            query = query.where(Stock.branch_id == branch_id)
        if low_stock_only:
            query = query.join(Product, Stock.product_id == Product.id).where(and_(
                Product.track_inventory.is_(True),
                Stock.quantity < Product.minimum_stock_level
            ))
        result = await self.db.execute(query.order_by(Stock.branch_id, Stock.product_id))
        return result.scalars().all()

    async def update_settings(
        self,
        stock_id: int,
        reserved_quantity: Number,
        current_user_id: Optional[int] = None
    ) -> Stock:
        """Change the reserved portion of a stock row; records no movement"""
        reserved = quantize_quantity(reserved_quantity)
        if reserved < 0:
            raise ValidationError("Reserved quantity cannot be negative")

        result = await self.db.execute(
            select(Stock)
            .where(Stock.id == stock_id)
            .with_for_update(of=Stock)
            .execution_options(populate_existing=True)
        )
        stock = result.scalar_one_or_none()
        if not stock:
            raise NotFoundError(f"Stock {stock_id} not found")

        stock.reserved_quantity = reserved
        stock.updated_by = current_user_id
        await self.db.flush()
        return stock

    async def branch_summary(self, business_id: int) -> List[Dict]:
        """Per-branch product count, total quantity and stock value"""
        result = await self.db.execute(
            select(
                Stock.branch_id,
                Branch.name,
                func.count(Stock.id).label("product_count"),
                func.coalesce(func.sum(Stock.quantity), 0).label("total_quantity"),
                func.coalesce(func.sum(Stock.quantity * Stock.unit_cost), 0).label("total_value")
            )
            .join(Branch, Stock.branch_id == Branch.id)
            .where(Stock.business_id == business_id)
            .group_by(Stock.branch_id, Branch.name)
            .order_by(Stock.branch_id)
        )
        return [
            {
                "branch_id": row.branch_id,
                "branch_name": row.name,
                "product_count": int(row.product_count),
                "total_quantity": Decimal(str(row.total_quantity)),
                "total_value": Decimal(str(row.total_value)),
            }
            for row in result
        ]
