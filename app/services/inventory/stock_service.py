import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from fastapi import HTTPException

from app.core.exceptions import InsufficientStockError, ValidationError
from app.core.logging import log_user_action
from app.core.unit_of_work import UnitOfWork
from app.models.shared.enums import StockMovementType
from app.models.shared.references import MovementReference
from app.services.inventory.stock_batch_service import FifoConsumption, StockBatchService
from app.services.inventory.stock_ledger_service import LedgerChange, StockLedgerService
from app.utils.quantities import Number, quantize_money, quantize_quantity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaleResult:
    change: LedgerChange
    consumption: FifoConsumption

    @property
    def cost_of_goods_sold(self) -> Decimal:
        return quantize_money(self.consumption.total_cost)


class StockService:
    """Stock entry points used by the sales module"""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow
        self.db = uow.session
        self.ledger = StockLedgerService(self.db)
        self.batches = StockBatchService(self.db)

    async def record_sale(
        self,
        business_id: int,
        branch_id: int,
        product_id: int,
        quantity: Number,
        sale_id: int,
        current_user_id: int,
        notes: Optional[str] = None
    ) -> SaleResult:
        quantity = quantize_quantity(quantity)
        if quantity <= 0:
            raise ValidationError("Sale quantity must be greater than zero")

        try:
            async with self.uow.atomic():
                stock = await self.ledger.get_or_create(business_id, branch_id, product_id, current_user_id)
                if Decimal(stock.quantity) < quantity and not stock.product.allow_negative_stock:
                    raise InsufficientStockError(
                        product_id=product_id,
                        branch_id=branch_id,
                        requested=quantity,
                        available=Decimal(stock.quantity)
                    )

                consumption = await self.batches.consume_fifo(stock, quantity)
                change = await self.ledger.apply_delta(
                    business_id,
                    branch_id,
                    product_id,
                    -quantity,
                    consumption.unit_cost,
                    movement_type=StockMovementType.SALE,
                    reference=MovementReference.sale(sale_id),
                    current_user_id=current_user_id,
                    notes=notes
                )

            result = SaleResult(change=change, consumption=consumption)
            logger.info(
                f"Sale {sale_id}: {quantity} of product {product_id} at branch {branch_id}, "
                f"COGS {result.cost_of_goods_sold}"
            )
            return result

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error recording sale {sale_id}: {str(e)}")
            raise

    async def record_return(
        self,
        business_id: int,
        branch_id: int,
        product_id: int,
        quantity: Number,
        return_id: int,
        current_user_id: int,
        unit_cost: Optional[Number] = None,
        notes: Optional[str] = None
    ) -> LedgerChange:
        """Put returned goods back on hand, at the given cost or the current average"""
        quantity = quantize_quantity(quantity)
        if quantity <= 0:
            raise ValidationError("Return quantity must be greater than zero")

        try:
            async with self.uow.atomic():
                if unit_cost is None:
                    stock = await self.ledger.get_or_create(business_id, branch_id, product_id, current_user_id)
                    unit_cost = Decimal(stock.unit_cost or 0)

                change = await self.ledger.apply_delta(
                    business_id,
                    branch_id,
                    product_id,
                    quantity,
                    unit_cost,
                    movement_type=StockMovementType.RETURN,
                    reference=MovementReference.sale_return(return_id),
                    current_user_id=current_user_id,
                    notes=notes
                )

            logger.info(f"Return {return_id}: {quantity} of product {product_id} at branch {branch_id}")
            log_user_action(current_user_id, "return", "stock", change.current.stock_id)
            return change

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error recording return {return_id}: {str(e)}")
            raise
