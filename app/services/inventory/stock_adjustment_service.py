import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from fastapi import HTTPException
from sqlalchemy import and_
from sqlalchemy.future import select

from app.core.exceptions import InvalidStateTransitionError, NotFoundError, ValidationError
from app.core.logging import log_user_action
from app.core.unit_of_work import UnitOfWork
from app.models.inventory.stock_adjustment import StockAdjustment
from app.models.shared.enums import AdjustmentType, StockMovementType
from app.models.shared.references import MovementReference
from app.schemas.inventory.stock_adjustment import StockAdjustmentCreate, StockAdjustmentUpdate
from app.services.inventory.stock_ledger_service import StockLedgerService
from app.utils.quantities import quantize_money, quantize_quantity

logger = logging.getLogger(__name__)


class StockAdjustmentService:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow
        self.db = uow.session
        self.ledger = StockLedgerService(self.db)

    async def create_adjustment(self, adjustment_data: StockAdjustmentCreate, current_user_id: int) -> StockAdjustment:
        """Record a manual correction and apply it to stock immediately"""
        quantity = quantize_quantity(adjustment_data.quantity_adjusted)
        if quantity <= 0:
            raise ValidationError("Adjusted quantity must be greater than zero")
        increase = adjustment_data.adjustment_type == AdjustmentType.INCREASE

        try:
            async with self.uow.atomic():
                stock = await self.ledger.get_or_create(
                    adjustment_data.business_id,
                    adjustment_data.branch_id,
                    adjustment_data.product_id,
                    current_user_id
                )
                unit_cost = Decimal(stock.unit_cost or 0)
                cost_impact = quantize_money(quantity * unit_cost)
                before_quantity = Decimal(stock.quantity)

                adjustment = StockAdjustment(
                    business_id=adjustment_data.business_id,
                    branch_id=adjustment_data.branch_id,
                    product_id=adjustment_data.product_id,
                    adjusted_by=current_user_id,
                    adjustment_type=adjustment_data.adjustment_type,
                    quantity_adjusted=quantity,
                    before_quantity=before_quantity,
                    after_quantity=before_quantity + (quantity if increase else -quantity),
                    reason=adjustment_data.reason,
                    cost_impact=cost_impact if increase else -cost_impact,
                    notes=adjustment_data.notes,
                    is_approved=False,
                    created_by=current_user_id
                )
                self.db.add(adjustment)
                await self.db.flush()

                # Increases enter at the current average so the average is unchanged
                change = await self.ledger.apply_delta(
                    adjustment_data.business_id,
                    adjustment_data.branch_id,
                    adjustment_data.product_id,
                    quantity if increase else -quantity,
                    unit_cost,
                    movement_type=StockMovementType.ADJUSTMENT,
                    reference=MovementReference.adjustment(adjustment.id),
                    current_user_id=current_user_id,
                    reason=adjustment_data.reason,
                    notes=adjustment_data.notes
                )
                adjustment.before_quantity = change.previous.quantity
                adjustment.after_quantity = change.current.quantity
                await self.db.flush()

            logger.info(
                f"Stock adjustment {adjustment.id} ({adjustment.adjustment_type.value} {quantity}) "
                f"by user {current_user_id}"
            )
            log_user_action(current_user_id, "create", "stock_adjustment", adjustment.id)
            return adjustment

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error creating stock adjustment: {str(e)}")
            raise

    async def get_adjustment_by_id(self, adjustment_id: int) -> Optional[StockAdjustment]:
        """Get adjustment by ID"""
        result = await self.db.execute(
            select(StockAdjustment)
            .where(StockAdjustment.id == adjustment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_adjustments(
        self,
        business_id: int,
        branch_id: Optional[int] = None,
        product_id: Optional[int] = None,
        is_approved: Optional[bool] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[StockAdjustment]:
        conditions = [StockAdjustment.business_id == business_id]
        if branch_id:
            conditions.append(StockAdjustment.branch_id == branch_id)
        if product_id:
            conditions.append(StockAdjustment.product_id == product_id)
        if is_approved is not None:
            conditions.append(StockAdjustment.is_approved.is_(is_approved))

        result = await self.db.execute(
            select(StockAdjustment)
            .where(and_(*conditions))
            .order_by(StockAdjustment.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return result.scalars().all()

    async def _get_for_update(self, adjustment_id: int) -> StockAdjustment:
        result = await self.db.execute(
            select(StockAdjustment)
            .where(StockAdjustment.id == adjustment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        adjustment = result.scalar_one_or_none()
        if not adjustment:
            raise NotFoundError(f"Stock adjustment {adjustment_id} not found")
        return adjustment

    async def approve_adjustment(self, adjustment_id: int, current_user_id: int) -> StockAdjustment:
        async with self.uow.atomic():
            adjustment = await self._get_for_update(adjustment_id)
            if adjustment.is_approved:
                raise InvalidStateTransitionError("stock adjustment", adjustment_id, "approved", "approve")

            adjustment.is_approved = True
            adjustment.approved_by = current_user_id
            adjustment.approved_at = datetime.now(timezone.utc)
            adjustment.updated_by = current_user_id

        logger.info(f"Stock adjustment {adjustment_id} approved by user {current_user_id}")
        log_user_action(current_user_id, "approve", "stock_adjustment", adjustment_id)
        return adjustment

    async def update_adjustment(
        self,
        adjustment_id: int,
        adjustment_data: StockAdjustmentUpdate,
        current_user_id: int
    ) -> StockAdjustment:
        """Only notes can change, and only before approval"""
        async with self.uow.atomic():
            adjustment = await self._get_for_update(adjustment_id)
            if adjustment.is_approved:
                raise InvalidStateTransitionError("stock adjustment", adjustment_id, "approved", "update")

            adjustment.notes = adjustment_data.notes
            adjustment.updated_by = current_user_id

        return adjustment

    async def delete_adjustment(self, adjustment_id: int, current_user_id: int) -> bool:
        """Reverse an unapproved adjustment and remove it with its movements"""
        try:
            async with self.uow.atomic():
                adjustment = await self._get_for_update(adjustment_id)
                if adjustment.is_approved:
                    raise InvalidStateTransitionError("stock adjustment", adjustment_id, "approved", "delete")

                reference = MovementReference.adjustment(adjustment.id)
                movements = await self.ledger.movements.get_by_reference(reference)
                quantity = Decimal(adjustment.quantity_adjusted)
                if adjustment.adjustment_type == AdjustmentType.INCREASE:
                    delta = -quantity
                    unit_cost = None
                else:
                    delta = quantity
                    unit_cost = Decimal(movements[0].unit_cost) if movements else Decimal("0")

                await self.ledger.apply_delta(
                    adjustment.business_id,
                    adjustment.branch_id,
                    adjustment.product_id,
                    delta,
                    unit_cost,
                    movement_type=StockMovementType.ADJUSTMENT,
                    reference=reference,
                    current_user_id=current_user_id,
                    reason=adjustment.reason,
                    notes=f"Reversal of adjustment {adjustment.id}"
                )
                await self.ledger.movements.delete_for_reference(reference)
                await self.db.delete(adjustment)

            logger.info(f"Stock adjustment {adjustment_id} deleted by user {current_user_id}")
            log_user_action(current_user_id, "delete", "stock_adjustment", adjustment_id)
            return True

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error deleting stock adjustment {adjustment_id}: {str(e)}")
            raise
