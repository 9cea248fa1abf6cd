import logging
from datetime import datetime, timezone
from decimal import Decimal
from fastapi import HTTPException
from sqlalchemy.future import select

from app.core.exceptions import (
    InvalidStateTransitionError,
    MismatchedReferenceError,
    NotFoundError,
    OverReceiptError,
    ValidationError,
)
from app.core.logging import log_user_action
from app.core.unit_of_work import UnitOfWork
from app.models.purchase.purchase import Purchase
from app.models.purchase.purchase_item import PurchaseItem
from app.models.shared.enums import PurchaseStatus, StockMovementType
from app.models.shared.references import MovementReference
from app.schemas.purchase.purchase_schema import PurchaseReceive
from app.services.inventory.stock_batch_service import StockBatchService
from app.services.inventory.stock_ledger_service import StockLedgerService
from app.utils.quantities import quantize_cost, quantize_quantity

logger = logging.getLogger(__name__)


class ReceivingService:
    """Receives purchase lines into stock.

    Every line of one call lands in the same transaction: an error on any
    line leaves no quantity, cost, movement or batch change behind.
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow
        self.db = uow.session
        self.ledger = StockLedgerService(self.db)
        self.batches = StockBatchService(self.db)

    async def receive(self, purchase_id: int, receive_data: PurchaseReceive, current_user_id: int) -> Purchase:
        try:
            async with self.uow.atomic():
                purchase = await self._get_for_update(purchase_id)
                if purchase.status == PurchaseStatus.CANCELLED:
                    raise InvalidStateTransitionError("purchase", purchase_id, purchase.status, "receive")

                items_by_id = {item.id: item for item in purchase.items}
                exchange_rate = Decimal(purchase.exchange_rate or 1)
                reference = MovementReference.purchase(purchase.id)

                for line in receive_data.items:
                    item = items_by_id.get(line.purchase_item_id)
                    if item is None:
                        actual_parent = await self.db.scalar(
                            select(PurchaseItem.purchase_id).where(PurchaseItem.id == line.purchase_item_id)
                        )
                        raise MismatchedReferenceError(
                            "purchase item", line.purchase_item_id, purchase_id, actual_parent
                        )

                    quantity = quantize_quantity(line.quantity_received)
                    if quantity <= 0:
                        raise ValidationError(f"Received quantity for item {item.id} must be greater than zero")
                    already_received = Decimal(item.quantity_received or 0)
                    new_total = already_received + quantity
                    if new_total > Decimal(item.quantity_ordered):
                        raise OverReceiptError(
                            line_id=item.id,
                            limit=Decimal(item.quantity_ordered),
                            already_received=already_received,
                            requested=quantity
                        )

                    unit_cost_base = quantize_cost(Decimal(item.unit_cost) * exchange_rate)

                    change = await self.ledger.apply_delta(
                        purchase.business_id,
                        purchase.branch_id,
                        item.product_id,
                        quantity,
                        unit_cost_base,
                        is_receipt=True,
                        movement_type=StockMovementType.PURCHASE,
                        reference=reference,
                        current_user_id=current_user_id,
                        notes=f"Received from purchase {purchase.purchase_number}"
                    )
                    await self.batches.record_receipt(
                        change.stock,
                        quantity,
                        unit_cost_base,
                        received_date=receive_data.received_date,
                        purchase_item_id=item.id,
                        purchase_reference=purchase.purchase_number,
                        batch_number=line.batch_number,
                        expiry_date=line.expiry_date,
                        current_user_id=current_user_id
                    )

                    item.quantity_received = new_total
                    item.updated_by = current_user_id

                if all(item.is_fully_received for item in purchase.items):
                    purchase.status = PurchaseStatus.RECEIVED
                    purchase.received_by = current_user_id
                    purchase.received_date = datetime.now(timezone.utc)
                else:
                    purchase.status = PurchaseStatus.PARTIALLY_RECEIVED

                if receive_data.notes:
                    purchase.notes = f"{purchase.notes}\n{receive_data.notes}" if purchase.notes else receive_data.notes
                purchase.updated_by = current_user_id
                await self.db.flush()
                final_status = purchase.status

            logger.info(
                f"Purchase {purchase.purchase_number} received ({len(receive_data.items)} lines, "
                f"status {final_status.value}) by user {current_user_id}"
            )
            log_user_action(current_user_id, "receive", "purchase", purchase_id)
            return purchase

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error receiving purchase {purchase_id}: {str(e)}")
            raise

    async def _get_for_update(self, purchase_id: int) -> Purchase:
        result = await self.db.execute(
            select(Purchase)
            .where(Purchase.id == purchase_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        purchase = result.scalar_one_or_none()
        if not purchase:
            raise NotFoundError(f"Purchase {purchase_id} not found")
        return purchase
