import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from fastapi import HTTPException
from sqlalchemy import and_, func
from sqlalchemy.future import select

from app.core.exceptions import (
    InsufficientStockError,
    InvalidStateTransitionError,
    MismatchedReferenceError,
    NotFoundError,
    OverReceiptError,
    ValidationError,
)
from app.core.logging import log_user_action
from app.core.unit_of_work import UnitOfWork
from app.models.inventory.product import Product
from app.models.inventory.stock_transfer import StockTransfer
from app.models.inventory.stock_transfer_item import StockTransferItem
from app.models.organization.branch import Branch
from app.models.shared.enums import StockMovementType, TransferStatus
from app.models.shared.references import MovementReference
from app.schemas.inventory.stock_transfer import StockTransferCreate, StockTransferReceive
from app.services.inventory.stock_ledger_service import StockLedgerService
from app.utils.quantities import quantize_quantity

logger = logging.getLogger(__name__)

REVERSAL_NOTE = "Transfer cancelled - stock restored"


class TransferService:
    """Two-phase stock movement between branches of one business.

    The source is decremented only when the transfer is sent and the
    destination incremented only when it is received. Cancelling an
    in-transit transfer appends compensating movements at the source.
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow
        self.db = uow.session
        self.ledger = StockLedgerService(self.db)

    async def create_transfer(self, transfer_data: StockTransferCreate, current_user_id: int) -> StockTransfer:
        # Validate branches belong to the business and are different
        if transfer_data.from_branch_id == transfer_data.to_branch_id:
            raise ValidationError("Source and destination branches cannot be the same")

        try:
            async with self.uow.atomic():
                await self._validate_branch(transfer_data.business_id, transfer_data.from_branch_id, "source")
                await self._validate_branch(transfer_data.business_id, transfer_data.to_branch_id, "destination")

                requested: Dict[int, Decimal] = {}
                for item_data in transfer_data.items:
                    quantity = quantize_quantity(item_data.quantity_requested)
                    if quantity <= 0:
                        raise ValidationError(
                            f"Requested quantity for product {item_data.product_id} must be greater than zero"
                        )
                    requested[item_data.product_id] = requested.get(item_data.product_id, Decimal("0")) + quantity

                # Check stock availability at the source
                unit_costs: Dict[int, Decimal] = {}
                for product_id, quantity in requested.items():
                    await self._validate_product(transfer_data.business_id, product_id)
                    stock = await self.ledger.get_stock(
                        transfer_data.business_id, transfer_data.from_branch_id, product_id
                    )
                    available = stock.available_quantity if stock else Decimal("0")
                    if stock is None or available < quantity:
                        raise InsufficientStockError(
                            product_id=product_id,
                            branch_id=transfer_data.from_branch_id,
                            requested=quantity,
                            available=available
                        )
                    unit_costs[product_id] = Decimal(stock.unit_cost)

                transfer_date = transfer_data.transfer_date or date.today()
                transfer_number = await self._generate_transfer_number(transfer_data.business_id, transfer_date)

                transfer = StockTransfer(
                    transfer_number=transfer_number,
                    business_id=transfer_data.business_id,
                    from_branch_id=transfer_data.from_branch_id,
                    to_branch_id=transfer_data.to_branch_id,
                    status=TransferStatus.PENDING,
                    transfer_date=transfer_date,
                    expected_delivery_date=transfer_data.expected_delivery_date,
                    transfer_reason=transfer_data.transfer_reason,
                    notes=transfer_data.notes,
                    initiated_by=current_user_id,
                    created_by=current_user_id,
                    items=[
                        StockTransferItem(
                            product_id=item_data.product_id,
                            quantity_requested=quantize_quantity(item_data.quantity_requested),
                            quantity_sent=0,
                            quantity_received=0,
                            unit_cost=unit_costs[item_data.product_id],
                            notes=item_data.notes,
                            created_by=current_user_id
                        )
                        for item_data in transfer_data.items
                    ]
                )
                self.db.add(transfer)
                await self.db.flush()

            logger.info(f"Stock transfer created: {transfer_number} by user {current_user_id}")
            log_user_action(current_user_id, "create", "stock_transfer", transfer.id)
            return await self.get_transfer_by_id(transfer.id)

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error creating stock transfer: {str(e)}")
            raise

    async def _generate_transfer_number(self, business_id: int, on_date: date) -> str:
        """Generate transfer number unique per business per day"""
        prefix = f"TRF-{on_date.strftime('%Y%m%d')}"

        # Continue after the highest number issued today; deleted numbers are not reused
        result = await self.db.execute(
            select(func.max(StockTransfer.transfer_number))
            .where(and_(
                StockTransfer.business_id == business_id,
                StockTransfer.transfer_number.like(f"{prefix}-%")
            ))
        )
        last_number = result.scalar()
        sequence = int(last_number.rsplit("-", 1)[1]) + 1 if last_number else 1

        return f"{prefix}-{sequence:04d}"

    async def _validate_branch(self, business_id: int, branch_id: int, role: str) -> None:
        branch = await self.db.get(Branch, branch_id)
        if not branch or branch.business_id != business_id:
            raise ValidationError(f"Invalid {role} branch {branch_id}")

    async def _validate_product(self, business_id: int, product_id: int) -> None:
        product = await self.db.get(Product, product_id)
        if not product or product.business_id != business_id:
            raise ValidationError(f"Invalid product ID: {product_id}")

    async def get_transfer_by_id(self, transfer_id: int) -> Optional[StockTransfer]:
        """Get transfer by ID"""
        result = await self.db.execute(
            select(StockTransfer)
            .where(StockTransfer.id == transfer_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_transfers(
        self,
        business_id: int,
        status: Optional[TransferStatus] = None,
        from_branch_id: Optional[int] = None,
        to_branch_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[StockTransfer]:
        """Get transfers with optional filters"""
        conditions = [StockTransfer.business_id == business_id]

        if status:
            conditions.append(StockTransfer.status == status)

        if from_branch_id:
            conditions.append(StockTransfer.from_branch_id == from_branch_id)

        if to_branch_id:
            conditions.append(StockTransfer.to_branch_id == to_branch_id)

        result = await self.db.execute(
            select(StockTransfer)
            .where(and_(*conditions))
            .order_by(StockTransfer.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return result.scalars().all()

    async def _get_for_update(self, transfer_id: int) -> StockTransfer:
        result = await self.db.execute(
            select(StockTransfer)
            .where(StockTransfer.id == transfer_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        transfer = result.scalar_one_or_none()
        if not transfer:
            raise NotFoundError(f"Stock transfer {transfer_id} not found")
        return transfer

    async def approve_transfer(self, transfer_id: int, current_user_id: int) -> StockTransfer:
        async with self.uow.atomic():
            transfer = await self._get_for_update(transfer_id)
            if transfer.status != TransferStatus.PENDING:
                raise InvalidStateTransitionError("stock transfer", transfer_id, transfer.status, "approve")

            transfer.status = TransferStatus.APPROVED
            transfer.approved_by = current_user_id
            transfer.approved_at = datetime.now(timezone.utc)
            transfer.updated_by = current_user_id

        logger.info(f"Stock transfer {transfer.transfer_number} approved by user {current_user_id}")
        log_user_action(current_user_id, "approve", "stock_transfer", transfer_id)
        return await self.get_transfer_by_id(transfer_id)

    async def send_transfer(self, transfer_id: int, current_user_id: int) -> StockTransfer:
        try:
            async with self.uow.atomic():
                transfer = await self._get_for_update(transfer_id)
                if transfer.status not in (TransferStatus.PENDING, TransferStatus.APPROVED):
                    raise InvalidStateTransitionError("stock transfer", transfer_id, transfer.status, "send")

                reference = MovementReference.transfer(transfer.id)
                # Lock stock rows in product order
                for item in sorted(transfer.items, key=lambda i: (i.product_id, i.id)):
                    quantity = Decimal(item.quantity_requested)
                    stock = await self.ledger.get_or_create(
                        transfer.business_id, transfer.from_branch_id, item.product_id, current_user_id
                    )
                    if stock.available_quantity < quantity:
                        raise InsufficientStockError(
                            product_id=item.product_id,
                            branch_id=transfer.from_branch_id,
                            requested=quantity,
                            available=stock.available_quantity
                        )

                    await self.ledger.apply_delta(
                        transfer.business_id,
                        transfer.from_branch_id,
                        item.product_id,
                        -quantity,
                        movement_type=StockMovementType.TRANSFER_OUT,
                        reference=reference,
                        current_user_id=current_user_id,
                        notes=f"Transfer {transfer.transfer_number} to branch {transfer.to_branch_id}"
                    )
                    item.quantity_sent = quantity
                    item.updated_by = current_user_id

                transfer.status = TransferStatus.IN_TRANSIT
                transfer.sent_by = current_user_id
                transfer.sent_at = datetime.now(timezone.utc)
                transfer.updated_by = current_user_id
                await self.db.flush()

            logger.info(f"Stock transfer {transfer.transfer_number} sent by user {current_user_id}")
            log_user_action(current_user_id, "send", "stock_transfer", transfer_id)
            return await self.get_transfer_by_id(transfer_id)

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error sending stock transfer {transfer_id}: {str(e)}")
            raise

    async def receive_transfer(
        self,
        transfer_id: int,
        receive_data: StockTransferReceive,
        current_user_id: int
    ) -> StockTransfer:
        received: Dict[int, Decimal] = {}
        for line in receive_data.items:
            if line.item_id in received:
                raise ValidationError(f"Transfer item {line.item_id} listed more than once")
            received[line.item_id] = quantize_quantity(line.quantity_received)

        try:
            async with self.uow.atomic():
                transfer = await self._get_for_update(transfer_id)
                if transfer.status != TransferStatus.IN_TRANSIT:
                    raise InvalidStateTransitionError("stock transfer", transfer_id, transfer.status, "receive")

                item_ids = {item.id for item in transfer.items}
                for line_id in received:
                    if line_id not in item_ids:
                        actual_parent = await self.db.scalar(
                            select(StockTransferItem.stock_transfer_id).where(StockTransferItem.id == line_id)
                        )
                        raise MismatchedReferenceError("transfer item", line_id, transfer_id, actual_parent)

                reference = MovementReference.transfer(transfer.id)
                for item in sorted(transfer.items, key=lambda i: (i.product_id, i.id)):
                    quantity = received.get(item.id, Decimal("0"))
                    sent = Decimal(item.quantity_sent or 0)
                    if quantity > sent:
                        raise OverReceiptError(
                            line_id=item.id,
                            limit=sent,
                            already_received=Decimal(item.quantity_received or 0),
                            requested=quantity
                        )

                    if quantity > 0:
                        await self.ledger.apply_delta(
                            transfer.business_id,
                            transfer.to_branch_id,
                            item.product_id,
                            quantity,
                            Decimal(item.unit_cost),
                            is_receipt=True,
                            movement_type=StockMovementType.TRANSFER_IN,
                            reference=reference,
                            current_user_id=current_user_id,
                            notes=f"Transfer {transfer.transfer_number} from branch {transfer.from_branch_id}"
                        )

                    if quantity < sent:
                        logger.warning(
                            f"Transfer {transfer.transfer_number} item {item.id}: sent {sent}, "
                            f"received {quantity}, shortfall {sent - quantity}"
                        )

                    item.quantity_received = quantity
                    item.updated_by = current_user_id

                transfer.status = TransferStatus.COMPLETED
                transfer.received_by = current_user_id
                transfer.completed_at = datetime.now(timezone.utc)
                if receive_data.notes:
                    transfer.notes = f"{transfer.notes}\n{receive_data.notes}" if transfer.notes else receive_data.notes
                transfer.updated_by = current_user_id
                await self.db.flush()

            logger.info(f"Stock transfer {transfer.transfer_number} received by user {current_user_id}")
            log_user_action(current_user_id, "receive", "stock_transfer", transfer_id)
            return await self.get_transfer_by_id(transfer_id)

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error receiving stock transfer {transfer_id}: {str(e)}")
            raise

    async def cancel_transfer(self, transfer_id: int, cancellation_reason: str, current_user_id: int) -> StockTransfer:
        if not cancellation_reason or not cancellation_reason.strip():
            raise ValidationError("Cancellation reason is required")

        try:
            async with self.uow.atomic():
                transfer = await self._get_for_update(transfer_id)
                if transfer.status in (TransferStatus.COMPLETED, TransferStatus.CANCELLED):
                    raise InvalidStateTransitionError("stock transfer", transfer_id, transfer.status, "cancel")

                if transfer.status == TransferStatus.IN_TRANSIT:
                    reference = MovementReference.transfer(transfer.id)
                    # Restore at the cost the send took out so the source average is unchanged
                    sent_costs = {
                        movement.product_id: Decimal(movement.unit_cost)
                        for movement in await self.ledger.movements.get_by_reference(reference)
                        if movement.movement_type == StockMovementType.TRANSFER_OUT
                    }
                    for item in sorted(transfer.items, key=lambda i: (i.product_id, i.id)):
                        sent = Decimal(item.quantity_sent or 0)
                        if sent <= 0:
                            continue
                        await self.ledger.apply_delta(
                            transfer.business_id,
                            transfer.from_branch_id,
                            item.product_id,
                            sent,
                            sent_costs.get(item.product_id, Decimal(item.unit_cost)),
                            movement_type=StockMovementType.ADJUSTMENT,
                            reference=reference,
                            current_user_id=current_user_id,
                            notes=REVERSAL_NOTE
                        )

                transfer.status = TransferStatus.CANCELLED
                transfer.cancellation_reason = cancellation_reason.strip()
                transfer.updated_by = current_user_id
                await self.db.flush()

            logger.info(f"Stock transfer {transfer.transfer_number} cancelled by user {current_user_id}")
            log_user_action(current_user_id, "cancel", "stock_transfer", transfer_id)
            return await self.get_transfer_by_id(transfer_id)

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error cancelling stock transfer {transfer_id}: {str(e)}")
            raise

    async def delete_transfer(self, transfer_id: int, current_user_id: int) -> bool:
        async with self.uow.atomic():
            transfer = await self._get_for_update(transfer_id)
            if transfer.status != TransferStatus.PENDING:
                raise InvalidStateTransitionError("stock transfer", transfer_id, transfer.status, "delete")
            transfer_number = transfer.transfer_number
            await self.db.delete(transfer)

        logger.info(f"Stock transfer {transfer_number} deleted by user {current_user_id}")
        log_user_action(current_user_id, "delete", "stock_transfer", transfer_id)
        return True
