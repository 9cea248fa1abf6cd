import pytest
from decimal import Decimal
from pydantic import ValidationError as SchemaValidationError
from app.core.exceptions import (
    InsufficientStockError,
    InvalidStateTransitionError,
    MismatchedReferenceError,
    OverReceiptError,
    ValidationError,
)
from app.models.shared.enums import StockMovementType, TransferStatus
from app.models.shared.references import MovementReference
from app.schemas.inventory.stock_transfer import (
    StockTransferCreate,
    StockTransferItemCreate,
    StockTransferReceive,
    TransferReceiveItem,
)
from app.services.inventory.stock_ledger_service import StockLedgerService
from app.services.inventory.stock_movement_service import StockMovementService
from app.services.inventory.transfer_service import REVERSAL_NOTE, TransferService


@pytest.fixture
def make_transfer(uow, seed):
    async def _make_transfer(lines, from_branch_id=None, to_branch_id=None):
        transfer_data = StockTransferCreate(
            business_id=seed.business_id,
            from_branch_id=from_branch_id or seed.main_branch_id,
            to_branch_id=to_branch_id or seed.warehouse_branch_id,
            transfer_reason="Rebalance",
            items=[
                StockTransferItemCreate(product_id=seed.product_ids[sku], quantity_requested=Decimal(str(qty)))
                for sku, qty in lines
            ]
        )
        return await TransferService(uow).create_transfer(transfer_data, current_user_id=2)
    return _make_transfer


def receive_payload(*lines, notes=None) -> StockTransferReceive:
    return StockTransferReceive(
        items=[TransferReceiveItem(item_id=item_id, quantity_received=Decimal(str(qty))) for item_id, qty in lines],
        notes=notes
    )


@pytest.mark.asyncio
class TestTransferFlow:
    """Two-phase transfer between branches"""

    async def test_short_receipt_leaves_discrepancy(self, uow, seed, put_stock, make_transfer, fetch_stock):
        """Send 10, receive 8: source -10, destination +8, 2 visible as discrepancy"""
        await put_stock("COF-001", 30, "5.00")
        service = TransferService(uow)

        transfer = await make_transfer([("COF-001", 10)])
        assert transfer.status == TransferStatus.PENDING
        assert transfer.transfer_number.endswith("-0001")
        assert transfer.items[0].unit_cost == Decimal("5.0000")
        assert (await fetch_stock("COF-001")).quantity == Decimal("30")

        transfer = await service.send_transfer(transfer.id, current_user_id=3)
        assert transfer.status == TransferStatus.IN_TRANSIT
        assert transfer.sent_by == 3
        assert transfer.items[0].quantity_sent == Decimal("10")
        assert (await fetch_stock("COF-001")).quantity == Decimal("20")
        assert await fetch_stock("COF-001", seed.warehouse_branch_id) is None

        item_id = transfer.items[0].id
        transfer = await service.receive_transfer(transfer.id, receive_payload((item_id, 8)), current_user_id=4)

        assert transfer.status == TransferStatus.COMPLETED
        assert transfer.received_by == 4
        assert transfer.completed_at is not None
        assert transfer.items[0].quantity_received == Decimal("8")
        assert transfer.items[0].discrepancy == Decimal("2")

        source = await fetch_stock("COF-001")
        destination = await fetch_stock("COF-001", seed.warehouse_branch_id)
        assert source.quantity == Decimal("20")
        assert destination.quantity == Decimal("8")
        assert destination.unit_cost == Decimal("5.0000")

        movements = await StockMovementService(uow.session).get_by_reference(MovementReference.transfer(transfer.id))
        assert [(m.movement_type, m.quantity) for m in movements] == [
            (StockMovementType.TRANSFER_OUT, Decimal("-10")),
            (StockMovementType.TRANSFER_IN, Decimal("8")),
        ]

    async def test_received_cost_averages_into_destination(self, uow, seed, put_stock, make_transfer, fetch_stock):
        await put_stock("COF-001", 10, "5.00")
        await put_stock("COF-001", 10, "7.00", branch_id=seed.warehouse_branch_id)
        service = TransferService(uow)

        transfer = await make_transfer([("COF-001", 10)])
        transfer = await service.send_transfer(transfer.id, current_user_id=3)
        await service.receive_transfer(transfer.id, receive_payload((transfer.items[0].id, 10)), current_user_id=4)

        destination = await fetch_stock("COF-001", seed.warehouse_branch_id)
        assert destination.quantity == Decimal("20")
        assert destination.unit_cost == Decimal("6.0000")

    async def test_omitted_items_count_as_received_zero(self, uow, seed, put_stock, make_transfer, fetch_stock):
        await put_stock("COF-001", 10, "5.00")
        await put_stock("CUP-012", 200, "0.10")
        service = TransferService(uow)

        transfer = await make_transfer([("COF-001", 5), ("CUP-012", 50)])
        transfer = await service.send_transfer(transfer.id, current_user_id=3)
        coffee, cups = transfer.items
        transfer = await service.receive_transfer(
            transfer.id, receive_payload((coffee.id, 5), notes="Cups missing"), current_user_id=4
        )

        assert transfer.status == TransferStatus.COMPLETED
        assert [item.quantity_received for item in transfer.items] == [Decimal("5"), Decimal("0")]
        assert transfer.items[1].discrepancy == Decimal("50")
        assert await fetch_stock("CUP-012", seed.warehouse_branch_id) is None
        assert "Cups missing" in transfer.notes

    async def test_approved_transfer_can_be_sent(self, uow, put_stock, make_transfer):
        await put_stock("COF-001", 10, "5.00")
        service = TransferService(uow)
        transfer = await make_transfer([("COF-001", 4)])

        transfer = await service.approve_transfer(transfer.id, current_user_id=9)
        assert transfer.status == TransferStatus.APPROVED
        assert transfer.approved_by == 9

        transfer = await service.send_transfer(transfer.id, current_user_id=3)
        assert transfer.status == TransferStatus.IN_TRANSIT

    async def test_list_filters_by_status(self, uow, seed, put_stock, make_transfer):
        await put_stock("COF-001", 10, "5.00")
        service = TransferService(uow)
        first = await make_transfer([("COF-001", 1)])
        second = await make_transfer([("COF-001", 1)])
        await service.approve_transfer(second.id, current_user_id=9)

        pending = await service.list_transfers(seed.business_id, status=TransferStatus.PENDING)
        assert [t.id for t in pending] == [first.id]
        everything = await service.list_transfers(seed.business_id, from_branch_id=seed.main_branch_id)
        assert [t.id for t in everything] == [second.id, first.id]
        assert second.transfer_number.endswith("-0002")


@pytest.mark.asyncio
class TestTransferValidation:
    """Rejected transfers leave stock untouched"""

    async def test_same_branch_is_rejected(self, seed):
        with pytest.raises(SchemaValidationError):
            StockTransferCreate(
                business_id=seed.business_id,
                from_branch_id=seed.main_branch_id,
                to_branch_id=seed.main_branch_id,
                items=[StockTransferItemCreate(product_id=seed.product_ids["COF-001"], quantity_requested=Decimal("1"))]
            )

    async def test_create_requires_available_stock(self, uow, seed, put_stock, make_transfer):
        await put_stock("COF-001", 10, "5.00")

        with pytest.raises(InsufficientStockError) as exc_info:
            await make_transfer([("COF-001", 6), ("COF-001", 6)])
        assert exc_info.value.requested == Decimal("12")
        assert exc_info.value.available == Decimal("10")

        with pytest.raises(InsufficientStockError):
            await make_transfer([("CUP-012", 1)])

        assert await TransferService(uow).list_transfers(seed.business_id) == []

    async def test_quantity_rounding_to_zero_is_rejected(self, uow, seed):
        with pytest.raises(SchemaValidationError):
            StockTransferItemCreate(product_id=seed.product_ids["CUP-012"], quantity_requested=Decimal("0.0004"))

        transfer_data = StockTransferCreate.model_construct(
            business_id=seed.business_id,
            from_branch_id=seed.main_branch_id,
            to_branch_id=seed.warehouse_branch_id,
            items=[StockTransferItemCreate.model_construct(
                product_id=seed.product_ids["CUP-012"], quantity_requested=Decimal("0.0004"), notes=None
            )]
        )
        with pytest.raises(ValidationError):
            await TransferService(uow).create_transfer(transfer_data, current_user_id=2)

        assert await TransferService(uow).list_transfers(seed.business_id) == []

    async def test_send_aborts_as_a_whole(self, uow, seed, put_stock, make_transfer, fetch_stock, count_movements):
        await put_stock("COF-001", 30, "5.00")
        cups = await put_stock("CUP-012", 100, "0.10")
        transfer = await make_transfer([("COF-001", 10), ("CUP-012", 50)])
        transfer_id = transfer.id

        # Cups get reserved after the transfer was created
        async with uow.atomic():
            await StockLedgerService(uow.session).update_settings(cups.id, Decimal("80"))

        with pytest.raises(InsufficientStockError) as exc_info:
            await TransferService(uow).send_transfer(transfer_id, current_user_id=3)
        assert exc_info.value.available == Decimal("20")

        assert (await fetch_stock("COF-001")).quantity == Decimal("30")
        assert (await fetch_stock("CUP-012")).quantity == Decimal("100")
        assert await count_movements(movement_type=StockMovementType.TRANSFER_OUT) == 0

        transfer = await TransferService(uow).get_transfer_by_id(transfer_id)
        assert transfer.status == TransferStatus.PENDING
        assert all(item.quantity_sent == 0 for item in transfer.items)

    async def test_receive_rejects_bad_lines(self, uow, put_stock, make_transfer, fetch_stock, seed):
        await put_stock("COF-001", 30, "5.00")
        service = TransferService(uow)
        transfer = await service.send_transfer((await make_transfer([("COF-001", 10)])).id, current_user_id=3)
        other = await service.send_transfer((await make_transfer([("COF-001", 5)])).id, current_user_id=3)
        transfer_id, item_id = transfer.id, transfer.items[0].id
        other_id, other_item_id = other.id, other.items[0].id

        with pytest.raises(ValidationError):
            await service.receive_transfer(transfer_id, receive_payload((item_id, 1), (item_id, 2)), current_user_id=4)

        with pytest.raises(OverReceiptError) as exc_info:
            await service.receive_transfer(transfer_id, receive_payload((item_id, 11)), current_user_id=4)
        assert exc_info.value.limit == Decimal("10")

        with pytest.raises(MismatchedReferenceError) as exc_info:
            await service.receive_transfer(transfer_id, receive_payload((other_item_id, 1)), current_user_id=4)
        assert exc_info.value.actual_parent_id == other_id

        assert await fetch_stock("COF-001", seed.warehouse_branch_id) is None
        transfer = await service.get_transfer_by_id(transfer_id)
        assert transfer.status == TransferStatus.IN_TRANSIT


@pytest.mark.asyncio
class TestTransferStateMachine:
    """Allowed and rejected status changes"""

    async def test_pending_transfer_cannot_be_received(self, uow, put_stock, make_transfer):
        await put_stock("COF-001", 10, "5.00")
        transfer = await make_transfer([("COF-001", 2)])
        transfer_id = transfer.id

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await TransferService(uow).receive_transfer(transfer_id, receive_payload(), current_user_id=4)
        assert exc_info.value.current_status == TransferStatus.PENDING

    async def test_approve_only_once(self, uow, put_stock, make_transfer):
        await put_stock("COF-001", 10, "5.00")
        service = TransferService(uow)
        transfer = await make_transfer([("COF-001", 2)])
        await service.approve_transfer(transfer.id, current_user_id=9)

        with pytest.raises(InvalidStateTransitionError):
            await service.approve_transfer(transfer.id, current_user_id=9)

    async def test_cancel_in_transit_restores_source(self, uow, seed, put_stock, make_transfer, fetch_stock):
        await put_stock("COF-001", 30, "5.00")
        service = TransferService(uow)
        transfer = await service.send_transfer((await make_transfer([("COF-001", 10)])).id, current_user_id=3)

        transfer = await service.cancel_transfer(transfer.id, "Truck broke down", current_user_id=5)

        assert transfer.status == TransferStatus.CANCELLED
        assert transfer.cancellation_reason == "Truck broke down"
        source = await fetch_stock("COF-001")
        assert source.quantity == Decimal("30")
        assert source.unit_cost == Decimal("5.0000")

        movements = await StockMovementService(uow.session).get_by_reference(MovementReference.transfer(transfer.id))
        assert [(m.movement_type, m.quantity) for m in movements] == [
            (StockMovementType.TRANSFER_OUT, Decimal("-10")),
            (StockMovementType.ADJUSTMENT, Decimal("10")),
        ]
        assert movements[1].notes == REVERSAL_NOTE

        with pytest.raises(InvalidStateTransitionError):
            await service.cancel_transfer(transfer.id, "Again", current_user_id=5)

    async def test_cancel_restores_at_the_cost_sent(self, uow, seed, put_stock, make_transfer, fetch_stock):
        """The source average moves between create and send; the reversal undoes the send exactly"""
        await put_stock("COF-001", 10, "5.00")
        service = TransferService(uow)
        transfer = await make_transfer([("COF-001", 5)])
        assert transfer.items[0].unit_cost == Decimal("5.0000")

        await put_stock("COF-001", 10, "8.00")
        transfer = await service.send_transfer(transfer.id, current_user_id=3)
        assert (await fetch_stock("COF-001")).unit_cost == Decimal("6.5000")

        transfer = await service.cancel_transfer(transfer.id, "Wrong branch", current_user_id=5)

        source = await fetch_stock("COF-001")
        assert source.quantity == Decimal("20")
        assert source.unit_cost == Decimal("6.5000")
        movements = await StockMovementService(uow.session).get_by_reference(MovementReference.transfer(transfer.id))
        assert [m.unit_cost for m in movements] == [Decimal("6.5000"), Decimal("6.5000")]

    async def test_cancel_pending_has_no_stock_effect(self, uow, put_stock, make_transfer, count_movements):
        await put_stock("COF-001", 10, "5.00")
        transfer = await make_transfer([("COF-001", 2)])

        transfer = await TransferService(uow).cancel_transfer(transfer.id, "Not needed", current_user_id=5)

        assert transfer.status == TransferStatus.CANCELLED
        assert await count_movements() == 1

    async def test_cancel_requires_reason(self, uow, put_stock, make_transfer):
        await put_stock("COF-001", 10, "5.00")
        transfer = await make_transfer([("COF-001", 2)])

        with pytest.raises(ValidationError):
            await TransferService(uow).cancel_transfer(transfer.id, "   ", current_user_id=5)

    async def test_completed_transfer_cannot_be_cancelled(self, uow, put_stock, make_transfer):
        await put_stock("COF-001", 10, "5.00")
        service = TransferService(uow)
        transfer = await service.send_transfer((await make_transfer([("COF-001", 2)])).id, current_user_id=3)
        transfer = await service.receive_transfer(
            transfer.id, receive_payload((transfer.items[0].id, 2)), current_user_id=4
        )
        transfer_id = transfer.id

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await service.cancel_transfer(transfer_id, "Too late", current_user_id=5)
        assert exc_info.value.current_status == TransferStatus.COMPLETED

    async def test_delete_only_while_pending(self, uow, put_stock, make_transfer):
        await put_stock("COF-001", 10, "5.00")
        service = TransferService(uow)

        pending = await make_transfer([("COF-001", 2)])
        assert await service.delete_transfer(pending.id, current_user_id=5)
        assert await service.get_transfer_by_id(pending.id) is None

        approved = await make_transfer([("COF-001", 2)])
        await service.approve_transfer(approved.id, current_user_id=9)
        with pytest.raises(InvalidStateTransitionError):
            await service.delete_transfer(approved.id, current_user_id=5)

    async def test_numbers_are_not_reused_after_delete(self, uow, put_stock, make_transfer):
        await put_stock("COF-001", 10, "5.00")
        service = TransferService(uow)

        first = await make_transfer([("COF-001", 1)])
        second = await make_transfer([("COF-001", 1)])
        first_id = first.id
        assert await service.delete_transfer(first_id, current_user_id=5)

        third = await make_transfer([("COF-001", 1)])

        assert second.transfer_number.endswith("-0002")
        assert third.transfer_number.endswith("-0003")
