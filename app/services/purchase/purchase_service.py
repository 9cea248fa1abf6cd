import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import and_, func
from sqlalchemy.future import select
from fastapi import HTTPException

from app.core.config import settings
from app.core.exceptions import InvalidStateTransitionError, NotFoundError, ValidationError
from app.core.logging import log_user_action
from app.core.unit_of_work import UnitOfWork
from app.models.inventory.product import Product
from app.models.organization.branch import Branch
from app.models.organization.business import Business
from app.models.purchase.purchase import Purchase
from app.models.purchase.purchase_item import PurchaseItem
from app.models.shared.enums import PurchaseStatus
from app.schemas.purchase.purchase_schema import PurchaseCreate, PurchaseItemCreate
from app.utils.quantities import quantize_money, quantize_quantity

logger = logging.getLogger(__name__)


def calculate_line(item: PurchaseItemCreate, tax_inclusive: bool):
    """Return (net, tax, line_total) for one purchase line.

    Tax-inclusive prices carry the tax inside quantity * unit_cost; exclusive
    prices have it added on top.
    """
    gross = Decimal(item.quantity_ordered) * Decimal(item.unit_cost)
    rate = Decimal(item.tax_rate or 0)
    if tax_inclusive:
        tax = quantize_money(gross * rate / 100)
        line_total = quantize_money(gross)
        return line_total - tax, tax, line_total
    net = quantize_money(gross)
    tax = quantize_money(net * rate / 100)
    return net, tax, net + tax


class PurchaseService:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow
        self.db = uow.session

    async def create_purchase(self, purchase_data: PurchaseCreate, current_user_id: int) -> Purchase:
        try:
            async with self.uow.atomic():
                business = await self.db.get(Business, purchase_data.business_id)
                if not business:
                    raise NotFoundError(f"Business {purchase_data.business_id} not found")

                await self._validate_branch(purchase_data.business_id, purchase_data.branch_id)
                await self._validate_products(
                    purchase_data.business_id, [item.product_id for item in purchase_data.items]
                )

                purchase_date = purchase_data.purchase_date or date.today()
                purchase_number = await self._generate_purchase_number(purchase_data.business_id, purchase_date)

                subtotal = Decimal("0")
                total_tax = Decimal("0")
                items = []
                for item_data in purchase_data.items:
                    net, tax, line_total = calculate_line(item_data, purchase_data.tax_inclusive)
                    subtotal += net
                    total_tax += tax
                    items.append(PurchaseItem(
                        product_id=item_data.product_id,
                        quantity_ordered=quantize_quantity(item_data.quantity_ordered),
                        quantity_received=0,
                        unit_cost=item_data.unit_cost,
                        tax_rate=item_data.tax_rate,
                        tax_amount=tax,
                        line_total=line_total,
                        created_by=current_user_id
                    ))

                purchase = Purchase(
                    business_id=purchase_data.business_id,
                    branch_id=purchase_data.branch_id,
                    supplier_id=purchase_data.supplier_id,
                    purchase_number=purchase_number,
                    purchase_date=purchase_date,
                    expected_delivery_date=purchase_data.expected_delivery_date,
                    subtotal=subtotal,
                    tax_amount=total_tax,
                    total_amount=subtotal + total_tax,
                    currency=purchase_data.currency or business.base_currency or settings.DEFAULT_CURRENCY,
                    exchange_rate=purchase_data.exchange_rate,
                    tax_inclusive=purchase_data.tax_inclusive,
                    status=purchase_data.status,
                    invoice_number=purchase_data.invoice_number,
                    notes=purchase_data.notes,
                    items=items,
                    created_by=current_user_id
                )
                self.db.add(purchase)
                await self.db.flush()

            logger.info(f"Purchase created: {purchase_number} by user {current_user_id}")
            log_user_action(current_user_id, "create", "purchase", purchase.id)
            return await self.get_purchase_by_id(purchase.id)

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error creating purchase: {str(e)}")
            raise

    async def _generate_purchase_number(self, business_id: int, on_date: date) -> str:
        """Generate purchase number unique per business per day"""
        prefix = f"PO-{on_date.strftime('%Y%m%d')}"

        result = await self.db.execute(
            select(func.max(Purchase.purchase_number))
            .where(and_(
                Purchase.business_id == business_id,
                Purchase.purchase_number.like(f"{prefix}-%")
            ))
        )
        last_number = result.scalar()
        sequence = int(last_number.rsplit("-", 1)[1]) + 1 if last_number else 1

        return f"{prefix}-{sequence:05d}"

    async def _validate_branch(self, business_id: int, branch_id: int) -> None:
        branch = await self.db.get(Branch, branch_id)
        if not branch or branch.business_id != business_id:
            raise ValidationError(f"Branch {branch_id} not found for business {business_id}")

    async def _validate_products(self, business_id: int, product_ids: List[int]) -> None:
        result = await self.db.execute(
            select(Product.id).where(and_(
                Product.id.in_(product_ids),
                Product.business_id == business_id
            ))
        )
        missing = set(product_ids) - set(result.scalars().all())
        if missing:
            raise ValidationError(f"Products not found: {sorted(missing)}")

    async def get_purchase_by_id(self, purchase_id: int) -> Optional[Purchase]:
        """Get purchase by ID"""
        result = await self.db.execute(
            select(Purchase)
            .where(Purchase.id == purchase_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_purchases(
        self,
        business_id: int,
        status: Optional[PurchaseStatus] = None,
        branch_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Purchase]:
        query = select(Purchase).where(Purchase.business_id == business_id)
        if status:
            query = query.where(Purchase.status == status)
        if branch_id:
            query = query.where(Purchase.branch_id == branch_id)
        result = await self.db.execute(query.order_by(Purchase.id.desc()).offset(skip).limit(limit))
        return result.scalars().all()

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

    async def mark_ordered(self, purchase_id: int, current_user_id: int) -> Purchase:
        async with self.uow.atomic():
            purchase = await self._get_for_update(purchase_id)
            if purchase.status != PurchaseStatus.DRAFT:
                raise InvalidStateTransitionError("purchase", purchase_id, purchase.status.value, "order")
            purchase.status = PurchaseStatus.ORDERED
            purchase.updated_by = current_user_id

        logger.info(f"Purchase {purchase.purchase_number} ordered by user {current_user_id}")
        return await self.get_purchase_by_id(purchase_id)

    async def cancel_purchase(self, purchase_id: int, reason: str, current_user_id: int) -> Purchase:
        if not reason or not reason.strip():
            raise ValidationError("Cancellation reason is required")

        async with self.uow.atomic():
            purchase = await self._get_for_update(purchase_id)
            if purchase.status in (PurchaseStatus.RECEIVED, PurchaseStatus.CANCELLED):
                raise InvalidStateTransitionError("purchase", purchase_id, purchase.status.value, "cancel")

            note = f"Cancelled: {reason.strip()}"
            purchase.notes = f"{purchase.notes}\n{note}" if purchase.notes else note
            purchase.status = PurchaseStatus.CANCELLED
            purchase.updated_by = current_user_id

        logger.info(f"Purchase {purchase.purchase_number} cancelled by user {current_user_id}")
        log_user_action(current_user_id, "cancel", "purchase", purchase_id)
        return await self.get_purchase_by_id(purchase_id)

    async def delete_purchase(self, purchase_id: int, current_user_id: int) -> bool:
        async with self.uow.atomic():
            purchase = await self._get_for_update(purchase_id)
            received = any(Decimal(item.quantity_received or 0) > 0 for item in purchase.items)
            if received or purchase.status in (PurchaseStatus.RECEIVED, PurchaseStatus.PARTIALLY_RECEIVED):
                raise InvalidStateTransitionError("purchase", purchase_id, purchase.status.value, "delete")
            purchase_number = purchase.purchase_number
            await self.db.delete(purchase)

        logger.info(f"Purchase {purchase_number} deleted by user {current_user_id}")
        log_user_action(current_user_id, "delete", "purchase", purchase_id)
        return True
