from decimal import Decimal
from typing import Any, Optional

from fastapi import HTTPException, status


class BaseAppException(HTTPException):
    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)

    def __str__(self) -> str:
        return str(self.detail)


class ValidationError(BaseAppException):
    def __init__(self, detail: str = "Validation error"):
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class NotFoundError(BaseAppException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class InsufficientStockError(BaseAppException):
    """A decrease would take stock below zero (or below what is available)."""

    def __init__(
        self,
        product_id: int,
        branch_id: int,
        requested: Decimal,
        available: Decimal,
        detail: Optional[str] = None,
    ):
        self.product_id = product_id
        self.branch_id = branch_id
        self.requested = requested
        self.available = available
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail or (
                f"Insufficient stock for product {product_id} at branch {branch_id}. "
                f"Available: {available}, requested: {requested}"
            ),
        )


class OverReceiptError(BaseAppException):
    """More would be received on a line than was ordered (or sent)."""

    def __init__(self, line_id: int, limit: Decimal, already_received: Decimal, requested: Decimal):
        self.line_id = line_id
        self.limit = limit
        self.already_received = already_received
        self.requested = requested
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Cannot receive {requested} on line {line_id}: "
                f"{already_received} of {limit} already received"
            ),
        )


class MismatchedReferenceError(BaseAppException):
    """A line references a parent it does not belong to."""

    def __init__(self, entity: str, entity_id: int, expected_parent_id: int, actual_parent_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        self.expected_parent_id = expected_parent_id
        self.actual_parent_id = actual_parent_id
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"{entity} {entity_id} does not belong to {expected_parent_id} "
                f"(belongs to {actual_parent_id})"
            ),
        )


class InvalidStateTransitionError(BaseAppException):
    def __init__(self, entity: str, entity_id: int, current_status: Any, action: str):
        self.entity = entity
        self.entity_id = entity_id
        self.current_status = current_status
        self.action = action
        current = getattr(current_status, "value", current_status)
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot {action} {entity} {entity_id} in status '{current}'",
        )


class LockTimeoutError(BaseAppException):
    def __init__(self, business_id: int, branch_id: int, product_id: int):
        self.business_id = business_id
        self.branch_id = branch_id
        self.product_id = product_id
        super().__init__(
            status_code=status.HTTP_423_LOCKED,
            detail=(
                f"Timed out waiting for stock lock "
                f"(business {business_id}, branch {branch_id}, product {product_id})"
            ),
        )
