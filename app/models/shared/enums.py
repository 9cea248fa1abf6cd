from enum import Enum


class StockMovementType(str, Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"


class ReferenceKind(str, Enum):
    """What caused a stock movement"""
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"
    RETURN = "return"
    SALE = "sale"


class PurchaseStatus(str, Enum):
    DRAFT = "draft"
    ORDERED = "ordered"
    PARTIALLY_RECEIVED = "partially_received"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class TransferStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AdjustmentType(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


class AdjustmentReason(str, Enum):
    DAMAGED = "damaged"
    EXPIRED = "expired"
    THEFT = "theft"
    COUNT_ERROR = "count_error"
    LOST = "lost"
    FOUND = "found"
    OTHER = "other"
