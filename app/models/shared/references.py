from dataclasses import dataclass

from app.models.shared.enums import ReferenceKind


@dataclass(frozen=True)
class MovementReference:
    """Typed link from a stock movement to the entity that caused it.

    Mapped onto ``reference_type`` / ``reference_id`` of ``stock_movements``
    as a SQLAlchemy composite.
    """

    kind: ReferenceKind
    id: int

    def __composite_values__(self):
        return self.kind, self.id

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"

    @classmethod
    def purchase(cls, purchase_id: int) -> "MovementReference":
        return cls(ReferenceKind.PURCHASE, purchase_id)

    @classmethod
    def adjustment(cls, adjustment_id: int) -> "MovementReference":
        return cls(ReferenceKind.ADJUSTMENT, adjustment_id)

    @classmethod
    def transfer(cls, transfer_id: int) -> "MovementReference":
        return cls(ReferenceKind.TRANSFER, transfer_id)

    @classmethod
    def sale_return(cls, return_id: int) -> "MovementReference":
        return cls(ReferenceKind.RETURN, return_id)

    @classmethod
    def sale(cls, sale_id: int) -> "MovementReference":
        return cls(ReferenceKind.SALE, sale_id)
