from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from app.core.config import settings

Number = Union[Decimal, int, float, str]

QUANTITY_QUANTUM = Decimal("0.001")
MONEY_QUANTUM = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    """Convert without float artifacts (0.1 stays 0.1)"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize_quantity(value: Number) -> Decimal:
    return to_decimal(value).quantize(QUANTITY_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_cost(value: Number) -> Decimal:
    return to_decimal(value).quantize(settings.cost_quantum, rounding=ROUND_HALF_UP)


def quantize_money(value: Number) -> Decimal:
    return to_decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def weighted_average_cost(
    on_hand_quantity: Number,
    on_hand_cost: Number,
    incoming_quantity: Number,
    incoming_cost: Number,
) -> Decimal:
    """(Q*C + q*c) / (Q + q), rounded half-up to the cost scale.

    When the combined quantity is zero the on-hand cost is kept. A negative
    result (only possible when stock was negative) falls back to the
    incoming cost.
    """
    q_on_hand = to_decimal(on_hand_quantity)
    c_on_hand = to_decimal(on_hand_cost)
    q_in = to_decimal(incoming_quantity)
    c_in = to_decimal(incoming_cost)

    total_quantity = q_on_hand + q_in
    if total_quantity == 0:
        return quantize_cost(c_on_hand)

    average = quantize_cost((q_on_hand * c_on_hand + q_in * c_in) / total_quantity)
    if average < 0:
        return quantize_cost(c_in)
    return average
