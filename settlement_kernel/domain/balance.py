"""
Balance arithmetic -- pure functions, zero I/O.

Responsibility:
    Turns pending deliveries and outstanding deductions into a
    FarmerBalance.  Used by BalanceService for previews and by
    SettlementService inside the unit of work that writes the settlement,
    so both paths compute identical numbers.

Invariants enforced:
    - Each delivery line is rounded exactly once (round_money), and
      gross_pending is the plain sum of those rounded lines.  The sum of the
      settled_amounts written later therefore equals the transaction gross
      with no residual.
    - net_payable = gross_pending - deductions_outstanding.
"""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from settlement_kernel.db.types import MONEY_DECIMAL_PLACES, ZERO, round_money
from settlement_kernel.domain.dtos import (
    DeductionLine,
    DeliveryLine,
    FarmerBalance,
    OutstandingDeduction,
    PendingDelivery,
)


def effective_price(delivery: PendingDelivery, current_price: Decimal) -> Decimal:
    """Per-record override if present, else the global price."""
    if delivery.unit_price is not None:
        return delivery.unit_price
    return current_price


def line_amount(
    quantity: Decimal,
    unit_price: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> Decimal:
    return round_money(quantity * unit_price, decimal_places)


def build_delivery_lines(
    deliveries: Iterable[PendingDelivery],
    current_price: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> tuple[DeliveryLine, ...]:
    lines = []
    for delivery in deliveries:
        price = effective_price(delivery, current_price)
        lines.append(
            DeliveryLine(
                delivery_id=delivery.delivery_id,
                occurred_at=delivery.occurred_at,
                quantity=delivery.quantity,
                unit_price=price,
                amount=line_amount(delivery.quantity, price, decimal_places),
                is_override=delivery.unit_price is not None,
            )
        )
    return tuple(lines)


def compute_farmer_balance(
    farmer_id: UUID,
    deliveries: Iterable[PendingDelivery],
    deductions: Iterable[OutstandingDeduction],
    current_price: Decimal,
    period_label: str,
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> FarmerBalance:
    """
    Compute a farmer's balance from already-filtered records.

    Callers are responsible for the period filter and for the
    (occurred_at, id) ordering; this function preserves input order.
    """
    delivery_lines = build_delivery_lines(deliveries, current_price, decimal_places)
    deduction_lines = tuple(
        DeductionLine(
            deduction_id=d.deduction_id,
            occurred_at=d.occurred_at,
            cost=d.cost,
        )
        for d in deductions
    )

    gross = sum((line.amount for line in delivery_lines), ZERO)
    deducted = sum((line.cost for line in deduction_lines), ZERO)

    return FarmerBalance(
        farmer_id=farmer_id,
        gross_pending=gross,
        deductions_outstanding=deducted,
        net_payable=gross - deducted,
        unit_price=current_price,
        period_label=period_label,
        delivery_lines=delivery_lines,
        deduction_lines=deduction_lines,
    )
