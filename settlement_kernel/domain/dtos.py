"""
settlement_kernel.domain.dtos -- Pure frozen dataclasses crossing the
kernel boundary.

ZERO I/O.  Selectors and services return these instead of ORM objects, so
no session state leaks to callers.

Invariants enforced:
    - All DTOs are frozen dataclasses (immutable).
    - Collections are tuples, ordered by (occurred_at, id).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID


# =============================================================================
# Record snapshots (read side of the record store)
# =============================================================================


@dataclass(frozen=True)
class PendingDelivery:
    """A pending delivery as read inside a unit of work."""

    delivery_id: UUID
    farmer_id: UUID
    quantity: Decimal
    unit_price: Decimal | None  # Per-record override, None = global price
    occurred_at: datetime


@dataclass(frozen=True)
class OutstandingDeduction:
    """An outstanding deduction as read inside a unit of work."""

    deduction_id: UUID
    farmer_id: UUID
    cost: Decimal
    occurred_at: datetime
    description: str | None = None


# =============================================================================
# Balance
# =============================================================================


@dataclass(frozen=True)
class DeliveryLine:
    """One delivery's contribution to a balance.

    ``amount`` is rounded once, here; the settlement writes it unchanged
    into the record's settled_amount.
    """

    delivery_id: UUID
    occurred_at: datetime
    quantity: Decimal
    unit_price: Decimal  # Effective price (override or global)
    amount: Decimal
    is_override: bool


@dataclass(frozen=True)
class DeductionLine:
    deduction_id: UUID
    occurred_at: datetime
    cost: Decimal


@dataclass(frozen=True)
class FarmerBalance:
    """What a farmer would be paid if settled now.

    ``net_payable`` may be negative; the settlement refuses to pay it.
    """

    farmer_id: UUID
    gross_pending: Decimal
    deductions_outstanding: Decimal
    net_payable: Decimal
    unit_price: Decimal  # Global price read for this computation
    period_label: str
    delivery_lines: tuple[DeliveryLine, ...] = ()
    deduction_lines: tuple[DeductionLine, ...] = ()

    @property
    def delivery_count(self) -> int:
        return len(self.delivery_lines)

    @property
    def deduction_count(self) -> int:
        return len(self.deduction_lines)

    @property
    def delivery_ids(self) -> tuple[UUID, ...]:
        return tuple(line.delivery_id for line in self.delivery_lines)

    @property
    def deduction_ids(self) -> tuple[UUID, ...]:
        return tuple(line.deduction_id for line in self.deduction_lines)


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of one successful settlement."""

    farmer_id: UUID
    transaction_id: UUID
    net_amount: Decimal
    gross_amount: Decimal
    deduction_amount: Decimal
    delivery_count: int
    deduction_count: int
    period_label: str


@dataclass(frozen=True)
class PriceInfo:
    """Current price-per-liter and who set it.

    ``is_default`` is True while no price has ever been written; the
    timestamp and actor are then None.
    """

    unit_price: Decimal
    updated_at: datetime | None
    updated_by: str | None
    is_default: bool


@dataclass(frozen=True)
class TransactionInfo:
    """Read-only view of a PaymentTransaction."""

    transaction_id: UUID
    farmer_id: UUID
    period_label: str
    filter_label: str
    description: str
    gross_amount: Decimal
    deduction_amount: Decimal
    net_amount: Decimal
    unit_price_snapshot: Decimal
    delivery_ids: tuple[UUID, ...]
    deduction_ids: tuple[UUID, ...]
    created_at: datetime
    created_by: str


@dataclass(frozen=True)
class MonthSummary:
    """Settled and pending totals for one calendar month (YYYY-MM)."""

    period_label: str
    gross_settled: Decimal
    gross_pending: Decimal
    deductions_applied: Decimal
    net_settled: Decimal
    transaction_count: int
