"""
Module: settlement_kernel.selectors.summary_selector
Responsibility: Period summarizer.  Groups settled and pending value by
    calendar month for reporting.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only and restartable: the same store state always yields the same
      summaries.
    - Settled figures come from PaymentTransaction rows grouped by
      period_label (the month of the settlement); pending gross comes from
      pending deliveries grouped by the month they occurred, valued with
      the same per-line rounding the settlement uses.
    - Aggregation happens in Python on Decimal values, so totals do not
      depend on the backend's numeric handling.
"""

from collections import defaultdict
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from settlement_kernel.db.types import MONEY_DECIMAL_PLACES, ZERO
from settlement_kernel.domain.balance import line_amount
from settlement_kernel.domain.dtos import MonthSummary
from settlement_kernel.domain.period import month_label
from settlement_kernel.models.delivery import DeliveryRecord, DeliveryStatus
from settlement_kernel.models.payment_transaction import PaymentTransaction
from settlement_kernel.selectors.base import BaseSelector


class _MonthTotals:
    __slots__ = ("gross_settled", "gross_pending", "deductions", "net", "count")

    def __init__(self):
        self.gross_settled = ZERO
        self.gross_pending = ZERO
        self.deductions = ZERO
        self.net = ZERO
        self.count = 0


class PeriodSummarySelector(BaseSelector):
    """Month-by-month settlement totals."""

    def summarize_by_month(
        self,
        current_price: Decimal,
        decimal_places: int = MONEY_DECIMAL_PLACES,
    ) -> tuple[MonthSummary, ...]:
        """
        Summaries for every month with a transaction or a pending delivery,
        ordered by period_label.

        Args:
            current_price: Global price used to value pending deliveries
                that carry no override.
        """
        return self._summarize(None, current_price, decimal_places)

    def summarize_farmer(
        self,
        farmer_id: UUID,
        current_price: Decimal,
        decimal_places: int = MONEY_DECIMAL_PLACES,
    ) -> tuple[MonthSummary, ...]:
        """Same as summarize_by_month(), restricted to one farmer."""
        return self._summarize(farmer_id, current_price, decimal_places)

    def _summarize(
        self,
        farmer_id: UUID | None,
        current_price: Decimal,
        decimal_places: int,
    ) -> tuple[MonthSummary, ...]:
        months: dict[str, _MonthTotals] = defaultdict(_MonthTotals)

        txn_stmt = select(
            PaymentTransaction.period_label,
            PaymentTransaction.gross_amount,
            PaymentTransaction.deduction_amount,
            PaymentTransaction.net_amount,
        )
        if farmer_id is not None:
            txn_stmt = txn_stmt.where(PaymentTransaction.farmer_id == farmer_id)

        for label, gross, deducted, net in self.session.execute(txn_stmt):
            totals = months[label]
            totals.gross_settled += gross
            totals.deductions += deducted
            totals.net += net
            totals.count += 1

        pending_stmt = select(
            DeliveryRecord.occurred_at,
            DeliveryRecord.quantity,
            DeliveryRecord.unit_price,
        ).where(DeliveryRecord.status == DeliveryStatus.PENDING.value)
        if farmer_id is not None:
            pending_stmt = pending_stmt.where(DeliveryRecord.farmer_id == farmer_id)

        for occurred_at, quantity, unit_price in self.session.execute(pending_stmt):
            price = unit_price if unit_price is not None else current_price
            months[month_label(occurred_at)].gross_pending += line_amount(
                quantity, price, decimal_places
            )

        return tuple(
            MonthSummary(
                period_label=label,
                gross_settled=totals.gross_settled,
                gross_pending=totals.gross_pending,
                deductions_applied=totals.deductions,
                net_settled=totals.net,
                transaction_count=totals.count,
            )
            for label, totals in sorted(months.items())
        )
