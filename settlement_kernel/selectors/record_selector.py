"""
Module: settlement_kernel.selectors.record_selector
Responsibility: Read side of the record store: pending deliveries,
    outstanding deductions, farmers and payment transactions.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only pending deliveries and outstanding deductions are ever returned
      for balance purposes; terminal records never re-enter a balance.
    - Deterministic order: (occurred_at, id) for records,
      (created_at, id) for transactions, farmer_code for farmers.
    - Deliveries honor both period bounds; deductions honor only the end
      bound.

Note:
    Rows loaded here stay in the session's identity map, so a settlement
    running in the same session writes against exactly the versions it read.
"""

from uuid import UUID

from sqlalchemy import select

from settlement_kernel.domain.dtos import (
    OutstandingDeduction,
    PendingDelivery,
    TransactionInfo,
)
from settlement_kernel.domain.period import PeriodFilter
from settlement_kernel.models.deduction import DeductionRecord, DeductionStatus
from settlement_kernel.models.delivery import DeliveryRecord, DeliveryStatus
from settlement_kernel.models.farmer import Farmer
from settlement_kernel.models.payment_transaction import PaymentTransaction
from settlement_kernel.selectors.base import BaseSelector


class RecordSelector(BaseSelector):
    """Read-only queries over farmers, records and transactions."""

    def farmer_exists(self, farmer_id: UUID) -> bool:
        return self.session.get(Farmer, farmer_id) is not None

    def list_farmer_ids(self) -> list[UUID]:
        """All farmer ids ordered by farmer_code; is_active does not filter."""
        return list(self.session.scalars(select(Farmer.id).order_by(Farmer.farmer_code)))

    def pending_delivery_records(
        self,
        farmer_id: UUID,
        period: PeriodFilter | None = None,
    ) -> list[DeliveryRecord]:
        """
        Pending DeliveryRecord rows for a farmer.

        Used inside the settlement unit of work only; everything else goes
        through pending_deliveries() and gets DTOs.
        """
        stmt = select(DeliveryRecord).where(
            DeliveryRecord.farmer_id == farmer_id,
            DeliveryRecord.status == DeliveryStatus.PENDING.value,
        )
        if period is not None and period.start is not None:
            stmt = stmt.where(DeliveryRecord.occurred_at >= period.start)
        if period is not None and period.end is not None:
            stmt = stmt.where(DeliveryRecord.occurred_at < period.end)
        stmt = stmt.order_by(DeliveryRecord.occurred_at, DeliveryRecord.id)
        return list(self.session.scalars(stmt))

    def outstanding_deduction_records(
        self,
        farmer_id: UUID,
        period: PeriodFilter | None = None,
    ) -> list[DeductionRecord]:
        """Outstanding DeductionRecord rows incurred before the period end."""
        stmt = select(DeductionRecord).where(
            DeductionRecord.farmer_id == farmer_id,
            DeductionRecord.status == DeductionStatus.OUTSTANDING.value,
        )
        if period is not None and period.end is not None:
            stmt = stmt.where(DeductionRecord.occurred_at < period.end)
        stmt = stmt.order_by(DeductionRecord.occurred_at, DeductionRecord.id)
        return list(self.session.scalars(stmt))

    def pending_deliveries(
        self,
        farmer_id: UUID,
        period: PeriodFilter | None = None,
    ) -> tuple[PendingDelivery, ...]:
        return tuple(
            delivery_snapshot(record)
            for record in self.pending_delivery_records(farmer_id, period)
        )

    def outstanding_deductions(
        self,
        farmer_id: UUID,
        period: PeriodFilter | None = None,
    ) -> tuple[OutstandingDeduction, ...]:
        return tuple(
            deduction_snapshot(record)
            for record in self.outstanding_deduction_records(farmer_id, period)
        )

    def transactions(
        self,
        farmer_id: UUID | None = None,
        period: PeriodFilter | None = None,
    ) -> tuple[TransactionInfo, ...]:
        """Payment transactions, optionally by farmer and creation window."""
        stmt = select(PaymentTransaction)
        if farmer_id is not None:
            stmt = stmt.where(PaymentTransaction.farmer_id == farmer_id)
        if period is not None and period.start is not None:
            stmt = stmt.where(PaymentTransaction.created_at >= period.start)
        if period is not None and period.end is not None:
            stmt = stmt.where(PaymentTransaction.created_at < period.end)
        stmt = stmt.order_by(PaymentTransaction.created_at, PaymentTransaction.id)
        return tuple(_to_transaction_info(txn) for txn in self.session.scalars(stmt))


def _to_transaction_info(txn: PaymentTransaction) -> TransactionInfo:
    return TransactionInfo(
        transaction_id=txn.id,
        farmer_id=txn.farmer_id,
        period_label=txn.period_label,
        filter_label=txn.filter_label,
        description=txn.description,
        gross_amount=txn.gross_amount,
        deduction_amount=txn.deduction_amount,
        net_amount=txn.net_amount,
        unit_price_snapshot=txn.unit_price_snapshot,
        delivery_ids=tuple(UUID(i) for i in txn.contributing_delivery_ids),
        deduction_ids=tuple(UUID(i) for i in txn.contributing_deduction_ids),
        created_at=txn.created_at,
        created_by=txn.created_by,
    )


def delivery_snapshot(record: DeliveryRecord) -> PendingDelivery:
    return PendingDelivery(
        delivery_id=record.id,
        farmer_id=record.farmer_id,
        quantity=record.quantity,
        unit_price=record.unit_price,
        occurred_at=record.occurred_at,
    )


def deduction_snapshot(record: DeductionRecord) -> OutstandingDeduction:
    return OutstandingDeduction(
        deduction_id=record.id,
        farmer_id=record.farmer_id,
        cost=record.cost,
        occurred_at=record.occurred_at,
        description=record.description,
    )
