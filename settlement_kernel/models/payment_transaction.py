"""
Module: settlement_kernel.models.payment_transaction
Responsibility: ORM persistence for payment transactions, the immutable
    ledger entry written once per successful settlement.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - net_amount >= 0 (ck_payment_net_non_negative).
    - gross_amount - deduction_amount = net_amount.  All three come from
      the same FarmerBalance in the settlement service.
    - gross_amount equals the sum of settled_amount over
      contributing_delivery_ids; deduction_amount equals the sum of cost
      over contributing_deduction_ids.  Both lists are written in the same
      unit of work as the record transitions.
    - Never updated, never deleted (db/immutability.py).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import Base, UUIDString
from settlement_kernel.db.types import Money


class PaymentTransaction(Base):
    """
    One payment to one farmer.

    Contract:
        Created by SettlementService.settle_farmer() only.  period_label is
        the YYYY-MM month of the settlement instant, which is what the
        period summarizer groups on.
    """

    __tablename__ = "payment_transactions"

    __table_args__ = (
        Index("idx_payment_farmer", "farmer_id"),
        Index("idx_payment_period", "period_label"),
        CheckConstraint("net_amount >= 0", name="ck_payment_net_non_negative"),
    )

    farmer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("farmers.id"),
        nullable=False,
    )

    # YYYY-MM of created_at
    period_label: Mapped[str] = mapped_column(String(7), nullable=False)

    # Label of the filter the settlement ran under, e.g. "January 2025"
    filter_label: Mapped[str] = mapped_column(String(100), nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    gross_amount: Mapped[Money] = mapped_column(nullable=False)

    deduction_amount: Mapped[Money] = mapped_column(nullable=False)

    net_amount: Mapped[Money] = mapped_column(nullable=False)

    # Global price read for this settlement
    unit_price_snapshot: Mapped[Money] = mapped_column(nullable=False)

    contributing_delivery_ids: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
    )

    contributing_deduction_ids: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    created_by: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<PaymentTransaction {self.id}: farmer={self.farmer_id} "
            f"net={self.net_amount}>"
        )

    @property
    def delivery_count(self) -> int:
        return len(self.contributing_delivery_ids)

    @property
    def deduction_count(self) -> int:
        return len(self.contributing_deduction_ids)
