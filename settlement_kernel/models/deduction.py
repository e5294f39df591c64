"""
Module: settlement_kernel.models.deduction
Responsibility: ORM persistence for feed-cost deductions recovered from a
    farmer's milk earnings.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - consumed_at / consumed_by_transaction_id are present iff
      status == consumed.
    - cost >= 0.
    - version is an optimistic-lock counter (version_id_col), same contract
      as DeliveryRecord.
    - Transition outstanding -> consumed happens exactly once.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from settlement_kernel.db.base import TrackedBase, UUIDString
from settlement_kernel.db.types import Money, to_decimal


class DeductionStatus(str, Enum):
    """Lifecycle status of a deduction record.

    Contract: Transitions are OUTSTANDING -> CONSUMED only.
    """

    OUTSTANDING = "outstanding"
    CONSUMED = "consumed"


class DeductionRecord(TrackedBase):
    """
    One feed-cost charge to be recovered from a farmer's earnings.

    Contract:
        Arrives OUTSTANDING when a feed fulfillment is recorded.  Consumed
        by exactly one PaymentTransaction; consumed_by_transaction_id is a
        lookup back-reference, not ownership.
    """

    __tablename__ = "deduction_records"

    __table_args__ = (
        Index("idx_deduction_farmer_status", "farmer_id", "status"),
        Index("idx_deduction_occurred_at", "occurred_at"),
        CheckConstraint("cost >= 0", name="ck_deduction_cost_non_negative"),
    )

    farmer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("farmers.id"),
        nullable=False,
    )

    cost: Mapped[Money] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=DeductionStatus.OUTSTANDING.value,
        nullable=False,
    )

    consumed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    consumed_by_transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<DeductionRecord {self.id}: {self.cost} {self.status}>"

    @validates("cost")
    def _validate_cost(self, key, value):
        value = to_decimal(value)
        if value < 0:
            raise ValueError(f"Deduction cost cannot be negative: {value}")
        return value

    @property
    def is_outstanding(self) -> bool:
        return self.status == DeductionStatus.OUTSTANDING.value

    @property
    def is_consumed(self) -> bool:
        return self.status == DeductionStatus.CONSUMED.value

    def mark_consumed(self, consumed_at: datetime, transaction_id: UUID) -> None:
        """Transition OUTSTANDING -> CONSUMED.

        Raises: ValueError if already consumed.
        """
        if self.is_consumed:
            raise ValueError(f"Deduction {self.id} is already consumed")

        self.status = DeductionStatus.CONSUMED.value
        self.consumed_at = consumed_at
        self.consumed_by_transaction_id = transaction_id
