"""
Module: settlement_kernel.models.delivery
Responsibility: ORM persistence for milk delivery records, the gross side of
    every settlement.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - settled_at / settled_amount / settled_unit_price /
      settled_by_transaction_id are present iff status == settled.
    - quantity >= 0; unit_price (override) > 0 when present.
    - version is an optimistic-lock counter (version_id_col): every UPDATE
      is issued as ``UPDATE ... WHERE id = ? AND version = ?``, so two
      settlements racing on the same record cannot both succeed.
    - Transition pending -> settled happens exactly once; settled rows are
      immutable (enforced by db/immutability.py).

Failure modes:
    - ValueError on negative quantity, non-positive override price, or a
      second mark_settled().
    - StaleDataError (mapped to ConcurrentModificationError by the
      settlement service) when a concurrent transaction settled it first.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from settlement_kernel.db.base import TrackedBase, UUIDString
from settlement_kernel.db.types import Money, Quantity, to_decimal


class DeliveryStatus(str, Enum):
    """Lifecycle status of a delivery record.

    Contract: Transitions are PENDING -> SETTLED only.
    """

    PENDING = "pending"
    SETTLED = "settled"


class DeliveryRecord(TrackedBase):
    """
    One milk delivery event.

    Contract:
        Created PENDING by the collection workflow.  The settlement service
        is the only writer after creation: it calls mark_settled() once,
        snapshotting the price it applied and the amount it paid.

    Guarantees:
        - A settled record never re-enters a balance computation
          (selectors filter on status == pending).
        - settled_amount is this record's own contribution
          (quantity x effective price), never an aggregate.
    """

    __tablename__ = "delivery_records"

    __table_args__ = (
        Index("idx_delivery_farmer_status", "farmer_id", "status"),
        Index("idx_delivery_occurred_at", "occurred_at"),
        CheckConstraint("quantity >= 0", name="ck_delivery_quantity_non_negative"),
        CheckConstraint(
            "unit_price IS NULL OR unit_price > 0",
            name="ck_delivery_unit_price_positive",
        ),
    )

    farmer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("farmers.id"),
        nullable=False,
    )

    # Liters delivered
    quantity: Mapped[Quantity] = mapped_column(nullable=False)

    # Per-record price override; None means "price in effect at settlement"
    unit_price: Mapped[Money | None] = mapped_column(nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=DeliveryStatus.PENDING.value,
        nullable=False,
    )

    settled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    settled_amount: Mapped[Money | None] = mapped_column(nullable=True)

    # Price actually applied (override or global snapshot)
    settled_unit_price: Mapped[Money | None] = mapped_column(nullable=True)

    settled_by_transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<DeliveryRecord {self.id}: {self.quantity}L {self.status}>"

    @validates("quantity")
    def _validate_quantity(self, key, value):
        value = to_decimal(value)
        if value < 0:
            raise ValueError(f"Delivery quantity cannot be negative: {value}")
        return value

    @validates("unit_price")
    def _validate_unit_price(self, key, value):
        if value is None:
            return None
        value = to_decimal(value)
        if value <= 0:
            raise ValueError(f"Delivery unit price must be positive: {value}")
        return value

    @property
    def is_pending(self) -> bool:
        return self.status == DeliveryStatus.PENDING.value

    @property
    def is_settled(self) -> bool:
        return self.status == DeliveryStatus.SETTLED.value

    def mark_settled(
        self,
        amount: Decimal,
        unit_price: Decimal,
        settled_at: datetime,
        transaction_id: UUID,
    ) -> None:
        """Transition PENDING -> SETTLED.

        Preconditions: record is PENDING.
        Raises: ValueError if already settled.

        Note: settled_at comes from the injected clock -- does NOT call
        datetime.now().
        """
        if self.is_settled:
            raise ValueError(f"Delivery {self.id} is already settled")

        self.status = DeliveryStatus.SETTLED.value
        self.settled_at = settled_at
        self.settled_amount = amount
        self.settled_unit_price = unit_price
        self.settled_by_transaction_id = transaction_id
