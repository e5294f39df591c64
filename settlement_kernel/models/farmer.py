"""
Module: settlement_kernel.models.farmer
Responsibility: ORM persistence for cooperative members who deliver milk.
    Farmers are registered by the membership workflow, which lives outside
    this kernel; the settlement engine only reads them.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - farmer_code is unique (uq_farmer_code), e.g. "PC00001".
    - is_active is informational; bulk settlement runs enumerate every
      farmer regardless of it.
"""

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase


class Farmer(TrackedBase):
    """
    Cooperative member whose deliveries and deductions are settled.

    Non-goals:
        - Registration, authentication and profile data are owned by the
          membership workflow.
    """

    __tablename__ = "farmers"

    __table_args__ = (
        UniqueConstraint("farmer_code", name="uq_farmer_code"),
        Index("idx_farmer_active", "is_active"),
    )

    farmer_code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Farmer {self.farmer_code}: {self.name}>"
