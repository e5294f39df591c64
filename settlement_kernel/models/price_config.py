"""
Module: settlement_kernel.models.price_config
Responsibility: ORM persistence for the global price-per-liter setting.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - At most one row per config_key (uq_price_config_key); the milk price
      lives under MILK_PRICE_KEY.
    - unit_price > 0.
    - No history is kept: a write replaces the previous value.  Past
      settlements are unaffected because each one snapshots the price it
      applied.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import Base
from settlement_kernel.db.types import Money

MILK_PRICE_KEY = "milk_price"


class PriceConfig(Base):
    """Current price-per-liter, last writer wins."""

    __tablename__ = "price_configs"

    __table_args__ = (
        UniqueConstraint("config_key", name="uq_price_config_key"),
        CheckConstraint("unit_price > 0", name="ck_price_config_positive"),
    )

    config_key: Mapped[str] = mapped_column(
        String(50),
        default=MILK_PRICE_KEY,
        nullable=False,
    )

    unit_price: Mapped[Money] = mapped_column(nullable=False)

    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    updated_by: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<PriceConfig {self.config_key}={self.unit_price}>"
