"""
PriceService -- global price-per-liter configuration.

Responsibility:
    Reads and writes the single PriceConfig row.  While no row exists the
    configured default price applies.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only; the caller owns
    the transaction.

Invariants enforced:
    - A stored price is always > 0 (InvalidPriceError otherwise).
    - updated_at comes from the injected Clock.
    - Last writer wins.  There is no compare-and-swap and no history;
      settlements snapshot the price they applied.

Failure modes:
    - InvalidPriceError: non-positive, non-finite or non-numeric price.
    - ConcurrentModificationError: two writers raced to create the first
      row and this one lost on the unique key.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settlement_kernel.db.types import to_decimal
from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.dtos import PriceInfo
from settlement_kernel.exceptions import ConcurrentModificationError, InvalidPriceError
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.price_config import MILK_PRICE_KEY, PriceConfig
from settlement_kernel.services.base import BaseService

logger = get_logger("services.price")

DEFAULT_UNIT_PRICE = Decimal("45")


def validate_price(value) -> Decimal:
    """Coerce to Decimal and require a positive, finite number."""
    # Floats go through str so 50.5 becomes Decimal("50.5"), not its binary expansion
    raw = str(value) if isinstance(value, float) else value
    try:
        price = to_decimal(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidPriceError(value) from exc
    if price <= 0:
        raise InvalidPriceError(value)
    return price


class PriceService(BaseService):
    """Accessor for the current milk price."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        default_unit_price: Decimal = DEFAULT_UNIT_PRICE,
    ):
        super().__init__(session)
        self._clock = clock
        self._default_unit_price = default_unit_price

    @property
    def default_unit_price(self) -> Decimal:
        return self._default_unit_price

    def _stored(self) -> PriceConfig | None:
        return self.session.execute(
            select(PriceConfig).where(PriceConfig.config_key == MILK_PRICE_KEY)
        ).scalar_one_or_none()

    def get_current_price(self) -> Decimal:
        return self.get_price_config().unit_price

    def get_price_config(self) -> PriceInfo:
        stored = self._stored()
        if stored is None:
            return PriceInfo(
                unit_price=self._default_unit_price,
                updated_at=None,
                updated_by=None,
                is_default=True,
            )
        return PriceInfo(
            unit_price=stored.unit_price,
            updated_at=stored.updated_at,
            updated_by=stored.updated_by,
            is_default=False,
        )

    def set_price(self, new_price, actor: str) -> PriceInfo:
        """
        Replace the global price.

        Postconditions: the row is flushed with updated_at = clock.now() and
            updated_by = actor.  Nothing else changes; pending deliveries pick
            the new price up at their next balance computation.

        Raises:
            InvalidPriceError: If new_price <= 0 or is not a finite number.
            ConcurrentModificationError: If a concurrent first insert won.
        """
        price = validate_price(new_price)
        now = self._clock.now()

        stored = self._stored()
        previous = stored.unit_price if stored is not None else None
        if stored is None:
            stored = PriceConfig(config_key=MILK_PRICE_KEY)
            self.session.add(stored)

        stored.unit_price = price
        stored.updated_at = now
        stored.updated_by = actor

        try:
            self.session.flush()
        except IntegrityError as exc:
            raise ConcurrentModificationError(
                "PriceConfig", MILK_PRICE_KEY, "price row created concurrently"
            ) from exc

        logger.info(
            "price_updated",
            extra={
                "previous_price": previous,
                "unit_price": price,
                "updated_by": actor,
            },
        )
        return PriceInfo(
            unit_price=price,
            updated_at=now,
            updated_by=actor,
            is_default=False,
        )

    def reset_price(self, actor: str) -> PriceInfo:
        """Set the price back to the configured default."""
        logger.info("price_reset_requested", extra={"updated_by": actor})
        return self.set_price(self._default_unit_price, actor)
