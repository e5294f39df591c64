"""
BalanceService -- read-only balance calculator.

Responsibility:
    Computes what a farmer would be paid if settled now, without writing
    anything.  The settlement executor runs the same arithmetic
    (domain.balance.compute_farmer_balance) inside its own unit of work.

Failure modes:
    - FarmerNotFoundError for an unknown farmer id.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from settlement_kernel.db.types import MONEY_DECIMAL_PLACES
from settlement_kernel.domain.balance import compute_farmer_balance
from settlement_kernel.domain.dtos import FarmerBalance
from settlement_kernel.domain.period import PeriodFilter
from settlement_kernel.exceptions import FarmerNotFoundError
from settlement_kernel.selectors.record_selector import RecordSelector
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.price_service import PriceService


class BalanceService(BaseService):
    """Side-effect free balance computation."""

    def __init__(
        self,
        session: Session,
        price_service: PriceService,
        decimal_places: int = MONEY_DECIMAL_PLACES,
    ):
        super().__init__(session)
        self._prices = price_service
        self._records = RecordSelector(session)
        self._decimal_places = decimal_places

    def compute_balance(
        self,
        farmer_id: UUID,
        period: PeriodFilter | None = None,
    ) -> FarmerBalance:
        period = period or PeriodFilter.all()
        if not self._records.farmer_exists(farmer_id):
            raise FarmerNotFoundError(str(farmer_id))

        return compute_farmer_balance(
            farmer_id=farmer_id,
            deliveries=self._records.pending_deliveries(farmer_id, period),
            deductions=self._records.outstanding_deductions(farmer_id, period),
            current_price=self._prices.get_current_price(),
            period_label=period.label,
            decimal_places=self._decimal_places,
        )
