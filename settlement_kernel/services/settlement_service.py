"""
SettlementService -- settle one farmer atomically.

Responsibility:
    Recomputes a farmer's balance inside the unit of work that carries the
    writes, refuses to settle when nothing is owed or the balance is
    negative, and otherwise writes the whole settlement at once: every
    contributing delivery -> settled, every contributing deduction ->
    consumed, and one new PaymentTransaction.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Atomicity: all record transitions and the transaction row are flushed
      together; on any failure the session is rolled back (auto_commit) and
      nothing is visible.
    - Exactly-once: only pending/outstanding records are read, and each
      transition is an ``UPDATE ... WHERE id = ? AND version = ?``.  If a
      concurrent settlement got there first the update matches no row,
      SQLAlchemy raises StaleDataError and the whole unit of work is
      discarded.
    - No negative payouts: net_payable < 0 is refused, never clamped.
    - Conservation: each delivery's settled_amount is the rounded line
      amount that was summed into gross_amount.

Failure modes:
    - FarmerNotFoundError: unknown farmer.
    - NoPendingBalanceError: gross_pending == 0.
    - NegativeBalanceError: deductions exceed gross.
    - ConcurrentModificationError: a record was modified concurrently.
    - PersistenceFailureError: driver or transport failure.

Usage:
    service = SettlementService(session, clock, price_service)
    result = service.settle_farmer(farmer_id, PeriodFilter.for_month(2025, 1))
"""

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from settlement_kernel.db.types import MONEY_DECIMAL_PLACES
from settlement_kernel.domain.balance import compute_farmer_balance
from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.dtos import FarmerBalance, SettlementResult
from settlement_kernel.domain.period import PeriodFilter, month_label
from settlement_kernel.exceptions import (
    ConcurrentModificationError,
    FarmerNotFoundError,
    NegativeBalanceError,
    NoPendingBalanceError,
    PersistenceFailureError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.payment_transaction import PaymentTransaction
from settlement_kernel.selectors.record_selector import (
    RecordSelector,
    deduction_snapshot,
    delivery_snapshot,
)
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.price_service import PriceService

logger = get_logger("services.settlement")

SYSTEM_ACTOR = "system"


def payment_description(delivery_count: int, period: PeriodFilter) -> str:
    noun = "delivery" if delivery_count == 1 else "deliveries"
    return f"Milk payment for {delivery_count} {noun} ({period.label})"


class SettlementService(BaseService):
    """Settlement executor for a single farmer.

    Contract:
        With ``auto_commit=True`` (default) the service owns the
        transaction boundary: commit on success, rollback on any failure.
        With ``auto_commit=False`` it only flushes; the caller commits or
        rolls back, and must roll back after any raised error.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        price_service: PriceService,
        decimal_places: int = MONEY_DECIMAL_PLACES,
        auto_commit: bool = True,
    ):
        super().__init__(session)
        self._clock = clock
        self._prices = price_service
        self._records = RecordSelector(session)
        self._decimal_places = decimal_places
        self._auto_commit = auto_commit

    def settle_farmer(
        self,
        farmer_id: UUID,
        period: PeriodFilter | None = None,
        actor: str | None = None,
    ) -> SettlementResult:
        period = period or PeriodFilter.all()
        actor = actor or SYSTEM_ACTOR

        with LogContext.bind(farmer_id=farmer_id, actor_id=actor, period=period.label):
            logger.info("settlement_started")
            try:
                result = self._settle(farmer_id, period, actor)
                if self._auto_commit:
                    self.session.commit()
            except StaleDataError as exc:
                self._rollback()
                logger.warning("settlement_conflict", extra={"detail": str(exc)})
                raise ConcurrentModificationError(
                    "FarmerSettlement", str(farmer_id), str(exc)
                ) from exc
            except DBAPIError as exc:
                self._rollback()
                logger.error("settlement_persistence_failure", exc_info=True)
                raise PersistenceFailureError("settle_farmer", str(exc.orig or exc)) from exc
            except (
                FarmerNotFoundError,
                NoPendingBalanceError,
                NegativeBalanceError,
            ) as exc:
                self._rollback()
                logger.info("settlement_refused", extra={"reason": exc.code})
                raise
            except Exception:
                self._rollback()
                logger.error("settlement_failed", exc_info=True)
                raise

            logger.info(
                "settlement_committed" if self._auto_commit else "settlement_flushed",
                extra={
                    "transaction_id": str(result.transaction_id),
                    "net_amount": result.net_amount,
                    "gross_amount": result.gross_amount,
                    "deduction_amount": result.deduction_amount,
                    "delivery_count": result.delivery_count,
                    "deduction_count": result.deduction_count,
                },
            )
            return result

    def _rollback(self) -> None:
        if self._auto_commit:
            self.session.rollback()

    def _settle(
        self,
        farmer_id: UUID,
        period: PeriodFilter,
        actor: str,
    ) -> SettlementResult:
        if not self._records.farmer_exists(farmer_id):
            raise FarmerNotFoundError(str(farmer_id))

        unit_price = self._prices.get_current_price()
        deliveries = self._records.pending_delivery_records(farmer_id, period)
        deductions = self._records.outstanding_deduction_records(farmer_id, period)

        balance = compute_farmer_balance(
            farmer_id=farmer_id,
            deliveries=[delivery_snapshot(r) for r in deliveries],
            deductions=[deduction_snapshot(r) for r in deductions],
            current_price=unit_price,
            period_label=period.label,
            decimal_places=self._decimal_places,
        )
        self._check_payable(balance)

        now = self._clock.now()
        transaction_id = uuid4()

        for record, line in zip(deliveries, balance.delivery_lines):
            record.mark_settled(
                amount=line.amount,
                unit_price=line.unit_price,
                settled_at=now,
                transaction_id=transaction_id,
            )
            record.updated_by_id = actor

        for record in deductions:
            record.mark_consumed(consumed_at=now, transaction_id=transaction_id)
            record.updated_by_id = actor

        txn = PaymentTransaction(
            id=transaction_id,
            farmer_id=farmer_id,
            period_label=month_label(now),
            filter_label=period.label,
            description=payment_description(balance.delivery_count, period),
            gross_amount=balance.gross_pending,
            deduction_amount=balance.deductions_outstanding,
            net_amount=balance.net_payable,
            unit_price_snapshot=unit_price,
            contributing_delivery_ids=[str(i) for i in balance.delivery_ids],
            contributing_deduction_ids=[str(i) for i in balance.deduction_ids],
            created_at=now,
            created_by=actor,
        )
        self.session.add(txn)
        self.session.flush()

        return SettlementResult(
            farmer_id=farmer_id,
            transaction_id=transaction_id,
            net_amount=balance.net_payable,
            gross_amount=balance.gross_pending,
            deduction_amount=balance.deductions_outstanding,
            delivery_count=balance.delivery_count,
            deduction_count=balance.deduction_count,
            period_label=txn.period_label,
        )

    @staticmethod
    def _check_payable(balance: FarmerBalance) -> None:
        if balance.gross_pending == Decimal("0"):
            raise NoPendingBalanceError(str(balance.farmer_id))
        if balance.net_payable < 0:
            raise NegativeBalanceError(
                str(balance.farmer_id),
                balance.gross_pending,
                balance.deductions_outstanding,
            )
