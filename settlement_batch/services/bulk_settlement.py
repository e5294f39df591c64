"""
BulkSettlementExecutor -- session-per-farmer bulk settlement.

Contract:
    ``settle_all()`` enumerates every farmer and settles each one in its
    own session and transaction, collecting one FarmerOutcome per farmer
    into a BulkSettlementReport.

Architecture: settlement_batch/services.  Imports from settlement_batch.domain
    and kernel services.

Invariants enforced:
    - Isolation: each farmer commits or rolls back on its own; one farmer's
      failure never touches another's records.
    - Every per-farmer error is classified into the report; none escapes
      the run.
    - Each farmer is attempted at most once per run (no in-run retry).
    - Cancellation is honored only between farmers.
    - All timestamps from the injected Clock.
"""

from __future__ import annotations

import time
from decimal import Decimal
from typing import Callable
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from settlement_kernel.db.types import MONEY_DECIMAL_PLACES
from settlement_kernel.domain.clock import Clock, SystemClock
from settlement_kernel.domain.period import PeriodFilter
from settlement_kernel.exceptions import (
    ConcurrentModificationError,
    FarmerNotFoundError,
    NegativeBalanceError,
    NoPendingBalanceError,
    PersistenceFailureError,
    SettlementKernelError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.selectors.record_selector import RecordSelector
from settlement_kernel.services.price_service import DEFAULT_UNIT_PRICE, PriceService
from settlement_kernel.services.settlement_service import SYSTEM_ACTOR, SettlementService

from settlement_batch.domain.types import (
    BulkSettlementReport,
    CancellationToken,
    FarmerOutcome,
    FarmerOutcomeKind,
)

logger = get_logger("batch.bulk_settlement")

ServiceFactory = Callable[[Session], SettlementService]

# Expected refusals map to their own kinds; everything else is FAILED
_EXPECTED_OUTCOMES: tuple[tuple[type[Exception], FarmerOutcomeKind], ...] = (
    (NoPendingBalanceError, FarmerOutcomeKind.NOTHING_OWED),
    (NegativeBalanceError, FarmerOutcomeKind.NEGATIVE_BALANCE),
    (ConcurrentModificationError, FarmerOutcomeKind.CONFLICT),
    (FarmerNotFoundError, FarmerOutcomeKind.NOT_FOUND),
)


def classify_error(exc: Exception) -> FarmerOutcomeKind:
    for error_type, kind in _EXPECTED_OUTCOMES:
        if isinstance(exc, error_type):
            return kind
    return FarmerOutcomeKind.FAILED


class BulkSettlementExecutor:
    """Settle every farmer, one transaction each.

    Non-goals:
        - Does NOT retry within a run; a CONFLICT or FAILED farmer is picked
          up by the next run, which is safe because settlement is
          idempotent.
        - Does NOT parallelize; farmers are processed in farmer_code order.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        default_unit_price: Decimal = DEFAULT_UNIT_PRICE,
        decimal_places: int = MONEY_DECIMAL_PLACES,
        service_factory: ServiceFactory | None = None,
        currency: str = "KES",
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._default_unit_price = default_unit_price
        self._decimal_places = decimal_places
        self._service_factory = service_factory or self._default_service
        self._currency = currency

    def _default_service(self, session: Session) -> SettlementService:
        return SettlementService(
            session=session,
            clock=self._clock,
            price_service=PriceService(session, self._clock, self._default_unit_price),
            decimal_places=self._decimal_places,
            auto_commit=True,
        )

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def settle_all(
        self,
        period: PeriodFilter | None = None,
        actor: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> BulkSettlementReport:
        """Settle all farmers, inactive ones included.

        Raises:
            PersistenceFailureError: Only if the farmer list itself cannot
                be read; per-farmer failures are reported, not raised.
        """
        period = period or PeriodFilter.all()
        actor = actor or SYSTEM_ACTOR
        run_id = uuid4()
        start_time = time.monotonic()
        started_at = self._clock.now()

        with LogContext.bind(run_id=run_id, actor_id=actor, period=period.label):
            farmer_ids = self._list_farmers()
            logger.info(
                "bulk_settlement_started",
                extra={"farmer_count": len(farmer_ids)},
            )

            outcomes: list[FarmerOutcome] = []
            not_attempted: tuple[UUID, ...] = ()
            cancelled = False

            for index, farmer_id in enumerate(farmer_ids):
                if cancel_token is not None and cancel_token.is_cancelled:
                    cancelled = True
                    not_attempted = tuple(farmer_ids[index:])
                    logger.warning(
                        "bulk_settlement_cancelled",
                        extra={
                            "processed": len(outcomes),
                            "not_attempted": len(not_attempted),
                        },
                    )
                    break
                outcomes.append(self._settle_one(farmer_id, period, actor))

            report = BulkSettlementReport(
                run_id=run_id,
                period_label=period.label,
                outcomes=tuple(outcomes),
                cancelled=cancelled,
                not_attempted=not_attempted,
                started_at=started_at,
                completed_at=self._clock.now(),
                duration_ms=int((time.monotonic() - start_time) * 1000),
                currency=self._currency,
            )

            logger.info(
                "bulk_settlement_completed",
                extra={
                    "farmers_processed": report.farmers_processed,
                    "settled_count": report.settled_count,
                    "total_net_disbursed": report.total_net_disbursed,
                    "currency": report.currency,
                    "outcome_counts": report.counts(),
                    "cancelled": cancelled,
                    "duration_ms": report.duration_ms,
                },
            )
            return report

    def _list_farmers(self) -> list[UUID]:
        session = self._session_factory()
        try:
            return RecordSelector(session).list_farmer_ids()
        except DBAPIError as exc:
            raise PersistenceFailureError("list_farmers", str(exc.orig or exc)) from exc
        finally:
            session.close()

    def _settle_one(
        self,
        farmer_id: UUID,
        period: PeriodFilter,
        actor: str,
    ) -> FarmerOutcome:
        item_start = time.monotonic()
        started_at = self._clock.now()
        session = self._session_factory()
        try:
            service = self._service_factory(session)
            result = service.settle_farmer(farmer_id, period, actor)
            return FarmerOutcome(
                farmer_id=farmer_id,
                kind=FarmerOutcomeKind.SETTLED,
                transaction_id=result.transaction_id,
                net_amount=result.net_amount,
                duration_ms=int((time.monotonic() - item_start) * 1000),
                started_at=started_at,
                completed_at=self._clock.now(),
            )
        except Exception as exc:
            session.rollback()
            kind = classify_error(exc)
            error_code = (
                exc.code if isinstance(exc, SettlementKernelError) else "UNHANDLED_EXCEPTION"
            )
            if kind == FarmerOutcomeKind.FAILED:
                logger.error(
                    "bulk_farmer_failed",
                    extra={"farmer_id": str(farmer_id), "error_code": error_code},
                    exc_info=True,
                )
            else:
                logger.info(
                    "bulk_farmer_not_settled",
                    extra={
                        "farmer_id": str(farmer_id),
                        "outcome": kind.value,
                        "error_code": error_code,
                    },
                )
            return FarmerOutcome(
                farmer_id=farmer_id,
                kind=kind,
                error_code=error_code,
                error_message=str(exc),
                duration_ms=int((time.monotonic() - item_start) * 1000),
                started_at=started_at,
                completed_at=self._clock.now(),
            )
        finally:
            session.close()
