"""
SettlementOrchestrator -- composition root for the settlement engine.

Contract:
    Wires a session factory, a Clock and SettlementSettings into the kernel
    services and the bulk executor, and exposes the public operations.  Each
    call opens its own session, so callers may use one orchestrator from
    several threads and settle different farmers concurrently.

Architecture: settlement_batch (top-level).  The kernel never imports from
    settlement_batch.

Invariants enforced:
    - Clock injection: every service receives the same Clock.
    - Only frozen DTOs are returned; no session or ORM object leaks.
    - Immutability listeners are registered before any write.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, TypeVar
from uuid import UUID

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from settlement_kernel.config import SettlementSettings
from settlement_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from settlement_kernel.db.immutability import register_immutability_listeners
from settlement_kernel.domain.clock import Clock, SystemClock
from settlement_kernel.domain.dtos import (
    FarmerBalance,
    MonthSummary,
    PriceInfo,
    SettlementResult,
    TransactionInfo,
)
from settlement_kernel.domain.period import PeriodFilter
from settlement_kernel.exceptions import PersistenceFailureError
from settlement_kernel.logging_config import configure_logging, get_logger
from settlement_kernel.selectors.record_selector import RecordSelector
from settlement_kernel.selectors.summary_selector import PeriodSummarySelector
from settlement_kernel.services.balance_service import BalanceService
from settlement_kernel.services.price_service import PriceService
from settlement_kernel.services.retry_service import RetryService
from settlement_kernel.services.settlement_service import SettlementService

from settlement_batch.domain.types import BulkSettlementReport, CancellationToken
from settlement_batch.services.bulk_settlement import BulkSettlementExecutor

logger = get_logger("batch.orchestrator")

T = TypeVar("T")


class SettlementOrchestrator:
    """Public entry point for price, balance, settlement and reporting.

    Non-goals:
        - Does NOT schedule runs; callers decide when to call settle_all().
        - Does NOT create farmers or records; those come from the
          collection and membership workflows.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        clock: Clock | None = None,
        settings: SettlementSettings | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._settings = settings or SettlementSettings()
        retry_kwargs = {} if sleep is None else {"sleep": sleep}
        self._retry = RetryService(
            max_attempts=self._settings.retry_max_attempts,
            base_delay=self._settings.retry_base_delay,
            max_delay=self._settings.retry_max_delay,
            **retry_kwargs,
        )
        register_immutability_listeners()

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_settings(
        cls,
        settings: SettlementSettings,
        clock: Clock | None = None,
        create_schema: bool = False,
    ) -> SettlementOrchestrator:
        """Initialize the engine from settings and build an orchestrator.

        Args:
            settings: Loaded settings (see settlement_kernel.config).
            clock: Optional clock for deterministic runs.
            create_schema: Create missing tables (local and test use).
        """
        configure_logging(level=settings.log_level)
        init_engine_from_url(settings.database_url)
        if create_schema:
            create_tables()
        return cls(get_session_factory(), clock=clock, settings=settings)

    # -------------------------------------------------------------------------
    # Wiring
    # -------------------------------------------------------------------------

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def settings(self) -> SettlementSettings:
        return self._settings

    def _price_service(self, session: Session) -> PriceService:
        return PriceService(session, self._clock, self._settings.default_unit_price)

    def _settlement_service(self, session: Session) -> SettlementService:
        return SettlementService(
            session=session,
            clock=self._clock,
            price_service=self._price_service(session),
            decimal_places=self._settings.money_decimal_places,
            auto_commit=True,
        )

    def _read(self, operation: str, fn: Callable[[Session], T]) -> T:
        session = self._session_factory()
        try:
            return fn(session)
        except DBAPIError as exc:
            raise self._store_failure(operation, exc) from exc
        finally:
            session.close()

    def _write(self, operation: str, fn: Callable[[Session], T]) -> T:
        try:
            with session_scope(self._session_factory) as session:
                return fn(session)
        except DBAPIError as exc:
            raise self._store_failure(operation, exc) from exc

    @staticmethod
    def _store_failure(operation: str, exc: DBAPIError) -> PersistenceFailureError:
        logger.error("store_failure", extra={"operation": operation}, exc_info=True)
        return PersistenceFailureError(operation, str(exc.orig or exc))

    def create_bulk_executor(self) -> BulkSettlementExecutor:
        return BulkSettlementExecutor(
            session_factory=self._session_factory,
            clock=self._clock,
            default_unit_price=self._settings.default_unit_price,
            decimal_places=self._settings.money_decimal_places,
            service_factory=self._settlement_service,
            currency=self._settings.currency,
        )

    # -------------------------------------------------------------------------
    # Price
    # -------------------------------------------------------------------------

    def get_current_price(self) -> Decimal:
        return self._read(
            "get_current_price", lambda s: self._price_service(s).get_current_price()
        )

    def get_price_config(self) -> PriceInfo:
        return self._read(
            "get_price_config", lambda s: self._price_service(s).get_price_config()
        )

    def set_price(self, price, actor: str) -> PriceInfo:
        return self._write(
            "set_price", lambda s: self._price_service(s).set_price(price, actor)
        )

    def reset_price(self, actor: str) -> PriceInfo:
        return self._write(
            "reset_price", lambda s: self._price_service(s).reset_price(actor)
        )

    # -------------------------------------------------------------------------
    # Balance and settlement
    # -------------------------------------------------------------------------

    def compute_balance(
        self,
        farmer_id: UUID,
        period: PeriodFilter | None = None,
    ) -> FarmerBalance:
        def _compute(session: Session) -> FarmerBalance:
            service = BalanceService(
                session,
                self._price_service(session),
                self._settings.money_decimal_places,
            )
            return service.compute_balance(farmer_id, period)

        return self._read("compute_balance", _compute)

    def settle_farmer(
        self,
        farmer_id: UUID,
        period: PeriodFilter | None = None,
        actor: str | None = None,
        retry: bool = False,
    ) -> SettlementResult:
        """Settle one farmer in a fresh session.

        With ``retry=True`` conflicts and store failures are retried with
        backoff; refusals (nothing owed, negative balance) never are.
        """

        def _attempt() -> SettlementResult:
            return self._read(
                "settle_farmer",
                lambda s: self._settlement_service(s).settle_farmer(
                    farmer_id, period, actor
                )
            )

        if retry:
            return self._retry.run(_attempt, operation="settle_farmer")
        return _attempt()

    def settle_all(
        self,
        period: PeriodFilter | None = None,
        actor: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> BulkSettlementReport:
        return self.create_bulk_executor().settle_all(period, actor, cancel_token)

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def summarize_by_month(self) -> tuple[MonthSummary, ...]:
        def _summarize(session: Session) -> tuple[MonthSummary, ...]:
            price = self._price_service(session).get_current_price()
            return PeriodSummarySelector(session).summarize_by_month(
                price, self._settings.money_decimal_places
            )

        return self._read("summarize_by_month", _summarize)

    def summarize_farmer(self, farmer_id: UUID) -> tuple[MonthSummary, ...]:
        def _summarize(session: Session) -> tuple[MonthSummary, ...]:
            price = self._price_service(session).get_current_price()
            return PeriodSummarySelector(session).summarize_farmer(
                farmer_id, price, self._settings.money_decimal_places
            )

        return self._read("summarize_farmer", _summarize)

    def list_transactions(
        self,
        farmer_id: UUID | None = None,
        period: PeriodFilter | None = None,
    ) -> tuple[TransactionInfo, ...]:
        return self._read(
            "list_transactions", lambda s: RecordSelector(s).transactions(farmer_id, period)
        )
