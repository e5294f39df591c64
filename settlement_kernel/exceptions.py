"""
Typed Exception Hierarchy for the Settlement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Settlement runs are driven by operators and by the bulk orchestrator, and
each failure demands a different response: "nothing owed" needs no action,
"negative balance" needs manual review, "conflict" needs a retry. Callers
must be able to tell these apart without parsing message strings.

Every exception therefore has:
  1. A TYPED class (catch by type, not message)
  2. A ``code`` class attribute (machine-readable, report-safe)
  3. A ``retryable`` class attribute (safe to re-run automatically?)
  4. Structured attributes carrying the context (farmer id, amounts, ...)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SettlementKernelError (base)
    |
    +-- PriceError
    |   +-- InvalidPriceError
    |
    +-- SettlementError
    |   +-- NoPendingBalanceError
    |   +-- NegativeBalanceError
    |
    +-- NotFoundError
    |   +-- FarmerNotFoundError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError      (retryable)
    |
    +-- PersistenceError
    |   +-- PersistenceFailureError          (retryable)
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                     | When Raised
-------------|--------------------------|-------------------------------------------
Price        | INVALID_PRICE            | Price write <= 0 or not a finite number
Settlement   | NO_PENDING_BALANCE       | Farmer has no pending deliveries
             | NEGATIVE_BALANCE         | Deductions exceed pending gross
Not found    | FARMER_NOT_FOUND         | Unknown farmer id
Concurrency  | CONCURRENT_MODIFICATION  | Store detected a conflicting write
Persistence  | PERSISTENCE_FAILURE      | Store unavailable, timeout, driver error
Immutability | IMMUTABILITY_VIOLATION   | Modifying a settled/consumed/ledger row
Config       | CONFIGURATION_ERROR      | Invalid settings file or value

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        result = settlement_service.settle_farmer(farmer_id)
    except NoPendingBalanceError:
        pass  # nothing owed this run
    except NegativeBalanceError as e:
        flag_for_review(e.farmer_id, e.net_payable)
    except SettlementKernelError as e:
        if e.retryable:
            schedule_retry(e.code)
        raise
"""

from decimal import Decimal


class SettlementKernelError(Exception):
    """
    Base exception for all settlement kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "SETTLEMENT_KERNEL_ERROR"
    retryable: bool = False


# Price configuration


class PriceError(SettlementKernelError):
    """Base exception for price configuration errors."""

    code: str = "PRICE_ERROR"


class InvalidPriceError(PriceError):
    """Price-per-unit must be a positive, finite number."""

    code: str = "INVALID_PRICE"

    def __init__(self, price: object):
        self.price = str(price)
        super().__init__(
            f"Invalid price per unit: {price!r} (must be a positive, finite number)"
        )


# Settlement outcomes


class SettlementError(SettlementKernelError):
    """Base exception for settlement refusals."""

    code: str = "SETTLEMENT_ERROR"


class NoPendingBalanceError(SettlementError):
    """
    Farmer has no pending delivery value to settle.

    Expected at bulk-run scale; the bulk report records it as
    "nothing owed" rather than as a failure.
    """

    code: str = "NO_PENDING_BALANCE"

    def __init__(self, farmer_id: str):
        self.farmer_id = str(farmer_id)
        super().__init__(f"No pending balance for farmer {farmer_id}")


class NegativeBalanceError(SettlementError):
    """
    Outstanding deductions exceed the farmer's pending gross.

    Nothing is written: deliveries stay pending and deductions stay
    outstanding until enough gross accrues to cover them.
    """

    code: str = "NEGATIVE_BALANCE"

    def __init__(
        self,
        farmer_id: str,
        gross_pending: Decimal,
        deductions_outstanding: Decimal,
    ):
        self.farmer_id = str(farmer_id)
        self.gross_pending = gross_pending
        self.deductions_outstanding = deductions_outstanding
        self.net_payable = gross_pending - deductions_outstanding
        super().__init__(
            f"Negative balance for farmer {farmer_id}: gross {gross_pending} "
            f"- deductions {deductions_outstanding} = {self.net_payable}"
        )


# Lookup


class NotFoundError(SettlementKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class FarmerNotFoundError(NotFoundError):
    """Farmer with given ID was not found."""

    code: str = "FARMER_NOT_FOUND"

    def __init__(self, farmer_id: str):
        self.farmer_id = str(farmer_id)
        super().__init__(f"Farmer not found: {farmer_id}")


# Concurrency


class ConcurrencyError(SettlementKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class ConcurrentModificationError(ConcurrencyError):
    """
    The store rejected the write set because a concurrent transaction
    modified one of the same records first.

    No partial writes remain.  Safe to retry: settlement is idempotent.
    """

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: str, detail: str | None = None):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.detail = detail
        message = (
            f"Concurrent modification on {entity_type} {entity_id}: "
            "record was modified by another transaction"
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


# Persistence


class PersistenceError(SettlementKernelError):
    """Base exception for store availability errors."""

    code: str = "PERSISTENCE_ERROR"
    retryable: bool = True


class PersistenceFailureError(PersistenceError):
    """Store unavailable, transaction timed out, or driver failure."""

    code: str = "PERSISTENCE_FAILURE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")


# Immutability


class ImmutabilityError(SettlementKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    PaymentTransactions are immutable from creation; DeliveryRecords and
    DeductionRecords are immutable once they reach a terminal status.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration


class ConfigurationError(SettlementKernelError):
    """Settings file or value is invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid setting '{key}': {reason}")
