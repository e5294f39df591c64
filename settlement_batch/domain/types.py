"""
settlement_batch.domain.types -- Pure frozen dataclasses for bulk settlement.

ZERO I/O (CancellationToken holds a threading.Event, nothing else).

Frozen dataclasses with enum kind fields and tuples for immutable
collections.

Invariants enforced:
    - Every farmer attempted in a run has exactly one FarmerOutcome.
    - Farmers skipped by cancellation appear in ``not_attempted``, never in
      ``outcomes``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


# =============================================================================
# Outcome enums
# =============================================================================


class FarmerOutcomeKind(str, Enum):
    """How one farmer's settlement ended within a bulk run."""

    SETTLED = "settled"  # Payment transaction written
    NOTHING_OWED = "nothing_owed"  # No pending deliveries
    NEGATIVE_BALANCE = "negative_balance"  # Deductions exceed gross, needs review
    CONFLICT = "conflict"  # Concurrent modification, safe to re-run
    FAILED = "failed"  # Store failure or unexpected error
    NOT_FOUND = "not_found"  # Farmer disappeared between listing and settling


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class FarmerOutcome:
    """Immutable result of settling one farmer in a bulk run."""

    farmer_id: UUID
    kind: FarmerOutcomeKind
    transaction_id: UUID | None = None
    net_amount: Decimal | None = None
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_settled(self) -> bool:
        return self.kind == FarmerOutcomeKind.SETTLED


@dataclass(frozen=True)
class BulkSettlementReport:
    """Immutable result of a settle_all run.

    Returned by ``BulkSettlementExecutor.settle_all()``.
    """

    run_id: UUID
    period_label: str
    outcomes: tuple[FarmerOutcome, ...] = ()
    cancelled: bool = False
    not_attempted: tuple[UUID, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    # Label for total_net_disbursed
    currency: str = "KES"

    @property
    def farmers_processed(self) -> int:
        return len(self.outcomes)

    @property
    def settled_count(self) -> int:
        return len(self.outcomes_of(FarmerOutcomeKind.SETTLED))

    @property
    def total_net_disbursed(self) -> Decimal:
        return sum(
            (o.net_amount for o in self.outcomes_of(FarmerOutcomeKind.SETTLED)),
            Decimal("0"),
        )

    def outcomes_of(self, kind: FarmerOutcomeKind) -> tuple[FarmerOutcome, ...]:
        return tuple(o for o in self.outcomes if o.kind == kind)

    def outcome_for(self, farmer_id: UUID) -> FarmerOutcome | None:
        for outcome in self.outcomes:
            if outcome.farmer_id == farmer_id:
                return outcome
        return None

    def counts(self) -> dict[str, int]:
        """Outcome tally by kind value, zero-filled."""
        tally = {kind.value: 0 for kind in FarmerOutcomeKind}
        for outcome in self.outcomes:
            tally[outcome.kind.value] += 1
        return tally


# =============================================================================
# Cancellation
# =============================================================================


class CancellationToken:
    """Cooperative cancellation flag, safe to set from another thread.

    The bulk executor checks it between farmers only; a farmer already in
    progress always finishes (commits or rolls back) first.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()
