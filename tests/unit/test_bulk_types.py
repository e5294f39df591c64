"""Tests for settlement_batch.domain.types."""

import threading
from decimal import Decimal
from uuid import uuid4

from settlement_batch.domain.types import (
    BulkSettlementReport,
    CancellationToken,
    FarmerOutcome,
    FarmerOutcomeKind,
)


def _report(*outcomes, **kwargs) -> BulkSettlementReport:
    return BulkSettlementReport(
        run_id=uuid4(), period_label="All pending", outcomes=tuple(outcomes), **kwargs,
    )


class TestBulkSettlementReport:

    def test_totals_only_count_settled(self):
        report = _report(
            FarmerOutcome(uuid4(), FarmerOutcomeKind.SETTLED, uuid4(), Decimal("1125")),
            FarmerOutcome(uuid4(), FarmerOutcomeKind.SETTLED, uuid4(), Decimal("925")),
            FarmerOutcome(uuid4(), FarmerOutcomeKind.NEGATIVE_BALANCE, error_code="NEGATIVE_BALANCE"),
        )
        assert report.farmers_processed == 3
        assert report.settled_count == 2
        assert report.total_net_disbursed == Decimal("2050")

    def test_empty_report(self):
        report = _report()
        assert report.farmers_processed == 0
        assert report.total_net_disbursed == Decimal("0")
        assert not report.cancelled

    def test_outcomes_of_and_counts(self):
        conflict = FarmerOutcome(uuid4(), FarmerOutcomeKind.CONFLICT)
        report = _report(conflict, FarmerOutcome(uuid4(), FarmerOutcomeKind.NOTHING_OWED))
        assert report.outcomes_of(FarmerOutcomeKind.CONFLICT) == (conflict,)
        counts = report.counts()
        assert counts["conflict"] == 1
        assert counts["nothing_owed"] == 1
        assert counts["settled"] == 0

    def test_outcome_for(self):
        fid = uuid4()
        outcome = FarmerOutcome(fid, FarmerOutcomeKind.FAILED)
        report = _report(outcome)
        assert report.outcome_for(fid) is outcome
        assert report.outcome_for(uuid4()) is None


class TestCancellationToken:

    def test_starts_uncancelled(self):
        assert not CancellationToken().is_cancelled

    def test_cancel_from_another_thread(self):
        token = CancellationToken()
        worker = threading.Thread(target=token.cancel)
        worker.start()
        worker.join()
        assert token.is_cancelled
