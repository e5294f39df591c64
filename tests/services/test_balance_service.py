"""Tests for BalanceService: filtering, pricing and read-only behavior."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from settlement_kernel.domain.period import PeriodFilter
from settlement_kernel.exceptions import FarmerNotFoundError
from settlement_kernel.models.delivery import DeliveryRecord
from settlement_kernel.services.balance_service import BalanceService
from settlement_kernel.services.price_service import PriceService


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def balances(session, clock):
    return BalanceService(session, PriceService(session, clock, Decimal("45")))


class TestComputeBalance:

    def test_deliveries_and_deduction(self, balances, make_farmer, make_delivery, make_deduction):
        farmer = make_farmer()
        make_delivery(farmer, 10)
        make_delivery(farmer, 15)
        make_deduction(farmer, 200)

        balance = balances.compute_balance(farmer)

        assert balance.gross_pending == Decimal("1125")
        assert balance.deductions_outstanding == Decimal("200")
        assert balance.net_payable == Decimal("925")
        assert balance.delivery_count == 2
        assert balance.deduction_count == 1
        assert balance.period_label == "All pending"

    def test_unknown_farmer(self, balances):
        with pytest.raises(FarmerNotFoundError):
            balances.compute_balance(uuid4())

    def test_farmer_without_records(self, balances, make_farmer):
        balance = balances.compute_balance(make_farmer())
        assert balance.gross_pending == 0
        assert balance.net_payable == 0

    def test_other_farmers_records_excluded(self, balances, make_farmer, make_delivery):
        a, b = make_farmer(), make_farmer()
        make_delivery(a, 10)
        make_delivery(b, 99)
        assert balances.compute_balance(a).gross_pending == Decimal("450")

    def test_uses_current_price_and_override(
        self, balances, session, clock, make_farmer, make_delivery,
    ):
        farmer = make_farmer()
        make_delivery(farmer, 10)
        make_delivery(farmer, 10, unit_price=60)
        PriceService(session, clock).set_price(Decimal("50"), actor="admin")
        session.commit()

        balance = balances.compute_balance(farmer)
        assert balance.unit_price == Decimal("50")
        assert balance.gross_pending == Decimal("1100")

    def test_ordered_by_occurred_at(self, balances, make_farmer, make_delivery):
        farmer = make_farmer()
        late = make_delivery(farmer, 1, occurred_at=utc(2025, 1, 20))
        early = make_delivery(farmer, 2, occurred_at=utc(2025, 1, 5))
        assert balances.compute_balance(farmer).delivery_ids == (early, late)

    def test_has_no_side_effects(self, balances, make_farmer, make_delivery, load):
        farmer = make_farmer()
        delivery_id = make_delivery(farmer, 10)
        balances.compute_balance(farmer)
        balances.compute_balance(farmer)

        record = load(DeliveryRecord, delivery_id)
        assert record.is_pending
        assert record.settled_amount is None


class TestPeriodFiltering:

    def test_deliveries_restricted_to_window(self, balances, make_farmer, make_delivery):
        farmer = make_farmer()
        make_delivery(farmer, 10, occurred_at=utc(2025, 1, 31, 23, 59))
        make_delivery(farmer, 20, occurred_at=utc(2025, 2, 1))
        make_delivery(farmer, 30, occurred_at=utc(2024, 12, 31))

        balance = balances.compute_balance(farmer, PeriodFilter.for_month(2025, 1))
        assert balance.gross_pending == Decimal("450")
        assert balance.period_label == "January 2025"

    def test_old_deduction_collectible_later_one_not(
        self, balances, make_farmer, make_delivery, make_deduction,
    ):
        farmer = make_farmer()
        make_delivery(farmer, 10, occurred_at=utc(2025, 2, 10))
        make_deduction(farmer, 100, occurred_at=utc(2024, 11, 1))
        make_deduction(farmer, 50, occurred_at=utc(2025, 3, 2))

        balance = balances.compute_balance(farmer, PeriodFilter.for_month(2025, 2))
        assert balance.deductions_outstanding == Decimal("100")
        assert balance.net_payable == Decimal("350")

    def test_unbounded_collects_every_deduction(
        self, balances, make_farmer, make_delivery, make_deduction,
    ):
        farmer = make_farmer()
        make_delivery(farmer, 10)
        make_deduction(farmer, 100, occurred_at=utc(2030, 1, 1))
        assert balances.compute_balance(farmer).deductions_outstanding == Decimal("100")
