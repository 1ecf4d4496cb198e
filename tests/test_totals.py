"""Tests for the pure totals calculator."""

from decimal import Decimal
from types import SimpleNamespace

from commission_payroll.services.totals import TotalsCalculator, to_money


def entry(amount: str, status: str = "locked"):
    return SimpleNamespace(commission_amount=Decimal(amount), status=status)


def adjustment(amount: str):
    return SimpleNamespace(amount=Decimal(amount))


class TestTotalsCalculator:
    def test_sums_entries_and_signed_adjustments(self):
        total = TotalsCalculator.compute(
            [entry("150.00"), entry("250.25")],
            [adjustment("-50.00"), adjustment("10.10")],
        )
        assert total == Decimal("360.35")

    def test_breakdown_splits_commission_and_adjustments(self):
        totals = TotalsCalculator.breakdown(
            [entry("150.00"), entry("250.25", status="paid")],
            [adjustment("-50.00")],
        )
        assert totals.total_commission == Decimal("400.25")
        assert totals.total_adjustments == Decimal("-50.00")
        assert totals.total_amount == Decimal("350.25")
        assert totals.transaction_count == 3

    def test_released_entries_do_not_count(self):
        """Entries back in pending or void are no longer part of a run."""
        totals = TotalsCalculator.breakdown(
            [entry("100.00"), entry("999.99", status="pending"), entry("5.00", status="void")],
            [],
        )
        assert totals.total_commission == Decimal("100.00")
        assert totals.transaction_count == 1

    def test_empty_run_totals_zero(self):
        totals = TotalsCalculator.breakdown([], [])
        assert totals.total_amount == Decimal("0.00")
        assert totals.transaction_count == 0

    def test_result_is_quantized_to_cents(self):
        total = TotalsCalculator.compute([entry("0.1"), entry("0.2")], [])
        assert total == Decimal("0.30")
        assert total.as_tuple().exponent == -2

    def test_to_money_rounds_half_up(self):
        assert to_money(Decimal("2.345")) == Decimal("2.35")
        assert to_money(Decimal("-2.345")) == Decimal("-2.35")
        assert to_money("7") == Decimal("7.00")
