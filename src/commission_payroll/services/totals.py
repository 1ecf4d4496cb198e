"""Payroll run total computation.

Totals are always recomputed from the full set of entries and adjustments
and then persisted; nothing patches a run total incrementally.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from commission_payroll.models import (
    RUN_BOUND_STATUSES,
    CommissionAdjustment,
    CommissionLedgerEntry,
    PayrollRun,
)
from commission_payroll.stores import LedgerStore

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal | int | str) -> Decimal:
    """Quantize a value to cents using half-up rounding."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RunTotals:
    """Breakdown of a payroll run total."""

    total_commission: Decimal
    total_adjustments: Decimal
    transaction_count: int

    @property
    def total_amount(self) -> Decimal:
        """Commission plus signed adjustments."""
        return self.total_commission + self.total_adjustments


class TotalsCalculator:
    """Pure calculator for payroll run totals.

    Only entries still bound to a run (locked or paid) count toward the
    commission total. Every adjustment passed in counts; callers pass the
    adjustments currently attached to the run.
    """

    @staticmethod
    def breakdown(
        entries: Iterable[CommissionLedgerEntry],
        adjustments: Iterable[CommissionAdjustment],
    ) -> RunTotals:
        """Compute the total with its commission/adjustment split."""
        commission = ZERO
        count = 0
        for entry in entries:
            if entry.status in RUN_BOUND_STATUSES:
                commission += Decimal(entry.commission_amount)
                count += 1

        adjustment_total = ZERO
        for adjustment in adjustments:
            adjustment_total += Decimal(adjustment.amount)
            count += 1

        return RunTotals(
            total_commission=to_money(commission),
            total_adjustments=to_money(adjustment_total),
            transaction_count=count,
        )

    @classmethod
    def compute(
        cls,
        entries: Iterable[CommissionLedgerEntry],
        adjustments: Iterable[CommissionAdjustment],
    ) -> Decimal:
        """Compute a run's total_amount."""
        return cls.breakdown(entries, adjustments).total_amount


async def recalculate_run_totals(ledger: LedgerStore, run: PayrollRun) -> RunTotals:
    """Recompute a run's totals from storage and write them onto the run."""
    entries = await ledger.list_entries_for_run(run.payroll_run_id)
    adjustments = await ledger.list_adjustments(payroll_run_id=run.payroll_run_id)
    totals = TotalsCalculator.breakdown(entries, adjustments)

    run.total_commission = totals.total_commission
    run.total_adjustments = totals.total_adjustments
    run.total_amount = totals.total_amount
    run.transaction_count = totals.transaction_count
    await ledger.session.flush()
    return totals
