"""Summary and detailed payroll exports.

Exports return structured rows; turning them into a file download is the
caller's job. ``render_csv`` is provided for callers that want CSV text.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence
from dataclasses import asdict, dataclass, fields
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from commission_payroll.exceptions import NotFoundError
from commission_payroll.models import CommissionAdjustment, CommissionLedgerEntry, PayrollRun, User
from commission_payroll.services.totals import ZERO, to_money
from commission_payroll.stores import LedgerStore, PayrollRunStore

UNKNOWN_NAME = "Unknown"


@dataclass(frozen=True)
class SummaryRow:
    """One beneficiary's line in a summary export."""

    user_id: UUID
    name: str
    email: str
    total_commission: Decimal
    total_adjustments: Decimal
    net_payout: Decimal
    deal_count: int
    period_start: date
    period_end: date
    payout_date: date


@dataclass(frozen=True)
class SummaryTotals:
    """Footer row of a summary export."""

    total_commission: Decimal
    total_adjustments: Decimal
    net_payout: Decimal
    deal_count: int
    transaction_count: int


@dataclass(frozen=True)
class DetailRow:
    """One ledger entry or adjustment in a detailed export."""

    date: date
    kind: str
    beneficiary_name: str
    beneficiary_email: str
    client_name: str
    lead_source: str
    role: str
    gross_amount: Decimal | None
    fee: Decimal | None
    basis_amount: Decimal | None
    basis_type: str
    rate: str
    amount: Decimal
    status: str
    reference_id: UUID


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _display(user: User | None) -> tuple[str, str]:
    if user is None:
        return UNKNOWN_NAME, ""
    return user.name or UNKNOWN_NAME, user.email or ""


def _value(value: Any) -> str:
    return str(getattr(value, "value", value))


def _percent(value: Any) -> str:
    pct = Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"{pct}%"


def rate_label(basis: dict[str, Any]) -> str:
    """Human label for how a commission was rated."""
    if basis.get("split_percentage"):
        return _percent(basis["split_percentage"])
    if basis.get("rate"):
        return _percent(Decimal(str(basis["rate"])) * 100)
    if basis.get("flat_fee"):
        return "Flat"
    return "N/A"


class ExportGenerator:
    """Builds deterministic export rows for a payroll run in any status."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.ledger = LedgerStore(session)
        self.runs = PayrollRunStore(session)

    async def summary(self, payroll_run_id: UUID) -> list[SummaryRow]:
        """One row per beneficiary, sorted by display name."""
        run, entries, adjustments = await self._load(payroll_run_id)
        return self._summarize(run, entries, adjustments)

    async def summary_totals(self, payroll_run_id: UUID) -> SummaryTotals:
        """Totals across every summary row."""
        run, entries, adjustments = await self._load(payroll_run_id)
        rows = self._summarize(run, entries, adjustments)
        commission = sum((r.total_commission for r in rows), ZERO)
        adjustment_total = sum((r.total_adjustments for r in rows), ZERO)
        return SummaryTotals(
            total_commission=commission,
            total_adjustments=adjustment_total,
            net_payout=commission + adjustment_total,
            deal_count=len(entries),
            transaction_count=len(entries) + len(adjustments),
        )

    def _summarize(
        self,
        run: PayrollRun,
        entries: list[CommissionLedgerEntry],
        adjustments: list[CommissionAdjustment],
    ) -> list[SummaryRow]:
        by_user: dict[UUID, dict[str, Any]] = {}

        def bucket(user_id: UUID, user: User | None) -> dict[str, Any]:
            if user_id not in by_user:
                name, email = _display(user)
                by_user[user_id] = {
                    "name": name,
                    "email": email,
                    "commission": ZERO,
                    "adjustments": ZERO,
                    "deals": 0,
                }
            return by_user[user_id]

        for entry in entries:
            row = bucket(entry.user_id, entry.user)
            row["commission"] += Decimal(entry.commission_amount)
            row["deals"] += 1

        for adjustment in adjustments:
            row = bucket(adjustment.user_id, adjustment.user)
            row["adjustments"] += Decimal(adjustment.amount)

        rows = [
            SummaryRow(
                user_id=user_id,
                name=data["name"],
                email=data["email"],
                total_commission=to_money(data["commission"]),
                total_adjustments=to_money(data["adjustments"]),
                net_payout=to_money(data["commission"] + data["adjustments"]),
                deal_count=data["deals"],
                period_start=run.period_start,
                period_end=run.period_end,
                payout_date=run.payout_date,
            )
            for user_id, data in by_user.items()
        ]
        rows.sort(key=lambda r: (r.name.casefold(), r.name, str(r.user_id)))
        return rows

    async def detailed(self, payroll_run_id: UUID) -> list[DetailRow]:
        """One row per entry and per adjustment, by beneficiary then time."""
        _, entries, adjustments = await self._load(payroll_run_id)

        keyed: list[tuple[tuple[Any, ...], DetailRow]] = []
        for entry in entries:
            name, _ = _display(entry.user)
            created = _as_utc(entry.created_at)
            key = (name.casefold(), name, created, 0, str(entry.ledger_entry_id))
            keyed.append((key, self._entry_row(entry)))
        for adjustment in adjustments:
            name, _ = _display(adjustment.user)
            created = _as_utc(adjustment.created_at)
            key = (name.casefold(), name, created, 1, str(adjustment.adjustment_id))
            keyed.append((key, self._adjustment_row(adjustment)))

        keyed.sort(key=lambda pair: pair[0])
        return [row for _, row in keyed]

    def _entry_row(self, entry: CommissionLedgerEntry) -> DetailRow:
        name, email = _display(entry.user)
        basis = entry.calculation_basis or {}
        basis_type = str(basis.get("basis", "net"))
        basis_amount = entry.gross_amount if basis_type == "gross" else entry.net_amount
        fee = basis.get("stripe_fee")
        client = entry.client
        return DetailRow(
            date=_as_utc(entry.created_at).date(),
            kind="commission",
            beneficiary_name=name,
            beneficiary_email=email,
            client_name=client.name if client is not None else UNKNOWN_NAME,
            lead_source=(client.lead_source if client is not None else None) or "N/A",
            role=entry.split_role or "coach",
            gross_amount=to_money(entry.gross_amount),
            fee=to_money(Decimal(str(fee))) if fee is not None else ZERO,
            basis_amount=to_money(basis_amount),
            basis_type=basis_type,
            rate=rate_label(basis),
            amount=to_money(entry.commission_amount),
            status=_value(entry.status),
            reference_id=entry.ledger_entry_id,
        )

    def _adjustment_row(self, adjustment: CommissionAdjustment) -> DetailRow:
        name, email = _display(adjustment.user)
        return DetailRow(
            date=_as_utc(adjustment.created_at).date(),
            kind=f"adjustment:{_value(adjustment.adjustment_type)}",
            beneficiary_name=name,
            beneficiary_email=email,
            client_name=adjustment.reason,
            lead_source="",
            role="",
            gross_amount=None,
            fee=None,
            basis_amount=None,
            basis_type="",
            rate="",
            amount=to_money(adjustment.amount),
            status="applied",
            reference_id=adjustment.adjustment_id,
        )

    async def _load(
        self, payroll_run_id: UUID
    ) -> tuple[PayrollRun, list[CommissionLedgerEntry], list[CommissionAdjustment]]:
        run = await self.runs.get(payroll_run_id)
        if run is None:
            raise NotFoundError("PayrollRun", payroll_run_id)
        entries = await self.ledger.list_entries_for_run(payroll_run_id, with_relations=True)
        adjustments = await self.ledger.list_adjustments(
            payroll_run_id=payroll_run_id, with_user=True
        )
        return run, entries, adjustments


def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def render_csv(rows: Sequence[Any], row_type: type | None = None) -> str:
    """Render export rows (dataclasses) as CSV text with a header line."""
    row_type = row_type or (type(rows[0]) if rows else None)
    if row_type is None:
        return ""
    header = [f.name for f in fields(row_type)]

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        data = asdict(row)
        writer.writerow([_csv_value(data[name]) for name in header])
    return buffer.getvalue()
