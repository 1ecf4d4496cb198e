"""Locking service: claims pending ledger entries into a new draft run."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from commission_payroll.config import Settings, get_settings
from commission_payroll.exceptions import (
    ClaimConflictError,
    NoEligibleEntriesError,
    NotFoundError,
    ValidationError,
)
from commission_payroll.models import PayrollRun
from commission_payroll.services.state_machine import PayrollRunStatus
from commission_payroll.services.totals import recalculate_run_totals
from commission_payroll.stores import LedgerStore, PayrollRunStore

logger = logging.getLogger(__name__)


def period_window(period_start: date, period_end: date) -> tuple[datetime, datetime]:
    """Half-open UTC datetime window covering both period dates in full."""
    window_start = datetime.combine(period_start, time.min, tzinfo=timezone.utc)
    window_end = datetime.combine(period_end + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return window_start, window_end


class LockingService:
    """Service for claiming ledger entries into a payroll run.

    A lock runs in the caller's transaction and does, in order:
    1. Row-lock every pending, unassigned entry created inside the period
    2. Create the draft run owned by the requesting user
    3. Claim the selected entries with a status-guarded update
    4. Optionally attach standalone adjustments created up to period end
    5. Compute and persist the run totals

    If the guarded update claims fewer rows than were selected, a concurrent
    lock got there first and ClaimConflictError is raised; the caller rolls back
    so nothing is partially claimed.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.ledger = LedgerStore(session)
        self.runs = PayrollRunStore(session)

    async def lock(
        self,
        period_start: date,
        period_end: date,
        payout_date: date,
        requested_by: UUID,
        notes: str | None = None,
    ) -> PayrollRun:
        """Create a draft run holding every eligible entry in the period."""
        if period_end < period_start:
            raise ValidationError(
                "period_end must not be before period_start",
                period_start=period_start,
                period_end=period_end,
            )
        if await self.ledger.get_user(requested_by) is None:
            raise NotFoundError("User", requested_by)

        window_start, window_end = period_window(period_start, period_end)
        entry_ids = await self.ledger.select_claimable_entry_ids(window_start, window_end)

        if not entry_ids and not self.settings.allow_empty_runs:
            raise NoEligibleEntriesError(
                f"No pending commission entries between {period_start} and {period_end}",
                period_start=period_start,
                period_end=period_end,
            )

        run = await self.runs.add(
            PayrollRun(
                period_start=period_start,
                period_end=period_end,
                payout_date=payout_date,
                status=PayrollRunStatus.DRAFT.value,
                created_by=requested_by,
                notes=notes,
            )
        )

        claimed = await self.ledger.claim_entries(entry_ids, run.payroll_run_id)
        if claimed != len(entry_ids):
            logger.warning(
                "Lost claim race for payroll run %s: claimed %d of %d entries",
                run.payroll_run_id,
                claimed,
                len(entry_ids),
            )
            raise ClaimConflictError(expected=len(entry_ids), claimed=claimed)

        attached = 0
        if self.settings.lock_attaches_standalone_adjustments:
            attached = await self.ledger.attach_standalone_adjustments(
                run.payroll_run_id, created_before=window_end
            )

        totals = await recalculate_run_totals(self.ledger, run)

        await self.runs.record_event(
            entity_type="payroll_run",
            entity_id=run.payroll_run_id,
            action="payroll_run.locked",
            actor_user_id=requested_by,
            details={
                "entries_claimed": claimed,
                "adjustments_attached": attached,
                "total_amount": str(totals.total_amount),
            },
        )

        logger.info(
            "Locked payroll run %s for %s..%s: %d entries, %d adjustments, total %s",
            run.payroll_run_id,
            period_start,
            period_end,
            claimed,
            attached,
            totals.total_amount,
        )
        return run
