"""Locking: claiming pending ledger entries into draft runs."""

from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from commission_payroll.exceptions import (
    ConflictError,
    NoEligibleEntriesError,
    NotFoundError,
    ValidationError,
)
from commission_payroll.models import CommissionAdjustment
from commission_payroll.services.locking_service import LockingService, period_window
from commission_payroll.stores import LedgerStore, PayrollRunStore

from .conftest import PAYOUT_DATE, PERIOD_END, PERIOD_START, at

pytestmark = pytest.mark.asyncio


async def lock(session, settings, creator, start=PERIOD_START, end=PERIOD_END):
    return await LockingService(session, settings).lock(
        period_start=start,
        period_end=end,
        payout_date=PAYOUT_DATE,
        requested_by=creator.user_id,
    )


class TestPeriodWindow:
    async def test_window_covers_both_end_days(self):
        start, end = period_window(date(2024, 1, 1), date(2024, 1, 31))
        assert start == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert end == datetime(2024, 2, 1, tzinfo=timezone.utc)


class TestLock:
    async def test_lock_claims_pending_entries_in_range(
        self, session: AsyncSession, settings, admins, make_user, make_entry
    ):
        creator, _ = admins
        coach = await make_user()
        first = await make_entry(coach, "150.00", created_at=at(1, hour=0))
        last = await make_entry(coach, "250.25", created_at=at(31, hour=23))
        await make_entry(coach, "99.00", created_at=at(1, hour=0, month=2))

        run = await lock(session, settings, creator)

        assert run.status == "draft"
        assert run.created_by == creator.user_id
        assert run.total_amount == Decimal("400.25")
        assert run.transaction_count == 2

        entries = await LedgerStore(session).list_entries_for_run(run.payroll_run_id)
        assert {e.ledger_entry_id for e in entries} == {first.ledger_entry_id, last.ledger_entry_id}
        assert all(e.status == "locked" for e in entries)

    async def test_entries_already_in_a_run_are_skipped(
        self, session: AsyncSession, settings, admins, make_user, make_entry
    ):
        creator, _ = admins
        coach = await make_user()
        await make_entry(coach, "100.00")

        first = await lock(session, settings, creator)
        late = await make_entry(coach, "40.00", created_at=at(20))
        second = await lock(session, settings, creator)

        first_ids = {
            e.ledger_entry_id
            for e in await LedgerStore(session).list_entries_for_run(first.payroll_run_id)
        }
        second_ids = {
            e.ledger_entry_id
            for e in await LedgerStore(session).list_entries_for_run(second.payroll_run_id)
        }
        assert first_ids.isdisjoint(second_ids)
        assert second_ids == {late.ledger_entry_id}
        assert second.total_amount == Decimal("40.00")

    async def test_empty_period_creates_empty_draft_by_default(
        self, session: AsyncSession, settings, admins
    ):
        creator, _ = admins

        run = await lock(session, settings, creator)

        assert run.status == "draft"
        assert run.total_amount == Decimal("0.00")
        assert run.transaction_count == 0

    async def test_empty_period_rejected_when_empty_runs_disabled(
        self, session: AsyncSession, settings, admins
    ):
        creator, _ = admins
        strict = replace(settings, allow_empty_runs=False)

        with pytest.raises(NoEligibleEntriesError):
            await lock(session, strict, creator)

        assert await PayrollRunStore(session).list_runs() == []

    async def test_reversed_period_is_rejected(self, session: AsyncSession, settings, admins):
        creator, _ = admins
        with pytest.raises(ValidationError):
            await lock(session, settings, creator, start=date(2024, 2, 1), end=date(2024, 1, 1))

    async def test_unknown_requester_is_rejected(self, session: AsyncSession, settings):
        ghost = SimpleNamespace(user_id=uuid4())

        with pytest.raises(NotFoundError):
            await lock(session, settings, ghost)

    async def test_lost_claim_race_raises_conflict(
        self, session: AsyncSession, settings, admins, make_user, make_entry, monkeypatch
    ):
        """A selected entry claimed elsewhere makes the lock fail as a whole."""
        creator, _ = admins
        coach = await make_user()
        await make_entry(coach, "10.00")
        taken = await lock(session, settings, creator)
        stolen = (await LedgerStore(session).list_entries_for_run(taken.payroll_run_id))[0]
        fresh = await make_entry(coach, "20.00", created_at=at(16))

        async def stale_selection(self, window_start, window_end):
            return [stolen.ledger_entry_id, fresh.ledger_entry_id]

        monkeypatch.setattr(LedgerStore, "select_claimable_entry_ids", stale_selection)

        with pytest.raises(ConflictError) as exc_info:
            await lock(session, settings, creator)

        assert exc_info.value.expected == 2
        assert exc_info.value.claimed == 1
        assert exc_info.value.retryable is True

    async def test_standalone_adjustments_are_attached(
        self, session: AsyncSession, settings, admins, make_user, make_entry
    ):
        creator, _ = admins
        coach = await make_user()
        await make_entry(coach, "100.00")
        bonus = CommissionAdjustment(
            user_id=coach.user_id,
            amount=Decimal("25.00"),
            adjustment_type="bonus",
            reason="Hit monthly target",
            created_at=at(10),
        )
        later = CommissionAdjustment(
            user_id=coach.user_id,
            amount=Decimal("5.00"),
            adjustment_type="bonus",
            reason="Next month bonus",
            created_at=at(3, month=2),
        )
        session.add_all([bonus, later])
        await session.flush()

        run = await lock(session, settings, creator)

        attached = await LedgerStore(session).list_adjustments(payroll_run_id=run.payroll_run_id)
        assert [a.adjustment_id for a in attached] == [bonus.adjustment_id]
        assert run.total_amount == Decimal("125.00")
        assert run.total_adjustments == Decimal("25.00")

    async def test_standalone_adjustments_left_alone_when_disabled(
        self, session: AsyncSession, settings, admins, make_user
    ):
        creator, _ = admins
        coach = await make_user()
        session.add(
            CommissionAdjustment(
                user_id=coach.user_id,
                amount=Decimal("25.00"),
                adjustment_type="bonus",
                reason="Hit monthly target",
                created_at=at(10),
            )
        )
        await session.flush()
        manual = replace(settings, lock_attaches_standalone_adjustments=False)

        run = await lock(session, manual, creator)

        assert await LedgerStore(session).list_adjustments(payroll_run_id=run.payroll_run_id) == []
        assert run.total_amount == Decimal("0.00")

    async def test_lock_records_audit_event(
        self, session: AsyncSession, settings, admins, make_user, make_entry
    ):
        creator, _ = admins
        coach = await make_user()
        await make_entry(coach, "100.00")

        run = await lock(session, settings, creator)

        events = await PayrollRunStore(session).list_events(run.payroll_run_id)
        assert [e.action for e in events] == ["payroll_run.locked"]
        assert events[0].actor_user_id == creator.user_id
        assert events[0].details_json["entries_claimed"] == 1
