"""Approval workflow: approve, mark paid, void."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from commission_payroll.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    RunNotEditableError,
    SelfApprovalForbiddenError,
    ValidationError,
)
from commission_payroll.models import CommissionLedgerEntry
from commission_payroll.services.adjustment_service import AdjustmentService
from commission_payroll.services.approval_service import ApprovalService
from commission_payroll.services.locking_service import LockingService
from commission_payroll.stores import LedgerStore, PayrollRunStore

from .conftest import PAYOUT_DATE, PERIOD_END, PERIOD_START

pytestmark = pytest.mark.asyncio


@pytest.fixture
def draft_run(session: AsyncSession, settings, admins, make_user, make_entry):
    """Lock a draft run holding 150.00 and 250.25."""

    async def _build():
        creator, _ = admins
        coach = await make_user(name="Jordan Coach")
        await make_entry(coach, "150.00")
        await make_entry(coach, "250.25")
        run = await LockingService(session, settings).lock(
            PERIOD_START, PERIOD_END, PAYOUT_DATE, requested_by=creator.user_id
        )
        return coach, run

    return _build


async def entry_states(session: AsyncSession, entry_ids) -> list[tuple[str, object]]:
    result = await session.execute(
        select(CommissionLedgerEntry)
        .where(CommissionLedgerEntry.ledger_entry_id.in_(entry_ids))
        .execution_options(populate_existing=True)
    )
    return [(e.status, e.payroll_run_id) for e in result.scalars()]


class TestPayrollLifecycle:
    async def test_lock_adjust_approve_pay(
        self, session: AsyncSession, settings, admins, draft_run
    ):
        """Full lifecycle from lock to paid, with a frozen adjustment at the end."""
        creator, approver = admins
        coach, run = await draft_run()
        assert run.total_amount == Decimal("400.25")

        adjustments = AdjustmentService(session, settings)
        deduction = await adjustments.add_adjustment(
            coach.user_id, "-50.00", "deduction", "Client refund", run_id=run.payroll_run_id
        )
        assert run.total_amount == Decimal("350.25")

        approvals = ApprovalService(session, settings)
        approved = await approvals.approve(run.payroll_run_id, approver=approver.user_id)
        assert approved.status == "approved"
        assert approved.approved_by == approver.user_id
        assert approved.approved_at is not None

        paid = await approvals.mark_paid(run.payroll_run_id, payer=approver.user_id)
        assert paid.status == "paid"
        assert paid.paid_by == approver.user_id
        assert paid.total_amount == Decimal("350.25")

        entries = await LedgerStore(session).list_entries_for_run(run.payroll_run_id)
        assert len(entries) == 2
        assert all(e.status == "paid" and e.paid_at is not None for e in entries)

        with pytest.raises(RunNotEditableError):
            await adjustments.remove_adjustment(deduction.adjustment_id)

        check = await approvals.verify_total(run.payroll_run_id)
        assert check.in_sync

        events = await PayrollRunStore(session).list_events(run.payroll_run_id)
        assert [e.action for e in events] == [
            "payroll_run.locked",
            "payroll_run.approved",
            "payroll_run.paid",
        ]


class TestApprove:
    async def test_creator_cannot_approve_own_run(
        self, session: AsyncSession, settings, admins, draft_run
    ):
        creator, _ = admins
        _, run = await draft_run()

        with pytest.raises(SelfApprovalForbiddenError):
            await ApprovalService(session, settings).approve(
                run.payroll_run_id, approver=creator.user_id
            )

        current = await PayrollRunStore(session).get(run.payroll_run_id)
        assert current.status == "draft"
        assert current.approved_by is None

    async def test_approve_twice_is_invalid(
        self, session: AsyncSession, settings, admins, draft_run
    ):
        _, approver = admins
        _, run = await draft_run()
        service = ApprovalService(session, settings)
        await service.approve(run.payroll_run_id, approver=approver.user_id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.approve(run.payroll_run_id, approver=approver.user_id)

        assert exc_info.value.from_status == "approved"

    async def test_status_changed_before_load_is_invalid(
        self, session: AsyncSession, settings, admins, draft_run
    ):
        """The run was voided by a raw write the service never saw."""
        _, approver = admins
        _, run = await draft_run()
        await session.execute(
            text("UPDATE payroll_runs SET status = 'void', void_reason = 'voided elsewhere'")
        )

        with pytest.raises(InvalidTransitionError) as exc_info:
            await ApprovalService(session, settings).approve(
                run.payroll_run_id, approver=approver.user_id
            )

        assert exc_info.value.from_status == "void"

    async def test_unknown_run(self, session: AsyncSession, settings, admins):
        _, approver = admins
        with pytest.raises(NotFoundError):
            await ApprovalService(session, settings).approve(uuid4(), approver=approver.user_id)

    async def test_unknown_approver(self, session: AsyncSession, settings, draft_run):
        _, run = await draft_run()
        with pytest.raises(NotFoundError):
            await ApprovalService(session, settings).approve(run.payroll_run_id, approver=uuid4())


class TestMarkPaid:
    async def test_mark_paid_from_draft_is_invalid(
        self, session: AsyncSession, settings, admins, draft_run
    ):
        _, approver = admins
        _, run = await draft_run()

        with pytest.raises(InvalidTransitionError):
            await ApprovalService(session, settings).mark_paid(
                run.payroll_run_id, payer=approver.user_id
            )

        current = await PayrollRunStore(session).get(run.payroll_run_id)
        assert current.status == "draft"

    async def test_mark_paid_from_void_is_invalid(
        self, session: AsyncSession, settings, admins, draft_run
    ):
        creator, approver = admins
        _, run = await draft_run()
        service = ApprovalService(session, settings)
        await service.void(run.payroll_run_id, voider=creator.user_id, reason="Duplicate run created")

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.mark_paid(run.payroll_run_id, payer=approver.user_id)

        assert "already void" in str(exc_info.value)
        current = await PayrollRunStore(session).get(run.payroll_run_id)
        assert current.status == "void"


class TestVoid:
    async def test_short_reason_is_rejected(
        self, session: AsyncSession, settings, admins, draft_run
    ):
        creator, _ = admins
        _, run = await draft_run()

        with pytest.raises(ValidationError):
            await ApprovalService(session, settings).void(
                run.payroll_run_id, voider=creator.user_id, reason="too short"
            )

        current = await PayrollRunStore(session).get(run.payroll_run_id)
        assert current.status == "draft"

    async def test_void_releases_entries_and_freezes_total(
        self, session: AsyncSession, settings, admins, draft_run
    ):
        creator, _ = admins
        coach, run = await draft_run()
        await AdjustmentService(session, settings).add_adjustment(
            coach.user_id, "20", "bonus", "Spot bonus", run_id=run.payroll_run_id
        )
        entry_ids = [
            e.ledger_entry_id
            for e in await LedgerStore(session).list_entries_for_run(run.payroll_run_id)
        ]
        total_before = run.total_amount

        voided = await ApprovalService(session, settings).void(
            run.payroll_run_id, voider=creator.user_id, reason="Wrong period selected"
        )

        assert voided.status == "void"
        assert voided.void_reason == "Wrong period selected"
        assert voided.voided_by == creator.user_id
        assert voided.total_amount == total_before
        assert await entry_states(session, entry_ids) == [("pending", None), ("pending", None)]
        # Adjustments stay on the voided run for audit
        kept = await LedgerStore(session).list_adjustments(payroll_run_id=run.payroll_run_id)
        assert len(kept) == 1

    async def test_released_entries_can_be_locked_again(
        self, session: AsyncSession, settings, admins, draft_run
    ):
        creator, _ = admins
        _, run = await draft_run()
        await ApprovalService(session, settings).void(
            run.payroll_run_id, voider=creator.user_id, reason="Wrong period selected"
        )

        relocked = await LockingService(session, settings).lock(
            PERIOD_START, PERIOD_END, PAYOUT_DATE, requested_by=creator.user_id
        )

        assert relocked.payroll_run_id != run.payroll_run_id
        assert relocked.total_amount == Decimal("400.25")

    async def test_void_approved_run(self, session: AsyncSession, settings, admins, draft_run):
        creator, approver = admins
        _, run = await draft_run()
        service = ApprovalService(session, settings)
        await service.approve(run.payroll_run_id, approver=approver.user_id)

        voided = await service.void(
            run.payroll_run_id, voider=approver.user_id, reason="Payout bank rejected"
        )

        assert voided.status == "void"

    async def test_paid_run_cannot_be_voided(
        self, session: AsyncSession, settings, admins, draft_run
    ):
        _, approver = admins
        _, run = await draft_run()
        service = ApprovalService(session, settings)
        await service.approve(run.payroll_run_id, approver=approver.user_id)
        await service.mark_paid(run.payroll_run_id, payer=approver.user_id)

        with pytest.raises(InvalidTransitionError):
            await service.void(run.payroll_run_id, voider=approver.user_id, reason="Too late to cancel")


class TestQueries:
    async def test_list_runs_filters_by_status(
        self, session: AsyncSession, settings, admins, draft_run
    ):
        creator, approver = admins
        _, run = await draft_run()
        service = ApprovalService(session, settings)
        await service.approve(run.payroll_run_id, approver=approver.user_id)
        await LockingService(session, settings).lock(
            PERIOD_START, PERIOD_END, PAYOUT_DATE, requested_by=creator.user_id
        )

        approved = await service.list_runs(status="approved")
        everything = await service.list_runs()

        assert [r.payroll_run_id for r in approved] == [run.payroll_run_id]
        assert len(everything) == 2

    async def test_verify_total_detects_drift(
        self, session: AsyncSession, settings, draft_run
    ):
        _, run = await draft_run()
        await session.execute(text("UPDATE payroll_runs SET total_amount = 1"))

        check = await ApprovalService(session, settings).verify_total(run.payroll_run_id)

        assert not check.in_sync
        assert check.computed_total == Decimal("400.25")
