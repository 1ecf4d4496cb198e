"""Approval workflow for payroll runs: approve, mark paid, void."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from commission_payroll.config import Settings, get_settings
from commission_payroll.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    SelfApprovalForbiddenError,
    ValidationError,
)
from commission_payroll.models import NotificationType, PayrollRun
from commission_payroll.models.base import utcnow
from commission_payroll.services.notification_service import NotificationService
from commission_payroll.services.state_machine import (
    PayrollRunStateMachine,
    PayrollRunStatus,
)
from commission_payroll.services.totals import TotalsCalculator, recalculate_run_totals
from commission_payroll.stores import LedgerStore, PayrollRunStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TotalsCheck:
    """Stored run total compared against a fresh recomputation."""

    payroll_run_id: UUID
    stored_total: Decimal
    computed_total: Decimal

    @property
    def in_sync(self) -> bool:
        return self.stored_total == self.computed_total


class ApprovalService:
    """Service for moving payroll runs through their lifecycle.

    Operations:
    - approve: draft → approved (approver must not be the creator)
    - mark_paid: approved → paid, entries locked → paid
    - void: draft/approved → void, entries released back to pending

    Each transition is a compare-and-swap on the run's status, so two
    admins acting on the same run at once cannot both succeed; the loser
    gets InvalidTransitionError.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.ledger = LedgerStore(session)
        self.runs = PayrollRunStore(session)
        self.notifications = NotificationService(session)

    async def get_run(self, payroll_run_id: UUID) -> PayrollRun:
        run = await self.runs.get(payroll_run_id)
        if run is None:
            raise NotFoundError("PayrollRun", payroll_run_id)
        return run

    async def list_runs(
        self,
        status: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[PayrollRun]:
        return await self.runs.list_runs(status=status, limit=limit, offset=offset)

    async def list_runs_for_user(self, user_id: UUID) -> list[PayrollRun]:
        """Payroll history for one beneficiary, newest period first."""
        if await self.ledger.get_user(user_id) is None:
            raise NotFoundError("User", user_id)
        return await self.runs.list_runs_for_user(user_id)

    async def approve(self, payroll_run_id: UUID, approver: UUID) -> PayrollRun:
        """Approve a draft run. Its entries and adjustments freeze from here on."""
        run = await self._load_for_transition(payroll_run_id, PayrollRunStatus.APPROVED)
        if await self.ledger.get_user(approver) is None:
            raise NotFoundError("User", approver)

        if run.created_by == approver:
            logger.warning("Self-approval rejected for payroll run %s", payroll_run_id)
            raise SelfApprovalForbiddenError(payroll_run_id, approver)

        await self._compare_and_set(
            run,
            PayrollRunStatus.DRAFT,
            PayrollRunStatus.APPROVED,
            approved_by=approver,
            approved_at=utcnow(),
        )
        await self._record(run, "payroll_run.approved", approver)
        await self.notifications.notify_run(run, NotificationType.PAYROLL_APPROVED)

        logger.info("Payroll run %s approved by %s", payroll_run_id, approver)
        return run

    async def mark_paid(self, payroll_run_id: UUID, payer: UUID) -> PayrollRun:
        """Record that an approved run was paid out."""
        run = await self._load_for_transition(payroll_run_id, PayrollRunStatus.PAID)
        if await self.ledger.get_user(payer) is None:
            raise NotFoundError("User", payer)

        paid_at = utcnow()
        await self._compare_and_set(
            run,
            PayrollRunStatus.APPROVED,
            PayrollRunStatus.PAID,
            paid_by=payer,
            paid_at=paid_at,
        )
        paid_count = await self.ledger.mark_entries_paid(payroll_run_id, paid_at)
        await recalculate_run_totals(self.ledger, run)
        await self._record(run, "payroll_run.paid", payer, {"entries_paid": paid_count})
        await self.notifications.notify_run(run, NotificationType.PAYROLL_PAID)

        logger.info(
            "Payroll run %s marked paid by %s (%d entries, total %s)",
            payroll_run_id,
            payer,
            paid_count,
            run.total_amount,
        )
        return run

    async def void(self, payroll_run_id: UUID, voider: UUID, reason: str) -> PayrollRun:
        """Cancel a draft or approved run and release its entries.

        The run keeps its last computed total and its adjustments for audit;
        only the ledger entries go back to pending for a future lock.
        """
        reason = (reason or "").strip()
        min_length = self.settings.void_reason_min_length
        if len(reason) < min_length:
            raise ValidationError(
                f"Please provide a reason for voiding (at least {min_length} characters)",
                reason=reason,
            )

        run = await self._load_for_transition(payroll_run_id, PayrollRunStatus.VOID)
        if await self.ledger.get_user(voider) is None:
            raise NotFoundError("User", voider)

        await self._compare_and_set(
            run,
            run.status,
            PayrollRunStatus.VOID,
            void_reason=reason,
            voided_by=voider,
            voided_at=utcnow(),
        )
        released = await self.ledger.release_entries(payroll_run_id)
        await self._record(
            run,
            "payroll_run.voided",
            voider,
            {"reason": reason, "entries_released": released},
        )

        logger.info(
            "Payroll run %s voided by %s, %d entries released",
            payroll_run_id,
            voider,
            released,
        )
        return run

    async def verify_total(self, payroll_run_id: UUID) -> TotalsCheck:
        """Recompute a run's total without writing it.

        A void run's stored total is frozen, so drift is expected there.
        """
        run = await self.get_run(payroll_run_id)
        entries = await self.ledger.list_entries_for_run(payroll_run_id)
        adjustments = await self.ledger.list_adjustments(payroll_run_id=payroll_run_id)
        return TotalsCheck(
            payroll_run_id=payroll_run_id,
            stored_total=run.total_amount,
            computed_total=TotalsCalculator.compute(entries, adjustments),
        )

    async def _load_for_transition(self, payroll_run_id: UUID, to_status: str) -> PayrollRun:
        run = await self.runs.get(payroll_run_id, for_update=True)
        if run is None:
            raise NotFoundError("PayrollRun", payroll_run_id)
        try:
            PayrollRunStateMachine.validate_transition(run.status, to_status)
        except InvalidTransitionError:
            logger.warning(
                "Rejected transition %s -> %s for payroll run %s",
                run.status,
                to_status.value if isinstance(to_status, PayrollRunStatus) else to_status,
                payroll_run_id,
            )
            raise
        return run

    async def _compare_and_set(
        self,
        run: PayrollRun,
        expected: str,
        new_status: str,
        **values: Any,
    ) -> None:
        swapped = await self.runs.compare_and_set_status(
            run.payroll_run_id, expected, new_status, **values
        )
        if not swapped:
            current = await self.runs.get(run.payroll_run_id)
            found = current.status if current is not None else expected
            logger.warning(
                "Payroll run %s changed status concurrently (now %s)",
                run.payroll_run_id,
                found,
            )
            raise InvalidTransitionError(found, new_status, "status changed concurrently")

    async def _record(
        self,
        run: PayrollRun,
        action: str,
        actor: UUID,
        details: dict[str, Any] | None = None,
    ) -> None:
        await self.runs.record_event(
            entity_type="payroll_run",
            entity_id=run.payroll_run_id,
            action=action,
            actor_user_id=actor,
            details=details,
        )
