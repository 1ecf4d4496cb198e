"""Persistence for payroll runs and their audit trail."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from commission_payroll.models import (
    AuditEvent,
    CommissionAdjustment,
    CommissionLedgerEntry,
    PayrollRun,
)


def _status_value(status: str) -> str:
    return str(getattr(status, "value", status))


class PayrollRunStore:
    """Repository for ``payroll_runs`` and ``audit_event``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, run: PayrollRun) -> PayrollRun:
        self.session.add(run)
        await self.session.flush()
        return run

    async def get(self, payroll_run_id: UUID, for_update: bool = False) -> PayrollRun | None:
        """Load a run, always reading current column values from the database.

        With ``for_update`` the row stays locked until the transaction ends.
        """
        query = (
            select(PayrollRun)
            .where(PayrollRun.payroll_run_id == payroll_run_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_runs(
        self,
        status: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[PayrollRun]:
        """List runs newest period first."""
        query = select(PayrollRun)
        if status:
            query = query.where(PayrollRun.status == status)
        query = query.order_by(PayrollRun.period_end.desc(), PayrollRun.created_at.desc())
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_runs_for_user(self, user_id: UUID) -> list[PayrollRun]:
        """Runs holding the user's ledger entries or visible adjustments.

        Creator, approver and payer are loaded for display.
        """
        entry_runs = select(CommissionLedgerEntry.payroll_run_id).where(
            CommissionLedgerEntry.user_id == user_id,
            CommissionLedgerEntry.payroll_run_id.is_not(None),
        )
        adjustment_runs = select(CommissionAdjustment.payroll_run_id).where(
            CommissionAdjustment.user_id == user_id,
            CommissionAdjustment.is_visible_to_user.is_(True),
            CommissionAdjustment.payroll_run_id.is_not(None),
        )
        result = await self.session.execute(
            select(PayrollRun)
            .where(
                or_(
                    PayrollRun.payroll_run_id.in_(entry_runs),
                    PayrollRun.payroll_run_id.in_(adjustment_runs),
                )
            )
            .options(
                selectinload(PayrollRun.creator),
                selectinload(PayrollRun.approver),
                selectinload(PayrollRun.payer),
            )
            .order_by(PayrollRun.period_end.desc(), PayrollRun.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def compare_and_set_status(
        self,
        payroll_run_id: UUID,
        expected_status: str,
        new_status: str,
        **values: Any,
    ) -> bool:
        """Conditionally move a run from ``expected_status`` to ``new_status``.

        Returns False when the run was no longer in ``expected_status``; the
        caller must not assume any write happened in that case.
        """
        result = await self.session.execute(
            update(PayrollRun)
            .where(
                PayrollRun.payroll_run_id == payroll_run_id,
                PayrollRun.status == _status_value(expected_status),
            )
            .values(status=_status_value(new_status), **values)
        )
        return (result.rowcount or 0) == 1

    async def record_event(
        self,
        entity_type: str,
        entity_id: UUID,
        action: str,
        actor_user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """Append an audit trail entry."""
        event = AuditEvent(
            actor_user_id=actor_user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            details_json=details,
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def list_events(self, entity_id: UUID) -> list[AuditEvent]:
        result = await self.session.execute(
            select(AuditEvent)
            .where(AuditEvent.entity_id == entity_id)
            .order_by(AuditEvent.created_at)
        )
        return list(result.scalars().all())
