"""Persistence for commission ledger entries and adjustments.

Pure storage: the queries here know nothing about which run statuses allow
mutation. The services decide; the store only applies guarded updates.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select, union, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from commission_payroll.models import (
    CommissionAdjustment,
    CommissionLedgerEntry,
    LedgerEntryStatus,
    User,
)


class LedgerStore:
    """Repository for ``commission_ledger`` and ``commission_adjustments``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ===== Directory lookups =====

    async def get_user(self, user_id: UUID) -> User | None:
        return await self.session.get(User, user_id)

    # ===== Ledger entries =====

    async def add_entry(self, entry: CommissionLedgerEntry) -> CommissionLedgerEntry:
        """Insert a ledger entry produced by the upstream commission calculator."""
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_entries_for_run(
        self,
        payroll_run_id: UUID,
        with_relations: bool = False,
    ) -> list[CommissionLedgerEntry]:
        """Entries currently associated with a run, oldest first."""
        query = (
            select(CommissionLedgerEntry)
            .where(CommissionLedgerEntry.payroll_run_id == payroll_run_id)
            .order_by(CommissionLedgerEntry.created_at, CommissionLedgerEntry.ledger_entry_id)
            .execution_options(populate_existing=True)
        )
        if with_relations:
            query = query.options(
                selectinload(CommissionLedgerEntry.user),
                selectinload(CommissionLedgerEntry.client),
            )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_beneficiary_ids(self, payroll_run_id: UUID) -> list[UUID]:
        """Distinct users with an entry or adjustment on a run."""
        entry_users = select(CommissionLedgerEntry.user_id).where(
            CommissionLedgerEntry.payroll_run_id == payroll_run_id
        )
        adjustment_users = select(CommissionAdjustment.user_id).where(
            CommissionAdjustment.payroll_run_id == payroll_run_id
        )
        result = await self.session.execute(union(entry_users, adjustment_users))
        return sorted(result.scalars().all(), key=str)

    async def select_claimable_entry_ids(
        self,
        window_start: datetime,
        window_end: datetime,
    ) -> list[UUID]:
        """Row-lock pending, unassigned entries with window_start <= created_at < window_end.

        Rows already locked by a concurrent claim are skipped rather than
        waited on; the caller proceeds with whatever it could lock.
        """
        result = await self.session.execute(
            select(CommissionLedgerEntry.ledger_entry_id)
            .where(
                CommissionLedgerEntry.status == LedgerEntryStatus.PENDING,
                CommissionLedgerEntry.payroll_run_id.is_(None),
                CommissionLedgerEntry.created_at >= window_start,
                CommissionLedgerEntry.created_at < window_end,
            )
            .order_by(CommissionLedgerEntry.created_at)
            .with_for_update(skip_locked=True)
        )
        return list(result.scalars().all())

    async def claim_entries(self, entry_ids: list[UUID], payroll_run_id: UUID) -> int:
        """Move pending entries into a run.

        Guarded on status so an entry claimed elsewhere in the meantime is
        not touched. Returns the number of rows actually claimed.
        """
        if not entry_ids:
            return 0
        result = await self.session.execute(
            update(CommissionLedgerEntry)
            .where(
                CommissionLedgerEntry.ledger_entry_id.in_(entry_ids),
                CommissionLedgerEntry.status == LedgerEntryStatus.PENDING,
                CommissionLedgerEntry.payroll_run_id.is_(None),
            )
            .values(status=LedgerEntryStatus.LOCKED.value, payroll_run_id=payroll_run_id)
        )
        return result.rowcount or 0

    async def release_entries(self, payroll_run_id: UUID) -> int:
        """Return every locked entry of a run to pending with no run link."""
        result = await self.session.execute(
            update(CommissionLedgerEntry)
            .where(
                CommissionLedgerEntry.payroll_run_id == payroll_run_id,
                CommissionLedgerEntry.status == LedgerEntryStatus.LOCKED,
            )
            .values(status=LedgerEntryStatus.PENDING.value, payroll_run_id=None)
        )
        return result.rowcount or 0

    async def mark_entries_paid(self, payroll_run_id: UUID, paid_at: datetime) -> int:
        """Transition a run's locked entries to paid."""
        result = await self.session.execute(
            update(CommissionLedgerEntry)
            .where(
                CommissionLedgerEntry.payroll_run_id == payroll_run_id,
                CommissionLedgerEntry.status == LedgerEntryStatus.LOCKED,
            )
            .values(status=LedgerEntryStatus.PAID.value, paid_at=paid_at)
        )
        return result.rowcount or 0

    # ===== Adjustments =====

    async def add_adjustment(self, adjustment: CommissionAdjustment) -> CommissionAdjustment:
        self.session.add(adjustment)
        await self.session.flush()
        return adjustment

    async def get_adjustment(
        self,
        adjustment_id: UUID,
        for_update: bool = False,
    ) -> CommissionAdjustment | None:
        """Load an adjustment with its current run link, optionally row-locked."""
        query = (
            select(CommissionAdjustment)
            .where(CommissionAdjustment.adjustment_id == adjustment_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def delete_adjustment(
        self,
        adjustment_id: UUID,
        payroll_run_id: UUID | None,
    ) -> int:
        """Delete an adjustment only if it is still linked to ``payroll_run_id``.

        Returns the number of rows deleted; 0 means the link moved since the
        caller read it.
        """
        if payroll_run_id is None:
            run_link = CommissionAdjustment.payroll_run_id.is_(None)
        else:
            run_link = CommissionAdjustment.payroll_run_id == payroll_run_id
        result = await self.session.execute(
            delete(CommissionAdjustment).where(
                CommissionAdjustment.adjustment_id == adjustment_id,
                run_link,
            )
        )
        return result.rowcount or 0

    async def list_adjustments(
        self,
        payroll_run_id: UUID | None = None,
        user_id: UUID | None = None,
        include_hidden: bool = True,
        with_user: bool = False,
    ) -> list[CommissionAdjustment]:
        """Adjustments filtered by run and/or beneficiary, oldest first."""
        query = select(CommissionAdjustment).execution_options(populate_existing=True)
        if payroll_run_id is not None:
            query = query.where(CommissionAdjustment.payroll_run_id == payroll_run_id)
        if user_id is not None:
            query = query.where(CommissionAdjustment.user_id == user_id)
        if not include_hidden:
            query = query.where(CommissionAdjustment.is_visible_to_user.is_(True))
        if with_user:
            query = query.options(selectinload(CommissionAdjustment.user))
        query = query.order_by(
            CommissionAdjustment.created_at, CommissionAdjustment.adjustment_id
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def attach_standalone_adjustments(
        self,
        payroll_run_id: UUID,
        created_before: datetime,
    ) -> int:
        """Attach unassigned adjustments created before a cutoff to a run."""
        result = await self.session.execute(
            update(CommissionAdjustment)
            .where(
                CommissionAdjustment.payroll_run_id.is_(None),
                CommissionAdjustment.created_at < created_before,
            )
            .values(payroll_run_id=payroll_run_id)
            # Readers always reload adjustments, so the identity map is left alone
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
