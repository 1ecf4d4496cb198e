"""Notifications telling beneficiaries about adjustments and payouts.

Rows are written in the caller's transaction, so a notification exists
exactly when the change it describes was committed.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from commission_payroll.models import (
    CommissionAdjustment,
    Notification,
    NotificationType,
    PayrollRun,
)
from commission_payroll.services.totals import to_money
from commission_payroll.stores import LedgerStore, NotificationStore

logger = logging.getLogger(__name__)

RUN_MESSAGES: dict[NotificationType, str] = {
    NotificationType.PAYROLL_APPROVED: "Payroll has been approved and is ready for payout",
    NotificationType.PAYROLL_PAID: "Your commission payout has been processed",
}


def signed_money(amount: Decimal) -> str:
    """'+$25.00' or '-$50.00'."""
    sign = "+" if amount >= 0 else "-"
    return f"{sign}${to_money(abs(amount))}"


def period_label(period_start: date, period_end: date) -> str:
    """'Jan 1 - Jan 31'."""
    return f"{period_start:%b} {period_start.day} - {period_end:%b} {period_end.day}"


class NotificationService:
    """Writes and reads beneficiary notifications."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.ledger = LedgerStore(session)
        self.notifications = NotificationStore(session)

    async def notify_adjustment(self, adjustment: CommissionAdjustment) -> Notification | None:
        """Tell the beneficiary about a visible adjustment. Hidden ones stay silent."""
        if not adjustment.is_visible_to_user:
            return None
        amount = Decimal(adjustment.amount)
        notification = Notification(
            user_id=adjustment.user_id,
            notification_type=NotificationType.ADJUSTMENT_ADDED.value,
            message=f"Adjustment: {adjustment.reason} ({signed_money(amount)})",
            amount=amount,
            payroll_run_id=adjustment.payroll_run_id,
        )
        await self.notifications.add_many([notification])
        return notification

    async def notify_run(
        self,
        run: PayrollRun,
        notification_type: NotificationType,
    ) -> list[Notification]:
        """Notify every user with an entry or adjustment on the run."""
        user_ids = await self.ledger.list_beneficiary_ids(run.payroll_run_id)
        message = (
            f"{RUN_MESSAGES[notification_type]} "
            f"({period_label(run.period_start, run.period_end)})"
        )
        notifications = await self.notifications.add_many(
            [
                Notification(
                    user_id=user_id,
                    notification_type=notification_type.value,
                    message=message,
                    payroll_run_id=run.payroll_run_id,
                )
                for user_id in user_ids
            ]
        )
        logger.debug(
            "Sent %s notification to %d users for payroll run %s",
            notification_type.value,
            len(notifications),
            run.payroll_run_id,
        )
        return notifications

    async def list_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
        limit: int | None = None,
    ) -> list[Notification]:
        return await self.notifications.list_for_user(user_id, unread_only=unread_only, limit=limit)

    async def mark_read(
        self,
        user_id: UUID,
        notification_ids: list[UUID] | None = None,
    ) -> int:
        return await self.notifications.mark_read(user_id, notification_ids)
