"""Persistence for user notifications."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from commission_payroll.models import Notification


class NotificationStore:
    """Repository for ``notifications``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_many(self, notifications: list[Notification]) -> list[Notification]:
        if not notifications:
            return []
        self.session.add_all(notifications)
        await self.session.flush()
        return notifications

    async def list_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
        limit: int | None = None,
    ) -> list[Notification]:
        """A user's notifications, newest first."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc(), Notification.notification_id)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def mark_read(
        self,
        user_id: UUID,
        notification_ids: list[UUID] | None = None,
    ) -> int:
        """Mark a user's notifications read; all unread ones when no ids are given."""
        query = update(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
        if notification_ids is not None:
            query = query.where(Notification.notification_id.in_(notification_ids))
        result = await self.session.execute(query.values(is_read=True))
        return result.rowcount or 0
