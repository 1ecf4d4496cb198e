"""In-app notifications for commission beneficiaries."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from commission_payroll.models.base import Base, TimestampMixin


class NotificationType(str, Enum):
    """Notification kinds written by the payroll workflow."""

    ADJUSTMENT_ADDED = "adjustment_added"
    PAYROLL_APPROVED = "payroll_approved"
    PAYROLL_PAID = "payroll_paid"


class Notification(Base, TimestampMixin):
    """A message shown to one user about their commissions."""

    __tablename__ = "notifications"

    notification_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.user_id"), nullable=False)
    notification_type: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False, default="commission")
    message: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    payroll_run_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_runs.payroll_run_id"),
        nullable=True,
    )
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint(
            "notification_type IN ('adjustment_added', 'payroll_approved', 'payroll_paid')",
            name="notifications_type_check",
        ),
        Index("ix_notifications_user_read", "user_id", "is_read"),
    )
