"""Payroll run and audit trail models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from commission_payroll.models.base import Base, JSONType, TimestampMixin

if TYPE_CHECKING:
    from commission_payroll.models.directory import User
    from commission_payroll.models.ledger import CommissionAdjustment, CommissionLedgerEntry


class PayrollRun(Base, TimestampMixin):
    """Approval-tracked aggregation of ledger entries and adjustments.

    The totals columns are derived: they are rewritten from a full
    recomputation after every mutation and are never edited by hand.
    """

    __tablename__ = "payroll_runs"

    payroll_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    payout_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    total_commission: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    total_adjustments: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_by: Mapped[UUID] = mapped_column(ForeignKey("users.user_id"), nullable=False)
    approved_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.user_id"), nullable=True
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.user_id"), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    voided_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.user_id"), nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    void_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'approved', 'paid', 'void')",
            name="payroll_runs_status_check",
        ),
        CheckConstraint("period_end >= period_start", name="payroll_runs_dates_check"),
        CheckConstraint(
            "approved_by IS NULL OR approved_by <> created_by",
            name="payroll_runs_two_person_check",
        ),
        CheckConstraint(
            "status <> 'void' OR void_reason IS NOT NULL",
            name="payroll_runs_void_reason_check",
        ),
    )

    # Relationships
    entries: Mapped[list[CommissionLedgerEntry]] = relationship(back_populates="payroll_run")
    adjustments: Mapped[list[CommissionAdjustment]] = relationship(
        back_populates="payroll_run"
    )
    creator: Mapped[User] = relationship(foreign_keys=[created_by])
    approver: Mapped[User | None] = relationship(foreign_keys=[approved_by])
    payer: Mapped[User | None] = relationship(foreign_keys=[paid_by])


class AuditEvent(Base, TimestampMixin):
    """Audit trail entry."""

    __tablename__ = "audit_event"

    audit_event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    actor_user_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.user_id"),
        nullable=True,
    )
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    details_json: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
