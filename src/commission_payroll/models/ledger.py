"""Commission ledger entry and manual adjustment models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from commission_payroll.models.base import Base, JSONType, TimestampMixin

if TYPE_CHECKING:
    from commission_payroll.models.directory import Client, User
    from commission_payroll.models.payroll import PayrollRun


class LedgerEntryStatus(str, Enum):
    """Ledger entry status values."""

    PENDING = "pending"
    LOCKED = "locked"
    PAID = "paid"
    VOID = "void"


class LedgerEntryType(str, Enum):
    """How a ledger entry was produced upstream."""

    COMMISSION = "commission"
    SPLIT = "split"
    MANUAL = "manual"
    IMPORT = "import"


class AdjustmentType(str, Enum):
    """Manual adjustment kinds."""

    BONUS = "bonus"
    DEDUCTION = "deduction"
    CORRECTION = "correction"
    CHARGEBACK = "chargeback"
    REFERRAL = "referral"


# Statuses that tie an entry to a payroll run
RUN_BOUND_STATUSES = frozenset({LedgerEntryStatus.LOCKED, LedgerEntryStatus.PAID})


class CommissionLedgerEntry(Base):
    """One earned-commission fact.

    ``commission_amount`` never changes after insert; only ``status``,
    ``payroll_run_id`` and ``paid_at`` move as the owning run progresses.
    """

    __tablename__ = "commission_ledger"

    ledger_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    client_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("clients.client_id"),
        nullable=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.user_id"),
        nullable=False,
    )
    gross_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    calculation_basis: Mapped[dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )
    entry_type: Mapped[str] = mapped_column(
        String, nullable=False, default=LedgerEntryType.COMMISSION.value
    )
    split_role: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=LedgerEntryStatus.PENDING.value
    )
    payroll_run_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_runs.payroll_run_id"),
        nullable=True,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Fact time supplied by the upstream calculator, not the insert time
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'locked', 'paid', 'void')",
            name="commission_ledger_status_check",
        ),
        CheckConstraint(
            "entry_type IN ('commission', 'split', 'manual', 'import')",
            name="commission_ledger_entry_type_check",
        ),
        CheckConstraint(
            "(payroll_run_id IS NULL AND status IN ('pending', 'void')) OR "
            "(payroll_run_id IS NOT NULL AND status IN ('locked', 'paid'))",
            name="commission_ledger_run_link_check",
        ),
        Index("ix_commission_ledger_status_created", "status", "created_at"),
        Index("ix_commission_ledger_run", "payroll_run_id"),
    )

    # Relationships
    user: Mapped[User] = relationship()
    client: Mapped[Client | None] = relationship()
    payroll_run: Mapped[PayrollRun | None] = relationship(back_populates="entries")


class CommissionAdjustment(Base, TimestampMixin):
    """A manual signed correction to a user's payroll total."""

    __tablename__ = "commission_adjustments"

    adjustment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.user_id"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    adjustment_type: Mapped[str] = mapped_column(String, nullable=False)
    reason: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    payroll_run_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_runs.payroll_run_id"),
        nullable=True,
    )
    related_ledger_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("commission_ledger.ledger_entry_id"),
        nullable=True,
    )
    is_visible_to_user: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.user_id"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            "adjustment_type IN ('bonus', 'deduction', 'correction', 'chargeback', 'referral')",
            name="commission_adjustments_type_check",
        ),
        CheckConstraint("amount <> 0", name="commission_adjustments_nonzero"),
        Index("ix_commission_adjustments_run", "payroll_run_id"),
    )

    # Relationships
    user: Mapped[User] = relationship(foreign_keys=[user_id])
    payroll_run: Mapped[PayrollRun | None] = relationship(back_populates="adjustments")
