"""ORM models for the commission payroll engine."""

from commission_payroll.models.base import Base, TimestampMixin
from commission_payroll.models.directory import Client, User
from commission_payroll.models.ledger import (
    RUN_BOUND_STATUSES,
    AdjustmentType,
    CommissionAdjustment,
    CommissionLedgerEntry,
    LedgerEntryStatus,
    LedgerEntryType,
)
from commission_payroll.models.notification import Notification, NotificationType
from commission_payroll.models.payroll import AuditEvent, PayrollRun

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "Client",
    "AdjustmentType",
    "CommissionAdjustment",
    "CommissionLedgerEntry",
    "LedgerEntryStatus",
    "LedgerEntryType",
    "RUN_BOUND_STATUSES",
    "PayrollRun",
    "AuditEvent",
    "Notification",
    "NotificationType",
]
