"""Repositories over the payroll tables."""

from commission_payroll.stores.ledger_store import LedgerStore
from commission_payroll.stores.notification_store import NotificationStore
from commission_payroll.stores.payroll_run_store import PayrollRunStore

__all__ = ["LedgerStore", "NotificationStore", "PayrollRunStore"]
