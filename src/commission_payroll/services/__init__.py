"""Commission payroll services."""

from commission_payroll.exceptions import InvalidTransitionError
from commission_payroll.services.adjustment_service import AdjustmentService
from commission_payroll.services.approval_service import ApprovalService, TotalsCheck
from commission_payroll.services.export_service import ExportGenerator, render_csv
from commission_payroll.services.locking_service import LockingService
from commission_payroll.services.notification_service import NotificationService
from commission_payroll.services.state_machine import PayrollRunStateMachine, PayrollRunStatus
from commission_payroll.services.totals import RunTotals, TotalsCalculator

__all__ = [
    "PayrollRunStateMachine",
    "PayrollRunStatus",
    "InvalidTransitionError",
    "LockingService",
    "AdjustmentService",
    "ApprovalService",
    "NotificationService",
    "TotalsCheck",
    "ExportGenerator",
    "render_csv",
    "TotalsCalculator",
    "RunTotals",
]
