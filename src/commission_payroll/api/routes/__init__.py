"""API routes."""

from commission_payroll.api.routes.adjustments import router as adjustments_router
from commission_payroll.api.routes.health import router as health_router
from commission_payroll.api.routes.payroll_runs import router as payroll_runs_router
from commission_payroll.api.routes.users import router as users_router

__all__ = ["payroll_runs_router", "adjustments_router", "health_router", "users_router"]
