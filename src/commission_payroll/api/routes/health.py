"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from commission_payroll.api.dependencies import DbSession
from commission_payroll.models import CommissionLedgerEntry, LedgerEntryStatus, PayrollRun
from commission_payroll.services.state_machine import PayrollRunStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response with the payroll backlog."""

    status: str
    timestamp: datetime
    database: str
    pending_entries: int | None = None
    draft_runs: int | None = None


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession) -> HealthResponse:
    """Report database reachability and how much work awaits payroll admins."""
    pending_entries = draft_runs = None
    try:
        pending_entries = await db.scalar(
            select(func.count())
            .select_from(CommissionLedgerEntry)
            .where(CommissionLedgerEntry.status == LedgerEntryStatus.PENDING.value)
        )
        draft_runs = await db.scalar(
            select(func.count())
            .select_from(PayrollRun)
            .where(PayrollRun.status == PayrollRunStatus.DRAFT.value)
        )
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)

    healthy = draft_runs is not None
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        database="healthy" if healthy else "unhealthy",
        pending_entries=pending_entries,
        draft_runs=draft_runs,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check(db: DbSession, response: Response) -> dict[str, str]:
    """Ready once the payroll tables are reachable."""
    try:
        await db.execute(select(PayrollRun.payroll_run_id).limit(1))
    except SQLAlchemyError:
        logger.warning("Payroll schema not reachable", exc_info=True)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not ready"}
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
