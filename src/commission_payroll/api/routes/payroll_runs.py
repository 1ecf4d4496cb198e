"""Payroll run API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status
from fastapi.responses import PlainTextResponse

from commission_payroll.api.dependencies import CurrentUser, DbSession
from commission_payroll.api.schemas import (
    DetailedExportResponse,
    DetailRowResponse,
    ErrorResponse,
    LedgerEntryListResponse,
    LedgerEntryResponse,
    PayrollRunListResponse,
    PayrollRunLockRequest,
    PayrollRunResponse,
    SummaryExportResponse,
    SummaryRowResponse,
    SummaryTotalsResponse,
    VoidRequest,
)
from commission_payroll.services.approval_service import ApprovalService
from commission_payroll.services.export_service import DetailRow, ExportGenerator, SummaryRow, render_csv
from commission_payroll.services.locking_service import LockingService
from commission_payroll.stores import LedgerStore

router = APIRouter(prefix="/payroll-runs", tags=["payroll-runs"])

ExportFormat = Annotated[str, Query(alias="format", pattern="^(json|csv)$")]


def _csv_response(body: str, filename: str) -> PlainTextResponse:
    return PlainTextResponse(
        body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ============================================================================
# Locking and lookup
# ============================================================================


@router.post(
    "",
    response_model=PayrollRunResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def lock_payroll_run(
    db: DbSession,
    user_id: CurrentUser,
    payload: PayrollRunLockRequest,
) -> PayrollRunResponse:
    """Lock every pending entry in a period into a new draft run."""
    run = await LockingService(db).lock(
        period_start=payload.period_start,
        period_end=payload.period_end,
        payout_date=payload.payout_date,
        requested_by=user_id,
        notes=payload.notes,
    )
    return PayrollRunResponse.model_validate(run)


@router.get("", response_model=PayrollRunListResponse)
async def list_payroll_runs(
    db: DbSession,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> PayrollRunListResponse:
    """List payroll runs, newest period first."""
    runs = await ApprovalService(db).list_runs(status=status_filter, limit=limit, offset=offset)
    return PayrollRunListResponse(
        items=[PayrollRunResponse.model_validate(run) for run in runs],
        total=len(runs),
    )


@router.get(
    "/{payroll_run_id}",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(
    db: DbSession,
    payroll_run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Get a specific payroll run by ID."""
    run = await ApprovalService(db).get_run(payroll_run_id)
    return PayrollRunResponse.model_validate(run)


@router.get(
    "/{payroll_run_id}/entries",
    response_model=LedgerEntryListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_payroll_run_entries(
    db: DbSession,
    payroll_run_id: Annotated[UUID, Path()],
) -> LedgerEntryListResponse:
    """List the ledger entries currently held by a run."""
    await ApprovalService(db).get_run(payroll_run_id)
    entries = await LedgerStore(db).list_entries_for_run(payroll_run_id)
    return LedgerEntryListResponse(
        items=[LedgerEntryResponse.model_validate(entry) for entry in entries],
        total=len(entries),
    )


# ============================================================================
# Payroll Run State Transitions
# ============================================================================


@router.post(
    "/{payroll_run_id}/approve",
    response_model=PayrollRunResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def approve_payroll_run(
    db: DbSession,
    user_id: CurrentUser,
    payroll_run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Approve a draft run. The approver must not be its creator."""
    run = await ApprovalService(db).approve(payroll_run_id, approver=user_id)
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/{payroll_run_id}/pay",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def pay_payroll_run(
    db: DbSession,
    user_id: CurrentUser,
    payroll_run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Mark an approved run as paid."""
    run = await ApprovalService(db).mark_paid(payroll_run_id, payer=user_id)
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/{payroll_run_id}/void",
    response_model=PayrollRunResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def void_payroll_run(
    db: DbSession,
    user_id: CurrentUser,
    payroll_run_id: Annotated[UUID, Path()],
    payload: VoidRequest,
) -> PayrollRunResponse:
    """Void a draft or approved run and release its entries."""
    run = await ApprovalService(db).void(payroll_run_id, voider=user_id, reason=payload.reason)
    return PayrollRunResponse.model_validate(run)


# ============================================================================
# Exports
# ============================================================================


@router.get(
    "/{payroll_run_id}/export/summary",
    response_model=SummaryExportResponse,
    responses={404: {"model": ErrorResponse}},
)
async def export_summary(
    db: DbSession,
    payroll_run_id: Annotated[UUID, Path()],
    export_format: ExportFormat = "json",
) -> Response | SummaryExportResponse:
    """Per-beneficiary totals for a run."""
    exporter = ExportGenerator(db)
    rows = await exporter.summary(payroll_run_id)
    if export_format == "csv":
        return _csv_response(
            render_csv(rows, SummaryRow), f"payroll-summary-{payroll_run_id}.csv"
        )

    totals = await exporter.summary_totals(payroll_run_id)
    return SummaryExportResponse(
        payroll_run_id=payroll_run_id,
        rows=[SummaryRowResponse.model_validate(row) for row in rows],
        totals=SummaryTotalsResponse.model_validate(totals),
    )


@router.get(
    "/{payroll_run_id}/export/detailed",
    response_model=DetailedExportResponse,
    responses={404: {"model": ErrorResponse}},
)
async def export_detailed(
    db: DbSession,
    payroll_run_id: Annotated[UUID, Path()],
    export_format: ExportFormat = "json",
) -> Response | DetailedExportResponse:
    """Every entry and adjustment in a run, grouped by beneficiary."""
    rows = await ExportGenerator(db).detailed(payroll_run_id)
    if export_format == "csv":
        return _csv_response(
            render_csv(rows, DetailRow), f"payroll-detailed-{payroll_run_id}.csv"
        )

    return DetailedExportResponse(
        payroll_run_id=payroll_run_id,
        rows=[DetailRowResponse.model_validate(row) for row in rows],
    )
