"""Adjustment API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from commission_payroll.api.dependencies import CurrentUser, DbSession
from commission_payroll.api.schemas import (
    AdjustmentCreate,
    AdjustmentListResponse,
    AdjustmentResponse,
    ErrorResponse,
)
from commission_payroll.services.adjustment_service import AdjustmentService

router = APIRouter(prefix="/adjustments", tags=["adjustments"])


@router.post(
    "",
    response_model=AdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def create_adjustment(
    db: DbSession,
    user_id: CurrentUser,
    payload: AdjustmentCreate,
) -> AdjustmentResponse:
    """Add an adjustment, standalone or attached to a draft run."""
    adjustment = await AdjustmentService(db).add_adjustment(
        beneficiary=payload.user_id,
        amount=payload.amount,
        adjustment_type=payload.adjustment_type,
        reason=payload.reason,
        run_id=payload.payroll_run_id,
        notes=payload.notes,
        visible=payload.is_visible_to_user,
        created_by=user_id,
        related_ledger_id=payload.related_ledger_id,
    )
    return AdjustmentResponse.model_validate(adjustment)


@router.delete(
    "/{adjustment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_adjustment(
    db: DbSession,
    user_id: CurrentUser,
    adjustment_id: Annotated[UUID, Path()],
) -> None:
    """Remove an adjustment that is standalone or on a draft run."""
    await AdjustmentService(db).remove_adjustment(adjustment_id, removed_by=user_id)


@router.get("", response_model=AdjustmentListResponse)
async def list_adjustments(
    db: DbSession,
    payroll_run_id: UUID | None = None,
    user_id: UUID | None = None,
    include_hidden: Annotated[bool, Query()] = True,
) -> AdjustmentListResponse:
    """List adjustments filtered by run and/or beneficiary."""
    adjustments = await AdjustmentService(db).list_adjustments(
        run_id=payroll_run_id,
        user_id=user_id,
        include_hidden=include_hidden,
    )
    return AdjustmentListResponse(
        items=[AdjustmentResponse.model_validate(a) for a in adjustments],
        total=len(adjustments),
    )
