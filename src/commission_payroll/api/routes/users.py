"""Per-user endpoints: payroll history and notifications."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from commission_payroll.api.dependencies import CurrentUser, DbSession
from commission_payroll.api.schemas import (
    ErrorResponse,
    MarkReadRequest,
    MarkReadResponse,
    NotificationListResponse,
    NotificationResponse,
    PayrollRunHistoryItem,
    PayrollRunHistoryResponse,
)
from commission_payroll.services.approval_service import ApprovalService
from commission_payroll.services.notification_service import NotificationService

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "/{user_id}/payroll-runs",
    response_model=PayrollRunHistoryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_history(
    db: DbSession,
    user_id: Annotated[UUID, Path()],
) -> PayrollRunHistoryResponse:
    """Runs that paid, or will pay, this user, newest period first."""
    runs = await ApprovalService(db).list_runs_for_user(user_id)
    return PayrollRunHistoryResponse(
        items=[PayrollRunHistoryItem.from_run(run) for run in runs],
        total=len(runs),
    )


@router.get("/me/notifications", response_model=NotificationListResponse)
async def list_my_notifications(
    db: DbSession,
    user_id: CurrentUser,
    unread_only: Annotated[bool, Query()] = False,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> NotificationListResponse:
    """The acting user's notifications, newest first."""
    notifications = await NotificationService(db).list_for_user(
        user_id, unread_only=unread_only, limit=limit
    )
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in notifications],
        total=len(notifications),
    )


@router.post("/me/notifications/read", response_model=MarkReadResponse)
async def mark_my_notifications_read(
    db: DbSession,
    user_id: CurrentUser,
    payload: MarkReadRequest | None = None,
) -> MarkReadResponse:
    """Mark the given notifications read, or all unread ones."""
    ids = payload.notification_ids if payload else None
    updated = await NotificationService(db).mark_read(user_id, ids)
    return MarkReadResponse(updated=updated)
