"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


# ============================================================================
# Payroll Run schemas
# ============================================================================


class PayrollRunLockRequest(BaseModel):
    """Schema for locking a period into a new payroll run."""

    period_start: date
    period_end: date
    payout_date: date
    notes: str | None = None


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    period_start: date
    period_end: date
    payout_date: date
    status: str
    total_commission: Decimal
    total_adjustments: Decimal
    total_amount: Decimal
    transaction_count: int
    created_by: UUID
    created_at: datetime
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    paid_by: UUID | None = None
    paid_at: datetime | None = None
    voided_by: UUID | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None
    notes: str | None = None

    status_as_value = field_validator("status", mode="before")(_enum_value)


class PayrollRunListResponse(BaseModel):
    """Schema for listing payroll runs."""

    items: list[PayrollRunResponse]
    total: int


class PayrollRunHistoryItem(PayrollRunResponse):
    """A run in a beneficiary's payroll history, with actor names."""

    creator_name: str | None = None
    approver_name: str | None = None
    payer_name: str | None = None

    @classmethod
    def from_run(cls, run: Any) -> "PayrollRunHistoryItem":
        item = cls.model_validate(run)
        item.creator_name = run.creator.name if run.creator else None
        item.approver_name = run.approver.name if run.approver else None
        item.payer_name = run.payer.name if run.payer else None
        return item


class PayrollRunHistoryResponse(BaseModel):
    """Schema for a beneficiary's payroll history."""

    items: list[PayrollRunHistoryItem]
    total: int


class VoidRequest(BaseModel):
    """Schema for voiding a payroll run."""

    reason: str


# ============================================================================
# Ledger entry schemas
# ============================================================================


class LedgerEntryResponse(BaseModel):
    """Schema for a commission ledger entry inside a run."""

    model_config = ConfigDict(from_attributes=True)

    ledger_entry_id: UUID
    user_id: UUID
    client_id: UUID | None = None
    gross_amount: Decimal
    net_amount: Decimal
    commission_amount: Decimal
    entry_type: str
    split_role: str | None = None
    status: str
    payroll_run_id: UUID | None = None
    paid_at: datetime | None = None
    created_at: datetime

    status_as_value = field_validator("status", "entry_type", mode="before")(_enum_value)


class LedgerEntryListResponse(BaseModel):
    """Schema for listing a run's ledger entries."""

    items: list[LedgerEntryResponse]
    total: int


# ============================================================================
# Adjustment schemas
# ============================================================================


class AdjustmentCreate(BaseModel):
    """Schema for creating an adjustment.

    ``amount`` may be given with either sign; the stored sign follows
    ``adjustment_type``.
    """

    user_id: UUID
    amount: Decimal | str
    adjustment_type: str
    reason: str
    payroll_run_id: UUID | None = None
    notes: str | None = None
    is_visible_to_user: bool = True
    related_ledger_id: UUID | None = None


class AdjustmentResponse(BaseModel):
    """Schema for adjustment response."""

    model_config = ConfigDict(from_attributes=True)

    adjustment_id: UUID
    user_id: UUID
    amount: Decimal
    adjustment_type: str
    reason: str
    notes: str | None = None
    payroll_run_id: UUID | None = None
    related_ledger_id: UUID | None = None
    is_visible_to_user: bool
    created_by: UUID | None = None
    created_at: datetime

    type_as_value = field_validator("adjustment_type", mode="before")(_enum_value)


class AdjustmentListResponse(BaseModel):
    """Schema for listing adjustments."""

    items: list[AdjustmentResponse]
    total: int


# ============================================================================
# Export schemas
# ============================================================================


class SummaryRowResponse(BaseModel):
    """One beneficiary in a summary export."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    name: str
    email: str
    total_commission: Decimal
    total_adjustments: Decimal
    net_payout: Decimal
    deal_count: int
    period_start: date
    period_end: date
    payout_date: date


class SummaryTotalsResponse(BaseModel):
    """Footer totals of a summary export."""

    model_config = ConfigDict(from_attributes=True)

    total_commission: Decimal
    total_adjustments: Decimal
    net_payout: Decimal
    deal_count: int
    transaction_count: int


class SummaryExportResponse(BaseModel):
    """Summary export for a payroll run."""

    payroll_run_id: UUID
    rows: list[SummaryRowResponse]
    totals: SummaryTotalsResponse


class DetailRowResponse(BaseModel):
    """One entry or adjustment in a detailed export."""

    model_config = ConfigDict(from_attributes=True)

    date: date
    kind: str
    beneficiary_name: str
    beneficiary_email: str
    client_name: str
    lead_source: str
    role: str
    gross_amount: Decimal | None = None
    fee: Decimal | None = None
    basis_amount: Decimal | None = None
    basis_type: str
    rate: str
    amount: Decimal
    status: str
    reference_id: UUID


class DetailedExportResponse(BaseModel):
    """Detailed export for a payroll run."""

    payroll_run_id: UUID
    rows: list[DetailRowResponse]


# ============================================================================
# Notification schemas
# ============================================================================


class NotificationResponse(BaseModel):
    """Schema for a user notification."""

    model_config = ConfigDict(from_attributes=True)

    notification_id: UUID
    notification_type: str
    category: str
    message: str
    amount: Decimal | None = None
    payroll_run_id: UUID | None = None
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    """Schema for listing a user's notifications."""

    items: list[NotificationResponse]
    total: int


class MarkReadRequest(BaseModel):
    """Notifications to mark read; all unread ones when omitted."""

    notification_ids: list[UUID] | None = None


class MarkReadResponse(BaseModel):
    """Number of notifications marked read."""

    updated: int


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
