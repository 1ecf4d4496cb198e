"""Manual commission adjustments (bonus, deduction, correction, chargeback, referral)."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from commission_payroll.config import Settings, get_settings
from commission_payroll.exceptions import (
    ConflictError,
    NotFoundError,
    RunNotEditableError,
    ValidationError,
)
from commission_payroll.models import AdjustmentType, CommissionAdjustment, PayrollRun
from commission_payroll.services.notification_service import NotificationService
from commission_payroll.services.state_machine import PayrollRunStateMachine
from commission_payroll.services.totals import recalculate_run_totals, to_money
from commission_payroll.stores import LedgerStore, PayrollRunStore

logger = logging.getLogger(__name__)

# Stored sign per adjustment type; callers' signs are never trusted
ADJUSTMENT_SIGNS: dict[AdjustmentType, int] = {
    AdjustmentType.BONUS: 1,
    AdjustmentType.DEDUCTION: -1,
    AdjustmentType.CORRECTION: 1,
    AdjustmentType.CHARGEBACK: -1,
    AdjustmentType.REFERRAL: 1,
}

# Names used by the dashboard that map onto stored types
ADJUSTMENT_TYPE_ALIASES: dict[str, AdjustmentType] = {
    "clawback": AdjustmentType.DEDUCTION,
}


def resolve_adjustment_type(value: str | AdjustmentType) -> AdjustmentType:
    """Resolve a type name or alias to an AdjustmentType."""
    if isinstance(value, AdjustmentType):
        return value
    key = str(value).strip().lower()
    if key in ADJUSTMENT_TYPE_ALIASES:
        return ADJUSTMENT_TYPE_ALIASES[key]
    try:
        return AdjustmentType(key)
    except ValueError:
        raise ValidationError(
            f"Unknown adjustment type '{value}'",
            adjustment_type=value,
        ) from None


def normalize_amount(amount: Decimal | int | float | str, adjustment_type: AdjustmentType) -> Decimal:
    """Parse an amount, round to cents and apply the type's sign."""
    try:
        parsed = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Amount '{amount}' is not a number", amount=amount) from None
    if not parsed.is_finite():
        raise ValidationError(f"Amount '{amount}' is not a number", amount=amount)

    magnitude = to_money(abs(parsed))
    if magnitude == 0:
        raise ValidationError("Amount must be non-zero", amount=amount)
    return magnitude * ADJUSTMENT_SIGNS[adjustment_type]


class AdjustmentService:
    """Adds and removes adjustments, keeping run totals in step.

    Adjustments may only change while they are standalone or attached to a
    draft run. The run row is locked for the duration so an approval cannot
    slip in between the status check and the total recomputation.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.ledger = LedgerStore(session)
        self.runs = PayrollRunStore(session)
        self.notifications = NotificationService(session)

    async def add_adjustment(
        self,
        beneficiary: UUID,
        amount: Decimal | int | float | str,
        adjustment_type: str | AdjustmentType,
        reason: str,
        *,
        run_id: UUID | None = None,
        notes: str | None = None,
        visible: bool = True,
        created_by: UUID | None = None,
        related_ledger_id: UUID | None = None,
    ) -> CommissionAdjustment:
        """Create an adjustment, optionally attached to a draft run."""
        resolved_type = resolve_adjustment_type(adjustment_type)
        signed_amount = normalize_amount(amount, resolved_type)

        reason = (reason or "").strip()
        min_length = self.settings.adjustment_reason_min_length
        if len(reason) < min_length:
            raise ValidationError(
                f"Please provide a reason (at least {min_length} characters)",
                reason=reason,
            )

        if await self.ledger.get_user(beneficiary) is None:
            raise NotFoundError("User", beneficiary)

        run = None
        if run_id is not None:
            run = await self._get_editable_run(run_id)

        adjustment = await self.ledger.add_adjustment(
            CommissionAdjustment(
                user_id=beneficiary,
                amount=signed_amount,
                adjustment_type=resolved_type.value,
                reason=reason,
                notes=notes,
                payroll_run_id=run_id,
                related_ledger_id=related_ledger_id,
                is_visible_to_user=visible,
                created_by=created_by,
            )
        )

        if run is not None:
            await recalculate_run_totals(self.ledger, run)

        await self.runs.record_event(
            entity_type="commission_adjustment",
            entity_id=adjustment.adjustment_id,
            action="adjustment.added",
            actor_user_id=created_by,
            details={
                "payroll_run_id": str(run_id) if run_id else None,
                "amount": str(signed_amount),
                "adjustment_type": resolved_type.value,
            },
        )
        await self.notifications.notify_adjustment(adjustment)

        logger.info(
            "Added %s adjustment %s of %s for user %s (run %s)",
            resolved_type.value,
            adjustment.adjustment_id,
            signed_amount,
            beneficiary,
            run_id,
        )
        return adjustment

    async def remove_adjustment(
        self,
        adjustment_id: UUID,
        removed_by: UUID | None = None,
    ) -> None:
        """Delete an adjustment that is standalone or on a draft run.

        The delete is guarded on the run link read here. If a concurrent
        lock attached the adjustment in the meantime, ConflictError is raised.
        """
        adjustment = await self.ledger.get_adjustment(adjustment_id, for_update=True)
        if adjustment is None:
            raise NotFoundError("Adjustment", adjustment_id)

        run_id = adjustment.payroll_run_id
        run = None
        if run_id is not None:
            run = await self._get_editable_run(run_id)

        details = {
            "payroll_run_id": str(run_id) if run_id else None,
            "amount": str(adjustment.amount),
            "adjustment_type": resolve_adjustment_type(adjustment.adjustment_type).value,
        }
        deleted = await self.ledger.delete_adjustment(adjustment_id, run_id)
        if not deleted:
            logger.warning(
                "Adjustment %s no longer linked to run %s, not removed",
                adjustment_id,
                run_id,
            )
            raise ConflictError(
                f"Adjustment {adjustment_id} changed while being removed. Retry.",
                adjustment_id=adjustment_id,
                payroll_run_id=run_id,
            )

        if run is not None:
            await recalculate_run_totals(self.ledger, run)

        await self.runs.record_event(
            entity_type="commission_adjustment",
            entity_id=adjustment_id,
            action="adjustment.removed",
            actor_user_id=removed_by,
            details=details,
        )
        logger.info("Removed adjustment %s (run %s)", adjustment_id, details["payroll_run_id"])

    async def list_adjustments(
        self,
        run_id: UUID | None = None,
        user_id: UUID | None = None,
        include_hidden: bool = True,
    ) -> list[CommissionAdjustment]:
        return await self.ledger.list_adjustments(
            payroll_run_id=run_id,
            user_id=user_id,
            include_hidden=include_hidden,
        )

    async def _get_editable_run(self, run_id: UUID) -> PayrollRun:
        run = await self.runs.get(run_id, for_update=True)
        if run is None:
            raise NotFoundError("PayrollRun", run_id)
        if not PayrollRunStateMachine.can_modify_inputs(run.status):
            logger.warning("Rejected adjustment change on %s run %s", run.status, run_id)
            raise RunNotEditableError(run_id, run.status)
        return run
