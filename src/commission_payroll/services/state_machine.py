"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from commission_payroll.exceptions import InvalidTransitionError


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "draft"
    APPROVED = "approved"
    PAID = "paid"
    VOID = "void"


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - draft → approved
    - draft → void
    - approved → paid
    - approved → void

    paid and void are terminal.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.DRAFT: [PayrollRunStatus.APPROVED, PayrollRunStatus.VOID],
        PayrollRunStatus.APPROVED: [PayrollRunStatus.PAID, PayrollRunStatus.VOID],
        PayrollRunStatus.PAID: [],
        PayrollRunStatus.VOID: [],
    }

    # Statuses where entries and adjustments can be modified
    INPUTS_MUTABLE = {PayrollRunStatus.DRAFT}

    TERMINAL = {PayrollRunStatus.PAID, PayrollRunStatus.VOID}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            reason = None
            if from_status in cls.TERMINAL:
                reason = f"run is already {getattr(from_status, 'value', from_status)}"
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def can_modify_inputs(cls, status: str) -> bool:
        """Check if adjustments can be added to or removed from a run."""
        return status in cls.INPUTS_MUTABLE

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
