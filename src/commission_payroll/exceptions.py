"""Typed errors raised by the payroll services.

Every error carries a stable ``code`` so callers (the HTTP layer, scripts)
can branch on the type instead of parsing messages. Only ``ConflictError``
is retryable; all others describe a request that will fail again unchanged.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class PayrollError(Exception):
    """Base class for payroll engine errors."""

    code = "PAYROLL_ERROR"
    retryable = False

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {
            "detail": self.message,
            "code": self.code,
            "context": {k: str(v) for k, v in self.context.items()} or None,
        }


class ValidationError(PayrollError):
    """Bad input: non-numeric amount, empty or short reason, bad date range."""

    code = "VALIDATION_ERROR"


class NotFoundError(ValidationError):
    """Referenced run, adjustment or user does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: UUID | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} not found",
            entity_type=entity_type,
            entity_id=entity_id,
        )


class RunNotEditableError(PayrollError):
    """Mutation attempted against a payroll run that is not in draft."""

    code = "RUN_NOT_EDITABLE"

    def __init__(self, run_id: UUID, status: str):
        self.run_id = run_id
        self.status = status = str(getattr(status, "value", status))
        super().__init__(
            f"Payroll run {run_id} is {status}; only draft runs can be changed",
            run_id=run_id,
            status=status,
        )


class SelfApprovalForbiddenError(PayrollError):
    """The approver created the run (two-person rule)."""

    code = "SELF_APPROVAL_FORBIDDEN"

    def __init__(self, run_id: UUID, user_id: UUID):
        self.run_id = run_id
        self.user_id = user_id
        super().__init__(
            "You cannot approve a payroll run you created",
            run_id=run_id,
            user_id=user_id,
        )


class InvalidTransitionError(PayrollError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = str(getattr(from_status, "value", from_status))
        self.to_status = str(getattr(to_status, "value", to_status))
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, from_status=self.from_status, to_status=self.to_status)


class ConflictError(PayrollError):
    """A concurrent transaction changed rows this one was about to write."""

    code = "CONFLICT"
    retryable = True


class ClaimConflictError(ConflictError):
    """A concurrent transaction claimed the same ledger entries first."""

    def __init__(self, expected: int, claimed: int):
        self.expected = expected
        self.claimed = claimed
        super().__init__(
            f"Claimed {claimed} of {expected} ledger entries; "
            "another payroll run took the rest. Retry the lock.",
            expected=expected,
            claimed=claimed,
        )


class NoEligibleEntriesError(PayrollError):
    """Locking matched no pending ledger entries and empty runs are disabled."""

    code = "NO_ELIGIBLE_ENTRIES"
