"""Advance state machine with transition validation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from driver_payroll.ledgers.types import AdvanceStatus

if TYPE_CHECKING:
    from driver_payroll.ledgers.types import Advance


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class AdvanceStateMachine:
    """State machine for advance status transitions.

    Allowed transitions:
    - ACTIVE → COMPLETED (every scheduled repayment paid)
    - ACTIVE → DEFAULTED
    - ACTIVE → FORGIVEN
    - ACTIVE → CANCELLED (nothing repaid yet)

    Every other status is terminal.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        AdvanceStatus.ACTIVE: [
            AdvanceStatus.COMPLETED,
            AdvanceStatus.DEFAULTED,
            AdvanceStatus.FORGIVEN,
            AdvanceStatus.CANCELLED,
        ],
        AdvanceStatus.COMPLETED: [],
        AdvanceStatus.DEFAULTED: [],
        AdvanceStatus.FORGIVEN: [],
        AdvanceStatus.CANCELLED: [],
    }

    # Statuses that accept repayments
    REPAYMENT_ALLOWED = {AdvanceStatus.ACTIVE}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(status, [])

    @classmethod
    def accepts_repayments(cls, status: str) -> bool:
        return status in cls.REPAYMENT_ALLOWED

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def validate_advance_for_transition(
        cls, advance: Advance, to_status: str
    ) -> list[str]:
        """Validate an advance for a specific transition, returning any errors.

        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []
        from_status = advance.status

        if not cls.can_transition(from_status, to_status):
            errors.append(
                f"Cannot transition from '{_value(from_status)}' to '{_value(to_status)}'"
            )
            return errors

        if to_status == AdvanceStatus.COMPLETED:
            unpaid = [r for r in advance.repayments if not r.is_paid]
            if unpaid or not advance.repayments:
                errors.append(f"{len(unpaid)} scheduled repayment(s) still unpaid")

        elif to_status == AdvanceStatus.CANCELLED:
            if advance.total_paid > 0 or advance.manual_repayments:
                errors.append(
                    f"Cannot cancel an advance with {advance.total_paid} already repaid"
                )

        return errors


def _value(status: str) -> str:
    return status.value if isinstance(status, AdvanceStatus) else str(status)
