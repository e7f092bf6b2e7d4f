"""Ledger entity types.

Entities are plain dataclasses owned by their ledger. Callers only ever see
deep copies, so mutating a returned object never changes ledger state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from driver_payroll.money import ZERO, sum_money


class AdvanceStatus(str, Enum):
    """Advance status values."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    DEFAULTED = "DEFAULTED"
    FORGIVEN = "FORGIVEN"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    """How a manual repayment was received."""

    PAYROLL_DEDUCTION = "PAYROLL_DEDUCTION"
    CASH = "CASH"
    CHECK = "CHECK"
    BANK_TRANSFER = "BANK_TRANSFER"
    OTHER = "OTHER"


@dataclass
class Repayment:
    """One scheduled weekly installment of an advance."""

    repayment_id: str
    week_date: date
    scheduled_amount: Decimal
    paid_amount: Decimal = ZERO
    is_paid: bool = False
    paid_date: date | None = None
    processed_by: str = ""
    note: str = ""
    # portion collected by scheduled payroll processing
    payroll_amount: Decimal = ZERO

    @property
    def amount_due(self) -> Decimal:
        if self.is_paid:
            return ZERO
        return max(self.scheduled_amount - self.paid_amount, ZERO)


@dataclass(frozen=True)
class ManualRepayment:
    """A payment received outside the weekly schedule."""

    manual_id: str
    payment_date: date
    amount: Decimal
    note: str
    processed_by: str
    payment_method: PaymentMethod = PaymentMethod.OTHER
    reference: str = ""
    applied_amount: Decimal = ZERO
    created_at: datetime | None = None

    @property
    def unapplied_amount(self) -> Decimal:
        return self.amount - self.applied_amount


@dataclass(frozen=True)
class StatusChange:
    changed_at: datetime
    from_status: AdvanceStatus
    to_status: AdvanceStatus
    reason: str
    changed_by: str


@dataclass
class Advance:
    """A cash advance and its repayment schedule."""

    advance_id: str
    employee_id: str
    employee_name: str
    amount: Decimal
    date_given: date
    first_repayment_date: date
    weeks_to_repay: int
    approved_by: str
    notes: str = ""
    status: AdvanceStatus = AdvanceStatus.ACTIVE
    last_modified: datetime | None = None
    completed_date: date | None = None
    repayments: list[Repayment] = field(default_factory=list)
    manual_repayments: list[ManualRepayment] = field(default_factory=list)
    status_history: list[StatusChange] = field(default_factory=list)

    @property
    def remaining_balance(self) -> Decimal:
        """Sum of what is still due on unpaid rows, never negative."""
        return max(sum_money(r.amount_due for r in self.repayments), ZERO)

    @property
    def total_paid(self) -> Decimal:
        return sum_money(r.paid_amount for r in self.repayments)

    @property
    def scheduled_total(self) -> Decimal:
        return sum_money(r.scheduled_amount for r in self.repayments)

    @property
    def is_fully_paid(self) -> bool:
        return bool(self.repayments) and all(r.is_paid for r in self.repayments)

    def overdue_repayments(self, today: date) -> list[Repayment]:
        """Unpaid rows whose week is strictly before today (ACTIVE only)."""
        if self.status != AdvanceStatus.ACTIVE:
            return []
        return [r for r in self.repayments if not r.is_paid and r.week_date < today]

    def is_overdue(self, today: date) -> bool:
        return bool(self.overdue_repayments(today))

    def missed_payment_count(self, today: date) -> int:
        return len(self.overdue_repayments(today))


@dataclass(frozen=True)
class EmployeeAdvanceSettings:
    """Per-employee overrides of the advance policy; None means use the default."""

    employee_id: str
    max_advance_amount: Decimal | None = None
    max_repayment_weeks: int | None = None
    max_active_advances: int | None = None
    updated_by: str = ""
    updated_at: datetime | None = None


@dataclass(frozen=True)
class RepaymentBatch:
    """Rows updated by one scheduled repayment call."""

    employee_id: str
    week_start: date
    total: Decimal
    repayments: tuple[tuple[str, Repayment], ...] = ()
    completed_advance_ids: tuple[str, ...] = ()


# --- Escrow ---------------------------------------------------------------


class EscrowEntryType(str, Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


@dataclass(frozen=True)
class EscrowEntry:
    entry_id: str
    employee_id: str
    entry_type: EscrowEntryType
    amount: Decimal
    week_start: date
    entry_date: date
    category: str = ""
    description: str = ""
    created_by: str = ""
    created_at: datetime | None = None

    @property
    def signed_amount(self) -> Decimal:
        if self.entry_type == EscrowEntryType.WITHDRAWAL:
            return -self.amount
        return self.amount


@dataclass(frozen=True)
class EscrowLine:
    """Statement line: an entry with the balance after it."""

    entry: EscrowEntry
    running_balance: Decimal


# --- Adjustments ----------------------------------------------------------


class AdjustmentCategory(str, Enum):
    DEDUCTION = "Deduction"
    REIMBURSEMENT = "Reimbursement"


class AdjustmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    REVERSED = "REVERSED"


LOAD_BONUS_PREFIX = "Load Bonus:"
FUEL_TYPE_PREFIX = "fuel"


@dataclass(frozen=True)
class Adjustment:
    """A one-off deduction or reimbursement for one employee and week.

    A reversal is itself an Adjustment with a negated amount and
    ``reverses_id`` pointing at the original.
    """

    adjustment_id: str
    employee_id: str
    week_start: date
    category: AdjustmentCategory
    adjustment_type: str
    amount: Decimal
    description: str = ""
    load_number: str | None = None
    status: AdjustmentStatus = AdjustmentStatus.ACTIVE
    reverses_id: str | None = None
    created_by: str = ""
    created_at: datetime | None = None

    @property
    def is_bonus(self) -> bool:
        return (
            self.category == AdjustmentCategory.REIMBURSEMENT
            and self.adjustment_type.startswith(LOAD_BONUS_PREFIX)
        )

    @property
    def is_fuel(self) -> bool:
        return self.category == AdjustmentCategory.DEDUCTION and (
            self.adjustment_type.strip().lower().startswith(FUEL_TYPE_PREFIX)
        )

    @property
    def is_reversal(self) -> bool:
        return self.reverses_id is not None


@dataclass(frozen=True)
class AdjustmentDraft:
    """Input for a new adjustment."""

    category: AdjustmentCategory | str
    adjustment_type: str
    amount: Decimal
    description: str = ""
    load_number: str | None = None


@dataclass(frozen=True)
class AdjustmentSummary:
    employee_id: str
    start: date
    end: date
    total_deductions: Decimal
    total_reimbursements: Decimal
    total_bonuses: Decimal
    entry_count: int

    @property
    def net(self) -> Decimal:
        return self.total_reimbursements + self.total_bonuses - self.total_deductions


# --- Recurring fees -------------------------------------------------------


RECURRING_TYPES = ("ELD", "IFTA", "TVC", "PARKING", "PRE-PASS", "OTHER")


@dataclass(frozen=True)
class RecurringFee:
    fee_id: str
    employee_id: str
    week_start: date
    fee_type: str
    amount: Decimal
    description: str = ""
    created_by: str = ""
    created_at: datetime | None = None


@dataclass(frozen=True)
class RecurringFeeDraft:
    fee_type: str
    amount: Decimal
    description: str = ""
