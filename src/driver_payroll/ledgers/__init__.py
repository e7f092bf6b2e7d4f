"""Financial ledgers: advances, escrow, adjustments and recurring fees."""

from driver_payroll.ledgers.adjustments import AdjustmentLedger
from driver_payroll.ledgers.advances import AdvanceLedger
from driver_payroll.ledgers.escrow import EscrowLedger
from driver_payroll.ledgers.recurring import RecurringFeeLedger
from driver_payroll.ledgers.state_machine import AdvanceStateMachine, InvalidTransitionError
from driver_payroll.ledgers.types import (
    Adjustment,
    AdjustmentCategory,
    AdjustmentDraft,
    Advance,
    AdvanceStatus,
    EscrowEntry,
    ManualRepayment,
    PaymentMethod,
    RecurringFee,
    RecurringFeeDraft,
    Repayment,
    StatusChange,
)

__all__ = [
    "Adjustment",
    "AdjustmentCategory",
    "AdjustmentDraft",
    "AdjustmentLedger",
    "Advance",
    "AdvanceLedger",
    "AdvanceStateMachine",
    "AdvanceStatus",
    "EscrowEntry",
    "EscrowLedger",
    "InvalidTransitionError",
    "ManualRepayment",
    "PaymentMethod",
    "RecurringFee",
    "RecurringFeeDraft",
    "RecurringFeeLedger",
    "Repayment",
    "StatusChange",
]
