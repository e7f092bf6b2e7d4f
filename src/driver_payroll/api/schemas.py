"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from driver_payroll.audit import AuditAction
from driver_payroll.ledgers.types import (
    AdjustmentCategory,
    AdjustmentStatus,
    AdvanceStatus,
    EscrowEntryType,
    PaymentMethod,
)


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None


# ============================================================================
# Advance schemas
# ============================================================================


class AdvanceCreate(BaseModel):
    """Schema for granting an advance."""

    employee_id: str = Field(min_length=1)
    employee_name: str
    amount: Decimal
    date_given: date
    weeks_to_repay: int
    approved_by: str = Field(min_length=1)
    notes: str = ""


class RepaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    repayment_id: str
    week_date: date
    scheduled_amount: Decimal
    paid_amount: Decimal
    is_paid: bool
    paid_date: date | None = None
    processed_by: str
    note: str


class ManualRepaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    manual_id: str
    payment_date: date
    amount: Decimal
    applied_amount: Decimal
    unapplied_amount: Decimal
    note: str
    processed_by: str
    payment_method: PaymentMethod
    reference: str


class StatusChangeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    changed_at: datetime
    from_status: AdvanceStatus
    to_status: AdvanceStatus
    reason: str
    changed_by: str


class AdvanceResponse(BaseModel):
    """Schema for advance response."""

    model_config = ConfigDict(from_attributes=True)

    advance_id: str
    employee_id: str
    employee_name: str
    amount: Decimal
    date_given: date
    first_repayment_date: date
    weeks_to_repay: int
    approved_by: str
    notes: str
    status: AdvanceStatus
    completed_date: date | None = None
    remaining_balance: Decimal
    total_paid: Decimal
    repayments: list[RepaymentResponse]
    manual_repayments: list[ManualRepaymentResponse]
    status_history: list[StatusChangeResponse]


class AdvanceListResponse(BaseModel):
    items: list[AdvanceResponse]
    total: int


class AdvanceBalanceResponse(BaseModel):
    employee_id: str
    outstanding_balance: Decimal
    total_advanced: Decimal
    total_repaid: Decimal
    active_advance_count: int


class ScheduledRepaymentRequest(BaseModel):
    """Process the installments due in a payroll week."""

    employee_id: str
    week_start: date
    processed_by: str = Field(min_length=1)
    note: str = ""
    amount: Decimal | None = None
    advance_id: str | None = None


class ProcessedRepayment(BaseModel):
    advance_id: str
    repayment: RepaymentResponse


class RepaymentBatchResponse(BaseModel):
    employee_id: str
    week_start: date
    total: Decimal
    repayments: list[ProcessedRepayment]
    completed_advance_ids: list[str]


class ManualRepaymentRequest(BaseModel):
    employee_id: str
    payment_date: date
    amount: Decimal
    processed_by: str = Field(min_length=1)
    note: str = ""
    payment_method: PaymentMethod = PaymentMethod.OTHER
    reference: str = ""


class StatusChangeRequest(BaseModel):
    status: AdvanceStatus
    reason: str = Field(min_length=1)
    changed_by: str = Field(min_length=1)


class EmployeeSettingsRequest(BaseModel):
    updated_by: str = Field(min_length=1)
    max_advance_amount: Decimal | None = None
    max_repayment_weeks: int | None = None
    max_active_advances: int | None = None


class EmployeeSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: str
    max_advance_amount: Decimal | None = None
    max_repayment_weeks: int | None = None
    max_active_advances: int | None = None
    updated_by: str
    updated_at: datetime | None = None


# ============================================================================
# Escrow schemas
# ============================================================================


class EscrowEntryRequest(BaseModel):
    employee_id: str
    week_start: date
    amount: Decimal
    created_by: str = Field(min_length=1)
    description: str = ""
    category: str | None = None


class EscrowEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entry_id: str
    employee_id: str
    entry_type: EscrowEntryType
    amount: Decimal
    week_start: date
    entry_date: date
    category: str
    description: str


class EscrowLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entry: EscrowEntryResponse
    running_balance: Decimal


class EscrowTargetRequest(BaseModel):
    target: Decimal
    set_by: str = Field(min_length=1)


class EscrowSummaryResponse(BaseModel):
    employee_id: str
    balance: Decimal
    target: Decimal
    remaining_to_target: Decimal
    is_fully_funded: bool
    has_reached_target: bool
    lines: list[EscrowLineResponse]


# ============================================================================
# Adjustment schemas
# ============================================================================


class AdjustmentInput(BaseModel):
    category: str
    adjustment_type: str
    amount: Decimal
    description: str = ""
    load_number: str | None = None


class AdjustmentBatchRequest(BaseModel):
    employee_id: str
    week_start: date
    created_by: str = Field(min_length=1)
    adjustments: list[AdjustmentInput]


class AdjustmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    adjustment_id: str
    employee_id: str
    week_start: date
    category: AdjustmentCategory
    adjustment_type: str
    amount: Decimal
    description: str
    load_number: str | None = None
    status: AdjustmentStatus
    reverses_id: str | None = None


class AdjustmentWeekResponse(BaseModel):
    employee_id: str
    week_start: date
    entries: list[AdjustmentResponse]
    totals: dict[str, Decimal]


class ReversalRequest(BaseModel):
    reason: str = Field(min_length=1)
    reversed_by: str = Field(min_length=1)


# ============================================================================
# Recurring fee schemas
# ============================================================================


class RecurringFeeInput(BaseModel):
    fee_type: str
    amount: Decimal
    description: str = ""


class RecurringFeeRequest(BaseModel):
    employee_id: str
    week_start: date
    created_by: str = Field(min_length=1)
    fees: list[RecurringFeeInput]


class RecurringFeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    fee_id: str
    employee_id: str
    week_start: date
    fee_type: str
    amount: Decimal
    description: str


class RecurringWeekResponse(BaseModel):
    employee_id: str
    week_start: date
    fees: list[RecurringFeeResponse]
    total: Decimal
    by_type: dict[str, Decimal]


# ============================================================================
# Payroll schemas
# ============================================================================


class PercentageInput(BaseModel):
    driver_percent: Decimal = Field(ge=0, le=100)
    company_percent: Decimal = Field(ge=0, le=100)
    service_fee_percent: Decimal = Field(ge=0, le=100)


class DriverInput(BaseModel):
    employee_id: str
    name: str
    truck_unit: str = ""
    percentages: PercentageInput


class LoadInput(BaseModel):
    employee_id: str
    load_number: str
    gross_amount: Decimal
    pickup: str = ""
    delivery: str = ""
    delivery_date: date | None = None


class FuelInput(BaseModel):
    employee_name: str
    amount: Decimal
    fees: Decimal = Decimal("0.00")
    transaction_date: date | None = None
    location: str = ""


class PercentageHistoryInput(BaseModel):
    employee_id: str
    effective_date: date
    end_date: date | None = None
    percentages: PercentageInput


class PayrollCalculateRequest(BaseModel):
    """Inputs for one weekly payroll run."""

    week_start: date
    week_end: date
    drivers: list[DriverInput]
    loads: list[LoadInput] = []
    fuel: list[FuelInput] = []
    percentage_history: list[PercentageHistoryInput] = []
    company_expenses: Decimal = Decimal("0.00")
    maintenance_expenses: Decimal = Decimal("0.00")


class PayrollRowResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: str
    employee_name: str
    truck_unit: str
    week_start: date
    week_end: date
    load_count: int
    gross: Decimal
    service_fee: Decimal
    gross_after_service_fee: Decimal
    company_pay: Decimal
    driver_share: Decimal
    driver_pay: Decimal
    fuel: Decimal
    gross_after_fuel: Decimal
    recurring_fees: Decimal
    advances_given: Decimal
    advance_repayments: Decimal
    escrow_deposits: Decimal
    other_deductions: Decimal
    reimbursements: Decimal
    net_pay: Decimal
    driver_percent: Decimal
    company_percent: Decimal
    service_fee_percent: Decimal
    calculation_id: UUID | None = None
    error: str | None = None
    has_payment_issues: bool


class EscrowSuggestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    amount: Decimal
    remaining_to_target: Decimal
    weekly_target: Decimal
    reason: str


class RepaymentSuggestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    amount: Decimal
    outstanding_balance: Decimal
    reason: str


class DriverPayrollResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    row: PayrollRowResponse
    escrow_suggestion: EscrowSuggestionResponse | None = None
    repayment_suggestion: RepaymentSuggestionResponse | None = None


class PayrollCalculateResponse(BaseModel):
    week_start: date
    week_end: date
    results: list[DriverPayrollResult]
    totals: dict[str, Decimal]
    company_net: Decimal
    error_count: int


# ============================================================================
# Audit schemas
# ============================================================================


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entry_id: UUID
    timestamp: datetime
    action: AuditAction
    employee_id: str
    details: str
    performed_by: str
    subject_id: str | None = None


class AuditTrailResponse(BaseModel):
    items: list[AuditEntryResponse]
    total: int
