"""Type definitions for the weekly payroll calculation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from driver_payroll.money import HUNDRED, ZERO


@dataclass(frozen=True)
class Load:
    """A completed load as delivered by the load source."""

    load_number: str
    gross_amount: Decimal
    pickup: str = ""
    delivery: str = ""
    delivery_date: date | None = None

    def to_canonical_dict(self) -> dict[str, Any]:
        return {"load_number": self.load_number, "gross_amount": str(self.gross_amount)}


@dataclass(frozen=True)
class FuelTransaction:
    """A fuel card transaction."""

    amount: Decimal
    fees: Decimal = ZERO
    transaction_date: date | None = None
    location: str = ""

    @property
    def total(self) -> Decimal:
        return self.amount + self.fees

    def to_canonical_dict(self) -> dict[str, Any]:
        return {"amount": str(self.amount), "fees": str(self.fees)}


@dataclass(frozen=True)
class PercentageSet:
    """Driver/company split and service fee, all in percent (e.g. 75 = 75%)."""

    driver_percent: Decimal
    company_percent: Decimal
    service_fee_percent: Decimal
    effective_date: date | None = None
    source: str = "current"

    def __post_init__(self) -> None:
        for name in ("driver_percent", "company_percent", "service_fee_percent"):
            value = getattr(self, name)
            if value < 0 or value > HUNDRED:
                raise ValueError(f"{name} must be between 0 and 100, got {value}")


@dataclass(frozen=True)
class DriverProfile:
    """Who is being paid and at what current percentages."""

    employee_id: str
    name: str
    percentages: PercentageSet
    truck_unit: str = ""


# Money fields summed by calculate_totals, in report order
TOTAL_FIELDS: tuple[str, ...] = (
    "gross",
    "service_fee",
    "gross_after_service_fee",
    "company_pay",
    "driver_share",
    "driver_pay",
    "fuel",
    "gross_after_fuel",
    "recurring_fees",
    "advances_given",
    "advance_repayments",
    "escrow_deposits",
    "other_deductions",
    "reimbursements",
    "net_pay",
)

CSV_HEADER: tuple[str, ...] = (
    "employee_id",
    "employee_name",
    "truck_unit",
    "load_count",
    *TOTAL_FIELDS,
)


@dataclass(frozen=True)
class PayrollRow:
    """One driver's computed pay for one week.

    Sign conventions:
    - every money field is stored positive as computed
    - net_pay may be negative (see has_payment_issues)
    - driver_pay and net_pay are the same figure
    """

    employee_id: str
    employee_name: str
    truck_unit: str
    week_start: date
    week_end: date
    load_count: int = 0
    gross: Decimal = ZERO
    service_fee: Decimal = ZERO
    gross_after_service_fee: Decimal = ZERO
    company_pay: Decimal = ZERO
    driver_share: Decimal = ZERO
    driver_pay: Decimal = ZERO
    fuel: Decimal = ZERO
    gross_after_fuel: Decimal = ZERO
    recurring_fees: Decimal = ZERO
    advances_given: Decimal = ZERO
    advance_repayments: Decimal = ZERO
    escrow_deposits: Decimal = ZERO
    other_deductions: Decimal = ZERO
    reimbursements: Decimal = ZERO
    net_pay: Decimal = ZERO
    driver_percent: Decimal = ZERO
    company_percent: Decimal = ZERO
    service_fee_percent: Decimal = ZERO
    loads: tuple[Load, ...] = ()
    fuel_transactions: tuple[FuelTransaction, ...] = ()
    calculation_id: UUID | None = None
    error: str | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def total_deductions(self) -> Decimal:
        return (
            self.fuel
            + self.recurring_fees
            + self.advance_repayments
            + self.escrow_deposits
            + self.other_deductions
        )

    @property
    def has_payment_issues(self) -> bool:
        return self.net_pay < 0

    @property
    def deduction_breakdown(self) -> dict[str, Decimal]:
        """Non-zero deductions by label."""
        labelled = {
            "Fuel": self.fuel,
            "Recurring Fees": self.recurring_fees,
            "Advance Repayments": self.advance_repayments,
            "Escrow Deposits": self.escrow_deposits,
            "Other Deductions": self.other_deductions,
        }
        return {label: amount for label, amount in labelled.items() if amount != 0}

    def to_csv_row(self) -> list[str]:
        """Values in CSV_HEADER order."""
        values: list[str] = [
            self.employee_id,
            self.employee_name,
            self.truck_unit,
            str(self.load_count),
        ]
        values.extend(str(getattr(self, name)) for name in TOTAL_FIELDS)
        return values


@dataclass(frozen=True)
class RepaymentSuggestion:
    """An advance repayment the driver could afford this week. Never applied."""

    employee_id: str
    amount: Decimal
    outstanding_balance: Decimal
    reason: str = ""


@dataclass(frozen=True)
class EscrowSuggestion:
    """A weekly escrow deposit that would close the gap to target. Never applied."""

    employee_id: str
    amount: Decimal
    remaining_to_target: Decimal
    weekly_target: Decimal
    reason: str = ""


@dataclass(frozen=True)
class CalculationOutcome:
    """A PayrollRow with its informational side-channel suggestions."""

    row: PayrollRow
    escrow_suggestion: EscrowSuggestion | None = None
    repayment_suggestion: RepaymentSuggestion | None = None
