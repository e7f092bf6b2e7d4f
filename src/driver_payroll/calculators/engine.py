"""Weekly payroll calculator - main orchestrator."""

from __future__ import annotations

import csv
import hashlib
import io
import json
import logging
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from driver_payroll.calculators.percentage_resolver import PercentageResolver
from driver_payroll.calculators.sources import EmployeeSource, FuelSource, LoadSource
from driver_payroll.calculators.suggestions import suggest_auto_repayment, suggest_escrow_deposit
from driver_payroll.calculators.types import (
    CSV_HEADER,
    TOTAL_FIELDS,
    CalculationOutcome,
    DriverProfile,
    PayrollRow,
)
from driver_payroll.config import CalculatorPolicy
from driver_payroll.ledgers.adjustments import AdjustmentLedger
from driver_payroll.ledgers.advances import AdvanceLedger
from driver_payroll.ledgers.escrow import EscrowLedger
from driver_payroll.ledgers.recurring import RecurringFeeLedger
from driver_payroll.money import ZERO, percent_of, sum_money

logger = logging.getLogger(__name__)


class PayrollCalculator:
    """Builds one PayrollRow per driver per week.

    Calculation pipeline (stable order per driver):
    1) Fetch loads and fuel for the range
    2) Resolve percentages effective at the week end
    3) Gross, per-load service fee and per-load bonuses
    4) Company / driver split of gross after service fee
    5) Fuel = card transactions + fuel adjustments
    6) Recurring fees
    7) Advances given and repayments collected in the range
    8) Other deductions (excluding fuel) and reimbursements (including bonuses)
    9) Escrow deposit, unless escrow was already fully funded
    10) Net = driver share - deductions + reimbursements

    The calculator only reads from the ledgers.
    """

    def __init__(
        self,
        advances: AdvanceLedger,
        escrow: EscrowLedger,
        adjustments: AdjustmentLedger,
        recurring: RecurringFeeLedger,
        load_source: LoadSource,
        fuel_source: FuelSource,
        employee_source: EmployeeSource | None = None,
        policy: CalculatorPolicy | None = None,
        engine_version: str = "1.0.0",
    ):
        self.advances = advances
        self.escrow = escrow
        self.adjustments = adjustments
        self.recurring = recurring
        self.load_source = load_source
        self.fuel_source = fuel_source
        self.percentage_resolver = PercentageResolver(employee_source)
        self.policy = policy or CalculatorPolicy()
        self.engine_version = engine_version

    def calculate(self, driver: DriverProfile, week_start: date, week_end: date) -> PayrollRow:
        """Calculate one driver's row; failures come back as an error row."""
        return self.calculate_with_suggestions(driver, week_start, week_end).row

    def calculate_with_suggestions(
        self, driver: DriverProfile, week_start: date, week_end: date
    ) -> CalculationOutcome:
        try:
            return self._calculate_driver(driver, week_start, week_end)
        except Exception as e:
            logger.exception(
                "Payroll calculation failed for employee %s, week %s",
                driver.employee_id,
                week_start,
            )
            return CalculationOutcome(row=self._error_row(driver, week_start, week_end, e))

    def calculate_payroll_rows(
        self, drivers: Iterable[DriverProfile], week_start: date, week_end: date
    ) -> list[PayrollRow]:
        """One row per driver, in input order, error rows included."""
        rows = [self.calculate(driver, week_start, week_end) for driver in drivers]
        error_count = sum(1 for row in rows if row.is_error)
        logger.info(
            "Calculated payroll for %d driver(s), week %s to %s, %d error(s)",
            len(rows),
            week_start,
            week_end,
            error_count,
        )
        return rows

    @staticmethod
    def calculate_totals(rows: Iterable[PayrollRow]) -> dict[str, Decimal]:
        """Field-wise sums of every money field, plus the load count."""
        rows = list(rows)
        totals = {name: sum_money(getattr(row, name) for row in rows) for name in TOTAL_FIELDS}
        totals["load_count"] = Decimal(sum(row.load_count for row in rows))
        return totals

    @staticmethod
    def calculate_company_net_for_row(row: PayrollRow) -> Decimal:
        """Service fee plus the company split of gross after service fee and fuel."""
        if row.is_error:
            return ZERO
        base = row.gross - row.service_fee - row.fuel
        return row.service_fee + percent_of(base, row.company_percent)

    @classmethod
    def calculate_company_net(
        cls,
        rows: Iterable[PayrollRow],
        company_expenses: Decimal = ZERO,
        maintenance_expenses: Decimal = ZERO,
    ) -> Decimal:
        revenue = sum_money(cls.calculate_company_net_for_row(row) for row in rows)
        return revenue - company_expenses - maintenance_expenses

    @staticmethod
    def export_to_csv(rows: Iterable[PayrollRow]) -> str:
        """Export rows to CSV, one line per driver after the header.

        Error rows are written with their zeroed amounts and the error text.
        """
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow([*CSV_HEADER, "error"])
        for row in rows:
            writer.writerow([*row.to_csv_row(), row.error or ""])
        return output.getvalue()

    # === Per-driver pipeline ===

    def _calculate_driver(
        self, driver: DriverProfile, week_start: date, week_end: date
    ) -> CalculationOutcome:
        if week_end < week_start:
            raise ValueError(f"Week end {week_end} is before week start {week_start}")
        employee_id = driver.employee_id

        # 1) External data
        loads = list(self.load_source.loads_for_employee_and_range(employee_id, week_start, week_end))
        fuel_transactions = list(
            self.fuel_source.fuel_for_employee_and_range(driver.name, week_start, week_end)
        )

        # 2) Percentages
        pct = self.percentage_resolver.resolve(driver, week_end)

        # 3) Gross, service fee, bonuses
        gross = ZERO
        service_fee = ZERO
        bonuses = ZERO
        for load in loads:
            gross += load.gross_amount
            service_fee += percent_of(load.gross_amount, pct.service_fee_percent)
            bonuses += self.adjustments.bonus_for_load(employee_id, week_start, load.load_number)

        # 4) Split
        gross_after_service_fee = gross - service_fee
        company_pay = percent_of(gross_after_service_fee, pct.company_percent)
        driver_share = percent_of(gross_after_service_fee, pct.driver_percent)

        # 5) Fuel
        fuel_adjustments = self.adjustments.fuel_deductions(employee_id, week_start)
        fuel = sum_money(t.total for t in fuel_transactions) + fuel_adjustments
        gross_after_fuel = gross_after_service_fee - fuel

        # 6) Recurring
        recurring_fees = self.recurring.total_for_week(employee_id, week_start)

        # 7) Advances
        advances_given = self.advances.advances_given_between(employee_id, week_start, week_end)
        advance_repayments = self.advances.repayments_between(employee_id, week_start, week_end)

        # 8) Adjustments
        other_deductions = self.adjustments.total_deductions(employee_id, week_start) - fuel_adjustments
        reimbursements = self.adjustments.total_reimbursements(employee_id, week_start) + bonuses

        # 9) Escrow
        prior_balance = self.escrow.balance_before_week(employee_id, week_start)
        target = self.escrow.get_target_amount(employee_id)
        fully_funded = prior_balance > target
        manual_deposit = self.escrow.weekly_deposit(employee_id, week_start)
        escrow_deposits = ZERO if fully_funded else manual_deposit

        # 10) Net
        net_pay = (
            driver_share
            - fuel
            - recurring_fees
            - advance_repayments
            - escrow_deposits
            - other_deductions
            + reimbursements
        )

        inputs_fingerprint = self._compute_inputs_fingerprint(
            {
                "loads": [load.to_canonical_dict() for load in loads],
                "fuel": [t.to_canonical_dict() for t in fuel_transactions],
                "percentages": [
                    str(pct.driver_percent),
                    str(pct.company_percent),
                    str(pct.service_fee_percent),
                ],
                "ledgers": [
                    str(v)
                    for v in (
                        bonuses,
                        fuel_adjustments,
                        recurring_fees,
                        advances_given,
                        advance_repayments,
                        other_deductions,
                        reimbursements,
                        escrow_deposits,
                    )
                ],
            }
        )
        row = PayrollRow(
            employee_id=employee_id,
            employee_name=driver.name,
            truck_unit=driver.truck_unit,
            week_start=week_start,
            week_end=week_end,
            load_count=len(loads),
            gross=gross,
            service_fee=service_fee,
            gross_after_service_fee=gross_after_service_fee,
            company_pay=company_pay,
            driver_share=driver_share,
            driver_pay=net_pay,
            fuel=fuel,
            gross_after_fuel=gross_after_fuel,
            recurring_fees=recurring_fees,
            advances_given=advances_given,
            advance_repayments=advance_repayments,
            escrow_deposits=escrow_deposits,
            other_deductions=other_deductions,
            reimbursements=reimbursements,
            net_pay=net_pay,
            driver_percent=pct.driver_percent,
            company_percent=pct.company_percent,
            service_fee_percent=pct.service_fee_percent,
            loads=tuple(loads),
            fuel_transactions=tuple(fuel_transactions),
            calculation_id=self._generate_calculation_id(
                employee_id, week_start, week_end, inputs_fingerprint
            ),
        )

        escrow_suggestion = suggest_escrow_deposit(
            self.policy,
            employee_id,
            gross=gross,
            gross_after_fuel=gross_after_fuel,
            recurring_fees=recurring_fees,
            advance_repayments=advance_repayments,
            other_deductions=other_deductions,
            reimbursements=reimbursements,
            remaining_to_target=max(target - prior_balance, ZERO),
            fully_funded=fully_funded,
            manual_deposit=manual_deposit,
        )
        repayment_suggestion = suggest_auto_repayment(
            self.policy,
            employee_id,
            gross=gross,
            gross_after_fuel=gross_after_fuel,
            recurring_fees=recurring_fees,
            outstanding_balance=self.advances.outstanding_balance(employee_id),
            collected_this_week=advance_repayments,
        )
        logger.debug(
            "Employee %s week %s: gross=%s net=%s", employee_id, week_start, gross, net_pay
        )
        return CalculationOutcome(
            row=row,
            escrow_suggestion=escrow_suggestion,
            repayment_suggestion=repayment_suggestion,
        )

    def _error_row(
        self, driver: DriverProfile, week_start: date, week_end: date, error: Exception
    ) -> PayrollRow:
        return PayrollRow(
            employee_id=driver.employee_id,
            employee_name=driver.name,
            truck_unit=driver.truck_unit,
            week_start=week_start,
            week_end=week_end,
            calculation_id=self._generate_calculation_id(
                driver.employee_id, week_start, week_end, ""
            ),
            error=f"Unexpected error: {error}",
        )

    # === Fingerprints ===

    def _generate_calculation_id(
        self,
        employee_id: str,
        week_start: date,
        week_end: date,
        inputs_fingerprint: str,
    ) -> UUID:
        """Generate deterministic calculation ID."""
        data = {
            "employee_id": employee_id,
            "week_start": str(week_start),
            "week_end": str(week_end),
            "engine_version": self.engine_version,
            "inputs_fingerprint": inputs_fingerprint,
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])

    def _compute_inputs_fingerprint(self, inputs_data: dict[str, Any]) -> str:
        """Compute fingerprint of all inputs used in calculation."""
        json_str = json.dumps(inputs_data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]
