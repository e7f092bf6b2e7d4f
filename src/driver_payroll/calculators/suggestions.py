"""Informational escrow and repayment suggestions.

Nothing here feeds net pay. The calculator returns these next to the
PayrollRow so a reviewer can decide whether to act on them.
"""

from __future__ import annotations

from decimal import Decimal

from driver_payroll.calculators.types import EscrowSuggestion, RepaymentSuggestion
from driver_payroll.config import CalculatorPolicy
from driver_payroll.money import ZERO, ceil_cents, percent_of


def suggest_escrow_deposit(
    policy: CalculatorPolicy,
    employee_id: str,
    *,
    gross: Decimal,
    gross_after_fuel: Decimal,
    recurring_fees: Decimal,
    advance_repayments: Decimal,
    other_deductions: Decimal,
    reimbursements: Decimal,
    remaining_to_target: Decimal,
    fully_funded: bool,
    manual_deposit: Decimal,
) -> EscrowSuggestion | None:
    """Weekly deposit that closes the escrow gap without starving net pay.

    weekly = ceil(remaining / escrow_weeks_target), capped at max_escrow_deposit,
    then capped so projected net stays at escrow_min_net_pay. Dropped if the
    result is under min_escrow_deposit.
    """
    if fully_funded or manual_deposit > 0:
        return None
    if gross <= 0 or remaining_to_target <= 0:
        return None

    projected_net = (
        gross_after_fuel
        - recurring_fees
        - advance_repayments
        - other_deductions
        + reimbursements
    )
    if projected_net <= policy.escrow_min_net_pay:
        return None

    weekly_target = min(
        ceil_cents(remaining_to_target / policy.escrow_weeks_target),
        policy.max_escrow_deposit,
    )
    affordable = max(projected_net - policy.escrow_min_net_pay, ZERO)
    suggested = min(weekly_target, affordable)
    if suggested < policy.min_escrow_deposit:
        return None
    return EscrowSuggestion(
        employee_id=employee_id,
        amount=suggested,
        remaining_to_target=remaining_to_target,
        weekly_target=weekly_target,
        reason=(
            f"{remaining_to_target} remaining to target over "
            f"{policy.escrow_weeks_target} weeks"
        ),
    )


def suggest_auto_repayment(
    policy: CalculatorPolicy,
    employee_id: str,
    *,
    gross: Decimal,
    gross_after_fuel: Decimal,
    recurring_fees: Decimal,
    outstanding_balance: Decimal,
    collected_this_week: Decimal,
) -> RepaymentSuggestion | None:
    """Advance repayment for a week in which nothing was collected.

    suggested = min(10% of gross, max_auto_repayment, outstanding); reduced to
    zero when gross_after_fuel - recurring - suggested < min_net_after_repayment.
    """
    if collected_this_week > 0 or outstanding_balance <= 0:
        return None

    amount = min(
        percent_of(gross, policy.auto_repayment_percent),
        policy.max_auto_repayment,
        outstanding_balance,
    )
    projected_net = gross_after_fuel - recurring_fees - amount
    if projected_net < policy.min_net_after_repayment:
        return RepaymentSuggestion(
            employee_id=employee_id,
            amount=ZERO,
            outstanding_balance=outstanding_balance,
            reason=(
                f"Projected net {projected_net} would fall below "
                f"{policy.min_net_after_repayment}"
            ),
        )
    return RepaymentSuggestion(
        employee_id=employee_id,
        amount=amount,
        outstanding_balance=outstanding_balance,
        reason=f"{policy.auto_repayment_percent}% of gross, capped at {policy.max_auto_repayment}",
    )
