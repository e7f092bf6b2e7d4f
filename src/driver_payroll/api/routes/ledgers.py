"""Escrow, adjustment and recurring fee endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from driver_payroll.api.dependencies import Services, unwrap
from driver_payroll.api.schemas import (
    AdjustmentBatchRequest,
    AdjustmentResponse,
    AdjustmentWeekResponse,
    ErrorResponse,
    EscrowEntryRequest,
    EscrowEntryResponse,
    EscrowLineResponse,
    EscrowSummaryResponse,
    EscrowTargetRequest,
    RecurringFeeRequest,
    RecurringFeeResponse,
    RecurringWeekResponse,
    ReversalRequest,
)
from driver_payroll.ledgers.types import AdjustmentDraft, RecurringFeeDraft

router = APIRouter(tags=["ledgers"])


# ============================================================================
# Escrow
# ============================================================================


@router.get("/escrow/{employee_id}", response_model=EscrowSummaryResponse)
def get_escrow_summary(
    services: Services,
    employee_id: Annotated[str, Path()],
) -> EscrowSummaryResponse:
    """Balance, target and statement for one employee."""
    escrow = services.escrow
    return EscrowSummaryResponse(
        employee_id=employee_id,
        balance=escrow.current_balance(employee_id),
        target=escrow.get_target_amount(employee_id),
        remaining_to_target=escrow.remaining_to_target(employee_id),
        is_fully_funded=escrow.is_fully_funded(employee_id),
        has_reached_target=escrow.has_reached_target(employee_id),
        lines=[
            EscrowLineResponse.model_validate(line)
            for line in escrow.entries_for_employee(employee_id)
        ],
    )


@router.put(
    "/escrow/{employee_id}/target",
    response_model=EscrowSummaryResponse,
    responses={400: {"model": ErrorResponse}},
)
def set_escrow_target(
    services: Services,
    employee_id: Annotated[str, Path()],
    payload: EscrowTargetRequest,
) -> EscrowSummaryResponse:
    unwrap(services.escrow.set_target_amount(employee_id, payload.target, payload.set_by))
    return get_escrow_summary(services, employee_id)


@router.post(
    "/escrow/deposits",
    response_model=EscrowEntryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
def add_escrow_deposit(services: Services, payload: EscrowEntryRequest) -> EscrowEntryResponse:
    entry = unwrap(
        services.escrow.add_deposit(
            payload.employee_id,
            payload.week_start,
            payload.amount,
            payload.created_by,
            description=payload.description,
            category=payload.category or "Weekly deposit",
        )
    )
    return EscrowEntryResponse.model_validate(entry)


@router.post(
    "/escrow/withdrawals",
    response_model=EscrowEntryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
def add_escrow_withdrawal(services: Services, payload: EscrowEntryRequest) -> EscrowEntryResponse:
    entry = unwrap(
        services.escrow.add_withdrawal(
            payload.employee_id,
            payload.week_start,
            payload.amount,
            payload.created_by,
            description=payload.description,
            category=payload.category or "Withdrawal",
        )
    )
    return EscrowEntryResponse.model_validate(entry)


# ============================================================================
# Adjustments
# ============================================================================


@router.post(
    "/adjustments",
    response_model=list[AdjustmentResponse],
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
def add_adjustments(
    services: Services, payload: AdjustmentBatchRequest
) -> list[AdjustmentResponse]:
    """Save deductions and reimbursements for a week; all or nothing."""
    created = unwrap(
        services.adjustments.add_adjustments(
            payload.employee_id,
            payload.week_start,
            [
                AdjustmentDraft(
                    category=item.category,
                    adjustment_type=item.adjustment_type,
                    amount=item.amount,
                    description=item.description,
                    load_number=item.load_number,
                )
                for item in payload.adjustments
            ],
            payload.created_by,
        )
    )
    return [AdjustmentResponse.model_validate(a) for a in created]


@router.get(
    "/adjustments/{employee_id}/{week_start}",
    response_model=AdjustmentWeekResponse,
)
def get_week_adjustments(
    services: Services,
    employee_id: Annotated[str, Path()],
    week_start: Annotated[date, Path()],
) -> AdjustmentWeekResponse:
    ledger = services.adjustments
    return AdjustmentWeekResponse(
        employee_id=employee_id,
        week_start=week_start,
        entries=[
            AdjustmentResponse.model_validate(a)
            for a in ledger.entries_for(employee_id, week_start)
        ],
        totals=ledger.total_by_category(employee_id, week_start),
    )


@router.post(
    "/adjustments/{adjustment_id}/reverse",
    response_model=AdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def reverse_adjustment(
    services: Services,
    adjustment_id: Annotated[str, Path()],
    payload: ReversalRequest,
) -> AdjustmentResponse:
    """Append a negated entry cancelling the adjustment."""
    reversal = unwrap(
        services.adjustments.reverse_adjustment(adjustment_id, payload.reason, payload.reversed_by)
    )
    return AdjustmentResponse.model_validate(reversal)


# ============================================================================
# Recurring fees
# ============================================================================


def _fee_drafts(payload: RecurringFeeRequest) -> list[RecurringFeeDraft]:
    return [
        RecurringFeeDraft(fee_type=f.fee_type, amount=f.amount, description=f.description)
        for f in payload.fees
    ]


@router.put(
    "/recurring",
    response_model=list[RecurringFeeResponse],
    responses={400: {"model": ErrorResponse}},
)
def save_recurring_fees(
    services: Services, payload: RecurringFeeRequest
) -> list[RecurringFeeResponse]:
    """Replace the employee's recurring fees for the week."""
    fees = unwrap(
        services.recurring.save_fees_for_week(
            payload.employee_id, payload.week_start, _fee_drafts(payload), payload.created_by
        )
    )
    return [RecurringFeeResponse.model_validate(f) for f in fees]


@router.post(
    "/recurring/charge",
    response_model=list[RecurringFeeResponse],
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
def charge_recurring_fees(
    services: Services, payload: RecurringFeeRequest
) -> list[RecurringFeeResponse]:
    """Add fees for the week, rejecting types already charged."""
    fees = unwrap(
        services.recurring.charge_all(
            payload.employee_id, payload.week_start, _fee_drafts(payload), payload.created_by
        )
    )
    return [RecurringFeeResponse.model_validate(f) for f in fees]


@router.get(
    "/recurring/{employee_id}/{week_start}",
    response_model=RecurringWeekResponse,
)
def get_week_recurring_fees(
    services: Services,
    employee_id: Annotated[str, Path()],
    week_start: Annotated[date, Path()],
) -> RecurringWeekResponse:
    ledger = services.recurring
    return RecurringWeekResponse(
        employee_id=employee_id,
        week_start=week_start,
        fees=[
            RecurringFeeResponse.model_validate(f)
            for f in ledger.fees_for_week(employee_id, week_start)
        ],
        total=ledger.total_for_week(employee_id, week_start),
        by_type=ledger.total_by_category(employee_id, week_start),
    )


@router.delete(
    "/recurring/fees/{fee_id}",
    response_model=RecurringFeeResponse,
    responses={404: {"model": ErrorResponse}},
)
def remove_recurring_fee(
    services: Services,
    fee_id: Annotated[str, Path()],
    removed_by: Annotated[str, Query(min_length=1)],
) -> RecurringFeeResponse:
    fee = unwrap(services.recurring.remove_fee(fee_id, removed_by))
    return RecurringFeeResponse.model_validate(fee)
