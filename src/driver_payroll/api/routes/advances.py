"""Advance API endpoints."""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, Query, status

from driver_payroll.api.dependencies import Services, unwrap
from driver_payroll.api.schemas import (
    AdvanceBalanceResponse,
    AdvanceCreate,
    AdvanceListResponse,
    AdvanceResponse,
    EmployeeSettingsRequest,
    EmployeeSettingsResponse,
    ErrorResponse,
    ManualRepaymentRequest,
    ManualRepaymentResponse,
    ProcessedRepayment,
    RepaymentBatchResponse,
    RepaymentResponse,
    ScheduledRepaymentRequest,
    StatusChangeRequest,
)
from driver_payroll.ledgers.types import AdvanceStatus

router = APIRouter(prefix="/advances", tags=["advances"])


# ============================================================================
# Advance lifecycle
# ============================================================================


@router.post(
    "",
    response_model=AdvanceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
def create_advance(services: Services, payload: AdvanceCreate) -> AdvanceResponse:
    """Grant an advance and build its repayment schedule."""
    advance = unwrap(
        services.advances.create_advance(
            employee_id=payload.employee_id,
            employee_name=payload.employee_name,
            amount=payload.amount,
            notes=payload.notes,
            date_given=payload.date_given,
            weeks_to_repay=payload.weeks_to_repay,
            approved_by=payload.approved_by,
        )
    )
    return AdvanceResponse.model_validate(advance)


@router.get("/overdue", response_model=AdvanceListResponse)
def list_overdue_advances(
    services: Services,
    employee_id: Annotated[str | None, Query()] = None,
) -> AdvanceListResponse:
    """ACTIVE advances with an unpaid installment in a past week."""
    advances = services.advances.overdue_advances(employee_id)
    return AdvanceListResponse(
        items=[AdvanceResponse.model_validate(a) for a in advances],
        total=len(advances),
    )


@router.post(
    "/repayments/scheduled",
    response_model=RepaymentBatchResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def process_scheduled_repayment(
    services: Services, payload: ScheduledRepaymentRequest
) -> RepaymentBatchResponse:
    """Mark the installments due in a payroll week as paid."""
    batch = unwrap(
        services.advances.process_scheduled_repayment(
            employee_id=payload.employee_id,
            week_start=payload.week_start,
            processed_by=payload.processed_by,
            note=payload.note,
            amount=payload.amount,
            advance_id=payload.advance_id,
        )
    )
    return RepaymentBatchResponse(
        employee_id=batch.employee_id,
        week_start=batch.week_start,
        total=batch.total,
        repayments=[
            ProcessedRepayment(
                advance_id=advance_id,
                repayment=RepaymentResponse.model_validate(repayment),
            )
            for advance_id, repayment in batch.repayments
        ],
        completed_advance_ids=list(batch.completed_advance_ids),
    )


@router.get(
    "/employees/{employee_id}",
    response_model=AdvanceListResponse,
)
def list_employee_advances(
    services: Services,
    employee_id: Annotated[str, Path()],
    status_filter: Annotated[AdvanceStatus | None, Query(alias="status")] = None,
) -> AdvanceListResponse:
    """List an employee's advances, newest first."""
    advances = services.advances.advances_for_employee(employee_id, status_filter)
    return AdvanceListResponse(
        items=[AdvanceResponse.model_validate(a) for a in advances],
        total=len(advances),
    )


@router.get(
    "/employees/{employee_id}/balance",
    response_model=AdvanceBalanceResponse,
)
def get_employee_balance(
    services: Services,
    employee_id: Annotated[str, Path()],
) -> AdvanceBalanceResponse:
    ledger = services.advances
    return AdvanceBalanceResponse(
        employee_id=employee_id,
        outstanding_balance=ledger.outstanding_balance(employee_id),
        total_advanced=ledger.total_advanced(employee_id),
        total_repaid=ledger.total_repaid(employee_id),
        active_advance_count=ledger.active_advance_count(employee_id),
    )


@router.get(
    "/employees/{employee_id}/settings",
    response_model=EmployeeSettingsResponse,
)
def get_employee_settings(
    services: Services,
    employee_id: Annotated[str, Path()],
) -> EmployeeSettingsResponse:
    return EmployeeSettingsResponse.model_validate(
        services.advances.get_employee_settings(employee_id)
    )


@router.put(
    "/employees/{employee_id}/settings",
    response_model=EmployeeSettingsResponse,
    responses={400: {"model": ErrorResponse}},
)
def update_employee_settings(
    services: Services,
    employee_id: Annotated[str, Path()],
    payload: EmployeeSettingsRequest,
) -> EmployeeSettingsResponse:
    """Override the advance limits for one employee."""
    settings = unwrap(
        services.advances.update_employee_settings(
            employee_id,
            updated_by=payload.updated_by,
            max_advance_amount=payload.max_advance_amount,
            max_repayment_weeks=payload.max_repayment_weeks,
            max_active_advances=payload.max_active_advances,
        )
    )
    return EmployeeSettingsResponse.model_validate(settings)


@router.get(
    "/{advance_id}",
    response_model=AdvanceResponse,
    responses={404: {"model": ErrorResponse}},
)
def get_advance(
    services: Services,
    advance_id: Annotated[str, Path()],
) -> AdvanceResponse:
    """Get a specific advance by ID."""
    advance = services.advances.get_advance(advance_id)
    if advance is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Advance not found",
        )
    return AdvanceResponse.model_validate(advance)


@router.post(
    "/{advance_id}/manual-repayments",
    response_model=ManualRepaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def add_manual_repayment(
    services: Services,
    advance_id: Annotated[str, Path()],
    payload: ManualRepaymentRequest,
) -> ManualRepaymentResponse:
    """Record a payment received outside the weekly schedule."""
    manual = unwrap(
        services.advances.add_manual_repayment(
            employee_id=payload.employee_id,
            advance_id=advance_id,
            payment_date=payload.payment_date,
            amount=payload.amount,
            note=payload.note,
            processed_by=payload.processed_by,
            payment_method=payload.payment_method,
            reference=payload.reference,
        )
    )
    return ManualRepaymentResponse.model_validate(manual)


@router.post(
    "/{advance_id}/status",
    response_model=AdvanceResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def change_advance_status(
    services: Services,
    advance_id: Annotated[str, Path()],
    payload: StatusChangeRequest,
) -> AdvanceResponse:
    """Cancel, forgive or default an advance."""
    advance = unwrap(
        services.advances.change_status(
            advance_id, payload.status, payload.reason, payload.changed_by
        )
    )
    return AdvanceResponse.model_validate(advance)
