"""Audit trail endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Query

from driver_payroll.api.dependencies import Services
from driver_payroll.api.schemas import AuditEntryResponse, AuditTrailResponse

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=AuditTrailResponse)
def get_audit_trail(
    services: Services,
    employee_id: Annotated[str | None, Query()] = None,
    start_date: Annotated[date | None, Query()] = None,
    end_date: Annotated[date | None, Query()] = None,
) -> AuditTrailResponse:
    """Audit entries, newest first."""
    entries = services.audit.get_audit_trail(employee_id, start_date, end_date)
    return AuditTrailResponse(
        items=[AuditEntryResponse.model_validate(e) for e in entries],
        total=len(entries),
    )
