"""FastAPI dependencies for dependency injection."""

from typing import Annotated, TypeVar

from fastapi import Depends, HTTPException, status

from driver_payroll.results import ErrorKind, OperationResult
from driver_payroll.services import PayrollServices, get_services

T = TypeVar("T")

ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.ILLEGAL_STATE: status.HTTP_409_CONFLICT,
}


def get_payroll_services() -> PayrollServices:
    """Get the process-wide payroll services."""
    return get_services()


def unwrap(result: OperationResult[T]) -> T:
    """Return the result value, raising HTTPException on failure."""
    if not result.success:
        raise HTTPException(
            status_code=ERROR_STATUS.get(result.error, status.HTTP_400_BAD_REQUEST),
            detail=result.message,
        )
    return result.value


# Type aliases for cleaner dependency injection
Services = Annotated[PayrollServices, Depends(get_payroll_services)]
