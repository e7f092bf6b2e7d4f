"""Payroll calculation endpoints."""

from fastapi import APIRouter, Response, status

from driver_payroll.api.dependencies import Services
from driver_payroll.api.schemas import (
    DriverPayrollResult,
    ErrorResponse,
    PayrollCalculateRequest,
    PayrollCalculateResponse,
)
from driver_payroll.calculators.engine import PayrollCalculator
from driver_payroll.calculators.sources import (
    InMemoryEmployeeSource,
    InMemoryFuelSource,
    InMemoryLoadSource,
)
from driver_payroll.calculators.types import (
    CalculationOutcome,
    DriverProfile,
    FuelTransaction,
    Load,
    PercentageSet,
)
from driver_payroll.services import PayrollServices

router = APIRouter(prefix="/payroll", tags=["payroll"])


def _calculate(
    services: PayrollServices, payload: PayrollCalculateRequest
) -> list[CalculationOutcome]:
    loads = InMemoryLoadSource()
    for item in payload.loads:
        loads.add(
            item.employee_id,
            Load(
                load_number=item.load_number,
                gross_amount=item.gross_amount,
                pickup=item.pickup,
                delivery=item.delivery,
                delivery_date=item.delivery_date,
            ),
        )
    fuel = InMemoryFuelSource()
    for item in payload.fuel:
        fuel.add(
            item.employee_name,
            FuelTransaction(
                amount=item.amount,
                fees=item.fees,
                transaction_date=item.transaction_date,
                location=item.location,
            ),
        )
    history = InMemoryEmployeeSource()
    for item in payload.percentage_history:
        history.add_history(
            item.employee_id,
            PercentageSet(**item.percentages.model_dump()),
            item.effective_date,
            item.end_date,
        )

    calculator = services.calculator(loads, fuel, history)
    drivers = [
        DriverProfile(
            employee_id=d.employee_id,
            name=d.name,
            truck_unit=d.truck_unit,
            percentages=PercentageSet(**d.percentages.model_dump()),
        )
        for d in payload.drivers
    ]
    return [
        calculator.calculate_with_suggestions(driver, payload.week_start, payload.week_end)
        for driver in drivers
    ]


@router.post(
    "/calculate",
    response_model=PayrollCalculateResponse,
    status_code=status.HTTP_200_OK,
    responses={422: {"model": ErrorResponse}},
)
def calculate_payroll(
    services: Services, payload: PayrollCalculateRequest
) -> PayrollCalculateResponse:
    """Compute one row per driver for the week; ledgers are only read."""
    outcomes = _calculate(services, payload)
    rows = [outcome.row for outcome in outcomes]

    return PayrollCalculateResponse(
        week_start=payload.week_start,
        week_end=payload.week_end,
        results=[DriverPayrollResult.model_validate(outcome) for outcome in outcomes],
        totals=PayrollCalculator.calculate_totals(rows),
        company_net=PayrollCalculator.calculate_company_net(
            rows, payload.company_expenses, payload.maintenance_expenses
        ),
        error_count=sum(1 for row in rows if row.is_error),
    )


@router.post(
    "/export",
    response_class=Response,
    responses={200: {"content": {"text/csv": {}}}, 422: {"model": ErrorResponse}},
)
def export_payroll(services: Services, payload: PayrollCalculateRequest) -> Response:
    """Compute the week and return the rows as a CSV attachment."""
    rows = [outcome.row for outcome in _calculate(services, payload)]
    filename = f"payroll_{payload.week_start.isoformat()}.csv"
    return Response(
        content=PayrollCalculator.export_to_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
