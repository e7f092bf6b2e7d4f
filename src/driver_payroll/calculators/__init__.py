"""Payroll calculation engine."""

from driver_payroll.calculators.engine import PayrollCalculator
from driver_payroll.calculators.percentage_resolver import PercentageResolver
from driver_payroll.calculators.types import (
    CalculationOutcome,
    DriverProfile,
    FuelTransaction,
    Load,
    PayrollRow,
    PercentageSet,
)

__all__ = [
    "PayrollCalculator",
    "PercentageResolver",
    "CalculationOutcome",
    "DriverProfile",
    "FuelTransaction",
    "Load",
    "PayrollRow",
    "PercentageSet",
]
