"""Percentage resolution by effective date."""

from __future__ import annotations

import logging
from datetime import date

from driver_payroll.calculators.sources import EmployeeSource
from driver_payroll.calculators.types import DriverProfile, PercentageSet

logger = logging.getLogger(__name__)


class PercentageResolver:
    """Resolves the split and service fee in effect on a date.

    Resolution order:
    1. Historical record covering the date, if an employee source is configured
    2. The driver's current percentages

    A failing history lookup is logged and treated as "no record".
    """

    def __init__(self, employee_source: EmployeeSource | None = None):
        self.employee_source = employee_source

    def resolve(self, driver: DriverProfile, as_of: date) -> PercentageSet:
        if self.employee_source is None:
            return driver.percentages
        try:
            historical = self.employee_source.effective_percentages(driver.employee_id, as_of)
        except Exception:
            logger.warning(
                "Percentage history lookup failed for employee %s on %s, using current",
                driver.employee_id,
                as_of,
                exc_info=True,
            )
            return driver.percentages
        if historical is None:
            return driver.percentages
        logger.debug(
            "Using percentages effective %s for employee %s",
            historical.effective_date,
            driver.employee_id,
        )
        return historical
