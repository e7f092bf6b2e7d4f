"""Pytest fixtures for driver payroll tests."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

from driver_payroll.audit import AuditTrail
from driver_payroll.calculators.engine import PayrollCalculator
from driver_payroll.calculators.sources import (
    InMemoryEmployeeSource,
    InMemoryFuelSource,
    InMemoryLoadSource,
)
from driver_payroll.calculators.types import DriverProfile, PercentageSet
from driver_payroll.config import Settings
from driver_payroll.ledgers.adjustments import AdjustmentLedger
from driver_payroll.ledgers.advances import AdvanceLedger
from driver_payroll.ledgers.escrow import EscrowLedger
from driver_payroll.ledgers.recurring import RecurringFeeLedger
from driver_payroll.services import PayrollServices

# Monday of the payroll week used throughout the tests
WEEK_START = date(2026, 3, 2)
WEEK_END = WEEK_START + timedelta(days=6)


class FixedClock:
    """Controllable clock passed to ledgers in place of datetime.now."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, weeks: int = 0) -> None:
        self.now = self.now + timedelta(days=days, weeks=weeks)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture
def audit(clock: FixedClock) -> AuditTrail:
    return AuditTrail(clock=clock)


@pytest.fixture
def advance_ledger(audit: AuditTrail, clock: FixedClock) -> AdvanceLedger:
    return AdvanceLedger(audit=audit, clock=clock)


@pytest.fixture
def escrow_ledger(audit: AuditTrail, clock: FixedClock) -> EscrowLedger:
    return EscrowLedger(audit=audit, clock=clock)


@pytest.fixture
def adjustment_ledger(audit: AuditTrail, clock: FixedClock) -> AdjustmentLedger:
    return AdjustmentLedger(audit=audit, clock=clock)


@pytest.fixture
def recurring_ledger(audit: AuditTrail, clock: FixedClock) -> RecurringFeeLedger:
    return RecurringFeeLedger(audit=audit, clock=clock)


@pytest.fixture
def load_source() -> InMemoryLoadSource:
    return InMemoryLoadSource()


@pytest.fixture
def fuel_source() -> InMemoryFuelSource:
    return InMemoryFuelSource()


@pytest.fixture
def employee_source() -> InMemoryEmployeeSource:
    return InMemoryEmployeeSource()


@pytest.fixture
def calculator(
    advance_ledger: AdvanceLedger,
    escrow_ledger: EscrowLedger,
    adjustment_ledger: AdjustmentLedger,
    recurring_ledger: RecurringFeeLedger,
    load_source: InMemoryLoadSource,
    fuel_source: InMemoryFuelSource,
    employee_source: InMemoryEmployeeSource,
) -> PayrollCalculator:
    return PayrollCalculator(
        advances=advance_ledger,
        escrow=escrow_ledger,
        adjustments=adjustment_ledger,
        recurring=recurring_ledger,
        load_source=load_source,
        fuel_source=fuel_source,
        employee_source=employee_source,
    )


@pytest.fixture
def driver() -> DriverProfile:
    return DriverProfile(
        employee_id="E100",
        name="Dana Ruiz",
        truck_unit="T-42",
        percentages=PercentageSet(
            driver_percent=Decimal("75"),
            company_percent=Decimal("25"),
            service_fee_percent=Decimal("10"),
        ),
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return replace(
        Settings.from_env(),
        data_dir=tmp_path / "payroll_data",
        engine_version="test",
    )


@pytest.fixture
def services(settings: Settings, clock: FixedClock) -> PayrollServices:
    return PayrollServices.open(settings, clock=clock)
