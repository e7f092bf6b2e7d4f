"""Service container wiring ledgers, audit trail and calculator together."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from driver_payroll.audit import AuditTrail
from driver_payroll.calculators.engine import PayrollCalculator
from driver_payroll.calculators.sources import EmployeeSource, FuelSource, LoadSource
from driver_payroll.config import Settings, get_settings
from driver_payroll.ledgers.adjustments import AdjustmentLedger
from driver_payroll.ledgers.advances import AdvanceLedger
from driver_payroll.ledgers.escrow import EscrowLedger
from driver_payroll.ledgers.recurring import RecurringFeeLedger
from driver_payroll.storage import JsonFileStore

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


@dataclass
class PayrollServices:
    """Explicitly constructed ledgers sharing one audit trail."""

    settings: Settings
    audit: AuditTrail
    advances: AdvanceLedger
    escrow: EscrowLedger
    adjustments: AdjustmentLedger
    recurring: RecurringFeeLedger

    @classmethod
    def open(
        cls,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.now,
        persistent: bool = True,
    ) -> PayrollServices:
        """Build every ledger and load its persisted state."""

        def store(name: str, kind: str) -> JsonFileStore | None:
            if not persistent:
                return None
            return JsonFileStore(settings.data_dir / name, kind, SCHEMA_VERSION)

        audit = AuditTrail(store=store("audit.json", "audit"), clock=clock)
        services = cls(
            settings=settings,
            audit=audit,
            advances=AdvanceLedger(
                policy=settings.advances,
                store=store("advances.json", "advances"),
                audit=audit,
                clock=clock,
            ),
            escrow=EscrowLedger(
                policy=settings.escrow,
                store=store("escrow.json", "escrow"),
                audit=audit,
                clock=clock,
            ),
            adjustments=AdjustmentLedger(
                policy=settings.adjustments,
                store=store("adjustments.json", "adjustments"),
                audit=audit,
                clock=clock,
            ),
            recurring=RecurringFeeLedger(
                store=store("recurring.json", "recurring"),
                audit=audit,
                clock=clock,
            ),
        )
        audit.load()
        for ledger in (services.advances, services.escrow, services.adjustments, services.recurring):
            ledger.load()
        logger.info("Payroll services opened (data dir %s)", settings.data_dir)
        return services

    def calculator(
        self,
        load_source: LoadSource,
        fuel_source: FuelSource,
        employee_source: EmployeeSource | None = None,
    ) -> PayrollCalculator:
        return PayrollCalculator(
            advances=self.advances,
            escrow=self.escrow,
            adjustments=self.adjustments,
            recurring=self.recurring,
            load_source=load_source,
            fuel_source=fuel_source,
            employee_source=employee_source,
            policy=self.settings.calculator,
            engine_version=self.settings.engine_version,
        )

    def close(self) -> None:
        """Nothing is buffered: every mutation was persisted when it returned."""
        logger.info("Payroll services closed")


_registry_lock = threading.Lock()
_services: PayrollServices | None = None


def init_services(services: PayrollServices | None = None) -> PayrollServices:
    """Install (or open from settings) the process-wide services."""
    global _services
    with _registry_lock:
        if services is None:
            services = PayrollServices.open(get_settings())
        _services = services
        return services


def has_services() -> bool:
    with _registry_lock:
        return _services is not None


def get_services() -> PayrollServices:
    with _registry_lock:
        if _services is None:
            raise RuntimeError("Payroll services not initialized; call init_services() first")
        return _services


def shutdown_services() -> None:
    global _services
    with _registry_lock:
        if _services is not None:
            _services.close()
        _services = None
