"""Contracts for the external data the calculator reads.

Loads, fuel and employee percentage history live outside this package.
The in-memory implementations back the HTTP adapter and tests.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from datetime import date
from typing import Protocol, runtime_checkable

from driver_payroll.calculators.types import FuelTransaction, Load, PercentageSet


@runtime_checkable
class LoadSource(Protocol):
    def loads_for_employee_and_range(
        self, employee_id: str, start: date, end: date
    ) -> list[Load]:
        """Completed loads delivered in ``start..end``, in delivery order."""
        ...


@runtime_checkable
class FuelSource(Protocol):
    def fuel_for_employee_and_range(
        self, employee_name: str, start: date, end: date
    ) -> list[FuelTransaction]:
        """Fuel card transactions, keyed by the driver's name on the card."""
        ...


@runtime_checkable
class EmployeeSource(Protocol):
    def effective_percentages(self, employee_id: str, as_of: date) -> PercentageSet | None:
        """Historical percentages in effect on ``as_of``, or None if no record covers it."""
        ...


class InMemoryLoadSource:
    def __init__(self, loads: dict[str, Iterable[Load]] | None = None):
        self._lock = threading.Lock()
        self._loads: dict[str, list[Load]] = {k: list(v) for k, v in (loads or {}).items()}

    def add(self, employee_id: str, load: Load) -> None:
        with self._lock:
            self._loads.setdefault(employee_id, []).append(load)

    def loads_for_employee_and_range(
        self, employee_id: str, start: date, end: date
    ) -> list[Load]:
        with self._lock:
            loads = list(self._loads.get(employee_id, []))
        return [
            load
            for load in loads
            if load.delivery_date is None or start <= load.delivery_date <= end
        ]


class InMemoryFuelSource:
    def __init__(self, transactions: dict[str, Iterable[FuelTransaction]] | None = None):
        self._lock = threading.Lock()
        self._transactions: dict[str, list[FuelTransaction]] = {
            k: list(v) for k, v in (transactions or {}).items()
        }

    def add(self, employee_name: str, transaction: FuelTransaction) -> None:
        with self._lock:
            self._transactions.setdefault(employee_name, []).append(transaction)

    def fuel_for_employee_and_range(
        self, employee_name: str, start: date, end: date
    ) -> list[FuelTransaction]:
        with self._lock:
            transactions = list(self._transactions.get(employee_name, []))
        return [
            t
            for t in transactions
            if t.transaction_date is None or start <= t.transaction_date <= end
        ]


class InMemoryEmployeeSource:
    """Percentage history as (effective_date, end_date, percentages) records."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._history: dict[str, list[tuple[date, date | None, PercentageSet]]] = {}

    def add_history(
        self,
        employee_id: str,
        percentages: PercentageSet,
        effective_date: date,
        end_date: date | None = None,
    ) -> None:
        with self._lock:
            self._history.setdefault(employee_id, []).append(
                (effective_date, end_date, percentages)
            )

    def effective_percentages(self, employee_id: str, as_of: date) -> PercentageSet | None:
        """Latest record with effective_date <= as_of and no end before as_of."""
        with self._lock:
            records = list(self._history.get(employee_id, []))
        covering = [
            (effective, pct)
            for effective, end, pct in records
            if effective <= as_of and (end is None or end >= as_of)
        ]
        if not covering:
            return None
        effective, pct = max(covering, key=lambda item: item[0])
        return PercentageSet(
            driver_percent=pct.driver_percent,
            company_percent=pct.company_percent,
            service_fee_percent=pct.service_fee_percent,
            effective_date=effective,
            source="history",
        )
