"""Recurring fee ledger: weekly ELD, IFTA, parking and similar charges."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from pydantic import TypeAdapter

from driver_payroll.audit import AuditAction, AuditTrail
from driver_payroll.ledgers.base import BaseLedger
from driver_payroll.ledgers.types import RECURRING_TYPES, RecurringFee, RecurringFeeDraft
from driver_payroll.money import ZERO, is_whole_cents, sum_money, to_money
from driver_payroll.results import ErrorKind, OperationResult
from driver_payroll.storage import JsonFileStore

logger = logging.getLogger(__name__)


@dataclass
class RecurringLedgerState:
    fees: list[RecurringFee] = field(default_factory=list)


_state_adapter = TypeAdapter(RecurringLedgerState)


def normalize_fee_type(fee_type: str) -> str | None:
    """Canonical fee type, or None if it is not a known type."""
    candidate = fee_type.strip().upper()
    return candidate if candidate in RECURRING_TYPES else None


class RecurringFeeLedger(BaseLedger):
    """Per-employee, per-week recurring fee rows."""

    kind = "recurring"

    def __init__(
        self,
        store: JsonFileStore | None = None,
        audit: AuditTrail | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(store=store, audit=audit, clock=clock)
        self._fees: list[RecurringFee] = []

    def _encode(self) -> Any:
        return _state_adapter.dump_python(RecurringLedgerState(fees=self._fees), mode="json")

    def _decode(self, payload: Any) -> RecurringLedgerState:
        return _state_adapter.validate_python(payload)

    def _restore(self, state: RecurringLedgerState) -> None:
        self._fees = list(state.fees)

    def _reset(self) -> None:
        self._fees = []

    def _build(
        self, employee_id: str, week_start: date, drafts: list[RecurringFeeDraft], created_by: str
    ) -> tuple[list[RecurringFee], str | None]:
        now = self._now()
        fees: list[RecurringFee] = []
        for draft in drafts:
            fee_type = normalize_fee_type(draft.fee_type)
            if fee_type is None:
                return [], f"Unknown recurring fee type: {draft.fee_type}"
            amount = to_money(draft.amount)
            if amount <= 0 or not is_whole_cents(amount):
                return [], f"{fee_type} fee must be a positive amount"
            fees.append(
                RecurringFee(
                    fee_id=f"REC-{uuid4().hex[:10].upper()}",
                    employee_id=employee_id,
                    week_start=week_start,
                    fee_type=fee_type,
                    amount=amount,
                    description=draft.description,
                    created_by=created_by,
                    created_at=now,
                )
            )
        return fees, None

    # === Mutations ===

    def save_fees_for_week(
        self,
        employee_id: str,
        week_start: date,
        drafts: Iterable[RecurringFeeDraft],
        created_by: str,
    ) -> OperationResult[list[RecurringFee]]:
        """Replace the employee's fee set for the week."""
        fees, error = self._build(employee_id, week_start, list(drafts), created_by)
        if error:
            return self._reject(ErrorKind.VALIDATION, error)
        with self._lock:
            self._fees = [
                f
                for f in self._fees
                if not (f.employee_id == employee_id and f.week_start == week_start)
            ]
            self._fees.extend(fees)
            self._record(
                AuditAction.RECURRING_SAVED,
                employee_id,
                f"Saved {len(fees)} recurring fee(s) totalling {sum_money(f.amount for f in fees)} "
                f"for week of {week_start.isoformat()}",
                created_by,
            )
            self._persist()
        return OperationResult.ok(fees, f"Saved {len(fees)} recurring fee(s)")

    def charge_all(
        self,
        employee_id: str,
        week_start: date,
        drafts: Iterable[RecurringFeeDraft],
        created_by: str,
    ) -> OperationResult[list[RecurringFee]]:
        """Append fees, rejecting any type already charged this week."""
        drafts = list(drafts)
        if not drafts:
            return self._reject(ErrorKind.VALIDATION, "No recurring fees to charge")
        fees, error = self._build(employee_id, week_start, drafts, created_by)
        if error:
            return self._reject(ErrorKind.VALIDATION, error)
        with self._lock:
            seen = {
                f.fee_type
                for f in self._fees
                if f.employee_id == employee_id and f.week_start == week_start
            }
            for fee in fees:
                if fee.fee_type in seen:
                    return self._reject(
                        ErrorKind.VALIDATION,
                        f"{fee.fee_type} already charged for week of {week_start.isoformat()}",
                    )
                seen.add(fee.fee_type)
            self._fees.extend(fees)
            for fee in fees:
                self._record(
                    AuditAction.RECURRING_CHARGED,
                    employee_id,
                    f"Charged {fee.fee_type} {fee.amount} for week of {week_start.isoformat()}",
                    created_by,
                    subject_id=fee.fee_id,
                )
            self._persist()
        return OperationResult.ok(fees, f"Charged {len(fees)} recurring fee(s)")

    def remove_fee(self, fee_id: str, removed_by: str) -> OperationResult[RecurringFee]:
        with self._lock:
            fee = next((f for f in self._fees if f.fee_id == fee_id), None)
            if fee is None:
                return self._reject(ErrorKind.NOT_FOUND, f"Recurring fee {fee_id} not found")
            self._fees.remove(fee)
            self._record(
                AuditAction.RECURRING_REMOVED,
                fee.employee_id,
                f"Removed {fee.fee_type} {fee.amount} for week of {fee.week_start.isoformat()}",
                removed_by,
                subject_id=fee_id,
            )
            self._persist()
        return OperationResult.ok(fee, "Recurring fee removed")

    # === Queries ===

    def fees_for_week(self, employee_id: str, week_start: date) -> list[RecurringFee]:
        with self._lock:
            return [
                f
                for f in self._fees
                if f.employee_id == employee_id and f.week_start == week_start
            ]

    def total_for_week(self, employee_id: str, week_start: date) -> Decimal:
        return sum_money(f.amount for f in self.fees_for_week(employee_id, week_start))

    def total_by_category(self, employee_id: str, week_start: date) -> dict[str, Decimal]:
        totals: dict[str, Decimal] = {}
        for fee in self.fees_for_week(employee_id, week_start):
            totals[fee.fee_type] = totals.get(fee.fee_type, ZERO) + fee.amount
        return totals
