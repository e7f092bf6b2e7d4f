"""Escrow ledger: per-employee savings toward a target balance."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from pydantic import TypeAdapter

from driver_payroll.audit import AuditAction, AuditTrail
from driver_payroll.config import EscrowPolicy
from driver_payroll.ledgers.base import BaseLedger
from driver_payroll.ledgers.types import EscrowEntry, EscrowEntryType, EscrowLine
from driver_payroll.money import ZERO, is_whole_cents, sum_money, to_money
from driver_payroll.results import ErrorKind, OperationResult
from driver_payroll.storage import JsonFileStore

logger = logging.getLogger(__name__)


@dataclass
class EscrowLedgerState:
    entries: list[EscrowEntry] = field(default_factory=list)
    targets: dict[str, Decimal] = field(default_factory=dict)


_state_adapter = TypeAdapter(EscrowLedgerState)


class EscrowLedger(BaseLedger):
    """Deposits and withdrawals per employee, with a target balance."""

    kind = "escrow"

    def __init__(
        self,
        policy: EscrowPolicy | None = None,
        store: JsonFileStore | None = None,
        audit: AuditTrail | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(store=store, audit=audit, clock=clock)
        self.policy = policy or EscrowPolicy()
        self._entries: list[EscrowEntry] = []
        self._targets: dict[str, Decimal] = {}

    def _encode(self) -> Any:
        return _state_adapter.dump_python(
            EscrowLedgerState(entries=self._entries, targets=self._targets), mode="json"
        )

    def _decode(self, payload: Any) -> EscrowLedgerState:
        return _state_adapter.validate_python(payload)

    def _restore(self, state: EscrowLedgerState) -> None:
        self._entries = list(state.entries)
        self._targets = dict(state.targets)

    def _reset(self) -> None:
        self._entries = []
        self._targets = {}

    # === Target ===

    def get_target_amount(self, employee_id: str) -> Decimal:
        with self._lock:
            return self._targets.get(employee_id, self.policy.default_target)

    def set_target_amount(
        self, employee_id: str, target: Decimal | str, set_by: str
    ) -> OperationResult[Decimal]:
        target = to_money(target)
        if target <= 0 or not is_whole_cents(target):
            return self._reject(ErrorKind.VALIDATION, "Escrow target must be a positive amount")
        with self._lock:
            previous = self._targets.get(employee_id, self.policy.default_target)
            self._targets[employee_id] = target
            self._record(
                AuditAction.ESCROW_TARGET_SET,
                employee_id,
                f"Escrow target {previous} -> {target}",
                set_by,
            )
            self._persist()
        return OperationResult.ok(target, "Escrow target updated")

    # === Entries ===

    def add_deposit(
        self,
        employee_id: str,
        week_start: date,
        amount: Decimal | str,
        created_by: str,
        description: str = "",
        category: str = "Weekly deposit",
        entry_date: date | None = None,
    ) -> OperationResult[EscrowEntry]:
        return self._add_entry(
            EscrowEntryType.DEPOSIT,
            employee_id,
            week_start,
            amount,
            created_by,
            description,
            category,
            entry_date,
        )

    def add_withdrawal(
        self,
        employee_id: str,
        week_start: date,
        amount: Decimal | str,
        created_by: str,
        description: str = "",
        category: str = "Withdrawal",
        entry_date: date | None = None,
    ) -> OperationResult[EscrowEntry]:
        """Withdraw from escrow; rejected if it exceeds the current balance."""
        return self._add_entry(
            EscrowEntryType.WITHDRAWAL,
            employee_id,
            week_start,
            amount,
            created_by,
            description,
            category,
            entry_date,
        )

    def _add_entry(
        self,
        entry_type: EscrowEntryType,
        employee_id: str,
        week_start: date,
        amount: Decimal | str,
        created_by: str,
        description: str,
        category: str,
        entry_date: date | None,
    ) -> OperationResult[EscrowEntry]:
        amount = to_money(amount)
        if amount <= 0 or not is_whole_cents(amount):
            return self._reject(
                ErrorKind.VALIDATION, f"Escrow {entry_type.value.lower()} must be a positive amount"
            )
        with self._lock:
            if entry_type == EscrowEntryType.WITHDRAWAL:
                balance = self._balance(employee_id)
                if amount > balance:
                    return self._reject(
                        ErrorKind.VALIDATION,
                        f"Withdrawal {amount} exceeds escrow balance {balance}",
                    )
            entry = EscrowEntry(
                entry_id=f"ESC-{uuid4().hex[:10].upper()}",
                employee_id=employee_id,
                entry_type=entry_type,
                amount=amount,
                week_start=week_start,
                entry_date=entry_date or self._today(),
                category=category,
                description=description,
                created_by=created_by,
                created_at=self._now(),
            )
            self._entries.append(entry)
            action = (
                AuditAction.ESCROW_DEPOSIT
                if entry_type == EscrowEntryType.DEPOSIT
                else AuditAction.ESCROW_WITHDRAWAL
            )
            self._record(
                action,
                employee_id,
                f"{entry_type.value.title()} of {amount} for week of {week_start.isoformat()}",
                created_by,
                subject_id=entry.entry_id,
            )
            self._persist()
        logger.info("Escrow %s %s for employee %s", entry_type.value.lower(), amount, employee_id)
        return OperationResult.ok(entry, "Escrow entry recorded")

    # === Queries ===

    def _balance(self, employee_id: str) -> Decimal:
        return sum_money(e.signed_amount for e in self._entries if e.employee_id == employee_id)

    def entries_for_employee(self, employee_id: str) -> list[EscrowLine]:
        """Statement in entry order with the balance after each entry."""
        with self._lock:
            lines: list[EscrowLine] = []
            balance = ZERO
            for entry in self._entries:
                if entry.employee_id != employee_id:
                    continue
                balance += entry.signed_amount
                lines.append(EscrowLine(entry=entry, running_balance=balance))
            return lines

    def entries_for_week(self, employee_id: str, week_start: date) -> list[EscrowEntry]:
        with self._lock:
            return [
                e
                for e in self._entries
                if e.employee_id == employee_id and e.week_start == week_start
            ]

    def current_balance(self, employee_id: str) -> Decimal:
        with self._lock:
            return self._balance(employee_id)

    def balance_before_week(self, employee_id: str, week_start: date) -> Decimal:
        """Balance from entries booked to weeks before ``week_start``."""
        with self._lock:
            return sum_money(
                e.signed_amount
                for e in self._entries
                if e.employee_id == employee_id and e.week_start < week_start
            )

    def total_deposits(self, employee_id: str) -> Decimal:
        with self._lock:
            return sum_money(
                e.amount
                for e in self._entries
                if e.employee_id == employee_id and e.entry_type == EscrowEntryType.DEPOSIT
            )

    def total_withdrawals(self, employee_id: str) -> Decimal:
        with self._lock:
            return sum_money(
                e.amount
                for e in self._entries
                if e.employee_id == employee_id and e.entry_type == EscrowEntryType.WITHDRAWAL
            )

    def remaining_to_target(self, employee_id: str) -> Decimal:
        with self._lock:
            return max(self.get_target_amount(employee_id) - self._balance(employee_id), ZERO)

    def is_fully_funded(self, employee_id: str) -> bool:
        """Balance strictly above target; equal is not fully funded."""
        with self._lock:
            return self._balance(employee_id) > self.get_target_amount(employee_id)

    def has_reached_target(self, employee_id: str) -> bool:
        with self._lock:
            return self._balance(employee_id) >= self.get_target_amount(employee_id)

    def weekly_deposit(self, employee_id: str, week_start: date) -> Decimal:
        """Manually entered deposits for the week."""
        with self._lock:
            return sum_money(
                e.amount
                for e in self._entries
                if e.employee_id == employee_id
                and e.week_start == week_start
                and e.entry_type == EscrowEntryType.DEPOSIT
            )

    def weekly_withdrawals(self, employee_id: str, week_start: date) -> Decimal:
        with self._lock:
            return sum_money(
                e.amount
                for e in self._entries
                if e.employee_id == employee_id
                and e.week_start == week_start
                and e.entry_type == EscrowEntryType.WITHDRAWAL
            )

    def total_by_category(self, employee_id: str, week_start: date) -> dict[str, Decimal]:
        """Signed totals per category for the week."""
        with self._lock:
            totals: dict[str, Decimal] = {}
            for e in self._entries:
                if e.employee_id == employee_id and e.week_start == week_start:
                    totals[e.category] = totals.get(e.category, ZERO) + e.signed_amount
            return totals
