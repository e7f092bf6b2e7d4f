"""Adjustment ledger: one-off deductions, reimbursements and load bonuses.

Entries are never deleted. Reversing an entry appends a negated copy that
points at the original, so every total is a plain signed sum.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from pydantic import TypeAdapter

from driver_payroll.audit import AuditAction, AuditTrail
from driver_payroll.config import AdjustmentPolicy
from driver_payroll.ledgers.base import BaseLedger
from driver_payroll.ledgers.types import (
    LOAD_BONUS_PREFIX,
    Adjustment,
    AdjustmentCategory,
    AdjustmentDraft,
    AdjustmentStatus,
    AdjustmentSummary,
)
from driver_payroll.money import ZERO, is_whole_cents, sum_money, to_money
from driver_payroll.results import ErrorKind, OperationResult
from driver_payroll.storage import JsonFileStore

logger = logging.getLogger(__name__)


@dataclass
class AdjustmentLedgerState:
    adjustments: list[Adjustment] = field(default_factory=list)


_state_adapter = TypeAdapter(AdjustmentLedgerState)


class AdjustmentLedger(BaseLedger):
    """Per-employee, per-week categorized adjustments."""

    kind = "adjustments"

    def __init__(
        self,
        policy: AdjustmentPolicy | None = None,
        store: JsonFileStore | None = None,
        audit: AuditTrail | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(store=store, audit=audit, clock=clock)
        self.policy = policy or AdjustmentPolicy()
        self._adjustments: list[Adjustment] = []

    def _encode(self) -> Any:
        return _state_adapter.dump_python(
            AdjustmentLedgerState(adjustments=self._adjustments), mode="json"
        )

    def _decode(self, payload: Any) -> AdjustmentLedgerState:
        return _state_adapter.validate_python(payload)

    def _restore(self, state: AdjustmentLedgerState) -> None:
        self._adjustments = list(state.adjustments)

    def _reset(self) -> None:
        self._adjustments = []

    # === Mutations ===

    def _validate_draft(self, draft: AdjustmentDraft) -> str | None:
        try:
            category = AdjustmentCategory(draft.category)
        except ValueError:
            return f"Unknown adjustment category: {draft.category}"
        if not draft.adjustment_type or not draft.adjustment_type.strip():
            return "Adjustment type is required"
        amount = to_money(draft.amount)
        if not is_whole_cents(amount):
            return "Adjustment amount must be in whole cents"
        if amount < self.policy.min_amount or amount > self.policy.max_amount:
            return (
                f"Adjustment amount must be between {self.policy.min_amount} "
                f"and {self.policy.max_amount}"
            )
        if draft.adjustment_type.startswith(LOAD_BONUS_PREFIX):
            if category != AdjustmentCategory.REIMBURSEMENT:
                return "Load bonuses must be reimbursements"
            if not draft.load_number:
                return "Load bonuses require a load number"
        return None

    def add_adjustments(
        self,
        employee_id: str,
        week_start: date,
        drafts: Iterable[AdjustmentDraft],
        created_by: str,
    ) -> OperationResult[list[Adjustment]]:
        """Append entries for the week; nothing is saved if any draft is invalid."""
        drafts = list(drafts)
        if not drafts:
            return self._reject(ErrorKind.VALIDATION, "No adjustments to save")
        for draft in drafts:
            error = self._validate_draft(draft)
            if error:
                return self._reject(ErrorKind.VALIDATION, error)

        now = self._now()
        created = [
            Adjustment(
                adjustment_id=f"ADJ-{uuid4().hex[:10].upper()}",
                employee_id=employee_id,
                week_start=week_start,
                category=AdjustmentCategory(draft.category),
                adjustment_type=draft.adjustment_type.strip(),
                amount=to_money(draft.amount),
                description=draft.description,
                load_number=draft.load_number,
                created_by=created_by,
                created_at=now,
            )
            for draft in drafts
        ]
        with self._lock:
            self._adjustments.extend(created)
            for adj in created:
                self._record(
                    AuditAction.ADJUSTMENT_CREATED,
                    employee_id,
                    f"{adj.category.value} '{adj.adjustment_type}' of {adj.amount} "
                    f"for week of {week_start.isoformat()}",
                    created_by,
                    subject_id=adj.adjustment_id,
                )
            self._persist()
        logger.info(
            "Saved %d adjustment(s) for employee %s, week %s", len(created), employee_id, week_start
        )
        return OperationResult.ok(created, f"Saved {len(created)} adjustment(s)")

    def add_adjustment(
        self,
        employee_id: str,
        week_start: date,
        category: AdjustmentCategory | str,
        adjustment_type: str,
        amount: Decimal | str,
        created_by: str,
        description: str = "",
        load_number: str | None = None,
    ) -> OperationResult[Adjustment]:
        result = self.add_adjustments(
            employee_id,
            week_start,
            [AdjustmentDraft(category, adjustment_type, to_money(amount), description, load_number)],
            created_by,
        )
        if not result.success:
            return OperationResult.fail(result.error, result.message)
        return OperationResult.ok(result.value[0], result.message)

    def add_load_bonus(
        self,
        employee_id: str,
        week_start: date,
        load_number: str,
        amount: Decimal | str,
        created_by: str,
        description: str = "",
    ) -> OperationResult[Adjustment]:
        return self.add_adjustment(
            employee_id,
            week_start,
            AdjustmentCategory.REIMBURSEMENT,
            f"{LOAD_BONUS_PREFIX} {load_number}",
            amount,
            created_by,
            description=description,
            load_number=load_number,
        )

    def reverse_adjustment(
        self, adjustment_id: str, reason: str, reversed_by: str
    ) -> OperationResult[Adjustment]:
        """Append a negated entry; the original is marked REVERSED."""
        with self._lock:
            index = next(
                (i for i, a in enumerate(self._adjustments) if a.adjustment_id == adjustment_id),
                None,
            )
            if index is None:
                return self._reject(ErrorKind.NOT_FOUND, f"Adjustment {adjustment_id} not found")
            original = self._adjustments[index]
            if original.is_reversal:
                return self._reject(ErrorKind.ILLEGAL_STATE, "A reversal cannot be reversed")
            if original.status == AdjustmentStatus.REVERSED:
                return self._reject(
                    ErrorKind.ILLEGAL_STATE, f"Adjustment {adjustment_id} is already reversed"
                )

            reversal = replace(
                original,
                adjustment_id=f"ADJ-{uuid4().hex[:10].upper()}",
                amount=-original.amount,
                description=f"Reversal of {adjustment_id}: {reason}",
                reverses_id=adjustment_id,
                created_by=reversed_by,
                created_at=self._now(),
            )
            self._adjustments[index] = replace(original, status=AdjustmentStatus.REVERSED)
            self._adjustments.append(reversal)
            self._record(
                AuditAction.ADJUSTMENT_REVERSED,
                original.employee_id,
                f"Reversed {original.category.value} '{original.adjustment_type}' "
                f"of {original.amount}: {reason}",
                reversed_by,
                subject_id=adjustment_id,
            )
            self._persist()
        return OperationResult.ok(reversal, "Adjustment reversed")

    # === Queries ===

    def get_adjustment(self, adjustment_id: str) -> Adjustment | None:
        with self._lock:
            return next(
                (a for a in self._adjustments if a.adjustment_id == adjustment_id), None
            )

    def entries_for(self, employee_id: str, week_start: date) -> list[Adjustment]:
        with self._lock:
            return [
                a
                for a in self._adjustments
                if a.employee_id == employee_id and a.week_start == week_start
            ]

    def total_deductions(self, employee_id: str, week_start: date) -> Decimal:
        """All deductions for the week, fuel included."""
        return sum_money(
            a.amount
            for a in self.entries_for(employee_id, week_start)
            if a.category == AdjustmentCategory.DEDUCTION
        )

    def fuel_deductions(self, employee_id: str, week_start: date) -> Decimal:
        return sum_money(a.amount for a in self.entries_for(employee_id, week_start) if a.is_fuel)

    def total_reimbursements(self, employee_id: str, week_start: date) -> Decimal:
        """Reimbursements for the week, excluding load bonuses."""
        return sum_money(
            a.amount
            for a in self.entries_for(employee_id, week_start)
            if a.category == AdjustmentCategory.REIMBURSEMENT and not a.is_bonus
        )

    def bonus_for_load(self, employee_id: str, week_start: date, load_number: str) -> Decimal:
        return sum_money(
            a.amount
            for a in self.entries_for(employee_id, week_start)
            if a.is_bonus and a.load_number == load_number
        )

    def total_bonuses(self, employee_id: str, week_start: date) -> Decimal:
        return sum_money(a.amount for a in self.entries_for(employee_id, week_start) if a.is_bonus)

    def total_by_category(self, employee_id: str, week_start: date) -> dict[str, Decimal]:
        totals: dict[str, Decimal] = {c.value: ZERO for c in AdjustmentCategory}
        for a in self.entries_for(employee_id, week_start):
            totals[a.category.value] += a.amount
        return totals

    def employee_summary(self, employee_id: str, start: date, end: date) -> AdjustmentSummary:
        with self._lock:
            entries = [
                a
                for a in self._adjustments
                if a.employee_id == employee_id and start <= a.week_start <= end
            ]
        return AdjustmentSummary(
            employee_id=employee_id,
            start=start,
            end=end,
            total_deductions=sum_money(
                a.amount for a in entries if a.category == AdjustmentCategory.DEDUCTION
            ),
            total_reimbursements=sum_money(
                a.amount
                for a in entries
                if a.category == AdjustmentCategory.REIMBURSEMENT and not a.is_bonus
            ),
            total_bonuses=sum_money(a.amount for a in entries if a.is_bonus),
            entry_count=len(entries),
        )
