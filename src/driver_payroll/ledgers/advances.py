"""Cash advance ledger.

Owns every Advance: creation with an amortized schedule, scheduled and
manual repayment, status lifecycle, balance queries and per-employee limits.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import uuid4

from pydantic import TypeAdapter

from driver_payroll.audit import AuditAction, AuditTrail
from driver_payroll.config import AdvancePolicy
from driver_payroll.ledgers.base import BaseLedger
from driver_payroll.ledgers.state_machine import AdvanceStateMachine, InvalidTransitionError
from driver_payroll.ledgers.types import (
    Advance,
    AdvanceStatus,
    EmployeeAdvanceSettings,
    ManualRepayment,
    PaymentMethod,
    Repayment,
    RepaymentBatch,
    StatusChange,
)
from driver_payroll.money import ZERO, amortize, is_whole_cents, sum_money, to_money
from driver_payroll.results import ErrorKind, OperationResult
from driver_payroll.storage import JsonFileStore

logger = logging.getLogger(__name__)


@dataclass
class AdvanceLedgerState:
    """Persisted form of the advance ledger."""

    advances: list[Advance] = field(default_factory=list)
    employee_settings: list[EmployeeAdvanceSettings] = field(default_factory=list)


_state_adapter = TypeAdapter(AdvanceLedgerState)


MIN_INSTALLMENT = Decimal("0.01")


def _money_str(amount: Decimal) -> str:
    return f"${amount:,.2f}"


class AdvanceLedger(BaseLedger):
    """Ledger of cash advances and their repayments."""

    kind = "advances"

    def __init__(
        self,
        policy: AdvancePolicy | None = None,
        store: JsonFileStore | None = None,
        audit: AuditTrail | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(store=store, audit=audit, clock=clock)
        self.policy = policy or AdvancePolicy()
        self._advances: dict[str, Advance] = {}
        self._settings: dict[str, EmployeeAdvanceSettings] = {}

    # === Persistence ===

    def _encode(self) -> Any:
        state = AdvanceLedgerState(
            advances=list(self._advances.values()),
            employee_settings=list(self._settings.values()),
        )
        return _state_adapter.dump_python(state, mode="json")

    def _decode(self, payload: Any) -> AdvanceLedgerState:
        return _state_adapter.validate_python(payload)

    def _restore(self, state: AdvanceLedgerState) -> None:
        self._advances = {a.advance_id: a for a in state.advances}
        self._settings = {s.employee_id: s for s in state.employee_settings}

    def _reset(self) -> None:
        self._advances = {}
        self._settings = {}

    # === Employee limits ===

    def get_employee_settings(self, employee_id: str) -> EmployeeAdvanceSettings:
        """Return the employee's overrides (all None when never set)."""
        with self._lock:
            return self._settings.get(employee_id, EmployeeAdvanceSettings(employee_id))

    def update_employee_settings(
        self,
        employee_id: str,
        updated_by: str,
        max_advance_amount: Decimal | None = None,
        max_repayment_weeks: int | None = None,
        max_active_advances: int | None = None,
    ) -> OperationResult[EmployeeAdvanceSettings]:
        """Set per-employee overrides of the advance policy."""
        if max_advance_amount is not None:
            max_advance_amount = to_money(max_advance_amount)
            if not (self.policy.min_amount <= max_advance_amount <= self.policy.max_outstanding):
                return self._reject(
                    ErrorKind.VALIDATION,
                    f"Maximum advance must be between {_money_str(self.policy.min_amount)} "
                    f"and {_money_str(self.policy.max_outstanding)}",
                )
        if max_repayment_weeks is not None and not (
            self.policy.min_weeks <= max_repayment_weeks <= self.policy.max_weeks
        ):
            return self._reject(
                ErrorKind.VALIDATION,
                f"Maximum repayment weeks must be between {self.policy.min_weeks} "
                f"and {self.policy.max_weeks}",
            )
        if max_active_advances is not None and max_active_advances < 1:
            return self._reject(
                ErrorKind.VALIDATION, "Maximum active advances must be at least 1"
            )

        settings = EmployeeAdvanceSettings(
            employee_id=employee_id,
            max_advance_amount=max_advance_amount,
            max_repayment_weeks=max_repayment_weeks,
            max_active_advances=max_active_advances,
            updated_by=updated_by,
            updated_at=self._now(),
        )
        with self._lock:
            self._settings[employee_id] = settings
            self._record(
                AuditAction.SETTINGS_UPDATED,
                employee_id,
                f"Advance limits: max amount={max_advance_amount}, "
                f"max weeks={max_repayment_weeks}, max active={max_active_advances}",
                updated_by,
            )
            self._persist()
        return OperationResult.ok(settings, "Advance settings updated")

    def _limits(self, employee_id: str) -> tuple[Decimal, int, int]:
        settings = self._settings.get(employee_id)
        max_amount = self.policy.max_amount
        max_weeks = self.policy.max_weeks
        max_active = self.policy.max_active_advances
        if settings is not None:
            if settings.max_advance_amount is not None:
                max_amount = settings.max_advance_amount
            if settings.max_repayment_weeks is not None:
                max_weeks = settings.max_repayment_weeks
            if settings.max_active_advances is not None:
                max_active = settings.max_active_advances
        return max_amount, max_weeks, max_active

    # === Creation ===

    def create_advance(
        self,
        employee_id: str,
        employee_name: str,
        amount: Decimal | str,
        notes: str,
        date_given: date,
        weeks_to_repay: int,
        approved_by: str,
    ) -> OperationResult[Advance]:
        """Grant an advance and build its repayment schedule.

        Checks run in order and stop at the first failure: amount bounds,
        week bounds, active advance count, outstanding cap, overdue advance.
        """
        amount = to_money(amount)
        with self._lock:
            max_amount, max_weeks, max_active = self._limits(employee_id)

            if not is_whole_cents(amount):
                return self._reject(ErrorKind.VALIDATION, "Advance amount must be in whole cents")
            if amount < self.policy.min_amount or amount > max_amount:
                return self._reject(
                    ErrorKind.VALIDATION,
                    f"Advance amount must be between {_money_str(self.policy.min_amount)} "
                    f"and {_money_str(max_amount)}",
                )
            if weeks_to_repay < self.policy.min_weeks or weeks_to_repay > max_weeks:
                return self._reject(
                    ErrorKind.VALIDATION,
                    f"Repayment weeks must be between {self.policy.min_weeks} and {max_weeks}",
                )
            if amount / weeks_to_repay < MIN_INSTALLMENT:
                return self._reject(
                    ErrorKind.VALIDATION,
                    f"Advance of {_money_str(amount)} is too small to repay over "
                    f"{weeks_to_repay} weeks",
                )

            active = self._active_for(employee_id)
            if len(active) >= max_active:
                return self._reject(
                    ErrorKind.VALIDATION,
                    f"Employee already has {len(active)} active advance(s) (maximum {max_active})",
                )

            outstanding = sum_money(a.remaining_balance for a in active)
            if outstanding + amount > self.policy.max_outstanding:
                return self._reject(
                    ErrorKind.VALIDATION,
                    f"Outstanding balance {_money_str(outstanding)} plus {_money_str(amount)} "
                    f"exceeds the limit of {_money_str(self.policy.max_outstanding)}",
                )

            today = self._today()
            overdue = [a for a in active if a.is_overdue(today)]
            if overdue:
                return self._reject(
                    ErrorKind.VALIDATION,
                    f"Employee has an overdue advance ({overdue[0].advance_id})",
                )

            advance_id = f"ADV-{today:%Y%m%d}-{uuid4().hex[:6].upper()}"
            first_repayment = date_given + timedelta(weeks=1)
            repayments = [
                Repayment(
                    repayment_id=f"{advance_id}-W{week + 1:02d}",
                    week_date=first_repayment + timedelta(weeks=week),
                    scheduled_amount=installment,
                )
                for week, installment in enumerate(amortize(amount, weeks_to_repay))
            ]
            advance = Advance(
                advance_id=advance_id,
                employee_id=employee_id,
                employee_name=employee_name,
                amount=amount,
                date_given=date_given,
                first_repayment_date=first_repayment,
                weeks_to_repay=weeks_to_repay,
                approved_by=approved_by,
                notes=notes,
                last_modified=self._now(),
                repayments=repayments,
            )
            self._advances[advance_id] = advance
            self._record(
                AuditAction.ADVANCE_CREATED,
                employee_id,
                f"Advance of {_money_str(amount)} over {weeks_to_repay} week(s), "
                f"first repayment {first_repayment.isoformat()}",
                approved_by,
                subject_id=advance_id,
            )
            self._persist()
            logger.info(
                "Created advance %s for employee %s: %s over %d weeks",
                advance_id,
                employee_id,
                amount,
                weeks_to_repay,
            )
            return OperationResult.ok(self._snapshot(advance), "Advance created")

    # === Repayment ===

    def process_scheduled_repayment(
        self,
        employee_id: str,
        week_start: date,
        processed_by: str,
        note: str = "",
        amount: Decimal | str | None = None,
        advance_id: str | None = None,
    ) -> OperationResult[RepaymentBatch]:
        """Mark the installments due in ``week_start``..``week_start + 6`` paid.

        Without ``amount`` each due row is paid its outstanding amount. An
        explicit ``amount`` closes exactly one row, so when several advances
        are due that week the caller must name ``advance_id``.
        """
        week_end = week_start + timedelta(days=6)
        with self._lock:
            if advance_id is not None:
                target = self._advances.get(advance_id)
                if target is None or target.employee_id != employee_id:
                    return self._reject(ErrorKind.NOT_FOUND, f"Advance {advance_id} not found")
                if not AdvanceStateMachine.accepts_repayments(target.status):
                    return self._reject(
                        ErrorKind.ILLEGAL_STATE,
                        f"Advance {advance_id} is {target.status.value}, not ACTIVE",
                    )
                advances = [target]
            else:
                advances = self._active_for(employee_id)

            rows = [
                (advance, row)
                for advance in advances
                for row in advance.repayments
                if week_start <= row.week_date <= week_end
            ]
            if not rows:
                return self._reject(
                    ErrorKind.NOT_FOUND,
                    f"No repayment due for employee {employee_id} in week of {week_start.isoformat()}",
                )
            due = [(advance, row) for advance, row in rows if not row.is_paid]
            if not due:
                return self._reject(
                    ErrorKind.ILLEGAL_STATE,
                    f"Repayment for week of {week_start.isoformat()} is already paid",
                )

            explicit: Decimal | None = None
            if amount is not None:
                explicit = to_money(amount)
                if len(due) != 1:
                    return self._reject(
                        ErrorKind.VALIDATION,
                        f"{len(due)} advances are due this week; specify the advance for an explicit amount",
                    )
                row_due = due[0][1].amount_due
                if explicit <= 0 or not is_whole_cents(explicit):
                    return self._reject(
                        ErrorKind.VALIDATION, "Repayment amount must be a positive amount in cents"
                    )
                if explicit > row_due:
                    return self._reject(
                        ErrorKind.VALIDATION,
                        f"Repayment {_money_str(explicit)} exceeds amount due {_money_str(row_due)}",
                    )

            today = self._today()
            total = ZERO
            updated: list[tuple[str, Repayment]] = []
            completed: list[str] = []
            for advance, row in due:
                paid = explicit if explicit is not None else row.amount_due
                row.paid_amount += paid
                row.payroll_amount += paid
                total += paid
                row.is_paid = True
                row.paid_date = today
                row.processed_by = processed_by
                row.note = note
                advance.last_modified = self._now()
                self._record(
                    AuditAction.REPAYMENT_PROCESSED,
                    employee_id,
                    f"Scheduled repayment {row.repayment_id}: {_money_str(paid)}",
                    processed_by,
                    subject_id=advance.advance_id,
                )
                updated.append((advance.advance_id, self._snapshot(row)))
                if self._check_completion(advance, processed_by):
                    completed.append(advance.advance_id)
            self._persist()

            batch = RepaymentBatch(
                employee_id=employee_id,
                week_start=week_start,
                total=total,
                repayments=tuple(updated),
                completed_advance_ids=tuple(completed),
            )
            logger.info(
                "Processed %d scheduled repayment(s) for employee %s, week %s: %s",
                len(updated),
                employee_id,
                week_start,
                batch.total,
            )
            return OperationResult.ok(batch, f"Processed {len(updated)} repayment(s)")

    def add_manual_repayment(
        self,
        employee_id: str,
        advance_id: str,
        payment_date: date,
        amount: Decimal | str,
        note: str,
        processed_by: str,
        payment_method: PaymentMethod | str = PaymentMethod.OTHER,
        reference: str = "",
    ) -> OperationResult[ManualRepayment]:
        """Record a payment outside the schedule and allocate it oldest week first."""
        amount = to_money(amount)
        if amount <= 0 or not is_whole_cents(amount):
            return self._reject(
                ErrorKind.VALIDATION, "Manual repayment must be a positive amount in cents"
            )
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            return self._reject(ErrorKind.VALIDATION, f"Unknown payment method: {payment_method}")

        with self._lock:
            advance = self._advances.get(advance_id)
            if advance is None or advance.employee_id != employee_id:
                return self._reject(ErrorKind.NOT_FOUND, f"Advance {advance_id} not found")
            if not AdvanceStateMachine.accepts_repayments(advance.status):
                return self._reject(
                    ErrorKind.ILLEGAL_STATE,
                    f"Advance {advance_id} is {advance.status.value}, not ACTIVE",
                )

            manual_id = f"MAN-{uuid4().hex[:10].upper()}"
            remaining = amount
            for row in sorted(advance.repayments, key=lambda r: r.week_date):
                if row.is_paid:
                    continue
                # Rows with nothing left due close without using any of the payment
                apply = min(remaining, max(row.scheduled_amount - row.paid_amount, ZERO))
                row.paid_amount += apply
                remaining -= apply
                if row.paid_amount >= row.scheduled_amount:
                    row.is_paid = True
                    row.paid_date = payment_date
                    row.processed_by = processed_by
                    row.note = f"Manual payment {manual_id}"

            manual = ManualRepayment(
                manual_id=manual_id,
                payment_date=payment_date,
                amount=amount,
                note=note,
                processed_by=processed_by,
                payment_method=method,
                reference=reference,
                applied_amount=amount - remaining,
                created_at=self._now(),
            )
            advance.manual_repayments.append(manual)
            advance.last_modified = self._now()
            details = f"Manual repayment {manual_id} of {_money_str(amount)} via {method.value}"
            if remaining > 0:
                details += f", {_money_str(remaining)} unapplied"
                logger.warning(
                    "Manual repayment %s exceeds balance of %s by %s",
                    manual_id,
                    advance_id,
                    remaining,
                )
            self._record(
                AuditAction.MANUAL_REPAYMENT,
                employee_id,
                details,
                processed_by,
                subject_id=advance_id,
            )
            self._check_completion(advance, processed_by)
            self._persist()
            return OperationResult.ok(manual, "Manual repayment recorded")

    def _check_completion(self, advance: Advance, actor: str) -> bool:
        """Move a fully paid ACTIVE advance to COMPLETED."""
        if advance.status != AdvanceStatus.ACTIVE or not advance.is_fully_paid:
            return False
        self._transition(advance, AdvanceStatus.COMPLETED, "All scheduled repayments paid", actor)
        self._record(
            AuditAction.ADVANCE_COMPLETED,
            advance.employee_id,
            f"Advance of {_money_str(advance.amount)} fully repaid",
            actor,
            subject_id=advance.advance_id,
        )
        logger.info("Advance %s completed", advance.advance_id)
        return True

    # === Status ===

    def change_status(
        self,
        advance_id: str,
        new_status: AdvanceStatus | str,
        reason: str,
        changed_by: str,
    ) -> OperationResult[Advance]:
        """Move an advance to a new status through the state machine."""
        try:
            target = AdvanceStatus(new_status)
        except ValueError:
            return self._reject(ErrorKind.VALIDATION, f"Unknown advance status: {new_status}")

        with self._lock:
            advance = self._advances.get(advance_id)
            if advance is None:
                return self._reject(ErrorKind.NOT_FOUND, f"Advance {advance_id} not found")
            if advance.status == target:
                return OperationResult.ok(self._snapshot(advance), "Status unchanged")
            try:
                AdvanceStateMachine.validate_transition(advance.status, target)
            except InvalidTransitionError as e:
                return self._reject(ErrorKind.ILLEGAL_STATE, str(e))
            errors = AdvanceStateMachine.validate_advance_for_transition(advance, target)
            if errors:
                return self._reject(ErrorKind.ILLEGAL_STATE, "; ".join(errors))

            self._transition(advance, target, reason, changed_by)
            self._persist()
            return OperationResult.ok(
                self._snapshot(advance), f"Advance {advance_id} is now {target.value}"
            )

    def cancel_advance(self, advance_id: str, reason: str, changed_by: str) -> OperationResult[Advance]:
        return self.change_status(advance_id, AdvanceStatus.CANCELLED, reason, changed_by)

    def forgive_advance(self, advance_id: str, reason: str, changed_by: str) -> OperationResult[Advance]:
        return self.change_status(advance_id, AdvanceStatus.FORGIVEN, reason, changed_by)

    def mark_defaulted(self, advance_id: str, reason: str, changed_by: str) -> OperationResult[Advance]:
        return self.change_status(advance_id, AdvanceStatus.DEFAULTED, reason, changed_by)

    def _transition(
        self, advance: Advance, to_status: AdvanceStatus, reason: str, actor: str
    ) -> None:
        AdvanceStateMachine.validate_transition(advance.status, to_status)
        now = self._now()
        advance.status_history.append(
            StatusChange(
                changed_at=now,
                from_status=advance.status,
                to_status=to_status,
                reason=reason,
                changed_by=actor,
            )
        )
        self._record(
            AuditAction.STATUS_CHANGED,
            advance.employee_id,
            f"{advance.status.value} -> {to_status.value}: {reason}",
            actor,
            subject_id=advance.advance_id,
        )
        advance.status = to_status
        advance.last_modified = now
        if to_status == AdvanceStatus.COMPLETED:
            advance.completed_date = now.date()

    # === Queries ===

    def _active_for(self, employee_id: str) -> list[Advance]:
        return [
            a
            for a in self._advances.values()
            if a.employee_id == employee_id and a.status == AdvanceStatus.ACTIVE
        ]

    def _require(self, advance_id: str) -> Advance:
        advance = self._advances.get(advance_id)
        if advance is None:
            raise KeyError(advance_id)
        return advance

    def get_advance(self, advance_id: str) -> Advance | None:
        with self._lock:
            advance = self._advances.get(advance_id)
            return self._snapshot(advance) if advance is not None else None

    def all_advances(self) -> list[Advance]:
        with self._lock:
            return self._snapshot(list(self._advances.values()))

    def advances_for_employee(
        self, employee_id: str, status: AdvanceStatus | str | None = None
    ) -> list[Advance]:
        """Employee's advances, newest first."""
        with self._lock:
            found = [
                a
                for a in self._advances.values()
                if a.employee_id == employee_id and (status is None or a.status == status)
            ]
            found.reverse()
            found.sort(key=lambda a: a.date_given, reverse=True)
            return self._snapshot(found)

    def active_advances(self, employee_id: str | None = None) -> list[Advance]:
        with self._lock:
            found = [
                a
                for a in self._advances.values()
                if a.status == AdvanceStatus.ACTIVE
                and (employee_id is None or a.employee_id == employee_id)
            ]
            return self._snapshot(found)

    def active_advance_count(self, employee_id: str) -> int:
        with self._lock:
            return len(self._active_for(employee_id))

    def repayment_schedule(self, advance_id: str) -> list[Repayment]:
        with self._lock:
            return self._snapshot(self._require(advance_id).repayments)

    def remaining_balance(self, advance_id: str) -> Decimal:
        with self._lock:
            return self._require(advance_id).remaining_balance

    def total_paid(self, advance_id: str) -> Decimal:
        with self._lock:
            return self._require(advance_id).total_paid

    def outstanding_balance(self, employee_id: str) -> Decimal:
        """Remaining balance over the employee's ACTIVE advances only."""
        with self._lock:
            return sum_money(a.remaining_balance for a in self._active_for(employee_id))

    def total_advanced(self, employee_id: str) -> Decimal:
        """Total granted to the employee, excluding cancelled advances."""
        with self._lock:
            return sum_money(
                a.amount
                for a in self._advances.values()
                if a.employee_id == employee_id and a.status != AdvanceStatus.CANCELLED
            )

    def total_repaid(self, employee_id: str) -> Decimal:
        with self._lock:
            return sum_money(
                a.total_paid for a in self._advances.values() if a.employee_id == employee_id
            )

    def is_overdue(self, advance_id: str) -> bool:
        with self._lock:
            return self._require(advance_id).is_overdue(self._today())

    def missed_payment_count(self, advance_id: str) -> int:
        with self._lock:
            return self._require(advance_id).missed_payment_count(self._today())

    def overdue_advances(self, employee_id: str | None = None) -> list[Advance]:
        with self._lock:
            today = self._today()
            found = [
                a
                for a in self._advances.values()
                if a.is_overdue(today) and (employee_id is None or a.employee_id == employee_id)
            ]
            return self._snapshot(found)

    def scheduled_repayment_for_week(self, employee_id: str, week_start: date) -> Decimal:
        """Amount still due in the week across the employee's ACTIVE advances."""
        week_end = week_start + timedelta(days=6)
        with self._lock:
            return sum_money(
                row.amount_due
                for advance in self._active_for(employee_id)
                for row in advance.repayments
                if week_start <= row.week_date <= week_end
            )

    def advances_given_between(self, employee_id: str, start: date, end: date) -> Decimal:
        """Sum of advances created with ``date_given`` in ``start..end``."""
        with self._lock:
            return sum_money(
                a.amount
                for a in self._advances.values()
                if a.employee_id == employee_id and start <= a.date_given <= end
            )

    def repayments_between(self, employee_id: str, start: date, end: date) -> Decimal:
        """Repayments already collected in ``start..end``.

        Scheduled payroll deductions count by installment week, manual
        repayments by payment date.
        """
        with self._lock:
            total = ZERO
            for advance in self._advances.values():
                if advance.employee_id != employee_id:
                    continue
                total += sum_money(
                    row.payroll_amount
                    for row in advance.repayments
                    if start <= row.week_date <= end
                )
                total += sum_money(
                    m.applied_amount
                    for m in advance.manual_repayments
                    if start <= m.payment_date <= end
                )
            return total

