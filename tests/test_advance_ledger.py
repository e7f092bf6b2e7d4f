"""Tests for the cash advance ledger."""

import json
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

from driver_payroll.audit import AuditAction
from driver_payroll.config import AdvancePolicy
from driver_payroll.ledgers.advances import AdvanceLedger
from driver_payroll.ledgers.types import AdvanceStatus, PaymentMethod
from driver_payroll.results import ErrorKind
from driver_payroll.storage import JsonFileStore
from tests.conftest import FixedClock

GIVEN = date(2026, 3, 2)
FIRST_WEEK = date(2026, 3, 9)


def _create(ledger: AdvanceLedger, amount: str = "1000.00", weeks: int = 4, employee: str = "E1"):
    return ledger.create_advance(
        employee_id=employee,
        employee_name="Dana Ruiz",
        amount=Decimal(amount),
        notes="tires",
        date_given=GIVEN,
        weeks_to_repay=weeks,
        approved_by="manager",
    )


class TestCreateAdvance:
    """Test advance creation and schedule building."""

    def test_thousand_over_four_weeks(self, advance_ledger: AdvanceLedger):
        result = _create(advance_ledger)

        assert result.success
        advance = result.value
        assert advance.status == AdvanceStatus.ACTIVE
        assert advance.first_repayment_date == FIRST_WEEK
        assert [r.scheduled_amount for r in advance.repayments] == [Decimal("250.00")] * 4
        assert [r.week_date for r in advance.repayments] == [
            FIRST_WEEK + timedelta(weeks=i) for i in range(4)
        ]
        assert advance.scheduled_total == Decimal("1000.00")
        assert advance.advance_id.startswith("ADV-")

    def test_remainder_on_first_installment(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger, "1000.00", 3).value

        assert [r.scheduled_amount for r in advance.repayments] == [
            Decimal("333.34"),
            Decimal("333.33"),
            Decimal("333.33"),
        ]

    def test_creation_is_audited(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger).value

        entries = advance_ledger.audit.get_audit_trail("E1")
        assert len(entries) == 1
        assert entries[0].action == AuditAction.ADVANCE_CREATED
        assert entries[0].subject_id == advance.advance_id
        assert entries[0].performed_by == "manager"

    def test_below_minimum_creates_nothing(self, advance_ledger: AdvanceLedger):
        result = _create(advance_ledger, "49.99")

        assert not result.success
        assert result.error == ErrorKind.VALIDATION
        assert advance_ledger.advances_for_employee("E1") == []
        assert len(advance_ledger.audit) == 0

    def test_above_maximum_rejected(self, advance_ledger: AdvanceLedger):
        result = _create(advance_ledger, "5000.01")
        assert not result.success
        assert "between" in result.message

    def test_fractional_cents_rejected(self, advance_ledger: AdvanceLedger):
        assert not _create(advance_ledger, "100.005").success

    @pytest.mark.parametrize("weeks", [0, 27])
    def test_week_bounds(self, advance_ledger: AdvanceLedger, weeks: int):
        result = _create(advance_ledger, weeks=weeks)
        assert not result.success
        assert "weeks" in result.message

    def test_amount_checked_before_weeks(self, advance_ledger: AdvanceLedger):
        result = _create(advance_ledger, "10.00", weeks=0)
        assert "amount" in result.message

    def test_second_active_advance_rejected(self, advance_ledger: AdvanceLedger):
        _create(advance_ledger, "500.00")
        result = _create(advance_ledger, "500.00")

        assert not result.success
        assert "active advance" in result.message
        assert advance_ledger.active_advance_count("E1") == 1

    def test_outstanding_cap_rejected_without_mutation(self, clock: FixedClock):
        ledger = AdvanceLedger(
            policy=AdvancePolicy(max_active_advances=3, max_outstanding=Decimal("5000.00")),
            clock=clock,
        )
        assert _create(ledger, "3000.00").success
        audit_before = len(ledger.audit)

        result = _create(ledger, "2500.00")

        assert not result.success
        assert "exceeds the limit" in result.message
        assert len(ledger.advances_for_employee("E1")) == 1
        assert len(ledger.audit) == audit_before

    def test_overdue_advance_blocks_new_one(self, clock: FixedClock):
        ledger = AdvanceLedger(policy=AdvancePolicy(max_active_advances=2), clock=clock)
        _create(ledger, "200.00", weeks=2)
        clock.advance(days=10)  # 2026-03-12, week of 03-09 unpaid

        result = _create(ledger, "100.00")

        assert not result.success
        assert "overdue" in result.message

    def test_employee_settings_override_limits(self, advance_ledger: AdvanceLedger):
        advance_ledger.update_employee_settings(
            "E1", updated_by="manager", max_advance_amount=Decimal("300.00")
        )
        assert not _create(advance_ledger, "400.00").success
        assert _create(advance_ledger, "300.00").success
        assert advance_ledger.get_employee_settings("E1").max_advance_amount == Decimal("300.00")

    def test_invalid_employee_settings_rejected(self, advance_ledger: AdvanceLedger):
        result = advance_ledger.update_employee_settings(
            "E1", updated_by="manager", max_active_advances=0
        )
        assert not result.success
        assert advance_ledger.get_employee_settings("E1").max_active_advances is None

    def test_employee_weeks_override_capped_by_policy(self, advance_ledger: AdvanceLedger):
        result = advance_ledger.update_employee_settings(
            "E1", updated_by="manager", max_repayment_weeks=10000
        )

        assert not result.success
        assert result.error == ErrorKind.VALIDATION
        assert advance_ledger.get_employee_settings("E1").max_repayment_weeks is None

    def test_installment_below_one_cent_rejected(self, clock: FixedClock):
        ledger = AdvanceLedger(policy=AdvancePolicy(min_amount=Decimal("0.05")), clock=clock)

        result = _create(ledger, "0.05", weeks=6)

        assert not result.success
        assert "too small" in result.message
        assert ledger.all_advances() == []
        assert _create(ledger, "0.05", weeks=5).success


class TestScheduledRepayment:
    """Test weekly payroll repayments."""

    def test_pays_row_due_in_week(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger).value

        result = advance_ledger.process_scheduled_repayment("E1", FIRST_WEEK, "payroll")

        assert result.success
        assert result.value.total == Decimal("250.00")
        row = advance_ledger.repayment_schedule(advance.advance_id)[0]
        assert row.is_paid
        assert row.paid_amount == Decimal("250.00")
        assert row.processed_by == "payroll"
        assert advance_ledger.remaining_balance(advance.advance_id) == Decimal("750.00")

    def test_row_inside_week_window_matches(self, advance_ledger: AdvanceLedger):
        _create(advance_ledger)
        # week starting the Saturday before still covers the 03-09 installment
        result = advance_ledger.process_scheduled_repayment("E1", date(2026, 3, 7), "payroll")
        assert result.success

    def test_no_row_due_is_not_found(self, advance_ledger: AdvanceLedger):
        _create(advance_ledger)
        result = advance_ledger.process_scheduled_repayment("E1", date(2026, 6, 1), "payroll")

        assert not result.success
        assert result.error == ErrorKind.NOT_FOUND

    def test_paid_row_is_immutable(self, advance_ledger: AdvanceLedger):
        _create(advance_ledger)
        advance_ledger.process_scheduled_repayment("E1", FIRST_WEEK, "payroll")

        result = advance_ledger.process_scheduled_repayment("E1", FIRST_WEEK, "payroll")

        assert not result.success
        assert result.error == ErrorKind.ILLEGAL_STATE

    def test_explicit_amount_cannot_exceed_due(self, advance_ledger: AdvanceLedger):
        _create(advance_ledger)
        result = advance_ledger.process_scheduled_repayment(
            "E1", FIRST_WEEK, "payroll", amount=Decimal("250.01")
        )
        assert not result.success
        assert result.error == ErrorKind.VALIDATION

    def test_explicit_amount_closes_row(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger).value
        result = advance_ledger.process_scheduled_repayment(
            "E1", FIRST_WEEK, "payroll", amount=Decimal("200.00")
        )

        assert result.value.total == Decimal("200.00")
        row = advance_ledger.repayment_schedule(advance.advance_id)[0]
        assert row.is_paid
        assert row.paid_amount == Decimal("200.00")

    def test_last_row_completes_advance(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger, "500.00", weeks=2).value
        advance_ledger.process_scheduled_repayment("E1", FIRST_WEEK, "payroll")

        result = advance_ledger.process_scheduled_repayment(
            "E1", FIRST_WEEK + timedelta(weeks=1), "payroll"
        )

        assert result.value.completed_advance_ids == (advance.advance_id,)
        completed = advance_ledger.get_advance(advance.advance_id)
        assert completed.status == AdvanceStatus.COMPLETED
        assert completed.completed_date == date(2026, 3, 2)
        assert completed.status_history[-1].to_status == AdvanceStatus.COMPLETED
        assert advance_ledger.outstanding_balance("E1") == Decimal("0.00")

    def test_rejected_for_inactive_advance(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger).value
        advance_ledger.forgive_advance(advance.advance_id, "hardship", "manager")

        result = advance_ledger.process_scheduled_repayment(
            "E1", FIRST_WEEK, "payroll", advance_id=advance.advance_id
        )
        assert result.error == ErrorKind.ILLEGAL_STATE


class TestMultipleAdvances:
    """Test repayments across concurrently active advances."""

    @pytest.fixture
    def ledger(self, clock: FixedClock) -> AdvanceLedger:
        return AdvanceLedger(policy=AdvancePolicy(max_active_advances=2), clock=clock)

    def test_one_call_pays_every_due_row(self, ledger: AdvanceLedger):
        _create(ledger, "400.00", weeks=4)
        _create(ledger, "600.00", weeks=3)

        result = ledger.process_scheduled_repayment("E1", FIRST_WEEK, "payroll")

        assert result.value.total == Decimal("300.00")
        assert len(result.value.repayments) == 2

    def test_explicit_amount_needs_advance_id(self, ledger: AdvanceLedger):
        _create(ledger, "400.00", weeks=4)
        second = _create(ledger, "600.00", weeks=3).value

        ambiguous = ledger.process_scheduled_repayment(
            "E1", FIRST_WEEK, "payroll", amount=Decimal("50.00")
        )
        assert ambiguous.error == ErrorKind.VALIDATION

        targeted = ledger.process_scheduled_repayment(
            "E1", FIRST_WEEK, "payroll", amount=Decimal("50.00"), advance_id=second.advance_id
        )
        assert targeted.success

    def test_outstanding_counts_only_active(self, ledger: AdvanceLedger):
        first = _create(ledger, "400.00", weeks=4).value
        _create(ledger, "600.00", weeks=3)
        ledger.mark_defaulted(first.advance_id, "left company", "manager")

        assert ledger.outstanding_balance("E1") == Decimal("600.00")
        assert ledger.total_advanced("E1") == Decimal("1000.00")


class TestManualRepayment:
    """Test greedy allocation of manual payments."""

    def test_partial_allocation_across_weeks(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger).value

        result = advance_ledger.add_manual_repayment(
            "E1",
            advance.advance_id,
            date(2026, 3, 5),
            Decimal("333.33"),
            "cash at terminal",
            "clerk",
            payment_method=PaymentMethod.CASH,
        )

        assert result.success
        manual = result.value
        assert manual.amount == Decimal("333.33")
        assert manual.applied_amount == Decimal("333.33")
        rows = advance_ledger.repayment_schedule(advance.advance_id)
        assert rows[0].is_paid and rows[0].paid_amount == Decimal("250.00")
        assert rows[0].paid_date == date(2026, 3, 5)
        assert rows[0].note == f"Manual payment {manual.manual_id}"
        assert not rows[1].is_paid and rows[1].paid_amount == Decimal("83.33")
        assert advance_ledger.remaining_balance(advance.advance_id) == Decimal("666.67")

    def test_scheduled_payment_after_partial_manual_pays_remainder(
        self, advance_ledger: AdvanceLedger
    ):
        advance = _create(advance_ledger).value
        advance_ledger.add_manual_repayment(
            "E1", advance.advance_id, date(2026, 3, 5), Decimal("333.33"), "", "clerk"
        )

        result = advance_ledger.process_scheduled_repayment(
            "E1", FIRST_WEEK + timedelta(weeks=1), "payroll"
        )

        assert result.value.total == Decimal("166.67")
        assert advance_ledger.total_paid(advance.advance_id) == Decimal("500.00")

    def test_overpayment_remainder_retained_without_credit(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger, "100.00", weeks=1).value

        manual = advance_ledger.add_manual_repayment(
            "E1", advance.advance_id, date(2026, 3, 5), Decimal("150.00"), "", "clerk"
        ).value

        assert manual.amount == Decimal("150.00")
        assert manual.applied_amount == Decimal("100.00")
        assert manual.unapplied_amount == Decimal("50.00")
        updated = advance_ledger.get_advance(advance.advance_id)
        assert updated.total_paid == Decimal("100.00")
        assert updated.status == AdvanceStatus.COMPLETED
        week_end = GIVEN + timedelta(days=6)
        assert advance_ledger.repayments_between("E1", GIVEN, week_end) == Decimal("100.00")

    @pytest.mark.parametrize("amount", ["0", "-5.00"])
    def test_non_positive_rejected(self, advance_ledger: AdvanceLedger, amount: str):
        advance = _create(advance_ledger).value
        result = advance_ledger.add_manual_repayment(
            "E1", advance.advance_id, date(2026, 3, 5), Decimal(amount), "", "clerk"
        )
        assert result.error == ErrorKind.VALIDATION
        assert advance_ledger.get_advance(advance.advance_id).manual_repayments == []

    def test_unknown_advance_not_found(self, advance_ledger: AdvanceLedger):
        result = advance_ledger.add_manual_repayment(
            "E1", "ADV-missing", date(2026, 3, 5), Decimal("10.00"), "", "clerk"
        )
        assert result.error == ErrorKind.NOT_FOUND

    def test_inactive_advance_illegal_state(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger).value
        advance_ledger.cancel_advance(advance.advance_id, "not needed", "manager")

        result = advance_ledger.add_manual_repayment(
            "E1", advance.advance_id, date(2026, 3, 5), Decimal("10.00"), "", "clerk"
        )
        assert result.error == ErrorKind.ILLEGAL_STATE


class TestStatusChanges:
    """Test explicit status transitions."""

    def test_cancel_unpaid_advance(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger).value

        result = advance_ledger.cancel_advance(advance.advance_id, "entered twice", "manager")

        assert result.success
        assert result.value.status == AdvanceStatus.CANCELLED
        change = result.value.status_history[-1]
        assert change.from_status == AdvanceStatus.ACTIVE
        assert change.reason == "entered twice"
        actions = [e.action for e in advance_ledger.audit.get_audit_trail("E1")]
        assert actions[0] == AuditAction.STATUS_CHANGED

    def test_cancel_after_repayment_fails(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger).value
        advance_ledger.process_scheduled_repayment("E1", FIRST_WEEK, "payroll")

        result = advance_ledger.cancel_advance(advance.advance_id, "oops", "manager")

        assert not result.success
        assert result.error == ErrorKind.ILLEGAL_STATE
        assert advance_ledger.get_advance(advance.advance_id).status == AdvanceStatus.ACTIVE

    def test_same_status_is_noop(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger).value
        audit_before = len(advance_ledger.audit)

        result = advance_ledger.change_status(advance.advance_id, "ACTIVE", "none", "manager")

        assert result.success
        assert result.value.status_history == []
        assert len(advance_ledger.audit) == audit_before

    def test_terminal_status_never_changes(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger).value
        advance_ledger.forgive_advance(advance.advance_id, "hardship", "manager")

        result = advance_ledger.mark_defaulted(advance.advance_id, "late", "manager")

        assert result.error == ErrorKind.ILLEGAL_STATE
        assert advance_ledger.get_advance(advance.advance_id).status == AdvanceStatus.FORGIVEN

    def test_completed_requires_full_payment(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger).value
        result = advance_ledger.change_status(
            advance.advance_id, AdvanceStatus.COMPLETED, "manual close", "manager"
        )
        assert result.error == ErrorKind.ILLEGAL_STATE

    def test_unknown_status_and_advance(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger).value
        assert advance_ledger.change_status(advance.advance_id, "PAUSED", "", "m").error == (
            ErrorKind.VALIDATION
        )
        assert advance_ledger.change_status("ADV-x", "FORGIVEN", "", "m").error == (
            ErrorKind.NOT_FOUND
        )


class TestQueries:
    """Test balances, overdue detection and snapshots."""

    def test_overdue_detection(self, advance_ledger: AdvanceLedger, clock: FixedClock):
        advance = _create(advance_ledger).value
        assert not advance_ledger.is_overdue(advance.advance_id)

        clock.advance(days=15)  # 2026-03-17: weeks of 03-09 and 03-16 are past

        assert advance_ledger.is_overdue(advance.advance_id)
        assert advance_ledger.missed_payment_count(advance.advance_id) == 2
        assert [a.advance_id for a in advance_ledger.overdue_advances("E1")] == [
            advance.advance_id
        ]

    def test_week_due_today_is_not_overdue(self, advance_ledger: AdvanceLedger, clock: FixedClock):
        advance = _create(advance_ledger).value
        clock.advance(days=7)  # exactly 2026-03-09
        assert not advance_ledger.is_overdue(advance.advance_id)

    def test_snapshots_do_not_leak(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger).value
        snapshot = advance_ledger.get_advance(advance.advance_id)
        snapshot.repayments[0].is_paid = True
        snapshot.status = AdvanceStatus.CANCELLED

        fresh = advance_ledger.get_advance(advance.advance_id)
        assert fresh.status == AdvanceStatus.ACTIVE
        assert not fresh.repayments[0].is_paid

    def test_scheduled_repayment_for_week(self, advance_ledger: AdvanceLedger):
        _create(advance_ledger)
        assert advance_ledger.scheduled_repayment_for_week("E1", FIRST_WEEK) == Decimal("250.00")
        assert advance_ledger.scheduled_repayment_for_week("E1", GIVEN) == Decimal("0.00")

    def test_repayments_between(self, advance_ledger: AdvanceLedger):
        advance = _create(advance_ledger).value
        advance_ledger.process_scheduled_repayment("E1", FIRST_WEEK, "payroll")
        advance_ledger.add_manual_repayment(
            "E1", advance.advance_id, date(2026, 3, 11), Decimal("40.00"), "", "clerk"
        )

        week_end = FIRST_WEEK + timedelta(days=6)
        assert advance_ledger.repayments_between("E1", FIRST_WEEK, week_end) == Decimal("290.00")
        assert advance_ledger.advances_given_between("E1", GIVEN, GIVEN + timedelta(days=6)) == (
            Decimal("1000.00")
        )
        assert advance_ledger.total_repaid("E1") == Decimal("290.00")

    def test_advances_for_employee_newest_first(self, clock: FixedClock):
        ledger = AdvanceLedger(policy=AdvancePolicy(max_active_advances=3), clock=clock)
        ledger.create_advance("E1", "D", Decimal("100.00"), "", date(2026, 3, 2), 1, "m")
        ledger.create_advance("E1", "D", Decimal("100.00"), "", date(2026, 3, 1), 1, "m")
        ledger.create_advance("E1", "D", Decimal("100.00"), "", date(2026, 3, 2), 1, "m")

        dates = [a.date_given for a in ledger.advances_for_employee("E1")]
        assert dates == [date(2026, 3, 2), date(2026, 3, 2), date(2026, 3, 1)]


class TestPersistence:
    """Test that ledger state survives a restart."""

    def test_reload_restores_advances(self, tmp_path: Path, clock: FixedClock):
        store = JsonFileStore(tmp_path / "advances.json", "advances")
        ledger = AdvanceLedger(store=store, clock=clock)
        advance = _create(ledger).value
        ledger.add_manual_repayment(
            "E1", advance.advance_id, date(2026, 3, 5), Decimal("100.00"), "", "clerk",
            payment_method="CHECK", reference="CHK-881",
        )
        ledger.update_employee_settings("E1", "manager", max_repayment_weeks=10)

        reloaded = AdvanceLedger(store=store, clock=clock)
        reloaded.load()

        restored = reloaded.get_advance(advance.advance_id)
        assert restored.amount == Decimal("1000.00")
        assert restored.repayments[0].paid_amount == Decimal("100.00")
        assert restored.manual_repayments[0].payment_method == PaymentMethod.CHECK
        assert restored.manual_repayments[0].reference == "CHK-881"
        assert reloaded.get_employee_settings("E1").max_repayment_weeks == 10

    def test_unknown_fields_are_ignored(self, tmp_path: Path, clock: FixedClock):
        store = JsonFileStore(tmp_path / "advances.json", "advances")
        ledger = AdvanceLedger(store=store, clock=clock)
        advance = _create(ledger).value

        envelope = json.loads(store.path.read_text())
        envelope["payload"]["advances"][0]["future_field"] = "ignored"
        envelope["payload"]["new_section"] = []
        store.path.write_text(json.dumps(envelope))

        reloaded = AdvanceLedger(store=store, clock=clock)
        reloaded.load()
        assert reloaded.get_advance(advance.advance_id) is not None

    def test_corrupt_files_start_empty(self, tmp_path: Path, clock: FixedClock):
        store = JsonFileStore(tmp_path / "advances.json", "advances")
        store.path.write_text("{")

        ledger = AdvanceLedger(store=store, clock=clock)
        ledger.load()

        assert ledger.all_advances() == []

    def test_legacy_zero_installments_close_on_payment(self, tmp_path: Path, clock: FixedClock):
        store = JsonFileStore(tmp_path / "advances.json", "advances")
        advance = _create(AdvanceLedger(store=store, clock=clock)).value

        # schedule written before installments were required to be at least a cent
        envelope = json.loads(store.path.read_text())
        rows = envelope["payload"]["advances"][0]["repayments"]
        for row, amount in zip(rows, ["1000.00", "0.00", "0.00", "0.00"]):
            row["scheduled_amount"] = amount
        store.path.write_text(json.dumps(envelope))

        ledger = AdvanceLedger(store=store, clock=clock)
        ledger.load()
        ledger.add_manual_repayment(
            "E1", advance.advance_id, date(2026, 3, 5), Decimal("1000.00"), "", "clerk"
        )

        updated = ledger.get_advance(advance.advance_id)
        assert all(row.is_paid for row in updated.repayments)
        assert updated.status == AdvanceStatus.COMPLETED
        assert ledger.overdue_advances("E1") == []
