"""Property-based tests for advance ledger invariants.

Random amounts, schedules and payment sequences are generated and the
balance invariants are checked after every operation.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from driver_payroll.config import AdvancePolicy
from driver_payroll.ledgers.advances import AdvanceLedger
from driver_payroll.ledgers.state_machine import AdvanceStateMachine
from driver_payroll.ledgers.types import AdvanceStatus
from driver_payroll.money import amortize

cents = st.integers(min_value=5000, max_value=500000).map(lambda c: Decimal(c) / 100)
weeks = st.integers(min_value=1, max_value=26)
payments = st.lists(
    st.integers(min_value=1, max_value=300000).map(lambda c: Decimal(c) / 100),
    min_size=1,
    max_size=8,
)


def _ledger() -> AdvanceLedger:
    return AdvanceLedger(
        policy=AdvancePolicy(),
        clock=lambda: datetime(2026, 3, 2, 9, 0, 0),
    )


class TestScheduleProperties:
    """Amortized schedules always cover the advance exactly."""

    @given(amount=cents, n_weeks=weeks)
    @settings(max_examples=100)
    def test_schedule_sums_to_amount(self, amount: Decimal, n_weeks: int):
        schedule = amortize(amount, n_weeks)

        assert len(schedule) == n_weeks
        assert sum(schedule) == amount
        assert all(part > 0 for part in schedule)
        # only the first installment carries the remainder
        assert all(part == schedule[-1] for part in schedule[1:])
        assert schedule[0] - schedule[-1] < Decimal("0.01") * n_weeks

    @given(amount=cents, n_weeks=weeks)
    @settings(max_examples=50)
    def test_created_advance_matches_schedule(self, amount: Decimal, n_weeks: int):
        ledger = _ledger()
        advance = ledger.create_advance(
            "E1", "Driver", amount, "", date(2026, 3, 2), n_weeks, "admin"
        ).value

        assert advance.scheduled_total == amount
        assert advance.remaining_balance == amount


class TestAllocationProperties:
    """Manual allocation never pays a row more than it is scheduled."""

    @given(amount=cents, n_weeks=weeks, paid=payments)
    @settings(max_examples=75)
    def test_manual_payments_never_overpay(
        self, amount: Decimal, n_weeks: int, paid: list[Decimal]
    ):
        ledger = _ledger()
        advance_id = ledger.create_advance(
            "E1", "Driver", amount, "", date(2026, 3, 2), n_weeks, "admin"
        ).value.advance_id

        received = Decimal("0.00")
        for payment in paid:
            result = ledger.add_manual_repayment(
                "E1", advance_id, date(2026, 3, 4), payment, "", "clerk"
            )
            if not result.success:
                # the advance completed on an earlier payment
                assert ledger.get_advance(advance_id).status == AdvanceStatus.COMPLETED
                break
            received += result.value.applied_amount

            advance = ledger.get_advance(advance_id)
            for row in advance.repayments:
                assert Decimal("0.00") <= row.paid_amount <= row.scheduled_amount
            assert advance.total_paid == received
            assert advance.total_paid + advance.remaining_balance == amount

        advance = ledger.get_advance(advance_id)
        assert (advance.status == AdvanceStatus.COMPLETED) == (advance.total_paid == amount)


class TestStatusProperties:
    """Terminal statuses absorb every later transition."""

    @given(
        transitions=st.lists(
            st.sampled_from([s.value for s in AdvanceStatus]),
            min_size=1,
            max_size=6,
        )
    )
    @settings(max_examples=100)
    def test_first_terminal_status_is_final(self, transitions: list[str]):
        ledger = _ledger()
        advance_id = ledger.create_advance(
            "E1", "Driver", Decimal("100.00"), "", date(2026, 3, 2), 2, "admin"
        ).value.advance_id

        final = AdvanceStatus.ACTIVE
        for status in transitions:
            result = ledger.change_status(advance_id, status, "test", "admin")
            if result.success:
                final = result.value.status
            assert ledger.get_advance(advance_id).status == final

        if final != AdvanceStatus.ACTIVE:
            assert AdvanceStateMachine.is_terminal(final)
        # COMPLETED is never reachable while installments are unpaid
        assert final != AdvanceStatus.COMPLETED
