"""Tests for settings and the service container."""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from driver_payroll.config import AdvancePolicy, Settings
from driver_payroll.services import (
    PayrollServices,
    get_services,
    has_services,
    init_services,
    shutdown_services,
)
from tests.conftest import WEEK_START, FixedClock


class TestSettings:
    """Test environment-driven configuration."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        for name in ("PAYROLL_DATA_DIR", "ADVANCE_MAX_ACTIVE", "ESCROW_DEFAULT_TARGET", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.advances.max_active_advances == 1
        assert settings.escrow.default_target == Decimal("3000.00")
        assert settings.calculator.escrow_weeks_target == 6

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.setenv("PAYROLL_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("ADVANCE_MAX_ACTIVE", "3")
        monkeypatch.setenv("ADVANCE_MAX_WEEKS", "12")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings.from_env()

        assert settings.data_dir == tmp_path
        assert settings.advances.max_active_advances == 3
        assert settings.advances.max_weeks == 12
        assert settings.log_level == "DEBUG"

    def test_inconsistent_policy_rejected(self):
        with pytest.raises(ValueError):
            AdvancePolicy(min_weeks=10, max_weeks=4)


class TestPayrollServices:
    """Test wiring and restart survival."""

    def test_ledgers_share_one_audit_trail(self, services: PayrollServices):
        services.advances.create_advance(
            "E1", "Driver", Decimal("200.00"), "", WEEK_START, 2, "manager"
        )
        services.escrow.add_deposit("E1", WEEK_START, Decimal("50.00"), "clerk")

        assert len(services.audit) == 2
        assert services.advances.audit is services.audit

    def test_state_survives_reopen(self, settings: Settings, clock: FixedClock):
        first = PayrollServices.open(settings, clock=clock)
        advance = first.advances.create_advance(
            "E1", "Driver", Decimal("200.00"), "", WEEK_START, 2, "manager"
        ).value
        first.adjustments.add_load_bonus("E1", WEEK_START, "L-1", "40.00", "dispatch")
        first.close()

        reopened = PayrollServices.open(settings, clock=clock)

        assert reopened.advances.get_advance(advance.advance_id).amount == Decimal("200.00")
        assert reopened.adjustments.total_bonuses("E1", WEEK_START) == Decimal("40.00")
        assert len(reopened.audit) == 2
        assert (settings.data_dir / "advances.json").exists()

    def test_non_persistent_writes_nothing(self, settings: Settings, clock: FixedClock):
        services = PayrollServices.open(settings, clock=clock, persistent=False)
        services.escrow.add_deposit("E1", WEEK_START, Decimal("50.00"), "clerk")
        assert not settings.data_dir.exists()

    def test_calculator_uses_settings(self, services: PayrollServices, load_source, fuel_source):
        calculator = services.calculator(load_source, fuel_source)
        assert calculator.engine_version == "test"
        assert calculator.advances is services.advances

    def test_settings_policy_reaches_ledger(self, settings: Settings, clock: FixedClock):
        settings = replace(settings, advances=AdvancePolicy(max_active_advances=2))
        services = PayrollServices.open(settings, clock=clock, persistent=False)
        services.advances.create_advance("E1", "D", Decimal("100.00"), "", WEEK_START, 1, "m")
        assert services.advances.create_advance(
            "E1", "D", Decimal("100.00"), "", date(2026, 3, 1), 1, "m"
        ).success


class TestRegistry:
    """Test the process-wide init/teardown hooks."""

    def test_lifecycle(self, services: PayrollServices):
        try:
            assert init_services(services) is services
            assert has_services()
            assert get_services() is services
        finally:
            shutdown_services()

        assert not has_services()
        with pytest.raises(RuntimeError):
            get_services()
