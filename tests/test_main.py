"""Tests for the uvicorn entry point."""

import pytest

from driver_payroll import __main__ as entry
from driver_payroll.config import get_settings


def test_main_runs_app_factory(monkeypatch: pytest.MonkeyPatch):
    calls = []
    monkeypatch.setenv("PORT", "9100")
    monkeypatch.setattr(entry.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    get_settings.cache_clear()
    try:
        entry.main()
    finally:
        get_settings.cache_clear()

    app, kwargs = calls[0]
    assert app == "driver_payroll.api.app:create_app"
    assert kwargs["factory"] is True
    assert kwargs["port"] == 9100
