"""Tests for crash-safe JSON persistence."""

import json
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from driver_payroll.storage import JsonFileStore, PersistenceError


def _identity(payload):
    return payload


class TestJsonFileStore:
    """Test save/load discipline."""

    def test_save_then_load(self, tmp_path: Path):
        store = JsonFileStore(tmp_path / "ledger.json", "advances")
        store.save({"amount": Decimal("250.00"), "week": date(2026, 3, 9)})

        assert store.load(_identity) == {"amount": "250.00", "week": "2026-03-09"}

    def test_envelope_is_versioned(self, tmp_path: Path):
        store = JsonFileStore(tmp_path / "ledger.json", "advances", schema_version=3)
        store.save({"x": 1})

        envelope = json.loads((tmp_path / "ledger.json").read_text())
        assert envelope["kind"] == "advances"
        assert envelope["schema_version"] == 3
        assert "saved_at" in envelope
        assert envelope["payload"] == {"x": 1}

    def test_second_save_keeps_previous_generation_as_backup(self, tmp_path: Path):
        store = JsonFileStore(tmp_path / "ledger.json", "advances")
        store.save({"generation": 1})
        store.save({"generation": 2})

        backup = json.loads(store.backup_path.read_text())
        assert backup["payload"] == {"generation": 1}
        assert not store.temp_path.exists()

    def test_corrupt_primary_falls_back_to_backup(self, tmp_path: Path):
        store = JsonFileStore(tmp_path / "ledger.json", "advances")
        store.save({"generation": 1})
        store.save({"generation": 2})
        store.path.write_text("{not json")

        assert store.load(_identity) == {"generation": 1}

    def test_both_unreadable_returns_none(self, tmp_path: Path):
        store = JsonFileStore(tmp_path / "ledger.json", "advances")
        store.path.write_text("garbage")
        store.backup_path.write_text("also garbage")

        assert store.load(_identity) is None

    def test_missing_files_return_none(self, tmp_path: Path):
        store = JsonFileStore(tmp_path / "missing.json", "advances")
        assert store.load(_identity) is None

    def test_decode_failure_falls_back(self, tmp_path: Path):
        store = JsonFileStore(tmp_path / "ledger.json", "advances")
        store.save({"ok": False})
        store.save({"ok": True})

        def strict(payload):
            if payload["ok"]:
                raise ValueError("bad record")
            return payload

        assert store.load(strict) == {"ok": False}

    def test_wrong_kind_is_rejected(self, tmp_path: Path):
        JsonFileStore(tmp_path / "ledger.json", "escrow").save({"x": 1})
        store = JsonFileStore(tmp_path / "ledger.json", "advances")

        assert store.load(_identity) is None

    def test_unwritable_location_raises_persistence_error(self, tmp_path: Path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("file in the way")
        store = JsonFileStore(blocker / "ledger.json", "advances")

        with pytest.raises(PersistenceError) as exc_info:
            store.save({"x": 1})

        assert exc_info.value.path == blocker / "ledger.json"

    def test_save_after_fallback_keeps_good_backup(self, tmp_path: Path):
        store = JsonFileStore(tmp_path / "ledger.json", "advances")
        store.save({"generation": 1})
        store.save({"generation": 2})
        store.path.write_text("{not json")

        assert store.load(_identity) == {"generation": 1}
        store.save({"generation": 3})

        backup = json.loads(store.backup_path.read_text())
        assert backup["payload"] == {"generation": 1}
        assert store.load(_identity) == {"generation": 3}
