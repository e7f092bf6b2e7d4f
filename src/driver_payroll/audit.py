"""Append-only audit trail shared by all ledgers."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import TypeAdapter

from driver_payroll.storage import JsonFileStore

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    """Audit action codes."""

    ADVANCE_CREATED = "ADVANCE_CREATED"
    REPAYMENT_PROCESSED = "REPAYMENT_PROCESSED"
    MANUAL_REPAYMENT = "MANUAL_REPAYMENT"
    STATUS_CHANGED = "STATUS_CHANGED"
    ADVANCE_COMPLETED = "ADVANCE_COMPLETED"
    SETTINGS_UPDATED = "SETTINGS_UPDATED"
    ESCROW_TARGET_SET = "ESCROW_TARGET_SET"
    ESCROW_DEPOSIT = "ESCROW_DEPOSIT"
    ESCROW_WITHDRAWAL = "ESCROW_WITHDRAWAL"
    ADJUSTMENT_CREATED = "ADJUSTMENT_CREATED"
    ADJUSTMENT_REVERSED = "ADJUSTMENT_REVERSED"
    RECURRING_SAVED = "RECURRING_SAVED"
    RECURRING_CHARGED = "RECURRING_CHARGED"
    RECURRING_REMOVED = "RECURRING_REMOVED"


@dataclass(frozen=True)
class AuditEntry:
    """One immutable audit record."""

    entry_id: UUID
    timestamp: datetime
    action: AuditAction
    employee_id: str
    details: str
    performed_by: str
    subject_id: str | None = None


_entries_adapter = TypeAdapter(list[AuditEntry])


class AuditTrail:
    """Thread-safe, persisted, append-only list of AuditEntry."""

    def __init__(
        self,
        store: JsonFileStore | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._lock = threading.RLock()
        self._store = store
        self._clock = clock
        self._entries: list[AuditEntry] = []

    def load(self) -> None:
        if self._store is None:
            return
        entries = self._store.load(_entries_adapter.validate_python)
        with self._lock:
            self._entries = entries or []
        logger.info("Loaded %d audit entries", len(self._entries))

    def record(
        self,
        action: AuditAction,
        employee_id: str,
        details: str,
        performed_by: str,
        subject_id: str | None = None,
    ) -> AuditEntry:
        """Append an entry and persist the trail."""
        entry = AuditEntry(
            entry_id=uuid4(),
            timestamp=self._clock(),
            action=action,
            employee_id=employee_id,
            details=details,
            performed_by=performed_by,
            subject_id=subject_id,
        )
        with self._lock:
            self._entries.append(entry)
            if self._store is not None:
                self._store.save(_entries_adapter.dump_python(self._entries, mode="json"))
        logger.debug("Audit %s for employee %s: %s", action.value, employee_id, details)
        return entry

    def get_audit_trail(
        self,
        employee_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[AuditEntry]:
        """Return matching entries, newest first."""
        with self._lock:
            entries = list(reversed(self._entries))

        def matches(entry: AuditEntry) -> bool:
            if employee_id is not None and entry.employee_id != employee_id:
                return False
            day = entry.timestamp.date()
            if start_date is not None and day < start_date:
                return False
            if end_date is not None and day > end_date:
                return False
            return True

        return sorted(
            (e for e in entries if matches(e)),
            key=lambda e: e.timestamp,
            reverse=True,
        )

    def entries_for_subject(self, subject_id: str) -> list[AuditEntry]:
        """Entries about one advance, adjustment or fee, oldest first."""
        with self._lock:
            return [e for e in self._entries if e.subject_id == subject_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
