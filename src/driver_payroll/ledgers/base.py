"""Shared plumbing for ledgers: lock, persistence, audit and clock."""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import date, datetime
from typing import Any, TypeVar

from driver_payroll.audit import AuditAction, AuditTrail
from driver_payroll.results import ErrorKind, OperationResult
from driver_payroll.storage import JsonFileStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseLedger(ABC):
    """Base class for the advance, escrow, adjustment and recurring ledgers.

    Concurrency: one re-entrant lock per ledger. Reads copy state out under
    the lock; mutations hold it across validate, mutate, audit and persist.
    With ``store=None`` the ledger lives in memory only.
    """

    kind: str = "ledger"

    def __init__(
        self,
        store: JsonFileStore | None = None,
        audit: AuditTrail | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._lock = threading.RLock()
        self._store = store
        self._audit = audit if audit is not None else AuditTrail(clock=clock)
        self._clock = clock

    @property
    def audit(self) -> AuditTrail:
        return self._audit

    def load(self) -> None:
        """Replace in-memory state with the persisted state (or empty)."""
        if self._store is None:
            return
        state = self._store.load(self._decode)
        with self._lock:
            if state is None:
                self._reset()
            else:
                self._restore(state)
        logger.info("Loaded %s ledger from %s", self.kind, self._store.path)

    def _persist(self) -> None:
        if self._store is not None:
            self._store.save(self._encode())

    def _record(
        self,
        action: AuditAction,
        employee_id: str,
        details: str,
        performed_by: str,
        subject_id: str | None = None,
    ) -> None:
        self._audit.record(action, employee_id, details, performed_by, subject_id)

    def _now(self) -> datetime:
        return self._clock()

    def _today(self) -> date:
        return self._clock().date()

    def _reject(self, error: ErrorKind, message: str) -> OperationResult[Any]:
        logger.warning("%s ledger rejected operation: %s", self.kind, message)
        return OperationResult.fail(error, message)

    @staticmethod
    def _snapshot(value: T) -> T:
        return copy.deepcopy(value)

    @abstractmethod
    def _encode(self) -> Any:
        """Return a JSON-ready payload of the full ledger state."""

    @abstractmethod
    def _decode(self, payload: Any) -> Any:
        """Validate a payload read from disk into ledger state."""

    @abstractmethod
    def _restore(self, state: Any) -> None:
        """Install decoded state."""

    @abstractmethod
    def _reset(self) -> None:
        """Install empty state."""
