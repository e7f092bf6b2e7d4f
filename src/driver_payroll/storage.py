"""Crash-safe JSON file persistence.

Each ledger owns one primary file plus a single backup generation.

Save sequence:
1. copy primary -> ``<name>.bak`` (if primary exists and is readable)
2. write ``<name>.tmp`` and fsync
3. ``os.replace`` tmp -> primary (atomic on POSIX and Windows)

Load tries primary, then backup; if both are missing or unreadable the
caller starts empty. A crash at any step leaves either the old or the new
primary intact, plus the backup.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from collections.abc import Callable
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar
from uuid import UUID

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PersistenceError(Exception):
    """Raised when a ledger could not be written to disk.

    The in-memory state already reflects the mutation; the data on disk is
    one generation behind.
    """

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to persist {path}: {reason}")


def _json_serializer(obj: Any) -> Any:
    """JSON serializer for objects not serializable by default."""
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


class JsonFileStore:
    """Versioned JSON envelope stored with backup + temp + atomic replace.

    File layout::

        {"kind": "advances", "schema_version": 1,
         "saved_at": "...", "payload": {...}}
    """

    def __init__(self, path: Path | str, kind: str, schema_version: int = 1):
        self.path = Path(path)
        self.kind = kind
        self.schema_version = schema_version

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + ".bak")

    @property
    def temp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    def save(self, payload: Any) -> None:
        """Write payload durably, raising PersistenceError on failure."""
        envelope = {
            "kind": self.kind,
            "schema_version": self.schema_version,
            "saved_at": datetime.now(timezone.utc),
            "payload": payload,
        }
        try:
            text = json.dumps(envelope, default=_json_serializer, indent=2)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self._primary_readable():
                shutil.copy2(self.path, self.backup_path)
            with open(self.temp_path, "w", encoding="utf-8") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(self.temp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.exception("Failed to save %s ledger to %s", self.kind, self.path)
            raise PersistenceError(self.path, str(e)) from e

    def load(self, decode: Callable[[Any], T]) -> T | None:
        """Load and decode the payload: primary, then backup, else None."""
        for candidate in (self.path, self.backup_path):
            if not candidate.exists():
                continue
            try:
                return decode(self._read_payload(candidate))
            except (OSError, ValueError, TypeError, KeyError) as e:
                logger.warning(
                    "Could not load %s ledger from %s: %s", self.kind, candidate, e
                )
        if self.path.exists() or self.backup_path.exists():
            logger.error(
                "Primary and backup for %s ledger unreadable, starting empty", self.kind
            )
        else:
            logger.info("No %s ledger at %s, starting empty", self.kind, self.path)
        return None

    def _primary_readable(self) -> bool:
        """True when the primary exists and holds a valid envelope."""
        if not self.path.exists():
            return False
        try:
            self._read_payload(self.path)
        except (OSError, ValueError) as e:
            logger.warning(
                "Not backing up unreadable %s ledger %s: %s", self.kind, self.path, e
            )
            return False
        return True

    def _read_payload(self, path: Path) -> Any:
        with open(path, encoding="utf-8") as fh:
            envelope = json.load(fh)
        if not isinstance(envelope, dict) or "payload" not in envelope:
            raise ValueError("missing envelope")
        if envelope.get("kind") not in (None, self.kind):
            raise ValueError(f"expected kind {self.kind!r}, found {envelope.get('kind')!r}")
        version = envelope.get("schema_version", 1)
        if version > self.schema_version:
            logger.warning(
                "%s written by schema version %s, reading with %s",
                path,
                version,
                self.schema_version,
            )
        return envelope["payload"]
