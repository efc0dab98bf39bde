from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from ..db.base import BaseDBManager
from ..models.ledger import LedgerEntry, LedgerEventType


logger = logging.getLogger(__name__)


class LedgerLogger:
    """
    Audit logger for entitlement-affecting events.

    Entries go to the database (`LedgerEntry`) and to an append-only,
    line-delimited JSON file for log aggregators. The file copy is
    best-effort; the database write is not.
    """

    def __init__(self, db: BaseDBManager, file_path: Optional[Path] = None) -> None:
        self._db = db
        self._file_path = file_path
        if self._file_path is not None:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)

    async def log_event(
        self,
        event_type: LedgerEventType,
        message: str,
        details: dict[str, Any],
        user_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> LedgerEntry:
        return await self._log(
            event_type,
            user_id=user_id,
            message=message,
            details=details,
            correlation_id=correlation_id,
        )

    async def log_error(
        self,
        message: str,
        details: dict[str, Any],
        user_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> LedgerEntry:
        return await self._log(
            LedgerEventType.ERROR,
            user_id=user_id,
            message=message,
            details=details,
            correlation_id=correlation_id,
        )

    async def _log(
        self,
        event_type: LedgerEventType,
        user_id: Optional[str],
        message: str,
        details: dict[str, Any],
        correlation_id: Optional[str],
    ) -> LedgerEntry:
        entry = LedgerEntry(
            event_type=event_type,
            user_id=user_id,
            message=message,
            details=details,
            correlation_id=correlation_id,
        )
        await self._db.add_ledger_entry(entry)

        if self._file_path is None:
            return entry
        try:
            line = json.dumps(entry.model_dump(mode="json", exclude_none=True))
            with self._file_path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as exc:
            logger.warning("Could not mirror ledger entry to %s: %s", self._file_path, exc)
        return entry
