"""Append-only deletion history log."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

from gmail_declutter.constants import AVERAGE_EMAIL_SIZE_KB, DELETION_LOG_PATH
from gmail_declutter.errors import DeletionLogError
from gmail_declutter.models import DeletionRecord, utcnow
from gmail_declutter.reconcile import atomic_write_json

logger = logging.getLogger(__name__)


def _parse_timestamp(value: str) -> datetime | None:
    try:
        ts = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class DeletionLog:
    """JSON file of DeletionRecords; records are only ever appended."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = Path(path or DELETION_LOG_PATH)

    def _load(self) -> list:
        if not self.path.exists():
            return []
        with open(self.path) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise DeletionLogError(f"Deletion log {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(data, list):
            raise DeletionLogError(f"Deletion log {self.path} does not hold a list of records")
        return data

    def _read_raw(self) -> list:
        try:
            return self._load()
        except DeletionLogError as exc:
            logger.warning("%s; showing no history", exc)
            return []

    def _set_aside(self) -> Path:
        """Rename an unreadable log so appending never overwrites old records."""
        target = self.path.with_name(f"{self.path.name}.corrupt-{utcnow().strftime('%Y%m%dT%H%M%S%f')}")
        os.replace(self.path, target)
        return target

    def append(self, record: DeletionRecord) -> None:
        try:
            log = self._load()
        except DeletionLogError as exc:
            backup = self._set_aside()
            logger.warning("%s; kept it as %s and started a new log", exc, backup)
            log = []
        log.append(record.to_dict())
        atomic_write_json(self.path, log)
        logger.info("Recorded deletion of %d %s messages", record.count, record.category)

    def records(
        self,
        days: int | None = None,
        category: str | None = None,
        now: datetime | None = None,
    ) -> list[DeletionRecord]:
        """Return records, newest last, optionally within ``days`` and one category."""
        cutoff = None
        if days is not None:
            cutoff = (now or utcnow()) - timedelta(days=days)

        result = []
        for entry in self._read_raw():
            try:
                record = DeletionRecord.from_dict(entry)
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed deletion log entry: %r", entry)
                continue
            if category is not None and record.category.lower() != category.lower():
                continue
            if cutoff is not None:
                ts = _parse_timestamp(record.timestamp)
                if ts is None or ts < cutoff:
                    continue
            result.append(record)
        return result

    def total_deleted(self, days: int | None = None) -> int:
        return sum(record.count for record in self.records(days=days))

    def storage_saved_mb(self, days: int | None = None) -> float:
        """Rough storage estimate using an average message size."""
        return self.total_deleted(days=days) * AVERAGE_EMAIL_SIZE_KB / 1024

    def by_category(self, days: int | None = None) -> dict[str, int]:
        totals: dict[str, int] = {}
        for record in self.records(days=days):
            totals[record.category] = totals.get(record.category, 0) + record.count
        return totals
