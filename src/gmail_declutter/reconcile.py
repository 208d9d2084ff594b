"""Client-side reconciliation state: sender exclusions and cross-category moves."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable

from gmail_declutter.constants import STATE_SCHEMA_VERSION
from gmail_declutter.errors import StateSchemaError
from gmail_declutter.models import CategoryResult, MoveRecord

logger = logging.getLogger(__name__)


def normalize_sender(sender: str) -> str:
    return (sender or "").strip().lower()


def atomic_write_json(path: Path, data) -> None:
    """Write ``data`` as JSON to ``path`` via a temp file and ``os.replace``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


class ReconciliationState:
    """Exclusion set and move records, owned by one session.

    Exclusions are a standing user preference and survive re-analysis.
    Move records are session bookkeeping and are cleared by
    ``reset_on_full_reanalysis``.  When bound to a path, every mutation is
    persisted immediately.

    Persisted layout (schema version 1)::

        {
          "schema_version": 1,
          "excluded_senders": ["a@example.com", ...],
          "moves": {"b@example.com": {"sender": ..., "source_category": ...,
                                      "target_category": ..., "message_ids": [...],
                                      "created_at": ...}}
        }
    """

    def __init__(
        self,
        excluded: Iterable[str] = (),
        moves: dict[str, MoveRecord] | None = None,
        path: Path | None = None,
    ) -> None:
        self.excluded: set[str] = {normalize_sender(s) for s in excluded if normalize_sender(s)}
        self.moves: dict[str, MoveRecord] = dict(moves or {})
        self.path = Path(path) if path is not None else None

    # --- persistence ---

    @classmethod
    def load(cls, path: Path) -> ReconciliationState:
        """Load state from ``path``; a missing file yields an empty state."""
        path = Path(path)
        if not path.exists():
            return cls(path=path)

        with open(path) as f:
            try:
                blob = json.load(f)
            except json.JSONDecodeError as exc:
                raise StateSchemaError(f"State file {path} is not valid JSON: {exc}") from exc

        state = cls.from_dict(blob)
        state.path = path
        return state

    def persist(self) -> None:
        """Write the state to its bound path (no-op when unbound)."""
        if self.path is None:
            return
        atomic_write_json(self.path, self.to_dict())

    def to_dict(self) -> dict:
        return {
            "schema_version": STATE_SCHEMA_VERSION,
            "excluded_senders": sorted(self.excluded),
            "moves": {
                sender: {
                    "sender": move.sender,
                    "source_category": move.source_category,
                    "target_category": move.target_category,
                    "message_ids": list(move.message_ids),
                    "created_at": move.created_at,
                }
                for sender, move in sorted(self.moves.items())
            },
        }

    @classmethod
    def from_dict(cls, blob) -> ReconciliationState:
        blob = migrate(blob)
        moves = {}
        for sender, data in blob.get("moves", {}).items():
            key = normalize_sender(sender)
            moves[key] = MoveRecord(
                sender=key,
                source_category=data["source_category"],
                target_category=data["target_category"],
                message_ids=list(data.get("message_ids", [])),
                **({"created_at": data["created_at"]} if data.get("created_at") else {}),
            )
        return cls(excluded=blob.get("excluded_senders", []), moves=moves)

    # --- mutations ---

    def is_excluded(self, sender: str) -> bool:
        return normalize_sender(sender) in self.excluded

    def exclude(self, sender: str, on: bool = True) -> None:
        """Add (``on=True``) or remove ``sender`` from the exclusion set."""
        key = normalize_sender(sender)
        if not key:
            raise ValueError("Sender must not be empty")
        if on:
            self.excluded.add(key)
        else:
            self.excluded.discard(key)
        logger.info("Sender %s %s", key, "excluded" if on else "no longer excluded")
        self.persist()

    def record_move(
        self,
        sender: str,
        source_category: str,
        target_category: str,
        message_ids: Iterable[str],
    ) -> MoveRecord:
        """Create or overwrite the move record for ``sender``."""
        key = normalize_sender(sender)
        if not key:
            raise ValueError("Sender must not be empty")
        if source_category == target_category:
            raise ValueError("Source and target category must differ")
        move = MoveRecord(
            sender=key,
            source_category=source_category,
            target_category=target_category,
            message_ids=list(message_ids),
        )
        self.moves[key] = move
        logger.info("Moved %d messages from %s: %s -> %s", len(move.message_ids), key, source_category, target_category)
        self.persist()
        return move

    def clear_move(self, sender: str) -> bool:
        """Drop the move record for ``sender``. Returns False if there was none."""
        removed = self.moves.pop(normalize_sender(sender), None) is not None
        if removed:
            self.persist()
        return removed

    def reset_on_full_reanalysis(self) -> None:
        """Clear every move record; exclusions are kept."""
        if not self.moves:
            return
        logger.debug("Clearing %d move records after full analysis", len(self.moves))
        self.moves.clear()
        self.persist()

    # --- queries ---

    def moved_into(self, category: str) -> list[MoveRecord]:
        return [move for move in self.moves.values() if move.target_category == category]

    def filter(self, results: Iterable[CategoryResult] | None, category: str) -> list[CategoryResult]:
        """Drop results from excluded senders and senders moved out of ``category``.

        Pure: neither the state nor the input is modified.  Accepts an empty
        or stale result set.
        """
        kept = []
        for result in results or ():
            sender = normalize_sender(result.sender_email)
            if sender in self.excluded:
                continue
            move = self.moves.get(sender)
            if move is not None and move.source_category == category:
                continue
            kept.append(result)
        return kept


def migrate(blob) -> dict:
    """Upgrade a persisted blob to the current schema version.

    Unversioned blobs come from the browser-storage layout: either a bare list
    of excluded senders, or ``{"excludedSenders": [...], "movedEmails": {...}}``
    with camel-cased move entries.
    """
    if isinstance(blob, list):
        return {"schema_version": STATE_SCHEMA_VERSION, "excluded_senders": blob, "moves": {}}
    if not isinstance(blob, dict):
        raise StateSchemaError(f"Unsupported state blob of type {type(blob).__name__}")

    version = blob.get("schema_version")
    if version is None:
        moves = {}
        for sender, data in (blob.get("movedEmails") or {}).items():
            source = data.get("sourceCategory") or data.get("fromCategory")
            target = data.get("targetCategory") or data.get("toCategory")
            if not source or not target:
                logger.warning("Dropping incomplete legacy move record for %s", sender)
                continue
            moves[sender] = {
                "source_category": source,
                "target_category": target,
                "message_ids": data.get("messageIds") or data.get("emailIds") or [],
            }
        logger.info("Migrating unversioned state blob to schema version %d", STATE_SCHEMA_VERSION)
        return {
            "schema_version": STATE_SCHEMA_VERSION,
            "excluded_senders": list(blob.get("excludedSenders") or []),
            "moves": moves,
        }
    if version != STATE_SCHEMA_VERSION:
        raise StateSchemaError(
            f"State schema version {version} is not supported (expected {STATE_SCHEMA_VERSION})"
        )
    return blob
