"""Bulk trash executor with per-message fallback and partial-success reporting."""

from __future__ import annotations

import logging
from typing import Callable

from .config import Settings
from .errors import SenderExcludedError, TrashOperationError
from .gmail_client import modify_to_trash, trash_message
from .history import DeletionLog
from .models import DeletionRecord, ItemState, SenderInfo, TrashItemResult, TrashOutcome
from .ratelimit import TokenBucket
from .reconcile import ReconciliationState

logger = logging.getLogger(__name__)


class TrashExecutor:
    """Moves messages to trash one at a time, in input order.

    Each message walks a small state machine::

        PENDING --trash ok--> DONE
        PENDING --trash fails--> FALLBACK --modify ok--> DONE
                                 FALLBACK --modify fails--> FAILED

    The label-modify fallback exists because Gmail rejects the dedicated
    ``trash`` verb for some message states.  Items never roll each other
    back.  A batch with at least one success appends exactly one
    DeletionRecord; a batch with none appends nothing.
    """

    def __init__(
        self,
        service,
        history: DeletionLog,
        state: ReconciliationState | None = None,
        settings: Settings | None = None,
        limiter: TokenBucket | None = None,
    ) -> None:
        self.service = service
        self.history = history
        self.state = state
        self.settings = settings or Settings()
        self.limiter = limiter or TokenBucket(self.settings.requests_per_second)
        self.last_outcome: TrashOutcome | None = None

    def trash(
        self,
        message_ids: list[str],
        category: str,
        sender_info: SenderInfo | None = None,
        callback: Callable[[int, int], None] | None = None,
    ) -> TrashOutcome:
        """Trash ``message_ids`` and return per-item and aggregate results.

        Raises ValueError for an empty batch and SenderExcludedError when
        ``sender_info`` names an excluded sender; in both cases nothing is
        touched.  On Unauthorized the batch stops, successes so far are
        recorded, and the error propagates.
        """
        if not message_ids:
            raise ValueError("No message IDs provided")
        if sender_info is not None and self.state is not None and self.state.is_excluded(sender_info.email):
            raise SenderExcludedError(sender_info.email)

        outcome = TrashOutcome(category=category)
        self.last_outcome = outcome
        total = len(message_ids)
        try:
            for num, message_id in enumerate(message_ids, start=1):
                item = TrashItemResult(message_id=message_id)
                outcome.items.append(item)
                while not item.state.terminal:
                    self._advance(item)
                if callback:
                    callback(num, total)
        finally:
            self._record(outcome, sender_info)

        if outcome.status == "partial":
            logger.warning(
                "Trashed %d of %d %s messages; failed: %s",
                len(outcome.succeeded_ids),
                total,
                category,
                ", ".join(outcome.failed_ids),
            )
        elif outcome.status == "failed":
            logger.error("Could not trash any of %d %s messages", total, category)
        return outcome

    def _advance(self, item: TrashItemResult) -> None:
        """Run the operation for the item's current state and move it on."""
        self.limiter.acquire()
        if item.state is ItemState.PENDING:
            try:
                trash_message(self.service, item.message_id, self.settings.retry_attempts)
            except TrashOperationError as exc:
                logger.warning("Trash verb rejected for %s, falling back to modify: %s", item.message_id, exc.reason)
                item.primary_error = exc.reason
                item.state = ItemState.FALLBACK
            else:
                item.state = ItemState.DONE
                item.via = "trash"
        elif item.state is ItemState.FALLBACK:
            try:
                modify_to_trash(self.service, item.message_id, self.settings.retry_attempts)
            except TrashOperationError as exc:
                logger.error("Fallback modify failed for %s: %s", item.message_id, exc.reason)
                item.error = exc.reason
                item.state = ItemState.FAILED
            else:
                item.state = ItemState.DONE
                item.via = "modify"

    def _record(self, outcome: TrashOutcome, sender_info: SenderInfo | None) -> None:
        if not outcome.overall_success:
            return
        succeeded = outcome.succeeded_ids
        record = DeletionRecord(
            category=outcome.category,
            count=len(succeeded),
            message_ids=tuple(succeeded),
            sender_email=sender_info.email if sender_info else None,
            sender_name=sender_info.name if sender_info else None,
        )
        self.history.append(record)
        outcome.record = record

