"""Data models for Gmail Declutter."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar
from urllib.parse import quote

from gmail_declutter.constants import (
    GMAIL_TRASH_SEARCH_URL,
    GMAIL_TRASH_URL,
    NEWSLETTERS,
    PROMOTIONS,
    RECEIPTS,
    REGULAR,
    SUBSCRIPTIONS,
    TEMP_CODES,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RawMessage:
    """Metadata snapshot of a single Gmail message."""

    message_id: str
    sender: str  # Full From header value
    sender_email: str  # Lower-cased address, the sender identity
    sender_name: str
    subject: str
    date: datetime  # Always timezone-aware
    thread_id: str = ""
    size_estimate: int = 0
    labels: tuple[str, ...] = ()
    snippet: str = ""


@dataclass
class CategoryResult:
    """A message confirmed as belonging to a cleanup category."""

    category: ClassVar[str] = ""

    message_id: str
    sender: str  # Display name
    sender_email: str
    subject: str
    date: datetime
    days_ago: int
    thread_id: str = ""
    snippet: str = ""
    labels: list[str] = field(default_factory=list)
    size_estimate: int = 0

    @classmethod
    def from_message(cls, message: RawMessage, days_ago: int, **attributes) -> CategoryResult:
        return cls(
            message_id=message.message_id,
            sender=message.sender_name,
            sender_email=message.sender_email,
            subject=message.subject,
            date=message.date,
            days_ago=days_ago,
            thread_id=message.thread_id,
            snippet=message.snippet,
            labels=list(message.labels),
            size_estimate=message.size_estimate,
            **attributes,
        )

    def attributes(self) -> dict:
        """Return the category-specific attributes only."""
        common = {f.name for f in fields(CategoryResult)}
        return {k: v for k, v in asdict(self).items() if k not in common}

    def to_dict(self) -> dict:
        data = asdict(self)
        data["category"] = self.category
        data["date"] = self.date.isoformat()
        return data


@dataclass
class TemporaryCodeResult(CategoryResult):
    category: ClassVar[str] = TEMP_CODES

    code_type: str = "verification"  # verification | otp | security
    code: str | None = None
    is_expired: bool = False


@dataclass
class SubscriptionResult(CategoryResult):
    category: ClassVar[str] = SUBSCRIPTIONS

    frequency: str | None = None  # daily | weekly | monthly


@dataclass
class PromotionalResult(CategoryResult):
    category: ClassVar[str] = PROMOTIONS

    promotion_type: str = "offer"  # deal | coupon | sale | offer


@dataclass
class NewsletterResult(CategoryResult):
    category: ClassVar[str] = NEWSLETTERS

    newsletter_type: str = "news"  # news | update | digest | alert


@dataclass
class ReceiptResult(CategoryResult):
    category: ClassVar[str] = RECEIPTS

    receipt_type: str | None = None  # order | bill | invoice | receipt


@dataclass
class RegularResult(CategoryResult):
    category: ClassVar[str] = REGULAR


@dataclass
class SenderInfo:
    """Sender metadata attached to a bulk action."""

    email: str
    name: str = ""


@dataclass
class MoveRecord:
    """A sender's messages reassigned from one category to another."""

    sender: str
    source_category: str
    target_category: str
    message_ids: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: utcnow().isoformat())


@dataclass(frozen=True)
class DeletionRecord:
    """Audit entry for one trash batch with at least one success."""

    category: str
    count: int
    message_ids: tuple[str, ...]
    sender_email: str | None = None
    sender_name: str | None = None
    timestamp: str = field(default_factory=lambda: utcnow().isoformat())

    @property
    def trash_search_url(self) -> str:
        """Gmail web link listing this batch's sender in the trash."""
        if self.sender_email:
            return GMAIL_TRASH_SEARCH_URL + quote(f"from:{self.sender_email}", safe="")
        return GMAIL_TRASH_URL

    def to_dict(self) -> dict:
        data = asdict(self)
        data["message_ids"] = list(self.message_ids)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> DeletionRecord:
        return cls(
            category=data["category"],
            count=int(data["count"]),
            message_ids=tuple(data.get("message_ids", [])),
            sender_email=data.get("sender_email"),
            sender_name=data.get("sender_name"),
            timestamp=data["timestamp"],
        )


class ItemState(str, Enum):
    """Lifecycle of one message inside a trash batch."""

    PENDING = "pending"
    FALLBACK = "fallback"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (ItemState.DONE, ItemState.FAILED)


@dataclass
class TrashItemResult:
    """Per-message outcome of a trash batch."""

    message_id: str
    state: ItemState = ItemState.PENDING
    via: str | None = None  # "trash" or "modify" once DONE
    error: str | None = None
    primary_error: str | None = None

    @property
    def success(self) -> bool:
        return self.state is ItemState.DONE


@dataclass
class TrashOutcome:
    """Aggregate outcome of a trash batch."""

    category: str
    items: list[TrashItemResult] = field(default_factory=list)
    record: DeletionRecord | None = None

    @property
    def overall_success(self) -> bool:
        return any(item.success for item in self.items)

    @property
    def succeeded_ids(self) -> list[str]:
        return [item.message_id for item in self.items if item.success]

    @property
    def failed_ids(self) -> list[str]:
        return [item.message_id for item in self.items if item.state is ItemState.FAILED]

    @property
    def status(self) -> str:
        """Return applied (all succeeded), partial, or failed (nothing happened)."""
        if not self.overall_success:
            return "failed"
        if self.failed_ids:
            return "partial"
        return "applied"


@dataclass
class CategorySummary:
    """Cached per-category count and a truncated sample."""

    category: str
    count: int
    sample: list[dict] = field(default_factory=list)
    error: str | None = None
    analyzed_at: str = field(default_factory=lambda: utcnow().isoformat())


@dataclass
class CategoryReport:
    """Outcome of one category pipeline."""

    category: str
    results: list[CategoryResult] = field(default_factory=list)
    scanned: int = 0
    fetch_errors: int = 0
    malformed: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class AnalysisResult:
    """Reports for every category analysed in one generation."""

    generation: int
    reports: dict[str, CategoryReport] = field(default_factory=dict)
    stale: bool = False
    full: bool = False

    def results(self, category: str) -> list[CategoryResult]:
        report = self.reports.get(category)
        return list(report.results) if report else []

    def view(self, category: str, state) -> list[CategoryResult]:
        """Filtered work queue for ``category``.

        Results are filtered through the reconciliation state, then messages
        moved into ``category`` from other categories are appended.
        """
        view = state.filter(self.results(category), category)
        seen = {r.message_id for r in view}
        for move in state.moved_into(category):
            ids = set(move.message_ids)
            source = state.filter(self.results(move.source_category), category)
            for result in source:
                if result.sender_email == move.sender and result.message_id in ids:
                    if result.message_id not in seen:
                        view.append(result)
                        seen.add(result.message_id)
        return view

    def counts(self) -> dict[str, int]:
        return {category: len(report.results) for category, report in self.reports.items()}
