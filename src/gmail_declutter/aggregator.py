"""Analysis orchestration - lists, fetches and classifies every category concurrently."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Iterable

from .cache import SummaryCache
from .classifier import classify
from .config import Settings
from .constants import (
    CATEGORIES,
    CATEGORY_LIMITS,
    CATEGORY_QUERIES,
    DECLUTTER_CATEGORIES,
    DEFAULT_TOTAL_LIMIT,
)
from .errors import FetchError, MalformedMessageError, Unauthorized
from .gmail_client import fetch_message, page_message_ids
from .models import AnalysisResult, CategoryReport, CategorySummary, RawMessage, utcnow
from .ratelimit import TokenBucket
from .reconcile import ReconciliationState

logger = logging.getLogger(__name__)

ServiceFactory = Callable[[], Any]


def summarize(report: CategoryReport, limit: int) -> CategorySummary:
    """Build the cached summary (count + truncated sample) of a category report."""
    sample = []
    for result in report.results[:limit]:
        entry = {
            "message_id": result.message_id,
            "sender": result.sender,
            "sender_email": result.sender_email,
            "subject": result.subject,
            "date": result.date.isoformat(),
            "days_ago": result.days_ago,
        }
        entry.update(result.attributes())
        sample.append(entry)
    return CategorySummary(
        category=report.category,
        count=len(report.results),
        sample=sample,
        error=report.error,
    )


def mailbox_stats(profile: dict | None, counts: dict[str, int]) -> dict:
    """Total messages and the share of them that falls into cleanable categories."""
    profile = profile or {}
    total = int(profile.get("messagesTotal", 0) or 0)
    cleanable = sum(counts.get(category, 0) for category in DECLUTTER_CATEGORIES)
    potential = 0
    if total > 0 and cleanable > 0:
        potential = min(round(cleanable / total * 100), 100)
    return {
        "email": profile.get("emailAddress", ""),
        "total_messages": total,
        "threads_total": int(profile.get("threadsTotal", 0) or 0),
        "cleanable": cleanable,
        "declutter_potential": potential,
    }


class CategoryAggregator:
    """Runs one Pager -> Fetcher -> Classifier pipeline per category.

    Pipelines run concurrently and are isolated from each other: a failing
    category reports its error without affecting its siblings.  Blocking
    Google client calls run in worker threads; every worker gets its own
    service object from ``service_factory`` because the underlying HTTP
    client is not thread-safe.

    Every ``analyze`` call starts a new generation.  When a newer generation
    starts before an older one finishes, the older result comes back with
    ``stale=True`` and is neither cached nor allowed to touch the
    reconciliation state.
    """

    def __init__(
        self,
        service_factory: ServiceFactory,
        settings: Settings | None = None,
        cache: SummaryCache | None = None,
        state: ReconciliationState | None = None,
        limiter: TokenBucket | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.service_factory = service_factory
        self.settings = settings or Settings()
        self.cache = cache
        self.state = state
        self.limiter = limiter or TokenBucket(self.settings.requests_per_second)
        self.clock = clock
        self.summaries: dict[str, CategorySummary] = {}
        self._generation = 0
        self._inflight: asyncio.Task | None = None

    @property
    def generation(self) -> int:
        return self._generation

    def invalidate(self) -> int:
        """Start a new generation; results of older in-flight analyses are discarded."""
        self._generation += 1
        return self._generation

    def total_limit(self, category: str) -> int:
        if self.settings.total_limit is not None:
            return self.settings.total_limit
        return CATEGORY_LIMITS.get(category, DEFAULT_TOTAL_LIMIT)

    # --- public API ---

    async def analyze(self, categories: Iterable[str] | None = None) -> AnalysisResult:
        """Analyse ``categories`` (default: all) and return their reports."""
        categories = list(CATEGORIES) if categories is None else list(categories)
        unknown = [c for c in categories if c not in CATEGORY_QUERIES]
        if unknown:
            raise ValueError(f"Unknown categories: {', '.join(unknown)}")

        generation = self.invalidate()
        full = set(CATEGORIES).issubset(categories)
        now = self.clock()
        auth_failures: list[Unauthorized] = []

        logger.info("Analysis %d started for %s", generation, ", ".join(categories))
        reports = await asyncio.gather(
            *(self._run_pipeline(category, now, auth_failures) for category in categories)
        )
        result = AnalysisResult(
            generation=generation,
            reports={report.category: report for report in reports},
            full=full,
        )

        if generation != self._generation:
            logger.info("Analysis %d superseded by %d; discarding results", generation, self._generation)
            result.stale = True
            return result

        if auth_failures:
            raise auth_failures[0]

        summaries = [summarize(report, self.settings.sample_limit) for report in reports]
        self.summaries.update({s.category: s for s in summaries})
        if self.cache is not None:
            self.cache.save_summaries(generation, summaries)
        if full and self.state is not None:
            self.state.reset_on_full_reanalysis()

        logger.info(
            "Analysis %d complete: %s",
            generation,
            ", ".join(f"{r.category}={len(r.results)}" for r in reports),
        )
        return result

    async def analyze_category(self, category: str) -> CategoryReport:
        """Analyse a single category (the per-category "list" operation)."""
        result = await self.analyze([category])
        return result.reports[category]

    async def refresh(self, categories: Iterable[str] | None = None) -> AnalysisResult:
        """Cancel any in-flight analysis started here and run a fresh one."""
        if self._inflight is not None and not self._inflight.done():
            logger.info("Cancelling in-flight analysis")
            self._inflight.cancel()
        task = asyncio.ensure_future(self.analyze(categories))
        self._inflight = task
        try:
            return await task
        finally:
            if self._inflight is task:
                self._inflight = None

    # --- pipeline ---

    async def _run_pipeline(
        self,
        category: str,
        now: datetime,
        auth_failures: list[Unauthorized],
    ) -> CategoryReport:
        report = CategoryReport(category=category)
        try:
            ids = await asyncio.to_thread(self._list_ids, category)
            report.scanned = len(ids)
            messages = await self._fetch_all(ids, report)
            for message in messages:
                result = classify(message, category, now=now)
                if result is not None:
                    report.results.append(result)
        except Unauthorized as exc:
            auth_failures.append(exc)
            report.error = str(exc)
        except Exception as exc:  # noqa: BLE001
            logger.error("Category %s failed: %s", category, exc, exc_info=True)
            report.error = str(exc) or type(exc).__name__
        else:
            if report.scanned and report.fetch_errors == report.scanned:
                report.error = f"all {report.scanned} message fetches failed"
        return report

    def _list_ids(self, category: str) -> list[str]:
        service = self.service_factory()
        return list(
            page_message_ids(
                service,
                CATEGORY_QUERIES[category],
                self.total_limit(category),
                page_size=self.settings.page_size,
                limiter=self.limiter,
            )
        )

    async def _fetch_all(self, ids: list[str], report: CategoryReport) -> list[RawMessage]:
        """Fetch ``ids`` through a fixed-size worker pool, keeping provider order."""
        fetched: list[RawMessage | None] = [None] * len(ids)
        queue: asyncio.Queue = asyncio.Queue()
        for index, message_id in enumerate(ids):
            queue.put_nowait((index, message_id))

        async def worker() -> None:
            service = self.service_factory()
            while True:
                try:
                    index, message_id = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                await self.limiter.acquire_async()
                try:
                    fetched[index] = await asyncio.to_thread(
                        fetch_message, service, message_id, self.settings.retry_attempts
                    )
                except MalformedMessageError as exc:
                    report.malformed += 1
                    logger.debug("Skipping %s in %s: %s", message_id, report.category, exc)
                except FetchError as exc:
                    report.fetch_errors += 1
                    logger.warning("Skipping %s in %s: %s", message_id, report.category, exc)

        worker_count = min(self.settings.fetch_concurrency, len(ids))
        tasks = [asyncio.create_task(worker()) for _ in range(worker_count)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        return [message for message in fetched if message is not None]
