"""Age-based automation rules that trash a category's older messages."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

from gmail_declutter import constants
from gmail_declutter.executor import TrashExecutor
from gmail_declutter.models import CategoryResult, TrashOutcome, utcnow
from gmail_declutter.reconcile import ReconciliationState, atomic_write_json

logger = logging.getLogger(__name__)

FREQUENCY_DAYS = {"daily": 1, "weekly": 7, "monthly": 30}


@dataclass
class AutomationRule:
    """Trash messages of ``category`` that are at least ``min_age_days`` old."""

    category: str
    min_age_days: int
    frequency: str = "daily"
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    created_at: str = field(default_factory=lambda: utcnow().isoformat())
    last_run: str | None = None
    emails_processed: int = 0

    def __post_init__(self) -> None:
        if self.category not in constants.CATEGORIES:
            raise ValueError(f"Unknown category: {self.category}")
        if self.frequency not in FREQUENCY_DAYS:
            raise ValueError(f"Unknown frequency: {self.frequency}")
        if self.min_age_days < 0:
            raise ValueError("min_age_days must not be negative")

    def is_due(self, now: datetime | None = None) -> bool:
        if self.last_run is None:
            return True
        now = now or utcnow()
        last = datetime.fromisoformat(self.last_run)
        return now - last >= timedelta(days=FREQUENCY_DAYS[self.frequency])


def eligible(results: list[CategoryResult], rule: AutomationRule) -> list[CategoryResult]:
    """Results that are old enough to trash under ``rule``."""
    return [r for r in results if r.days_ago >= rule.min_age_days]


def apply_rule(
    rule: AutomationRule,
    results: list[CategoryResult],
    executor: TrashExecutor,
    state: ReconciliationState,
    now: datetime | None = None,
) -> TrashOutcome | None:
    """Trash the eligible, non-excluded results for ``rule``.

    Returns None when nothing is eligible; the rule's bookkeeping is updated
    either way.
    """
    candidates = eligible(state.filter(results, rule.category), rule)
    rule.last_run = (now or utcnow()).isoformat()
    if not candidates:
        logger.info("Rule %s: no %s messages older than %d days", rule.id, rule.category, rule.min_age_days)
        return None

    outcome = executor.trash([r.message_id for r in candidates], rule.category)
    rule.emails_processed += len(outcome.succeeded_ids)
    return outcome


class RuleStore:
    """JSON file holding the user's automation rules."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = Path(path or constants.RULES_PATH)

    def load(self) -> list[AutomationRule]:
        if not self.path.exists():
            return []
        with open(self.path) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError:
                logger.warning("Rules file %s is unreadable; ignoring it", self.path)
                return []
        rules = []
        for entry in data:
            try:
                rules.append(AutomationRule(**entry))
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping invalid rule %r: %s", entry, exc)
        return rules

    def save(self, rules: list[AutomationRule]) -> None:
        atomic_write_json(self.path, [asdict(rule) for rule in rules])

    def add(self, rule: AutomationRule) -> AutomationRule:
        rules = self.load()
        rules.append(rule)
        self.save(rules)
        return rule

    def remove(self, rule_id: str) -> bool:
        rules = self.load()
        kept = [rule for rule in rules if rule.id != rule_id]
        if len(kept) == len(rules):
            return False
        self.save(kept)
        return True
