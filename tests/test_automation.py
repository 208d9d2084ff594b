"""Tests for automation rules."""

from datetime import timedelta

import pytest

from conftest import NOW, FakeGmailService
from gmail_declutter.automation import AutomationRule, RuleStore, apply_rule, eligible
from gmail_declutter.config import Settings
from gmail_declutter.constants import PROMOTIONS, TEMP_CODES
from gmail_declutter.executor import TrashExecutor
from gmail_declutter.history import DeletionLog
from gmail_declutter.models import PromotionalResult
from gmail_declutter.reconcile import ReconciliationState


@pytest.fixture
def results(make_message) -> list[PromotionalResult]:
    return [
        PromotionalResult.from_message(make_message("Sale", message_id="old"), 40),
        PromotionalResult.from_message(make_message("Sale", message_id="new"), 2),
        PromotionalResult.from_message(
            make_message("Sale", sender="Keep <keep@x.example>", message_id="kept"), 60
        ),
    ]


def test_rule_validation():
    with pytest.raises(ValueError):
        AutomationRule(category="spam", min_age_days=3)
    with pytest.raises(ValueError):
        AutomationRule(category=PROMOTIONS, min_age_days=3, frequency="hourly")
    with pytest.raises(ValueError):
        AutomationRule(category=PROMOTIONS, min_age_days=-1)


def test_is_due():
    rule = AutomationRule(category=PROMOTIONS, min_age_days=30, frequency="weekly")
    assert rule.is_due(NOW)
    rule.last_run = (NOW - timedelta(days=3)).isoformat()
    assert not rule.is_due(NOW)
    assert rule.is_due(NOW + timedelta(days=4))


def test_eligible_by_age(results):
    rule = AutomationRule(category=PROMOTIONS, min_age_days=30)
    assert [r.message_id for r in eligible(results, rule)] == ["old", "kept"]


def test_apply_rule_skips_excluded(tmp_path, results):
    service = FakeGmailService()
    executor = TrashExecutor(service, DeletionLog(tmp_path / "log.json"), settings=Settings(requests_per_second=0))
    state = ReconciliationState(excluded=["keep@x.example"])
    rule = AutomationRule(category=PROMOTIONS, min_age_days=30)

    outcome = apply_rule(rule, results, executor, state, now=NOW)

    assert service.trashed == ["old"]
    assert outcome.status == "applied"
    assert rule.emails_processed == 1
    assert rule.last_run == NOW.isoformat()


def test_apply_rule_nothing_eligible(tmp_path, results):
    service = FakeGmailService()
    executor = TrashExecutor(service, DeletionLog(tmp_path / "log.json"), settings=Settings(requests_per_second=0))
    rule = AutomationRule(category=PROMOTIONS, min_age_days=365)
    assert apply_rule(rule, results, executor, ReconciliationState(), now=NOW) is None
    assert service.trashed == []
    assert rule.last_run == NOW.isoformat()


def test_rule_store_round_trip(tmp_path):
    store = RuleStore(tmp_path / "rules.json")
    assert store.load() == []
    rule = store.add(AutomationRule(category=PROMOTIONS, min_age_days=30))
    store.add(AutomationRule(category=TEMP_CODES, min_age_days=1))

    loaded = store.load()
    assert [r.category for r in loaded] == [PROMOTIONS, TEMP_CODES]
    assert loaded[0] == rule

    assert store.remove(rule.id)
    assert not store.remove(rule.id)
    assert [r.category for r in store.load()] == [TEMP_CODES]
