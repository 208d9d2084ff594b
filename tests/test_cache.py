"""Tests for the SQLite summary cache."""

from gmail_declutter.cache import SummaryCache
from gmail_declutter.constants import NEWSLETTERS, PROMOTIONS, TEMP_CODES
from gmail_declutter.models import CategorySummary


def test_save_and_load(tmp_path):
    """Save summaries and load them back."""
    db_path = tmp_path / "test_cache.db"
    summary = CategorySummary(
        category=PROMOTIONS,
        count=12,
        sample=[{"message_id": "m1", "subject": "Big sale", "promotion_type": "sale"}],
    )

    with SummaryCache(db_path=db_path) as cache:
        run_id = cache.save_summaries(1, [summary])
        loaded = cache.get_summary(PROMOTIONS)

    assert run_id == 1
    assert loaded is not None
    assert loaded.count == 12
    assert loaded.sample == summary.sample
    assert loaded.error is None
    assert loaded.analyzed_at == summary.analyzed_at


def test_latest_summary_wins(tmp_path):
    """A newer run replaces the summary of the categories it covered only."""
    with SummaryCache(db_path=tmp_path / "test_cache.db") as cache:
        cache.save_summaries(1, [CategorySummary(PROMOTIONS, 10), CategorySummary(NEWSLETTERS, 4)])
        cache.save_summaries(2, [CategorySummary(PROMOTIONS, 3, error="boom")])
        latest = cache.load_latest()

    assert list(latest) == [PROMOTIONS, NEWSLETTERS]
    assert latest[PROMOTIONS].count == 3
    assert latest[PROMOTIONS].error == "boom"
    assert latest[NEWSLETTERS].count == 4


def test_load_latest_ordered_by_category(tmp_path):
    with SummaryCache(db_path=tmp_path / "test_cache.db") as cache:
        cache.save_summaries(1, [CategorySummary(NEWSLETTERS, 1), CategorySummary(TEMP_CODES, 2)])
        assert list(cache.load_latest()) == [TEMP_CODES, NEWSLETTERS]


def test_get_summary_missing(tmp_path):
    with SummaryCache(db_path=tmp_path / "test_cache.db") as cache:
        assert cache.get_summary(PROMOTIONS) is None


def test_clear(tmp_path):
    """Clear should remove all data."""
    with SummaryCache(db_path=tmp_path / "test_cache.db") as cache:
        cache.save_summaries(1, [CategorySummary(PROMOTIONS, 1)])
        cache.clear()
        assert cache.load_latest() == {}


def test_get_info(tmp_path):
    """get_info should return correct statistics."""
    db_path = tmp_path / "test_cache.db"
    with SummaryCache(db_path=db_path) as cache:
        info = cache.get_info()
        assert info["last_analysis"] is None
        assert info["run_count"] == 0

        cache.save_summaries(1, [CategorySummary(PROMOTIONS, 1), CategorySummary(NEWSLETTERS, 2)])
        info = cache.get_info()

    assert info["db_file_size"] > 0
    assert info["last_analysis"] is not None
    assert info["run_count"] == 1
    assert info["summary_count"] == 2
