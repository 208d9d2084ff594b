"""Tests for the deletion history log."""

import json
from datetime import timedelta

import pytest

from conftest import NOW
from gmail_declutter.constants import PROMOTIONS, TEMP_CODES
from gmail_declutter.history import DeletionLog
from gmail_declutter.models import DeletionRecord


def _record(category: str, count: int, days_ago: int, sender: str | None = None) -> DeletionRecord:
    return DeletionRecord(
        category=category,
        count=count,
        message_ids=tuple(f"m{i}" for i in range(count)),
        sender_email=sender,
        timestamp=(NOW - timedelta(days=days_ago)).isoformat(),
    )


def test_append_and_read(tmp_path):
    log = DeletionLog(tmp_path / "log.json")
    log.append(_record(PROMOTIONS, 3, 1))
    log.append(_record(TEMP_CODES, 2, 2))
    records = log.records()
    assert [r.category for r in records] == [PROMOTIONS, TEMP_CODES]
    assert records[0].message_ids == ("m0", "m1", "m2")


def test_window_and_category_filter(tmp_path):
    log = DeletionLog(tmp_path / "log.json")
    log.append(_record(PROMOTIONS, 3, 45))
    log.append(_record(PROMOTIONS, 4, 5))
    log.append(_record(TEMP_CODES, 2, 1))

    assert len(log.records(days=30, now=NOW)) == 2
    assert [r.count for r in log.records(category="Promotions")] == [3, 4]
    assert [r.count for r in log.records(days=30, category=PROMOTIONS, now=NOW)] == [4]


def test_totals(tmp_path):
    log = DeletionLog(tmp_path / "log.json")
    log.append(_record(PROMOTIONS, 3, 1))
    log.append(_record(TEMP_CODES, 7, 1))
    assert log.total_deleted() == 10
    assert log.by_category() == {PROMOTIONS: 3, TEMP_CODES: 7}
    assert log.storage_saved_mb() == 10 * 100 / 1024


def test_malformed_entries_skipped(tmp_path):
    path = tmp_path / "log.json"
    path.write_text(json.dumps([{"category": PROMOTIONS}, _record(PROMOTIONS, 1, 1).to_dict()]))
    assert len(DeletionLog(path).records()) == 1


def test_unreadable_log_is_empty(tmp_path):
    path = tmp_path / "log.json"
    path.write_text("[oops")
    assert DeletionLog(path).records() == []


def test_trash_search_url():
    with_sender = _record(PROMOTIONS, 1, 1, sender="deals@shop.example")
    assert with_sender.trash_search_url.endswith("from%3Adeals%40shop.example")
    assert _record(PROMOTIONS, 1, 1).trash_search_url.endswith("#trash")


@pytest.mark.parametrize("content", ["[oops", json.dumps({"records": [{"category": "promotions"}]})])
def test_append_keeps_unreadable_log(tmp_path, content):
    """Appending to an unreadable log sets the old file aside instead of overwriting it."""
    path = tmp_path / "log.json"
    path.write_text(content)
    log = DeletionLog(path)
    log.append(_record(TEMP_CODES, 2, 1))

    backups = list(tmp_path.glob("log.json.corrupt-*"))
    assert len(backups) == 1
    assert backups[0].read_text() == content
    assert [r.category for r in log.records()] == [TEMP_CODES]


def test_truncated_log_is_not_wiped(tmp_path):
    path = tmp_path / "log.json"
    log = DeletionLog(path)
    log.append(_record(PROMOTIONS, 3, 1))
    path.write_text(path.read_text().rstrip()[:-1])

    log.append(_record(TEMP_CODES, 1, 1))

    backup = next(tmp_path.glob("log.json.corrupt-*"))
    assert '"promotions"' in backup.read_text()
