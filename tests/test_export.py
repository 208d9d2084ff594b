"""Tests for summary export."""

import csv

import pytest

from gmail_declutter.constants import PROMOTIONS, TEMP_CODES
from gmail_declutter.export import export_summaries
from gmail_declutter.models import CategorySummary


@pytest.fixture
def summaries() -> dict[str, CategorySummary]:
    return {
        TEMP_CODES: CategorySummary(TEMP_CODES, 0, error="all 3 message fetches failed"),
        PROMOTIONS: CategorySummary(
            PROMOTIONS,
            2,
            sample=[
                {"sender_email": "deals@shop.example", "subject": "Big sale"},
                {"sender_email": "news@store.example", "subject": "Coupon inside"},
            ],
        ),
    }


def test_export_csv(tmp_path, summaries):
    out = tmp_path / "out.csv"
    export_summaries(summaries, format="csv", output_path=str(out))
    with open(out, newline="") as f:
        rows = list(csv.DictReader(f))
    assert [row["category"] for row in rows] == [TEMP_CODES, PROMOTIONS]
    assert rows[0]["error"] == "all 3 message fetches failed"
    assert rows[1]["title"] == "Promotions"
    assert rows[1]["sample_subjects"] == "Big sale; Coupon inside"


def test_export_unknown_format(tmp_path, summaries):
    with pytest.raises(ValueError):
        export_summaries(summaries, format="xml", output_path=str(tmp_path / "out.xml"))
