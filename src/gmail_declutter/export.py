"""Export cached category summaries to CSV or JSON."""

import csv
import json

from .constants import CATEGORY_TITLES
from .models import CategorySummary


def export_summaries(summaries: dict[str, CategorySummary], format: str, output_path: str) -> None:
    """Export category summaries to a file.

    Args:
        summaries: Latest summary per category, as returned by the cache.
        format: Output format, either 'csv' or 'json'.
        output_path: Path to write the output file.
    """
    if format == "csv":
        with open(output_path, "w", newline="") as f:
            writer = csv.DictWriter(
                f,
                fieldnames=[
                    "category",
                    "title",
                    "count",
                    "analyzed_at",
                    "error",
                    "sample_senders",
                    "sample_subjects",
                ],
            )
            writer.writeheader()
            for summary in summaries.values():
                writer.writerow(
                    {
                        "category": summary.category,
                        "title": CATEGORY_TITLES.get(summary.category, summary.category),
                        "count": summary.count,
                        "analyzed_at": summary.analyzed_at,
                        "error": summary.error or "",
                        "sample_senders": "; ".join(s.get("sender_email", "") for s in summary.sample),
                        "sample_subjects": "; ".join(s.get("subject", "") for s in summary.sample),
                    }
                )
    elif format == "json":
        rows = []
        for summary in summaries.values():
            rows.append(
                {
                    "category": summary.category,
                    "title": CATEGORY_TITLES.get(summary.category, summary.category),
                    "count": summary.count,
                    "analyzed_at": summary.analyzed_at,
                    "error": summary.error,
                    "sample": summary.sample,
                }
            )
        with open(output_path, "w") as f:
            json.dump(rows, f, indent=2)
    else:
        raise ValueError(f"Unsupported export format: {format}")
