"""SQLite cache of per-category analysis summaries."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

from gmail_declutter import constants
from gmail_declutter.models import CategorySummary, utcnow

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS analysis_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    generation INTEGER,
    categories_json TEXT,
    analyzed_at TEXT
);

CREATE TABLE IF NOT EXISTS category_summaries (
    run_id INTEGER,
    category TEXT,
    message_count INTEGER,
    error TEXT,
    sample_json TEXT,
    analyzed_at TEXT,
    FOREIGN KEY (run_id) REFERENCES analysis_runs(id)
);
"""


class SummaryCache:
    """Persistent SQLite cache of category counts and samples."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = Path(db_path or constants.CACHE_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._create_tables()

    def _create_tables(self) -> None:
        self._conn.executescript(_CREATE_TABLES_SQL)

    # --- public API ---

    def save_summaries(self, generation: int, summaries: list[CategorySummary]) -> int:
        """Save one analysis run's summaries in a single transaction. Returns the run id."""
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO analysis_runs (generation, categories_json, analyzed_at) VALUES (?, ?, ?)",
                (generation, json.dumps([s.category for s in summaries]), utcnow().isoformat()),
            )
            run_id = cursor.lastrowid

            for summary in summaries:
                self._conn.execute(
                    "INSERT INTO category_summaries "
                    "(run_id, category, message_count, error, sample_json, analyzed_at) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        run_id,
                        summary.category,
                        summary.count,
                        summary.error,
                        json.dumps(summary.sample),
                        summary.analyzed_at,
                    ),
                )
        return run_id

    def get_summary(self, category: str) -> CategorySummary | None:
        """Return the most recent summary stored for ``category``."""
        row = self._conn.execute(
            "SELECT * FROM category_summaries WHERE category = ? ORDER BY run_id DESC LIMIT 1",
            (category,),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_summary(row)

    def load_latest(self) -> dict[str, CategorySummary]:
        """Return the most recent summary of every category that has one."""
        rows = self._conn.execute(
            "SELECT s.* FROM category_summaries s "
            "JOIN (SELECT category, MAX(run_id) AS run_id FROM category_summaries GROUP BY category) latest "
            "ON s.category = latest.category AND s.run_id = latest.run_id"
        ).fetchall()
        order = {c: i for i, c in enumerate(constants.CATEGORIES)}
        rows = sorted(rows, key=lambda r: order.get(r["category"], len(order)))
        return {row["category"]: self._row_to_summary(row) for row in rows}

    @staticmethod
    def _row_to_summary(row: sqlite3.Row) -> CategorySummary:
        return CategorySummary(
            category=row["category"],
            count=row["message_count"],
            sample=json.loads(row["sample_json"] or "[]"),
            error=row["error"],
            analyzed_at=row["analyzed_at"],
        )

    def clear(self) -> None:
        """Drop and recreate all tables."""
        self._conn.executescript(
            "DROP TABLE IF EXISTS category_summaries;"
            "DROP TABLE IF EXISTS analysis_runs;"
        )
        self._create_tables()

    def get_info(self) -> dict:
        """Return cache statistics."""
        file_size = self.db_path.stat().st_size if self.db_path.exists() else 0

        last_run_row = self._conn.execute(
            "SELECT analyzed_at FROM analysis_runs ORDER BY id DESC LIMIT 1"
        ).fetchone()
        last_analysis = last_run_row["analyzed_at"] if last_run_row else None

        run_count = self._conn.execute("SELECT COUNT(*) AS c FROM analysis_runs").fetchone()["c"]
        summary_count = self._conn.execute("SELECT COUNT(*) AS c FROM category_summaries").fetchone()["c"]

        return {
            "db_file_size": file_size,
            "last_analysis": last_analysis,
            "run_count": run_count,
            "summary_count": summary_count,
        }

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- context manager ---

    def __enter__(self) -> SummaryCache:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()
