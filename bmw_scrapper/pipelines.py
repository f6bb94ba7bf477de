"""
Table persistence.

Each pass yields plain row dicts; :class:`CsvTablePipeline` keeps them in
memory and writes the whole table once, when the spider closes, so a run
interrupted half way still leaves a complete (if partial) file behind.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence

from bmw_scrapper.identity import url_key
from bmw_scrapper.items import BUILD_COLUMNS, SUMMARY_BASE_COLUMNS

BUILD_TABLE = "build"
SUMMARY_TABLE = "summary"


def write_table(path, columns: Sequence[str], rows: Iterable[Mapping[str, str]]) -> int:
    """Write ``rows`` under ``columns``; every field is quoted, missing ones are empty."""
    path = Path(path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)

    written = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(columns), quoting=csv.QUOTE_ALL, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow({column: row.get(column, "") or "" for column in columns})
            written += 1
    return written


def read_table(path) -> List[Dict[str, str]]:
    with open(path, newline="", encoding="utf-8") as f:
        return [dict(row) for row in csv.DictReader(f)]


def build_row_key(row: Mapping[str, str]) -> str:
    """LineCode, else the summary URL key, else the configure URL key."""
    line_code = (row.get("LineCode") or "").strip()
    if line_code:
        return line_code
    return url_key(row.get("SummaryUrl")) or url_key(row.get("ConfigureUrl"))


def regroup_build_rows(rows: Iterable[Mapping[str, str]]) -> List[Mapping[str, str]]:
    """Collapse rows sharing a build key; the first one wins, order is kept."""
    grouped: Dict[str, Mapping[str, str]] = {}
    for row in rows:
        grouped.setdefault(build_row_key(row), row)
    return list(grouped.values())


def summary_columns(rows: Iterable[Mapping[str, str]]) -> List[str]:
    """Fixed head of the summary table followed by every spec key seen, sorted."""
    base = {column.lower() for column in SUMMARY_BASE_COLUMNS}
    dynamic = {key for row in rows for key in row if key.lower() not in base}
    return [*SUMMARY_BASE_COLUMNS, *sorted(dynamic)]


class CsvTablePipeline:
    """Accumulates every item of a pass and writes the spider's table on close.

    The spider names its table through ``table_kind`` (``"build"`` or
    ``"summary"``) and ``output_path``.
    """

    def open_spider(self, spider):
        self.rows: List[Dict[str, str]] = []

    def process_item(self, item, spider):
        self.rows.append(dict(item))
        return item

    def close_spider(self, spider):
        if spider.table_kind == BUILD_TABLE:
            rows = regroup_build_rows(self.rows)
            columns = BUILD_COLUMNS
        else:
            rows = self.rows
            columns = summary_columns(rows)

        written = write_table(spider.output_path, columns, rows)
        spider.logger.info(f"Wrote {written} rows to {spider.output_path}")
