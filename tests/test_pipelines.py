import csv
import logging
from types import SimpleNamespace

from bmw_scrapper.items import BUILD_COLUMNS, SUMMARY_BASE_COLUMNS
from bmw_scrapper.pipelines import (
    BUILD_TABLE,
    SUMMARY_TABLE,
    CsvTablePipeline,
    read_table,
    regroup_build_rows,
    summary_columns,
    write_table,
)


def build_row(engine, line_code="", summary_url="", configure_url=""):
    return {
        "Car": "X5",
        "Engine": engine,
        "LineCode": line_code,
        "SummaryUrl": summary_url,
        "ConfigureUrl": configure_url,
    }


def spider(kind, path):
    return SimpleNamespace(table_kind=kind, output_path=path, logger=logging.getLogger("test"))


def test_write_table_quotes_every_field_and_doubles_quotes(tmp_path):
    path = tmp_path / "out.csv"
    write_table(path, ["A", "B", "C"], [{"A": 'the "M" car', "B": "1,2"}])

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines == ['"A","B","C"', '"the ""M"" car","1,2",""']
    assert read_table(path) == [{"A": 'the "M" car', "B": "1,2", "C": ""}]


def test_regroup_prefers_line_code_then_urls():
    rows = [
        build_row("a", line_code="21EM"),
        build_row("b", line_code="21EM", summary_url="https://x/summary/1"),
        build_row("c", summary_url="https://x/summary/2?q=1"),
        build_row("d", summary_url="https://x/summary/2/"),
        build_row("e", configure_url="https://x/configure/3"),
        build_row("f", configure_url="https://x/configure/3/"),
    ]
    assert [r["Engine"] for r in regroup_build_rows(rows)] == ["a", "c", "e"]


def test_summary_columns_sort_dynamic_keys_after_base():
    rows = [{"Car": "X5", "Top Speed": "250 km/h"}, {"Acceleration": "4.8 s", "OTRPrice": "£1"}]
    assert summary_columns(rows) == [*SUMMARY_BASE_COLUMNS, "Acceleration", "Top Speed"]


def test_pipeline_writes_regrouped_build_table(tmp_path):
    path = tmp_path / "urls.csv"
    pipeline = CsvTablePipeline()
    crawler_spider = spider(BUILD_TABLE, path)

    pipeline.open_spider(crawler_spider)
    for row in [build_row("a", line_code="21EM"), build_row("b", line_code="21EM"), build_row("c", "21EN")]:
        assert pipeline.process_item(row, crawler_spider) is row
    pipeline.close_spider(crawler_spider)

    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        header = next(reader)
        body = list(reader)
    assert header == BUILD_COLUMNS
    assert [r[BUILD_COLUMNS.index("Engine")] for r in body] == ["a", "c"]


def test_pipeline_writes_summary_table_with_dynamic_columns(tmp_path):
    path = tmp_path / "nested" / "data.csv"
    pipeline = CsvTablePipeline()
    crawler_spider = spider(SUMMARY_TABLE, path)

    pipeline.open_spider(crawler_spider)
    pipeline.process_item({"Car": "X5", "Top Speed": "250 km/h"}, crawler_spider)
    pipeline.process_item({"Car": "i4", "Range": "590 km"}, crawler_spider)
    pipeline.close_spider(crawler_spider)

    rows = read_table(path)
    assert [r["Car"] for r in rows] == ["X5", "i4"]
    assert rows[0]["Top Speed"] == "250 km/h"
    assert rows[0]["Range"] == ""
    assert list(rows[1])[-2:] == ["Range", "Top Speed"]
