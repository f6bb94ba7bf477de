import logging

import pytest
from rich.logging import RichHandler

from bmw_scrapper.config import Settings
from bmw_scrapper.selectors import Timing
from utils.logger import Logger
from utils.perf import perf_group


def test_configure_installs_single_rich_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        Logger.configure(log_level="WARNING")
        Logger.configure(log_level="INFO")

        assert [type(h) for h in root.handlers] == [RichHandler]
        assert root.level == logging.INFO
        assert logging.getLogger("scrapy.core.engine").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def test_perf_group_logs_start_and_finish(caplog):
    log = logging.getLogger("perf-test")
    with caplog.at_level(logging.INFO, logger="perf-test"):
        with perf_group("X5 [SUV]", log) as group:
            group.note = "no rows"

    messages = [r.getMessage() for r in caplog.records]
    assert messages[0] == "[perf] start 'X5 [SUV]'"
    assert messages[1].startswith("[perf] finished 'X5 [SUV]' in ")
    assert messages[1].endswith(" ms - no rows")


def test_timing_scaled_keeps_counts():
    fast = Timing().scaled(0.01)
    assert fast.click == 15
    assert fast.poll_interval == 1
    assert fast.line_select_attempts == Timing().line_select_attempts
    assert fast.scroll_steps == Timing().scroll_steps


def test_settings_paths_follow_mode(monkeypatch):
    monkeypatch.delenv("BMW_URLS_CSV", raising=False)
    monkeypatch.delenv("BMW_DATA_CSV", raising=False)
    monkeypatch.setenv("BMW_MAX_CARS", "3")

    dev = Settings(dev_mode=True)
    assert str(dev.urls_path) == "bmw_summary_urls_DEV.csv"
    assert str(dev.data_path) == "bmw_summary_data_DEV.csv"
    assert dev.max_cars == 3
    assert Settings(dev_mode=False, urls_csv="out/u.csv").urls_path.as_posix() == "out/u.csv"


def test_duplicate_streak_defaults_and_reads_env(monkeypatch):
    monkeypatch.delenv("BMW_DUPLICATE_STREAK", raising=False)
    assert Settings().duplicate_streak == 2

    monkeypatch.setenv("BMW_DUPLICATE_STREAK", "4")
    assert Settings().duplicate_streak == 4


@pytest.mark.parametrize("raw", ["0", "00"])
def test_duplicate_streak_below_one_is_rejected(monkeypatch, raw):
    monkeypatch.setenv("BMW_DUPLICATE_STREAK", raw)
    with pytest.raises(ValueError, match="duplicate_streak"):
        Settings()


def test_duplicate_streak_checked_on_construction():
    with pytest.raises(ValueError):
        Settings(duplicate_streak=0)
