from __future__ import annotations

import io
import logging

from rich.console import Console

from auxiliary import format_age, format_path_for_display, format_size
from console_ui import ConsoleUI
from dirclean_config import RunSettings
from run_logging import OFF, configure_logging, parse_level
from run_summary import DiskUsage, RunAccumulator, disk_usage, disk_usage_diff, render_summary


def test_accumulator_totals() -> None:
    ledger = RunAccumulator()
    ledger.record("/a", 100, "deferred")
    ledger.record("/b", 50, "deleted")
    ledger.record("/a", 100, "deferred")

    assert ledger.paths == ["/a", "/b", "/a"]
    assert ledger.count == 3
    assert ledger.total_size == 250
    assert ledger.count_by_disposition() == {"deferred": 2, "deleted": 1}


def test_disk_usage_diff() -> None:
    before = DiskUsage(total=100, available=10)
    assert disk_usage_diff(before, DiskUsage(total=100, available=10)) == "No changes to file system"
    assert "freed" in disk_usage_diff(before, DiskUsage(total=100, available=2048))
    assert disk_usage_diff(None, before) == "Disk usage unavailable"


def test_disk_usage_reads_root() -> None:
    usage = disk_usage("/")
    assert usage is not None
    assert usage.total >= usage.available


def test_render_summary_lists_totals() -> None:
    ui = ConsoleUI()
    ui.console = Console(record=True, width=120)
    ledger = RunAccumulator()
    ledger.record("/data/old.log", 2048, "deleted")

    render_summary(ui, ledger, RunSettings(run_id="run-1"), quit_early=True, paths=["/data"])

    text = ui.console.export_text()
    assert "run-1" in text
    assert "2.0 KB" in text
    assert "Stopped by operator" in text
    assert "/data" in text


def test_format_size() -> None:
    assert format_size(0) == "0 B"
    assert format_size(1023) == "1023 B"
    assert format_size(1024) == "1.0 KB"
    assert format_size(10 * 1024**2) == "10.0 MB"
    assert format_size(3 * 1024**4) == "3.0 TB"


def test_format_age_and_display_path() -> None:
    from datetime import datetime, timezone

    now = datetime(2026, 1, 10, tzinfo=timezone.utc)
    assert format_age(now.timestamp() - 3 * 86400, now) == "3 days"
    assert format_age(now.timestamp() - 7200, now) == "2 hours"
    assert format_path_for_display("/home/op/logs/a.txt", "/home/op") == "~/logs/a.txt"
    assert format_path_for_display("/home/operator/a.txt", "/home/op") == "/home/operator/a.txt"


def test_parse_level_aliases() -> None:
    assert parse_level("WARN") == logging.WARNING
    assert parse_level("fatal") == logging.CRITICAL
    assert parse_level("OFF") == OFF
    assert parse_level("chatty") == logging.INFO


def test_configure_logging_writes_file(tmp_path) -> None:
    log_file = tmp_path / "dirclean.log"
    logger = configure_logging("WARN", str(log_file), Console(file=io.StringIO()))

    logger.info("hidden")
    logger.warning("shown")
    for handler in logger.handlers:
        handler.flush()

    text = log_file.read_text()
    assert "[WARNING] shown" in text
    assert "hidden" not in text


def test_configure_logging_survives_unwritable_log(tmp_path) -> None:
    logger = configure_logging("INFO", str(tmp_path / "missing-dir" / "x.log"), Console(file=io.StringIO()))
    assert len(logger.handlers) == 1
