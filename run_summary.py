#!/usr/bin/env python3
"""
Run ledger and end-of-run summary for dirclean

The RunAccumulator is the append-only record of every deferred or deleted
path across all rules of a run. Sizes are captured when an entry is recorded
because deleted files cannot be stat'ed afterwards.
"""

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, TextIO

from auxiliary import format_size
from console_ui import ConsoleUI
from dirclean_config import RunSettings

LOGGER = logging.getLogger("dirclean")

SEPARATOR = "-" * 79


@dataclass(frozen=True)
class LedgerRecord:
    path: str
    size: int
    disposition: str


@dataclass
class RunAccumulator:
    """Append-only ledger of deferred/deleted entries, in visitation order"""

    stream: Optional[TextIO] = None
    records: list[LedgerRecord] = field(default_factory=list)

    def record(self, path: str, size: int, disposition: str):
        self.records.append(LedgerRecord(path=path, size=size, disposition=disposition))
        if self.stream is not None:
            self.stream.write(path + "\n")
            self.stream.flush()

    @property
    def paths(self) -> list[str]:
        return [r.path for r in self.records]

    @property
    def count(self) -> int:
        return len(self.records)

    @property
    def total_size(self) -> int:
        return sum(r.size for r in self.records)

    def count_by_disposition(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for r in self.records:
            counts[r.disposition] = counts.get(r.disposition, 0) + 1
        return counts


@dataclass(frozen=True)
class DiskUsage:
    total: int
    available: int


def disk_usage(path: str = "/") -> Optional[DiskUsage]:
    """Total and available bytes on the filesystem holding *path*"""
    try:
        usage = shutil.disk_usage(path)
    except OSError as e:
        LOGGER.error("Error getting disk usage for %s: %s", path, e)
        return None
    return DiskUsage(total=usage.total, available=usage.free)


def disk_usage_diff(before: Optional[DiskUsage], after: Optional[DiskUsage]) -> str:
    if before is None or after is None:
        return "Disk usage unavailable"
    if before.available == after.available:
        return "No changes to file system"
    return (
        f"Available space before: {format_size(before.available)}, "
        f"after: {format_size(after.available)} "
        f"({format_size(abs(after.available - before.available))} "
        f"{'freed' if after.available > before.available else 'consumed'})"
    )


def render_summary(
    ui: ConsoleUI,
    accumulator: RunAccumulator,
    settings: RunSettings,
    before: Optional[DiskUsage] = None,
    after: Optional[DiskUsage] = None,
    quit_early: bool = False,
    paths: Optional[list[str]] = None,
):
    """Print the end-of-run summary table"""
    rows = {
        "Run ID": settings.run_id,
        "Time": datetime.now().strftime("%Y-%m-%d %H:%M"),
        "Config": settings.config_file,
        "Paths": paths or [],
        "Total files processed": accumulator.count,
        "Total size of files": format_size(accumulator.total_size),
    }
    for disposition, count in sorted(accumulator.count_by_disposition().items()):
        rows[f"  {disposition}"] = count
    rows["Disk"] = disk_usage_diff(before, after)
    if quit_early:
        rows["Status"] = "Stopped by operator"

    ui.console.print()
    ui.console.print(SEPARATOR, style="dim")
    ui.show_key_values(rows, title="SUMMARY")
    ui.console.print(SEPARATOR, style="dim")
