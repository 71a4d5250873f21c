#!/usr/bin/env python3
"""
Rule engine for dirclean

Runs one rule at a time: resolve its paths, walk each root depth-first,
classify every non-directory entry and hand matches to the Disposer.
Traversal problems are logged per entry and never stop the walk.

Analyze-mode rules also get a survey of large, long-unused directories
under their roots. The survey is informational only.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Optional

from rich.markup import escape

from auxiliary import format_path_for_display, format_size, format_timestamp
from console_ui import ConsoleUI
from dirclean_config import Mode, Rule, RunSettings
from disposer import Disposer, Disposition
from path_resolver import PathResolver, TraversalRoot
from predicates import CandidateEntry, PredicateSet

LOGGER = logging.getLogger("dirclean")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def _scan_dir(path: str) -> Optional[list[os.DirEntry]]:
    try:
        with os.scandir(path) as it:
            return sorted(it, key=lambda e: e.name)
    except OSError as e:
        LOGGER.error("Error accessing %s: %s", path, e)
        return None


def _walk(root: TraversalRoot) -> Iterator[CandidateEntry]:
    top = _scan_dir(root.base)
    if top is None:
        return

    # One iterator per open directory, innermost last
    stack = [iter(top)]
    while stack:
        dir_entry = next(stack[-1], None)
        if dir_entry is None:
            stack.pop()
            continue

        try:
            is_dir = dir_entry.is_dir(follow_symlinks=False)
        except OSError as e:
            LOGGER.error("Error accessing %s: %s", dir_entry.path, e)
            continue

        if is_dir:
            children = _scan_dir(dir_entry.path)
            if children is not None:
                stack.append(iter(children))
            continue

        rel_path = os.path.relpath(dir_entry.path, root.base).replace(os.sep, "/")
        if not root.accepts(rel_path):
            continue

        try:
            st = dir_entry.stat(follow_symlinks=False)
        except OSError as e:
            # Vanished or unreadable between listing and stat
            LOGGER.error("Error accessing %s: %s", dir_entry.path, e)
            continue
        yield CandidateEntry.from_stat(dir_entry.path, st)


def iter_entries(root: TraversalRoot) -> Iterator[CandidateEntry]:
    """Depth-first, name-ordered sequence of the non-directory entries under
    *root*. Symlinked directories are reported as entries, not descended."""
    LOGGER.debug("Walking %s", root.base)
    yield from _walk(root)


# ---------------------------------------------------------------------------
# Large-directory survey
# ---------------------------------------------------------------------------


@dataclass
class DirectoryUsage:
    path: str
    size: int = 0
    file_count: int = 0
    last_used: Optional[float] = None
    old_file_count: int = 0
    old_size: int = 0

    def add_file(self, size: int, mtime: float, is_old: bool):
        self.size += size
        self.file_count += 1
        if self.last_used is None or mtime > self.last_used:
            self.last_used = mtime
        if is_old:
            self.old_file_count += 1
            self.old_size += size

    def absorb(self, child: "DirectoryUsage"):
        self.size += child.size
        self.file_count += child.file_count
        self.old_file_count += child.old_file_count
        self.old_size += child.old_size
        if child.last_used is not None and (self.last_used is None or child.last_used > self.last_used):
            self.last_used = child.last_used

    @property
    def old_count_percent(self) -> float:
        return 100.0 * self.old_file_count / self.file_count if self.file_count else 0.0

    @property
    def old_size_percent(self) -> float:
        return 100.0 * self.old_size / self.size if self.size else 0.0


def _log_walk_error(error: OSError):
    LOGGER.error("Error accessing path %s: %s", error.filename, error.strerror or error)


def survey_large_directories(
    roots: list[str],
    age_days: int,
    now: Optional[datetime] = None,
    min_size: int = 100 * 1024**2,
    unused_days: int = 30,
    limit: int = 10,
) -> list[DirectoryUsage]:
    """Largest directories under *roots* whose newest file is older than
    *unused_days*, at least *min_size* bytes, biggest first."""
    now = now or _utc_now()
    old_cutoff = (now - timedelta(days=age_days)).timestamp()
    unused_cutoff = (now - timedelta(days=unused_days)).timestamp()

    usages: dict[str, DirectoryUsage] = {}
    for root in roots:
        for dirpath, dirnames, filenames in os.walk(root, topdown=False, onerror=_log_walk_error):
            if dirpath in usages:
                continue
            usage = DirectoryUsage(path=dirpath)
            for name in filenames:
                try:
                    entry = CandidateEntry.from_path(os.path.join(dirpath, name))
                except OSError:
                    continue
                usage.add_file(entry.size, entry.mtime, entry.mtime < old_cutoff)
            for name in dirnames:
                child = usages.get(os.path.join(dirpath, name))
                if child is not None:
                    usage.absorb(child)
            usages[dirpath] = usage

    suggestions = [
        u for u in usages.values() if u.size >= min_size and u.last_used is not None and u.last_used < unused_cutoff
    ]
    suggestions.sort(key=lambda u: u.size, reverse=True)
    return suggestions[:limit]


def show_survey(ui: ConsoleUI, survey: list[DirectoryUsage]):
    if not survey:
        return

    rows = []
    for idx, usage in enumerate(survey, 1):
        rows.append(
            [
                str(idx),
                escape(format_path_for_display(usage.path)),
                format_size(usage.size),
                format_timestamp(usage.last_used) if usage.last_used is not None else "-",
                f"{usage.file_count:,}",
                f"{usage.old_file_count:,} ({usage.old_count_percent:.1f}% / {usage.old_size_percent:.1f}% of size)",
            ]
        )

    ui.console.print()
    ui.show_table(
        "Large directories that may need attention",
        [
            ("#", {"style": "dim", "justify": "right"}),
            ("Directory", {"style": "cyan", "min_width": 30}),
            ("Size", {"style": "yellow", "justify": "right"}),
            ("Last used", {"justify": "center"}),
            ("Files", {"justify": "right", "style": "dim"}),
            ("Old files", {"justify": "right"}),
        ],
        rows,
    )
    ui.print_info("To clean these directories, add them to a rule in your config file")
    ui.print_info('(use mode = "interactive" to review them file by file).')


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@dataclass
class RuleOutcome:
    rule: Rule
    roots: list[TraversalRoot] = field(default_factory=list)
    rejected: bool = False
    visited: int = 0
    dispositions: dict[Disposition, int] = field(default_factory=dict)
    survey: list[DirectoryUsage] = field(default_factory=list)

    def count(self, disposition: Disposition):
        self.dispositions[disposition] = self.dispositions.get(disposition, 0) + 1

    @property
    def matched(self) -> int:
        return sum(self.dispositions.values())


class RuleEngine:
    """Applies rules, one at a time, with the settings of one run"""

    def __init__(
        self,
        settings: RunSettings,
        disposer: Disposer,
        resolver: Optional[PathResolver] = None,
        ui: Optional[ConsoleUI] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.settings = settings
        self.disposer = disposer
        self.resolver = resolver or PathResolver()
        self.ui = ui
        self.clock = clock

    def run(self, rule: Rule) -> RuleOutcome:
        """Apply *rule*. OperatorQuit from the Disposer propagates to the caller."""
        outcome = RuleOutcome(rule=rule)
        if rule.age_days <= 0:
            LOGGER.error("Invalid days value: %d (%s skipped)", rule.age_days, rule.label)
            outcome.rejected = True
            return outcome

        if rule.mode is Mode.UNRECOGNIZED:
            LOGGER.warning("Unknown mode %r in %s, defaulting to dry-run", rule.mode_text, rule.label)
        if rule.min_size is not None and rule.max_size is not None and rule.min_size > rule.max_size:
            LOGGER.warning("%s: min_file_size is larger than max_file_size, no file can match", rule.label)

        LOGGER.info(
            "Processing %s: mode %s, older than %d days, %d path(s)",
            rule.label,
            rule.mode.effective.value,
            rule.age_days,
            len(rule.paths),
        )

        now = self.clock()
        predicates = PredicateSet(rule, now)
        outcome.roots = self.resolver.resolve_all(rule.paths)

        for root in outcome.roots:
            for entry in iter_entries(root):
                outcome.visited += 1
                kind = predicates.classify(entry)
                if kind is None:
                    continue
                outcome.count(self.disposer.dispose(rule.mode, entry, kind))

        LOGGER.info("Finished %s: %d entries visited, %d matched", rule.label, outcome.visited, outcome.matched)

        if rule.mode is Mode.ANALYZE:
            outcome.survey = survey_large_directories(
                [root.base for root in outcome.roots],
                rule.age_days,
                now=now,
                min_size=self.settings.survey_min_size,
                unused_days=self.settings.survey_unused_days,
                limit=self.settings.survey_limit,
            )
            if self.ui is not None:
                show_survey(self.ui, outcome.survey)

        return outcome
