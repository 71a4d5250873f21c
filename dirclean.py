#!/usr/bin/env python3
"""
Dirclean - clean up old files from directories

Walks the directories named by each configured rule and reports, defers or
deletes files older than the rule's age threshold (optionally within size
bounds), plus broken symlinks when the rule asks for it.

Usage:
    dirclean                              # Run all rules from config.toml
    dirclean --config /etc/dirclean.toml  # Use another config file
    dirclean --mode analyze               # Only run rules configured as analyze
    dirclean --min-size 10MB              # Override size bounds for every rule
    dirclean --ledger deferred.txt        # Also write the ledger to a file

Modes (per rule):
    analyze       list candidates and large unused directories
    dry-run       list what would be deleted (default)
    interactive   ask before deleting each file
    scheduled     delete without asking
"""

import argparse
import contextlib
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from console_ui import ConsoleUI
from dirclean_config import (
    DEFAULT_CONFIG_FILE,
    ConfigError,
    DircleanConfig,
    Mode,
    Rule,
    RunSettings,
    SizeOverrides,
    load_config,
    parse_size,
)
from disposer import Disposer, OperatorQuit, TerminalResponder
from rule_engine import RuleEngine
from run_logging import configure_logging, shutdown_logging
from run_summary import RunAccumulator, disk_usage, render_summary

__version__ = "1.2.0"

LOGGER = logging.getLogger("dirclean")

MODE_CHOICES = [m.value for m in Mode if m is not Mode.UNRECOGNIZED]


class Dirclean:
    """Main application class: loads the config and runs every rule once."""

    def __init__(self, args: argparse.Namespace, ui: Optional[ConsoleUI] = None):
        self.args = args
        self.ui = ui or ConsoleUI()

    # -- setup ---------------------------------------------------------------

    def _size_overrides(self) -> SizeOverrides:
        min_size = parse_size(self.args.min_size) if self.args.min_size else None
        max_size = parse_size(self.args.max_size) if self.args.max_size else None
        return SizeOverrides(min_size=min_size, max_size=max_size)

    def _settings(self, config: DircleanConfig) -> RunSettings:
        return RunSettings(
            config_file=str(config.source),
            log_file=self.args.log or config.log_file,
            log_level=self.args.log_level or config.log_level,
            mode_filter=Mode.parse(self.args.mode) if self.args.mode else None,
            ledger_file=self.args.ledger,
        )

    def _open_ledger(self, path: Optional[str]):
        if not path:
            return contextlib.nullcontext(None)
        try:
            return open(path, "w", encoding="utf-8")
        except OSError as e:
            LOGGER.error("Cannot open ledger file %s: %s; keeping the ledger in memory only", path, e)
            return contextlib.nullcontext(None)

    @staticmethod
    def select_rules(rules: list[Rule], mode_filter: Optional[Mode]) -> list[Rule]:
        if mode_filter is None:
            return list(rules)
        return [rule for rule in rules if rule.mode is mode_filter]

    # -- main entry point ----------------------------------------------------

    def run(self) -> int:
        if getattr(self.args, "version", False):
            self.ui.print_plain(f"dirclean version: {__version__}")
            return 0

        configure_logging(self.args.log_level or "INFO", self.args.log, self.ui.console)

        try:
            overrides = self._size_overrides()
            config = load_config(Path(self.args.config), overrides)
        except ConfigError as e:
            LOGGER.critical("%s", e)
            shutdown_logging()
            return 1

        settings = self._settings(config)
        configure_logging(settings.log_level, settings.log_file, self.ui.console)
        if config.source != Path(self.args.config):
            LOGGER.info("Config file %s not found, using example config from %s", self.args.config, config.source)

        LOGGER.info("BEGIN: RUN_ID=%s", settings.run_id)
        try:
            self.execute(config, settings)
        finally:
            LOGGER.info("END: RUN_ID=%s", settings.run_id)
            shutdown_logging()
        return 0

    def execute(self, config: DircleanConfig, settings: RunSettings) -> RunAccumulator:
        """Run the selected rules and print the summary"""
        for _index, message in config.rejected:
            LOGGER.error("%s", message)

        rules = self.select_rules(config.rules, settings.mode_filter)
        if settings.mode_filter is not None:
            LOGGER.info("Running %d of %d rules with mode %s", len(rules), len(config.rules), settings.mode_filter.value)

        self.ui.print_header("Dirclean", f"{settings.config_file}  ·  run {settings.run_id}")
        before = disk_usage("/")
        quit_early = False

        with self._open_ledger(settings.ledger_file) as stream:
            accumulator = RunAccumulator(stream=stream)
            disposer = Disposer(accumulator, TerminalResponder(self.ui))
            engine = RuleEngine(settings, disposer, ui=self.ui)
            try:
                for rule in rules:
                    engine.run(rule)
            except OperatorQuit as e:
                quit_early = True
                LOGGER.warning("%s; remaining entries and rules were not processed", e)
            except KeyboardInterrupt:
                quit_early = True
                LOGGER.warning("Interrupted; remaining entries and rules were not processed")

        after = disk_usage("/")
        render_summary(
            self.ui, accumulator, settings, before, after, quit_early=quit_early, paths=config.all_paths()
        )
        return accumulator


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dirclean",
        description="Dirclean - clean up old files from directories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Environment variables:\n"
            "  DIRCLEAN_CONFIG     default for --config\n"
            "  DIRCLEAN_LOG_FILE   default for --log\n"
            "  DIRCLEAN_LOG_LEVEL  default for --log-level\n"
        ),
    )
    parser.add_argument(
        "--config",
        default=os.getenv("DIRCLEAN_CONFIG", DEFAULT_CONFIG_FILE),
        help=f"Path to config file (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "--mode", choices=MODE_CHOICES, default=None, help="Only process rules configured with this mode"
    )
    parser.add_argument("--log", default=os.getenv("DIRCLEAN_LOG_FILE"), help="Path to log file")
    parser.add_argument(
        "--log-level",
        default=os.getenv("DIRCLEAN_LOG_LEVEL"),
        help="Log level: DEBUG, INFO, WARN, ERROR, FATAL or OFF",
    )
    parser.add_argument("--min-size", default=None, help="Minimum file size for every rule (e.g. 10MB)")
    parser.add_argument("--max-size", default=None, help="Maximum file size for every rule (e.g. 2GB)")
    parser.add_argument("--ledger", default=None, help="Write deferred/deleted paths to this file")
    parser.add_argument("--version", action="store_true", help="Print the version and exit")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    app = Dirclean(args)
    return app.run()


if __name__ == "__main__":
    sys.exit(main())
