#!/usr/bin/env python3
"""
Disposition of matched entries

Given a rule's mode, a matched entry and what it matched as, the Disposer
logs, defers, asks about or deletes it:

    analyze       log as candidate, touch nothing
    dry-run       log "would delete", record in the ledger
    interactive   ask the operator: delete, skip, or quit the whole run
    scheduled     delete, record in the ledger on success

Unrecognized modes are handled as dry-run. Deletion failures are logged and
the entry is left out of the ledger.
"""

import logging
import os
from datetime import datetime
from enum import Enum
from typing import Optional, Protocol

from rich.markup import escape

from auxiliary import format_age, format_path_for_display, format_size, format_timestamp
from console_ui import ConsoleUI
from dirclean_config import Mode
from predicates import CandidateEntry, EntryKind
from run_summary import RunAccumulator

LOGGER = logging.getLogger("dirclean")


class Disposition(Enum):
    CANDIDATE = "candidate"
    DEFERRED = "deferred"
    DELETED = "deleted"
    SKIPPED = "skipped"


class Response(Enum):
    DELETE = "delete"
    SKIP = "skip"
    QUIT = "quit"


AFFIRMATIVE_KEYS = frozenset({"y", "d"})
QUIT_KEYS = frozenset({"q"})


def parse_response(key: str) -> Response:
    """Map an operator keypress to a response (case-insensitive)"""
    if key == "\x03":
        return Response.QUIT
    normalized = (key or "").strip().lower()[:1]
    if normalized in AFFIRMATIVE_KEYS:
        return Response.DELETE
    if normalized in QUIT_KEYS:
        return Response.QUIT
    return Response.SKIP


class OperatorQuit(Exception):
    """The operator asked to stop the run"""

    def __init__(self, path: Optional[str] = None):
        super().__init__(f"Run stopped by operator at {path}" if path else "Run stopped by operator")
        self.path = path


class Responder(Protocol):
    def ask(self, entry: CandidateEntry, kind: EntryKind) -> Response: ...


class TerminalResponder:
    """Asks the operator on the terminal, one keypress per entry"""

    def __init__(self, ui: ConsoleUI, now: Optional[datetime] = None):
        self.ui = ui
        self.now = now

    def ask(self, entry: CandidateEntry, kind: EntryKind) -> Response:
        display = escape(format_path_for_display(entry.path))
        if kind is EntryKind.BROKEN_SYMLINK:
            target = escape(entry.symlink_target or "?")
            question = f"Delete broken symlink {display} [yellow](→ {target})[/yellow]?"
        else:
            question = (
                f"Delete file {display} [yellow]({format_size(entry.size)}, "
                f"{format_age(entry.mtime, self.now)} old)[/yellow]?"
            )
        key = self.ui.ask_key(question, "\\[y]es/\\[d]elete  \\[n]o  \\[q]uit")
        return parse_response(key)


def delete_entry(entry: CandidateEntry) -> bool:
    """Remove the entry itself (a symlink is removed, never its target)"""
    try:
        os.unlink(entry.path)
    except OSError as e:
        LOGGER.error("Error deleting file %s: %s", entry.path, e)
        return False
    return True


class Disposer:
    """Carries out one disposition per matched entry"""

    def __init__(self, ledger: RunAccumulator, responder: Optional[Responder] = None):
        self.ledger = ledger
        self.responder = responder

    def dispose(self, mode: Mode, entry: CandidateEntry, kind: EntryKind) -> Disposition:
        if mode is Mode.ANALYZE:
            return self._report(entry, kind)
        if mode is Mode.INTERACTIVE:
            return self._ask(entry, kind)
        if mode is Mode.SCHEDULED:
            return self._delete(entry, kind)
        if mode is Mode.UNRECOGNIZED:
            LOGGER.warning("Unknown mode, defaulting to dry-run for %s", entry.path)
        return self._defer(entry, kind)

    def _describe(self, kind: EntryKind) -> str:
        return "broken symlink" if kind is EntryKind.BROKEN_SYMLINK else "file"

    def _report(self, entry: CandidateEntry, kind: EntryKind) -> Disposition:
        if kind is EntryKind.BROKEN_SYMLINK:
            LOGGER.info("Found broken symlink: %s -> %s", entry.path, entry.symlink_target)
        else:
            LOGGER.info(
                "Found candidate: %s (size: %s, modified: %s)",
                entry.path,
                format_size(entry.size),
                format_timestamp(entry.mtime),
            )
        return Disposition.CANDIDATE

    def _defer(self, entry: CandidateEntry, kind: EntryKind) -> Disposition:
        LOGGER.info("Would delete %s: %s", self._describe(kind), entry.path)
        self.ledger.record(entry.path, entry.size, Disposition.DEFERRED.value)
        return Disposition.DEFERRED

    def _delete(self, entry: CandidateEntry, kind: EntryKind) -> Disposition:
        if not delete_entry(entry):
            return Disposition.SKIPPED
        LOGGER.info("Deleted %s: %s", self._describe(kind), entry.path)
        self.ledger.record(entry.path, entry.size, Disposition.DELETED.value)
        return Disposition.DELETED

    def _ask(self, entry: CandidateEntry, kind: EntryKind) -> Disposition:
        if self.responder is None:
            raise RuntimeError("interactive mode needs a responder")
        response = self.responder.ask(entry, kind)
        if response is Response.QUIT:
            LOGGER.info("Operator quit at %s", entry.path)
            raise OperatorQuit(entry.path)
        if response is Response.DELETE:
            return self._delete(entry, kind)
        LOGGER.debug("Skipped %s: %s", self._describe(kind), entry.path)
        return Disposition.SKIPPED
