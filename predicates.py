#!/usr/bin/env python3
"""
Entry predicates for dirclean

A CandidateEntry is a snapshot of one non-directory filesystem entry (taken
with lstat, so symlinks describe themselves, not their targets). A
PredicateSet decides whether an entry is an old file, a broken symlink, or
neither. Deciding has no side effects.
"""

import os
import stat
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from dirclean_config import Rule


class EntryKind(Enum):
    OLD_FILE = "old_file"
    BROKEN_SYMLINK = "broken_symlink"


@dataclass(frozen=True)
class CandidateEntry:
    path: str
    size: int
    mtime: float
    is_symlink: bool = False
    symlink_target: Optional[str] = None

    @classmethod
    def from_path(cls, path: str) -> "CandidateEntry":
        """Snapshot *path* without following symlinks. Raises OSError."""
        st = os.lstat(path)
        return cls.from_stat(path, st)

    @classmethod
    def from_stat(cls, path: str, st: os.stat_result) -> "CandidateEntry":
        is_link = stat.S_ISLNK(st.st_mode)
        target = None
        if is_link:
            try:
                target = os.readlink(path)
            except OSError:
                target = None
        return cls(
            path=os.path.abspath(path),
            size=int(st.st_size),
            mtime=float(st.st_mtime),
            is_symlink=is_link,
            symlink_target=target,
        )


def resolve_link_target(path: str, target: str) -> str:
    """Absolute location a link target refers to; relative targets are
    resolved against the directory containing the link."""
    if os.path.isabs(target):
        return target
    return os.path.normpath(os.path.join(os.path.dirname(path), target))


def is_broken_symlink(entry: CandidateEntry) -> bool:
    """True when *entry* is a symlink whose target (followed through any
    further links) does not exist."""
    if not entry.is_symlink:
        return False
    if entry.symlink_target is None:
        return True
    return not os.path.exists(resolve_link_target(entry.path, entry.symlink_target))


class PredicateSet:
    """Composed age/size/broken-symlink filter for one rule"""

    def __init__(self, rule: Rule, now: Optional[datetime] = None):
        self.rule = rule
        self.now = now or datetime.now(timezone.utc)
        self.cutoff = (self.now - timedelta(days=int(rule.age_days))).timestamp()

    def is_old(self, entry: CandidateEntry) -> bool:
        # Strict: an entry modified exactly at the cutoff is not old
        return entry.mtime < self.cutoff

    def within_size(self, entry: CandidateEntry) -> bool:
        if self.rule.min_size is not None and entry.size < self.rule.min_size:
            return False
        if self.rule.max_size is not None and entry.size > self.rule.max_size:
            return False
        return True

    def classify(self, entry: CandidateEntry) -> Optional[EntryKind]:
        """Decide what, if anything, *entry* is a candidate for"""
        if self.rule.clean_broken_symlinks and entry.is_symlink and is_broken_symlink(entry):
            return EntryKind.BROKEN_SYMLINK
        if self.within_size(entry) and self.is_old(entry):
            return EntryKind.OLD_FILE
        return None

    def matches(self, entry: CandidateEntry) -> bool:
        return self.classify(entry) is not None
