from __future__ import annotations

import logging
import os
import time
from pathlib import Path

import pytest

from disposer import Response
from predicates import CandidateEntry, EntryKind

DAY = 24 * 60 * 60


def make_file(path: Path, size: int = 10, age_days: float = 0) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    if age_days:
        stamp = time.time() - age_days * DAY
        os.utime(path, (stamp, stamp))
    return path


def age_link(path: Path, age_days: float) -> None:
    stamp = time.time() - age_days * DAY
    os.utime(path, (stamp, stamp), follow_symlinks=False)


class ScriptedResponder:
    """Answers prompts from a fixed list and remembers what it was asked"""

    def __init__(self, *responses: Response):
        self.responses = list(responses)
        self.asked: list[tuple[str, EntryKind]] = []

    def ask(self, entry: CandidateEntry, kind: EntryKind) -> Response:
        self.asked.append((entry.path, kind))
        if not self.responses:
            raise AssertionError(f"unexpected prompt for {entry.path}")
        return self.responses.pop(0)


@pytest.fixture(autouse=True)
def _reset_dirclean_logger():
    yield
    logger = logging.getLogger("dirclean")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
