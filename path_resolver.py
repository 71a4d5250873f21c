#!/usr/bin/env python3
"""
Path resolution for dirclean

Turns configured path specs into traversal roots:

    /var/tmp/build            literal directory
    /srv/cache/*worker*       single-level glob, every matching directory
    /data/exports/**/*.csv    recursive glob, base /data/exports plus a
                              pattern tested against each entry's path
                              relative to the base

Problems with a spec are logged and the spec is skipped; resolution never
raises.
"""

import functools
import glob
import logging
import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

LOGGER = logging.getLogger("dirclean")


class SpecKind(Enum):
    LITERAL = "literal"
    GLOB = "glob"
    RECURSIVE = "recursive"


def classify_spec(spec: str) -> SpecKind:
    if "**" in spec:
        return SpecKind.RECURSIVE
    if "*" in spec:
        return SpecKind.GLOB
    return SpecKind.LITERAL


@functools.lru_cache(maxsize=64)
def translate_pattern(pattern: str) -> re.Pattern:
    """Compile a wildcard pattern into a regex matching a relative-path suffix.

    `**` matches across directory separators (`**/` may match nothing),
    `*` stays within one segment and `?` is one non-separator character.
    """
    parts = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("(?:^|/)" + "".join(parts) + r"\Z", re.DOTALL)


@dataclass(frozen=True)
class TraversalRoot:
    """A directory to walk; with a pattern, only entries whose relative path
    matches it are considered."""

    base: str
    spec: str
    pattern: Optional[str] = None

    def accepts(self, rel_path: str) -> bool:
        if self.pattern is None:
            return True
        return translate_pattern(self.pattern).search(rel_path) is not None


def split_recursive_spec(spec: str) -> tuple[str, str]:
    """Split a recursive spec into (literal base directory, pattern).

    The base is everything before the first wildcard, cut back to a whole
    directory; a partial segment before the wildcard moves into the pattern.
    """
    prefix = spec[: spec.index("*")]
    if prefix.endswith("/"):
        base = prefix.rstrip("/") or "/"
        pattern = spec[len(prefix) :]
    else:
        head = os.path.dirname(prefix)
        base = head or "."
        pattern = spec[len(head) :].lstrip("/") if head else spec
    return base, pattern


def _readable_dir(path: str) -> bool:
    return os.path.isdir(path) and os.access(path, os.R_OK | os.X_OK)


class PathResolver:
    """Expands path specs into existing directories to traverse"""

    def resolve(self, spec: str) -> list[TraversalRoot]:
        if not spec:
            LOGGER.error("Empty path spec ignored")
            return []

        kind = classify_spec(spec)
        if kind is not SpecKind.LITERAL and spec.index("*") == 0:
            LOGGER.error("Invalid wildcard path %r: a wildcard path needs a base directory before the first '*'", spec)
            return []

        if kind is SpecKind.LITERAL:
            return self._resolve_literal(spec)
        if kind is SpecKind.GLOB:
            return self._resolve_glob(spec)
        return self._resolve_recursive(spec)

    def resolve_all(self, specs) -> list[TraversalRoot]:
        roots: list[TraversalRoot] = []
        for spec in specs:
            roots.extend(self.resolve(spec))
        return roots

    def _resolve_literal(self, spec: str) -> list[TraversalRoot]:
        if not _readable_dir(spec):
            LOGGER.error("Directory does not exist or is not accessible: %s", spec)
            return []
        LOGGER.debug("Matched directory: %s", spec)
        return [TraversalRoot(base=os.path.abspath(spec), spec=spec)]

    def _resolve_glob(self, spec: str) -> list[TraversalRoot]:
        try:
            matches = sorted(glob.glob(spec))
        except (OSError, re.error) as e:
            LOGGER.error("Error with wildcard path %s: %s", spec, e)
            return []

        roots = []
        for match in matches:
            if _readable_dir(match):
                LOGGER.debug("Matched directory: %s", match)
                roots.append(TraversalRoot(base=os.path.abspath(match), spec=spec))
        if not roots:
            LOGGER.warning("Wildcard path matched no directories: %s", spec)
        return roots

    def _resolve_recursive(self, spec: str) -> list[TraversalRoot]:
        base, pattern = split_recursive_spec(spec)
        if not _readable_dir(base):
            LOGGER.error("Base directory of %s does not exist or is not accessible: %s", spec, base)
            return []
        LOGGER.debug("Recursive path %s: base %s, pattern %s", spec, base, pattern)
        return [TraversalRoot(base=os.path.abspath(base), spec=spec, pattern=pattern)]
