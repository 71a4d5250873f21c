#!/usr/bin/env python3
"""
Auxiliary formatting helpers for dirclean

Human-readable sizes, ages and display paths shared by the engine,
the interactive prompt and the run summary.
"""

import pathlib
from datetime import datetime, timezone
from typing import Optional

_SIZE_UNITS = "KMGTPE"


def format_size(size_bytes: int) -> str:
    """Format byte size into human-readable string

    Args:
        size_bytes: Size in bytes to format

    Returns:
        Formatted string like "1.2 GB", "345.0 MB", "12.0 KB", or "789 B"
        (binary multiples, matching the units accepted in config files)
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    divisor = 1024
    exponent = 0
    remaining = size_bytes // 1024
    while remaining >= 1024 and exponent < len(_SIZE_UNITS) - 1:
        divisor *= 1024
        exponent += 1
        remaining //= 1024
    return f"{size_bytes / divisor:.1f} {_SIZE_UNITS[exponent]}B"


def format_age(mtime: float, now: Optional[datetime] = None) -> str:
    """Format the age of a modification timestamp, e.g. "12 days" or "3 hours"."""
    if now is None:
        now = datetime.now(timezone.utc)
    seconds = max(0.0, now.timestamp() - mtime)
    days = int(seconds // 86400)
    if days >= 1:
        return f"{days} day{'s' if days != 1 else ''}"
    hours = int(seconds // 3600)
    if hours >= 1:
        return f"{hours} hour{'s' if hours != 1 else ''}"
    return f"{int(seconds // 60)} min"


def format_timestamp(mtime: float) -> str:
    """Local date of a timestamp as YYYY-MM-DD"""
    return datetime.fromtimestamp(mtime).strftime("%Y-%m-%d")


def format_path_for_display(path: str, home_path: Optional[str] = None) -> str:
    """Format file path for display by replacing home directory with ~

    Args:
        path: File path to format
        home_path: Home directory path (defaults to platform home)

    Returns:
        Path with home directory replaced by ~ if applicable
    """
    if home_path is None:
        home_path = str(pathlib.Path.home())

    if home_path and path.startswith(home_path + "/"):
        return "~" + path[len(home_path) :]
    return path
