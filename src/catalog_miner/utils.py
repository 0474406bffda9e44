"""
Scalar parsers and markup helpers for the catalog miner.

The catalog renders most values as human-oriented text ("3 hours ago",
"1.4 GB", "Some.File.mkv (700 MB)"). These functions turn that text back into
plain integers. They never raise: a value that does not match the expected
shape yields ``None`` and the caller decides whether that is fatal.
"""

import math
from typing import Optional

from bs4 import Tag

from .models import FileEntry


# Seconds per unit. Months and years are fixed lengths, not calendar arithmetic.
TIME_UNITS = {
    "second": 1,
    "minute": 60,
    "hour": 60 * 60,
    "day": 86400,
    "week": 86400 * 7,
    "month": 86400 * 30,
    "year": 86400 * 365,
    "decade": 86400 * 365 * 10,
}

# Base-1024 multipliers
SIZE_UNITS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024 ** 2,
    "GB": 1024 ** 3,
    "TB": 1024 ** 4,
}


def _strip_plural(unit: str) -> str:
    return unit[:-1] if unit.endswith("s") else unit


def parse_relative_time(now: int, text: str) -> Optional[int]:
    """
    Convert relative time text such as ``"3 hours ago"`` into a Unix timestamp.

    Args:
        now: Reference instant (Unix seconds) the offset is subtracted from
        text: Text of the exact shape ``"<integer> <unit> ago"``

    Returns:
        ``now`` minus the offset, or None when the text does not have
        exactly three tokens, the count is not an integer, the last token
        is not ``ago``, the unit is unknown, or the result would be negative.

    Example:
        parse_relative_time(1_000_000, "2 minutes ago")
        # Returns: 999880
    """
    value = text.strip()
    if not value:
        return None

    parts = value.split(" ")
    if len(parts) != 3:
        return None

    count_text, unit, ago = parts
    if ago != "ago" or not (count_text.isascii() and count_text.isdigit()):
        return None

    factor = TIME_UNITS.get(_strip_plural(unit))
    if factor is None:
        return None

    result = now - int(count_text) * factor
    if result < 0:
        return None
    return result


def parse_size(text: str) -> Optional[int]:
    """
    Convert a human readable size such as ``"87.8 MB"`` into bytes.

    Grouping commas in the number are ignored (``"1,024 B"``). Units are
    base-1024 and the result is truncated to a whole number of bytes.

    Returns:
        Byte count, or None if the number or unit is not recognised.
    """
    value = text.strip()
    if not value:
        return None

    parts = value.split(" ")
    if len(parts) != 2:
        return None

    number_text = parts[0].replace(",", "")
    if "_" in number_text:
        return None
    try:
        number = float(number_text)
    except ValueError:
        return None
    if not math.isfinite(number) or number < 0:
        return None

    multiplier = SIZE_UNITS.get(_strip_plural(parts[1]))
    if multiplier is None:
        return None
    return int(number * multiplier)


def parse_file_entry(text: str) -> Optional[FileEntry]:
    """
    Parse a file listing line like ``"Movie (Part 1) (1.2 GB)"``.

    The size annotation is taken from the *last* opening parenthesis, so the
    name itself may contain parentheses.
    """
    value = text.strip()
    if not value.endswith(")"):
        return None

    index = value.rfind("(")
    if index == -1:
        return None

    name = value[:index].strip()
    if not name:
        return None

    size = parse_size(value[index + 1:-1])
    if size is None:
        return None
    return FileEntry(name=name, size_bytes=size)


# -------------------------------------------------------
# Markup helpers
# -------------------------------------------------------

def first_text(tag: Tag) -> str:
    """Return the first text node under ``tag`` (untrimmed), or ``""``."""
    return next(iter(tag.strings), "")


def first_non_blank_text(tag: Tag) -> str:
    """Return the first text node under ``tag`` that is not whitespace, trimmed."""
    for text in tag.strings:
        text = text.strip()
        if text:
            return text
    return ""


def joined_text(tag: Tag) -> str:
    """Concatenate every text node under ``tag`` and trim the result."""
    return "".join(tag.strings).strip()
