"""Shared helpers for line-oriented scanning of OpenPBS output.

OpenPBS prints resources as ``attribute = value`` lines. The helpers here
build patterns for such lines and decode matched values, logging a warning
for every value that cannot be decoded.
"""

import re

import structlog

from .. import units

logger = structlog.get_logger(__name__)

# Memory quantities are an integer followed by a unit suffix, e.g. "2048mb".
_QUANTITY_RE = re.compile(r"^(?P<number>\d+)(?P<unit>[A-Za-z]*)$")


def attribute_pattern(name: str) -> re.Pattern[str]:
    """Build a pattern matching ``<name> = <value>`` anywhere in a line.

    The value is captured in the "value" group as the first run of
    non-whitespace characters after the equals sign.
    """
    return re.compile(rf"{re.escape(name)} = (?P<value>\S+)")


def match_value(pattern: re.Pattern[str], line: str) -> str | None:
    """Return the captured value if the line matches the pattern."""
    match = pattern.search(line)
    if match is None:
        return None
    return match.group("value")


def decode_memory_gb(raw: str, line: str) -> float | None:
    """Decode a memory quantity such as "512mb" into gigabytes.

    Args:
        raw: The matched value token.
        line: The full line, used for logging.

    Returns:
        The value in gigabytes, or None if it could not be decoded.
    """
    match = _QUANTITY_RE.match(raw)
    if match is None:
        logger.warning("Failed to decode memory value", value=raw, line=line.strip())
        return None
    return units.to_gigabytes(int(match.group("number")), match.group("unit"))


def decode_count(raw: str, line: str) -> int | None:
    """Decode a non-negative integer count such as an ncpus value."""
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Failed to decode integer value", value=raw, line=line.strip())
        return None
    if value < 0:
        logger.warning("Negative count ignored", value=raw, line=line.strip())
        return None
    return value
