"""Memory unit normalization.

OpenPBS reports memory sizes as an integer followed by a unit suffix
(``512mb``, ``16gb``). All memory metrics are exported in gigabytes using
binary (1024-based) factors.
"""

import structlog

logger = structlog.get_logger(__name__)

# Multiplier that converts a value in the given unit to gigabytes.
GIGABYTE_FACTORS: dict[str, float] = {
    "kb": 1.0 / (1024 * 1024),
    "mb": 1.0 / 1024,
    "gb": 1.0,
    "tb": 1024.0,
}


def to_gigabytes(value: float, unit: str) -> float | None:
    """Convert a memory value to gigabytes.

    Unit tokens are matched case-sensitively against the suffixes emitted by
    the OpenPBS tools. An unrecognized unit is a non-fatal decoding event: a
    warning is logged and None is returned so the caller can skip the value.

    Args:
        value: Magnitude in the given unit.
        unit: One of "kb", "mb", "gb" or "tb".

    Returns:
        The value in gigabytes, or None if the unit is not recognized.
    """
    factor = GIGABYTE_FACTORS.get(unit)
    if factor is None:
        logger.warning("Unknown memory unit", unit=unit, value=value)
        return None
    return value * factor
