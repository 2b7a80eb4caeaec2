"""Job parsers for qstat output.

Two queries feed the job metrics: the line count of the plain ``qstat``
listing, from which the total number of jobs is derived, and a table of
``<count> <state code>`` rows already grouped and counted by the shell
pipeline that produced it.
"""

from collections import Counter
from dataclasses import dataclass, field

import structlog

from ..snapshot import JobState
from . import scanning

logger = structlog.get_logger(__name__)

# Header lines printed by plain qstat above the job listing.
DEFAULT_HEADER_LINES = 2

_MIN_ROW_FIELDS = 2


@dataclass
class JobTotal:
    """Total number of jobs in the queue."""

    total: int = 0
    decode_errors: int = 0


@dataclass
class JobTally:
    """Job counts keyed by state label."""

    by_state: dict[str, int] = field(default_factory=dict)
    decode_errors: int = 0


def parse_job_total(text: str, header_lines: int = DEFAULT_HEADER_LINES) -> JobTotal:
    """Derive the job total from the line count of the qstat listing.

    qstat prints nothing at all when the queue is empty, so the result is
    clamped at zero rather than going negative.

    Args:
        text: Output of ``qstat | wc -l``.
        header_lines: Number of header lines to subtract.

    Returns:
        The job total, or zero with one decode error if the count is not
        an integer.
    """
    stripped = text.strip()
    try:
        line_count = int(stripped)
    except ValueError:
        logger.warning("Failed to decode job line count", value=stripped)
        return JobTotal(decode_errors=1)
    return JobTotal(total=max(line_count - header_lines, 0))


def parse_states(text: str) -> JobTally:
    """Map a pre-counted state table onto job state labels.

    Rows with an unrecognized state code are ignored. Rows repeating a code
    are summed.

    Args:
        text: Rows of ``<count> <state code>``.

    Returns:
        Job tally with every well-known state present, possibly zero.
    """
    by_state: Counter[str] = Counter({state.value: 0 for state in JobState})
    decode_errors = 0

    for line in text.splitlines():
        fields = line.split()
        if len(fields) < _MIN_ROW_FIELDS:
            continue
        state = JobState.from_code(fields[1])
        if state is None:
            continue
        count = scanning.decode_count(fields[0], line)
        if count is None:
            decode_errors += 1
            continue
        by_state[state.value] += count

    return JobTally(by_state=dict(by_state), decode_errors=decode_errors)
