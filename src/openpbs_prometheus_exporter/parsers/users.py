"""Per-user resource usage parser for ``qstat -f`` output.

Each job block of the full qstat listing names its owner on a ``Job_Owner``
line (the owner is the text before the first slash), followed later by
``resources_used.*`` lines. Usage lines are attributed to the owner of the
block they appear in by tracking the most recent owner line while scanning.
"""

import enum
import re
from dataclasses import dataclass, field

import structlog

from ..snapshot import UserUsage
from . import scanning

logger = structlog.get_logger(__name__)

_OWNER_RE = re.compile(r"Job_Owner = (?P<owner>[^/\s]+)")
_USED_MEM = scanning.attribute_pattern("resources_used.mem")
_USED_NCPUS = scanning.attribute_pattern("resources_used.ncpus")


class CursorState(enum.Enum):
    """Whether an owner line has been seen yet during a scan."""

    NO_OWNER = enum.auto()
    HAS_OWNER = enum.auto()


class OwnerCursor:
    """Tracks the owner of the job block currently being scanned.

    Starts in NO_OWNER and moves to HAS_OWNER on the first owner line;
    later owner lines replace the owner. Usage seen in NO_OWNER belongs to
    nobody and is dropped.
    """

    def __init__(self):
        self.state = CursorState.NO_OWNER
        self._owner: str | None = None

    def observe_owner(self, owner: str) -> None:
        """Record the owner of the job block that starts here."""
        self.state = CursorState.HAS_OWNER
        self._owner = owner

    @property
    def owner(self) -> str | None:
        """Current owner, or None before any owner line."""
        if self.state is CursorState.NO_OWNER:
            return None
        return self._owner


@dataclass
class UserTally:
    """Resource usage summed per user."""

    usage: dict[str, UserUsage] = field(default_factory=dict)
    decode_errors: int = 0


def parse(text: str) -> UserTally:
    """Sum memory and CPU usage per job owner.

    Args:
        text: Raw output of ``qstat -f``.

    Returns:
        Usage per user. Only users with at least one decoded usage line
        are present.
    """
    cursor = OwnerCursor()
    memory: dict[str, float] = {}
    cpus: dict[str, int] = {}
    decode_errors = 0
    dropped = 0

    for line in text.splitlines():
        if (match := _OWNER_RE.search(line)) is not None:
            cursor.observe_owner(match.group("owner"))
            continue

        if (raw := scanning.match_value(_USED_MEM, line)) is not None:
            owner = cursor.owner
            if owner is None:
                dropped += 1
                continue
            value = scanning.decode_memory_gb(raw, line)
            if value is None:
                decode_errors += 1
                continue
            memory[owner] = memory.get(owner, 0.0) + value
            cpus.setdefault(owner, 0)
        elif (raw := scanning.match_value(_USED_NCPUS, line)) is not None:
            owner = cursor.owner
            if owner is None:
                dropped += 1
                continue
            count = scanning.decode_count(raw, line)
            if count is None:
                decode_errors += 1
                continue
            cpus[owner] = cpus.get(owner, 0) + count
            memory.setdefault(owner, 0.0)

    if dropped:
        logger.debug("Dropped usage lines without a job owner", lines=dropped)

    usage = {
        user: UserUsage(memory_gb=memory[user], cpu_units=cpus[user]) for user in memory
    }
    return UserTally(usage=usage, decode_errors=decode_errors)
