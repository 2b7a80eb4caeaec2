"""Cluster snapshot data model.

A ClusterSnapshot is the complete set of facts derived from one successful
collection pass. Snapshots are immutable: each pass builds a new one and the
previous snapshot is replaced wholesale.
"""

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


class JobState(str, enum.Enum):
    """Well-known OpenPBS job states keyed by their qstat state code."""

    RUNNING = "running"
    QUEUED = "queued"
    HELD = "held"
    EXITING = "exiting"
    WAITING = "waiting"
    SUSPENDED = "suspended"
    TRANSITING = "transiting"
    BEGUN = "begun"
    MOVED = "moved"
    USER_SUSPENDED = "user_suspended"
    FINISHED = "finished"
    EXPIRED = "expired"

    @classmethod
    def from_code(cls, code: str) -> "JobState | None":
        """Look up a job state by its single-letter qstat code."""
        return _JOB_STATE_CODES.get(code)


_JOB_STATE_CODES: dict[str, JobState] = {
    "R": JobState.RUNNING,
    "Q": JobState.QUEUED,
    "H": JobState.HELD,
    "E": JobState.EXITING,
    "W": JobState.WAITING,
    "S": JobState.SUSPENDED,
    "T": JobState.TRANSITING,
    "B": JobState.BEGUN,
    "M": JobState.MOVED,
    "U": JobState.USER_SUSPENDED,
    "F": JobState.FINISHED,
    "X": JobState.EXPIRED,
}


class NodeState(str, enum.Enum):
    """Well-known node states.

    Node state counts are keyed by plain strings so that phrases outside this
    set can be kept under their literal text.
    """

    FREE = "free"
    DOWN = "down"
    BUSY = "busy"
    RESERVED = "reserved"
    OFFLINE = "offline"
    DRAINING = "draining"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class UserUsage:
    """Resources used by the running jobs of a single user."""

    memory_gb: float = 0.0
    cpu_units: int = 0


def _frozen(mapping: Mapping | None) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class ClusterSnapshot:
    """Point-in-time aggregate of OpenPBS cluster state.

    All mappings are copied into read-only views on construction, so a
    snapshot can be shared with concurrent readers once published. State
    mappings are keyed by label strings; the JobState and NodeState values
    are the well-known subset.
    """

    job_total: int = 0
    jobs_by_state: Mapping[str, int] = field(default_factory=dict)
    node_total: int = 0
    nodes_by_state: Mapping[str, int] = field(default_factory=dict)
    memory_used_gb: float = 0.0
    memory_available_gb: float = 0.0
    cpu_assigned: int = 0
    cpu_available: int = 0
    cpu_total: int = 0
    usage_by_user: Mapping[str, UserUsage] = field(default_factory=dict)
    decode_errors: int = 0

    def __post_init__(self):
        """Validate counts and freeze the nested mappings."""
        for name in (
            "job_total",
            "node_total",
            "cpu_assigned",
            "cpu_available",
            "cpu_total",
            "decode_errors",
        ):
            if getattr(self, name) < 0:
                msg = f"{name} must not be negative"
                raise ValueError(msg)
        for state_counts in (self.jobs_by_state, self.nodes_by_state):
            if any(count < 0 for count in state_counts.values()):
                msg = "state counts must not be negative"
                raise ValueError(msg)
        if any(not user for user in self.usage_by_user):
            msg = "usage_by_user keys must be non-empty user names"
            raise ValueError(msg)

        # Bypass frozen to replace the caller's dicts with read-only copies
        object.__setattr__(self, "jobs_by_state", _frozen(self.jobs_by_state))
        object.__setattr__(self, "nodes_by_state", _frozen(self.nodes_by_state))
        object.__setattr__(self, "usage_by_user", _frozen(self.usage_by_user))

    def job_count(self, state: JobState) -> int:
        """Return the number of jobs in a well-known state."""
        return self.jobs_by_state.get(state.value, 0)

    def node_count(self, state: NodeState) -> int:
        """Return the number of nodes in a well-known state."""
        return self.nodes_by_state.get(state.value, 0)
