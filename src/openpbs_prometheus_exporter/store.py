"""Thread-safe slot holding the currently published cluster snapshot.

The refresh scheduler publishes into the store from its background thread
while scrapes read from it on request threads. Readers always receive a
complete snapshot together with the bookkeeping of the pass that built it.
"""

import time
from dataclasses import dataclass
from threading import Lock

import structlog

from .snapshot import ClusterSnapshot

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StoreState:
    """Consistent view of the store at one instant.

    Attributes:
        snapshot: Current snapshot, or None before the first successful pass.
        refresh_duration: Duration in seconds of the pass that built the
            snapshot, or None before the first successful pass.
        published_at: Unix time the snapshot was published, or None.
        failed_refreshes: Number of passes aborted since startup.
    """

    snapshot: ClusterSnapshot | None
    refresh_duration: float | None
    published_at: float | None
    failed_refreshes: int


class SnapshotStore:
    """Single-slot store replacing the published snapshot atomically.

    A published snapshot is never modified; publishing swaps the reference
    under a lock so readers observe either the old or the new snapshot and
    never a mix of both.
    """

    def __init__(self):
        """Initialize an empty store."""
        self._lock = Lock()
        self._snapshot: ClusterSnapshot | None = None
        self._refresh_duration: float | None = None
        self._published_at: float | None = None
        self._failed_refreshes = 0

    def publish(self, snapshot: ClusterSnapshot, duration: float) -> None:
        """Replace the current snapshot.

        Args:
            snapshot: Fully built snapshot of a successful pass.
            duration: Duration of that pass in seconds.
        """
        with self._lock:
            self._snapshot = snapshot
            self._refresh_duration = duration
            self._published_at = time.time()
        logger.debug(
            "Published snapshot",
            duration_seconds=round(duration, 3),
            jobs=snapshot.job_total,
            nodes=snapshot.node_total,
            users=len(snapshot.usage_by_user),
        )

    def record_failure(self, query: str) -> None:
        """Count an aborted pass; the current snapshot stays published."""
        with self._lock:
            self._failed_refreshes += 1
            failures = self._failed_refreshes
        logger.debug("Recorded failed refresh", query=query, failed_refreshes=failures)

    def current(self) -> ClusterSnapshot | None:
        """Return the current snapshot, or None before the first publish."""
        with self._lock:
            return self._snapshot

    def state(self) -> StoreState:
        """Return the snapshot and its bookkeeping as one consistent view."""
        with self._lock:
            return StoreState(
                snapshot=self._snapshot,
                refresh_duration=self._refresh_duration,
                published_at=self._published_at,
                failed_refreshes=self._failed_refreshes,
            )
