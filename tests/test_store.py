"""Tests for SnapshotStore publication and bookkeeping."""

import threading
from unittest.mock import patch

from openpbs_prometheus_exporter import store
from openpbs_prometheus_exporter.snapshot import ClusterSnapshot, UserUsage

# ---------------------------------------------------------------------------
# Empty store
# ---------------------------------------------------------------------------


def test_empty_store_has_no_snapshot():
    """Before the first publish there is nothing to serve."""
    s = store.SnapshotStore()
    state = s.state()

    assert s.current() is None
    assert state.snapshot is None
    assert state.refresh_duration is None
    assert state.published_at is None
    assert state.failed_refreshes == 0


# ---------------------------------------------------------------------------
# Publication
# ---------------------------------------------------------------------------


@patch("openpbs_prometheus_exporter.store.time")
def test_publish_replaces_snapshot(mock_time):
    """Publishing swaps in the new snapshot with its duration and time."""
    mock_time.time.return_value = 1700000000.0
    first = ClusterSnapshot(job_total=1)
    second = ClusterSnapshot(job_total=2)
    s = store.SnapshotStore()

    s.publish(first, 0.5)
    s.publish(second, 0.25)
    state = s.state()

    assert state.snapshot is second
    assert state.refresh_duration == 0.25
    assert state.published_at == 1700000000.0


def test_publish_replaces_users_wholesale():
    """Users absent from the new snapshot are gone after publication."""
    s = store.SnapshotStore()
    s.publish(ClusterSnapshot(usage_by_user={"alice": UserUsage(1.0, 1)}), 0.1)
    s.publish(ClusterSnapshot(usage_by_user={"bob": UserUsage(2.0, 2)}), 0.1)

    assert list(s.current().usage_by_user) == ["bob"]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


def test_record_failure_keeps_snapshot():
    """A failed pass is counted and leaves the published snapshot in place."""
    snapshot = ClusterSnapshot(job_total=3)
    s = store.SnapshotStore()
    s.publish(snapshot, 0.1)

    s.record_failure("job_detail")
    s.record_failure("job_count")
    state = s.state()

    assert state.snapshot is snapshot
    assert state.failed_refreshes == 2


# ---------------------------------------------------------------------------
# Thread safety
# ---------------------------------------------------------------------------


def test_concurrent_failures_all_counted():
    """Concurrent failure reports are never lost."""
    s = store.SnapshotStore()
    thread_count = 20
    barrier = threading.Barrier(thread_count)

    def worker():
        barrier.wait()
        s.record_failure("job_count")

    threads = [threading.Thread(target=worker) for _ in range(thread_count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert s.state().failed_refreshes == thread_count
