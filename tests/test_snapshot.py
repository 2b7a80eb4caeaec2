"""Tests for ClusterSnapshot invariants."""

import pytest

from openpbs_prometheus_exporter.snapshot import (
    ClusterSnapshot,
    JobState,
    NodeState,
    UserUsage,
)


def test_default_snapshot_is_all_zero():
    """A default snapshot has no jobs, nodes or users."""
    snapshot = ClusterSnapshot()

    assert snapshot.job_total == 0
    assert snapshot.node_count(NodeState.FREE) == 0
    assert snapshot.job_count(JobState.RUNNING) == 0
    assert dict(snapshot.usage_by_user) == {}


def test_mappings_are_read_only_copies():
    """Later changes to the caller's dicts do not leak into the snapshot."""
    users = {"alice": UserUsage(memory_gb=1.0, cpu_units=2)}
    snapshot = ClusterSnapshot(usage_by_user=users)
    users["mallory"] = UserUsage()

    assert list(snapshot.usage_by_user) == ["alice"]
    with pytest.raises(TypeError):
        snapshot.usage_by_user["bob"] = UserUsage()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"job_total": -1},
        {"cpu_total": -4},
        {"nodes_by_state": {"free": -1}},
        {"usage_by_user": {"": UserUsage()}},
    ],
)
def test_invalid_values_rejected(kwargs):
    """Negative counts and empty user names are rejected."""
    with pytest.raises(ValueError):
        ClusterSnapshot(**kwargs)


def test_job_state_codes():
    """qstat state codes resolve to well-known labels; others do not."""
    assert JobState.from_code("R") is JobState.RUNNING
    assert JobState.from_code("Q") is JobState.QUEUED
    assert JobState.from_code("r") is None
