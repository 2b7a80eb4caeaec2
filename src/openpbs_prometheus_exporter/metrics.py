"""Prometheus metric generation from cluster snapshots.

Metric families are built from scratch for every scrape, so label sets
always mirror the current snapshot: a user without running jobs or a state
with no nodes disappears as soon as a snapshot without it is published.
"""

from collections.abc import Iterator

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from .snapshot import ClusterSnapshot, JobState, NodeState

# (metric name, help text, node state)
NODE_STATE_GAUGES: tuple[tuple[str, str, NodeState], ...] = (
    ("openpbs_node_available", "Number of available nodes", NodeState.FREE),
    ("openpbs_node_down", "Number of down nodes", NodeState.DOWN),
    ("openpbs_node_busy", "Number of busy nodes", NodeState.BUSY),
    ("openpbs_node_reserved", "Number of reserved nodes", NodeState.RESERVED),
    ("openpbs_node_offline", "Number of offline nodes", NodeState.OFFLINE),
    ("openpbs_node_drained", "Number of drained nodes", NodeState.DRAINING),
    ("openpbs_node_unknown", "Number of unknown nodes", NodeState.UNKNOWN),
)

JOB_STATE_GAUGES: tuple[tuple[str, str, JobState], ...] = (
    ("openpbs_job_running", "Number of jobs in the 'Running' state", JobState.RUNNING),
    ("openpbs_job_queued", "Number of jobs in the 'Queued' state", JobState.QUEUED),
    ("openpbs_job_held", "Number of jobs in the 'Held' state", JobState.HELD),
    ("openpbs_job_exiting", "Number of jobs in the 'Exiting' state", JobState.EXITING),
)


def _gauge(name: str, documentation: str, value: float) -> GaugeMetricFamily:
    gauge = GaugeMetricFamily(name, documentation)
    gauge.add_metric([], value)
    return gauge


def generate_metrics(snapshot: ClusterSnapshot) -> Iterator[Metric]:
    """Generate Prometheus metrics from a cluster snapshot.

    Args:
        snapshot: The currently published snapshot.

    Yields:
        Prometheus Metric objects.
    """
    yield _gauge("openpbs_job_count", "Number of jobs in the queue", snapshot.job_total)
    yield _gauge("openpbs_node_count", "Number of nodes", snapshot.node_total)

    for name, documentation, node_state in NODE_STATE_GAUGES:
        yield _gauge(name, documentation, snapshot.node_count(node_state))

    for name, documentation, job_state in JOB_STATE_GAUGES:
        yield _gauge(name, documentation, snapshot.job_count(job_state))

    # Labeled state families also carry states without a dedicated gauge
    node_states = GaugeMetricFamily(
        "openpbs_node_states",
        "Number of nodes by state",
        labels=["state"],
    )
    for state, count in sorted(snapshot.nodes_by_state.items()):
        node_states.add_metric([state], count)
    yield node_states

    job_states = GaugeMetricFamily(
        "openpbs_job_states",
        "Number of jobs by state",
        labels=["state"],
    )
    for state, count in sorted(snapshot.jobs_by_state.items()):
        job_states.add_metric([state], count)
    yield job_states

    yield _gauge(
        "openpbs_memory_usage_gb",
        "Total memory usage in the OpenPBS cluster in GB.",
        snapshot.memory_used_gb,
    )
    yield _gauge(
        "openpbs_memory_available_gb",
        "Total memory available in the OpenPBS cluster in GB.",
        snapshot.memory_available_gb,
    )
    yield _gauge(
        "openpbs_cpu_assigned_unit",
        "Total CPU usage in the OpenPBS cluster.",
        snapshot.cpu_assigned,
    )
    yield _gauge(
        "openpbs_cpu_available_unit",
        "Total CPU available in the OpenPBS cluster.",
        snapshot.cpu_available,
    )
    yield _gauge(
        "openpbs_cpu_total",
        "Total CPU in the OpenPBS cluster.",
        snapshot.cpu_total,
    )

    user_memory = GaugeMetricFamily(
        "openpbs_user_memory_usage_gb",
        "Memory usage per user in the OpenPBS cluster in GB.",
        labels=["user"],
    )
    user_cpu = GaugeMetricFamily(
        "openpbs_user_cpu_usage",
        "CPU usage per user in the OpenPBS cluster.",
        labels=["user"],
    )
    for user, usage in sorted(snapshot.usage_by_user.items()):
        user_memory.add_metric([user], usage.memory_gb)
        user_cpu.add_metric([user], usage.cpu_units)
    yield user_memory
    yield user_cpu

    yield _gauge(
        "openpbs_decode_errors",
        "Values in the current snapshot that could not be decoded",
        snapshot.decode_errors,
    )
