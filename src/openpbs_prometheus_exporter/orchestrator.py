"""Collection orchestrator.

Runs one full refresh pass: issues each OpenPBS query in order, hands the
output to the matching parsers and merges their results into a new
ClusterSnapshot. Publication is all-or-nothing: the first failing query
aborts the pass and the previously published snapshot stays current.
"""

import time
from typing import Protocol

import structlog

from . import pbscli
from .parsers import jobs, nodes, resources, users
from .snapshot import ClusterSnapshot

logger = structlog.get_logger(__name__)


class QuerySource(Protocol):
    """Anything that can run an OpenPBS query and return its raw output."""

    def run(self, kind: pbscli.QueryKind) -> str: ...


class SnapshotSink(Protocol):
    """Receives the outcome of each pass."""

    def publish(self, snapshot: ClusterSnapshot, duration: float) -> None: ...

    def record_failure(self, query: str) -> None: ...


class CollectionOrchestrator:
    """Builds and publishes cluster snapshots from OpenPBS query output.

    The orchestrator depends only on a query source and a snapshot sink.
    Each pass builds its snapshot from local variables and hands it to the
    sink only after every query has succeeded.
    """

    def __init__(
        self,
        source: QuerySource,
        sink: SnapshotSink,
        job_count_header_lines: int = jobs.DEFAULT_HEADER_LINES,
    ):
        """Initialize the orchestrator.

        Args:
            source: Runs the qstat and pbsnodes queries.
            sink: Receives published snapshots and failure reports.
            job_count_header_lines: Header lines to subtract from the
                qstat line count.
        """
        self._source = source
        self._sink = sink
        self._job_count_header_lines = job_count_header_lines

    def collect(self) -> ClusterSnapshot:
        """Run every query and build a snapshot without publishing it.

        Raises:
            pbscli.CommandError: If any query fails; no later query is run.
        """
        job_total = jobs.parse_job_total(
            self._source.run(pbscli.QueryKind.JOB_COUNT),
            header_lines=self._job_count_header_lines,
        )

        node_output = self._source.run(pbscli.QueryKind.NODE_DESCRIPTION)
        resource_totals = resources.parse(node_output)
        node_tally = nodes.parse(node_output)

        job_tally = jobs.parse_states(
            self._source.run(pbscli.QueryKind.JOB_STATE_COUNTS),
        )

        user_tally = users.parse(self._source.run(pbscli.QueryKind.JOB_DETAIL))

        return ClusterSnapshot(
            job_total=job_total.total,
            jobs_by_state=job_tally.by_state,
            node_total=node_tally.node_total,
            nodes_by_state=node_tally.by_state,
            memory_used_gb=resource_totals.memory_assigned_gb,
            memory_available_gb=resource_totals.memory_available_gb,
            cpu_assigned=resource_totals.cpu_assigned,
            cpu_available=resource_totals.cpu_available,
            cpu_total=resource_totals.cpu_total,
            usage_by_user=user_tally.usage,
            decode_errors=(
                job_total.decode_errors
                + resource_totals.decode_errors
                + job_tally.decode_errors
                + user_tally.decode_errors
            ),
        )

    def run_once(self) -> ClusterSnapshot | None:
        """Run one refresh pass and publish its snapshot.

        Query failures are reported to the sink and logged; they never
        propagate.

        Returns:
            The published snapshot, or None if the pass was aborted.
        """
        start = time.time()
        try:
            snapshot = self.collect()
        except pbscli.CommandError as exc:
            logger.error(
                "Refresh aborted, keeping previous snapshot",
                query=exc.kind.value,
                command=exc.command,
                reason=exc.reason,
            )
            self._sink.record_failure(exc.kind.value)
            return None

        duration = time.time() - start
        self._sink.publish(snapshot, duration)
        if snapshot.decode_errors:
            logger.warning(
                "Refresh completed with undecodable values",
                decode_errors=snapshot.decode_errors,
            )
        logger.info(
            "Refresh completed",
            duration_seconds=round(duration, 3),
            jobs=snapshot.job_total,
            nodes=snapshot.node_total,
        )
        return snapshot
