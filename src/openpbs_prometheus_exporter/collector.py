"""Prometheus collector serving the published cluster snapshot.

The collector never runs OpenPBS queries itself. It reads whatever the
refresh scheduler last published into the snapshot store, so scrapes are
cheap and never block on the scheduler's commands.
"""

from collections.abc import Callable, Iterator
from typing import TypeAlias

import structlog
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from .snapshot import ClusterSnapshot
from .store import SnapshotStore

logger = structlog.get_logger(__name__)

MetricsGenerator: TypeAlias = Callable[[ClusterSnapshot], Iterator[Metric]]


class PBSCollector(Collector):
    """Prometheus collector for OpenPBS metrics.

    Separates concerns through dependency injection:
    - Snapshot production (the refresh scheduler publishing into the store)
    - Metric generation (via MetricsGenerator function)
    - Refresh metadata (read from the store alongside the snapshot)

    Domain metrics are omitted until the first snapshot has been published.
    """

    def __init__(
        self,
        store: SnapshotStore,
        generator: MetricsGenerator,
        source_description: str,
    ):
        """Initialize the OpenPBS collector.

        Args:
            store: Store holding the currently published snapshot.
            generator: Function that generates Prometheus metrics from a
                snapshot.
            source_description: Description of the data source for help
                texts (e.g., "qstat/pbsnodes").
        """
        self._store = store
        self._generator = generator
        self._source_desc = source_description

    def collect(self) -> Iterator[Metric]:
        """Collect metrics for Prometheus scrape.

        Called by Prometheus client during each scrape. Yields refresh
        metadata followed by domain-specific metrics from the configured
        generator function.

        Yields:
            Prometheus Metric objects (metadata + domain metrics).
        """
        # One consistent read; the scheduler may publish mid-scrape
        state = self._store.state()

        # -1 indicates no successful refresh yet
        refresh_duration = GaugeMetricFamily(
            "openpbs_refresh_duration_seconds",
            f"duration of the last successful refresh from {self._source_desc} "
            f"in seconds, -1 indicates no successful refresh yet",
        )
        refresh_duration.add_metric(
            [],
            state.refresh_duration if state.refresh_duration is not None else -1.0,
        )
        yield refresh_duration

        refresh_errors = CounterMetricFamily(
            "openpbs_refresh_errors",
            f"refreshes from {self._source_desc} aborted by a failed query",
        )
        refresh_errors.add_metric([], state.failed_refreshes)
        yield refresh_errors

        last_refresh = GaugeMetricFamily(
            "openpbs_last_refresh_timestamp_seconds",
            "unix time of the last successful refresh, 0 if none",
        )
        last_refresh.add_metric([], state.published_at or 0.0)
        yield last_refresh

        if state.snapshot is None:
            logger.debug("No snapshot published yet, skipping domain metrics")
            return

        yield from self._generator(state.snapshot)
