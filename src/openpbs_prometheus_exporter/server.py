"""HTTP server for the OpenPBS Prometheus Exporter."""

import contextlib
import json
import logging
import os
import pathlib
from collections.abc import AsyncIterator

import prometheus_client
import prometheus_client.core
import pydantic
import starlette.applications
import starlette.requests
import starlette.responses
import starlette.routing
import structlog

from . import metrics, pbscli
from .collector import PBSCollector
from .orchestrator import CollectionOrchestrator
from .parsers.jobs import DEFAULT_HEADER_LINES
from .scheduler import DEFAULT_INTERVAL, RefreshScheduler
from .store import SnapshotStore

CONFIG_ENV_VAR = "OPENPBS_EXPORTER_CONFIG_PATH"
logger = structlog.get_logger(__name__)


class ExporterConfig(pydantic.BaseModel):
    """Configuration for the OpenPBS Prometheus Exporter."""

    port: int = pydantic.Field(8080, description="HTTP server port", gt=0, lt=65536)
    metrics_path: str = pydantic.Field(
        "/metrics",
        description="URL path for metrics endpoint",
    )
    refresh_interval: float = pydantic.Field(
        DEFAULT_INTERVAL,
        description="Seconds between refreshes of the cluster snapshot",
        gt=0,
    )
    command_timeout: float = pydantic.Field(
        pbscli.DEFAULT_TIMEOUT,
        description="Timeout in seconds for each qstat/pbsnodes query",
        gt=0,
    )
    job_count_header_lines: int = pydantic.Field(
        DEFAULT_HEADER_LINES,
        description="Header lines printed by qstat above the job listing",
        ge=0,
    )
    commands: pbscli.QueryCommands = pydantic.Field(
        default_factory=pbscli.QueryCommands,
        description="Shell command templates for each query",
    )
    log_level: str = pydantic.Field("INFO", description="Logging level")


def configure_logging(log_level_name: str) -> None:
    """Route exporter and refresh-loop logs through structlog as logfmt.

    Args:
        log_level_name: ExporterConfig.log_level, e.g. "DEBUG". Unrecognized
            names fall back to INFO.
    """
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_config(config_path: str) -> ExporterConfig:
    """Read an ExporterConfig from a JSON file.

    Keys left out of the file keep their defaults, including the qstat and
    pbsnodes command templates under "commands".

    Raises:
        FileNotFoundError: If config_path does not exist.
        pydantic.ValidationError: If a value is out of range.
    """
    path = pathlib.Path(config_path)
    if not path.exists():
        msg = f"Exporter configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with path.open("r") as f:
        data = json.load(f)

    return ExporterConfig(**data)


def create_registry_with_collector(
    store: SnapshotStore,
) -> prometheus_client.core.CollectorRegistry:
    """Create a Prometheus registry serving snapshots from the store.

    Creates a custom registry (not the global one) so that nothing outside
    the exporter's own collector ends up in the exposition.

    Args:
        store: Store the refresh scheduler publishes into.

    Returns:
        Configured Prometheus registry.
    """
    registry = prometheus_client.core.CollectorRegistry()
    registry.register(
        PBSCollector(
            store=store,
            generator=metrics.generate_metrics,
            source_description="qstat/pbsnodes",
        ),
    )
    logger.info("Registered collector", collector="openpbs")
    return registry


def create_starlette_app(
    metrics_path: str,
    registry: prometheus_client.core.CollectorRegistry,
    scheduler: RefreshScheduler | None = None,
) -> starlette.applications.Starlette:
    """Create a Starlette application for serving Prometheus metrics.

    Args:
        metrics_path: URL path for metrics endpoint (e.g., "/metrics").
        registry: Prometheus collector registry.
        scheduler: Refresh scheduler started and stopped with the app.

    Returns:
        Configured Starlette application.
    """

    def metrics_endpoint(
        request: starlette.requests.Request,
    ) -> starlette.responses.Response:
        """Serve the current snapshot in Prometheus exposition format."""
        metrics_output = prometheus_client.generate_latest(registry)
        logger.info(
            "HTTP request",
            client_ip=request.client.host if request.client else "unknown",
            method=request.method,
            path=request.url.path,
        )
        return starlette.responses.PlainTextResponse(
            content=metrics_output,
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    @contextlib.asynccontextmanager
    async def lifespan(app: starlette.applications.Starlette) -> AsyncIterator[None]:
        if scheduler is not None:
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.stop()

    routes = [
        starlette.routing.Route(metrics_path, metrics_endpoint, methods=["GET"]),
    ]

    return starlette.applications.Starlette(routes=routes, lifespan=lifespan)


def create_exporter(config: ExporterConfig) -> starlette.applications.Starlette:
    """Construct the exporter ASGI app from validated config."""
    client = pbscli.PBSCommandClient(
        commands=config.commands,
        timeout=config.command_timeout,
    )
    store = SnapshotStore()
    orchestrator = CollectionOrchestrator(
        source=client,
        sink=store,
        job_count_header_lines=config.job_count_header_lines,
    )
    scheduler = RefreshScheduler(
        refresh=orchestrator.run_once,
        interval=config.refresh_interval,
    )
    logger.info(
        "Created refresh pipeline",
        interval_seconds=config.refresh_interval,
        command_timeout=config.command_timeout,
    )

    return create_starlette_app(
        metrics_path=config.metrics_path,
        registry=create_registry_with_collector(store),
        scheduler=scheduler,
    )


def create_app(config_path: str | None = None) -> starlette.applications.Starlette:
    """Create the exporter ASGI app using a config path or environment default."""
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR, "/config.json")
    config = load_config(resolved_path)
    configure_logging(config.log_level)
    return create_exporter(config)
