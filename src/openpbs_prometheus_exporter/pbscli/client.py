"""OpenPBS command-line client.

Runs the administrative queries through ``bash -o pipefail -c`` so that the
shell pipelines used to pre-aggregate output (``wc``, ``sort``, ``uniq``)
work as written and a failing first stage still fails the query. Output
bytes that are not valid UTF-8 are replaced rather than failing the query.
"""

import enum
import subprocess
import time

import pydantic
import structlog

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0


class QueryKind(str, enum.Enum):
    """Queries issued during one collection pass."""

    JOB_COUNT = "job_count"
    NODE_DESCRIPTION = "node_description"
    JOB_STATE_COUNTS = "job_state_counts"
    JOB_DETAIL = "job_detail"


class QueryCommands(pydantic.BaseModel):
    """Shell command templates for each query."""

    job_count: str = pydantic.Field(
        "qstat | wc -l",
        description="Line count of the job listing, header included",
    )
    node_description: str = pydantic.Field(
        "pbsnodes -a",
        description="Full description of every node",
    )
    job_state_counts: str = pydantic.Field(
        "qstat -a | tail -n +6 | awk '{print $10}' | sort | uniq -c",
        description="Rows of '<count> <state code>'",
    )
    job_detail: str = pydantic.Field(
        "qstat -f",
        description="Full description of every job",
    )

    def for_query(self, kind: QueryKind) -> str:
        """Return the command template for a query."""
        return getattr(self, kind.value)


class CommandError(Exception):
    """Raised when a query fails, times out or cannot be started."""

    def __init__(self, kind: QueryKind, command: str, reason: str):
        self.kind = kind
        self.command = command
        self.reason = reason
        super().__init__(f"{kind.value} query failed ({command!r}): {reason}")


class PBSCommandClient:
    """Runs OpenPBS queries and returns their raw output.

    Stateless apart from configuration, so a single instance can be shared
    by the scheduler thread and tests alike.
    """

    def __init__(
        self,
        commands: QueryCommands | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        shell: str = "bash",
    ):
        """Initialize the command client.

        Args:
            commands: Command templates; defaults to the stock qstat and
                pbsnodes invocations.
            timeout: Per-command timeout in seconds (default: 30.0).
            shell: Shell used to run the templates (default: bash).

        Raises:
            ValueError: If timeout is not positive.
        """
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)

        self.commands = commands or QueryCommands()
        self.timeout = timeout
        self.shell = shell

    def run(self, kind: QueryKind) -> str:
        """Run a query and return its standard output.

        Args:
            kind: The query to run.

        Returns:
            Raw stdout of the command.

        Raises:
            CommandError: If the command cannot be started, exits non-zero
                or exceeds the timeout.
        """
        command = self.commands.for_query(kind)
        start_time = time.time()
        logger.debug("Running query", query=kind.value, command=command)

        try:
            result = subprocess.run(
                [self.shell, "-o", "pipefail", "-c", command],
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandError(
                kind, command, f"timed out after {self.timeout}s"
            ) from exc
        except OSError as exc:
            raise CommandError(kind, command, str(exc)) from exc

        duration = time.time() - start_time
        if result.returncode != 0:
            reason = result.stderr.strip() or f"exit status {result.returncode}"
            raise CommandError(kind, command, reason)

        logger.debug(
            "Query completed",
            query=kind.value,
            duration_seconds=round(duration, 3),
        )
        return result.stdout
