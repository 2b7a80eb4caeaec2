"""OpenPBS command-line client package.

Provides a thin wrapper that runs the qstat and pbsnodes queries the
exporter needs and returns their raw text output. Parsing is handled by the
parsers package.

Exports:
    PBSCommandClient: Runs queries with a timeout and error reporting.
    QueryKind: The queries the exporter issues.
    QueryCommands: Shell command templates for each query.
    CommandError: Raised when a query produces no usable output.
    DEFAULT_TIMEOUT: Default command timeout.
"""

from .client import (
    DEFAULT_TIMEOUT,
    CommandError,
    PBSCommandClient,
    QueryCommands,
    QueryKind,
)

__all__ = [
    "DEFAULT_TIMEOUT",
    "CommandError",
    "PBSCommandClient",
    "QueryCommands",
    "QueryKind",
]
