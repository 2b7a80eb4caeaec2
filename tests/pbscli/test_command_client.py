"""Tests for the OpenPBS command client."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from openpbs_prometheus_exporter import pbscli
from openpbs_prometheus_exporter.pbscli import client


def _completed(stdout: str = "", stderr: str = "", returncode: int = 0) -> MagicMock:
    return MagicMock(stdout=stdout, stderr=stderr, returncode=returncode)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def test_non_positive_timeout_rejected():
    """A zero timeout is a configuration error."""
    with pytest.raises(ValueError, match="timeout"):
        pbscli.PBSCommandClient(timeout=0)


def test_default_templates_cover_every_query():
    """Every query kind has a command template."""
    commands = pbscli.QueryCommands()
    for kind in pbscli.QueryKind:
        assert commands.for_query(kind)


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@patch("openpbs_prometheus_exporter.pbscli.client.subprocess.run")
def test_run_returns_stdout(mock_run: MagicMock):
    """Successful commands return their raw stdout."""
    mock_run.return_value = _completed(stdout="node01\n     Mom = node01\n")
    pbs = pbscli.PBSCommandClient(timeout=7.0)

    output = pbs.run(pbscli.QueryKind.NODE_DESCRIPTION)

    assert output == "node01\n     Mom = node01\n"
    mock_run.assert_called_once_with(
        ["bash", "-o", "pipefail", "-c", "pbsnodes -a"],
        capture_output=True,
        encoding="utf-8",
        errors="replace",
        timeout=7.0,
        check=False,
    )


@patch("openpbs_prometheus_exporter.pbscli.client.subprocess.run")
def test_run_uses_configured_template(mock_run: MagicMock):
    """Custom command templates replace the defaults."""
    mock_run.return_value = _completed(stdout="3\n")
    commands = pbscli.QueryCommands(job_count="/opt/pbs/bin/qstat | wc -l")
    pbs = pbscli.PBSCommandClient(commands=commands)

    pbs.run(pbscli.QueryKind.JOB_COUNT)

    assert mock_run.call_args.args[0] == [
        "bash",
        "-o",
        "pipefail",
        "-c",
        "/opt/pbs/bin/qstat | wc -l",
    ]


@patch("openpbs_prometheus_exporter.pbscli.client.subprocess.run")
def test_run_non_zero_exit_raises(mock_run: MagicMock):
    """A non-zero exit raises CommandError carrying stderr."""
    mock_run.return_value = _completed(stderr="qstat: cannot connect\n", returncode=2)
    pbs = pbscli.PBSCommandClient()

    with pytest.raises(pbscli.CommandError, match="cannot connect") as exc_info:
        pbs.run(pbscli.QueryKind.JOB_DETAIL)

    assert exc_info.value.kind is pbscli.QueryKind.JOB_DETAIL
    assert exc_info.value.command == "qstat -f"


@patch("openpbs_prometheus_exporter.pbscli.client.subprocess.run")
def test_run_non_zero_exit_without_stderr(mock_run: MagicMock):
    """The exit status is reported when stderr is empty."""
    mock_run.return_value = _completed(returncode=1)

    with pytest.raises(pbscli.CommandError, match="exit status 1"):
        pbscli.PBSCommandClient().run(pbscli.QueryKind.JOB_COUNT)


@patch("openpbs_prometheus_exporter.pbscli.client.subprocess.run")
def test_run_timeout_raises_command_error(mock_run: MagicMock):
    """A timeout is reported like any other query failure."""
    mock_run.side_effect = subprocess.TimeoutExpired(cmd="qstat -f", timeout=1.0)

    with pytest.raises(pbscli.CommandError, match="timed out"):
        pbscli.PBSCommandClient(timeout=1.0).run(pbscli.QueryKind.JOB_DETAIL)


@patch.object(client.subprocess, "run", side_effect=FileNotFoundError("bash"))
def test_run_missing_shell_raises_command_error(_mock_run: MagicMock):
    """Failure to start the shell becomes a CommandError."""
    with pytest.raises(pbscli.CommandError):
        pbscli.PBSCommandClient().run(pbscli.QueryKind.JOB_STATE_COUNTS)


# ---------------------------------------------------------------------------
# run through a real shell
# ---------------------------------------------------------------------------


def test_run_failing_first_pipeline_stage_raises():
    """A failing qstat in front of wc still fails the query."""
    commands = pbscli.QueryCommands(
        job_count="sh -c 'echo cannot connect >&2; exit 1' | wc -l",
    )
    pbs = pbscli.PBSCommandClient(commands=commands, timeout=10.0)

    with pytest.raises(pbscli.CommandError, match="cannot connect") as exc_info:
        pbs.run(pbscli.QueryKind.JOB_COUNT)

    assert exc_info.value.kind is pbscli.QueryKind.JOB_COUNT


def test_run_replaces_undecodable_output_bytes():
    """Output that is not valid UTF-8 is returned with replacement characters."""
    commands = pbscli.QueryCommands(
        node_description=r"printf 'n1\n     Mom = n1\n     comment = caf\351\n     state = free\n'",
    )
    pbs = pbscli.PBSCommandClient(commands=commands, timeout=10.0)

    output = pbs.run(pbscli.QueryKind.NODE_DESCRIPTION)

    assert "state = free" in output
    assert "caf\ufffd" in output
