import pytest
from unittest.mock import patch, AsyncMock
from typer.testing import CliRunner

from fastip_router.cli import app
from fastip_router.client import RunSummary
from fastip_router.errors import SelectionEmpty, SinkWriteFailure
from fastip_router.hosts import HostsChange
from fastip_router.models import Candidate, ProbeResult, SelectionOutcome

runner = CliRunner()

def test_list_candidates_command():
    """Test list candidates command."""
    mock_probes = [
        {
            "address": "140.82.112.3",
            "source": "static",
            "region": "us-east",
            "latency_ms": 180.0,
            "throughput_kbps": 320.0,
            "fastest": False,
        },
        {
            "address": "20.205.243.166",
            "source": "static",
            "region": "ap-southeast",
            "latency_ms": 45.0,
            "throughput_kbps": 900.0,
            "fastest": True,
        },
        {
            "address": "140.82.113.3",
            "source": "static",
            "region": None,
            "latency_ms": None,
            "throughput_kbps": None,
            "fastest": False,
        },
    ]

    with patch('fastip_router.cli.FastIpClient') as mock_client_class:
        mock_client = AsyncMock()
        mock_client_class.return_value = mock_client
        mock_client.list_probes.return_value = mock_probes

        result = runner.invoke(app, ["list-candidates", "github.com", "--source", "static"])

        assert result.exit_code == 0, result.output
        mock_client_class.assert_called_once()
        mock_client.list_probes.assert_called_once_with("github.com")
        lines = result.stdout.strip().splitlines()
        assert lines[0].startswith("★ 20.205.243.166")
        assert "n/a" in lines[2]

def test_unknown_source_is_rejected():
    result = runner.invoke(app, ["list-candidates", "github.com", "--source", "carrier-pigeon"])
    assert result.exit_code != 0

def test_best_command():
    with patch('fastip_router.cli.FastIpClient') as mock_client_class:
        mock_client = AsyncMock()
        mock_client_class.return_value = mock_client
        mock_client.best_address.return_value = "20.205.243.166"

        result = runner.invoke(app, ["best", "github.com"])

        assert result.exit_code == 0
        assert "20.205.243.166" in result.stdout

def test_best_command_without_choice():
    with patch('fastip_router.cli.FastIpClient') as mock_client_class:
        mock_client = AsyncMock()
        mock_client_class.return_value = mock_client
        mock_client.best_address.side_effect = SelectionEmpty("github.com")

        result = runner.invoke(app, ["best", "github.com"])

        assert result.exit_code == 1

def test_optimize_command(tmp_path):
    chosen = Candidate("20.205.243.166", "doh")
    summary = RunSummary(
        outcomes={
            "github.com": SelectionOutcome(chosen, ProbeResult(chosen, 42.0, 700.0)),
            "raw.githubusercontent.com": SelectionOutcome(),
        },
        mapping={"github.com": "20.205.243.166", "raw.githubusercontent.com": "185.199.108.133"},
        hosts_change=HostsChange(updated={"github.com": "20.205.243.166"}),
    )

    with patch('fastip_router.cli.FastIpClient') as mock_client_class:
        mock_client = AsyncMock()
        mock_client_class.return_value = mock_client
        mock_client.run.return_value = summary

        result = runner.invoke(app, [
            "optimize", "--hosts-file", str(tmp_path / "hosts"), "--dry-run",
            "--no-throughput", "--max-latency", "300",
        ])

        assert result.exit_code == 0, result.output
        settings = mock_client_class.call_args.kwargs["settings"]
        assert settings.probe_throughput is False
        assert settings.threshold.min_throughput_kbps is None
        assert settings.threshold.max_latency_ms == 300
        mock_client.run.assert_called_once_with(
            hosts_path=str(tmp_path / "hosts"), report_dir=None, dry_run=True, flush=True
        )
        assert "(fallback)" in result.stdout
        assert "1 updated" in result.stdout

def test_optimize_reports_sink_failure():
    with patch('fastip_router.cli.FastIpClient') as mock_client_class:
        mock_client = AsyncMock()
        mock_client_class.return_value = mock_client
        mock_client.run.side_effect = SinkWriteFailure("/etc/hosts", "write failed: permission denied")

        result = runner.invoke(app, ["optimize"])

        assert result.exit_code == 1

def test_flush_dns_command():
    with patch('fastip_router.cli.select_invalidator') as mock_select:
        mock_select.return_value.invalidate.return_value = True
        assert runner.invoke(app, ["flush-dns"]).exit_code == 0

        mock_select.return_value.invalidate.return_value = False
        assert runner.invoke(app, ["flush-dns"]).exit_code == 1
