"""Tests for the stress preset CLI."""

from unittest.mock import patch

import pytest

from dbbench import stress


class TestFormatting:
    def test_listing_mentions_every_preset(self):
        listing = stress.format_config_listing()
        for name in ("light-bulk", "balanced-light", "read-extreme", "write-extreme"):
            assert f"{name}:" in listing
        assert "Total Documents: 5,000" in listing

    def test_recommended_is_numbered(self):
        text = stress.format_recommended()
        assert "1. light-bulk" in text
        assert "dbbench-stress --config extreme-bulk" in text

    def test_comparison(self):
        text = stress.format_comparison(["light-bulk", "heavy-bulk"])
        rows = [line for line in text.splitlines() if line.startswith(("light-bulk", "heavy-bulk"))]
        assert len(rows) == 2
        assert "250,000" in rows[1]

    def test_comparison_unknown(self):
        with pytest.raises(ValueError):
            stress.format_comparison(["light-bulk", "nope"])


class TestRunnerArgv:
    def test_preset_arguments(self):
        assert stress.runner_argv("light-bulk") == [
            "--scenario", "bulk-insert",
            "--adapter", "rethinkdb,memory",
            "--batch-size", "50",
            "--requests", "100",
            "--concurrency", "5",
            "--out", "light-bulk-report.json",
        ]

    def test_adapter_override(self):
        argv = stress.runner_argv("balanced-light", ["memory"])
        assert argv[argv.index("--adapter") + 1] == "memory"


class TestMain:
    def test_list(self, capsys):
        assert stress.main(["--list"]) == 0
        assert "Available stress test configurations" in capsys.readouterr().out

    def test_compare_unknown_config(self):
        assert stress.main(["--compare", "light-bulk,nope"]) == 1

    def test_unknown_config(self):
        assert stress.main(["--config", "nope"]) == 1

    @patch("dbbench.stress.run_benchmark", return_value=0)
    def test_runs_preset(self, mock_run):
        assert stress.main(["--config", "light-bulk", "--adapter", "memory", "--results-dir", "out"]) == 0

        argv = mock_run.call_args.args[0]
        assert argv[:4] == ["--scenario", "bulk-insert", "--adapter", "memory"]
        assert argv[-2:] == ["--results-dir", "out"]

    @patch("dbbench.stress.run_benchmark", return_value=3)
    def test_propagates_runner_exit_code(self, mock_run):
        assert stress.run_preset("light-bulk") == 3
        mock_run.assert_called_once()

    def test_no_action_prints_help(self, capsys):
        assert stress.main([]) == 0
        assert "No action specified" in capsys.readouterr().out
