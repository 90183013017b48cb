"""Tests for the command line interface."""

import json
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from sitediff.cli import cli
from sitediff.errors import DiffError
from sitediff.models.diff_result import DiffResult, DiffSummary, PerRouteResult, RouteArtifacts


def _result() -> DiffResult:
    route = PerRouteResult(
        route="/about",
        diff_ratio=0.2,
        artifacts=RouteArtifacts(baseline="b.png", actual="a.png", diff="d.png"),
        summary_path="summary.json",
        degraded=True,
    )
    return DiffResult(job_id="job_1", diff_id="diff_1", per_route=[route],
                      summary=DiffSummary(passed=0, failed=1, avg=0.2))


class TestDiffCommand:
    """Tests for `sitediff diff`."""

    def test_prints_route_table(self):
        runner = CliRunner()
        with runner.isolated_filesystem(), \
             patch("sitediff.cli.DiffOrchestrator.diff", new_callable=AsyncMock,
                   return_value=_result()) as diff:
            result = runner.invoke(cli, ["diff", "-g", "gen_1", "--width", "390",
                                         "--baselines", "recrawl", "--report"])

        assert result.exit_code == 0, result.output
        kwargs = diff.call_args.kwargs
        assert diff.call_args.args == ("gen_1",)
        assert kwargs["baselines"] == "recrawl"
        assert kwargs["viewport"]["width"] == 390
        assert kwargs["viewport"]["height"] == 800
        assert kwargs["render_report"] is True
        assert kwargs["threshold"] is None

    def test_error_exits_nonzero(self):
        runner = CliRunner()
        error = DiffError("build-failure", "build failed", {"stderr": "Type error in page.tsx"})
        with runner.isolated_filesystem(), \
             patch("sitediff.cli.DiffOrchestrator.diff", new_callable=AsyncMock, side_effect=error):
            result = runner.invoke(cli, ["diff", "-g", "gen_1"])
        assert result.exit_code == 1

    def test_missing_custom_config(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["diff", "-g", "gen_1", "-c", "other.json"])
        assert result.exit_code == 1

    def test_requires_generation_id(self):
        result = CliRunner().invoke(cli, ["diff"])
        assert result.exit_code == 2


class TestInitCommand:
    """Tests for `sitediff init`."""

    def test_writes_default_config(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["init", "--workspace", "site/.site2ts"])
            assert result.exit_code == 0
            with open("sitediff-config.json") as f:
                data = json.load(f)
        assert data["workspace_dir"] == "site/.site2ts"
        assert data["default_port"] == 3100

    def test_declined_overwrite_keeps_file(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            with open("sitediff-config.json", "w") as f:
                f.write("{}")
            result = runner.invoke(cli, ["init"], input="n\n")
            assert result.exit_code == 0
            with open("sitediff-config.json") as f:
                assert f.read() == "{}"
