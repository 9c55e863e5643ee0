"""End-to-end tests for sqldiag.main — CLI validation and full run ordering."""

from __future__ import annotations

import csv
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from sqldiag.collectors.counters import CounterSet
from sqldiag.config import RUN_PARAMETERS
from sqldiag.db import queries
from sqldiag.exceptions import FilesystemError
from sqldiag.main import EXIT_FATAL, EXIT_OK, EXIT_USAGE, build_parser, main, run
from sqldiag.models import CSV_HEADER, MetricSample, RunResult

from conftest import FakeClock, FakeClusterDetector, FakeExecutor, FakeTicker, StaticCounterSource, make_context
from test_inventory_collector import ENGINE_RESPONSES


def _argv(tmp_path: Path) -> dict[str, str]:
    return {
        "--server": "DBHOST01\\PROD",
        "--database": "master",
        "--query-timeout": "30",
        "--username": "diag",
        "--password": "s3cret",
        "--perf-log": str(tmp_path / "perf.csv"),
        "--output-log": str(tmp_path / "inventory.txt"),
        "--duration": "10080",
        "--interval": "60",
    }


def _flatten(args: dict[str, str]) -> list[str]:
    return [token for pair in args.items() for token in pair]


# ── CLI validation ────────────────────────────────────

class TestCli:
    def test_parser_knows_every_parameter(self):
        parser = build_parser()
        dests = {a.dest for a in parser._actions}
        assert {dest for dest, _, _ in RUN_PARAMETERS} <= dests

    @pytest.mark.parametrize("flag", [flag for _, flag, _ in RUN_PARAMETERS])
    def test_missing_parameter_prints_usage_and_creates_nothing(self, tmp_path, capsys, flag):
        args = _argv(tmp_path)
        del args[flag]
        with patch("sqldiag.main.run", new_callable=AsyncMock) as run_mock:
            code = main(_flatten(args))

        assert code == EXIT_USAGE
        run_mock.assert_not_called()
        out, err = capsys.readouterr()
        assert out.startswith("Usage: sqldiag")
        assert "Example:" in out
        assert flag in err
        assert list(tmp_path.iterdir()) == []

    def test_no_arguments(self, capsys):
        assert main([]) == EXIT_USAGE
        assert "Recommendation" in capsys.readouterr().out

    def test_invalid_instance_name_is_usage_error(self, tmp_path, capsys):
        args = _argv(tmp_path)
        args["--server"] = "DBHOST01\\not valid"
        assert main(_flatten(args)) == EXIT_USAGE
        assert "instance name" in capsys.readouterr().err

    def test_complete_arguments_start_run(self, tmp_path):
        result = RunResult(
            inventory_path=tmp_path / "a", performance_path=tmp_path / "b", samples_written=4
        )
        with patch("sqldiag.main.run", new_callable=AsyncMock, return_value=result) as run_mock:
            code = main(_flatten(_argv(tmp_path)))

        assert code == EXIT_OK
        context, counter_set = run_mock.call_args.args
        assert context.config.duration_minutes == 10080
        assert counter_set.object_prefix == "MSSQL$PROD"

    def test_filesystem_error_is_fatal(self, tmp_path, capsys):
        with patch("sqldiag.main.run", new_callable=AsyncMock, side_effect=FilesystemError("disk full")):
            code = main(_flatten(_argv(tmp_path)))
        assert code == EXIT_FATAL
        assert "disk full" in capsys.readouterr().err

    def test_unexpected_error_is_fatal(self, tmp_path, capsys):
        with patch("sqldiag.main.run", new_callable=AsyncMock, side_effect=RuntimeError("boom")):
            code = main(_flatten(_argv(tmp_path)))
        assert code == EXIT_FATAL
        assert "boom" in capsys.readouterr().err


# ── full run ──────────────────────────────────────────

class _RecordingExecutor(FakeExecutor):
    """Fails the test if inventory queries run after sampling has begun."""

    def __init__(self, perf_log: Path) -> None:
        super().__init__(dict(ENGINE_RESPONSES))
        self.perf_log = perf_log

    def execute(self, server, database, sql, timeout, credential, params=()):
        assert not self.perf_log.exists(), "inventory must finish before sampling starts"
        return super().execute(server, database, sql, timeout, credential, params)


@pytest.mark.asyncio
async def test_full_run_produces_two_finalized_artifacts(tmp_path):
    ctx = make_context(tmp_path, duration_minutes=2, interval_seconds=60)
    clock = FakeClock()
    executor = _RecordingExecutor(ctx.config.perf_log)

    result = await run(
        ctx,
        CounterSet.from_server(ctx.config.server),
        executor=executor,
        counters=StaticCounterSource(clock=clock, latency=0.25),
        cluster_detector=FakeClusterDetector(installed=True, resources=False),
        ticker=FakeTicker(clock),
        clock=clock,
    )

    assert result.inventory_path == tmp_path / "dbhost01-20240501-134507-inventory.txt"
    assert result.performance_path == tmp_path / "dbhost01-20240501-134507-perf.csv"
    assert sorted(p.name for p in tmp_path.iterdir()) == [
        "dbhost01-20240501-134507-inventory.txt",
        "dbhost01-20240501-134507-perf.csv",
    ]

    inventory = result.inventory_path.read_text(encoding="utf-8")
    assert inventory.splitlines()[0] == "dbhost01 20240501-134507"
    assert "Failover Cluster feature is installed but this host is not a cluster member." in inventory
    assert "SSIS is installed." in inventory

    with open(result.performance_path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[0] == list(CSV_HEADER)
    assert len(rows) - 1 == result.samples_written
    assert 2 <= result.samples_written <= 3
    stamps = [MetricSample.from_row(r).timestamp for r in rows[1:]]
    assert stamps == sorted(stamps)
    assert result.stopped_early is False


@pytest.mark.asyncio
async def test_stopped_run_still_finalizes_performance(tmp_path):
    ctx = make_context(tmp_path, duration_minutes=10080, interval_seconds=60)
    clock = FakeClock()

    result = await run(
        ctx,
        CounterSet.from_server(ctx.config.server),
        executor=FakeExecutor(dict(ENGINE_RESPONSES)),
        counters=StaticCounterSource(clock=clock),
        cluster_detector=FakeClusterDetector(),
        ticker=FakeTicker(clock, stop_after=2),
        clock=clock,
    )

    assert result.stopped_early is True
    assert result.samples_written == 2
    assert result.performance_path.exists()
    assert not ctx.config.perf_log.exists()
