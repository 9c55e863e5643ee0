"""Command-line entry point.

Usage:
    sqldiag --server HOST\\INSTANCE --database master --query-timeout 30 \\
        --username diag --password secret --perf-log perf.csv \\
        --output-log inventory.txt --duration 10080 --interval 60
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime

from sqldiag.collectors import (
    ClusterDetector,
    CompositeCounterSource,
    CounterSet,
    CounterSource,
    EngineCounterSource,
    HostCounterSource,
    InventoryCollector,
    PerformanceSampler,
    Ticker,
)
from sqldiag.collectors.performance_sampler import Clock
from sqldiag.config import RUN_PARAMETERS, settings, usage_text, validate_run_params
from sqldiag.db import OdbcQueryExecutor, QueryExecutor
from sqldiag.exceptions import ConfigurationError, FilesystemError
from sqldiag.models import RunContext, RunResult
from sqldiag.output import FileLifecycleManager

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    # required-ness is checked by validate_run_params so a missing flag
    # prints the full usage text instead of argparse's one-liner
    parser = argparse.ArgumentParser(
        prog="sqldiag",
        description=f"{settings.app_name}: host inventory and performance time series.",
    )
    types = {"query_timeout": int, "duration": float, "interval": float}
    for dest, flag, help_ in RUN_PARAMETERS:
        parser.add_argument(flag, dest=dest, type=types.get(dest, str), help=help_)
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging verbosity (default: %(default)s)",
    )
    return parser


async def run(
    context: RunContext,
    counter_set: CounterSet,
    executor: QueryExecutor | None = None,
    counters: CounterSource | None = None,
    cluster_detector: ClusterDetector | None = None,
    ticker: Ticker | None = None,
    clock: Clock = datetime.now,
) -> RunResult:
    """Inventory first, then sampling; each artifact is finalized as soon as it is complete."""
    executor = executor or OdbcQueryExecutor()
    files = FileLifecycleManager(context)

    # ── inventory ────────────────────────────────────
    report = InventoryCollector(context, executor, cluster_detector).collect()
    inventory = files.write_inventory(report)
    inventory_path = files.finalize(inventory)

    # ── performance ──────────────────────────────────
    counters = counters or CompositeCounterSource(
        HostCounterSource(),
        EngineCounterSource(context, executor, counter_set),
    )
    performance = files.open_performance()
    sampler = PerformanceSampler(
        context, counters, files, performance, ticker=ticker, clock=clock
    )

    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, sampler.request_stop)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Windows event loops: Ctrl+C terminates the process instead
            pass
    try:
        samples = await sampler.run()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)

    performance_path = files.finalize(performance)
    return RunResult(
        inventory_path=inventory_path,
        performance_path=performance_path,
        samples_written=samples,
        stopped_early=sampler.stopped_early,
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = validate_run_params(vars(args))
        counter_set = CounterSet.from_server(config.server)
    except ConfigurationError as exc:
        print(usage_text())
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    context = RunContext.create(config, hostname=settings.hostname)
    logger.info(
        "Run %s on %s against %s (instance %s)",
        context.run_timestamp, context.hostname, config.server, counter_set.instance_name,
    )

    try:
        result = asyncio.run(run(context, counter_set))
    except FilesystemError as exc:
        logger.error("Run aborted: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FATAL
    except Exception as exc:
        logger.exception("Run failed")
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FATAL

    logger.info(
        "Run complete: %d samples; inventory=%s performance=%s",
        result.samples_written, result.inventory_path, result.performance_path,
    )
    return EXIT_OK


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
