"""Shared fakes for the collector tests."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Sequence

import pytest

from sqldiag.collectors.cluster import ClusterDetector
from sqldiag.collectors.counters import CounterSource
from sqldiag.collectors.ticker import Ticker
from sqldiag.db.query_executor import QueryExecutor
from sqldiag.exceptions import CounterUnavailable
from sqldiag.models.run import Credential, RunConfig, RunContext
from sqldiag.models.sample import METRIC_FIELDS

STARTED_AT = datetime(2024, 5, 1, 13, 45, 7)
HOSTNAME = "dbhost01"


class FakeClock:
    def __init__(self, start: datetime = STARTED_AT) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeTicker(Ticker):
    """Ticker that advances a FakeClock instead of sleeping."""

    def __init__(self, clock: FakeClock, stop_after: int | None = None) -> None:
        super().__init__()
        self.clock = clock
        self.stop_after = stop_after
        self.waits = 0

    async def wait(self, seconds: float) -> bool:
        self.waits += 1
        if self.stop_after is not None and self.waits >= self.stop_after:
            self.stop()
        if self.stopped:
            return False
        self.clock.advance(seconds)
        return True


class StaticCounterSource(CounterSource):
    """Returns fixed values; each refresh costs ``latency`` seconds of fake time."""

    names = frozenset(METRIC_FIELDS)

    def __init__(
        self,
        values: dict[str, float] | None = None,
        clock: FakeClock | None = None,
        latency: float = 0.0,
        unavailable: set[str] | None = None,
    ) -> None:
        self.values = values or {f: float(i) for i, f in enumerate(METRIC_FIELDS)}
        self.clock = clock
        self.latency = latency
        self.unavailable = unavailable or set()
        self.refreshes = 0

    def refresh(self) -> None:
        self.refreshes += 1
        if self.clock is not None:
            self.clock.advance(self.latency)

    def read(self, name: str) -> float:
        if name in self.unavailable:
            raise CounterUnavailable(name, "test")
        return self.values[name]


class FakeExecutor(QueryExecutor):
    """Maps SQL text to a result; an Exception result is raised."""

    def __init__(self, responses: dict[str, Any] | None = None, default: Any = None) -> None:
        self.responses = responses or {}
        self.default = default
        self.calls: list[tuple[str, tuple]] = []

    def execute(
        self,
        server: str,
        database: str,
        sql: str,
        timeout: int,
        credential: Credential,
        params: Sequence[Any] = (),
    ) -> Any:
        self.calls.append((sql, tuple(params)))
        result = self.responses.get(sql, self.default)
        if isinstance(result, Exception):
            raise result
        return result


class FakeClusterDetector(ClusterDetector):
    def __init__(self, installed: bool = False, resources: bool = False) -> None:
        self.installed = installed
        self.resources = resources

    def capability_present(self) -> bool:
        return self.installed

    def has_cluster_resources(self) -> bool:
        return self.resources


def make_config(tmp_path: Path, **overrides: Any) -> RunConfig:
    fields: dict[str, Any] = {
        "server": "DBHOST01\\PROD",
        "database": "master",
        "query_timeout": 30,
        "credential": Credential(username="diag", password="s3cret"),
        "perf_log": tmp_path / "perf.csv",
        "output_log": tmp_path / "inventory.txt",
        "duration_minutes": 2,
        "interval_seconds": 60,
    }
    fields.update(overrides)
    return RunConfig(**fields)


def make_context(tmp_path: Path, **overrides: Any) -> RunContext:
    return RunContext.create(
        make_config(tmp_path, **overrides), hostname=HOSTNAME, started_at=STARTED_AT
    )


@pytest.fixture
def context(tmp_path: Path) -> RunContext:
    return make_context(tmp_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
