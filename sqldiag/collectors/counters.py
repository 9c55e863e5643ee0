from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any

import psutil
from pydantic import BaseModel, ConfigDict

from sqldiag.db import queries
from sqldiag.db.query_executor import QueryExecutor
from sqldiag.exceptions import ConfigurationError, CounterUnavailable, QueryError
from sqldiag.models.run import RunContext

logger = logging.getLogger(__name__)


class Counter(StrEnum):
    """Counter names; each value is the matching MetricSample field."""

    CPU_USAGE = "cpu_usage"
    MEMORY_AVAILABLE_KB = "memory_available_kb"
    DISK_TIME = "disk_time"
    DISK_IDLE_TIME = "disk_idle_time"
    DISK_AVG_QUEUE_LENGTH = "disk_avg_queue_length"
    DISK_CURRENT_QUEUE = "disk_current_queue"
    DISK_CURRENT_READS = "disk_current_reads"
    DISK_CURRENT_WRITES = "disk_current_writes"
    DISK_AVG_READS = "disk_avg_reads"
    DISK_AVG_WRITES = "disk_avg_writes"
    PROCESSOR_QUEUE_LENGTH = "processor_queue_length"
    NETWORK_BYTES_PER_SEC = "network_bytes_per_sec"
    TARGET_SERVER_MEMORY_KB = "target_server_memory_kb"
    TOTAL_SERVER_MEMORY_KB = "total_server_memory_kb"
    TOTAL_FREE_MEMORY_KB = "total_free_memory_kb"


HOST_COUNTERS: frozenset[str] = frozenset(
    {
        Counter.CPU_USAGE,
        Counter.MEMORY_AVAILABLE_KB,
        Counter.DISK_TIME,
        Counter.DISK_IDLE_TIME,
        Counter.DISK_AVG_QUEUE_LENGTH,
        Counter.DISK_CURRENT_QUEUE,
        Counter.DISK_CURRENT_READS,
        Counter.DISK_CURRENT_WRITES,
        Counter.DISK_AVG_READS,
        Counter.DISK_AVG_WRITES,
        Counter.PROCESSOR_QUEUE_LENGTH,
        Counter.NETWORK_BYTES_PER_SEC,
    }
)

ENGINE_COUNTERS: dict[str, str] = {
    Counter.TARGET_SERVER_MEMORY_KB: "Target Server Memory (KB)",
    Counter.TOTAL_SERVER_MEMORY_KB: "Total Server Memory (KB)",
    Counter.TOTAL_FREE_MEMORY_KB: "Free Memory (KB)",
}


class CounterSource(ABC):
    """Exposes named counters as point-in-time numeric readings."""

    names: frozenset[str] = frozenset()

    def refresh(self) -> None:
        """Take a new snapshot before a sample is read. No-op by default."""

    @abstractmethod
    def read(self, name: str) -> float:
        """Return the current value of ``name`` or raise CounterUnavailable."""
        ...


# ── instance counter set ────────────────────────────

DEFAULT_INSTANCE = "MSSQLSERVER"
_INSTANCE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_$#@]{0,15}$")


class CounterSet(BaseModel):
    """Engine counter addressing for one SQL Server instance.

    The default instance publishes its objects as ``SQLServer:<object>``; a
    named instance uses ``MSSQL$<NAME>:<object>``.
    """

    model_config = ConfigDict(frozen=True)

    instance_name: str
    object_prefix: str

    @property
    def memory_object(self) -> str:
        return f"{self.object_prefix}:Memory Manager"

    @classmethod
    def for_instance(cls, instance_name: str) -> CounterSet:
        if not _INSTANCE_NAME.match(instance_name):
            raise ConfigurationError(f"invalid SQL Server instance name: {instance_name!r}")
        if instance_name.upper() == DEFAULT_INSTANCE:
            return cls(instance_name=DEFAULT_INSTANCE, object_prefix="SQLServer")
        return cls(instance_name=instance_name, object_prefix=f"MSSQL${instance_name.upper()}")

    @classmethod
    def from_server(cls, server: str) -> CounterSet:
        """Derive the counter set from ``host``, ``host\\INSTANCE`` or ``host,port``."""
        address = server.strip()
        if address.lower().startswith("tcp:"):
            address = address[4:]
        address = address.split(",", 1)[0]
        if "\\" not in address:
            return cls.for_instance(DEFAULT_INSTANCE)
        host, instance = address.split("\\", 1)
        if not host:
            raise ConfigurationError(f"server address has no host part: {server!r}")
        return cls.for_instance(instance)


# ── host (psutil) ───────────────────────────────────

@dataclass(frozen=True)
class _HostSnapshot:
    taken_at: float
    cpu_percent: float
    memory_available: int
    load_1m: float | None
    disk: Any | None
    net: Any | None
    disk_inflight: int | None


class HostCounterSource(CounterSource):
    """OS counters read through psutil.

    Rate counters are derived from the difference between the two most recent
    snapshots, so a snapshot is taken at construction to seed the first sample.
    A failed snapshot leaves the last good one in place and makes every
    counter unavailable until the next successful refresh.
    """

    names = HOST_COUNTERS

    def __init__(self, diskstats_path: str | Path = "/proc/diskstats") -> None:
        self._diskstats_path = Path(diskstats_path)
        self._previous: _HostSnapshot | None = None
        self._current: _HostSnapshot | None = None
        self._failure: str | None = None
        self.refresh()

    def refresh(self) -> None:
        try:
            snapshot = self._snapshot()
        except (psutil.Error, OSError) as exc:
            self._failure = str(exc) or type(exc).__name__
            logger.warning("Host counter snapshot failed: %s", self._failure)
            return
        if self._current is not None:
            self._previous = self._current
        self._current = snapshot
        self._failure = None

    def read(self, name: str) -> float:
        cur = self._latest(name)
        if name == Counter.CPU_USAGE:
            return float(cur.cpu_percent)
        if name == Counter.MEMORY_AVAILABLE_KB:
            return cur.memory_available / 1024
        if name == Counter.PROCESSOR_QUEUE_LENGTH:
            if cur.load_1m is None:
                raise CounterUnavailable(name, "load average not supported")
            return float(cur.load_1m)
        if name == Counter.DISK_CURRENT_QUEUE:
            if cur.disk_inflight is None:
                raise CounterUnavailable(name, "in-flight I/O count not available")
            return float(cur.disk_inflight)
        if name == Counter.NETWORK_BYTES_PER_SEC:
            prev, elapsed = self._delta_base(name)
            if cur.net is None or prev.net is None:
                raise CounterUnavailable(name, "no network interfaces")
            sent = cur.net.bytes_sent - prev.net.bytes_sent
            recv = cur.net.bytes_recv - prev.net.bytes_recv
            return max(sent + recv, 0) / elapsed
        if name in HOST_COUNTERS:
            return self._disk_rate(name)
        raise CounterUnavailable(name, "not a host counter")

    # ── internals ───────────────────────────────────────

    def _latest(self, name: str) -> _HostSnapshot:
        if self._failure is not None:
            raise CounterUnavailable(name, f"snapshot failed: {self._failure}")
        if self._current is None:
            raise CounterUnavailable(name, "no snapshot")
        return self._current

    def _delta_base(self, name: str) -> tuple[_HostSnapshot, float]:
        prev = self._previous
        if prev is None:
            raise CounterUnavailable(name, "no previous snapshot")
        elapsed = self._latest(name).taken_at - prev.taken_at
        if elapsed <= 0:
            raise CounterUnavailable(name, "snapshots taken at the same instant")
        return prev, elapsed

    def _disk_rate(self, name: str) -> float:
        prev, elapsed = self._delta_base(name)
        cur = self._latest(name)
        if cur.disk is None or prev.disk is None:
            raise CounterUnavailable(name, "no disk I/O counters")
        elapsed_ms = elapsed * 1000

        if name in (Counter.DISK_TIME, Counter.DISK_IDLE_TIME):
            busy_now = getattr(cur.disk, "busy_time", None)
            busy_before = getattr(prev.disk, "busy_time", None)
            if busy_now is None or busy_before is None:
                raise CounterUnavailable(name, "disk busy time not supported")
            busy_pct = min(max(busy_now - busy_before, 0) / elapsed_ms * 100, 100.0)
            return busy_pct if name == Counter.DISK_TIME else 100.0 - busy_pct

        reads = cur.disk.read_count - prev.disk.read_count
        writes = cur.disk.write_count - prev.disk.write_count
        read_ms = cur.disk.read_time - prev.disk.read_time
        write_ms = cur.disk.write_time - prev.disk.write_time

        if name == Counter.DISK_AVG_QUEUE_LENGTH:
            # time-weighted queue length: total I/O wait over wall time
            return max(read_ms + write_ms, 0) / elapsed_ms
        if name == Counter.DISK_CURRENT_READS:
            return max(reads, 0) / elapsed
        if name == Counter.DISK_CURRENT_WRITES:
            return max(writes, 0) / elapsed
        if name == Counter.DISK_AVG_READS:
            return read_ms / 1000 / reads if reads > 0 else 0.0
        if name == Counter.DISK_AVG_WRITES:
            return write_ms / 1000 / writes if writes > 0 else 0.0
        raise CounterUnavailable(name, "not a disk counter")

    def _snapshot(self) -> _HostSnapshot:
        try:
            load_1m: float | None = psutil.getloadavg()[0]
        except (AttributeError, OSError):
            load_1m = None
        return _HostSnapshot(
            taken_at=time.monotonic(),
            cpu_percent=psutil.cpu_percent(interval=None),
            memory_available=psutil.virtual_memory().available,
            load_1m=load_1m,
            disk=psutil.disk_io_counters(perdisk=False),
            net=psutil.net_io_counters(pernic=False),
            disk_inflight=self._read_inflight(),
        )

    def _read_inflight(self) -> int | None:
        """Sum of I/Os currently in progress across whole disks (Linux only)."""
        if not self._diskstats_path.exists():
            return None
        total = 0
        try:
            with open(self._diskstats_path, "r") as f:
                for line in f:
                    fields = line.split()
                    if len(fields) < 12:
                        continue
                    if not Path("/sys/block", fields[2]).exists():
                        continue  # partition
                    total += int(fields[11])
        except (OSError, ValueError):
            logger.debug("Cannot read %s", self._diskstats_path, exc_info=True)
            return None
        return total


# ── engine (sys.dm_os_performance_counters) ─────────

class EngineCounterSource(CounterSource):
    """SQL Server memory counters read from ``sys.dm_os_performance_counters``."""

    names = frozenset(ENGINE_COUNTERS)

    def __init__(
        self,
        context: RunContext,
        executor: QueryExecutor,
        counter_set: CounterSet,
    ) -> None:
        self._context = context
        self._executor = executor
        self.counter_set = counter_set

    def read(self, name: str) -> float:
        counter_name = ENGINE_COUNTERS.get(name)
        if counter_name is None:
            raise CounterUnavailable(name, "not an engine counter")
        cfg = self._context.config
        try:
            value = self._executor.execute(
                cfg.server,
                cfg.database,
                queries.PERFORMANCE_COUNTER,
                cfg.query_timeout,
                cfg.credential,
                params=(self.counter_set.memory_object, counter_name),
            )
        except QueryError as exc:
            raise CounterUnavailable(name, str(exc)) from exc
        if value is None:
            raise CounterUnavailable(
                name, f"{self.counter_set.memory_object}\\{counter_name} not found"
            )
        return float(value)


class CompositeCounterSource(CounterSource):
    """Routes each counter name to the source that owns it."""

    def __init__(self, *sources: CounterSource) -> None:
        self._sources = sources
        self._routes: dict[str, CounterSource] = {}
        for source in sources:
            for name in source.names:
                self._routes[name] = source
        self.names = frozenset(self._routes)

    def refresh(self) -> None:
        for source in self._sources:
            source.refresh()

    def read(self, name: str) -> float:
        source = self._routes.get(name)
        if source is None:
            raise CounterUnavailable(name, "no source provides this counter")
        return source.read(name)
