from __future__ import annotations

import logging
import platform
import subprocess
from pathlib import Path
from typing import Any, Callable

import psutil

from sqldiag.collectors.cluster import ClusterDetector, CommandClusterDetector, detect_cluster_status
from sqldiag.db import queries
from sqldiag.db.query_executor import QueryExecutor
from sqldiag.exceptions import QueryError
from sqldiag.models.inventory import (
    EngineFacts,
    FactResult,
    HostFacts,
    InventoryReport,
    VolumeInfo,
)
from sqldiag.models.run import RunContext

logger = logging.getLogger(__name__)

GIB = 1024 ** 3


def pages_to_gib(pages: float) -> float:
    """Convert a count of 8 KB data pages to GiB."""
    return pages * 8.0 / 1024 / 1024


class InventoryCollector:
    """Takes the one-shot host and SQL Server snapshot.

    Every fact is collected independently: a failed query or host check is recorded
    as unavailable in the report and collection moves on.
    """

    def __init__(
        self,
        context: RunContext,
        executor: QueryExecutor,
        cluster_detector: ClusterDetector | None = None,
    ) -> None:
        self._context = context
        self._executor = executor
        self._cluster_detector = cluster_detector or CommandClusterDetector()

    def collect(self) -> InventoryReport:
        host = self.collect_host()
        volumes, volumes_error = self._guard("volumes", self.collect_volumes)
        cluster, cluster_error = self._guard(
            "cluster status", lambda: detect_cluster_status(self._cluster_detector)
        )
        engine = self.collect_engine()
        return InventoryReport(
            host=host,
            volumes=volumes or [],
            volumes_error=volumes_error,
            cluster=cluster,
            cluster_error=cluster_error,
            engine=engine,
        )

    # ── host ────────────────────────────────────────────

    def collect_host(self) -> HostFacts:
        return HostFacts(
            os_caption=_os_caption(),
            cpu_model=_cpu_model(),
            logical_cpus=psutil.cpu_count(logical=True) or 0,
            physical_cores=psutil.cpu_count(logical=False) or 0,
            total_memory_gib=round(psutil.virtual_memory().total / GIB, 2),
        )

    def collect_volumes(self) -> list[VolumeInfo]:
        volumes: list[VolumeInfo] = []
        for part in psutil.disk_partitions(all=False):
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except OSError:
                # removable drive with no media, or no permission
                logger.debug("Skipping volume %s", part.mountpoint, exc_info=True)
                continue
            volumes.append(
                VolumeInfo(
                    name=part.mountpoint,
                    capacity_gib=round(usage.total / GIB, 2),
                    free_gib=round(usage.free / GIB, 2),
                )
            )
        return volumes

    # ── engine ──────────────────────────────────────────

    def collect_engine(self) -> EngineFacts:
        # queries run sequentially in report order
        return EngineFacts(
            edition=self._fact("edition", queries.EDITION, str),
            version=self._fact("version", queries.PRODUCT_VERSION, str),
            user_database_count=self._fact(
                "user database count", queries.USER_DATABASE_COUNT, lambda v: str(int(v))
            ),
            ssis_installed=self._fact(
                "SSIS", queries.SSIS_INSTALLED, lambda v: _installed_sentence("SSIS", v)
            ),
            ssrs_installed=self._fact(
                "SSRS", queries.SSRS_INSTALLED, lambda v: _installed_sentence("SSRS", v)
            ),
            total_size_gib=self._fact(
                "total database size",
                queries.TOTAL_DATABASE_SIZE_PAGES,
                lambda v: f"{pages_to_gib(float(v)):.2f}",
            ),
        )

    def _fact(self, label: str, sql: str, render: Callable[[Any], str]) -> FactResult:
        cfg = self._context.config
        try:
            value = self._executor.execute(
                cfg.server, cfg.database, sql, cfg.query_timeout, cfg.credential
            )
        except QueryError as exc:
            logger.warning("Inventory fact '%s' unavailable: %s", label, exc)
            return FactResult(error=str(exc))
        if value is None:
            logger.warning("Inventory fact '%s' returned no result", label)
            return FactResult(error="no result")
        return FactResult(value=render(value))

    @staticmethod
    def _guard(label: str, read: Callable[[], Any]) -> tuple[Any, str | None]:
        try:
            return read(), None
        except (OSError, subprocess.SubprocessError, psutil.Error) as exc:
            logger.warning("Inventory %s unavailable: %s", label, exc)
            return None, str(exc) or exc.__class__.__name__


def _installed_sentence(component: str, value: Any) -> str:
    if int(value):
        return f"{component} is installed."
    return f"{component} is not installed."


def _os_caption() -> str:
    system = platform.system()
    if system == "Linux":
        try:
            return platform.freedesktop_os_release().get("PRETTY_NAME", "Linux")
        except OSError:
            return f"Linux {platform.release()}"
    if system == "Windows":
        release, version, _, _ = platform.win32_ver()
        edition = platform.win32_edition() or ""
        return " ".join(p for p in ("Microsoft Windows", release, edition, version) if p)
    return f"{system} {platform.release()}"


def _cpu_model() -> str:
    cpuinfo = Path("/proc/cpuinfo")
    if cpuinfo.exists():
        try:
            for line in cpuinfo.read_text(errors="replace").splitlines():
                if line.lower().startswith("model name"):
                    return line.split(":", 1)[1].strip()
        except OSError:
            logger.debug("Cannot read %s", cpuinfo, exc_info=True)
    return platform.processor() or "unknown"
