from __future__ import annotations

import logging
import platform
import shutil
import subprocess
from abc import ABC, abstractmethod

from sqldiag.models.inventory import ClusterStatus

logger = logging.getLogger(__name__)


class ClusterDetector(ABC):
    """Answers the two questions that determine cluster membership."""

    @abstractmethod
    def capability_present(self) -> bool:
        """Is failover clustering installed on this host?"""
        ...

    @abstractmethod
    def has_cluster_resources(self) -> bool:
        """Does the host see at least one cluster resource?"""
        ...


def detect_cluster_status(detector: ClusterDetector) -> ClusterStatus:
    if not detector.capability_present():
        return ClusterStatus.NOT_INSTALLED
    if not detector.has_cluster_resources():
        return ClusterStatus.NOT_MEMBER
    return ClusterStatus.MEMBER


class CommandClusterDetector(ClusterDetector):
    """Detects clustering through the platform's own tooling.

    - Windows: the Cluster Service (ClusSvc) and ``Get-ClusterResource``
    - Linux: pacemaker's ``pcs`` or ``crm_mon``
    """

    def __init__(self, timeout: float = 30.0) -> None:
        self.timeout = timeout

    def capability_present(self) -> bool:
        if platform.system() == "Windows":
            result = self._run(
                ["powershell", "-NoProfile", "-Command",
                 "Get-Service -Name ClusSvc -ErrorAction Stop | Out-Null"]
            )
            return result is not None and result.returncode == 0
        return shutil.which("pcs") is not None or shutil.which("crm_mon") is not None

    def has_cluster_resources(self) -> bool:
        if platform.system() == "Windows":
            result = self._run(
                ["powershell", "-NoProfile", "-Command",
                 "(Get-ClusterResource -ErrorAction Stop | Measure-Object).Count"]
            )
            if result is None or result.returncode != 0:
                return False
            try:
                return int(result.stdout.strip() or "0") > 0
            except ValueError:
                return False

        if shutil.which("pcs"):
            result = self._run(["pcs", "resource", "status"])
        else:
            result = self._run(["crm_mon", "-1", "-r"])
        if result is None or result.returncode != 0:
            return False
        output = result.stdout.strip()
        return bool(output) and "no resources" not in output.lower()

    def _run(self, args: list[str]) -> subprocess.CompletedProcess[str] | None:
        try:
            return subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError:
            logger.debug("Cluster detection command not found: %s", args[0])
            return None
