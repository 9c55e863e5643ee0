from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ClusterStatus(StrEnum):
    NOT_INSTALLED = "not_installed"
    NOT_MEMBER = "not_member"
    MEMBER = "member"


CLUSTER_MESSAGES: dict[ClusterStatus, str] = {
    ClusterStatus.NOT_INSTALLED: "Failover Cluster feature is not installed.",
    ClusterStatus.NOT_MEMBER: (
        "Failover Cluster feature is installed but this host is not a cluster member."
    ),
    ClusterStatus.MEMBER: "This host is a cluster member.",
}


class VolumeInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    capacity_gib: float
    free_gib: float


class FactResult(BaseModel):
    """Outcome of a single inventory fact: either a value or a failure reason."""

    model_config = ConfigDict(frozen=True)

    value: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def render(self) -> str:
        if self.error is not None:
            return f"unavailable ({self.error})"
        return self.value or ""


class HostFacts(BaseModel):
    model_config = ConfigDict(frozen=True)

    os_caption: str
    cpu_model: str
    logical_cpus: int
    physical_cores: int
    total_memory_gib: float


class EngineFacts(BaseModel):
    model_config = ConfigDict(frozen=True)

    edition: FactResult
    version: FactResult
    user_database_count: FactResult
    ssis_installed: FactResult
    ssrs_installed: FactResult
    total_size_gib: FactResult


class InventoryReport(BaseModel):
    """One-shot environment snapshot taken before sampling starts."""

    model_config = ConfigDict(frozen=True)

    host: HostFacts
    volumes: list[VolumeInfo] = Field(default_factory=list)
    volumes_error: str | None = None
    cluster: ClusterStatus | None = None
    cluster_error: str | None = None
    engine: EngineFacts

    def render(self) -> str:
        """Render the human-readable report body in fixed section order."""
        lines: list[str] = []

        lines.append("=== Host ===")
        lines.append(f"OS: {self.host.os_caption}")
        lines.append(f"CPU: {self.host.cpu_model}")
        lines.append(f"Logical CPUs: {self.host.logical_cpus}")
        lines.append(f"Physical Cores: {self.host.physical_cores}")
        lines.append(f"Total Memory (GB): {self.host.total_memory_gib:.2f}")
        lines.append("")

        lines.append("=== Storage ===")
        if self.volumes_error is not None:
            lines.append(f"Volumes: unavailable ({self.volumes_error})")
        else:
            lines.append(f"{'Name':<30} {'Capacity (GB)':>14} {'Free (GB)':>14}")
            for vol in self.volumes:
                lines.append(f"{vol.name:<30} {vol.capacity_gib:>14.2f} {vol.free_gib:>14.2f}")
        lines.append("")

        lines.append("=== Cluster ===")
        if self.cluster is None:
            lines.append(f"Cluster status: unavailable ({self.cluster_error})")
        else:
            lines.append(CLUSTER_MESSAGES[self.cluster])
        lines.append("")

        lines.append("=== SQL Server ===")
        lines.append(f"Edition: {self.engine.edition.render()}")
        lines.append(f"Version: {self.engine.version.render()}")
        lines.append(f"User Databases: {self.engine.user_database_count.render()}")
        lines.append(self._sentence("SSIS", self.engine.ssis_installed))
        lines.append(self._sentence("SSRS", self.engine.ssrs_installed))
        lines.append(f"Total Database Size (GB): {self.engine.total_size_gib.render()}")
        return "\n".join(lines) + "\n"

    @staticmethod
    def _sentence(component: str, fact: FactResult) -> str:
        if not fact.ok:
            return f"{component}: {fact.render()}"
        return fact.render()
