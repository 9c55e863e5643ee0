from .inventory import (
    CLUSTER_MESSAGES,
    ClusterStatus,
    EngineFacts,
    FactResult,
    HostFacts,
    InventoryReport,
    VolumeInfo,
)
from .run import RUN_TIMESTAMP_FORMAT, Credential, RunConfig, RunContext, RunResult
from .sample import CSV_HEADER, METRIC_COLUMNS, METRIC_FIELDS, MetricSample

__all__ = [
    "CLUSTER_MESSAGES",
    "ClusterStatus",
    "EngineFacts",
    "FactResult",
    "HostFacts",
    "InventoryReport",
    "VolumeInfo",
    "RUN_TIMESTAMP_FORMAT",
    "Credential",
    "RunConfig",
    "RunContext",
    "RunResult",
    "CSV_HEADER",
    "METRIC_COLUMNS",
    "METRIC_FIELDS",
    "MetricSample",
]
