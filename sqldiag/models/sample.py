from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

# (model field, CSV column) in row order, timestamp excluded
METRIC_COLUMNS: tuple[tuple[str, str], ...] = (
    ("cpu_usage", "CPUUsage"),
    ("memory_available_kb", "MemoryAvailableKB"),
    ("disk_time", "DiskTime"),
    ("disk_idle_time", "DiskIdleTime"),
    ("disk_avg_queue_length", "DiskAvgQueueLength"),
    ("disk_current_queue", "DiskCurrentQueue"),
    ("disk_current_reads", "DiskCurrentReads"),
    ("disk_current_writes", "DiskCurrentWrites"),
    ("disk_avg_reads", "DiskAvgReads"),
    ("disk_avg_writes", "DiskAvgWrites"),
    ("processor_queue_length", "ProcessorQueueLength"),
    ("network_bytes_per_sec", "NetworkBytesPerSec"),
    ("target_server_memory_kb", "TargetServerMemoryKB"),
    ("total_server_memory_kb", "TotalServerMemoryKB"),
    ("total_free_memory_kb", "TotalFreeMemoryKB"),
)

METRIC_FIELDS: tuple[str, ...] = tuple(field for field, _ in METRIC_COLUMNS)

CSV_HEADER: tuple[str, ...] = ("Timestamp",) + tuple(col for _, col in METRIC_COLUMNS)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


class MetricSample(BaseModel):
    """One row of the performance time series.

    A field is ``None`` when its counter could not be read for this sample;
    it is written as an empty CSV cell.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    cpu_usage: float | None = None
    memory_available_kb: float | None = None
    disk_time: float | None = None
    disk_idle_time: float | None = None
    disk_avg_queue_length: float | None = None
    disk_current_queue: float | None = None
    disk_current_reads: float | None = None
    disk_current_writes: float | None = None
    disk_avg_reads: float | None = None
    disk_avg_writes: float | None = None
    processor_queue_length: float | None = None
    network_bytes_per_sec: float | None = None
    target_server_memory_kb: float | None = None
    total_server_memory_kb: float | None = None
    total_free_memory_kb: float | None = None

    def to_row(self) -> list[str]:
        row = [self.timestamp.strftime(TIMESTAMP_FORMAT)]
        for field in METRIC_FIELDS:
            value = getattr(self, field)
            row.append("" if value is None else repr(float(value)))
        return row

    @classmethod
    def from_row(cls, row: list[str]) -> MetricSample:
        if len(row) != len(CSV_HEADER):
            raise ValueError(f"expected {len(CSV_HEADER)} columns, got {len(row)}")
        values = {
            field: (float(cell) if cell != "" else None)
            for field, cell in zip(METRIC_FIELDS, row[1:])
        }
        return cls(timestamp=datetime.strptime(row[0], TIMESTAMP_FORMAT), **values)
