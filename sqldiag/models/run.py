from __future__ import annotations

import socket
from datetime import datetime, timedelta
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr

RUN_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


class Credential(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str = Field(min_length=1)
    password: SecretStr


class RunConfig(BaseModel):
    """Validated, immutable run parameters."""

    model_config = ConfigDict(frozen=True)

    server: str = Field(min_length=1)
    database: str = Field(min_length=1)
    query_timeout: int = Field(gt=0)  # seconds
    credential: Credential
    perf_log: Path
    output_log: Path
    duration_minutes: float = Field(gt=0)
    interval_seconds: float = Field(gt=0)

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.duration_minutes)


class RunContext(BaseModel):
    """Per-run state handed explicitly to every component."""

    model_config = ConfigDict(frozen=True)

    config: RunConfig
    hostname: str
    started_at: datetime

    @property
    def run_timestamp(self) -> str:
        return self.started_at.strftime(RUN_TIMESTAMP_FORMAT)

    @classmethod
    def create(
        cls,
        config: RunConfig,
        hostname: str | None = None,
        started_at: datetime | None = None,
    ) -> RunContext:
        return cls(
            config=config,
            hostname=hostname or socket.gethostname(),
            started_at=started_at or datetime.now(),
        )


class RunResult(BaseModel):
    """Where a completed run left its artifacts."""

    model_config = ConfigDict(frozen=True)

    inventory_path: Path
    performance_path: Path
    samples_written: int
    stopped_early: bool = False
