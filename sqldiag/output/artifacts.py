from __future__ import annotations

import csv
import logging
import os
from enum import StrEnum
from pathlib import Path

from sqldiag.exceptions import FilesystemError
from sqldiag.models.inventory import InventoryReport
from sqldiag.models.run import RunContext
from sqldiag.models.sample import CSV_HEADER, MetricSample

logger = logging.getLogger(__name__)


class ArtifactKind(StrEnum):
    INVENTORY = "inventory"
    PERFORMANCE = "performance"


class ArtifactState(StrEnum):
    CREATED = "created"
    APPENDING = "appending"
    FINALIZED = "finalized"


class OutputArtifact:
    """A run output file and where it ends up once finalized."""

    def __init__(self, kind: ArtifactKind, path: Path) -> None:
        self.kind = kind
        self.path = path
        self.state = ArtifactState.CREATED
        self.rows_written = 0
        self.final_path: Path | None = None

    def __repr__(self) -> str:
        return f"OutputArtifact({self.kind.value}, {str(self.path)!r}, {self.state.value})"


class FileLifecycleManager:
    """Creates, appends to and finalizes the run's two artifacts.

    Finalization renames ``dir/name`` to ``dir/<host>-<run timestamp>-name``.
    The rename is the commit point: a file still carrying its original name
    was not completely written.
    """

    def __init__(self, context: RunContext) -> None:
        self._context = context

    def final_path_for(self, path: Path) -> Path:
        return path.with_name(
            f"{self._context.hostname}-{self._context.run_timestamp}-{path.name}"
        )

    # ── performance ─────────────────────────────────────

    def open_performance(self) -> OutputArtifact:
        """Prepare the performance CSV, writing the header only if the file is new."""
        artifact = OutputArtifact(ArtifactKind.PERFORMANCE, self._context.config.perf_log)
        path = artifact.path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if not path.exists() or path.stat().st_size == 0:
                with open(path, "w", newline="", encoding="utf-8") as f:
                    csv.writer(f).writerow(CSV_HEADER)
                logger.debug("Wrote performance header to %s", path)
            else:
                logger.info("Appending to existing performance log %s", path)
        except OSError as exc:
            raise FilesystemError(f"cannot create performance log {path}: {exc}") from exc
        return artifact

    def append_sample(self, artifact: OutputArtifact, sample: MetricSample) -> None:
        if artifact.state is ArtifactState.FINALIZED:
            raise FilesystemError(f"{artifact.path} is already finalized")
        try:
            with open(artifact.path, "a", newline="", encoding="utf-8") as f:
                csv.writer(f).writerow(sample.to_row())
        except OSError as exc:
            raise FilesystemError(f"cannot append to {artifact.path}: {exc}") from exc
        artifact.state = ArtifactState.APPENDING
        artifact.rows_written += 1

    # ── inventory ───────────────────────────────────────

    def write_inventory(self, report: InventoryReport) -> OutputArtifact:
        """Write the inventory report to a fresh file, identity line first."""
        artifact = OutputArtifact(ArtifactKind.INVENTORY, self._context.config.output_log)
        path = artifact.path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(f"{self._context.hostname} {self._context.run_timestamp}\n\n")
                f.write(report.render())
        except OSError as exc:
            raise FilesystemError(f"cannot write inventory {path}: {exc}") from exc
        artifact.state = ArtifactState.APPENDING
        return artifact

    # ── finalization ────────────────────────────────────

    def finalize(self, artifact: OutputArtifact) -> Path:
        if artifact.state is ArtifactState.FINALIZED and artifact.final_path is not None:
            return artifact.final_path
        destination = self.final_path_for(artifact.path)
        try:
            os.replace(artifact.path, destination)
        except OSError as exc:
            raise FilesystemError(
                f"cannot rename {artifact.path} to {destination}: {exc}"
            ) from exc
        artifact.state = ArtifactState.FINALIZED
        artifact.final_path = destination
        logger.info("Finalized %s artifact: %s", artifact.kind.value, destination)
        return destination
