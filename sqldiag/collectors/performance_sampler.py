from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqldiag.collectors.counters import CounterSource
from sqldiag.collectors.ticker import Ticker
from sqldiag.exceptions import CounterUnavailable
from sqldiag.models.run import RunContext
from sqldiag.models.sample import METRIC_FIELDS, MetricSample
from sqldiag.output.artifacts import FileLifecycleManager, OutputArtifact

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class PerformanceSampler:
    """Samples every counter at a fixed interval until the run window closes.

    The wait happens after each capture, so the effective period is capture
    latency plus the interval and a run yields
    ``floor(duration / (interval + latency)) + 1`` samples rather than
    ``duration / interval``.
    """

    def __init__(
        self,
        context: RunContext,
        counters: CounterSource,
        files: FileLifecycleManager,
        artifact: OutputArtifact,
        ticker: Ticker | None = None,
        clock: Clock = datetime.now,
    ) -> None:
        self._context = context
        self._counters = counters
        self._files = files
        self._artifact = artifact
        self._ticker = ticker or Ticker()
        self._clock = clock
        self._last_timestamp: datetime | None = None
        self._warned: set[str] = set()
        self.samples_written = 0
        self.stopped_early = False

    # ── lifecycle ────────────────────────────────────────

    async def run(self) -> int:
        """Sample until the end time passes or ``request_stop()`` is called."""
        start = self._clock()
        end = start + self._context.config.duration
        interval = self._context.config.interval_seconds
        logger.info(
            "Sampling every %.0fs from %s until %s",
            interval, start.isoformat(sep=" ", timespec="seconds"),
            end.isoformat(sep=" ", timespec="seconds"),
        )

        while True:
            if self._clock() > end:
                break
            sample = self.capture()
            self._files.append_sample(self._artifact, sample)
            self.samples_written += 1
            logger.info(
                "Sample %d written at %s; collection completes at %s",
                self.samples_written,
                sample.timestamp.isoformat(sep=" ", timespec="seconds"),
                end.isoformat(sep=" ", timespec="seconds"),
            )
            if not await self._ticker.wait(interval):
                self.stopped_early = True
                logger.info("Sampling stopped before end time")
                break

        return self.samples_written

    def request_stop(self) -> None:
        self._ticker.stop()

    # ── capture ─────────────────────────────────────────

    def capture(self) -> MetricSample:
        timestamp = self._clock()
        # keep timestamps non-decreasing if the wall clock steps back
        if self._last_timestamp is not None and timestamp < self._last_timestamp:
            timestamp = self._last_timestamp
        self._last_timestamp = timestamp

        try:
            self._counters.refresh()
        except Exception:
            logger.exception("Counter refresh failed; sample at %s left empty", timestamp)
            return MetricSample(timestamp=timestamp)

        values: dict[str, float | None] = {}
        for field in METRIC_FIELDS:
            try:
                values[field] = self._counters.read(field)
            except CounterUnavailable as exc:
                # warn once per counter
                level = logging.DEBUG if field in self._warned else logging.WARNING
                logger.log(level, "%s", exc)
                self._warned.add(field)
                values[field] = None
        return MetricSample(timestamp=timestamp, **values)
