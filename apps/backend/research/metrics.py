"""Research pipeline run metrics.

Structured logging for one orchestrated run:
- stage outcomes (status, result count, latency)
- credits spent and result counts before and after merging
- visual verification totals

A collector is created per run, so concurrent runs never share state.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Optional

from research.models import StageStatus

logger = logging.getLogger("research.metrics")


@dataclass
class RunMetrics:
    """Aggregated metrics for one multi-stage run."""
    has_image: bool = False
    query_count: int = 0
    stages: List[StageStatus] = field(default_factory=list)
    raw_results: int = 0
    merged_results: int = 0
    known_dealer_results: int = 0
    credits_used: int = 0
    verified: int = 0
    filtered: int = 0
    total_latency_ms: float = 0.0

    @property
    def stages_failed(self) -> int:
        return sum(1 for s in self.stages if s.status in ("error", "timeout"))

    def has_results(self) -> bool:
        return self.merged_results > 0


class RunMetricsCollector:
    """Collects stage and result metrics for a single run."""

    def __init__(self):
        self.metrics: Optional[RunMetrics] = None

    @contextmanager
    def track_run(self, has_image: bool = False, query_count: int = 0):
        self.metrics = RunMetrics(has_image=has_image, query_count=query_count)
        started = time.time()
        try:
            yield self.metrics
        finally:
            self.metrics.total_latency_ms = (time.time() - started) * 1000
            self._log_metrics()

    def record_stage(self, status: StageStatus):
        if self.metrics:
            self.metrics.stages.append(status)

    def record_results(self, raw: int, merged: int, known: int):
        if not self.metrics:
            return
        self.metrics.raw_results = raw
        self.metrics.merged_results = merged
        self.metrics.known_dealer_results = known

    def record_credits(self, credits: int):
        if self.metrics:
            self.metrics.credits_used += credits

    def record_verification(self, verified: int, filtered: int):
        if not self.metrics:
            return
        self.metrics.verified = verified
        self.metrics.filtered = filtered

    def _log_metrics(self):
        m = self.metrics
        if not m:
            return

        log_data = {
            "event": "research_run_complete",
            "has_image": m.has_image,
            "query_count": m.query_count,
            "stages": [
                {
                    "stage": s.stage,
                    "status": s.status,
                    "results": s.result_count,
                    "latency_ms": s.latency_ms,
                }
                for s in m.stages
            ],
            "results": {
                "raw": m.raw_results,
                "merged": m.merged_results,
                "known_dealers": m.known_dealer_results,
            },
            "verification": {"verified": m.verified, "filtered": m.filtered},
            "credits_used": m.credits_used,
            "latency_ms": round(m.total_latency_ms, 1),
            "success": m.has_results(),
        }

        if m.stages and m.stages_failed == len(m.stages):
            logger.error("Research run failed - all stages failed", extra=log_data)
        elif m.stages_failed:
            logger.warning("Research run completed with stage failures", extra=log_data)
        elif not m.has_results():
            logger.warning("Research run completed but no results", extra=log_data)
        else:
            logger.info("Research run completed successfully", extra=log_data)
