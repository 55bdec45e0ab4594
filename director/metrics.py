"""Run metrics recorder."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Set

from core.contracts import GateAction, RunMetrics, VisualGateFailure, VisualGateResult

logger = logging.getLogger(__name__)

TIMED_PHASES = (
    "research",
    "architect",
    "asset_extract",
    "per_item_loop",
    "repair",
    "asset_wait",
    "assemble",
    "consensus",
    "total",
)


class MetricsRecorder:
    """Mutable accumulator that produces a ``RunMetrics`` snapshot."""

    def __init__(self, run_id: str = "", mode: str = "balanced"):
        self.metrics = RunMetrics(run_id=run_id, mode=mode)
        self._enriched: Set[int] = set()
        self._pruned: Set[int] = set()

    def enrichment(self, index: int) -> None:
        self.metrics.enrichments += 1
        self._enriched.add(index)

    def prune(self, index: int) -> None:
        self.metrics.prunes += 1
        self._pruned.add(index)

    def summary(self, index: int) -> None:
        self.metrics.summaries += 1
        self._pruned.add(index)

    def visual_validation(self, index: int, layout_id: str, result: VisualGateResult) -> None:
        self.metrics.visual_validations += 1
        if result.fits:
            return
        self.metrics.visual_failures += 1
        if result.failure_code is not None:
            self.metrics.gate_failures.append(
                VisualGateFailure(
                    item_index=index,
                    layout_id=layout_id,
                    code=result.failure_code,
                    action=result.action or GateAction.SUMMARIZE,
                    reason=result.reason,
                )
            )

    def reroute(self, index: int) -> None:
        self.metrics.reroutes += 1

    def forced_accept(self, index: int) -> None:
        self.metrics.forced_accepts += 1

    def placeholder(self, index: int) -> None:
        self.metrics.placeholders += 1

    def item_path(self, index: int, path: Iterable[str]) -> None:
        self.metrics.item_paths[index] = list(path)

    def repair(self, converged: bool, abort_reason: str = None) -> None:
        self.metrics.repair_loops += 1
        if converged:
            self.metrics.repair_converged += 1
        elif abort_reason:
            self.metrics.repair_aborts[abort_reason] = self.metrics.repair_aborts.get(abort_reason, 0) + 1

    def timing(self, phase: str, elapsed_ms: float) -> None:
        if phase not in TIMED_PHASES:
            raise ValueError(f"unknown phase: {phase}")
        setattr(self.metrics.timings, phase, round(float(elapsed_ms), 2))

    def finish(self, cost_summary=None, oracle_fallbacks: int = 0) -> RunMetrics:
        self.metrics.items_enriched = len(self._enriched)
        self.metrics.items_pruned = len(self._pruned)
        self.metrics.oracle_fallbacks = oracle_fallbacks
        if cost_summary is not None:
            self.metrics.costs = cost_summary
        self.metrics.completed_at = datetime.now(timezone.utc)
        logger.info(
            "run_metrics run_id=%s enrichments=%s prunes=%s validations=%s failures=%s reroutes=%s "
            "assets_used=%s stale=%s cost=%.4f",
            self.metrics.run_id,
            self.metrics.enrichments,
            self.metrics.prunes,
            self.metrics.visual_validations,
            self.metrics.visual_failures,
            self.metrics.reroutes,
            self.metrics.assets_used,
            self.metrics.assets_stale,
            self.metrics.costs.total,
        )
        return self.metrics
