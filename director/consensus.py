"""
Deck-wide consensus over per-item visual critiques.

Runs after every item is terminal. Samples items (first, last and every
N-th), critiques them sequentially or in bounded parallel depending on the
expected latency, then derives consistency statistics, outliers and global
recommendations.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from time import perf_counter
from typing import List, Optional, Sequence

from core.contracts import (
    ConsensusReport,
    CritiqueVerdict,
    DeckItem,
    ItemCritique,
    Outlier,
    Recommendation,
    RecommendationKind,
)

from .limiter import ConcurrencyLimiter

logger = logging.getLogger(__name__)

SPATIAL_CATEGORIES = {
    "overlap",
    "text_overlap",
    "overflow",
    "text_overflow",
    "clipping",
    "spacing",
    "alignment",
    "density",
    "crowding",
}

EXECUTION_PARALLEL = "parallel"
EXECUTION_SEQUENTIAL = "sequential"


@dataclass(frozen=True)
class ConsensusThresholds:
    outlier_threshold: float = 15.0
    low_score_floor: float = 60.0
    spatial_issue_ratio: float = 0.3
    min_low_score_items: int = 2

    @classmethod
    def from_settings(cls, settings) -> "ConsensusThresholds":
        return cls(
            outlier_threshold=settings.outlier_threshold,
            low_score_floor=settings.low_score_floor,
            spatial_issue_ratio=settings.spatial_issue_ratio,
            min_low_score_items=settings.min_low_score_items,
        )


def population_std(values: Sequence[float], mean: float) -> float:
    if not values:
        return 0.0
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def has_spatial_issue(entry: ItemCritique) -> bool:
    if entry.critique is None:
        return False
    return any(issue.category in SPATIAL_CATEGORIES for issue in entry.critique.issues)


def compute_consensus(
    critiques: Sequence[ItemCritique],
    thresholds: Optional[ConsensusThresholds] = None,
) -> ConsensusReport:
    """
    Statistics and recommendations over the critiques that succeeded.

    Failed critiques (``critique is None``) are reported but excluded from
    every score and ratio.
    """
    thresholds = thresholds or ConsensusThresholds()
    valid = [c for c in critiques if c.critique is not None]
    scores = [c.critique.score for c in valid]
    mean = sum(scores) / len(scores) if scores else 0.0
    std = population_std(scores, mean)

    outliers: List[Outlier] = []
    for entry in valid:
        deviation = entry.critique.score - mean
        if abs(deviation) > thresholds.outlier_threshold:
            outliers.append(
                Outlier(
                    item_index=entry.item_index,
                    score=entry.critique.score,
                    deviation=round(deviation, 2),
                    reason=(
                        "Below deck average - needs improvement"
                        if deviation < 0
                        else "Above deck average - over-polished relative to deck"
                    ),
                )
            )

    recommendations: List[Recommendation] = []
    spatial = [c.item_index for c in valid if has_spatial_issue(c)]
    if valid and spatial and len(spatial) >= len(valid) * thresholds.spatial_issue_ratio:
        recommendations.append(
            Recommendation(
                kind=RecommendationKind.REDUCE_DENSITY,
                message="Many items have spatial issues. Reduce content density globally.",
                item_indices=spatial,
            )
        )
    low = [c.item_index for c in valid if c.critique.score < thresholds.low_score_floor]
    if len(low) >= thresholds.min_low_score_items:
        recommendations.append(
            Recommendation(
                kind=RecommendationKind.SIMPLIFY_LAYOUTS,
                message="Multiple items scored low. Simplify layouts for these items.",
                item_indices=low,
            )
        )
    repair = [c.item_index for c in valid if c.critique.verdict == CritiqueVerdict.REQUIRES_REPAIR]
    if repair:
        recommendations.append(
            Recommendation(
                kind=RecommendationKind.REVALIDATE_ITEMS,
                message=f"{len(repair)} items require repair. Run a targeted re-validation pass.",
                item_indices=repair,
            )
        )

    return ConsensusReport(
        average_score=round(mean, 2),
        std_dev=round(std, 2),
        consistency_score=round(max(0.0, 100.0 - 2 * std), 2),
        outliers=outliers,
        recommendations=recommendations,
        sampled_indices=[c.item_index for c in critiques],
        critiques=list(critiques),
        valid_count=len(valid),
    )


def choose_execution_mode(item_count: int, per_call_latency_ms: float, target_latency_ms: float) -> str:
    """Parallel when the sequential estimate would blow the latency target."""
    if item_count * per_call_latency_ms > target_latency_ms and item_count >= 3:
        return EXECUTION_PARALLEL
    return EXECUTION_SEQUENTIAL


def sample_indices(total: int, every: int = 3) -> List[int]:
    """First, last and every ``every``-th index in between."""
    if total <= 0:
        return []
    chosen = {0, total - 1}
    step = max(1, int(every))
    chosen.update(range(step, total - 1, step))
    return sorted(chosen)


class ConsensusEngine:
    """Critique a sample of finished items and compute the deck consensus."""

    def __init__(self, services, renderer, settings, style: str = "professional"):
        self.services = services
        self.renderer = renderer
        self.settings = settings
        self.style = style

    async def _critique(self, item: DeckItem) -> ItemCritique:
        try:
            proxy = self.renderer.render(item, self.style)
            critique = await self.services.critique(proxy)
            return ItemCritique(item_index=item.order, critique=critique)
        except Exception as exc:
            logger.warning("consensus_critique_failed item=%s error=%s", item.order, exc)
            return ItemCritique(item_index=item.order, error=str(exc))

    async def run(self, items: Sequence[DeckItem]) -> ConsensusReport:
        started = perf_counter()
        indices = sample_indices(len(items), self.settings.sample_every)
        sampled = [items[i] for i in indices]
        mode = choose_execution_mode(
            len(sampled),
            self.settings.per_call_latency_ms,
            self.settings.target_latency_ms,
        )
        logger.info("consensus_start sampled=%s/%s mode=%s", len(sampled), len(items), mode)

        if mode == EXECUTION_PARALLEL:
            limiter = ConcurrencyLimiter(max(1, min(len(sampled), self.settings.max_concurrency)))

            async def bounded(item: DeckItem) -> ItemCritique:
                async with limiter:
                    return await self._critique(item)

            critiques = list(await asyncio.gather(*(bounded(item) for item in sampled)))
        else:
            critiques = [await self._critique(item) for item in sampled]

        report = compute_consensus(critiques, ConsensusThresholds.from_settings(self.settings))
        report.execution_mode = mode
        logger.info(
            "consensus_done avg=%.1f consistency=%.1f outliers=%s elapsed_ms=%.0f",
            report.average_score,
            report.consistency_score,
            len(report.outliers),
            (perf_counter() - started) * 1000,
        )
        return report
