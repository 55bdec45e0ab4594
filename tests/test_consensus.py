from __future__ import annotations

import pytest

from config.settings import ConsensusSettings
from core import (
    ContentPlan,
    CritiqueIssue,
    CritiqueVerdict,
    DeckItem,
    ItemCritique,
    RecommendationKind,
    VisualCritique,
)
from director.consensus import (
    ConsensusEngine,
    ConsensusThresholds,
    choose_execution_mode,
    compute_consensus,
    sample_indices,
)
from render.proxy import SvgProxyRenderer


def _entry(index: int, score: float, *categories: str, verdict=CritiqueVerdict.ACCEPT) -> ItemCritique:
    issues = [CritiqueIssue(category=c) for c in categories]
    return ItemCritique(item_index=index, critique=VisualCritique(score=score, verdict=verdict, issues=issues))


def test_single_low_item_is_the_only_outlier() -> None:
    critiques = [
        _entry(0, 80),
        _entry(1, 82),
        _entry(2, 79),
        _entry(3, 81),
        _entry(4, 30, verdict=CritiqueVerdict.REQUIRES_REPAIR),
    ]
    report = compute_consensus(critiques)

    assert report.average_score == pytest.approx(70.4)
    assert [o.item_index for o in report.outliers] == [4]
    assert report.outliers[0].deviation < 0
    assert report.outliers[0].reason.startswith("Below deck average")
    assert report.consistency_score < 70
    kinds = [r.kind for r in report.recommendations]
    assert RecommendationKind.SIMPLIFY_LAYOUTS not in kinds
    assert RecommendationKind.REVALIDATE_ITEMS in kinds


def test_uniform_scores_are_fully_consistent() -> None:
    report = compute_consensus([_entry(i, 75) for i in range(4)])

    assert report.std_dev == 0
    assert report.consistency_score == 100
    assert report.outliers == []
    assert report.recommendations == []


def test_spatial_and_low_score_recommendations() -> None:
    critiques = [
        _entry(0, 50, "overlap"),
        _entry(1, 55, "contrast"),
        _entry(2, 90),
    ]
    report = compute_consensus(critiques)
    by_kind = {r.kind: r.item_indices for r in report.recommendations}

    assert by_kind[RecommendationKind.REDUCE_DENSITY] == [0]
    assert by_kind[RecommendationKind.SIMPLIFY_LAYOUTS] == [0, 1]


def test_failed_critiques_are_excluded_from_statistics() -> None:
    critiques = [_entry(0, 80), ItemCritique(item_index=1, error="timeout"), _entry(2, 70)]
    report = compute_consensus(critiques)

    assert report.valid_count == 2
    assert report.average_score == 75
    assert report.sampled_indices == [0, 1, 2]


def test_no_valid_critiques_yield_empty_report() -> None:
    report = compute_consensus([ItemCritique(item_index=0, error="down")])

    assert report.valid_count == 0
    assert report.average_score == 0
    assert report.recommendations == []


def test_thresholds_are_configurable() -> None:
    critiques = [_entry(0, 80), _entry(1, 70)]
    report = compute_consensus(critiques, ConsensusThresholds(outlier_threshold=4.0))
    assert len(report.outliers) == 2


def test_execution_mode_and_sampling() -> None:
    assert choose_execution_mode(5, 1000, 5000) == "sequential"
    assert choose_execution_mode(6, 1000, 5000) == "parallel"
    assert choose_execution_mode(2, 5000, 5000) == "sequential"
    assert sample_indices(10, 3) == [0, 3, 6, 9]
    assert sample_indices(1, 3) == [0]
    assert sample_indices(0, 3) == []


class _FakeCritic:
    def __init__(self, scores):
        self.scores = scores
        self.seen = []

    async def critique(self, proxy):
        self.seen.append(proxy.item_order)
        score = self.scores[proxy.item_order]
        if score is None:
            raise RuntimeError("critic down")
        return VisualCritique(score=score, verdict=CritiqueVerdict.ACCEPT)


def _items(count: int):
    return [
        DeckItem(
            order=i,
            layout_id="standard-vertical",
            title=f"Item {i}",
            content=ContentPlan(key_points=["one point", "two points"]),
        )
        for i in range(count)
    ]


@pytest.mark.asyncio
async def test_engine_samples_and_tolerates_critic_failure() -> None:
    critic = _FakeCritic({0: 80, 3: None, 6: 70})
    engine = ConsensusEngine(critic, SvgProxyRenderer(), ConsensusSettings(sample_every=3))
    report = await engine.run(_items(7))

    assert critic.seen == [0, 3, 6]
    assert report.execution_mode == "sequential"
    assert report.valid_count == 2
    assert report.critiques[1].error == "critic down"


@pytest.mark.asyncio
async def test_engine_runs_parallel_when_latency_target_is_tight() -> None:
    critic = _FakeCritic({i: 80 for i in range(10)})
    settings = ConsensusSettings(sample_every=1, per_call_latency_ms=1000, target_latency_ms=2000, max_concurrency=3)
    report = await ConsensusEngine(critic, SvgProxyRenderer(), settings).run(_items(10))

    assert report.execution_mode == "parallel"
    assert report.valid_count == 10
    assert report.sampled_indices == list(range(10))
