from __future__ import annotations

from typing import List

import pytest

from config.settings import RepairLoopSettings
from core import (
    ContentPlan,
    CritiqueVerdict,
    DeckItem,
    RepairAction,
    RepairActionKind,
    VisualCritique,
)
from director.costs import CostTracker
from director.repair_loop import AbortReason, RepairHistory, VisualRepairLoop
from render.proxy import SvgProxyRenderer, layout_components


def _item() -> DeckItem:
    plan = ContentPlan(title="Revenue", key_points=["Revenue grew 40%", "Margins held steady", "Churn fell"])
    return DeckItem(
        order=2,
        layout_id="standard-vertical",
        title="Revenue",
        content=plan,
        components=layout_components("standard-vertical", "Revenue", plan),
    )


def _repair(action: RepairActionKind, target: str = "text-bullets-1", **params) -> RepairAction:
    return RepairAction(target_id=target, action=action, params=params)


def _critique(score: float, *repairs: RepairAction, verdict=CritiqueVerdict.REQUIRES_REPAIR) -> VisualCritique:
    return VisualCritique(score=score, verdict=verdict, repairs=list(repairs))


class _FakeCritic:
    def __init__(self, critiques: List[VisualCritique], costs: CostTracker, cost_per_call: float = 0.0):
        self.critiques = list(critiques)
        self.costs = costs
        self.cost_per_call = cost_per_call
        self.calls = 0
        self.fingerprints: List[str] = []

    async def critique(self, proxy):
        self.calls += 1
        self.fingerprints.append(proxy.fingerprint)
        self.costs.record("critic", self.cost_per_call)
        return self.critiques.pop(0)


def _loop(critiques, cost_per_call: float = 0.0, clock=None, **settings):
    costs = CostTracker()
    critic = _FakeCritic(critiques, costs, cost_per_call)
    kwargs = {}
    if clock is not None:
        kwargs["clock"] = clock
    loop = VisualRepairLoop(critic, SvgProxyRenderer(), RepairLoopSettings(**settings), costs, **kwargs)
    return loop, critic


@pytest.mark.asyncio
async def test_accepting_critique_converges_in_one_round() -> None:
    loop, critic = _loop([_critique(90, verdict=CritiqueVerdict.ACCEPT)])
    result = await loop.run(_item())

    assert result.converged is True
    assert result.rounds_run == 1
    assert result.final_score == 90
    assert result.abort_reason is None
    assert result.summary().converged is True


@pytest.mark.asyncio
async def test_score_at_target_converges_without_accept_verdict() -> None:
    loop, _ = _loop([_critique(86)])
    assert (await loop.run(_item())).converged is True


@pytest.mark.asyncio
async def test_no_improvement_stops_and_recommends_layout_change() -> None:
    loop, critic = _loop(
        [
            _critique(50, _repair(RepairActionKind.RESIZE, "title-0", width=80)),
            _critique(51, _repair(RepairActionKind.RESIZE, "title-0", width=70)),
        ]
    )
    result = await loop.run(_item())

    assert result.abort_reason == AbortReason.STAGNATION_NO_IMPROVEMENT
    assert result.rounds_run == 2
    assert result.recommended_action == "change_layout"
    assert result.final_score == 51


@pytest.mark.asyncio
async def test_same_repair_category_three_rounds_running_stalls() -> None:
    loop, _ = _loop(
        [
            _critique(50, _repair(RepairActionKind.RESPACE, spacing=0.9)),
            _critique(60, _repair(RepairActionKind.RESPACE, spacing=0.8)),
            _critique(70, _repair(RepairActionKind.RESPACE, spacing=0.7)),
        ],
        max_rounds=5,
    )
    result = await loop.run(_item())

    assert result.abort_reason == AbortReason.STAGNATION_REPEATED_REPAIR
    assert result.rounds_run == 3
    assert result.repairs_applied == 2
    assert result.recommended_action == "change_layout"


@pytest.mark.asyncio
async def test_repairs_that_change_nothing_stop_on_identical_render() -> None:
    loop, critic = _loop(
        [
            _critique(50, _repair(RepairActionKind.RESIZE, "ghost-9", width=50)),
            _critique(60),
        ]
    )
    result = await loop.run(_item())

    assert result.abort_reason == AbortReason.STAGNATION_RENDER_UNCHANGED
    assert result.rounds_run == 2
    assert result.repairs_applied == 0
    assert critic.calls == 1


@pytest.mark.asyncio
async def test_failing_critique_without_repairs_stops() -> None:
    loop, _ = _loop([_critique(50)])
    result = await loop.run(_item())

    assert result.abort_reason == AbortReason.NO_REPAIRS
    assert result.rounds_run == 1
    assert result.recommended_action is None


@pytest.mark.asyncio
async def test_cost_budget_is_checked_before_each_round() -> None:
    loop, critic = _loop(
        [
            _critique(50, _repair(RepairActionKind.RESIZE, "title-0", width=80)),
            _critique(60, _repair(RepairActionKind.REPOSITION, "title-0", y=8)),
            _critique(70),
        ],
        cost_per_call=0.03,
        cost_budget_usd=0.05,
        max_rounds=3,
    )
    result = await loop.run(_item())

    assert result.abort_reason == AbortReason.COST_BUDGET_EXCEEDED
    assert result.rounds_run == 2
    assert critic.calls == 2
    assert result.cost == pytest.approx(0.06)


@pytest.mark.asyncio
async def test_time_budget_abort_before_first_round() -> None:
    ticks = iter([0.0, 100.0, 100.0])
    loop, critic = _loop([_critique(90)], clock=lambda: next(ticks), time_budget_seconds=60)
    result = await loop.run(_item())

    assert result.abort_reason == AbortReason.TIME_BUDGET_EXCEEDED
    assert result.rounds_run == 0
    assert critic.calls == 0
    assert result.final_score is None


@pytest.mark.asyncio
async def test_critique_error_ends_loop_with_shared_result_shape() -> None:
    class _Broken:
        async def critique(self, proxy):
            raise RuntimeError("critic offline")

    loop = VisualRepairLoop(_Broken(), SvgProxyRenderer(), RepairLoopSettings(), CostTracker())
    item = _item()
    result = await loop.run(item)

    assert result.abort_reason == AbortReason.CRITIQUE_FAILED
    assert result.rounds_run == 1
    assert result.final_item == item


@pytest.mark.asyncio
async def test_round_cap_reached_with_steady_progress() -> None:
    loop, _ = _loop(
        [
            _critique(40, _repair(RepairActionKind.RESIZE, "title-0", width=80)),
            _critique(50, _repair(RepairActionKind.REPOSITION, "title-0", y=8)),
            _critique(60, _repair(RepairActionKind.RECOLOR, "title-0", color="#1f2937")),
        ],
        max_rounds=3,
    )
    result = await loop.run(_item())

    assert result.abort_reason == AbortReason.MAX_ROUNDS
    assert result.rounds_run == 3
    assert result.repairs_applied == 3
    assert result.recommended_action is None
    assert result.final_item.components[0].color == "#1f2937"


def test_repair_history_detects_shared_category() -> None:
    history = RepairHistory()
    history.record(["respace", "resize"])
    history.record(["respace"])
    assert history.repeated_category(3) is None
    history.record(["respace", "recolor"])
    assert history.repeated_category(3) == "respace"


@pytest.mark.asyncio
async def test_same_repair_with_flat_score_never_converges() -> None:
    loop, critic = _loop(
        [_critique(50, _repair(RepairActionKind.RESPACE, spacing=s)) for s in (0.9, 0.8, 0.7, 0.6, 0.5)],
        max_rounds=5,
    )
    result = await loop.run(_item())

    assert result.converged is False
    assert result.abort_reason.value.startswith("stagnation_")
    assert result.rounds_run <= 3
    assert critic.calls == result.rounds_run


@pytest.mark.asyncio
async def test_other_oracles_spending_mid_loop_do_not_count() -> None:
    costs = CostTracker()

    class _CriticWithBackgroundAssets(_FakeCritic):
        async def critique(self, proxy):
            self.costs.record("asset", 0.039, model="gpt-image-1")
            return await super().critique(proxy)

    critic = _CriticWithBackgroundAssets(
        [
            _critique(40, _repair(RepairActionKind.RESIZE, "title-0", width=80)),
            _critique(60, _repair(RepairActionKind.REPOSITION, "title-0", y=8)),
            _critique(90, verdict=CritiqueVerdict.ACCEPT),
        ],
        costs,
    )
    loop = VisualRepairLoop(critic, SvgProxyRenderer(), RepairLoopSettings(cost_budget_usd=0.05, max_rounds=3), costs)
    result = await loop.run(_item())

    assert result.converged is True
    assert result.abort_reason is None
    assert result.rounds_run == 3
    assert result.cost == 0.0
    assert costs.spent("asset") == pytest.approx(0.117)
