from __future__ import annotations

from typing import List

import pytest

from config import DirectorConfig
from core import (
    ContentPlan,
    Fact,
    GateAction,
    GateFailureCode,
    ItemMeta,
    QualityReason,
    QualityVerdict,
    SuggestedAction,
    VisualGateResult,
)
from director.metrics import MetricsRecorder
from director.state_machine import (
    Event,
    EventKind,
    ItemLoop,
    ItemPhase,
    ItemState,
    LoopLimits,
    transition,
)


def _meta(title: str = "Market Landscape", purpose: str = "Who leads the market") -> ItemMeta:
    return ItemMeta(order=1, item_type="content-main", title=title, purpose=purpose)


def _state(phase: ItemPhase, **kwargs) -> ItemState:
    state = ItemState(index=1, meta=_meta(), total_items=5, phase=phase, plan=ContentPlan(key_points=["x"]))
    for key, value in kwargs.items():
        setattr(state, key, value)
    return state


GOOD_POINTS = [
    "Leading vendors hold 60% of the market today",
    "Challengers grow fastest across Asia Pacific",
    "Open source stacks cut deployment costs",
]


def _failing(action: SuggestedAction) -> QualityVerdict:
    return QualityVerdict(passes=False, reason=QualityReason.THIN_CONTENT, suggested_action=action)


class _FakeServices:
    def __init__(self, plans, layouts=("standard-vertical",), research_facts=None):
        self.plans = plans
        self.layouts = list(layouts)
        self.research_facts = research_facts
        self.plan_calls = 0
        self.route_calls: List[list] = []
        self.research_calls = 0

    async def route(self, meta, avoid=()):
        self.route_calls.append(list(avoid))
        for layout in self.layouts:
            if layout not in avoid:
                return layout
        return self.layouts[-1]

    async def plan(self, meta, facts, hints):
        self.plan_calls += 1
        if callable(self.plans):
            return self.plans(self.plan_calls, hints)
        return self.plans

    async def research(self, query):
        self.research_calls += 1
        if self.research_facts is not None:
            return self.research_facts(self.research_calls)
        return [Fact(claim=f"new fact {self.research_calls} for {query}")]


def _loop(services, **config) -> ItemLoop:
    config.setdefault("visual_sampling_rate", 1.0)
    return ItemLoop(services, DirectorConfig(**config), MetricsRecorder(), facts=[])


def test_transition_is_pure_and_rejects_mismatched_events() -> None:
    state = _state(ItemPhase.EVALUATE)
    with pytest.raises(ValueError):
        transition(state, Event(EventKind.PLANNED), LoopLimits())
    assert state.phase == ItemPhase.EVALUATE


def test_failing_verdict_at_attempt_ceiling_is_forced_accept() -> None:
    state = _state(ItemPhase.EVALUATE, total_attempts=4)
    event = Event(EventKind.EVALUATED, verdict=_failing(SuggestedAction.ENRICH))
    assert transition(state, event, LoopLimits()) == ItemPhase.FORCED_ACCEPT


def test_enrichment_without_gain_is_forced_accept() -> None:
    state = _state(ItemPhase.ENRICH)
    assert transition(state, Event(EventKind.ENRICHED, gain=0), LoopLimits()) == ItemPhase.FORCED_ACCEPT
    assert transition(state, Event(EventKind.ENRICHED, gain=2), LoopLimits()) == ItemPhase.PLAN


def test_layout_change_reroutes_once_then_prunes() -> None:
    gate = VisualGateResult(
        fits=False,
        action=GateAction.CHANGE_LAYOUT,
        failure_code=GateFailureCode.TITLE_OVERFLOW,
    )
    event = Event(EventKind.GATE_CHECKED, gate=gate)
    assert transition(_state(ItemPhase.VISUAL_GATE), event, LoopLimits()) == ItemPhase.ROUTE
    assert transition(_state(ItemPhase.VISUAL_GATE, reroutes=1), event, LoopLimits()) == ItemPhase.PRUNE


def test_passing_verdict_goes_to_gate_only_when_sampled() -> None:
    passing = Event(EventKind.EVALUATED, verdict=QualityVerdict(passes=True, suggested_action=SuggestedAction.PASS))
    assert transition(_state(ItemPhase.EVALUATE, sampled=True), passing, LoopLimits()) == ItemPhase.VISUAL_GATE
    assert transition(_state(ItemPhase.EVALUATE, sampled=False), passing, LoopLimits()) == ItemPhase.ACCEPT


@pytest.mark.asyncio
async def test_good_plan_accepts_through_visual_gate() -> None:
    plan = ContentPlan(key_points=list(GOOD_POINTS))
    services = _FakeServices(plan)
    state = await _loop(services).run(1, _meta(), total_items=5)

    assert state.phase == ItemPhase.ACCEPT
    assert state.path == ["ROUTE", "PLAN", "EVALUATE", "VISUAL_GATE", "ACCEPT"]
    assert state.warnings == []


@pytest.mark.asyncio
async def test_thin_content_enriches_then_forced_accepts() -> None:
    services = _FakeServices(ContentPlan(key_points=["Only one point that is long enough"]))
    state = await _loop(services).run(1, _meta(), total_items=5)

    assert state.phase == ItemPhase.FORCED_ACCEPT
    assert state.enrichments == 2
    assert services.research_calls == 2
    assert state.total_attempts <= 4
    assert any(w.startswith("quality_exhausted") for w in state.warnings)


@pytest.mark.asyncio
async def test_enrichment_with_only_duplicates_stops_immediately() -> None:
    services = _FakeServices(
        ContentPlan(key_points=["Only one point that is long enough"]),
        research_facts=lambda n: [Fact(claim="same claim")],
    )
    loop = _loop(services)
    loop.facts.append(Fact(claim="Same claim"))
    state = await loop.run(1, _meta(), total_items=5)

    assert state.phase == ItemPhase.FORCED_ACCEPT
    assert state.path[-2:] == ["ENRICH", "FORCED_ACCEPT"]
    assert services.plan_calls == 1


@pytest.mark.asyncio
async def test_fat_content_is_pruned_into_shape() -> None:
    points = ["Market point number %d with detail" % i for i in range(8)]
    services = _FakeServices(ContentPlan(key_points=points))
    state = await _loop(services).run(1, _meta(), total_items=5)

    assert state.phase == ItemPhase.ACCEPT
    assert len(state.plan.key_points) == 5
    assert "PRUNE" in state.path


@pytest.mark.asyncio
async def test_title_overflow_reroutes_once() -> None:
    long_title = "A very long title " * 6
    plan = ContentPlan(title=long_title, key_points=list(GOOD_POINTS))
    services = _FakeServices(plan, layouts=("split-left-text", "standard-vertical"))
    loop = _loop(services)
    state = await loop.run(1, _meta(title=long_title), total_items=5)

    assert services.route_calls == [[], ["split-left-text"]]
    assert state.reroutes == 1
    assert loop.metrics.metrics.reroutes == 1
    assert state.terminal
    assert state.total_attempts <= 4


@pytest.mark.asyncio
async def test_planner_failure_falls_back_to_minimal_plan() -> None:
    def explode(call, hints):
        raise RuntimeError("planner down")

    services = _FakeServices(explode)
    state = await _loop(services).run(0, _meta(), total_items=5)

    assert state.terminal
    assert any(w.startswith("planner_fallback") for w in state.warnings)
    assert state.plan.key_points == ["Who leads the market"]


@pytest.mark.parametrize(
    "plans",
    [
        ContentPlan(key_points=[]),
        ContentPlan(key_points=["tiny"]),
        ContentPlan(key_points=["w" * 200] * 9),
        ContentPlan(key_points=["Reasonable point %d with words" % i for i in range(3)]),
    ],
)
@pytest.mark.asyncio
async def test_every_item_terminates_within_attempt_ceiling(plans) -> None:
    for index in range(5):
        services = _FakeServices(plans, layouts=("bento-grid", "dashboard-tiles"))
        state = await _loop(services).run(index, _meta(), total_items=5)

        assert state.terminal
        assert state.total_attempts <= 4
        assert state.path.count("EVALUATE") <= 4


@pytest.mark.asyncio
async def test_always_failing_sensor_still_terminates() -> None:
    plan = ContentPlan(key_points=list(GOOD_POINTS))
    services = _FakeServices(plan)
    loop = ItemLoop(
        services,
        DirectorConfig(visual_sampling_rate=1.0),
        MetricsRecorder(),
        facts=[],
        sensor=lambda p, layout: "always clipped",
    )
    state = await loop.run(1, _meta(), total_items=5)

    assert state.phase == ItemPhase.FORCED_ACCEPT
    assert state.total_attempts <= 4
    assert loop.metrics.metrics.visual_failures >= 1


@pytest.mark.asyncio
async def test_hero_on_regular_layout_is_pruned_to_hero_bounds() -> None:
    points = ["Hero point %d with some detail" % i for i in range(4)]
    services = _FakeServices(ContentPlan(key_points=points), layouts=("standard-vertical",))
    hints_seen = []

    def plan(call, hints):
        hints_seen.append(hints["max_bullets"])
        return ContentPlan(key_points=list(points))

    services.plans = plan
    state = await _loop(services).run(0, _meta(), total_items=5)

    assert state.layout_id == "standard-vertical"
    assert state.phase == ItemPhase.ACCEPT
    assert len(state.plan.key_points) <= 2
    assert state.path.count("PRUNE") == 1
    assert hints_seen == [2]
    assert state.warnings == []
