"""
Per-item adaptive state machine.

``transition`` is a pure function from (state, event) to the next phase;
``ItemLoop`` performs the side effects for each phase (oracle calls, content
adjustment) and feeds the resulting event back into ``transition`` until a
terminal phase is reached. Every item terminates after at most
``max_total_attempts`` evaluations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from core.contracts import (
    ContentPlan,
    Fact,
    GateAction,
    ItemMeta,
    LayoutProfile,
    QualityVerdict,
    RiskLevel,
    SuggestedAction,
    VisualGateResult,
)
from utils.exceptions import ErrorKind

from .adjuster import prune_content, summarize_content
from .enrichment import facts_to_context, targeted_research
from .profiles import DEFAULT_LAYOUT, HERO_LAYOUT, get_profile, get_risk, is_hero_item
from .quality import evaluate
from .visual_gate import FitSensor, run_visual_gate, should_validate_visually

logger = logging.getLogger(__name__)

_GATE_SUMMARIZE_RATIO = 0.8


class ItemPhase(str, Enum):
    ROUTE = "ROUTE"
    PLAN = "PLAN"
    EVALUATE = "EVALUATE"
    ENRICH = "ENRICH"
    PRUNE = "PRUNE"
    SUMMARIZE = "SUMMARIZE"
    VISUAL_GATE = "VISUAL_GATE"
    ACCEPT = "ACCEPT"
    FORCED_ACCEPT = "FORCED_ACCEPT"


TERMINAL_PHASES = {ItemPhase.ACCEPT, ItemPhase.FORCED_ACCEPT}


class EventKind(str, Enum):
    ROUTED = "routed"
    PLANNED = "planned"
    EVALUATED = "evaluated"
    GATE_CHECKED = "gate_checked"
    ENRICHED = "enriched"
    ADJUSTED = "adjusted"


@dataclass(frozen=True)
class Event:
    """Outcome of executing one phase."""

    kind: EventKind
    verdict: Optional[QualityVerdict] = None
    gate: Optional[VisualGateResult] = None
    gain: int = 0


@dataclass(frozen=True)
class LoopLimits:
    max_enrichment_attempts: int = 2
    max_prune_attempts: int = 2
    max_total_attempts: int = 4
    max_reroutes: int = 1

    @classmethod
    def from_config(cls, config) -> "LoopLimits":
        return cls(
            max_enrichment_attempts=config.max_enrichment_attempts,
            max_prune_attempts=config.max_prune_attempts,
            max_total_attempts=config.max_total_attempts,
            max_reroutes=config.max_reroutes,
        )


@dataclass
class ItemState:
    """Mutable record owned by exactly one item loop."""

    index: int
    meta: ItemMeta
    total_items: int
    is_hero: bool = False
    phase: ItemPhase = ItemPhase.ROUTE
    plan: Optional[ContentPlan] = None
    layout_id: str = DEFAULT_LAYOUT
    risk_level: RiskLevel = RiskLevel.MEDIUM
    sampled: bool = False
    enrichment_attempts: int = 0
    prune_attempts: int = 0
    total_attempts: int = 0
    reroutes: int = 0
    enrichments: int = 0
    prunes: int = 0
    summaries: int = 0
    avoid_layouts: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    path: List[str] = field(default_factory=lambda: [ItemPhase.ROUTE.value])
    last_verdict: Optional[QualityVerdict] = None
    last_gate: Optional[VisualGateResult] = None

    @property
    def profile(self) -> LayoutProfile:
        return get_profile(self.layout_id)

    @property
    def content_profile(self) -> LayoutProfile:
        """Bounds the content is judged by; hero items keep hero bounds on any layout."""
        if self.is_hero:
            return get_profile(HERO_LAYOUT)
        return self.profile

    @property
    def terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


def _remediate(state: ItemState, action: Any, limits: LoopLimits) -> ItemPhase:
    if state.total_attempts >= limits.max_total_attempts:
        return ItemPhase.FORCED_ACCEPT

    if action in (GateAction.CHANGE_LAYOUT, GateAction.CHANGE_LAYOUT.value):
        if state.reroutes < limits.max_reroutes:
            return ItemPhase.ROUTE
        action = SuggestedAction.PRUNE

    value = getattr(action, "value", action)
    if value == SuggestedAction.ENRICH.value:
        if state.enrichment_attempts < limits.max_enrichment_attempts:
            return ItemPhase.ENRICH
        return ItemPhase.FORCED_ACCEPT
    if value in (SuggestedAction.PRUNE.value, SuggestedAction.SUMMARIZE.value):
        if state.prune_attempts < limits.max_prune_attempts:
            return ItemPhase.PRUNE if value == SuggestedAction.PRUNE.value else ItemPhase.SUMMARIZE
        return ItemPhase.FORCED_ACCEPT
    return ItemPhase.FORCED_ACCEPT


def transition(state: ItemState, event: Event, limits: LoopLimits) -> ItemPhase:
    """Next phase for ``state`` after ``event``; never mutates ``state``."""
    phase = state.phase
    if phase in TERMINAL_PHASES:
        return phase

    expected = {
        ItemPhase.ROUTE: EventKind.ROUTED,
        ItemPhase.PLAN: EventKind.PLANNED,
        ItemPhase.EVALUATE: EventKind.EVALUATED,
        ItemPhase.VISUAL_GATE: EventKind.GATE_CHECKED,
        ItemPhase.ENRICH: EventKind.ENRICHED,
        ItemPhase.PRUNE: EventKind.ADJUSTED,
        ItemPhase.SUMMARIZE: EventKind.ADJUSTED,
    }[phase]
    if event.kind != expected:
        raise ValueError(f"event {event.kind.value} is not valid in phase {phase.value}")

    if phase == ItemPhase.ROUTE:
        return ItemPhase.EVALUATE if state.plan is not None else ItemPhase.PLAN
    if phase == ItemPhase.PLAN:
        return ItemPhase.EVALUATE
    if phase == ItemPhase.EVALUATE:
        verdict = event.verdict
        if verdict is None:
            raise ValueError("evaluated event requires a verdict")
        if verdict.passes:
            return ItemPhase.VISUAL_GATE if state.sampled else ItemPhase.ACCEPT
        return _remediate(state, verdict.suggested_action, limits)
    if phase == ItemPhase.VISUAL_GATE:
        gate = event.gate
        if gate is None or gate.fits:
            return ItemPhase.ACCEPT
        return _remediate(state, gate.action or GateAction.SUMMARIZE, limits)
    if phase == ItemPhase.ENRICH:
        return ItemPhase.PLAN if event.gain > 0 else ItemPhase.FORCED_ACCEPT
    return ItemPhase.EVALUATE


class ItemLoop:
    """Drives one item from ROUTE to a terminal phase."""

    def __init__(
        self,
        services,
        config,
        metrics,
        facts: List[Fact],
        limits: Optional[LoopLimits] = None,
        sensor: Optional[FitSensor] = None,
    ):
        self.services = services
        self.config = config
        self.metrics = metrics
        self.facts = facts
        self.limits = limits or LoopLimits.from_config(config)
        self.sensor = sensor

    async def run(
        self,
        index: int,
        meta: ItemMeta,
        total_items: int,
        previous_titles: Optional[List[str]] = None,
    ) -> ItemState:
        state = ItemState(
            index=index,
            meta=meta,
            total_items=total_items,
            is_hero=is_hero_item(index, total_items, meta.item_type),
        )
        self._previous_titles = list(previous_titles or [])
        logger.info("item_start index=%s title=%r hero=%s", index, meta.title, state.is_hero)

        while not state.terminal:
            event = await self._execute(state)
            self._advance(state, transition(state, event, self.limits))

        if state.phase == ItemPhase.FORCED_ACCEPT:
            self._annotate_exhausted(state)
        logger.info(
            "item_done index=%s layout=%s phase=%s attempts=%s path=%s",
            index,
            state.layout_id,
            state.phase.value,
            state.total_attempts,
            ">".join(state.path),
        )
        return state

    # ------------------------------------------------------------------
    # Phase execution
    # ------------------------------------------------------------------

    async def _execute(self, state: ItemState) -> Event:
        phase = state.phase
        if phase == ItemPhase.ROUTE:
            await self._route(state)
            return Event(EventKind.ROUTED)
        if phase == ItemPhase.PLAN:
            await self._plan(state)
            return Event(EventKind.PLANNED)
        if phase == ItemPhase.EVALUATE:
            verdict = evaluate(state.plan, state.meta, state.layout_id, state.is_hero, state.content_profile)
            state.last_verdict = verdict
            return Event(EventKind.EVALUATED, verdict=verdict)
        if phase == ItemPhase.VISUAL_GATE:
            gate = run_visual_gate(state.plan, state.layout_id, state.meta.title, state.profile, self.sensor)
            state.last_gate = gate
            self.metrics.visual_validation(state.index, state.layout_id, gate)
            return Event(EventKind.GATE_CHECKED, gate=gate)
        if phase == ItemPhase.ENRICH:
            gain = await self._enrich(state)
            return Event(EventKind.ENRICHED, gain=gain)
        if phase == ItemPhase.PRUNE:
            self._prune(state)
            return Event(EventKind.ADJUSTED)
        if phase == ItemPhase.SUMMARIZE:
            self._summarize(state)
            return Event(EventKind.ADJUSTED)
        raise ValueError(f"no action for phase {phase.value}")

    def _advance(self, state: ItemState, next_phase: ItemPhase) -> None:
        if next_phase == ItemPhase.ROUTE:
            state.reroutes += 1
            state.avoid_layouts.append(state.layout_id)
            self.metrics.reroute(state.index)
        elif next_phase == ItemPhase.EVALUATE:
            state.total_attempts += 1
        elif next_phase == ItemPhase.ENRICH:
            state.enrichment_attempts += 1
        elif next_phase in (ItemPhase.PRUNE, ItemPhase.SUMMARIZE):
            state.prune_attempts += 1
        state.phase = next_phase
        state.path.append(next_phase.value)

    async def _route(self, state: ItemState) -> None:
        try:
            layout_id = await self.services.route(state.meta, list(state.avoid_layouts))
        except Exception as exc:
            logger.warning("router_failed index=%s error=%s", state.index, exc)
            state.warnings.append(f"router_fallback: {exc}")
            layout_id = DEFAULT_LAYOUT
        if not layout_id or layout_id in state.avoid_layouts:
            layout_id = DEFAULT_LAYOUT if DEFAULT_LAYOUT not in state.avoid_layouts else layout_id
        state.layout_id = layout_id or DEFAULT_LAYOUT
        state.risk_level = get_risk(state.layout_id)
        state.sampled = should_validate_visually(
            state.index, state.total_items, state.layout_id, state.meta.title, self.config
        )
        state.last_gate = None

    def _hints(self, state: ItemState) -> Dict[str, Any]:
        profile = state.content_profile
        return {
            "layout_id": state.layout_id,
            "max_bullets": profile.max_bullets,
            "max_chars_per_point": profile.max_chars_per_point,
            "min_bullets": profile.min_bullets,
            "allow_empty": profile.allow_empty,
            "previous_titles": self._previous_titles[-3:],
        }

    async def _plan(self, state: ItemState) -> None:
        context = facts_to_context(self.facts, state.meta)
        try:
            state.plan = await self.services.plan(state.meta, context, self._hints(state))
        except Exception as exc:
            logger.warning("planner_failed index=%s error=%s", state.index, exc)
            state.warnings.append(f"planner_fallback: {exc}")
            state.plan = minimal_plan(state.meta)
        if not state.plan.title:
            state.plan = state.plan.model_copy(update={"title": state.meta.title})

    async def _enrich(self, state: ItemState) -> int:
        verdict = state.last_verdict
        query = (verdict.suggested_query if verdict else None) or state.meta.title
        fresh = await targeted_research(query, self.facts, self.services)
        if fresh:
            self.facts.extend(fresh)
            state.enrichments += 1
            self.metrics.enrichment(state.index)
        return len(fresh)

    def _gate_requested(self, state: ItemState) -> bool:
        return state.last_gate is not None and not state.last_gate.fits

    def _prune(self, state: ItemState) -> None:
        profile = state.content_profile
        count = len(state.plan.key_points)
        target = profile.max_bullets
        if self._gate_requested(state) and count <= profile.max_bullets:
            target = max(profile.min_bullets, 1, count - 1)
        state.plan = prune_content(state.plan, target, state.meta.title or state.plan.title)
        state.prunes += 1
        state.last_gate = None
        self.metrics.prune(state.index)

    def _summarize(self, state: ItemState) -> None:
        profile = state.content_profile
        if self._gate_requested(state) and all(
            len(p) <= profile.max_chars_per_point for p in state.plan.key_points
        ):
            tighter = max(10, int(profile.max_chars_per_point * _GATE_SUMMARIZE_RATIO))
            profile = profile.model_copy(update={"max_chars_per_point": tighter})
        state.plan = summarize_content(state.plan, profile)
        state.summaries += 1
        state.last_gate = None
        self.metrics.summary(state.index)

    def _annotate_exhausted(self, state: ItemState) -> None:
        if state.last_gate is not None and not state.last_gate.fits:
            unresolved = f"{state.last_gate.failure_code.value}: {state.last_gate.reason}"
        elif state.last_verdict is not None and not state.last_verdict.passes:
            unresolved = f"{state.last_verdict.reason.value}: {state.last_verdict.details}"
        else:
            unresolved = "no net-new facts from enrichment"
        state.warnings.append(f"{ErrorKind.QUALITY_EXHAUSTED.value}: {unresolved}")
        self.metrics.forced_accept(state.index)
        logger.warning("quality_exhausted index=%s unresolved=%s", state.index, unresolved)


def minimal_plan(meta: ItemMeta) -> ContentPlan:
    """Deterministic content used when planning fails."""
    text = (meta.purpose or meta.title or "Content").strip()
    return ContentPlan(title=meta.title, key_points=[text])
