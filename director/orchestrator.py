"""
Deck Director
编排层: 研究 -> 大纲 -> 资源预取 -> 逐项质量循环 -> 视觉修复 -> 组装 -> 一致性评估

Run flow:
1. Research the topic (degrades to empty facts on failure).
2. Build the outline (degrades to a fixed scaffold on failure).
3. Start speculative asset generation from the outline.
4. Drive each item through the adaptive state machine, sequentially, so the
   planner sees previous titles. An item that crashes becomes a placeholder.
5. Run the visual repair loop for sampled items.
6. Collect assets up to the deadline and bind those whose fingerprint still
   matches the finished item.
7. Critique a sample of the finished deck for coherence.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from time import perf_counter
from typing import Callable, Dict, List, Optional, Tuple

from config import Settings, get_settings, resolve_director_config
from core.contracts import (
    Component,
    CostBreakdown,
    DeckItem,
    DeckOutline,
    DeckResult,
    Fact,
    ItemMeta,
    ProduceOptions,
)
from oracles.breaker import CircuitBreakerBoard
from oracles.gateway import OracleGateway
from oracles.suite import OracleSuite, build_local_suite, build_oracle_suite
from render.proxy import LAYOUT_ZONES, BaseProxyRenderer, SvgProxyRenderer, layout_components

from .assets import AssetPrefetcher, bind_assets, content_fingerprint, extract_asset_needs
from .consensus import ConsensusEngine
from .costs import CostTracker
from .limiter import ConcurrencyLimiter
from .metrics import MetricsRecorder
from .normalize import fallback_outline
from .profiles import DEFAULT_LAYOUT, get_risk
from .repair_loop import VisualRepairLoop
from .services import OracleServices
from .state_machine import ItemLoop, ItemState, minimal_plan
from .visual_gate import FitSensor

logger = logging.getLogger(__name__)

_ITEM_COUNT_RE = re.compile(r"(\d{1,2})\s*(slides?|items?|pages?)", re.IGNORECASE)
MIN_EXTRACTED_ITEMS = 4
MAX_EXTRACTED_ITEMS = 15


def extract_item_count(topic: str) -> Optional[int]:
    """Item count requested inline, e.g. "AI in healthcare, 6 slides"; clamped to 4-15."""
    match = _ITEM_COUNT_RE.search(topic or "")
    if not match:
        return None
    return min(MAX_EXTRACTED_ITEMS, max(MIN_EXTRACTED_ITEMS, int(match.group(1))))


class _Stopwatch:
    def __init__(self, metrics: MetricsRecorder, phase: str):
        self.metrics = metrics
        self.phase = phase

    def __enter__(self):
        self._started = perf_counter()
        return self

    def __exit__(self, *exc_info):
        self.metrics.timing(self.phase, (perf_counter() - self._started) * 1000)
        return False


class Director:
    """
    Produces a deck for a topic.

    One ``Director`` can run many decks; each ``produce`` call owns its own
    cost ledger, breakers, limiter and metrics.

    Example:
        director = Director()
        result = await director.produce("Edge AI adoption, 6 slides")
    """

    def __init__(
        self,
        suite: Optional[OracleSuite] = None,
        settings: Optional[Settings] = None,
        renderer: Optional[BaseProxyRenderer] = None,
        fallback_suite: Optional[OracleSuite] = None,
        sensor: Optional[FitSensor] = None,
        clock: Callable[[], float] = perf_counter,
    ):
        self.settings = settings or get_settings()
        self.suite = suite or build_oracle_suite(self.settings)
        self.fallback_suite = fallback_suite or build_local_suite()
        self.renderer = renderer or SvgProxyRenderer()
        self.sensor = sensor
        self.clock = clock
        self._prefetchers: List[AssetPrefetcher] = []
        self._gateways: List[OracleGateway] = []
        self._unsettled: List[Tuple[DeckResult, CostTracker]] = []

    async def produce(self, topic: str, options: Optional[ProduceOptions] = None) -> DeckResult:
        options = options or ProduceOptions()
        config = resolve_director_config(
            options.mode,
            self.settings.director,
            enable_visual_validation=options.enable_visual_validation,
            visual_sampling_rate=options.visual_sampling_rate,
            asset_timeout_seconds=options.asset_timeout_seconds,
            max_concurrent_assets=options.max_concurrent_assets,
            enable_repair_loop=options.enable_repair_loop,
            enable_consensus=options.enable_consensus,
        )
        item_count = options.item_count or extract_item_count(topic) or self.settings.director.default_item_count
        run_id = uuid.uuid4().hex[:12]
        metrics = MetricsRecorder(run_id=run_id, mode=config.mode)
        metrics.metrics.item_count = item_count
        costs = CostTracker()
        gateway = OracleGateway(
            self.settings.oracle,
            CircuitBreakerBoard(
                threshold=self.settings.oracle.breaker_threshold,
                cooldown_seconds=self.settings.oracle.breaker_cooldown_seconds,
            ),
        )
        self._gateways.append(gateway)
        services = OracleServices(self.suite, gateway, costs, self.fallback_suite)
        started = perf_counter()
        logger.info("produce_start run_id=%s topic=%r mode=%s items=%s", run_id, topic, config.mode, item_count)

        with _Stopwatch(metrics, "research"):
            facts = await self._research(services, topic, metrics)

        with _Stopwatch(metrics, "architect"):
            outline = await self._outline(services, topic, facts, item_count, metrics)

        prefetcher: Optional[AssetPrefetcher] = None
        with _Stopwatch(metrics, "asset_extract"):
            if options.generate_assets:
                needs = extract_asset_needs(outline.items, facts, options.style)
                prefetcher = AssetPrefetcher(services, ConcurrencyLimiter(config.max_concurrent_assets), costs)
                prefetcher.start(needs)
                self._prefetchers.append(prefetcher)
                metrics.metrics.assets_requested = len(needs)

        states: Dict[int, ItemState] = {}
        items: List[DeckItem] = []
        with _Stopwatch(metrics, "per_item_loop"):
            loop = ItemLoop(services, config, metrics, facts, sensor=self.sensor)
            previous_titles: List[str] = []
            total = len(outline.items)
            for index, meta in enumerate(outline.items):
                try:
                    state = await loop.run(index, meta, total, previous_titles)
                except Exception as exc:
                    logger.exception("item_crashed index=%s title=%r", index, meta.title)
                    item = self._placeholder(index, meta, exc)
                    metrics.placeholder(index)
                else:
                    states[index] = state
                    item = self._assemble_item(state)
                metrics.item_path(index, item.path)
                items.append(item)
                previous_titles.append(item.title)

        with _Stopwatch(metrics, "repair"):
            if config.enable_repair_loop:
                await self._repair(services, costs, items, states, options.style, metrics)

        with _Stopwatch(metrics, "asset_wait"):
            if prefetcher is not None:
                ready = await prefetcher.collect(config.asset_timeout_seconds)
                bound = bind_assets(items, ready)
                for item in items:
                    if item.asset is not None:
                        self._attach_image(item)
                metrics.metrics.assets_generated = prefetcher.generated
                metrics.metrics.assets_used = bound["used"]
                metrics.metrics.assets_stale = bound["stale"]
                metrics.metrics.assets_orphaned = prefetcher.abandoned

        with _Stopwatch(metrics, "assemble"):
            result = DeckResult(
                run_id=run_id,
                topic=topic,
                title=outline.title,
                narrative_goal=outline.narrative_goal,
                items=items,
            )

        with _Stopwatch(metrics, "consensus"):
            if config.enable_consensus and items:
                engine = ConsensusEngine(services, self.renderer, self.settings.consensus, options.style)
                result.consensus = await engine.run(items)

        metrics.timing("total", (perf_counter() - started) * 1000)
        result.metrics = metrics.finish(costs.summary(), oracle_fallbacks=gateway.fallbacks)
        result.metrics.research_degraded = result.metrics.research_degraded or "research" in services.degraded
        logger.info(
            "produce_done run_id=%s items=%s placeholders=%s cost=%.4f total_ms=%.0f",
            run_id,
            len(items),
            result.metrics.placeholders,
            result.metrics.costs.total,
            result.metrics.timings.total,
        )
        self._unsettled.append((result, costs))
        return result

    async def _research(self, services: OracleServices, topic: str, metrics: MetricsRecorder) -> List[Fact]:
        try:
            facts = await services.research(topic)
        except Exception as exc:
            logger.warning("research_failed topic=%r error=%s", topic, exc)
            metrics.metrics.research_degraded = True
            return []
        if not facts:
            metrics.metrics.research_degraded = True
        logger.info("research_done facts=%s", len(facts))
        return facts

    async def _outline(
        self,
        services: OracleServices,
        topic: str,
        facts: List[Fact],
        item_count: int,
        metrics: MetricsRecorder,
    ) -> DeckOutline:
        try:
            return await services.outline(topic, facts, item_count)
        except Exception as exc:
            logger.warning("outline_failed topic=%r error=%s", topic, exc)
            metrics.metrics.outline_fallback = True
            return fallback_outline(topic, item_count)

    def _assemble_item(self, state: ItemState) -> DeckItem:
        plan = state.plan or minimal_plan(state.meta)
        title = plan.title or state.meta.title
        return DeckItem(
            order=state.index,
            item_type=state.meta.item_type,
            layout_id=state.layout_id,
            title=title,
            purpose=state.meta.purpose,
            content=plan,
            components=layout_components(state.layout_id, title, plan),
            fingerprint=content_fingerprint(title, state.meta.purpose, state.meta.item_type),
            risk_level=state.risk_level,
            warnings=list(state.warnings),
            path=list(state.path),
            quality=state.last_verdict,
        )

    def _placeholder(self, index: int, meta: ItemMeta, exc: Exception) -> DeckItem:
        plan = minimal_plan(meta)
        return DeckItem(
            order=index,
            item_type=meta.item_type,
            layout_id=DEFAULT_LAYOUT,
            title=meta.title or f"Item {index + 1}",
            purpose=meta.purpose,
            content=plan,
            components=layout_components(DEFAULT_LAYOUT, meta.title, plan),
            fingerprint=content_fingerprint(meta.title, meta.purpose, meta.item_type),
            risk_level=get_risk(DEFAULT_LAYOUT),
            warnings=[f"placeholder: {type(exc).__name__}: {exc}"],
            path=["PLACEHOLDER"],
            placeholder=True,
        )

    async def _repair(
        self,
        services: OracleServices,
        costs: CostTracker,
        items: List[DeckItem],
        states: Dict[int, ItemState],
        style: str,
        metrics: MetricsRecorder,
    ) -> None:
        repair_loop = VisualRepairLoop(services, self.renderer, self.settings.repair, costs, clock=self.clock)
        for position, item in enumerate(items):
            state = states.get(item.order)
            if state is None or not state.sampled:
                continue
            outcome = await repair_loop.run(item, style)
            repaired = outcome.final_item
            repaired.repair = outcome.summary()
            if outcome.recommended_action:
                repaired.warnings.append(f"repair_recommends: {outcome.recommended_action}")
            items[position] = repaired
            metrics.repair(outcome.converged, outcome.abort_reason.value if outcome.abort_reason else None)

    def _attach_image(self, item: DeckItem) -> None:
        if any(c.kind == "image" for c in item.components):
            return
        zone = LAYOUT_ZONES.get(item.layout_id, LAYOUT_ZONES[DEFAULT_LAYOUT])["media"]
        x, y, w, h = zone
        item.components.append(
            Component(id=f"image-{len(item.components)}", kind="image", x=x, y=y, width=w, height=h)
        )

    async def drain_orphans(self) -> List[CostBreakdown]:
        """
        Wait for abandoned asset and oracle calls so their cost is booked.

        Each returned ``DeckResult`` gets its ``metrics.costs`` refreshed in
        place; the refreshed breakdowns come back in run order.
        """
        for prefetcher in self._prefetchers:
            await prefetcher.drain()
        for gateway in self._gateways:
            await gateway.drain()
        self._prefetchers.clear()
        self._gateways.clear()

        settled = []
        for result, costs in self._unsettled:
            result.metrics.costs = costs.summary()
            settled.append(result.metrics.costs)
            if result.metrics.costs.orphaned:
                logger.info(
                    "orphan_costs_settled run_id=%s orphaned=%.4f total=%.4f",
                    result.run_id,
                    result.metrics.costs.orphaned,
                    result.metrics.costs.total,
                )
        self._unsettled.clear()
        return settled

    async def aclose(self) -> None:
        await self.drain_orphans()
        await self.suite.aclose()
        if self.fallback_suite is not self.suite:
            await self.fallback_suite.aclose()


async def produce(topic: str, options: Optional[ProduceOptions] = None, **kwargs) -> DeckResult:
    """Produce a deck with a one-off ``Director``; ``kwargs`` go to its constructor."""
    director = Director(**kwargs)
    try:
        return await director.produce(topic, options)
    finally:
        await director.aclose()


def produce_sync(topic: str, options: Optional[ProduceOptions] = None, **kwargs) -> DeckResult:
    """Blocking wrapper for scripts."""
    return asyncio.run(produce(topic, options, **kwargs))
