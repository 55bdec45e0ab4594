"""
Typed service facade over the oracle suite.

Every call goes through the ``OracleGateway`` (timeout, retry, fallback
chain, breakers), is charged to the cost ledger, and is normalized into a
typed value. An oracle that reports itself unavailable is swapped for its
local counterpart for the rest of the run.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Set

from core.contracts import (
    AssetKind,
    AssetNeed,
    ContentPlan,
    DeckOutline,
    Fact,
    GeneratedAsset,
    ItemMeta,
    VisualCritique,
)
from oracles.base import OracleReply
from oracles.gateway import OracleGateway
from oracles.suite import OracleSuite
from utils.exceptions import OracleUnavailable

from .assets import render_chart_asset
from .costs import CostTracker
from .normalize import normalize_critique, normalize_facts, normalize_layout, normalize_outline, normalize_plan

logger = logging.getLogger(__name__)

# Roles whose cost the services book; asset cost is booked by the prefetcher.
_SELF_BOOKED = {"research", "planner", "router", "critic"}


class OracleServices:
    def __init__(
        self,
        suite: OracleSuite,
        gateway: OracleGateway,
        costs: CostTracker,
        fallback_suite: Optional[OracleSuite] = None,
    ):
        self.suite = suite
        self.gateway = gateway
        self.costs = costs
        self.fallback_suite = fallback_suite
        self.degraded: Set[str] = set()

    def _orphan_hook(self, role: str):
        def _book(oracle: str, model: str, reply: Any) -> None:
            cost = getattr(reply, "cost", 0.0) or 0.0
            self.costs.record("asset" if role == "assets" else role, cost, model=model, orphaned=True)
            logger.info("oracle_orphan_settled oracle=%s model=%s cost=%.4f", oracle, model, cost)

        return _book

    async def _call(self, role: str, method: str, *args: Any) -> OracleReply:
        if role not in self.degraded:
            oracle = getattr(self.suite, role)
            bound = getattr(oracle, method)
            try:
                reply = await self.gateway.call(
                    role,
                    lambda model: bound(*args, model=model),
                    on_orphan=self._orphan_hook(role),
                )
            except OracleUnavailable as exc:
                if self.fallback_suite is None:
                    raise
                self.degraded.add(role)
                logger.warning("oracle_unavailable role=%s fallback=local error=%s", role, exc)
            else:
                self._book(role, reply)
                return reply

        fallback = getattr(self.fallback_suite, role)
        reply = await getattr(fallback, method)(*args)
        self._book(role, reply)
        return reply

    def _book(self, role: str, reply: OracleReply) -> None:
        if role in _SELF_BOOKED:
            self.costs.record(role, reply.cost, model=reply.model)

    async def research(self, query: str) -> List[Fact]:
        reply = await self._call("research", "research", query)
        return normalize_facts(reply.data)

    async def outline(self, topic: str, facts: List[Fact], item_count: int) -> DeckOutline:
        reply = await self._call("planner", "outline", topic, facts, item_count)
        return normalize_outline(reply.data, topic, item_count)

    async def plan(self, meta: ItemMeta, facts: List[Fact], hints: Dict[str, Any]) -> ContentPlan:
        reply = await self._call("planner", "plan", meta, facts, hints)
        return normalize_plan(reply.data, meta, allow_empty=bool(hints.get("allow_empty", False)))

    async def route(self, meta: ItemMeta, avoid: Sequence[str] = ()) -> str:
        reply = await self._call("router", "route", meta, list(avoid))
        return normalize_layout(reply.data)

    async def critique(self, proxy) -> VisualCritique:
        reply = await self._call("critic", "critique", proxy)
        return normalize_critique(reply.data, model=reply.model)

    async def synthesize(self, need: AssetNeed) -> GeneratedAsset:
        if need.kind == AssetKind.CHART:
            return render_chart_asset(need)
        reply = await self._call("assets", "synthesize", need)
        data = reply.data
        payload = data.get("payload") if isinstance(data, dict) else data
        return GeneratedAsset(
            content_id=need.content_id,
            item_index=need.item_index,
            kind=need.kind,
            prompt=need.prompt,
            payload=str(payload) if payload is not None else None,
            model=reply.model,
            cost=reply.cost,
        )
