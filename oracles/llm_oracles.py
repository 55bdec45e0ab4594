"""
LLM Oracles
基于 LLM 的研究 / 规划 / 版式路由 / 视觉评审实现

每个调用都要求 JSON 输出, 经 ``parse_json_reply`` 修复后原样返回;
类型化与兜底在 director.normalize 中完成.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from core.contracts import Fact, ItemMeta

from .base import CritiqueOracle, LayoutRouter, OracleReply, PlanningOracle, ResearchOracle
from .json_repair import parse_json_reply
from .llm import BaseLLM, Message, get_llm, resolve_model_tiers


logger = logging.getLogger(__name__)


RESEARCH_SYSTEM = """You are a meticulous research analyst preparing material for a presentation.
Return ONLY valid JSON."""

RESEARCH_PROMPT = """Research the topic below and return 6-10 verified, specific facts.

Topic: {query}

Prefer statistics, dates, named examples and expert findings over generic statements.

Return JSON:
{{"facts": [{{"claim": "...", "value": "optional number or figure", "source": "source name or URL", "confidence": 0.0-1.0}}]}}"""

OUTLINE_SYSTEM = """You are a presentation architect who structures compelling narratives.
Return ONLY valid JSON."""

OUTLINE_PROMPT = """Design a {item_count}-slide deck about: {topic}

Research facts:
{facts}

Rules:
- Exactly {item_count} items.
- The first item is a "title-slide", the last a "conclusion".
- Every other item is "content-main" with a distinct, specific title.

Return JSON:
{{"title": "...", "narrative_goal": "...", "items": [{{"title": "...", "item_type": "title-slide|content-main|conclusion", "purpose": "what this slide must convey"}}]}}"""

PLAN_SYSTEM = """You write concise, information-dense slide content that fits a fixed layout.
Return ONLY valid JSON."""

PLAN_PROMPT = """Write the content for one slide.

Slide title: {title}
Purpose: {purpose}
Layout: {layout_id}
Constraints: {min_bullets}-{max_bullets} key points, each at most {max_chars_per_point} characters.
Avoid repeating these earlier slide titles: {previous_titles}

Supporting facts:
{facts}

Return JSON:
{{"title": "...", "key_points": ["..."], "data_points": [{{"label": "...", "value": 0}}], "narrative": "speaker notes"}}"""

ROUTE_SYSTEM = """You select slide layouts. Return ONLY valid JSON."""

ROUTE_PROMPT = """Choose the best layout for this slide.

Title: {title}
Type: {item_type}
Purpose: {purpose}

Available layouts: {layouts}
Do not choose: {avoid}

Return JSON: {{"layout_id": "..."}}"""

CRITIQUE_SYSTEM = """You are a senior presentation designer reviewing a slide rendered as SVG.
Return ONLY valid JSON."""

CRITIQUE_PROMPT = """Review this slide for text overlap, contrast, alignment, spacing and density.
Each element carries a data-component-id attribute; repairs must target those ids.

Component ids: {manifest}

SVG:
{svg}

Return JSON:
{{"score": 0-100, "verdict": "accept|flag_for_review|requires_repair",
  "issues": [{{"category": "text_overlap|contrast|alignment|spacing|density|overflow", "severity": "critical|warning|info", "description": "...", "target_id": "..."}}],
  "repairs": [{{"target_id": "...", "action": "reposition|resize|recolor|respace|remove_items", "params": {{}}, "reason": "..."}}]}}"""


def _format_facts(facts: Sequence[Fact], limit: int = 12) -> str:
    if not facts:
        return "(none)"
    return "\n".join(f"- {f.claim}" + (f" ({f.value})" if f.value else "") for f in list(facts)[:limit])


class _LLMOracleMixin:
    """Shared JSON-mode completion with model-alias resolution and cost estimation."""

    def __init__(self, llm: Optional[BaseLLM] = None, tiers: Optional[Dict[str, str]] = None):
        self.llm = llm or get_llm()
        self._tiers = tiers

    @property
    def tiers(self) -> Dict[str, str]:
        if self._tiers is None:
            self._tiers = resolve_model_tiers(self.llm.provider)
        return self._tiers

    def _model(self, alias: Optional[str]) -> Optional[str]:
        if not alias:
            return None
        return self.tiers.get(alias, alias)

    async def _complete_json(self, system: str, prompt: str, model: Optional[str]) -> OracleReply:
        resolved = self._model(model)
        response = await self.llm.acomplete(
            [Message.system(system), Message.user(prompt)],
            model=resolved,
            json_mode=True,
        )
        if response.truncated:
            logger.warning("llm_reply_truncated model=%s chars=%s", response.model, len(response.content or ""))
        data = parse_json_reply(response.content)
        return OracleReply(data=data, cost=self.llm.estimate_cost(response.usage), model=response.model)

    async def aclose(self) -> None:
        await self.llm.aclose()


class LLMResearchOracle(_LLMOracleMixin, ResearchOracle):
    async def research(self, query: str, model: Optional[str] = None) -> OracleReply:
        return await self._complete_json(RESEARCH_SYSTEM, RESEARCH_PROMPT.format(query=query), model)


class LLMPlanningOracle(_LLMOracleMixin, PlanningOracle):
    async def outline(self, topic: str, facts: List[Fact], item_count: int, model: Optional[str] = None) -> OracleReply:
        prompt = OUTLINE_PROMPT.format(topic=topic, item_count=item_count, facts=_format_facts(facts))
        return await self._complete_json(OUTLINE_SYSTEM, prompt, model)

    async def plan(
        self,
        meta: ItemMeta,
        facts: List[Fact],
        hints: Dict[str, Any],
        model: Optional[str] = None,
    ) -> OracleReply:
        prompt = PLAN_PROMPT.format(
            title=meta.title,
            purpose=meta.purpose or meta.title,
            layout_id=hints.get("layout_id", ""),
            min_bullets=hints.get("min_bullets", 1),
            max_bullets=hints.get("max_bullets", 4),
            max_chars_per_point=hints.get("max_chars_per_point", 80),
            previous_titles=", ".join(hints.get("previous_titles") or []) or "(none)",
            facts=_format_facts(facts),
        )
        return await self._complete_json(PLAN_SYSTEM, prompt, model)


class LLMLayoutRouter(_LLMOracleMixin, LayoutRouter):
    async def route(self, meta: ItemMeta, avoid: Sequence[str] = (), model: Optional[str] = None) -> OracleReply:
        from director.profiles import known_layouts

        prompt = ROUTE_PROMPT.format(
            title=meta.title,
            item_type=meta.item_type,
            purpose=meta.purpose,
            layouts=", ".join(known_layouts()),
            avoid=", ".join(avoid) or "(none)",
        )
        return await self._complete_json(ROUTE_SYSTEM, prompt, model)


class LLMCritiqueOracle(_LLMOracleMixin, CritiqueOracle):
    """Text-only critique of the SVG proxy, used when no vision critic service is configured."""

    async def critique(self, proxy, model: Optional[str] = None) -> OracleReply:
        prompt = CRITIQUE_PROMPT.format(manifest=json.dumps(proxy.manifest()), svg=proxy.svg)
        return await self._complete_json(CRITIQUE_SYSTEM, prompt, model)
