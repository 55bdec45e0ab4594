"""
Deterministic offline oracles.

Used when no provider credentials are configured and as the fallback suite
when a remote oracle reports itself unavailable. Output has the same loose
shape as the remote oracles so it flows through the same normalization.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from core.contracts import AssetNeed, Fact, ItemMeta

from .base import AssetOracle, CritiqueOracle, LayoutRouter, OracleReply, PlanningOracle, ResearchOracle

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9\-]+")

_FACT_TEMPLATES = (
    "{subject} has moved from early experiments to broad production use",
    "Adoption of {subject} is driven mainly by cost and speed improvements",
    "Teams adopting {subject} report the largest gains in repetitive workflows",
    "The main barrier to {subject} is integration with existing systems",
    "Regulation and governance shape how quickly {subject} can scale",
    "Skills shortages remain a recurring constraint for {subject} programs",
    "Measurable outcomes are the strongest predictor of {subject} success",
    "{subject} investment is concentrating among a small set of leaders",
)

_SECTION_TITLES = (
    ("Background", "Where {topic} comes from and why it matters now"),
    ("Key Facts", "The most important facts and figures about {topic}"),
    ("Current Landscape", "Who is doing what with {topic} today"),
    ("Challenges", "Obstacles and risks facing {topic}"),
    ("Opportunities", "Where {topic} creates the most value"),
    ("Case Studies", "Concrete examples of {topic} in practice"),
    ("Roadmap", "Timeline of how {topic} is expected to evolve"),
    ("Metrics That Matter", "Key statistics for tracking {topic}"),
    ("Comparison", "How approaches to {topic} compare versus alternatives"),
    ("Recommendations", "What to do next about {topic}"),
)


def _keywords(text: str) -> List[str]:
    return [w.lower() for w in _WORD_RE.findall(text or "") if len(w) > 3]


class LocalResearchOracle(ResearchOracle):
    """
    Answers from an in-memory corpus of facts by keyword overlap.

    Without a corpus, deterministic topic-templated statements are returned
    with low confidence so downstream planning still has material.
    """

    def __init__(self, corpus: Optional[Iterable[Dict[str, Any]]] = None, per_query: int = 6):
        self.corpus = [dict(entry) for entry in (corpus or [])]
        self.per_query = per_query

    async def research(self, query: str, model: Optional[str] = None) -> OracleReply:
        terms = set(_keywords(query))
        if self.corpus:
            scored: List[Tuple[int, int, Dict[str, Any]]] = []
            for position, entry in enumerate(self.corpus):
                overlap = len(terms & set(_keywords(str(entry.get("claim", "")))))
                if overlap:
                    scored.append((-overlap, position, entry))
            scored.sort(key=lambda t: (t[0], t[1]))
            facts = [entry for _, _, entry in scored[: self.per_query]]
        else:
            subject = (query or "the topic").strip()
            facts = [
                {"claim": template.format(subject=subject), "source": "local", "confidence": 0.3}
                for template in _FACT_TEMPLATES[: self.per_query]
            ]
        logger.debug("local_research query=%r facts=%s", query, len(facts))
        return OracleReply(data={"facts": facts}, model="local")


class LocalPlanningOracle(PlanningOracle):
    """Template outline plus fact-driven bullets sized to the layout hints."""

    async def outline(self, topic: str, facts: List[Fact], item_count: int, model: Optional[str] = None) -> OracleReply:
        items: List[Dict[str, str]] = [
            {"title": topic, "item_type": "title-slide", "purpose": f"Introduce {topic}"}
        ]
        body_count = max(0, item_count - 2)
        for idx in range(body_count):
            title, purpose = _SECTION_TITLES[idx % len(_SECTION_TITLES)]
            if idx >= len(_SECTION_TITLES):
                title = f"{title} ({idx // len(_SECTION_TITLES) + 1})"
            items.append({"title": title, "item_type": "content-main", "purpose": purpose.format(topic=topic)})
        if item_count > 1:
            items.append({"title": "Conclusion", "item_type": "conclusion", "purpose": f"Key takeaways on {topic}"})
        return OracleReply(
            data={"title": topic, "narrative_goal": f"Explain {topic} clearly and credibly", "items": items[:item_count]},
            model="local",
        )

    async def plan(
        self,
        meta: ItemMeta,
        facts: List[Fact],
        hints: Dict[str, Any],
        model: Optional[str] = None,
    ) -> OracleReply:
        max_bullets = int(hints.get("max_bullets", 4))
        max_chars = int(hints.get("max_chars_per_point", 80))
        points: List[str] = []
        for fact in facts:
            claim = fact.claim.strip()
            if len(claim) > max_chars:
                claim = claim[:max_chars].rsplit(" ", 1)[0].rstrip(",;:")
            if claim and claim not in points:
                points.append(claim)
            if len(points) >= max_bullets:
                break
        if hints.get("allow_empty") and not facts:
            points = []
        elif not points and meta.purpose:
            points = [meta.purpose[:max_chars]]

        data_points = []
        for fact in facts:
            if fact.value and re.search(r"\d", fact.value):
                label = " ".join(fact.claim.split()[:4])
                data_points.append({"label": label, "value": fact.value})
        return OracleReply(
            data={
                "title": meta.title,
                "key_points": points,
                "data_points": data_points[:3],
                "narrative": meta.purpose,
            },
            model="local",
        )


_ROUTING_RULES = (
    (("timeline", "history", "roadmap", "evolution", "evolve"), "timeline-horizontal"),
    (("metric", "statistic", "numbers", "figures", "kpi", "data"), "dashboard-tiles"),
    (("compare", "comparison", "versus", " vs ", "alternatives"), "split-left-text"),
    (("case", "example", "practice"), "split-right-text"),
    (("opportunit", "landscape"), "bento-grid"),
)


class HeuristicLayoutRouter(LayoutRouter):
    """Keyword rules over title and purpose; honours the avoid list."""

    async def route(self, meta: ItemMeta, avoid: Sequence[str] = (), model: Optional[str] = None) -> OracleReply:
        text = f" {meta.title} {meta.purpose} ".lower()
        candidates: List[str] = []
        if meta.item_type in {"title-slide", "conclusion", "closing"}:
            candidates.append("hero-centered")
        for keywords, layout in _ROUTING_RULES:
            if any(k in text for k in keywords):
                candidates.append(layout)
        candidates.extend(["standard-vertical", "split-left-text", "asymmetric-grid"])
        for layout in candidates:
            if layout not in avoid:
                return OracleReply(data={"layout_id": layout}, model="local")
        return OracleReply(data={"layout_id": "standard-vertical"}, model="local")


def _overlaps(a, b) -> bool:
    return a.x < b.x + b.width and b.x < a.x + a.width and a.y < b.y + b.height and b.y < a.y + a.height


def _hex_luminance(color: Optional[str]) -> Optional[float]:
    if not color or not re.fullmatch(r"#[0-9a-fA-F]{6}", color):
        return None
    r, g, b = (int(color[i:i + 2], 16) / 255.0 for i in (1, 3, 5))
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


class LocalCritiqueOracle(CritiqueOracle):
    """
    Geometry heuristics over the proxy components.

    Detects out-of-canvas boxes, overlapping text boxes, over-dense text and
    low-contrast fills, and proposes repairs that address each one.
    """

    CHAR_WIDTH_PCT = 0.9
    LINE_HEIGHT_PCT = 3.2
    PENALTIES = {"critical": 15.0, "warning": 8.0, "info": 3.0}

    async def critique(self, proxy, model: Optional[str] = None) -> OracleReply:
        issues: List[Dict[str, Any]] = []
        repairs: List[Dict[str, Any]] = []
        components = list(proxy.components)

        for comp in components:
            if comp.x + comp.width > 100.5 or comp.y + comp.height > 100.5:
                issues.append({
                    "category": "overflow",
                    "severity": "critical",
                    "description": f"{comp.id} extends past the canvas",
                    "target_id": comp.id,
                })
                repairs.append({
                    "target_id": comp.id,
                    "action": "resize",
                    "params": {"width": 100 - comp.x, "height": 100 - comp.y},
                    "reason": "fit inside canvas",
                })

        texts = [c for c in components if c.kind != "image"]
        for idx, first in enumerate(texts):
            for second in texts[idx + 1:]:
                if _overlaps(first, second):
                    issues.append({
                        "category": "text_overlap",
                        "severity": "critical",
                        "description": f"{first.id} overlaps {second.id}",
                        "target_id": second.id,
                    })
                    repairs.append({
                        "target_id": second.id,
                        "action": "reposition",
                        "params": {"y": first.y + first.height + 1},
                        "reason": "clear overlap",
                    })

        for image in (c for c in components if c.kind == "image" and c.width < 100):
            for text in texts:
                if _overlaps(image, text):
                    issues.append({
                        "category": "text_overlap",
                        "severity": "warning",
                        "description": f"{image.id} covers {text.id}",
                        "target_id": image.id,
                    })
                    repairs.append({"target_id": image.id, "action": "resize", "params": {"scale": 0.7}, "reason": "shrink media"})
                    break

        for comp in components:
            if comp.kind not in {"text-bullets", "metric-cards"} or not comp.items:
                continue
            chars_per_line = max(8, int(comp.width / self.CHAR_WIDTH_PCT))
            lines = sum(max(1, -(-len(text) // chars_per_line)) for text in comp.items)
            needed = lines * self.LINE_HEIGHT_PCT * comp.spacing
            if needed > comp.height:
                issues.append({
                    "category": "density",
                    "severity": "warning",
                    "description": f"{comp.id} needs {needed:.0f}% height but has {comp.height:.0f}%",
                    "target_id": comp.id,
                })
                if comp.spacing > 0.8:
                    repairs.append({
                        "target_id": comp.id,
                        "action": "respace",
                        "params": {"spacing": round(comp.spacing * 0.85, 2)},
                        "reason": "tighten line spacing",
                    })
                else:
                    repairs.append({"target_id": comp.id, "action": "remove_items", "params": {"count": 1}, "reason": "reduce density"})

        for comp in texts:
            luminance = _hex_luminance(comp.color)
            if luminance is not None and luminance > 0.85:
                issues.append({
                    "category": "contrast",
                    "severity": "info",
                    "description": f"{comp.id} fill is too light for dark text",
                    "target_id": comp.id,
                })
                repairs.append({"target_id": comp.id, "action": "recolor", "params": {"color": "#1f2937"}, "reason": "contrast"})

        score = max(0.0, 100.0 - sum(self.PENALTIES.get(i["severity"], 0.0) for i in issues))
        verdict = "accept" if score >= 85 else "requires_repair"
        return OracleReply(
            data={"score": score, "verdict": verdict, "issues": issues, "repairs": repairs},
            model="local-critic",
        )


class PlaceholderAssetOracle(AssetOracle):
    """Returns a reference to a stock placeholder instead of generating pixels."""

    async def synthesize(self, need: AssetNeed, model: Optional[str] = None) -> OracleReply:
        return OracleReply(data={"payload": f"placeholder://{need.kind.value}/{need.content_id}"}, model="placeholder")
