"""
Defensive normalization of raw oracle output.

Oracles return loosely-structured data (dicts from JSON replies, sometimes
strings or lists where objects were expected). Each function here either
produces a valid typed value or a typed default; none of them raise on bad
input.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from core.contracts import (
    ContentPlan,
    CritiqueIssue,
    CritiqueVerdict,
    DataPoint,
    DeckOutline,
    Fact,
    ItemMeta,
    RepairAction,
    RepairActionKind,
    VisualCritique,
)

from .profiles import DEFAULT_LAYOUT, LAYOUT_PROFILES

logger = logging.getLogger(__name__)


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _text(value: Any) -> str:
    if isinstance(value, dict):
        value = _pick(value, "text", "point", "content", "claim", default="")
    return str(value or "").strip()


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip() or None


def normalize_facts(raw: Any) -> List[Fact]:
    """Facts from a list of dicts/strings, or a dict wrapping one under ``facts``."""
    if isinstance(raw, dict):
        raw = _pick(raw, "facts", "findings", "results", default=[])
    facts: List[Fact] = []
    for idx, entry in enumerate(_as_list(raw)):
        if isinstance(entry, str):
            entry = {"claim": entry}
        if not isinstance(entry, dict):
            continue
        claim = _text(_pick(entry, "claim", "text", "fact", default=""))
        if not claim:
            continue
        fact_id = str(_pick(entry, "id", default="") or "") or "fact-" + hashlib.sha1(claim.lower().encode("utf-8")).hexdigest()[:10]
        try:
            facts.append(
                Fact(
                    id=fact_id,
                    claim=claim,
                    value=(str(entry["value"]) if entry.get("value") is not None else None),
                    source=str(_pick(entry, "source", "url", default="") or ""),
                    confidence=_pick(entry, "confidence", default=0.5),
                )
            )
        except ValidationError as exc:
            logger.debug("normalize_facts skipped index=%s error=%s", idx, exc)
    return facts


def _data_points(raw: Any) -> List[DataPoint]:
    points: List[DataPoint] = []
    for entry in _as_list(raw):
        if not isinstance(entry, dict):
            continue
        label = _text(_pick(entry, "label", "name", "metric", default=""))
        value = _pick(entry, "value", "amount", default=None)
        if not label or value is None:
            continue
        if not isinstance(value, (int, float)):
            value = str(value).strip()
            if not value:
                continue
        points.append(DataPoint(label=label, value=value))
    return points


def normalize_plan(raw: Any, meta: Optional[ItemMeta] = None, allow_empty: bool = False) -> ContentPlan:
    """
    Coerce planner output into a ``ContentPlan``.

    Non-empty layouts never receive an empty ``key_points``: the item purpose
    (or title) is used as a single point instead.
    """
    title = meta.title if meta else ""
    if isinstance(raw, ContentPlan):
        plan = raw
    else:
        if isinstance(raw, str):
            raw = {"key_points": [line.lstrip("-*• ").strip() for line in raw.splitlines()]}
        elif isinstance(raw, list):
            raw = {"key_points": raw}
        elif not isinstance(raw, dict):
            logger.warning("normalize_plan unexpected type=%s", type(raw).__name__)
            raw = {}
        points = [_text(p) for p in _as_list(_pick(raw, "key_points", "keyPoints", "bullets", "points", default=[]))]
        narrative = _pick(raw, "narrative", "speaker_notes", "notes", default=None)
        plan = ContentPlan(
            title=_text(_pick(raw, "title", "headline", default="")) or title,
            key_points=[p for p in points if p],
            data_points=_data_points(_pick(raw, "data_points", "dataPoints", "metrics", default=[])),
            narrative=_text(narrative) or None,
        )

    if not plan.key_points and not allow_empty:
        fallback = (meta.purpose or meta.title) if meta else plan.title
        plan = plan.model_copy(update={"key_points": [fallback.strip() or "Content"]})
    return plan


def normalize_layout(raw: Any) -> str:
    """Layout id from a router reply; unknown ids map to the default layout."""
    if isinstance(raw, dict):
        raw = _pick(raw, "layout_id", "layoutVariant", "layout", default="")
    layout = str(raw or "").strip().lower()
    return layout if layout in LAYOUT_PROFILES else DEFAULT_LAYOUT


def _verdict(value: Any, score: float) -> CritiqueVerdict:
    text = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
    for verdict in CritiqueVerdict:
        if text == verdict.value:
            return verdict
    if text in {"pass", "approved", "ok"}:
        return CritiqueVerdict.ACCEPT
    if text in {"repair", "fail", "reject"}:
        return CritiqueVerdict.REQUIRES_REPAIR
    return CritiqueVerdict.ACCEPT if score >= 85 else CritiqueVerdict.FLAG_FOR_REVIEW


def _repairs(raw: Iterable[Any]) -> List[RepairAction]:
    known = {kind.value for kind in RepairActionKind}
    repairs: List[RepairAction] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        action = str(_pick(entry, "action", "type", default="")).strip().lower().replace("-", "_")
        if action == "remove":
            action = RepairActionKind.REMOVE_ITEMS.value
        if action not in known:
            continue
        params = _pick(entry, "params", "parameters", default={})
        repairs.append(
            RepairAction(
                target_id=str(_pick(entry, "target_id", "targetId", "target", default="body")),
                action=RepairActionKind(action),
                params=params if isinstance(params, dict) else {},
                reason=_text(_pick(entry, "reason", default="")),
            )
        )
    return repairs


def normalize_critique(raw: Any, model: Optional[str] = None) -> VisualCritique:
    """Critique from a JSON-like dict; missing fields become conservative defaults."""
    if isinstance(raw, VisualCritique):
        return raw
    if not isinstance(raw, dict):
        logger.warning("normalize_critique unexpected type=%s", type(raw).__name__)
        return VisualCritique(score=0.0, verdict=CritiqueVerdict.FLAG_FOR_REVIEW, model=model)

    score = VisualCritique(score=_pick(raw, "score", "overall_score", "overallScore", default=0)).score
    issues: List[CritiqueIssue] = []
    for entry in _as_list(_pick(raw, "issues", default=[])):
        if isinstance(entry, str):
            entry = {"category": "general", "description": entry}
        if not isinstance(entry, dict):
            continue
        issues.append(
            CritiqueIssue(
                category=str(_pick(entry, "category", "type", default="general")).strip().lower() or "general",
                description=_text(_pick(entry, "description", "message", default="")),
                severity=str(_pick(entry, "severity", default="minor")),
                target_id=_optional_text(_pick(entry, "target_id", "targetId", default=None)),
            )
        )
    return VisualCritique(
        score=score,
        verdict=_verdict(_pick(raw, "verdict", "overall_verdict", default=None), score),
        issues=issues,
        repairs=_repairs(_as_list(_pick(raw, "repairs", "repair_actions", default=[]))),
        model=model,
    )


def normalize_outline(raw: Any, topic: str, item_count: int) -> DeckOutline:
    """
    Outline padded or truncated to exactly ``item_count`` items.

    Missing items are filled with generic sections; the last item is always a
    conclusion when padding was needed.
    """
    if not isinstance(raw, dict):
        raw = {"items": raw} if isinstance(raw, list) else {}
    entries = _as_list(_pick(raw, "items", "slides", default=[]))
    items: List[ItemMeta] = []
    for entry in entries:
        if isinstance(entry, str):
            entry = {"title": entry}
        if not isinstance(entry, dict):
            continue
        title = _text(_pick(entry, "title", default=""))
        if not title:
            continue
        items.append(
            ItemMeta(
                order=len(items),
                item_type=str(_pick(entry, "item_type", "type", default="content-main")),
                title=title,
                purpose=_text(_pick(entry, "purpose", "description", default="")),
            )
        )

    count = max(1, int(item_count))
    padded = len(items) < count
    items = items[:count]
    while len(items) < count:
        items.append(
            ItemMeta(
                order=len(items),
                item_type="content-main",
                title=f"{topic}: part {len(items) + 1}",
                purpose=f"Key aspects of {topic}",
            )
        )
    if padded and count > 1:
        items[-1] = ItemMeta(order=count - 1, item_type="conclusion", title="Conclusion", purpose=f"Key takeaways on {topic}")
    if items and not any(i.item_type == "title-slide" for i in items[:1]):
        items[0] = items[0].model_copy(update={"item_type": "title-slide"})

    return DeckOutline(
        title=_text(_pick(raw, "title", default="")) or topic,
        narrative_goal=_text(_pick(raw, "narrative_goal", "narrativeGoal", default="")),
        items=items,
    )


def fallback_outline(topic: str, item_count: int) -> DeckOutline:
    """Default scaffold used when the planner cannot produce an outline."""
    base = [
        {"title": topic, "item_type": "title-slide", "purpose": f"Introduce {topic}"},
        {"title": "Overview", "item_type": "content-main", "purpose": f"Overview of {topic}"},
        {"title": "Conclusion", "item_type": "conclusion", "purpose": f"Key takeaways on {topic}"},
    ]
    if item_count <= 3:
        chosen = base[: max(1, item_count)] if item_count < 3 else base
        return normalize_outline({"title": topic, "items": chosen}, topic, len(chosen))
    return normalize_outline({"title": topic, "items": base[:2]}, topic, item_count)
