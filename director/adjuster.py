"""Deterministic content adjustment: pruning (drop points) and summarization (shorten points)."""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from core.contracts import ContentPlan, LayoutProfile

logger = logging.getLogger(__name__)

_STAT_PATTERN = re.compile(r"\d+%|\d+x|\$\d+|\d+\s*(million|billion|k\b)", re.IGNORECASE)
_ELLIPSIS = "..."
_WORD_BREAK_RATIO = 0.7


def score_point(point: str, index: int, count: int, title_keywords: List[str]) -> int:
    """Importance heuristic used to rank points when pruning."""
    score = 0
    lower = point.lower()
    if _STAT_PATTERN.search(point):
        score += 3
    for keyword in title_keywords:
        if len(keyword) > 3 and keyword in lower:
            score += 2
    score += min(2, len(point) // 30)
    if index == 0 or index == count - 1:
        score += 1
    return score


def prune_content(plan: ContentPlan, max_bullets: int, title: Optional[str] = None) -> ContentPlan:
    """
    Keep the ``max_bullets`` most important points.

    Points are ranked by ``score_point`` (ties keep original order) and the
    survivors keep their original relative order, so pruning an already
    pruned plan is a no-op.
    """
    points = plan.key_points
    limit = max(0, int(max_bullets))
    if len(points) <= limit:
        return plan

    keywords = (title if title is not None else plan.title or "").lower().split()
    scored = [(score_point(p, idx, len(points), keywords), idx) for idx, p in enumerate(points)]
    ranked = sorted(scored, key=lambda pair: (-pair[0], pair[1]))
    kept = sorted(idx for _, idx in ranked[:limit])
    logger.debug("prune_content from=%s to=%s", len(points), limit)
    return plan.model_copy(update={"key_points": [points[i] for i in kept]})


def truncate_point(point: str, limit: int) -> str:
    if len(point) <= limit:
        return point
    if limit <= len(_ELLIPSIS):
        return point[:limit]
    truncated = point[: limit - len(_ELLIPSIS)]
    last_space = truncated.rfind(" ")
    if last_space > limit * _WORD_BREAK_RATIO:
        truncated = truncated[:last_space]
    return truncated.rstrip() + _ELLIPSIS


def summarize_content(plan: ContentPlan, profile: LayoutProfile) -> ContentPlan:
    """Shorten every point longer than ``profile.max_chars_per_point``."""
    limit = profile.max_chars_per_point
    if all(len(p) <= limit for p in plan.key_points):
        return plan
    shortened = [truncate_point(p, limit) for p in plan.key_points]
    logger.debug("summarize_content limit=%s points=%s", limit, len(shortened))
    return plan.model_copy(update={"key_points": shortened})
