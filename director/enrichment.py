"""Targeted re-research for THIN items and fact selection for planner context."""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Set

from core.contracts import Fact, ItemMeta

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[a-z0-9]+")
_MAX_CONTEXT_FACTS = 4
_FALLBACK_CONTEXT_FACTS = 3


def claim_key(claim: str) -> str:
    return (claim or "").strip().lower()


async def targeted_research(query: str, existing_facts: Iterable[Fact], oracle) -> List[Fact]:
    """
    Ask the research oracle a narrow question and keep only net-new facts.

    A fact is a duplicate when its trimmed, lower-cased claim equals an
    existing claim or an earlier claim in the same response. Oracle failures
    never propagate; they yield an empty list.
    """
    logger.info("targeted_research query=%r", query)
    try:
        found = await oracle.research(query)
    except Exception as exc:
        logger.warning("targeted_research_failed query=%r error=%s", query, exc)
        return []

    seen: Set[str] = {claim_key(f.claim) for f in existing_facts}
    fresh: List[Fact] = []
    for fact in found or []:
        key = claim_key(fact.claim)
        if not key or key in seen:
            continue
        seen.add(key)
        fresh.append(fact)

    logger.info(
        "targeted_research_done query=%r new=%s duplicates=%s",
        query,
        len(fresh),
        len(found or []) - len(fresh),
    )
    return fresh


def _tokens(text: str) -> Set[str]:
    return {t for t in _WORD_RE.findall((text or "").lower()) if len(t) > 3}


def facts_to_context(facts: List[Fact], meta: Optional[ItemMeta], limit: int = _MAX_CONTEXT_FACTS) -> List[Fact]:
    """Pick the facts most related to an item by keyword overlap; fall back to the first few."""
    if not facts:
        return []
    if meta is None:
        return facts[:_FALLBACK_CONTEXT_FACTS]
    wanted = _tokens(f"{meta.title} {meta.purpose}")
    scored = []
    for idx, fact in enumerate(facts):
        overlap = len(wanted & _tokens(f"{fact.claim} {fact.value or ''}"))
        if overlap:
            scored.append((overlap, fact.confidence, -idx, fact))
    if not scored:
        return facts[:_FALLBACK_CONTEXT_FACTS]
    scored.sort(key=lambda row: (row[0], row[1], row[2]), reverse=True)
    return [row[3] for row in scored[:limit]]
