"""
Speculative asset generation and drift-safe binding.

Assets are requested from the outline before item content is final, so each
one carries the fingerprint of the outline entry it was made for. At assembly
an asset is attached only if that fingerprint still matches the finished
item; otherwise it is counted as stale and dropped.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import re
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from core.contracts import AssetKind, AssetNeed, DeckItem, Fact, GeneratedAsset, ItemMeta

from .costs import CostTracker
from .limiter import ConcurrencyLimiter

logger = logging.getLogger(__name__)

_PUNCT_RE = re.compile(r"[^\w\s]")
_NUMERIC_CLAIM_RE = re.compile(r"\d+%|\$\d+|\d+\s*(million|billion)", re.IGNORECASE)
_FIRST_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_FINGERPRINT_WORDS = 4
_MATCH_RATIO = 0.5
_IMAGE_ITEM_TYPES = {"title-slide", "section-header"}
_CHART_HINTS = ("data", "stat", "metric")


def _key_words(text: str) -> str:
    words = [w for w in _PUNCT_RE.sub("", (text or "").lower()).split() if len(w) > 3]
    return "_".join(sorted(words[:_FINGERPRINT_WORDS]))


def content_fingerprint(title: str, purpose: str, item_type: str) -> str:
    """Stable identity of an item's subject; minor rewording keeps it, pivots change it."""
    return _key_words(f"{title} {purpose} {item_type or 'content-main'}")


def fingerprints_match(original: str, final: str) -> bool:
    """True when the word overlap is at least half of the larger word set."""
    if original == final:
        return True
    original_words = [w for w in (original or "").split("_") if w]
    final_words = set(w for w in (final or "").split("_") if w)
    if not original_words or not final_words:
        return False
    overlap = sum(1 for w in original_words if w in final_words)
    required = math.ceil(max(len(original_words), len(final_words)) * _MATCH_RATIO)
    return overlap >= required


def extract_asset_needs(items: Sequence[ItemMeta], facts: Sequence[Fact], style: str = "professional") -> List[AssetNeed]:
    """Background images for title/section items; charts for data items backed by numeric facts."""
    numeric = [f for f in facts if _NUMERIC_CLAIM_RE.search(f.claim)][:4]
    needs: List[AssetNeed] = []
    for idx, meta in enumerate(items):
        item_type = meta.item_type or "content-main"
        title = meta.title or f"Item {idx + 1}"
        purpose = meta.purpose or "Content"
        content_id = content_fingerprint(title, meta.purpose, item_type)

        if item_type in _IMAGE_ITEM_TYPES:
            needs.append(
                AssetNeed(
                    content_id=content_id,
                    item_index=idx,
                    kind=AssetKind.IMAGE,
                    prompt=f"Abstract {style} background for: {title}",
                    spec={"style": style, "original_title": title, "original_purpose": purpose},
                )
            )

        if any(hint in purpose.lower() for hint in _CHART_HINTS) and len(numeric) >= 2:
            data = []
            for fact in numeric:
                match = _FIRST_NUMBER_RE.search(fact.claim)
                data.append({"label": fact.claim[:30], "value": float(match.group()) if match else 0.0})
            needs.append(
                AssetNeed(
                    content_id=content_id,
                    item_index=idx,
                    kind=AssetKind.CHART,
                    prompt=f"Bar chart for: {title}",
                    spec={"type": "bar-chart", "data": data},
                )
            )

    logger.info(
        "asset_needs images=%s charts=%s",
        sum(1 for n in needs if n.kind == AssetKind.IMAGE),
        sum(1 for n in needs if n.kind == AssetKind.CHART),
    )
    return needs


def render_chart_asset(need: AssetNeed) -> GeneratedAsset:
    """Charts are data, not pixels: the payload is the chart spec as JSON."""
    return GeneratedAsset(
        content_id=need.content_id,
        item_index=need.item_index,
        kind=AssetKind.CHART,
        prompt=need.prompt,
        payload=json.dumps(need.spec, ensure_ascii=False, sort_keys=True),
        model="local-chart",
        cost=0.0,
    )


class AssetPrefetcher:
    """
    Fan out asset generation under a concurrency ceiling and collect by deadline.

    Calls still running at the deadline are abandoned, not cancelled; their
    cost is booked as orphaned when they eventually finish.
    """

    def __init__(self, services, limiter: ConcurrencyLimiter, costs: CostTracker):
        self.services = services
        self.limiter = limiter
        self.costs = costs
        self._tasks: List[asyncio.Task] = []
        self._deadline_passed = False
        self.requested = 0
        self.generated = 0
        self.failed = 0
        self.abandoned = 0
        self.orphaned_completed = 0

    def start(self, needs: Sequence[AssetNeed]) -> None:
        for need in needs:
            self._tasks.append(asyncio.create_task(self._generate(need)))
        self.requested += len(needs)

    async def _generate(self, need: AssetNeed) -> Optional[GeneratedAsset]:
        async with self.limiter:
            try:
                asset = await self.services.synthesize(need)
            except Exception as exc:
                self.failed += 1
                logger.warning("asset_failed item=%s kind=%s error=%s", need.item_index, need.kind.value, exc)
                return None
        orphaned = self._deadline_passed
        self.costs.record("asset", asset.cost, model=asset.model, orphaned=orphaned)
        if orphaned:
            self.orphaned_completed += 1
            logger.info("asset_orphaned item=%s cost=%.4f", need.item_index, asset.cost)
        else:
            self.generated += 1
        return asset

    async def collect(self, timeout: float) -> Dict[int, List[GeneratedAsset]]:
        """Assets finished within ``timeout`` seconds, keyed by item index."""
        ready: Dict[int, List[GeneratedAsset]] = defaultdict(list)
        if not self._tasks:
            return {}
        done, pending = await asyncio.wait(self._tasks, timeout=max(0.0, timeout))
        self._deadline_passed = True
        self.abandoned = len(pending)
        if pending:
            logger.warning("asset_deadline abandoned=%s timeout=%.1fs", len(pending), timeout)
        for task in done:
            asset = task.result()
            if asset is not None:
                ready[asset.item_index].append(asset)
        return dict(ready)

    async def drain(self) -> None:
        """Wait for abandoned calls so their cost lands in the ledger."""
        pending = [t for t in self._tasks if not t.done()]
        if pending:
            await asyncio.gather(*pending)


def bind_assets(items: List[DeckItem], assets: Dict[int, List[GeneratedAsset]]) -> Dict[str, int]:
    """
    Attach each item's first matching asset in place.

    Returns counts of ``used`` and ``stale`` assets.
    """
    used = 0
    stale = 0
    for item in items:
        for asset in assets.get(item.order, []):
            if item.asset is None and fingerprints_match(asset.content_id, item.fingerprint):
                item.asset = asset
                used += 1
            elif item.asset is None:
                stale += 1
                logger.info(
                    "asset_stale item=%s original=%s final=%s",
                    item.order,
                    asset.content_id,
                    item.fingerprint,
                )
    return {"used": used, "stale": stale}
