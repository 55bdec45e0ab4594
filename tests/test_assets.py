from __future__ import annotations

import asyncio

import pytest

from core import AssetKind, AssetNeed, ContentPlan, DeckItem, Fact, GeneratedAsset, ItemMeta
from director.assets import (
    AssetPrefetcher,
    bind_assets,
    content_fingerprint,
    extract_asset_needs,
    fingerprints_match,
    render_chart_asset,
)
from director.costs import CostTracker
from director.limiter import ConcurrencyLimiter


def test_rewording_keeps_match_but_pivot_drifts() -> None:
    original = content_fingerprint("Q3 Revenue Growth", "Financial highlights", "content-main")
    reworded = content_fingerprint("Q3 Revenue Overview", "Financial highlights", "content-main")
    pivoted = content_fingerprint("Team Culture Values", "Financial highlights", "content-main")

    assert fingerprints_match(original, reworded)
    assert not fingerprints_match(original, pivoted)


def test_fingerprint_ignores_case_punctuation_and_short_words() -> None:
    assert content_fingerprint("The AI, Market!", "", "") == content_fingerprint("the ai market", "", "content-main")
    assert fingerprints_match("", "") is True
    assert fingerprints_match("alpha_beta", "") is False


def test_extract_needs_images_and_charts() -> None:
    items = [
        ItemMeta(order=0, item_type="title-slide", title="Edge AI", purpose="Opening"),
        ItemMeta(order=1, title="Adoption Numbers", purpose="Key data on adoption"),
        ItemMeta(order=2, title="Culture", purpose="Team values"),
    ]
    facts = [
        Fact(claim="Adoption rose 40% in 2024"),
        Fact(claim="Spending hit $12 billion"),
        Fact(claim="Vendors are consolidating"),
    ]

    needs = extract_asset_needs(items, facts, style="minimal")

    assert [(n.item_index, n.kind) for n in needs] == [(0, AssetKind.IMAGE), (1, AssetKind.CHART)]
    assert needs[0].prompt == "Abstract minimal background for: Edge AI"
    assert [d["value"] for d in needs[1].spec["data"]] == [40.0, 12.0]


def test_chart_needs_require_two_numeric_facts() -> None:
    items = [ItemMeta(order=0, title="Metrics", purpose="Key metric view")]
    assert extract_asset_needs(items, [Fact(claim="Grew 10%")]) == []


def test_chart_asset_is_rendered_locally_without_cost() -> None:
    need = AssetNeed(content_id="c", item_index=1, kind=AssetKind.CHART, prompt="p", spec={"type": "bar-chart"})
    asset = render_chart_asset(need)

    assert asset.cost == 0.0
    assert asset.model == "local-chart"
    assert asset.payload == '{"type": "bar-chart"}'


def _deck_item(order: int, title: str, purpose: str = "Financial highlights") -> DeckItem:
    return DeckItem(
        order=order,
        layout_id="standard-vertical",
        title=title,
        purpose=purpose,
        content=ContentPlan(key_points=["x"]),
        fingerprint=content_fingerprint(title, purpose, "content-main"),
    )


def _asset(index: int, content_id: str) -> GeneratedAsset:
    return GeneratedAsset(content_id=content_id, item_index=index, payload="img")


def test_bind_attaches_matching_and_counts_stale() -> None:
    original = content_fingerprint("Q3 Revenue Growth", "Financial highlights", "content-main")
    items = [_deck_item(0, "Q3 Revenue Overview"), _deck_item(1, "Team Culture Values")]

    counts = bind_assets(items, {0: [_asset(0, original)], 1: [_asset(1, original)]})

    assert counts == {"used": 1, "stale": 1}
    assert items[0].asset is not None
    assert items[1].asset is None


class _SlowServices:
    def __init__(self, delays):
        self.delays = delays

    async def synthesize(self, need: AssetNeed) -> GeneratedAsset:
        await asyncio.sleep(self.delays[need.item_index])
        if self.delays[need.item_index] < 0:
            raise RuntimeError("boom")
        return GeneratedAsset(
            content_id=need.content_id,
            item_index=need.item_index,
            payload="img",
            model="fake",
            cost=0.04,
        )


def _need(index: int) -> AssetNeed:
    return AssetNeed(content_id=f"c{index}", item_index=index, prompt="p")


@pytest.mark.asyncio
async def test_prefetch_deadline_abandons_then_books_orphaned_cost() -> None:
    costs = CostTracker()
    prefetcher = AssetPrefetcher(_SlowServices({0: 0.0, 1: 0.2}), ConcurrencyLimiter(2), costs)
    prefetcher.start([_need(0), _need(1)])

    ready = await prefetcher.collect(timeout=0.05)

    assert list(ready) == [0]
    assert prefetcher.generated == 1
    assert prefetcher.abandoned == 1

    await prefetcher.drain()

    assert prefetcher.orphaned_completed == 1
    summary = costs.summary()
    assert summary.total == pytest.approx(0.08)
    assert summary.orphaned == pytest.approx(0.04)


@pytest.mark.asyncio
async def test_prefetch_failure_is_counted_not_raised() -> None:
    costs = CostTracker()
    prefetcher = AssetPrefetcher(_SlowServices({0: -1}), ConcurrencyLimiter(1), costs)
    prefetcher.start([_need(0)])

    assert await prefetcher.collect(timeout=1.0) == {}
    assert prefetcher.failed == 1
    assert costs.calls() == 0
