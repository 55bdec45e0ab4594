from __future__ import annotations

from core import CritiqueVerdict, ItemMeta, RepairActionKind
from director.normalize import (
    fallback_outline,
    normalize_critique,
    normalize_facts,
    normalize_layout,
    normalize_outline,
    normalize_plan,
)


def _meta() -> ItemMeta:
    return ItemMeta(order=2, title="Pricing", purpose="How vendors price")


def test_facts_accept_mixed_entries_and_skip_junk() -> None:
    facts = normalize_facts(
        {"facts": ["Prices fell 20%", {"text": "Bundles dominate", "confidence": 3}, {"claim": ""}, 5]}
    )

    assert [f.claim for f in facts] == ["Prices fell 20%", "Bundles dominate"]
    assert facts[1].confidence == 1.0
    assert facts[0].id.startswith("fact-")
    assert normalize_facts(None) == []


def test_plan_from_bullet_text() -> None:
    plan = normalize_plan("- first point\n* second point\n\n", _meta())

    assert plan.key_points == ["first point", "second point"]
    assert plan.title == "Pricing"


def test_empty_plan_gets_purpose_unless_layout_allows_empty() -> None:
    assert normalize_plan({"key_points": []}, _meta()).key_points == ["How vendors price"]
    assert normalize_plan({"key_points": []}, _meta(), allow_empty=True).key_points == []


def test_plan_data_points_drop_incomplete_entries() -> None:
    plan = normalize_plan(
        {"keyPoints": ["one"], "dataPoints": [{"label": "ARR", "value": "12M"}, {"name": "orphan"}, "x"]},
        _meta(),
    )
    assert [(d.label, d.value) for d in plan.data_points] == [("ARR", "12M")]


def test_layout_ids_are_case_folded_and_validated() -> None:
    assert normalize_layout({"layoutVariant": "Bento-Grid"}) == "bento-grid"
    assert normalize_layout("spiral-galaxy") == "standard-vertical"
    assert normalize_layout(None) == "standard-vertical"


def test_critique_is_clamped_and_repairs_filtered() -> None:
    critique = normalize_critique(
        {
            "score": "140",
            "verdict": "requires-repair",
            "issues": ["Text clipped"],
            "repairs": [
                {"action": "remove", "target": "text-bullets-1", "params": {"count": 1}},
                {"action": "explode", "target": "title-0"},
            ],
        },
        model="critic-x",
    )

    assert critique.score == 100
    assert critique.verdict == CritiqueVerdict.REQUIRES_REPAIR
    assert critique.issues[0].category == "general"
    assert [(r.target_id, r.action) for r in critique.repairs] == [("text-bullets-1", RepairActionKind.REMOVE_ITEMS)]
    assert critique.model == "critic-x"


def test_critique_defaults() -> None:
    assert normalize_critique("garbage").verdict == CritiqueVerdict.FLAG_FOR_REVIEW
    assert normalize_critique({"score": 90}).verdict == CritiqueVerdict.ACCEPT
    assert normalize_critique({"score": 40}).verdict == CritiqueVerdict.FLAG_FOR_REVIEW


def test_critique_issue_target_ids_are_coerced_to_text() -> None:
    critique = normalize_critique(
        {
            "score": 70,
            "issues": [
                {"category": "overlap", "target_id": 3},
                {"category": "contrast", "targetId": 0},
                {"category": "spacing", "target_id": "  "},
            ],
        }
    )

    assert [i.target_id for i in critique.issues] == ["3", "0", None]
    assert critique.score == 70


def test_non_finite_scores_do_not_pass_as_perfect() -> None:
    for raw in (float("nan"), "NaN", float("inf")):
        critique = normalize_critique({"score": raw})
        assert critique.score == 0.0
        assert critique.verdict == CritiqueVerdict.FLAG_FOR_REVIEW


def test_short_outline_is_padded_with_conclusion() -> None:
    outline = normalize_outline({"items": ["Intro", {"title": "Market"}]}, "Edge AI", 4)

    assert [i.order for i in outline.items] == [0, 1, 2, 3]
    assert outline.items[0].item_type == "title-slide"
    assert outline.items[-1].item_type == "conclusion"
    assert outline.items[2].title == "Edge AI: part 3"
    assert outline.title == "Edge AI"


def test_long_outline_is_truncated() -> None:
    outline = normalize_outline([{"title": f"Item {i}"} for i in range(6)], "Topic", 3)

    assert [i.title for i in outline.items] == ["Item 0", "Item 1", "Item 2"]
    assert outline.items[-1].item_type == "content-main"


def test_fallback_outline_sizes() -> None:
    assert [i.item_type for i in fallback_outline("Topic", 2).items] == ["title-slide", "content-main"]
    six = fallback_outline("Topic", 6)
    assert len(six.items) == 6
    assert six.items[-1].title == "Conclusion"
