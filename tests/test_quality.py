from __future__ import annotations

from core import ContentPlan, ItemMeta, QualityReason, SuggestedAction
from director.quality import evaluate


def _meta(title: str = "Edge AI Adoption", purpose: str = "Adoption drivers") -> ItemMeta:
    return ItemMeta(order=1, title=title, purpose=purpose)


def _points(count: int, length: int) -> list:
    return [("p%d " % i + "x" * length)[:length] for i in range(count)]


def test_hero_plan_with_five_points_fails_but_passes_standard_profile() -> None:
    plan = ContentPlan(title="Intro", key_points=_points(5, 30))

    hero = evaluate(plan, _meta(), "hero-centered", is_hero=True)
    standard = evaluate(plan, _meta(), "standard-vertical", is_hero=False)

    assert hero.passes is False
    assert hero.reason == QualityReason.TOO_MANY_POINTS
    assert hero.suggested_action == SuggestedAction.PRUNE
    assert standard.passes is True
    assert standard.suggested_action == SuggestedAction.PASS


def test_hero_overflow_reports_overflow_amount() -> None:
    plan = ContentPlan(key_points=_points(2, 70))
    verdict = evaluate(plan, _meta(), "standard-vertical", is_hero=True)

    assert verdict.reason == QualityReason.TOO_VERBOSE
    assert verdict.suggested_action == SuggestedAction.SUMMARIZE
    assert verdict.overflow_amount == 20


def test_sparse_hero_passes() -> None:
    assert evaluate(ContentPlan(key_points=[]), _meta(), "hero-centered", is_hero=True).passes


def test_standard_overflow_is_checked_before_verbosity() -> None:
    plan = ContentPlan(key_points=_points(5, 85))
    verdict = evaluate(plan, _meta(), "standard-vertical", is_hero=False)

    assert verdict.reason == QualityReason.OVERFLOW
    assert verdict.overflow_amount == 25


def test_single_long_bullet_is_too_verbose() -> None:
    plan = ContentPlan(key_points=["y" * 90, "z" * 30])
    verdict = evaluate(plan, _meta(), "standard-vertical", is_hero=False)

    assert verdict.reason == QualityReason.TOO_VERBOSE
    assert verdict.suggested_action == SuggestedAction.SUMMARIZE


def test_thin_content_suggests_title_query() -> None:
    plan = ContentPlan(key_points=["A single reasonably long point here"])
    verdict = evaluate(plan, _meta(), "standard-vertical", is_hero=False)

    assert verdict.reason == QualityReason.THIN_CONTENT
    assert verdict.suggested_action == SuggestedAction.ENRICH
    assert verdict.suggested_query == "specific details about Edge AI Adoption"


def test_generic_points_suggest_purpose_query() -> None:
    plan = ContentPlan(key_points=["short one", "short two"])
    verdict = evaluate(plan, _meta(), "standard-vertical", is_hero=False)

    assert verdict.reason == QualityReason.TOO_GENERIC
    assert verdict.suggested_query == "detailed examples of Adoption drivers"


def test_missing_specifics_when_total_too_small() -> None:
    plan = ContentPlan(key_points=_points(2, 25))
    verdict = evaluate(plan, _meta(), "standard-vertical", is_hero=False)

    assert verdict.reason == QualityReason.MISSING_SPECIFICS
    assert verdict.suggested_query == "key facts and statistics about Edge AI Adoption"


def test_unknown_layout_uses_standard_profile() -> None:
    plan = ContentPlan(key_points=_points(3, 40))
    assert evaluate(plan, _meta(), "no-such-layout", is_hero=False).passes
