from __future__ import annotations

from core import ContentPlan
from director.adjuster import prune_content, summarize_content, truncate_point
from director.profiles import get_profile


def _plan() -> ContentPlan:
    return ContentPlan(
        title="Cloud Revenue",
        key_points=[
            "Opening context for the section",
            "Filler point without much substance",
            "Cloud revenue grew 40% year over year",
            "Another filler point",
            "Closing remark on the trend",
            "Yet another filler",
        ],
    )


def test_prune_returns_min_of_limit_and_count() -> None:
    plan = _plan()
    assert len(prune_content(plan, 3).key_points) == 3
    assert len(prune_content(plan, 10).key_points) == 6
    assert prune_content(plan, 0).key_points == []


def test_prune_is_idempotent() -> None:
    once = prune_content(_plan(), 3)
    twice = prune_content(once, 3)
    assert twice.key_points == once.key_points


def test_prune_keeps_statistics_and_original_order() -> None:
    pruned = prune_content(_plan(), 3)
    original = _plan().key_points

    assert "Cloud revenue grew 40% year over year" in pruned.key_points
    positions = [original.index(p) for p in pruned.key_points]
    assert positions == sorted(positions)


def test_truncate_point_breaks_on_word_and_marks_ellipsis() -> None:
    point = "adoption " * 20
    short = truncate_point(point, 80)

    assert len(short) <= 80
    assert short.endswith("...")
    assert not short[:-3].endswith(" ")


def test_truncate_point_leaves_short_points_alone() -> None:
    assert truncate_point("fine", 80) == "fine"


def test_summarize_is_idempotent_on_conforming_content() -> None:
    profile = get_profile("standard-vertical")
    plan = ContentPlan(key_points=["x" * 120, "short point"])

    once = summarize_content(plan, profile)
    twice = summarize_content(once, profile)

    assert all(len(p) <= profile.max_chars_per_point for p in once.key_points)
    assert twice == once
    assert summarize_content(twice, profile) is twice
