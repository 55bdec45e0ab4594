"""
Content quality evaluation.

Pure, deterministic scoring of a content plan against its layout profile.
Standard items are checked for FAT content first (too many points, overflow,
verbose bullets) and THIN content second (too few points, generic bullets,
missing specifics); the first failing check wins. Hero items are judged by
inverted rules: sparse is fine, only excess fails.
"""

from __future__ import annotations

from typing import Optional

from core.contracts import (
    ContentPlan,
    ItemMeta,
    LayoutProfile,
    QualityReason,
    QualityVerdict,
    SuggestedAction,
)

from .profiles import HERO_LAYOUT, LAYOUT_PROFILES, get_profile


def _passing() -> QualityVerdict:
    return QualityVerdict(passes=True, suggested_action=SuggestedAction.PASS)


def _evaluate_hero(plan: ContentPlan, profile: LayoutProfile) -> QualityVerdict:
    count = len(plan.key_points)
    total = plan.total_chars()
    if count > profile.max_bullets:
        return QualityVerdict(
            passes=False,
            reason=QualityReason.TOO_MANY_POINTS,
            suggested_action=SuggestedAction.PRUNE,
            details=f"Hero item has {count} points, max {profile.max_bullets} for impact",
        )
    if total > profile.max_total_chars:
        return QualityVerdict(
            passes=False,
            reason=QualityReason.TOO_VERBOSE,
            suggested_action=SuggestedAction.SUMMARIZE,
            details=f"Hero item has {total} chars, max {profile.max_total_chars}",
            overflow_amount=total - profile.max_total_chars,
        )
    return _passing()


def evaluate(
    plan: ContentPlan,
    item_meta: Optional[ItemMeta],
    layout_id: str,
    is_hero: bool,
    profile: Optional[LayoutProfile] = None,
) -> QualityVerdict:
    """
    Judge ``plan`` against the bounds of ``layout_id``.

    Args:
        plan: Current content of the item.
        item_meta: Outline entry, used to phrase the research query on THIN verdicts.
        layout_id: Active layout; unknown ids fall back to the standard profile.
        is_hero: Opening/closing/title item; uses the hero bounds.
        profile: Explicit bounds, overriding the table lookup.

    Returns:
        A verdict naming the first failing check, or a passing verdict.
    """
    if is_hero or layout_id == HERO_LAYOUT:
        return _evaluate_hero(plan, profile or LAYOUT_PROFILES[HERO_LAYOUT])

    profile = profile or get_profile(layout_id)
    points = plan.key_points
    count = len(points)
    total = plan.total_chars()
    longest = max((len(p) for p in points), default=0)
    avg = total / count if count else 0.0
    title = (item_meta.title if item_meta else "") or plan.title or "this topic"
    purpose = (item_meta.purpose if item_meta else "") or title

    if count > profile.max_bullets:
        return QualityVerdict(
            passes=False,
            reason=QualityReason.TOO_MANY_POINTS,
            suggested_action=SuggestedAction.PRUNE,
            details=f"{count} points exceeds {profile.max_bullets} limit for {layout_id}",
        )
    if total > profile.max_total_chars:
        return QualityVerdict(
            passes=False,
            reason=QualityReason.OVERFLOW,
            suggested_action=SuggestedAction.SUMMARIZE,
            details=f"{total} chars exceeds {profile.max_total_chars} limit for {layout_id}",
            overflow_amount=total - profile.max_total_chars,
        )
    if longest > profile.max_chars_per_point:
        return QualityVerdict(
            passes=False,
            reason=QualityReason.TOO_VERBOSE,
            suggested_action=SuggestedAction.SUMMARIZE,
            details=f"Longest point is {longest} chars, max {profile.max_chars_per_point} for {layout_id}",
        )
    if count < profile.min_bullets and not profile.allow_empty:
        return QualityVerdict(
            passes=False,
            reason=QualityReason.THIN_CONTENT,
            suggested_action=SuggestedAction.ENRICH,
            details=f"Only {count} points, need {profile.min_bullets} for {layout_id}",
            suggested_query=f"specific details about {title}",
        )
    if count > 0 and avg < profile.min_chars_per_point:
        return QualityVerdict(
            passes=False,
            reason=QualityReason.TOO_GENERIC,
            suggested_action=SuggestedAction.ENRICH,
            details=f"Average {round(avg)} chars/point, need {profile.min_chars_per_point}",
            suggested_query=f"detailed examples of {purpose}",
        )
    if total < profile.min_total_chars and not profile.allow_empty:
        return QualityVerdict(
            passes=False,
            reason=QualityReason.MISSING_SPECIFICS,
            suggested_action=SuggestedAction.ENRICH,
            details=f"Only {total} total chars, need {profile.min_total_chars}",
            suggested_query=f"key facts and statistics about {title}",
        )
    return _passing()
