"""Static per-layout tables: quality bounds, risk classes and structural fit limits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from core.contracts import LayoutProfile, RiskLevel


DEFAULT_LAYOUT = "standard-vertical"
HERO_LAYOUT = "hero-centered"
HERO_ITEM_TYPES = {"title-slide", "conclusion", "closing"}

LAYOUT_PROFILES: Dict[str, LayoutProfile] = {
    "hero-centered": LayoutProfile(
        min_bullets=0, max_bullets=2, min_total_chars=0, max_total_chars=120,
        min_chars_per_point=10, max_chars_per_point=60, allow_empty=True,
    ),
    "split-left-text": LayoutProfile(
        min_bullets=2, max_bullets=4, min_total_chars=80, max_total_chars=280,
        min_chars_per_point=20, max_chars_per_point=70,
    ),
    "split-right-text": LayoutProfile(
        min_bullets=2, max_bullets=4, min_total_chars=80, max_total_chars=280,
        min_chars_per_point=20, max_chars_per_point=70,
    ),
    "bento-grid": LayoutProfile(
        min_bullets=2, max_bullets=3, min_total_chars=60, max_total_chars=200,
        min_chars_per_point=15, max_chars_per_point=50,
    ),
    "dashboard-tiles": LayoutProfile(
        min_bullets=2, max_bullets=3, min_total_chars=60, max_total_chars=180,
        min_chars_per_point=15, max_chars_per_point=50,
    ),
    "timeline-horizontal": LayoutProfile(
        min_bullets=2, max_bullets=4, min_total_chars=80, max_total_chars=250,
        min_chars_per_point=15, max_chars_per_point=60,
    ),
    "asymmetric-grid": LayoutProfile(
        min_bullets=2, max_bullets=4, min_total_chars=80, max_total_chars=280,
        min_chars_per_point=15, max_chars_per_point=60,
    ),
    "standard-vertical": LayoutProfile(
        min_bullets=2, max_bullets=5, min_total_chars=100, max_total_chars=400,
        min_chars_per_point=20, max_chars_per_point=80,
    ),
    "metrics-rail": LayoutProfile(
        min_bullets=1, max_bullets=3, min_total_chars=40, max_total_chars=200,
        min_chars_per_point=15, max_chars_per_point=60,
    ),
}

LAYOUT_RISK: Dict[str, RiskLevel] = {
    "bento-grid": RiskLevel.HIGH,
    "dashboard-tiles": RiskLevel.HIGH,
    "metrics-rail": RiskLevel.HIGH,
    "asymmetric-grid": RiskLevel.HIGH,
    "split-left-text": RiskLevel.MEDIUM,
    "split-right-text": RiskLevel.MEDIUM,
    "standard-vertical": RiskLevel.MEDIUM,
    "timeline-horizontal": RiskLevel.MEDIUM,
    "hero-centered": RiskLevel.LOW,
}


@dataclass(frozen=True)
class FitLimits:
    """Structural capacity of a layout used by the cheap visual estimate."""

    max_bullets: int
    max_total_chars: int
    chars_per_line: int
    max_lines: int
    max_elements: int


QUICK_FIT_LIMITS: Dict[str, FitLimits] = {
    "hero-centered": FitLimits(2, 150, 40, 4, 3),
    "bento-grid": FitLimits(3, 200, 28, 9, 6),
    "dashboard-tiles": FitLimits(3, 180, 26, 9, 6),
    "split-left-text": FitLimits(4, 280, 38, 10, 6),
    "split-right-text": FitLimits(4, 280, 38, 10, 6),
    "standard-vertical": FitLimits(5, 400, 72, 10, 8),
    "timeline-horizontal": FitLimits(4, 250, 24, 12, 6),
    "asymmetric-grid": FitLimits(4, 280, 34, 10, 6),
    "metrics-rail": FitLimits(3, 200, 30, 8, 7),
}

def known_layouts() -> list:
    return list(LAYOUT_PROFILES)


def get_profile(layout_id: Optional[str]) -> LayoutProfile:
    """Profile for ``layout_id``; unknown layouts use the standard profile."""
    return LAYOUT_PROFILES.get(layout_id or "", LAYOUT_PROFILES[DEFAULT_LAYOUT])


def get_risk(layout_id: Optional[str]) -> RiskLevel:
    return LAYOUT_RISK.get(layout_id or "", RiskLevel.MEDIUM)


def get_fit_limits(layout_id: Optional[str]) -> FitLimits:
    return QUICK_FIT_LIMITS.get(layout_id or "", QUICK_FIT_LIMITS[DEFAULT_LAYOUT])


def is_hero_item(index: int, total_items: int, item_type: str = "") -> bool:
    """Opening, closing and title items are judged by hero bounds."""
    if index == 0 or (total_items > 0 and index == total_items - 1):
        return True
    return (item_type or "").strip().lower() in HERO_ITEM_TYPES
