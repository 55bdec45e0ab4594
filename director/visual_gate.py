"""
Visual gate and risk-based sampling.

The gate is a cheap structural fit estimate that runs without any oracle. It
catches overflow that plain character counts miss (long words wrapping in
narrow columns, too many cards for a grid) and reports a structured failure
code with a fixed remediation.
"""

from __future__ import annotations

import logging
import math
import textwrap
from typing import Callable, Dict, Optional

from core.contracts import (
    ContentPlan,
    GateAction,
    GateFailureCode,
    LayoutProfile,
    RiskLevel,
    VisualGateResult,
)

from .profiles import get_fit_limits, get_risk

logger = logging.getLogger(__name__)

TITLE_SLACK_CHARS = 20

GATE_REMEDIATION: Dict[GateFailureCode, GateAction] = {
    GateFailureCode.TITLE_OVERFLOW: GateAction.CHANGE_LAYOUT,
    GateFailureCode.BULLET_TOO_LONG: GateAction.SUMMARIZE,
    GateFailureCode.TOTAL_CHARS_OVERFLOW: GateAction.PRUNE,
    GateFailureCode.BODY_WRAP_EXCEEDED: GateAction.PRUNE,
    GateFailureCode.ELEMENT_DENSITY_HIGH: GateAction.CHANGE_LAYOUT,
    GateFailureCode.VISUAL_FIT_FAILED: GateAction.SUMMARIZE,
}

# Optional external fit sensor: returns a failure description, or None when the plan fits.
FitSensor = Callable[[ContentPlan, str], Optional[str]]


def should_validate_visually(item_index: int, total_items: int, layout_id: str, title: str, config) -> bool:
    """
    Decide whether an item goes through the visual gate.

    High-risk layouts are always checked, low-risk ones only with a long
    title. Medium-risk layouts check the first and last item and then every
    ``ceil(1 / rate)``-th item.
    """
    if not config.enable_visual_validation:
        return False

    risk = get_risk(layout_id)
    if risk == RiskLevel.HIGH:
        return True
    if risk == RiskLevel.LOW:
        return len(title or "") > config.low_risk_title_threshold

    if item_index == 0 or item_index == total_items - 1:
        return True
    rate = config.visual_sampling_rate
    if rate >= 1.0:
        return True
    if rate <= 0:
        return False
    return item_index % math.ceil(1 / rate) == 0


def estimate_lines(points, chars_per_line: int) -> int:
    """Wrapped line count of the body at ``chars_per_line`` columns."""
    width = max(1, chars_per_line)
    return sum(max(1, len(textwrap.wrap(p, width=width, break_long_words=True))) for p in points)


def _fail(code: GateFailureCode, reason: str) -> VisualGateResult:
    logger.info("visual_gate_failed code=%s reason=%s", code.value, reason)
    return VisualGateResult(fits=False, action=GATE_REMEDIATION[code], failure_code=code, reason=reason)


def run_visual_gate(
    plan: ContentPlan,
    layout_id: str,
    title: str,
    profile: LayoutProfile,
    sensor: Optional[FitSensor] = None,
) -> VisualGateResult:
    """Estimate whether ``plan`` physically fits ``layout_id``."""
    title_limit = profile.max_chars_per_point + TITLE_SLACK_CHARS
    if title and len(title) > title_limit:
        return _fail(GateFailureCode.TITLE_OVERFLOW, f"Title too long: {len(title)} chars (limit ~{title_limit})")

    points = plan.key_points
    if not points:
        return VisualGateResult(fits=True)

    for point in points:
        if len(point) > profile.max_chars_per_point:
            return _fail(
                GateFailureCode.BULLET_TOO_LONG,
                f"Bullet of {len(point)} chars exceeds {profile.max_chars_per_point}",
            )

    limits = get_fit_limits(layout_id)
    if len(points) > limits.max_bullets:
        return _fail(
            GateFailureCode.BODY_WRAP_EXCEEDED,
            f"{len(points)} bullets exceed {limits.max_bullets} rows for {layout_id}",
        )

    total = plan.total_chars()
    if total > limits.max_total_chars:
        return _fail(
            GateFailureCode.TOTAL_CHARS_OVERFLOW,
            f"{total} total chars exceed {limits.max_total_chars} for {layout_id}",
        )

    lines = estimate_lines(points, limits.chars_per_line)
    if lines > limits.max_lines:
        return _fail(
            GateFailureCode.BODY_WRAP_EXCEEDED,
            f"Body wraps to {lines} lines, limit {limits.max_lines} for {layout_id}",
        )

    elements = len(points) + len(plan.data_points)
    if elements > limits.max_elements:
        return _fail(
            GateFailureCode.ELEMENT_DENSITY_HIGH,
            f"{elements} elements exceed zone capacity {limits.max_elements} for {layout_id}",
        )

    if sensor is not None:
        problem = sensor(plan, layout_id)
        if problem:
            return _fail(GateFailureCode.VISUAL_FIT_FAILED, problem)

    return VisualGateResult(fits=True)
