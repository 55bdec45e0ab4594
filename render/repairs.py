"""Apply critic repair actions to an item's component geometry."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from core import DeckItem, RepairAction, RepairActionKind

logger = logging.getLogger(__name__)

_MIN_SIZE = 5.0
_MAX_SPACING = 3.0


def _number(params: Dict[str, Any], *keys: str):
    for key in keys:
        value = params.get(key)
        if value is None:
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return None


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def apply_repairs(item: DeckItem, repairs: List[RepairAction]) -> Tuple[DeckItem, int]:
    """
    Return a repaired copy of ``item`` and the number of repairs that took effect.

    Repairs addressing unknown component ids are skipped. Removing bullets
    also removes them from the item content so text and geometry stay aligned.
    """
    updated = item.model_copy(deep=True)
    by_id = {c.id: c for c in updated.components}
    applied = 0

    for repair in repairs:
        component = by_id.get(repair.target_id)
        if component is None:
            logger.warning("repair_target_missing item=%s target=%s", item.order, repair.target_id)
            continue
        params = repair.params or {}
        action = repair.action

        if action == RepairActionKind.REPOSITION:
            x = _number(params, "x")
            y = _number(params, "y")
            if x is None and y is None:
                continue
            if x is not None:
                component.x = _clamp(x, 0.0, 100.0 - component.width)
            if y is not None:
                component.y = _clamp(y, 0.0, 100.0 - component.height)
        elif action == RepairActionKind.RESIZE:
            scale = _number(params, "scale")
            width = _number(params, "width", "w")
            height = _number(params, "height", "h")
            if scale is not None:
                width = component.width * scale
                height = component.height * scale
            if width is None and height is None:
                continue
            if width is not None:
                component.width = _clamp(width, _MIN_SIZE, 100.0 - component.x)
            if height is not None:
                component.height = _clamp(height, _MIN_SIZE, 100.0 - component.y)
        elif action == RepairActionKind.RECOLOR:
            color = params.get("color")
            if not color:
                continue
            component.color = str(color)
        elif action == RepairActionKind.RESPACE:
            spacing = _number(params, "spacing", "line_spacing", "padding")
            if spacing is None:
                continue
            component.spacing = _clamp(spacing, 0.5, _MAX_SPACING)
        elif action == RepairActionKind.REMOVE_ITEMS:
            count = int(_number(params, "count", "remove_count", "removeCount") or 1)
            if len(component.items) <= 1 or count < 1:
                continue
            keep = max(1, len(component.items) - count)
            component.items = component.items[:keep]
            if component.kind == "text-bullets":
                updated.content = updated.content.model_copy(update={"key_points": list(component.items)})
            elif component.kind == "metric-cards":
                updated.content = updated.content.model_copy(
                    update={"data_points": updated.content.data_points[:keep]}
                )
        applied += 1
        logger.debug("repair_applied item=%s target=%s action=%s", item.order, repair.target_id, action.value)

    return updated, applied
