"""Structural render proxy: component geometry plus a lightweight SVG for visual critique."""

from __future__ import annotations

import hashlib
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

from core import Component, ContentPlan, DeckItem

logger = logging.getLogger(__name__)

CANVAS_WIDTH = 1000
CANVAS_HEIGHT = 563

Zone = Tuple[float, float, float, float]

TITLE_ZONE: Zone = (5.0, 5.0, 90.0, 12.0)

# Percent-of-canvas zones per layout: body text, metric cards, media.
LAYOUT_ZONES: Dict[str, Dict[str, Zone]] = {
    "hero-centered": {"body": (15.0, 45.0, 70.0, 30.0), "metrics": (15.0, 78.0, 70.0, 15.0), "media": (0.0, 0.0, 100.0, 100.0)},
    "standard-vertical": {"body": (5.0, 22.0, 90.0, 52.0), "metrics": (5.0, 76.0, 90.0, 18.0), "media": (70.0, 22.0, 25.0, 30.0)},
    "split-left-text": {"body": (5.0, 22.0, 45.0, 52.0), "metrics": (5.0, 76.0, 45.0, 18.0), "media": (52.0, 22.0, 43.0, 72.0)},
    "split-right-text": {"body": (50.0, 22.0, 45.0, 52.0), "metrics": (50.0, 76.0, 45.0, 18.0), "media": (5.0, 22.0, 43.0, 72.0)},
    "bento-grid": {"body": (5.0, 22.0, 58.0, 72.0), "metrics": (65.0, 22.0, 30.0, 45.0), "media": (65.0, 69.0, 30.0, 25.0)},
    "dashboard-tiles": {"body": (5.0, 60.0, 90.0, 34.0), "metrics": (5.0, 22.0, 90.0, 36.0), "media": (70.0, 5.0, 25.0, 12.0)},
    "timeline-horizontal": {"body": (5.0, 40.0, 90.0, 35.0), "metrics": (5.0, 78.0, 90.0, 16.0), "media": (75.0, 20.0, 20.0, 18.0)},
    "asymmetric-grid": {"body": (5.0, 22.0, 60.0, 72.0), "metrics": (67.0, 22.0, 28.0, 40.0), "media": (67.0, 64.0, 28.0, 30.0)},
    "metrics-rail": {"body": (33.0, 22.0, 62.0, 72.0), "metrics": (5.0, 22.0, 25.0, 72.0), "media": (33.0, 5.0, 20.0, 12.0)},
}


def _component(kind: str, index: int, zone: Zone, **extra) -> Component:
    x, y, w, h = zone
    return Component(id=f"{kind}-{index}", kind=kind, x=x, y=y, width=w, height=h, **extra)


def layout_components(layout_id: str, title: str, plan: ContentPlan, has_asset: bool = False) -> List[Component]:
    """Initial component geometry for an item placed in ``layout_id``."""
    zones = LAYOUT_ZONES.get(layout_id, LAYOUT_ZONES["standard-vertical"])
    components = [_component("title", 0, TITLE_ZONE, text=title)]
    if plan.key_points:
        components.append(_component("text-bullets", len(components), zones["body"], items=list(plan.key_points)))
    if plan.data_points:
        labels = [f"{dp.label}: {dp.value}" for dp in plan.data_points]
        components.append(_component("metric-cards", len(components), zones["metrics"], items=labels))
    if has_asset:
        components.append(_component("image", len(components), zones["media"]))
    return components


def structural_fingerprint(components: List[Component]) -> str:
    """Hash of geometry, styling and text; identical renders share a fingerprint."""
    payload = [
        {
            "id": c.id,
            "kind": c.kind,
            "box": [round(c.x, 1), round(c.y, 1), round(c.width, 1), round(c.height, 1)],
            "color": c.color,
            "spacing": round(c.spacing, 2),
            "items": c.items,
            "text": c.text,
        }
        for c in components
    ]
    return hashlib.sha1(json.dumps(payload, sort_keys=True).encode("utf-8")).hexdigest()


@dataclass
class RenderProxy:
    """What the visual critic sees for one item."""

    item_order: int
    layout_id: str
    style: str
    components: List[Component] = field(default_factory=list)
    svg: str = ""
    fingerprint: str = ""

    def manifest(self) -> List[str]:
        return [c.id for c in self.components]


class BaseProxyRenderer(ABC):
    """Render collaborator contract: (item, style) -> proxy."""

    @abstractmethod
    def render(self, item: DeckItem, style: str = "professional") -> RenderProxy:
        raise NotImplementedError


class SvgProxyRenderer(BaseProxyRenderer):
    """Deterministic SVG proxy; each element carries ``data-component-id`` for repair targeting."""

    def __init__(self, line_height: float = 3.2):
        self.line_height = line_height

    def render(self, item: DeckItem, style: str = "professional") -> RenderProxy:
        components = item.components or layout_components(
            item.layout_id, item.title, item.content, has_asset=item.asset is not None
        )
        body = "\n".join(self._element(c) for c in components)
        svg = (
            f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {CANVAS_WIDTH} {CANVAS_HEIGHT}" '
            f'data-layout="{escape(item.layout_id)}" data-style="{escape(style)}">\n'
            f"  <!-- ComponentManifest: {','.join(c.id for c in components)} -->\n"
            f"{body}\n</svg>"
        )
        return RenderProxy(
            item_order=item.order,
            layout_id=item.layout_id,
            style=style,
            components=[c.model_copy(deep=True) for c in components],
            svg=svg,
            fingerprint=structural_fingerprint(components),
        )

    def _element(self, component: Component) -> str:
        x = component.x * CANVAS_WIDTH / 100
        y = component.y * CANVAS_HEIGHT / 100
        w = component.width * CANVAS_WIDTH / 100
        h = component.height * CANVAS_HEIGHT / 100
        fill = escape(component.color or "none")
        parts = [
            f'  <g data-component-id="{escape(component.id)}">',
            f'    <rect x="{x:.1f}" y="{y:.1f}" width="{w:.1f}" height="{h:.1f}" fill="{fill}" stroke="#999"/>',
        ]
        lines = [component.text] if component.text else list(component.items)
        step = self.line_height * component.spacing * CANVAS_HEIGHT / 100
        for idx, line in enumerate(lines):
            ty = y + step * (idx + 1)
            parts.append(f'    <text x="{x + 8:.1f}" y="{ty:.1f}">{escape(line)}</text>')
        parts.append("  </g>")
        return "\n".join(parts)


def render_item(item: DeckItem, renderer: Optional[BaseProxyRenderer] = None, style: str = "professional") -> RenderProxy:
    return (renderer or SvgProxyRenderer()).render(item, style)
