"""Structural render proxy and repair application."""

from .proxy import (
    BaseProxyRenderer,
    RenderProxy,
    SvgProxyRenderer,
    layout_components,
    render_item,
    structural_fingerprint,
)
from .repairs import apply_repairs

__all__ = [
    "BaseProxyRenderer",
    "RenderProxy",
    "SvgProxyRenderer",
    "apply_repairs",
    "layout_components",
    "render_item",
    "structural_fingerprint",
]
