"""
Mode Presets
运行模式预设 (fast / balanced / premium)
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from utils.exceptions import ConfigurationError

from .settings import DirectorSettings


MODE_PRESETS: Dict[str, Dict[str, Any]] = {
    "fast": {
        "enable_visual_validation": False,
        "visual_sampling_rate": 0.0,
        "asset_timeout_seconds": 5.0,
        "max_concurrent_assets": 5,
    },
    "balanced": {
        "enable_visual_validation": True,
        "visual_sampling_rate": 0.3,
        "asset_timeout_seconds": 15.0,
        "max_concurrent_assets": 3,
    },
    "premium": {
        "enable_visual_validation": True,
        "visual_sampling_rate": 1.0,
        "asset_timeout_seconds": 30.0,
        "max_concurrent_assets": 2,
    },
}


class DirectorConfig(BaseModel):
    """Resolved per-run knobs after applying a mode preset and overrides."""

    mode: str = "balanced"
    enable_visual_validation: bool = True
    visual_sampling_rate: float = 0.3
    asset_timeout_seconds: float = 15.0
    max_concurrent_assets: int = 3
    max_enrichment_attempts: int = 2
    max_prune_attempts: int = 2
    max_total_attempts: int = 4
    max_reroutes: int = 1
    low_risk_title_threshold: int = 40
    enable_repair_loop: bool = True
    enable_consensus: bool = True

    @field_validator("visual_sampling_rate")
    @classmethod
    def _clamp_rate(cls, v: float) -> float:
        return max(0.0, min(1.0, float(v)))

    @field_validator("max_concurrent_assets")
    @classmethod
    def _positive_concurrency(cls, v: int) -> int:
        return max(1, int(v))


def resolve_director_config(
    mode: Optional[str] = None,
    settings: Optional[DirectorSettings] = None,
    **overrides: Any,
) -> DirectorConfig:
    """
    Merge preset < settings overrides < explicit overrides.

    ``None`` values never override; this lets callers forward optional fields
    straight from request options.
    """
    settings = settings or DirectorSettings()
    chosen = (mode or settings.mode or "balanced").strip().lower()
    if chosen not in MODE_PRESETS:
        raise ConfigurationError(f"Unknown director mode: {chosen}", {"known": sorted(MODE_PRESETS)})

    values: Dict[str, Any] = {"mode": chosen}
    values.update(MODE_PRESETS[chosen])
    values.update(
        {
            "max_enrichment_attempts": settings.max_enrichment_attempts,
            "max_prune_attempts": settings.max_prune_attempts,
            "max_total_attempts": settings.max_total_attempts,
            "max_reroutes": settings.max_reroutes,
            "low_risk_title_threshold": settings.low_risk_title_threshold,
            "enable_repair_loop": settings.enable_repair_loop,
            "enable_consensus": settings.enable_consensus,
        }
    )
    for key in ("enable_visual_validation", "visual_sampling_rate", "asset_timeout_seconds", "max_concurrent_assets"):
        value = getattr(settings, key)
        if value is not None:
            values[key] = value
    for key, value in overrides.items():
        if value is None:
            continue
        if key not in DirectorConfig.model_fields:
            raise ConfigurationError(f"Unknown director option: {key}")
        values[key] = value
    return DirectorConfig(**values)
