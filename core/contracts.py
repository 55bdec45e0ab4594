"""Canonical data contracts shared by the deck director, oracles and renderer."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RiskLevel(str, Enum):
    """Visual overflow risk class of a layout."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class QualityReason(str, Enum):
    THIN_CONTENT = "thin_content"
    TOO_GENERIC = "too_generic"
    MISSING_SPECIFICS = "missing_specifics"
    OVERFLOW = "overflow"
    TOO_MANY_POINTS = "too_many_points"
    TOO_VERBOSE = "too_verbose"


class SuggestedAction(str, Enum):
    ENRICH = "enrich"
    PRUNE = "prune"
    SUMMARIZE = "summarize"
    PASS = "pass"


class GateFailureCode(str, Enum):
    """Closed set of structural fit failures reported by the visual gate."""

    TITLE_OVERFLOW = "TITLE_OVERFLOW"
    BULLET_TOO_LONG = "BULLET_TOO_LONG"
    TOTAL_CHARS_OVERFLOW = "TOTAL_CHARS_OVERFLOW"
    BODY_WRAP_EXCEEDED = "BODY_WRAP_EXCEEDED"
    ELEMENT_DENSITY_HIGH = "ELEMENT_DENSITY_HIGH"
    VISUAL_FIT_FAILED = "VISUAL_FIT_FAILED"


class GateAction(str, Enum):
    SUMMARIZE = "summarize"
    PRUNE = "prune"
    CHANGE_LAYOUT = "change_layout"


class CritiqueVerdict(str, Enum):
    ACCEPT = "accept"
    FLAG_FOR_REVIEW = "flag_for_review"
    REQUIRES_REPAIR = "requires_repair"


class RepairActionKind(str, Enum):
    REPOSITION = "reposition"
    RESIZE = "resize"
    RECOLOR = "recolor"
    RESPACE = "respace"
    REMOVE_ITEMS = "remove_items"


class AssetKind(str, Enum):
    IMAGE = "image"
    CHART = "chart"


class RecommendationKind(str, Enum):
    REDUCE_DENSITY = "reduce_density_globally"
    SIMPLIFY_LAYOUTS = "simplify_layouts"
    REVALIDATE_ITEMS = "revalidate_items"


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class Fact(BaseModel):
    """Research finding used as planner context."""

    id: str = ""
    claim: str
    value: Optional[str] = None
    source: str = ""
    confidence: float = 0.5

    @field_validator("claim", mode="before")
    @classmethod
    def _non_empty_claim(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("claim is required")
        return text

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.5
        return max(0.0, min(1.0, number))


class DataPoint(BaseModel):
    label: str
    value: Union[float, str]


class ContentPlan(BaseModel):
    """Textual content of one item before layout."""

    title: str = ""
    key_points: List[str] = Field(default_factory=list)
    data_points: List[DataPoint] = Field(default_factory=list)
    narrative: Optional[str] = None

    @field_validator("key_points", mode="before")
    @classmethod
    def _clean_points(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [str(p).strip() for p in value if str(p or "").strip()]

    def total_chars(self) -> int:
        return sum(len(p) for p in self.key_points)


class ItemMeta(BaseModel):
    """Outline entry for a single item."""

    order: int
    item_type: str = "content-main"
    title: str = ""
    purpose: str = ""


class DeckOutline(BaseModel):
    title: str
    narrative_goal: str = ""
    items: List[ItemMeta] = Field(default_factory=list)


class LayoutProfile(BaseModel):
    """Static content bounds for one layout."""

    model_config = ConfigDict(frozen=True)

    min_bullets: int
    max_bullets: int
    min_total_chars: int
    max_total_chars: int
    min_chars_per_point: int
    max_chars_per_point: int
    allow_empty: bool = False


# ---------------------------------------------------------------------------
# Quality and visual gate
# ---------------------------------------------------------------------------


class QualityVerdict(BaseModel):
    passes: bool
    reason: Optional[QualityReason] = None
    suggested_action: Optional[SuggestedAction] = None
    details: str = ""
    overflow_amount: Optional[int] = None
    suggested_query: Optional[str] = None


class VisualGateResult(BaseModel):
    fits: bool
    action: Optional[GateAction] = None
    failure_code: Optional[GateFailureCode] = None
    reason: str = ""


class VisualGateFailure(BaseModel):
    """Structured gate failure recorded in run metrics."""

    item_index: int
    layout_id: str
    code: GateFailureCode
    action: GateAction
    reason: str = ""


# ---------------------------------------------------------------------------
# Critique and repair
# ---------------------------------------------------------------------------


class RepairAction(BaseModel):
    target_id: str
    action: RepairActionKind
    params: Dict[str, Any] = Field(default_factory=dict)
    reason: str = ""


class CritiqueIssue(BaseModel):
    category: str
    description: str = ""
    severity: str = "minor"
    target_id: Optional[str] = None


class VisualCritique(BaseModel):
    score: float = 0.0
    verdict: CritiqueVerdict = CritiqueVerdict.FLAG_FOR_REVIEW
    issues: List[CritiqueIssue] = Field(default_factory=list)
    repairs: List[RepairAction] = Field(default_factory=list)
    model: Optional[str] = None

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(number):
            return 0.0
        return max(0.0, min(100.0, number))


class RepairSummary(BaseModel):
    """Outcome of the visual repair loop attached to a finished item."""

    rounds_run: int = 0
    final_score: Optional[float] = None
    repairs_applied: int = 0
    converged: bool = False
    abort_reason: Optional[str] = None
    recommended_action: Optional[str] = None
    cost: float = 0.0


class Component(BaseModel):
    """Positioned visual component; geometry is in percent of the canvas."""

    id: str
    kind: str
    x: float = 0.0
    y: float = 0.0
    width: float = 100.0
    height: float = 10.0
    color: Optional[str] = None
    spacing: float = 1.0
    items: List[str] = Field(default_factory=list)
    text: str = ""


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


class AssetNeed(BaseModel):
    content_id: str
    item_index: int
    kind: AssetKind = AssetKind.IMAGE
    prompt: str
    spec: Dict[str, Any] = Field(default_factory=dict)


class GeneratedAsset(BaseModel):
    content_id: str
    item_index: int
    kind: AssetKind = AssetKind.IMAGE
    prompt: str = ""
    payload: Optional[str] = None
    model: Optional[str] = None
    cost: float = 0.0


# ---------------------------------------------------------------------------
# Items and run output
# ---------------------------------------------------------------------------


class DeckItem(BaseModel):
    order: int
    item_type: str = "content-main"
    layout_id: str
    title: str
    purpose: str = ""
    content: ContentPlan
    components: List[Component] = Field(default_factory=list)
    asset: Optional[GeneratedAsset] = None
    fingerprint: str = ""
    risk_level: RiskLevel = RiskLevel.MEDIUM
    warnings: List[str] = Field(default_factory=list)
    path: List[str] = Field(default_factory=list)
    quality: Optional[QualityVerdict] = None
    repair: Optional[RepairSummary] = None
    placeholder: bool = False


class ItemCritique(BaseModel):
    item_index: int
    critique: Optional[VisualCritique] = None
    error: Optional[str] = None


class Outlier(BaseModel):
    item_index: int
    score: float
    deviation: float
    reason: str


class Recommendation(BaseModel):
    kind: RecommendationKind
    message: str
    item_indices: List[int] = Field(default_factory=list)


class ConsensusReport(BaseModel):
    average_score: float = 0.0
    std_dev: float = 0.0
    consistency_score: float = 0.0
    outliers: List[Outlier] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    sampled_indices: List[int] = Field(default_factory=list)
    critiques: List[ItemCritique] = Field(default_factory=list)
    valid_count: int = 0
    execution_mode: str = "sequential"


class ProduceOptions(BaseModel):
    """Caller options for one run; unset fields fall back to the mode preset."""

    mode: Optional[str] = None
    item_count: Optional[int] = None
    style: str = "professional"
    generate_assets: bool = True
    enable_visual_validation: Optional[bool] = None
    visual_sampling_rate: Optional[float] = None
    asset_timeout_seconds: Optional[float] = None
    max_concurrent_assets: Optional[int] = None
    enable_repair_loop: Optional[bool] = None
    enable_consensus: Optional[bool] = None

    @field_validator("item_count")
    @classmethod
    def _bounded_count(cls, value: Optional[int]) -> Optional[int]:
        if value is None:
            return None
        return max(1, min(30, int(value)))


class PhaseTimings(BaseModel):
    """Wall-clock milliseconds per phase."""

    research: float = 0.0
    architect: float = 0.0
    asset_extract: float = 0.0
    per_item_loop: float = 0.0
    repair: float = 0.0
    asset_wait: float = 0.0
    assemble: float = 0.0
    consensus: float = 0.0
    total: float = 0.0


class CostBreakdown(BaseModel):
    total: float = 0.0
    by_oracle: Dict[str, float] = Field(default_factory=dict)
    calls: Dict[str, int] = Field(default_factory=dict)
    orphaned: float = 0.0


class RunMetrics(BaseModel):
    run_id: str = ""
    mode: str = "balanced"
    item_count: int = 0
    research_degraded: bool = False
    outline_fallback: bool = False
    enrichments: int = 0
    items_enriched: int = 0
    prunes: int = 0
    items_pruned: int = 0
    summaries: int = 0
    visual_validations: int = 0
    visual_failures: int = 0
    gate_failures: List[VisualGateFailure] = Field(default_factory=list)
    reroutes: int = 0
    forced_accepts: int = 0
    placeholders: int = 0
    assets_requested: int = 0
    assets_generated: int = 0
    assets_used: int = 0
    assets_stale: int = 0
    assets_orphaned: int = 0
    repair_loops: int = 0
    repair_converged: int = 0
    repair_aborts: Dict[str, int] = Field(default_factory=dict)
    oracle_fallbacks: int = 0
    item_paths: Dict[int, List[str]] = Field(default_factory=dict)
    timings: PhaseTimings = Field(default_factory=PhaseTimings)
    costs: CostBreakdown = Field(default_factory=CostBreakdown)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None


class DeckResult(BaseModel):
    run_id: str
    topic: str
    title: str
    narrative_goal: str = ""
    items: List[DeckItem] = Field(default_factory=list)
    metrics: RunMetrics = Field(default_factory=RunMetrics)
    consensus: Optional[ConsensusReport] = None
