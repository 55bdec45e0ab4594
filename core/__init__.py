"""Core contracts and shared types for the deck director."""

from .contracts import (
    AssetKind,
    AssetNeed,
    Component,
    ConsensusReport,
    ContentPlan,
    CostBreakdown,
    CritiqueIssue,
    CritiqueVerdict,
    DataPoint,
    DeckItem,
    DeckOutline,
    DeckResult,
    Fact,
    GateAction,
    GateFailureCode,
    GeneratedAsset,
    ItemCritique,
    ItemMeta,
    LayoutProfile,
    Outlier,
    PhaseTimings,
    ProduceOptions,
    QualityReason,
    QualityVerdict,
    Recommendation,
    RecommendationKind,
    RepairAction,
    RepairActionKind,
    RepairSummary,
    RiskLevel,
    RunMetrics,
    SuggestedAction,
    VisualCritique,
    VisualGateFailure,
    VisualGateResult,
)

__all__ = [
    "AssetKind",
    "AssetNeed",
    "Component",
    "ConsensusReport",
    "ContentPlan",
    "CostBreakdown",
    "CritiqueIssue",
    "CritiqueVerdict",
    "DataPoint",
    "DeckItem",
    "DeckOutline",
    "DeckResult",
    "Fact",
    "GateAction",
    "GateFailureCode",
    "GeneratedAsset",
    "ItemCritique",
    "ItemMeta",
    "LayoutProfile",
    "Outlier",
    "PhaseTimings",
    "ProduceOptions",
    "QualityReason",
    "QualityVerdict",
    "Recommendation",
    "RecommendationKind",
    "RepairAction",
    "RepairActionKind",
    "RepairSummary",
    "RiskLevel",
    "RunMetrics",
    "SuggestedAction",
    "VisualCritique",
    "VisualGateFailure",
    "VisualGateResult",
]
