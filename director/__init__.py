"""
Deck Director
逐项质量循环, 视觉修复, 资源预取与整体一致性评估
"""
from .adjuster import prune_content, summarize_content
from .assets import AssetPrefetcher, bind_assets, content_fingerprint, extract_asset_needs, fingerprints_match
from .consensus import ConsensusEngine, choose_execution_mode, compute_consensus
from .costs import CostTracker
from .enrichment import targeted_research
from .limiter import ConcurrencyLimiter
from .metrics import MetricsRecorder
from .orchestrator import Director, extract_item_count, produce, produce_sync
from .quality import evaluate
from .repair_loop import AbortReason, VisualRepairLoop
from .services import OracleServices
from .state_machine import ItemLoop, ItemPhase, transition
from .visual_gate import run_visual_gate, should_validate_visually

__all__ = [
    "AbortReason",
    "AssetPrefetcher",
    "ConcurrencyLimiter",
    "ConsensusEngine",
    "CostTracker",
    "Director",
    "ItemLoop",
    "ItemPhase",
    "MetricsRecorder",
    "OracleServices",
    "VisualRepairLoop",
    "bind_assets",
    "choose_execution_mode",
    "compute_consensus",
    "content_fingerprint",
    "evaluate",
    "extract_asset_needs",
    "extract_item_count",
    "fingerprints_match",
    "produce",
    "produce_sync",
    "prune_content",
    "run_visual_gate",
    "should_validate_visually",
    "summarize_content",
    "targeted_research",
    "transition",
]
