"""Oracle boundary: contracts, resilient gateway and implementations."""

from .base import (
    AssetOracle,
    BaseOracle,
    CritiqueOracle,
    LayoutRouter,
    OracleReply,
    PlanningOracle,
    ResearchOracle,
)
from .breaker import CircuitBreakerBoard
from .gateway import OracleGateway
from .json_repair import parse_json_reply
from .local import (
    HeuristicLayoutRouter,
    LocalCritiqueOracle,
    LocalPlanningOracle,
    LocalResearchOracle,
    PlaceholderAssetOracle,
)
from .suite import OracleSuite, build_local_suite, build_oracle_suite

__all__ = [
    "AssetOracle",
    "BaseOracle",
    "CircuitBreakerBoard",
    "CritiqueOracle",
    "HeuristicLayoutRouter",
    "LayoutRouter",
    "LocalCritiqueOracle",
    "LocalPlanningOracle",
    "LocalResearchOracle",
    "OracleGateway",
    "OracleReply",
    "OracleSuite",
    "PlaceholderAssetOracle",
    "PlanningOracle",
    "ResearchOracle",
    "build_local_suite",
    "build_oracle_suite",
    "parse_json_reply",
]
