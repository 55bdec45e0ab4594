"""
Configuration Management Module
统一配置管理
"""
from .settings import (
    Settings,
    DirectorSettings,
    RepairLoopSettings,
    ConsensusSettings,
    OracleSettings,
    LLMSettings,
    CriticSettings,
    ImageSettings,
    get_settings,
    get_director_settings,
    get_repair_settings,
    get_consensus_settings,
    get_oracle_settings,
    get_llm_settings,
)
from .presets import MODE_PRESETS, DirectorConfig, resolve_director_config

__all__ = [
    "Settings",
    "DirectorSettings",
    "RepairLoopSettings",
    "ConsensusSettings",
    "OracleSettings",
    "LLMSettings",
    "CriticSettings",
    "ImageSettings",
    "get_settings",
    "get_director_settings",
    "get_repair_settings",
    "get_consensus_settings",
    "get_oracle_settings",
    "get_llm_settings",
    "MODE_PRESETS",
    "DirectorConfig",
    "resolve_director_config",
]
