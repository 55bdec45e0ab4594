"""
Settings Configuration
使用 Pydantic 进行配置验证和管理
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class DirectorSettings(BaseSettings):
    """Director 运行模式与质量循环配置"""
    mode: str = Field(default="balanced", description="运行模式: fast, balanced, premium")
    enable_visual_validation: Optional[bool] = Field(default=None, description="覆盖预设: 是否启用视觉校验")
    visual_sampling_rate: Optional[float] = Field(default=None, description="覆盖预设: 中风险采样率 0-1")
    asset_timeout_seconds: Optional[float] = Field(default=None, description="覆盖预设: 资源等待超时(秒)")
    max_concurrent_assets: Optional[int] = Field(default=None, description="覆盖预设: 最大并发资源生成数")
    max_enrichment_attempts: int = Field(default=2, description="单项最多补充研究次数")
    max_prune_attempts: int = Field(default=2, description="单项最多裁剪/摘要次数")
    max_total_attempts: int = Field(default=4, description="单项最多评估次数")
    max_reroutes: int = Field(default=1, description="视觉门失败后最多更换版式次数")
    low_risk_title_threshold: int = Field(default=40, description="低风险版式标题长度阈值")
    enable_repair_loop: bool = Field(default=True, description="是否对采样项运行视觉修复循环")
    enable_consensus: bool = Field(default=True, description="是否运行整体一致性评估")
    default_item_count: int = Field(default=8, description="默认条目数")

    @field_validator("mode")
    @classmethod
    def _known_mode(cls, v: str) -> str:
        value = (v or "balanced").strip().lower()
        if value not in {"fast", "balanced", "premium"}:
            raise ValueError(f"unknown mode: {v}")
        return value

    class Config:
        env_prefix = "DIRECTOR_"


class RepairLoopSettings(BaseSettings):
    """视觉修复循环配置"""
    target_score: float = Field(default=85.0, description="收敛目标分数")
    min_improvement_delta: float = Field(default=3.0, description="单轮最小提升分数")
    max_rounds: int = Field(default=3, description="最大修复轮数")
    stagnation_window: int = Field(default=3, description="连续出现同类修复即判定停滞的轮数")
    time_budget_seconds: float = Field(default=60.0, description="单项时间预算(秒)")
    cost_budget_usd: float = Field(default=0.05, description="单项成本预算(美元)")

    class Config:
        env_prefix = "REPAIR_"


class ConsensusSettings(BaseSettings):
    """整体一致性评估配置"""
    outlier_threshold: float = Field(default=15.0, description="离群偏差阈值")
    low_score_floor: float = Field(default=60.0, description="低分阈值")
    spatial_issue_ratio: float = Field(default=0.3, description="空间问题占比阈值")
    min_low_score_items: int = Field(default=2, description="触发版式简化建议的最少低分项数")
    per_call_latency_ms: float = Field(default=1000.0, description="单次评审预估延迟(毫秒)")
    target_latency_ms: float = Field(default=5000.0, description="目标总延迟(毫秒)")
    max_concurrency: int = Field(default=10, description="并行评审最大并发")
    sample_every: int = Field(default=3, description="每 N 项抽样一次")

    class Config:
        env_prefix = "CONSENSUS_"


class OracleSettings(BaseSettings):
    """生成式服务调用配置 (重试/回退/熔断)"""
    max_retries: int = Field(default=3, description="最大重试次数")
    backoff_min: float = Field(default=1.0, description="重试最小等待(秒)")
    backoff_max: float = Field(default=10.0, description="重试最大等待(秒)")
    request_timeout: float = Field(default=60.0, description="请求超时时间(秒)")
    breaker_threshold: int = Field(default=2, description="熔断失败阈值")
    breaker_cooldown_seconds: float = Field(default=60.0, description="熔断冷却时间(秒)")
    fallback_chain: List[str] = Field(
        default_factory=lambda: ["smart", "fast", "backup", "lite"],
        description="模型回退顺序",
    )

    class Config:
        env_prefix = "ORACLE_"


class LLMSettings(BaseSettings):
    """LLM 配置"""
    provider: str = Field(default="openai", description="LLM提供商: openai, anthropic, gemini, local")
    model_name: Optional[str] = Field(default=None, description="模型名称(不填则使用默认)")
    temperature: float = Field(default=0.4, description="生成温度")
    max_tokens: int = Field(default=4096, description="最大生成token数")

    # 模型分级, 对应 fallback_chain 中的别名
    smart_model: Optional[str] = Field(default=None, description="smart 级模型")
    fast_model: Optional[str] = Field(default=None, description="fast 级模型")
    backup_model: Optional[str] = Field(default=None, description="backup 级模型")
    lite_model: Optional[str] = Field(default=None, description="lite 级模型")

    # API Keys
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API Key")
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API Key")
    gemini_api_key: Optional[str] = Field(default=None, description="Google Gemini API Key")

    class Config:
        env_prefix = "LLM_"


class CriticSettings(BaseSettings):
    """视觉评审服务配置"""
    url: Optional[str] = Field(default=None, description="视觉评审服务地址")
    api_key: Optional[str] = Field(default=None, description="视觉评审服务 API Key")
    cost_per_call: float = Field(default=0.002, description="单次评审成本(美元)")

    class Config:
        env_prefix = "CRITIC_"


class ImageSettings(BaseSettings):
    """图像生成配置"""
    model: str = Field(default="gpt-image-1", description="图像模型")
    size: str = Field(default="1536x1024", description="图像尺寸")
    cost_per_image: float = Field(default=0.039, description="单张图像成本(美元)")
    premium_cost_per_image: float = Field(default=0.134, description="高质量图像成本(美元)")
    api_key: Optional[str] = Field(default=None, description="OpenAI API Key (图像)")

    class Config:
        env_prefix = "IMAGE_"


class Settings(BaseSettings):
    """主配置类 - 聚合所有子配置"""

    director: DirectorSettings = Field(default_factory=DirectorSettings)
    repair: RepairLoopSettings = Field(default_factory=RepairLoopSettings)
    consensus: ConsensusSettings = Field(default_factory=ConsensusSettings)
    oracle: OracleSettings = Field(default_factory=OracleSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    critic: CriticSettings = Field(default_factory=CriticSettings)
    image: ImageSettings = Field(default_factory=ImageSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """从指定的 .env 文件加载配置"""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            director=DirectorSettings(),
            repair=RepairLoopSettings(),
            consensus=ConsensusSettings(),
            oracle=OracleSettings(),
            llm=LLMSettings(),
            critic=CriticSettings(),
            image=ImageSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """获取全局配置单例"""
    return Settings.load_from_env_file()


def get_director_settings() -> DirectorSettings:
    return get_settings().director


def get_repair_settings() -> RepairLoopSettings:
    return get_settings().repair


def get_consensus_settings() -> ConsensusSettings:
    return get_settings().consensus


def get_oracle_settings() -> OracleSettings:
    return get_settings().oracle


def get_llm_settings() -> LLMSettings:
    return get_settings().llm
