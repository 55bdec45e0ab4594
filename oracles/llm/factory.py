"""
LLM Factory
工厂函数 - 根据配置自动创建 LLM 实例
"""
from typing import Dict, Optional
import logging

from utils.exceptions import ConfigurationError

from .base import BaseLLM
from .openai_llm import OpenAILLM
from .anthropic_llm import AnthropicLLM
from .gemini_llm import GeminiLLM


logger = logging.getLogger(__name__)


DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-latest",
    "gemini": "gemini-2.5-flash",
}

# 模型分级 -> 具体模型, 对应 OracleSettings.fallback_chain 的别名
DEFAULT_TIERS: Dict[str, Dict[str, str]] = {
    "openai": {"smart": "gpt-4o", "fast": "gpt-4o-mini", "backup": "gpt-4.1-mini", "lite": "gpt-4o-mini"},
    "anthropic": {
        "smart": "claude-3-5-sonnet-latest",
        "fast": "claude-3-5-haiku-latest",
        "backup": "claude-3-7-sonnet-latest",
        "lite": "claude-3-5-haiku-latest",
    },
    "gemini": {
        "smart": "gemini-2.5-pro",
        "fast": "gemini-2.5-flash",
        "backup": "gemini-2.0-flash",
        "lite": "gemini-2.0-flash-lite",
    },
}


def resolve_model_tiers(provider: Optional[str] = None) -> Dict[str, str]:
    """别名 -> 模型名, 优先使用 LLM_*_MODEL 环境变量"""
    from config import get_llm_settings

    settings = get_llm_settings()
    provider = provider or settings.provider
    tiers = dict(DEFAULT_TIERS.get(provider, {}))
    for alias in ("smart", "fast", "backup", "lite"):
        override = getattr(settings, f"{alias}_model", None)
        if override:
            tiers[alias] = override
    return tiers


def get_llm(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    **kwargs,
) -> BaseLLM:
    """
    获取 LLM 实例

    自动从 config/.env 读取配置, 也可手动指定

    Args:
        provider: LLM 供应商 (openai, anthropic, gemini)
        model: 模型名称 (不传则使用默认)
        **kwargs: 额外参数 (temperature, max_tokens, api_key 等)

    Example:
        llm = get_llm()
        llm = get_llm(provider="anthropic", temperature=0.2)
    """
    from config import get_llm_settings

    settings = get_llm_settings()
    provider = provider or settings.provider
    model = model or settings.model_name or DEFAULT_MODELS.get(provider)

    api_keys = {
        "openai": settings.openai_api_key,
        "anthropic": settings.anthropic_api_key,
        "gemini": settings.gemini_api_key,
    }
    api_key = kwargs.pop("api_key", None) or api_keys.get(provider)

    for key, value in {"temperature": settings.temperature, "max_tokens": settings.max_tokens}.items():
        kwargs.setdefault(key, value)

    if provider == "openai":
        return OpenAILLM(model=model, api_key=api_key, base_url=kwargs.pop("base_url", None), **kwargs)
    if provider == "anthropic":
        return AnthropicLLM(model=model, api_key=api_key, **kwargs)
    if provider == "gemini":
        return GeminiLLM(model=model, api_key=api_key, **kwargs)
    raise ConfigurationError(f"Unsupported LLM provider: {provider}")
