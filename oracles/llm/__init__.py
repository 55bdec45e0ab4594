"""
LLM Module
多供应商 LLM 抽象层
"""
from .base import BaseLLM, LLMResponse, Message, MessageRole
from .openai_llm import OpenAILLM
from .anthropic_llm import AnthropicLLM
from .gemini_llm import GeminiLLM
from .factory import DEFAULT_MODELS, get_llm, resolve_model_tiers

__all__ = [
    "BaseLLM",
    "LLMResponse",
    "Message",
    "MessageRole",
    "OpenAILLM",
    "AnthropicLLM",
    "GeminiLLM",
    "DEFAULT_MODELS",
    "get_llm",
    "resolve_model_tiers",
]
