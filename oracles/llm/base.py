"""
Base LLM
LLM 抽象基类
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class MessageRole(str, Enum):
    """消息角色"""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """对话消息"""
    role: MessageRole
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=content)


@dataclass
class LLMResponse:
    """LLM 响应"""
    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)  # prompt_tokens, completion_tokens, total_tokens
    finish_reason: Optional[str] = None
    raw_response: Optional[Any] = None

    @property
    def truncated(self) -> bool:
        return (self.finish_reason or "").lower() in {"length", "max_tokens", "max_output_tokens"}


class BaseLLM(ABC):
    """
    LLM 抽象基类

    所有 LLM 供应商实现需继承此类. ``price_per_1k`` 为 (输入, 输出) 每千 token 美元价格,
    用于成本估算.
    """

    price_per_1k = (0.0, 0.0)

    def __init__(
        self,
        model: str,
        temperature: float = 0.4,
        max_tokens: int = 4096,
        timeout: float = 60.0,
        **kwargs,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.extra_config = kwargs

    @property
    @abstractmethod
    def provider(self) -> str:
        """返回供应商名称"""
        pass

    @abstractmethod
    async def acomplete(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        json_mode: bool = False,
        **kwargs,
    ) -> LLMResponse:
        """
        异步生成响应

        Args:
            messages: 对话消息列表
            model: 覆盖默认模型 (用于回退链)
            json_mode: 要求返回 JSON
            **kwargs: 额外参数 (temperature, max_tokens)
        """
        pass

    def estimate_cost(self, usage: Dict[str, int]) -> float:
        prompt_price, completion_price = self.price_per_1k
        prompt = usage.get("prompt_tokens", 0) or 0
        completion = usage.get("completion_tokens", 0) or 0
        return (prompt * prompt_price + completion * completion_price) / 1000.0

    async def achat(self, user_message: str, system_prompt: Optional[str] = None, **kwargs) -> LLMResponse:
        """异步简单对话接口"""
        messages = []
        if system_prompt:
            messages.append(Message.system(system_prompt))
        messages.append(Message.user(user_message))
        return await self.acomplete(messages, **kwargs)

    async def aclose(self) -> None:
        """
        关闭底层客户端资源 (默认 no-op)
        子类可覆盖以释放 HTTP 连接池
        """
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model}, provider={self.provider})"
