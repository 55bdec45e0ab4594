"""
OpenAI LLM
支持 GPT-4o, GPT-4o-mini, GPT-4.1 等模型
"""
from typing import List, Optional
import inspect
import logging

from utils.exceptions import OracleUnavailable

from .base import BaseLLM, Message, LLMResponse


logger = logging.getLogger(__name__)


class OpenAILLM(BaseLLM):
    """
    OpenAI LLM 实现

    支持模型:
    - gpt-4o (smart)
    - gpt-4o-mini (fast / lite)
    """

    price_per_1k = (0.0025, 0.01)

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.4,
        max_tokens: int = 4096,
        timeout: float = 60.0,
        **kwargs,
    ):
        super().__init__(model, temperature, max_tokens, timeout, **kwargs)
        self.api_key = api_key
        self.base_url = base_url
        self._async_client = None

    @property
    def provider(self) -> str:
        return "openai"

    def _get_async_client(self):
        """获取异步客户端"""
        if not self.api_key:
            raise OracleUnavailable("OpenAI API key is not configured", oracle="llm", model=self.model)
        if self._async_client is None:
            from openai import AsyncOpenAI
            self._async_client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._async_client

    async def acomplete(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        json_mode: bool = False,
        **kwargs,
    ) -> LLMResponse:
        """异步生成响应"""
        client = self._get_async_client()

        request_params = {
            "model": model or self.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": kwargs.get("temperature", self.temperature),
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
        }
        if json_mode:
            request_params["response_format"] = {"type": "json_object"}

        response = await client.chat.completions.create(**request_params)

        choice = response.choices[0]
        usage = {}
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return LLMResponse(
            content=choice.message.content or "",
            model=response.model,
            usage=usage,
            finish_reason=choice.finish_reason,
            raw_response=response,
        )

    async def aclose(self) -> None:
        client = self._async_client
        self._async_client = None
        if client is None:
            return
        close_fn = getattr(client, "close", None)
        if callable(close_fn):
            maybe_awaitable = close_fn()
            if inspect.isawaitable(maybe_awaitable):
                await maybe_awaitable
