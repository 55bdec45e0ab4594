"""
Google Gemini LLM
支持 Gemini 2.x Pro / Flash 系列模型
"""
from typing import List, Optional, Tuple
import logging

from utils.exceptions import OracleUnavailable

from .base import BaseLLM, Message, MessageRole, LLMResponse


logger = logging.getLogger(__name__)


class GeminiLLM(BaseLLM):
    """
    Google Gemini LLM 实现

    模型分级示例:
    - gemini-2.5-pro (smart)
    - gemini-2.5-flash (fast)
    - gemini-2.0-flash-lite (lite)
    """

    price_per_1k = (0.00125, 0.005)

    def __init__(
        self,
        model: str = "gemini-2.5-flash",
        api_key: Optional[str] = None,
        temperature: float = 0.4,
        max_tokens: int = 4096,
        timeout: float = 60.0,
        **kwargs,
    ):
        super().__init__(model, temperature, max_tokens, timeout, **kwargs)
        self.api_key = api_key

    @property
    def provider(self) -> str:
        return "gemini"

    def _convert_messages(self, messages: List[Message]) -> Tuple[Optional[str], list, Optional[str]]:
        """
        转换消息格式 (Gemini 格式)

        Returns:
            (system_instruction, history, last_message)
        """
        system_instruction = None
        history = []
        last_message = None
        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                system_instruction = msg.content
            elif msg.role == MessageRole.USER:
                last_message = msg.content
            elif msg.role == MessageRole.ASSISTANT:
                if last_message:
                    history.append({"role": "user", "parts": [last_message]})
                    last_message = None
                history.append({"role": "model", "parts": [msg.content]})
        return system_instruction, history, last_message

    async def acomplete(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        json_mode: bool = False,
        **kwargs,
    ) -> LLMResponse:
        """异步生成响应"""
        if not self.api_key:
            raise OracleUnavailable("Gemini API key is not configured", oracle="llm", model=self.model)
        import google.generativeai as genai

        genai.configure(api_key=self.api_key)
        system_instruction, history, last_message = self._convert_messages(messages)

        generation_config = {
            "temperature": kwargs.get("temperature", self.temperature),
            "max_output_tokens": kwargs.get("max_tokens", self.max_tokens),
        }
        if json_mode:
            generation_config["response_mime_type"] = "application/json"

        model_name = model or self.model
        client = genai.GenerativeModel(
            model_name=model_name,
            generation_config=generation_config,
            system_instruction=system_instruction,
        )
        chat = client.start_chat(history=history)
        response = await chat.send_message_async(last_message or "")

        usage = {}
        if getattr(response, "usage_metadata", None):
            usage = {
                "prompt_tokens": response.usage_metadata.prompt_token_count,
                "completion_tokens": response.usage_metadata.candidates_token_count,
                "total_tokens": response.usage_metadata.total_token_count,
            }
        return LLMResponse(
            content=response.text or "",
            model=model_name,
            usage=usage,
            finish_reason=response.candidates[0].finish_reason.name if response.candidates else None,
            raw_response=response,
        )
