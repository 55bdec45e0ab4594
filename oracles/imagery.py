"""
Image Oracle
OpenAI 图像生成
"""

from __future__ import annotations

import logging
from typing import Optional

from core.contracts import AssetNeed

from utils.exceptions import OracleUnavailable

from .base import AssetOracle, OracleReply

logger = logging.getLogger(__name__)


class OpenAIImageOracle(AssetOracle):
    """Generates item illustrations; the payload is base64 image data."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-image-1",
        size: str = "1536x1024",
        cost_per_image: float = 0.039,
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.model = model
        self.size = size
        self.cost_per_image = cost_per_image
        self.timeout = timeout
        self._client = None

    def _get_client(self):
        if not self.api_key:
            raise OracleUnavailable("Image API key is not configured", oracle=self.name, model=self.model)
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def synthesize(self, need: AssetNeed, model: Optional[str] = None) -> OracleReply:
        client = self._get_client()
        # Fallback-chain aliases are text-model tiers; images always use the configured model.
        response = await client.images.generate(model=self.model, prompt=need.prompt, size=self.size, n=1)
        image = response.data[0] if response.data else None
        payload = getattr(image, "b64_json", None) or getattr(image, "url", None)
        if not payload:
            raise ValueError("image response carried no data")
        logger.info("image_generated item=%s model=%s", need.item_index, self.model)
        return OracleReply(data={"payload": payload}, cost=self.cost_per_image, model=self.model)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
