"""HTTP client for an external vision critic service."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from utils.exceptions import OracleUnavailable

from .base import CritiqueOracle, OracleReply

logger = logging.getLogger(__name__)


class HttpVisualCritic(CritiqueOracle):
    """
    Posts the SVG proxy and its component manifest to ``url``.

    The service answers ``{"result": {...critique...}, "usage": {...}}``;
    a bare critique object is accepted too.
    """

    def __init__(
        self,
        url: Optional[str],
        api_key: Optional[str] = None,
        cost_per_call: float = 0.002,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.cost_per_call = cost_per_call
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if not self.url:
            raise OracleUnavailable("Critic service url is not configured", oracle=self.name)
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=headers)
        return self._client

    async def critique(self, proxy, model: Optional[str] = None) -> OracleReply:
        client = self._get_client()
        payload = {
            "svgString": proxy.svg,
            "components": [c.model_dump() for c in proxy.components],
            "layoutId": proxy.layout_id,
            "style": proxy.style,
            "model": model,
        }
        response = await client.post(self.url, json=payload)
        response.raise_for_status()
        body = response.json()
        data = body.get("result", body) if isinstance(body, dict) else body
        logger.debug("critic_reply item=%s status=%s", proxy.item_order, response.status_code)
        return OracleReply(data=data, cost=self.cost_per_call, model=model or "vision-critic")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
