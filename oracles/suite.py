"""
Oracle Suite
根据配置组装一次运行所需的全部 oracle
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Optional

from .base import AssetOracle, CritiqueOracle, LayoutRouter, PlanningOracle, ResearchOracle
from .local import (
    HeuristicLayoutRouter,
    LocalCritiqueOracle,
    LocalPlanningOracle,
    LocalResearchOracle,
    PlaceholderAssetOracle,
)

logger = logging.getLogger(__name__)


@dataclass
class OracleSuite:
    """The five collaborators a run talks to."""

    research: ResearchOracle
    planner: PlanningOracle
    router: LayoutRouter
    critic: CritiqueOracle
    assets: AssetOracle

    async def aclose(self) -> None:
        closed = set()
        for f in fields(self):
            oracle = getattr(self, f.name)
            if id(oracle) in closed:
                continue
            closed.add(id(oracle))
            await oracle.aclose()


def build_local_suite() -> OracleSuite:
    """Deterministic offline suite; also the fallback for unavailable oracles."""
    return OracleSuite(
        research=LocalResearchOracle(),
        planner=LocalPlanningOracle(),
        router=HeuristicLayoutRouter(),
        critic=LocalCritiqueOracle(),
        assets=PlaceholderAssetOracle(),
    )


def build_oracle_suite(settings=None) -> OracleSuite:
    """
    组装 oracle 套件

    - LLM_PROVIDER=local: 全部使用本地确定性实现
    - CRITIC_URL 已配置: 使用 HTTP 视觉评审服务, 否则使用 LLM 文本评审
    - 图像生成需要 IMAGE_API_KEY 或 LLM_OPENAI_API_KEY
    """
    if settings is None:
        from config import get_settings
        settings = get_settings()

    llm_settings = settings.llm
    if (llm_settings.provider or "").lower() == "local":
        logger.info("oracle_suite provider=local")
        return build_local_suite()

    from .critic import HttpVisualCritic
    from .imagery import OpenAIImageOracle
    from .llm import get_llm
    from .llm_oracles import LLMCritiqueOracle, LLMLayoutRouter, LLMPlanningOracle, LLMResearchOracle

    llm = get_llm(llm_settings.provider, timeout=settings.oracle.request_timeout)
    critic: Optional[CritiqueOracle]
    if settings.critic.url:
        critic = HttpVisualCritic(
            url=settings.critic.url,
            api_key=settings.critic.api_key,
            cost_per_call=settings.critic.cost_per_call,
            timeout=settings.oracle.request_timeout,
        )
    else:
        critic = LLMCritiqueOracle(llm)

    image_key = settings.image.api_key or llm_settings.openai_api_key
    assets: AssetOracle
    if image_key:
        assets = OpenAIImageOracle(
            api_key=image_key,
            model=settings.image.model,
            size=settings.image.size,
            cost_per_image=(
                settings.image.premium_cost_per_image
                if settings.director.mode == "premium"
                else settings.image.cost_per_image
            ),
            timeout=settings.oracle.request_timeout,
        )
    else:
        assets = PlaceholderAssetOracle()

    logger.info(
        "oracle_suite provider=%s critic=%s assets=%s",
        llm_settings.provider,
        type(critic).__name__,
        type(assets).__name__,
    )
    return OracleSuite(
        research=LLMResearchOracle(llm),
        planner=LLMPlanningOracle(llm),
        router=LLMLayoutRouter(llm),
        critic=critic,
        assets=assets,
    )
