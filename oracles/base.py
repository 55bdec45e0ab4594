"""Oracle contracts: slow, expensive, unreliable generative collaborators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from core.contracts import AssetNeed, Fact, ItemMeta


@dataclass
class OracleReply:
    """Raw oracle output plus what it cost; normalization happens downstream."""

    data: Any
    cost: float = 0.0
    model: Optional[str] = None


class BaseOracle(ABC):
    """Common lifecycle for oracle implementations."""

    name: str = "oracle"

    async def aclose(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"


class ResearchOracle(BaseOracle):
    name = "research"

    @abstractmethod
    async def research(self, query: str, model: Optional[str] = None) -> OracleReply:
        """Facts about ``query``; ``data`` is a list of fact-like dicts."""


class PlanningOracle(BaseOracle):
    name = "planner"

    @abstractmethod
    async def outline(self, topic: str, facts: List[Fact], item_count: int, model: Optional[str] = None) -> OracleReply:
        """Deck outline; ``data`` is a dict with ``title``, ``narrative_goal`` and ``items``."""

    @abstractmethod
    async def plan(
        self,
        meta: ItemMeta,
        facts: List[Fact],
        hints: Dict[str, Any],
        model: Optional[str] = None,
    ) -> OracleReply:
        """Content for one item; ``data`` is a content-plan-like dict."""


class LayoutRouter(BaseOracle):
    name = "router"

    @abstractmethod
    async def route(self, meta: ItemMeta, avoid: Sequence[str] = (), model: Optional[str] = None) -> OracleReply:
        """Layout choice for ``meta``; ``data`` is a layout id or ``{"layout_id": ...}``."""


class CritiqueOracle(BaseOracle):
    name = "critic"

    @abstractmethod
    async def critique(self, proxy, model: Optional[str] = None) -> OracleReply:
        """Visual judgment of a render proxy; ``data`` is a critique-like dict."""


class AssetOracle(BaseOracle):
    name = "asset"

    @abstractmethod
    async def synthesize(self, need: AssetNeed, model: Optional[str] = None) -> OracleReply:
        """Binary asset for ``need``; ``data`` is a dict with ``payload``."""
