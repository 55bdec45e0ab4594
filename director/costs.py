"""Per-run cost ledger for oracle calls."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional

from core.contracts import CostBreakdown


@dataclass(frozen=True)
class CostEntry:
    oracle: str
    cost: float
    model: Optional[str] = None
    orphaned: bool = False


class CostTracker:
    """
    Append-only record of what each oracle call cost.

    Orphaned entries are calls whose result arrived after the caller stopped
    waiting; they are billed all the same and reported separately.
    """

    def __init__(self):
        self._entries: List[CostEntry] = []

    def record(self, oracle: str, cost: float, model: Optional[str] = None, orphaned: bool = False) -> None:
        self._entries.append(CostEntry(oracle=oracle, cost=max(0.0, float(cost or 0.0)), model=model, orphaned=orphaned))

    def spent(self, oracle: Optional[str] = None) -> float:
        return sum(e.cost for e in self._entries if oracle is None or e.oracle == oracle)

    def calls(self, oracle: Optional[str] = None) -> int:
        return sum(1 for e in self._entries if oracle is None or e.oracle == oracle)

    def summary(self) -> CostBreakdown:
        by_oracle: Dict[str, float] = defaultdict(float)
        calls: Dict[str, int] = defaultdict(int)
        for entry in self._entries:
            by_oracle[entry.oracle] += entry.cost
            calls[entry.oracle] += 1
        return CostBreakdown(
            total=round(self.spent(), 6),
            by_oracle={k: round(v, 6) for k, v in by_oracle.items()},
            calls=dict(calls),
            orphaned=round(sum(e.cost for e in self._entries if e.orphaned), 6),
        )
