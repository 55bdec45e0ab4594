"""
Visual repair loop.

Render, critique, repair, repeat: until the critic is satisfied, progress
stalls, the round cap is hit, or the per-item time/cost budget runs out.
Every exit path produces the same ``RepairLoopResult`` shape.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from time import perf_counter
from typing import Callable, List, Optional

from core.contracts import CritiqueVerdict, DeckItem, GateAction, RepairSummary
from render.proxy import BaseProxyRenderer
from render.repairs import apply_repairs
from utils.exceptions import BudgetExceeded

from .costs import CostTracker

logger = logging.getLogger(__name__)

# Only the loop's own critique calls count against the per-item budget.
BUDGET_ORACLE = "critic"


class AbortReason(str, Enum):
    TIME_BUDGET_EXCEEDED = "time_budget_exceeded"
    COST_BUDGET_EXCEEDED = "cost_budget_exceeded"
    STAGNATION_REPEATED_REPAIR = "stagnation_repeated_repair"
    STAGNATION_RENDER_UNCHANGED = "stagnation_render_unchanged"
    STAGNATION_NO_IMPROVEMENT = "stagnation_no_improvement"
    NO_REPAIRS = "no_repairs"
    CRITIQUE_FAILED = "critique_failed"
    MAX_ROUNDS = "max_rounds"


_STRUCTURAL_STALLS = {
    AbortReason.STAGNATION_REPEATED_REPAIR,
    AbortReason.STAGNATION_RENDER_UNCHANGED,
    AbortReason.STAGNATION_NO_IMPROVEMENT,
}


@dataclass
class RepairHistory:
    """Repair-action categories applied in each round, oldest first."""

    rounds: List[List[str]] = field(default_factory=list)

    def record(self, categories) -> None:
        self.rounds.append(sorted(set(categories)))

    def repeated_category(self, window: int = 3) -> Optional[str]:
        """A category present in each of the last ``window`` rounds, if any."""
        if window < 1 or len(self.rounds) < window:
            return None
        recent = [set(r) for r in self.rounds[-window:]]
        common = set.intersection(*recent)
        return sorted(common)[0] if common else None


class BudgetBreaker:
    """Per-item time and cost guard checked at the top of every round."""

    def __init__(
        self,
        time_budget_seconds: float,
        cost_budget: float,
        spent: Callable[[], float],
        clock: Callable[[], float] = perf_counter,
    ):
        self.time_budget_seconds = time_budget_seconds
        self.cost_budget = cost_budget
        self._spent = spent
        self._clock = clock
        self._started = clock()

    def elapsed(self) -> float:
        return self._clock() - self._started

    def check(self) -> None:
        elapsed = self.elapsed()
        if elapsed > self.time_budget_seconds:
            raise BudgetExceeded(
                "Repair loop time budget exceeded",
                budget=AbortReason.TIME_BUDGET_EXCEEDED.value,
                spent=elapsed,
                limit=self.time_budget_seconds,
            )
        cost = self._spent()
        if cost > self.cost_budget:
            raise BudgetExceeded(
                "Repair loop cost budget exceeded",
                budget=AbortReason.COST_BUDGET_EXCEEDED.value,
                spent=cost,
                limit=self.cost_budget,
            )


@dataclass
class RepairLoopResult:
    final_item: DeckItem
    rounds_run: int
    final_score: Optional[float]
    repairs_applied: int
    converged: bool
    abort_reason: Optional[AbortReason] = None
    recommended_action: Optional[str] = None
    cost: float = 0.0
    history: RepairHistory = field(default_factory=RepairHistory)

    def summary(self) -> RepairSummary:
        return RepairSummary(
            rounds_run=self.rounds_run,
            final_score=self.final_score,
            repairs_applied=self.repairs_applied,
            converged=self.converged,
            abort_reason=self.abort_reason.value if self.abort_reason else None,
            recommended_action=self.recommended_action,
            cost=round(self.cost, 6),
        )


class VisualRepairLoop:
    """Iterative critique and repair of a single item."""

    def __init__(
        self,
        services,
        renderer: BaseProxyRenderer,
        settings,
        costs: CostTracker,
        clock: Callable[[], float] = perf_counter,
    ):
        self.services = services
        self.renderer = renderer
        self.settings = settings
        self.costs = costs
        self.clock = clock

    async def run(self, item: DeckItem, style: str = "professional") -> RepairLoopResult:
        settings = self.settings
        cost_start = self.costs.spent(BUDGET_ORACLE)
        breaker = BudgetBreaker(
            settings.time_budget_seconds,
            settings.cost_budget_usd,
            spent=lambda: self.costs.spent(BUDGET_ORACLE) - cost_start,
            clock=self.clock,
        )
        history = RepairHistory()
        current = item
        rounds = 0
        applied_total = 0
        score: Optional[float] = None
        previous_score: Optional[float] = None
        previous_fingerprint: Optional[str] = None

        def finish(converged: bool, reason: Optional[AbortReason] = None) -> RepairLoopResult:
            recommended = GateAction.CHANGE_LAYOUT.value if reason in _STRUCTURAL_STALLS else None
            result = RepairLoopResult(
                final_item=current,
                rounds_run=rounds,
                final_score=score,
                repairs_applied=applied_total,
                converged=converged,
                abort_reason=reason,
                recommended_action=recommended,
                cost=self.costs.spent(BUDGET_ORACLE) - cost_start,
                history=history,
            )
            logger.info(
                "repair_loop_done item=%s rounds=%s score=%s converged=%s abort=%s",
                item.order,
                rounds,
                score,
                converged,
                reason.value if reason else None,
            )
            return result

        for round_no in range(1, settings.max_rounds + 1):
            try:
                breaker.check()
            except BudgetExceeded as exc:
                logger.warning("repair_loop_budget item=%s %s", item.order, exc)
                return finish(False, AbortReason(exc.budget))

            rounds = round_no
            proxy = self.renderer.render(current, style)
            if previous_fingerprint is not None and proxy.fingerprint == previous_fingerprint:
                return finish(False, AbortReason.STAGNATION_RENDER_UNCHANGED)
            previous_fingerprint = proxy.fingerprint

            try:
                critique = await self.services.critique(proxy)
            except Exception as exc:
                logger.warning("repair_loop_critique_failed item=%s round=%s error=%s", item.order, round_no, exc)
                return finish(False, AbortReason.CRITIQUE_FAILED)

            score = critique.score
            logger.info(
                "repair_round item=%s round=%s score=%.1f verdict=%s repairs=%s",
                item.order,
                round_no,
                score,
                critique.verdict.value,
                len(critique.repairs),
            )
            if critique.verdict == CritiqueVerdict.ACCEPT or score >= settings.target_score:
                return finish(True)
            if round_no > 1 and previous_score is not None and score - previous_score < settings.min_improvement_delta:
                return finish(False, AbortReason.STAGNATION_NO_IMPROVEMENT)

            history.record(r.action.value for r in critique.repairs)
            repeated = history.repeated_category(settings.stagnation_window)
            if repeated:
                logger.warning("repair_loop_stagnation item=%s category=%s", item.order, repeated)
                return finish(False, AbortReason.STAGNATION_REPEATED_REPAIR)
            if not critique.repairs:
                return finish(False, AbortReason.NO_REPAIRS)

            current, applied = apply_repairs(current, critique.repairs)
            applied_total += applied
            previous_score = score

        return finish(False, AbortReason.MAX_ROUNDS)
