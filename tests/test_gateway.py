from __future__ import annotations

import asyncio
from collections import Counter

import pytest

from config.settings import OracleSettings
from oracles.breaker import CircuitBreakerBoard
from oracles.gateway import OracleGateway
from utils.exceptions import OracleTransient, OracleUnavailable


def _gateway(**overrides) -> OracleGateway:
    values = dict(
        max_retries=2,
        backoff_min=0,
        backoff_max=0,
        request_timeout=0.05,
        fallback_chain=["a", "b", "c"],
    )
    values.update(overrides)
    return OracleGateway(OracleSettings(**values))


class _Script:
    """Per-model scripted outcomes; exceptions are raised, values returned."""

    def __init__(self, **outcomes):
        self.outcomes = {k: list(v) for k, v in outcomes.items()}
        self.calls = Counter()

    async def __call__(self, model: str):
        self.calls[model] += 1
        queue = self.outcomes.get(model) or [RuntimeError(f"no script for {model}")]
        outcome = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.mark.asyncio
async def test_first_model_success_needs_no_fallback() -> None:
    gateway = _gateway()
    script = _Script(a=["ok"])

    assert await gateway.call("planner", script) == "ok"
    assert gateway.fallbacks == 0
    assert script.calls == Counter({"a": 1})


@pytest.mark.asyncio
async def test_transient_failure_is_retried_on_same_model() -> None:
    gateway = _gateway()
    script = _Script(a=[OracleTransient("503"), "ok"])

    assert await gateway.call("planner", script) == "ok"
    assert script.calls["a"] == 2
    assert gateway.fallbacks == 0


@pytest.mark.asyncio
async def test_exhausted_retries_fall_back_to_next_model() -> None:
    gateway = _gateway()
    script = _Script(a=[OracleTransient("rate limit")], b=["from b"])

    assert await gateway.call("planner", script) == "from b"
    assert script.calls["a"] == 2
    assert gateway.fallbacks == 1


@pytest.mark.asyncio
async def test_unavailable_aborts_the_chain() -> None:
    gateway = _gateway()
    script = _Script(a=[OracleUnavailable("missing api key")], b=["never"])

    with pytest.raises(OracleUnavailable):
        await gateway.call("planner", script)
    assert script.calls["b"] == 0


@pytest.mark.asyncio
async def test_malformed_output_is_not_retried() -> None:
    gateway = _gateway(max_retries=3)
    script = _Script(a=[ValueError("bad json")], b=["ok"])

    assert await gateway.call("planner", script) == "ok"
    assert script.calls["a"] == 1


@pytest.mark.asyncio
async def test_repeated_models_in_chain_are_visited_once() -> None:
    gateway = _gateway(max_retries=1)
    script = _Script(a=[OracleTransient("503")], b=[OracleTransient("503")])

    with pytest.raises(OracleTransient):
        await gateway.call("planner", script, chain=["a", "b", "a", "b"])
    assert script.calls == Counter({"a": 1, "b": 1})


@pytest.mark.asyncio
async def test_open_breaker_skips_model() -> None:
    gateway = _gateway()
    gateway.breakers.record_failure("a")
    gateway.breakers.record_failure("a")
    script = _Script(b=["ok"])

    assert await gateway.call("planner", script) == "ok"
    assert script.calls["a"] == 0


@pytest.mark.asyncio
async def test_every_breaker_open_raises_transient() -> None:
    gateway = _gateway(breaker_threshold=1)
    for model in ("a", "b", "c"):
        gateway.breakers.record_failure(model)

    with pytest.raises(OracleTransient):
        await gateway.call("planner", _Script())


@pytest.mark.asyncio
async def test_timeout_abandons_call_and_reports_late_result() -> None:
    gateway = _gateway(max_retries=1)
    orphans = []

    async def call(model: str) -> str:
        if model == "a":
            await asyncio.sleep(0.2)
            return "late"
        return "fast"

    result = await gateway.call("research", call, on_orphan=lambda o, m, r: orphans.append((o, m, r)))
    assert result == "fast"
    assert orphans == []

    await gateway.drain()
    assert orphans == [("research", "a", "late")]


@pytest.mark.asyncio
async def test_all_models_failing_raises_last_error() -> None:
    gateway = _gateway(max_retries=1)
    script = _Script(a=[OracleTransient("a down")], b=[OracleTransient("b down")], c=[OracleTransient("c down")])

    with pytest.raises(OracleTransient, match="c down"):
        await gateway.call("planner", script)
    assert gateway.fallbacks == 2


def test_breaker_opens_cools_down_and_reopens_on_trial_failure() -> None:
    now = [0.0]
    board = CircuitBreakerBoard(threshold=2, cooldown_seconds=10, clock=lambda: now[0])

    board.record_failure("m")
    assert board.allow("m")
    board.record_failure("m")
    assert board.is_open("m")
    assert not board.allow("m")

    now[0] = 11.0
    assert board.allow("m")
    board.record_failure("m")
    assert not board.allow("m")

    now[0] = 30.0
    assert board.allow("m")
    board.record_success("m")
    board.record_failure("m")
    assert board.allow("m")
