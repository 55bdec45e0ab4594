"""
Oracle gateway: timeout, retry, model fallback and circuit breaking around every call.

The ordered fallback chain is walked iteratively with a visited set, so a
misconfigured chain can never loop. Transient failures are retried with
exponential backoff (tenacity) before moving to the next model; missing
credentials abort immediately so the caller can switch to a local oracle.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Set

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from utils.exceptions import (
    OracleError,
    OracleTransient,
    OracleUnavailable,
    classify_oracle_error,
)

from .breaker import CircuitBreakerBoard

logger = logging.getLogger(__name__)

OracleCall = Callable[[str], Awaitable[Any]]
OrphanHook = Callable[[str, str, Any], None]


class OracleGateway:
    """Resilient invocation of oracle calls across an ordered model chain."""

    def __init__(self, settings, breakers: Optional[CircuitBreakerBoard] = None):
        self.settings = settings
        self.breakers = breakers or CircuitBreakerBoard(
            threshold=settings.breaker_threshold,
            cooldown_seconds=settings.breaker_cooldown_seconds,
        )
        self.fallbacks = 0
        self._abandoned: List[asyncio.Task] = []

    async def _race(self, oracle: str, model: str, fn: OracleCall, on_orphan: Optional[OrphanHook]) -> Any:
        """Run one call against the request timeout without cancelling it on expiry."""
        task = asyncio.ensure_future(fn(model))
        done, _ = await asyncio.wait({task}, timeout=self.settings.request_timeout)
        if task in done:
            return task.result()

        def _settle(finished: asyncio.Task) -> None:
            if finished.cancelled() or finished.exception() is not None:
                return
            if on_orphan is not None:
                on_orphan(oracle, model, finished.result())

        task.add_done_callback(_settle)
        self._abandoned.append(task)
        raise OracleTransient(
            f"{oracle} call timed out after {self.settings.request_timeout}s",
            oracle=oracle,
            model=model,
        )

    async def _attempt(self, oracle: str, model: str, fn: OracleCall, on_orphan: Optional[OrphanHook]) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.settings.max_retries)),
            wait=wait_exponential(multiplier=1, min=self.settings.backoff_min, max=self.settings.backoff_max),
            retry=retry_if_exception_type(OracleTransient),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                try:
                    result = await self._race(oracle, model, fn, on_orphan)
                except OracleError:
                    raise
                except Exception as exc:
                    raise classify_oracle_error(exc, oracle=oracle, model=model) from exc
        return result

    async def call(
        self,
        oracle: str,
        fn: OracleCall,
        chain: Optional[Sequence[str]] = None,
        on_orphan: Optional[OrphanHook] = None,
    ) -> Any:
        """
        Invoke ``fn(model)`` for each model in ``chain`` until one succeeds.

        Raises:
            OracleUnavailable: credentials or configuration are missing.
            OracleError: every model failed or was skipped by its breaker.
        """
        models = list(chain or self.settings.fallback_chain)
        visited: Set[str] = set()
        last_error: Optional[OracleError] = None

        for position, model in enumerate(models):
            if model in visited:
                continue
            visited.add(model)
            if not self.breakers.allow(model):
                logger.info("oracle_skip oracle=%s model=%s reason=breaker_open", oracle, model)
                continue
            if position > 0 and last_error is not None:
                self.fallbacks += 1
                logger.warning("oracle_fallback oracle=%s model=%s after=%s", oracle, model, last_error)
            try:
                result = await self._attempt(oracle, model, fn, on_orphan)
            except OracleUnavailable:
                raise
            except OracleError as exc:
                self.breakers.record_failure(model)
                last_error = exc
                logger.warning("oracle_failed oracle=%s model=%s error=%s", oracle, model, exc)
                continue
            self.breakers.record_success(model)
            return result

        if last_error is not None:
            raise last_error
        raise OracleTransient(f"No model available for {oracle}", oracle=oracle, chain=models)

    async def drain(self) -> None:
        """Wait for calls abandoned at their timeout."""
        pending = [t for t in self._abandoned if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
