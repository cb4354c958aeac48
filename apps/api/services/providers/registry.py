"""Provider registry and the shared timeout/retry calling policy."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from services.metrics import increment_counter, observe_duration
from services.providers.types import ProviderExhaustedError, ProviderTimeoutError

logger = logging.getLogger(__name__)

P = TypeVar("P")
T = TypeVar("T")


class ProviderRegistry(Generic[P]):
    """Maps provider ids (and aliases) to instances, degrading unknown ids to the baseline."""

    def __init__(self, *, kind: str, baseline: P, aliases: Optional[Dict[str, str]] = None) -> None:
        self.kind = kind
        self._baseline = baseline
        self._providers: Dict[str, P] = {baseline.id: baseline}
        self._aliases: Dict[str, str] = {}
        for alias, target in (aliases or {}).items():
            self._aliases[alias.strip().lower()] = target

    @property
    def baseline(self) -> P:
        return self._baseline

    def register(self, provider: P, *, aliases: Iterable[str] = ()) -> None:
        self._providers[provider.id] = provider
        for alias in aliases:
            self._aliases[alias.strip().lower()] = provider.id

    def unregister(self, provider_id: str) -> None:
        if provider_id == self._baseline.id:
            raise ValueError("The baseline provider cannot be unregistered")
        self._providers.pop(provider_id, None)
        self._aliases = {alias: target for alias, target in self._aliases.items() if target != provider_id}

    def normalize_id(self, provider_id: Optional[str]) -> str:
        normalized = str(provider_id or self._baseline.id).strip().lower()
        return self._aliases.get(normalized, normalized)

    def get(self, provider_id: Optional[str] = None) -> P:
        normalized = self.normalize_id(provider_id)
        provider = self._providers.get(normalized)
        if provider is not None:
            return provider
        logger.warning(
            "Unknown %s provider %r. Falling back to %r.",
            self.kind,
            provider_id,
            self._baseline.id,
        )
        return self._baseline

    def available(self) -> List[str]:
        return sorted(self._providers)


@dataclass
class PolicyOutcome(Generic[T]):
    provider_id: str
    value: T
    attempts: int
    latency_ms: int
    attempt_errors: List[str] = field(default_factory=list)


def _record_attempt(pipeline: str, provider_id: str, fallback: bool, outcome: str, elapsed_ms: float) -> None:
    increment_counter(
        f"mockinterview_{pipeline}_provider_calls_total",
        {"provider": provider_id, "fallback": fallback, "outcome": outcome},
    )
    observe_duration(
        f"mockinterview_{pipeline}_provider_latency_ms",
        elapsed_ms,
        {"provider": provider_id, "fallback": fallback},
    )


async def call_with_policy(
    provider_id: str,
    call: Callable[[], Awaitable[T]],
    *,
    pipeline: str,
    timeout_ms: Optional[int],
    retries: int,
    fallback: bool = False,
) -> PolicyOutcome[T]:
    """Run ``call`` under a per-attempt timeout, retrying immediately up to ``retries`` times.

    ``timeout_ms=None`` disables the timeout.
    Every attempt is counted in the provider call/latency metrics. When no
    attempt succeeds, ``ProviderExhaustedError`` carries one message per attempt.
    """
    total_attempts = max(int(retries), 0) + 1
    timeout_seconds = None if timeout_ms is None else max(int(timeout_ms), 1) / 1000.0
    attempt_errors: List[str] = []
    started = time.perf_counter()

    for attempt in range(1, total_attempts + 1):
        attempt_started = time.perf_counter()
        try:
            value = await asyncio.wait_for(call(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            error: Exception = ProviderTimeoutError(f"{provider_id} timed out after {int(timeout_ms)}ms")
        except Exception as exc:
            error = exc
        else:
            _record_attempt(pipeline, provider_id, fallback, "success", (time.perf_counter() - attempt_started) * 1000)
            return PolicyOutcome(
                provider_id=provider_id,
                value=value,
                attempts=attempt,
                latency_ms=int(round((time.perf_counter() - started) * 1000)),
                attempt_errors=attempt_errors,
            )

        outcome = "retry" if attempt < total_attempts else "error"
        _record_attempt(pipeline, provider_id, fallback, outcome, (time.perf_counter() - attempt_started) * 1000)
        attempt_errors.append(f"attempt {attempt}: {error}")
        logger.warning(
            "%s provider %s attempt %d/%d failed: %s",
            pipeline,
            provider_id,
            attempt,
            total_attempts,
            error,
        )

    raise ProviderExhaustedError(provider_id, attempt_errors)
