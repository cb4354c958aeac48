"""Feedback provider selection with timeout, retry and baseline fallback."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, List, Optional

from config import settings
from services.feedback.openai_provider import OpenAIFeedbackProvider
from services.feedback.rule_based import BASELINE_PROVIDER_ID, RuleBasedFeedbackProvider
from services.feedback.validation import ValidationResult, validate_feedback_evaluation
from services.metrics import increment_counter
from services.providers.registry import ProviderRegistry, call_with_policy
from services.providers.types import (
    FeedbackProvider,
    FeedbackRequest,
    InvalidEvaluationError,
    ProviderExhaustedError,
)

logger = logging.getLogger(__name__)


def build_feedback_registry() -> ProviderRegistry[FeedbackProvider]:
    registry: ProviderRegistry[FeedbackProvider] = ProviderRegistry(
        kind="feedback",
        baseline=RuleBasedFeedbackProvider(),
        aliases={
            "rule_based": BASELINE_PROVIDER_ID,
            "rule-based": BASELINE_PROVIDER_ID,
            "rules": BASELINE_PROVIDER_ID,
        },
    )
    registry.register(OpenAIFeedbackProvider(), aliases=("ai_model", "gpt"))
    return registry


feedback_providers = build_feedback_registry()


@dataclass
class FeedbackEvaluation:
    evaluation: Dict[str, Any]
    evaluator_type: str
    evaluator_metadata: Dict[str, Any]
    validation_errors: List[str] = field(default_factory=list)


def get_feedback_provider(provider_id: Optional[str] = None) -> FeedbackProvider:
    return feedback_providers.get(provider_id or settings.FEEDBACK_PROVIDER)


def get_available_feedback_providers() -> List[str]:
    return feedback_providers.available()


async def _evaluate_validated(provider: FeedbackProvider, request: FeedbackRequest) -> ValidationResult:
    raw = await provider.evaluate(request)
    result = validate_feedback_evaluation(raw)
    # The baseline's normalized output is always usable; anyone else must pass validation.
    if not result.valid and not provider.is_baseline:
        raise InvalidEvaluationError("; ".join(result.errors))
    return result


async def evaluate_response_with_provider(
    response_text: str,
    question_text: str = "",
    provider_id: Optional[str] = None,
    *,
    question_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
    registry: Optional[ProviderRegistry[FeedbackProvider]] = None,
    timeout_ms: Optional[int] = None,
    retries: Optional[int] = None,
) -> FeedbackEvaluation:
    """Score a response with the configured provider, substituting the baseline on exhaustion.

    Raises ``ProviderExhaustedError`` only when the configured provider is the
    baseline itself.
    """
    registry = registry or feedback_providers
    provider = registry.get(provider_id or settings.FEEDBACK_PROVIDER)
    timeout_ms = int(timeout_ms if timeout_ms is not None else settings.FEEDBACK_PROVIDER_TIMEOUT_MS)
    retries = max(int(retries if retries is not None else settings.FEEDBACK_PROVIDER_RETRIES), 0)
    request = FeedbackRequest(
        response_text=response_text or "",
        question_text=question_text or "",
        question_id=question_id,
        correlation_id=correlation_id,
        timeout_ms=timeout_ms,
    )

    started = time.perf_counter()
    fallback_from: Optional[str] = None
    try:
        outcome = await call_with_policy(
            provider.id,
            partial(_evaluate_validated, provider, request),
            pipeline="feedback",
            timeout_ms=timeout_ms,
            retries=retries,
        )
        attempt_errors = list(outcome.attempt_errors)
        attempts = outcome.attempts
    except ProviderExhaustedError as exc:
        baseline = registry.baseline
        if provider is baseline:
            raise
        logger.warning(
            "Feedback provider %s exhausted %d attempt(s); falling back to %s",
            provider.id,
            len(exc.attempt_errors),
            baseline.id,
        )
        increment_counter("mockinterview_feedback_fallback_total", {"from": provider.id, "to": baseline.id})
        outcome = await call_with_policy(
            baseline.id,
            partial(_evaluate_validated, baseline, request),
            pipeline="feedback",
            timeout_ms=None,
            retries=0,
            fallback=True,
        )
        fallback_from = provider.id
        attempt_errors = exc.attempt_errors + outcome.attempt_errors
        attempts = len(exc.attempt_errors) + outcome.attempts

    result: ValidationResult = outcome.value
    evaluation = result.evaluation
    analysis = evaluation.get("analysis") or {}
    metadata = {
        "provider": outcome.provider_id,
        "model": analysis.get("model"),
        "prompt_version": analysis.get("prompt_version"),
        "latency_ms": int(round((time.perf_counter() - started) * 1000)),
        "timeout_ms": timeout_ms,
        "attempts": attempts,
        "retries": max(attempts - 1, 0),
        "fallback": fallback_from is not None,
        "fallback_from": fallback_from,
        "fallback_reason": "; ".join(attempt_errors) if fallback_from else None,
        "attempt_errors": attempt_errors,
        "token_usage": analysis.get("token_usage"),
        "correlation_id": correlation_id,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }
    return FeedbackEvaluation(
        evaluation=evaluation,
        evaluator_type=outcome.provider_id,
        evaluator_metadata=metadata,
        validation_errors=list(result.errors),
    )
