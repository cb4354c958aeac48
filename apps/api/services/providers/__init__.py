"""Provider contracts, registry and calling policy."""

from services.providers.registry import PolicyOutcome, ProviderRegistry, call_with_policy
from services.providers.types import (
    FeatureDisabledError,
    FeedbackProvider,
    FeedbackRequest,
    InvalidEvaluationError,
    NotFoundError,
    PipelineError,
    ProviderError,
    ProviderExhaustedError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    StaleJobError,
    TranscriptionProvider,
    TranscriptionRequest,
    TranscriptResult,
    TranscriptSegment,
)

__all__ = [
    "FeatureDisabledError",
    "FeedbackProvider",
    "FeedbackRequest",
    "InvalidEvaluationError",
    "NotFoundError",
    "PipelineError",
    "PolicyOutcome",
    "ProviderError",
    "ProviderExhaustedError",
    "ProviderRegistry",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "StaleJobError",
    "TranscriptionProvider",
    "TranscriptionRequest",
    "TranscriptResult",
    "TranscriptSegment",
    "call_with_policy",
]
