"""Provider contracts and pipeline error types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class PipelineError(RuntimeError):
    """Error carrying a machine-readable code recorded on the failed job."""

    code = "pipeline_error"

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        if code:
            self.code = code


class NotFoundError(PipelineError):
    code = "not_found"


class StaleJobError(PipelineError):
    code = "stale_timeout"


class FeatureDisabledError(PipelineError):
    code = "feature_disabled"


class ProviderError(PipelineError):
    code = "provider_error"


class ProviderUnavailableError(ProviderError):
    code = "provider_unavailable"


class ProviderTimeoutError(ProviderError):
    code = "provider_timeout"


class InvalidEvaluationError(ProviderError):
    code = "invalid_evaluation"


class ProviderExhaustedError(ProviderError):
    """Raised once every attempt allowed by the calling policy has failed."""

    code = "provider_exhausted"

    def __init__(self, provider_id: str, attempt_errors: List[str]) -> None:
        summary = attempt_errors[-1] if attempt_errors else "no attempts made"
        super().__init__(
            f"Provider {provider_id} failed after {len(attempt_errors)} attempt(s): {summary}"
        )
        self.provider_id = provider_id
        self.attempt_errors = list(attempt_errors)


@dataclass(frozen=True)
class FeedbackRequest:
    response_text: str
    question_text: str = ""
    question_id: Optional[str] = None
    correlation_id: Optional[str] = None
    timeout_ms: Optional[int] = None


@dataclass(frozen=True)
class TranscriptionRequest:
    response_id: str
    audio_url: Optional[str] = None
    audio_mime_type: Optional[str] = None
    audio_duration_seconds: Optional[float] = None
    existing_text: str = ""
    timeout_ms: Optional[int] = None


@dataclass
class TranscriptSegment:
    start_ms: int
    end_ms: int
    text: str
    confidence: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "start_ms": self.start_ms,
            "end_ms": self.end_ms,
            "text": self.text,
            "confidence": self.confidence,
        }


@dataclass
class TranscriptResult:
    text: str
    confidence: float
    provider: str
    segments: List[TranscriptSegment] = field(default_factory=list)


class FeedbackProvider(ABC):
    """Scores a single response. Output is a raw evaluation dict checked by the validator."""

    id: str
    is_baseline: bool = False

    @abstractmethod
    async def evaluate(self, request: FeedbackRequest) -> Dict[str, Any]:
        raise NotImplementedError


class TranscriptionProvider(ABC):
    """Turns an uploaded recording into text with a confidence score."""

    id: str
    is_baseline: bool = False

    @abstractmethod
    async def transcribe(self, request: TranscriptionRequest) -> TranscriptResult:
        raise NotImplementedError
