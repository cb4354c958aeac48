"""Transcription provider selection under the shared calling policy."""

from __future__ import annotations

from dataclasses import replace
from functools import partial
from typing import List, Optional

from config import settings
from services.providers.registry import PolicyOutcome, ProviderRegistry, call_with_policy
from services.providers.types import TranscriptionProvider, TranscriptionRequest, TranscriptResult
from services.transcription.mock_provider import MOCK_PROVIDER_ID, MockTranscriptionProvider
from services.transcription.openai_provider import WhisperTranscriptionProvider


def build_transcription_registry() -> ProviderRegistry[TranscriptionProvider]:
    registry: ProviderRegistry[TranscriptionProvider] = ProviderRegistry(
        kind="transcription",
        baseline=MockTranscriptionProvider(),
        aliases={"baseline": MOCK_PROVIDER_ID},
    )
    registry.register(WhisperTranscriptionProvider(), aliases=("whisper",))
    return registry


transcription_providers = build_transcription_registry()


def get_transcription_provider(provider_id: Optional[str] = None) -> TranscriptionProvider:
    return transcription_providers.get(provider_id or settings.TRANSCRIPTION_PROVIDER)


def get_available_transcription_providers() -> List[str]:
    return transcription_providers.available()


async def transcribe_with_provider(
    request: TranscriptionRequest,
    provider_id: Optional[str] = None,
    *,
    registry: Optional[ProviderRegistry[TranscriptionProvider]] = None,
    timeout_ms: Optional[int] = None,
    retries: Optional[int] = None,
) -> PolicyOutcome[TranscriptResult]:
    """Transcribe with timeout and retry.

    Exhaustion raises ``ProviderExhaustedError``; the job is requeued rather
    than silently replaced with a placeholder transcript.
    """
    registry = registry or transcription_providers
    provider = registry.get(provider_id or settings.TRANSCRIPTION_PROVIDER)
    timeout_ms = int(timeout_ms if timeout_ms is not None else settings.TRANSCRIPTION_PROVIDER_TIMEOUT_MS)
    retries = max(int(retries if retries is not None else settings.TRANSCRIPTION_PROVIDER_RETRIES), 0)
    return await call_with_policy(
        provider.id,
        partial(provider.transcribe, replace(request, timeout_ms=timeout_ms)),
        pipeline="transcription",
        timeout_ms=timeout_ms,
        retries=retries,
    )
