"""Deterministic transcription baseline used when no speech-to-text service is configured."""

from __future__ import annotations

import asyncio

from services.providers.types import TranscriptionProvider, TranscriptionRequest, TranscriptResult, TranscriptSegment
from services.transcription.uploads import resolve_upload_path

MOCK_PROVIDER_ID = "mock"

TYPED_TEXT_CONFIDENCE = 0.92
LONG_AUDIO_CONFIDENCE = 0.78
SHORT_AUDIO_CONFIDENCE = 0.66
LONG_AUDIO_SECONDS = 20


def _audio_size_hint(audio_url) -> str:
    path = resolve_upload_path(audio_url)
    if path is None:
        return ""
    try:
        size = path.stat().st_size
    except OSError:
        return ""
    return f"Audio sample size: {max(1, round(size / 1024))}KB."


class MockTranscriptionProvider(TranscriptionProvider):
    id = MOCK_PROVIDER_ID
    is_baseline = True

    async def transcribe(self, request: TranscriptionRequest) -> TranscriptResult:
        existing_text = (request.existing_text or "").strip()
        if existing_text:
            text = existing_text
            confidence = TYPED_TEXT_CONFIDENCE
        else:
            hint = await asyncio.to_thread(_audio_size_hint, request.audio_url)
            text = (
                f"Auto transcript placeholder for response {request.response_id}. "
                f"{hint} Please review and edit before final submit."
            )
            duration = request.audio_duration_seconds or 0
            confidence = LONG_AUDIO_CONFIDENCE if duration > LONG_AUDIO_SECONDS else SHORT_AUDIO_CONFIDENCE

        end_ms = max(1000, round((request.audio_duration_seconds or 10) * 1000))
        return TranscriptResult(
            text=text,
            confidence=confidence,
            provider=MOCK_PROVIDER_ID,
            segments=[TranscriptSegment(start_ms=0, end_ms=end_ms, text=text, confidence=confidence)],
        )
