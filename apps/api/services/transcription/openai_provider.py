"""OpenAI Whisper transcription provider."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from openai import OpenAI

from config import settings
from services.providers.types import (
    ProviderError,
    ProviderUnavailableError,
    TranscriptionProvider,
    TranscriptionRequest,
    TranscriptResult,
    TranscriptSegment,
)
from services.transcription.uploads import mime_to_extension, resolve_upload_path

logger = logging.getLogger(__name__)

WHISPER_PROVIDER_ID = "openai"
DEFAULT_SEGMENT_CONFIDENCE = 0.85


def _field(item: Any, name: str, default: Any = None) -> Any:
    # The SDK returns objects; raw JSON responses are dicts.
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def segment_confidence(avg_logprob: Optional[float]) -> float:
    """Whisper avg_logprob is roughly -1.0 (poor) to 0.0 (certain)."""
    if not avg_logprob:
        return DEFAULT_SEGMENT_CONFIDENCE
    return min(1.0, max(0.0, 1.0 + float(avg_logprob)))


def overall_confidence(segments: List[TranscriptSegment]) -> float:
    values = [segment.confidence for segment in segments if isinstance(segment.confidence, (int, float))]
    if not values:
        return DEFAULT_SEGMENT_CONFIDENCE
    return round(sum(values) / len(values), 2)


def build_transcript_result(whisper_result: Any, audio_duration_seconds: Optional[float] = None) -> TranscriptResult:
    text = _field(whisper_result, "text") or ""
    text = text.strip() if isinstance(text, str) else ""
    if not text:
        raise ProviderError("Whisper returned an empty transcript")

    raw_segments = _field(whisper_result, "segments")
    if raw_segments:
        segments = [
            TranscriptSegment(
                start_ms=round((_field(seg, "start") or 0) * 1000),
                end_ms=round((_field(seg, "end") or 0) * 1000),
                text=(_field(seg, "text") or "").strip(),
                confidence=segment_confidence(_field(seg, "avg_logprob")),
            )
            for seg in raw_segments
        ]
    else:
        duration = _field(whisper_result, "duration")
        end_ms = round(duration * 1000) if duration else max(1000, round((audio_duration_seconds or 10) * 1000))
        segments = [TranscriptSegment(start_ms=0, end_ms=end_ms, text=text, confidence=DEFAULT_SEGMENT_CONFIDENCE)]

    return TranscriptResult(
        text=text,
        confidence=overall_confidence(segments),
        provider=WHISPER_PROVIDER_ID,
        segments=segments,
    )


class WhisperTranscriptionProvider(TranscriptionProvider):
    id = WHISPER_PROVIDER_ID

    def __init__(self, *, api_key: Optional[str] = None, model: Optional[str] = None) -> None:
        self._api_key = api_key
        self._model = model

    def _client(self) -> OpenAI:
        api_key = (self._api_key if self._api_key is not None else settings.OPENAI_API_KEY).strip()
        if not api_key or "your_" in api_key:
            raise ProviderUnavailableError("OPENAI_API_KEY is not configured; cannot run Whisper transcription")
        return OpenAI(api_key=api_key, base_url=settings.OPENAI_BASE_URL or None, max_retries=0)

    def _transcribe(self, request: TranscriptionRequest) -> TranscriptResult:
        client = self._client()
        audio_path = resolve_upload_path(request.audio_url)
        if audio_path is None:
            raise ProviderError(f"Cannot resolve audio file path from URL: {request.audio_url or '(empty)'}")
        try:
            audio_bytes = audio_path.read_bytes()
        except OSError as exc:
            raise ProviderError(f"Cannot read audio file at {audio_path}: {exc}") from exc
        if not audio_bytes:
            raise ProviderError("Audio file is empty; nothing to transcribe")

        file_name = f"recording{mime_to_extension(request.audio_mime_type)}"
        whisper_result = client.audio.transcriptions.create(
            model=self._model or settings.OPENAI_TRANSCRIPTION_MODEL,
            file=(file_name, audio_bytes),
            response_format="verbose_json",
            timestamp_granularities=["segment"],
            language="en",
            timeout=(request.timeout_ms or settings.TRANSCRIPTION_PROVIDER_TIMEOUT_MS) / 1000.0,
        )
        return build_transcript_result(whisper_result, request.audio_duration_seconds)

    async def transcribe(self, request: TranscriptionRequest) -> TranscriptResult:
        return await asyncio.to_thread(self._transcribe, request)
