"""OpenAI chat-completion feedback provider."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from openai import OpenAI

from config import settings
from services.providers.types import (
    FeedbackProvider,
    FeedbackRequest,
    ProviderError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

OPENAI_PROVIDER_ID = "openai"

SYSTEM_PROMPT = "You are an expert interview coach. Always return valid JSON only."


def build_prompt(response_text: str, question_text: str) -> str:
    return f"""
You are evaluating a mock interview answer using the STAR framework.
Return ONLY strict JSON with this shape:
{{
  "scores": {{
    "situation": number,
    "task": number,
    "action": number,
    "result": number,
    "detail": number,
    "overall": number
  }},
  "rating": "excellent" | "good" | "fair" | "needs_improvement",
  "strengths": string[],
  "suggestions": string[],
  "analysis": object
}}

Scoring rules:
- Each score is integer 0-100.
- Weigh Action/Result higher than Situation/Task.
- Favor specific measurable outcomes.
- "overall" must be consistent with subscores.

Question:
{question_text or "Not provided"}

Candidate response:
{response_text}
""".strip()


def parse_json_content(content: Optional[str]) -> Dict[str, Any]:
    if not isinstance(content, str) or not content.strip():
        raise ProviderError("OpenAI response did not contain JSON content")
    cleaned = content.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ProviderError(f"OpenAI response was not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ProviderError("OpenAI response JSON was not an object")
    return payload


class OpenAIFeedbackProvider(FeedbackProvider):
    id = OPENAI_PROVIDER_ID

    def __init__(self, *, api_key: Optional[str] = None, model: Optional[str] = None) -> None:
        self._api_key = api_key
        self._model = model

    def _client(self) -> OpenAI:
        api_key = (self._api_key if self._api_key is not None else settings.OPENAI_API_KEY).strip()
        if not api_key or "your_" in api_key:
            raise ProviderUnavailableError("OPENAI_API_KEY is not configured")
        return OpenAI(api_key=api_key, base_url=settings.OPENAI_BASE_URL or None, max_retries=0)

    def _complete(self, request: FeedbackRequest) -> Dict[str, Any]:
        client = self._client()
        model = self._model or settings.OPENAI_FEEDBACK_MODEL
        response = client.chat.completions.create(
            model=model,
            temperature=0.2,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(request.response_text, request.question_text)},
            ],
            timeout=(request.timeout_ms or settings.FEEDBACK_PROVIDER_TIMEOUT_MS) / 1000.0,
        )
        payload = parse_json_content(response.choices[0].message.content)
        usage = response.usage
        analysis = payload.get("analysis") if isinstance(payload.get("analysis"), dict) else {}
        payload["analysis"] = {
            **analysis,
            "provider": OPENAI_PROVIDER_ID,
            "model": response.model or model,
            "prompt_version": settings.OPENAI_PROMPT_VERSION,
            "token_usage": (
                {
                    "prompt_tokens": usage.prompt_tokens or 0,
                    "completion_tokens": usage.completion_tokens or 0,
                    "total_tokens": usage.total_tokens or 0,
                }
                if usage is not None
                else None
            ),
        }
        return payload

    async def evaluate(self, request: FeedbackRequest) -> Dict[str, Any]:
        return await asyncio.to_thread(self._complete, request)
