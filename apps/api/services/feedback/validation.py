"""Normalization of provider evaluations before they are persisted."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from services.metrics import increment_counter

logger = logging.getLogger(__name__)

ALLOWED_RATINGS = ("excellent", "good", "fair", "needs_improvement")
DEFAULT_RATING = "needs_improvement"
STAR_FIELDS = ("situation", "task", "action", "result")
OVERALL_WEIGHTS = {
    "situation": 0.2,
    "task": 0.2,
    "action": 0.25,
    "result": 0.25,
    "detail": 0.1,
}
MAX_LIST_ITEMS = 6


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    evaluation: Dict[str, Any] = field(default_factory=dict)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def to_score(value: Any) -> Optional[int]:
    """Clamp a finite number to the integer range [0, 100]; ``None`` when not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(parsed):
        return None
    return max(0, min(100, round_half_up(parsed)))


def derive_overall(scores: Dict[str, int]) -> int:
    return round_half_up(sum(scores[name] * weight for name, weight in OVERALL_WEIGHTS.items()))


def sanitize_string_list(value: Any, max_items: int = MAX_LIST_ITEMS) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    cleaned = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return cleaned[:max_items]


def validate_feedback_evaluation(payload: Any) -> ValidationResult:
    """Coerce ``payload`` into a safe evaluation.

    Invalid input never raises: bad fields fall back to defaults and are
    reported in ``errors`` so callers can decide whether to trust the provider.
    """
    source = payload if isinstance(payload, dict) else {}
    source_scores = source.get("scores") if isinstance(source.get("scores"), dict) else {}
    errors: List[str] = []
    defaulted: List[str] = []

    scores: Dict[str, Optional[int]] = {
        name: to_score(source_scores.get(name)) for name in (*STAR_FIELDS, "detail", "overall")
    }

    for name in STAR_FIELDS:
        if scores[name] is None:
            errors.append(f"scores.{name} must be a finite number")
            scores[name] = 0
            defaulted.append(f"scores.{name}")

    if scores["detail"] is None:
        scores["detail"] = 0
        defaulted.append("scores.detail")

    if scores["overall"] is None:
        scores["overall"] = derive_overall(scores)
        defaulted.append("scores.overall")

    raw_rating = source.get("rating")
    rating = raw_rating.strip().lower() if isinstance(raw_rating, str) else ""
    if rating not in ALLOWED_RATINGS:
        errors.append("rating must be one of excellent|good|fair|needs_improvement")
        defaulted.append("rating")
        rating = DEFAULT_RATING

    if defaulted:
        logger.warning(
            "Normalized invalid evaluation fields: %s (scores=%r rating=%r)",
            ", ".join(defaulted),
            source_scores,
            raw_rating,
        )
    if errors:
        increment_counter("mockinterview_feedback_validation_errors_total", value=len(errors))

    analysis = source.get("analysis")
    evaluation = {
        "scores": scores,
        "rating": rating,
        "strengths": sanitize_string_list(source.get("strengths")),
        "suggestions": sanitize_string_list(source.get("suggestions")),
        "analysis": analysis if isinstance(analysis, dict) else {},
    }
    return ValidationResult(valid=not errors, errors=errors, evaluation=evaluation)
