"""Deterministic STAR keyword scorer used as the always-available baseline."""

from __future__ import annotations

import re
from typing import Any, Dict, List

from services.feedback.validation import derive_overall, round_half_up
from services.providers.types import FeedbackProvider, FeedbackRequest

BASELINE_PROVIDER_ID = "baseline"

STAR_KEYWORDS = {
    "situation": (
        "situation", "context", "background", "when", "where", "once",
        "during", "while", "at the time", "previously", "in my role",
        "faced", "encountered", "challenge", "problem", "scenario",
    ),
    "task": (
        "task", "goal", "objective", "responsibility", "role", "needed to",
        "had to", "was responsible", "my job was", "assignment", "mission",
        "required", "expected", "supposed to", "aimed to",
    ),
    "action": (
        "action", "did", "implemented", "created", "developed", "organized",
        "led", "coordinated", "managed", "executed", "performed", "conducted",
        "initiated", "established", "facilitated", "collaborated", "worked",
        "analyzed", "designed", "built", "solved", "addressed", "handled",
    ),
    "result": (
        "result", "outcome", "achieved", "accomplished", "success", "impact",
        "delivered", "completed", "improved", "increased", "reduced", "saved",
        "gained", "learned", "ultimately", "finally", "consequently", "therefore",
        "as a result", "this led to", "ended up", "resulted in",
    ),
}


def _component_presence(text: str, component: str) -> Dict[str, Any]:
    lowered = text.lower()
    keywords = STAR_KEYWORDS[component]
    matched = [keyword for keyword in keywords if keyword in lowered]
    score = min(100.0, (len(matched) / len(keywords)) * 100 * 3)
    return {"score": round_half_up(score), "keywords_found": matched[:5]}


def _analyze_structure(text: str) -> Dict[str, Any]:
    sentences = [s for s in re.split(r"[.!?]+", text) if s.strip()]
    words = text.split()
    paragraphs = [p for p in re.split(r"\n\s*\n+", text) if p.strip()]
    return {
        "sentence_count": len(sentences),
        "word_count": len(words),
        "paragraph_count": len(paragraphs),
        "avg_words_per_sentence": round_half_up(len(words) / len(sentences)) if sentences else 0,
        "has_multiple_paragraphs": len(paragraphs) > 1,
    }


def _detail_score(structure: Dict[str, Any]) -> int:
    words = structure["word_count"]
    sentences = structure["sentence_count"]
    if 100 <= words <= 300:
        score = 40
    elif 50 <= words < 100:
        score = 25
    elif words > 300:
        score = 30
    else:
        score = 10

    if 5 <= sentences <= 12:
        score += 30
    elif sentences >= 3:
        score += 20
    else:
        score += 10

    score += 20 if structure["has_multiple_paragraphs"] else 10
    score += 10 if 15 <= structure["avg_words_per_sentence"] <= 25 else 5
    return min(100, score)


def _suggestions(scores: Dict[str, int], structure: Dict[str, Any]) -> List[str]:
    suggestions = []
    if scores["situation"] < 50:
        suggestions.append("Add more context about the situation: when and where it happened and what was at stake.")
    if scores["task"] < 50:
        suggestions.append("Clarify your specific role and what you were expected to accomplish.")
    if scores["action"] < 50:
        suggestions.append("Describe the actions you personally took, using concrete action verbs.")
    if scores["result"] < 50:
        suggestions.append("Emphasize the outcome of your actions and quantify the impact where possible.")

    if structure["word_count"] < 50:
        suggestions.append("Your response is brief. Aim for 100-200 words to give enough detail.")
    elif structure["word_count"] > 300:
        suggestions.append("Consider being more concise and focus on the most impactful details.")
    if not structure["has_multiple_paragraphs"] and structure["word_count"] > 100:
        suggestions.append("Break the answer into paragraphs, for example one per STAR component.")
    if structure["sentence_count"] < 4:
        suggestions.append("Add more sentences to elaborate on each part of your story.")

    star_scores = [scores[name] for name in ("situation", "task", "action", "result")]
    if max(star_scores) - min(star_scores) > 40:
        suggestions.append("Try to balance all four STAR components in your response.")
    return suggestions


def _strengths(scores: Dict[str, int], structure: Dict[str, Any]) -> List[str]:
    strengths = []
    if scores["situation"] >= 70:
        strengths.append("Strong situational context that sets up the story well.")
    if scores["task"] >= 70:
        strengths.append("Clear articulation of your role and responsibilities.")
    if scores["action"] >= 70:
        strengths.append("Detailed description of the actions you took.")
    if scores["result"] >= 70:
        strengths.append("Effective emphasis on outcomes and impact.")
    if 100 <= structure["word_count"] <= 250:
        strengths.append("Good response length: detailed but concise.")
    if structure["has_multiple_paragraphs"]:
        strengths.append("Well-structured response with clear organization.")
    if not strengths:
        strengths.append("You provided a response. Keep practicing to improve!")
    return strengths


def rating_for(overall: int) -> str:
    if overall >= 85:
        return "excellent"
    if overall >= 70:
        return "good"
    if overall >= 50:
        return "fair"
    return "needs_improvement"


def evaluate_response(response_text: str) -> Dict[str, Any]:
    text = response_text or ""
    structure = _analyze_structure(text)
    components = {name: _component_presence(text, name) for name in STAR_KEYWORDS}
    scores = {name: analysis["score"] for name, analysis in components.items()}
    scores["detail"] = _detail_score(structure)
    scores["overall"] = derive_overall(scores)

    return {
        "scores": scores,
        "rating": rating_for(scores["overall"]),
        "strengths": _strengths(scores, structure),
        "suggestions": _suggestions(scores, structure),
        "analysis": {
            "structure": structure,
            "star_components": components,
        },
    }


class RuleBasedFeedbackProvider(FeedbackProvider):
    id = BASELINE_PROVIDER_ID
    is_baseline = True

    async def evaluate(self, request: FeedbackRequest) -> Dict[str, Any]:
        return evaluate_response(request.response_text)
