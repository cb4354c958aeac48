import math

from services.feedback.validation import (
    derive_overall,
    round_half_up,
    to_score,
    validate_feedback_evaluation,
)
from services.metrics import metrics


def test_valid_payload_is_rounded_and_accepted():
    result = validate_feedback_evaluation(
        {
            "scores": {
                "situation": 70.2,
                "task": 68.6,
                "action": 81.4,
                "result": 86,
                "detail": 65.1,
                "overall": 77.8,
            },
            "rating": "good",
            "strengths": ["Clear actions"],
            "suggestions": ["Quantify the result"],
        }
    )

    assert result.valid is True
    assert result.errors == []
    assert result.evaluation["scores"] == {
        "situation": 70,
        "task": 69,
        "action": 81,
        "result": 86,
        "detail": 65,
        "overall": 78,
    }
    assert result.evaluation["rating"] == "good"


def test_invalid_scores_and_rating_fall_back_to_defaults():
    result = validate_feedback_evaluation(
        {
            "scores": {"situation": "bad", "task": None, "action": 55, "result": 60},
            "rating": "unknown",
            "strengths": ["ok"],
            "suggestions": [],
        }
    )

    assert result.valid is False
    assert result.evaluation["scores"]["situation"] == 0
    assert result.evaluation["scores"]["task"] == 0
    assert result.evaluation["rating"] == "needs_improvement"
    assert "scores.situation must be a finite number" in result.errors
    assert "scores.task must be a finite number" in result.errors
    assert any(error.startswith("rating") for error in result.errors)
    assert metrics.counter_value("mockinterview_feedback_validation_errors_total") == 3


def test_missing_overall_is_derived_from_weights():
    scores = {"situation": 80, "task": 60, "action": 70, "result": 90, "detail": 50}
    result = validate_feedback_evaluation({"scores": scores, "rating": "fair"})

    # 16 + 12 + 17.5 + 22.5 + 5 = 73
    assert result.evaluation["scores"]["overall"] == 73
    assert result.evaluation["scores"]["overall"] == derive_overall(scores)
    assert result.valid is True


def test_missing_detail_defaults_to_zero_without_an_error():
    result = validate_feedback_evaluation(
        {"scores": {"situation": 50, "task": 50, "action": 50, "result": 50}, "rating": "fair"}
    )

    assert result.valid is True
    assert result.evaluation["scores"]["detail"] == 0
    assert result.evaluation["scores"]["overall"] == 45


def test_scores_are_clamped_to_range():
    result = validate_feedback_evaluation(
        {
            "scores": {"situation": 140, "task": -12, "action": "88.5", "result": 100, "overall": 250},
            "rating": "EXCELLENT",
        }
    )

    scores = result.evaluation["scores"]
    assert scores["situation"] == 100
    assert scores["task"] == 0
    assert scores["action"] == 89
    assert scores["overall"] == 100
    assert result.evaluation["rating"] == "excellent"


def test_lists_are_filtered_and_capped():
    result = validate_feedback_evaluation(
        {
            "scores": {"situation": 1, "task": 1, "action": 1, "result": 1},
            "rating": "fair",
            "strengths": ["  one  ", "", 3, None, "two"],
            "suggestions": [f"tip {index}" for index in range(10)],
        }
    )

    assert result.evaluation["strengths"] == ["one", "two"]
    assert len(result.evaluation["suggestions"]) == 6


def test_non_dict_payload_is_normalized_not_raised():
    result = validate_feedback_evaluation("not json")

    assert result.valid is False
    assert result.evaluation["scores"]["overall"] == 0
    assert result.evaluation["strengths"] == []
    assert result.evaluation["analysis"] == {}


def test_to_score_rejects_non_numbers():
    assert to_score(True) is None
    assert to_score(math.inf) is None
    assert to_score(float("nan")) is None
    assert to_score("abc") is None
    assert to_score("42") == 42


def test_oversized_integer_score_is_normalized_not_raised():
    result = validate_feedback_evaluation(
        {"scores": {"situation": 10**400, "task": 50, "action": 50, "result": 50}, "rating": "good"}
    )

    assert result.valid is False
    assert result.evaluation["scores"]["situation"] == 0
    assert result.evaluation["scores"]["task"] == 50
    assert "scores.situation must be a finite number" in result.errors


def test_round_half_up_matches_score_rounding():
    assert round_half_up(77.5) == 78
    assert round_half_up(76.5) == 77
    assert round_half_up(0.49) == 0
