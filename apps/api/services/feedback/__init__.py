"""STAR feedback scoring: providers, validation and the feedback job pipeline."""

from services.feedback.evaluator import (
    FeedbackEvaluation,
    evaluate_response_with_provider,
    get_available_feedback_providers,
    get_feedback_provider,
)
from services.feedback.validation import ValidationResult, validate_feedback_evaluation
from services.feedback.worker import create_feedback_job, process_feedback_job, run_feedback_job_cycle

__all__ = [
    "FeedbackEvaluation",
    "ValidationResult",
    "create_feedback_job",
    "evaluate_response_with_provider",
    "get_available_feedback_providers",
    "get_feedback_provider",
    "process_feedback_job",
    "run_feedback_job_cycle",
    "validate_feedback_evaluation",
]
