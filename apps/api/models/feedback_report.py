"""Feedback report model."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String

from database import Base
from models.job_base import utcnow


class FeedbackReport(Base):
    """Scored STAR feedback for one response. Written once by the feedback pipeline."""

    __tablename__ = "feedback_reports"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String, ForeignKey("interview_sessions.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    response_id = Column(String, ForeignKey("interview_responses.id"), nullable=False, unique=True)

    situation_score = Column(Integer, nullable=False)
    task_score = Column(Integer, nullable=False)
    action_score = Column(Integer, nullable=False)
    result_score = Column(Integer, nullable=False)
    detail_score = Column(Integer, nullable=True)
    overall_score = Column(Integer, nullable=False)
    rating = Column(String, nullable=False)
    strengths = Column(JSON, nullable=False, default=list)
    suggestions = Column(JSON, nullable=False, default=list)
    analysis_json = Column(JSON, nullable=True)

    evaluator_type = Column(String, nullable=False)
    evaluator_metadata = Column(JSON, nullable=True)
    generated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    @property
    def scores(self) -> dict:
        return {
            "situation": self.situation_score,
            "task": self.task_score,
            "action": self.action_score,
            "result": self.result_score,
            "detail": self.detail_score,
            "overall": self.overall_score,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "response_id": self.response_id,
            "scores": self.scores,
            "rating": self.rating,
            "strengths": list(self.strengths or []),
            "suggestions": list(self.suggestions or []),
            "analysis": self.analysis_json or {},
            "evaluator_type": self.evaluator_type,
            "evaluator_metadata": self.evaluator_metadata or {},
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }
