"""Feedback job model."""

from sqlalchemy import Column, ForeignKey, Integer, String

from database import Base
from models.job_base import JobRecordMixin


class FeedbackJob(JobRecordMixin, Base):
    """Queued feedback generation for every response of a completed session."""

    __tablename__ = "feedback_jobs"

    SUBJECT_FIELD = "session_id"
    IDEMPOTENCY_PREFIX = "feedback-job"

    session_id = Column(String, ForeignKey("interview_sessions.id"), nullable=False, unique=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
