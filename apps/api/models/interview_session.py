"""Interview session model."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from database import Base
from models.job_base import utcnow


SESSION_STATUSES = ("in_progress", "completed", "abandoned")


class InterviewSession(Base):
    """One practice run; left in_progress too long it is swept to abandoned."""

    __tablename__ = "interview_sessions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="in_progress", index=True)
    started_at = Column(DateTime(timezone=True), default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, index=True)
