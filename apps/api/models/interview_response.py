"""Interview response model."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text

from database import Base
from models.job_base import utcnow


TRANSCRIPTION_STATUSES = ("none", "uploaded", "transcribing", "ready", "failed", "review_required")


class InterviewResponse(Base):
    """Typed or recorded answer to one question within a session."""

    __tablename__ = "interview_responses"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String, ForeignKey("interview_sessions.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    question_id = Column(String, ForeignKey("interview_questions.id"), nullable=True)
    response_text = Column(Text, nullable=False, default="")
    response_type = Column(String, nullable=False, default="text")  # text, audio_transcript

    audio_url = Column(String, nullable=True)
    audio_mime_type = Column(String, nullable=True)
    audio_size_bytes = Column(Integer, nullable=True)
    audio_duration_seconds = Column(Float, nullable=True)

    transcription_status = Column(String, nullable=False, default="none", index=True)
    transcript_confidence = Column(Float, nullable=True)
    transcript_provider = Column(String, nullable=True)
    transcript_segments = Column(JSON, nullable=True)
    transcript_edited = Column(Boolean, nullable=False, default=False)

    submitted_at = Column(DateTime(timezone=True), default=utcnow)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
