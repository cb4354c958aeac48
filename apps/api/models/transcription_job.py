"""Transcription job model."""

from sqlalchemy import Column, Float, ForeignKey, Integer, String, Text

from database import Base
from models.job_base import JobRecordMixin


class TranscriptionJob(JobRecordMixin, Base):
    """Queued transcription of one uploaded audio response."""

    __tablename__ = "transcription_jobs"

    STATUS_QUEUED = "uploaded"
    STATUS_PROCESSING = "transcribing"
    STATUS_COMPLETED = "ready"
    STATUS_FAILED = "failed"

    SUBJECT_FIELD = "response_id"
    IDEMPOTENCY_PREFIX = "transcription-job"

    response_id = Column(String, ForeignKey("interview_responses.id"), nullable=False, unique=True)
    session_id = Column(String, ForeignKey("interview_sessions.id"), nullable=False, index=True)
    transcript_text = Column(Text, nullable=False, default="")
    confidence = Column(Float, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def mark_ready(self, *, transcript_text=None, confidence=None) -> None:
        if isinstance(transcript_text, str):
            self.transcript_text = transcript_text
        if isinstance(confidence, (int, float)):
            self.confidence = float(confidence)
        self.mark_completed()
