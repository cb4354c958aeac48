"""Interview question model."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.sql import func

from database import Base


class InterviewQuestion(Base):
    """Behavioral prompt answered during a practice session."""

    __tablename__ = "interview_questions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String, nullable=False)
    question_text = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True, index=True)
    difficulty = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def prompt_text(self) -> str:
        return self.question_text or self.description or self.title or ""
