"""Models package."""

from .user import User
from .interview_question import InterviewQuestion
from .interview_session import InterviewSession
from .interview_response import InterviewResponse
from .feedback_report import FeedbackReport
from .feedback_job import FeedbackJob
from .transcription_job import TranscriptionJob
