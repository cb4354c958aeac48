"""Shared job record columns and state machine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, Integer, JSON, String


DEFAULT_MAX_ATTEMPTS = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class JobFailure:
    retrying: bool


class JobRecordMixin:
    """Durable unit of work keyed by the subject it operates on.

    States: queued -> processing -> completed | queued (retry) | failed.
    Concrete models may relabel the states (transcription uses
    uploaded/transcribing/ready/failed) but the transitions are identical.
    """

    STATUS_QUEUED = "queued"
    STATUS_PROCESSING = "processing"
    STATUS_COMPLETED = "completed"
    STATUS_FAILED = "failed"

    SUBJECT_FIELD = "subject_id"
    IDEMPOTENCY_PREFIX = "job"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=DEFAULT_MAX_ATTEMPTS)
    error_code = Column(String, nullable=True)
    error_message = Column(String, nullable=True)
    error_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    idempotency_key = Column(String, nullable=False, unique=True)
    metadata_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @classmethod
    def statuses(cls) -> tuple:
        return (cls.STATUS_QUEUED, cls.STATUS_PROCESSING, cls.STATUS_COMPLETED, cls.STATUS_FAILED)

    @classmethod
    def generate_idempotency_key(cls, subject_id: str) -> str:
        return f"{cls.IDEMPOTENCY_PREFIX}-{subject_id}"

    @property
    def subject_id(self) -> Optional[str]:
        return getattr(self, self.SUBJECT_FIELD)

    def mark_processing(self) -> bool:
        """Claim the job. Only a queued job can be claimed; anything else is left untouched."""
        if self.status != self.STATUS_QUEUED:
            return False
        self.status = self.STATUS_PROCESSING
        self.started_at = utcnow()
        self.attempts = int(self.attempts or 0) + 1
        return True

    def mark_completed(self) -> None:
        self.status = self.STATUS_COMPLETED
        self.completed_at = utcnow()

    def mark_failed(self, error: BaseException) -> JobFailure:
        """Record ``error`` and requeue while attempts remain, otherwise fail terminally."""
        self.error_message = (str(error) or type(error).__name__)[:1000]
        self.error_code = str(getattr(error, "code", None) or "unknown")
        self.error_at = utcnow()

        if int(self.attempts or 0) < int(self.max_attempts or DEFAULT_MAX_ATTEMPTS):
            self.status = self.STATUS_QUEUED
            return JobFailure(retrying=True)

        self.status = self.STATUS_FAILED
        self.completed_at = utcnow()
        return JobFailure(retrying=False)

    def can_retry(self) -> bool:
        return (
            int(self.attempts or 0) < int(self.max_attempts or DEFAULT_MAX_ATTEMPTS)
            and self.status != self.STATUS_COMPLETED
        )

    def snapshot(self) -> dict:
        """Status view polled by clients waiting on the job."""
        last_error = None
        if self.error_message or self.error_code:
            last_error = {
                "message": self.error_message,
                "code": self.error_code,
                "occurred_at": self.error_at.isoformat() if self.error_at else None,
            }
        return {
            "id": self.id,
            "status": self.status,
            "attempts": int(self.attempts or 0),
            "max_attempts": int(self.max_attempts or DEFAULT_MAX_ATTEMPTS),
            "last_error": last_error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
