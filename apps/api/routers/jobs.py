"""Feedback and transcription job triggers plus status polling."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.feedback_job import FeedbackJob
from models.feedback_report import FeedbackReport
from models.interview_response import InterviewResponse
from models.interview_session import InterviewSession
from models.transcription_job import TranscriptionJob
from services.feedback.worker import create_feedback_job
from services.job_store import get_job_for_subject
from services.providers.types import FeatureDisabledError
from services.transcription.worker import create_transcription_job

router = APIRouter()


class CreateFeedbackJobRequest(BaseModel):
    user_id: str = Field(min_length=1)
    provider: Optional[str] = None


class CreateTranscriptionJobRequest(BaseModel):
    user_id: str = Field(min_length=1)
    provider: Optional[str] = None
    audio_url: Optional[str] = None


class JobErrorResponse(BaseModel):
    message: Optional[str] = None
    code: Optional[str] = None
    occurred_at: Optional[str] = None


class JobSnapshotResponse(BaseModel):
    job_id: str
    subject_id: str
    status: str
    attempts: int
    max_attempts: int
    last_error: Optional[JobErrorResponse] = None
    created: Optional[bool] = None
    created_at: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None


class FeedbackReportsResponse(BaseModel):
    session_id: str
    reports: List[Dict[str, Any]]


def _serialize_job(job, created: Optional[bool] = None) -> JobSnapshotResponse:
    snapshot = job.snapshot()
    return JobSnapshotResponse(
        job_id=snapshot.pop("id"),
        subject_id=job.subject_id,
        created=created,
        **snapshot,
    )


async def _owned_session(db: AsyncSession, session_id: str, user_id: str) -> InterviewSession:
    result = await db.execute(
        select(InterviewSession).where(InterviewSession.id == session_id, InterviewSession.user_id == user_id)
    )
    session = result.scalar_one_or_none()
    if session is None:
        raise HTTPException(status_code=404, detail="Interview session not found")
    return session


async def _owned_response(db: AsyncSession, response_id: str, user_id: str) -> InterviewResponse:
    result = await db.execute(
        select(InterviewResponse).where(InterviewResponse.id == response_id, InterviewResponse.user_id == user_id)
    )
    response = result.scalar_one_or_none()
    if response is None:
        raise HTTPException(status_code=404, detail="Interview response not found")
    return response


@router.post("/sessions/{session_id}/feedback-job", response_model=JobSnapshotResponse)
async def trigger_feedback_job(
    session_id: str,
    request: CreateFeedbackJobRequest,
    db: AsyncSession = Depends(get_db),
):
    await _owned_session(db, session_id, request.user_id)
    metadata = {"provider": request.provider} if request.provider else None
    lookup = await create_feedback_job(session_id, request.user_id, metadata)
    return _serialize_job(lookup.job, created=lookup.created)


@router.get("/sessions/{session_id}/feedback-job", response_model=JobSnapshotResponse)
async def get_feedback_job_status(
    session_id: str,
    user_id: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
):
    job = await get_job_for_subject(db, FeedbackJob, session_id)
    if job is None or job.user_id != user_id:
        raise HTTPException(status_code=404, detail="Feedback job not found")
    return _serialize_job(job)


@router.get("/sessions/{session_id}/feedback", response_model=FeedbackReportsResponse)
async def list_feedback_reports(
    session_id: str,
    user_id: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
):
    await _owned_session(db, session_id, user_id)
    result = await db.execute(
        select(FeedbackReport)
        .where(FeedbackReport.session_id == session_id, FeedbackReport.user_id == user_id)
        .order_by(FeedbackReport.generated_at.asc())
    )
    return FeedbackReportsResponse(
        session_id=session_id,
        reports=[report.to_dict() for report in result.scalars().all()],
    )


@router.post("/responses/{response_id}/transcription-job", response_model=JobSnapshotResponse)
async def trigger_transcription_job(
    response_id: str,
    request: CreateTranscriptionJobRequest,
    db: AsyncSession = Depends(get_db),
):
    response = await _owned_response(db, response_id, request.user_id)
    metadata: Dict[str, Any] = {}
    if request.provider:
        metadata["provider"] = request.provider
    if request.audio_url or response.audio_url:
        metadata["audio_url"] = request.audio_url or response.audio_url
    try:
        lookup = await create_transcription_job(response_id, response.session_id, request.user_id, metadata)
    except FeatureDisabledError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return _serialize_job(lookup.job, created=lookup.created)


@router.get("/responses/{response_id}/transcription-job", response_model=JobSnapshotResponse)
async def get_transcription_job_status(
    response_id: str,
    user_id: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
):
    job = await get_job_for_subject(db, TranscriptionJob, response_id)
    if job is None or job.user_id != user_id:
        raise HTTPException(status_code=404, detail="Transcription job not found")
    return _serialize_job(job)
