"""Transcription job pipeline: trigger, per-job processing and the periodic cycle."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from config import int_setting, is_feature_enabled, positive_int, settings
from database import async_session_maker
from models.interview_response import InterviewResponse
from models.job_base import JobFailure
from models.transcription_job import TranscriptionJob
from services.job_store import (
    JobLookup,
    claim_job,
    count_queued_jobs,
    fail_job,
    find_or_create_for_subject,
    get_queued_jobs,
    recover_stale_jobs,
)
from services.metrics import increment_counter, observe_duration, set_gauge
from services.providers.types import FeatureDisabledError, NotFoundError, TranscriptionRequest, TranscriptResult
from services.transcription.transcriber import transcribe_with_provider

logger = logging.getLogger(__name__)


async def create_transcription_job(
    response_id: str,
    session_id: str,
    user_id: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> JobLookup:
    """Queue transcription of an uploaded recording. Safe to call repeatedly."""
    if not is_feature_enabled("transcription"):
        raise FeatureDisabledError("Transcription is disabled")

    job_metadata = dict(metadata or {})
    job_metadata.setdefault("provider", settings.TRANSCRIPTION_PROVIDER)

    async with async_session_maker() as db:
        lookup = await find_or_create_for_subject(
            db,
            TranscriptionJob,
            response_id,
            user_id,
            job_metadata,
            session_id=session_id,
        )
        if lookup.created:
            await db.execute(
                update(InterviewResponse)
                .where(InterviewResponse.id == response_id, InterviewResponse.user_id == user_id)
                .values(transcription_status="uploaded")
            )
            await db.commit()

    increment_counter("mockinterview_jobs_created_total", {"pipeline": "transcription", "created": lookup.created})
    if lookup.created:
        logger.info("Queued transcription job %s for response %s", lookup.job.id, response_id)
    return lookup


def _apply_transcript(response: InterviewResponse, result: TranscriptResult) -> None:
    confidence = min(1.0, max(0.0, float(result.confidence or 0)))
    response.response_text = (result.text or "").strip()
    response.response_type = "audio_transcript"
    response.transcript_confidence = confidence
    response.transcript_provider = result.provider or settings.TRANSCRIPTION_PROVIDER
    response.transcript_segments = [segment.as_dict() for segment in result.segments]
    response.transcription_status = (
        "review_required" if confidence < settings.TRANSCRIPT_REVIEW_CONFIDENCE_THRESHOLD else "ready"
    )
    response.transcript_edited = False


async def _mirror_failure_on_response(db: AsyncSession, job: TranscriptionJob, failure: JobFailure) -> None:
    await db.execute(
        update(InterviewResponse)
        .where(InterviewResponse.id == job.response_id, InterviewResponse.user_id == job.user_id)
        .values(transcription_status="uploaded" if failure.retrying else "failed")
    )
    await db.commit()


async def _load_response(db: AsyncSession, job: TranscriptionJob) -> InterviewResponse:
    result = await db.execute(
        select(InterviewResponse).where(
            InterviewResponse.id == job.response_id,
            InterviewResponse.user_id == job.user_id,
        )
    )
    response = result.scalar_one_or_none()
    if response is None:
        raise NotFoundError(f"Interview response {job.response_id} not found for transcription")
    return response


async def process_transcription_job(job_id: str) -> Dict[str, Any]:
    """Claim and run one transcription job in its own session."""
    started = time.perf_counter()
    async with async_session_maker() as db:
        job = await db.get(TranscriptionJob, job_id)
        if job is None:
            logger.warning("Transcription job %s not found", job_id)
            return {"processed": False, "reason": "not_found", "job_id": job_id}

        if not await claim_job(db, job):
            return {"processed": False, "reason": "not_claimable", "job_id": job_id}

        try:
            response = await _load_response(db, job)
            response.transcription_status = "transcribing"
            await db.commit()

            job_metadata = job.metadata_json or {}
            request = TranscriptionRequest(
                response_id=response.id,
                audio_url=job_metadata.get("audio_url") or response.audio_url,
                audio_mime_type=response.audio_mime_type,
                audio_duration_seconds=response.audio_duration_seconds,
                existing_text=response.response_text or "",
            )
            outcome = await transcribe_with_provider(request, job_metadata.get("provider"))
            result = outcome.value

            _apply_transcript(response, result)
            job.metadata_json = {**job_metadata, "attempt_errors": outcome.attempt_errors}
            job.mark_ready(transcript_text=response.response_text, confidence=response.transcript_confidence)
            await db.commit()
        except StaleDataError:
            await db.rollback()
            logger.warning("Transcription job %s was superseded while processing", job_id)
            return {"processed": False, "reason": "superseded", "job_id": job_id}
        except Exception as exc:
            logger.exception("Transcription job %s failed: %s", job_id, exc)
            await db.rollback()
            await db.refresh(job)
            failure = await fail_job(db, job, exc)
            await _mirror_failure_on_response(db, job, failure)

            status = "retrying" if failure.retrying else "failed"
            increment_counter("mockinterview_transcription_jobs_total", {"status": status})
            observe_duration(
                "mockinterview_transcription_job_duration_ms",
                (time.perf_counter() - started) * 1000,
                {"status": status},
            )
            return {
                "processed": True,
                "job_id": job_id,
                "status": job.status,
                "retrying": failure.retrying,
                "error": str(exc),
            }

        increment_counter("mockinterview_transcription_jobs_total", {"status": "ready"})
        observe_duration(
            "mockinterview_transcription_job_duration_ms",
            (time.perf_counter() - started) * 1000,
            {"status": "ready"},
        )
        logger.info(
            "Transcription job %s ready (provider=%s, confidence=%.2f, response status=%s)",
            job_id,
            response.transcript_provider,
            response.transcript_confidence,
            response.transcription_status,
        )
        return {
            "processed": True,
            "job_id": job_id,
            "status": job.status,
            "response_id": response.id,
            "response_status": response.transcription_status,
        }


async def recover_stale_transcription_jobs(stale_minutes: Optional[int] = None) -> int:
    stale_minutes = positive_int(stale_minutes, int_setting("TRANSCRIPTION_JOB_STALE_MINUTES"))
    async with async_session_maker() as db:
        recovered = await recover_stale_jobs(
            db,
            TranscriptionJob,
            stale_minutes,
            message="Transcription job timed out",
            on_failed=_mirror_failure_on_response,
        )
    if recovered:
        increment_counter("mockinterview_transcription_stale_recovered_total", value=recovered)
    return recovered


async def process_next_transcription_jobs(batch_size: Optional[int] = None) -> Dict[str, Any]:
    batch_size = positive_int(batch_size, int_setting("TRANSCRIPTION_JOB_BATCH_SIZE"))
    async with async_session_maker() as db:
        jobs = await get_queued_jobs(db, TranscriptionJob, batch_size)
        job_ids = [job.id for job in jobs]

    results = []
    for job_id in job_ids:
        results.append(await process_transcription_job(job_id))
    return {"picked": len(job_ids), "results": results}


async def run_transcription_job_cycle() -> Dict[str, Any]:
    recovered = await recover_stale_transcription_jobs()
    drained = await process_next_transcription_jobs()
    async with async_session_maker() as db:
        depth = await count_queued_jobs(db, TranscriptionJob)
    set_gauge("mockinterview_transcription_queue_depth", value=depth)
    return {"recovered": recovered, "queue_depth": depth, **drained}
