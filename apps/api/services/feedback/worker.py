"""Feedback job pipeline: trigger, per-job processing and the periodic cycle."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from config import int_setting, positive_int, settings
from database import async_session_maker
from models.feedback_job import FeedbackJob
from models.feedback_report import FeedbackReport
from models.interview_question import InterviewQuestion
from models.interview_response import InterviewResponse
from models.interview_session import InterviewSession
from models.job_base import utcnow
from services.feedback.evaluator import evaluate_response_with_provider
from services.job_store import (
    JobLookup,
    claim_job,
    complete_job,
    count_queued_jobs,
    fail_job,
    find_or_create_for_subject,
    get_queued_jobs,
    recover_stale_jobs,
)
from services.metrics import increment_counter, observe_duration, set_gauge
from services.providers.types import NotFoundError

logger = logging.getLogger(__name__)


async def create_feedback_job(
    session_id: str,
    user_id: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> JobLookup:
    """Queue feedback generation for a completed session. Safe to call repeatedly."""
    job_metadata = dict(metadata or {})
    job_metadata.setdefault("provider", settings.FEEDBACK_PROVIDER)
    job_metadata.setdefault("correlation_id", str(uuid.uuid4()))

    async with async_session_maker() as db:
        lookup = await find_or_create_for_subject(db, FeedbackJob, session_id, user_id, job_metadata)

    increment_counter("mockinterview_jobs_created_total", {"pipeline": "feedback", "created": lookup.created})
    if lookup.created:
        logger.info("Queued feedback job %s for session %s", lookup.job.id, session_id)
    else:
        logger.info("Feedback job %s already exists for session %s", lookup.job.id, session_id)
    return lookup


async def _generate_feedback_reports_for_job(db: AsyncSession, job: FeedbackJob) -> Dict[str, int]:
    session = await db.get(InterviewSession, job.session_id)
    if session is None:
        raise NotFoundError(f"Session {job.session_id} not found")

    result = await db.execute(
        select(InterviewResponse)
        .where(InterviewResponse.session_id == session.id)
        .order_by(InterviewResponse.created_at.asc())
    )
    responses = list(result.scalars().all())
    if not responses:
        raise NotFoundError(f"No responses found for session {session.id}", code="no_responses")

    existing_result = await db.execute(
        select(FeedbackReport.response_id).where(FeedbackReport.session_id == session.id)
    )
    already_scored = set(existing_result.scalars().all())

    question_ids = {response.question_id for response in responses if response.question_id}
    questions: Dict[str, InterviewQuestion] = {}
    if question_ids:
        question_result = await db.execute(select(InterviewQuestion).where(InterviewQuestion.id.in_(question_ids)))
        questions = {question.id: question for question in question_result.scalars().all()}

    job_metadata = dict(job.metadata_json or {})
    provider_id = job_metadata.get("provider") or settings.FEEDBACK_PROVIDER
    correlation_id = job_metadata.get("correlation_id") or job.id

    generated = 0
    for response in responses:
        if response.id in already_scored:
            continue

        question = questions.get(response.question_id) if response.question_id else None
        outcome = await evaluate_response_with_provider(
            response.response_text,
            question.prompt_text if question else "",
            provider_id,
            question_id=response.question_id,
            correlation_id=correlation_id,
        )
        scores = outcome.evaluation["scores"]
        db.add(
            FeedbackReport(
                session_id=session.id,
                user_id=response.user_id,
                response_id=response.id,
                situation_score=scores["situation"],
                task_score=scores["task"],
                action_score=scores["action"],
                result_score=scores["result"],
                detail_score=scores.get("detail"),
                overall_score=scores["overall"],
                rating=outcome.evaluation["rating"],
                strengths=outcome.evaluation["strengths"],
                suggestions=outcome.evaluation["suggestions"],
                analysis_json=outcome.evaluation["analysis"],
                evaluator_type=outcome.evaluator_type,
                evaluator_metadata={**outcome.evaluator_metadata, "job_id": job.id},
                generated_at=utcnow(),
            )
        )
        # One commit per report so a later failure does not discard finished work.
        await db.commit()
        generated += 1

    summary = {
        "response_count": len(responses),
        "generated_count": generated,
        "skipped_count": len(responses) - generated,
    }
    job.metadata_json = {**job_metadata, **summary}
    return summary


async def process_feedback_job(job_id: str) -> Dict[str, Any]:
    """Claim and run one feedback job in its own session."""
    started = time.perf_counter()
    async with async_session_maker() as db:
        job = await db.get(FeedbackJob, job_id)
        if job is None:
            logger.warning("Feedback job %s not found", job_id)
            return {"processed": False, "reason": "not_found", "job_id": job_id}

        if not await claim_job(db, job):
            return {"processed": False, "reason": "not_claimable", "job_id": job_id}

        try:
            summary = await _generate_feedback_reports_for_job(db, job)
            await complete_job(db, job)
        except StaleDataError:
            await db.rollback()
            logger.warning("Feedback job %s was superseded while processing", job_id)
            return {"processed": False, "reason": "superseded", "job_id": job_id}
        except Exception as exc:
            logger.exception("Feedback job %s failed: %s", job_id, exc)
            await db.rollback()
            await db.refresh(job)
            failure = await fail_job(db, job, exc)
            status = "retrying" if failure.retrying else "failed"
            increment_counter("mockinterview_feedback_jobs_total", {"status": status})
            observe_duration(
                "mockinterview_feedback_job_duration_ms",
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

        increment_counter("mockinterview_feedback_jobs_total", {"status": "completed"})
        observe_duration(
            "mockinterview_feedback_job_duration_ms",
            (time.perf_counter() - started) * 1000,
            {"status": "completed"},
        )
        logger.info(
            "Feedback job %s completed (%d generated, %d skipped)",
            job_id,
            summary["generated_count"],
            summary["skipped_count"],
        )
        return {"processed": True, "job_id": job_id, "status": job.status, **summary}


async def recover_stale_feedback_jobs(stale_minutes: Optional[int] = None) -> int:
    stale_minutes = positive_int(stale_minutes, int_setting("FEEDBACK_JOB_STALE_MINUTES"))
    async with async_session_maker() as db:
        recovered = await recover_stale_jobs(
            db,
            FeedbackJob,
            stale_minutes,
            message=f"Feedback job exceeded {stale_minutes} minute processing window",
        )
    if recovered:
        increment_counter("mockinterview_feedback_stale_recovered_total", value=recovered)
    return recovered


async def process_next_feedback_jobs(batch_size: Optional[int] = None) -> Dict[str, Any]:
    """Drain up to ``batch_size`` queued jobs, oldest first, one after another."""
    batch_size = positive_int(batch_size, int_setting("FEEDBACK_JOB_BATCH_SIZE"))
    async with async_session_maker() as db:
        jobs = await get_queued_jobs(db, FeedbackJob, batch_size)
        job_ids = [job.id for job in jobs]

    results = []
    for job_id in job_ids:
        results.append(await process_feedback_job(job_id))
    return {"picked": len(job_ids), "results": results}


async def run_feedback_job_cycle() -> Dict[str, Any]:
    recovered = await recover_stale_feedback_jobs()
    drained = await process_next_feedback_jobs()
    async with async_session_maker() as db:
        depth = await count_queued_jobs(db, FeedbackJob)
    set_gauge("mockinterview_feedback_queue_depth", value=depth)
    return {"recovered": recovered, "queue_depth": depth, **drained}
