from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import select

from models.feedback_job import FeedbackJob
from models.feedback_report import FeedbackReport
from models.job_base import utcnow
from services.feedback.worker import (
    create_feedback_job,
    process_feedback_job,
    recover_stale_feedback_jobs,
    run_feedback_job_cycle,
)
from services.metrics import metrics


async def _jobs(session_maker):
    async with session_maker() as db:
        return list((await db.execute(select(FeedbackJob))).scalars().all())


async def _reports(session_maker):
    async with session_maker() as db:
        return list((await db.execute(select(FeedbackReport))).scalars().all())


@pytest.mark.asyncio
async def test_cycle_scores_completed_session(session_maker, seed_interview):
    session_id, response_ids = await seed_interview(session_id="s1")

    lookup = await create_feedback_job(session_id, "user-1")
    cycle = await run_feedback_job_cycle()

    assert lookup.created is True
    assert cycle["picked"] == 1
    assert cycle["recovered"] == 0
    assert cycle["queue_depth"] == 0

    jobs = await _jobs(session_maker)
    assert len(jobs) == 1
    assert jobs[0].status == "completed"
    assert jobs[0].attempts == 1
    assert jobs[0].metadata_json["generated_count"] == 1
    assert jobs[0].metadata_json["provider"] == "baseline"

    reports = await _reports(session_maker)
    assert len(reports) == 1
    report = reports[0]
    assert report.response_id == response_ids[0]
    assert 0 <= report.overall_score <= 100
    assert report.evaluator_type == "baseline"
    assert report.evaluator_metadata["job_id"] == jobs[0].id
    assert report.evaluator_metadata["correlation_id"] == jobs[0].metadata_json["correlation_id"]

    assert metrics.counter_value("mockinterview_feedback_jobs_total", {"status": "completed"}) == 1
    assert metrics.gauge_value("mockinterview_feedback_queue_depth") == 0


@pytest.mark.asyncio
async def test_repeated_trigger_does_not_duplicate_job(session_maker, seed_interview):
    session_id, _ = await seed_interview()

    first = await create_feedback_job(session_id, "user-1")
    second = await create_feedback_job(session_id, "user-1")

    assert first.created is True
    assert second.created is False
    assert second.job.id == first.job.id
    assert len(await _jobs(session_maker)) == 1
    assert metrics.counter_value("mockinterview_jobs_created_total", {"pipeline": "feedback", "created": False}) == 1


@pytest.mark.asyncio
async def test_existing_reports_are_not_regenerated(session_maker, seed_interview):
    session_id, _ = await seed_interview(answers=["First answer with a result.", "Second answer."])
    lookup = await create_feedback_job(session_id, "user-1")
    await process_feedback_job(lookup.job.id)

    async with session_maker() as db:
        job = await db.get(FeedbackJob, lookup.job.id)
        job.status = "queued"
        await db.commit()

    result = await process_feedback_job(lookup.job.id)

    assert result["processed"] is True
    assert result["generated_count"] == 0
    assert result["skipped_count"] == 2
    assert len(await _reports(session_maker)) == 2


@pytest.mark.asyncio
async def test_missing_session_fails_after_attempt_budget(session_maker):
    lookup = await create_feedback_job("missing-session", "user-1")

    outcomes = [await process_feedback_job(lookup.job.id) for _ in range(3)]

    assert [outcome["retrying"] for outcome in outcomes] == [True, True, False]
    assert outcomes[-1]["status"] == "failed"

    jobs = await _jobs(session_maker)
    assert jobs[0].status == "failed"
    assert jobs[0].attempts == 3
    assert jobs[0].error_code == "not_found"
    assert jobs[0].completed_at is not None

    fourth = await process_feedback_job(lookup.job.id)
    assert fourth == {"processed": False, "reason": "not_claimable", "job_id": lookup.job.id}


@pytest.mark.asyncio
async def test_session_without_responses_records_specific_code(session_maker, seed_interview):
    session_id, _ = await seed_interview(answers=[])
    lookup = await create_feedback_job(session_id, "user-1")

    result = await process_feedback_job(lookup.job.id)

    assert result["retrying"] is True
    jobs = await _jobs(session_maker)
    assert jobs[0].status == "queued"
    assert jobs[0].error_code == "no_responses"


@pytest.mark.asyncio
async def test_stale_processing_job_is_reclaimed(session_maker, seed_interview):
    session_id, _ = await seed_interview()
    lookup = await create_feedback_job(session_id, "user-1")

    async with session_maker() as db:
        job = await db.get(FeedbackJob, lookup.job.id)
        job.status = "processing"
        job.attempts = 1
        job.started_at = utcnow() - timedelta(minutes=20)
        await db.commit()

    recovered = await recover_stale_feedback_jobs(stale_minutes=10)

    assert recovered == 1
    jobs = await _jobs(session_maker)
    assert jobs[0].status == "queued"
    assert jobs[0].error_code == "stale_timeout"
    assert metrics.counter_value("mockinterview_feedback_stale_recovered_total") == 1


@pytest.mark.asyncio
async def test_stale_job_without_attempts_left_is_failed(session_maker, seed_interview):
    session_id, _ = await seed_interview()
    lookup = await create_feedback_job(session_id, "user-1")

    async with session_maker() as db:
        job = await db.get(FeedbackJob, lookup.job.id)
        job.status = "processing"
        job.attempts = 3
        job.started_at = utcnow() - timedelta(minutes=20)
        await db.commit()

    with patch("services.feedback.worker.settings.FEEDBACK_JOB_STALE_MINUTES", 10):
        cycle = await run_feedback_job_cycle()

    assert cycle["recovered"] == 1
    assert cycle["picked"] == 0
    jobs = await _jobs(session_maker)
    assert jobs[0].status == "failed"


@pytest.mark.asyncio
async def test_cycle_drains_oldest_jobs_up_to_batch_size(session_maker, seed_interview):
    session_ids = []
    for index in range(3):
        session_id, _ = await seed_interview(session_id=f"batch-{index}")
        session_ids.append(session_id)
        await create_feedback_job(session_id, "user-1")

    with patch("services.feedback.worker.settings.FEEDBACK_JOB_BATCH_SIZE", 2):
        first = await run_feedback_job_cycle()
    assert first["picked"] == 2
    assert first["queue_depth"] == 1

    jobs = {job.session_id: job for job in await _jobs(session_maker)}
    assert jobs["batch-0"].status == "completed"
    assert jobs["batch-1"].status == "completed"
    assert jobs["batch-2"].status == "queued"

    second = await run_feedback_job_cycle()
    assert second["picked"] == 1
    assert second["queue_depth"] == 0
