import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from models.feedback_job import FeedbackJob
from models.job_base import utcnow
from services.job_store import (
    claim_job,
    count_queued_jobs,
    find_or_create_for_subject,
    get_queued_jobs,
    get_stale_processing_jobs,
    recover_stale_jobs,
)


async def _job_count(session_maker) -> int:
    async with session_maker() as db:
        result = await db.execute(select(func.count()).select_from(FeedbackJob))
        return int(result.scalar_one())


@pytest.mark.asyncio
async def test_find_or_create_returns_existing_job_on_second_call(session_maker, seed_interview):
    session_id, _ = await seed_interview()

    async with session_maker() as db:
        first = await find_or_create_for_subject(db, FeedbackJob, session_id, "user-1", {"provider": "baseline"})
    async with session_maker() as db:
        second = await find_or_create_for_subject(db, FeedbackJob, session_id, "user-1", {"provider": "openai"})

    assert first.created is True
    assert second.created is False
    assert second.job.id == first.job.id
    assert second.job.metadata_json == {"provider": "baseline"}
    assert first.job.status == "queued"
    assert first.job.attempts == 0
    assert first.job.max_attempts == 3
    assert await _job_count(session_maker) == 1


@pytest.mark.asyncio
async def test_concurrent_creates_yield_a_single_job(session_maker, seed_interview):
    session_id, _ = await seed_interview()

    async def _create():
        async with session_maker() as db:
            return await find_or_create_for_subject(db, FeedbackJob, session_id, "user-1")

    results = await asyncio.gather(_create(), _create())

    assert sorted(result.created for result in results) == [False, True]
    assert results[0].job.id == results[1].job.id
    assert await _job_count(session_maker) == 1


@pytest.mark.asyncio
async def test_queued_jobs_are_returned_oldest_first(session_maker, seed_interview):
    session_ids = []
    for index in range(3):
        session_id, _ = await seed_interview(session_id=f"session-{index}")
        session_ids.append(session_id)

    async with session_maker() as db:
        for session_id in session_ids:
            await find_or_create_for_subject(db, FeedbackJob, session_id, "user-1")

    async with session_maker() as db:
        queued = await get_queued_jobs(db, FeedbackJob, limit=2)
        depth = await count_queued_jobs(db, FeedbackJob)

    assert [job.session_id for job in queued] == ["session-0", "session-1"]
    assert depth == 3


@pytest.mark.asyncio
async def test_claim_job_only_claims_queued_jobs(session_maker, seed_interview):
    session_id, _ = await seed_interview()
    async with session_maker() as db:
        lookup = await find_or_create_for_subject(db, FeedbackJob, session_id, "user-1")

    async with session_maker() as db:
        job = await db.get(FeedbackJob, lookup.job.id)
        assert await claim_job(db, job) is True
        assert await claim_job(db, job) is False

    async with session_maker() as db:
        job = await db.get(FeedbackJob, lookup.job.id)
        assert job.status == "processing"
        assert job.attempts == 1


@pytest.mark.asyncio
async def test_claim_loses_to_a_concurrent_writer(session_maker, seed_interview):
    session_id, _ = await seed_interview()
    async with session_maker() as db:
        lookup = await find_or_create_for_subject(db, FeedbackJob, session_id, "user-1")

    async with session_maker() as first_db, session_maker() as second_db:
        first = await first_db.get(FeedbackJob, lookup.job.id)
        second = await second_db.get(FeedbackJob, lookup.job.id)

        assert await claim_job(first_db, first) is True
        assert await claim_job(second_db, second) is False

    async with session_maker() as db:
        job = await db.get(FeedbackJob, lookup.job.id)
        assert job.attempts == 1


@pytest.mark.asyncio
async def test_recover_stale_jobs_requeues_or_fails(session_maker, seed_interview):
    requeue_session, _ = await seed_interview(session_id="stale-requeue")
    exhausted_session, _ = await seed_interview(session_id="stale-exhausted")
    fresh_session, _ = await seed_interview(session_id="fresh")

    async with session_maker() as db:
        for session_id in (requeue_session, exhausted_session, fresh_session):
            await find_or_create_for_subject(db, FeedbackJob, session_id, "user-1")

    async with session_maker() as db:
        jobs = {job.session_id: job for job in (await db.execute(select(FeedbackJob))).scalars().all()}
        for session_id, attempts, minutes_ago in (
            (requeue_session, 1, 20),
            (exhausted_session, 3, 20),
            (fresh_session, 1, 1),
        ):
            jobs[session_id].status = "processing"
            jobs[session_id].attempts = attempts
            jobs[session_id].started_at = utcnow() - timedelta(minutes=minutes_ago)
        await db.commit()

    async with session_maker() as db:
        stale = await get_stale_processing_jobs(db, FeedbackJob, stale_minutes=10)
        assert {job.session_id for job in stale} == {requeue_session, exhausted_session}

        recovered = await recover_stale_jobs(db, FeedbackJob, 10, message="timed out")
        assert recovered == 2

    async with session_maker() as db:
        jobs = {job.session_id: job for job in (await db.execute(select(FeedbackJob))).scalars().all()}

    assert jobs[requeue_session].status == "queued"
    assert jobs[requeue_session].error_code == "stale_timeout"
    assert jobs[exhausted_session].status == "failed"
    assert jobs[exhausted_session].completed_at is not None
    assert jobs[fresh_session].status == "processing"
