"""Durable job store: idempotent creation, queue queries and lifecycle transitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from config import int_setting
from models.job_base import JobFailure, JobRecordMixin
from services.providers.types import StaleJobError

logger = logging.getLogger(__name__)

J = TypeVar("J", bound=JobRecordMixin)


@dataclass
class JobLookup:
    job: Any
    created: bool


async def find_or_create_for_subject(
    db: AsyncSession,
    model: Type[J],
    subject_id: str,
    owner_id: str,
    metadata: Optional[Dict[str, Any]] = None,
    **fields: Any,
) -> JobLookup:
    """Insert the job for ``subject_id`` or return the one that already exists.

    The unique idempotency key makes the insert the arbiter: a concurrent or
    repeated trigger loses the race, rolls back and reads the winner's row.
    The session must not carry unrelated pending changes.
    """
    idempotency_key = model.generate_idempotency_key(subject_id)
    job = model(
        user_id=owner_id,
        status=model.STATUS_QUEUED,
        attempts=0,
        max_attempts=int_setting("JOB_MAX_ATTEMPTS"),
        idempotency_key=idempotency_key,
        metadata_json=dict(metadata or {}),
        **{model.SUBJECT_FIELD: subject_id},
        **fields,
    )
    db.add(job)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        result = await db.execute(select(model).where(model.idempotency_key == idempotency_key))
        existing = result.scalar_one_or_none()
        if existing is None:
            raise
        return JobLookup(job=existing, created=False)
    return JobLookup(job=job, created=True)


async def get_job_for_subject(db: AsyncSession, model: Type[J], subject_id: str) -> Optional[J]:
    result = await db.execute(
        select(model).where(model.idempotency_key == model.generate_idempotency_key(subject_id))
    )
    return result.scalar_one_or_none()


async def get_queued_jobs(db: AsyncSession, model: Type[J], limit: int = 10) -> List[J]:
    """Oldest queued jobs first."""
    result = await db.execute(
        select(model)
        .where(model.status == model.STATUS_QUEUED)
        .order_by(model.created_at.asc(), model.id.asc())
        .limit(max(int(limit), 0))
    )
    return list(result.scalars().all())


async def get_stale_processing_jobs(db: AsyncSession, model: Type[J], stale_minutes: int = 10) -> List[J]:
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=stale_minutes)
    result = await db.execute(
        select(model).where(
            model.status == model.STATUS_PROCESSING,
            model.started_at < cutoff,
        )
    )
    return list(result.scalars().all())


async def count_queued_jobs(db: AsyncSession, model: Type[J]) -> int:
    result = await db.execute(
        select(func.count()).select_from(model).where(model.status == model.STATUS_QUEUED)
    )
    return int(result.scalar_one())


async def claim_job(db: AsyncSession, job: JobRecordMixin) -> bool:
    """Move a queued job to processing. False when it was not queued or another writer got there first."""
    job_id = job.id
    if not job.mark_processing():
        return False
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        logger.warning("Job %s was modified concurrently; skipping claim", job_id)
        return False
    return True


async def complete_job(db: AsyncSession, job: JobRecordMixin) -> None:
    job.mark_completed()
    await db.commit()


async def fail_job(db: AsyncSession, job: JobRecordMixin, error: BaseException) -> JobFailure:
    failure = job.mark_failed(error)
    await db.commit()
    if failure.retrying:
        logger.info("Job %s requeued after attempt %s/%s: %s", job.id, job.attempts, job.max_attempts, error)
    else:
        logger.warning("Job %s failed permanently after %s attempts: %s", job.id, job.attempts, error)
    return failure


async def recover_stale_jobs(
    db: AsyncSession,
    model: Type[J],
    stale_minutes: int,
    *,
    message: str,
    on_failed: Optional[Callable[[AsyncSession, J, JobFailure], Awaitable[None]]] = None,
) -> int:
    """Fail every job stuck in processing past ``stale_minutes`` so it is retried or closed out.

    ``on_failed`` runs after each recovered job is committed, for pipelines that
    mirror the job outcome onto the subject record.
    """
    stale_ids = [job.id for job in await get_stale_processing_jobs(db, model, stale_minutes)]
    recovered = 0
    for job_id in stale_ids:
        # Re-read: a rollback below expires every loaded instance.
        job = await db.get(model, job_id)
        if job is None or job.status != model.STATUS_PROCESSING:
            continue
        try:
            failure = await fail_job(db, job, StaleJobError(message))
        except StaleDataError:
            await db.rollback()
            logger.warning("Stale job %s changed during recovery; leaving it to its owner", job_id)
            continue
        if on_failed is not None:
            await on_failed(db, job, failure)
        recovered += 1
    if recovered:
        logger.info("Recovered %d stale %s record(s)", recovered, model.__tablename__)
    return recovered
