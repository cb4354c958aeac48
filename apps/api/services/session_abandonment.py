"""Periodic sweep that closes out interview sessions left in progress."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select, update

from config import int_setting, positive_int
from database import async_session_maker
from models.interview_session import InterviewSession
from services.metrics import increment_counter

logger = logging.getLogger(__name__)


async def run_session_abandonment_cycle(
    stale_minutes: Optional[int] = None,
    batch_size: Optional[int] = None,
) -> Dict[str, Any]:
    """Mark the oldest idle ``in_progress`` sessions as ``abandoned``.

    The status is re-checked in the UPDATE itself, so a session completed
    between the select and the write is left alone.
    """
    stale_minutes = positive_int(stale_minutes, int_setting("SESSION_ABANDONMENT_STALE_MINUTES"))
    batch_size = positive_int(batch_size, int_setting("SESSION_ABANDONMENT_BATCH_SIZE"))
    threshold = datetime.now(timezone.utc) - timedelta(minutes=stale_minutes)

    async with async_session_maker() as db:
        result = await db.execute(
            select(InterviewSession.id)
            .where(
                InterviewSession.status == "in_progress",
                InterviewSession.updated_at < threshold,
            )
            .order_by(InterviewSession.updated_at.asc())
            .limit(batch_size)
        )
        session_ids = list(result.scalars().all())

        abandoned = 0
        for session_id in session_ids:
            now = datetime.now(timezone.utc)
            outcome = await db.execute(
                update(InterviewSession)
                .where(InterviewSession.id == session_id, InterviewSession.status == "in_progress")
                .values(status="abandoned", completed_at=now, updated_at=now)
            )
            await db.commit()
            abandoned += outcome.rowcount or 0

    if abandoned:
        increment_counter("mockinterview_sessions_abandoned_total", value=abandoned)
        logger.info("Abandoned %d stale session%s", abandoned, "" if abandoned == 1 else "s")
    return {"abandoned": abandoned, "candidates": len(session_ids)}
