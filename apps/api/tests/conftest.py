import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RUN_WORKERS_IN_API", "false")

from contextlib import ExitStack
from datetime import datetime
from typing import List, Optional
from unittest.mock import patch

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base
from models.interview_question import InterviewQuestion
from models.interview_response import InterviewResponse
from models.interview_session import InterviewSession
from models.user import User
from services.metrics import metrics


SESSION_MAKER_TARGETS = (
    "services.feedback.worker.async_session_maker",
    "services.transcription.worker.async_session_maker",
    "services.session_abandonment.async_session_maker",
)

STAR_ANSWER = (
    "In my previous role our release pipeline was failing every week. "
    "My responsibility was to stabilise it before the quarterly launch. "
    "I implemented automated smoke tests and I led a rollback drill with the team. "
    "As a result, failed releases dropped by 60% and we shipped on time."
)


@pytest.fixture(autouse=True)
def reset_metrics():
    """Keep the process-wide metrics registry isolated between tests."""
    metrics.reset()
    yield
    metrics.reset()


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "pipeline.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    with ExitStack() as stack:
        for target in SESSION_MAKER_TARGETS:
            stack.enter_context(patch(target, maker))
        yield maker

    await engine.dispose()


@pytest.fixture
def seed_interview(session_maker):
    """Create a user, a session and its responses; returns ``(session_id, [response_ids])``."""

    async def _seed(
        *,
        user_id: str = "user-1",
        session_id: Optional[str] = None,
        answers: Optional[List[str]] = None,
        status: str = "completed",
        updated_at: Optional[datetime] = None,
        audio_duration_seconds: Optional[float] = None,
    ):
        async with session_maker() as db:
            if await db.get(User, user_id) is None:
                db.add(User(id=user_id, email=f"{user_id}@example.com"))
            question = InterviewQuestion(
                title="Conflict",
                question_text="Tell me about a time you fixed a failing process.",
            )
            db.add(question)
            await db.flush()

            session = InterviewSession(user_id=user_id, status=status)
            if session_id:
                session.id = session_id
            if updated_at is not None:
                session.updated_at = updated_at
            db.add(session)
            await db.flush()

            response_ids = []
            for answer in answers if answers is not None else [STAR_ANSWER]:
                response = InterviewResponse(
                    session_id=session.id,
                    user_id=user_id,
                    question_id=question.id,
                    response_text=answer,
                    audio_url="local-upload://recording.webm",
                    audio_mime_type="audio/webm",
                    audio_duration_seconds=audio_duration_seconds,
                )
                db.add(response)
                await db.flush()
                response_ids.append(response.id)
            await db.commit()
            return session.id, response_ids

    return _seed
