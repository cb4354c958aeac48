"""Standalone worker process running the periodic job pipelines."""

import asyncio
import logging
import signal
from typing import List

from config import configure_logging, int_setting, settings
from services.feedback.worker import run_feedback_job_cycle
from services.scheduler import PeriodicWorker
from services.session_abandonment import run_session_abandonment_cycle
from services.transcription.worker import run_transcription_job_cycle

logger = logging.getLogger(__name__)


def build_pipeline_workers() -> List[PeriodicWorker]:
    return [
        PeriodicWorker(
            name="feedback",
            cycle=run_feedback_job_cycle,
            interval_ms=int_setting("FEEDBACK_JOB_POLL_INTERVAL_MS"),
            enabled=settings.FEEDBACK_JOB_WORKER_ENABLED,
        ),
        PeriodicWorker(
            name="transcription",
            cycle=run_transcription_job_cycle,
            interval_ms=int_setting("TRANSCRIPTION_JOB_POLL_INTERVAL_MS"),
            enabled=settings.TRANSCRIPTION_JOB_WORKER_ENABLED,
        ),
        PeriodicWorker(
            name="session",
            cycle=run_session_abandonment_cycle,
            interval_ms=int_setting("SESSION_ABANDONMENT_POLL_INTERVAL_MS"),
            enabled=settings.SESSION_ABANDONMENT_WORKER_ENABLED,
        ),
    ]


def start_workers(workers: List[PeriodicWorker]) -> List[PeriodicWorker]:
    return [worker for worker in workers if worker.start()]


async def stop_workers(workers: List[PeriodicWorker]) -> None:
    await asyncio.gather(*(worker.stop() for worker in workers))


async def run_workers() -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    started = start_workers(build_pipeline_workers())
    if not started:
        logger.warning("All pipeline workers are disabled; exiting")
        return

    await stop_event.wait()
    logger.info("Shutdown requested; waiting for in-flight cycles")
    await stop_workers(started)


def main():
    configure_logging()
    asyncio.run(run_workers())


if __name__ == "__main__":
    main()
