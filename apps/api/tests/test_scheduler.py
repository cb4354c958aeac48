import asyncio

import pytest

from services.scheduler import PeriodicWorker


@pytest.mark.asyncio
async def test_run_cycle_is_single_flight():
    release = asyncio.Event()
    calls = []

    async def cycle():
        calls.append(1)
        await release.wait()
        return {"done": True}

    worker = PeriodicWorker(name="test", cycle=cycle, interval_ms=1000)
    first = asyncio.create_task(worker.run_cycle())
    await asyncio.sleep(0)

    assert worker.cycle_in_progress is True
    assert await worker.run_cycle() == {"skipped": True, "reason": "cycle_in_progress"}

    release.set()
    assert await first == {"done": True}
    assert calls == [1]
    assert worker.cycle_in_progress is False


@pytest.mark.asyncio
async def test_start_runs_an_immediate_cycle_and_keeps_ticking():
    calls = []

    async def cycle():
        calls.append(1)
        return {}

    worker = PeriodicWorker(name="test", cycle=cycle, interval_ms=20)
    assert worker.start() is True
    assert worker.start() is True
    await asyncio.sleep(0.01)
    assert len(calls) == 1

    await asyncio.sleep(0.1)
    await worker.stop()

    assert len(calls) >= 3
    assert worker.running is False


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_cycle():
    started = asyncio.Event()
    finished = []

    async def cycle():
        started.set()
        await asyncio.sleep(0.05)
        finished.append(True)
        return {}

    worker = PeriodicWorker(name="test", cycle=cycle, interval_ms=10_000)
    worker.start()
    await asyncio.wait_for(started.wait(), timeout=1)

    await worker.stop()

    assert finished == [True]


@pytest.mark.asyncio
async def test_slow_cycle_never_overlaps_itself():
    active = 0
    peak = 0

    async def cycle():
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.05)
        active -= 1
        return {}

    worker = PeriodicWorker(name="test", cycle=cycle, interval_ms=5)
    worker.start()
    await asyncio.sleep(0.2)
    await worker.stop()

    assert peak == 1


@pytest.mark.asyncio
async def test_cycle_errors_do_not_stop_the_timer(caplog):
    calls = []

    async def cycle():
        calls.append(1)
        raise RuntimeError("database unavailable")

    worker = PeriodicWorker(name="test", cycle=cycle, interval_ms=10)
    worker.start()
    await asyncio.sleep(0.06)
    await worker.stop()

    assert len(calls) >= 2
    assert "Cycle error" in caplog.text


@pytest.mark.asyncio
async def test_disabled_worker_does_not_start():
    async def cycle():
        raise AssertionError("should not run")

    worker = PeriodicWorker(name="test", cycle=cycle, interval_ms=10, enabled=False)

    assert worker.start() is False
    assert worker.running is False
    await worker.stop()
