import asyncio

import pytest

from sfu_audio_client.common import PollingTask, spawn

from conftest import wait_until


@pytest.mark.asyncio
async def test_polling_repeats_until_func_says_stop() -> None:
    calls = []

    async def func():
        calls.append(len(calls))
        return len(calls) < 3

    task = PollingTask(func, 0.001, 1, lambda generation: True).start()
    await task.wait()

    assert calls == [0, 1, 2]
    assert task.done


@pytest.mark.asyncio
async def test_polling_stops_when_generation_is_replaced() -> None:
    current = {"generation": 1}
    calls = []

    async def func():
        calls.append(current["generation"])
        return True

    task = PollingTask(func, 0.001, 1, lambda generation: generation == current["generation"]).start()
    await wait_until(lambda: len(calls) >= 2)
    current["generation"] = 2
    await task.wait()

    assert set(calls) == {1}


@pytest.mark.asyncio
async def test_cancel_does_not_interrupt_running_iteration() -> None:
    started = asyncio.Event()
    release = asyncio.Event()
    finished = []

    async def func():
        started.set()
        await release.wait()
        finished.append(True)
        return True

    task = PollingTask(func, 0.001, 1, lambda generation: True).start()
    await started.wait()
    task.cancel()
    release.set()
    await task.wait()

    assert finished == [True]


@pytest.mark.asyncio
async def test_cancel_while_sleeping_ends_the_loop() -> None:
    calls = []

    async def func():
        calls.append(1)
        return True

    task = PollingTask(func, 60, 1, lambda generation: True).start()
    await wait_until(lambda: calls)
    task.cancel()
    await asyncio.wait_for(task.wait(), 1)

    assert calls == [1]


@pytest.mark.asyncio
async def test_spawn_logs_failures_and_forgets_task(caplog) -> None:
    tasks = set()

    async def boom():
        raise RuntimeError("nope")

    task = spawn(boom(), tasks, "boom task")
    await asyncio.gather(task, return_exceptions=True)
    await asyncio.sleep(0)

    assert tasks == set()
    assert "boom task failed: nope" in caplog.text


@pytest.mark.asyncio
async def test_failing_iteration_is_logged_and_polling_continues(caplog) -> None:
    calls = []

    async def func():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first one breaks")
        return len(calls) < 3

    task = PollingTask(func, 0.001, 1, lambda generation: True).start()
    await task.wait()

    assert len(calls) == 3
    assert "polling iteration failed" in caplog.text
