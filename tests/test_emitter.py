from __future__ import annotations

import asyncio
import logging
import threading
import time

import pytest

from ticktock.errors import CallbackInvocationError
from ticktock.scheduler import Emitter, EmitterStatus
from ticktock.subscriber import Subscriber

INTERVAL = 0.05


def test_counts_three_periods():
    async def scenario() -> int:
        emitter = Emitter(INTERVAL)
        sw = Subscriber()
        sw.on_created(emitter)
        emitter.start()
        await asyncio.sleep(INTERVAL * 3 + INTERVAL / 2)
        await emitter.stop()
        return sw.counter()

    assert asyncio.run(scenario()) in (2, 3, 4)


def test_unsubscribed_subscriber_stops_counting():
    async def scenario():
        emitter = Emitter(INTERVAL)
        a, b = Subscriber("a"), Subscriber("b")
        a.on_created(emitter)
        reg_b = b.on_created(emitter)
        await emitter.tick()
        emitter.unsubscribe(reg_b)
        await emitter.tick()
        return a.counter(), b.counter(), emitter.subscribers

    assert asyncio.run(scenario()) == (2, 1, 1)


def test_failing_callback_does_not_block_others():
    def boom():
        raise RuntimeError("boom")

    async def scenario():
        emitter = Emitter(INTERVAL)
        emitter.subscribe(boom)
        sw = Subscriber()
        sw.on_created(emitter)
        with pytest.raises(CallbackInvocationError):
            await emitter.tick()
        return emitter, sw

    emitter, sw = asyncio.run(scenario())
    assert sw.counter() == 1
    assert emitter.state.total_errors == 1
    assert emitter.state.total_ticks == 1
    assert "boom" in emitter.state.last_error
    assert emitter.state.running is False


def test_loop_keeps_ticking_after_errors(caplog):
    caplog.set_level(logging.WARNING, logger="ticktock.scheduler")

    async def scenario():
        emitter = Emitter(0.02)
        emitter.subscribe(lambda: 1 / 0)
        sw = Subscriber()
        sw.on_created(emitter)
        emitter.start()
        await asyncio.sleep(0.15)
        status = emitter.status
        await emitter.stop()
        return status, sw.counter(), emitter.state.total_errors

    status, count, errors = asyncio.run(scenario())
    assert status is EmitterStatus.RUNNING
    assert count >= 3
    assert errors == count
    assert "tick failed" in caplog.text


def test_stop_on_error_halts_after_failing_pass():
    async def scenario():
        emitter = Emitter(0.02, stop_on_error=True)
        emitter.subscribe(lambda: 1 / 0)
        sw = Subscriber()
        sw.on_created(emitter)
        emitter.start()
        await asyncio.sleep(0.15)
        status = emitter.status
        await emitter.stop()
        return status, sw.counter(), emitter.state.total_ticks

    assert asyncio.run(scenario()) == (EmitterStatus.STOPPED, 1, 1)


def test_stop_is_idempotent_and_final():
    async def scenario():
        emitter = Emitter(0.02)
        sw = Subscriber()
        sw.on_created(emitter)
        emitter.start()
        await asyncio.sleep(0.07)
        await emitter.stop()
        await emitter.stop()
        after_stop = sw.counter()
        await asyncio.sleep(0.1)
        return emitter.status, after_stop, sw.counter()

    status, after_stop, later = asyncio.run(scenario())
    assert status is EmitterStatus.STOPPED
    assert after_stop == later


def test_stop_before_start_is_noop():
    async def scenario():
        emitter = Emitter(INTERVAL)
        await emitter.stop()
        return emitter.status, emitter.state.total_ticks

    assert asyncio.run(scenario()) == (EmitterStatus.STOPPED, 0)


def test_stop_waits_for_in_flight_pass():
    finished = threading.Event()

    def slow():
        time.sleep(0.1)
        finished.set()

    async def scenario():
        emitter = Emitter(0.01)
        emitter.subscribe(slow)
        emitter.start()
        while not emitter.state.running:
            await asyncio.sleep(0.005)
        await emitter.stop()
        return emitter.state.running, emitter.state.total_ticks

    running, ticks = asyncio.run(scenario())
    assert finished.is_set()
    assert running is False
    assert ticks == 1


def test_passes_never_overlap():
    active = {"now": 0, "max": 0}
    lock = threading.Lock()

    def slow():
        with lock:
            active["now"] += 1
            active["max"] = max(active["max"], active["now"])
        time.sleep(0.03)
        with lock:
            active["now"] -= 1

    async def scenario():
        emitter = Emitter(0.01)
        emitter.subscribe(slow)
        emitter.start()
        await asyncio.gather(asyncio.sleep(0.15), emitter.tick())
        await emitter.stop()
        return emitter.state.total_ticks

    ticks = asyncio.run(scenario())
    assert ticks >= 3
    assert active["max"] == 1


def test_start_requires_running_loop():
    emitter = Emitter(INTERVAL)
    with pytest.raises(RuntimeError):
        emitter.start()
    assert emitter.status is EmitterStatus.CREATED


def test_start_twice_and_restart():
    async def scenario():
        emitter = Emitter(0.02)
        sw = Subscriber()
        sw.on_created(emitter)
        emitter.start()
        task = emitter._task
        emitter.start()
        same_task = emitter._task is task
        await emitter.stop()
        stopped_at = sw.counter()
        emitter.start()
        await asyncio.sleep(0.07)
        status = emitter.status
        await emitter.stop()
        return same_task, status, stopped_at, sw.counter()

    same_task, status, stopped_at, final = asyncio.run(scenario())
    assert same_task is True
    assert status is EmitterStatus.RUNNING
    assert final > stopped_at


def test_status_changes_are_observable():
    seen = []

    async def scenario():
        emitter = Emitter(INTERVAL)
        emitter.state.property_changed.add(
            lambda sender, name: seen.append(sender.status)
        )
        emitter.start()
        await emitter.stop()
        await emitter.stop()

    asyncio.run(scenario())
    assert seen == [EmitterStatus.RUNNING, EmitterStatus.STOPPED]


def test_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        Emitter(0)


def test_subscriber_gauge_follows_cancelled_registrations():
    from prometheus_client import REGISTRY

    async def scenario():
        emitter = Emitter(INTERVAL, name="gauge-check")
        keep = emitter.subscribe(lambda: None)
        drop = emitter.subscribe(lambda: None)
        drop.cancel()
        await emitter.tick()
        return keep.active

    assert asyncio.run(scenario()) is True
    assert (
        REGISTRY.get_sample_value("ticktock_subscribers", {"emitter": "gauge-check"})
        == 1.0
    )


def test_stop_after_loop_task_was_cancelled():
    async def scenario():
        emitter = Emitter(INTERVAL)
        emitter.start()
        emitter._task.cancel()
        await emitter.stop()
        await emitter.stop()
        return emitter.status

    assert asyncio.run(scenario()) is EmitterStatus.STOPPED
