"""Tests for the event emitter."""
import asyncio

import pytest

from ghostup.utils.events import EventEmitter


@pytest.mark.asyncio
async def test_emit_calls_sync_and_async_listeners():
    emitter = EventEmitter()
    received = []

    async def async_listener(value):
        received.append(("async", value))

    emitter.on("state", lambda value: received.append(("sync", value)))
    emitter.on("state", async_listener)
    await emitter.emit("state", 1)

    assert received == [("sync", 1), ("async", 1)]


@pytest.mark.asyncio
async def test_listener_errors_do_not_propagate():
    emitter = EventEmitter()
    received = []

    def broken(value):
        raise ValueError("listener bug")

    emitter.on("state", broken)
    emitter.on("state", received.append)
    await emitter.emit("state", "x")

    assert received == ["x"]


@pytest.mark.asyncio
async def test_off_removes_listener():
    emitter = EventEmitter()
    received = []
    emitter.on("state", received.append)
    emitter.off("state", received.append)

    await emitter.emit("state", "x")

    assert received == []


@pytest.mark.asyncio
async def test_slow_listener_does_not_block_other_emits():
    emitter = EventEmitter()
    release = asyncio.Event()
    received = []

    async def listener(value):
        if value == "slow":
            await release.wait()
        received.append(value)

    emitter.on("state", listener)
    slow = asyncio.create_task(emitter.emit("state", "slow"))
    await asyncio.sleep(0)

    await asyncio.wait_for(emitter.emit("state", "fast"), 1)
    assert received == ["fast"]

    release.set()
    await slow
    assert received == ["fast", "slow"]
