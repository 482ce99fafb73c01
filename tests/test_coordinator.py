"""Tests for the resumable stream coordinator."""

import asyncio
import json

import pytest

from relaychat.core.background_tasks import BackgroundTaskManager
from relaychat.domain.events import FinishEvent
from relaychat.streams.coordinator import (
    ResumableStreamCoordinator,
    StreamStatus,
)


def _coordinator(store, clock, *, max_duration=5.0, background=None):
    return ResumableStreamCoordinator(
        store,
        stale_seconds=60,
        max_duration=max_duration,
        poll_interval=0.01,
        background=background or BackgroundTaskManager(),
        clock=clock,
    )


async def _source(*chunks):
    for chunk in chunks:
        yield chunk


async def _collect(it):
    return [chunk async for chunk in it]


@pytest.mark.asyncio
async def test_wrap_passes_chunks_through_and_buffers_them(buffer_store, clock):
    manager = BackgroundTaskManager()
    coordinator = _coordinator(buffer_store, clock, background=manager)

    received = await _collect(coordinator.wrap("s1", _source("a", "b", "c")))
    await manager.shutdown()

    assert received == ["a", "b", "c"]
    result = coordinator.lookup("s1")
    assert result.status is StreamStatus.FINISHED
    assert result.chunks == ("a", "b", "c")
    assert result.data == "abc"


@pytest.mark.asyncio
async def test_wrap_without_store_is_pass_through(clock):
    coordinator = _coordinator(None, clock)

    received = await _collect(coordinator.wrap("s1", _source("x", "y")))

    assert received == ["x", "y"]
    assert coordinator.enabled is False
    assert coordinator.lookup("s1") is None
    coordinator.delete("s1")
    coordinator.delete_many(["s1"])


@pytest.mark.asyncio
async def test_producer_keeps_running_after_reader_goes_away(buffer_store, clock):
    manager = BackgroundTaskManager()
    coordinator = _coordinator(buffer_store, clock, background=manager)
    release = asyncio.Event()

    async def source():
        yield "first"
        await release.wait()
        yield "second"

    reader = coordinator.wrap("s1", source())
    assert await reader.__anext__() == "first"
    await reader.aclose()

    release.set()
    await manager.shutdown()

    result = coordinator.lookup("s1")
    assert result.status is StreamStatus.FINISHED
    assert result.chunks == ("first", "second")


@pytest.mark.asyncio
async def test_source_failure_ends_with_error_and_finish(buffer_store, clock):
    manager = BackgroundTaskManager()
    coordinator = _coordinator(buffer_store, clock, background=manager)

    async def source():
        yield "a"
        raise RuntimeError("boom")

    received = await _collect(coordinator.wrap("s1", source()))
    await manager.shutdown()

    assert received[0] == "a"
    assert [json.loads(c)["type"] for c in received[1:]] == ["error", "finish"]
    assert "boom" in json.loads(received[1])["error"]
    assert json.loads(received[2])["finish_reason"] == "error"

    result = coordinator.lookup("s1")
    assert result.status is StreamStatus.FINISHED
    assert result.chunks == tuple(received)


@pytest.mark.asyncio
async def test_source_failure_after_finish_adds_only_error(buffer_store, clock):
    manager = BackgroundTaskManager()
    coordinator = _coordinator(buffer_store, clock, background=manager)

    async def source():
        yield FinishEvent().to_json()
        raise RuntimeError("cleanup failed")

    received = await _collect(coordinator.wrap("s1", source()))
    await manager.shutdown()

    assert [json.loads(c)["type"] for c in received] == ["finish", "error"]
    assert coordinator.lookup("s1").status is StreamStatus.FINISHED


@pytest.mark.asyncio
async def test_source_failure_without_store_still_terminates(clock):
    manager = BackgroundTaskManager()
    coordinator = _coordinator(None, clock, background=manager)

    async def source():
        raise RuntimeError("no model")
        yield  # pragma: no cover

    received = await _collect(coordinator.wrap("s1", source()))
    await manager.shutdown()

    assert [json.loads(c)["type"] for c in received] == ["error", "finish"]


@pytest.mark.asyncio
async def test_max_duration_abandons_generation_but_keeps_buffer(buffer_store, clock):
    manager = BackgroundTaskManager()
    coordinator = _coordinator(
        buffer_store, clock, max_duration=0.5, background=manager
    )

    async def source():
        yield "a"
        await asyncio.sleep(10)
        yield "never"

    received = await _collect(coordinator.wrap("s1", source()))
    await manager.shutdown()

    assert received == ["a"]
    result = coordinator.lookup("s1")
    assert result.status is StreamStatus.LIVE
    assert result.chunks == ("a",)

    # Staleness is what eventually ends an abandoned stream
    clock.advance(60)
    assert coordinator.lookup("s1").status is StreamStatus.EXPIRED


def test_is_stale_is_monotonic_in_time():
    checks = [
        ResumableStreamCoordinator.is_stale(100.0, 30, now)
        for now in (100.0, 120.0, 129.99, 130.0, 200.0)
    ]
    assert checks == [False, False, False, True, True]


def test_is_stale_requires_positive_threshold():
    with pytest.raises(ValueError):
        ResumableStreamCoordinator.is_stale(0.0, 0, 10.0)


def test_coordinator_requires_positive_stale_seconds(buffer_store, clock):
    with pytest.raises(ValueError):
        ResumableStreamCoordinator(
            buffer_store, stale_seconds=0, max_duration=1, clock=clock
        )


def test_store_threshold_governs_lookups(buffer_store, clock):
    coordinator = ResumableStreamCoordinator(
        buffer_store, stale_seconds=5, max_duration=1, clock=clock
    )
    buffer_store.create("s1")
    buffer_store.append("s1", "a")

    clock.advance(10)

    assert coordinator.stale_seconds == buffer_store.stale_seconds == 60
    assert coordinator.lookup("s1").status is StreamStatus.LIVE


def test_stale_lookup_reports_expired_once_then_absent(buffer_store, clock):
    coordinator = _coordinator(buffer_store, clock)
    buffer_store.create("s1")
    buffer_store.append("s1", "a")

    clock.advance(60)

    first = coordinator.lookup("s1")
    assert first.status is StreamStatus.EXPIRED
    assert first.chunks == ()
    assert coordinator.lookup("s1") is None


def test_writer_stops_after_reader_evicted_buffer(buffer_store, clock):
    coordinator = _coordinator(buffer_store, clock)
    buffer_store.create("s1")
    buffer_store.append("s1", "a")

    clock.advance(61)
    assert coordinator.lookup("s1").status is StreamStatus.EXPIRED

    # A late writer cannot bring the stream back
    assert buffer_store.append("s1", "b") is False
    assert coordinator.lookup("s1") is None


def test_lookup_from_offset(buffer_store, clock):
    coordinator = _coordinator(buffer_store, clock)
    buffer_store.create("s1")
    for chunk in ("a", "b", "c"):
        buffer_store.append("s1", chunk)

    assert coordinator.lookup("s1", offset=1).chunks == ("b", "c")


@pytest.mark.asyncio
async def test_follow_tails_live_stream_until_finished(buffer_store, clock):
    coordinator = _coordinator(buffer_store, clock)
    buffer_store.create("s1")
    buffer_store.append("s1", "a")

    async def writer():
        await asyncio.sleep(0.03)
        buffer_store.append("s1", "b")
        await asyncio.sleep(0.03)
        buffer_store.append("s1", "c")
        buffer_store.mark_finished("s1")

    task = asyncio.ensure_future(writer())
    received = await asyncio.wait_for(_collect(coordinator.follow("s1")), timeout=5)
    await task

    assert received == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_follow_ends_when_buffer_is_deleted(buffer_store, clock):
    coordinator = _coordinator(buffer_store, clock)
    buffer_store.create("s1")
    buffer_store.append("s1", "a")

    async def deleter():
        await asyncio.sleep(0.03)
        coordinator.delete("s1")

    task = asyncio.ensure_future(deleter())
    received = await asyncio.wait_for(_collect(coordinator.follow("s1")), timeout=5)
    await task

    assert received == ["a"]
