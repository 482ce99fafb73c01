"""Tests for the stream identity registry."""

import pytest

from relaychat.db.queries import get_stream_ids, save_conversation
from relaychat.streams.registry import StreamRegistry


@pytest.fixture(autouse=True)
def conversations(engine):
    # stream handles reference conversations
    for cid in ("conv-1", "conv-a", "conv-b"):
        save_conversation(engine, conversation_id=cid, owner_id="u1", title=cid)


def test_register_returns_distinct_ids_in_call_order(engine):
    registry = StreamRegistry(engine)

    ids = [registry.register("conv-1") for _ in range(3)]

    assert len(set(ids)) == 3
    assert registry.list_stream_ids("conv-1") == ids
    assert registry.active_stream_id("conv-1") == ids[-1]


def test_ids_are_scoped_per_conversation(engine):
    registry = StreamRegistry(engine)
    a = registry.register("conv-a")
    b = registry.register("conv-b")

    assert registry.list_stream_ids("conv-a") == [a]
    assert registry.list_stream_ids("conv-b") == [b]


def test_unknown_conversation_has_no_streams(engine):
    registry = StreamRegistry(engine)

    assert registry.list_stream_ids("nope") == []
    assert registry.active_stream_id("nope") is None


def test_registration_is_durable(engine):
    stream_id = StreamRegistry(engine).register("conv-1")

    # Visible to a fresh registry and to raw queries
    assert StreamRegistry(engine).list_stream_ids("conv-1") == [stream_id]
    assert get_stream_ids(engine, "conv-1") == [stream_id]
