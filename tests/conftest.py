"""Shared pytest fixtures for all tests."""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any

import pytest
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage, AIMessageChunk

from relaychat.config import settings
from relaychat.db.base import get_engine
from relaychat.db.queries import init_db
from relaychat.llm.provider import LLMProvider
from relaychat.streams.buffer import BufferStore


@pytest.fixture(autouse=True)
def cleanup_background_tasks():
    """Cancel background producers left behind by a test."""
    yield

    from relaychat.core.background_tasks import get_background_manager

    manager = get_background_manager()
    if manager.has_tasks:
        manager.cancel_all()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Run every test against built-in defaults and no buffer backend."""
    from relaychat.api import deps
    from relaychat.streams.context import reset_stream_context

    monkeypatch.setattr(settings, "_config_manager", None)
    for var in (
        "STREAM_BUFFER_URL",
        "DATABASE_URL",
        "STREAM_STALE_SECONDS",
        "MAX_DURATION_SECONDS",
        "MAX_STEPS",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_stream_context()
    deps.invalidate_chat_service()
    yield
    reset_stream_context()
    deps.invalidate_chat_service()
    deps.dispose_db_engine()


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """sse-starlette keeps a module-level exit event bound to the first loop."""
    from sse_starlette.sse import AppStatus

    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeChatModel:
    """Chat model stand-in that streams scripted chunks, one script per call.

    A script entry that is an Exception is raised at that point of the stream.
    """

    def __init__(self, scripts: list[list[Any]] | None = None, title: str = "Title"):
        self.scripts = list(scripts or [])
        self.title = title
        self.calls: list[list[Any]] = []
        self.bound_tools: list[Any] | None = None

    def add_script(self, *chunks: Any) -> None:
        self.scripts.append(list(chunks))

    async def astream(self, messages, **kwargs):
        self.calls.append(list(messages))
        script = self.scripts.pop(0) if self.scripts else [AIMessageChunk(content="")]
        for item in script:
            if isinstance(item, Exception):
                raise item
            if isinstance(item, str):
                item = AIMessageChunk(content=item)
            yield item

    async def ainvoke(self, messages, **kwargs):
        return AIMessage(content=self.title)


class FakeProvider(LLMProvider):
    def __init__(self, model: FakeChatModel | None = None):
        self.model = model or FakeChatModel()

    def get_model_name(self) -> str:
        return "fake-model"

    def get_chat_model(self):
        return self.model

    def bind_tools(self, tools):
        self.model.bound_tools = list(tools)
        return self.model


def tool_call_chunk(
    name: str, args: dict[str, Any], call_id: str = "call_1", index: int = 0
) -> AIMessageChunk:
    """One streamed chunk carrying a complete tool call."""
    return AIMessageChunk(
        content="",
        tool_call_chunks=[
            {
                "name": name,
                "args": json.dumps(args),
                "id": call_id,
                "index": index,
                "type": "tool_call_chunk",
            }
        ],
    )


def parse_sse(text: str) -> list[dict[str, Any]]:
    """Decode the JSON payloads of an SSE response body."""
    events = []
    for line in text.splitlines():
        if line.startswith("data:"):
            payload = line[len("data:") :].strip()
            if payload:
                events.append(json.loads(payload))
    return events


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(tmp_path):
    eng = get_engine(f"sqlite+pysqlite:///{tmp_path / 'chat.sqlite'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def buffer_store(tmp_path, clock):
    eng = get_engine(f"sqlite+pysqlite:///{tmp_path / 'buffer.sqlite'}")
    store = BufferStore(eng, stale_seconds=60, clock=clock)
    store.ensure_schema()
    yield store
    eng.dispose()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def chat_app(engine, buffer_store, clock, provider):
    """App wired to temp databases, a fake clock and a scripted model."""
    from relaychat.api.app import create_app
    from relaychat.api.deps import get_chat_service
    from relaychat.services.chat_service import ChatService
    from relaychat.streams.coordinator import ResumableStreamCoordinator

    coordinator = ResumableStreamCoordinator(
        buffer_store,
        stale_seconds=60,
        max_duration=5,
        poll_interval=0.01,
        clock=clock,
    )
    service = ChatService(engine, coordinator, provider_factory=lambda _: provider)

    app = create_app()
    app.dependency_overrides[get_chat_service] = lambda: service

    with TestClient(app) as client:
        yield SimpleNamespace(
            client=client,
            engine=engine,
            store=buffer_store,
            coordinator=coordinator,
            service=service,
            provider=provider,
            clock=clock,
        )
