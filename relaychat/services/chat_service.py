"""Chat service: request orchestration for the /chat routes.

Validation, quota and ownership checks all run before the first write, so a
rejected request leaves no trace. Generation itself runs detached from the
request through the resumable stream coordinator.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from relaychat.config import settings
from relaychat.config.constants import REASONING_MODEL_SELECTOR
from relaychat.db.base import to_utc_iso, utc_now_iso
from relaychat.db.queries import (
    count_user_messages,
    delete_conversation,
    get_conversation,
    get_messages,
    message_exists,
    save_messages,
)
from relaychat.dialogs.normalizer import HistoryEntry, normalize_history, user_text
from relaychat.domain.errors import ChatError
from relaychat.domain.identity import UserIdentity
from relaychat.domain.parts import StoredMessage, dump_parts, parse_parts
from relaychat.llm import get_provider
from relaychat.llm.provider import LLMProvider
from relaychat.prompts.system import system_prompt
from relaychat.services.generation import GenerationInvoker, GenerationResponse
from relaychat.services.persistence import persist_final_response
from relaychat.services.title import generate_title
from relaychat.streams.coordinator import (
    ResumableStreamCoordinator,
    StreamLookup,
    StreamStatus,
)
from relaychat.streams.registry import StreamRegistry
from relaychat.tools import DataSink, ToolContext, build_registry
from relaychat.tools.builtin import DEFAULT_ACTIVE_TOOLS
from relaychat.utils.logger import api_logger

if TYPE_CHECKING:
    from relaychat.api.schemas import PostRequestBody


@dataclass
class PreparedChat:
    """Everything the generation needs once the request has been accepted."""

    user: UserIdentity
    conversation_id: str
    stream_id: str
    selector: str
    provider: LLMProvider
    history: list[HistoryEntry]
    assistant_message_id: str


@dataclass(frozen=True)
class ResumeTarget:
    stream_id: str
    lookup: StreamLookup


class ChatService:
    def __init__(
        self,
        engine: Engine,
        coordinator: ResumableStreamCoordinator,
        provider_factory: Callable[[str], LLMProvider] = get_provider,
    ) -> None:
        self._engine = engine
        self._coordinator = coordinator
        self._provider_factory = provider_factory
        self._registry = StreamRegistry(engine)

    @property
    def registry(self) -> StreamRegistry:
        return self._registry

    # POST

    def _check_entitlements(self, user: UserIdentity, selector: str) -> int:
        """Validate model access for the user type; return the daily quota."""
        try:
            entitlements = settings.entitlements_for(user.type)
        except ValueError as e:
            raise ChatError("forbidden:auth", str(e)) from e
        available = entitlements.get("available_chat_models") or []
        known = settings.get_chat_model_config(selector) is not None
        if selector not in available or not known:
            raise ChatError("bad_request:api", f"Unknown chat model: {selector}")
        return int(entitlements["max_messages_per_day"])

    async def prepare_chat(
        self, user: UserIdentity, body: PostRequestBody
    ) -> PreparedChat:
        """Run every check, then persist the user message and register a stream.

        Raises ChatError before any write when the request is rejected.
        """
        selector = body.model_selector
        limit = self._check_entitlements(user, selector)

        count = count_user_messages(self._engine, user.id, hours=24)
        if count >= limit:
            api_logger.info(
                "Message quota reached", user_id=user.id, count=count, limit=limit
            )
            raise ChatError("rate_limit:chat")

        try:
            provider = self._provider_factory(selector)
        except Exception as e:
            api_logger.error(
                "Failed to initialize chat model", selector=selector, error=str(e)
            )
            raise ChatError("offline:chat", str(e)) from e

        incoming = body.message
        conversation_id = str(body.conversation_id)
        conversation = get_conversation(self._engine, conversation_id)
        if conversation is not None and conversation.owner_id != user.id:
            raise ChatError("forbidden:chat")
        if message_exists(self._engine, str(incoming.id)):
            raise ChatError("bad_request:api", "Message already exists")

        # Ordering and the quota window use the server receive time
        new_message = StoredMessage(
            id=str(incoming.id),
            role="user",
            created_at=utc_now_iso(),
            parts=parse_parts([p.model_dump() for p in incoming.parts]),
            content=incoming.content,
        )

        new_conversation: dict[str, Any] | None = None
        stored: list[StoredMessage] = []
        if conversation is None:
            title = await generate_title(
                user_text(new_message), self._provider_factory
            )
            new_conversation = {
                "conversation_id": conversation_id,
                "owner_id": user.id,
                "title": title,
                "visibility": body.visibility,
            }
        else:
            stored = [
                StoredMessage.from_row(row)
                for row in get_messages(self._engine, conversation_id)
            ]
        history = normalize_history(stored, new_message)

        try:
            save_messages(
                self._engine,
                [
                    {
                        "id": new_message.id,
                        "conversation_id": conversation_id,
                        "role": "user",
                        "parts": dump_parts(new_message.parts),
                        "attachments": [
                            a.model_dump(by_alias=True) for a in incoming.attachments
                        ],
                        "created_at": new_message.created_at,
                        "client_created_at": to_utc_iso(incoming.created_at),
                    }
                ],
                conversation=new_conversation,
            )
        except IntegrityError as e:
            raise ChatError("bad_request:api", "Message already exists") from e
        if new_conversation is not None:
            api_logger.info(
                "Created conversation",
                conversation_id=conversation_id,
                title=new_conversation["title"],
            )

        stream_id = self._registry.register(conversation_id)
        return PreparedChat(
            user=user,
            conversation_id=conversation_id,
            stream_id=stream_id,
            selector=selector,
            provider=provider,
            history=history,
            assistant_message_id=str(uuid.uuid4()),
        )

    def stream_chat(self, prepared: PreparedChat) -> AsyncIterator[str]:
        """Start generation for a prepared chat and return the live chunks."""
        tools: list[str] = []
        if (
            prepared.selector != REASONING_MODEL_SELECTOR
            and prepared.provider.supports_tools
        ):
            tools = list(DEFAULT_ACTIVE_TOOLS)
        context = ToolContext(
            user_id=prepared.user.id,
            user_type=prepared.user.type,
            conversation_id=prepared.conversation_id,
            provider=prepared.provider,
            engine=self._engine,
            sink=DataSink(),
        )
        invoker = GenerationInvoker(prepared.provider, build_registry(set(tools)))

        async def on_finish(response: GenerationResponse) -> None:
            await asyncio.to_thread(
                persist_final_response,
                self._engine,
                prepared.conversation_id,
                response,
            )

        events = invoker.stream(
            prepared.history,
            system_prompt=system_prompt(prepared.selector),
            max_steps=settings.max_steps,
            active_tools=list(tools),
            context=context,
            on_finish=on_finish,
            message_id=prepared.assistant_message_id,
        )

        async def chunks() -> AsyncIterator[str]:
            try:
                async for event in events:
                    yield event.to_json()
            finally:
                await events.aclose()

        return self._coordinator.wrap(prepared.stream_id, chunks())

    # GET

    def _readable_conversation(
        self, user: UserIdentity, conversation_id: str
    ) -> Any:
        conversation = get_conversation(self._engine, conversation_id)
        if conversation is None:
            raise ChatError("not_found:chat")
        if conversation.visibility == "private" and conversation.owner_id != user.id:
            raise ChatError("forbidden:chat")
        return conversation

    def find_resumable(
        self, user: UserIdentity, conversation_id: str
    ) -> ResumeTarget:
        """Locate the active stream of a conversation the user may read.

        Raises not_found:stream when nothing is buffered for it. An expired
        stream is evicted by the lookup and returned once with status EXPIRED.
        """
        self._readable_conversation(user, conversation_id)
        stream_id = self._registry.active_stream_id(conversation_id)
        if stream_id is None:
            raise ChatError("not_found:stream")
        lookup = self._coordinator.lookup(stream_id)
        if lookup is None:
            raise ChatError("not_found:stream")
        return ResumeTarget(stream_id=stream_id, lookup=lookup)

    async def replay(self, target: ResumeTarget) -> AsyncIterator[str]:
        """Buffered chunks of target, then the live tail until it finishes."""
        for chunk in target.lookup.chunks:
            yield chunk
        if target.lookup.status is StreamStatus.LIVE:
            async for chunk in self._coordinator.follow(
                target.stream_id, offset=len(target.lookup.chunks)
            ):
                yield chunk

    # DELETE

    def delete_chat(self, user: UserIdentity, conversation_id: str) -> dict[str, Any]:
        conversation = get_conversation(self._engine, conversation_id)
        if conversation is None:
            raise ChatError("not_found:chat")
        if conversation.owner_id != user.id:
            raise ChatError("forbidden:chat")
        record, stream_ids = delete_conversation(self._engine, conversation_id)
        if record is None:
            raise ChatError("not_found:chat")
        self._coordinator.delete_many(stream_ids)
        api_logger.info(
            "Deleted conversation",
            conversation_id=conversation_id,
            evicted_streams=len(stream_ids),
        )
        return record

