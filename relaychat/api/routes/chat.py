from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from relaychat.api.auth import get_current_user
from relaychat.api.deps import get_chat_service
from relaychat.api.schemas import ErrorResponse, PostRequestBody
from relaychat.api.sse import stream_response
from relaychat.domain.errors import ChatError
from relaychat.domain.identity import UserIdentity
from relaychat.services.chat_service import ChatService
from relaychat.streams.coordinator import StreamStatus
from relaychat.utils.logger import api_logger, request_log

router = APIRouter()

ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 401, 403, 404, 429, 503)
}


async def parse_post_body(raw_request: Request) -> PostRequestBody:
    try:
        payload = await raw_request.json()
        return PostRequestBody.model_validate(payload)
    except (ValueError, ValidationError) as e:
        api_logger.warning("Invalid chat request body", error=str(e))
        raise ChatError("bad_request:api", str(e)) from e


@router.post("/chat", responses=ERROR_RESPONSES)
async def post_chat(
    body: PostRequestBody = Depends(parse_post_body),  # noqa: B008
    user: UserIdentity = Depends(get_current_user),  # noqa: B008
    chat_service: ChatService = Depends(get_chat_service),  # noqa: B008
):
    start_time = time.time()
    api_logger.info(
        "Chat request received",
        user_id=user.id,
        user_type=user.type,
        conversation_id=str(body.conversation_id),
        model_selector=body.model_selector,
    )

    prepared = await chat_service.prepare_chat(user, body)
    response = stream_response(
        chat_service.stream_chat(prepared), stream_id=prepared.stream_id
    )

    duration_ms = (time.time() - start_time) * 1000
    request_log(
        api_logger,
        "POST",
        "/chat",
        200,
        duration_ms,
        streaming=True,
        stream_id=prepared.stream_id,
    )
    return response


@router.get("/chat", responses=ERROR_RESPONSES)
async def resume_chat(
    conversation_id: str | None = Query(default=None, alias="conversationId"),
    user: UserIdentity = Depends(get_current_user),  # noqa: B008
    chat_service: ChatService = Depends(get_chat_service),  # noqa: B008
):
    start_time = time.time()
    if not conversation_id:
        raise ChatError("bad_request:api", 'Parameter "conversationId" is required')

    target = chat_service.find_resumable(user, conversation_id)
    duration_ms = (time.time() - start_time) * 1000

    if target.lookup.status is StreamStatus.EXPIRED:
        request_log(
            api_logger, "GET", "/chat", 200, duration_ms, stream_id=target.stream_id
        )
        return Response(status_code=200)

    request_log(
        api_logger,
        "GET",
        "/chat",
        200,
        duration_ms,
        stream_id=target.stream_id,
        status=target.lookup.status.value,
        buffered_chunks=len(target.lookup.chunks),
    )
    return stream_response(chat_service.replay(target), stream_id=target.stream_id)


@router.delete("/chat", responses=ERROR_RESPONSES)
async def delete_chat(
    conversation_id: str | None = Query(default=None, alias="id"),
    user: UserIdentity = Depends(get_current_user),  # noqa: B008
    chat_service: ChatService = Depends(get_chat_service),  # noqa: B008
):
    if not conversation_id:
        raise ChatError("bad_request:api", 'Parameter "id" is required')
    record = chat_service.delete_chat(user, conversation_id)
    return JSONResponse(record, status_code=200)
