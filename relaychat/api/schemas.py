"""API request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class TextPartIn(BaseModel):
    type: Literal["text"] = "text"
    text: str = Field(..., min_length=1, max_length=2000)


class AttachmentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    name: str = Field(..., min_length=1, max_length=2000)
    content_type: Literal["image/png", "image/jpg", "image/jpeg"] = Field(
        ..., alias="contentType"
    )


class MessageIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    created_at: datetime = Field(..., alias="createdAt")
    role: Literal["user"] = "user"
    content: str | None = None
    parts: list[TextPartIn] = Field(..., min_length=1)
    attachments: list[AttachmentIn] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "attachments", "experimental_attachments", "experimentalAttachments"
        ),
    )


class PostRequestBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: UUID = Field(
        ..., validation_alias=AliasChoices("conversationId", "conversation_id", "id")
    )
    message: MessageIn
    model_selector: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices(
            "modelSelector", "model_selector", "selectedChatModel"
        ),
    )
    visibility: Literal["public", "private"] = Field(
        "private",
        validation_alias=AliasChoices(
            "visibility", "selectedVisibilityType", "visibility_type"
        ),
    )


class ErrorResponse(BaseModel):
    code: str
    message: str
    cause: str | None = None


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str = "relaychat-server"
    pid: int | None = None
    resumable_streams: bool = False
    config_valid: bool | None = None
    config_errors: list[str] | None = None
