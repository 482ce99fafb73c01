"""Error codes returned by the chat API.

A code is `<type>:<surface>`, e.g. `forbidden:chat`. The type decides the HTTP
status; the pair decides the human-readable message.
"""

from __future__ import annotations

from typing import Any, Literal

ErrorType = Literal[
    "bad_request", "unauthorized", "forbidden", "not_found", "rate_limit", "offline"
]
Surface = Literal["chat", "auth", "api", "stream", "database", "document"]

STATUS_BY_TYPE: dict[str, int] = {
    "bad_request": 400,
    "unauthorized": 401,
    "forbidden": 403,
    "not_found": 404,
    "rate_limit": 429,
    "offline": 503,
}

_MESSAGES: dict[str, str] = {
    "bad_request:api": "The request couldn't be processed. Please check your input and try again.",
    "bad_request:stream": "Oops, an error occurred while generating the response.",
    "unauthorized:auth": "You need to sign in before continuing.",
    "unauthorized:chat": "You need to sign in to use the chat.",
    "forbidden:auth": "Your account does not have access to this feature.",
    "forbidden:chat": "This chat belongs to another user. Please check the chat ID and try again.",
    "not_found:chat": "The requested chat was not found. Please check the chat ID and try again.",
    "not_found:stream": "No resumable stream was found for this chat.",
    "rate_limit:chat": "You have exceeded your maximum number of messages for the day. Please try again later.",
    "offline:chat": "We're having trouble sending your message. Please try again later.",
}


class ChatError(Exception):
    """Request failure with a machine-readable code.

    Raised before any side effect happens; rendered by the API exception
    handler as `{code, message, cause}`.
    """

    def __init__(self, code: str, cause: str | None = None):
        error_type, _, surface = code.partition(":")
        if error_type not in STATUS_BY_TYPE or not surface:
            raise ValueError(f"Invalid error code: {code}")
        self.code = code
        self.type = error_type
        self.surface = surface
        self.cause = cause
        self.message = message_for(code)
        self.status_code = STATUS_BY_TYPE[error_type]
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "cause": self.cause}


def message_for(code: str) -> str:
    if code in _MESSAGES:
        return _MESSAGES[code]
    if code.endswith(":database"):
        return "An error occurred while executing a database query."
    return "Something went wrong. Please try again later."
