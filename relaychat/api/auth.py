"""Caller identity from the upstream auth layer.

Authentication happens in front of this service; the proxy forwards the
user id and user type as headers.
"""

from __future__ import annotations

from fastapi import Header

from relaychat.domain.errors import ChatError
from relaychat.domain.identity import UserIdentity

USER_TYPES = ("guest", "regular")


def get_current_user(
    x_user_id: str | None = Header(default=None),
    x_user_type: str | None = Header(default=None),
) -> UserIdentity:
    if not x_user_id:
        raise ChatError("unauthorized:chat")
    user_type = (x_user_type or "regular").lower()
    if user_type not in USER_TYPES:
        raise ChatError("unauthorized:auth", f"Unknown user type: {x_user_type}")
    return UserIdentity(id=x_user_id, type=user_type)  # type: ignore[arg-type]
